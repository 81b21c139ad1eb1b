# LocalSync Reference Server
# In-memory server for local development and end-to-end tests

from localsync.server.app import dispatch, make_handler, transport
from localsync.server.service import BadRequestError, LocalSyncService, NotFoundError, ServiceError

__all__ = [
    "LocalSyncService",
    "ServiceError",
    "BadRequestError",
    "NotFoundError",
    "dispatch",
    "make_handler",
    "transport",
]
