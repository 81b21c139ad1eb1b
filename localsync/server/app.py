"""HTTP surface of the reference server, served through httpx.MockTransport."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from localsync.server.dto import (
    ConflictRequest,
    CreateSourceRequest,
    DeltasRequest,
    HeartbeatRequest,
    HistoryRequest,
    PushBatchRequest,
    RegisterConnectorRequest,
    ResolveRequest,
    SourceRequest,
)
from localsync.server.service import LocalSyncService, ServiceError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/local-sync/"

Handler = Callable[[LocalSyncService, dict[str, Any], str], Any]


def _routes() -> dict[str, Handler]:
    return {
        "connectors/register": lambda svc, body, ws: svc.register_connector(
            RegisterConnectorRequest.model_validate(body), ws
        ),
        "connectors/heartbeat": lambda svc, body, ws: svc.heartbeat(
            HeartbeatRequest.model_validate(body).connector_id, ws
        ),
        "sources": lambda svc, body, ws: svc.create_source(CreateSourceRequest.model_validate(body), ws),
        "sources/list": lambda svc, body, ws: svc.list_sources(ws),
        "sources/files": lambda svc, body, ws: svc.get_files(SourceRequest.model_validate(body).source_id, ws),
        "sources/push-batch": lambda svc, body, ws: svc.push_batch(PushBatchRequest.model_validate(body), ws),
        "sources/deltas": _deltas,
        "sources/conflicts": lambda svc, body, ws: svc.get_conflicts(
            SourceRequest.model_validate(body).source_id, ws
        ),
        "sources/conflicts/preview": _preview,
        "sources/conflicts/resolve": lambda svc, body, ws: svc.resolve_conflict(
            ResolveRequest.model_validate(body), ws
        ),
        "sources/pause": lambda svc, body, ws: svc.set_source_status(
            SourceRequest.model_validate(body).source_id, ws, "paused"
        ),
        "sources/resume": lambda svc, body, ws: svc.set_source_status(
            SourceRequest.model_validate(body).source_id, ws, "active"
        ),
        "sources/history": _history,
    }


def _deltas(svc: LocalSyncService, body: dict[str, Any], workspace_id: str) -> Any:
    req = DeltasRequest.model_validate(body)
    return svc.get_deltas(req.source_id, workspace_id, cursor=req.cursor, limit=req.limit)


def _preview(svc: LocalSyncService, body: dict[str, Any], workspace_id: str) -> Any:
    req = ConflictRequest.model_validate(body)
    return svc.get_conflict_preview(req.source_id, req.conflict_id, workspace_id)


def _history(svc: LocalSyncService, body: dict[str, Any], workspace_id: str) -> Any:
    req = HistoryRequest.model_validate(body)
    return svc.get_file_history(req.source_id, workspace_id, req.relative_path)


ROUTES = _routes()


def _json_response(status_code: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def dispatch(service: LocalSyncService, path: str, body: dict[str, Any], workspace_id: str) -> Any:
    """
    Call the handler for an API path.

    Raises:
        ServiceError: When the service rejects the request.
        ValidationError: When the body is malformed.
        KeyError: When no handler exists for the path.
    """
    handler = ROUTES[path]
    return handler(service, body, workspace_id)


def make_handler(
    service: LocalSyncService,
    *,
    tokens: Optional[set[str]] = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """
    Build a request handler for httpx.MockTransport.

    Args:
        service: Backing service.
        tokens: Accepted bearer tokens (any non-empty token when None).

    Returns:
        Function mapping an httpx.Request to an httpx.Response.
    """

    def handle(request: httpx.Request) -> httpx.Response:
        if request.method != "POST" or not request.url.path.startswith(API_PREFIX):
            return _json_response(404, {"statusCode": 404, "message": "Not Found"})

        auth = request.headers.get("authorization", "")
        token = auth[len("Bearer ") :] if auth.startswith("Bearer ") else ""
        workspace_id = request.headers.get("x-workspace-id", "")
        if not token or not workspace_id or (tokens is not None and token not in tokens):
            return _json_response(401, {"statusCode": 401, "message": "Unauthorized"})

        path = request.url.path[len(API_PREFIX) :]
        if path not in ROUTES:
            return _json_response(404, {"statusCode": 404, "message": f"Cannot POST {request.url.path}"})

        try:
            body = json.loads(request.content or b"{}")
        except json.JSONDecodeError:
            return _json_response(400, {"statusCode": 400, "message": "Invalid JSON body"})
        if not isinstance(body, dict):
            body = {}

        try:
            result = dispatch(service, path, body, workspace_id)
        except ServiceError as e:
            return _json_response(e.status_code, {"statusCode": e.status_code, "message": e.message})
        except ValidationError as e:
            messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            return _json_response(400, {"statusCode": 400, "message": messages})

        logger.debug("POST %s -> 200", path)
        return _json_response(200, result)

    return handle


def transport(service: LocalSyncService, *, tokens: Optional[set[str]] = None) -> httpx.MockTransport:
    """Create an httpx transport serving the API from an in-memory service."""
    return httpx.MockTransport(make_handler(service, tokens=tokens))
