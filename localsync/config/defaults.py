# LocalSync Default Configuration
# Default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "connector": {
        "server_url": "http://localhost:3000",
        "workspace_id": "",
        "token": "",
    },
    "daemon": {
        "interval_ms": 5000,
        "max_file_bytes": 1_000_000,
        "max_files_per_scan": 10_000,
        "batch_size": 25,
        "delta_page_size": 200,
        "heartbeat_interval_ms": 30_000,
        "request_timeout": 30.0,
        "state_file_name": ".localsync-state.yaml",
        "default_include": ["**/*.md"],
        "default_exclude": ["**/.git/**", "**/node_modules/**"],
    },
    "output": {
        "verbose": False,
        "colored": True,
    },
}

CONFIG_HEADER = """\
# localsync configuration
#
# Credentials are best supplied through the environment:
#   LOCALSYNC_SERVER_URL, LOCALSYNC_WORKSPACE, LOCALSYNC_TOKEN
# Environment values override this file.

"""


def default_config() -> dict[str, Any]:
    """Return a deep copy of the defaults, safe to mutate."""
    return copy.deepcopy(DEFAULT_CONFIG)


def generate_default_config() -> str:
    """
    Generate the default configuration as YAML text.

    Returns:
        YAML document with an explanatory header.
    """
    body = yaml.dump(default_config(), default_flow_style=False, sort_keys=False, allow_unicode=True)
    return CONFIG_HEADER + body
