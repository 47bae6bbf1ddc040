"""SSH back-end: connection resolution, authentication and the script runner."""

from .auth import AuthMethod, ClientConfig, KeyAuth, NoAuth, PasswordAuth, build_client_config, select_auth
from .credentials import Connection, from_mapping, from_record, resolve_connection
from .keys import load_private_key
from .session import SessionState, SSHRunner

__all__ = [
    "AuthMethod",
    "ClientConfig",
    "Connection",
    "KeyAuth",
    "NoAuth",
    "PasswordAuth",
    "SessionState",
    "SSHRunner",
    "build_client_config",
    "from_mapping",
    "from_record",
    "load_private_key",
    "resolve_connection",
    "select_auth",
]
