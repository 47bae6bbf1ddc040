"""Run parameterized scripts on remote hosts over SSH."""

from .config import RunnerConfig, load_config
from .errors import (
    ConnectionSetupError,
    CredentialError,
    ExecutionError,
    InvalidStateError,
    PipeSetupError,
    RunnerError,
    ScriptParseError,
    ScriptRenderError,
    TransportError,
    UnsupportedConnectionError,
)
from .runner import new, run
from .script import Script
from .ssh import Connection, SessionState, SSHRunner, resolve_connection

__all__ = [
    "Connection",
    "ConnectionSetupError",
    "CredentialError",
    "ExecutionError",
    "InvalidStateError",
    "PipeSetupError",
    "RunnerConfig",
    "RunnerError",
    "Script",
    "ScriptParseError",
    "ScriptRenderError",
    "SessionState",
    "SSHRunner",
    "TransportError",
    "UnsupportedConnectionError",
    "load_config",
    "new",
    "resolve_connection",
    "run",
]
