"""Configuration loading utilities for remote-exec."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path("config/remote_exec.json")

SUPPORTED_SHELLS = ("bash", "sh", "powershell", "pwsh")


@dataclass
class RunnerConfig:
    """Runtime settings for dialing and stream pumping."""

    known_hosts_path: str = "~/.ssh/known_hosts"
    connect_timeout: Optional[float] = 20.0
    banner_timeout: Optional[float] = None
    auth_timeout: Optional[float] = None
    buffer_size: int = 32768
    default_shell: str = "bash"

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RunnerConfig":
        # keys starting with "_" are comments
        known = {f.name for f in fields(cls)}
        cleaned = {k: v for k, v in payload.items() if k in known}
        ignored = sorted(k for k in payload if k not in known and not k.startswith("_"))
        if ignored:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(ignored))
        config = cls(**{**cls().__dict__, **cleaned})
        config.validate()
        return config

    def validate(self) -> None:
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be a positive number of bytes")
        if self.default_shell not in SUPPORTED_SHELLS:
            raise ValueError(
                f"default_shell must be one of {', '.join(SUPPORTED_SHELLS)}, got {self.default_shell!r}"
            )


@dataclass
class ConnectionDefaults:
    """Connection values picked up from the environment for the CLI."""

    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    key_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ConnectionDefaults":
        port = os.getenv("REMOTE_EXEC_SSH_PORT")
        return cls(
            host=os.getenv("REMOTE_EXEC_SSH_HOST") or None,
            port=_env_port(port),
            user=os.getenv("REMOTE_EXEC_SSH_USER") or None,
            password=os.getenv("REMOTE_EXEC_SSH_PASSWORD") or None,
            key_path=os.getenv("REMOTE_EXEC_SSH_KEY_PATH") or None,
        )


def _env_port(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"REMOTE_EXEC_SSH_PORT must be a number, got {value!r}") from None


def load_config(path: Optional[str] = None) -> RunnerConfig:
    """Load configuration from `path` or the default location.

    A missing default file yields the built-in defaults; an explicit `path`
    that does not exist raises ``FileNotFoundError``.

    Environment variables (higher priority than config file):
    - REMOTE_EXEC_KNOWN_HOSTS: Trust store consulted for host keys
    - REMOTE_EXEC_CONNECT_TIMEOUT: TCP connect timeout in seconds
    - REMOTE_EXEC_BUFFER_SIZE: Chunk size for stream copying
    - REMOTE_EXEC_DEFAULT_SHELL: Shell used when none is given
    """

    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = RunnerConfig.from_dict(data or {})
    else:
        config = RunnerConfig()

    env_known_hosts = os.getenv("REMOTE_EXEC_KNOWN_HOSTS")
    if env_known_hosts:
        config.known_hosts_path = env_known_hosts

    env_timeout = os.getenv("REMOTE_EXEC_CONNECT_TIMEOUT")
    if env_timeout:
        config.connect_timeout = float(env_timeout)

    env_buffer = os.getenv("REMOTE_EXEC_BUFFER_SIZE")
    if env_buffer:
        config.buffer_size = int(env_buffer)

    env_shell = os.getenv("REMOTE_EXEC_DEFAULT_SHELL")
    if env_shell:
        config.default_shell = env_shell

    config.validate()
    return config
