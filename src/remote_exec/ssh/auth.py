"""Authentication method selection and client configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import paramiko

from ..config import RunnerConfig
from .credentials import Connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoAuth:
    """Nothing usable was configured; the server will reject the login."""

    def connect_kwargs(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class PasswordAuth:
    secret: str = field(repr=False)

    def connect_kwargs(self) -> Dict[str, Any]:
        return {"password": self.secret}


@dataclass(frozen=True)
class KeyAuth:
    key: paramiko.PKey = field(repr=False)

    def connect_kwargs(self) -> Dict[str, Any]:
        return {"pkey": self.key}


AuthMethod = Union[NoAuth, PasswordAuth, KeyAuth]


def select_auth(connection: Connection) -> AuthMethod:
    """Pick the single method offered to the server.

    A loaded key always wins over a password.
    """
    if connection.credential is not None:
        return KeyAuth(connection.credential)
    if connection.password:
        return PasswordAuth(connection.password)
    return NoAuth()


@dataclass
class ClientConfig:
    """Everything needed to dial: login, one auth method, host-key policy."""

    host: str
    port: int
    user: str
    auth: AuthMethod
    insecure: bool
    known_hosts: Optional[Path] = None
    timeout: Optional[float] = None
    banner_timeout: Optional[float] = None
    auth_timeout: Optional[float] = None

    def apply_host_key_policy(self, client: paramiko.SSHClient) -> None:
        """Install the trust store and missing-key policy on `client`.

        Raises ``OSError`` when the trust store cannot be read.
        """
        if self.insecure:
            # no trust store is consulted in this mode
            logger.warning(
                "Host key verification disabled for %s:%s. "
                "This is unsafe and meant for throwaway targets only.",
                self.host,
                self.port,
            )
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            return
        assert self.known_hosts is not None
        client.get_host_keys().load(str(self.known_hosts))
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
        logger.debug("SSH host key policy: RejectPolicy with %s", self.known_hosts)

    def connect_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "hostname": self.host,
            "port": self.port,
            "username": self.user,
            "timeout": self.timeout,
            "banner_timeout": self.banner_timeout,
            "auth_timeout": self.auth_timeout,
            "look_for_keys": False,
            "allow_agent": False,
        }
        kwargs.update(self.auth.connect_kwargs())
        return kwargs


def known_hosts_file(config: RunnerConfig) -> Path:
    """Expand the configured trust store path.

    Raises ``RuntimeError`` when the home directory cannot be determined.
    """
    return Path(config.known_hosts_path).expanduser()


def build_client_config(connection: Connection, config: Optional[RunnerConfig] = None) -> ClientConfig:
    config = config or RunnerConfig()
    return ClientConfig(
        host=connection.host,
        port=connection.port,
        user=connection.user,
        auth=select_auth(connection),
        insecure=connection.insecure,
        known_hosts=None if connection.insecure else known_hosts_file(config),
        timeout=config.connect_timeout,
        banner_timeout=config.banner_timeout,
        auth_timeout=config.auth_timeout,
    )
