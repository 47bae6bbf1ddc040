"""SSH connection descriptors and their normalization.

Callers describe a target either as a record (any object exposing ``host``,
``port``, ``user``... attributes) or as a string-keyed mapping whose values
may all be text. Both forms resolve to the same immutable ``Connection``.

Resolution is best-effort: a malformed port or boolean falls back to its
zero value and an unusable key path leaves the credential unset. Each such
problem is logged and kept on ``Connection.warnings``; a misconfigured
target then fails at dial time, where the error carries full context.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Tuple

import paramiko

from ..errors import CredentialError
from .keys import load_private_key

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "t", "true", "y", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "f", "false", "n", "no", "off"})

# normalized mapping key -> Connection field
_MAPPING_KEYS = {
    "kind": "kind",
    "type": "kind",
    "host": "host",
    "hostname": "host",
    "port": "port",
    "user": "user",
    "username": "user",
    "password": "password",
    "keypath": "key_path",
    "pubkeypath": "key_path",
    "keyfile": "key_path",
    "insecure": "insecure",
}


@dataclass(frozen=True)
class Connection:
    """Canonical description of how to reach and authenticate to a host."""

    kind: str = "ssh"
    host: str = ""
    port: int = 0
    user: str = ""
    password: Optional[str] = field(default=None, repr=False)
    key_path: Optional[str] = None
    credential: Optional[paramiko.PKey] = field(default=None, repr=False)
    insecure: bool = False
    warnings: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def with_credential(self) -> "Connection":
        """Return a copy with the key at ``key_path`` loaded, if not already."""
        if self.credential is not None or not self.key_path:
            return self
        if any(note.startswith("cannot load private key") for note in self.warnings):
            return self
        notes = list(self.warnings)
        credential = _try_load_key(self.key_path, notes)
        if credential is None:
            logger.warning("Connection %s: %s", self.address, notes[-1])
        return replace(self, credential=credential, warnings=tuple(notes))


def parse_port(value: Any, warnings: List[str]) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        warnings.append(f"invalid port {value!r}, using 0")
        return 0
    text = str(value).strip()
    if text.isascii() and text.isdecimal():
        port = int(text)
        if port <= 0xFFFF:
            return port
    warnings.append(f"invalid port {value!r}, using 0")
    return 0


def parse_bool(value: Any, warnings: List[str], name: str = "insecure") -> bool:
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return False
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text not in _FALSE_STRINGS:
        warnings.append(f"invalid boolean {value!r} for {name}, using false")
    return False


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _try_load_key(path: str, warnings: List[str]) -> Optional[paramiko.PKey]:
    try:
        return load_private_key(path)
    except (OSError, CredentialError) as exc:
        warnings.append(f"cannot load private key {path}: {exc}")
        return None


def _build(
    *,
    kind: Any,
    host: Any,
    port: Any,
    user: Any,
    password: Any,
    key_path: Any,
    insecure: Any,
    warnings: List[str],
) -> Connection:
    key_path_text = _text(key_path) or None
    credential = _try_load_key(key_path_text, warnings) if key_path_text else None
    connection = Connection(
        kind=_text(kind) or "ssh",
        host=_text(host),
        port=parse_port(port, warnings),
        user=_text(user),
        password=_text(password) or None,
        key_path=key_path_text,
        credential=credential,
        insecure=parse_bool(insecure, warnings),
        warnings=tuple(warnings),
    )
    for message in connection.warnings:
        logger.warning("Connection %s: %s", connection.address, message)
    return connection


def from_record(record: Any) -> Connection:
    """Resolve an object exposing connection attributes."""
    kind = getattr(record, "kind", None)
    if kind is None:
        kind = getattr(record, "type", None)
    return _build(
        kind=kind,
        host=getattr(record, "host", None),
        port=getattr(record, "port", None),
        user=getattr(record, "user", None),
        password=getattr(record, "password", None),
        key_path=getattr(record, "key_path", None),
        insecure=getattr(record, "insecure", None),
        warnings=[],
    )


def from_mapping(mapping: Mapping) -> Connection:
    """Resolve a string-keyed mapping; keys are matched case-insensitively."""
    values = {}
    for key, value in mapping.items():
        name = _MAPPING_KEYS.get(str(key).replace("_", "").replace("-", "").lower())
        if name is None:
            logger.debug("Ignoring unknown connection key %r", key)
            continue
        values[name] = value
    return _build(
        kind=values.get("kind"),
        host=values.get("host"),
        port=values.get("port"),
        user=values.get("user"),
        password=values.get("password"),
        key_path=values.get("key_path"),
        insecure=values.get("insecure"),
        warnings=[],
    )


def resolve_connection(value: Any) -> Connection:
    """Normalize a record or mapping into a ``Connection``. Never raises."""
    if isinstance(value, Connection):
        return value.with_credential()
    if isinstance(value, Mapping):
        return from_mapping(value)
    return from_record(value)
