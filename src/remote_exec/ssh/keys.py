"""Private key loading."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Union

import paramiko

from ..errors import CredentialError

logger = logging.getLogger(__name__)

# DSA is gone from current paramiko releases and OpenSSH defaults
_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def load_private_key(path: Union[str, Path]) -> paramiko.PKey:
    """Read and parse an unencrypted private key file.

    Passphrase-protected keys are not supported and raise ``CredentialError``.
    A missing file raises ``FileNotFoundError``.
    """
    key_path = Path(path).expanduser()
    if not key_path.is_file():
        raise FileNotFoundError(f"private key file not found: {key_path}")
    try:
        text = key_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CredentialError(f"cannot read private key {key_path}: {exc}") from exc

    last_error: Optional[Exception] = None
    for key_class in _KEY_CLASSES:
        try:
            key = key_class.from_private_key(io.StringIO(text))
        except paramiko.PasswordRequiredException as exc:
            raise CredentialError(
                f"private key {key_path} is passphrase-protected, which is not supported"
            ) from exc
        except (paramiko.SSHException, ValueError) as exc:
            last_error = exc
            continue
        logger.debug("Loaded %s key from %s", key.get_name(), key_path)
        return key

    raise CredentialError(f"cannot parse private key {key_path}: {last_error}") from last_error
