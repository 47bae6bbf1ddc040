"""Error model shared by every runner back-end.

Each failure raised at or after connection resolution is a ``RunnerError``
carrying the script that was being executed, the command text (empty until
the session is constructed), the best-effort exit code and the underlying
cause. ``-1`` means the remote process's own exit status is not known.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .script import Script


class RunnerError(RuntimeError):
    """Base failure of a runner operation."""

    def __init__(
        self,
        message: str,
        *,
        script: Optional["Script"] = None,
        command: str = "",
        exit_code: int = -1,
        cause: Optional[BaseException] = None,
    ) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.script = script
        self.command = command
        self.exit_code = exit_code
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def script_identity(self) -> str:
        return self.script.identity if self.script is not None else ""

    def describe(self) -> str:
        """Multi-line summary for humans: script, command, exit code, cause."""
        lines = [
            f"script: {self.script_identity or '-'}",
            f"command: {self.command or '-'}",
            f"exitcode: {self.exit_code}",
            f"error: {self}",
        ]
        return "\n".join(lines)


class ScriptParseError(RunnerError):
    """The script template failed to parse; nothing was sent over the network."""


class ScriptRenderError(RunnerError):
    """The script template could not be rendered with the given arguments."""


class ConnectionSetupError(RunnerError):
    """Dial, authentication, trust store or channel setup failed."""


class ExecutionError(RunnerError):
    """The remote command exited with a non-zero status."""


class TransportError(RunnerError):
    """The connection or channel failed while the command was starting or running."""


class PipeSetupError(RunnerError):
    """An output pipe could not be created."""


class InvalidStateError(RunnerError):
    """The operation is not allowed in the session's current state."""


class UnsupportedConnectionError(RunnerError):
    """The connection kind has no runner back-end."""


class CredentialError(Exception):
    """A private key file exists but could not be read or parsed."""


class ExitStatus(Exception):
    """The remote process reported a non-zero exit status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"process exited with status {status}")
        self.status = status


def exit_code_of(exc: BaseException) -> int:
    """Exit code carried by `exc` or its causes, ``-1`` if there is none."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ExitStatus):
            return current.status
        seen.add(id(current))
        current = current.__cause__
    return -1
