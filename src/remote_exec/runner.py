"""Back-end dispatch and the one-call ``run`` helper."""

from __future__ import annotations

import logging
from typing import IO, Any, Optional

from .errors import UnsupportedConnectionError
from .script import Script
from .ssh import SSHRunner, resolve_connection

logger = logging.getLogger(__name__)


def new(connection: Any, script: Script, arguments: Any = None, **options: Any) -> SSHRunner:
    """Build a connected runner for `connection`.

    `options` are passed to the back-end (``config``, ``client_factory``).
    """
    resolved = resolve_connection(connection)
    if resolved.kind not in ("", "ssh"):
        raise UnsupportedConnectionError(
            f"unsupported connection kind {resolved.kind!r}",
            script=script,
            exit_code=-1,
        )
    return SSHRunner.open(resolved, script, arguments, **options)


def run(
    connection: Any,
    script: Script,
    arguments: Any = None,
    stdout: Optional[IO[bytes]] = None,
    stderr: Optional[IO[bytes]] = None,
    **options: Any,
) -> int:
    """Run `script` to completion and return its exit code.

    The runner is always closed. Failures raise ``RunnerError`` subclasses
    carrying the exit code.
    """
    runner = new(connection, script, arguments, **options)
    try:
        runner.set_stdout_writer(stdout)
        runner.set_stderr_writer(stderr)
        runner.run()
        return runner.exit_code
    finally:
        runner.close()
