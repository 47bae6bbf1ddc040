"""SSH script runner built on Paramiko.

One ``SSHRunner`` executes one rendered script on one host. Its lifecycle:

    CREATED --connect()--> CONNECTED --run()/start()--> RUNNING
    RUNNING --(exit 0)--> COMPLETED
    RUNNING --(exit != 0, transport error)--> FAILED
    any --close()--> CLOSED

Output sinks or pipes must be attached while CONNECTED. The rendered script
is fed to the remote interpreter's stdin once the command starts.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import IO, Any, Callable, List, Optional

import paramiko
from paramiko.common import cMSG_CHANNEL_REQUEST

from ..config import RunnerConfig
from ..errors import (
    ConnectionSetupError,
    ExecutionError,
    ExitStatus,
    InvalidStateError,
    PipeSetupError,
    ScriptParseError,
    ScriptRenderError,
    TransportError,
    exit_code_of,
)
from ..script import Script
from .auth import build_client_config
from .credentials import Connection, resolve_connection

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (paramiko.SSHException, OSError, EOFError)


class SessionState(Enum):
    CREATED = "created"
    CONNECTED = "connected"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CLOSED = "closed"


def send_signal(channel: paramiko.Channel, name: str) -> None:
    """Send an RFC 4254 "signal" channel request, e.g. ``TERM``."""
    # paramiko has no public API for this request
    message = paramiko.Message()
    message.add_byte(cMSG_CHANNEL_REQUEST)
    message.add_int(channel.remote_chanid)
    message.add_string("signal")
    message.add_boolean(False)
    message.add_string(name)
    channel.transport._send_user_message(message)


class SSHRunner:
    """Runs a single script over a dedicated SSH connection."""

    def __init__(
        self,
        connection: Any,
        script: Script,
        arguments: Any = None,
        *,
        config: Optional[RunnerConfig] = None,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.connection: Connection = resolve_connection(connection)
        self.script = script
        self.arguments = arguments
        self.config = config or RunnerConfig()
        self.command = ""
        self.state = SessionState.CREATED
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None
        self._channel: Optional[paramiko.Channel] = None
        self._stdin: Optional[IO[bytes]] = None
        self._stdout: Optional[IO[bytes]] = None
        self._stderr: Optional[IO[bytes]] = None
        self._stdout_piped = False
        self._stderr_piped = False
        self._started_async = False
        self._threads: List[threading.Thread] = []
        self._stream_errors: List[BaseException] = []
        self._exit_code = -1

    @classmethod
    def open(cls, connection: Any, script: Script, arguments: Any = None, **kwargs: Any) -> "SSHRunner":
        """Create a runner and connect it; raises instead of returning a half-built runner."""
        runner = cls(connection, script, arguments, **kwargs)
        runner.connect()
        return runner

    def __enter__(self) -> "SSHRunner":
        if self.state is SessionState.CREATED:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def __repr__(self) -> str:
        return (
            f"SSHRunner(script={self.script.name!r}, address={self.connection.address!r}, "
            f"state={self.state.value})"
        )

    @property
    def exit_code(self) -> int:
        return self._exit_code

    # ------------------------------------------------------------------
    # construction

    def connect(self) -> None:
        """Dial, authenticate, open the command channel and prepare stdin."""
        self._require({SessionState.CREATED}, "connect")
        if self.script.error is not None:
            self._abort_setup()
            raise ScriptParseError(
                "script failed to parse",
                script=self.script,
                cause=self.script.error,
            )

        try:
            stdin = self.script.new_reader(self.arguments)
        except ScriptRenderError:
            self._abort_setup()
            raise

        try:
            client_config = build_client_config(self.connection, self.config)
        except RuntimeError as exc:
            self._abort_setup()
            raise self._setup_error("cannot find home directory of current user", exc) from exc

        client = self._client_factory()
        self._client = client
        try:
            client_config.apply_host_key_policy(client)
        except OSError as exc:
            self._abort_setup()
            raise self._setup_error("cannot access known_hosts file", exc) from exc

        logger.debug("Dialing %s as %s", self.connection.address, self.connection.user)
        try:
            client.connect(**client_config.connect_kwargs())
        except _NETWORK_ERRORS as exc:
            self._abort_setup()
            raise self._setup_error(f"cannot dial host {self.connection.address}", exc) from exc

        try:
            transport = client.get_transport()
            if transport is None:
                raise paramiko.SSHException("transport is not active")
            self._channel = transport.open_session(timeout=self.config.connect_timeout)
        except _NETWORK_ERRORS as exc:
            self._abort_setup()
            raise self._setup_error("cannot open session", exc) from exc

        self._stdin = stdin
        self.command = self.script.command()
        self.state = SessionState.CONNECTED
        logger.debug("Session to %s open for script %s", self.connection.address, self.script.name)

    def _setup_error(self, message: str, cause: BaseException) -> ConnectionSetupError:
        return ConnectionSetupError(message, script=self.script, exit_code=-1, cause=cause)

    def _abort_setup(self) -> None:
        self._exit_code = -1
        self._release()
        self.state = SessionState.FAILED

    # ------------------------------------------------------------------
    # stream wiring

    def set_stdout_writer(self, writer: Optional[IO[bytes]]) -> None:
        """Copy remote stdout into `writer` (a binary, writable stream)."""
        self._require({SessionState.CONNECTED}, "set_stdout_writer")
        self._stdout = writer

    def set_stderr_writer(self, writer: Optional[IO[bytes]]) -> None:
        """Copy remote stderr into `writer` (a binary, writable stream)."""
        self._require({SessionState.CONNECTED}, "set_stderr_writer")
        self._stderr = writer

    def stdout_pipe(self) -> IO[bytes]:
        """Readable stream of remote stdout, consumed by the caller."""
        self._require({SessionState.CONNECTED}, "stdout_pipe")
        if self._stdout_piped:
            raise self._pipe_error("stdout", paramiko.SSHException("stdout pipe already requested"))
        try:
            pipe = self._channel.makefile("rb")
        except _NETWORK_ERRORS as exc:
            raise self._pipe_error("stdout", exc) from exc
        self._stdout_piped = True
        return pipe

    def stderr_pipe(self) -> IO[bytes]:
        """Readable stream of remote stderr, consumed by the caller."""
        self._require({SessionState.CONNECTED}, "stderr_pipe")
        if self._stderr_piped:
            raise self._pipe_error("stderr", paramiko.SSHException("stderr pipe already requested"))
        try:
            pipe = self._channel.makefile_stderr("rb")
        except _NETWORK_ERRORS as exc:
            raise self._pipe_error("stderr", exc) from exc
        self._stderr_piped = True
        return pipe

    def _pipe_error(self, stream: str, cause: BaseException) -> PipeSetupError:
        self._exit_code = -1
        return PipeSetupError(
            f"cannot create {stream} reader",
            script=self.script,
            command=self.command,
            exit_code=-1,
            cause=cause,
        )

    # ------------------------------------------------------------------
    # execution

    def run(self) -> None:
        """Execute the command and block until it terminates.

        Raises ``ExecutionError`` for a non-zero exit status and
        ``TransportError`` when no exit status could be obtained. A process
        killed by a signal reports no exit status over SSH, so it surfaces
        as a ``TransportError`` with exit code -1 rather than 128+N.
        """
        self._start_command("run")
        self._finish("run")

    def start(self) -> None:
        """Start the command and return once it is executing remotely."""
        self._start_command("start")
        self._started_async = True

    def wait(self) -> None:
        """Block until a command begun with ``start()`` terminates."""
        self._require({SessionState.RUNNING}, "wait")
        if not self._started_async:
            raise InvalidStateError(
                "wait() is only valid after start()",
                script=self.script,
                command=self.command,
            )
        self._finish("wait")

    def _start_command(self, operation: str) -> None:
        self._require({SessionState.CONNECTED}, operation)
        channel = self._channel
        try:
            channel.exec_command(self.command)
        except _NETWORK_ERRORS as exc:
            self._exit_code = -1
            self.state = SessionState.FAILED
            raise TransportError(
                f"cannot {operation} runner",
                script=self.script,
                command=self.command,
                exit_code=-1,
                cause=exc,
            ) from exc

        self.state = SessionState.RUNNING
        logger.debug("Started %r on %s", self.command, self.connection.address)
        self._spawn("stdin", self._feed_stdin, channel)
        if not self._stdout_piped:
            self._spawn("stdout", self._pump_output, channel.recv, self._stdout)
        if not self._stderr_piped:
            self._spawn("stderr", self._pump_output, channel.recv_stderr, self._stderr)

    def _finish(self, operation: str) -> None:
        channel = self._channel
        # an interrupt here leaves the copy threads running until close()
        status = channel.recv_exit_status()
        for thread in self._threads:
            thread.join()
        self._threads = []
        self._started_async = False
        closed = self.state is SessionState.CLOSED

        cause: Optional[BaseException] = None
        if status > 0:
            cause = ExitStatus(status)
        elif status < 0:
            cause = paramiko.SSHException("remote command exited without reporting an exit status")
        elif self._stream_errors:
            cause = self._stream_errors[0]

        if cause is None:
            self._exit_code = 0
            if not closed:
                self.state = SessionState.COMPLETED
            logger.debug("Command %r completed on %s", self.command, self.connection.address)
            return

        self._exit_code = exit_code_of(cause)
        if not closed:
            self.state = SessionState.FAILED
        logger.debug(
            "Command %r failed on %s with exit code %d",
            self.command,
            self.connection.address,
            self._exit_code,
        )
        if self._exit_code > 0:
            error_class, message = ExecutionError, "runner failed"
        elif operation == "run":
            error_class, message = TransportError, "cannot execute runner"
        else:
            error_class, message = TransportError, "runner failed"
        raise error_class(
            message,
            script=self.script,
            command=self.command,
            exit_code=self._exit_code,
            cause=cause,
        )

    def _spawn(self, name: str, target: Callable[..., None], *args: Any) -> None:
        thread = threading.Thread(
            target=target,
            args=args,
            name=f"ssh-{name}-{self.connection.address}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _feed_stdin(self, channel: paramiko.Channel) -> None:
        try:
            while True:
                data = self._stdin.read(self.config.buffer_size)
                if not data:
                    break
                channel.sendall(data)
            channel.shutdown_write()
        except _NETWORK_ERRORS as exc:
            if channel.exit_status_ready():
                # the command finished without consuming all of its input
                logger.debug("Remote command exited before reading all stdin: %s", exc)
                return
            self._stream_errors.append(exc)

    def _pump_output(self, recv: Callable[[int], bytes], sink: Optional[IO[bytes]]) -> None:
        # output without a sink is still drained so the channel window keeps moving
        try:
            while True:
                data = recv(self.config.buffer_size)
                if not data:
                    break
                if sink is not None:
                    sink.write(data)
        except Exception as exc:  # surfaced by run()/wait()
            self._stream_errors.append(exc)

    # ------------------------------------------------------------------
    # teardown

    def close(self) -> None:
        """Release the channel and connection. Safe to call more than once."""
        if self.state is SessionState.CLOSED:
            return
        if self.state is SessionState.RUNNING and self._channel is not None:
            try:
                send_signal(self._channel, "TERM")
            except _NETWORK_ERRORS as exc:
                logger.debug("Ignoring failure to signal remote command: %s", exc)
        self._release()
        self.state = SessionState.CLOSED

    def _release(self) -> None:
        if self._channel is not None:
            try:
                self._channel.close()
            except _NETWORK_ERRORS as exc:
                logger.debug("Ignoring error while closing channel: %s", exc)
            self._channel = None
        if self._client is not None:
            try:
                self._client.close()
            except _NETWORK_ERRORS as exc:
                logger.debug("Ignoring error while closing connection: %s", exc)
            self._client = None

    def _require(self, states: set, operation: str) -> None:
        if self.state not in states:
            raise InvalidStateError(
                f"{operation}() is not allowed in state {self.state.value}",
                script=self.script,
                command=self.command,
                exit_code=self._exit_code,
            )
