import io
import unittest

from remote_exec import ExecutionError, Script, UnsupportedConnectionError, new, run
from remote_exec.ssh import SessionState

from ssh_fakes import ClientFactory, FakeChannel, FakeSSHClient

ECHO = Script("echo", "bash", "echo {{ message }}\n")
TARGET = {"kind": "ssh", "host": "localhost", "port": "22", "user": "me", "password": "pw", "insecure": "true"}


class RunHelperTests(unittest.TestCase):
    def test_run_collects_output_and_closes(self) -> None:
        client = FakeSSHClient(FakeChannel(stdout=b"hello\n", stderr=b""))
        stdout, stderr = io.BytesIO(), io.BytesIO()
        exit_code = run(TARGET, ECHO, {"message": "hello"}, stdout, stderr, client_factory=ClientFactory(client))
        self.assertEqual(exit_code, 0)
        self.assertEqual(stdout.getvalue(), b"hello\n")
        self.assertTrue(client.closed)
        self.assertEqual(bytes(client.channel.stdin), b"echo hello\n")

    def test_run_raises_with_exit_code_and_closes(self) -> None:
        client = FakeSSHClient(FakeChannel(stderr=b"boom\n", status=7))
        stderr = io.BytesIO()
        with self.assertRaises(ExecutionError) as ctx:
            run(TARGET, ECHO, {"message": "x"}, None, stderr, client_factory=ClientFactory(client))
        self.assertEqual(ctx.exception.exit_code, 7)
        self.assertEqual(stderr.getvalue(), b"boom\n")
        self.assertTrue(client.closed)

    def test_new_returns_connected_runner(self) -> None:
        runner = new(TARGET, ECHO, {"message": "x"}, client_factory=ClientFactory())
        self.assertIs(runner.state, SessionState.CONNECTED)
        runner.close()

    def test_bad_key_path_is_reported_once(self) -> None:
        target = {**TARGET, "key_path": "/does/not/exist"}
        with self.assertLogs("remote_exec.ssh.credentials", level="WARNING") as logs:
            runner = new(target, ECHO, {"message": "x"}, client_factory=ClientFactory())
        runner.close()
        self.assertEqual(len(logs.output), 1)

    def test_unsupported_kind(self) -> None:
        factory = ClientFactory()
        with self.assertRaises(UnsupportedConnectionError) as ctx:
            new({**TARGET, "kind": "winrm"}, ECHO, {"message": "x"}, client_factory=factory)
        self.assertEqual(ctx.exception.exit_code, -1)
        self.assertEqual(factory.calls, 0)


if __name__ == "__main__":
    unittest.main()
