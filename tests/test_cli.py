import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from remote_exec import cli
from remote_exec.errors import ExecutionError, TransportError

_BASE = ["--host", "h", "--user", "u", "--password", "pw", "--insecure"]


class FakeStd:
    def __init__(self) -> None:
        self.buffer = io.BytesIO()
        self.text = io.StringIO()

    def write(self, data: str) -> int:
        return self.text.write(data)

    def flush(self) -> None:
        pass


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        env = {k: v for k, v in os.environ.items() if not k.startswith("REMOTE_EXEC_")}
        self._env = mock.patch.dict(os.environ, env, clear=True)
        self._env.start()
        self.stdout, self.stderr = FakeStd(), FakeStd()
        self._streams = [
            mock.patch("sys.stdout", self.stdout),
            mock.patch("sys.stderr", self.stderr),
        ]
        for patcher in self._streams:
            patcher.start()

    def tearDown(self) -> None:
        for patcher in self._streams:
            patcher.stop()
        self._env.stop()

    def test_parse_arguments(self) -> None:
        self.assertEqual(cli.parse_arguments(["a=1", "b=x=y"]), {"a": "1", "b": "x=y"})
        with self.assertRaises(ValueError):
            cli.parse_arguments(["novalue"])

    def test_build_connection_prefers_flags(self) -> None:
        os.environ["REMOTE_EXEC_SSH_HOST"] = "env-host"
        args = cli.build_parser().parse_args(_BASE + ["--port", "2200", "--command", "true"])
        connection = cli.build_connection(args)
        self.assertEqual(connection["host"], "h")
        self.assertEqual(connection["port"], "2200")
        self.assertEqual(connection["insecure"], "True")
        self.assertEqual(connection["key_path"], "")

    def test_inline_command_runs(self) -> None:
        with mock.patch.object(cli, "run", return_value=0) as run:
            code = cli.run_cli(_BASE + ["--command", "echo {{ name }}", "--arg", "name=x"])
        self.assertEqual(code, 0)
        connection, script, arguments = run.call_args.args
        self.assertEqual(script.render(arguments), "echo x")
        self.assertEqual(script.shell, "bash")
        self.assertEqual(connection["user"], "u")
        self.assertIs(run.call_args.kwargs["stdout"], self.stdout.buffer)

    def test_script_file_and_shell(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "version.ps1"
            path.write_text("Get-Host\n")
            with mock.patch.object(cli, "run", return_value=0) as run:
                cli.run_cli(_BASE + ["--script", str(path), "--shell", "powershell"])
        script = run.call_args.args[1]
        self.assertEqual(script.name, "version")
        self.assertEqual(script.shell, "powershell")

    def test_remote_failure_sets_exit_status(self) -> None:
        error = ExecutionError("runner failed", command="bash -s", exit_code=7)
        with mock.patch.object(cli, "run", side_effect=error):
            code = cli.run_cli(_BASE + ["--command", "exit 7"])
        self.assertEqual(code, 7)
        self.assertIn("exitcode: 7", self.stderr.text.getvalue())

    def test_unknown_exit_code_maps_to_255(self) -> None:
        with mock.patch.object(cli, "run", side_effect=TransportError("cannot execute runner")):
            code = cli.run_cli(_BASE + ["--command", "true"])
        self.assertEqual(code, cli.UNKNOWN_EXIT_STATUS)

    def test_bad_port_in_environment_is_a_usage_error(self) -> None:
        os.environ["REMOTE_EXEC_SSH_PORT"] = "twenty-two"
        with mock.patch.object(cli, "run", return_value=0) as run:
            with self.assertRaises(SystemExit):
                cli.run_cli(["--user", "u", "--command", "true"])
        run.assert_not_called()
        self.assertIn("REMOTE_EXEC_SSH_PORT", self.stderr.text.getvalue())

    def test_host_is_required(self) -> None:
        with self.assertRaises(SystemExit):
            cli.run_cli(["--user", "u", "--command", "true"])


if __name__ == "__main__":
    unittest.main()
