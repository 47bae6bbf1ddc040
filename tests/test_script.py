import unittest
from dataclasses import dataclass

from remote_exec.errors import ScriptRenderError
from remote_exec.script import Script


@dataclass
class LsArguments:
    path: str


class ScriptTests(unittest.TestCase):
    def test_renders_mapping_arguments(self) -> None:
        script = Script("ls", "bash", "ls {{ path }}\n")
        self.assertIsNone(script.error)
        self.assertEqual(script.new_reader({"path": "/srv"}).read(), b"ls /srv\n")

    def test_renders_dataclass_and_object_arguments(self) -> None:
        script = Script("ls", "powershell", 'Get-ChildItem -Path "{{ path }}"')
        self.assertEqual(script.render(LsArguments(path="C:\\temp")), 'Get-ChildItem -Path "C:\\temp"')

        class Args:
            def __init__(self) -> None:
                self.path = "/opt"

        self.assertEqual(script.render(Args()), 'Get-ChildItem -Path "/opt"')

    def test_no_arguments(self) -> None:
        script = Script("version", "bash", "bash --version | head -n 1\n")
        self.assertEqual(script.render(None), "bash --version | head -n 1\n")

    def test_unresolved_parameter_fails(self) -> None:
        script = Script("ls", "bash", "ls {{ path }}")
        with self.assertRaises(ScriptRenderError) as ctx:
            script.new_reader({})
        self.assertIs(ctx.exception.script, script)
        self.assertEqual(ctx.exception.exit_code, -1)

    def test_unsupported_argument_type_fails(self) -> None:
        script = Script("ls", "bash", "ls")
        with self.assertRaises(ScriptRenderError):
            script.render(42)

    def test_parse_error_is_stored(self) -> None:
        script = Script("broken", "bash", "{% if %}")
        self.assertIsNotNone(script.error)
        with self.assertRaises(ScriptRenderError):
            script.render({})

    def test_unsupported_shell_is_stored(self) -> None:
        script = Script("x", "fish", "echo hi")
        self.assertIsInstance(script.error, ValueError)
        self.assertEqual(script.command(), "")

    def test_shell_length_syntax_is_not_a_comment(self) -> None:
        script = Script("count", "bash", 'items=(a b c)\necho ${#items[@]} {{ suffix }}\n')
        self.assertIsNone(script.error)
        self.assertEqual(script.render({"suffix": "!"}), "items=(a b c)\necho ${#items[@]} !\n")

    def test_command_reads_script_from_stdin(self) -> None:
        self.assertEqual(Script("a", "bash", "").command(), "bash -s")
        self.assertEqual(Script("a", "sh", "").command(), "sh -s")
        self.assertTrue(Script("a", "powershell", "").command().endswith("-Command -"))
        self.assertEqual(Script("a", "bash", "").identity, "a (bash)")


if __name__ == "__main__":
    unittest.main()
