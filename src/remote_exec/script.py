"""Script templates rendered into the stdin of a remote interpreter.

A ``Script`` pairs a template body with the shell that should execute it.
The body is a Jinja2 template; parameters come from the arguments passed to
``new_reader``. The remote command never contains the script itself: the
interpreter reads the rendered text from standard input.
"""

from __future__ import annotations

import dataclasses
import io
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

from jinja2 import Environment, StrictUndefined, Template, TemplateError

from .errors import ScriptRenderError

logger = logging.getLogger(__name__)

SHELL_COMMANDS = {
    "bash": "bash -s",
    "sh": "sh -s",
    "powershell": "powershell -NoProfile -NonInteractive -ExecutionPolicy Bypass -Command -",
    "pwsh": "pwsh -NoProfile -NonInteractive -Command -",
}

# "{#" collides with shell constructs such as ${#array[@]}
_ENVIRONMENT = Environment(
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    comment_start_string="{##",
    comment_end_string="##}",
    autoescape=False,
)


class Script:
    """A named script template bound to an interpreter.

    Construction never raises: a template syntax error or an unsupported
    shell is stored on ``error`` and reported when a runner is created.
    """

    def __init__(self, name: str, shell: str, body: str) -> None:
        self.name = name
        self.shell = shell
        self.body = body
        self.error: Optional[Exception] = None
        self._template: Optional[Template] = None

        if shell not in SHELL_COMMANDS:
            self.error = ValueError(
                f"unsupported shell {shell!r}, expected one of {', '.join(SHELL_COMMANDS)}"
            )
            return
        try:
            self._template = _ENVIRONMENT.from_string(body)
        except TemplateError as exc:
            logger.debug("Template for script %s failed to parse: %s", name, exc)
            self.error = exc

    def __repr__(self) -> str:
        return f"Script(name={self.name!r}, shell={self.shell!r})"

    @property
    def identity(self) -> str:
        return f"{self.name} ({self.shell})"

    def command(self) -> str:
        """Command line that starts the interpreter reading the script from stdin."""
        return SHELL_COMMANDS.get(self.shell, "")

    def render(self, arguments: Any = None) -> str:
        if self._template is None:
            raise ScriptRenderError(
                "script has no usable template",
                script=self,
                cause=self.error,
            )
        try:
            return self._template.render(_template_context(arguments))
        except (TemplateError, TypeError) as exc:
            raise ScriptRenderError("cannot render script", script=self, cause=exc) from exc

    def new_reader(self, arguments: Any = None) -> io.BytesIO:
        """Render against `arguments` and expose the text as a binary stream."""
        return io.BytesIO(self.render(arguments).encode("utf-8"))


def _template_context(arguments: Any) -> Dict[str, Any]:
    if arguments is None:
        return {}
    if isinstance(arguments, Mapping):
        return {str(key): value for key, value in arguments.items()}
    if dataclasses.is_dataclass(arguments) and not isinstance(arguments, type):
        return {f.name: getattr(arguments, f.name) for f in dataclasses.fields(arguments)}
    if hasattr(arguments, "__dict__"):
        return dict(vars(arguments))
    raise TypeError(
        f"script arguments must be a mapping or an object with attributes, got {type(arguments).__name__}"
    )
