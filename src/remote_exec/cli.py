"""Command-line interface for remote-exec."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .config import SUPPORTED_SHELLS, ConnectionDefaults, load_config
from .errors import RunnerError
from .runner import run
from .script import Script
from .utils.logging import get_logger

logger = logging.getLogger(__name__)

# process exit status used when the remote exit code is unknown
UNKNOWN_EXIT_STATUS = 255


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote-exec",
        description="Run a script template on a remote host via SSH.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser.add_argument("--host", help="Target host name or address")
    parser.add_argument("--port", type=int, default=None, help="SSH port (default: 22)")
    parser.add_argument("--user", help="SSH username")
    parser.add_argument("--password", default=None, help="SSH password")
    parser.add_argument(
        "--key-path",
        default=None,
        help="Path to an unencrypted SSH private key (default: ~/.ssh/id_rsa)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip host key verification (unsafe, for throwaway hosts only)",
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--script", type=str, help="File holding the script template")
    source.add_argument("--command", type=str, help="Inline script template")
    parser.add_argument(
        "--shell",
        choices=SUPPORTED_SHELLS,
        default=None,
        help="Interpreter that runs the script",
    )
    parser.add_argument(
        "--arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template parameter (repeatable)",
    )
    return parser


def parse_arguments(pairs: List[str]) -> Dict[str, str]:
    arguments: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"template parameter must look like KEY=VALUE, got {pair!r}")
        arguments[key] = value
    return arguments


def build_connection(args: argparse.Namespace) -> Dict[str, str]:
    """Merge CLI flags with environment defaults into a connection mapping."""
    defaults = ConnectionDefaults.from_env()
    key_path = args.key_path or defaults.key_path
    password = args.password if args.password is not None else defaults.password
    if key_path is None and not password:
        key_path = str(Path("~/.ssh/id_rsa").expanduser())
    return {
        "kind": "ssh",
        "host": args.host or defaults.host or "",
        "port": str(args.port or defaults.port or 22),
        "user": args.user or defaults.user or "",
        "password": password or "",
        "key_path": key_path or "",
        "insecure": str(args.insecure),
    }


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    get_logger(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = load_config(args.config)
        arguments = parse_arguments(args.arg)
        connection = build_connection(args)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    if not connection["host"] or not connection["user"]:
        parser.error("--host and --user are required (or set REMOTE_EXEC_SSH_HOST/REMOTE_EXEC_SSH_USER)")

    if args.script:
        try:
            body = Path(args.script).read_text(encoding="utf-8")
        except OSError as exc:
            parser.error(f"cannot read script {args.script}: {exc}")
        name = Path(args.script).stem
    else:
        body = args.command
        name = "inline"
    script = Script(name, args.shell or config.default_shell, body)

    try:
        return run(
            connection,
            script,
            arguments,
            stdout=sys.stdout.buffer,
            stderr=sys.stderr.buffer,
            config=config,
        )
    except RunnerError as exc:
        sys.stdout.flush()
        print(exc.describe(), file=sys.stderr)
        if exc.exit_code < 0:
            return UNKNOWN_EXIT_STATUS
        return exc.exit_code
