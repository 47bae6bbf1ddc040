"""List a remote directory and print the result.

    python examples/run_ls.py --host 192.168.1.134 --user me --password secret /var/log
"""

from __future__ import annotations

import argparse
import io
import sys

from remote_exec import RunnerError, Script, SSHRunner

LS_SCRIPT = Script(
    "ls",
    "bash",
    """
set -e
ls -la "{{ path }}"
""",
)


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", required=True)
    parser.add_argument("--port", type=int, default=22)
    parser.add_argument("--user", required=True)
    parser.add_argument("--password")
    parser.add_argument("--key-path")
    parser.add_argument("path", nargs="?", default=".")
    args = parser.parse_args()

    connection = {
        "kind": "ssh",
        "host": args.host,
        "port": str(args.port),
        "user": args.user,
        "password": args.password or "",
        "key_path": args.key_path or "",
        "insecure": "true",
    }

    stdout, stderr = io.BytesIO(), io.BytesIO()
    try:
        with SSHRunner.open(connection, LS_SCRIPT, {"path": args.path}) as runner:
            runner.set_stdout_writer(stdout)
            runner.set_stderr_writer(stderr)
            runner.run()
    except RunnerError as exc:
        print(exc.describe(), file=sys.stderr)
        print(f"stderr:\n{stderr.getvalue().decode(errors='replace')}", file=sys.stderr)
        return 1

    print(f"exitcode: {runner.exit_code}")
    print(f"result:\n{stdout.getvalue().decode(errors='replace')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
