"""Command line interface: run one program under supervision.

    python -m supervised_process.cli --timeout 500 /bin/sh -c "echo hi"
"""

from __future__ import annotations

import argparse
import logging
import sys

from supervised_process.errors import InvalidArgumentError, LaunchFailedError, ProcessTimeoutError
from supervised_process.process_spec import ProcessSpec
from supervised_process.runner import ExecResult, run

EXIT_TIMEOUT = 124
EXIT_LAUNCH_FAILED = 127


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supervised-process",
        description="Run a program with non-blocking stream capture and a timeout.",
    )
    parser.add_argument("program", nargs="?", help="program to execute")
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help="arguments for the program")
    parser.add_argument("--timeout", type=int, default=0, metavar="MS", help="timeout in milliseconds")
    parser.add_argument("--stdin", default=None, metavar="TEXT", help="text passed to the program's stdin")
    parser.add_argument("--merge-stderr", action="store_true", help="merge stderr into stdout")
    parser.add_argument("--discard-stdout", action="store_true")
    parser.add_argument("--discard-stderr", action="store_true")
    parser.add_argument("--no-path-search", action="store_true", help="do not search PATH for the program")
    parser.add_argument("--no-env", action="store_true", help="do not inherit the current environment")
    parser.add_argument(
        "--env",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="set an environment variable for the program (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def _parse_env(entries: list[str]) -> list[tuple[str, str]]:
    pairs = []
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep:
            msg = f"--env expects KEY=VALUE, got {entry!r}"
            raise InvalidArgumentError(msg)
        pairs.append((key, value))
    return pairs


def _write(stream: object, data: bytes) -> None:
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        buffer.write(data)
        buffer.flush()
    else:
        stream.write(data.decode("utf-8", errors="replace"))  # type: ignore[attr-defined]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.program is None:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        spec = ProcessSpec(
            args.program,
            args.arguments,
            environment=_parse_env(args.env),
            stdin=args.stdin or b"",
            timeout_ms=args.timeout,
            discard_stdout=args.discard_stdout,
            discard_stderr=args.discard_stderr,
            merge_stderr_to_stdout=args.merge_stderr,
            skip_path_search=args.no_path_search,
            no_inherited_environment=args.no_env,
        )
        result = run(spec)
    except InvalidArgumentError as e:
        parser.error(str(e))
    except LaunchFailedError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_LAUNCH_FAILED
    except ProcessTimeoutError as e:
        if e.result is not None:
            _write(sys.stdout, e.result.stdout)
            _write(sys.stderr, e.result.stderr)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_TIMEOUT

    if isinstance(result, ExecResult):
        _write(sys.stdout, result.stdout)
        _write(sys.stderr, result.stderr)
        return result.exit_code
    return int(result) if result is not None else 1


if __name__ == "__main__":
    sys.exit(main())
