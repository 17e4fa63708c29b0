"""Argument and environment composition.

Turns a program path, an argument list and an environment policy into what
the platform launch primitive expects: an argv list on POSIX, a single
escaped command line on Windows, and an environment mapping.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence

from supervised_process.errors import InvalidArgumentError

_WINDOWS_SPECIAL = " \t\n\v\""


def escape_posix_arg(arg: str) -> str:
    """Wrap ``arg`` in single quotes, backslash-escaping ``'`` and ``\\``."""
    escaped = ["'"]
    for ch in arg:
        if ch in ("\\", "'"):
            escaped.append("\\")
        escaped.append(ch)
    escaped.append("'")
    return "".join(escaped)


def escape_windows_arg(arg: str) -> str:
    """Quote ``arg`` for a Windows command line (CommandLineToArgvW rules).

    Arguments without whitespace or double quotes are returned unchanged.
    Backslash runs are doubled when they precede a quote or the closing
    quote, and embedded quotes are backslash-escaped.
    """
    if not arg:
        return '""'
    if not any(ch in _WINDOWS_SPECIAL for ch in arg):
        return arg

    out = ['"']
    backslashes = 0
    for ch in arg:
        if ch == "\\":
            backslashes += 1
            continue
        if ch == '"':
            out.append("\\" * (backslashes * 2 + 1))
        else:
            out.append("\\" * backslashes)
        out.append(ch)
        backslashes = 0
    out.append("\\" * (backslashes * 2))
    out.append('"')
    return "".join(out)


def escape_shell_arg(arg: str, windows: bool | None = None) -> str:
    """Escape a single argument for the current (or given) platform."""
    if windows is None:
        windows = os.name == "nt"
    return escape_windows_arg(arg) if windows else escape_posix_arg(arg)


def validate_command(program: str, arguments: Sequence[str]) -> None:
    if not isinstance(program, str) or not program:
        raise InvalidArgumentError("No program to execute given.")
    if "\0" in program:
        raise InvalidArgumentError("Program path contains a null character.")
    for index, arg in enumerate(arguments):
        if not isinstance(arg, str):
            msg = f"Argument {index} must be a string, got {type(arg).__name__}"
            raise InvalidArgumentError(msg)
        if "\0" in arg:
            msg = f"Argument {index} contains a null character."
            raise InvalidArgumentError(msg)


def validate_environment(pairs: Iterable[tuple[str, str]]) -> None:
    for key, value in pairs:
        if not isinstance(key, str) or not isinstance(value, str):
            msg = f"Environment entries must be strings: {key!r}={value!r}"
            raise InvalidArgumentError(msg)
        if not key:
            raise InvalidArgumentError("Environment key must not be empty.")
        if "=" in key or "\0" in key:
            msg = f"Environment key contains invalid characters: {key!r}"
            raise InvalidArgumentError(msg)
        if "\0" in value:
            msg = f"Environment value for {key!r} contains a null character."
            raise InvalidArgumentError(msg)


def compose_command(
    program: str,
    arguments: Sequence[str],
    windows: bool | None = None,
    no_escaping: bool = False,
) -> list[str] | str:
    """Build the argv vector (POSIX) or the command line string (Windows).

    On Windows the program itself is always quoted; ``no_escaping`` only
    passes the arguments through verbatim.
    """
    validate_command(program, arguments)
    if windows is None:
        windows = os.name == "nt"
    if not windows:
        return [program, *arguments]

    parts = [escape_windows_arg(program)]
    parts.extend(arg if no_escaping else escape_windows_arg(arg) for arg in arguments)
    return " ".join(parts)


def compose_environment(
    pairs: Iterable[tuple[str, str]],
    inherit: bool = True,
    base: Mapping[str, str] | None = None,
    windows: bool | None = None,
) -> dict[str, str]:
    """Build the child environment.

    With ``inherit`` the current environment (or ``base``) is copied and the
    pairs are overlaid, later pairs winning. Without it only the pairs are
    used. Keys compare case-insensitively on Windows.
    """
    pairs = list(pairs)
    validate_environment(pairs)
    if windows is None:
        windows = os.name == "nt"

    env: dict[str, str] = {}
    if inherit:
        env.update(os.environ if base is None else base)

    if windows:
        index = {key.upper(): key for key in env}
        for key, value in pairs:
            existing = index.get(key.upper())
            if existing is not None and existing != key:
                del env[existing]
            env[key] = value
            index[key.upper()] = key
    else:
        for key, value in pairs:
            env[key] = value
    return env
