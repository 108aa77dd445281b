"""Translation of POSIX-style commands into Windows equivalents."""

import sys

from loguru import logger

# Unix commands and their Windows equivalents
COMMAND_MAP: dict[str, str] = {
    "ls": "dir",
    "grep": "findstr",
    "cat": "type",
    "rm": "del",
    "cp": "copy",
    "mv": "move",
    "touch": "echo.>",
    "mkdir": "md",
}

# Per-command option translations
OPTION_MAP: dict[str, dict[str, str]] = {
    "ls": {
        "-l": "/p",
        "-a": "/a",
        "-R": "/s",
    },
    "grep": {
        "-i": "/i",
        "-r": "/s",
    },
}

# cmd.exe builtins, which cannot be spawned without a shell
WINDOWS_SHELL_BUILTINS = frozenset([
    "dir", "type", "del", "copy", "move", "md", "rd", "cd", "cls",
])


def adapt_command_for_platform(
    command: list[str],
    platform: str | None = None,
) -> tuple[list[str], bool]:
    """
    Adapt a command for the current platform.

    On Windows, known Unix commands are translated to their native
    equivalents. Elsewhere the command is returned untouched.

    Returns (adapted_command, needs_shell).
    """
    platform = platform or sys.platform

    if platform != "win32" or not command:
        return command, False

    original = command[0]
    if original not in COMMAND_MAP:
        return command, False

    logger.info(f"Adapting command '{original}' for Windows platform")

    adapted = list(command)
    adapted[0] = COMMAND_MAP[original]
    needs_shell = False

    if original == "touch":
        # ">" is a redirection, so the filename has to live in the same token
        needs_shell = True
        if len(adapted) > 1:
            adapted = [f"{adapted[0]}{' '.join(adapted[1:])}"]
    elif adapted[0] in WINDOWS_SHELL_BUILTINS:
        needs_shell = True

    options = OPTION_MAP.get(original)
    if options:
        adapted = [adapted[0]] + [options.get(arg, arg) for arg in adapted[1:]]

    logger.info(f"Adapted command: {' '.join(adapted)}, needs_shell: {needs_shell}")
    return adapted, needs_shell
