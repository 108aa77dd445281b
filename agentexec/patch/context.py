"""Locating hunk context inside original file lines."""

from typing import Callable

# Fuzz added when an EOF-anchored hunk only matches before trailing blank lines
EOF_FALLBACK_FUZZ = 10_000

# (normalizer, fuzz) pairs, tried from strictest to loosest
_PASSES: list[tuple[Callable[[str], str], int]] = [
    (lambda s: s, 0),
    (str.rstrip, 1),
    (str.strip, 100),
]


def find_context_core(lines: list[str], context: list[str], start: int) -> tuple[int, int]:
    """
    Find `context` in `lines` at or after `start`.

    Each pass normalizes both sides more loosely than the last, so an exact
    match anywhere always wins over a whitespace-insensitive one.

    Returns (index, fuzz), or (-1, 0) if nothing matches.
    """
    if not context:
        return start, 0

    last = len(lines) - len(context)
    for normalize, fuzz in _PASSES:
        wanted = [normalize(s) for s in context]
        for i in range(start, last + 1):
            if [normalize(s) for s in lines[i:i + len(context)]] == wanted:
                return i, fuzz
    return -1, 0


def find_context(lines: list[str], context: list[str], start: int, eof: bool) -> tuple[int, int]:
    """
    Find hunk context, honouring the End Of File anchor.

    An EOF-anchored hunk must match at the very end of the file. The only
    slack allowed is trailing blank lines (a file ending in a newline splits
    into a final empty line), which costs EOF_FALLBACK_FUZZ.
    """
    if not eof:
        return find_context_core(lines, context, start)

    if not context:
        return len(lines), 0

    index, fuzz = find_context_core(lines, context, max(0, len(lines) - len(context)))
    if index != -1 and index + len(context) == len(lines):
        return index, fuzz

    index, fuzz = find_context_core(lines, context, start)
    while index != -1:
        tail = lines[index + len(context):]
        if all(not s.strip() for s in tail):
            return index, fuzz + EOF_FALLBACK_FUZZ
        index, fuzz = find_context_core(lines, context, index + 1)
    return -1, 0
