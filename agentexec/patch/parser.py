"""Parser for the patch text format.

    *** Begin Patch
    *** Update File: path/to/file.py
    *** Move to: path/to/renamed.py
    @@ def some_function():
     context line
    -removed line
    +added line
    *** End Of File
    *** Add File: path/to/new.txt
    +new file content
    *** Delete File: path/to/obsolete.txt
    *** End Patch

Only "*** Begin Patch" / "*** End Patch" are mandatory; everything between
them is a sequence of file sections.
"""

import re

from agentexec.patch.context import find_context
from agentexec.patch.types import (
    ADD_FILE_PREFIX,
    DELETE_FILE_PREFIX,
    END_OF_FILE_MARKER,
    HUNK_ADD_LINE_PREFIX,
    MOVE_FILE_TO_PREFIX,
    PATCH_PREFIX,
    PATCH_SUFFIX,
    UPDATE_FILE_PREFIX,
    ActionType,
    Chunk,
    DiffError,
    Patch,
    PatchAction,
)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

_SECTION_PREFIXES = (UPDATE_FILE_PREFIX, DELETE_FILE_PREFIX, ADD_FILE_PREFIX)


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> list[str]:
    """Split file content on any line-ending style."""
    return _LINE_BREAK.split(text)


def _is_hunk_separator(line: str) -> bool:
    return line == "@@" or line.startswith("@@ ")


def _ends_hunk(line: str) -> bool:
    return (
        _is_hunk_separator(line)
        or line == PATCH_SUFFIX
        or any(line.startswith(p.strip()) for p in _SECTION_PREFIXES)
    )


def peek_next_section(lines: list[str], start: int) -> tuple[list[str], list[Chunk], int, bool]:
    """
    Read one hunk body starting at `start`.

    Returns (old_lines, chunks, next_index, eof) where `old_lines` is the
    context plus deleted lines the hunk expects to find in the original file,
    and each chunk's `orig_index` is relative to `old_lines`.
    """
    index = start
    old: list[str] = []
    del_lines: list[str] = []
    ins_lines: list[str] = []
    chunks: list[Chunk] = []
    mode = "keep"
    eof = False

    while index < len(lines):
        s = lines[index]
        if _ends_hunk(s):
            break
        if s == END_OF_FILE_MARKER:
            eof = True
            index += 1
            break

        last_mode = mode
        if s.startswith(HUNK_ADD_LINE_PREFIX):
            mode = "add"
        elif s.startswith("-"):
            mode = "delete"
        elif s.startswith(" "):
            mode = "keep"
        else:
            # Tolerate context lines whose leading space was dropped
            mode = "keep"
            s = " " + s
        line = s[1:]

        if mode == "keep" and last_mode != mode:
            if del_lines or ins_lines:
                chunks.append(Chunk(len(old) - len(del_lines), del_lines, ins_lines))
            del_lines = []
            ins_lines = []

        if mode == "delete":
            del_lines.append(line)
            old.append(line)
        elif mode == "add":
            ins_lines.append(line)
        else:
            old.append(line)
        index += 1

    if del_lines or ins_lines:
        chunks.append(Chunk(len(old) - len(del_lines), del_lines, ins_lines))

    return old, chunks, index, eof


class Parser:
    """Turns normalized patch lines into a Patch, checked against current files."""

    def __init__(self, current_files: dict[str, str], lines: list[str]):
        self.current_files = current_files
        self.lines = lines
        self.index = 0
        self.patch = Patch()
        self.fuzz = 0

    def _is_done(self, prefixes: tuple[str, ...] = ()) -> bool:
        if self.index >= len(self.lines):
            return True
        line = self.lines[self.index]
        return any(line.startswith(p.strip()) for p in prefixes)

    def _read_str(self, prefix: str) -> str:
        """Consume the current line if it starts with `prefix`; return the rest."""
        if self.index >= len(self.lines):
            raise DiffError(f"Index: {self.index} >= {len(self.lines)}")
        line = self.lines[self.index]
        if line.startswith(prefix):
            self.index += 1
            return line[len(prefix):]
        return ""

    def parse(self) -> None:
        while not self._is_done((PATCH_SUFFIX,)):
            path = self._read_str(UPDATE_FILE_PREFIX)
            if path:
                if path in self.patch.actions:
                    raise DiffError(f"Update File Error: Duplicate Path: {path}")
                move_to = self._read_str(MOVE_FILE_TO_PREFIX) if not self._is_done() else ""
                if path not in self.current_files:
                    raise DiffError(f"Update File Error: Missing File: {path}")
                action = self._parse_update_file(self.current_files[path])
                action.move_path = move_to or None
                self.patch.actions[path] = action
                continue

            path = self._read_str(DELETE_FILE_PREFIX)
            if path:
                if path in self.patch.actions:
                    raise DiffError(f"Delete File Error: Duplicate Path: {path}")
                if path not in self.current_files:
                    raise DiffError(f"Delete File Error: Missing File: {path}")
                self.patch.actions[path] = PatchAction(type=ActionType.DELETE)
                continue

            path = self._read_str(ADD_FILE_PREFIX)
            if path:
                if path in self.patch.actions:
                    raise DiffError(f"Add File Error: Duplicate Path: {path}")
                if path in self.current_files:
                    raise DiffError(f"Add File Error: File already exists: {path}")
                self.patch.actions[path] = self._parse_add_file()
                continue

            raise DiffError(f"Unknown Line: {self.lines[self.index]}")

        if self.index >= len(self.lines) or not self.lines[self.index].startswith(PATCH_SUFFIX):
            raise DiffError("Missing End Patch")
        self.index += 1

    def _seek_label(self, file_lines: list[str], label: str, cursor: int) -> int:
        """Move the cursor past the line named by an `@@ <label>` header."""
        if label not in file_lines[:cursor]:
            for i in range(cursor, len(file_lines)):
                if file_lines[i] == label:
                    return i + 1
        stripped = label.strip()
        if not any(s.strip() == stripped for s in file_lines[:cursor]):
            for i in range(cursor, len(file_lines)):
                if file_lines[i].strip() == stripped:
                    self.fuzz += 1
                    return i + 1
        return cursor

    def _parse_update_file(self, text: str) -> PatchAction:
        action = PatchAction(type=ActionType.UPDATE)
        file_lines = split_lines(text)
        cursor = 0

        while not self._is_done((PATCH_SUFFIX, *_SECTION_PREFIXES, END_OF_FILE_MARKER)):
            line = self.lines[self.index]
            separated = _is_hunk_separator(line)
            if separated:
                self.index += 1
            elif cursor != 0:
                raise DiffError(f"Invalid Line while parsing update file header:\n{line}")

            label = line[3:] if separated else ""
            if label.strip():
                cursor = self._seek_label(file_lines, label, cursor)

            context, chunks, end_index, eof = peek_next_section(self.lines, self.index)
            new_index, fuzz = find_context(file_lines, context, cursor, eof)
            if new_index == -1:
                context_text = "\n".join(context)
                if eof:
                    raise DiffError(f"Invalid EOF Context (file line {cursor}):\n{context_text}")
                raise DiffError(f"Invalid Context (file line {cursor}):\n{context_text}")

            self.fuzz += fuzz
            for chunk in chunks:
                chunk.orig_index += new_index
                action.chunks.append(chunk)
            cursor = new_index + len(context)
            self.index = end_index

        return action

    def _parse_add_file(self) -> PatchAction:
        lines: list[str] = []
        while not self._is_done((PATCH_SUFFIX, *_SECTION_PREFIXES)):
            s = self.lines[self.index]
            self.index += 1
            if not s.startswith(HUNK_ADD_LINE_PREFIX):
                raise DiffError(f"Invalid Add File Line: Expected '+' prefix. Got: {s}")
            lines.append(s[1:])
        return PatchAction(type=ActionType.ADD, new_file="\n".join(lines))


def text_to_patch(text: str, orig: dict[str, str]) -> tuple[Patch, int]:
    """
    Parse patch text against the original contents of the files it touches.

    Returns (patch, fuzz). Raises DiffError on malformed input or context
    that cannot be located.
    """
    lines = normalize_line_endings(text).strip().split("\n")

    if len(lines) < 2 or lines[0] != PATCH_PREFIX or lines[-1] != PATCH_SUFFIX:
        raise DiffError(
            f"Invalid patch text structure. Expected start: '{PATCH_PREFIX}', "
            f"end: '{PATCH_SUFFIX}'. Got start: '{lines[0]}', end: '{lines[-1]}'"
        )

    parser = Parser(orig, lines)
    parser.index = 1
    parser.parse()
    return parser.patch, parser.fuzz


def _paths_with_prefixes(text: str, prefixes: tuple[str, ...]) -> list[str]:
    found: dict[str, None] = {}
    for line in normalize_line_endings(text).split("\n"):
        for prefix in prefixes:
            if line.startswith(prefix):
                found[line[len(prefix):]] = None
    return list(found)


def identify_files_needed(text: str) -> list[str]:
    """Paths that must be read before parsing (updated or deleted files)."""
    return _paths_with_prefixes(text, (UPDATE_FILE_PREFIX, DELETE_FILE_PREFIX))


def identify_files_added(text: str) -> list[str]:
    """Paths the patch creates."""
    return _paths_with_prefixes(text, (ADD_FILE_PREFIX,))
