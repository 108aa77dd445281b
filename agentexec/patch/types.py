"""Structures for parsed patches and the file changes they produce."""

from dataclasses import dataclass, field
from enum import Enum

# Patch text markers
PATCH_PREFIX = "*** Begin Patch"
PATCH_SUFFIX = "*** End Patch"
ADD_FILE_PREFIX = "*** Add File: "
DELETE_FILE_PREFIX = "*** Delete File: "
UPDATE_FILE_PREFIX = "*** Update File: "
MOVE_FILE_TO_PREFIX = "*** Move to: "
END_OF_FILE_MARKER = "*** End Of File"
HUNK_ADD_LINE_PREFIX = "+"


class DiffError(Exception):
    """Malformed patch or context that cannot be located."""


class ActionType(str, Enum):
    ADD = "add"
    DELETE = "delete"
    UPDATE = "update"


@dataclass
class Chunk:
    """
    A contiguous run of deleted/inserted lines.

    `orig_index` is the 0-based line in the original file where the
    deletions begin.
    """
    orig_index: int
    del_lines: list[str] = field(default_factory=list)
    ins_lines: list[str] = field(default_factory=list)


@dataclass
class PatchAction:
    type: ActionType
    new_file: str | None = None
    chunks: list[Chunk] = field(default_factory=list)
    move_path: str | None = None


@dataclass
class Patch:
    actions: dict[str, PatchAction] = field(default_factory=dict)


@dataclass
class FileChange:
    type: ActionType
    old_content: str | None = None
    new_content: str | None = None
    move_path: str | None = None


@dataclass
class Commit:
    """Side-effect-free description of file changes; see apply_commit."""
    changes: dict[str, FileChange] = field(default_factory=dict)
