"""Turning parsed patches into commits and applying them to storage.

Applying a commit is not atomic: if a write fails half way, files already
written stay on disk.
"""

import os
from pathlib import Path
from typing import Callable

from agentexec.patch.parser import (
    identify_files_needed,
    normalize_line_endings,
    split_lines,
    text_to_patch,
)
from agentexec.patch.types import (
    PATCH_PREFIX,
    ActionType,
    Commit,
    DiffError,
    FileChange,
    Patch,
    PatchAction,
)

OpenFn = Callable[[str], str]
WriteFn = Callable[[str, str], None]
RemoveFn = Callable[[str], None]


def assemble_changes(orig: dict[str, str | None], updated_files: dict[str, str | None]) -> Commit:
    """
    Diff two file maps into a Commit.

    A None value means the file does not exist on that side. Unchanged files
    are left out.
    """
    commit = Commit()
    for path, new_content in updated_files.items():
        old_content = orig.get(path)
        if old_content == new_content:
            continue
        if old_content is not None and new_content is not None:
            commit.changes[path] = FileChange(
                type=ActionType.UPDATE,
                old_content=old_content,
                new_content=new_content,
            )
        elif new_content is not None:
            commit.changes[path] = FileChange(type=ActionType.ADD, new_content=new_content)
        elif old_content is not None:
            commit.changes[path] = FileChange(type=ActionType.DELETE, old_content=old_content)
    return commit


def _get_updated_file(text: str, action: PatchAction, path: str) -> str:
    """Rebuild a file from its original text and the action's chunks."""
    if action.type != ActionType.UPDATE:
        raise DiffError(f"{path}: expected an update action, got {action.type.value}")

    # Line endings belong to the target file, not to the patch
    line_ending = "\r\n" if "\r\n" in text else "\n"
    orig_lines = split_lines(text)

    dest_lines: list[str] = []
    orig_index = 0
    for chunk in action.chunks:
        if chunk.orig_index > len(orig_lines):
            raise DiffError(f"{path}: chunk.orig_index {chunk.orig_index} > len(lines) {len(orig_lines)}")
        if orig_index > chunk.orig_index:
            raise DiffError(f"{path}: current file index {orig_index} > chunk.orig_index {chunk.orig_index}")
        dest_lines.extend(orig_lines[orig_index:chunk.orig_index])
        dest_lines.extend(chunk.ins_lines)
        orig_index = chunk.orig_index + len(chunk.del_lines)

    dest_lines.extend(orig_lines[orig_index:])
    return line_ending.join(dest_lines)


def patch_to_commit(patch: Patch, orig: dict[str, str]) -> Commit:
    commit = Commit()
    for path, action in patch.actions.items():
        if action.type == ActionType.DELETE:
            commit.changes[path] = FileChange(type=ActionType.DELETE, old_content=orig.get(path))
        elif action.type == ActionType.ADD:
            commit.changes[path] = FileChange(type=ActionType.ADD, new_content=action.new_file or "")
        else:
            commit.changes[path] = FileChange(
                type=ActionType.UPDATE,
                old_content=orig[path],
                new_content=_get_updated_file(orig[path], action, path),
                move_path=action.move_path,
            )
    return commit


def load_files(paths: list[str], open_fn: OpenFn) -> dict[str, str]:
    orig: dict[str, str] = {}
    for path in paths:
        try:
            orig[path] = open_fn(path)
        except (OSError, KeyError, UnicodeDecodeError) as e:
            raise DiffError(f"File not found or unreadable: {path}. Original error: {e}") from e
    return orig


def apply_commit(commit: Commit, write_fn: WriteFn, remove_fn: RemoveFn) -> None:
    """Write a commit to storage. A moved file is written first, then its source removed."""
    for path, change in commit.changes.items():
        if change.type == ActionType.DELETE:
            remove_fn(path)
        elif change.type == ActionType.ADD:
            write_fn(path, change.new_content or "")
        elif change.move_path:
            write_fn(change.move_path, change.new_content or "")
            remove_fn(path)
        else:
            write_fn(path, change.new_content or "")


def process_patch(text: str, open_fn: OpenFn, write_fn: WriteFn, remove_fn: RemoveFn) -> str:
    """Parse and apply patch text in one pass over the needed files."""
    if not normalize_line_endings(text).lstrip().startswith(PATCH_PREFIX):
        raise DiffError(f"Patch must start with {PATCH_PREFIX}")
    orig = load_files(identify_files_needed(text), open_fn)
    patch, _fuzz = text_to_patch(text, orig)
    apply_commit(patch_to_commit(patch, orig), write_fn, remove_fn)
    return "Done!"


# ── Default filesystem helpers ──────────────────────────────────────


def open_file(path: str) -> str:
    # newline="" keeps \r\n intact so the original line endings can be detected
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_file(path: str, content: str) -> None:
    if os.path.isabs(path):
        raise DiffError("We do not support absolute paths.")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def remove_file(path: str) -> None:
    Path(path).unlink()
