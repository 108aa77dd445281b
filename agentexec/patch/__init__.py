"""Parser and applier for the agent patch format."""

from agentexec.patch.types import (
    ActionType,
    Chunk,
    Commit,
    DiffError,
    FileChange,
    Patch,
    PatchAction,
)
from agentexec.patch.context import find_context, find_context_core
from agentexec.patch.parser import (
    identify_files_added,
    identify_files_needed,
    text_to_patch,
)
from agentexec.patch.commit import (
    apply_commit,
    assemble_changes,
    load_files,
    patch_to_commit,
    process_patch,
)

__all__ = [
    "ActionType",
    "Chunk",
    "Commit",
    "DiffError",
    "FileChange",
    "Patch",
    "PatchAction",
    "find_context",
    "find_context_core",
    "identify_files_added",
    "identify_files_needed",
    "text_to_patch",
    "apply_commit",
    "assemble_changes",
    "load_files",
    "patch_to_commit",
    "process_patch",
]
