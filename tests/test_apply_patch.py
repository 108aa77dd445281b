"""Tests for patch parsing, commit derivation and application."""

import pytest

from agentexec.patch import (
    ActionType,
    Commit,
    DiffError,
    FileChange,
    apply_commit,
    assemble_changes,
    identify_files_added,
    identify_files_needed,
    load_files,
    patch_to_commit,
    process_patch,
    text_to_patch,
)
from agentexec.patch.commit import write_file


class InMemoryFS:
    """Dict-backed file store recording writes and removals."""

    def __init__(self, files: dict[str, str] | None = None):
        self.files = dict(files or {})
        self.writes: dict[str, str] = {}
        self.removals: list[str] = []

    def open(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(f"File not found: {path}")
        return self.files[path]

    def write(self, path: str, content: str) -> None:
        self.files[path] = content
        self.writes[path] = content

    def remove(self, path: str) -> None:
        del self.files[path]
        self.removals.append(path)

    def apply(self, patch: str) -> str:
        return process_patch(patch, self.open, self.write, self.remove)


def crlf(text: str) -> str:
    return text.replace("\n", "\r\n")


# ── process_patch: file operations ──────────────────────────────────


class TestProcessPatch:
    def test_update_file(self):
        fs = InMemoryFS({"a.txt": "hello"})
        result = fs.apply(
            "*** Begin Patch\n*** Update File: a.txt\n@@\n-hello\n+hello world\n*** End Patch"
        )
        assert result == "Done!"
        assert fs.writes == {"a.txt": "hello world"}
        assert fs.removals == []

    def test_add_file(self):
        fs = InMemoryFS()
        fs.apply("*** Begin Patch\n*** Add File: b.txt\n+new content\n*** End Patch")
        assert fs.writes == {"b.txt": "new content"}

    def test_add_file_multiple_lines(self):
        fs = InMemoryFS()
        fs.apply("*** Begin Patch\n*** Add File: b.txt\n+one\n+\n+three\n*** End Patch")
        assert fs.writes == {"b.txt": "one\n\nthree"}

    def test_delete_file(self):
        fs = InMemoryFS({"c.txt": "to be removed"})
        fs.apply("*** Begin Patch\n*** Delete File: c.txt\n*** End Patch")
        assert fs.writes == {}
        assert fs.removals == ["c.txt"]

    def test_update_with_multiple_chunks(self):
        fs = InMemoryFS({"multi.txt": "line1\nline2\nline3\nline4"})
        fs.apply(
            "*** Begin Patch\n"
            "*** Update File: multi.txt\n"
            "@@\n"
            " line1\n"
            "-line2\n"
            "+line2 updated\n"
            " line3\n"
            "+inserted line\n"
            " line4\n"
            "*** End Patch"
        )
        assert fs.writes == {"multi.txt": "line1\nline2 updated\nline3\ninserted line\nline4"}

    def test_multiple_hunks_in_one_file(self):
        original = "\n".join(f"line{i}" for i in range(1, 11))
        fs = InMemoryFS({"f.txt": original})
        fs.apply(
            "*** Begin Patch\n"
            "*** Update File: f.txt\n"
            "@@\n"
            " line2\n"
            "-line3\n"
            "+LINE3\n"
            "@@\n"
            " line8\n"
            "-line9\n"
            "+LINE9\n"
            "*** End Patch"
        )
        lines = fs.files["f.txt"].split("\n")
        assert lines[2] == "LINE3"
        assert lines[8] == "LINE9"
        assert len(lines) == 10

    def test_move_file(self):
        fs = InMemoryFS({"old.txt": "old"})
        fs.apply(
            "*** Begin Patch\n*** Update File: old.txt\n*** Move to: new.txt\n@@\n-old\n+new\n*** End Patch"
        )
        assert fs.writes == {"new.txt": "new"}
        assert fs.removals == ["old.txt"]

    def test_combined_add_update_delete(self):
        fs = InMemoryFS({"upd.txt": "old value", "del.txt": "delete me"})
        fs.apply(
            "*** Begin Patch\n"
            "*** Add File: added.txt\n"
            "+added contents\n"
            "*** Update File: upd.txt\n"
            "@@\n"
            "-old value\n"
            "+new value\n"
            "*** Delete File: del.txt\n"
            "*** End Patch"
        )
        assert fs.writes == {"added.txt": "added contents", "upd.txt": "new value"}
        assert fs.removals == ["del.txt"]

    def test_trailing_newline_is_kept(self):
        fs = InMemoryFS({"t.txt": "Hello\nWorld\n"})
        fs.apply("*** Begin Patch\n*** Update File: t.txt\n@@\n Hello\n-World\n+Universe\n*** End Patch")
        assert fs.files["t.txt"] == "Hello\nUniverse\n"

    def test_readme_edit_with_indented_context(self):
        original = (
            "\n"
            "#### Fix an issue\n"
            "\n"
            "```sh\n"
            "codex\n"
            'codex -t "Fix this issue: $(pbpaste)"\n'
            "```\n"
        )
        patch = (
            "*** Begin Patch\n"
            "*** Update File: README.md\n"
            "@@\n"
            '  codex -t "Fix this issue: $(pbpaste)"\n'
            "  ```\n"
            "+\n"
            "+hello\n"
            "*** End Patch"
        )
        fs = InMemoryFS({"README.md": original})
        fs.apply(patch)
        assert fs.writes["README.md"] == original + "\nhello\n"

    def test_tolerates_omitted_space_for_context_line(self):
        fs = InMemoryFS({"foo.txt": "line1\nline2\nline3"})
        fs.apply("*** Begin Patch\n*** Update File: foo.txt\n@@\n line1\n-line2\n+some new line2\nline3\n*** End Patch")
        assert fs.files["foo.txt"] == "line1\nsome new line2\nline3"

    def test_first_hunk_may_omit_separator(self):
        fs = InMemoryFS({"a.txt": "a\nb"})
        fs.apply("*** Begin Patch\n*** Update File: a.txt\n a\n-b\n+c\n*** End Patch")
        assert fs.files["a.txt"] == "a\nc"

    def test_missing_update_file_raises(self):
        fs = InMemoryFS()
        with pytest.raises(DiffError):
            fs.apply("*** Begin Patch\n*** Update File: missing.txt\n@@\n+something\n*** End Patch")

    def test_must_start_with_begin_patch(self):
        fs = InMemoryFS({"a.txt": "x"})
        with pytest.raises(DiffError, match="must start with"):
            fs.apply("*** Update File: a.txt\n*** End Patch")

    def test_failed_parse_writes_nothing(self):
        fs = InMemoryFS({"a.txt": "one", "b.txt": "two"})
        with pytest.raises(DiffError):
            fs.apply(
                "*** Begin Patch\n"
                "*** Update File: a.txt\n@@\n-one\n+ONE\n"
                "*** Update File: b.txt\n@@\n-nope\n+TWO\n"
                "*** End Patch"
            )
        assert fs.writes == {}
        assert fs.files == {"a.txt": "one", "b.txt": "two"}


# ── Line endings and whitespace fuzz ────────────────────────────────


UPDATE_CONTEXT = (
    "*** Begin Patch\n"
    "*** Update File: a.txt\n"
    "@@\n"
    " line1\n"
    "-context\n"
    "+context updated\n"
    " line3\n"
    "*** End Patch"
)


class TestLineEndings:
    def test_crlf_patch_lf_file(self):
        fs = InMemoryFS({"a.txt": "line1\ncontext\nline3"})
        fs.apply(crlf(UPDATE_CONTEXT))
        assert fs.writes["a.txt"] == "line1\ncontext updated\nline3"

    def test_lf_patch_crlf_file(self):
        fs = InMemoryFS({"a.txt": "line1\r\ncontext\r\nline3"})
        fs.apply(UPDATE_CONTEXT)
        assert fs.writes["a.txt"] == "line1\r\ncontext updated\r\nline3"

    def test_crlf_patch_crlf_file(self):
        fs = InMemoryFS({"a.txt": "line1\r\ncontext\r\nline3"})
        fs.apply(crlf(UPDATE_CONTEXT))
        assert fs.writes["a.txt"] == "line1\r\ncontext updated\r\nline3"

    def test_lf_patch_lf_file(self):
        fs = InMemoryFS({"a.txt": "line1\ncontext\nline3"})
        fs.apply(UPDATE_CONTEXT)
        assert fs.writes["a.txt"] == "line1\ncontext updated\nline3"

    def test_mixed_file_endings_become_crlf(self):
        fs = InMemoryFS({"a.txt": "line1\r\ncontext\nline3"})
        fs.apply(UPDATE_CONTEXT)
        assert fs.writes["a.txt"] == "line1\r\ncontext updated\r\nline3"

    def test_trailing_whitespace_in_patch(self):
        fs = InMemoryFS({"a.txt": "line1\ncontext line\nline3"})
        fs.apply(
            "*** Begin Patch\n*** Update File: a.txt\n@@\n line1\n-context line  \n+context line updated\n line3\n*** End Patch"
        )
        assert fs.writes["a.txt"] == "line1\ncontext line updated\nline3"

    def test_surrounding_whitespace_crlf_file(self):
        fs = InMemoryFS({"a.txt": "line1\r\ncontext line\r\nline3"})
        fs.apply(crlf(
            "*** Begin Patch\n*** Update File: a.txt\n@@\n line1\n-  context line  \n+context line updated\n line3\n*** End Patch"
        ))
        assert fs.writes["a.txt"] == "line1\r\ncontext line updated\r\nline3"

    def test_different_indentation(self):
        fs = InMemoryFS({"a.txt": "line1\n  context\nline3"})
        fs.apply(
            "*** Begin Patch\n*** Update File: a.txt\n@@\n line1\n-    context\n+  context updated\n line3\n*** End Patch"
        )
        assert fs.writes["a.txt"] == "line1\n  context updated\nline3"

    def test_genuinely_different_context_fails(self):
        fs = InMemoryFS({"a.txt": "line1\nactual context\nline3"})
        with pytest.raises(DiffError, match="Invalid Context"):
            fs.apply(
                "*** Begin Patch\n*** Update File: a.txt\n@@\n line1\n-completely different context\n+new content\n line3\n*** End Patch"
            )


# ── End Of File anchoring ───────────────────────────────────────────


EOF_PATCH = (
    "*** Begin Patch\n"
    "*** Update File: a.txt\n"
    "@@\n"
    " line1\n"
    "-last context line\n"
    "+last context line updated\n"
    "*** End Of File\n"
    "*** End Patch"
)


class TestEndOfFile:
    def test_crlf_patch_lf_file(self):
        fs = InMemoryFS({"a.txt": "line1\nlast context line"})
        fs.apply(crlf(EOF_PATCH))
        assert fs.writes["a.txt"] == "line1\nlast context line updated"

    def test_lf_patch_crlf_file(self):
        fs = InMemoryFS({"a.txt": "line1\r\nlast context line"})
        fs.apply(EOF_PATCH)
        assert fs.writes["a.txt"] == "line1\r\nlast context line updated"

    def test_trailing_newline_in_file(self):
        fs = InMemoryFS({"a.txt": "line1\nlast context line\n"})
        fs.apply(EOF_PATCH)
        assert fs.writes["a.txt"] == "line1\nlast context line updated\n"

    def test_mid_file_match_is_rejected(self):
        fs = InMemoryFS({"a.txt": "line1\nlast context line\nmore\ntext"})
        with pytest.raises(DiffError, match="Invalid EOF Context"):
            fs.apply(EOF_PATCH)

    def test_append_at_end(self):
        fs = InMemoryFS({"a.txt": "a\nb"})
        fs.apply("*** Begin Patch\n*** Update File: a.txt\n@@\n b\n+c\n*** End Of File\n*** End Patch")
        assert fs.files["a.txt"] == "a\nb\nc"


# ── Parser structure errors ─────────────────────────────────────────


class TestTextToPatch:
    def test_parses_update_and_add(self):
        orig = {"a.txt": "old line"}
        patch, fuzz = text_to_patch(
            "*** Begin Patch\n*** Update File: a.txt\n@@\n-old line\n+new line\n*** Add File: b.txt\n+content new\n*** End Patch",
            orig,
        )
        assert fuzz == 0
        assert patch.actions["a.txt"].type == ActionType.UPDATE
        chunk = patch.actions["a.txt"].chunks[0]
        assert (chunk.orig_index, chunk.del_lines, chunk.ins_lines) == (0, ["old line"], ["new line"])
        assert patch.actions["b.txt"].new_file == "content new"

        commit = patch_to_commit(patch, orig).changes
        assert commit["a.txt"] == FileChange(type=ActionType.UPDATE, old_content="old line", new_content="new line")
        assert commit["b.txt"] == FileChange(type=ActionType.ADD, new_content="content new")

    def test_missing_sentinels(self):
        with pytest.raises(DiffError, match="Invalid patch text structure"):
            text_to_patch("*** Begin Patch\n*** Add File: x\n+y", {})

    def test_surrounding_whitespace_is_trimmed(self):
        patch, _ = text_to_patch("\n\n*** Begin Patch\n*** Add File: x\n+y\n*** End Patch\n\n", {})
        assert "x" in patch.actions

    def test_unknown_line(self):
        with pytest.raises(DiffError, match="Unknown Line"):
            text_to_patch("*** Begin Patch\nbogus\n*** End Patch", {})

    def test_duplicate_update_path(self):
        with pytest.raises(DiffError, match="Duplicate Path"):
            text_to_patch(
                "*** Begin Patch\n*** Update File: a\n@@\n-x\n+y\n*** Update File: a\n@@\n-y\n+z\n*** End Patch",
                {"a": "x"},
            )

    def test_delete_then_add_same_path_is_duplicate(self):
        with pytest.raises(DiffError, match="Add File Error: Duplicate Path"):
            text_to_patch("*** Begin Patch\n*** Delete File: a\n*** Add File: a\n+new\n*** End Patch", {"a": "old"})

    def test_delete_missing_file(self):
        with pytest.raises(DiffError, match="Delete File Error: Missing File"):
            text_to_patch("*** Begin Patch\n*** Delete File: gone\n*** End Patch", {})

    def test_add_existing_file(self):
        with pytest.raises(DiffError, match="File already exists"):
            text_to_patch("*** Begin Patch\n*** Add File: a\n+x\n*** End Patch", {"a": "x"})

    def test_add_file_line_without_plus(self):
        with pytest.raises(DiffError, match="Invalid Add File Line"):
            text_to_patch("*** Begin Patch\n*** Add File: a\nno plus\n*** End Patch", {})

    def test_second_hunk_needs_separator(self):
        # After the EOF marker the next line must open a new hunk or section
        with pytest.raises(DiffError):
            text_to_patch(
                "*** Begin Patch\n*** Update File: a\n@@\n-x\n+y\n*** End Of File\n-z\n*** End Patch",
                {"a": "x"},
            )

    def test_label_moves_search_cursor(self):
        orig = {"a.py": "def f():\n    return 1\n\ndef g():\n    return 1\n"}
        patch, _ = text_to_patch(
            "*** Begin Patch\n*** Update File: a.py\n@@ def g():\n-    return 1\n+    return 2\n*** End Patch",
            orig,
        )
        new = patch_to_commit(patch, orig).changes["a.py"].new_content
        assert new == "def f():\n    return 1\n\ndef g():\n    return 2\n"

    def test_trimmed_context_raises_fuzz(self):
        _, fuzz = text_to_patch(
            "*** Begin Patch\n*** Update File: a\n@@\n-  x\n+y\n*** End Patch",
            {"a": "x"},
        )
        assert fuzz == 100


# ── Helper queries ──────────────────────────────────────────────────


class TestIdentifyFiles:
    PATCH = (
        "*** Begin Patch\n"
        "*** Update File: a.txt\n"
        "*** Delete File: b.txt\n"
        "*** Add File: c.txt\n"
        "*** End Patch"
    )

    def test_files_needed(self):
        assert sorted(identify_files_needed(self.PATCH)) == ["a.txt", "b.txt"]

    def test_files_added(self):
        assert identify_files_added(self.PATCH) == ["c.txt"]

    def test_crlf_patch(self):
        assert identify_files_added(crlf(self.PATCH)) == ["c.txt"]


# ── Commits ─────────────────────────────────────────────────────────


class TestCommits:
    def test_assemble_changes(self):
        orig = {"a.txt": "old", "b.txt": "keep", "c.txt": "remove"}
        updated = {"a.txt": "new", "b.txt": "keep", "c.txt": None, "d.txt": "created"}

        changes = assemble_changes(orig, updated).changes

        assert changes["a.txt"] == FileChange(type=ActionType.UPDATE, old_content="old", new_content="new")
        assert changes["c.txt"] == FileChange(type=ActionType.DELETE, old_content="remove")
        assert changes["d.txt"] == FileChange(type=ActionType.ADD, new_content="created")
        assert "b.txt" not in changes

    def test_load_files_missing(self):
        fs = InMemoryFS({"exists.txt": "hi"})
        with pytest.raises(DiffError, match="missing.txt"):
            load_files(["exists.txt", "missing.txt"], fs.open)

    def test_apply_commit_move(self):
        commit = Commit(changes={
            "old.txt": FileChange(
                type=ActionType.UPDATE,
                old_content="old",
                new_content="new",
                move_path="new.txt",
            ),
        })
        fs = InMemoryFS()
        apply_commit(commit, fs.write, fs.removals.append)
        assert fs.writes == {"new.txt": "new"}
        assert fs.removals == ["old.txt"]

    def test_write_file_rejects_absolute_paths(self, tmp_path):
        with pytest.raises(DiffError, match="absolute"):
            write_file(str(tmp_path / "x.txt"), "x")
