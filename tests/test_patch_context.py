"""Tests for hunk context search."""

from agentexec.patch.context import EOF_FALLBACK_FUZZ, find_context, find_context_core


class TestFindContextCore:
    def test_exact(self):
        assert find_context_core(["a", "b", "c"], ["b", "c"], 0) == (1, 0)

    def test_trailing_whitespace(self):
        assert find_context_core(["a", "b  ", "c"], ["b", "c"], 0) == (1, 1)

    def test_surrounding_whitespace(self):
        assert find_context_core(["a", "  b", "c"], ["b", "c"], 0) == (1, 100)

    def test_no_match(self):
        assert find_context_core(["a", "b"], ["x"], 0) == (-1, 0)

    def test_empty_context_matches_at_start(self):
        assert find_context_core(["a", "b"], [], 1) == (1, 0)

    def test_respects_start(self):
        assert find_context_core(["x", "a", "x"], ["x"], 1) == (2, 0)

    def test_exact_match_preferred_over_earlier_loose_match(self):
        lines = ["  target", "other", "target"]
        assert find_context_core(lines, ["target"], 0) == (2, 0)

    def test_rstrip_preferred_over_earlier_strip_match(self):
        lines = ["  target", "target   "]
        assert find_context_core(lines, ["target"], 0) == (1, 1)

    def test_context_longer_than_file(self):
        assert find_context_core(["a"], ["a", "b"], 0) == (-1, 0)


class TestFindContextEof:
    def test_matches_at_end(self):
        assert find_context(["a", "b", "c"], ["b", "c"], 0, True) == (1, 0)

    def test_prefers_end_over_earlier_match(self):
        assert find_context(["c", "x", "c"], ["c"], 0, True) == (2, 0)

    def test_mid_file_match_fails(self):
        assert find_context(["a", "b", "c"], ["a", "b"], 0, True) == (-1, 0)

    def test_trailing_blank_lines_cost_fallback_fuzz(self):
        assert find_context(["a", "b", ""], ["a", "b"], 0, True) == (0, EOF_FALLBACK_FUZZ)

    def test_not_eof_ignores_position(self):
        assert find_context(["a", "b", "c"], ["a", "b"], 0, False) == (0, 0)

    def test_empty_context_anchors_after_last_line(self):
        assert find_context(["a", "b"], [], 0, True) == (2, 0)
