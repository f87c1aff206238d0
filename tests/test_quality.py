"""Tests for the red-flag candidate filter."""

import pytest

from maker.pipeline.quality import MAX_CANDIDATE_CHARS, is_red_flag


class TestIsRedFlag:
    """Tests for is_red_flag."""

    def test_empty_and_none_flagged(self):
        """Empty, whitespace-only and missing text are unusable."""
        assert is_red_flag(None)
        assert is_red_flag("")
        assert is_red_flag("   \n ")

    def test_length_boundary(self):
        """2001 characters is flagged, 2000 and 50 are not."""
        assert is_red_flag("a" * 2001)
        assert not is_red_flag("a" * MAX_CANDIDATE_CHARS)
        assert not is_red_flag("b" * 50)

    def test_custom_ceiling(self):
        """The ceiling can be lowered per call."""
        assert is_red_flag("x" * 11, max_chars=10)
        assert not is_red_flag("x" * 10, max_chars=10)

    @pytest.mark.parametrize(
        "text",
        [
            "I cannot help with that.",
            "i'm sorry, but that is outside my scope",
            "As an AI, I have no opinions.",
            "Unfortunately I DON'T HAVE ACCESS to live data.",
            "I’m sorry, that is not possible.",
        ],
    )
    def test_refusals_flagged(self, text):
        """Refusal phrases are matched case-insensitively, curly quotes included."""
        assert is_red_flag(text)

    def test_normal_answer_passes(self):
        """A short direct answer is accepted."""
        assert not is_red_flag("Day 1: Alfama walking tour, then dinner in Bairro Alto.")

    def test_deterministic(self):
        """Repeated calls on the same input agree."""
        for text in ["ok answer", "I cannot", "z" * 2001, ""]:
            assert is_red_flag(text) == is_red_flag(text)
