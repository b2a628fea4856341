"""Tests for name resolution."""

import pytest

from gus_notes.errors import AmbiguousNameError, NameNotFoundError, ResolutionError
from gus_notes.omnifocus import resolve_project, resolve_tag
from gus_notes.resolve import resolve_name

CANDIDATES = ["Alpha", "Beta", "Alpha Beta", "Gamma"]


class TestResolveName:
    """Tests for resolve_name."""

    def test_exact_match_case_insensitive(self):
        assert resolve_name("alpha", CANDIDATES, "project") == "Alpha"

    def test_exact_match_preserves_case(self):
        assert resolve_name("GAMMA", CANDIDATES, "tag") == "Gamma"

    def test_exact_beats_substring(self):
        """Test 'Alpha' is not ambiguous with 'Alpha Beta'."""
        assert resolve_name("Alpha", CANDIDATES, "project") == "Alpha"

    def test_single_substring_match(self):
        assert resolve_name("Gam", CANDIDATES, "project") == "Gamma"

    def test_ambiguous(self):
        """Test the error lists only the matches."""
        with pytest.raises(AmbiguousNameError) as exc_info:
            resolve_name("eta", CANDIDATES, "tag")

        message = str(exc_info.value)
        assert 'Ambiguous tag "eta"' in message
        assert "Beta" in message
        assert "Alpha Beta" in message
        assert "Gamma" not in message
        assert exc_info.value.candidates == ["Beta", "Alpha Beta"]
        assert exc_info.value.query == "eta"

    def test_not_found(self):
        """Test the error lists every candidate."""
        with pytest.raises(NameNotFoundError) as exc_info:
            resolve_name("xyz", CANDIDATES, "tag")

        message = str(exc_info.value)
        assert 'No tag matching "xyz"' in message
        for name in CANDIDATES:
            assert name in message
        assert exc_info.value.candidates == CANDIDATES

    def test_empty_candidates(self):
        with pytest.raises(NameNotFoundError, match='No project matching "anything"'):
            resolve_name("anything", [], "project")

    def test_errors_share_base(self):
        with pytest.raises(ResolutionError):
            resolve_name("x", [], "project")


class TestEntityResolvers:
    """Tests for the project and tag wrappers."""

    def test_resolve_project_label(self):
        with pytest.raises(NameNotFoundError, match="No project matching"):
            resolve_project("x", [])

    def test_resolve_tag(self):
        assert resolve_tag("work", ["@Work", "@Home"]) == "@Work"
