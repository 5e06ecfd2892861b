"""Tests for the editorial status state machine."""

import itertools

import pytest

from dictionary_editor import (
    EditorialStatus,
    InvalidTransitionError,
    ValidationError,
    check_transition,
    require_transition,
)
from dictionary_editor.workflow import unarchive_target

S = EditorialStatus


class TestCheckTransition:

    def test_draft_to_published_refused(self):
        decision = check_transition(S.DRAFT, S.PUBLISHED)
        assert decision.allowed is False
        assert "REVIEW" in decision.reason

    def test_archived_to_published_refused(self):
        decision = check_transition(S.ARCHIVED, S.PUBLISHED)
        assert decision.allowed is False
        assert "unarchive" in decision.reason

    def test_every_other_pair_allowed(self):
        forbidden = {(S.DRAFT, S.PUBLISHED), (S.ARCHIVED, S.PUBLISHED)}
        for current, target in itertools.product(S, S):
            if (current, target) in forbidden:
                continue
            assert check_transition(current, target).allowed, (current, target)

    def test_same_state_is_allowed(self):
        for status in S:
            assert check_transition(status, status).allowed


class TestRequireTransition:

    def test_raises_with_label(self):
        with pytest.raises(InvalidTransitionError, match="lemma"):
            require_transition(S.DRAFT, S.PUBLISHED, label="lemma")

    def test_passes_silently(self):
        require_transition(S.REVIEW, S.PUBLISHED)


class TestParseStatus:

    def test_case_insensitive(self):
        assert S.parse(" review ", "status") is S.REVIEW

    def test_member_passes_through(self):
        assert S.parse(S.ARCHIVED, "status") is S.ARCHIVED

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        with pytest.raises(ValidationError, match="must be provided"):
            S.parse(value, "status")

    def test_unknown(self):
        with pytest.raises(ValidationError, match="expected one of"):
            S.parse("LIVE", "status")


class TestUnarchiveTarget:

    def test_default_is_review(self):
        assert unarchive_target() is S.REVIEW

    def test_explicit_target(self):
        assert unarchive_target("draft") is S.DRAFT

    def test_archived_target_rejected(self):
        with pytest.raises(ValidationError):
            unarchive_target(S.ARCHIVED)
