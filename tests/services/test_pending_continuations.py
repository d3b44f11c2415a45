"""Tests for pending continuation tracking."""

import pytest

from src.services.pending_continuations import (
    PendingContinuations,
    contains_continuation_keyword,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("continue", True),
        ("CONTINUE", True),
        ("Yes, please continue.", True),
        ("discontinue", True),
        ("continued", True),
        ("go on", False),
        ("", False),
        (None, False),
    ],
)
def test_contains_continuation_keyword(text, expected):
    assert contains_continuation_keyword(text) is expected


class TestPendingContinuations:
    def test_add_and_contains(self):
        pending = PendingContinuations()

        pending.add("chat-1")

        assert "chat-1" in pending
        assert "chat-2" not in pending
        assert len(pending) == 1

    def test_add_is_idempotent(self):
        pending = PendingContinuations()
        pending.add("chat-1")
        pending.add("chat-1")

        assert len(pending) == 1

    def test_discard_reports_membership(self):
        pending = PendingContinuations()
        pending.add("chat-1")

        assert pending.discard("chat-1") is True
        assert pending.discard("chat-1") is False
        assert "chat-1" not in pending

    def test_snapshot_is_a_copy(self):
        pending = PendingContinuations()
        pending.add("chat-1")

        snapshot = pending.snapshot()
        pending.discard("chat-1")

        assert snapshot == frozenset({"chat-1"})

    def test_instances_are_independent(self):
        first, second = PendingContinuations(), PendingContinuations()

        first.add("chat-1")

        assert "chat-1" not in second
