"""Tests for session.py - state machine, source book-keeping, diagnostics."""

import pytest

from conftest import make_source

from media_search.application.search.fan_out import SourceOutcome
from media_search.application.search.session import (
    AggregationSession,
    SessionState,
    SourceState,
)
from media_search.application.search.type_classifier import classify_batch
from media_search.domain.entities import PolicyDecision, PolicySnapshot, RawResultItem


@pytest.fixture
def session(vip_user):
    return AggregationSession(principal=vip_user, keyword="电影A")


class TestStateMachine:
    def test_happy_path(self, session):
        session.dispatch([make_source("a")])
        for state in (
            SessionState.AGGREGATING,
            SessionState.CLASSIFYING,
            SessionState.FILTERING,
            SessionState.AGGREGATING,
            SessionState.COMPLETE,
        ):
            session.advance(state)
        assert session.is_terminal

    def test_illegal_transition(self, session):
        with pytest.raises(RuntimeError, match="init -> complete"):
            session.advance(SessionState.COMPLETE)

    def test_no_transition_out_of_complete(self, session):
        session.dispatch([])
        session.advance(SessionState.AGGREGATING)
        session.advance(SessionState.COMPLETE)
        with pytest.raises(RuntimeError):
            session.advance(SessionState.AGGREGATING)

    def test_fail_from_anywhere(self, session):
        session.dispatch([make_source("a")])
        session.fail("policy unavailable")
        assert session.state is SessionState.FAILED
        assert session.error == "policy unavailable"
        assert session.is_terminal


class TestPolicy:
    def test_single_decision(self, session):
        snapshot = PolicySnapshot(blocked_terms=("测试",))
        session.set_policy(PolicyDecision(True, "vip"), snapshot)
        assert session.blocked_terms == ("测试",)
        with pytest.raises(RuntimeError):
            session.set_policy(PolicyDecision(False, "again"), snapshot)


class TestSources:
    def test_settle_counts(self, session):
        a, b = make_source("a"), make_source("b")
        session.dispatch([a, b])
        assert {p.state for p in session.sources.values()} == {SourceState.PENDING}

        session.settle(SourceOutcome(source=a, items=[RawResultItem(title="x")], elapsed_ms=12.0))
        session.settle(SourceOutcome(source=b, error="timeout"))

        assert session.completed_sources == 1
        assert session.failed_sources == 1
        assert session.sources["a"].raw_count == 1
        assert session.sources["b"].error == "timeout"

    def test_settle_unknown_source(self, session):
        session.dispatch([])
        progress = session.settle(SourceOutcome(source=make_source("late")))
        assert progress.state is SourceState.DONE
        assert "late" in session.sources


class TestDiagnostics:
    def test_shape(self, session):
        a = make_source("a")
        session.dispatch([a])
        session.set_policy(PolicyDecision(False, "no group tags"), PolicySnapshot())
        session.settle(SourceOutcome(source=a, items=[RawResultItem(title="x")]))
        session.results.extend(classify_batch([RawResultItem(title="电影A", type_name="电影")]))

        diag = session.diagnostics()
        assert diag["state"] == "dispatching"
        assert diag["sources"]["a"]["status"] == "done"
        assert diag["sources"]["a"]["raw"] == 1
        assert diag["filter"] == {"applies": False, "reason": "no group tags"}
        assert diag["types"] == {"movie": 1}
        assert diag["confidence"]["high"] == 1
        assert diag["elapsed_ms"] >= 0
        assert len(diag["session_id"]) == 12
