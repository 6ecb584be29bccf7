"""
Session Lifecycle Tests - Award Assessment Platform
tests/test_session_lifecycle.py

Derived status, capability flags and transition guards.
"""
import pytest

from app.core.exceptions import StateViolationException
from app.models.enumerations import ReviewDecision, ReviewStage, SessionStatus as S
from app.models.review import ReviewComment
from app.services import session_lifecycle as lifecycle


def _comment(cid, critical=True, resolved=False, stage=ReviewStage.ADMIN_VALIDATION):
    return ReviewComment(
        id=cid, session_id=1, question_id=101, comment="Lengkapi data",
        is_critical=critical, is_resolved=resolved, stage=stage,
    )


class TestDeriveStatus:
    """needs_revision is derived, never stored."""

    def test_open_critical_admin_comment(self):
        assert lifecycle.derive_status(S.SUBMITTED, [_comment(1)]) == S.NEEDS_REVISION
        assert lifecycle.derive_status(S.RESUBMITTED, [_comment(1)]) == S.NEEDS_REVISION

    def test_resolving_last_critical_flips_back(self):
        comments = [_comment(1, resolved=True), _comment(2, critical=False)]
        assert lifecycle.derive_status(S.SUBMITTED, comments) == S.SUBMITTED

    def test_stale_stored_needs_revision_reads_as_submitted(self):
        assert lifecycle.derive_status(S.NEEDS_REVISION, []) == S.SUBMITTED

    def test_jury_comments_never_force_revision(self):
        comments = [_comment(1, stage=ReviewStage.JURY_SCORING)]
        assert lifecycle.derive_status(S.SUBMITTED, comments) == S.SUBMITTED

    @pytest.mark.parametrize("stored", [S.DRAFT, S.IN_PROGRESS, S.JURY_SCORING, S.COMPLETED, S.REJECTED])
    def test_other_statuses_unaffected(self, stored):
        assert lifecycle.derive_status(stored, [_comment(1)]) == stored


class TestDescribe:
    """Capability flags."""

    def test_needs_revision_flags(self):
        state = lifecycle.session_state(S.SUBMITTED, [_comment(1), _comment(2)])
        assert state.status == S.NEEDS_REVISION
        assert state.can_edit and state.can_resubmit and state.show_feedback
        assert not state.can_submit
        assert state.open_critical_comments == 2

    def test_submitted_is_read_only(self):
        state = lifecycle.describe(S.SUBMITTED)
        assert not state.can_edit
        assert not state.can_submit
        assert not state.show_progress

    @pytest.mark.parametrize("status", [S.COMPLETED, S.REJECTED])
    def test_terminal(self, status):
        state = lifecycle.describe(status)
        assert state.is_terminal
        assert state.show_feedback
        assert not state.can_edit


class TestTransitions:
    """Guards reject invalid transitions with StateViolationException."""

    def test_first_answer_starts_progress(self):
        assert lifecycle.on_answer(1, S.DRAFT) == S.IN_PROGRESS
        assert lifecycle.on_answer(1, S.IN_PROGRESS) is None
        assert lifecycle.on_answer(1, S.NEEDS_REVISION) is None

    @pytest.mark.parametrize("status", [S.SUBMITTED, S.APPROVED, S.JURY_SCORING, S.COMPLETED, S.REJECTED])
    def test_answer_outside_editable(self, status):
        with pytest.raises(StateViolationException):
            lifecycle.on_answer(1, status)

    def test_submit(self):
        assert lifecycle.on_submit(1, S.DRAFT) == S.SUBMITTED
        with pytest.raises(StateViolationException):
            lifecycle.on_submit(1, S.NEEDS_REVISION)

    def test_resubmit_only_from_needs_revision(self):
        assert lifecycle.on_resubmit(1, S.NEEDS_REVISION) == S.RESUBMITTED
        with pytest.raises(StateViolationException):
            lifecycle.on_resubmit(1, S.SUBMITTED)

    def test_decisions(self):
        assert lifecycle.on_decision(1, S.SUBMITTED, ReviewDecision.APPROVE) == S.APPROVED
        assert lifecycle.on_decision(1, S.RESUBMITTED, ReviewDecision.APPROVE) == S.APPROVED
        assert lifecycle.on_decision(1, S.APPROVED, ReviewDecision.PASS_TO_JURY) == S.JURY_SCORING
        assert lifecycle.on_decision(1, S.SUBMITTED, ReviewDecision.REQUEST_REVISION) is None
        assert lifecycle.on_decision(1, S.NEEDS_REVISION, ReviewDecision.REJECT) == S.REJECTED

    def test_approve_blocked_by_open_critical(self):
        with pytest.raises(StateViolationException):
            lifecycle.on_decision(1, S.NEEDS_REVISION, ReviewDecision.APPROVE)

    def test_rejected_is_absorbing(self):
        for decision in ReviewDecision:
            with pytest.raises(StateViolationException):
                lifecycle.on_decision(1, S.REJECTED, decision)

    def test_advance_one_stage_at_a_time(self):
        assert lifecycle.on_advance(1, S.JURY_SCORING, S.JURY_DELIBERATION) == S.JURY_DELIBERATION
        assert lifecycle.on_advance(1, S.FINAL_DECISION, S.COMPLETED) == S.COMPLETED
        with pytest.raises(StateViolationException):
            lifecycle.on_advance(1, S.JURY_SCORING, S.COMPLETED)
        with pytest.raises(StateViolationException):
            lifecycle.on_advance(1, S.APPROVED, S.JURY_DELIBERATION)


class TestWindows:
    """Stage comment windows and the jury scoring window."""

    def test_admin_window(self):
        lifecycle.ensure_can_comment(1, S.APPROVED, ReviewStage.ADMIN_VALIDATION)
        with pytest.raises(StateViolationException):
            lifecycle.ensure_can_comment(1, S.JURY_SCORING, ReviewStage.ADMIN_VALIDATION)

    @pytest.mark.parametrize("status", [S.SUBMITTED, S.RESUBMITTED, S.NEEDS_REVISION])
    def test_critical_admin_comment_under_review(self, status):
        lifecycle.ensure_can_comment(1, status, ReviewStage.ADMIN_VALIDATION, is_critical=True)

    def test_no_critical_admin_comment_after_approval(self):
        with pytest.raises(StateViolationException):
            lifecycle.ensure_can_comment(1, S.APPROVED, ReviewStage.ADMIN_VALIDATION, is_critical=True)

    def test_jury_window(self):
        lifecycle.ensure_can_comment(1, S.FINAL_DECISION, ReviewStage.JURY_SCORING)
        with pytest.raises(StateViolationException):
            lifecycle.ensure_can_comment(1, S.SUBMITTED, ReviewStage.JURY_SCORING)

    def test_no_comments_on_terminal(self):
        for stage in ReviewStage:
            with pytest.raises(StateViolationException):
                lifecycle.ensure_can_comment(1, S.COMPLETED, stage)

    def test_scoring_window(self):
        lifecycle.ensure_can_score(1, S.JURY_DELIBERATION)
        with pytest.raises(StateViolationException):
            lifecycle.ensure_can_score(1, S.FINAL_DECISION)
