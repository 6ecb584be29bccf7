"""
Session Lifecycle - Award Assessment Platform
app/services/session_lifecycle.py

State machine for an assessment session.

Stored statuses are facts written by explicit actions (submit, approve, ...).
``needs_revision`` is never written: it is derived from unresolved critical
admin_validation comments, and a stale persisted ``needs_revision`` is
corrected on read. Only the derived status leaves this module.

    draft → in_progress → submitted ─┬→ approved → jury_scoring
                                     │      → jury_deliberation
                 needs_revision ⇄ resubmitted  → final_decision → completed
                                     └→ rejected (absorbing)
"""

from typing import Dict, FrozenSet, Iterable, Optional, Tuple

import structlog

from app.core.exceptions import StateViolationException
from app.models.enumerations import ReviewDecision, ReviewStage, SessionStatus
from app.models.review import ReviewComment
from app.models.session import SessionState

logger = structlog.get_logger(__name__)

S = SessionStatus

EDITABLE: FrozenSet[SessionStatus] = frozenset({S.DRAFT, S.IN_PROGRESS, S.NEEDS_REVISION})
SUBMITTABLE: FrozenSet[SessionStatus] = frozenset({S.DRAFT, S.IN_PROGRESS})
TERMINAL: FrozenSet[SessionStatus] = frozenset({S.COMPLETED, S.REJECTED})
FEEDBACK_VISIBLE: FrozenSet[SessionStatus] = frozenset({S.NEEDS_REVISION, S.REJECTED, S.COMPLETED})
UNDER_ADMIN_REVIEW: FrozenSet[SessionStatus] = frozenset({S.SUBMITTED, S.RESUBMITTED, S.NEEDS_REVISION})

# Statuses whose derived value can become needs_revision
_REVISABLE_STORED: FrozenSet[SessionStatus] = frozenset({S.SUBMITTED, S.RESUBMITTED, S.NEEDS_REVISION})

# Derived statuses in which each comment stage may be written
COMMENT_WINDOWS: Dict[ReviewStage, FrozenSet[SessionStatus]] = {
    ReviewStage.ADMIN_VALIDATION: frozenset({S.SUBMITTED, S.RESUBMITTED, S.NEEDS_REVISION, S.APPROVED}),
    ReviewStage.JURY_SCORING: frozenset({S.JURY_SCORING, S.JURY_DELIBERATION, S.FINAL_DECISION}),
}

# Derived statuses in which jurors may record rubric scores
JURY_SCORING_WINDOW: FrozenSet[SessionStatus] = frozenset({S.JURY_SCORING, S.JURY_DELIBERATION})

# Jury stage progression (advance action)
JURY_PROGRESSION: Dict[SessionStatus, SessionStatus] = {
    S.JURY_SCORING: S.JURY_DELIBERATION,
    S.JURY_DELIBERATION: S.FINAL_DECISION,
    S.FINAL_DECISION: S.COMPLETED,
}

# Admin decision → (allowed derived statuses, stored target; None keeps stored status)
DECISION_TRANSITIONS: Dict[ReviewDecision, Tuple[FrozenSet[SessionStatus], Optional[SessionStatus]]] = {
    ReviewDecision.APPROVE: (frozenset({S.SUBMITTED, S.RESUBMITTED}), S.APPROVED),
    ReviewDecision.PASS_TO_JURY: (frozenset({S.SUBMITTED, S.RESUBMITTED, S.APPROVED}), S.JURY_SCORING),
    ReviewDecision.REQUEST_REVISION: (UNDER_ADMIN_REVIEW, None),
    ReviewDecision.REJECT: (UNDER_ADMIN_REVIEW, S.REJECTED),
}


def count_open_critical(comments: Iterable[ReviewComment]) -> int:
    """Number of unresolved critical admin_validation comments."""
    return sum(1 for c in comments if c.is_open_critical)


def derive_status(stored: SessionStatus, comments: Iterable[ReviewComment]) -> SessionStatus:
    """
    Authoritative status of a session.

    Args:
        stored: Persisted lifecycle status
        comments: All review comments of the session

    Returns:
        needs_revision while an open critical admin comment exists on a
        submitted/resubmitted session; otherwise the stored status, with a
        stale stored needs_revision read back as submitted.
    """
    if stored in _REVISABLE_STORED:
        if count_open_critical(comments) > 0:
            return S.NEEDS_REVISION
        if stored == S.NEEDS_REVISION:
            return S.SUBMITTED
    return stored


def describe(status: SessionStatus, open_critical: int = 0) -> SessionState:
    """Capability flags for a derived status."""
    return SessionState(
        status=status,
        can_edit=status in EDITABLE,
        can_submit=status in SUBMITTABLE,
        can_resubmit=status == S.NEEDS_REVISION,
        show_feedback=status in FEEDBACK_VISIBLE,
        show_progress=status in EDITABLE,
        is_terminal=status in TERMINAL,
        open_critical_comments=open_critical,
    )


def session_state(stored: SessionStatus, comments: Iterable[ReviewComment]) -> SessionState:
    comments = list(comments)
    return describe(derive_status(stored, comments), count_open_critical(comments))


def ensure_can_edit(session_id: int, status: SessionStatus) -> None:
    if status not in EDITABLE:
        raise StateViolationException(session_id, status.value, "edit responses of")


def ensure_can_comment(
    session_id: int,
    status: SessionStatus,
    stage: ReviewStage,
    is_critical: bool = False,
) -> None:
    """
    Validate a comment write against the derived status.

    Critical admin_validation comments are only accepted while the session
    is under admin review; after approval the session can no longer fall
    back to needs_revision.
    """
    if status in TERMINAL or status not in COMMENT_WINDOWS[stage]:
        raise StateViolationException(session_id, status.value, f"add {stage.value} comments to")
    if is_critical and stage == ReviewStage.ADMIN_VALIDATION and status not in UNDER_ADMIN_REVIEW:
        raise StateViolationException(session_id, status.value, "add critical admin_validation comments to")


def ensure_can_score(session_id: int, status: SessionStatus) -> None:
    if status not in JURY_SCORING_WINDOW:
        raise StateViolationException(session_id, status.value, "record jury scores for")


def on_answer(session_id: int, status: SessionStatus) -> Optional[SessionStatus]:
    """
    Validate a response write.

    Returns:
        in_progress when the write starts a draft session, else None.
    """
    ensure_can_edit(session_id, status)
    return S.IN_PROGRESS if status == S.DRAFT else None


def on_submit(session_id: int, status: SessionStatus) -> SessionStatus:
    if status not in SUBMITTABLE:
        raise StateViolationException(session_id, status.value, "submit")
    return S.SUBMITTED


def on_resubmit(session_id: int, status: SessionStatus) -> SessionStatus:
    if status != S.NEEDS_REVISION:
        raise StateViolationException(session_id, status.value, "resubmit")
    return S.RESUBMITTED


def on_decision(
    session_id: int,
    status: SessionStatus,
    decision: ReviewDecision,
) -> Optional[SessionStatus]:
    """
    Validate an admin decision against the derived status.

    Approve and pass_to_jury additionally require that no critical comment
    is open, which shows up here as a needs_revision derived status.

    Returns:
        New stored status, or None when the stored status does not change.
    """
    allowed, target = DECISION_TRANSITIONS[decision]
    if status not in allowed:
        raise StateViolationException(session_id, status.value, decision.value.replace("_", " "))
    return target


def on_advance(session_id: int, status: SessionStatus, target: SessionStatus) -> SessionStatus:
    expected = JURY_PROGRESSION.get(status)
    if expected is None or expected != target:
        raise StateViolationException(session_id, status.value, f"advance to {target.value}")
    return target


def log_transition(session_id: int, from_status: SessionStatus, to_status: SessionStatus, actor_id: int) -> None:
    logger.info(
        "session_transition",
        session_id=session_id,
        from_status=from_status.value,
        to_status=to_status.value,
        actor_id=actor_id,
    )
