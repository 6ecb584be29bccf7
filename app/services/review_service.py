"""
Review Service - Award Assessment Platform
app/services/review_service.py

Stage-scoped reviewer comments, batch reviews and admin decisions.

Batch reviews never replace existing comments. The stored set is merged
with the incoming entries: an entry identical to a still open comment
(question, stage, text, criticality) is a replay and is not duplicated,
everything else is appended. A resolved comment never absorbs a new
entry, so an issue raised again after a resubmit is stored again.

The review row, the new comments, the jury question scores, the stage
total and the status chosen by the decision are written in one
transaction.
"""

from typing import Iterable, List, Optional, Set, Tuple

import structlog

from app.config import settings
from app.core.actor import Actor
from app.core.exceptions import (
    ConflictException,
    EntityNotFoundException,
    InvalidScoreException,
    StateViolationException,
)
from app.models.enumerations import ReviewDecision, ReviewStage, Role, SessionStatus
from app.models.review import (
    BatchReviewRequest,
    CommentCreate,
    QuestionScore,
    ReviewComment,
    ReviewResult,
)
from app.repositories.review_repository import ReviewRepository
from app.scoring.utils import within
from app.services import session_lifecycle as lifecycle
from app.services.session_service import SessionService

logger = structlog.get_logger(__name__)

CommentKey = Tuple[int, ReviewStage, str, bool]


def comment_key(question_id: int, stage: ReviewStage, text: str, is_critical: bool) -> CommentKey:
    return (question_id, stage, text.strip(), is_critical)


def merge_comments(
    existing: Iterable[ReviewComment],
    incoming: Iterable[CommentCreate],
) -> List[CommentCreate]:
    """
    Entries of ``incoming`` that must be appended.

    Entries identical to an unresolved stored comment, or to an earlier
    entry of the same batch, are dropped; the stored comments are never
    touched.
    """
    seen: Set[CommentKey] = {
        comment_key(c.question_id, c.stage, c.comment, c.is_critical)
        for c in existing
        if not c.is_resolved
    }
    new: List[CommentCreate] = []
    for entry in incoming:
        key = comment_key(entry.question_id, entry.stage, entry.comment, entry.is_critical)
        if key in seen:
            continue
        seen.add(key)
        new.append(entry)
    return new


def pending_comments(session_id: int, new: Iterable[CommentCreate]) -> List[ReviewComment]:
    """In-memory view of not yet stored comments, for status derivation."""
    return [
        ReviewComment(
            id=0,
            session_id=session_id,
            question_id=entry.question_id,
            comment=entry.comment,
            is_critical=entry.is_critical,
            stage=entry.stage,
        )
        for entry in new
    ]


class ReviewService:
    """Reviewer comments, batch reviews and decisions."""

    def __init__(self, session_service: SessionService, reviews: ReviewRepository):
        self.session_service = session_service
        self.reviews = reviews

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def list_comments(
        self,
        actor: Actor,
        session_id: int,
        stage: Optional[ReviewStage] = None,
    ) -> List[ReviewComment]:
        session = self.session_service.load(session_id)
        self.session_service.ensure_can_view(actor, session)
        if actor.role == Role.PESERTA:
            if stage not in (None, ReviewStage.ADMIN_VALIDATION):
                return []
            stage = ReviewStage.ADMIN_VALIDATION
        return self.reviews.list_comments(session_id, stage=stage)

    def add_comment(self, actor: Actor, session_id: int, entry: CommentCreate) -> ReviewComment:
        """
        Append one reviewer comment.

        Raises:
            PermissionDeniedException: role may not review this stage
            StateViolationException: stage not open for the session status
        """
        actor.require_stage_reviewer(entry.stage)
        session = self.session_service.load(session_id)
        self.session_service.question_in_group(session, entry.question_id)
        comments = self.reviews.list_comments(session_id)
        current = lifecycle.derive_status(session.status, comments)
        lifecycle.ensure_can_comment(session_id, current, entry.stage, is_critical=entry.is_critical)

        review = self.reviews.get_review(session_id, entry.stage)
        comment = self.reviews.insert_comment(
            session_id,
            review.id if review else None,
            entry,
            actor.name,
        )

        after = lifecycle.derive_status(session.status, comments + [comment])
        if after != current:
            lifecycle.log_transition(session_id, current, after, actor.user_id)
        logger.info(
            "comment_added",
            session_id=session_id,
            comment_id=comment.id,
            stage=entry.stage.value,
            is_critical=entry.is_critical,
        )
        return comment

    def resolve_comment(self, actor: Actor, comment_id: int) -> ReviewComment:
        """
        Resolve a comment. Resolving an already resolved comment is a no-op.

        Resolution does not write a session status: the derived status
        simply stops being needs_revision once no critical comment is open.
        Critical admin_validation comments are resolved by admins only; a
        participant clears them by resubmitting.
        """
        comment = self.reviews.get_comment(comment_id)
        if comment is None:
            raise EntityNotFoundException("ReviewComment", comment_id)
        session = self.session_service.load(comment.session_id)
        if comment.stage == ReviewStage.ADMIN_VALIDATION and comment.is_critical:
            actor.require_admin("resolve a critical validation comment; resubmit the session instead")
        elif not actor.is_admin:
            self.session_service.ensure_owner(actor, session)
        if comment.is_resolved:
            return comment

        comments = self.reviews.list_comments(session.id)
        current = lifecycle.derive_status(session.status, comments)
        if current in lifecycle.TERMINAL:
            raise StateViolationException(session.id, current.value, "resolve comments of")

        resolved = self.reviews.resolve_comment(comment_id)
        after = lifecycle.derive_status(
            session.status,
            [resolved if c.id == comment_id else c for c in comments],
        )
        if after != current:
            lifecycle.log_transition(session.id, current, after, actor.user_id)
        logger.info("comment_resolved", session_id=session.id, comment_id=comment_id)
        return resolved

    # ------------------------------------------------------------------
    # Batch review
    # ------------------------------------------------------------------

    def _validate_question_scores(self, request: BatchReviewRequest) -> None:
        for entry in request.jury_scores:
            if not within(entry.score, settings.QUESTION_SCORE_MIN, settings.QUESTION_SCORE_MAX):
                raise InvalidScoreException(
                    f"question {entry.question_id}",
                    entry.score,
                    settings.QUESTION_SCORE_MIN,
                    settings.QUESTION_SCORE_MAX,
                )

    def _check_decision(
        self,
        session_id: int,
        current: SessionStatus,
        merged: List[ReviewComment],
        stored: SessionStatus,
        decision: ReviewDecision,
    ) -> Optional[SessionStatus]:
        after_merge = lifecycle.derive_status(stored, merged)
        target = lifecycle.on_decision(session_id, after_merge, decision)
        if decision == ReviewDecision.REQUEST_REVISION and lifecycle.count_open_critical(merged) == 0:
            raise StateViolationException(
                session_id, current.value, "request revision with no open critical comment on"
            )
        return target

    def batch_review(self, actor: Actor, session_id: int, request: BatchReviewRequest) -> ReviewResult:
        """
        Merge comments, record jury question scores and apply a decision.

        Every rule is checked before anything is written and every write
        shares one transaction, so a rejected or failed batch leaves no trace.

        Raises:
            PermissionDeniedException: role may not review the stage/decide
            StateViolationException: stage closed or decision not allowed
            InvalidScoreException: question score outside the scale
            ConflictException: review exists and update_existing is false
        """
        stage = request.stage
        actor.require_stage_reviewer(stage)
        if request.decision is not None:
            actor.require_admin(f"{request.decision.value.replace('_', ' ')} a submission")

        session = self.session_service.load(session_id)
        existing = self.reviews.list_comments(session_id)
        current = lifecycle.derive_status(session.status, existing)

        entries = [
            CommentCreate(
                question_id=c.question_id,
                comment=c.comment,
                is_critical=c.is_critical,
                stage=c.stage or stage,
            )
            for c in request.question_comments
        ]
        for entry_stage in {stage} | {e.stage for e in entries}:
            actor.require_stage_reviewer(entry_stage)
            lifecycle.ensure_can_comment(session_id, current, entry_stage)
        for entry in entries:
            self.session_service.question_in_group(session, entry.question_id)
            if entry.is_critical:
                lifecycle.ensure_can_comment(session_id, current, entry.stage, is_critical=True)

        if request.jury_scores:
            if stage != ReviewStage.JURY_SCORING:
                raise StateViolationException(
                    session_id, current.value, "record question scores outside jury_scoring for"
                )
            self._validate_question_scores(request)
            for score in request.jury_scores:
                self.session_service.question_in_group(session, score.question_id)

        if request.decision is not None and stage != ReviewStage.ADMIN_VALIDATION:
            raise StateViolationException(
                session_id, current.value, f"{request.decision.value} during {stage.value} for"
            )

        if not request.update_existing and self.reviews.get_review(session_id, stage) is not None:
            raise ConflictException(f"Review for session {session_id} at {stage.value} already exists")

        new_comments = merge_comments(existing, entries)
        merged = existing + pending_comments(session_id, new_comments)

        target = None
        if request.decision is not None:
            target = self._check_decision(session_id, current, merged, session.status, request.decision)
        if target == session.status:
            target = None

        question_scores = [
            QuestionScore(
                session_id=session_id,
                question_id=s.question_id,
                reviewer_id=actor.user_id,
                score=s.score,
                comments=s.comments,
            )
            for s in request.jury_scores
        ]
        total = self._stage_total(actor, session_id, stage, question_scores)

        sessions = self.session_service.sessions
        stored = session.status
        with self.reviews.transaction() as cursor:
            review, comments = self.reviews.save_batch(
                session_id,
                stage,
                actor.user_id,
                actor.name,
                {
                    "decision": request.decision,
                    "overall_comments": request.overall_comments,
                    "deliberation_notes": request.deliberation_notes,
                    "internal_notes": request.internal_notes,
                    "validation_checklist": request.validation_checklist,
                },
                new_comments,
                question_scores,
                cursor=cursor,
            )
            if stage == ReviewStage.ADMIN_VALIDATION and session.review_id is None:
                sessions.set_review_id(session_id, review.id, cursor=cursor)
            if target is not None:
                stored = sessions.update_status(session_id, target, cursor=cursor).status
            self.reviews.set_total_score(review.id, total, cursor=cursor)

        after = lifecycle.derive_status(stored, comments)
        if after != current:
            lifecycle.log_transition(session_id, current, after, actor.user_id)

        existing_ids = {c.id for c in existing}
        added = [c.id for c in comments if c.id not in existing_ids]
        logger.info(
            "batch_review_applied",
            session_id=session_id,
            stage=stage.value,
            decision=request.decision.value if request.decision else None,
            existing_comments=len(existing),
            added_comments=len(added),
        )
        return ReviewResult(
            review_id=review.id,
            session_id=session_id,
            stage=stage,
            decision=request.decision,
            status=after.value,
            comments=comments,
            added_comment_ids=added,
            total_score=total,
        )

    def _stage_total(
        self,
        actor: Actor,
        session_id: int,
        stage: ReviewStage,
        pending: List[QuestionScore],
    ) -> float:
        """Stage total including the question scores about to be written."""
        marks = {s.question_id: s.score for s in pending}
        report = self.session_service.stage_scores(actor, session_id, stage, pending_marks=marks)
        return report.total_score
