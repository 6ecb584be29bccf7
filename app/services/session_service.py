"""
Session Service - Award Assessment Platform
app/services/session_service.py

Participant-facing session operations: open, read, submit, resubmit,
advance through the jury stages and stage score reports. Status rules live
in app.services.session_lifecycle; this module loads the facts they need
and persists the outcome.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from app.config import settings
from app.core.actor import Actor
from app.core.exceptions import (
    EntityNotFoundException,
    PermissionDeniedException,
    SubmissionValidationException,
)
from app.models.enumerations import ReviewStage, Role, SessionStatus
from app.models.question import Question
from app.models.response import Response
from app.models.review import QuestionScoreResult, ReviewComment, StageScoreReport
from app.models.session import QuestionView, Session, SessionDetail, SubmitResult
from app.repositories.category_repository import CategoryRepository
from app.repositories.question_repository import QuestionRepository
from app.repositories.response_repository import ResponseRepository
from app.repositories.review_repository import ReviewRepository
from app.repositories.session_repository import SessionRepository
from app.scoring.question_scorer import QuestionScorer, ScoreResult, total_score
from app.scoring.utils import round_half_up
from app.services import session_lifecycle as lifecycle

logger = structlog.get_logger(__name__)


def is_exempt(question: Question, prefixes: Sequence[str]) -> bool:
    """Questions of the optional nomination section skip required checks."""
    title = (question.section_title or "").strip()
    return any(title.startswith(p) for p in prefixes)


def missing_required(
    questions: Iterable[Question],
    responses: Mapping[int, Response],
    exempt_prefixes: Sequence[str] = (),
) -> List[int]:
    """Ids of required, non-exempt questions without an answer."""
    missing = []
    for question in questions:
        if not question.is_required or is_exempt(question, exempt_prefixes):
            continue
        response = responses.get(question.id)
        if response is None or not response.has_answer():
            missing.append(question.id)
    return missing


def progress_percentage(questions: Sequence[Question], responses: Mapping[int, Response]) -> int:
    """answered ÷ total × 100, rounded half-up to an integer."""
    if not questions:
        return 0
    answered = sum(
        1 for q in questions
        if q.id in responses and responses[q.id].has_answer()
    )
    return int(round_half_up(Decimal(answered) * 100 / Decimal(len(questions)), 0))


def to_score_report(
    session_id: int,
    stage: ReviewStage,
    results: List[ScoreResult],
    reviewer_id: Optional[int] = None,
) -> StageScoreReport:
    return StageScoreReport(
        session_id=session_id,
        stage=stage,
        reviewer_id=reviewer_id,
        results=[
            QuestionScoreResult(
                question_id=r.question_id,
                category_id=r.category_id,
                raw_value=float(r.raw_value),
                weight=float(r.weight),
                score_result=float(r.score_result),
                classification=r.classification,
            )
            for r in results
        ],
        total_score=float(total_score(results)),
    )


class SessionService:
    """Load, derive and move assessment sessions."""

    def __init__(
        self,
        sessions: SessionRepository,
        questions: QuestionRepository,
        responses: ResponseRepository,
        reviews: ReviewRepository,
        categories: CategoryRepository,
    ):
        self.sessions = sessions
        self.questions = questions
        self.responses = responses
        self.reviews = reviews
        self.categories = categories

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, session_id: int) -> Session:
        session = self.sessions.get_by_id(session_id)
        if session is None:
            raise EntityNotFoundException("Session", session_id)
        return session

    def derived_status(self, session: Session, comments: Optional[List[ReviewComment]] = None) -> SessionStatus:
        if comments is None:
            comments = self.reviews.list_comments(session.id)
        return lifecycle.derive_status(session.status, comments)

    def question_in_group(self, session: Session, question_id: int) -> Question:
        question = self.questions.get_by_id(question_id)
        if question is None or question.group_id != session.group_id:
            raise EntityNotFoundException("Question", question_id)
        return question

    @staticmethod
    def ensure_owner(actor: Actor, session: Session) -> None:
        if actor.user_id != session.user_id:
            raise PermissionDeniedException(f"Session {session.id} belongs to another participant")

    @staticmethod
    def ensure_can_view(actor: Actor, session: Session) -> None:
        if actor.role == Role.PESERTA and actor.user_id != session.user_id:
            raise PermissionDeniedException(f"Session {session.id} belongs to another participant")

    def _response_map(self, session_id: int) -> Dict[int, Response]:
        return {r.question_id: r for r in self.responses.list_by_session(session_id)}

    # ------------------------------------------------------------------
    # Read / start
    # ------------------------------------------------------------------

    def get_detail(self, actor: Actor, session_id: int) -> SessionDetail:
        """
        Session with derived state, questions, answers and comments.

        Participants only see admin_validation comments; reviewers see all.
        """
        session = self.load(session_id)
        self.ensure_can_view(actor, session)
        return self._build_detail(actor, session)

    def start(self, actor: Actor, group_id: int) -> SessionDetail:
        """Open the caller's session for a group, creating a draft if needed."""
        if actor.role != Role.PESERTA:
            raise PermissionDeniedException(f"Role {actor.role.value} cannot start an assessment")
        session = self.sessions.get_by_user_group(actor.user_id, group_id)
        if session is None:
            if not self.questions.list_by_group(group_id):
                raise EntityNotFoundException("Group", group_id)
            session = self.sessions.create(actor.user_id, group_id)
            logger.info("session_started", session_id=session.id, user_id=actor.user_id, group_id=group_id)
        return self._build_detail(actor, session)

    def _build_detail(self, actor: Actor, session: Session) -> SessionDetail:
        questions = self.questions.list_by_group(session.group_id)
        responses = self._response_map(session.id)
        comments = self.reviews.list_comments(session.id)

        visible = comments
        if actor.role == Role.PESERTA:
            visible = [c for c in comments if c.stage == ReviewStage.ADMIN_VALIDATION]
        by_question: Dict[int, List[ReviewComment]] = {}
        for comment in visible:
            by_question.setdefault(comment.question_id, []).append(comment)

        return SessionDetail(
            id=session.id,
            user_id=session.user_id,
            group_id=session.group_id,
            state=lifecycle.session_state(session.status, comments),
            progress_percentage=progress_percentage(questions, responses),
            started_at=session.started_at,
            submitted_at=session.submitted_at,
            last_activity_at=session.last_activity_at,
            review_id=session.review_id,
            questions=[
                QuestionView(
                    question=q,
                    response=responses.get(q.id),
                    comments=by_question.get(q.id, []),
                )
                for q in questions
            ],
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _validate_required(self, session: Session) -> None:
        questions = self.questions.list_by_group(session.group_id)
        missing = missing_required(
            questions, self._response_map(session.id), settings.EXEMPT_SECTION_PREFIXES
        )
        if missing:
            logger.info("submission_incomplete", session_id=session.id, missing=missing)
            raise SubmissionValidationException(missing)

    def submit(self, actor: Actor, session_id: int) -> SubmitResult:
        """
        Submit a draft/in-progress session.

        Raises:
            StateViolationException: session is not submittable
            SubmissionValidationException: required answers missing
        """
        session = self.load(session_id)
        self.ensure_owner(actor, session)
        comments = self.reviews.list_comments(session_id)
        current = self.derived_status(session, comments)
        target = lifecycle.on_submit(session_id, current)
        self._validate_required(session)

        now = datetime.now(timezone.utc)
        updated = self.sessions.update_status(session_id, target, submitted_at=now)
        lifecycle.log_transition(session_id, current, target, actor.user_id)
        return SubmitResult(
            session_id=session_id,
            state=lifecycle.session_state(updated.status, comments),
            submitted_at=now,
        )

    def resubmit(self, actor: Actor, session_id: int) -> SubmitResult:
        """
        Resubmit a session that needs revision.

        Stores ``resubmitted`` with a new submitted_at, then resolves the open
        critical admin comments. A failure between the two leaves the session
        in needs_revision, so the call can simply be repeated.
        """
        session = self.load(session_id)
        self.ensure_owner(actor, session)
        current = self.derived_status(session)
        target = lifecycle.on_resubmit(session_id, current)
        self._validate_required(session)

        now = datetime.now(timezone.utc)
        self.sessions.update_status(session_id, target, submitted_at=now)
        resolved = self.reviews.resolve_open_critical(session_id)
        lifecycle.log_transition(session_id, current, target, actor.user_id)

        updated = self.load(session_id)
        return SubmitResult(
            session_id=session_id,
            state=lifecycle.session_state(updated.status, self.reviews.list_comments(session_id)),
            submitted_at=now,
            resolved_comment_ids=resolved,
        )

    def advance(self, actor: Actor, session_id: int, target: SessionStatus) -> SessionDetail:
        """Move a session one jury stage forward (admins only)."""
        actor.require_admin("advance a session")
        session = self.load(session_id)
        current = self.derived_status(session)
        lifecycle.on_advance(session_id, current, target)
        updated = self.sessions.update_status(session_id, target)
        lifecycle.log_transition(session_id, current, target, actor.user_id)
        return self._build_detail(actor, updated)

    def apply_status(self, actor: Actor, session: Session, current: SessionStatus, target: SessionStatus) -> Session:
        """Persist a new stored status and log the transition."""
        updated = self.sessions.update_status(session.id, target)
        lifecycle.log_transition(session.id, current, target, actor.user_id)
        return updated

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def scorer_for(self, questions: List[Question]) -> QuestionScorer:
        return QuestionScorer(self.categories.get_many([q.category_id for q in questions]))

    def stage_scores(
        self,
        actor: Actor,
        session_id: int,
        stage: ReviewStage,
        reviewer_id: Optional[int] = None,
        pending_marks: Optional[Mapping[int, float]] = None,
    ) -> StageScoreReport:
        """
        Per-question weighted scores and the stage total.

        admin_validation scores the participant's own answers; jury_scoring
        scores one juror's marks (the caller's unless ``reviewer_id`` is given),
        with ``pending_marks`` overriding stored marks that are not yet written.
        """
        session = self.load(session_id)
        actor.require_stage_reviewer(stage)
        questions = self.questions.list_by_group(session.group_id)
        scorer = self.scorer_for(questions)

        if stage == ReviewStage.ADMIN_VALIDATION:
            results = scorer.score_responses(questions, self._response_map(session_id))
            return to_score_report(session_id, stage, results)

        juror = reviewer_id if reviewer_id is not None else actor.user_id
        marks = {
            s.question_id: s.score
            for s in self.reviews.list_question_scores(session_id, reviewer_id=juror)
        }
        marks.update(pending_marks or {})
        results = scorer.score_jury_marks(questions, marks)
        return to_score_report(session_id, stage, results, reviewer_id=juror)
