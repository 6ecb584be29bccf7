"""
Response Service - Award Assessment Platform
app/services/response_service.py

Auto-save and section-save of participant answers.

Writes are idempotent per (session, question, auto_save_version): a write
whose version the store has already reached is a replay and is ignored, so
the persistence call can be retried safely on connection loss.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings
from app.core.actor import Actor
from app.core.exceptions import DatabaseConnectionException
from app.models.enumerations import SessionStatus
from app.models.question import Question
from app.models.response import AnswerRequest, BatchAnswerRequest, Response, parse_response_value
from app.models.session import Session
from app.repositories.response_repository import ResponseRepository
from app.services import session_lifecycle as lifecycle
from app.services.session_service import SessionService

logger = structlog.get_logger(__name__)

_autosave_retry = retry(
    stop=stop_after_attempt(settings.AUTOSAVE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.1, max=settings.AUTOSAVE_RETRY_MAX_WAIT),
    retry=retry_if_exception_type(DatabaseConnectionException),
    reraise=True,
)


def build_response(
    session_id: int,
    question: Question,
    request: AnswerRequest,
    existing: Optional[Response],
    now: Optional[datetime] = None,
) -> Optional[Response]:
    """
    Merge an answer request into the stored response.

    A versioned request stores the client's ``auto_save_version`` and is a
    replay once the stored version has reached it, so the same write sent
    twice is applied once. Unversioned writes take the next version after
    the stored one.

    Returns:
        The response to persist, or None when the request replays a
        version that is already stored.
    """
    if (
        existing is not None
        and request.auto_save_version is not None
        and existing.auto_save_version >= request.auto_save_version
    ):
        return None

    stored_version = existing.auto_save_version if existing else 0
    version = request.auto_save_version if request.auto_save_version is not None else stored_version + 1

    now = now or datetime.now(timezone.utc)
    value = None if request.is_skipped else parse_response_value(request.value, question)
    answered = value is not None and not value.is_empty()
    finalizing = request.is_complete or not request.is_draft

    first_answered_at = existing.first_answered_at if existing else None
    if first_answered_at is None and answered:
        first_answered_at = now

    return Response(
        session_id=session_id,
        question_id=question.id,
        value=value,
        is_draft=request.is_draft,
        is_complete=request.is_complete,
        is_skipped=request.is_skipped,
        auto_save_version=version,
        time_spent_seconds=(existing.time_spent_seconds if existing else 0) + request.time_spent,
        first_answered_at=first_answered_at,
        last_modified_at=now,
        finalized_at=now if finalizing else (existing.finalized_at if existing else None),
    )


class ResponseService:
    """Validate and persist answer writes under the session state rules."""

    def __init__(self, session_service: SessionService, responses: ResponseRepository):
        self.session_service = session_service
        self.responses = responses

    @_autosave_retry
    def _persist_one(self, response: Response) -> bool:
        return self.responses.upsert(response)

    @_autosave_retry
    def _persist_many(self, responses: List[Response]) -> int:
        return self.responses.upsert_many(responses)

    def _open_for_writing(self, actor: Actor, session_id: int) -> Tuple[Session, SessionStatus, Optional[SessionStatus]]:
        session = self.session_service.load(session_id)
        self.session_service.ensure_owner(actor, session)
        current = self.session_service.derived_status(session)
        return session, current, lifecycle.on_answer(session_id, current)

    def _after_write(self, actor: Actor, session: Session, current: SessionStatus, target: Optional[SessionStatus]) -> None:
        if target is not None:
            self.session_service.apply_status(actor, session, current, target)
        else:
            self.session_service.sessions.touch(session.id)

    def write_answer(self, actor: Actor, session_id: int, request: AnswerRequest) -> Response:
        """
        Auto-save one answer.

        Raises:
            StateViolationException: session not editable; nothing is written
            SubmissionValidationException: value does not fit the question
        """
        session, current, target = self._open_for_writing(actor, session_id)
        question = self.session_service.question_in_group(session, request.question_id)
        existing = self.responses.get(session_id, question.id)

        response = build_response(session_id, question, request, existing)
        if response is None:
            logger.info(
                "autosave_replay_ignored",
                session_id=session_id,
                question_id=question.id,
                version=request.auto_save_version,
            )
            return existing

        self._persist_one(response)
        self._after_write(actor, session, current, target)
        logger.debug(
            "response_saved",
            session_id=session_id,
            question_id=question.id,
            version=response.auto_save_version,
        )
        return response

    def batch_answer(self, actor: Actor, session_id: int, request: BatchAnswerRequest) -> List[Response]:
        """
        Save a whole section. Every answer is validated before anything is
        written; replays inside the batch are skipped.

        Returns:
            Stored responses in request order
        """
        session, current, target = self._open_for_writing(actor, session_id)
        stored = {r.question_id: r for r in self.responses.list_by_session(session_id)}

        now = datetime.now(timezone.utc)
        results: List[Response] = []
        to_write: List[Response] = []
        for answer in request.answers:
            question = self.session_service.question_in_group(session, answer.question_id)
            existing = stored.get(question.id)
            response = build_response(session_id, question, answer, existing, now=now)
            if response is None:
                results.append(existing)
                continue
            stored[question.id] = response
            to_write.append(response)
            results.append(response)

        if to_write:
            # Later entries for the same question supersede earlier ones
            latest = {r.question_id: r for r in to_write}
            self._persist_many(list(latest.values()))
            self._after_write(actor, session, current, target)

        logger.info(
            "section_saved",
            session_id=session_id,
            answers=len(request.answers),
            written=len(to_write),
        )
        return results
