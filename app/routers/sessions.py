"""
Assessment Session Router - Award Assessment Platform
app/routers/sessions.py

Participant sessions, answers, submission and reviewer comments.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.actor import Actor, get_actor
from app.core.dependencies import get_response_service, get_review_service, get_session_service
from app.core.error_handlers import error_responses
from app.models.enumerations import ReviewStage
from app.models.response import AnswerRequest, BatchAnswerRequest, Response
from app.models.review import (
    BatchReviewRequest,
    CommentCreate,
    ReviewComment,
    ReviewResult,
    StageScoreReport,
)
from app.models.session import AdvanceRequest, SessionDetail, StartSessionRequest, SubmitResult
from app.services.response_service import ResponseService
from app.services.review_service import ReviewService
from app.services.session_service import SessionService

router = APIRouter(prefix="/api/v1/assessments", tags=["Assessments"])


#  Sessions

@router.post(
    "/session",
    response_model=SessionDetail,
    responses=error_responses(400, 403, 404, 422, 503),
    summary="Start or fetch the caller's session for a group",
)
def start_session(
    payload: StartSessionRequest,
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> SessionDetail:
    return sessions.start(actor, payload.group_id)


@router.get(
    "/session/{session_id}",
    response_model=SessionDetail,
    responses=error_responses(403, 404, 422, 503),
    summary="Session with derived status, questions, answers and comments",
)
def get_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> SessionDetail:
    return sessions.get_detail(actor, session_id)


@router.post(
    "/session/{session_id}/answer",
    response_model=Response,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Auto-save one answer",
)
def save_answer(
    session_id: int,
    payload: AnswerRequest,
    actor: Actor = Depends(get_actor),
    responses: ResponseService = Depends(get_response_service),
) -> Response:
    return responses.write_answer(actor, session_id, payload)


@router.post(
    "/session/{session_id}/batch-answer",
    response_model=List[Response],
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Save a whole section of answers",
)
def save_section(
    session_id: int,
    payload: BatchAnswerRequest,
    actor: Actor = Depends(get_actor),
    responses: ResponseService = Depends(get_response_service),
) -> List[Response]:
    return responses.batch_answer(actor, session_id, payload)


@router.post(
    "/session/{session_id}/submit",
    response_model=SubmitResult,
    responses=error_responses(403, 404, 409, 422, 503),
    summary="Submit a session for admin validation",
)
def submit_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> SubmitResult:
    return sessions.submit(actor, session_id)


@router.post(
    "/session/{session_id}/resubmit",
    response_model=SubmitResult,
    responses=error_responses(403, 404, 409, 422, 503),
    summary="Resubmit a session after revision",
)
def resubmit_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> SubmitResult:
    return sessions.resubmit(actor, session_id)


@router.post(
    "/session/{session_id}/advance",
    response_model=SessionDetail,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Move a session to the next jury stage",
)
def advance_session(
    session_id: int,
    payload: AdvanceRequest,
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> SessionDetail:
    return sessions.advance(actor, session_id, payload.target_status)


@router.get(
    "/session/{session_id}/scores",
    response_model=StageScoreReport,
    responses=error_responses(403, 404, 422, 503),
    summary="Weighted per-question scores and the stage total",
)
def get_stage_scores(
    session_id: int,
    stage: ReviewStage = Query(default=ReviewStage.ADMIN_VALIDATION),
    reviewer_id: Optional[int] = Query(default=None, description="Juror whose marks to score"),
    actor: Actor = Depends(get_actor),
    sessions: SessionService = Depends(get_session_service),
) -> StageScoreReport:
    return sessions.stage_scores(actor, session_id, stage, reviewer_id=reviewer_id)


#  Reviews and comments

@router.post(
    "/session/{session_id}/review/batch",
    response_model=ReviewResult,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Merge reviewer comments, record jury scores and apply a decision",
)
def batch_review(
    session_id: int,
    payload: BatchReviewRequest,
    actor: Actor = Depends(get_actor),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewResult:
    return reviews.batch_review(actor, session_id, payload)


@router.get(
    "/session/{session_id}/comments",
    response_model=List[ReviewComment],
    responses=error_responses(403, 404, 422, 503),
    summary="List reviewer comments",
)
def list_comments(
    session_id: int,
    stage: Optional[ReviewStage] = Query(default=None),
    actor: Actor = Depends(get_actor),
    reviews: ReviewService = Depends(get_review_service),
) -> List[ReviewComment]:
    return reviews.list_comments(actor, session_id, stage=stage)


@router.post(
    "/session/{session_id}/comments",
    response_model=ReviewComment,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Add one reviewer comment",
)
def add_comment(
    session_id: int,
    payload: CommentCreate,
    actor: Actor = Depends(get_actor),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewComment:
    return reviews.add_comment(actor, session_id, payload)


@router.post(
    "/comments/{comment_id}/resolve",
    response_model=ReviewComment,
    responses=error_responses(403, 404, 409, 503),
    summary="Mark a comment as resolved",
)
def resolve_comment(
    comment_id: int,
    actor: Actor = Depends(get_actor),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewComment:
    return reviews.resolve_comment(actor, comment_id)
