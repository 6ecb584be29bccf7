from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional, List

from app.models.enumerations import SessionStatus
from app.models.question import Question
from app.models.response import Response
from app.models.review import ReviewComment


class Session(BaseModel):
    """
    Persisted assessment session. ``status`` is the stored lifecycle status;
    callers outside the lifecycle service only ever see the derived status.
    """

    id: int = Field(..., description="Session identifier")
    user_id: int = Field(..., description="Participant owning the session")
    group_id: int = Field(..., description="Group (nomination) questionnaire")
    status: SessionStatus = Field(default=SessionStatus.DRAFT, description="Stored lifecycle status")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    submitted_at: Optional[datetime] = Field(default=None, description="Latest (re)submission time")
    last_activity_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    review_id: Optional[int] = Field(default=None, description="Admin validation review, once created")

    class Config:
        from_attributes = True


class SessionState(BaseModel):
    """
    Derived lifecycle state with the capability flags the UI needs.
    """

    status: SessionStatus
    can_edit: bool
    can_submit: bool
    can_resubmit: bool
    show_feedback: bool
    show_progress: bool
    is_terminal: bool
    open_critical_comments: int = Field(default=0, ge=0)


class QuestionView(BaseModel):
    """
    Question together with the session's answer and reviewer comments.
    """

    question: Question
    response: Optional[Response] = None
    comments: List[ReviewComment] = Field(default_factory=list)


class SessionDetail(BaseModel):
    """
    Model returned by GET session/{id}.
    """

    id: int
    user_id: int
    group_id: int
    state: SessionState
    progress_percentage: int = Field(..., ge=0, le=100, description="Answered share of questions")
    started_at: datetime
    submitted_at: Optional[datetime] = None
    last_activity_at: datetime
    review_id: Optional[int] = None
    questions: List[QuestionView] = Field(default_factory=list)


class StartSessionRequest(BaseModel):
    """
    Start (or reopen) the session of the calling participant for a group.
    """

    group_id: int = Field(..., description="Group questionnaire to open")


class AdvanceRequest(BaseModel):
    """
    Move a session to the next jury stage.
    """

    target_status: SessionStatus = Field(..., description="Requested next status")


class SubmitResult(BaseModel):
    """
    Outcome of submit/resubmit.
    """

    session_id: int
    state: SessionState
    submitted_at: datetime
    resolved_comment_ids: List[int] = Field(default_factory=list)
