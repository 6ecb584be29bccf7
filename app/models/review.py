from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional, List

from app.models.enumerations import RangeClassification, ReviewDecision, ReviewStage


class ReviewComment(BaseModel):
    """
    Stage-scoped reviewer comment on one question. Append-only.
    """

    id: int = Field(..., description="Comment identifier")
    session_id: int = Field(..., description="Session the comment belongs to")
    review_id: Optional[int] = Field(default=None, description="Review the comment was posted with")
    question_id: int = Field(..., description="Commented question")
    comment: str = Field(..., min_length=1, description="Comment text")
    is_critical: bool = Field(default=False, description="Blocks progress until the participant revises")
    stage: ReviewStage = Field(..., description="Review stage the comment is scoped to")
    is_resolved: bool = Field(default=False)
    resolved_at: Optional[datetime] = None
    reviewer_name: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_open_critical(self) -> bool:
        return (
            self.stage == ReviewStage.ADMIN_VALIDATION
            and self.is_critical
            and not self.is_resolved
        )

    class Config:
        from_attributes = True


class Review(BaseModel):
    """
    One review per (session, stage).
    """

    id: int
    session_id: int
    stage: ReviewStage
    reviewer_id: Optional[int] = None
    decision: Optional[ReviewDecision] = None
    overall_comments: str = ""
    deliberation_notes: str = ""
    internal_notes: str = ""
    validation_checklist: List[str] = Field(default_factory=list)
    total_score: Optional[float] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True


class QuestionScore(BaseModel):
    """
    Juror's score for a single question (jury_scoring stage).
    """

    session_id: int
    question_id: int
    reviewer_id: int
    review_id: Optional[int] = None
    score: float = Field(..., description="Score on the per-question scale")
    comments: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CommentCreate(BaseModel):
    """
    Request body for posting one comment.
    """

    question_id: int
    comment: str = Field(..., min_length=1, max_length=5000)
    is_critical: bool = False
    stage: ReviewStage = ReviewStage.ADMIN_VALIDATION


class QuestionCommentInput(BaseModel):
    """
    Comment entry inside a batch review.
    """

    question_id: int
    comment: str = Field(..., min_length=1, max_length=5000)
    is_critical: bool = False
    stage: Optional[ReviewStage] = Field(default=None, description="Defaults to the batch stage")


class JuryQuestionScoreInput(BaseModel):
    """
    Per-question jury score inside a batch review.
    """

    question_id: int
    score: float
    comments: Optional[str] = Field(default=None, max_length=5000)


class BatchReviewRequest(BaseModel):
    """
    POST session/{id}/review/batch payload. Existing comments are always
    preserved; new entries are merged in.
    """

    stage: ReviewStage = ReviewStage.ADMIN_VALIDATION
    decision: Optional[ReviewDecision] = None
    overall_comments: str = Field(default="", max_length=10000)
    question_comments: List[QuestionCommentInput] = Field(default_factory=list)
    jury_scores: List[JuryQuestionScoreInput] = Field(default_factory=list)
    deliberation_notes: str = Field(default="", max_length=10000)
    internal_notes: str = Field(default="", max_length=10000)
    validation_checklist: List[str] = Field(default_factory=list)
    update_existing: bool = Field(default=True, description="Update the stage review instead of failing when it exists")


class ReviewResult(BaseModel):
    """
    Outcome of a batch review.
    """

    review_id: int
    session_id: int
    stage: ReviewStage
    decision: Optional[ReviewDecision] = None
    status: str
    comments: List[ReviewComment]
    added_comment_ids: List[int] = Field(default_factory=list)
    total_score: Optional[float] = None


class QuestionScoreResult(BaseModel):
    """
    Weighted score of one question within a stage.
    """

    question_id: int
    category_id: int
    raw_value: float
    weight: float
    score_result: float = Field(..., description="raw × weight, 2 places, half-up")
    classification: RangeClassification


class StageScoreReport(BaseModel):
    """
    Model returned by GET session/{id}/scores. Totals never mix stages.
    """

    session_id: int
    stage: ReviewStage
    reviewer_id: Optional[int] = Field(default=None, description="Juror whose marks were scored (jury stage)")
    results: List[QuestionScoreResult] = Field(default_factory=list)
    total_score: float = 0.0
