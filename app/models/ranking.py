from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, timezone
from typing import Dict, Optional, List

from app.models.enumerations import RubricDimension


def _dimension_field(dimension: RubricDimension, form_name: str):
    return Field(
        ...,
        validation_alias=AliasChoices(dimension.value, form_name),
        description=f"Score for {dimension.value.replace('_', ' ')}",
    )


class DimensionScores(BaseModel):
    """
    One juror's rubric scores. Accepts canonical names and the scoring form names.
    """

    model_config = ConfigDict(populate_by_name=True)

    relevance: float = _dimension_field(RubricDimension.RELEVANCE, "relevansiProgram")
    impact: float = _dimension_field(RubricDimension.IMPACT, "dampakCapaianNyata")
    inclusivity: float = _dimension_field(RubricDimension.INCLUSIVITY, "inklusivitas")
    sustainability: float = _dimension_field(RubricDimension.SUSTAINABILITY, "keberlanjutan")
    innovation: float = _dimension_field(RubricDimension.INNOVATION, "inovasiPotensiReplikasi")
    presentation: float = _dimension_field(RubricDimension.PRESENTATION, "kualitasPresentasi")

    def as_dict(self) -> Dict[str, float]:
        return {d.value: getattr(self, d.value) for d in RubricDimension}


class JuryScore(BaseModel):
    """
    One row per (session, juror); re-scoring updates it in place.
    """

    id: int
    award_ranking_id: Optional[int] = None
    session_id: int
    jury_id: int
    jury_name: Optional[str] = None
    scores: DimensionScores
    comments: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True


class JuryScoreCreate(BaseModel):
    """
    POST award-rankings/scoring payload.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("session_id", "sessionId", "submission_id"),
    )
    award_ranking_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("award_ranking_id", "awardRankingId"),
    )
    scores: DimensionScores
    comments: Optional[str] = Field(default=None, max_length=5000)

    @model_validator(mode="after")
    def require_target(self):
        """Either the session or its ranking entry must be named."""
        if self.session_id is None and self.award_ranking_id is None:
            raise ValueError("session_id or award_ranking_id is required")
        return self


class JuryScoreUpdate(BaseModel):
    """
    PATCH award-rankings/scoring/{id} payload.
    """

    scores: DimensionScores
    comments: Optional[str] = Field(default=None, max_length=5000)


class AverageScores(BaseModel):
    """
    Per-dimension means across jurors plus the weighted overall.
    """

    relevance: float = 0.0
    impact: float = 0.0
    inclusivity: float = 0.0
    sustainability: float = 0.0
    innovation: float = 0.0
    presentation: float = 0.0
    overall: float = 0.0


class AwardRanking(BaseModel):
    """
    Derived ranking entry for one submission. Never edited by hand.
    """

    id: int
    session_id: int
    group_id: int
    user_id: Optional[int] = None
    jury_count: int = Field(default=0, ge=0)
    average_scores: AverageScores = Field(default_factory=AverageScores)
    rank: Optional[int] = Field(default=None, ge=1, description="Position within the nomination")
    submitted_at: Optional[datetime] = None
    scoring_details: List[JuryScore] = Field(default_factory=list)
    scored_by_requester: Optional[bool] = Field(
        default=None, description="Whether the requesting juror has scored this entry"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True


class NominationRanking(BaseModel):
    """
    Leaderboard of one nomination (group).
    """

    group_id: int
    rankings: List[AwardRanking]


class LeaderboardStats(BaseModel):
    total_submissions: int = 0
    reviewed_submissions: int = 0
    average_score: float = 0.0
    top_score: float = 0.0
    lowest_score: float = 0.0


class LeaderboardResponse(BaseModel):
    """
    Model returned by GET award-rankings.
    """

    nominations: List[NominationRanking]
    stats: LeaderboardStats
