"""
Award Rankings Router - Award Assessment Platform
app/routers/award_rankings.py

Jury rubric scoring and the per-nomination leaderboard.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.actor import Actor, get_actor
from app.core.dependencies import get_ranking_service
from app.core.error_handlers import error_responses
from app.models.ranking import AwardRanking, JuryScoreCreate, JuryScoreUpdate, LeaderboardResponse
from app.services.ranking_service import RankingService

router = APIRouter(prefix="/api/v1/award-rankings", tags=["Award Rankings"])


@router.post(
    "/scoring",
    response_model=AwardRanking,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Record the caller's rubric scores for a submission",
)
def record_jury_score(
    payload: JuryScoreCreate,
    actor: Actor = Depends(get_actor),
    rankings: RankingService = Depends(get_ranking_service),
) -> AwardRanking:
    return rankings.record_jury_score(actor, payload)


@router.patch(
    "/scoring/{score_id}",
    response_model=AwardRanking,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Update an existing jury score row",
)
def update_jury_score(
    score_id: int,
    payload: JuryScoreUpdate,
    actor: Actor = Depends(get_actor),
    rankings: RankingService = Depends(get_ranking_service),
) -> AwardRanking:
    return rankings.update_jury_score(actor, score_id, payload)


@router.get(
    "",
    response_model=LeaderboardResponse,
    responses=error_responses(403, 422, 503),
    summary="Rankings grouped per nomination with summary stats",
)
def get_leaderboard(
    group_id: Optional[int] = Query(default=None, description="Restrict to one nomination"),
    actor: Actor = Depends(get_actor),
    rankings: RankingService = Depends(get_ranking_service),
) -> LeaderboardResponse:
    return rankings.get_leaderboard(actor, group_id)


@router.get(
    "/{ranking_id}",
    response_model=AwardRanking,
    responses=error_responses(403, 404, 422, 503),
    summary="One award ranking with its jury score rows",
)
def get_ranking(
    ranking_id: int,
    actor: Actor = Depends(get_actor),
    rankings: RankingService = Depends(get_ranking_service),
) -> AwardRanking:
    return rankings.get_ranking(actor, ranking_id)
