"""
Ranking Service - Award Assessment Platform
app/services/ranking_service.py

Records jurors' rubric scores and keeps the derived award rankings current.

Every jury score write upserts the (session, jury) row, recomputes that
submission's averages from all of its rows and re-ranks its nomination.
Recomputation of one submission is serialized by a per-session lock;
different submissions proceed in parallel. The leaderboard is cached in
Redis and invalidated on every write.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterator, List, Optional

import redis
import structlog

from app.core.actor import Actor
from app.core.exceptions import EntityNotFoundException, PermissionDeniedException
from app.models.ranking import (
    AwardRanking,
    DimensionScores,
    JuryScoreCreate,
    JuryScoreUpdate,
    LeaderboardResponse,
    LeaderboardStats,
    NominationRanking,
)
from app.models.session import Session
from app.repositories.ranking_repository import RankingRepository
from app.scoring.ranking_calculator import RankedEntry, RankingCalculator
from app.scoring.utils import mean, round_half_up
from app.services import session_lifecycle as lifecycle
from app.services.cache import RANKINGS_PREFIX, TTL_RANKINGS, rankings_key
from app.services.redis_cache import RedisCache
from app.services.session_service import SessionService

logger = structlog.get_logger(__name__)


class KeyedLock:
    """
    One threading.Lock per key, created on first use and dropped once no
    thread holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._users: Dict[Hashable, int] = defaultdict(int)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] += 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


def leaderboard_stats(rankings: List[AwardRanking]) -> LeaderboardStats:
    """Summary figures over every ranking in the response."""
    if not rankings:
        return LeaderboardStats()
    overall = [r.average_scores.overall for r in rankings]
    return LeaderboardStats(
        total_submissions=len(rankings),
        reviewed_submissions=sum(1 for r in rankings if r.jury_count > 0),
        average_score=float(round_half_up(mean(overall), 2)),
        top_score=max(overall),
        lowest_score=min(overall),
    )


class RankingService:
    """Jury rubric scores, ranking recomputation and the leaderboard."""

    def __init__(
        self,
        session_service: SessionService,
        rankings: RankingRepository,
        calculator: RankingCalculator,
        cache_factory: Callable[[], Optional[RedisCache]],
    ):
        self.session_service = session_service
        self.rankings = rankings
        self.calculator = calculator
        self.cache_factory = cache_factory
        self.locks = KeyedLock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _scorable_session(self, session_id: int) -> Session:
        session = self.session_service.load(session_id)
        lifecycle.ensure_can_score(session_id, self.session_service.derived_status(session))
        return session

    def record_jury_score(self, actor: Actor, payload: JuryScoreCreate) -> AwardRanking:
        """
        Insert or update the caller's rubric scores for a submission.

        Raises:
            PermissionDeniedException: caller is not a juror or admin
            StateViolationException: session not in a jury scoring stage
            InvalidScoreException: dimension missing or outside the scale
        """
        actor.require_jury("score submissions")
        session_id = payload.session_id
        if session_id is None:
            ranking = self.rankings.get_ranking(payload.award_ranking_id)
            if ranking is None:
                raise EntityNotFoundException("AwardRanking", payload.award_ranking_id)
            session_id = ranking.session_id

        session = self._scorable_session(session_id)
        return self._write(actor, session, actor.effective_jury_id, payload.scores, payload.comments)

    def update_jury_score(self, actor: Actor, score_id: int, payload: JuryScoreUpdate) -> AwardRanking:
        """
        Replace the scores of an existing row. Only its juror may do so.
        """
        actor.require_jury("score submissions")
        existing = self.rankings.get_jury_score(score_id)
        if existing is None:
            raise EntityNotFoundException("JuryScore", score_id)
        if existing.jury_id != actor.effective_jury_id:
            raise PermissionDeniedException(f"Jury score {score_id} belongs to another juror")

        session = self._scorable_session(existing.session_id)
        return self._write(actor, session, existing.jury_id, payload.scores, payload.comments)

    def _write(
        self,
        actor: Actor,
        session: Session,
        jury_id: int,
        scores: DimensionScores,
        comments: Optional[str],
    ) -> AwardRanking:
        self.calculator.validate(scores.as_dict())
        stored = self.rankings.upsert_jury_score(session.id, jury_id, actor.name, scores, comments)
        logger.info(
            "jury_score_recorded",
            session_id=session.id,
            jury_id=jury_id,
            score_id=stored.id,
        )
        ranking_id = self.recompute(session)
        self.invalidate_leaderboard()
        return self.get_ranking(actor, ranking_id)

    def recompute(self, session: Session) -> int:
        """
        Rebuild one submission's averages from all of its jury rows, then
        re-rank its nomination.

        Returns:
            AwardRanking id
        """
        with self.locks.hold(("session", session.id)):
            rows = self.rankings.list_jury_scores(session.id)
            aggregate = self.calculator.aggregate([r.scores.as_dict() for r in rows])
            ranking_id = self.rankings.save_ranking(
                session_id=session.id,
                group_id=session.group_id,
                user_id=session.user_id,
                submitted_at=session.submitted_at,
                averages=aggregate.averages,
                overall=aggregate.overall,
                jury_count=aggregate.jury_count,
            )

        with self.locks.hold(("group", session.group_id)):
            entries = [
                RankedEntry(
                    session_id=r.session_id,
                    overall=Decimal(str(r.average_scores.overall)),
                    submitted_at=r.submitted_at,
                )
                for r in self.rankings.list_rankings(session.group_id)
            ]
            ordered = self.calculator.rank(entries)
            self.rankings.update_ranks({e.session_id: e.rank for e in ordered})

        logger.info(
            "ranking_recomputed",
            session_id=session.id,
            group_id=session.group_id,
            jury_count=aggregate.jury_count,
            overall=float(aggregate.overall),
        )
        return ranking_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _with_details(self, ranking: AwardRanking) -> AwardRanking:
        return ranking.model_copy(
            update={"scoring_details": self.rankings.list_jury_scores(ranking.session_id)}
        )

    @staticmethod
    def _flag_requester(actor: Actor, ranking: AwardRanking) -> AwardRanking:
        if not actor.is_jury:
            return ranking
        scored = any(d.jury_id == actor.effective_jury_id for d in ranking.scoring_details)
        return ranking.model_copy(update={"scored_by_requester": scored})

    def get_ranking(self, actor: Actor, ranking_id: int) -> AwardRanking:
        actor.require_jury("view rankings")
        ranking = self.rankings.get_ranking(ranking_id)
        if ranking is None:
            raise EntityNotFoundException("AwardRanking", ranking_id)
        return self._flag_requester(actor, self._with_details(ranking))

    def get_leaderboard(self, actor: Actor, group_id: Optional[int] = None) -> LeaderboardResponse:
        """
        Rankings grouped per nomination with summary stats.

        Served from Redis when cached; the per-requester scored flag is
        applied after the cache lookup.
        """
        actor.require_jury("view rankings")
        key = rankings_key(group_id)
        cache = self.cache_factory()

        board = None
        if cache is not None:
            try:
                board = cache.get(key, LeaderboardResponse)
            except redis.RedisError as e:
                logger.warning("leaderboard_cache_read_failed", key=key, error=str(e))

        if board is None:
            board = self._build_leaderboard(group_id)
            if cache is not None:
                try:
                    cache.set(key, board, TTL_RANKINGS)
                except redis.RedisError as e:
                    logger.warning("leaderboard_cache_write_failed", key=key, error=str(e))
        else:
            logger.debug("leaderboard_cache_hit", key=key)

        return LeaderboardResponse(
            nominations=[
                NominationRanking(
                    group_id=n.group_id,
                    rankings=[self._flag_requester(actor, r) for r in n.rankings],
                )
                for n in board.nominations
            ],
            stats=board.stats,
        )

    def _build_leaderboard(self, group_id: Optional[int]) -> LeaderboardResponse:
        rankings = [self._with_details(r) for r in self.rankings.list_rankings(group_id)]
        grouped: Dict[int, List[AwardRanking]] = defaultdict(list)
        for ranking in rankings:
            grouped[ranking.group_id].append(ranking)
        return LeaderboardResponse(
            nominations=[
                NominationRanking(
                    group_id=gid,
                    rankings=sorted(items, key=lambda r: (r.rank is None, r.rank or 0, r.session_id)),
                )
                for gid, items in sorted(grouped.items())
            ],
            stats=leaderboard_stats(rankings),
        )

    def invalidate_leaderboard(self) -> None:
        cache = self.cache_factory()
        if cache is None:
            return
        try:
            cache.delete_pattern(f"{RANKINGS_PREFIX}:*")
        except redis.RedisError as e:
            logger.warning("leaderboard_cache_invalidation_failed", error=str(e))
