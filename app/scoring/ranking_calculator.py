# app/scoring/ranking_calculator.py
"""
Ranking Calculator
------------------
Aggregates jurors' rubric scores per submission and orders submissions
within a nomination.

Formula:
    average[d] = mean(score_j[d] for every juror j), 2 places half-up
    overall    = Σ weight[d] × average[d],            2 places half-up

Averages are always recomputed from the full set of juror rows, never
maintained incrementally, so an updated juror score replaces its previous
contribution.

Ordering inside a nomination:
    overall descending, then earliest submitted_at, then session id.
"""
import structlog
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from app.core.exceptions import InvalidScoreException
from app.models.enumerations import RubricDimension
from app.scoring.utils import Number, mean, round_half_up, to_decimal, weighted_sum, within

logger = structlog.get_logger(__name__)

DIMENSIONS: List[str] = [d.value for d in RubricDimension]


@dataclass
class RankingAggregate:
    """Output of RankingCalculator.aggregate()."""
    averages: Dict[str, Decimal]
    overall: Decimal
    jury_count: int


@dataclass
class RankedEntry:
    """Input row for ordering; rank is filled by RankingCalculator.rank()."""
    session_id: int
    overall: Decimal
    submitted_at: Optional[datetime]
    rank: Optional[int] = field(default=None)


class RankingCalculator:
    """Average, weight and order jury rubric scores."""

    def __init__(
        self,
        weights: Mapping[str, Number],
        min_score: Number = 1,
        max_score: Number = 5,
    ):
        self.weights = {d: to_decimal(weights.get(d, 1)) for d in DIMENSIONS}
        self.min_score = to_decimal(min_score)
        self.max_score = to_decimal(max_score)

    def validate(self, dimension_scores: Mapping[str, Number]) -> Dict[str, Decimal]:
        """
        Check every rubric dimension is present and inside the scale.

        Raises:
            InvalidScoreException: missing dimension or out-of-bound score
        """
        validated: Dict[str, Decimal] = {}
        for dim in DIMENSIONS:
            if dim not in dimension_scores or dimension_scores[dim] is None:
                raise InvalidScoreException(dim, None, float(self.min_score), float(self.max_score))
            value = dimension_scores[dim]
            if not within(value, self.min_score, self.max_score):
                raise InvalidScoreException(dim, value, float(self.min_score), float(self.max_score))
            validated[dim] = to_decimal(value)
        return validated

    def aggregate(self, juror_scores: Sequence[Mapping[str, Number]]) -> RankingAggregate:
        """
        Args:
            juror_scores: One mapping of dimension → score per juror.

        Returns:
            RankingAggregate with per-dimension averages and weighted overall.
            With no jurors every average and the overall are 0.
        """
        averages: Dict[str, Decimal] = {}
        for dim in DIMENSIONS:
            averages[dim] = round_half_up(mean(s[dim] for s in juror_scores), 2)

        overall = round_half_up(
            weighted_sum(
                [averages[d] for d in DIMENSIONS],
                [self.weights[d] for d in DIMENSIONS],
            ),
            2,
        )

        logger.debug(
            "ranking_aggregated",
            jury_count=len(juror_scores),
            averages={d: float(v) for d, v in averages.items()},
            overall=float(overall),
        )

        return RankingAggregate(averages=averages, overall=overall, jury_count=len(juror_scores))

    @staticmethod
    def sort_key(entry: RankedEntry):
        submitted = entry.submitted_at or datetime.max.replace(tzinfo=timezone.utc)
        if submitted.tzinfo is None:
            submitted = submitted.replace(tzinfo=timezone.utc)
        return (-entry.overall, submitted, entry.session_id)

    def rank(self, entries: Sequence[RankedEntry]) -> List[RankedEntry]:
        """
        Order one nomination's entries and assign ranks 1..n.

        Ties on overall are broken by earliest submitted_at, then session id,
        so the result never depends on input order.
        """
        ordered = sorted(entries, key=self.sort_key)
        for position, entry in enumerate(ordered, start=1):
            entry.rank = position
        return ordered
