# app/scoring/question_scorer.py
"""
Question Scorer
---------------
Turns heterogeneous question responses into comparable weighted scores.

Formula:
    score_result = round_half_up(raw × category.weight, 2)

Range classification (advisory, never blocks submission):
    actual_min = min(min_value, max_value)
    actual_max = max(min_value, max_value)
    raw < actual_min → under, raw > actual_max → over, else in_range

Totals are stage-scoped: admin totals sum the participant's own numeric
answers, jury totals sum one juror's per-question scores. The two are never
combined.
"""
import structlog
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from app.models.enumerations import RangeClassification
from app.models.question import Category, Question
from app.models.response import Response
from app.scoring.utils import Number, round_half_up, to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    """Output of QuestionScorer.score()."""
    question_id: int
    category_id: int
    raw_value: Decimal
    weight: Decimal
    score_result: Decimal                  # raw × weight, 2 places, half-up
    classification: RangeClassification


def classify_range(raw: Number, category: Category) -> RangeClassification:
    """Classify a raw value against the category's (possibly inverted) bounds."""
    value = to_decimal(raw)
    lower = to_decimal(category.actual_min)
    upper = to_decimal(category.actual_max)
    if value < lower:
        return RangeClassification.UNDER
    if value > upper:
        return RangeClassification.OVER
    return RangeClassification.IN_RANGE


def compute_question_score(
    question_id: int,
    raw_value: Optional[Number],
    category: Optional[Category],
) -> Optional[ScoreResult]:
    """
    Score one raw value against its category.

    Returns:
        ScoreResult, or None when the question has no category or there is
        no numeric value to score.
    """
    if category is None or raw_value is None:
        return None
    raw = to_decimal(raw_value)
    if not raw.is_finite():
        return None
    weight = to_decimal(category.weight)
    return ScoreResult(
        question_id=question_id,
        category_id=category.id,
        raw_value=raw,
        weight=weight,
        score_result=round_half_up(raw * weight, 2),
        classification=classify_range(raw, category),
    )


def total_score(results: Iterable[Optional[ScoreResult]]) -> Decimal:
    """Sum of score_result over scored questions, 2 places."""
    total = sum(
        (r.score_result for r in results if r is not None),
        Decimal("0"),
    )
    return round_half_up(total, 2)


class QuestionScorer:
    """Score a whole questionnaire for one stage."""

    def __init__(self, categories: Mapping[int, Category]):
        self.categories = dict(categories)

    def category_for(self, question: Question) -> Optional[Category]:
        if question.category_id is None:
            return None
        return self.categories.get(question.category_id)

    def score_responses(
        self,
        questions: List[Question],
        responses: Mapping[int, Response],
    ) -> List[ScoreResult]:
        """
        Admin-stage scoring from the participant's own answers.

        Args:
            questions: Questionnaire questions
            responses: Stored responses keyed by question id

        Returns:
            One ScoreResult per scored question, in question order.
        """
        results: List[ScoreResult] = []
        for question in questions:
            response = responses.get(question.id)
            if response is None or not response.has_answer():
                continue
            result = compute_question_score(
                question.id, response.value.as_number(), self.category_for(question)
            )
            if result is not None:
                results.append(result)
        return results

    def score_jury_marks(
        self,
        questions: List[Question],
        marks: Mapping[int, Number],
    ) -> List[ScoreResult]:
        """
        Jury-stage scoring from one juror's per-question marks.

        Args:
            questions: Questionnaire questions
            marks: Juror's raw score keyed by question id

        Returns:
            One ScoreResult per scored question, in question order.
        """
        results: List[ScoreResult] = []
        for question in questions:
            if question.id not in marks:
                continue
            result = compute_question_score(question.id, marks[question.id], self.category_for(question))
            if result is not None:
                results.append(result)
        return results

    def summarize(self, results: List[ScoreResult]) -> Dict[str, object]:
        total = total_score(results)
        logger.debug(
            "stage_total_calculated",
            scored_questions=len(results),
            total_score=float(total),
        )
        return {"results": results, "total_score": total}
