# tests/test_property_based.py
"""
Property-Based Tests

Hypothesis tests with max_examples=300, covering:
  - half-up rounding and weighted question scores
  - RankingCalculator averages and ordering
  - derived session status
  - comment merging
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from app.models.enumerations import ReviewStage, SessionStatus
from app.models.question import Category
from app.models.review import CommentCreate, ReviewComment
from app.scoring.question_scorer import compute_question_score
from app.scoring.ranking_calculator import DIMENSIONS, RankedEntry, RankingCalculator
from app.scoring.utils import round_half_up
from app.services.review_service import merge_comments
from app.services.session_lifecycle import derive_status

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

rubric_st = st.integers(min_value=1, max_value=5)
money_st = st.decimals(min_value=Decimal("-1000000"), max_value=Decimal("1000000"), places=3)
BASE_TIME = datetime(2025, 8, 1, tzinfo=timezone.utc)


@st.composite
def juror_scores_st(draw):
    """One dict of rubric scores per juror, 1..6 jurors."""
    count = draw(st.integers(min_value=1, max_value=6))
    return [{d: draw(rubric_st) for d in DIMENSIONS} for _ in range(count)]


@st.composite
def entries_st(draw):
    """Ranked entries with unique session ids and frequent overall ties."""
    ids = draw(st.lists(st.integers(min_value=1, max_value=500), min_size=1, max_size=12, unique=True))
    return [
        RankedEntry(
            session_id=sid,
            overall=Decimal(draw(st.integers(min_value=6, max_value=9))),
            submitted_at=BASE_TIME + timedelta(minutes=draw(st.integers(min_value=0, max_value=3))),
        )
        for sid in ids
    ]


comment_st = st.builds(
    CommentCreate,
    question_id=st.integers(min_value=1, max_value=3),
    comment=st.sampled_from(["lengkapi", "cek data", "ok", " ok "]),
    is_critical=st.booleans(),
    stage=st.sampled_from(list(ReviewStage)),
)


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------

@given(money_st)
@settings(max_examples=300)
def test_round_half_up_within_half_cent(value):
    rounded = round_half_up(value, 2)
    assert abs(rounded - value) <= Decimal("0.005")
    assert rounded == rounded.quantize(Decimal("0.01"))


@given(st.integers(min_value=-100000, max_value=100000))
@settings(max_examples=300)
def test_exact_halves_round_away_from_zero(cents):
    value = Decimal(cents) / 100 + (Decimal("0.005") if cents >= 0 else Decimal("-0.005"))
    expected = Decimal(cents + (1 if cents >= 0 else -1)) / 100
    assert round_half_up(value, 2) == expected


@given(money_st, st.decimals(min_value=Decimal("0"), max_value=Decimal("10"), places=2))
@settings(max_examples=300)
def test_question_score_is_two_place_product(raw, weight):
    category = Category(id=1, name="c", weight=float(weight), min_value=0, max_value=100)
    result = compute_question_score(1, raw, category)
    assert result.score_result == round_half_up(raw * Decimal(str(float(weight))), 2)


# ---------------------------------------------------------------------------
# RankingCalculator
# ---------------------------------------------------------------------------

@given(juror_scores_st())
@settings(max_examples=300)
def test_averages_stay_on_scale(juror_scores):
    calc = RankingCalculator(weights={d: 1 for d in DIMENSIONS})
    aggregate = calc.aggregate(juror_scores)
    assert aggregate.jury_count == len(juror_scores)
    for d in DIMENSIONS:
        assert Decimal("1") <= aggregate.averages[d] <= Decimal("5")
    assert Decimal("6") <= aggregate.overall <= Decimal("30")


@given(juror_scores_st())
@settings(max_examples=300)
def test_aggregate_ignores_juror_order(juror_scores):
    calc = RankingCalculator(weights={d: 1 for d in DIMENSIONS})
    assert calc.aggregate(juror_scores) == calc.aggregate(list(reversed(juror_scores)))


@given(entries_st(), st.randoms())
@settings(max_examples=300)
def test_rank_is_stable_under_shuffle(entries, rnd):
    calc = RankingCalculator(weights={})
    expected = [e.session_id for e in calc.rank(entries)]
    shuffled = list(entries)
    rnd.shuffle(shuffled)
    assert [e.session_id for e in calc.rank(shuffled)] == expected


@given(entries_st())
@settings(max_examples=300)
def test_ranks_are_dense_and_ordered(entries):
    ordered = RankingCalculator(weights={}).rank(entries)
    assert [e.rank for e in ordered] == list(range(1, len(entries) + 1))
    for a, b in zip(ordered, ordered[1:]):
        assert a.overall >= b.overall


# ---------------------------------------------------------------------------
# Derived status
# ---------------------------------------------------------------------------

@given(
    st.sampled_from([SessionStatus.SUBMITTED, SessionStatus.RESUBMITTED, SessionStatus.NEEDS_REVISION]),
    st.lists(st.tuples(st.booleans(), st.booleans(), st.sampled_from(list(ReviewStage))), max_size=8),
)
@settings(max_examples=300)
def test_needs_revision_iff_open_critical_admin_comment(stored, flags):
    comments = [
        ReviewComment(id=i, session_id=1, question_id=1, comment="x",
                      is_critical=critical, is_resolved=resolved, stage=stage)
        for i, (critical, resolved, stage) in enumerate(flags, start=1)
    ]
    has_open = any(c.is_open_critical for c in comments)
    derived = derive_status(stored, comments)
    assert (derived == SessionStatus.NEEDS_REVISION) == has_open


# ---------------------------------------------------------------------------
# Comment merging
# ---------------------------------------------------------------------------

@given(st.lists(st.tuples(comment_st, st.booleans()), max_size=10), st.lists(comment_st, max_size=10))
@settings(max_examples=300)
def test_merge_adds_only_entries_without_an_open_twin(stored_entries, incoming):
    stored = [
        ReviewComment(id=i, session_id=1, is_resolved=resolved, **entry.model_dump())
        for i, (entry, resolved) in enumerate(stored_entries, start=1)
    ]
    new = merge_comments(stored, incoming)

    def key(c):
        return (c.question_id, c.stage, c.comment.strip(), c.is_critical)

    open_keys = {key(c) for c in stored if not c.is_resolved}
    assert all(key(c) not in open_keys for c in new)
    assert len({key(c) for c in new}) == len(new)
    assert {key(c) for c in incoming} <= open_keys | {key(c) for c in new}
    assert merge_comments(stored + [
        ReviewComment(id=100 + i, session_id=1, **c.model_dump()) for i, c in enumerate(new)
    ], incoming) == []
