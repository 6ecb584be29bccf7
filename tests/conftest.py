# tests/conftest.py

"""
Pytest Fixtures - Shared test doubles and seed data for services and APIs

SEED DATA REFERENCE:
- Group 1 questions: 101 (numeric, required, category 1), 102 (text-short, required),
  103 (text-open, optional), 104 (numeric, required, "Pengusulan" section - exempt)
- Group 2 questions: 201 (numeric, required, category 1)
- Category 1: "Jumlah Penerima Manfaat", weight 0.2, range 0..100
- Users: 10, 11 participants; 1 admin; 7, 8 jurors
"""

import fnmatch
import itertools
from contextlib import contextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from app.core.actor import Actor
from app.core import dependencies as deps
from app.core.exceptions import (
    DatabaseConnectionException,
    DuplicateEntityException,
    EntityNotFoundException,
)
from app.main import app
from app.models.enumerations import InputType, Role, SessionStatus
from app.models.question import Category, CategoryCreate, CategoryUpdate, Question
from app.models.ranking import AverageScores, AwardRanking, JuryScore
from app.models.response import BatchAnswerRequest, Response
from app.models.review import Review, ReviewComment
from app.models.session import Session
from app.scoring.ranking_calculator import RankingCalculator
from app.services.ranking_service import RankingService
from app.services.response_service import ResponseService
from app.services.review_service import ReviewService
from app.services.session_service import SessionService


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# IN-MEMORY REPOSITORIES
# =============================================================================

class FakeSessionRepository:
    def __init__(self):
        self.rows: Dict[int, Session] = {}
        self.ids = itertools.count(1)
        self.status_writes: List[SessionStatus] = []

    def get_by_id(self, session_id, cursor=None):
        return self.rows.get(session_id)

    def get_by_user_group(self, user_id, group_id):
        for row in self.rows.values():
            if row.user_id == user_id and row.group_id == group_id:
                return row
        return None

    def create(self, user_id, group_id):
        session = Session(id=next(self.ids), user_id=user_id, group_id=group_id)
        self.rows[session.id] = session
        return session

    def update_status(self, session_id, status, submitted_at=None, cursor=None):
        if session_id not in self.rows:
            raise EntityNotFoundException("Session", session_id)
        changes: Dict[str, Any] = {"status": status, "last_activity_at": _now()}
        if submitted_at is not None:
            changes["submitted_at"] = submitted_at
        self.rows[session_id] = self.rows[session_id].model_copy(update=changes)
        self.status_writes.append(status)
        return self.rows[session_id]

    def touch(self, session_id):
        self.rows[session_id] = self.rows[session_id].model_copy(update={"last_activity_at": _now()})

    def set_review_id(self, session_id, review_id, cursor=None):
        if self.rows[session_id].review_id is None:
            self.rows[session_id] = self.rows[session_id].model_copy(update={"review_id": review_id})


class FakeQuestionRepository:
    def __init__(self, questions: List[Question]):
        self.rows = {q.id: q for q in questions}

    def list_by_group(self, group_id):
        return sorted(
            (q for q in self.rows.values() if q.group_id == group_id),
            key=lambda q: (q.order_number, q.id),
        )

    def get_by_id(self, question_id):
        return self.rows.get(question_id)


class FakeCategoryRepository:
    def __init__(self, categories: List[Category]):
        self.rows = {c.id: c for c in categories}
        self.ids = itertools.count(max(self.rows, default=0) + 1)

    def create(self, data: CategoryCreate):
        if self.get_by_name(data.name) is not None:
            raise DuplicateEntityException(f"Category '{data.name}' already exists")
        category = Category(id=next(self.ids), **data.model_dump())
        self.rows[category.id] = category
        return category

    def get_by_id(self, category_id):
        return self.rows.get(category_id)

    def get_by_name(self, name):
        for row in self.rows.values():
            if row.name.lower() == name.strip().lower():
                return row
        return None

    def list_all(self):
        return sorted(self.rows.values(), key=lambda c: c.name)

    def get_many(self, category_ids):
        return {i: self.rows[i] for i in category_ids if i in self.rows}

    def update(self, category_id, data: CategoryUpdate):
        if category_id not in self.rows:
            raise EntityNotFoundException("Category", category_id)
        changes = data.model_dump(exclude_unset=True)
        self.rows[category_id] = self.rows[category_id].model_copy(update=changes)
        return self.rows[category_id]


class FakeResponseRepository:
    def __init__(self):
        self.rows: Dict[tuple, Response] = {}
        self.fail_next = 0
        self.writes = 0

    def _maybe_fail(self):
        if self.fail_next:
            self.fail_next -= 1
            raise DatabaseConnectionException("Lost connection to Snowflake")

    def get(self, session_id, question_id):
        return self.rows.get((session_id, question_id))

    def list_by_session(self, session_id):
        return [r for (sid, _), r in sorted(self.rows.items()) if sid == session_id]

    def upsert(self, response, cursor=None):
        self._maybe_fail()
        key = (response.session_id, response.question_id)
        existing = self.rows.get(key)
        if existing is not None and existing.auto_save_version >= response.auto_save_version:
            return False
        self.rows[key] = response
        self.writes += 1
        return True

    def upsert_many(self, responses):
        self._maybe_fail()
        return sum(1 for r in responses if self.upsert(r))


class FakeReviewRepository:
    def __init__(self, sessions=None):
        self.reviews: Dict[tuple, Review] = {}
        self.comments: Dict[int, ReviewComment] = {}
        self.scores: Dict[tuple, Any] = {}
        self.review_ids = itertools.count(1)
        self.comment_ids = itertools.count(1)
        self.fail_batch = False
        self.fail_total = False
        self.sessions = sessions

    @contextmanager
    def transaction(self):
        """Restore reviews, comments, scores and linked session rows on failure."""
        snapshot = (dict(self.reviews), dict(self.comments), dict(self.scores))
        session_rows = dict(self.sessions.rows) if self.sessions is not None else None
        status_writes = list(self.sessions.status_writes) if self.sessions is not None else None
        try:
            yield None
        except Exception:
            self.reviews, self.comments, self.scores = snapshot
            if self.sessions is not None:
                self.sessions.rows = session_rows
                self.sessions.status_writes = status_writes
            raise

    def get_review(self, session_id, stage, cursor=None):
        return self.reviews.get((session_id, stage))

    def set_total_score(self, review_id, total_score, cursor=None):
        if self.fail_total:
            raise RuntimeError("statement failed inside transaction")
        for key, review in self.reviews.items():
            if review.id == review_id:
                self.reviews[key] = review.model_copy(update={"total_score": total_score})

    def get_comment(self, comment_id):
        return self.comments.get(comment_id)

    def list_comments(self, session_id, stage=None, cursor=None):
        return [
            c for c in sorted(self.comments.values(), key=lambda c: (c.created_at, c.id))
            if c.session_id == session_id and (stage is None or c.stage == stage)
        ]

    def insert_comment(self, session_id, review_id, entry, reviewer_name, cursor=None):
        comment = ReviewComment(
            id=next(self.comment_ids),
            session_id=session_id,
            review_id=review_id,
            question_id=entry.question_id,
            comment=entry.comment,
            is_critical=entry.is_critical,
            stage=entry.stage,
            reviewer_name=reviewer_name,
        )
        self.comments[comment.id] = comment
        return comment

    def resolve_comment(self, comment_id):
        comment = self.comments.get(comment_id)
        if comment is None:
            raise EntityNotFoundException("ReviewComment", comment_id)
        if not comment.is_resolved:
            comment = comment.model_copy(update={"is_resolved": True, "resolved_at": _now()})
            self.comments[comment_id] = comment
        return comment

    def resolve_open_critical(self, session_id):
        ids = [c.id for c in self.list_comments(session_id) if c.is_open_critical]
        for comment_id in ids:
            self.resolve_comment(comment_id)
        return ids

    def list_question_scores(self, session_id, reviewer_id=None):
        return [
            s for (sid, _, rid), s in sorted(self.scores.items())
            if sid == session_id and (reviewer_id is None or rid == reviewer_id)
        ]

    def save_batch(self, session_id, stage, reviewer_id, reviewer_name, fields, new_comments, question_scores,
                   cursor=None):
        if self.fail_batch:
            raise RuntimeError("statement failed inside transaction")
        review = self.reviews.get((session_id, stage))
        values = {k: v for k, v in fields.items() if v is not None}
        if review is None:
            review = Review(
                id=next(self.review_ids), session_id=session_id, stage=stage,
                reviewer_id=reviewer_id, **values,
            )
        else:
            review = review.model_copy(update={**values, "reviewer_id": reviewer_id, "updated_at": _now()})
        self.reviews[(session_id, stage)] = review
        for entry in new_comments:
            self.insert_comment(session_id, review.id, entry, reviewer_name)
        for score in question_scores:
            key = (score.session_id, score.question_id, score.reviewer_id)
            self.scores[key] = score.model_copy(update={"review_id": review.id})
        return review, self.list_comments(session_id)


class FakeRankingRepository:
    def __init__(self):
        self.scores: Dict[int, JuryScore] = {}
        self.rankings: Dict[int, AwardRanking] = {}
        self.score_ids = itertools.count(1)
        self.ranking_ids = itertools.count(1)

    def upsert_jury_score(self, session_id, jury_id, jury_name, scores, comments):
        for score_id, row in self.scores.items():
            if row.session_id == session_id and row.jury_id == jury_id:
                updated = row.model_copy(update={
                    "scores": scores,
                    "comments": comments,
                    "jury_name": jury_name or row.jury_name,
                    "updated_at": _now(),
                })
                self.scores[score_id] = updated
                return updated
        row = JuryScore(
            id=next(self.score_ids), session_id=session_id, jury_id=jury_id,
            jury_name=jury_name, scores=scores, comments=comments,
        )
        self.scores[row.id] = row
        return row

    def get_jury_score(self, score_id):
        return self.scores.get(score_id)

    def list_jury_scores(self, session_id):
        return [s for s in self.scores.values() if s.session_id == session_id]

    def save_ranking(self, session_id, group_id, user_id, submitted_at, averages, overall, jury_count):
        existing = self.get_ranking_by_session(session_id)
        average_scores = AverageScores(
            **{d: float(v) for d, v in averages.items()}, overall=float(overall)
        )
        if existing is None:
            ranking = AwardRanking(
                id=next(self.ranking_ids), session_id=session_id, group_id=group_id,
                user_id=user_id, jury_count=jury_count, average_scores=average_scores,
                submitted_at=submitted_at,
            )
        else:
            ranking = existing.model_copy(update={
                "jury_count": jury_count,
                "average_scores": average_scores,
                "submitted_at": submitted_at,
                "updated_at": _now(),
            })
        self.rankings[ranking.id] = ranking
        for score_id, row in self.scores.items():
            if row.session_id == session_id:
                self.scores[score_id] = row.model_copy(update={"award_ranking_id": ranking.id})
        return ranking.id

    def update_ranks(self, ranks):
        for ranking_id, ranking in self.rankings.items():
            if ranking.session_id in ranks:
                self.rankings[ranking_id] = ranking.model_copy(update={"rank": ranks[ranking.session_id]})

    def get_ranking(self, ranking_id):
        return self.rankings.get(ranking_id)

    def get_ranking_by_session(self, session_id):
        for ranking in self.rankings.values():
            if ranking.session_id == session_id:
                return ranking
        return None

    def list_rankings(self, group_id=None):
        rows = [r for r in self.rankings.values() if group_id is None or r.group_id == group_id]
        return sorted(rows, key=lambda r: (r.group_id, r.rank is None, r.rank or 0, r.session_id))


class FakeCache:
    """Dict-backed stand-in for RedisCache."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    def get(self, key, model):
        data = self.store.get(key)
        return model.model_validate_json(data) if data else None

    def set(self, key, value, ttl_seconds):
        self.store[key] = value.model_dump_json()

    def delete(self, key):
        self.store.pop(key, None)

    def delete_pattern(self, pattern):
        keys = [k for k in self.store if fnmatch.fnmatch(k, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)


# =============================================================================
# SEED DATA
# =============================================================================

def _seed_questions() -> List[Question]:
    return [
        Question(id=101, group_id=1, text="Jumlah penerima manfaat program", input_type=InputType.NUMERIC,
                 is_required=True, section_title="Profil Program", order_number=1, category_id=1),
        Question(id=102, group_id=1, text="Nama program", input_type=InputType.TEXT_SHORT,
                 is_required=True, section_title="Profil Program", order_number=2),
        Question(id=103, group_id=1, text="Catatan tambahan", input_type=InputType.TEXT_OPEN,
                 is_required=False, section_title="Profil Program", order_number=3),
        Question(id=104, group_id=1, text="Jumlah pengusul", input_type=InputType.NUMERIC,
                 is_required=True, section_title="Pengusulan Nominasi", order_number=4),
        Question(id=201, group_id=2, text="Jumlah desa dampingan", input_type=InputType.NUMERIC,
                 is_required=True, section_title="Profil Program", order_number=1, category_id=1),
    ]


def _seed_categories() -> List[Category]:
    return [
        Category(id=1, name="Jumlah Penerima Manfaat", weight=0.2, min_value=0, max_value=100),
    ]


@pytest.fixture
def repos():
    """Fresh in-memory repositories seeded with the questionnaire."""
    sessions = FakeSessionRepository()
    return SimpleNamespace(
        sessions=sessions,
        questions=FakeQuestionRepository(_seed_questions()),
        categories=FakeCategoryRepository(_seed_categories()),
        responses=FakeResponseRepository(),
        reviews=FakeReviewRepository(sessions),
        rankings=FakeRankingRepository(),
        cache=FakeCache(),
    )


@pytest.fixture
def services(repos):
    session_service = SessionService(
        sessions=repos.sessions,
        questions=repos.questions,
        responses=repos.responses,
        reviews=repos.reviews,
        categories=repos.categories,
    )
    calculator = RankingCalculator(
        weights={d: 1 for d in ("relevance", "impact", "inclusivity",
                                "sustainability", "innovation", "presentation")},
        min_score=1,
        max_score=5,
    )
    return SimpleNamespace(
        sessions=session_service,
        responses=ResponseService(session_service, repos.responses),
        reviews=ReviewService(session_service, repos.reviews),
        rankings=RankingService(session_service, repos.rankings, calculator, lambda: repos.cache),
    )


# =============================================================================
# ACTORS
# =============================================================================

@pytest.fixture
def participant():
    return Actor(user_id=10, role=Role.PESERTA, name="Sari")


@pytest.fixture
def other_participant():
    return Actor(user_id=11, role=Role.PESERTA, name="Budi")


@pytest.fixture
def admin():
    return Actor(user_id=1, role=Role.ADMIN, name="Admin Satu")


@pytest.fixture
def juror():
    return Actor(user_id=7, role=Role.JURI, name="Juri A")


@pytest.fixture
def second_juror():
    return Actor(user_id=8, role=Role.JURI, name="Juri B")


def _headers_for(actor: Actor) -> Dict[str, str]:
    headers = {"X-User-Id": str(actor.user_id), "X-User-Role": actor.role.value}
    if actor.name:
        headers["X-User-Name"] = actor.name
    return headers


@pytest.fixture
def headers():
    """Gateway identity headers for an Actor."""
    return _headers_for


# =============================================================================
# SESSION STATE FIXTURES
# =============================================================================

@pytest.fixture
def draft_session(services, participant):
    """Participant 10's freshly started group 1 session."""
    return services.sessions.start(participant, 1)


@pytest.fixture
def complete_answers():
    return [
        {"question_id": 101, "value": 85},
        {"question_id": 102, "value": "Sekolah Lapang Iklim"},
    ]


@pytest.fixture
def submitted_session(services, participant, draft_session, complete_answers):
    services.responses.batch_answer(
        participant, draft_session.id, BatchAnswerRequest(answers=complete_answers)
    )
    services.sessions.submit(participant, draft_session.id)
    return services.sessions.load(draft_session.id)


@pytest.fixture
def jury_session(repos, submitted_session):
    """Submitted session moved straight into jury_scoring."""
    return repos.sessions.update_status(submitted_session.id, SessionStatus.JURY_SCORING)


@pytest.fixture
def set_status(repos):
    """Write a stored status directly, bypassing the lifecycle rules."""
    return lambda session_id, status: repos.sessions.update_status(session_id, status)


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture
def client(repos, services):
    """TestClient with every repository and service swapped for in-memory doubles."""
    overrides = {
        deps.get_session_service: lambda: services.sessions,
        deps.get_response_service: lambda: services.responses,
        deps.get_review_service: lambda: services.reviews,
        deps.get_ranking_service: lambda: services.rankings,
        deps.get_category_repository: lambda: repos.categories,
    }
    app.dependency_overrides.update(overrides)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
