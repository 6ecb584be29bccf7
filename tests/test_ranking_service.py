"""
Ranking Service Tests - Award Assessment Platform
tests/test_ranking_service.py

Jury rubric scores, ranking recomputation and the cached leaderboard.
"""
import threading
from datetime import timedelta

import pytest

from app.core.actor import Actor
from app.core.exceptions import (
    EntityNotFoundException,
    InvalidScoreException,
    PermissionDeniedException,
    StateViolationException,
)
from app.models.enumerations import Role, SessionStatus
from app.models.ranking import JuryScoreCreate, JuryScoreUpdate
from app.services.cache import rankings_key
from app.services.ranking_service import KeyedLock, leaderboard_stats

DIMENSIONS = ("relevance", "impact", "inclusivity", "sustainability", "innovation", "presentation")


def _payload(session_id, value, **extra):
    return JuryScoreCreate(session_id=session_id, scores={d: value for d in DIMENSIONS}, **extra)


@pytest.fixture
def nomination(services, repos, set_status):
    """Three participants of group 1, all in jury_scoring, submitted one hour apart."""
    sessions = []
    for offset, user_id in enumerate((21, 22, 23)):
        actor = Actor(user_id=user_id, role=Role.PESERTA)
        detail = services.sessions.start(actor, 1)
        session = repos.sessions.update_status(
            detail.id, SessionStatus.SUBMITTED,
            submitted_at=repos.sessions.get_by_id(detail.id).started_at + timedelta(hours=offset),
        )
        sessions.append(set_status(session.id, SessionStatus.JURY_SCORING))
    return sessions


class TestRecordJuryScore:
    """One row per (session, juror); averages are rebuilt from all rows."""

    def test_two_jurors_average(self, services, juror, second_juror, jury_session):
        services.rankings.record_jury_score(juror, _payload(jury_session.id, 4))
        ranking = services.rankings.record_jury_score(second_juror, _payload(jury_session.id, 2))
        assert ranking.jury_count == 2
        assert ranking.average_scores.relevance == 3.0
        assert ranking.average_scores.overall == 18.0
        assert ranking.rank == 1

    def test_rescoring_replaces_contribution(self, services, repos, juror, second_juror, jury_session):
        services.rankings.record_jury_score(juror, _payload(jury_session.id, 4))
        services.rankings.record_jury_score(second_juror, _payload(jury_session.id, 2))
        ranking = services.rankings.record_jury_score(juror, _payload(jury_session.id, 5))
        assert ranking.jury_count == 2
        assert ranking.average_scores.impact == 3.5
        assert len(repos.rankings.list_jury_scores(jury_session.id)) == 2

    def test_form_field_names(self, services, juror, jury_session):
        payload = JuryScoreCreate.model_validate({
            "sessionId": jury_session.id,
            "scores": {
                "relevansiProgram": 5, "dampakCapaianNyata": 4, "inklusivitas": 3,
                "keberlanjutan": 3, "inovasiPotensiReplikasi": 4, "kualitasPresentasi": 5,
            },
        })
        ranking = services.rankings.record_jury_score(juror, payload)
        assert ranking.average_scores.relevance == 5.0
        assert ranking.average_scores.overall == 24.0

    def test_by_ranking_id(self, services, juror, second_juror, jury_session):
        first = services.rankings.record_jury_score(juror, _payload(jury_session.id, 3))
        again = services.rankings.record_jury_score(
            second_juror, JuryScoreCreate(award_ranking_id=first.id, scores={d: 5 for d in DIMENSIONS})
        )
        assert again.id == first.id
        assert again.jury_count == 2

    def test_out_of_scale_rejected(self, services, repos, juror, jury_session):
        with pytest.raises(InvalidScoreException):
            services.rankings.record_jury_score(juror, _payload(jury_session.id, 6))
        assert repos.rankings.list_jury_scores(jury_session.id) == []

    def test_outside_scoring_window(self, services, juror, submitted_session):
        with pytest.raises(StateViolationException):
            services.rankings.record_jury_score(juror, _payload(submitted_session.id, 3))

    def test_participant_cannot_score(self, services, participant, jury_session):
        with pytest.raises(PermissionDeniedException):
            services.rankings.record_jury_score(participant, _payload(jury_session.id, 3))

    def test_scored_by_requester(self, services, juror, second_juror, jury_session):
        ranking = services.rankings.record_jury_score(juror, _payload(jury_session.id, 3))
        assert ranking.scored_by_requester is True
        assert services.rankings.get_ranking(second_juror, ranking.id).scored_by_requester is False


class TestUpdateJuryScore:
    """PATCH by score id."""

    def test_owner_updates(self, services, repos, juror, jury_session):
        services.rankings.record_jury_score(juror, _payload(jury_session.id, 2))
        score = repos.rankings.list_jury_scores(jury_session.id)[0]
        ranking = services.rankings.update_jury_score(
            juror, score.id, JuryScoreUpdate(scores={d: 4 for d in DIMENSIONS})
        )
        assert ranking.average_scores.sustainability == 4.0

    def test_other_juror_forbidden(self, services, repos, juror, second_juror, jury_session):
        services.rankings.record_jury_score(juror, _payload(jury_session.id, 2))
        score = repos.rankings.list_jury_scores(jury_session.id)[0]
        with pytest.raises(PermissionDeniedException):
            services.rankings.update_jury_score(
                second_juror, score.id, JuryScoreUpdate(scores={d: 4 for d in DIMENSIONS})
            )

    def test_unknown_score(self, services, juror):
        with pytest.raises(EntityNotFoundException):
            services.rankings.update_jury_score(juror, 999, JuryScoreUpdate(scores={d: 4 for d in DIMENSIONS}))


class TestLeaderboard:
    """Ordering, stats and cache invalidation."""

    def test_ties_broken_by_submission_time(self, services, juror, nomination):
        first, second, third = nomination
        services.rankings.record_jury_score(juror, _payload(third.id, 4))
        services.rankings.record_jury_score(juror, _payload(second.id, 3))
        services.rankings.record_jury_score(juror, _payload(first.id, 3))

        board = services.rankings.get_leaderboard(juror, group_id=1)
        ordered = [r.session_id for r in board.nominations[0].rankings]
        assert ordered == [third.id, first.id, second.id]
        assert [r.rank for r in board.nominations[0].rankings] == [1, 2, 3]

    def test_stats(self, services, juror, nomination):
        for session, value in zip(nomination, (5, 3, 1)):
            services.rankings.record_jury_score(juror, _payload(session.id, value))
        stats = services.rankings.get_leaderboard(juror).stats
        assert stats.total_submissions == 3
        assert stats.reviewed_submissions == 3
        assert stats.top_score == 30.0
        assert stats.lowest_score == 6.0
        assert stats.average_score == 18.0

    def test_empty_stats(self):
        assert leaderboard_stats([]).total_submissions == 0

    def test_cached_then_invalidated(self, services, repos, juror, second_juror, nomination):
        services.rankings.record_jury_score(juror, _payload(nomination[0].id, 2))
        services.rankings.get_leaderboard(juror, group_id=1)
        services.rankings.get_leaderboard(juror)
        assert rankings_key(1) in repos.cache.store
        assert rankings_key() in repos.cache.store

        services.rankings.record_jury_score(second_juror, _payload(nomination[1].id, 4))
        assert repos.cache.store == {}
        board = services.rankings.get_leaderboard(second_juror, group_id=1)
        assert board.nominations[0].rankings[0].session_id == nomination[1].id

    def test_requester_flag_applied_after_cache(self, services, juror, second_juror, nomination):
        services.rankings.record_jury_score(juror, _payload(nomination[0].id, 2))
        services.rankings.get_leaderboard(juror)
        cached_for_other = services.rankings.get_leaderboard(second_juror)
        assert cached_for_other.nominations[0].rankings[0].scored_by_requester is False

    def test_participant_cannot_view(self, services, participant):
        with pytest.raises(PermissionDeniedException):
            services.rankings.get_leaderboard(participant)

    def test_works_without_cache(self, services, juror, jury_session):
        services.rankings.cache_factory = lambda: None
        services.rankings.record_jury_score(juror, _payload(jury_session.id, 3))
        assert services.rankings.get_leaderboard(juror).stats.total_submissions == 1


class TestKeyedLock:
    """Same key serializes, different keys do not block each other."""

    def test_same_key_serializes(self):
        locks = KeyedLock()
        inside = []
        overlap = []

        def work():
            with locks.hold(("session", 1)):
                inside.append(1)
                overlap.append(len(inside))
                inside.pop()

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert max(overlap) == 1

    def test_different_keys_independent(self):
        locks = KeyedLock()
        with locks.hold(("session", 1)):
            acquired = threading.Event()

            def other():
                with locks.hold(("session", 2)):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            t.join(timeout=2)
            assert acquired.is_set()

    def test_released_keys_are_dropped(self):
        locks = KeyedLock()
        for session_id in range(50):
            with locks.hold(("session", session_id)):
                assert len(locks) == 1
        assert len(locks) == 0

    def test_lock_kept_while_a_thread_waits(self):
        locks = KeyedLock()
        waiting = threading.Event()
        entered = threading.Event()

        def waiter():
            waiting.set()
            with locks.hold(("session", 1)):
                entered.set()

        with locks.hold(("session", 1)):
            t = threading.Thread(target=waiter)
            t.start()
            waiting.wait(timeout=2)
            assert not entered.wait(timeout=0.1)
            assert len(locks) == 1
        t.join(timeout=2)
        assert entered.is_set()
        assert len(locks) == 0
