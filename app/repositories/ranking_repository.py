"""
Ranking Repository - Award Assessment Platform
app/repositories/ranking_repository.py

Data access layer for jury rubric scores and derived award rankings.

Tables:
    JURY_SCORES     ID (sequence JURY_SCORE_SEQ), AWARD_RANKING_ID, SESSION_ID,
                    JURY_ID, JURY_NAME, RELEVANCE, IMPACT, INCLUSIVITY,
                    SUSTAINABILITY, INNOVATION, PRESENTATION, COMMENTS,
                    CREATED_AT, UPDATED_AT, UNIQUE (SESSION_ID, JURY_ID)
    AWARD_RANKINGS  ID (sequence AWARD_RANKING_SEQ), SESSION_ID UNIQUE,
                    GROUP_ID, USER_ID, JURY_COUNT, AVG_RELEVANCE, AVG_IMPACT,
                    AVG_INCLUSIVITY, AVG_SUSTAINABILITY, AVG_INNOVATION,
                    AVG_PRESENTATION, OVERALL, RANK, SUBMITTED_AT,
                    CREATED_AT, UPDATED_AT
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import structlog

from app.models.enumerations import RubricDimension
from app.models.ranking import AverageScores, AwardRanking, DimensionScores, JuryScore
from app.repositories.base import BaseRepository

logger = structlog.get_logger(__name__)

DIMENSION_COLUMNS = [d.value.upper() for d in RubricDimension]
AVERAGE_COLUMNS = [f"AVG_{c}" for c in DIMENSION_COLUMNS]

_SCORE_COLUMNS = (
    "ID, AWARD_RANKING_ID, SESSION_ID, JURY_ID, JURY_NAME, "
    + ", ".join(DIMENSION_COLUMNS)
    + ", COMMENTS, CREATED_AT, UPDATED_AT"
)
_RANKING_COLUMNS = (
    "ID, SESSION_ID, GROUP_ID, USER_ID, JURY_COUNT, "
    + ", ".join(AVERAGE_COLUMNS)
    + ", OVERALL, RANK, SUBMITTED_AT, CREATED_AT, UPDATED_AT"
)


class RankingRepository(BaseRepository):
    """Repository for JuryScore and AwardRanking rows."""

    SCORE_SEQUENCE = "JURY_SCORE_SEQ"
    RANKING_SEQUENCE = "AWARD_RANKING_SEQ"

    # ------------------------------------------------------------------
    # Jury scores
    # ------------------------------------------------------------------

    def upsert_jury_score(
        self,
        session_id: int,
        jury_id: int,
        jury_name: Optional[str],
        scores: DimensionScores,
        comments: Optional[str],
    ) -> JuryScore:
        """
        Insert or update the single row of (session, jury) in one MERGE.

        Returns:
            The stored JuryScore
        """
        score_id = self.next_id(self.SCORE_SEQUENCE)
        now = datetime.now(timezone.utc)
        values = [scores.as_dict()[d.value] for d in RubricDimension]
        update_set = ",\n                ".join(f"{c} = %s" for c in DIMENSION_COLUMNS)
        sql = f"""
            MERGE INTO JURY_SCORES t
            USING (SELECT %s AS SESSION_ID, %s AS JURY_ID) s
            ON t.SESSION_ID = s.SESSION_ID AND t.JURY_ID = s.JURY_ID
            WHEN MATCHED THEN UPDATE SET
                {update_set},
                JURY_NAME = COALESCE(%s, t.JURY_NAME),
                COMMENTS = %s,
                UPDATED_AT = %s
            WHEN NOT MATCHED THEN INSERT (
                ID, SESSION_ID, JURY_ID, JURY_NAME, {", ".join(DIMENSION_COLUMNS)},
                COMMENTS, CREATED_AT, UPDATED_AT
            ) VALUES (
                %s, %s, %s, %s, {", ".join(["%s"] * len(DIMENSION_COLUMNS))},
                %s, %s, %s
            )
        """
        params = (
            session_id, jury_id,
            # UPDATE values
            *values, jury_name, comments, now,
            # INSERT values
            score_id, session_id, jury_id, jury_name, *values,
            comments, now, now,
        )
        self.execute_query(sql, params, commit=True)

        row = self.execute_query(
            f"SELECT {_SCORE_COLUMNS} FROM JURY_SCORES WHERE SESSION_ID = %s AND JURY_ID = %s",
            (session_id, jury_id),
            fetch_one=True,
        )
        return self._row_to_jury_score(row)

    def get_jury_score(self, score_id: int) -> Optional[JuryScore]:
        sql = f"SELECT {_SCORE_COLUMNS} FROM JURY_SCORES WHERE ID = %s"
        row = self.execute_query(sql, (score_id,), fetch_one=True)
        return self._row_to_jury_score(row) if row else None

    def list_jury_scores(self, session_id: int) -> List[JuryScore]:
        sql = f"SELECT {_SCORE_COLUMNS} FROM JURY_SCORES WHERE SESSION_ID = %s ORDER BY CREATED_AT, ID"
        rows = self.execute_query(sql, (session_id,), fetch_all=True) or []
        return [self._row_to_jury_score(row) for row in rows]

    # ------------------------------------------------------------------
    # Rankings
    # ------------------------------------------------------------------

    def save_ranking(
        self,
        session_id: int,
        group_id: int,
        user_id: Optional[int],
        submitted_at: Optional[datetime],
        averages: Mapping[str, Decimal],
        overall: Decimal,
        jury_count: int,
    ) -> int:
        """
        Upsert the derived ranking of one submission and link its jury scores.

        Returns:
            AwardRanking id
        """
        now = datetime.now(timezone.utc)
        avg_values = [float(averages[d.value]) for d in RubricDimension]
        update_set = ",\n                    ".join(f"{c} = %s" for c in AVERAGE_COLUMNS)

        with self.transaction() as cursor:
            ranking_id = self.next_id(self.RANKING_SEQUENCE, cursor=cursor)
            sql = f"""
                MERGE INTO AWARD_RANKINGS t
                USING (SELECT %s AS SESSION_ID) s
                ON t.SESSION_ID = s.SESSION_ID
                WHEN MATCHED THEN UPDATE SET
                    {update_set},
                    OVERALL = %s,
                    JURY_COUNT = %s,
                    SUBMITTED_AT = %s,
                    UPDATED_AT = %s
                WHEN NOT MATCHED THEN INSERT (
                    ID, SESSION_ID, GROUP_ID, USER_ID, JURY_COUNT,
                    {", ".join(AVERAGE_COLUMNS)}, OVERALL, SUBMITTED_AT, CREATED_AT, UPDATED_AT
                ) VALUES (
                    %s, %s, %s, %s, %s,
                    {", ".join(["%s"] * len(AVERAGE_COLUMNS))}, %s, %s, %s, %s
                )
            """
            params = (
                session_id,
                # UPDATE values
                *avg_values, float(overall), jury_count, submitted_at, now,
                # INSERT values
                ranking_id, session_id, group_id, user_id, jury_count,
                *avg_values, float(overall), submitted_at, now, now,
            )
            self.execute_query(sql, params, cursor=cursor)

            row = self.execute_query(
                "SELECT ID FROM AWARD_RANKINGS WHERE SESSION_ID = %s",
                (session_id,),
                fetch_one=True,
                cursor=cursor,
            )
            stored_id = row["ID"]
            self.execute_query(
                "UPDATE JURY_SCORES SET AWARD_RANKING_ID = %s WHERE SESSION_ID = %s",
                (stored_id, session_id),
                cursor=cursor,
            )
        return stored_id

    def update_ranks(self, ranks: Mapping[int, int]) -> None:
        """Write rank positions keyed by session id atomically."""
        if not ranks:
            return
        with self.transaction() as cursor:
            for session_id, rank in ranks.items():
                self.execute_query(
                    "UPDATE AWARD_RANKINGS SET RANK = %s WHERE SESSION_ID = %s",
                    (rank, session_id),
                    cursor=cursor,
                )
        logger.debug("ranks_updated", entries=len(ranks))

    def get_ranking(self, ranking_id: int) -> Optional[AwardRanking]:
        sql = f"SELECT {_RANKING_COLUMNS} FROM AWARD_RANKINGS WHERE ID = %s"
        row = self.execute_query(sql, (ranking_id,), fetch_one=True)
        return self._row_to_ranking(row) if row else None

    def get_ranking_by_session(self, session_id: int) -> Optional[AwardRanking]:
        sql = f"SELECT {_RANKING_COLUMNS} FROM AWARD_RANKINGS WHERE SESSION_ID = %s"
        row = self.execute_query(sql, (session_id,), fetch_one=True)
        return self._row_to_ranking(row) if row else None

    def list_rankings(self, group_id: Optional[int] = None) -> List[AwardRanking]:
        """Rankings ordered by nomination, then rank."""
        sql = f"SELECT {_RANKING_COLUMNS} FROM AWARD_RANKINGS"
        params: tuple = ()
        if group_id is not None:
            sql += " WHERE GROUP_ID = %s"
            params = (group_id,)
        sql += " ORDER BY GROUP_ID, RANK NULLS LAST, SESSION_ID"
        rows = self.execute_query(sql, params, fetch_all=True) or []
        return [self._row_to_ranking(row) for row in rows]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _row_to_jury_score(self, row: Dict[str, Any]) -> JuryScore:
        """Convert Snowflake row to JuryScore."""
        return JuryScore(
            id=row["ID"],
            award_ranking_id=row.get("AWARD_RANKING_ID"),
            session_id=row["SESSION_ID"],
            jury_id=row["JURY_ID"],
            jury_name=row.get("JURY_NAME"),
            scores=DimensionScores(**{d.value: float(row[d.value.upper()]) for d in RubricDimension}),
            comments=row.get("COMMENTS"),
            created_at=self.normalize_timestamp(row["CREATED_AT"]),
            updated_at=self.normalize_timestamp(row["UPDATED_AT"]),
        )

    def _row_to_ranking(self, row: Dict[str, Any]) -> AwardRanking:
        """Convert Snowflake row to AwardRanking (without scoring details)."""
        averages = {d.value: float(row[f"AVG_{d.value.upper()}"] or 0) for d in RubricDimension}
        return AwardRanking(
            id=row["ID"],
            session_id=row["SESSION_ID"],
            group_id=row["GROUP_ID"],
            user_id=row.get("USER_ID"),
            jury_count=row["JURY_COUNT"] or 0,
            average_scores=AverageScores(**averages, overall=float(row["OVERALL"] or 0)),
            rank=row.get("RANK"),
            submitted_at=self.normalize_timestamp(row.get("SUBMITTED_AT")),
            created_at=self.normalize_timestamp(row["CREATED_AT"]),
            updated_at=self.normalize_timestamp(row["UPDATED_AT"]),
        )
