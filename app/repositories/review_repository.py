"""
Review Repository - Award Assessment Platform
app/repositories/review_repository.py

Data access layer for stage reviews, reviewer comments and jury
per-question scores.

Tables:
    REVIEWS          ID (sequence REVIEW_SEQ), SESSION_ID, STAGE, REVIEWER_ID,
                     DECISION, OVERALL_COMMENTS, DELIBERATION_NOTES,
                     INTERNAL_NOTES, VALIDATION_CHECKLIST VARIANT, TOTAL_SCORE,
                     CREATED_AT, UPDATED_AT, UNIQUE (SESSION_ID, STAGE)
    REVIEW_COMMENTS  ID (sequence REVIEW_COMMENT_SEQ), SESSION_ID, REVIEW_ID,
                     QUESTION_ID, COMMENT, IS_CRITICAL, STAGE, IS_RESOLVED,
                     RESOLVED_AT, REVIEWER_NAME, CREATED_AT
    QUESTION_SCORES  SESSION_ID, QUESTION_ID, REVIEWER_ID, REVIEW_ID, SCORE,
                     COMMENTS, UPDATED_AT,
                     PRIMARY KEY (SESSION_ID, QUESTION_ID, REVIEWER_ID)
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog

from app.core.exceptions import EntityNotFoundException
from app.models.enumerations import ReviewDecision, ReviewStage
from app.models.review import CommentCreate, QuestionScore, Review, ReviewComment
from app.repositories.base import BaseRepository

logger = structlog.get_logger(__name__)

_REVIEW_COLUMNS = """
    ID, SESSION_ID, STAGE, REVIEWER_ID, DECISION, OVERALL_COMMENTS,
    DELIBERATION_NOTES, INTERNAL_NOTES, VALIDATION_CHECKLIST, TOTAL_SCORE,
    CREATED_AT, UPDATED_AT
"""

_COMMENT_COLUMNS = """
    ID, SESSION_ID, REVIEW_ID, QUESTION_ID, COMMENT, IS_CRITICAL, STAGE,
    IS_RESOLVED, RESOLVED_AT, REVIEWER_NAME, CREATED_AT
"""


class ReviewRepository(BaseRepository):
    """Repository for reviews, comments and jury question scores."""

    REVIEW_SEQUENCE = "REVIEW_SEQ"
    COMMENT_SEQUENCE = "REVIEW_COMMENT_SEQ"

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def get_review(self, session_id: int, stage: ReviewStage, cursor: Optional[Any] = None) -> Optional[Review]:
        sql = f"SELECT {_REVIEW_COLUMNS} FROM REVIEWS WHERE SESSION_ID = %s AND STAGE = %s"
        row = self.execute_query(sql, (session_id, stage.value), fetch_one=True, cursor=cursor)
        return self._row_to_review(row) if row else None

    def set_total_score(self, review_id: int, total_score: float, cursor: Optional[Any] = None) -> None:
        sql = "UPDATE REVIEWS SET TOTAL_SCORE = %s, UPDATED_AT = %s WHERE ID = %s"
        self.execute_query(
            sql, (total_score, datetime.now(timezone.utc), review_id), commit=True, cursor=cursor
        )

    def _upsert_review(
        self,
        cursor: Any,
        session_id: int,
        stage: ReviewStage,
        reviewer_id: int,
        fields: Dict[str, Any],
    ) -> Review:
        review_id = self.next_id(self.REVIEW_SEQUENCE, cursor=cursor)
        now = datetime.now(timezone.utc)
        decision = fields.get("decision")
        checklist = json.dumps(fields.get("validation_checklist") or [])
        sql = """
            MERGE INTO REVIEWS t
            USING (SELECT %s AS SESSION_ID, %s AS STAGE) s
            ON t.SESSION_ID = s.SESSION_ID AND t.STAGE = s.STAGE
            WHEN MATCHED THEN UPDATE SET
                REVIEWER_ID = %s,
                DECISION = COALESCE(%s, t.DECISION),
                OVERALL_COMMENTS = %s,
                DELIBERATION_NOTES = %s,
                INTERNAL_NOTES = %s,
                VALIDATION_CHECKLIST = PARSE_JSON(%s),
                UPDATED_AT = %s
            WHEN NOT MATCHED THEN INSERT (
                ID, SESSION_ID, STAGE, REVIEWER_ID, DECISION, OVERALL_COMMENTS,
                DELIBERATION_NOTES, INTERNAL_NOTES, VALIDATION_CHECKLIST,
                CREATED_AT, UPDATED_AT
            ) VALUES (
                %s, %s, %s, %s, %s, %s,
                %s, %s, PARSE_JSON(%s),
                %s, %s
            )
        """
        decision_value = decision.value if isinstance(decision, ReviewDecision) else decision
        params = (
            session_id, stage.value,
            # UPDATE values
            reviewer_id, decision_value, fields.get("overall_comments", ""),
            fields.get("deliberation_notes", ""), fields.get("internal_notes", ""),
            checklist, now,
            # INSERT values
            review_id, session_id, stage.value, reviewer_id, decision_value,
            fields.get("overall_comments", ""), fields.get("deliberation_notes", ""),
            fields.get("internal_notes", ""), checklist,
            now, now,
        )
        self.execute_query(sql, params, cursor=cursor)
        return self.get_review(session_id, stage, cursor=cursor)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get_comment(self, comment_id: int) -> Optional[ReviewComment]:
        sql = f"SELECT {_COMMENT_COLUMNS} FROM REVIEW_COMMENTS WHERE ID = %s"
        row = self.execute_query(sql, (comment_id,), fetch_one=True)
        return self._row_to_comment(row) if row else None

    def list_comments(
        self,
        session_id: int,
        stage: Optional[ReviewStage] = None,
        cursor: Optional[Any] = None,
    ) -> List[ReviewComment]:
        """
        Comments of a session ordered by creation time, then id.

        Args:
            session_id: Session identifier
            stage: Optional stage filter
        """
        sql = f"SELECT {_COMMENT_COLUMNS} FROM REVIEW_COMMENTS WHERE SESSION_ID = %s"
        params: List[Any] = [session_id]
        if stage is not None:
            sql += " AND STAGE = %s"
            params.append(stage.value)
        sql += " ORDER BY CREATED_AT, ID"
        rows = self.execute_query(sql, tuple(params), fetch_all=True, cursor=cursor) or []
        return [self._row_to_comment(row) for row in rows]

    def insert_comment(
        self,
        session_id: int,
        review_id: Optional[int],
        entry: CommentCreate,
        reviewer_name: Optional[str],
        cursor: Optional[Any] = None,
    ) -> ReviewComment:
        """Append one comment row."""
        comment_id = self.next_id(self.COMMENT_SEQUENCE, cursor=cursor)
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO REVIEW_COMMENTS (ID, SESSION_ID, REVIEW_ID, QUESTION_ID, COMMENT,
                                         IS_CRITICAL, STAGE, IS_RESOLVED, REVIEWER_NAME, CREATED_AT)
            VALUES (%s, %s, %s, %s, %s, %s, %s, FALSE, %s, %s)
        """
        params = (
            comment_id, session_id, review_id, entry.question_id, entry.comment,
            entry.is_critical, entry.stage.value, reviewer_name, now,
        )
        self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return ReviewComment(
            id=comment_id,
            session_id=session_id,
            review_id=review_id,
            question_id=entry.question_id,
            comment=entry.comment,
            is_critical=entry.is_critical,
            stage=entry.stage,
            reviewer_name=reviewer_name,
            created_at=now,
        )

    def resolve_comment(self, comment_id: int) -> ReviewComment:
        """
        Mark a comment resolved. Resolving a resolved comment changes nothing.

        Raises:
            EntityNotFoundException: unknown comment
        """
        sql = """
            UPDATE REVIEW_COMMENTS
            SET IS_RESOLVED = TRUE, RESOLVED_AT = %s
            WHERE ID = %s AND IS_RESOLVED = FALSE
        """
        self.execute_query(sql, (datetime.now(timezone.utc), comment_id), commit=True)
        comment = self.get_comment(comment_id)
        if comment is None:
            raise EntityNotFoundException("ReviewComment", comment_id)
        return comment

    def resolve_open_critical(self, session_id: int) -> List[int]:
        """Resolve every open critical admin_validation comment; return their ids."""
        with self.transaction() as cursor:
            rows = self.execute_query(
                """
                SELECT ID FROM REVIEW_COMMENTS
                WHERE SESSION_ID = %s AND STAGE = %s AND IS_CRITICAL = TRUE AND IS_RESOLVED = FALSE
                """,
                (session_id, ReviewStage.ADMIN_VALIDATION.value),
                fetch_all=True,
                cursor=cursor,
            ) or []
            ids = [row["ID"] for row in rows]
            if ids:
                placeholders = ", ".join(["%s"] * len(ids))
                self.execute_query(
                    f"UPDATE REVIEW_COMMENTS SET IS_RESOLVED = TRUE, RESOLVED_AT = %s WHERE ID IN ({placeholders})",
                    (datetime.now(timezone.utc), *ids),
                    cursor=cursor,
                )
        return ids

    # ------------------------------------------------------------------
    # Jury question scores
    # ------------------------------------------------------------------

    def list_question_scores(self, session_id: int, reviewer_id: Optional[int] = None) -> List[QuestionScore]:
        sql = """
            SELECT SESSION_ID, QUESTION_ID, REVIEWER_ID, REVIEW_ID, SCORE, COMMENTS, UPDATED_AT
            FROM QUESTION_SCORES
            WHERE SESSION_ID = %s
        """
        params: List[Any] = [session_id]
        if reviewer_id is not None:
            sql += " AND REVIEWER_ID = %s"
            params.append(reviewer_id)
        sql += " ORDER BY QUESTION_ID, REVIEWER_ID"
        rows = self.execute_query(sql, tuple(params), fetch_all=True) or []
        return [
            QuestionScore(
                session_id=row["SESSION_ID"],
                question_id=row["QUESTION_ID"],
                reviewer_id=row["REVIEWER_ID"],
                review_id=row.get("REVIEW_ID"),
                score=float(row["SCORE"]),
                comments=row.get("COMMENTS"),
                updated_at=self.normalize_timestamp(row["UPDATED_AT"]),
            )
            for row in rows
        ]

    def _upsert_question_score(self, cursor: Any, score: QuestionScore) -> None:
        sql = """
            MERGE INTO QUESTION_SCORES t
            USING (SELECT %s AS SESSION_ID, %s AS QUESTION_ID, %s AS REVIEWER_ID) s
            ON t.SESSION_ID = s.SESSION_ID AND t.QUESTION_ID = s.QUESTION_ID
               AND t.REVIEWER_ID = s.REVIEWER_ID
            WHEN MATCHED THEN UPDATE SET
                SCORE = %s, COMMENTS = %s, REVIEW_ID = %s, UPDATED_AT = %s
            WHEN NOT MATCHED THEN INSERT (
                SESSION_ID, QUESTION_ID, REVIEWER_ID, REVIEW_ID, SCORE, COMMENTS, UPDATED_AT
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        s = score
        params = (
            s.session_id, s.question_id, s.reviewer_id,
            s.score, s.comments, s.review_id, s.updated_at,
            s.session_id, s.question_id, s.reviewer_id, s.review_id, s.score, s.comments, s.updated_at,
        )
        self.execute_query(sql, params, cursor=cursor)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def save_batch(
        self,
        session_id: int,
        stage: ReviewStage,
        reviewer_id: int,
        reviewer_name: Optional[str],
        fields: Dict[str, Any],
        new_comments: List[CommentCreate],
        question_scores: List[QuestionScore],
        cursor: Optional[Any] = None,
    ) -> Tuple[Review, List[ReviewComment]]:
        """
        Persist a batch review in one transaction.

        Upserts the stage review, appends ``new_comments`` and upserts the
        juror's question scores. Nothing persists if any statement fails.
        Without ``cursor`` the batch opens its own transaction; with one it
        joins the caller's, which commits or rolls back.

        Returns:
            (review, full comment list of the session after the merge)
        """
        if cursor is None:
            with self.transaction() as tx:
                return self.save_batch(
                    session_id, stage, reviewer_id, reviewer_name, fields,
                    new_comments, question_scores, cursor=tx,
                )

        review = self._upsert_review(cursor, session_id, stage, reviewer_id, fields)
        for entry in new_comments:
            self.insert_comment(session_id, review.id, entry, reviewer_name, cursor=cursor)
        for score in question_scores:
            self._upsert_question_score(cursor, score.model_copy(update={"review_id": review.id}))
        comments = self.list_comments(session_id, cursor=cursor)

        logger.info(
            "review_batch_saved",
            session_id=session_id,
            stage=stage.value,
            review_id=review.id,
            added_comments=len(new_comments),
            question_scores=len(question_scores),
        )
        return review, comments

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _row_to_review(self, row: Dict[str, Any]) -> Review:
        """Convert Snowflake row to Review."""
        checklist = row.get("VALIDATION_CHECKLIST") or []
        if isinstance(checklist, str):
            checklist = json.loads(checklist)
        return Review(
            id=row["ID"],
            session_id=row["SESSION_ID"],
            stage=ReviewStage(row["STAGE"]),
            reviewer_id=row.get("REVIEWER_ID"),
            decision=ReviewDecision(row["DECISION"]) if row.get("DECISION") else None,
            overall_comments=row.get("OVERALL_COMMENTS") or "",
            deliberation_notes=row.get("DELIBERATION_NOTES") or "",
            internal_notes=row.get("INTERNAL_NOTES") or "",
            validation_checklist=checklist,
            total_score=float(row["TOTAL_SCORE"]) if row.get("TOTAL_SCORE") is not None else None,
            created_at=self.normalize_timestamp(row["CREATED_AT"]),
            updated_at=self.normalize_timestamp(row["UPDATED_AT"]),
        )

    def _row_to_comment(self, row: Dict[str, Any]) -> ReviewComment:
        """Convert Snowflake row to ReviewComment."""
        return ReviewComment(
            id=row["ID"],
            session_id=row["SESSION_ID"],
            review_id=row.get("REVIEW_ID"),
            question_id=row["QUESTION_ID"],
            comment=row["COMMENT"],
            is_critical=bool(row["IS_CRITICAL"]),
            stage=ReviewStage(row["STAGE"]),
            is_resolved=bool(row["IS_RESOLVED"]),
            resolved_at=self.normalize_timestamp(row.get("RESOLVED_AT")),
            reviewer_name=row.get("REVIEWER_NAME"),
            created_at=self.normalize_timestamp(row["CREATED_AT"]),
        )
