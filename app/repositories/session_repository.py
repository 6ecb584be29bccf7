"""
Session Repository - Award Assessment Platform
app/repositories/session_repository.py

Data access layer for assessment sessions. Stores the lifecycle status as
written by explicit actions; derivation happens in the lifecycle service.

Table: ASSESSMENT_SESSIONS
    ID INT PRIMARY KEY (sequence SESSION_SEQ), USER_ID INT, GROUP_ID INT,
    STATUS VARCHAR(30), STARTED_AT, SUBMITTED_AT, LAST_ACTIVITY_AT
    (TIMESTAMP_TZ), REVIEW_ID INT, UNIQUE (USER_ID, GROUP_ID)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.exceptions import EntityNotFoundException
from app.models.enumerations import SessionStatus
from app.models.session import Session
from app.repositories.base import BaseRepository

_COLUMNS = "ID, USER_ID, GROUP_ID, STATUS, STARTED_AT, SUBMITTED_AT, LAST_ACTIVITY_AT, REVIEW_ID"


class SessionRepository(BaseRepository):
    """Repository for assessment session rows."""

    TABLE_NAME = "ASSESSMENT_SESSIONS"
    SEQUENCE = "SESSION_SEQ"

    def get_by_id(self, session_id: int, cursor: Optional[Any] = None) -> Optional[Session]:
        sql = f"SELECT {_COLUMNS} FROM ASSESSMENT_SESSIONS WHERE ID = %s"
        row = self.execute_query(sql, (session_id,), fetch_one=True, cursor=cursor)
        return self._row_to_session(row) if row else None

    def get_by_user_group(self, user_id: int, group_id: int) -> Optional[Session]:
        sql = f"SELECT {_COLUMNS} FROM ASSESSMENT_SESSIONS WHERE USER_ID = %s AND GROUP_ID = %s"
        row = self.execute_query(sql, (user_id, group_id), fetch_one=True)
        return self._row_to_session(row) if row else None

    def create(self, user_id: int, group_id: int) -> Session:
        """
        Create a draft session for (user, group).

        Args:
            user_id: Participant id
            group_id: Group questionnaire id

        Returns:
            Created Session
        """
        session_id = self.next_id(self.SEQUENCE)
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO ASSESSMENT_SESSIONS (ID, USER_ID, GROUP_ID, STATUS,
                                             STARTED_AT, LAST_ACTIVITY_AT)
            VALUES (%s, %s, %s, %s, %s, %s)
        """
        self.execute_query(
            sql,
            (session_id, user_id, group_id, SessionStatus.DRAFT.value, now, now),
            commit=True,
        )
        return self.get_by_id(session_id)

    def update_status(
        self,
        session_id: int,
        status: SessionStatus,
        submitted_at: Optional[datetime] = None,
        cursor: Optional[Any] = None,
    ) -> Session:
        """
        Write a new stored status; ``submitted_at`` is stamped when given.
        Pass ``cursor`` to take part in an open transaction.

        Raises:
            EntityNotFoundException: unknown session
        """
        now = datetime.now(timezone.utc)
        changes: Dict[str, Any] = {"status": status.value, "last_activity_at": now}
        if submitted_at is not None:
            changes["submitted_at"] = submitted_at
        sql, params = self.build_update_query(self.TABLE_NAME, changes, "ID", session_id)
        updated = self.execute_query(sql, tuple(params), commit=True, cursor=cursor)
        if not updated:
            raise EntityNotFoundException("Session", session_id)
        return self.get_by_id(session_id, cursor=cursor)

    def touch(self, session_id: int) -> None:
        """Record participant activity."""
        sql = "UPDATE ASSESSMENT_SESSIONS SET LAST_ACTIVITY_AT = %s WHERE ID = %s"
        self.execute_query(sql, (datetime.now(timezone.utc), session_id), commit=True)

    def set_review_id(self, session_id: int, review_id: int, cursor: Optional[Any] = None) -> None:
        sql = "UPDATE ASSESSMENT_SESSIONS SET REVIEW_ID = %s WHERE ID = %s AND REVIEW_ID IS NULL"
        self.execute_query(sql, (review_id, session_id), commit=True, cursor=cursor)

    def _row_to_session(self, row: Dict[str, Any]) -> Session:
        """Convert Snowflake row to Session."""
        return Session(
            id=row["ID"],
            user_id=row["USER_ID"],
            group_id=row["GROUP_ID"],
            status=SessionStatus(row["STATUS"]),
            started_at=self.normalize_timestamp(row["STARTED_AT"]),
            submitted_at=self.normalize_timestamp(row.get("SUBMITTED_AT")),
            last_activity_at=self.normalize_timestamp(row["LAST_ACTIVITY_AT"]),
            review_id=row.get("REVIEW_ID"),
        )
