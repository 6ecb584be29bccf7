"""
Response Repository - Award Assessment Platform
app/repositories/response_repository.py

Data access layer for participant answers.

Table: RESPONSES
    SESSION_ID INT, QUESTION_ID INT, VALUE VARIANT (tagged ResponseValue JSON),
    IS_DRAFT BOOLEAN, IS_COMPLETE BOOLEAN, IS_SKIPPED BOOLEAN,
    AUTO_SAVE_VERSION INT, TIME_SPENT_SECONDS INT, FIRST_ANSWERED_AT,
    LAST_MODIFIED_AT, FINALIZED_AT (TIMESTAMP_TZ),
    PRIMARY KEY (SESSION_ID, QUESTION_ID)
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter

from app.models.response import Response, ResponseValue
from app.repositories.base import BaseRepository

_COLUMNS = """
    SESSION_ID, QUESTION_ID, VALUE, IS_DRAFT, IS_COMPLETE, IS_SKIPPED,
    AUTO_SAVE_VERSION, TIME_SPENT_SECONDS, FIRST_ANSWERED_AT,
    LAST_MODIFIED_AT, FINALIZED_AT
"""

_VALUE_ADAPTER = TypeAdapter(ResponseValue)


class ResponseRepository(BaseRepository):
    """Repository for Response upserts and reads."""

    TABLE_NAME = "RESPONSES"

    def get(self, session_id: int, question_id: int) -> Optional[Response]:
        sql = f"SELECT {_COLUMNS} FROM RESPONSES WHERE SESSION_ID = %s AND QUESTION_ID = %s"
        row = self.execute_query(sql, (session_id, question_id), fetch_one=True)
        return self._row_to_response(row) if row else None

    def list_by_session(self, session_id: int) -> List[Response]:
        sql = f"SELECT {_COLUMNS} FROM RESPONSES WHERE SESSION_ID = %s ORDER BY QUESTION_ID"
        rows = self.execute_query(sql, (session_id,), fetch_all=True) or []
        return [self._row_to_response(row) for row in rows]

    def upsert(self, response: Response, cursor: Optional[Any] = None) -> bool:
        """
        Insert or update one response.

        The update branch only fires when the stored AUTO_SAVE_VERSION is
        older than the incoming one, so a replayed write is a no-op.

        Returns:
            True when a row was written
        """
        value_json = response.value.model_dump_json() if response.value is not None else None
        sql = """
            MERGE INTO RESPONSES t
            USING (SELECT %s AS SESSION_ID, %s AS QUESTION_ID) s
            ON t.SESSION_ID = s.SESSION_ID AND t.QUESTION_ID = s.QUESTION_ID
            WHEN MATCHED AND t.AUTO_SAVE_VERSION < %s THEN UPDATE SET
                VALUE = PARSE_JSON(%s),
                IS_DRAFT = %s,
                IS_COMPLETE = %s,
                IS_SKIPPED = %s,
                AUTO_SAVE_VERSION = %s,
                TIME_SPENT_SECONDS = %s,
                FIRST_ANSWERED_AT = COALESCE(t.FIRST_ANSWERED_AT, %s),
                LAST_MODIFIED_AT = %s,
                FINALIZED_AT = COALESCE(%s, t.FINALIZED_AT)
            WHEN NOT MATCHED THEN INSERT (
                SESSION_ID, QUESTION_ID, VALUE, IS_DRAFT, IS_COMPLETE, IS_SKIPPED,
                AUTO_SAVE_VERSION, TIME_SPENT_SECONDS, FIRST_ANSWERED_AT,
                LAST_MODIFIED_AT, FINALIZED_AT
            ) VALUES (
                %s, %s, PARSE_JSON(%s), %s, %s, %s,
                %s, %s, %s,
                %s, %s
            )
        """
        r = response
        params = (
            r.session_id, r.question_id,
            # UPDATE values
            r.auto_save_version,
            value_json, r.is_draft, r.is_complete, r.is_skipped,
            r.auto_save_version, r.time_spent_seconds, r.first_answered_at,
            r.last_modified_at, r.finalized_at,
            # INSERT values
            r.session_id, r.question_id, value_json, r.is_draft, r.is_complete, r.is_skipped,
            r.auto_save_version, r.time_spent_seconds, r.first_answered_at,
            r.last_modified_at, r.finalized_at,
        )
        written = self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return bool(written)

    def upsert_many(self, responses: List[Response]) -> int:
        """Write a section save atomically. Returns the number of rows written."""
        written = 0
        with self.transaction() as cursor:
            for response in responses:
                written += int(self.upsert(response, cursor=cursor))
        return written

    def _row_to_response(self, row: Dict[str, Any]) -> Response:
        """Convert Snowflake row to Response."""
        raw_value = row.get("VALUE")
        if isinstance(raw_value, str):
            raw_value = json.loads(raw_value)
        return Response(
            session_id=row["SESSION_ID"],
            question_id=row["QUESTION_ID"],
            value=_VALUE_ADAPTER.validate_python(raw_value) if raw_value else None,
            is_draft=bool(row["IS_DRAFT"]),
            is_complete=bool(row["IS_COMPLETE"]),
            is_skipped=bool(row["IS_SKIPPED"]),
            auto_save_version=row["AUTO_SAVE_VERSION"] or 0,
            time_spent_seconds=row["TIME_SPENT_SECONDS"] or 0,
            first_answered_at=self.normalize_timestamp(row.get("FIRST_ANSWERED_AT")),
            last_modified_at=self.normalize_timestamp(row["LAST_MODIFIED_AT"]),
            finalized_at=self.normalize_timestamp(row.get("FINALIZED_AT")),
        )
