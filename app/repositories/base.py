"""
Base Repository - Award Assessment Platform
app/repositories/base.py

Base repository class with Snowflake connection management and common utilities.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Tuple

import snowflake.connector
import structlog
from snowflake.connector import DictCursor
from snowflake.connector.errors import DatabaseError, InterfaceError, OperationalError, ProgrammingError

from app.core.exceptions import (
    DatabaseConnectionException,
    DuplicateEntityException,
    ForeignKeyViolationException,
    RepositoryException,
)
from app.services.snowflake import get_snowflake_connection

logger = structlog.get_logger(__name__)


class BaseRepository:
    """Base repository with Snowflake connection management."""

    @contextmanager
    def get_connection(self) -> Generator[snowflake.connector.SnowflakeConnection, None, None]:
        """Context manager for Snowflake connections."""
        try:
            conn = get_snowflake_connection()
        except (InterfaceError, DatabaseError) as e:
            raise DatabaseConnectionException(f"Failed to connect to Snowflake: {e}")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def get_cursor(self, dict_cursor: bool = True) -> Generator[Any, None, None]:
        """Context manager for Snowflake cursors with automatic connection cleanup."""
        with self.get_connection() as conn:
            cursor = conn.cursor(DictCursor) if dict_cursor else conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    @contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        """
        Run several statements atomically on one connection.

        Yields a DictCursor; pass it as ``cursor=`` to execute_query. COMMIT
        on normal exit, ROLLBACK on any exception (which is re-raised).
        """
        with self.get_cursor() as cursor:
            cursor.execute("BEGIN")
            try:
                yield cursor
            except Exception:
                cursor.execute("ROLLBACK")
                logger.warning("transaction_rolled_back", repository=type(self).__name__)
                raise
            cursor.execute("COMMIT")

    def execute_query(
        self,
        sql: str,
        params: Optional[tuple] = None,
        fetch_one: bool = False,
        fetch_all: bool = False,
        commit: bool = False,
        cursor: Optional[Any] = None,
    ) -> Optional[Any]:
        """
        Execute a SQL query with error handling.

        Args:
            sql: SQL query string
            params: Query parameters
            fetch_one: Return single row
            fetch_all: Return all rows
            commit: Commit transaction after execution (ignored inside a transaction)
            cursor: Cursor of an open transaction() block

        Returns:
            Query results or None
        """
        if cursor is not None:
            return self._run(cursor, sql, params, fetch_one, fetch_all, commit=False)
        with self.get_cursor() as own_cursor:
            return self._run(own_cursor, sql, params, fetch_one, fetch_all, commit)

    def _run(self, cursor, sql, params, fetch_one, fetch_all, commit):
        try:
            cursor.execute(sql, params or ())

            if commit:
                cursor.connection.commit()

            if fetch_one:
                return cursor.fetchone()
            elif fetch_all:
                return cursor.fetchall()

            return cursor.rowcount

        except ProgrammingError as e:
            error_msg = str(e).upper()
            if "UNIQUE" in error_msg or "DUPLICATE" in error_msg:
                raise DuplicateEntityException(str(e))
            elif "FOREIGN KEY" in error_msg:
                raise ForeignKeyViolationException(str(e))
            raise RepositoryException(f"Query error: {e}")
        except (InterfaceError, OperationalError) as e:
            raise DatabaseConnectionException(f"Lost connection to Snowflake: {e}")
        except DatabaseError as e:
            raise RepositoryException(f"Database error: {e}")

    def next_id(self, sequence: str, cursor: Optional[Any] = None) -> int:
        """Draw the next identifier from a Snowflake sequence."""
        row = self.execute_query(f"SELECT {sequence}.NEXTVAL AS ID", fetch_one=True, cursor=cursor)
        return int(row["ID"])

    def normalize_timestamp(self, dt: Optional[datetime]) -> Optional[datetime]:
        """Ensure timestamp is UTC-aware."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def build_update_query(
        self,
        table_name: str,
        changes: Dict[str, Any],
        where_column: str,
        where_value: Any,
    ) -> Tuple[str, List[Any]]:
        """UPDATE statement setting each key of ``changes`` (column names are upper-cased)."""
        assignments = ", ".join(f"{column.upper()} = %s" for column in changes)
        sql = f"UPDATE {table_name} SET {assignments} WHERE {where_column} = %s"
        return sql, [*changes.values(), where_value]
