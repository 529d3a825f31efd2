"""
Job event log.

Budget, milestone, payment and notification actions are recorded in
the ``job_events`` table so that the history of a job can be inspected
later.  ``job_id`` may be ``None`` for events without a job context.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from freelance_marketplace_api.app.core.db import from_json, get_connection, parse_timestamp, to_json
from freelance_marketplace_api.app.schemas.job import JobEventRead


class JobEventService:
    """Service class for writing and retrieving job events."""

    @classmethod
    async def record(
        cls,
        job_id: Optional[int],
        event_type: str,
        event_data: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None,
    ) -> int:
        """Insert a new job event and return its id.

        Parameters
        ----------
        job_id : Optional[int]
            Job the event belongs to.
        event_type : str
            Upper-case event name (e.g. ``BUDGET_CREATED``).
        event_data : Optional[dict]
            Structured payload, stored as JSON.
        user_id : Optional[int]
            User who triggered the event, ``None`` for system actions.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO job_events (job_id, event_type, event_data, user_id)
                VALUES (?, ?, ?, ?)
                """,
                (job_id, event_type, to_json(event_data), user_id),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    @classmethod
    async def list_events(
        cls,
        job_id: Optional[int] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[JobEventRead]:
        """Retrieve job events, newest first, with optional filters."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            where_clauses: List[str] = []
            params: List[Any] = []
            if job_id is not None:
                where_clauses.append("job_id = ?")
                params.append(job_id)
            if event_type:
                where_clauses.append("event_type = ?")
                params.append(event_type)
            query = "SELECT id, job_id, event_type, event_data, user_id, created_at FROM job_events"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = cursor.execute(query, tuple(params)).fetchall()
            return [
                JobEventRead(
                    id=row["id"],
                    job_id=row["job_id"],
                    event_type=row["event_type"],
                    event_data=from_json(row["event_data"]),
                    user_id=row["user_id"],
                    created_at=parse_timestamp(row["created_at"]),
                )
                for row in rows
            ]
        finally:
            conn.close()
