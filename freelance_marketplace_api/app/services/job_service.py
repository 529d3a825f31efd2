"""
Business logic for jobs.

A job is posted by a client and carries at most one budget.  Only the
fields the budget and notification services need are modelled here.
"""

import logging
from typing import List, Optional

from ..core.exceptions import NotFoundError
from ..schemas.job import JobCreate, JobRead


logger = logging.getLogger(__name__)


class JobService:
    """Create and look up jobs."""

    @staticmethod
    def _row_to_job(row) -> JobRead:
        from freelance_marketplace_api.app.core.db import parse_timestamp
        return JobRead(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            client_id=row["client_id"],
            status=row["status"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    @classmethod
    async def create_job(cls, data: JobCreate, client_id: Optional[int]) -> JobRead:
        logger.info("User %s is creating job '%s'", client_id, data.title)
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO jobs (title, description, client_id) VALUES (?, ?, ?)",
                (data.title, data.description, client_id),
            )
            job_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
            return cls._row_to_job(row)
        finally:
            conn.close()

    @classmethod
    async def get_job(cls, job_id: int) -> JobRead:
        """Return a job or raise ``NotFoundError('Job not found')``."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Job not found")
        return cls._row_to_job(row)

    @classmethod
    async def list_jobs(
        cls,
        client_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[JobRead]:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            query = "SELECT * FROM jobs"
            params: list = []
            where_clauses: list[str] = []
            if client_id is not None:
                where_clauses.append("client_id = ?")
                params.append(client_id)
            if status:
                where_clauses.append("status = ?")
                params.append(status)
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = conn.execute(query, tuple(params)).fetchall()
            return [cls._row_to_job(row) for row in rows]
        finally:
            conn.close()
