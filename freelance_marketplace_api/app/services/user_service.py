"""
Business logic for users.

Users register with an e-mail and password and pick the ``CLIENT`` or
``DEVELOPER`` role.  The first account of a fresh installation becomes
``ADMIN``.  Every user gets an empty profile row at registration so the
profile services can always update in place.
"""

import logging
import sqlite3
from typing import List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.user import UserCreate, UserRead


logger = logging.getLogger(__name__)


def _row_to_user(row) -> UserRead:
    from freelance_marketplace_api.app.core.db import parse_timestamp
    from freelance_marketplace_api.app.core.security import ROLE_NAMES
    return UserRead(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        role=ROLE_NAMES.get(row["role_id"], "UNKNOWN"),
        is_email_verified=bool(row["is_email_verified"]),
        is_deleted=bool(row["is_deleted"]),
        created_at=parse_timestamp(row["created_at"]),
    )


class UserService:
    """Registration, authentication and administration of users."""

    @classmethod
    async def create_user(cls, data: UserCreate) -> UserRead:
        """Create a new user together with an empty profile.

        Raises ``ValidationError`` when the e-mail is taken, the role is
        unknown or someone tries to self-register as ADMIN.
        """
        logger.info("Registering user %s", data.email)
        from freelance_marketplace_api.app.core.db import get_connection
        from freelance_marketplace_api.app.core.security import (
            ROLE_ADMIN,
            ROLE_CLIENT,
            ROLE_DEVELOPER,
            ROLE_IDS,
            hash_password,
        )
        role_name = (data.role or "CLIENT").upper()
        if role_name not in ROLE_IDS:
            raise ValidationError(f"Unknown role: {data.role}")
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT COUNT(*) AS count FROM users").fetchone()
            is_first = row["count"] == 0
            if is_first:
                role_id = ROLE_ADMIN
            elif role_name == "ADMIN":
                raise ValidationError("Cannot self-register as ADMIN")
            else:
                role_id = ROLE_DEVELOPER if role_name == "DEVELOPER" else ROLE_CLIENT
            exists = cursor.execute("SELECT id FROM users WHERE email = ?", (data.email,)).fetchone()
            if exists:
                raise ValidationError("Email already registered")
            cursor.execute(
                "INSERT INTO users (email, full_name, password, role_id) VALUES (?, ?, ?, ?)",
                (data.email, data.full_name, hash_password(data.password), role_id),
            )
            user_id = cursor.lastrowid
            cursor.execute(
                "INSERT INTO profiles (user_id, display_name) VALUES (?, ?)",
                (user_id, data.full_name),
            )
            conn.commit()
            row = cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return _row_to_user(row)
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValidationError("Email already registered") from e
        finally:
            conn.close()

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the user when the credentials match, otherwise ``None``.

        Soft-deleted accounts cannot log in.
        """
        from freelance_marketplace_api.app.core.db import get_connection
        from freelance_marketplace_api.app.core.security import verify_password
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        finally:
            conn.close()
        if not row or row["is_deleted"]:
            return None
        if not verify_password(password, row["password"]):
            logger.warning("Failed login attempt for %s", email)
            return None
        return _row_to_user(row)

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("User not found")
        return _row_to_user(row)

    @classmethod
    async def list_users(cls, include_deleted: bool = False) -> List[UserRead]:
        """Return all users ordered by id."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            query = "SELECT * FROM users"
            if not include_deleted:
                query += " WHERE is_deleted = 0"
            rows = conn.execute(query + " ORDER BY id").fetchall()
            return [_row_to_user(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def delete_user(cls, user_id: int) -> None:
        """Soft delete a user.  Deleted users disappear from search."""
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE users SET is_deleted = 1, updated_at = ? WHERE id = ? AND is_deleted = 0",
                (utc_now(), user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")
            conn.commit()
            logger.info("User %s soft deleted", user_id)
        finally:
            conn.close()

    @classmethod
    async def set_email_verified(cls, user_id: int, verified: bool = True) -> UserRead:
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE users SET is_email_verified = ?, updated_at = ? WHERE id = ?",
                (1 if verified else 0, utc_now(), user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")
            conn.commit()
            row = cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return _row_to_user(row)
        finally:
            conn.close()
