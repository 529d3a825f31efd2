"""
Business logic for user profiles.

Every user owns one row in ``profiles``.  Common fields can be updated
by anyone; the developer, client and admin subsets only by users of the
matching role.  Nested objects are stored as JSON with the camelCase
keys of the API models, so the stored document and the API response
have the same shape.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.profile import (
    AdminProfileUpdate,
    ClientProfileUpdate,
    DeveloperProfileUpdate,
    MyProfile,
    ProfileData,
    ProfileUpdate,
)


logger = logging.getLogger(__name__)


COMMON_FIELDS = ["display_name", "bio", "profile_picture_url", "chat_last_read_at"]
DEVELOPER_FIELDS = [
    "skills", "experience", "hourly_rate", "currency", "availability",
    "portfolio_links", "education", "work_preferences", "location", "contact_email", "contact_phone",
]
CLIENT_FIELDS = [
    "company_name", "company_website", "company_size", "industry", "company_description",
    "contact_person", "contact_email", "contact_phone", "location", "billing_address",
    "project_preferences", "social_links",
]
ADMIN_FIELDS = [
    "company_name", "system_role", "permissions", "last_system_access", "admin_preferences", "contact_email",
]
ALL_FIELDS = list(dict.fromkeys(COMMON_FIELDS + DEVELOPER_FIELDS + CLIENT_FIELDS + ADMIN_FIELDS))

ROLE_FIELDS = {
    "DEVELOPER": DEVELOPER_FIELDS,
    "CLIENT": CLIENT_FIELDS,
    "ADMIN": ADMIN_FIELDS,
}

# Columns holding JSON documents
JSON_COLUMNS = {
    "skills", "availability", "portfolio_links", "education", "work_preferences",
    "location", "billing_address", "project_preferences", "social_links",
    "permissions", "admin_preferences",
}
TIMESTAMP_COLUMNS = {"chat_last_read_at", "last_system_access"}

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2,3}$")
POSTAL_CODE_RE = re.compile(r"^[0-9A-Za-z\- ]{3,10}$")


def is_url(value: str) -> bool:
    """Accept absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def row_to_profile_data(row, fields: Optional[List[str]] = None) -> ProfileData:
    """Decode a ``profiles`` row into ``ProfileData``.

    Only ``fields`` are set on the model (all columns when omitted) so
    that ``exclude_unset`` serialisation hides the other roles' fields.
    """
    from freelance_marketplace_api.app.core.db import from_json, parse_timestamp
    fields = fields or ALL_FIELDS
    values: Dict[str, Any] = {}
    for field in fields:
        value = row[field] if row is not None else None
        if field in JSON_COLUMNS:
            value = from_json(value)
        elif field in TIMESTAMP_COLUMNS:
            value = parse_timestamp(value)
        values[field] = value
    return ProfileData(**values)


def profile_to_document(row) -> Dict[str, Any]:
    """Full profile as a camelCase dict, the shape completion checks expect."""
    return row_to_profile_data(row).model_dump(by_alias=True, mode="json")


def _dump(value: Any) -> Any:
    """Convert pydantic models (and lists of them) into JSON-ready data."""
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True, exclude_none=True, mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class ProfileService:
    """Read and update user profiles."""

    @staticmethod
    def _get_user_row(cursor, user_id: int):
        return cursor.execute(
            "SELECT id, email, role_id FROM users WHERE id = ? AND is_deleted = 0", (user_id,)
        ).fetchone()

    @staticmethod
    def _write_fields(cursor, user_id: int, values: Dict[str, Any]) -> None:
        """Persist ``values`` on the user's profile row, creating it if needed."""
        from freelance_marketplace_api.app.core.db import to_db_timestamp, to_json, utc_now
        cursor.execute("INSERT OR IGNORE INTO profiles (user_id) VALUES (?)", (user_id,))
        if not values:
            return
        set_clauses: List[str] = []
        params: List[Any] = []
        for field, value in values.items():
            if field in JSON_COLUMNS:
                value = to_json(value)
            elif field in TIMESTAMP_COLUMNS:
                value = to_db_timestamp(value)
            set_clauses.append(f"{field} = ?")
            params.append(value)
        set_clauses.append("updated_at = ?")
        params.extend([utc_now(), user_id])
        cursor.execute(
            f"UPDATE profiles SET {', '.join(set_clauses)} WHERE user_id = ?",
            tuple(params),
        )

    @classmethod
    async def _require_role(cls, cursor, user_id: int, role: str, message: str):
        from freelance_marketplace_api.app.core.security import ROLE_NAMES
        user = cls._get_user_row(cursor, user_id)
        if not user or ROLE_NAMES.get(user["role_id"]) != role:
            raise ValidationError(message)
        return user

    @classmethod
    async def update_profile(cls, user_id: int, data: ProfileUpdate) -> MyProfile:
        """Update the common profile fields of any user."""
        from freelance_marketplace_api.app.core.db import get_connection
        if data.profile_picture_url and not is_url(data.profile_picture_url):
            raise ValidationError("Invalid profile picture URL format")
        if data.display_name is not None and len(data.display_name.strip()) < 2:
            raise ValidationError("Display name must be at least 2 characters")
        if data.bio and len(data.bio.strip()) > 500:
            raise ValidationError("Bio must be 500 characters or less")

        values = data.model_dump(exclude_unset=True)
        if values.get("display_name"):
            values["display_name"] = values["display_name"].strip()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cls._get_user_row(cursor, user_id):
                raise NotFoundError("User not found")
            cls._write_fields(cursor, user_id, values)
            conn.commit()
        finally:
            conn.close()
        logger.info("Profile of user %s updated: %s", user_id, sorted(values))
        return await cls.get_my_profile(user_id)

    @classmethod
    async def update_developer_profile(cls, user_id: int, data: DeveloperProfileUpdate) -> MyProfile:
        """Update developer fields.  Fields that are not sent are left untouched."""
        from freelance_marketplace_api.app.core.db import from_json, get_connection
        links = data.portfolio_links
        if links:
            for url in (links.github, links.linkedin, links.website, links.x):
                if url and not is_url(url):
                    raise ValidationError(f"Invalid URL in portfolio links: {url}")
            for link in links.custom_links or []:
                if not is_url(link.url):
                    raise ValidationError(f"Invalid custom link URL: {link.url}")

        values = {field: _dump(getattr(data, field)) for field in data.model_fields_set}
        values = {field: value for field, value in values.items() if value is not None}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            await cls._require_role(cursor, user_id, "DEVELOPER", "User is not a Developer or does not exist")
            if "education" in values:
                # Certifications are managed separately and survive education edits
                row = cursor.execute("SELECT education FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
                current = from_json(row["education"], {}) if row else {}
                if current.get("certifications"):
                    values["education"]["certifications"] = current["certifications"]
            cls._write_fields(cursor, user_id, values)
            conn.commit()
        finally:
            conn.close()
        logger.info("Developer profile of user %s updated: %s", user_id, sorted(values))
        return await cls.get_my_profile(user_id)

    @classmethod
    async def update_client_profile(cls, user_id: int, data: ClientProfileUpdate) -> MyProfile:
        from freelance_marketplace_api.app.core.db import get_connection
        if data.company_website and not is_url(data.company_website):
            raise ValidationError("Invalid company website URL")
        if data.billing_address:
            country, postal_code = data.billing_address.country, data.billing_address.postal_code
            if country and not COUNTRY_CODE_RE.match(country):
                raise ValidationError("Country must be 2-3 uppercase letters (ISO code)")
            if postal_code and not POSTAL_CODE_RE.match(postal_code):
                raise ValidationError(
                    "Postal code must be 3-10 characters and alphanumeric with dashes/spaces allowed"
                )
        if data.social_links:
            for link in data.social_links.custom_links or []:
                if not is_url(link.url):
                    raise ValidationError(f"Invalid custom link URL: {link.url}")

        values = {field: _dump(getattr(data, field)) for field in data.model_fields_set}
        values = {field: value for field, value in values.items() if value is not None}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            await cls._require_role(cursor, user_id, "CLIENT", "User is not a client or does not exist")
            cls._write_fields(cursor, user_id, values)
            conn.commit()
        finally:
            conn.close()
        logger.info("Client profile of user %s updated: %s", user_id, sorted(values))
        return await cls.get_my_profile(user_id)

    @classmethod
    async def update_admin_profile(cls, user_id: int, data: AdminProfileUpdate) -> MyProfile:
        """Update admin fields.  Unset preference keys are dropped, not nulled."""
        from freelance_marketplace_api.app.core.db import get_connection
        values = {field: getattr(data, field) for field in data.model_fields_set}
        values = {field: value for field, value in values.items() if value is not None}
        if "admin_preferences" in values:
            # exclude_none prunes nested notification settings as well
            values["admin_preferences"] = _dump(values["admin_preferences"])
        conn = get_connection()
        try:
            cursor = conn.cursor()
            await cls._require_role(cursor, user_id, "ADMIN", "User is not an admin or does not exist")
            cls._write_fields(cursor, user_id, values)
            conn.commit()
        finally:
            conn.close()
        logger.info("Admin profile of user %s updated: %s", user_id, sorted(values))
        return await cls.get_my_profile(user_id)

    @classmethod
    async def get_my_profile(cls, user_id: int) -> MyProfile:
        """Return the common fields plus the subset belonging to the user's role."""
        from freelance_marketplace_api.app.core.db import get_connection
        from freelance_marketplace_api.app.core.security import ROLE_NAMES
        conn = get_connection()
        try:
            cursor = conn.cursor()
            user = cls._get_user_row(cursor, user_id)
            if not user:
                raise NotFoundError("User not found")
            row = cursor.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        role = ROLE_NAMES.get(user["role_id"], "UNKNOWN")
        fields = COMMON_FIELDS + ROLE_FIELDS.get(role, [])
        return MyProfile(
            user_id=user["id"],
            email=user["email"],
            role=role,
            profile=row_to_profile_data(row, fields),
        )

    @classmethod
    async def get_profile_document(cls, user_id: int) -> Optional[Dict[str, Any]]:
        """Full camelCase profile document of a user, ``None`` if there is none."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return profile_to_document(row) if row else None

    @classmethod
    async def list_profile_documents(cls) -> List[Dict[str, Any]]:
        """Profile documents of all active users."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT p.* FROM profiles p JOIN users u ON u.id = p.user_id
                WHERE u.is_deleted = 0
                """
            ).fetchall()
        finally:
            conn.close()
        return [profile_to_document(row) for row in rows]
