"""
Developer education and certifications.

Education lives in the ``education`` JSON column of the developer's
profile: ``{"degree", "institution", "graduationYear", "certifications"}``.
Certification files are handed to the storage service; a file whose
database write fails is removed again so no orphans are left behind.
"""

import logging
import os
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..core.exceptions import NotFoundError, StorageError, ValidationError
from ..schemas.common import MessageResponse
from ..schemas.profile import CertificationCreate, EducationRead, EducationUpdate
from ..schemas.storage import FileDownloadResult
from .cloud_storage_service import get_storage


logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png", ".doc", ".docx"]
ALLOWED_MIME_PREFIXES = ("application/", "image/")
DEFAULT_CERTIFICATE_NAME = "certification.pdf"


def validate_education(data: EducationUpdate) -> None:
    if data.degree is not None and len(data.degree.strip()) < 2:
        raise ValidationError("Degree must be at least 2 characters long")
    if data.institution is not None and len(data.institution.strip()) < 2:
        raise ValidationError("Institution must be at least 2 characters long")
    if data.graduation_year is not None:
        max_year = datetime.now().year + 10
        if data.graduation_year < 1900 or data.graduation_year > max_year:
            raise ValidationError(f"Graduation year must be between 1900 and {max_year}")


def _parse_date(value: Any, message: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(message)


def validate_certification(
    name: Optional[str],
    issuer: Optional[str],
    date_obtained: Any,
    expiry_date: Any = None,
    credential_id: Optional[str] = None,
) -> CertificationCreate:
    """Check raw certification input and return it as a model."""
    if not name or len(name.strip()) < 2:
        raise ValidationError("Certification name must be at least 2 characters long")
    if not issuer or len(issuer.strip()) < 2:
        raise ValidationError("Issuer must be at least 2 characters long")
    if not date_obtained:
        raise ValidationError("Date obtained is required")
    obtained = _parse_date(date_obtained, "Invalid date obtained format")
    if obtained > date.today():
        raise ValidationError("Date obtained cannot be in the future")
    expiry = None
    if expiry_date:
        expiry = _parse_date(expiry_date, "Invalid expiry date format")
        if expiry <= obtained:
            raise ValidationError("Expiry date must be after date obtained")
    if credential_id is not None and credential_id != "" and len(credential_id.strip()) < 3:
        raise ValidationError("Credential ID must be at least 3 characters long")
    return CertificationCreate(
        name=name.strip(),
        issuer=issuer.strip(),
        date_obtained=obtained,
        expiry_date=expiry,
        credential_id=credential_id.strip() if credential_id else None,
    )


def check_upload_size(size: Optional[int]) -> None:
    """Reject uploads over ``MAX_UPLOAD_SIZE_MB``; an unknown size passes."""
    if size is not None and size > settings.max_upload_size_mb * 1024 * 1024:
        raise ValidationError(f"File size exceeds maximum limit of {settings.max_upload_size_mb}MB")


def validate_upload(file_name: Optional[str], content_type: Optional[str], size: int) -> str:
    """Validate an uploaded certificate and return its lower-cased extension."""
    if not file_name:
        raise ValidationError("No file provided")
    check_upload_size(size)
    ext = os.path.splitext(file_name)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type not allowed. Allowed types: {', '.join(ALLOWED_EXTENSIONS)}")
    if not content_type or not content_type.startswith(ALLOWED_MIME_PREFIXES):
        raise ValidationError("Invalid file type")
    return ext


class EducationService:
    """Education and certification records of developer profiles."""

    @staticmethod
    def _load(cursor, user_id: int) -> Dict[str, Any]:
        from freelance_marketplace_api.app.core.db import from_json
        row = cursor.execute("SELECT education FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        if not row:
            raise NotFoundError("Profile not found")
        education = from_json(row["education"], {}) or {}
        education.setdefault("certifications", [])
        return education

    @staticmethod
    def _save(cursor, user_id: int, education: Dict[str, Any]) -> None:
        from freelance_marketplace_api.app.core.db import to_json, utc_now
        cursor.execute(
            "UPDATE profiles SET education = ?, updated_at = ? WHERE user_id = ?",
            (to_json(education), utc_now(), user_id),
        )

    @classmethod
    async def update_education(cls, user_id: int, data: EducationUpdate) -> MessageResponse:
        """Replace degree, institution and graduation year, keeping certifications."""
        from freelance_marketplace_api.app.core.db import get_connection
        validate_education(data)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            education = cls._load(cursor, user_id)
            education.update(
                {
                    "degree": data.degree.strip() if data.degree else data.degree,
                    "institution": data.institution.strip() if data.institution else data.institution,
                    "graduationYear": data.graduation_year,
                }
            )
            cls._save(cursor, user_id, education)
            conn.commit()
        finally:
            conn.close()
        logger.info("Education of user %s updated", user_id)
        return MessageResponse(
            message="Education updated successfully",
            data=EducationRead.model_validate(education).model_dump(by_alias=True, mode="json"),
        )

    @classmethod
    async def get_education(cls, user_id: int) -> EducationRead:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            education = cls._load(conn.cursor(), user_id)
        finally:
            conn.close()
        return EducationRead.model_validate(education)

    @classmethod
    async def add_certification(
        cls,
        user_id: int,
        certification: CertificationCreate,
        file_content: Optional[bytes] = None,
        file_name: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> MessageResponse:
        """Append a certification, optionally storing a scanned certificate."""
        from freelance_marketplace_api.app.core.db import get_connection
        validate_certification(
            certification.name,
            certification.issuer,
            certification.date_obtained,
            certification.expiry_date,
            certification.credential_id,
        )
        cert_id = str(uuid.uuid4())
        record: Dict[str, Any] = certification.model_dump(by_alias=True, mode="json")
        record["id"] = cert_id
        record["uploadedAt"] = datetime.now(timezone.utc).isoformat()

        storage = get_storage()
        stored_url = None
        if file_content is not None:
            ext = validate_upload(file_name, content_type, len(file_content))
            stored_name = f"{user_id}_{cert_id}_{int(time.time() * 1000)}{ext}"
            try:
                upload = await storage.upload_file(file_content, stored_name, "certifications")
            except StorageError as e:
                logger.error("Certificate upload for user %s failed: %s", user_id, e)
                raise StorageError("Failed to save file") from e
            stored_url = upload.file_url
            record.update({"fileUrl": upload.file_url, "fileName": file_name, "fileSize": upload.file_size})

        conn = get_connection()
        try:
            cursor = conn.cursor()
            education = cls._load(cursor, user_id)
            education["certifications"].append(record)
            cls._save(cursor, user_id, education)
            conn.commit()
        except Exception:
            if stored_url:
                await storage.delete_file(stored_url)
            raise
        finally:
            conn.close()
        logger.info("Certification %s added for user %s", cert_id, user_id)
        return MessageResponse(message="Certification added successfully", data=record)

    @classmethod
    async def remove_certification(cls, user_id: int, certification_id: str) -> MessageResponse:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            education = cls._load(cursor, user_id)
            certifications: List[Dict[str, Any]] = education["certifications"]
            removed = next((c for c in certifications if c.get("id") == certification_id), None)
            if removed is None:
                raise NotFoundError("Certification not found")
            education["certifications"] = [c for c in certifications if c.get("id") != certification_id]
            cls._save(cursor, user_id, education)
            conn.commit()
        finally:
            conn.close()

        if removed.get("fileUrl"):
            await get_storage().delete_file(removed["fileUrl"])
        logger.info("Certification %s removed for user %s", certification_id, user_id)
        return MessageResponse(message="Certification removed successfully", data={"removedId": certification_id})

    @classmethod
    async def download_certification_file(cls, user_id: int, certification_id: str) -> FileDownloadResult:
        """Resolve the stored certificate of a certification to a local path."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            education = cls._load(conn.cursor(), user_id)
        finally:
            conn.close()
        certification = next(
            (c for c in education["certifications"] if c.get("id") == certification_id), None
        )
        if certification is None:
            raise NotFoundError("Certification not found")
        if not certification.get("fileUrl"):
            raise NotFoundError("No file associated with this certification")
        try:
            download = await get_storage().download_file(certification["fileUrl"])
        except ValidationError as e:
            if str(e) == "File not found":
                raise NotFoundError("File not found on server") from e
            raise
        return FileDownloadResult(
            file_path=download.file_path,
            file_name=certification.get("fileName") or DEFAULT_CERTIFICATE_NAME,
        )
