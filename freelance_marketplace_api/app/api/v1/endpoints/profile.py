"""
Profile endpoints for API v1.

All routes act on the profile of the authenticated user.  Role specific
sections can only be edited by users of that role, and education with
its certifications belongs to developers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from freelance_marketplace_api.app.core.exceptions import NotFoundError, StorageError, to_http_exception
from freelance_marketplace_api.app.core.security import (
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_DEVELOPER,
    get_current_user,
    require_roles,
)
from freelance_marketplace_api.app.schemas.common import MessageResponse
from freelance_marketplace_api.app.schemas.profile import (
    AdminProfileUpdate,
    ClientProfileUpdate,
    CompletionResult,
    CompletionStats,
    DeveloperProfileUpdate,
    EducationRead,
    EducationUpdate,
    MyProfile,
    ProfileUpdate,
    ProfileValidation,
    RequiredFieldsResult,
)
from freelance_marketplace_api.app.services.education_service import (
    EducationService,
    check_upload_size,
    validate_certification,
)
from freelance_marketplace_api.app.services.profile_completion_service import ProfileCompletionService
from freelance_marketplace_api.app.services.profile_service import ProfileService


router = APIRouter()


def _user_id(current_user: dict) -> int:
    """Profiles need a real account; the static admin token has none."""
    user_id = current_user.get("user_id")
    if user_id is None:
        raise to_http_exception(NotFoundError("User not found"))
    return user_id


@router.get("/", response_model=MyProfile, response_model_exclude_unset=True)
async def get_my_profile(current_user: dict = Depends(get_current_user)) -> MyProfile:
    """Common profile fields plus the section matching the user's role."""
    try:
        return await ProfileService.get_my_profile(_user_id(current_user))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/", response_model=MyProfile, response_model_exclude_unset=True)
async def update_profile(data: ProfileUpdate, current_user: dict = Depends(get_current_user)) -> MyProfile:
    try:
        return await ProfileService.update_profile(_user_id(current_user), data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/developer", response_model=MyProfile, response_model_exclude_unset=True)
async def update_developer_profile(
    data: DeveloperProfileUpdate,
    current_user: dict = Depends(require_roles(ROLE_DEVELOPER)),
) -> MyProfile:
    try:
        return await ProfileService.update_developer_profile(_user_id(current_user), data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/client", response_model=MyProfile, response_model_exclude_unset=True)
async def update_client_profile(
    data: ClientProfileUpdate,
    current_user: dict = Depends(require_roles(ROLE_CLIENT)),
) -> MyProfile:
    try:
        return await ProfileService.update_client_profile(_user_id(current_user), data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/admin", response_model=MyProfile, response_model_exclude_unset=True)
async def update_admin_profile(
    data: AdminProfileUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> MyProfile:
    try:
        return await ProfileService.update_admin_profile(_user_id(current_user), data)
    except ValueError as e:
        raise to_http_exception(e) from e


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

@router.get("/completion", response_model=CompletionResult)
async def get_completion(current_user: dict = Depends(get_current_user)) -> CompletionResult:
    document = await ProfileService.get_profile_document(_user_id(current_user))
    return ProfileCompletionService.calculate_completion(document)


@router.get("/completion/stats", response_model=CompletionStats)
async def get_completion_stats(current_user: dict = Depends(require_roles(ROLE_ADMIN))) -> CompletionStats:
    """Completion distribution over all active profiles."""
    documents = await ProfileService.list_profile_documents()
    return ProfileCompletionService.get_completion_stats(documents)


@router.get("/validation", response_model=ProfileValidation)
async def validate_profile(current_user: dict = Depends(get_current_user)) -> ProfileValidation:
    document = await ProfileService.get_profile_document(_user_id(current_user))
    return ProfileCompletionService.validate_profile(document, current_user.get("role"))


@router.get("/required-fields", response_model=RequiredFieldsResult)
async def get_required_fields(current_user: dict = Depends(get_current_user)) -> RequiredFieldsResult:
    document = await ProfileService.get_profile_document(_user_id(current_user))
    return ProfileCompletionService.get_required_fields(current_user.get("role"), document)


# ---------------------------------------------------------------------------
# Education and certifications
# ---------------------------------------------------------------------------

developer_only = require_roles(ROLE_DEVELOPER)


@router.get("/education", response_model=EducationRead)
async def get_education(current_user: dict = Depends(developer_only)) -> EducationRead:
    try:
        return await EducationService.get_education(_user_id(current_user))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/education", response_model=MessageResponse)
async def update_education(
    data: EducationUpdate,
    current_user: dict = Depends(developer_only),
) -> MessageResponse:
    try:
        return await EducationService.update_education(_user_id(current_user), data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/education/certifications", response_model=MessageResponse)
async def add_certification(
    name: str = Form(...),
    issuer: str = Form(...),
    date_obtained: str = Form(..., alias="dateObtained"),
    expiry_date: Optional[str] = Form(None, alias="expiryDate"),
    credential_id: Optional[str] = Form(None, alias="credentialId"),
    file: Optional[UploadFile] = File(None),
    current_user: dict = Depends(developer_only),
) -> MessageResponse:
    """Add a certification, optionally with a scanned certificate.

    Accepted files: PDF, JPEG, PNG and Word documents up to the
    configured upload size.
    """
    try:
        certification = validate_certification(name, issuer, date_obtained, expiry_date, credential_id)
        content = None
        if file is not None:
            check_upload_size(file.size)
            content = await file.read()
        return await EducationService.add_certification(
            _user_id(current_user),
            certification,
            file_content=content,
            file_name=file.filename if file is not None else None,
            content_type=file.content_type if file is not None else None,
        )
    except (ValueError, StorageError) as e:
        raise to_http_exception(e) from e


@router.delete("/education/certifications/{certification_id}", response_model=MessageResponse)
async def remove_certification(
    certification_id: str,
    current_user: dict = Depends(developer_only),
) -> MessageResponse:
    try:
        return await EducationService.remove_certification(_user_id(current_user), certification_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/education/certifications/{certification_id}/download")
async def download_certification(
    certification_id: str,
    current_user: dict = Depends(developer_only),
) -> FileResponse:
    try:
        download = await EducationService.download_certification_file(_user_id(current_user), certification_id)
    except (ValueError, StorageError) as e:
        raise to_http_exception(e) from e
    return FileResponse(download.file_path, filename=download.file_name)
