"""
Tests for profile updates, role sections, education and certifications.
"""

from datetime import date, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from freelance_marketplace_api.app.core.config import settings
from freelance_marketplace_api.app.core.exceptions import NotFoundError, StorageError, ValidationError
from freelance_marketplace_api.app.schemas.profile import (
    AdminPreferences,
    AdminProfileUpdate,
    Availability,
    BillingAddress,
    ClientProfileUpdate,
    DeveloperProfileUpdate,
    EducationUpdate,
    Location,
    NotificationSettings,
    PortfolioLinks,
    ProfileUpdate,
)
from freelance_marketplace_api.app.services.cloud_storage_service import CloudStorageService
from freelance_marketplace_api.app.services.education_service import (
    EducationService,
    check_upload_size,
    validate_certification,
    validate_upload,
)
from freelance_marketplace_api.app.services.profile_service import ProfileService, is_url
from freelance_marketplace_api.app.services.user_service import UserService


def test_is_url():
    assert is_url("https://github.com/dana") is True
    assert is_url("http://example.com/a?b=c") is True
    assert is_url("ftp://example.com") is False
    assert is_url("github.com/dana") is False
    assert is_url("https://") is False


class TestCommonProfile:
    @pytest.mark.asyncio
    async def test_registration_creates_profile(self, accounts):
        profile = await ProfileService.get_my_profile(accounts["developer"].id)
        assert profile.role == "DEVELOPER"
        assert profile.email == "dev@example.com"
        assert profile.profile.display_name == "Dana Developer"

    @pytest.mark.asyncio
    async def test_view_contains_only_own_role_fields(self, accounts):
        developer = await ProfileService.get_my_profile(accounts["developer"].id)
        keys = developer.profile.model_dump(by_alias=True, exclude_unset=True).keys()
        assert "skills" in keys
        assert "hourlyRate" in keys
        assert "companyName" not in keys
        assert "systemRole" not in keys

        client_profile = await ProfileService.get_my_profile(accounts["client"].id)
        keys = client_profile.profile.model_dump(by_alias=True, exclude_unset=True).keys()
        assert "companyName" in keys
        assert "billingAddress" in keys
        assert "skills" not in keys

    @pytest.mark.asyncio
    async def test_update_common_fields(self, accounts):
        updated = await ProfileService.update_profile(
            accounts["client"].id,
            ProfileUpdate(display_name="  Carl C.  ", bio="Hiring for web projects",
                          profile_picture_url="https://cdn.example.com/carl.png"),
        )
        assert updated.profile.display_name == "Carl C."
        assert updated.profile.bio == "Hiring for web projects"
        assert updated.profile.profile_picture_url == "https://cdn.example.com/carl.png"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "update, message",
        [
            (ProfileUpdate(display_name=" J "), "Display name must be at least 2 characters"),
            (ProfileUpdate(bio="b" * 501), "Bio must be 500 characters or less"),
            (ProfileUpdate(profile_picture_url="avatar.png"), "Invalid profile picture URL format"),
        ],
    )
    async def test_update_common_fields_validation(self, accounts, update, message):
        with pytest.raises(ValidationError, match=message):
            await ProfileService.update_profile(accounts["client"].id, update)

    @pytest.mark.asyncio
    async def test_deleted_user_has_no_profile(self, accounts):
        await UserService.delete_user(accounts["client"].id)
        with pytest.raises(NotFoundError, match="User not found"):
            await ProfileService.get_my_profile(accounts["client"].id)
        documents = await ProfileService.list_profile_documents()
        assert len(documents) == 2

    @pytest.mark.asyncio
    async def test_profile_document_uses_api_names(self, accounts):
        document = await ProfileService.get_profile_document(accounts["developer"].id)
        assert document["displayName"] == "Dana Developer"
        assert "hourlyRate" in document
        assert await ProfileService.get_profile_document(9999) is None


class TestRoleProfiles:
    @pytest.mark.asyncio
    async def test_developer_update(self, accounts):
        updated = await ProfileService.update_developer_profile(
            accounts["developer"].id,
            DeveloperProfileUpdate(
                skills=["Python", "FastAPI"],
                experience=5,
                hourly_rate=60,
                availability=Availability(available=True, timezone="UTC+1"),
                location=Location(city="Berlin", country="DE"),
                portfolio_links=PortfolioLinks(github="https://github.com/dana"),
            ),
        )
        profile = updated.profile
        assert profile.skills == ["Python", "FastAPI"]
        assert profile.experience == 5
        assert profile.hourly_rate == 60
        assert profile.availability == {"available": True, "timezone": "UTC+1"}
        assert profile.portfolio_links == {"github": "https://github.com/dana"}

        # Fields not sent are left alone
        again = await ProfileService.update_developer_profile(
            accounts["developer"].id, DeveloperProfileUpdate(experience=6)
        )
        assert again.profile.skills == ["Python", "FastAPI"]
        assert again.profile.experience == 6

    @pytest.mark.asyncio
    async def test_developer_update_rejects_other_roles(self, accounts):
        with pytest.raises(ValidationError, match="User is not a Developer or does not exist"):
            await ProfileService.update_developer_profile(accounts["client"].id, DeveloperProfileUpdate(experience=1))

    @pytest.mark.asyncio
    async def test_developer_portfolio_urls(self, accounts):
        with pytest.raises(ValidationError, match="Invalid URL in portfolio links: github.com/dana"):
            await ProfileService.update_developer_profile(
                accounts["developer"].id,
                DeveloperProfileUpdate(portfolio_links=PortfolioLinks(github="github.com/dana")),
            )

    @pytest.mark.asyncio
    async def test_education_edit_keeps_certifications(self, accounts):
        developer_id = accounts["developer"].id
        await EducationService.add_certification(
            developer_id, validate_certification("AWS Architect", "Amazon", "2023-04-01")
        )
        updated = await ProfileService.update_developer_profile(
            developer_id, DeveloperProfileUpdate(education=EducationUpdate(degree="MSc Computer Science"))
        )
        education = updated.profile.education
        assert education["degree"] == "MSc Computer Science"
        assert [c["name"] for c in education["certifications"]] == ["AWS Architect"]

    @pytest.mark.asyncio
    async def test_client_update(self, accounts):
        updated = await ProfileService.update_client_profile(
            accounts["client"].id,
            ClientProfileUpdate(
                company_name="Tech Co.",
                company_website="https://techco.com",
                billing_address=BillingAddress(country="USA", postal_code="10001"),
            ),
        )
        assert updated.profile.company_name == "Tech Co."
        assert updated.profile.billing_address == {"country": "USA", "postalCode": "10001"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "update, message",
        [
            (ClientProfileUpdate(company_website="techco"), "Invalid company website URL"),
            (
                ClientProfileUpdate(billing_address=BillingAddress(country="usa")),
                "Country must be 2-3 uppercase letters",
            ),
            (
                ClientProfileUpdate(billing_address=BillingAddress(postal_code="1")),
                "Postal code must be 3-10 characters",
            ),
        ],
    )
    async def test_client_update_validation(self, accounts, update, message):
        with pytest.raises(ValidationError, match=message):
            await ProfileService.update_client_profile(accounts["client"].id, update)

    @pytest.mark.asyncio
    async def test_client_update_rejects_developer(self, accounts):
        with pytest.raises(ValidationError, match="User is not a client or does not exist"):
            await ProfileService.update_client_profile(accounts["developer"].id, ClientProfileUpdate(industry="IT"))

    @pytest.mark.asyncio
    async def test_admin_update(self, accounts):
        updated = await ProfileService.update_admin_profile(
            accounts["admin"].id,
            AdminProfileUpdate(
                system_role="moderator",
                permissions=["users:read"],
                admin_preferences=AdminPreferences(
                    dashboard_layout="compact",
                    notification_settings=NotificationSettings(security_alerts=True),
                ),
            ),
        )
        assert updated.role == "ADMIN"
        assert updated.profile.system_role == "moderator"
        assert updated.profile.permissions == ["users:read"]
        assert updated.profile.admin_preferences == {
            "dashboardLayout": "compact",
            "notificationSettings": {"securityAlerts": True},
        }

    @pytest.mark.asyncio
    async def test_admin_update_rejects_client(self, accounts):
        with pytest.raises(ValidationError, match="User is not an admin or does not exist"):
            await ProfileService.update_admin_profile(accounts["client"].id, AdminProfileUpdate(system_role="x"))


class TestCertificationInput:
    @pytest.mark.parametrize(
        "args, message",
        [
            (("A", "Amazon", "2023-04-01"), "Certification name must be at least 2 characters long"),
            (("AWS", " ", "2023-04-01"), "Issuer must be at least 2 characters long"),
            (("AWS", "Amazon", ""), "Date obtained is required"),
            (("AWS", "Amazon", "yesterday"), "Invalid date obtained format"),
            (("AWS", "Amazon", "2023-04-01", "2023-01-01"), "Expiry date must be after date obtained"),
            (("AWS", "Amazon", "2023-04-01", None, "ab"), "Credential ID must be at least 3 characters long"),
        ],
    )
    def test_invalid_certification(self, args, message):
        with pytest.raises(ValidationError, match=message):
            validate_certification(*args)

    def test_future_date(self):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        with pytest.raises(ValidationError, match="Date obtained cannot be in the future"):
            validate_certification("AWS", "Amazon", tomorrow)

    def test_valid_certification_is_trimmed(self):
        certification = validate_certification(" AWS Architect ", "Amazon", "2023-04-01", "2026-04-01", "AWS-123")
        assert certification.name == "AWS Architect"
        assert certification.date_obtained == date(2023, 4, 1)
        assert certification.expiry_date == date(2026, 4, 1)

    @pytest.mark.parametrize(
        "file_name, content_type, size, message",
        [
            (None, "application/pdf", 10, "No file provided"),
            ("cert.pdf", "application/pdf", 6 * 1024 * 1024, "File size exceeds maximum limit of 5MB"),
            ("cert.exe", "application/octet-stream", 10, "File type not allowed"),
            ("cert.pdf", "text/plain", 10, "Invalid file type"),
        ],
    )
    def test_invalid_upload(self, file_name, content_type, size, message):
        with pytest.raises(ValidationError, match=message):
            validate_upload(file_name, content_type, size)

    def test_valid_upload_extension(self):
        assert validate_upload("Scan.PDF", "application/pdf", 10) == ".pdf"

    def test_upload_size_limit(self, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_size_mb", 1)
        check_upload_size(None)
        check_upload_size(1024 * 1024)
        with pytest.raises(ValidationError, match="File size exceeds maximum limit of 1MB"):
            check_upload_size(1024 * 1024 + 1)


class TestCertifications:
    @pytest.mark.asyncio
    async def test_education_update(self, accounts):
        response = await EducationService.update_education(
            accounts["developer"].id, EducationUpdate(degree="BSc", institution="MIT", graduation_year=2018)
        )
        assert response.message == "Education updated successfully"
        education = await EducationService.get_education(accounts["developer"].id)
        assert education.institution == "MIT"
        assert education.graduation_year == 2018
        assert education.certifications == []

    @pytest.mark.asyncio
    async def test_education_year_bounds(self, accounts):
        with pytest.raises(ValidationError, match="Graduation year must be between 1900 and"):
            await EducationService.update_education(accounts["developer"].id, EducationUpdate(graduation_year=1850))

    @pytest.mark.asyncio
    async def test_certification_file_lifecycle(self, accounts):
        developer_id = accounts["developer"].id
        response = await EducationService.add_certification(
            developer_id,
            validate_certification("AWS Architect", "Amazon", "2023-04-01"),
            file_content=b"%PDF-1.4 certificate",
            file_name="aws.pdf",
            content_type="application/pdf",
        )
        assert response.message == "Certification added successfully"
        cert_id = response.data["id"]
        stored = Path(response.data["fileUrl"])
        assert stored.is_file()
        assert stored.parent.name == "certifications"
        assert stored.parent.parent.name == "uploads"
        assert f"_{developer_id}_{cert_id}_" in stored.name
        assert stored.suffix == ".pdf"
        assert response.data["fileName"] == "aws.pdf"
        assert response.data["fileSize"] == len(b"%PDF-1.4 certificate")

        download = await EducationService.download_certification_file(developer_id, cert_id)
        assert download.file_name == "aws.pdf"
        assert Path(download.file_path).read_bytes() == b"%PDF-1.4 certificate"

        removed = await EducationService.remove_certification(developer_id, cert_id)
        assert removed.data == {"removedId": cert_id}
        assert not stored.exists()
        assert (await EducationService.get_education(developer_id)).certifications == []

    @pytest.mark.asyncio
    async def test_certification_without_file(self, accounts):
        developer_id = accounts["developer"].id
        response = await EducationService.add_certification(
            developer_id, validate_certification("Scrum Master", "Scrum.org", "2022-01-15")
        )
        with pytest.raises(NotFoundError, match="No file associated with this certification"):
            await EducationService.download_certification_file(developer_id, response.data["id"])

    @pytest.mark.asyncio
    async def test_missing_file_on_disk(self, accounts):
        developer_id = accounts["developer"].id
        response = await EducationService.add_certification(
            developer_id,
            validate_certification("AWS Architect", "Amazon", "2023-04-01"),
            file_content=b"data",
            file_name="aws.png",
            content_type="image/png",
        )
        Path(response.data["fileUrl"]).unlink()
        with pytest.raises(NotFoundError, match="File not found on server"):
            await EducationService.download_certification_file(developer_id, response.data["id"])

    @pytest.mark.asyncio
    async def test_unknown_certification(self, accounts):
        with pytest.raises(NotFoundError, match="Certification not found"):
            await EducationService.remove_certification(accounts["developer"].id, "missing")

    @pytest.mark.asyncio
    async def test_storage_failure(self, accounts):
        failing_upload = AsyncMock(side_effect=StorageError("Failed to upload file: disk full"))
        with patch.object(CloudStorageService, "upload_file", failing_upload):
            with pytest.raises(StorageError, match="Failed to save file"):
                await EducationService.add_certification(
                    accounts["developer"].id,
                    validate_certification("AWS Architect", "Amazon", "2023-04-01"),
                    file_content=b"data",
                    file_name="aws.pdf",
                    content_type="application/pdf",
                )
        assert (await EducationService.get_education(accounts["developer"].id)).certifications == []
