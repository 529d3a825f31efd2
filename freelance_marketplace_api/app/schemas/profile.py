"""
Pydantic models for user profiles.

A profile is a single record per user holding common fields plus
role-specific subsets for developers, clients and admins.  Nested
objects (availability, location, links, preferences) are stored as JSON
and keep the camelCase keys produced by these models.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import APIModel


# ---------------------------------------------------------------------------
# Common profile
# ---------------------------------------------------------------------------

class ProfileUpdate(APIModel):
    display_name: Optional[str] = Field(None, examples=["Jane Doe"])
    bio: Optional[str] = Field(None, examples=["Full-stack developer with 5 years of experience"])
    profile_picture_url: Optional[str] = Field(None, examples=["https://cdn.example.com/avatars/jane.png"])
    chat_last_read_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Developer
# ---------------------------------------------------------------------------

class TimeRange(APIModel):
    day: Optional[str] = Field(None, examples=["monday"])
    start: Optional[str] = Field(None, examples=["09:00"])
    end: Optional[str] = Field(None, examples=["17:00"])
    available: Optional[bool] = None


class Availability(APIModel):
    available: Optional[bool] = Field(None, examples=[True])
    hours: Optional[str] = Field(None, examples=["9am-5pm"])
    timezone: Optional[str] = Field(None, examples=["UTC+3"])
    notice_period: Optional[str] = Field(None, examples=["2 weeks"])
    max_hours_per_week: Optional[int] = Field(None, examples=[40])
    preferred_project_types: Optional[List[str]] = None
    time_ranges: Optional[List[TimeRange]] = None


class PortfolioLink(APIModel):
    label: str = Field(..., examples=["Dribbble"])
    url: str = Field(..., examples=["https://dribbble.com/jane"])


class PortfolioLinks(APIModel):
    github: Optional[str] = Field(None, examples=["https://github.com/jane"])
    linkedin: Optional[str] = Field(None, examples=["https://linkedin.com/in/jane"])
    website: Optional[str] = Field(None, examples=["https://jane.dev"])
    x: Optional[str] = Field(None, examples=["https://x.com/jane"])
    custom_links: Optional[List[PortfolioLink]] = None


class Location(APIModel):
    country: Optional[str] = Field(None, examples=["USA"])
    city: Optional[str] = Field(None, examples=["New York"])
    state: Optional[str] = Field(None, examples=["NY"])
    timezone: Optional[str] = Field(None, examples=["UTC-5"])


class WorkPreferences(APIModel):
    remote_work: Optional[bool] = None
    on_site_work: Optional[bool] = None
    hybrid_work: Optional[bool] = None
    work_type: Optional[str] = Field(None, examples=["remote"])
    travel_willingness: Optional[str] = None
    contract_types: Optional[List[str]] = None
    min_project_duration: Optional[str] = None
    max_project_duration: Optional[str] = None


class EducationUpdate(APIModel):
    degree: Optional[str] = Field(None, examples=["BSc Computer Science"])
    institution: Optional[str] = Field(None, examples=["MIT"])
    graduation_year: Optional[int] = Field(None, examples=[2018])


class CertificationCreate(APIModel):
    name: str = Field(..., examples=["AWS Solutions Architect"])
    issuer: str = Field(..., examples=["Amazon Web Services"])
    date_obtained: date = Field(..., examples=["2023-04-01"])
    expiry_date: Optional[date] = Field(None, examples=["2026-04-01"])
    credential_id: Optional[str] = Field(None, examples=["AWS-123456"])


class CertificationRead(CertificationCreate):
    id: str
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_at: Optional[datetime] = None


class EducationRead(EducationUpdate):
    certifications: List[CertificationRead] = Field(default_factory=list)


class DeveloperProfileUpdate(APIModel):
    skills: Optional[List[str]] = Field(None, examples=[["Python", "React"]])
    experience: Optional[int] = Field(None, ge=0, examples=[5])
    hourly_rate: Optional[float] = Field(None, ge=0, examples=[60.0])
    currency: Optional[str] = Field(None, examples=["USD"])
    availability: Optional[Availability] = None
    portfolio_links: Optional[PortfolioLinks] = None
    education: Optional[EducationUpdate] = None
    work_preferences: Optional[WorkPreferences] = None
    location: Optional[Location] = None
    contact_email: Optional[str] = Field(None, examples=["jane@example.com"])
    contact_phone: Optional[str] = Field(None, examples=["+1234567890"])


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class BillingAddress(APIModel):
    street: Optional[str] = Field(None, examples=["123 Main St"])
    city: Optional[str] = Field(None, examples=["New York"])
    state: Optional[str] = Field(None, examples=["NY"])
    country: Optional[str] = Field(None, examples=["USA"])
    postal_code: Optional[str] = Field(None, examples=["10001"])


class CustomLink(APIModel):
    label: str = Field(..., examples=["Facebook"])
    url: str = Field(..., examples=["https://facebook.com/company"])


class SocialLinks(APIModel):
    linkedin: Optional[str] = None
    website: Optional[str] = None
    x: Optional[str] = None
    custom_links: Optional[List[CustomLink]] = None


class ProjectPreferences(APIModel):
    typical_project_budget: Optional[str] = Field(None, examples=["1k-5k"])
    typical_project_duration: Optional[str] = Field(None, examples=["1-3 months"])
    preferred_communication: Optional[List[str]] = Field(None, examples=[["email", "chat"]])
    timezone_preference: Optional[str] = Field(None, examples=["UTC+3"])
    project_types: Optional[List[str]] = Field(None, examples=[["web", "mobile"]])


class ClientProfileUpdate(APIModel):
    company_name: Optional[str] = Field(None, examples=["Tech Co."])
    company_website: Optional[str] = Field(None, examples=["https://techco.com"])
    company_size: Optional[str] = Field(None, examples=["51-200"])
    industry: Optional[str] = Field(None, examples=["Technology"])
    company_description: Optional[str] = Field(None, examples=["Leading tech solutions provider"])
    contact_person: Optional[str] = Field(None, examples=["Jane Doe"])
    contact_email: Optional[str] = Field(None, examples=["contact@techco.com"])
    contact_phone: Optional[str] = Field(None, examples=["+1234567890"])
    location: Optional[Location] = None
    billing_address: Optional[BillingAddress] = None
    project_preferences: Optional[ProjectPreferences] = None
    social_links: Optional[SocialLinks] = None


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class NotificationSettings(APIModel):
    email_notifications: Optional[bool] = None
    system_alerts: Optional[bool] = None
    user_reports: Optional[bool] = None
    security_alerts: Optional[bool] = None


class AdminPreferences(APIModel):
    dashboard_layout: Optional[str] = Field(None, examples=["compact"])
    notification_settings: Optional[NotificationSettings] = None
    default_timezone: Optional[str] = Field(None, examples=["UTC"])


class AdminProfileUpdate(APIModel):
    company_name: Optional[str] = None
    system_role: Optional[str] = Field(None, examples=["moderator"])
    permissions: Optional[List[str]] = Field(None, examples=[["users:read", "budgets:write"]])
    last_system_access: Optional[datetime] = None
    admin_preferences: Optional[AdminPreferences] = None
    contact_email: Optional[str] = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

class ProfileData(APIModel):
    """Profile fields visible to the owner.

    Only the common fields and the subset belonging to the user's role
    are populated; endpoints serialise with ``exclude_unset``.
    """

    display_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    chat_last_read_at: Optional[datetime] = None
    # developer
    skills: Optional[List[str]] = None
    experience: Optional[int] = None
    hourly_rate: Optional[float] = None
    currency: Optional[str] = None
    availability: Optional[Dict[str, Any]] = None
    portfolio_links: Optional[Dict[str, Any]] = None
    education: Optional[Dict[str, Any]] = None
    work_preferences: Optional[Dict[str, Any]] = None
    # client
    company_name: Optional[str] = None
    company_website: Optional[str] = None
    company_size: Optional[str] = None
    industry: Optional[str] = None
    company_description: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    project_preferences: Optional[Dict[str, Any]] = None
    social_links: Optional[Dict[str, Any]] = None
    # admin
    system_role: Optional[str] = None
    permissions: Optional[List[str]] = None
    last_system_access: Optional[datetime] = None
    admin_preferences: Optional[Dict[str, Any]] = None


class MyProfile(APIModel):
    user_id: int
    email: str
    role: str
    profile: ProfileData


# ---------------------------------------------------------------------------
# Completion and validation
# ---------------------------------------------------------------------------

class CompletionResult(APIModel):
    overall: int = Field(..., examples=[65])
    breakdown: Dict[str, int] = Field(..., examples=[{"basic": 100, "professional": 67, "availability": 50, "contact": 0}])
    missing_fields: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class CompletionStats(APIModel):
    average_completion: int
    completion_distribution: Dict[str, int]
    low_completion_count: int


class FieldValidation(APIModel):
    field: str
    is_valid: bool
    error_message: Optional[str] = None
    value: str
    required: bool


class ProfileValidation(APIModel):
    is_valid: bool
    valid_fields_count: int
    invalid_fields_count: int
    total_fields_count: int
    validation_percentage: int
    field_validations: List[FieldValidation]


class RequiredField(APIModel):
    field: str
    display_name: str
    description: str
    category: str
    required: bool = True
    type: str
    validation_rules: Optional[Dict[str, Any]] = None


class RequiredFieldsResult(APIModel):
    role: str
    required_fields: List[RequiredField]
    total_required_fields: int
    completed_required_fields: int
    required_fields_completion: int
