"""
Profile search endpoints for API v1.

Filters are passed as query parameters using the same camelCase names
as the JSON API (``minExperience``, ``isAvailable``...).  ``skills`` is
a comma separated list.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from freelance_marketplace_api.app.core.exceptions import NotFoundError, to_http_exception
from freelance_marketplace_api.app.core.security import get_current_user
from freelance_marketplace_api.app.schemas.search import (
    PopularSkillsResponse,
    RecommendationsResponse,
    SearchFilters,
    SearchResponse,
    TrendingProfilesResponse,
)
from freelance_marketplace_api.app.services.search_profile_service import SearchProfileService


router = APIRouter()


def search_filters(
    role: Optional[str] = Query(None),
    skills: Optional[str] = Query(None, description="Comma separated skills"),
    min_experience: Optional[int] = Query(None, alias="minExperience"),
    max_experience: Optional[int] = Query(None, alias="maxExperience"),
    min_hourly_rate: Optional[float] = Query(None, alias="minHourlyRate"),
    max_hourly_rate: Optional[float] = Query(None, alias="maxHourlyRate"),
    is_available: Optional[bool] = Query(None, alias="isAvailable"),
    timezone: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    work_preference: Optional[str] = Query(None, alias="workPreference"),
    is_email_verified: Optional[bool] = Query(None, alias="isEmailVerified"),
    min_profile_completion: Optional[int] = Query(None, alias="minProfileCompletion"),
    created_at_from: Optional[datetime] = Query(None, alias="createdAtFrom"),
    created_at_to: Optional[datetime] = Query(None, alias="createdAtTo"),
) -> SearchFilters:
    return SearchFilters(
        role=role.upper() if role else None,
        skills=[s.strip() for s in skills.split(",") if s.strip()] if skills else None,
        min_experience=min_experience,
        max_experience=max_experience,
        min_hourly_rate=min_hourly_rate,
        max_hourly_rate=max_hourly_rate,
        is_available=is_available,
        timezone=timezone,
        location=location,
        work_preference=work_preference,
        is_email_verified=is_email_verified,
        min_profile_completion=min_profile_completion,
        created_at_from=created_at_from,
        created_at_to=created_at_to,
    )


@router.get("/search", response_model=SearchResponse)
async def search_profiles(
    query: str = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("relevance", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    filters: SearchFilters = Depends(search_filters),
    current_user: dict = Depends(get_current_user),
) -> SearchResponse:
    """Search names, bios and skills.  Filters narrow the matches further."""
    try:
        return await SearchProfileService.search_profiles(
            query, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order, filters=filters
        )
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/filter", response_model=SearchResponse)
async def filter_profiles(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    filters: SearchFilters = Depends(search_filters),
    current_user: dict = Depends(get_current_user),
) -> SearchResponse:
    try:
        return await SearchProfileService.filter_profiles(filters, page=page, limit=limit)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    limit: int = Query(10, ge=1, le=50),
    current_user: dict = Depends(get_current_user),
) -> RecommendationsResponse:
    """Profiles of the opposite role that fit the caller's own profile."""
    try:
        if current_user.get("user_id") is None:
            raise NotFoundError("User profile not found")
        return await SearchProfileService.get_profile_recommendations(current_user["user_id"], limit)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/popular-skills", response_model=PopularSkillsResponse)
async def get_popular_skills(
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
) -> PopularSkillsResponse:
    try:
        return await SearchProfileService.get_popular_skills(limit)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/trending", response_model=TrendingProfilesResponse)
async def get_trending_profiles(
    limit: int = Query(10, ge=1, le=50),
    current_user: dict = Depends(get_current_user),
) -> TrendingProfilesResponse:
    try:
        return await SearchProfileService.get_trending_profiles(limit)
    except ValueError as e:
        raise to_http_exception(e) from e
