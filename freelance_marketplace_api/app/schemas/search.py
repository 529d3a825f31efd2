"""
Pydantic models for profile search, recommendations and analytics.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import APIModel


SORT_FIELDS = {"relevance", "experience", "hourlyRate", "createdAt", "updatedAt"}


class SearchFilters(APIModel):
    role: Optional[str] = Field(None, examples=["DEVELOPER"])
    skills: Optional[List[str]] = Field(None, examples=[["Python", "React"]])
    min_experience: Optional[int] = Field(None, examples=[2])
    max_experience: Optional[int] = Field(None, examples=[10])
    min_hourly_rate: Optional[float] = Field(None, examples=[20])
    max_hourly_rate: Optional[float] = Field(None, examples=[100])
    is_available: Optional[bool] = None
    timezone: Optional[str] = Field(None, examples=["UTC+3"])
    location: Optional[str] = Field(None, examples=["New York"])
    work_preference: Optional[str] = Field(None, examples=["remote"])
    is_email_verified: Optional[bool] = None
    min_profile_completion: Optional[int] = Field(None, examples=[50])
    created_at_from: Optional[datetime] = None
    created_at_to: Optional[datetime] = None


class SearchResultItem(APIModel):
    user_id: int
    display_name: str
    role: str
    bio: str = ""
    profile_picture_url: str = ""
    skills: List[str] = Field(default_factory=list)
    experience: int = 0
    hourly_rate: float = 0
    is_available: bool = False
    location: Dict[str, Any] = Field(default_factory=dict)
    profile_completion: int = 0
    relevance_score: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SearchResponse(APIModel):
    results: List[SearchResultItem]
    total: int
    page: int
    limit: int
    total_pages: int
    query: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)
    execution_time: int = Field(..., description="Milliseconds spent on the search")


class ProfileRecommendation(APIModel):
    profile: SearchResultItem
    reason: str
    score: float
    matching_criteria: List[str]


class RecommendationsResponse(APIModel):
    recommendations: List[ProfileRecommendation]
    user_id: int
    count: int
    generation_time: int


class PopularSkill(APIModel):
    skill: str
    count: int
    percentage: float
    average_hourly_rate: float
    average_experience: float


class PopularSkillsResponse(APIModel):
    skills: List[PopularSkill]
    total_profiles: int
    analyzed_at: datetime


class TrendingProfile(APIModel):
    profile: SearchResultItem
    trending_score: float
    trending_factors: List[str]
    days_since_update: float


class TrendingProfilesResponse(APIModel):
    profiles: List[TrendingProfile]
    count: int
    period: str
    analyzed_at: datetime
