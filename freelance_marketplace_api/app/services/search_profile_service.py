"""
Profile search, filtering, recommendations and skill analytics.

Profiles are loaded together with their user's role and verification
flag, filtered and scored in Python (JSON columns and completion scores
cannot be expressed in SQLite queries), then sorted and paginated.
Deleted users never appear in any result.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.search import (
    SORT_FIELDS,
    PopularSkill,
    PopularSkillsResponse,
    ProfileRecommendation,
    RecommendationsResponse,
    SearchFilters,
    SearchResponse,
    SearchResultItem,
    TrendingProfile,
    TrendingProfilesResponse,
)
from .profile_completion_service import ProfileCompletionService
from .profile_service import profile_to_document


logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
IN_DEMAND_SKILLS = {"JavaScript", "React", "Node.js", "Python", "TypeScript"}
TRENDING_WINDOW_DAYS = 30
RECOMMENDATION_REASONS = {
    "skills": "Skills match",
    "experience": "Experience level compatible",
    "availability": "Availability matches",
}


@dataclass
class ProfileRecord:
    """A profile document plus the user columns search needs."""

    user_id: int
    role: str
    is_email_verified: bool
    document: Dict[str, Any]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @property
    def skills(self) -> List[str]:
        return self.document.get("skills") or []

    @property
    def experience(self) -> int:
        return self.document.get("experience") or 0

    @property
    def hourly_rate(self) -> float:
        return self.document.get("hourlyRate") or 0

    @property
    def completion(self) -> int:
        return ProfileCompletionService.calculate_completion(self.document).overall


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def is_profile_available(availability: Any) -> bool:
    """Available when flagged so, or when any time range is available."""
    if not isinstance(availability, dict):
        return False
    if availability.get("available") is True:
        return True
    ranges = availability.get("timeRanges")
    if isinstance(ranges, list):
        return any(isinstance(r, dict) and r.get("available") is True for r in ranges)
    return False


def calculate_relevance(document: Dict[str, Any], query: str) -> float:
    """Score how well a profile matches ``query``, capped at 1.0."""
    terms = query.lower().split()
    score = 0.0
    name = (document.get("displayName") or "").lower()
    bio = (document.get("bio") or "").lower()
    for term in terms:
        if name and term in name:
            score += 0.4
        if bio and term in bio:
            score += 0.3
    for skill in document.get("skills") or []:
        skill_lower = skill.lower()
        for term in terms:
            if term in skill_lower:
                score += 0.5
    return min(score, 1.0)


def validate_filters(filters: SearchFilters) -> None:
    if filters.min_experience is not None and filters.max_experience is not None:
        if filters.min_experience > filters.max_experience:
            raise ValidationError("Minimum experience cannot be greater than maximum experience")
    if filters.min_hourly_rate is not None and filters.max_hourly_rate is not None:
        if filters.min_hourly_rate > filters.max_hourly_rate:
            raise ValidationError("Minimum hourly rate cannot be greater than maximum hourly rate")
    if filters.min_profile_completion is not None:
        if filters.min_profile_completion < 0 or filters.min_profile_completion > 100:
            raise ValidationError("Profile completion must be between 0 and 100")
    if filters.created_at_from and filters.created_at_to:
        if _aware(filters.created_at_from) > _aware(filters.created_at_to):
            raise ValidationError("Created date from cannot be after created date to")


def matches_filters(record: ProfileRecord, filters: Optional[SearchFilters]) -> bool:
    """Apply every set filter; unset filters match everything."""
    if filters is None:
        return True
    doc = record.document
    availability = doc.get("availability") or {}
    if filters.role and record.role != filters.role:
        return False
    if filters.skills and not set(filters.skills) & set(record.skills):
        return False
    experience = doc.get("experience")
    if filters.min_experience is not None and (experience is None or experience < filters.min_experience):
        return False
    if filters.max_experience is not None and (experience is None or experience > filters.max_experience):
        return False
    rate = doc.get("hourlyRate")
    if filters.min_hourly_rate is not None and (rate is None or rate < filters.min_hourly_rate):
        return False
    if filters.max_hourly_rate is not None and (rate is None or rate > filters.max_hourly_rate):
        return False
    if filters.is_available is not None and availability.get("available") is not filters.is_available:
        return False
    if filters.timezone and availability.get("timezone") != filters.timezone:
        return False
    if filters.location:
        city = (doc.get("location") or {}).get("city") or ""
        if filters.location.lower() not in city.lower():
            return False
    if filters.work_preference:
        if (doc.get("workPreferences") or {}).get("workType") != filters.work_preference:
            return False
    if filters.is_email_verified is not None and record.is_email_verified != filters.is_email_verified:
        return False
    if filters.min_profile_completion is not None and record.completion < filters.min_profile_completion:
        return False
    if filters.created_at_from and (record.created_at is None or record.created_at < _aware(filters.created_at_from)):
        return False
    if filters.created_at_to and (record.created_at is None or record.created_at > _aware(filters.created_at_to)):
        return False
    return True


def to_result_item(record: ProfileRecord, relevance: float, completion: Optional[int] = None) -> SearchResultItem:
    doc = record.document
    return SearchResultItem(
        user_id=record.user_id,
        display_name=doc.get("displayName") or "Anonymous",
        role=record.role,
        bio=doc.get("bio") or "",
        profile_picture_url=doc.get("profilePictureUrl") or "",
        skills=record.skills,
        experience=record.experience,
        hourly_rate=record.hourly_rate,
        is_available=is_profile_available(doc.get("availability")),
        location=doc.get("location") or {},
        profile_completion=record.completion if completion is None else completion,
        relevance_score=relevance,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _epoch(value: Optional[datetime]) -> float:
    return value.timestamp() if value else 0.0


class SearchProfileService:
    """Read-only queries over all active profiles."""

    @staticmethod
    async def _load_records(where: str = "", params: tuple = ()) -> List[ProfileRecord]:
        from freelance_marketplace_api.app.core.db import get_connection, parse_timestamp
        from freelance_marketplace_api.app.core.security import ROLE_NAMES
        where_clauses = ["u.is_deleted = 0"]
        if where:
            where_clauses.append(where)
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT p.*, u.role_id AS user_role_id, u.is_email_verified AS user_email_verified
                FROM profiles p JOIN users u ON u.id = p.user_id
                WHERE {' AND '.join(where_clauses)}
                ORDER BY p.updated_at DESC, p.user_id DESC
                """,
                params,
            ).fetchall()
        finally:
            conn.close()
        return [
            ProfileRecord(
                user_id=row["user_id"],
                role=ROLE_NAMES.get(row["user_role_id"], "UNKNOWN"),
                is_email_verified=bool(row["user_email_verified"]),
                document=profile_to_document(row),
                created_at=parse_timestamp(row["created_at"]),
                updated_at=parse_timestamp(row["updated_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _paginate(items: List[Any], page: int, limit: int) -> List[Any]:
        start = (page - 1) * limit
        return items[start:start + limit]

    @classmethod
    async def search_profiles(
        cls,
        query: str,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "relevance",
        sort_order: str = "desc",
        filters: Optional[SearchFilters] = None,
    ) -> SearchResponse:
        """Full-text style search over names, bios and skills.

        Results are sorted by relevance when ``sort_by`` is ``relevance``,
        otherwise by the requested profile field.  Unknown sort fields
        fall back to the most recently updated profiles.
        """
        start = time.perf_counter()
        if not query or len(query.strip()) < 2:
            raise ValidationError("Search query must be at least 2 characters long")
        page = max(page, 1)
        limit = min(limit or 20, MAX_PAGE_SIZE)
        try:
            if filters:
                validate_filters(filters)
            needle = query.strip().lower()
            terms = set(needle.split())
            matched = []
            for record in await cls._load_records():
                doc = record.document
                text_match = (
                    needle in (doc.get("displayName") or "").lower()
                    or needle in (doc.get("bio") or "").lower()
                    or any(skill.lower() in terms for skill in record.skills)
                )
                if text_match and matches_filters(record, filters):
                    matched.append((record, calculate_relevance(doc, query)))

            reverse = sort_order != "asc"
            if sort_by == "relevance":
                matched.sort(key=lambda item: (item[1], _epoch(item[0].updated_at)), reverse=True)
            elif sort_by in SORT_FIELDS:
                key = {
                    "experience": lambda item: item[0].experience,
                    "hourlyRate": lambda item: item[0].hourly_rate,
                    "createdAt": lambda item: _epoch(item[0].created_at),
                    "updatedAt": lambda item: _epoch(item[0].updated_at),
                }[sort_by]
                matched.sort(key=key, reverse=reverse)
            else:
                matched.sort(key=lambda item: _epoch(item[0].updated_at), reverse=True)

            results = [to_result_item(record, score) for record, score in cls._paginate(matched, page, limit)]
        except ValueError:
            raise
        except Exception as e:
            logger.exception("Profile search for %r failed", query)
            raise ValidationError(f"Search failed: {e}") from e

        total = len(matched)
        return SearchResponse(
            results=results,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
            query=query,
            filters=filters.model_dump(by_alias=True, exclude_none=True, mode="json") if filters else {},
            execution_time=_elapsed_ms(start),
        )

    @classmethod
    async def filter_profiles(cls, filters: SearchFilters, page: int = 1, limit: int = 20) -> SearchResponse:
        """Multi-criteria filtering, most recently updated first."""
        start = time.perf_counter()
        validate_filters(filters)
        page = max(page, 1)
        limit = min(limit or 20, MAX_PAGE_SIZE)
        try:
            matched = [record for record in await cls._load_records() if matches_filters(record, filters)]
            results = [to_result_item(record, 1.0) for record in cls._paginate(matched, page, limit)]
        except ValueError:
            raise
        except Exception as e:
            logger.exception("Profile filtering failed")
            raise ValidationError(f"Filter failed: {e}") from e

        total = len(matched)
        return SearchResponse(
            results=results,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
            query="",
            filters=filters.model_dump(by_alias=True, exclude_none=True, mode="json"),
            execution_time=_elapsed_ms(start),
        )

    @classmethod
    async def get_profile_recommendations(cls, user_id: int, limit: int = 10) -> RecommendationsResponse:
        """Suggest profiles of the opposite role that fit the user's own profile."""
        start = time.perf_counter()
        own = await cls._load_records("p.user_id = ?", (user_id,))
        if not own:
            raise NotFoundError("User profile not found")
        user = own[0]
        target_role = "CLIENT" if user.role == "DEVELOPER" else "DEVELOPER"
        user_skills = user.skills
        user_experience = user.document.get("experience")
        user_availability = user.document.get("availability")

        try:
            candidates = []
            for record in await cls._load_records("p.user_id != ?", (user_id,)):
                if record.role != target_role:
                    continue
                if user_skills and not set(user_skills) & set(record.skills):
                    continue
                if user_experience:
                    experience = record.document.get("experience")
                    if experience is None or not max(0, user_experience - 2) <= experience <= user_experience + 2:
                        continue
                if user_availability and (record.document.get("availability") or {}).get("available") is not True:
                    continue
                candidates.append(record)
                if len(candidates) >= limit * 2:
                    break

            recommendations = []
            for record in candidates:
                criteria = cls._matching_criteria(user, record)
                score = cls._recommendation_score(user, record)
                recommendations.append(
                    ProfileRecommendation(
                        profile=to_result_item(record, score),
                        reason=", ".join(RECOMMENDATION_REASONS[c] for c in criteria)
                        if criteria else "Based on general compatibility",
                        score=score,
                        matching_criteria=criteria,
                    )
                )
            recommendations.sort(key=lambda r: r.score, reverse=True)
            recommendations = recommendations[:limit]
        except Exception as e:
            logger.exception("Recommendations for user %s failed", user_id)
            raise ValidationError(f"Failed to get recommendations: {e}") from e

        return RecommendationsResponse(
            recommendations=recommendations,
            user_id=user_id,
            count=len(recommendations),
            generation_time=_elapsed_ms(start),
        )

    @staticmethod
    def _matching_criteria(user: ProfileRecord, record: ProfileRecord) -> List[str]:
        criteria = []
        if set(user.skills) & set(record.skills):
            criteria.append("skills")
        if user.experience and record.experience and abs(user.experience - record.experience) <= 2:
            criteria.append("experience")
        user_availability = user.document.get("availability")
        other_availability = record.document.get("availability")
        if user_availability and other_availability:
            if is_profile_available(user_availability) == is_profile_available(other_availability):
                criteria.append("availability")
        return criteria

    @staticmethod
    def _recommendation_score(user: ProfileRecord, record: ProfileRecord) -> float:
        score = 0.0
        if user.skills and record.skills:
            matching = [skill for skill in user.skills if skill in record.skills]
            score += len(matching) / max(len(user.skills), 1) * 0.4
        if user.experience and record.experience:
            score += max(0.0, 1 - abs(user.experience - record.experience) / 5) * 0.3
        user_availability = user.document.get("availability")
        other_availability = record.document.get("availability")
        if user_availability and other_availability:
            if is_profile_available(user_availability) == is_profile_available(other_availability):
                score += 0.2
        score += record.completion / 100 * 0.1
        return min(score, 1.0)

    @classmethod
    async def get_popular_skills(cls, limit: int = 20) -> PopularSkillsResponse:
        """Most common skills with average rate and experience of their holders."""
        try:
            records = [record for record in await cls._load_records() if record.skills]
        except Exception as e:
            logger.exception("Popular skills analysis failed")
            raise ValidationError(f"Failed to get popular skills: {e}") from e

        stats: Dict[str, Dict[str, float]] = {}
        for record in records:
            for skill in record.skills:
                entry = stats.setdefault(skill, {"count": 0, "rate": 0.0, "experience": 0.0})
                entry["count"] += 1
                entry["rate"] += record.hourly_rate
                entry["experience"] += record.experience

        total = len(records)
        skills = [
            PopularSkill(
                skill=skill,
                count=int(entry["count"]),
                percentage=entry["count"] / total * 100,
                average_hourly_rate=entry["rate"] / entry["count"],
                average_experience=entry["experience"] / entry["count"],
            )
            for skill, entry in stats.items()
        ]
        skills.sort(key=lambda s: s.count, reverse=True)
        return PopularSkillsResponse(
            skills=skills[:limit],
            total_profiles=total,
            analyzed_at=datetime.now(timezone.utc),
        )

    @classmethod
    async def get_trending_profiles(cls, limit: int = 10) -> TrendingProfilesResponse:
        """Recently updated profiles ranked by completion, recency and skill demand."""
        from freelance_marketplace_api.app.core.db import to_db_timestamp
        now = datetime.now(timezone.utc)
        since = to_db_timestamp(now - timedelta(days=TRENDING_WINDOW_DAYS))
        try:
            records = (await cls._load_records("p.updated_at >= ?", (since,)))[: limit * 3]
        except Exception as e:
            logger.exception("Trending profiles analysis failed")
            raise ValidationError(f"Failed to get trending profiles: {e}") from e

        trending = []
        for record in records:
            completion = record.completion
            days = (now - record.updated_at).total_seconds() / 86400 if record.updated_at else TRENDING_WINDOW_DAYS
            in_demand = [skill for skill in record.skills if skill in IN_DEMAND_SKILLS]

            score = completion / 100 * 0.4
            score += max(0.0, 1 - days / TRENDING_WINDOW_DAYS) * 0.3
            if record.skills:
                score += len(in_demand) / len(record.skills) * 0.2
            if record.experience:
                score += min(record.experience / 10, 1) * 0.1
            score = min(score, 1.0)

            factors = []
            if completion >= 80:
                factors.append("high_completion")
            if days <= 7:
                factors.append("recent_activity")
            if in_demand:
                factors.append("skill_demand")

            trending.append(
                TrendingProfile(
                    profile=to_result_item(record, score, completion),
                    trending_score=score,
                    trending_factors=factors,
                    days_since_update=round(days, 2),
                )
            )
        trending.sort(key=lambda t: t.trending_score, reverse=True)
        trending = trending[:limit]
        return TrendingProfilesResponse(
            profiles=trending,
            count=len(trending),
            period=f"last_{TRENDING_WINDOW_DAYS}_days",
            analyzed_at=now,
        )
