"""
Profile completion scoring and validation.

All functions work on plain profile documents with camelCase keys, as
produced by :func:`profile_service.profile_to_document`, and never touch
the database.  Field names may use dot notation (``location.city``).
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..schemas.profile import (
    CompletionResult,
    CompletionStats,
    FieldValidation,
    ProfileValidation,
    RequiredField,
    RequiredFieldsResult,
)


@dataclass
class CompletionCategory:
    name: str
    fields: List[str]
    weight: int
    suggestions: Dict[str, str] = field(default_factory=dict)


COMPLETION_CATEGORIES = [
    CompletionCategory(
        "basic",
        ["displayName", "bio"],
        20,
        {
            "displayName": "Add your display name to make your profile more personal",
            "bio": "Add a bio to tell others about yourself and your expertise",
        },
    ),
    CompletionCategory(
        "professional",
        ["skills", "experience", "hourlyRate"],
        35,
        {
            "skills": "Add your skills to showcase your expertise",
            "experience": "Add your years of experience",
            "hourlyRate": "Set your hourly rate to help clients understand your pricing",
        },
    ),
    CompletionCategory(
        "availability",
        ["availability", "location"],
        25,
        {
            "availability": "Set your availability to help clients know when you're free",
            "location": "Add your location to help with timezone coordination",
        },
    ),
    CompletionCategory(
        "contact",
        ["contactEmail", "contactPhone"],
        20,
        {
            "contactEmail": "Add your contact email for direct communication",
            "contactPhone": "Add your phone number for urgent communications",
        },
    ),
]

DEFAULT_SUGGESTIONS = [
    "Start by adding your basic information",
    "Complete your professional details",
    "Set your availability and contact information",
]
MAX_SUGGESTIONS = 3

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[1-9]\d{0,15}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()]")


def _required(field_name, display_name, description, category, type_, rules=None) -> RequiredField:
    return RequiredField(
        field=field_name,
        display_name=display_name,
        description=description,
        category=category,
        required=True,
        type=type_,
        validation_rules=rules,
    )


_DISPLAY_NAME = _required(
    "displayName", "Display Name", "Your public display name", "basic", "string",
    {"minLength": 2, "maxLength": 50},
)
_CONTACT_EMAIL = _required(
    "contactEmail", "Contact Email", "Your contact email address", "contact", "string",
    {"isEmail": True},
)

REQUIRED_FIELDS_BY_ROLE: Dict[str, List[RequiredField]] = {
    "DEVELOPER": [
        _DISPLAY_NAME,
        _required("bio", "Bio", "Brief description about yourself", "basic", "string",
                  {"minLength": 10, "maxLength": 500}),
        _required("skills", "Skills", "Your technical skills and expertise", "professional", "array",
                  {"minLength": 1, "maxLength": 20}),
        _required("experience", "Years of Experience", "Your professional experience in years",
                  "professional", "number", {"min": 0, "max": 50}),
        _required("hourlyRate", "Hourly Rate", "Your hourly rate in USD", "professional", "number",
                  {"min": 1, "max": 1000}),
        _required("availability", "Availability", "Your availability schedule", "availability", "object"),
        _required("location", "Location", "Your location information", "availability", "object"),
        _CONTACT_EMAIL,
    ],
    "CLIENT": [
        _DISPLAY_NAME,
        _required("bio", "Bio", "Brief description about your company or project needs", "basic", "string",
                  {"minLength": 10, "maxLength": 500}),
        _required("companyName", "Company Name", "Your company name", "professional", "string",
                  {"minLength": 2, "maxLength": 100}),
        _required("companyDescription", "Company Description", "Description of your company",
                  "professional", "string", {"minLength": 10, "maxLength": 1000}),
        _CONTACT_EMAIL,
        _required("contactPhone", "Contact Phone", "Your contact phone number", "contact", "string",
                  {"isPhoneNumber": True}),
    ],
    "ADMIN": [
        _DISPLAY_NAME,
        _required("bio", "Bio", "Brief description about yourself", "basic", "string",
                  {"minLength": 10, "maxLength": 500}),
        _CONTACT_EMAIL,
    ],
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_nested_value(profile: Dict[str, Any], path: str) -> Any:
    current: Any = profile
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def is_field_complete(profile: Dict[str, Any], path: str) -> bool:
    """Tell whether a profile field carries a meaningful value.

    Strings must be non-blank, numbers positive, lists non-empty and
    mappings need at least one non-empty value.  Booleans always count.
    """
    value = get_nested_value(profile, path)
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, dict):
        return any(v is not None and v != "" for v in value.values())
    return True


def value_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return f"{value:g}" if isinstance(value, float) else str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _as_number(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def apply_validation_rules(value: str, rules: Dict[str, Any]) -> Optional[str]:
    """Return the first rule violation for ``value``, ``None`` if it passes."""
    min_length = rules.get("minLength")
    if min_length and len(value) < min_length:
        return f"Minimum length is {min_length} characters"
    max_length = rules.get("maxLength")
    if max_length and len(value) > max_length:
        return f"Maximum length is {max_length} characters"

    number = _as_number(value)
    if number is not None:
        if rules.get("min") is not None and number < rules["min"]:
            return f"Minimum value is {rules['min']}"
        if rules.get("max") is not None and number > rules["max"]:
            return f"Maximum value is {rules['max']}"

    if rules.get("isEmail") and not EMAIL_RE.match(value):
        return "Invalid email format"
    if rules.get("isPhoneNumber") and not PHONE_RE.match(PHONE_STRIP_RE.sub("", value)):
        return "Invalid phone number format"
    return None


class ProfileCompletionService:
    """Completion scores, required fields and validation per role."""

    @staticmethod
    def calculate_completion(profile: Optional[Dict[str, Any]]) -> CompletionResult:
        if not profile:
            return CompletionResult(
                overall=0,
                breakdown={category.name: 0 for category in COMPLETION_CATEGORIES},
                missing_fields=[f for category in COMPLETION_CATEGORIES for f in category.fields],
                suggestions=list(DEFAULT_SUGGESTIONS),
            )

        weighted_total = 0.0
        total_weight = 0
        breakdown: Dict[str, int] = {}
        missing: List[str] = []
        suggestions: List[str] = []
        for category in COMPLETION_CATEGORIES:
            completed = 0
            for name in category.fields:
                if is_field_complete(profile, name):
                    completed += 1
                else:
                    missing.append(name)
                    if name in category.suggestions:
                        suggestions.append(category.suggestions[name])
            percentage = completed / len(category.fields) * 100
            breakdown[category.name] = round_half_up(percentage)
            weighted_total += percentage * category.weight
            total_weight += category.weight

        overall = round_half_up(weighted_total / total_weight) if total_weight else 0
        return CompletionResult(
            overall=overall,
            breakdown=breakdown,
            missing_fields=missing,
            suggestions=suggestions[:MAX_SUGGESTIONS],
        )

    @classmethod
    def get_completion_stats(cls, profiles: Sequence[Dict[str, Any]]) -> CompletionStats:
        if not profiles:
            return CompletionStats(average_completion=0, completion_distribution={}, low_completion_count=0)

        distribution = {"0-25": 0, "26-50": 0, "51-75": 0, "76-100": 0}
        total = 0
        low = 0
        for profile in profiles:
            overall = cls.calculate_completion(profile).overall
            total += overall
            if overall <= 25:
                distribution["0-25"] += 1
                low += 1
            elif overall <= 50:
                distribution["26-50"] += 1
            elif overall <= 75:
                distribution["51-75"] += 1
            else:
                distribution["76-100"] += 1
        return CompletionStats(
            average_completion=round_half_up(total / len(profiles)),
            completion_distribution=distribution,
            low_completion_count=low,
        )

    @staticmethod
    def _validate_field(profile: Dict[str, Any], required: RequiredField) -> FieldValidation:
        string_value = value_to_string(get_nested_value(profile, required.field))
        error = None
        if not is_field_complete(profile, required.field):
            error = f"{required.display_name} is required"
        elif required.validation_rules:
            error = apply_validation_rules(string_value, required.validation_rules)
        return FieldValidation(
            field=required.field,
            is_valid=error is None,
            error_message=error,
            value=string_value,
            required=required.required,
        )

    @classmethod
    def validate_profile(cls, profile: Optional[Dict[str, Any]], role: str) -> ProfileValidation:
        required_fields = REQUIRED_FIELDS_BY_ROLE.get(role, [])
        if not profile:
            validations = [
                FieldValidation(
                    field=f.field,
                    is_valid=False,
                    error_message=f"{f.display_name} is required",
                    value="",
                    required=f.required,
                )
                for f in required_fields
            ]
        else:
            validations = [cls._validate_field(profile, f) for f in required_fields]

        valid = sum(1 for v in validations if v.is_valid)
        total = len(required_fields)
        return ProfileValidation(
            is_valid=bool(profile) and valid == total,
            valid_fields_count=valid,
            invalid_fields_count=total - valid,
            total_fields_count=total,
            validation_percentage=round_half_up(valid / total * 100) if total else 0,
            field_validations=validations,
        )

    @staticmethod
    def get_required_fields(role: str, profile: Optional[Dict[str, Any]] = None) -> RequiredFieldsResult:
        required_fields = REQUIRED_FIELDS_BY_ROLE.get(role, [])
        completed = 0
        if profile:
            completed = sum(1 for f in required_fields if is_field_complete(profile, f.field))
        total = len(required_fields)
        return RequiredFieldsResult(
            role=role,
            required_fields=required_fields,
            total_required_fields=total,
            completed_required_fields=completed,
            required_fields_completion=round_half_up(completed / total * 100) if total else 0,
        )
