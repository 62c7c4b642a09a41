from __future__ import annotations

import json
import math
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

NO_VENDORS_MESSAGE = "No active vendors found for the selected service category."

_CATEGORY_SEPARATORS = re.compile(r"\s*[,;/]\s*")
_TRUTHY = {"true", "yes", "y", "1"}


def parse_service_categories(value: str | None) -> list[str]:
    """Split a stored category string on ``,``, ``;`` or ``/`` into lower-cased tokens."""
    if not value or not isinstance(value, str):
        return []
    return [c.strip().lower() for c in _CATEGORY_SEPARATORS.split(value) if c.strip()]


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return None if number is None else int(number)


class VendorStatus(str, Enum):
    active = "Active"
    testing = "Testing"
    inactive = "Inactive"


# ── Tabular store records ────────────────────────────────────────────────


class Vendor(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    vendor_id: str = ""
    vendor_name: str = ""
    service_categories: str = ""
    status: str = ""
    avg_overall_rating: float = 0.0
    total_projects: int = 0
    vendor_notes: str = ""
    contact_name: str = ""
    contact_email: str = ""
    location: str = ""
    specialties: str = ""
    pricing_notes: str = ""

    @field_validator("avg_overall_rating", mode="before")
    @classmethod
    def _parse_rating(cls, value: Any) -> float:
        return _to_float(value) or 0.0

    @field_validator("total_projects", mode="before")
    @classmethod
    def _parse_projects(cls, value: Any) -> int:
        return max(0, _to_int(value) or 0)


class Rating(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    rating_id: str = ""
    vendor_id: str = ""
    rating_date: str = ""
    project_success_rating: float | None = None
    vendor_quality_rating: float | None = None
    vendor_communication_rating: float | None = None
    project_on_time: bool = False
    what_went_well: str = ""

    @field_validator(
        "project_success_rating",
        "vendor_quality_rating",
        "vendor_communication_rating",
        mode="before",
    )
    @classmethod
    def _parse_score(cls, value: Any) -> float | None:
        return _to_float(value)

    @field_validator("project_on_time", mode="before")
    @classmethod
    def _parse_on_time(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() in _TRUTHY


class EnrichedVendor(Vendor):
    """A vendor together with its most recent ratings (newest first)."""

    recent_ratings: list[Rating] = Field(default_factory=list)


# ── Request / response ──────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectRequest(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    project_title: str = Field(..., min_length=1)
    service_category: str = Field(..., min_length=1)
    project_description: str = Field(..., min_length=1)


class VendorRecommendation(_CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    rank: int = Field(..., ge=1)
    vendor_id: str
    vendor_name: str = ""
    match_score: int = Field(..., ge=0, le=100)
    strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str = ""

    @field_validator("match_score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, float) and math.isfinite(value):
            return math.floor(value + 0.5)
        return value


class RecommendationResult(_CamelModel):
    recommendations: list[VendorRecommendation]
    explanation: str = ""
    source: str = ""
    budget_analysis: str | None = None
    risk_factors: str | None = None

    @field_validator("budget_analysis", "risk_factors", mode="before")
    @classmethod
    def _stringify_notes(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value)


class NoCandidatesOutcome(BaseModel):
    service_category: str
    message: str = NO_VENDORS_MESSAGE


class RecommendationResponse(_CamelModel):
    success: bool
    recommendations: list[VendorRecommendation] | None = None
    explanation: str | None = None
    source: str | None = None
    budget_analysis: str | None = None
    risk_factors: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: RecommendationResult) -> RecommendationResponse:
        return cls(
            success=True,
            recommendations=result.recommendations,
            explanation=result.explanation,
            source=result.source,
            budget_analysis=result.budget_analysis,
            risk_factors=result.risk_factors,
        )

    @classmethod
    def from_outcome(
        cls, outcome: RecommendationResult | NoCandidatesOutcome
    ) -> RecommendationResponse:
        if isinstance(outcome, NoCandidatesOutcome):
            return cls(success=False, message=outcome.message)
        return cls.from_result(outcome)

    @classmethod
    def failure(cls, message: str) -> RecommendationResponse:
        return cls(success=False, message=message)
