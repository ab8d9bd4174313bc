"""Pydantic schemas for validating AI responses and user input."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.taxonomy import normalise_tags, validate_category

LOGGER = logging.getLogger(__name__)


class DetectedItemInfo(BaseModel):
    """One garment identified by the classifier. Every field is required."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    category: str
    tags: List[str]
    color: str = Field(min_length=1)
    season: str = Field(min_length=1)
    suggestion: str

    @field_validator("category")
    @classmethod
    def _validate_category(cls, value: str) -> str:
        return validate_category(value)

    @field_validator("tags")
    @classmethod
    def _normalise_tags(cls, value: List[str]) -> List[str]:
        return normalise_tags(value)


class OutfitEvaluation(BaseModel):
    """Stylist score and review for a set of items."""

    model_config = ConfigDict(extra="ignore")

    score: float = Field(ge=0, le=100)
    review: str = Field(min_length=1)


class RecommendationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    review: str
    score: float = Field(ge=0, le=100)
    scenario: str = Field(min_length=1)
    item_ids: List[str] = Field(alias="itemIds", min_length=1)


class BodyMetricsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    shoulder_width: float = Field(alias="shoulderWidth", gt=0)
    waist_width: float = Field(alias="waistWidth", gt=0)
    height_ratio: float = Field(alias="heightRatio", gt=0)


class LoginRequest(BaseModel):
    username: str

    @field_validator("username")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Account name must not be empty")
        return stripped


class ValidationResult(BaseModel):
    """Summary returned when a model response is partially rejected."""

    status: Literal["ok", "needs_review"] = "ok"
    accepted: int
    rejected: List[Dict[str, Any]] = []


def parse_entries(model: type[BaseModel], payload: Any) -> tuple[list, ValidationResult]:
    """Validate each entry of a list payload, dropping the ones that fail.

    A payload that is not a list raises ``ValueError``.
    """

    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array, got {type(payload).__name__}")

    accepted = []
    rejected: List[Dict[str, Any]] = []
    for index, entry in enumerate(payload):
        try:
            accepted.append(model.model_validate(entry))
        except ValidationError as exc:
            rejected.append({"index": index, "errors": exc.errors(include_input=False)})

    if rejected:
        LOGGER.warning(
            "Rejected model entries failing schema checks",
            extra={"schema": model.__name__, "rejected": len(rejected)},
        )
    result = ValidationResult(
        status="needs_review" if rejected else "ok",
        accepted=len(accepted),
        rejected=rejected,
    )
    return accepted, result


def validation_message(exc: ValidationError) -> Optional[str]:
    """First human-readable error from a pydantic failure."""

    errors = exc.errors(include_input=False)
    if not errors:
        return None
    first = errors[0]
    if first["type"] == "value_error" and "error" in first.get("ctx", {}):
        return str(first["ctx"]["error"])
    return first["msg"]


__all__ = [
    "BodyMetricsPayload",
    "DetectedItemInfo",
    "LoginRequest",
    "OutfitEvaluation",
    "RecommendationPayload",
    "ValidationResult",
    "parse_entries",
    "validation_message",
]
