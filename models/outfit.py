"""Outfit and recommendation schemas."""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

from models.closet_item import ClosetItem, from_record as item_from_record

PreviewStatus = Literal["generating", "done", "failed"]
PREVIEW_STATUSES = ("generating", "done", "failed")

DEFAULT_SCORE = 85
DEFAULT_REVIEW = "Manually styled look."
DEFAULT_NAME = "New Look"


@dataclass
class Outfit:
    """A saved look. Items are embedded copies, not references."""

    id: str
    name: str
    scenario: str
    items: List[ClosetItem] = field(default_factory=list)
    score: float = DEFAULT_SCORE
    review: str = DEFAULT_REVIEW
    created_at: int = 0
    preview_url: Optional[str] = None
    local_preview_url: Optional[str] = None
    preview_status: Optional[PreviewStatus] = None
    video_url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.preview_status is not None and self.preview_status not in PREVIEW_STATUSES:
            raise ValueError(f"Unsupported preview status '{self.preview_status}'")
        self.items = [copy.deepcopy(item) for item in self.items]

    @property
    def display_image(self) -> Optional[str]:
        return self.preview_url or self.local_preview_url

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AIRecommendation:
    id: str
    name: str
    review: str
    score: float
    scenario: str
    item_ids: List[str] = field(default_factory=list)
    preview_url: Optional[str] = None
    is_generating: bool = False


def _or_default(value: Any, default: str) -> str:
    return default if value is None else str(value)


def outfit_from_record(record: Dict[str, Any]) -> Outfit:
    """Rebuild an :class:`Outfit` from a stored record."""

    if not record.get("id"):
        raise ValueError("Missing required field for Outfit: id")
    return Outfit(
        id=str(record["id"]),
        name=_or_default(record.get("name"), DEFAULT_NAME),
        scenario=_or_default(record.get("scenario"), ""),
        items=[item_from_record(item) for item in record.get("items") or []],
        score=DEFAULT_SCORE if record.get("score") is None else record["score"],
        review=_or_default(record.get("review"), DEFAULT_REVIEW),
        created_at=int(record.get("created_at") or 0),
        preview_url=record.get("preview_url"),
        local_preview_url=record.get("local_preview_url"),
        preview_status=record.get("preview_status"),
        video_url=record.get("video_url"),
    )


def group_by_scenario(outfits: List[Outfit]) -> Dict[str, List[Outfit]]:
    """Group outfits by scenario, preserving list order inside each group."""

    groups: Dict[str, List[Outfit]] = {}
    for outfit in outfits:
        if not outfit.scenario:
            continue
        groups.setdefault(outfit.scenario, []).append(outfit)
    return groups


__all__ = [
    "AIRecommendation",
    "DEFAULT_NAME",
    "DEFAULT_REVIEW",
    "DEFAULT_SCORE",
    "Outfit",
    "PreviewStatus",
    "group_by_scenario",
    "outfit_from_record",
]
