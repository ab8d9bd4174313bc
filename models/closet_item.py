"""Closet item data model and helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from models.taxonomy import normalise_tags, validate_category

QUEUED_PROGRESS = 10
STARTED_PROGRESS = 20
DONE_PROGRESS = 100

_STARTER_IMAGE = (
    "https://images.unsplash.com/photo-1576566588028-4147f3842f27"
    "?auto=format&fit=crop&q=80&w=400"
)


def _ensure_list(value: Any) -> List[Any]:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class CustomAttribute:
    label: str
    value: str


@dataclass
class ClosetItem:
    """A garment in the user's closet, including its enrichment state."""

    id: str
    name: str
    category: str
    tags: List[str] = field(default_factory=list)
    color: str = ""
    season: str = ""
    suggestion: Optional[str] = None
    image_url: str = ""
    original_image_url: str = ""
    custom_attributes: List[CustomAttribute] = field(default_factory=list)
    is_processing: bool = False
    processing_progress: int = DONE_PROGRESS

    def __post_init__(self) -> None:
        if not str(self.id or "").strip():
            raise ValueError("Closet item id must not be empty")
        if not str(self.name or "").strip():
            raise ValueError("Closet item name must not be empty")
        self.category = validate_category(self.category)
        self.tags = normalise_tags(_ensure_list(self.tags))
        self.custom_attributes = [
            attr if isinstance(attr, CustomAttribute) else CustomAttribute(**attr)
            for attr in _ensure_list(self.custom_attributes)
        ]
        self.processing_progress = max(0, min(DONE_PROGRESS, int(self.processing_progress)))
        if not self.is_processing:
            # Finished items always report full progress.
            self.processing_progress = DONE_PROGRESS
        if not self.original_image_url:
            self.original_image_url = self.image_url

    @property
    def is_pending(self) -> bool:
        return self.is_processing and self.processing_progress < DONE_PROGRESS

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


def from_record(record: Dict[str, Any]) -> ClosetItem:
    """Rebuild a :class:`ClosetItem` from a stored record."""

    required_fields = ["id", "name", "category"]
    missing = [name for name in required_fields if not record.get(name)]
    if missing:
        raise ValueError(f"Missing required fields for ClosetItem: {missing}")

    return ClosetItem(
        id=str(record["id"]),
        name=str(record["name"]),
        category=str(record["category"]),
        tags=_ensure_list(record.get("tags")),
        color=str(record.get("color") or ""),
        season=str(record.get("season") or ""),
        suggestion=record.get("suggestion"),
        image_url=str(record.get("image_url") or ""),
        original_image_url=str(record.get("original_image_url") or ""),
        custom_attributes=_ensure_list(record.get("custom_attributes")),
        is_processing=bool(record.get("is_processing", False)),
        processing_progress=int(record.get("processing_progress", DONE_PROGRESS)),
    )


def item_from_detected(info: Any, image: str, index: int, now_ms: int) -> ClosetItem:
    """Build a queued item from a validated classifier entry."""

    return ClosetItem(
        id=f"item-{now_ms}-{index}",
        name=info.name,
        category=info.category,
        tags=list(info.tags),
        color=info.color,
        season=info.season,
        suggestion=info.suggestion,
        image_url=image,
        original_image_url=image,
        is_processing=True,
        processing_progress=QUEUED_PROGRESS,
    )


def starter_items() -> List[ClosetItem]:
    """Items shown to a username that has nothing stored yet."""

    return [
        ClosetItem(
            id="1",
            name="Yellow Owl Tee",
            category="Tops",
            tags=["Summer", "Casual"],
            color="Yellow",
            season="Summer",
            suggestion="Pair with blue denim shorts or comfortable joggers.",
            image_url=_STARTER_IMAGE,
            original_image_url=_STARTER_IMAGE,
        )
    ]


__all__ = [
    "ClosetItem",
    "CustomAttribute",
    "DONE_PROGRESS",
    "QUEUED_PROGRESS",
    "STARTED_PROGRESS",
    "from_record",
    "item_from_detected",
    "starter_items",
]
