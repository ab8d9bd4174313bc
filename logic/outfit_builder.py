"""Outfit composition: item selection, saving and recommendation conversion."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from logic.validation import OutfitEvaluation, RecommendationPayload
from models.closet_item import ClosetItem
from models.outfit import DEFAULT_NAME, DEFAULT_REVIEW, DEFAULT_SCORE, AIRecommendation, Outfit

MIN_ITEMS_TO_SAVE = 1
MIN_ITEMS_TO_EVALUATE = 2
MIN_ITEMS_FOR_RECOMMENDATIONS = 2


class OutfitSelection:
    """At most one selected item per category; selecting the same item again clears it."""

    def __init__(self) -> None:
        self._by_category: Dict[str, ClosetItem] = {}

    def toggle(self, item: ClosetItem) -> None:
        current = self._by_category.get(item.category)
        if current is not None and current.id == item.id:
            del self._by_category[item.category]
        else:
            self._by_category[item.category] = item

    def discard(self, item_id: str) -> None:
        for category, item in list(self._by_category.items()):
            if item.id == item_id:
                del self._by_category[category]

    def clear(self) -> None:
        self._by_category.clear()

    @property
    def items(self) -> List[ClosetItem]:
        return list(self._by_category.values())


def top_and_bottom(items: Sequence[ClosetItem]) -> tuple[Optional[ClosetItem], Optional[ClosetItem]]:
    """Pick the pieces drawn in the flat-lay preview."""

    top = next((i for i in items if i.category == "Tops"), None) or next(
        (i for i in items if i.category == "Dresses"), None
    )
    bottom = next((i for i in items if i.category == "Bottoms"), None)
    return top, bottom


def require_items(items: Sequence[ClosetItem], minimum: int, action: str) -> None:
    if len(items) < minimum:
        raise ValueError(f"Select at least {minimum} item(s) to {action}")


def build_outfit(
    items: Sequence[ClosetItem],
    now_ms: int,
    name: Optional[str] = None,
    scenario: str = "Casual",
    evaluation: Optional[OutfitEvaluation] = None,
    local_preview: Optional[str] = None,
) -> Outfit:
    """A manually styled outfit, queued for AI preview rendering.

    Without an evaluation the score and review fall back to fixed defaults.
    """

    require_items(items, MIN_ITEMS_TO_SAVE, "save an outfit")
    return Outfit(
        id=f"outfit-{now_ms}",
        name=name or DEFAULT_NAME,
        scenario=scenario,
        items=list(items),
        score=evaluation.score if evaluation else DEFAULT_SCORE,
        review=evaluation.review if evaluation else DEFAULT_REVIEW,
        created_at=now_ms,
        local_preview_url=local_preview,
        preview_status="generating",
    )


def recommendations_from_payloads(
    payloads: Sequence[RecommendationPayload], now_ms: int
) -> List[AIRecommendation]:
    return [
        AIRecommendation(
            id=f"rec-{now_ms}-{index}",
            name=payload.name,
            review=payload.review,
            score=payload.score,
            scenario=payload.scenario,
            item_ids=list(payload.item_ids),
            is_generating=True,
        )
        for index, payload in enumerate(payloads)
    ]


def resolve_items(item_ids: Sequence[str], items: Sequence[ClosetItem]) -> List[ClosetItem]:
    """Look up ids in the closet, dropping ones that no longer exist."""

    by_id = {item.id: item for item in items}
    return [by_id[item_id] for item_id in item_ids if item_id in by_id]


def recommendation_to_outfit(rec: AIRecommendation, items: Sequence[ClosetItem], now_ms: int) -> Outfit:
    return Outfit(
        id=f"outfit-rec-{now_ms}",
        name=rec.name,
        scenario=rec.scenario,
        items=resolve_items(rec.item_ids, items),
        score=rec.score,
        review=rec.review,
        created_at=now_ms,
        preview_url=rec.preview_url,
        preview_status="done",
    )


def describe_outfit(outfit: Outfit) -> str:
    """Short text description used as a video prompt."""

    pieces = [f"{item.color} {item.name}".strip() for item in outfit.items]
    return ", ".join(pieces) or outfit.name


__all__ = [
    "MIN_ITEMS_FOR_RECOMMENDATIONS",
    "MIN_ITEMS_TO_EVALUATE",
    "MIN_ITEMS_TO_SAVE",
    "OutfitSelection",
    "build_outfit",
    "describe_outfit",
    "recommendation_to_outfit",
    "recommendations_from_payloads",
    "require_items",
    "resolve_items",
    "top_and_bottom",
]
