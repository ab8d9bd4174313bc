"""Closet item, outfit and schema validation tests."""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.validation import (
    DetectedItemInfo,
    LoginRequest,
    OutfitEvaluation,
    RecommendationPayload,
    parse_entries,
    validation_message,
)
from models import taxonomy
from models.closet_item import ClosetItem, from_record, item_from_detected, starter_items
from models.outfit import Outfit, group_by_scenario, outfit_from_record
from models.user import UserProfile, account_from_record, profile_from_record


def test_category_is_normalised_and_validated() -> None:
    item = ClosetItem(id="1", name="Tee", category="tops", tags=[" Summer ", "", "Summer"])
    assert item.category == "Tops"
    assert item.tags == ["Summer", "Summer"]

    with pytest.raises(ValueError):
        ClosetItem(id="2", name="Hat", category="Hats")


def test_progress_rules() -> None:
    queued = ClosetItem(id="1", name="Tee", category="Tops", is_processing=True, processing_progress=150)
    assert queued.processing_progress == 100
    assert not queued.is_pending

    done = ClosetItem(id="2", name="Tee", category="Tops", is_processing=False, processing_progress=10)
    assert done.processing_progress == 100

    pending = ClosetItem(id="3", name="Tee", category="Tops", is_processing=True, processing_progress=10)
    assert pending.is_pending


def test_original_image_defaults_to_image() -> None:
    item = ClosetItem(id="1", name="Tee", category="Tops", image_url="data:image/jpeg;base64,AAAA")
    assert item.original_image_url == item.image_url


def test_record_roundtrip_keeps_custom_attributes() -> None:
    item = ClosetItem(
        id="1",
        name="Linen Shirt",
        category="Tops",
        custom_attributes=[{"label": "Fabric", "value": "Linen"}],
    )
    restored = from_record(item.to_record())
    assert restored == item
    assert restored.custom_attributes[0].label == "Fabric"


def test_from_record_requires_identity_fields() -> None:
    with pytest.raises(ValueError):
        from_record({"id": "1", "name": "", "category": "Tops"})


def test_item_without_name_is_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        ClosetItem(id="1", name="", category="Tops")
    with pytest.raises(ValueError):
        ClosetItem(id="1", name="   ", category="Tops")
    with pytest.raises(ValueError):
        ClosetItem(id="", name="Tee", category="Tops")


def test_detected_item_with_blank_name_is_dropped() -> None:
    entry = {"category": "Tops", "tags": [], "color": "White", "season": "Summer", "suggestion": ""}
    accepted, result = parse_entries(DetectedItemInfo, [{**entry, "name": "   "}, {**entry, "name": " Tee "}])
    assert [info.name for info in accepted] == ["Tee"]
    assert result.status == "needs_review"


def test_item_from_detected_is_queued() -> None:
    info = SimpleNamespace(
        name="Denim Jacket",
        category="Tops",
        tags=["Casual"],
        color="Blue",
        season="Autumn",
        suggestion="Layer over a tee.",
    )
    item = item_from_detected(info, "data:image/jpeg;base64,AAAA", 2, 1700)
    assert item.id == "item-1700-2"
    assert item.is_processing and item.processing_progress == 10
    assert item.original_image_url == item.image_url


def test_starter_items() -> None:
    items = starter_items()
    assert [item.name for item in items] == ["Yellow Owl Tee"]
    assert not items[0].is_processing


def test_outfit_rejects_unknown_preview_status() -> None:
    with pytest.raises(ValueError):
        Outfit(id="o1", name="Look", scenario="Casual", preview_status="rendering")


def test_outfit_record_roundtrip_and_grouping() -> None:
    outfit = Outfit(
        id="o1",
        name="Look",
        scenario="Work",
        items=starter_items(),
        local_preview_url="data:image/jpeg;base64,AAAA",
        preview_status="failed",
    )
    restored = outfit_from_record(outfit.to_record())
    assert restored.items[0].name == "Yellow Owl Tee"
    assert restored.display_image == "data:image/jpeg;base64,AAAA"
    assert list(group_by_scenario([restored])) == ["Work"]


def test_users_from_records() -> None:
    assert account_from_record({"id": "u-1", "username": "  "}) is None
    assert account_from_record(None) is None
    assert account_from_record({"id": "u-1", "username": "alice"}).username == "alice"

    assert profile_from_record(None, default_name="alice").name == "alice"
    profile = UserProfile(photo_url="face", body_photo_url="")
    assert profile.reference_photo == "face"
    assert UserProfile().reference_photo is None


def test_parse_entries_drops_invalid_items() -> None:
    payload = [
        {
            "name": "White Tee",
            "category": "TOPS",
            "tags": ["Casual"],
            "color": "White",
            "season": "Summer",
            "suggestion": "Wear with jeans.",
        },
        {"name": "Mystery", "category": "Hats", "tags": [], "color": "Red", "season": "All", "suggestion": ""},
        {"name": "No colour", "category": "Shoes", "tags": [], "season": "All", "suggestion": ""},
    ]
    accepted, result = parse_entries(DetectedItemInfo, payload)
    assert [entry.category for entry in accepted] == ["Tops"]
    assert result.status == "needs_review"
    assert [entry["index"] for entry in result.rejected] == [1, 2]


def test_parse_entries_requires_list() -> None:
    with pytest.raises(ValueError):
        parse_entries(DetectedItemInfo, {"name": "White Tee"})


def test_recommendation_alias_and_bounds() -> None:
    rec = RecommendationPayload.model_validate(
        {"name": "City", "review": "Sharp.", "score": 88, "scenario": "Work", "itemIds": ["1", "2"]}
    )
    assert rec.item_ids == ["1", "2"]

    with pytest.raises(ValidationError):
        OutfitEvaluation.model_validate({"score": 101, "review": "Too good"})


def test_login_request_strips_and_rejects_empty() -> None:
    assert LoginRequest(username="  alice ").username == "alice"
    with pytest.raises(ValidationError) as excinfo:
        LoginRequest(username="   ")
    assert validation_message(excinfo.value) == "Account name must not be empty"


def test_merge_scenarios_keeps_defaults_first() -> None:
    merged = taxonomy.merge_scenarios(["Date Night", "Work", ""])
    assert merged[: len(taxonomy.DEFAULT_SCENARIOS)] == taxonomy.DEFAULT_SCENARIOS
    assert merged[-1] == "Date Night"


def test_outfit_record_keeps_empty_strings_and_zero_score() -> None:
    outfit = Outfit(id="o1", name="", scenario="", items=starter_items(), score=0, review="")
    restored = outfit_from_record(outfit.to_record())
    assert restored == outfit

    legacy = outfit_from_record({"id": "o2", "name": None, "review": None, "score": None})
    assert (legacy.name, legacy.review, legacy.score) == ("New Look", "Manually styled look.", 85)
