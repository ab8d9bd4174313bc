"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.closet_item import ClosetItem, CustomAttribute, from_record, starter_items
from models.outfit import AIRecommendation, Outfit, outfit_from_record
from models.user import BodyMetrics, UserAccount, UserProfile

__all__ = [
    "AIRecommendation",
    "BodyMetrics",
    "ClosetItem",
    "CustomAttribute",
    "Outfit",
    "UserAccount",
    "UserProfile",
    "from_record",
    "outfit_from_record",
    "starter_items",
]
