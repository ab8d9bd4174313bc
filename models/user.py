"""User account and profile records."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class UserAccount:
    id: str
    username: str
    avatar: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserProfile:
    """Display name plus the photos used as generation input."""

    name: str = ""
    photo_url: str = ""
    body_photo_url: str = ""

    @property
    def reference_photo(self) -> Optional[str]:
        return self.body_photo_url or self.photo_url or None

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BodyMetrics:
    """Mannequin scale multipliers, 1.0 being the base mesh."""

    shoulder_width: float = 1.0
    waist_width: float = 1.0
    height_ratio: float = 1.0


def account_from_record(record: Any) -> Optional[UserAccount]:
    """Return an account for a session record with a non-empty username."""

    if not isinstance(record, dict):
        return None
    username = str(record.get("username") or "").strip()
    if not username:
        return None
    return UserAccount(id=str(record.get("id") or ""), username=username, avatar=record.get("avatar"))


def profile_from_record(record: Any, default_name: str) -> UserProfile:
    if not isinstance(record, dict):
        return UserProfile(name=default_name)
    return UserProfile(
        name=str(record.get("name") or ""),
        photo_url=str(record.get("photo_url") or ""),
        body_photo_url=str(record.get("body_photo_url") or ""),
    )


__all__ = [
    "BodyMetrics",
    "UserAccount",
    "UserProfile",
    "account_from_record",
    "profile_from_record",
]
