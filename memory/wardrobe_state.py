"""In-memory wardrobe collections with functional updates and change listeners."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List

from models.closet_item import ClosetItem
from models.outfit import Outfit
from models.user import UserProfile

Listener = Callable[["WardrobeState"], Awaitable[None]]


@dataclass
class WardrobeSnapshot:
    items: List[ClosetItem] = field(default_factory=list)
    outfits: List[Outfit] = field(default_factory=list)
    calendar: Dict[str, str] = field(default_factory=dict)
    profile: UserProfile = field(default_factory=UserProfile)


class WardrobeState:
    """Holds the active user's collections.

    Updates take a function of the latest value so that callbacks resumed
    after an await never write back a stale copy. Each update awaits the
    registered listeners, which is where persistence hooks in.
    """

    def __init__(self) -> None:
        self.items: List[ClosetItem] = []
        self.outfits: List[Outfit] = []
        self.calendar: Dict[str, str] = {}
        self.profile = UserProfile()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def _changed(self) -> None:
        for listener in list(self._listeners):
            await listener(self)

    async def update_items(self, fn: Callable[[List[ClosetItem]], List[ClosetItem]]) -> List[ClosetItem]:
        self.items = list(fn(list(self.items)))
        await self._changed()
        return self.items

    async def update_outfits(self, fn: Callable[[List[Outfit]], List[Outfit]]) -> List[Outfit]:
        self.outfits = list(fn(list(self.outfits)))
        await self._changed()
        return self.outfits

    async def update_calendar(self, fn: Callable[[Dict[str, str]], Dict[str, str]]) -> Dict[str, str]:
        self.calendar = dict(fn(dict(self.calendar)))
        await self._changed()
        return self.calendar

    async def update_profile(self, fn: Callable[[UserProfile], UserProfile]) -> UserProfile:
        self.profile = fn(self.profile)
        await self._changed()
        return self.profile

    def load(self, snapshot: WardrobeSnapshot) -> None:
        """Replace every collection without notifying listeners."""

        self.items = list(snapshot.items)
        self.outfits = list(snapshot.outfits)
        self.calendar = dict(snapshot.calendar)
        self.profile = snapshot.profile

    def reset(self) -> None:
        self.load(WardrobeSnapshot())

    def snapshot(self) -> WardrobeSnapshot:
        return WardrobeSnapshot(
            items=list(self.items),
            outfits=list(self.outfits),
            calendar=dict(self.calendar),
            profile=self.profile,
        )

    def find_item(self, item_id: str) -> ClosetItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def find_outfit(self, outfit_id: str) -> Outfit | None:
        return next((outfit for outfit in self.outfits if outfit.id == outfit_id), None)


__all__ = ["WardrobeSnapshot", "WardrobeState"]
