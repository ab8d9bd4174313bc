"""Active-user session handling, per-user hydration and the persistence effect."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from closet_app.logging_config import get_logger, log_event
from logic.validation import LoginRequest, validation_message
from memory.kv_store import Collection, KeyValueStore, StorageError
from memory.wardrobe_state import WardrobeSnapshot, WardrobeState
from models.closet_item import ClosetItem, from_record, starter_items
from models.outfit import Outfit, outfit_from_record
from models.user import UserAccount, account_from_record, profile_from_record

LOGGER = get_logger(__name__)

SESSION_KEY = "current-session"
LOGOUT_PROMPT = "Logout?"


def _load_records(records: Any, factory: Callable[[dict], Any], kind: str) -> List[Any]:
    loaded = []
    for record in records:
        try:
            loaded.append(factory(record))
        except (AttributeError, TypeError, ValueError) as exc:
            LOGGER.warning("Skipping unreadable stored record", extra={"kind": kind, "error": str(exc)})
    return loaded


class SessionManager:
    """Coordinates login, user switching, hydration and saving.

    Login is unauthenticated: the account name is the partition key for every
    collection. Until a partition has been fully loaded (``hydrated``) nothing
    is written, so empty defaults never overwrite stored data.
    """

    def __init__(
        self,
        store: KeyValueStore,
        state: WardrobeState,
        now_ms: Callable[[], int] | None = None,
    ) -> None:
        self.store = store
        self.state = state
        self.current_user: Optional[UserAccount] = None
        self.hydrated = False
        self._now_ms = now_ms or (lambda: int(time.time() * 1000))

    @property
    def is_ready(self) -> bool:
        return self.current_user is not None and self.hydrated

    async def boot(self) -> Optional[UserAccount]:
        """Restore the stored session pointer, if any, and load that user's data."""

        record = await self.store.get(Collection.SESSION, SESSION_KEY)
        account = account_from_record(record)
        if account is None:
            LOGGER.info("No stored session")
            return None
        await self._activate(account)
        return account

    async def login(self, username: str) -> UserAccount:
        """Log in (or switch to) ``username``, reusing the stored account when it matches."""

        try:
            name = LoginRequest(username=username).username
        except ValidationError as exc:
            raise ValueError(validation_message(exc) or "Account name must not be empty") from exc

        if self.current_user and self.current_user.username == name:
            account = self.current_user
        else:
            stored = account_from_record(await self.store.get(Collection.SESSION, SESSION_KEY))
            if stored and stored.username == name:
                account = stored
            else:
                account = UserAccount(id=f"u-{self._now_ms()}", username=name)
        await self._activate(account)
        return account

    async def _activate(self, account: UserAccount) -> None:
        previous = self.current_user.username if self.current_user else None
        self.current_user = account
        log_event(
            LOGGER,
            logging.INFO,
            "session_activated",
            username=account.username,
            switched_from=previous,
        )
        await self.hydrate()

    async def hydrate(self) -> WardrobeSnapshot:
        """Load the current user's partition into memory, replacing what is there."""

        if self.current_user is None:
            raise ValueError("No active user to hydrate")
        self.hydrated = False
        user_id = self.current_user.username

        raw_items = await self.store.get(Collection.ITEMS, user_id)
        raw_outfits = await self.store.get(Collection.OUTFITS, user_id)
        raw_calendar = await self.store.get(Collection.CALENDAR, user_id)
        raw_profile = await self.store.get(Collection.PROFILE, user_id)

        items: List[ClosetItem] = (
            _load_records(raw_items, from_record, "item") if isinstance(raw_items, list) else starter_items()
        )
        outfits: List[Outfit] = (
            _load_records(raw_outfits, outfit_from_record, "outfit") if isinstance(raw_outfits, list) else []
        )
        calendar = {str(k): str(v) for k, v in raw_calendar.items()} if isinstance(raw_calendar, dict) else {}
        profile = profile_from_record(raw_profile, default_name=user_id)

        snapshot = WardrobeSnapshot(items=items, outfits=outfits, calendar=calendar, profile=profile)
        self.state.load(snapshot)
        self.hydrated = True
        log_event(
            LOGGER,
            logging.INFO,
            "partition_hydrated",
            username=user_id,
            items=len(items),
            outfits=len(outfits),
            calendar_days=len(calendar),
        )
        await self.persist()
        return snapshot

    async def logout(self, confirm: Callable[[str], bool]) -> bool:
        """Drop the session pointer after confirmation. Stored partitions stay on disk."""

        if not confirm(LOGOUT_PROMPT):
            return False
        was_hydrated = self.hydrated
        self.hydrated = False
        try:
            await self.store.delete(Collection.SESSION, SESSION_KEY)
        except StorageError:
            self.hydrated = was_hydrated
            raise
        log_event(
            LOGGER,
            logging.INFO,
            "session_closed",
            username=self.current_user.username if self.current_user else None,
        )
        self.current_user = None
        self.state.reset()
        return True

    async def persist(self, state: WardrobeState | None = None) -> bool:
        """Write every collection plus the session pointer. Skipped until hydrated."""

        if not self.is_ready:
            return False
        # Capture user and data together; a switch during the awaits below must
        # not mix partitions.
        snapshot = (state or self.state).snapshot()
        account = self.current_user
        user_id = account.username
        await self.store.put(Collection.ITEMS, user_id, [item.to_record() for item in snapshot.items])
        await self.store.put(Collection.OUTFITS, user_id, [outfit.to_record() for outfit in snapshot.outfits])
        await self.store.put(Collection.CALENDAR, user_id, snapshot.calendar)
        await self.store.put(Collection.PROFILE, user_id, snapshot.profile.to_record())
        await self.store.put(Collection.SESSION, SESSION_KEY, account.to_record())
        return True


__all__ = ["LOGOUT_PROMPT", "SESSION_KEY", "SessionManager"]
