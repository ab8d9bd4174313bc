"""Smart Closet app bootstrap and user-facing operations."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Deque, List, Literal, Optional, Sequence

from closet_app.config import ClosetConfig
from closet_app.logging_config import configure_logging, get_logger, log_event, operation_context
from logic import calendar_map
from logic.job_queue import EnrichmentQueue
from logic.outfit_builder import (
    MIN_ITEMS_FOR_RECOMMENDATIONS,
    MIN_ITEMS_TO_EVALUATE,
    MIN_ITEMS_TO_SAVE,
    OutfitSelection,
    build_outfit,
    describe_outfit,
    recommendation_to_outfit,
    recommendations_from_payloads,
    require_items,
    resolve_items,
    top_and_bottom,
)
from logic.validation import OutfitEvaluation
from memory.kv_store import KeyValueStore, StorageError, build_store
from memory.session_manager import SessionManager
from memory.wardrobe_state import WardrobeState
from models.closet_item import ClosetItem, item_from_detected
from models.outfit import AIRecommendation, Outfit
from models.user import BodyMetrics, UserAccount
from tools.genai_client import ClosetAIClient, build_client
from tools.image_utils import compose_local_preview, compress_image, to_data_url

LOGGER = get_logger(__name__)

STORAGE_ERROR_MESSAGE = "Storage error! Your device might be out of space."
NotificationKind = Literal["success", "error", "warning"]


@dataclass
class Notification:
    """A transient message for the user (the toast in the UI)."""

    message: str
    kind: NotificationKind = "success"
    created_at: float = field(default_factory=time.time)


class SmartClosetApp:
    """Wires together storage, session, enrichment queue and the AI client."""

    def __init__(
        self,
        config: ClosetConfig | None = None,
        store: KeyValueStore | None = None,
        ai_client: ClosetAIClient | None = None,
        clock: Callable[[], float] | None = None,
        now_ms: Callable[[], int] | None = None,
    ) -> None:
        self.config = config or ClosetConfig.from_env()
        configure_logging()

        self.store = store or build_store(
            self.config.storage_backend,
            self.config.storage_path,
            quota_bytes=self.config.storage_quota_bytes,
        )
        self.ai = ai_client or build_client(self.config)
        self.state = WardrobeState()
        self._now_ms = now_ms or (lambda: int(time.time() * 1000))
        self.session = SessionManager(self.store, self.state, now_ms=self._now_ms)
        self.queue = EnrichmentQueue(
            self.state,
            self.ai.remove_background,
            cooldown_seconds=self.config.enrichment_cooldown_seconds,
            poll_seconds=self.config.queue_poll_seconds,
            clock=clock or time.monotonic,
            is_ready=lambda: self.session.is_ready,
        )
        self.notifications: Deque[Notification] = deque(maxlen=20)
        self.selection = OutfitSelection()
        self.state.subscribe(self._persist_on_change)

    # -- notifications and persistence -------------------------------------------------

    def notify(self, message: str, kind: NotificationKind = "success") -> Notification:
        notification = Notification(message=message, kind=kind)
        self.notifications.append(notification)
        return notification

    async def _persist_on_change(self, state: WardrobeState) -> None:
        try:
            await self.session.persist(state)
        except StorageError as exc:
            log_event(LOGGER, logging.ERROR, "persist_failed", error=str(exc))
            self.notify(STORAGE_ERROR_MESSAGE, "error")

    def _require_ready(self) -> None:
        if not self.session.is_ready:
            raise ValueError("Log in and wait for your closet to load first")

    @property
    def current_user(self) -> Optional[UserAccount]:
        return self.session.current_user

    # -- session -----------------------------------------------------------------------

    async def boot(self) -> Optional[UserAccount]:
        """Restore the last session on startup."""

        with operation_context("app:boot"):
            try:
                return await self.session.boot()
            except StorageError as exc:
                log_event(LOGGER, logging.ERROR, "boot_failed", error=str(exc))
                self.notify("Failed to load your session.", "error")
                return None

    async def login(self, username: str) -> Optional[UserAccount]:
        """Log in or switch user. Empty names raise ``ValueError`` before any I/O."""

        with operation_context("app:login"):
            try:
                account = await self.session.login(username)
            except StorageError as exc:
                log_event(LOGGER, logging.ERROR, "login_failed", error=str(exc))
                self.notify(STORAGE_ERROR_MESSAGE, "error")
                return None
            self.selection.clear()
            self.notify(f"Welcome, {account.username}!")
            return account

    async def logout(self, confirm: Callable[[str], bool]) -> bool:
        with operation_context("app:logout"):
            try:
                return await self.session.logout(confirm)
            except StorageError as exc:
                log_event(LOGGER, logging.ERROR, "logout_failed", error=str(exc))
                self.notify(STORAGE_ERROR_MESSAGE, "error")
                return False

    # -- closet items ------------------------------------------------------------------

    async def upload_image(self, image: str | bytes) -> List[ClosetItem]:
        """Classify a photo and queue every detected garment for enrichment."""

        self._require_ready()
        with operation_context("app:upload_image") as correlation_id:
            data_url = to_data_url(image, "image/jpeg") if isinstance(image, bytes) else image
            compressed = await asyncio.to_thread(compress_image, data_url, 1024, 0.7)
            try:
                detected = await self.ai.analyze_image_for_items(compressed)
            except Exception as exc:  # any AI failure is reported, never fatal
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "classification_failed",
                    error=str(exc),
                    correlation_id=correlation_id,
                )
                self.notify("AI analysis failed.", "error")
                return []

            now = self._now_ms()
            new_items = [item_from_detected(info, compressed, index, now) for index, info in enumerate(detected)]
            await self.state.update_items(lambda items: new_items + items)
            self.notify(f"AI identified {len(new_items)} items.")
            return new_items

    async def update_item(self, item: ClosetItem) -> ClosetItem:
        self._require_ready()
        # Rebuilding re-runs field validation on edited copies.
        item = replace(item)
        if self.state.find_item(item.id) is None:
            raise ValueError(f"Unknown item {item.id}")
        await self.state.update_items(lambda items: [item if i.id == item.id else i for i in items])
        return item

    async def delete_item(self, item_id: str) -> None:
        self._require_ready()
        await self.state.update_items(lambda items: [i for i in items if i.id != item_id])
        self.selection.discard(item_id)
        self.notify("Item deleted")

    # -- outfits -----------------------------------------------------------------------

    def toggle_selection(self, item_id: str) -> List[ClosetItem]:
        """Select a closet item for the outfit being styled, or deselect it."""

        item = self.state.find_item(item_id)
        if item is None:
            raise ValueError(f"Unknown item {item_id}")
        self.selection.toggle(item)
        return self.selection.items

    def _selected_items(self) -> List[ClosetItem]:
        # Latest stored version of each selected item.
        return resolve_items([item.id for item in self.selection.items], self.state.items)

    async def evaluate_outfit(self, items: Optional[Sequence[ClosetItem]] = None) -> Optional[OutfitEvaluation]:
        items = self._selected_items() if items is None else items
        require_items(items, MIN_ITEMS_TO_EVALUATE, "evaluate an outfit")
        try:
            return await self.ai.evaluate_outfit(items)
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "evaluation_failed", error=str(exc))
            self.notify("AI evaluation failed.", "warning")
            return None

    async def create_outfit(
        self,
        items: Optional[Sequence[ClosetItem]] = None,
        name: Optional[str] = None,
        scenario: str = "Casual",
        evaluation: Optional[OutfitEvaluation] = None,
    ) -> Outfit:
        """Save a manually styled outfit with a local flat-lay preview.

        Without ``items`` the current selection is saved and then cleared.
        """

        self._require_ready()
        from_selection = items is None
        items = self._selected_items() if from_selection else items
        require_items(items, MIN_ITEMS_TO_SAVE, "save an outfit")
        top, bottom = top_and_bottom(items)
        local_preview = await asyncio.to_thread(
            compose_local_preview,
            top.image_url if top else None,
            bottom.image_url if bottom else None,
        )
        outfit = build_outfit(
            items,
            now_ms=self._now_ms(),
            name=name,
            scenario=scenario,
            evaluation=evaluation,
            local_preview=local_preview,
        )
        await self.state.update_outfits(lambda outfits: [outfit, *outfits])
        if from_selection:
            self.selection.clear()
        self.notify("Outfit saved!")
        return outfit

    async def render_pending_previews(self) -> int:
        """Render AI previews for outfits still marked ``generating``.

        A failed render marks the outfit ``failed`` and keeps the local preview.
        Returns the number rendered successfully.
        """

        self._require_ready()
        rendered = 0
        pending = [outfit.id for outfit in self.state.outfits if outfit.preview_status == "generating"]
        for outfit_id in pending:
            outfit = self.state.find_outfit(outfit_id)
            if outfit is None:
                continue
            try:
                url = await self.ai.generate_outfit_preview(outfit.items, self.state.profile.reference_photo)
            except Exception as exc:
                log_event(LOGGER, logging.WARNING, "preview_failed", outfit_id=outfit_id, error=str(exc))
                changes = {"preview_status": "failed"}
            else:
                changes = {"preview_status": "done", "preview_url": url}
                rendered += 1
            await self.state.update_outfits(
                lambda outfits: [replace(o, **changes) if o.id == outfit_id else o for o in outfits]
            )
        return rendered

    async def update_outfit(self, outfit: Outfit) -> Outfit:
        self._require_ready()
        await self.state.update_outfits(lambda outfits: [outfit if o.id == outfit.id else o for o in outfits])
        return outfit

    async def delete_outfit(self, outfit_id: str) -> None:
        """Remove an outfit and clear every calendar day that pointed at it."""

        self._require_ready()
        await self.state.update_outfits(lambda outfits: [o for o in outfits if o.id != outfit_id])
        await self.state.update_calendar(lambda calendar: calendar_map.drop_outfit(calendar, outfit_id))

    async def generate_runway_video(self, outfit_id: str) -> Optional[str]:
        self._require_ready()
        outfit = self.state.find_outfit(outfit_id)
        if outfit is None:
            raise ValueError(f"Unknown outfit {outfit_id}")
        try:
            uri = await self.ai.generate_runway_video(
                describe_outfit(outfit), [item.image_url for item in outfit.items]
            )
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "video_failed", outfit_id=outfit_id, error=str(exc))
            self.notify("Runway video failed.", "error")
            return None
        await self.state.update_outfits(
            lambda outfits: [replace(o, video_url=uri) if o.id == outfit_id else o for o in outfits]
        )
        return uri

    # -- discover ----------------------------------------------------------------------

    async def discover(self) -> List[AIRecommendation]:
        """Ask for outfit ideas from the current closet and render their previews concurrently."""

        self._require_ready()
        items = list(self.state.items)
        require_items(items, MIN_ITEMS_FOR_RECOMMENDATIONS, "get recommendations")
        try:
            payloads = await self.ai.recommend_outfits(items)
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "recommendations_failed", error=str(exc))
            self.notify("AI recommendations failed.", "error")
            return []

        recommendations = recommendations_from_payloads(payloads, self._now_ms())
        reference = self.state.profile.reference_photo
        await asyncio.gather(*(self._render_recommendation(rec, items, reference) for rec in recommendations))
        return recommendations

    async def _render_recommendation(
        self, rec: AIRecommendation, items: Sequence[ClosetItem], reference: Optional[str]
    ) -> None:
        wanted = set(rec.item_ids)
        chosen = [item for item in items if item.id in wanted]
        try:
            rec.preview_url = await self.ai.generate_outfit_preview(chosen, reference)
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "recommendation_preview_failed", rec_id=rec.id, error=str(exc))
        finally:
            rec.is_generating = False

    async def save_recommendation(self, rec: AIRecommendation) -> Outfit:
        self._require_ready()
        outfit = recommendation_to_outfit(rec, self.state.items, self._now_ms())
        await self.state.update_outfits(lambda outfits: [outfit, *outfits])
        self.notify("Outfit saved!")
        return outfit

    # -- calendar ----------------------------------------------------------------------

    async def assign_outfit(self, day: date | str, outfit_id: str) -> None:
        self._require_ready()
        if self.state.find_outfit(outfit_id) is None:
            raise ValueError(f"Unknown outfit {outfit_id}")
        await self.state.update_calendar(lambda calendar: calendar_map.assign(calendar, day, outfit_id))

    async def clear_day(self, day: date | str) -> None:
        self._require_ready()
        await self.state.update_calendar(lambda calendar: calendar_map.clear(calendar, day))

    async def set_today_outfit(self, outfit_id: str) -> str:
        today = calendar_map.today_key()
        await self.assign_outfit(today, outfit_id)
        return today

    def outfit_for_date(self, day: date | str) -> Optional[Outfit]:
        return calendar_map.outfit_for_date(self.state.calendar, self.state.outfits, day)

    # -- profile -----------------------------------------------------------------------

    async def update_profile(
        self,
        name: Optional[str] = None,
        photo: Optional[str] = None,
        body_photo: Optional[str] = None,
    ) -> None:
        self._require_ready()
        changes = {}
        if name is not None:
            changes["name"] = name.strip()
        if photo is not None:
            changes["photo_url"] = await asyncio.to_thread(compress_image, photo, 512, 0.7)
        if body_photo is not None:
            changes["body_photo_url"] = await asyncio.to_thread(compress_image, body_photo, 800, 0.7)
        if changes:
            await self.state.update_profile(lambda profile: replace(profile, **changes))

    async def analyze_body(self) -> Optional[BodyMetrics]:
        self._require_ready()
        photo = self.state.profile.reference_photo
        if not photo:
            raise ValueError("Add a body photo first")
        try:
            return await self.ai.analyze_body_metrics(photo)
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "body_metrics_failed", error=str(exc))
            self.notify("Body analysis failed.", "warning")
            return None

    # -- background work ---------------------------------------------------------------

    async def run_queue(self, stop: asyncio.Event) -> None:
        await self.queue.run(stop)


__all__ = ["Notification", "STORAGE_ERROR_MESSAGE", "SmartClosetApp"]
