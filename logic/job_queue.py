"""Background enrichment queue.

Drives queued closet items through background removal one call at a time,
with a cooldown between calls. The queue polls the live item list instead of
reacting to events, so an item added mid-call is simply found on a later tick.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional, Set

from closet_app.logging_config import get_logger, log_event
from memory.wardrobe_state import WardrobeState
from models.closet_item import DONE_PROGRESS, STARTED_PROGRESS, ClosetItem

LOGGER = get_logger(__name__)

Enricher = Callable[[str, str], Awaitable[str]]


class EnrichmentQueue:
    """Single-consumer poll loop with at most one enrichment call in flight.

    ``busy`` and ``next_allowed_at`` live on the instance, so separate queues
    (one per app or test) never share throttling state. ``clock`` returns
    seconds and is injectable for deterministic tests.
    """

    def __init__(
        self,
        state: WardrobeState,
        enrich: Enricher,
        cooldown_seconds: float = 5.0,
        poll_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        is_ready: Callable[[], bool] = lambda: True,
    ) -> None:
        self.state = state
        self.enrich = enrich
        self.cooldown_seconds = cooldown_seconds
        self.poll_seconds = poll_seconds
        self.clock = clock
        self.is_ready = is_ready
        self.busy = False
        self.next_allowed_at = 0.0
        self.in_flight: Optional[str] = None

    def next_pending(self) -> Optional[ClosetItem]:
        """First item, in list order, still waiting for enrichment."""

        return next((item for item in self.state.items if item.is_pending), None)

    async def tick(self) -> Optional[str]:
        """Process at most one item. Returns its id, or None if nothing ran."""

        if self.busy or not self.is_ready():
            return None
        if self.clock() < self.next_allowed_at:
            return None
        item = self.next_pending()
        if item is None:
            return None

        self.busy = True
        self.in_flight = item.id
        try:
            await self.state.update_items(lambda items: _patch(items, item.id, processing_progress=STARTED_PROGRESS))
            log_event(LOGGER, logging.INFO, "enrichment_started", item_id=item.id)

            cleaned: Optional[str] = None
            try:
                cleaned = await self.enrich(item.original_image_url, item.name)
            except Exception as exc:  # enrichment is best effort; keep the original image
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "enrichment_failed",
                    item_id=item.id,
                    error=str(exc),
                )

            changes = {"is_processing": False, "processing_progress": DONE_PROGRESS}
            if cleaned:
                changes["image_url"] = cleaned
            await self.state.update_items(lambda items: _patch(items, item.id, **changes))
            log_event(LOGGER, logging.INFO, "enrichment_completed", item_id=item.id, replaced=bool(cleaned))
        finally:
            self.busy = False
            self.in_flight = None
            self.next_allowed_at = self.clock() + self.cooldown_seconds
        return item.id

    async def run(self, stop: asyncio.Event) -> None:
        """Tick every ``poll_seconds`` until ``stop`` is set.

        Ticks are started on the timer whether or not the previous one has
        finished; the busy flag keeps a single call in flight. Calls already
        running when ``stop`` is set are awaited, not cancelled.
        """

        pending: Set[asyncio.Task] = set()
        while not stop.is_set():
            task = asyncio.create_task(self._safe_tick())
            pending.add(task)
            task.add_done_callback(pending.discard)
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                continue
        if pending:
            await asyncio.gather(*pending)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            # The poll loop outlives individual tick failures.
            LOGGER.exception("Enrichment tick failed")


def _patch(items: List[ClosetItem], item_id: str, **changes) -> List[ClosetItem]:
    return [replace(item, **changes) if item.id == item_id else item for item in items]


__all__ = ["EnrichmentQueue"]
