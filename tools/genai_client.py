"""Generative AI collaborator: classification, enrichment, evaluation and rendering.

``ClosetAIClient`` is the interface the app consumes. ``GeminiClosetClient``
talks to Gemini through ``google-generativeai`` (and to the Veo REST endpoint
for runway videos); ``MockClosetAIClient`` is an offline stand-in used by
tests and local runs without an API key.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import google.generativeai as genai
import requests
from pydantic import ValidationError

from closet_app.logging_config import get_logger
from logic.validation import (
    BodyMetricsPayload,
    DetectedItemInfo,
    OutfitEvaluation,
    RecommendationPayload,
    parse_entries,
)
from models.closet_item import ClosetItem
from models.taxonomy import CATEGORIES
from models.user import BodyMetrics
from tools.image_utils import compress_image, load_image_bytes, to_data_url
from tools.observability import instrument_call

LOGGER = get_logger(__name__)
T = TypeVar("T")

API_ROOT = "https://generativelanguage.googleapis.com/v1beta"


class GenerationError(Exception):
    """The AI service failed or returned something unusable."""


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    retries: int = 2,
    delay_seconds: float = 1.5,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``fn``, retrying a fixed number of times with a fixed delay."""

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= retries:
                raise
            attempt += 1
            LOGGER.warning("Retrying AI call", extra={"attempt": attempt, "error": str(exc)})
            await sleep(delay_seconds)


def summarise_items(items: Sequence[ClosetItem], include_id: bool = True) -> List[Dict[str, Any]]:
    summary = []
    for item in items:
        entry: Dict[str, Any] = {
            "name": item.name,
            "category": item.category,
            "color": item.color,
            "tags": list(item.tags),
        }
        if include_id:
            entry = {"id": item.id, **entry}
        summary.append(entry)
    return summary


def _strip_fences(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


class ClosetAIClient(ABC):
    """Interface to the hosted generative model. Every call may raise."""

    @abstractmethod
    async def analyze_image_for_items(self, image: str) -> List[DetectedItemInfo]:
        """Identify the garments in a photo."""

    @abstractmethod
    async def remove_background(self, image: str, target_item: str) -> str:
        """Return the garment cut out of its background, as an image data URL."""

    @abstractmethod
    async def evaluate_outfit(self, items: Sequence[ClosetItem]) -> OutfitEvaluation:
        """Score and review a combination of items."""

    @abstractmethod
    async def recommend_outfits(self, items: Sequence[ClosetItem]) -> List[RecommendationPayload]:
        """Suggest combinations drawn from the given inventory."""

    @abstractmethod
    async def generate_outfit_preview(
        self, items: Sequence[ClosetItem], user_photo: Optional[str] = None
    ) -> str:
        """Render a try-on photo, on the user when a photo is given."""

    @abstractmethod
    async def analyze_body_metrics(self, image: str) -> BodyMetrics:
        """Estimate mannequin multipliers from a body photo."""

    @abstractmethod
    async def generate_runway_video(self, description: str, item_images: Sequence[str]) -> str:
        """Render a short runway clip and return its URI."""


class GeminiClosetClient(ClosetAIClient):
    """Gemini-backed implementation with schema checks on every response."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: str = "gemini-3-flash-preview",
        image_model: str = "gemini-2.5-flash-image",
        video_model: str = "veo-3.1-fast-generate-preview",
        retries: int = 2,
        retry_delay_seconds: float = 1.5,
        model_factory: Callable[[str], Any] | None = None,
        timeout_seconds: float = 30.0,
        video_poll_seconds: float = 10.0,
        video_max_polls: int = 60,
    ) -> None:
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.video_model = video_model
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self.timeout_seconds = timeout_seconds
        self.video_poll_seconds = video_poll_seconds
        self.video_max_polls = video_max_polls
        if api_key:
            genai.configure(api_key=api_key)
        self._model_factory = model_factory or genai.GenerativeModel

    async def _retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(fn, retries=self.retries, delay_seconds=self.retry_delay_seconds)

    async def _image_part(self, ref: str, max_width: int) -> Dict[str, Any]:
        resized = ref
        if ref.startswith("data:"):
            resized = await asyncio.to_thread(compress_image, ref, max_width, 0.75)
        try:
            mime_type, raw = await asyncio.to_thread(load_image_bytes, resized, self.timeout_seconds)
        except (ValueError, requests.RequestException) as exc:
            raise GenerationError(f"Cannot load image input: {exc}") from exc
        return {"mime_type": mime_type, "data": raw}

    async def _generate_json(self, contents: List[Any]) -> Any:
        model = self._model_factory(self.text_model)
        response = await model.generate_content_async(
            contents,
            generation_config=genai.types.GenerationConfig(response_mime_type="application/json"),
        )
        try:
            return json.loads(_strip_fences(response.text))
        except ValueError as exc:
            raise GenerationError(f"Model returned invalid JSON: {exc}") from exc

    async def _generate_image(self, contents: List[Any]) -> str:
        model = self._model_factory(self.image_model)
        response = await model.generate_content_async(contents)
        for candidate in list(response.candidates)[:1]:
            for part in candidate.content.parts:
                inline = getattr(part, "inline_data", None)
                if inline and inline.data:
                    return to_data_url(inline.data, inline.mime_type or "image/png")
        raise GenerationError("Model returned no image")

    @instrument_call("analyze_image_for_items")
    async def analyze_image_for_items(self, image: str) -> List[DetectedItemInfo]:
        part = await self._image_part(image, max_width=512)
        prompt = (
            "Identify clothing items. Return a JSON array of objects with name, "
            f"category (one of {', '.join(CATEGORIES)}), "
            "tags, color, season, suggestion."
        )
        payload = await self._retry(lambda: self._generate_json([part, prompt]))
        try:
            entries, _ = parse_entries(DetectedItemInfo, payload)
        except ValueError as exc:
            raise GenerationError(str(exc)) from exc
        return entries

    @instrument_call("remove_background")
    async def remove_background(self, image: str, target_item: str) -> str:
        part = await self._image_part(image, max_width=448)
        prompt = f'Extract garment: "{target_item}". Transparent background.'
        return await self._generate_image([part, prompt])

    @instrument_call("evaluate_outfit")
    async def evaluate_outfit(self, items: Sequence[ClosetItem]) -> OutfitEvaluation:
        prompt = (
            f"Evaluate this outfit combination: {json.dumps(summarise_items(items, include_id=False))}. "
            "Return a JSON object with a score (0-100) and a short review from a stylist perspective."
        )
        payload = await self._retry(lambda: self._generate_json([prompt]))
        try:
            return OutfitEvaluation.model_validate(payload)
        except ValidationError as exc:
            raise GenerationError("Outfit evaluation failed schema checks") from exc

    @instrument_call("recommend_outfits")
    async def recommend_outfits(self, items: Sequence[ClosetItem]) -> List[RecommendationPayload]:
        prompt = (
            "Based on this wardrobe inventory, suggest 3 stylish outfit combinations. "
            "Return a JSON array of objects with: name (catchy), review (stylist perspective), "
            "score (0-100), scenario (Casual/Work/etc), and itemIds (matching the input IDs). "
            f"Inventory: {json.dumps(summarise_items(items))}"
        )
        payload = await self._retry(lambda: self._generate_json([prompt]))
        try:
            entries, _ = parse_entries(RecommendationPayload, payload)
        except ValueError as exc:
            raise GenerationError(str(exc)) from exc
        return entries

    @instrument_call("generate_outfit_preview")
    async def generate_outfit_preview(
        self, items: Sequence[ClosetItem], user_photo: Optional[str] = None
    ) -> str:
        parts: List[Any] = []
        if user_photo:
            parts.append(await self._image_part(user_photo, max_width=384))
        for item in items:
            if item.image_url:
                parts.append(await self._image_part(item.image_url, max_width=256))
        prompt = (
            "Photorealistic fashion photo of this person wearing these clothes."
            if user_photo
            else "Realistic fashion catalog photo of a model wearing these clothes."
        )
        return await self._retry(lambda: self._generate_image([*parts, prompt]))

    @instrument_call("analyze_body_metrics")
    async def analyze_body_metrics(self, image: str) -> BodyMetrics:
        part = await self._image_part(image, max_width=512)
        prompt = (
            "Analyze the person body shape in this photo. Return a JSON object with multipliers "
            "(base 1.0) for 3D mesh adjustment: shoulderWidth, waistWidth and heightRatio."
        )
        payload = await self._retry(lambda: self._generate_json([part, prompt]))
        try:
            parsed = BodyMetricsPayload.model_validate(payload)
        except ValidationError as exc:
            raise GenerationError("Body metrics failed schema checks") from exc
        return BodyMetrics(
            shoulder_width=parsed.shoulder_width,
            waist_width=parsed.waist_width,
            height_ratio=parsed.height_ratio,
        )

    @instrument_call("generate_runway_video")
    async def generate_runway_video(self, description: str, item_images: Sequence[str]) -> str:
        if not self.api_key:
            raise GenerationError("Video generation needs an API key")
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        body = {
            "instances": [
                {
                    "prompt": (
                        "A professional fashion model walking down a runway wearing the following "
                        f"outfit: {description}. Bright studio lighting, 4k cinematic."
                    )
                }
            ],
            "parameters": {"aspectRatio": "9:16", "resolution": "720p"},
        }
        operation = await self._request("post", f"{API_ROOT}/models/{self.video_model}:predictLongRunning", headers, body)
        name = operation.get("name")
        if not name:
            raise GenerationError("Video request returned no operation")

        polls = 0
        while not operation.get("done"):
            if polls >= self.video_max_polls:
                raise GenerationError("Video generation timed out")
            await asyncio.sleep(self.video_poll_seconds)
            operation = await self._request("get", f"{API_ROOT}/{name}", headers)
            polls += 1

        if operation.get("error"):
            raise GenerationError(f"Video generation failed: {operation['error']}")
        samples = (
            operation.get("response", {}).get("generateVideoResponse", {}).get("generatedSamples") or []
        )
        uri = samples[0].get("video", {}).get("uri") if samples else None
        if not uri:
            raise GenerationError("Video generation failed")
        return uri

    async def _request(self, method: str, url: str, headers: dict, body: dict | None = None) -> dict:
        def send() -> dict:
            response = requests.request(method, url, headers=headers, json=body, timeout=self.timeout_seconds)
            response.raise_for_status()
            return response.json()

        try:
            return await asyncio.to_thread(send)
        except (requests.RequestException, ValueError) as exc:
            raise GenerationError(f"Video API request failed: {exc}") from exc


class MockClosetAIClient(ClosetAIClient):
    """Offline deterministic client. Records every call in ``calls``.

    Names listed in ``fail_on`` raise :class:`GenerationError`.
    """

    def __init__(
        self,
        detected: List[Dict[str, Any]] | None = None,
        cleaned_image: str = "data:image/png;base64,Y2xlYW5lZA==",
        evaluation: Dict[str, Any] | None = None,
        recommendations: List[Dict[str, Any]] | None = None,
        preview: str = "data:image/png;base64,cHJldmlldw==",
        body_metrics: BodyMetrics | None = None,
        video_uri: str = "https://example.com/runway.mp4",
        fail_on: Sequence[str] = (),
    ) -> None:
        self.detected = detected if detected is not None else [
            {
                "name": "White Tee",
                "category": "Tops",
                "tags": ["Casual"],
                "color": "White",
                "season": "All Season",
                "suggestion": "Pair with straight-leg jeans.",
            }
        ]
        self.cleaned_image = cleaned_image
        self.evaluation = evaluation or {"score": 90, "review": "Balanced palette."}
        self.recommendations = recommendations or []
        self.preview = preview
        self.body_metrics = body_metrics or BodyMetrics()
        self.video_uri = video_uri
        self.fail_on = set(fail_on)
        self.calls: List[tuple] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        LOGGER.debug("Mock AI call", extra={"call": name})
        if name in self.fail_on:
            raise GenerationError(f"{name} failed")

    async def analyze_image_for_items(self, image: str) -> List[DetectedItemInfo]:
        self._record("analyze_image_for_items", image)
        entries, _ = parse_entries(DetectedItemInfo, self.detected)
        return entries

    async def remove_background(self, image: str, target_item: str) -> str:
        self._record("remove_background", image, target_item)
        return self.cleaned_image

    async def evaluate_outfit(self, items: Sequence[ClosetItem]) -> OutfitEvaluation:
        self._record("evaluate_outfit", [item.id for item in items])
        return OutfitEvaluation.model_validate(self.evaluation)

    async def recommend_outfits(self, items: Sequence[ClosetItem]) -> List[RecommendationPayload]:
        self._record("recommend_outfits", [item.id for item in items])
        entries, _ = parse_entries(RecommendationPayload, self.recommendations)
        return entries

    async def generate_outfit_preview(
        self, items: Sequence[ClosetItem], user_photo: Optional[str] = None
    ) -> str:
        self._record("generate_outfit_preview", [item.id for item in items], user_photo)
        return self.preview

    async def analyze_body_metrics(self, image: str) -> BodyMetrics:
        self._record("analyze_body_metrics", image)
        return self.body_metrics

    async def generate_runway_video(self, description: str, item_images: Sequence[str]) -> str:
        self._record("generate_runway_video", description)
        return self.video_uri


def build_client(config: Any) -> ClosetAIClient:
    """Gemini when an API key is configured, otherwise the offline mock."""

    if not config.api_key:
        LOGGER.warning("No API key configured; using offline AI client")
        return MockClosetAIClient()
    return GeminiClosetClient(
        api_key=config.api_key,
        text_model=config.text_model,
        image_model=config.image_model,
        video_model=config.video_model,
        retries=config.ai_retries,
        retry_delay_seconds=config.ai_retry_delay_seconds,
    )


__all__ = [
    "ClosetAIClient",
    "GeminiClosetClient",
    "GenerationError",
    "MockClosetAIClient",
    "build_client",
    "summarise_items",
    "with_retry",
]
