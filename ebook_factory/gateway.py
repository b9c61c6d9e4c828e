"""Async boundary over the generative AI backend.

Each operation is a single request/response with no retry and no caching.
The blocking HTTP client runs on a worker thread so the event loop only
suspends while a call is in flight.
"""
from __future__ import annotations

import asyncio
import logging
from http.client import HTTPException
from urllib.error import HTTPError, URLError

from ebook_factory.client import GeminiClient, GeminiError
from ebook_factory.cover import CoverError, CoverSettings, build_cover_prompt
from ebook_factory.models import Outline
from ebook_factory.outline import (
    OUTLINE_SCHEMA,
    OutlineError,
    build_outline_prompt,
    parse_outline_response,
)
from ebook_factory.writer import ChapterError, build_chapter_prompt

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (HTTPError, URLError, OSError, HTTPException, GeminiError)


class GeminiGateway:
    def __init__(
        self, client: GeminiClient, cover_settings: CoverSettings | None = None
    ) -> None:
        self.client = client
        self.cover_settings = cover_settings or CoverSettings()

    async def synthesize_outline(self, topic: str) -> Outline:
        return await asyncio.to_thread(self._outline, topic)

    async def synthesize_cover(self, title: str, topic: str, audience: str) -> str:
        return await asyncio.to_thread(self._cover, title, topic, audience)

    async def synthesize_chapter_body(
        self, chapter_title: str, book_title: str, book_context: str
    ) -> str:
        return await asyncio.to_thread(
            self._chapter_body, chapter_title, book_title, book_context
        )

    def _outline(self, topic: str) -> Outline:
        prompt = build_outline_prompt(topic)
        try:
            text = self.client.generate_json(prompt, OUTLINE_SCHEMA)
        except TRANSPORT_ERRORS as exc:
            logger.error("Outline request failed: %s", exc)
            raise OutlineError(f"Outline request failed: {exc}") from exc
        outline = parse_outline_response(text)
        logger.info(
            "Outline ready: %r with %d chapters", outline.title, len(outline.chapters)
        )
        return outline

    def _cover(self, title: str, topic: str, audience: str) -> str:
        prompt = build_cover_prompt(title, topic, audience, self.cover_settings)
        try:
            image = self.client.generate_image(
                prompt, aspect_ratio=self.cover_settings.aspect_ratio
            )
        except TRANSPORT_ERRORS as exc:
            logger.error("Cover request failed: %s", exc)
            raise CoverError(f"Cover request failed: {exc}") from exc
        if not image:
            raise CoverError("No image data returned.")
        return image

    def _chapter_body(self, chapter_title: str, book_title: str, book_context: str) -> str:
        prompt = build_chapter_prompt(chapter_title, book_title, book_context)
        try:
            text = self.client.generate_text(prompt)
        except TRANSPORT_ERRORS as exc:
            logger.error("Chapter %r request failed: %s", chapter_title, exc)
            raise ChapterError(f"Chapter request failed: {exc}") from exc
        if not text:
            raise ChapterError(f"Chapter {chapter_title!r} came back empty.")
        return text
