"""Sequencing of outline, cover and chapter generation."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence

from ebook_factory.config import ConfigError, MISSING_API_KEY_MESSAGE, Settings
from ebook_factory.cover import CoverError
from ebook_factory.models import Book, Chapter, ChapterStatus, Outline
from ebook_factory.outline import OutlineError
from ebook_factory.store import BookStore
from ebook_factory.writer import (
    CHAPTER_FALLBACK_TEXT,
    ChapterError,
    build_book_context,
)

logger = logging.getLogger(__name__)

OUTLINE_FAILURE_MESSAGE = (
    "Failed to create the e-book plan. Try a different or more specific topic."
)


class Gateway(Protocol):
    async def synthesize_outline(self, topic: str) -> Outline: ...

    async def synthesize_cover(self, title: str, topic: str, audience: str) -> str: ...

    async def synthesize_chapter_body(
        self, chapter_title: str, book_title: str, book_context: str
    ) -> str: ...


class GenerationOrchestrator:
    def __init__(self, store: BookStore, gateway: Gateway, settings: Settings) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self._tasks: list[asyncio.Task] = []

    def prepare_topic(self, topic: Optional[str]) -> Optional[str]:
        """Return the trimmed topic, or ``None`` when there is nothing to do.

        Raises ``ConfigError`` without touching the network when no API key
        is configured.
        """
        cleaned = (topic or "").strip()
        if not cleaned:
            return None
        if not self.settings.has_api_key:
            self.store.set_error(MISSING_API_KEY_MESSAGE)
            raise ConfigError(MISSING_API_KEY_MESSAGE)
        return cleaned

    async def start_generation(self, topic: Optional[str]) -> Optional[Book]:
        cleaned = self.prepare_topic(topic)
        if cleaned is None:
            logger.info("Ignoring empty topic.")
            return None

        self.cancel()
        generation = self.store.begin_planning()
        logger.info("Generation %d: planning outline for %r", generation, cleaned)
        try:
            outline = await self.gateway.synthesize_outline(cleaned)
        except OutlineError as exc:
            logger.error("Generation %d: outline failed: %s", generation, exc)
            self.store.fail_outline(generation, OUTLINE_FAILURE_MESSAGE)
            return None
        except Exception:
            logger.exception("Generation %d: unexpected outline failure", generation)
            self.store.fail_outline(generation, OUTLINE_FAILURE_MESSAGE)
            return None

        book = self.store.apply_outline(generation, outline)
        if book is None:
            logger.info("Generation %d superseded before the outline arrived.", generation)
            return None

        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(
                self.run_cover_generation(
                    generation, book.title, cleaned, book.target_audience
                ),
                name=f"cover-{generation}",
            ),
            loop.create_task(
                self.run_chapter_generation(
                    generation, book.chapters, book.title, book.description
                ),
                name=f"chapters-{generation}",
            ),
        ]
        return book

    async def run_cover_generation(
        self, generation: int, title: str, topic: str, audience: str
    ) -> None:
        try:
            image = await self.gateway.synthesize_cover(title, topic, audience)
        except CoverError as exc:
            logger.warning("Generation %d: cover unavailable: %s", generation, exc)
            self.store.patch_cover(generation, None)
            return
        except Exception:
            logger.exception("Generation %d: unexpected cover failure", generation)
            self.store.patch_cover(generation, None)
            return
        self.store.patch_cover(generation, image)

    async def run_chapter_generation(
        self,
        generation: int,
        chapters: Sequence[Chapter],
        book_title: str,
        book_description: str,
    ) -> None:
        context = build_book_context(book_title, book_description)
        for index, chapter in enumerate(chapters):
            if not self._is_current(generation):
                return
            self.store.patch_chapter(
                generation, index, ChapterStatus.GENERATING, select=index == 0
            )
            try:
                content = await self.gateway.synthesize_chapter_body(
                    chapter.title, book_title, context
                )
            except ChapterError as exc:
                logger.warning(
                    "Generation %d: chapter %d failed: %s", generation, chapter.id, exc
                )
                self.store.patch_chapter(
                    generation, index, ChapterStatus.ERROR, CHAPTER_FALLBACK_TEXT
                )
                continue
            except Exception:
                logger.exception(
                    "Generation %d: unexpected failure in chapter %d", generation, chapter.id
                )
                self.store.patch_chapter(
                    generation, index, ChapterStatus.ERROR, CHAPTER_FALLBACK_TEXT
                )
                continue
            self.store.patch_chapter(generation, index, ChapterStatus.COMPLETED, content)
        self.store.finish(generation)
        logger.info("Generation %d: all chapters processed.", generation)

    async def wait(self) -> None:
        """Wait for the cover and chapter tasks of the latest generation."""
        tasks = list(self._tasks)
        if not tasks:
            return
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, BaseException) and not isinstance(
                result, asyncio.CancelledError
            ):
                logger.error(
                    "Task %s failed", task.get_name(), exc_info=result
                )

    def cancel(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks = []

    def _is_current(self, generation: int) -> bool:
        return self.store.snapshot().generation == generation
