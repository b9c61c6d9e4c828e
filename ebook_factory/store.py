"""Single owner of the e-book state observed by the GUI.

Every mutation goes through a named patch that builds a new immutable
``StoreSnapshot``. Patches carry the generation token handed out by
``begin_planning``; a patch from an older generation is dropped.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import replace
from typing import Callable, Optional

from ebook_factory.models import (
    Book,
    Chapter,
    ChapterStatus,
    Outline,
    SessionState,
    StoreSnapshot,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str, StoreSnapshot], None]
HISTORY_LIMIT = 500


class BookStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = StoreSnapshot()
        self._listeners: list[Listener] = []
        self._history: deque[tuple[int, str]] = deque(maxlen=HISTORY_LIMIT)

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return self._snapshot

    def history(self) -> list[tuple[int, str]]:
        """Return ``(revision, patch_name)`` pairs of recently applied patches."""
        with self._lock:
            return list(self._history)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _commit(
        self,
        name: str,
        build: Callable[[StoreSnapshot], Optional[StoreSnapshot]],
    ) -> Optional[StoreSnapshot]:
        with self._lock:
            current = self._snapshot
            updated = build(current)
            if updated is None:
                return None
            updated = replace(updated, revision=current.revision + 1)
            self._snapshot = updated
            self._history.append((updated.revision, name))
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(name, updated)
            except Exception:
                logger.exception("Store listener failed for patch %s", name)
        return updated

    @staticmethod
    def _is_stale(current: StoreSnapshot, generation: int, name: str) -> bool:
        if current.generation != generation:
            logger.debug(
                "Dropping %s from generation %d (current %d)",
                name,
                generation,
                current.generation,
            )
            return True
        return False

    def begin_planning(self) -> int:
        """Start a new generation: clear the book and enter ``planning``."""

        generation = 0

        def build(current: StoreSnapshot) -> StoreSnapshot:
            nonlocal generation
            generation = current.generation + 1
            return StoreSnapshot(
                session_state=SessionState.PLANNING,
                book=None,
                selected_chapter_id=None,
                generated_chapters_count=0,
                error=None,
                generation=generation,
            )

        self._commit("begin_planning", build)
        return generation

    def apply_outline(self, generation: int, outline: Outline) -> Optional[Book]:
        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if self._is_stale(current, generation, "apply_outline"):
                return None
            if current.session_state is not SessionState.PLANNING:
                logger.warning(
                    "Ignoring outline while %s", current.session_state.value
                )
                return None
            return replace(
                current,
                session_state=SessionState.CREATING,
                book=Book.from_outline(outline),
                generated_chapters_count=0,
            )

        updated = self._commit("apply_outline", build)
        return updated.book if updated else None

    def fail_outline(self, generation: int, message: str) -> bool:
        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if self._is_stale(current, generation, "fail_outline"):
                return None
            return replace(
                current,
                session_state=SessionState.IDLE,
                book=None,
                selected_chapter_id=None,
                error=message,
            )

        return self._commit("fail_outline", build) is not None

    def patch_cover(self, generation: int, image_base64: Optional[str]) -> bool:
        """Resolve cover generation; ``None`` records the cover as unavailable."""

        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if self._is_stale(current, generation, "patch_cover") or current.book is None:
                return None
            book = replace(
                current.book,
                cover_image_base64=image_base64 or None,
                is_generating_cover=False,
            )
            return replace(current, book=book)

        return self._commit("patch_cover", build) is not None

    def patch_chapter(
        self,
        generation: int,
        index: int,
        status: ChapterStatus,
        content: Optional[str] = None,
        select: bool = False,
    ) -> Optional[Chapter]:
        """Move one chapter to ``status``; status and content change together.

        Completing a chapter increments ``generated_chapters_count`` in the
        same patch. With ``select`` the chapter also becomes the reading
        selection.
        """

        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if self._is_stale(current, generation, "patch_chapter") or current.book is None:
                return None
            chapter = current.book.chapters[index].transition(status, content)
            count = current.generated_chapters_count
            if status is ChapterStatus.COMPLETED:
                count += 1
            return replace(
                current,
                book=current.book.with_chapter(index, chapter),
                generated_chapters_count=count,
                selected_chapter_id=chapter.id if select else current.selected_chapter_id,
            )

        updated = self._commit("patch_chapter", build)
        if updated is None or updated.book is None:
            return None
        return updated.book.chapters[index]

    def finish(self, generation: int) -> bool:
        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if self._is_stale(current, generation, "finish"):
                return None
            if current.session_state is not SessionState.CREATING:
                return None
            return replace(current, session_state=SessionState.FINISHED)

        return self._commit("finish", build) is not None

    def select_chapter(self, chapter_id: Optional[int]) -> Optional[int]:
        """Select a chapter to read; ``None`` selects the book overview."""

        def build(current: StoreSnapshot) -> StoreSnapshot:
            if chapter_id is not None:
                if current.book is None or current.book.chapter_by_id(chapter_id) is None:
                    raise ValueError(f"Unknown chapter id {chapter_id}.")
            return replace(current, selected_chapter_id=chapter_id)

        self._commit("select_chapter", build)
        return chapter_id

    def select_relative(self, offset: int) -> Optional[int]:
        """Move the selection by ``offset`` chapters, clamped to the book."""

        def build(current: StoreSnapshot) -> Optional[StoreSnapshot]:
            if current.book is None or not current.book.chapters:
                return None
            ids = current.book.chapter_ids
            if current.selected_chapter_id in ids:
                position = ids.index(current.selected_chapter_id) + offset
            else:
                position = 0
            position = max(0, min(position, len(ids) - 1))
            return replace(current, selected_chapter_id=ids[position])

        updated = self._commit("select_relative", build)
        if updated is None:
            return self.snapshot().selected_chapter_id
        return updated.selected_chapter_id

    def set_error(self, message: str) -> None:
        self._commit("set_error", lambda current: replace(current, error=message))

    def clear_error(self) -> None:
        self._commit("clear_error", lambda current: replace(current, error=None))
