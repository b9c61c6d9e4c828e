from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class InvalidTransitionError(ValueError):
    """Raised when a chapter status change is not allowed."""


class ChapterStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"

    def can_transition_to(self, target: "ChapterStatus") -> bool:
        return target in _CHAPTER_TRANSITIONS[self]


_CHAPTER_TRANSITIONS: dict[ChapterStatus, frozenset[ChapterStatus]] = {
    ChapterStatus.PENDING: frozenset({ChapterStatus.GENERATING}),
    ChapterStatus.GENERATING: frozenset(
        {ChapterStatus.COMPLETED, ChapterStatus.ERROR}
    ),
    ChapterStatus.COMPLETED: frozenset(),
    ChapterStatus.ERROR: frozenset(),
}


class SessionState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    CREATING = "creating"
    FINISHED = "finished"

    @property
    def shows_dashboard(self) -> bool:
        return self in (SessionState.CREATING, SessionState.FINISHED)


@dataclass(frozen=True)
class ChapterStub:
    id: int
    title: str
    description: str = ""


@dataclass(frozen=True)
class Outline:
    title: str
    description: str
    target_audience: str
    chapters: tuple[ChapterStub, ...]


@dataclass(frozen=True)
class Chapter:
    id: int
    title: str
    description: str = ""
    content: str = ""
    status: ChapterStatus = ChapterStatus.PENDING

    @classmethod
    def from_stub(cls, stub: ChapterStub) -> "Chapter":
        return cls(id=stub.id, title=stub.title, description=stub.description)

    def transition(
        self, status: ChapterStatus, content: Optional[str] = None
    ) -> "Chapter":
        """Return a copy moved to ``status``, with ``content`` applied together."""
        if not self.status.can_transition_to(status):
            raise InvalidTransitionError(
                f"Chapter {self.id} cannot move from {self.status.value} "
                f"to {status.value}."
            )
        if content is None:
            return replace(self, status=status)
        return replace(self, status=status, content=content)

    def to_dict(self, include_content: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass(frozen=True)
class Book:
    title: str
    description: str
    target_audience: str
    chapters: tuple[Chapter, ...] = ()
    cover_image_base64: Optional[str] = None
    is_generating_cover: bool = True

    @classmethod
    def from_outline(cls, outline: Outline) -> "Book":
        return cls(
            title=outline.title,
            description=outline.description,
            target_audience=outline.target_audience,
            chapters=tuple(Chapter.from_stub(stub) for stub in outline.chapters),
            cover_image_base64=None,
            is_generating_cover=True,
        )

    @property
    def chapter_ids(self) -> list[int]:
        return [chapter.id for chapter in self.chapters]

    def chapter_by_id(self, chapter_id: int) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def completed_count(self) -> int:
        return sum(
            1 for chapter in self.chapters if chapter.status is ChapterStatus.COMPLETED
        )

    def with_chapter(self, index: int, chapter: Chapter) -> "Book":
        chapters = list(self.chapters)
        chapters[index] = chapter
        return replace(self, chapters=tuple(chapters))

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "target_audience": self.target_audience,
            "has_cover": bool(self.cover_image_base64),
            "is_generating_cover": self.is_generating_cover,
            "chapters": [
                chapter.to_dict(include_content=False) for chapter in self.chapters
            ],
        }


@dataclass(frozen=True)
class StoreSnapshot:
    session_state: SessionState = SessionState.IDLE
    book: Optional[Book] = None
    selected_chapter_id: Optional[int] = None
    generated_chapters_count: int = 0
    error: Optional[str] = None
    generation: int = 0
    revision: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_state": self.session_state.value,
            "book": self.book.to_dict() if self.book else None,
            "selected_chapter_id": self.selected_chapter_id,
            "generated_chapters_count": self.generated_chapters_count,
            "total_chapters": len(self.book.chapters) if self.book else 0,
            "error": self.error,
            "revision": self.revision,
        }
