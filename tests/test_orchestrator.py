import asyncio
import unittest

from ebook_factory.config import ConfigError, MISSING_API_KEY_MESSAGE, Settings
from ebook_factory.cover import CoverError
from ebook_factory.models import ChapterStatus, ChapterStub, Outline, SessionState
from ebook_factory.orchestrator import OUTLINE_FAILURE_MESSAGE, GenerationOrchestrator
from ebook_factory.outline import OutlineError
from ebook_factory.store import BookStore
from ebook_factory.writer import CHAPTER_FALLBACK_TEXT, ChapterError


def _outline(title: str = "Focus", count: int = 10) -> Outline:
    return Outline(
        title=title,
        description="Get more done.",
        target_audience="Busy people",
        chapters=tuple(
            ChapterStub(id=index, title=f"Chapter {index}", description="About it")
            for index in range(1, count + 1)
        ),
    )


class FakeGateway:
    def __init__(self) -> None:
        self.outline_calls = []
        self.cover_calls = []
        self.chapter_calls = []
        self.outline_error = None
        self.cover_error = None
        self.chapter_count = 10
        self.failing_chapters = {}
        self.chapter_gate = None
        self.cover_gate = None

    async def synthesize_outline(self, topic):
        self.outline_calls.append(topic)
        await asyncio.sleep(0)
        if self.outline_error is not None:
            raise self.outline_error
        return _outline(title=f"Book about {topic}", count=self.chapter_count)

    async def synthesize_cover(self, title, topic, audience):
        self.cover_calls.append((title, topic, audience))
        if self.cover_gate is not None:
            await self.cover_gate.wait()
        await asyncio.sleep(0)
        if self.cover_error is not None:
            raise self.cover_error
        return "aGVsbG8="

    async def synthesize_chapter_body(self, chapter_title, book_title, book_context):
        self.chapter_calls.append((chapter_title, book_title, book_context))
        if self.chapter_gate is not None:
            await self.chapter_gate.wait()
        await asyncio.sleep(0)
        if chapter_title in self.failing_chapters:
            raise self.failing_chapters[chapter_title]
        return f"# {chapter_title}\n\nBody."


class TestGenerationOrchestrator(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = BookStore()
        self.gateway = FakeGateway()
        self.orchestrator = GenerationOrchestrator(
            self.store, self.gateway, Settings(api_key="key")
        )

    async def test_empty_topic_is_ignored(self) -> None:
        result = await self.orchestrator.start_generation("   ")

        self.assertIsNone(result)
        self.assertEqual(self.gateway.outline_calls, [])
        self.assertIs(self.store.snapshot().session_state, SessionState.IDLE)

    async def test_missing_api_key_raises_before_network(self) -> None:
        orchestrator = GenerationOrchestrator(self.store, self.gateway, Settings())

        with self.assertRaises(ConfigError):
            await orchestrator.start_generation("Productivity")

        self.assertEqual(self.gateway.outline_calls, [])
        snapshot = self.store.snapshot()
        self.assertIs(snapshot.session_state, SessionState.IDLE)
        self.assertEqual(snapshot.error, MISSING_API_KEY_MESSAGE)

    async def test_full_generation_finishes_with_all_chapters(self) -> None:
        statuses = []
        self.store.subscribe(
            lambda name, snapshot: statuses.append(
                [c.status for c in snapshot.book.chapters] if snapshot.book else []
            )
        )

        book = await self.orchestrator.start_generation("  Productivity ")
        await self.orchestrator.wait()

        snapshot = self.store.snapshot()
        self.assertEqual(book.title, "Book about Productivity")
        self.assertEqual(self.gateway.outline_calls, ["Productivity"])
        self.assertIs(snapshot.session_state, SessionState.FINISHED)
        self.assertEqual(snapshot.generated_chapters_count, 10)
        self.assertEqual(snapshot.book.cover_image_base64, "aGVsbG8=")
        self.assertFalse(snapshot.book.is_generating_cover)
        self.assertEqual(snapshot.selected_chapter_id, 1)
        self.assertEqual(
            [call[0] for call in self.gateway.chapter_calls],
            [f"Chapter {index}" for index in range(1, 11)],
        )
        self.assertEqual(
            self.gateway.chapter_calls[0][2],
            "Title: Book about Productivity. Description: Get more done.",
        )
        for chapter_statuses in statuses:
            self.assertLessEqual(chapter_statuses.count(ChapterStatus.GENERATING), 1)

    async def test_chapters_start_in_ascending_order(self) -> None:
        started = []

        def record(name, snapshot):
            if name != "patch_chapter":
                return
            for chapter in snapshot.book.chapters:
                if chapter.status is ChapterStatus.GENERATING and chapter.id not in started:
                    started.append(chapter.id)

        self.store.subscribe(record)
        await self.orchestrator.start_generation("Productivity")
        await self.orchestrator.wait()

        self.assertEqual(started, list(range(1, 11)))

    async def test_outline_failure_returns_to_idle(self) -> None:
        self.gateway.outline_error = OutlineError("bad json")

        result = await self.orchestrator.start_generation("Productivity")

        snapshot = self.store.snapshot()
        self.assertIsNone(result)
        self.assertIs(snapshot.session_state, SessionState.IDLE)
        self.assertIsNone(snapshot.book)
        self.assertEqual(snapshot.error, OUTLINE_FAILURE_MESSAGE)
        self.assertEqual(self.gateway.cover_calls, [])
        self.assertEqual(self.gateway.chapter_calls, [])

    async def test_cover_failure_does_not_stop_chapters(self) -> None:
        self.gateway.cover_error = CoverError("No image data returned.")

        await self.orchestrator.start_generation("Productivity")
        await self.orchestrator.wait()

        snapshot = self.store.snapshot()
        self.assertIsNone(snapshot.book.cover_image_base64)
        self.assertFalse(snapshot.book.is_generating_cover)
        self.assertEqual(snapshot.generated_chapters_count, 10)
        self.assertIs(snapshot.session_state, SessionState.FINISHED)

    async def test_chapter_failure_uses_fallback_and_continues(self) -> None:
        self.gateway.failing_chapters = {"Chapter 5": ChapterError("model refused")}

        await self.orchestrator.start_generation("Productivity")
        await self.orchestrator.wait()

        snapshot = self.store.snapshot()
        fifth = snapshot.book.chapters[4]
        self.assertIs(fifth.status, ChapterStatus.ERROR)
        self.assertEqual(fifth.content, CHAPTER_FALLBACK_TEXT)
        self.assertIs(snapshot.book.chapters[5].status, ChapterStatus.COMPLETED)
        self.assertEqual(snapshot.generated_chapters_count, 9)
        self.assertIs(snapshot.session_state, SessionState.FINISHED)

    async def test_restart_cancels_previous_generation(self) -> None:
        self.gateway.chapter_gate = asyncio.Event()

        first = await self.orchestrator.start_generation("First")
        await asyncio.sleep(0)
        self.assertEqual(first.title, "Book about First")
        self.gateway.chapter_gate.set()
        second = await self.orchestrator.start_generation("Second")
        await self.orchestrator.wait()

        snapshot = self.store.snapshot()
        self.assertEqual(second.title, "Book about Second")
        self.assertEqual(snapshot.book.title, "Book about Second")
        self.assertIs(snapshot.session_state, SessionState.FINISHED)
        self.assertEqual(snapshot.generated_chapters_count, 10)
        self.assertEqual(self.gateway.outline_calls, ["First", "Second"])
        titles = {call[1] for call in self.gateway.chapter_calls}
        self.assertIn("Book about Second", titles)
        first_book_calls = [c for c in self.gateway.chapter_calls if c[1] == "Book about First"]
        self.assertLessEqual(len(first_book_calls), 1)


    async def test_unexpected_outline_error_returns_to_idle(self) -> None:
        self.gateway.outline_error = RuntimeError("socket closed")

        with self.assertLogs("ebook_factory.orchestrator", level="ERROR"):
            result = await self.orchestrator.start_generation("Productivity")

        snapshot = self.store.snapshot()
        self.assertIsNone(result)
        self.assertIs(snapshot.session_state, SessionState.IDLE)
        self.assertEqual(snapshot.error, OUTLINE_FAILURE_MESSAGE)
        self.assertEqual(self.gateway.chapter_calls, [])

    async def test_unexpected_cover_and_chapter_errors_are_contained(self) -> None:
        self.gateway.cover_error = RuntimeError("decoder crashed")
        self.gateway.failing_chapters = {"Chapter 5": RuntimeError("socket closed")}

        with self.assertLogs("ebook_factory.orchestrator", level="ERROR"):
            await self.orchestrator.start_generation("Productivity")
            await self.orchestrator.wait()

        snapshot = self.store.snapshot()
        self.assertIs(snapshot.session_state, SessionState.FINISHED)
        self.assertFalse(snapshot.book.is_generating_cover)
        self.assertIsNone(snapshot.book.cover_image_base64)
        fifth = snapshot.book.chapters[4]
        self.assertIs(fifth.status, ChapterStatus.ERROR)
        self.assertEqual(fifth.content, CHAPTER_FALLBACK_TEXT)
        self.assertEqual(
            [c.status for c in snapshot.book.chapters].count(ChapterStatus.COMPLETED), 9
        )
        self.assertEqual(snapshot.generated_chapters_count, 9)

    async def test_chapters_finish_while_cover_is_still_pending(self) -> None:
        self.gateway.cover_gate = asyncio.Event()

        await self.orchestrator.start_generation("Productivity")
        for _ in range(1000):
            if self.store.snapshot().session_state is SessionState.FINISHED:
                break
            await asyncio.sleep(0)

        snapshot = self.store.snapshot()
        self.assertIs(snapshot.session_state, SessionState.FINISHED)
        self.assertEqual(snapshot.generated_chapters_count, 10)
        self.assertTrue(snapshot.book.is_generating_cover)

        self.gateway.cover_gate.set()
        await self.orchestrator.wait()

        book = self.store.snapshot().book
        self.assertFalse(book.is_generating_cover)
        self.assertEqual(book.cover_image_base64, "aGVsbG8=")

    async def test_book_keeps_chapter_count_from_outline(self) -> None:
        for count in (9, 11):
            with self.subTest(count=count):
                store = BookStore()
                gateway = FakeGateway()
                gateway.chapter_count = count
                orchestrator = GenerationOrchestrator(
                    store, gateway, Settings(api_key="key")
                )

                await orchestrator.start_generation("Productivity")
                await orchestrator.wait()

                snapshot = store.snapshot()
                completed = [
                    c for c in snapshot.book.chapters if c.status is ChapterStatus.COMPLETED
                ]
                self.assertEqual(len(snapshot.book.chapters), count)
                self.assertIs(snapshot.session_state, SessionState.FINISHED)
                self.assertEqual(snapshot.generated_chapters_count, len(completed))
                self.assertEqual(len(completed), count)


if __name__ == "__main__":
    unittest.main()
