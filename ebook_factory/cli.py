from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from typing import Optional, TextIO

from ebook_factory.client import GeminiClient
from ebook_factory.config import ConfigError, Settings
from ebook_factory.gateway import GeminiGateway
from ebook_factory.logging_config import setup_logging
from ebook_factory.models import Book, ChapterStatus, StoreSnapshot
from ebook_factory.orchestrator import Gateway, GenerationOrchestrator
from ebook_factory.store import BookStore
from ebook_factory.writer import build_book_markdown


class ProgressPrinter:
    """Store listener that prints one line per visible change."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self.stream = stream
        self._statuses: dict[int, ChapterStatus] = {}

    def __call__(self, patch_name: str, snapshot: StoreSnapshot) -> None:
        book = snapshot.book
        if patch_name == "begin_planning":
            self._statuses = {}
            self._print("[outline] Planning the e-book...")
        elif patch_name == "fail_outline":
            self._print(f"[outline] Failed: {snapshot.error}")
        elif patch_name == "apply_outline" and book is not None:
            self._statuses = {chapter.id: chapter.status for chapter in book.chapters}
            self._print(f"[outline] {book.title!r} with {len(book.chapters)} chapters.")
        elif patch_name == "patch_cover" and book is not None:
            if book.cover_image_base64:
                self._print("[cover] Cover image ready.")
            else:
                self._print("[cover] Cover unavailable.")
        elif patch_name == "patch_chapter" and book is not None:
            self._print_chapter_changes(snapshot, book)
        elif patch_name == "finish":
            self._print(
                f"[done] {snapshot.generated_chapters_count}/"
                f"{len(book.chapters) if book else 0} chapters generated."
            )

    def _print_chapter_changes(self, snapshot: StoreSnapshot, book: Book) -> None:
        total = len(book.chapters)
        for chapter in book.chapters:
            if self._statuses.get(chapter.id) is chapter.status:
                continue
            self._statuses[chapter.id] = chapter.status
            if chapter.status is ChapterStatus.GENERATING:
                self._print(f"[chapter] Writing {chapter.id}/{total}: {chapter.title}")
            elif chapter.status is ChapterStatus.COMPLETED:
                self._print(
                    f"[chapter] Completed {chapter.id}/{total} "
                    f"({snapshot.generated_chapters_count} done)."
                )
            elif chapter.status is ChapterStatus.ERROR:
                self._print(f"[chapter] Failed {chapter.id}/{total}: {chapter.title}")

    def _print(self, message: str) -> None:
        print(message, file=self.stream)


async def generate_ebook(
    topic: str,
    settings: Settings,
    gateway: Optional[Gateway] = None,
    verbose: bool = True,
) -> tuple[Optional[Book], StoreSnapshot]:
    """Run one generation to completion and return the final book and state."""
    store = BookStore()
    if verbose:
        store.subscribe(ProgressPrinter())
    if gateway is None:
        gateway = GeminiGateway(GeminiClient.from_settings(settings))
    orchestrator = GenerationOrchestrator(store, gateway, settings)
    book = await orchestrator.start_generation(topic)
    if book is not None:
        await orchestrator.wait()
    snapshot = store.snapshot()
    return snapshot.book, snapshot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a ten-chapter e-book (outline, cover, chapters) from a topic."
    )
    parser.add_argument(
        "--topic",
        default=None,
        help="Topic of the e-book to generate.",
    )
    parser.add_argument(
        "--gui",
        action="store_true",
        help="Start the browser GUI instead of generating from the command line.",
    )
    parser.add_argument(
        "--gui-host",
        default="127.0.0.1",
        help="Host interface for the GUI server.",
    )
    parser.add_argument(
        "--gui-port",
        type=int,
        default=8080,
        help="Port for the GUI server.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Gemini API base URL (defaults to EBOOK_BASE_URL or the public endpoint).",
    )
    parser.add_argument(
        "--text-model",
        default=None,
        help="Model used for the outline and chapters (defaults to EBOOK_TEXT_MODEL).",
    )
    parser.add_argument(
        "--image-model",
        default=None,
        help="Model used for the cover image (defaults to EBOOK_IMAGE_MODEL).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Optional timeout in seconds for each API request.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to LOG_LEVEL or WARNING).",
    )
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url.rstrip("/")
    if args.text_model:
        overrides["text_model"] = args.text_model
    if args.image_model:
        overrides["image_model"] = args.image_model
    if args.timeout is not None and args.timeout > 0:
        overrides["timeout"] = args.timeout
    return replace(settings, **overrides) if overrides else settings


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    settings = _settings_from_args(args)

    if args.gui:
        from ebook_factory.server import run_server

        run_server(host=args.gui_host, port=args.gui_port, settings=settings)
        return 0

    topic = (args.topic or "").strip()
    if not topic:
        parser.error("--topic is required unless --gui is set.")
    try:
        book, snapshot = asyncio.run(generate_ebook(topic, settings))
    except ConfigError as exc:
        parser.error(str(exc))
    if book is None:
        print(snapshot.error or "No e-book was generated.", file=sys.stderr)
        return 1
    print(build_book_markdown(book), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
