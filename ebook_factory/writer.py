from __future__ import annotations

from ebook_factory.models import Book, Chapter, ChapterStatus

CHAPTER_MIN_WORDS = 800
CHAPTER_FALLBACK_TEXT = (
    "An error occurred while generating this chapter. Please try again."
)


class ChapterError(RuntimeError):
    """Raised when a chapter body could not be generated."""


def build_book_context(book_title: str, book_description: str) -> str:
    return f"Title: {book_title.strip()}. Description: {book_description.strip()}."


def build_chapter_prompt(chapter_title: str, book_title: str, book_context: str) -> str:
    return (
        f'Write the COMPLETE, in-depth content for the chapter "{chapter_title.strip()}" '
        f'of the book "{book_title.strip()}".\n'
        f"Book context: {book_context.strip()}\n\n"
        "Content guidelines (focus on value for the reader):\n"
        "1. The content must be actionable and practical. Avoid filler.\n"
        "2. Use a tone of authority and empathy.\n"
        "3. Use rich Markdown formatting:\n"
        "   - Use subheadings (## and ###) to break up the text.\n"
        "   - Use bullet lists to make reading easier.\n"
        "   - Use bold (**text**) to emphasise key points.\n"
        "4. Suggested structure:\n"
        "   - Engaging introduction (hook).\n"
        "   - Development of the concept.\n"
        "   - Practical example or case study.\n"
        "   - A golden tip or practical exercise.\n"
        "   - Short chapter conclusion.\n"
        f"5. Length: at least {CHAPTER_MIN_WORDS} words of high-quality content.\n"
        "Do not repeat the chapter title at the top of the body.\n\n"
        "Return only the body text in Markdown."
    )


def _chapter_section(chapter: Chapter) -> list[str]:
    lines = [f"## Chapter {chapter.id}: {chapter.title}", ""]
    if chapter.status in (ChapterStatus.COMPLETED, ChapterStatus.ERROR) and chapter.content:
        lines.append(chapter.content.strip())
    else:
        lines.append(f"_{chapter.status.value}_")
    lines.append("")
    return lines


def build_book_markdown(book: Book) -> str:
    """Assemble the book into one markdown document (title, pitch, chapters)."""
    lines = [f"# {book.title}", ""]
    if book.description:
        lines.extend([book.description.strip(), ""])
    if book.target_audience:
        lines.extend([f"**Target audience:** {book.target_audience.strip()}", ""])
    for chapter in book.chapters:
        lines.extend(_chapter_section(chapter))
    return "\n".join(lines).rstrip() + "\n"
