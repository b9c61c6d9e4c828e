from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from ebook_factory.models import ChapterStub, Outline

logger = logging.getLogger(__name__)

CHAPTER_COUNT = 10
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

OUTLINE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING", "description": "Magnetic title for the e-book."},
        "description": {
            "type": "STRING",
            "description": "Persuasive sales copy for the book.",
        },
        "targetAudience": {
            "type": "STRING",
            "description": "Clear definition of the target reader.",
        },
        "chapters": {
            "type": "ARRAY",
            "description": f"Exact list of {CHAPTER_COUNT} chapters.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "id": {"type": "INTEGER"},
                    "title": {"type": "STRING", "description": "Compelling chapter title."},
                    "description": {
                        "type": "STRING",
                        "description": "What the reader learns in this chapter.",
                    },
                },
                "required": ["id", "title", "description"],
            },
        },
    },
    "required": ["title", "description", "targetAudience", "chapters"],
}


class OutlineError(ValueError):
    """Raised when the outline could not be generated or parsed."""


def build_outline_prompt(topic: str) -> str:
    return (
        "Act as the editor-in-chief of a best-selling publisher and a direct "
        "response marketing expert. "
        f'Create the structure of a highly profitable e-book about: "{topic.strip()}".\n\n'
        "Mandatory requirements:\n"
        f"1. The e-book must have EXACTLY {CHAPTER_COUNT} chapters.\n"
        "2. Title: magnetic, using curiosity and a clear promise, like an Amazon "
        "best-seller.\n"
        "3. Description: persuasive sales copy focused on the reader's pain and "
        "desire.\n"
        "4. Chapters: follow a logical learning order from basic to advanced, with "
        "intriguing titles.\n\n"
        "Return ONLY a valid JSON object."
    )


def _extract_json_object(text: str) -> Any:
    trimmed = text.strip()
    if trimmed.startswith("{"):
        try:
            return json.loads(trimmed)
        except json.JSONDecodeError:
            pass
    match = _JSON_OBJECT_RE.search(trimmed)
    if not match:
        raise OutlineError("Outline response did not contain a JSON object.")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise OutlineError("Outline response is not valid JSON.") from exc


def _text_field(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _coerce_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _parse_chapters(raw_chapters: list[Any]) -> tuple[ChapterStub, ...]:
    titles: list[tuple[Any, str, str]] = []
    for position, entry in enumerate(raw_chapters, start=1):
        if not isinstance(entry, Mapping):
            raise OutlineError(f"Outline chapter {position} is not an object.")
        title = _text_field(entry, "title")
        if not title:
            raise OutlineError(f"Outline chapter {position} has no title.")
        titles.append((entry.get("id"), title, _text_field(entry, "description")))

    ids = [_coerce_id(raw_id) for raw_id, _, _ in titles]
    ascending = all(
        chapter_id is not None and chapter_id > 0 for chapter_id in ids
    ) and all(earlier < later for earlier, later in zip(ids, ids[1:]))
    if not ascending:
        logger.warning("Outline chapter ids are missing or out of order; renumbering.")
        ids = list(range(1, len(titles) + 1))

    return tuple(
        ChapterStub(id=chapter_id, title=title, description=description)
        for chapter_id, (_, title, description) in zip(ids, titles)
    )


def parse_outline_response(text: str) -> Outline:
    """Parse the JSON outline returned by the model.

    The chapter count is requested from the model but kept as returned:
    a list with more or fewer than ``CHAPTER_COUNT`` entries is accepted and
    only logged. Ids that are missing, non-numeric or not strictly ascending
    are replaced by their 1-based position.
    """
    if not text or not text.strip():
        raise OutlineError("Outline response was empty.")
    data = _extract_json_object(text)
    if not isinstance(data, Mapping):
        raise OutlineError("Outline response is not a JSON object.")

    title = _text_field(data, "title")
    if not title:
        raise OutlineError("Outline response has no title.")
    raw_chapters = data.get("chapters")
    if not isinstance(raw_chapters, list) or not raw_chapters:
        raise OutlineError("Outline response has no chapter list.")

    chapters = _parse_chapters(raw_chapters)
    if len(chapters) != CHAPTER_COUNT:
        logger.warning(
            "Outline returned %d chapters instead of %d.", len(chapters), CHAPTER_COUNT
        )
    return Outline(
        title=title,
        description=_text_field(data, "description"),
        target_audience=_text_field(data, "targetAudience", "target_audience"),
        chapters=chapters,
    )
