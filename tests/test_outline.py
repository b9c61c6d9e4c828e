import json
import unittest

from ebook_factory.outline import (
    CHAPTER_COUNT,
    OUTLINE_SCHEMA,
    OutlineError,
    build_outline_prompt,
    parse_outline_response,
)


def _payload(count: int = 10, **overrides) -> dict:
    payload = {
        "title": "Deep Focus",
        "description": "Reclaim your attention.",
        "targetAudience": "Knowledge workers",
        "chapters": [
            {"id": index, "title": f"Chapter {index}", "description": f"Lesson {index}"}
            for index in range(1, count + 1)
        ],
    }
    payload.update(overrides)
    return payload


class TestOutlinePrompt(unittest.TestCase):
    def test_prompt_includes_topic_and_chapter_count(self) -> None:
        prompt = build_outline_prompt("  Productivity  ")

        self.assertIn('"Productivity"', prompt)
        self.assertIn(f"EXACTLY {CHAPTER_COUNT} chapters", prompt)
        self.assertIn("JSON", prompt)

    def test_schema_requires_outline_fields(self) -> None:
        self.assertEqual(
            OUTLINE_SCHEMA["required"],
            ["title", "description", "targetAudience", "chapters"],
        )


class TestParseOutline(unittest.TestCase):
    def test_parses_ten_chapters(self) -> None:
        outline = parse_outline_response(json.dumps(_payload()))

        self.assertEqual(outline.title, "Deep Focus")
        self.assertEqual(outline.target_audience, "Knowledge workers")
        self.assertEqual(len(outline.chapters), 10)
        self.assertEqual(outline.chapters[0].title, "Chapter 1")
        self.assertEqual(outline.chapters[9].description, "Lesson 10")

    def test_keeps_short_and_long_chapter_lists(self) -> None:
        for count in (9, 11):
            with self.subTest(count=count):
                with self.assertLogs("ebook_factory.outline", level="WARNING"):
                    outline = parse_outline_response(json.dumps(_payload(count)))

                self.assertEqual(len(outline.chapters), count)
                self.assertEqual(
                    [chapter.id for chapter in outline.chapters],
                    list(range(1, count + 1)),
                )

    def test_extracts_json_wrapped_in_text(self) -> None:
        text = "Here is your outline:\n```json\n" + json.dumps(_payload(2)) + "\n```"

        with self.assertLogs("ebook_factory.outline", level="WARNING"):
            outline = parse_outline_response(text)

        self.assertEqual(outline.title, "Deep Focus")
        self.assertEqual(len(outline.chapters), 2)

    def test_renumbers_missing_or_unordered_ids(self) -> None:
        payload = _payload(3)
        payload["chapters"][0]["id"] = 3
        payload["chapters"][1].pop("id")

        with self.assertLogs("ebook_factory.outline", level="WARNING"):
            outline = parse_outline_response(json.dumps(payload))

        self.assertEqual([chapter.id for chapter in outline.chapters], [1, 2, 3])

    def test_accepts_numeric_string_ids(self) -> None:
        payload = _payload()
        for chapter in payload["chapters"]:
            chapter["id"] = str(chapter["id"])

        outline = parse_outline_response(json.dumps(payload))

        self.assertEqual(outline.chapters[4].id, 5)

    def test_missing_audience_and_description_become_empty(self) -> None:
        payload = _payload()
        payload.pop("targetAudience")
        payload.pop("description")

        outline = parse_outline_response(json.dumps(payload))

        self.assertEqual(outline.target_audience, "")
        self.assertEqual(outline.description, "")

    def test_rejects_empty_response(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response("   ")

    def test_rejects_invalid_json(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response("{not json}")

    def test_rejects_text_without_object(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response("I could not do that.")

    def test_rejects_missing_title(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response(json.dumps(_payload(title="")))

    def test_rejects_missing_chapters(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response(json.dumps(_payload(chapters="ten")))
        with self.assertRaises(OutlineError):
            parse_outline_response(json.dumps(_payload(chapters=[])))

    def test_rejects_chapter_without_title(self) -> None:
        payload = _payload()
        payload["chapters"][3]["title"] = "  "

        with self.assertRaises(OutlineError):
            parse_outline_response(json.dumps(payload))

    def test_rejects_non_object_chapter(self) -> None:
        with self.assertRaises(OutlineError):
            parse_outline_response(json.dumps(_payload(chapters=["Chapter 1"])))


if __name__ == "__main__":
    unittest.main()
