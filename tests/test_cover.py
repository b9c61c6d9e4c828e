import unittest

from ebook_factory.cover import (
    COVER_ASPECT_RATIO,
    CoverError,
    CoverSettings,
    build_cover_prompt,
    decode_cover_image,
)


class TestCoverPrompt(unittest.TestCase):
    def test_prompt_mentions_title_topic_and_audience(self) -> None:
        prompt = build_cover_prompt("Deep Focus", "productivity", "Students")

        self.assertIn('titled "Deep Focus"', prompt)
        self.assertIn("Topic: productivity.", prompt)
        self.assertIn("Target Audience: Students.", prompt)
        self.assertIn("Aspect Ratio 2:3 (Vertical).", prompt)

    def test_prompt_skips_empty_audience(self) -> None:
        prompt = build_cover_prompt("Deep Focus", "productivity", "  ")

        self.assertNotIn("Target Audience", prompt)

    def test_prompt_uses_custom_settings(self) -> None:
        settings = CoverSettings(aspect_ratio="3:4", guidance="Watercolor style.")

        prompt = build_cover_prompt("Deep Focus", "productivity", "", settings)

        self.assertIn("Watercolor style.", prompt)
        self.assertIn("Aspect Ratio 3:4 (Vertical).", prompt)

    def test_prompt_clips_long_topic(self) -> None:
        prompt = build_cover_prompt("Title", "word " * 300, "")

        topic_line = prompt.splitlines()[1]
        self.assertTrue(topic_line.endswith("...."))
        self.assertLessEqual(len(topic_line), len("Topic: ") + 600 + 1)

    def test_default_aspect_ratio_is_vertical(self) -> None:
        self.assertEqual(CoverSettings().aspect_ratio, COVER_ASPECT_RATIO)
        self.assertEqual(COVER_ASPECT_RATIO, "2:3")


class TestDecodeCoverImage(unittest.TestCase):
    def test_decodes_base64_payload(self) -> None:
        self.assertEqual(decode_cover_image("aGVsbG8="), b"hello")

    def test_rejects_missing_payload(self) -> None:
        with self.assertRaises(CoverError):
            decode_cover_image(None)
        with self.assertRaises(CoverError):
            decode_cover_image("")

    def test_rejects_invalid_payload(self) -> None:
        with self.assertRaises(CoverError):
            decode_cover_image("not base64!")


if __name__ == "__main__":
    unittest.main()
