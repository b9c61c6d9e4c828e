from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

COVER_ASPECT_RATIO = "2:3"
COVER_MIME_TYPE = "image/png"
DEFAULT_COVER_GUIDANCE = (
    "Style: professional, best-seller aesthetic, bold typography, high contrast. "
    "The image should look like a finished product. Minimal text (only the title)."
)


class CoverError(RuntimeError):
    """Raised when the cover image could not be generated."""


@dataclass(frozen=True)
class CoverSettings:
    aspect_ratio: str = COVER_ASPECT_RATIO
    guidance: str = DEFAULT_COVER_GUIDANCE


def build_cover_prompt(
    title: str,
    topic: str,
    audience: str,
    settings: Optional[CoverSettings] = None,
) -> str:
    settings = settings or CoverSettings()
    lines = [
        f'A stunning, commercial book cover design for a book titled "{title.strip()}".',
        f"Topic: {_truncate_prompt_text(topic)}.",
    ]
    if audience.strip():
        lines.append(f"Target Audience: {_truncate_prompt_text(audience)}.")
    lines.append(settings.guidance)
    lines.append(f"Aspect Ratio {settings.aspect_ratio} (Vertical).")
    return "\n".join(lines)


def decode_cover_image(image_base64: Optional[str]) -> bytes:
    """Decode a base64 cover payload into raw image bytes."""
    if not image_base64:
        raise CoverError("No cover image is available.")
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CoverError("Cover image payload is not valid base64.") from exc


def _truncate_prompt_text(text: str) -> str:
    text_value = " ".join(text.split())
    if len(text_value) > 600:
        return text_value[:597].rstrip() + "..."
    return text_value
