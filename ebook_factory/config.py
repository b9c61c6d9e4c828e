from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")
MISSING_API_KEY_MESSAGE = (
    "API key not found. Set the GEMINI_API_KEY (or API_KEY) environment variable."
)


class ConfigError(RuntimeError):
    """Raised when generation is requested without a configured credential."""


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    if timeout <= 0:
        return None
    return timeout


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    timeout: Optional[float] = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(MISSING_API_KEY_MESSAGE)
        return self.api_key

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings once from the process environment."""
        env = os.environ if environ is None else environ
        api_key = ""
        for name in API_KEY_ENV_VARS:
            value = (env.get(name) or "").strip()
            if value:
                api_key = value
                break
        return cls(
            api_key=api_key,
            base_url=(env.get("EBOOK_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            text_model=env.get("EBOOK_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            image_model=env.get("EBOOK_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            timeout=_parse_timeout(env.get("EBOOK_TIMEOUT")),
        )
