from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib import request

from ebook_factory.config import (
    DEFAULT_BASE_URL,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_TEXT_MODEL,
    Settings,
)

logger = logging.getLogger(__name__)


class GeminiError(ValueError):
    """Raised when the Gemini API returns a response without usable parts."""


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.image_model = image_model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiClient":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            text_model=settings.text_model,
            image_model=settings.image_model,
            timeout=settings.timeout,
        )

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        generation_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        model_name = model or self.text_model
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if generation_config:
            payload["generationConfig"] = generation_config
        data = json.dumps(payload).encode("utf-8")
        req = request.Request(
            f"{self.base_url}/models/{model_name}:generateContent",
            data=data,
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
        )
        logger.debug("POST generateContent model=%s", model_name)
        if self.timeout is None:
            response_context = request.urlopen(req)
        else:
            response_context = request.urlopen(req, timeout=self.timeout)
        with response_context as response:
            raw = response.read()
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise GeminiError("Gemini returned a response that is not UTF-8.") from exc
        except json.JSONDecodeError as exc:
            raise GeminiError("Gemini returned a non-JSON response.") from exc
        if not isinstance(parsed, dict):
            raise GeminiError("Gemini returned an unexpected response body.")
        return parsed

    def generate_text(
        self,
        prompt: str,
        model: Optional[str] = None,
        generation_config: Optional[dict[str, Any]] = None,
    ) -> str:
        response = self.generate(prompt, model=model, generation_config=generation_config)
        texts = [part["text"] for part in _response_parts(response) if part.get("text")]
        return "".join(texts).strip()

    def generate_json(self, prompt: str, schema: dict[str, Any]) -> str:
        """Request JSON output constrained by ``schema`` and return the raw text."""
        return self.generate_text(
            prompt,
            generation_config={
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        )

    def generate_image(self, prompt: str, aspect_ratio: Optional[str] = None) -> Optional[str]:
        """Return the first inline image payload (base64) or ``None``."""
        generation_config: dict[str, Any] = {"responseModalities": ["IMAGE"]}
        if aspect_ratio:
            generation_config["imageConfig"] = {"aspectRatio": aspect_ratio}
        response = self.generate(
            prompt, model=self.image_model, generation_config=generation_config
        )
        for part in _response_parts(response):
            inline_data = part.get("inlineData") or part.get("inline_data") or {}
            data = inline_data.get("data")
            if data:
                return data
        return None


def _response_parts(response: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []
    first = candidates[0]
    if not isinstance(first, dict) or not isinstance(first.get("content"), dict):
        return []
    parts = first["content"].get("parts")
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]
