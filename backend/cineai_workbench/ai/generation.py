"""Async request/response boundary over the model service.

Every call is stateless. Failures surface as ``GenerationError``; structured
output that cannot be parsed degrades to the empty value of the expected
shape instead of raising.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .openai_client import DEMO_MESSAGE

logger = logging.getLogger(__name__)

ASPECT_RATIO_SIZES = {
    "16:9": "1792x1024",
    "9:16": "1024x1792",
    "1:1": "1024x1024",
}
DEFAULT_VOICE = "alloy"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class GenerationError(RuntimeError):
    """The model service failed or is unavailable."""


@dataclass(frozen=True)
class StructuredSchema:
    """JSON schema for a structured call; ``name`` is sent to the provider."""

    name: str
    schema: Dict[str, Any] = field(default_factory=dict)

    def empty(self) -> Any:
        return [] if self.schema.get("type") == "array" else {}

    def response_format(self) -> Dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": self.name, "schema": self.schema},
        }


def extract_content(resp: Any) -> str:
    """Handle both demo dict responses and SDK objects."""

    def _normalize(content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text_value = item.get("text") or item.get("content")
                else:
                    text_value = getattr(item, "text", None) or getattr(item, "content", None)
                if isinstance(text_value, str):
                    parts.append(text_value)
            if parts:
                return "\n".join(parts).strip()
        return str(content)

    if isinstance(resp, dict):
        try:
            return _normalize(resp["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError):
            return ""

    try:
        return _normalize(resp.choices[0].message.content)
    except (AttributeError, IndexError, TypeError):
        return ""


def parse_structured(text: str, schema: StructuredSchema) -> Any:
    """Parse model JSON, falling back to the schema's empty value."""
    cleaned = _FENCE_RE.sub("", (text or "").strip()).strip()
    if not cleaned:
        return schema.empty()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Malformed structured output for %s; treating as empty", schema.name)
        return schema.empty()
    expected = list if schema.schema.get("type") == "array" else dict
    if not isinstance(parsed, expected):
        logger.warning("Unexpected %s shape for %s", type(parsed).__name__, schema.name)
        return schema.empty()
    return parsed


def _field(resp: Any, name: str) -> Any:
    if isinstance(resp, dict):
        return resp.get(name)
    return getattr(resp, name, None)


def _extract_image_bytes(resp: Any) -> bytes | None:
    data = _field(resp, "data") or []
    if not data:
        return None
    payload = _field(data[0], "b64_json")
    if not payload:
        return None
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError):
        logger.warning("Image payload was not valid base64")
        return None


def _extract_audio_bytes(resp: Any) -> bytes | None:
    content = _field(resp, "content")
    if isinstance(content, (bytes, bytearray)):
        return bytes(content) or None
    reader = getattr(resp, "read", None)
    if callable(reader):
        raw = reader()
        return bytes(raw) or None
    return None


class GenerationBoundary:
    """Text, structured, image and speech generation over an ``OpenAIClient``."""

    def __init__(
        self,
        ai_client: Any,
        temperature: float = 0.7,
        voice: str = DEFAULT_VOICE,
    ):
        self.ai_client = ai_client
        self.temperature = temperature
        self.voice = voice

    @property
    def demo_mode(self) -> bool:
        demo = getattr(self.ai_client, "demo_mode", None)
        if demo is not None:
            return bool(demo)
        return getattr(self.ai_client, "api_key", None) in (None, "")

    @staticmethod
    def _build_messages(
        prompt: str,
        system_instruction: str | None,
        schema: StructuredSchema | None,
        history: Sequence[Dict[str, str]] | None,
    ) -> List[Dict[str, str]]:
        messages: list[dict[str, str]] = []
        system_parts = [system_instruction] if system_instruction else []
        if schema is not None:
            system_parts.append(
                "Respond with JSON only, matching this schema:\n" + json.dumps(schema.schema)
            )
        if system_parts:
            messages.append({"role": "system", "content": "\n\n".join(system_parts)})
        for turn in history or []:
            role = "assistant" if turn.get("role") == "model" else "user"
            messages.append({"role": role, "content": turn.get("text", "")})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def generate_text(
        self,
        prompt: str,
        system_instruction: str | None = None,
        schema: StructuredSchema | None = None,
        history: Sequence[Dict[str, str]] | None = None,
        fallback: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """Return text, or the parsed object when ``schema`` is given.

        In demo mode the ``fallback`` result is returned when one is provided;
        otherwise the call fails with ``GenerationError``.
        """
        if self.demo_mode:
            if fallback is None:
                raise GenerationError(DEMO_MESSAGE)
            logger.info("Demo mode: serving offline output for %s", schema.name if schema else "text")
            return fallback()

        messages = self._build_messages(prompt, system_instruction, schema, history)
        kwargs: dict[str, Any] = {"temperature": self.temperature}
        if schema is not None:
            kwargs["response_format"] = schema.response_format()

        try:
            resp = await asyncio.to_thread(self.ai_client.chat, messages=messages, **kwargs)
        except Exception as exc:
            logger.error("Text generation failed: %s", exc)
            raise GenerationError(str(exc)) from exc

        text = extract_content(resp)
        if schema is None:
            return text.strip()
        return parse_structured(text, schema)

    async def generate_image(self, prompt: str, aspect_ratio: str = "16:9") -> bytes | None:
        size = ASPECT_RATIO_SIZES.get(aspect_ratio, ASPECT_RATIO_SIZES["16:9"])
        try:
            resp = await asyncio.to_thread(self.ai_client.image, prompt, size)
        except Exception as exc:
            logger.error("Image generation failed: %s", exc)
            raise GenerationError(str(exc)) from exc
        return _extract_image_bytes(resp)

    async def generate_speech(self, text: str, voice: str | None = None) -> bytes | None:
        try:
            resp = await asyncio.to_thread(self.ai_client.speech, text, voice or self.voice)
        except Exception as exc:
            logger.error("Speech generation failed: %s", exc)
            raise GenerationError(str(exc)) from exc
        return _extract_audio_bytes(resp)
