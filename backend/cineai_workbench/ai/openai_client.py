"""OpenAI-compatible client wrapper with provider failover and a demo mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from openai import OpenAI

DEFAULT_CHAT_MODEL = "google/gemini-2.5-flash-lite-preview-09-2025"
DEFAULT_IMAGE_MODEL = "dall-e-3"
DEFAULT_TTS_MODEL = "tts-1"

DEMO_MESSAGE = "AI unavailable: set OPENAI_API_KEY for live responses."

logger = logging.getLogger(__name__)


class _DemoCompletions:
    """Imitates `chat.completions.create`."""

    def __init__(self, message: str):
        self._message = message

    def create(self, *_args, **_kwargs):
        return {
            "choices": [{"message": {"role": "assistant", "content": self._message}}],
            "model": "demo-fallback",
        }


class _DemoChat:
    def __init__(self, message: str):
        self.completions = _DemoCompletions(message)


class _DemoImages:
    """Image endpoint stub; returns an entry without payload."""

    def generate(self, *_args, **_kwargs):
        return {"data": [{"b64_json": None}], "model": "demo-fallback"}


class _DemoSpeech:
    def create(self, *_args, **_kwargs):
        return {"content": None, "model": "demo-fallback"}


class _DemoAudio:
    def __init__(self):
        self.speech = _DemoSpeech()


class _DemoClient:
    """Aggregates demo endpoints to resemble the OpenAI client."""

    def __init__(self, message: str):
        self.chat = _DemoChat(message)
        self.images = _DemoImages()
        self.audio = _DemoAudio()


@dataclass(frozen=True)
class _Provider:
    """One OpenAI-compatible endpoint in the failover chain."""

    api_key: str
    base_url: str | None = None
    chat_model_override: str | None = None


class OpenAIClient:
    """Thin wrapper around OpenAI-compatible providers with demo mode."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        fallback_configs: Sequence[Dict[str, str | None]] | None = None,
        default_chat_model: str | None = None,
        default_image_model: str | None = None,
        default_tts_model: str | None = None,
    ):
        self._providers = self._build_providers(api_key, base_url, fallback_configs)
        self.api_key = self._providers[0].api_key if self._providers else None
        self.base_url = self._providers[0].base_url if self._providers else base_url
        self.default_chat_model = self._clean(default_chat_model) or DEFAULT_CHAT_MODEL
        self.default_image_model = self._clean(default_image_model) or DEFAULT_IMAGE_MODEL
        self.default_tts_model = self._clean(default_tts_model) or DEFAULT_TTS_MODEL
        self._clients: Dict[tuple[str, str | None], OpenAI] = {}
        self._demo_client: Optional[_DemoClient] = None

    @staticmethod
    def _clean(value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    @property
    def demo_mode(self) -> bool:
        return not self._providers

    def _build_providers(
        self,
        api_key: str | None,
        base_url: str | None,
        fallback_configs: Sequence[Dict[str, str | None]] | None,
    ) -> List[_Provider]:
        providers: list[_Provider] = []
        seen: set[tuple[str, str | None, str | None]] = set()

        candidates: list[Dict[str, str | None]] = [{"api_key": api_key, "base_url": base_url}]
        candidates.extend(fallback_configs or [])
        for cfg in candidates:
            key = self._clean(cfg.get("api_key"))
            if not key:
                continue
            provider = _Provider(
                api_key=key,
                base_url=self._clean(cfg.get("base_url")),
                chat_model_override=self._clean(cfg.get("chat_model_override")),
            )
            marker = (provider.api_key, provider.base_url, provider.chat_model_override)
            if marker in seen:
                continue
            providers.append(provider)
            seen.add(marker)

        return providers

    def _get_demo_client(self) -> _DemoClient:
        if not self._demo_client:
            self._demo_client = _DemoClient(DEMO_MESSAGE)
        return self._demo_client

    def _get_live_client(self, provider: _Provider) -> OpenAI:
        client_key = (provider.api_key, provider.base_url)
        client = self._clients.get(client_key)
        if not client:
            client = OpenAI(api_key=provider.api_key, base_url=provider.base_url)
            self._clients[client_key] = client
        return client

    def _promote_provider(self, idx: int) -> None:
        if idx <= 0:
            return
        provider = self._providers.pop(idx)
        self._providers.insert(0, provider)
        self.api_key = self._providers[0].api_key
        self.base_url = self._providers[0].base_url
        logger.info("Promoted provider %s to primary", provider.base_url or "default")

    def _call_with_fallback(self, call: Callable[[Any, _Provider], Any]) -> Any:
        if not self._providers:
            return call(self._get_demo_client(), _Provider(api_key="", base_url=None))

        last_error: Exception | None = None
        for idx, provider in enumerate(self._providers):
            try:
                client = self._get_live_client(provider)
                response = call(client, provider)
                self._promote_provider(idx)
                return response
            except Exception as exc:
                logger.warning("Provider %s failed: %s", provider.base_url or "default", exc)
                last_error = exc
                continue

        raise last_error  # type: ignore[misc]

    def chat(self, messages: List[Dict[str, str]], model: str | None = None, **kwargs) -> Any:
        """Call the chat endpoint with ordered API-key fallback."""

        def _chat_call(client: Any, provider: _Provider) -> Any:
            chosen_model = provider.chat_model_override or model or self.default_chat_model
            return client.chat.completions.create(messages=messages, model=chosen_model, **kwargs)

        return self._call_with_fallback(_chat_call)

    def image(self, prompt: str, size: str, model: str | None = None, **kwargs) -> Any:
        """Call the image endpoint; the payload is requested as base64."""

        def _image_call(client: Any, _provider: _Provider) -> Any:
            return client.images.generate(
                model=model or self.default_image_model,
                prompt=prompt,
                size=size,
                n=1,
                response_format="b64_json",
                **kwargs,
            )

        return self._call_with_fallback(_image_call)

    def speech(self, text: str, voice: str, model: str | None = None, **kwargs) -> Any:
        """Call the text-to-speech endpoint."""

        def _speech_call(client: Any, _provider: _Provider) -> Any:
            return client.audio.speech.create(
                model=model or self.default_tts_model,
                voice=voice,
                input=text,
                response_format="wav",
                **kwargs,
            )

        return self._call_with_fallback(_speech_call)
