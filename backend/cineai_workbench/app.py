"""Backend application factory.

``create_app`` returns a lightweight dependency container (a dictionary) so the
Streamlit layer and the tests can wire the workflow without global state.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .ai.generation import DEFAULT_VOICE, GenerationBoundary
from .ai.openai_client import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_TTS_MODEL,
    OpenAIClient,
)
from .workflow.controller import WorkflowController
from .workflow.models import Language

logger = logging.getLogger(__name__)

# Ensure local `.env` values are available when running via Streamlit/CLI.
load_dotenv(Path(__file__).resolve().parents[2] / ".env", override=False)

FALLBACK_PREFIX = "OPENAI_API_KEY_FALLBACK_"


def _read_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _language_from_env() -> Language:
    raw = (_read_env("CINEAI_LANGUAGE") or Language.ZH.value).lower()
    try:
        return Language(raw)
    except ValueError:
        logger.warning("Unsupported CINEAI_LANGUAGE %r; using zh", raw)
        return Language.ZH


def provider_chain() -> list[dict[str, str | None]]:
    """Primary, single fallback, then indexed fallbacks in numeric order; duplicates dropped."""
    providers: list[dict[str, str | None]] = []
    seen: set[tuple[str, str | None, str | None]] = set()

    def _append_provider(
        api_key: str | None,
        base_url: str | None,
        chat_model_override: str | None = None,
    ) -> None:
        if not api_key:
            return
        marker = (api_key, base_url, chat_model_override)
        if marker in seen:
            return
        seen.add(marker)
        providers.append(
            {
                "api_key": api_key,
                "base_url": base_url,
                "chat_model_override": chat_model_override,
            }
        )

    _append_provider(_read_env("OPENAI_API_KEY"), _read_env("OPENAI_BASE_URL"))
    _append_provider(
        _read_env("OPENAI_API_KEY_FALLBACK"),
        _read_env("OPENAI_BASE_URL_FALLBACK"),
        _read_env("OPENAI_MODEL_FALLBACK"),
    )

    indexed_names = sorted(
        (
            name
            for name in os.environ
            if name.startswith(FALLBACK_PREFIX) and name[len(FALLBACK_PREFIX) :].isdigit()
        ),
        key=lambda name: int(name[len(FALLBACK_PREFIX) :]),
    )
    for name in indexed_names:
        idx = name[len(FALLBACK_PREFIX) :]
        _append_provider(
            _read_env(name),
            _read_env(f"OPENAI_BASE_URL_FALLBACK_{idx}"),
            _read_env(f"OPENAI_MODEL_FALLBACK_{idx}"),
        )
    return providers


def create_app() -> Dict[str, Any]:
    """Create the backend dependency container."""
    chain = provider_chain()
    primary = chain[0] if chain else {}

    ai_client = OpenAIClient(
        api_key=primary.get("api_key"),
        base_url=primary.get("base_url"),
        fallback_configs=chain[1:],
        default_chat_model=_read_env("OPENAI_DEFAULT_CHAT_MODEL") or DEFAULT_CHAT_MODEL,
        default_image_model=_read_env("OPENAI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        default_tts_model=_read_env("OPENAI_TTS_MODEL") or DEFAULT_TTS_MODEL,
    )
    generation = GenerationBoundary(
        ai_client,
        voice=_read_env("OPENAI_TTS_VOICE") or DEFAULT_VOICE,
    )
    settings = {
        "language": _language_from_env(),
        "log_level": _read_env("CINEAI_LOG_LEVEL") or "INFO",
        "provider_count": len(chain),
    }
    logger.info(
        "App created with %d provider(s)%s",
        len(chain),
        " (demo mode)" if ai_client.demo_mode else "",
    )
    return {
        "ai_client": ai_client,
        "generation": generation,
        "settings": settings,
    }


def create_controller(app: Dict[str, Any] | None = None) -> WorkflowController:
    """Build a fresh per-session workflow controller from the container."""
    app = app or create_app()
    return WorkflowController(app["generation"], language=app["settings"]["language"])
