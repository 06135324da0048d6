"""Shared fakes for workflow and generation tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, List

import pytest

from cineai_workbench.workflow.controller import WorkflowController
from cineai_workbench.workflow.models import Language


class FakeGeneration:
    """Stands in for GenerationBoundary; returns scripted results in order."""

    def __init__(
        self,
        text: List[Any] | None = None,
        images: List[Any] | None = None,
        speech: List[Any] | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.text_results = list(text or [])
        self.image_results = list(images or [])
        self.speech_results = list(speech or [])
        self.gate = gate
        self.calls: list[dict[str, Any]] = []

    async def _next(self, queue: list[Any]) -> Any:
        if self.gate is not None:
            await self.gate.wait()
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def generate_text(
        self,
        prompt,
        system_instruction=None,
        schema=None,
        history=None,
        fallback=None,
    ):
        self.calls.append(
            {
                "kind": "text",
                "prompt": prompt,
                "system_instruction": system_instruction,
                "schema": schema,
                "history": history,
            }
        )
        return await self._next(self.text_results)

    async def generate_image(self, prompt, aspect_ratio="16:9"):
        self.calls.append({"kind": "image", "prompt": prompt, "aspect_ratio": aspect_ratio})
        return await self._next(self.image_results)

    async def generate_speech(self, text, voice=None):
        self.calls.append({"kind": "speech", "prompt": text})
        return await self._next(self.speech_results)


class FakeAIClient:
    """Mimics OpenAIClient's chat/image/speech surface for GenerationBoundary."""

    def __init__(self, replies: List[Any] | None = None, demo_mode: bool = False):
        self.replies = list(replies or [])
        self.demo_mode = demo_mode
        self.chat_calls: list[dict[str, Any]] = []
        self.image_calls: list[tuple[str, str]] = []
        self.speech_calls: list[tuple[str, str]] = []
        self.image_response: Any = {"data": [{"b64_json": None}]}
        self.speech_response: Any = {"content": None}

    def chat(self, messages, model=None, **kwargs):
        self.chat_calls.append({"messages": messages, "model": model, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return {"choices": [{"message": {"role": "assistant", "content": reply}}]}

    def image(self, prompt, size, model=None):
        self.image_calls.append((prompt, size))
        return self.image_response

    def speech(self, text, voice, model=None):
        self.speech_calls.append((text, voice))
        return self.speech_response


def shot_payload(action: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "shotType": "MS",
        "sceneName": "Kitchen",
        "location": "Interior",
        "action": action,
        "composition": "Centered",
        "lighting": "Soft",
        "cameraMovement": "Static",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def make_controller() -> Callable[..., tuple[WorkflowController, FakeGeneration]]:
    def _make(language: Language = Language.EN, **kwargs: Any):
        generation = FakeGeneration(**kwargs)
        return WorkflowController(generation, language=language), generation

    return _make
