"""Entities of the production pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List


class WorkflowStage(str, Enum):
    SCRIPT = "SCRIPT"
    STORYBOARD = "STORYBOARD"
    ASSETS = "ASSETS"
    IMAGE_PROMPTS = "IMAGE_PROMPTS"
    VIDEO_PROMPTS = "VIDEO_PROMPTS"

    @classmethod
    def ordered(cls) -> List["WorkflowStage"]:
        return list(cls)

    def next(self) -> "WorkflowStage":
        stages = self.ordered()
        idx = stages.index(self)
        return stages[min(idx + 1, len(stages) - 1)]


class Language(str, Enum):
    ZH = "zh"
    EN = "en"

    def toggled(self) -> "Language":
        return Language.EN if self is Language.ZH else Language.ZH


class AssetType(str, Enum):
    CHARACTER = "character"
    SCENE = "scene"
    PROP = "prop"


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass(frozen=True)
class ScriptDraft:
    id: str
    title: str
    content: str = ""
    created_at: str = field(default_factory=now_iso)


@dataclass(frozen=True)
class Shot:
    """One storyboard unit. ``shot_number`` always equals its 1-based position."""

    id: str
    shot_number: int
    shot_type: str = ""
    duration: str = ""
    scene_name: str = ""
    location: str = ""
    characters: tuple[str, ...] = ()
    composition: str = ""
    action: str = ""
    dialogue: str = ""
    lighting: str = ""
    props: str = ""
    camera_movement: str = ""
    atmosphere: str = ""
    sound_effect: str = ""
    visual_prompt: str = ""
    video_prompt: str = ""
    transition_prompt: str = ""
    is_stale: bool = False


# Shot fields the user and the model may write; identity and numbering are excluded.
SHOT_EDITABLE_FIELDS = frozenset(
    f.name for f in fields(Shot) if f.name not in {"id", "shot_number", "is_stale"}
)
# Fields the visual prompt is synthesized from.
SHOT_SOURCE_FIELDS = frozenset(
    {"shot_type", "composition", "action", "lighting", "camera_movement", "props", "atmosphere"}
)
SHOT_PROMPT_FIELDS = ("visual_prompt", "video_prompt", "transition_prompt")


@dataclass(frozen=True)
class Asset:
    id: str
    name: str
    type: AssetType
    description: str = ""
    prompt: str = ""


ASSET_EDITABLE_FIELDS = frozenset({"name", "description", "prompt"})


@dataclass(frozen=True)
class ChatTurn:
    role: str
    text: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}


_CAMEL_TO_SNAKE = {
    "shotType": "shot_type",
    "sceneName": "scene_name",
    "cameraMovement": "camera_movement",
    "soundEffect": "sound_effect",
    "visualPrompt": "visual_prompt",
    "videoPrompt": "video_prompt",
    "transitionPrompt": "transition_prompt",
}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def characters_tuple(value: Any) -> tuple[str, ...] | None:
    """Normalize a character list; a bare string is one name. None if unusable."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return None
    names = (_as_text(item).strip() for item in value)
    return tuple(name for name in names if name)


def shot_fields_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map a model payload onto editable Shot fields.

    Unknown keys and null values are dropped so only fields the model actually
    returned overwrite a shot.
    """
    result: dict[str, Any] = {}
    for key, value in payload.items():
        name = _CAMEL_TO_SNAKE.get(key, key)
        if name not in SHOT_EDITABLE_FIELDS or value is None:
            continue
        if name == "characters":
            characters = characters_tuple(value)
            if characters is not None:
                result[name] = characters
        else:
            result[name] = _as_text(value)
    return result


def asset_from_payload(payload: Dict[str, Any]) -> Asset | None:
    """Build an Asset with a fresh id; payloads with an unknown type are skipped."""
    try:
        asset_type = AssetType(str(payload.get("type", "")).strip().lower())
    except ValueError:
        return None
    return Asset(
        id=new_id(),
        name=_as_text(payload.get("name")),
        type=asset_type,
        description=_as_text(payload.get("description")),
        prompt=_as_text(payload.get("prompt")),
    )
