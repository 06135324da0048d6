"""Prompt text and response schemas for every generation call."""

from __future__ import annotations

from ..workflow.models import Asset, Language, Shot
from .generation import StructuredSchema

_STRING = {"type": "string"}

_SHOT_PROPERTIES = {
    "shotNumber": {"type": "number"},
    "shotType": _STRING,
    "duration": _STRING,
    "sceneName": _STRING,
    "location": _STRING,
    "characters": {"type": "array", "items": _STRING},
    "action": _STRING,
    "dialogue": _STRING,
    "composition": _STRING,
    "lighting": _STRING,
    "cameraMovement": _STRING,
    "props": _STRING,
    "atmosphere": _STRING,
    "soundEffect": _STRING,
    "visualPrompt": _STRING,
    "videoPrompt": _STRING,
    "transitionPrompt": _STRING,
}

STORYBOARD_SCHEMA = StructuredSchema(
    name="storyboard",
    schema={
        "type": "object",
        "properties": {
            "shots": {
                "type": "array",
                "items": {"type": "object", "properties": _SHOT_PROPERTIES},
            }
        },
    },
)

SHOT_PATCH_SCHEMA = StructuredSchema(
    name="shot_patch",
    schema={
        "type": "object",
        "properties": {
            "shotType": _STRING,
            "composition": _STRING,
            "lighting": _STRING,
            "cameraMovement": _STRING,
            "props": _STRING,
            "atmosphere": _STRING,
            "action": {"type": "string", "description": "A more detailed, visual action description"},
        },
    },
)
SHOT_PATCH_KEYS = frozenset(SHOT_PATCH_SCHEMA.schema["properties"])

ASSETS_SCHEMA = StructuredSchema(
    name="assets",
    schema={
        "type": "object",
        "properties": {
            "assets": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": _STRING,
                        "type": {"type": "string", "enum": ["character", "scene", "prop"]},
                        "description": _STRING,
                        "prompt": _STRING,
                    },
                },
            }
        },
    },
)

SCREENWRITER_INSTRUCTION = (
    "You are a professional film and short-drama director and screenwriter. "
    "Write a complete script from the user's idea."
)
CINEMATOGRAPHER_INSTRUCTION = (
    "You are a master cinematographer and AI prompt engineer. Create highly descriptive, "
    "visual, and professional film-style prompts."
)
REFINE_INSTRUCTION = (
    "Refine the visual prompt based on the director's specific feedback while maintaining "
    "cinematic quality."
)

PREVIEW_PREAMBLE = "High-quality cinematic movie frame, professional lighting: "
PREVIEW_ASPECT_RATIO = "16:9"

SCRIPT_CONTEXT_LIMIT = 1000


def storyboard_prompt(script: str) -> str:
    return (
        "Break the script down into a detailed storyboard. Every shot must include shot type, "
        "action, composition, lighting, camera movement, props and atmosphere.\n"
        f"Script:\n{script}"
    )


def shot_optimize_prompt(shot: Shot, script_context: str) -> str:
    return "\n".join(
        [
            "Using the script as context, polish this storyboard shot.",
            "Current shot:",
            f"- Action: {shot.action}",
            f"- Shot type: {shot.shot_type or 'undecided'}",
            "",
            f"Script background: {script_context[:SCRIPT_CONTEXT_LIMIT]}...",
            "",
            "Task: match this action with the most professional shot type, composition, "
            "lighting and camera movement so it reads like a feature film.",
        ]
    )


VISUAL_PROMPT_REQUIREMENTS = (
    "Requirements:",
    "1. Include concrete camera parameters (e.g. 35mm lens, f/2.8, cinematic lighting).",
    "2. Keep it visual and faithful to the shot's action.",
    "3. Output English only.",
    "4. No explanations.",
)


def visual_prompt_request(shot: Shot, asset_summary: str) -> str:
    lines = [
        "Fuse the following storyboard parameters into one extremely detailed cinematic English image prompt.",
        "Shot:",
        f"- Shot Type: {shot.shot_type}",
        f"- Action: {shot.action}",
        f"- Composition: {shot.composition}",
        f"- Lighting: {shot.lighting}",
        f"- Movement Context: {shot.camera_movement}",
        f"- Props: {shot.props}",
        f"- Atmosphere: {shot.atmosphere}",
        "",
        "Asset library:",
        asset_summary or "(empty)",
        "",
    ]
    lines.extend(VISUAL_PROMPT_REQUIREMENTS)
    return "\n".join(lines)


def refine_context(shot: Shot) -> str:
    return f"Action: {shot.action}, Shot: {shot.shot_type}, Lighting: {shot.lighting}"


def refine_prompt(current: str, note: str, context: str) -> str:
    return f"Current: {current}\nDirector's Idea: {note}\nContext: {context}"


_LANGUAGE_NAMES = {Language.EN: "English", Language.ZH: "Simplified Chinese"}


def translate_prompt(text: str, target: Language) -> str:
    return (
        f"Translate the following text into {_LANGUAGE_NAMES[target]}. "
        "Output ONLY the translated result:\n\n"
        f"{text}"
    )


def enhance_asset_prompt(asset: Asset) -> str:
    return f"Enhance prompt for {asset.type.value}: {asset.prompt}"


def extract_assets_prompt(script: str) -> str:
    return f"Extract the core characters, scenes and props. Script:\n{script}"


def preview_prompt(visual_prompt: str) -> str:
    return f"{PREVIEW_PREAMBLE}{visual_prompt}"


def looks_like_script(text: str) -> bool:
    """Heuristic for chat replies that should replace the current draft."""
    return any(marker in text for marker in ("场", "EXT.", "INT.")) or len(text) > 200

