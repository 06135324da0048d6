"""Deterministic offline output served in demo mode."""

from __future__ import annotations

import random
import re
import textwrap
from typing import Any, Dict, List

from ..workflow.models import Shot

MAX_OFFLINE_SHOTS = 12

SHOT_TYPES = ["WS", "MS", "MCU", "CU", "OTS", "ECU"]
CAMERA_PATTERNS = [
    "Slow dolly in",
    "Static",
    "Handheld follow",
    "Pan left",
    "Tilt up",
    "Locked-off",
]
LIGHTING_PATTERNS = [
    "Soft window light",
    "Warm tungsten practicals",
    "Low-key contrast",
    "Golden hour backlight",
]
COMPOSITIONS = ["Rule of thirds", "Centered", "Leading lines", "Frame within frame"]

_HEADING_RE = re.compile(r"^\s*(INT\.|EXT\.|INT/EXT\.)\s*(.*)$", re.IGNORECASE)
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|(?<=[。！？])")
_CUE_RE = re.compile(r"^[A-Z][A-Z .'-]{1,30}$")


def _seed_for(*parts: str) -> int:
    key = "|".join(parts).strip().lower()
    return sum(ord(ch) for ch in key) % (2**31)


def _split_heading(rest: str) -> tuple[str, str]:
    """Split 'KITCHEN - DAY. Mira cooks.' into the heading and trailing action."""
    head, sep, tail = rest.partition(". ")
    if not sep:
        return rest.rstrip(". "), ""
    return head.strip(), tail.strip()


def _script_blocks(script: str) -> List[Dict[str, Any]]:
    """Walk the script into (scene, location, characters, action, dialogue) beats."""
    beats: list[dict[str, Any]] = []
    scene, location = "", ""
    speaker = ""
    for raw in script.splitlines():
        line = raw.strip()
        if not line:
            speaker = ""
            continue
        heading = _HEADING_RE.match(line)
        if heading:
            prefix = heading.group(1).upper()
            scene, trailing = _split_heading(heading.group(2))
            location = "Exterior" if prefix.startswith("EXT") else "Interior"
            if trailing:
                beats.extend(
                    {"scene": scene, "location": location, "action": s, "speaker": "", "dialogue": ""}
                    for s in _SENTENCE_RE.split(trailing)
                    if s.strip()
                )
            continue
        if _CUE_RE.match(line) and len(line.split()) <= 3:
            speaker = line.title()
            continue
        if speaker:
            beats.append(
                {"scene": scene, "location": location, "action": f"{speaker} speaks.",
                 "speaker": speaker, "dialogue": line}
            )
            continue
        beats.extend(
            {"scene": scene, "location": location, "action": s.strip(), "speaker": "", "dialogue": ""}
            for s in _SENTENCE_RE.split(line)
            if s.strip()
        )
    return beats[:MAX_OFFLINE_SHOTS]


def offline_storyboard(script: str) -> Dict[str, Any]:
    beats = _script_blocks(script)
    if not beats and script.strip():
        beats = [{"scene": "", "location": "", "action": script.strip()[:200], "speaker": "", "dialogue": ""}]
    rng = random.Random(_seed_for(script))
    shots = []
    for idx, beat in enumerate(beats):
        shots.append(
            {
                "shotType": SHOT_TYPES[idx % len(SHOT_TYPES)],
                "duration": f"{rng.randint(2, 6)}s",
                "sceneName": beat["scene"],
                "location": beat["location"],
                "characters": [beat["speaker"]] if beat["speaker"] else [],
                "action": beat["action"],
                "dialogue": beat["dialogue"],
                "composition": COMPOSITIONS[idx % len(COMPOSITIONS)],
                "lighting": rng.choice(LIGHTING_PATTERNS),
                "cameraMovement": CAMERA_PATTERNS[idx % len(CAMERA_PATTERNS)],
                "props": "",
                "atmosphere": "Cinematic realism",
                "soundEffect": "Room tone",
            }
        )
    return {"shots": shots}


def offline_assets(script: str) -> Dict[str, Any]:
    assets: list[dict[str, str]] = []
    seen: set[tuple[str, str]] = set()

    def _add(name: str, kind: str, description: str) -> None:
        marker = (name.lower(), kind)
        if not name or marker in seen:
            return
        seen.add(marker)
        assets.append(
            {
                "name": name,
                "type": kind,
                "description": description,
                "prompt": f"{name}, {kind} reference sheet, cinematic concept art",
            }
        )

    for beat in _script_blocks(script):
        if beat["scene"]:
            _add(beat["scene"].title(), "scene", f"{beat['location']} location")
        if beat["speaker"]:
            _add(beat["speaker"], "character", "Speaking role")
    return {"assets": assets}


def offline_visual_prompt(shot: Shot) -> str:
    parts = [
        f"{shot.shot_type} shot" if shot.shot_type else "",
        shot.action,
        shot.composition,
        shot.lighting,
        shot.camera_movement,
        shot.atmosphere,
        "35mm lens, f/2.8, cinematic lighting",
    ]
    return ", ".join(part.strip() for part in parts if part and part.strip())


def offline_script_reply(idea: str) -> str:
    premise = idea.strip() or "A quiet moment turns into a decision."
    return textwrap.dedent(
        """
        INT. STUDIO FLOOR - NIGHT

        The room is lit by emergency strips and old monitor glow.

        LEAD
        We have one shot. Make it count.

        PRODUCER
        Then we stop waiting for perfect.

        The feed stutters, then stabilizes. Everyone locks in.
        """
    ).strip() + f"\n\nPremise: {premise}"
