"""Session download helpers: shot list CSV, prompt sheet and draft Markdown."""

from __future__ import annotations

import csv
import io
from typing import Sequence

from .workflow.models import ScriptDraft, Shot

SHOT_CSV_FIELDS = [
    "shot_number",
    "shot_type",
    "duration",
    "scene_name",
    "location",
    "characters",
    "action",
    "dialogue",
    "composition",
    "lighting",
    "camera_movement",
    "props",
    "atmosphere",
    "sound_effect",
]


def _cell(value: object) -> str:
    return str(value or "").replace("|", "/").replace("\n", " ").strip()


def shots_to_csv(shots: Sequence[Shot]) -> str:
    if not shots:
        return ""
    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=SHOT_CSV_FIELDS)
    writer.writeheader()
    for shot in shots:
        row = {name: getattr(shot, name) for name in SHOT_CSV_FIELDS}
        row["characters"] = ", ".join(shot.characters)
        writer.writerow(row)
    return out.getvalue()


def prompt_sheet_markdown(shots: Sequence[Shot], title: str = "Prompt Sheet") -> str:
    lines = [f"# {title}", ""]
    if not shots:
        lines.append("_No shots._")
        return "\n".join(lines)
    lines.extend(
        [
            "| # | Shot | Visual Prompt | Video Prompt | Transition |",
            "|---|---|---|---|---|",
        ]
    )
    for shot in shots:
        lines.append(
            "| {num} | {kind} | {visual} | {video} | {transition} |".format(
                num=shot.shot_number,
                kind=_cell(shot.shot_type),
                visual=_cell(shot.visual_prompt),
                video=_cell(shot.video_prompt),
                transition=_cell(shot.transition_prompt),
            )
        )
    return "\n".join(lines)


def draft_markdown(draft: ScriptDraft) -> str:
    body = draft.content.strip() or "_Empty draft._"
    return f"# {draft.title}\n\n_{draft.created_at}_\n\n{body}\n"
