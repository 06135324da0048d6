"""Ordered shot list with a selection pointer.

Every mutation rebuilds the list so that ``shot_number == index + 1`` and the
selection never points at a missing shot.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from ..i18n import SHOT_DEFAULTS
from .models import (
    SHOT_EDITABLE_FIELDS,
    SHOT_SOURCE_FIELDS,
    Language,
    Shot,
    characters_tuple,
    new_id,
    shot_fields_from_payload,
)

logger = logging.getLogger(__name__)


def _renumbered(shots: Iterable[Shot]) -> List[Shot]:
    return [
        shot if shot.shot_number == idx else replace(shot, shot_number=idx)
        for idx, shot in enumerate(shots, 1)
    ]


def _stale_after(shot: Shot, changes: Dict[str, Any], preserve: bool) -> bool:
    if preserve:
        return shot.is_stale
    if "visual_prompt" in changes:
        return False
    touches_source = any(
        name in SHOT_SOURCE_FIELDS and getattr(shot, name) != value for name, value in changes.items()
    )
    if touches_source and shot.visual_prompt:
        return True
    return shot.is_stale


class Storyboard:
    def __init__(self) -> None:
        self._shots: List[Shot] = []
        self.selected_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._shots)

    @property
    def shots(self) -> List[Shot]:
        return list(self._shots)

    def get(self, shot_id: str) -> Optional[Shot]:
        for shot in self._shots:
            if shot.id == shot_id:
                return shot
        return None

    @property
    def selected_shot(self) -> Optional[Shot]:
        if self.selected_id:
            shot = self.get(self.selected_id)
            if shot is not None:
                return shot
        return self._shots[0] if self._shots else None

    def select(self, shot_id: str) -> bool:
        if self.get(shot_id) is None:
            return False
        self.selected_id = shot_id
        return True

    def replace_all(self, payloads: Iterable[Dict[str, Any]]) -> List[Shot]:
        """Wholesale replace from model output; model ids and numbers are discarded."""
        shots = [
            Shot(id=new_id(), shot_number=0, **shot_fields_from_payload(payload))
            for payload in payloads
            if isinstance(payload, dict)
        ]
        self._shots = _renumbered(shots)
        self.selected_id = self._shots[0].id if self._shots else None
        logger.debug("Storyboard rebuilt with %d shots", len(self._shots))
        return self.shots

    def insert_shot(self, language: Language = Language.ZH, select: bool = False) -> Shot:
        """Append a shot seeded from the last shot's scene and location."""
        defaults = dict(SHOT_DEFAULTS[language])
        last = self._shots[-1] if self._shots else None
        if last is not None:
            defaults["scene_name"] = last.scene_name or defaults["scene_name"]
            defaults["location"] = last.location or defaults["location"]
        shot = Shot(id=new_id(), shot_number=len(self._shots) + 1, **defaults)
        self._shots = self._shots + [shot]
        if select or self.selected_id is None:
            self.selected_id = shot.id
        return shot

    def remove_shot(self, shot_id: str) -> bool:
        remaining = [shot for shot in self._shots if shot.id != shot_id]
        if len(remaining) == len(self._shots):
            logger.debug("Ignoring removal of unknown shot %s", shot_id)
            return False
        self._shots = _renumbered(remaining)
        if self.selected_id == shot_id or self.get(self.selected_id or "") is None:
            self.selected_id = self._shots[0].id if self._shots else None
        return True

    def patch(
        self, shot_id: str, changes: Dict[str, Any], preserve_stale: bool = False
    ) -> Optional[Shot]:
        """Shallow-merge ``changes`` into one shot as a single replace.

        Changing a source field of a shot that already has a visual prompt marks
        it stale; writing the visual prompt clears the mark unless
        ``preserve_stale`` is set.
        """
        unknown = set(changes) - SHOT_EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown shot field(s): {', '.join(sorted(unknown))}")
        shot = self.get(shot_id)
        if shot is None:
            return None
        if "characters" in changes:
            characters = characters_tuple(changes["characters"])
            if characters is None:
                raise ValueError("characters must be a name or a list of names")
            changes = dict(changes, characters=characters)
        updated = replace(shot, is_stale=_stale_after(shot, changes, preserve_stale), **changes)
        self._shots = [updated if s.id == shot_id else s for s in self._shots]
        return updated

    def update_field(self, shot_id: str, field_name: str, value: Any) -> Optional[Shot]:
        return self.patch(shot_id, {field_name: value})

    def merge_payload(self, shot_id: str, payload: Dict[str, Any]) -> Optional[Shot]:
        """Merge a model payload; only keys the model returned are overwritten."""
        return self.patch(shot_id, shot_fields_from_payload(payload))
