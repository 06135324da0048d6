"""Workflow controller: the single owner of session state.

The controller holds the current stage and the script, storyboard and asset
collections, and is the only place that calls the generation boundary.
Presentation layers read its collections and subscribe to ``WorkflowEvent``
notifications instead of mutating state themselves.

Replace-vs-merge contract of every AI-driven mutation:

* ``advance`` from SCRIPT and ``extract_from_script`` replace their collection
  wholesale with freshly identified items.
* ``regenerate_shot`` merges only the keys the model returned into one shot.
* ``synthesize_visual_prompt``, ``refine_visual_prompt``, ``translate_field``,
  ``enhance_prompt`` and ``translate_prompt`` replace exactly one text field.
* ``render_preview`` and ``speak_dialogue`` write side maps, never the shot.

AI actions are serialized per entity: a second action on a shot, asset or
the script while one is in flight raises ``EntityBusyError``. Each completion
re-resolves its target by id and drops the result if the target is gone.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..ai import prompts
from ..ai.generation import GenerationBoundary, GenerationError
from ..ai.offline import (
    offline_assets,
    offline_script_reply,
    offline_storyboard,
    offline_visual_prompt,
)
from ..i18n import t
from .assets import AssetLibrary, assets_from_payloads
from .errors import EntityBusyError, WorkflowBusyError
from .language import translation_target
from .models import (
    SHOT_PROMPT_FIELDS,
    Asset,
    AssetType,
    ChatTurn,
    Language,
    ScriptDraft,
    Shot,
    WorkflowStage,
)
from .script import Script
from .storyboard import Storyboard

logger = logging.getLogger(__name__)

SCRIPT_ENTITY = "script"
ASSETS_ENTITY = "assets"
MAX_NOTICES = 20


@dataclass(frozen=True)
class WorkflowEvent:
    kind: str
    entity_id: Optional[str] = None
    message: str = ""


Listener = Callable[[WorkflowEvent], None]


def _unwrap_list(payload: Any, key: str) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get(key)
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class WorkflowController:
    def __init__(self, generation: GenerationBoundary, language: Language = Language.ZH):
        self.generation = generation
        self.language = Language(language)
        self.current_stage = WorkflowStage.SCRIPT
        self.script = Script(self.language)
        self.storyboard = Storyboard()
        self.assets = AssetLibrary()
        self.chat_history: List[ChatTurn] = []
        self.previews: Dict[str, bytes] = {}
        self.dialogue_audio: Dict[str, bytes] = {}
        self.notices: List[str] = []
        self._advancing = False
        self._in_flight: set[str] = set()
        self._listeners: List[Listener] = []

    # -- observation -----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, kind: str, entity_id: Optional[str] = None, message: str = "") -> None:
        event = WorkflowEvent(kind=kind, entity_id=entity_id, message=message)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event", kind)

    def _notify(self, message: str, entity_id: Optional[str] = None) -> None:
        self.notices.append(message)
        del self.notices[:-MAX_NOTICES]
        self._emit("notice", entity_id, message)

    def _report_failure(self, exc: GenerationError, entity_id: Optional[str] = None) -> None:
        logger.warning("Generation failed for %s: %s", entity_id or "workflow", exc)
        self._notify(t(self.language, "notice.generation_failed", error=exc), entity_id)

    def _report_empty(self, entity_id: Optional[str] = None) -> None:
        logger.info("Model returned nothing for %s", entity_id or "workflow")
        self._notify(t(self.language, "notice.nothing_generated"), entity_id)

    # -- busy tracking ---------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while a stage advance is waiting on the model."""
        return self._advancing

    def is_busy(self, entity_id: str) -> bool:
        return entity_id in self._in_flight

    @contextmanager
    def _entity_action(self, entity_id: str) -> Iterator[None]:
        if entity_id in self._in_flight:
            raise EntityBusyError(entity_id)
        self._in_flight.add(entity_id)
        self._emit("busy", entity_id)
        try:
            yield
        finally:
            self._in_flight.discard(entity_id)
            self._emit("busy", entity_id)

    @contextmanager
    def _advancing_action(self) -> Iterator[None]:
        if self._advancing:
            raise WorkflowBusyError("A stage advance is already running")
        self._advancing = True
        self._emit("busy")
        try:
            yield
        finally:
            self._advancing = False
            self._emit("busy")

    # -- language and stages ---------------------------------------------

    def toggle_language(self) -> Language:
        self.language = self.language.toggled()
        self._emit("language", message=self.language.value)
        return self.language

    def set_stage(self, stage: WorkflowStage | str) -> None:
        self.current_stage = WorkflowStage(stage)
        self._emit("stage", message=self.current_stage.value)

    async def advance(self, from_stage: WorkflowStage | str | None = None) -> bool:
        """Move forward from ``from_stage``, generating the next collection where needed."""
        stage = WorkflowStage(from_stage) if from_stage is not None else self.current_stage
        if stage is WorkflowStage.VIDEO_PROMPTS:
            return False
        with self._advancing_action():
            if stage is WorkflowStage.SCRIPT:
                generated = await self._generate_storyboard()
            elif stage is WorkflowStage.STORYBOARD:
                generated = await self.extract_from_script()
            else:
                generated = True
        if generated:
            self.set_stage(stage.next())
        return generated

    async def _generate_storyboard(self) -> bool:
        content = self.script.current_draft.content
        if not content.strip():
            return False
        try:
            payload = await self.generation.generate_text(
                prompts.storyboard_prompt(content),
                schema=prompts.STORYBOARD_SCHEMA,
                fallback=lambda: offline_storyboard(content),
            )
        except GenerationError as exc:
            self._report_failure(exc)
            return False
        shots = _unwrap_list(payload, "shots")
        if not shots:
            self._report_empty()
            return False
        self.storyboard.replace_all(shots)
        self.previews.clear()
        self.dialogue_audio.clear()
        logger.info("Storyboard replaced with %d shots", len(self.storyboard))
        self._emit("storyboard")
        return True

    # -- script ----------------------------------------------------------

    @property
    def current_draft(self) -> ScriptDraft:
        return self.script.current_draft

    def select_draft(self, draft_id: str) -> bool:
        selected = self.script.select_draft(draft_id)
        if selected:
            self._emit("script", draft_id)
        return selected

    def update_content(self, text: str) -> None:
        self.script.update_content(text)
        self._emit("script", self.script.current_draft_id)

    def create_draft(self) -> ScriptDraft:
        draft = self.script.create_draft(self.language)
        self._emit("script", draft.id)
        return draft

    async def chat_script(self, message: str) -> bool:
        """Ask the screenwriter model; script-like replies replace the draft that was active."""
        if not message.strip():
            return False
        with self._entity_action(SCRIPT_ENTITY):
            draft_id = self.script.current_draft_id
            history = [turn.as_message() for turn in self.chat_history]
            try:
                reply = await self.generation.generate_text(
                    message,
                    system_instruction=prompts.SCREENWRITER_INSTRUCTION,
                    history=history,
                    fallback=lambda: offline_script_reply(message),
                )
            except GenerationError as exc:
                logger.warning("Script chat failed: %s", exc)
                self._notify(t(self.language, "notice.chat_failed"), SCRIPT_ENTITY)
                return False
        if not reply:
            self._report_empty(SCRIPT_ENTITY)
            return False
        self.chat_history.extend([ChatTurn("user", message), ChatTurn("model", reply)])
        self._emit("chat")
        if prompts.looks_like_script(reply):
            self.script.update_content(reply, draft_id=draft_id)
            self._emit("script", draft_id)
        return True

    # -- storyboard ------------------------------------------------------

    @property
    def shots(self) -> List[Shot]:
        return self.storyboard.shots

    def insert_shot(self, select: bool = False) -> Shot:
        shot = self.storyboard.insert_shot(self.language, select=select)
        self._emit("storyboard", shot.id)
        return shot

    def remove_shot(self, shot_id: str) -> bool:
        removed = self.storyboard.remove_shot(shot_id)
        if removed:
            self.previews.pop(shot_id, None)
            self.dialogue_audio.pop(shot_id, None)
            self._emit("storyboard", shot_id)
        return removed

    def select_shot(self, shot_id: str) -> bool:
        selected = self.storyboard.select(shot_id)
        if selected:
            self._emit("selection", shot_id)
        return selected

    def update_field(self, shot_id: str, field_name: str, value: Any) -> bool:
        updated = self.storyboard.update_field(shot_id, field_name, value)
        if updated is None:
            return False
        self._emit("storyboard", shot_id)
        return True

    def _write_shot(self, shot_id: str, changes: Dict[str, Any], preserve_stale: bool = False) -> bool:
        if self.storyboard.patch(shot_id, changes, preserve_stale=preserve_stale) is None:
            logger.debug("Dropping late result for removed shot %s", shot_id)
            return False
        self._emit("storyboard", shot_id)
        return True

    async def regenerate_shot(self, shot_id: str, script_context: Optional[str] = None) -> bool:
        """Merge a model patch of cinematic fields; fields it does not return are kept."""
        shot = self.storyboard.get(shot_id)
        if shot is None:
            return False
        context = script_context if script_context is not None else self.current_draft.content
        with self._entity_action(shot_id):
            try:
                payload = await self.generation.generate_text(
                    prompts.shot_optimize_prompt(shot, context),
                    schema=prompts.SHOT_PATCH_SCHEMA,
                )
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        patch = {
            k: v for k, v in payload.items() if k in prompts.SHOT_PATCH_KEYS and v is not None
        }
        if not patch:
            self._report_empty(shot_id)
            return False
        if self.storyboard.merge_payload(shot_id, patch) is None:
            logger.debug("Dropping late result for removed shot %s", shot_id)
            return False
        self._emit("storyboard", shot_id)
        return True

    async def synthesize_visual_prompt(self, shot_id: str) -> bool:
        shot = self.storyboard.get(shot_id)
        if shot is None:
            return False
        with self._entity_action(shot_id):
            try:
                text = await self.generation.generate_text(
                    prompts.visual_prompt_request(shot, self.assets.summary()),
                    system_instruction=prompts.CINEMATOGRAPHER_INSTRUCTION,
                    fallback=lambda: offline_visual_prompt(shot),
                )
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        if not text:
            self._report_empty(shot_id)
            return False
        return self._write_shot(shot_id, {"visual_prompt": text})

    async def refine_visual_prompt(self, shot_id: str, note: str) -> bool:
        shot = self.storyboard.get(shot_id)
        if shot is None or not note.strip():
            return False
        with self._entity_action(shot_id):
            try:
                text = await self.generation.generate_text(
                    prompts.refine_prompt(shot.visual_prompt, note, prompts.refine_context(shot)),
                    system_instruction=prompts.REFINE_INSTRUCTION,
                )
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        if not text:
            self._report_empty(shot_id)
            return False
        return self._write_shot(shot_id, {"visual_prompt": text})

    async def translate_field(self, shot_id: str, field_name: str) -> bool:
        """Toggle a prompt field between Chinese and English."""
        if field_name not in SHOT_PROMPT_FIELDS:
            raise ValueError(f"Field {field_name} cannot be translated")
        shot = self.storyboard.get(shot_id)
        if shot is None:
            return False
        text = getattr(shot, field_name)
        target = translation_target(text)
        if target is None:
            return False
        with self._entity_action(shot_id):
            try:
                translated = await self.generation.generate_text(prompts.translate_prompt(text, target))
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        if not translated:
            self._report_empty(shot_id)
            return False
        return self._write_shot(shot_id, {field_name: translated}, preserve_stale=True)

    async def render_preview(self, shot_id: str) -> bool:
        """Render the visual prompt into the session-only preview map."""
        shot = self.storyboard.get(shot_id)
        if shot is None or not shot.visual_prompt.strip():
            return False
        with self._entity_action(shot_id):
            try:
                image = await self.generation.generate_image(
                    prompts.preview_prompt(shot.visual_prompt),
                    prompts.PREVIEW_ASPECT_RATIO,
                )
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        if not image:
            self._report_empty(shot_id)
            return False
        if self.storyboard.get(shot_id) is None:
            return False
        self.previews[shot_id] = image
        self._emit("preview", shot_id)
        return True

    async def speak_dialogue(self, shot_id: str) -> bool:
        shot = self.storyboard.get(shot_id)
        if shot is None or not shot.dialogue.strip():
            return False
        with self._entity_action(shot_id):
            try:
                audio = await self.generation.generate_speech(shot.dialogue)
            except GenerationError as exc:
                self._report_failure(exc, shot_id)
                return False
        if not audio:
            self._report_empty(shot_id)
            return False
        if self.storyboard.get(shot_id) is None:
            return False
        self.dialogue_audio[shot_id] = audio
        self._emit("audio", shot_id)
        return True

    # -- assets ----------------------------------------------------------

    def add_asset(self, asset_type: AssetType | str) -> Asset:
        asset = self.assets.add_asset(AssetType(asset_type), self.language)
        self._emit("assets", asset.id)
        return asset

    def remove_asset(self, asset_id: str) -> bool:
        removed = self.assets.remove_asset(asset_id)
        if removed:
            self._emit("assets", asset_id)
        return removed

    def update_asset(self, asset_id: str, field_name: str, value: str) -> bool:
        if self.assets.update(asset_id, field_name, value) is None:
            return False
        self._emit("assets", asset_id)
        return True

    def _write_asset(self, asset_id: str, field_name: str, value: str) -> bool:
        if self.assets.update(asset_id, field_name, value) is None:
            logger.debug("Dropping late result for removed asset %s", asset_id)
            return False
        self._emit("assets", asset_id)
        return True

    async def enhance_prompt(self, asset_id: str) -> bool:
        asset = self.assets.get(asset_id)
        if asset is None:
            return False
        with self._entity_action(asset_id):
            try:
                text = await self.generation.generate_text(prompts.enhance_asset_prompt(asset))
            except GenerationError as exc:
                self._report_failure(exc, asset_id)
                return False
        if not text:
            self._report_empty(asset_id)
            return False
        return self._write_asset(asset_id, "prompt", text)

    async def translate_prompt(self, asset_id: str) -> bool:
        asset = self.assets.get(asset_id)
        if asset is None:
            return False
        target = translation_target(asset.prompt)
        if target is None:
            return False
        with self._entity_action(asset_id):
            try:
                translated = await self.generation.generate_text(
                    prompts.translate_prompt(asset.prompt, target)
                )
            except GenerationError as exc:
                self._report_failure(exc, asset_id)
                return False
        if not translated:
            self._report_empty(asset_id)
            return False
        return self._write_asset(asset_id, "prompt", translated)

    async def extract_from_script(self, content: Optional[str] = None) -> bool:
        """Replace the whole asset library with assets extracted from ``content``."""
        source = content if content is not None else self.current_draft.content
        if not source.strip():
            return False
        with self._entity_action(ASSETS_ENTITY):
            try:
                payload = await self.generation.generate_text(
                    prompts.extract_assets_prompt(source),
                    schema=prompts.ASSETS_SCHEMA,
                    fallback=lambda: offline_assets(source),
                )
            except GenerationError as exc:
                self._report_failure(exc, ASSETS_ENTITY)
                return False
        assets = assets_from_payloads(_unwrap_list(payload, "assets"))
        if not assets:
            self._report_empty(ASSETS_ENTITY)
            return False
        self.assets.replace_all(assets)
        logger.info("Asset library replaced with %d assets", len(self.assets))
        self._emit("assets")
        return True
