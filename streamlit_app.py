"""Main Streamlit UI for CineAI Workbench.

The UI is a thin view over ``WorkflowController``: widgets read the
controller's collections and every change goes through a controller method.

Two runtime modes are supported:
- Live mode calls the configured API provider chain.
- Demo mode serves deterministic offline output where one exists.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Coroutine, List

import streamlit as st
from dotenv import load_dotenv

# Ensure backend package is importable when running `streamlit run streamlit_app.py`.
ROOT = Path(__file__).resolve().parent
BACKEND_ROOT = ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))
load_dotenv(ROOT / ".env", override=False)

SECRET_ENV_KEYS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_DEFAULT_CHAT_MODEL",
    "OPENAI_API_KEY_FALLBACK",
    "OPENAI_BASE_URL_FALLBACK",
    "OPENAI_MODEL_FALLBACK",
    "OPENAI_IMAGE_MODEL",
    "OPENAI_TTS_MODEL",
    "OPENAI_TTS_VOICE",
    "CINEAI_LANGUAGE",
    "CINEAI_LOG_LEVEL",
)
INDEXED_SECRET_PREFIXES = (
    "OPENAI_API_KEY_FALLBACK_",
    "OPENAI_BASE_URL_FALLBACK_",
    "OPENAI_MODEL_FALLBACK_",
)


def _hydrate_env_from_streamlit_secrets() -> None:
    """Load provider config from Streamlit Secrets into env when not already set."""
    try:
        secrets = st.secrets.to_dict()
    except Exception:
        # No secrets.toml present; env and .env are the only sources.
        return

    openai_block = secrets.get("openai")
    if isinstance(openai_block, dict):
        mapping = {
            "api_key": "OPENAI_API_KEY",
            "base_url": "OPENAI_BASE_URL",
            "default_chat_model": "OPENAI_DEFAULT_CHAT_MODEL",
            "image_model": "OPENAI_IMAGE_MODEL",
            "tts_model": "OPENAI_TTS_MODEL",
            "tts_voice": "OPENAI_TTS_VOICE",
        }
        for secret_key, env_key in mapping.items():
            value = openai_block.get(secret_key)
            if isinstance(value, str) and value.strip() and not os.getenv(env_key):
                os.environ[env_key] = value.strip()

    for key in SECRET_ENV_KEYS:
        value = secrets.get(key)
        if isinstance(value, str) and value.strip() and not os.getenv(key):
            os.environ[key] = value.strip()

    # Allow indexed fallback keys in secrets without enumerating every slot.
    for key, value in secrets.items():
        if not isinstance(key, str) or not isinstance(value, str) or not value.strip():
            continue
        if key.startswith(INDEXED_SECRET_PREFIXES) and not os.getenv(key):
            os.environ[key] = value.strip()


_hydrate_env_from_streamlit_secrets()

from cineai_workbench.app import create_app, create_controller  # noqa: E402
from cineai_workbench.exports import (  # noqa: E402
    draft_markdown,
    prompt_sheet_markdown,
    shots_to_csv,
)
from cineai_workbench.i18n import stage_label, t  # noqa: E402
from cineai_workbench.logging_config import setup_logging  # noqa: E402
from cineai_workbench.workflow.controller import WorkflowController, WorkflowEvent  # noqa: E402
from cineai_workbench.workflow.errors import WorkflowError  # noqa: E402
from cineai_workbench.workflow.models import AssetType, Shot, WorkflowStage  # noqa: E402

SHOT_CARD_FIELDS = (
    ("shot_type", False),
    ("duration", False),
    ("scene_name", False),
    ("location", False),
    ("composition", False),
    ("lighting", False),
    ("camera_movement", False),
    ("props", False),
    ("atmosphere", False),
    ("sound_effect", False),
    ("action", True),
    ("dialogue", True),
)


@st.cache_resource
def _get_app() -> dict[str, Any]:
    app = create_app()
    setup_logging(app["settings"]["log_level"])
    return app


def _get_controller() -> WorkflowController:
    if "cw_controller" not in st.session_state:
        controller = create_controller(_get_app())
        pending: List[str] = []

        def _on_event(event: WorkflowEvent) -> None:
            if event.kind == "notice":
                pending.append(event.message)

        controller.subscribe(_on_event)
        st.session_state["cw_controller"] = controller
        st.session_state["cw_pending_notices"] = pending
        st.session_state["cw_epoch"] = 0
    return st.session_state["cw_controller"]


def _rerun() -> None:
    st.rerun()


def _key(*parts: Any) -> str:
    # Widgets holding AI-writable text are re-keyed after every AI action so
    # they pick up the controller's new value.
    return "_".join(str(p) for p in (*parts, st.session_state["cw_epoch"]))


def _run(controller: WorkflowController, coro: Coroutine[Any, Any, bool]) -> bool:
    try:
        with st.spinner(t(controller.language, "processing")):
            result = asyncio.run(coro)
    except WorkflowError as exc:
        st.session_state["cw_pending_notices"].append(str(exc))
        return False
    st.session_state["cw_epoch"] += 1
    return bool(result)


def _act(controller: WorkflowController, coro: Coroutine[Any, Any, bool]) -> None:
    _run(controller, coro)
    _rerun()


def _show_notices() -> None:
    pending = st.session_state["cw_pending_notices"]
    for message in pending:
        st.warning(message)
    pending.clear()


def _sidebar(controller: WorkflowController, demo_mode: bool) -> None:
    lang = controller.language
    st.sidebar.markdown(f"## {t(lang, 'app_title')}")
    st.sidebar.caption("Demo Mode" if demo_mode else "Live AI Mode")
    if demo_mode:
        st.sidebar.info(
            "Add OPENAI_API_KEY (and optional fallback keys) in Streamlit Secrets "
            "or your local .env for live generation."
        )

    for idx, stage in enumerate(WorkflowStage.ordered(), 1):
        active = stage is controller.current_stage
        if st.sidebar.button(
            f"{idx}. {stage_label(lang, stage)}",
            key=f"nav_{stage.value}",
            type="primary" if active else "secondary",
            use_container_width=True,
        ):
            controller.set_stage(stage)
            _rerun()

    st.sidebar.markdown("---")
    if st.sidebar.button(t(lang, "language_toggle"), key="toggle_language", use_container_width=True):
        controller.toggle_language()
        _rerun()


def _script_stage(controller: WorkflowController) -> None:
    lang = controller.language
    chat_col, draft_col = st.columns([2, 3])

    with chat_col:
        st.subheader(t(lang, "chat"))
        for turn in controller.chat_history:
            with st.chat_message("assistant" if turn.role == "model" else "user"):
                st.markdown(turn.text)
        message = st.text_area(
            t(lang, "chat"),
            key=_key("chat_input"),
            placeholder=t(lang, "chat_placeholder"),
            height=100,
            label_visibility="collapsed",
        )
        if st.button(t(lang, "chat_send"), key="chat_send", type="primary", use_container_width=True):
            _act(controller, controller.chat_script(message))

    with draft_col:
        drafts = controller.script.drafts
        current = controller.current_draft
        head = st.columns([3, 1])
        titles = {d.id: f"{d.title} ({d.created_at})" for d in drafts}
        chosen = head[0].selectbox(
            t(lang, "drafts"),
            options=list(titles),
            index=list(titles).index(current.id),
            format_func=titles.get,
            key=_key("draft_select"),
        )
        if chosen != current.id:
            controller.select_draft(chosen)
            st.session_state["cw_epoch"] += 1
            _rerun()
        if head[1].button(t(lang, "new_draft"), key="new_draft", use_container_width=True):
            controller.create_draft()
            _rerun()

        st.caption(t(lang, "sync_hint"))
        content = st.text_area(
            t(lang, "script_editor"),
            value=current.content,
            placeholder=t(lang, "script_empty"),
            key=_key("draft", current.id),
            height=420,
        )
        if content != current.content:
            controller.update_content(content)

        actions = st.columns(2)
        if actions[0].button(
            t(lang, "sync_storyboard"),
            key="sync_storyboard",
            type="primary",
            disabled=not current.content.strip(),
            use_container_width=True,
        ):
            _act(controller, controller.advance(WorkflowStage.SCRIPT))
        actions[1].download_button(
            t(lang, "export"),
            data=draft_markdown(current),
            file_name="draft.md",
            mime="text/markdown",
            use_container_width=True,
            key="dl_draft",
        )


def _shot_field(controller: WorkflowController, shot: Shot, field_name: str, area: bool) -> None:
    label = t(controller.language, f"field.{field_name}")
    current = getattr(shot, field_name)
    widget = st.text_area if area else st.text_input
    value = widget(label, value=current, key=_key("shot", shot.id, field_name))
    if value != current:
        controller.update_field(shot.id, field_name, value)


def _storyboard_stage(controller: WorkflowController) -> None:
    lang = controller.language
    shots = controller.shots
    top = st.columns(3)
    if top[0].button(t(lang, "add_shot"), key="add_shot", use_container_width=True):
        controller.insert_shot()
        _rerun()
    if top[1].button(
        t(lang, "next_assets"),
        key="next_assets",
        type="primary",
        disabled=not shots,
        use_container_width=True,
    ):
        _act(controller, controller.advance(WorkflowStage.STORYBOARD))
    if shots:
        top[2].download_button(
            t(lang, "export"),
            data=shots_to_csv(shots),
            file_name="shot_list.csv",
            mime="text/csv",
            use_container_width=True,
            key="dl_shots",
        )

    if not shots:
        st.info(t(lang, "storyboard_empty"))
        return

    for shot in shots:
        with st.expander(f"#{shot.shot_number} {shot.shot_type} · {shot.scene_name}", expanded=True):
            cols = st.columns(4)
            for idx, (field_name, area) in enumerate(SHOT_CARD_FIELDS):
                if area:
                    continue
                with cols[idx % 4]:
                    _shot_field(controller, shot, field_name, area)
            characters = st.text_input(
                t(lang, "field.characters"),
                value=", ".join(shot.characters),
                key=_key("shot", shot.id, "characters"),
            )
            parsed = tuple(c.strip() for c in characters.split(",") if c.strip())
            if parsed != shot.characters:
                controller.update_field(shot.id, "characters", parsed)
            for field_name, area in SHOT_CARD_FIELDS:
                if area:
                    _shot_field(controller, shot, field_name, area)

            actions = st.columns(2)
            if actions[0].button(
                t(lang, "ai_polish"),
                key=f"polish_{shot.id}",
                disabled=controller.is_busy(shot.id),
                use_container_width=True,
            ):
                _act(controller, controller.regenerate_shot(shot.id))
            if actions[1].button(t(lang, "remove"), key=f"remove_{shot.id}", use_container_width=True):
                controller.remove_shot(shot.id)
                _rerun()


def _assets_stage(controller: WorkflowController) -> None:
    lang = controller.language
    top = st.columns(5)
    for idx, (asset_type, label) in enumerate(
        (
            (AssetType.CHARACTER, "add_character"),
            (AssetType.SCENE, "add_scene"),
            (AssetType.PROP, "add_prop"),
        )
    ):
        if top[idx].button(t(lang, label), key=f"add_{asset_type.value}", use_container_width=True):
            controller.add_asset(asset_type)
            _rerun()
    if top[3].button(t(lang, "extract_assets"), key="extract_assets", use_container_width=True):
        _act(controller, controller.extract_from_script())
    if top[4].button(t(lang, "next_images"), key="next_images", type="primary", use_container_width=True):
        _act(controller, controller.advance(WorkflowStage.ASSETS))

    assets = controller.assets.assets
    if not assets:
        st.info(t(lang, "assets_empty"))
        return

    for asset_type in AssetType:
        group = [a for a in assets if a.type is asset_type]
        if not group:
            continue
        st.markdown(f"### {asset_type.value.title()}")
        for asset in group:
            with st.container(border=True):
                for field_name in ("name", "description"):
                    current = getattr(asset, field_name)
                    value = st.text_input(
                        t(lang, f"field.{field_name}"),
                        value=current,
                        key=_key("asset", asset.id, field_name),
                    )
                    if value != current:
                        controller.update_asset(asset.id, field_name, value)
                prompt = st.text_area(
                    t(lang, "field.prompt"),
                    value=asset.prompt,
                    key=_key("asset", asset.id, "prompt"),
                )
                if prompt != asset.prompt:
                    controller.update_asset(asset.id, "prompt", prompt)

                busy = controller.is_busy(asset.id)
                actions = st.columns(3)
                if actions[0].button(
                    t(lang, "ai_optimize"), key=f"enhance_{asset.id}", disabled=busy, use_container_width=True
                ):
                    _act(controller, controller.enhance_prompt(asset.id))
                if actions[1].button(
                    t(lang, "translate"), key=f"translate_{asset.id}", disabled=busy, use_container_width=True
                ):
                    _act(controller, controller.translate_prompt(asset.id))
                if actions[2].button(
                    t(lang, "remove"), key=f"remove_asset_{asset.id}", use_container_width=True
                ):
                    controller.remove_asset(asset.id)
                    _rerun()


def _image_prompts_stage(controller: WorkflowController) -> None:
    lang = controller.language
    shots = controller.shots
    if not shots:
        st.info(t(lang, "images_empty"))
        return

    list_col, detail_col = st.columns([1, 3])
    with list_col:
        st.markdown(f"**{t(lang, 'shot_list')}**")
        for shot in shots:
            selected = controller.storyboard.selected_shot
            label = f"#{shot.shot_number} {shot.shot_type}" + (" *" if shot.is_stale else "")
            if st.button(
                label,
                key=f"select_{shot.id}",
                type="primary" if selected and selected.id == shot.id else "secondary",
                use_container_width=True,
            ):
                controller.select_shot(shot.id)
                _rerun()

    shot = controller.storyboard.selected_shot
    if shot is None:
        return
    busy = controller.is_busy(shot.id)
    with detail_col:
        st.markdown(f"#### #{shot.shot_number} {shot.action}")
        if shot.is_stale:
            st.warning(t(lang, "stale_hint"))
        _shot_field(controller, shot, "visual_prompt", True)

        actions = st.columns(3)
        if actions[0].button(t(lang, "synthesize"), key="synthesize", disabled=busy, use_container_width=True):
            _act(controller, controller.synthesize_visual_prompt(shot.id))
        if actions[1].button(
            t(lang, "translate"), key="translate_visual", disabled=busy, use_container_width=True
        ):
            _act(controller, controller.translate_field(shot.id, "visual_prompt"))
        if actions[2].button(
            t(lang, "preview"),
            key="render_preview",
            disabled=busy or not shot.visual_prompt.strip(),
            use_container_width=True,
        ):
            _act(controller, controller.render_preview(shot.id))

        refine_cols = st.columns([4, 1])
        note = refine_cols[0].text_input(
            t(lang, "refine"),
            key=_key("refine_note", shot.id),
            placeholder=t(lang, "refine_placeholder"),
            label_visibility="collapsed",
        )
        if refine_cols[1].button(t(lang, "refine"), key="refine", disabled=busy, use_container_width=True):
            _act(controller, controller.refine_visual_prompt(shot.id, note))

        preview = controller.previews.get(shot.id)
        if preview:
            st.image(preview, use_container_width=True)

    if st.button(t(lang, "next_video"), key="next_video", type="primary"):
        _act(controller, controller.advance(WorkflowStage.IMAGE_PROMPTS))


def _video_prompts_stage(controller: WorkflowController) -> None:
    lang = controller.language
    shots = controller.shots
    if not shots:
        st.info(t(lang, "video_empty"))
        return

    st.download_button(
        t(lang, "export"),
        data=prompt_sheet_markdown(shots),
        file_name="prompt_sheet.md",
        mime="text/markdown",
        key="dl_prompt_sheet",
    )
    for shot in shots:
        busy = controller.is_busy(shot.id)
        with st.container(border=True):
            st.markdown(f"**#{shot.shot_number} {shot.shot_type}** · {shot.duration}")
            preview = controller.previews.get(shot.id)
            if preview:
                st.image(preview, width=320)
            st.caption(shot.dialogue or t(lang, "no_dialogue"))
            if shot.dialogue.strip() and st.button(
                t(lang, "play_dialogue"), key=f"speak_{shot.id}", disabled=busy
            ):
                _act(controller, controller.speak_dialogue(shot.id))
            audio = controller.dialogue_audio.get(shot.id)
            if audio:
                st.audio(audio, format="audio/wav")

            for field_name in ("video_prompt", "transition_prompt"):
                _shot_field(controller, shot, field_name, True)
                if st.button(
                    t(lang, "translate"), key=f"translate_{field_name}_{shot.id}", disabled=busy
                ):
                    _act(controller, controller.translate_field(shot.id, field_name))


STAGE_VIEWS = {
    WorkflowStage.SCRIPT: _script_stage,
    WorkflowStage.STORYBOARD: _storyboard_stage,
    WorkflowStage.ASSETS: _assets_stage,
    WorkflowStage.IMAGE_PROMPTS: _image_prompts_stage,
    WorkflowStage.VIDEO_PROMPTS: _video_prompts_stage,
}


def main() -> None:
    st.set_page_config(
        page_title="CineAI Workbench",
        page_icon="",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    app = _get_app()
    controller = _get_controller()
    demo_mode = app["ai_client"].demo_mode

    _sidebar(controller, demo_mode)
    _show_notices()

    st.title(stage_label(controller.language, controller.current_stage))
    STAGE_VIEWS[controller.current_stage](controller)


if __name__ == "__main__":
    main()
