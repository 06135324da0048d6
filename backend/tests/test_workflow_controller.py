"""Controller behaviour: stage transitions, AI merges, busy rules and late results."""

import asyncio

import pytest

from conftest import shot_payload

from cineai_workbench.ai.generation import GenerationError
from cineai_workbench.workflow.errors import EntityBusyError, WorkflowBusyError
from cineai_workbench.workflow.models import AssetType, WorkflowStage

SCRIPT = "INT. KITCHEN - NIGHT\n\nMira cooks alone. The kettle screams."


def _storyboard(*actions):
    return {"shots": [shot_payload(action) for action in actions]}


def test_advance_from_script_replaces_storyboard_and_moves_stage(make_controller):
    controller, generation = make_controller(text=[_storyboard("A", "B", "C")])
    controller.update_content(SCRIPT)

    assert asyncio.run(controller.advance()) is True

    assert controller.current_stage is WorkflowStage.STORYBOARD
    assert [s.shot_number for s in controller.shots] == [1, 2, 3]
    assert [s.action for s in controller.shots] == ["A", "B", "C"]
    assert controller.storyboard.selected_id == controller.shots[0].id
    assert SCRIPT in generation.calls[0]["prompt"]
    assert generation.calls[0]["schema"].name == "storyboard"


def test_advance_failure_keeps_state_and_retry_succeeds(make_controller):
    controller, _ = make_controller(
        text=[GenerationError("boom"), _storyboard("Only shot")]
    )
    controller.update_content(SCRIPT)

    assert asyncio.run(controller.advance()) is False
    assert controller.current_stage is WorkflowStage.SCRIPT
    assert controller.shots == []
    assert not controller.busy
    assert controller.notices and "boom" in controller.notices[-1]

    assert asyncio.run(controller.advance()) is True
    assert controller.current_stage is WorkflowStage.STORYBOARD
    assert len(controller.shots) == 1


def test_advance_with_empty_result_does_not_transition(make_controller):
    controller, _ = make_controller(text=[{}])
    controller.update_content(SCRIPT)
    controller.insert_shot()

    assert asyncio.run(controller.advance()) is False
    assert controller.current_stage is WorkflowStage.SCRIPT
    assert len(controller.shots) == 1


def test_advance_with_empty_script_makes_no_call(make_controller):
    controller, generation = make_controller()
    assert asyncio.run(controller.advance()) is False
    assert generation.calls == []


def test_advance_from_assets_and_last_stage(make_controller):
    controller, generation = make_controller()
    assert asyncio.run(controller.advance(WorkflowStage.ASSETS)) is True
    assert controller.current_stage is WorkflowStage.IMAGE_PROMPTS
    assert asyncio.run(controller.advance(WorkflowStage.IMAGE_PROMPTS)) is True
    assert controller.current_stage is WorkflowStage.VIDEO_PROMPTS
    assert asyncio.run(controller.advance()) is False
    assert controller.current_stage is WorkflowStage.VIDEO_PROMPTS
    assert generation.calls == []


def test_set_stage_is_free_navigation(make_controller):
    controller, _ = make_controller()
    controller.set_stage(WorkflowStage.VIDEO_PROMPTS)
    assert controller.current_stage is WorkflowStage.VIDEO_PROMPTS
    controller.set_stage("SCRIPT")
    assert controller.current_stage is WorkflowStage.SCRIPT


def test_second_advance_while_first_in_flight_is_rejected(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, generation = make_controller(text=[_storyboard("A")], gate=gate)
        controller.update_content(SCRIPT)
        first = asyncio.create_task(controller.advance())
        await asyncio.sleep(0)
        assert controller.busy
        with pytest.raises(WorkflowBusyError):
            await controller.advance()
        gate.set()
        assert await first is True
        assert not controller.busy
        assert len(generation.calls) == 1

    asyncio.run(scenario())


def test_regenerate_merges_only_returned_fields(make_controller):
    controller, _ = make_controller(text=[{"shotType": "ECU", "lighting": "Hard rim light"}])
    shot = controller.insert_shot()
    controller.update_field(shot.id, "dialogue", "Hello")

    assert asyncio.run(controller.regenerate_shot(shot.id)) is True

    updated = controller.storyboard.get(shot.id)
    assert updated.shot_type == "ECU"
    assert updated.lighting == "Hard rim light"
    assert updated.dialogue == "Hello"
    assert updated.composition == shot.composition
    assert updated.shot_number == 1
    assert updated.id == shot.id


def test_regenerate_ignores_keys_outside_the_patch(make_controller):
    controller, _ = make_controller(text=[{"dialogue": "Injected", "shotNumber": 9}])
    shot = controller.insert_shot()

    assert asyncio.run(controller.regenerate_shot(shot.id)) is False
    assert controller.storyboard.get(shot.id) == shot


def test_regenerate_keeps_fields_returned_as_null(make_controller):
    controller, _ = make_controller(
        text=[{"lighting": None, "shotType": "ECU"}, {"lighting": None}]
    )
    shot = controller.insert_shot()

    assert asyncio.run(controller.regenerate_shot(shot.id)) is True
    updated = controller.storyboard.get(shot.id)
    assert updated.shot_type == "ECU"
    assert updated.lighting == shot.lighting

    assert asyncio.run(controller.regenerate_shot(shot.id)) is False
    assert controller.storyboard.get(shot.id) == updated
    assert controller.notices


def test_extract_from_script_replaces_previous_results(make_controller):
    first = {"assets": [{"name": "Mira", "type": "character", "description": "", "prompt": "p"}]}
    second = {
        "assets": [
            {"name": "Kitchen", "type": "scene", "description": "", "prompt": "q"},
            {"name": "Kettle", "type": "prop", "description": "", "prompt": "r"},
            {"name": "Ghost", "type": "creature", "description": "", "prompt": "s"},
        ]
    }
    controller, _ = make_controller(text=[first, second])
    controller.update_content(SCRIPT)
    manual = controller.add_asset(AssetType.PROP)

    assert asyncio.run(controller.extract_from_script()) is True
    assert [a.name for a in controller.assets.assets] == ["Mira"]
    assert controller.assets.get(manual.id) is None

    assert asyncio.run(controller.extract_from_script()) is True
    assets = controller.assets.assets
    assert [a.name for a in assets] == ["Kitchen", "Kettle"]
    assert [a.type for a in assets] == [AssetType.SCENE, AssetType.PROP]


def test_advance_from_storyboard_extracts_assets(make_controller):
    controller, _ = make_controller(
        text=[{"assets": [{"name": "Mira", "type": "character", "description": "", "prompt": ""}]}]
    )
    controller.update_content(SCRIPT)
    assert asyncio.run(controller.advance(WorkflowStage.STORYBOARD)) is True
    assert controller.current_stage is WorkflowStage.ASSETS
    assert len(controller.assets) == 1


def test_extract_with_no_usable_assets_keeps_library(make_controller):
    mira = {"assets": [{"name": "Mira", "type": "character", "description": "", "prompt": "p"}]}
    unusable = {"assets": [{"name": "Ghost", "type": "creature"}, "not an asset"]}
    controller, _ = make_controller(text=[mira, unusable])
    controller.update_content(SCRIPT)

    assert asyncio.run(controller.extract_from_script()) is True
    notices = len(controller.notices)
    assert asyncio.run(controller.extract_from_script()) is False
    assert [a.name for a in controller.assets.assets] == ["Mira"]
    assert len(controller.notices) == notices + 1


def test_advance_from_storyboard_without_usable_assets_stays(make_controller):
    controller, _ = make_controller(text=[{"assets": [{"name": "Ghost", "type": "creature"}]}])
    controller.update_content(SCRIPT)
    controller.set_stage(WorkflowStage.STORYBOARD)

    assert asyncio.run(controller.advance()) is False
    assert controller.current_stage is WorkflowStage.STORYBOARD
    assert len(controller.assets) == 0


def test_end_to_end_storyboard_delete_renumbers(make_controller):
    controller, _ = make_controller(text=[_storyboard("One", "Two", "Three")])
    controller.update_content(SCRIPT)
    asyncio.run(controller.advance())

    second = controller.shots[1]
    assert controller.remove_shot(second.id) is True

    assert [s.shot_number for s in controller.shots] == [1, 2]
    assert [s.action for s in controller.shots] == ["One", "Three"]


def test_removing_selected_shot_moves_selection(make_controller):
    controller, _ = make_controller()
    first = controller.insert_shot()
    second = controller.insert_shot(select=True)
    assert controller.storyboard.selected_id == second.id

    controller.remove_shot(second.id)
    assert controller.storyboard.selected_id == first.id

    controller.remove_shot(first.id)
    assert controller.storyboard.selected_id is None
    assert controller.storyboard.selected_shot is None


def test_busy_shot_rejects_second_action_and_drops_late_result(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, _ = make_controller(text=["a detailed prompt"], gate=gate)
        shot = controller.insert_shot()
        pending = asyncio.create_task(controller.synthesize_visual_prompt(shot.id))
        await asyncio.sleep(0)
        assert controller.is_busy(shot.id)
        with pytest.raises(EntityBusyError) as excinfo:
            await controller.regenerate_shot(shot.id)
        assert excinfo.value.entity_id == shot.id

        controller.remove_shot(shot.id)
        gate.set()
        assert await pending is False
        assert controller.shots == []
        assert not controller.is_busy(shot.id)

    asyncio.run(scenario())


def test_late_preview_for_removed_shot_is_dropped(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, _ = make_controller(images=[b"png"], gate=gate)
        shot = controller.insert_shot()
        controller.update_field(shot.id, "visual_prompt", "wide shot")
        pending = asyncio.create_task(controller.render_preview(shot.id))
        await asyncio.sleep(0)
        controller.remove_shot(shot.id)
        gate.set()
        assert await pending is False
        assert controller.previews == {}

    asyncio.run(scenario())


def test_actions_on_different_shots_run_independently(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, _ = make_controller(text=["first", "second"], gate=gate)
        a = controller.insert_shot()
        b = controller.insert_shot()
        tasks = [
            asyncio.create_task(controller.synthesize_visual_prompt(a.id)),
            asyncio.create_task(controller.synthesize_visual_prompt(b.id)),
        ]
        await asyncio.sleep(0)
        gate.set()
        assert await asyncio.gather(*tasks) == [True, True]
        assert controller.storyboard.get(a.id).visual_prompt == "first"
        assert controller.storyboard.get(b.id).visual_prompt == "second"

    asyncio.run(scenario())


def test_synthesize_clears_stale_and_source_edit_marks_it(make_controller):
    controller, generation = make_controller(text=["prompt v1", "prompt v2"])
    controller.add_asset(AssetType.CHARACTER)
    shot = controller.insert_shot()

    asyncio.run(controller.synthesize_visual_prompt(shot.id))
    assert controller.storyboard.get(shot.id).visual_prompt == "prompt v1"
    assert "Asset library" in generation.calls[0]["prompt"]

    controller.update_field(shot.id, "lighting", "Neon")
    assert controller.storyboard.get(shot.id).is_stale is True

    asyncio.run(controller.synthesize_visual_prompt(shot.id))
    updated = controller.storyboard.get(shot.id)
    assert updated.visual_prompt == "prompt v2"
    assert updated.is_stale is False


def test_refine_requires_note_and_replaces_prompt(make_controller):
    controller, generation = make_controller(text=["refined"])
    shot = controller.insert_shot()
    controller.update_field(shot.id, "visual_prompt", "base")

    assert asyncio.run(controller.refine_visual_prompt(shot.id, "   ")) is False
    assert generation.calls == []

    assert asyncio.run(controller.refine_visual_prompt(shot.id, "retro filter")) is True
    assert controller.storyboard.get(shot.id).visual_prompt == "refined"
    assert "retro filter" in generation.calls[0]["prompt"]
    assert "base" in generation.calls[0]["prompt"]


def test_translate_field_picks_direction_and_skips_empty(make_controller):
    controller, generation = make_controller(text=["A rainy street", "雨夜街道"])
    shot = controller.insert_shot()

    assert asyncio.run(controller.translate_field(shot.id, "video_prompt")) is False
    assert generation.calls == []

    controller.update_field(shot.id, "video_prompt", "雨夜的街道")
    assert asyncio.run(controller.translate_field(shot.id, "video_prompt")) is True
    assert "English" in generation.calls[0]["prompt"]
    assert controller.storyboard.get(shot.id).video_prompt == "A rainy street"

    controller.update_field(shot.id, "transition_prompt", "Rain street")
    asyncio.run(controller.translate_field(shot.id, "transition_prompt"))
    assert "Chinese" in generation.calls[1]["prompt"]


def test_translate_field_rejects_non_prompt_fields(make_controller):
    controller, _ = make_controller()
    shot = controller.insert_shot()
    with pytest.raises(ValueError):
        asyncio.run(controller.translate_field(shot.id, "action"))


def test_translate_preserves_stale_flag(make_controller):
    controller, _ = make_controller(text=["提示词"])
    shot = controller.insert_shot()
    controller.update_field(shot.id, "visual_prompt", "a prompt")
    controller.update_field(shot.id, "action", "Something new")
    assert controller.storyboard.get(shot.id).is_stale

    asyncio.run(controller.translate_field(shot.id, "visual_prompt"))
    updated = controller.storyboard.get(shot.id)
    assert updated.visual_prompt == "提示词"
    assert updated.is_stale is True


def test_render_preview_and_speech_fill_side_maps(make_controller):
    controller, generation = make_controller(images=[b"img"], speech=[b"wav"])
    shot = controller.insert_shot()

    assert asyncio.run(controller.render_preview(shot.id)) is False
    assert asyncio.run(controller.speak_dialogue(shot.id)) is False
    assert generation.calls == []

    controller.update_field(shot.id, "visual_prompt", "night market")
    controller.update_field(shot.id, "dialogue", "Keep moving.")
    assert asyncio.run(controller.render_preview(shot.id)) is True
    assert asyncio.run(controller.speak_dialogue(shot.id)) is True

    assert controller.previews[shot.id] == b"img"
    assert controller.dialogue_audio[shot.id] == b"wav"
    assert generation.calls[0]["prompt"].endswith("night market")
    assert generation.calls[0]["aspect_ratio"] == "16:9"

    controller.remove_shot(shot.id)
    assert shot.id not in controller.previews
    assert shot.id not in controller.dialogue_audio


def test_asset_ai_actions_replace_prompt(make_controller):
    controller, generation = make_controller(text=["enhanced prompt", "增强提示词"])
    asset = controller.add_asset("character")
    controller.update_asset(asset.id, "prompt", "a tired chef")

    assert asyncio.run(controller.enhance_prompt(asset.id)) is True
    assert controller.assets.get(asset.id).prompt == "enhanced prompt"
    assert "character" in generation.calls[0]["prompt"]

    assert asyncio.run(controller.translate_prompt(asset.id)) is True
    assert controller.assets.get(asset.id).prompt == "增强提示词"


def test_update_field_characters_from_a_single_name(make_controller):
    controller, _ = make_controller()
    shot = controller.insert_shot()
    assert controller.update_field(shot.id, "characters", "Mira") is True
    assert controller.storyboard.get(shot.id).characters == ("Mira",)
    controller.update_field(shot.id, "characters", ["Mira", " ", "Jun"])
    assert controller.storyboard.get(shot.id).characters == ("Mira", "Jun")


def test_busy_asset_rejects_second_action_and_drops_late_result(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, _ = make_controller(text=["enhanced"], gate=gate)
        asset = controller.add_asset(AssetType.CHARACTER)
        controller.update_asset(asset.id, "prompt", "a tired chef")
        pending = asyncio.create_task(controller.enhance_prompt(asset.id))
        await asyncio.sleep(0)
        assert controller.is_busy(asset.id)
        with pytest.raises(EntityBusyError) as excinfo:
            await controller.translate_prompt(asset.id)
        assert excinfo.value.entity_id == asset.id

        controller.remove_asset(asset.id)
        gate.set()
        assert await pending is False
        assert controller.assets.get(asset.id) is None
        assert len(controller.assets) == 0
        assert not controller.is_busy(asset.id)

    asyncio.run(scenario())


def test_late_translation_for_removed_asset_is_dropped(make_controller):
    async def scenario():
        gate = asyncio.Event()
        controller, _ = make_controller(text=["疲惫的厨师"], gate=gate)
        asset = controller.add_asset(AssetType.CHARACTER)
        controller.update_asset(asset.id, "prompt", "a tired chef")
        pending = asyncio.create_task(controller.translate_prompt(asset.id))
        await asyncio.sleep(0)
        controller.remove_asset(asset.id)
        gate.set()
        assert await pending is False
        assert controller.assets.assets == []

    asyncio.run(scenario())


def test_translate_prompt_skips_empty_prompt(make_controller):
    controller, generation = make_controller()
    asset = controller.add_asset(AssetType.PROP)
    controller.update_asset(asset.id, "prompt", "   ")
    assert asyncio.run(controller.translate_prompt(asset.id)) is False
    assert generation.calls == []
    assert controller.assets.get(asset.id).prompt == "   "


def test_unknown_ids_are_ignored(make_controller):
    controller, generation = make_controller()
    assert controller.update_field("missing", "action", "x") is False
    assert controller.remove_shot("missing") is False
    assert controller.select_shot("missing") is False
    assert controller.update_asset("missing", "name", "x") is False
    assert asyncio.run(controller.regenerate_shot("missing")) is False
    assert asyncio.run(controller.enhance_prompt("missing")) is False
    assert generation.calls == []


def test_chat_updates_history_and_replaces_draft_with_script(make_controller):
    reply = "INT. ROOF - DAY\n\nMira looks out over the city."
    controller, generation = make_controller(text=["Which genre?", reply])

    assert asyncio.run(controller.chat_script("A chef story")) is True
    assert controller.current_draft.content == ""
    assert [turn.role for turn in controller.chat_history] == ["user", "model"]

    assert asyncio.run(controller.chat_script("Drama")) is True
    assert controller.current_draft.content == reply
    assert generation.calls[1]["history"] == [
        {"role": "user", "text": "A chef story"},
        {"role": "model", "text": "Which genre?"},
    ]


def test_chat_failure_leaves_history_untouched(make_controller):
    controller, _ = make_controller(text=[GenerationError("offline")])
    assert asyncio.run(controller.chat_script("Hello")) is False
    assert controller.chat_history == []
    assert controller.notices


def test_drafts_are_independent(make_controller):
    controller, _ = make_controller()
    first = controller.current_draft
    controller.update_content("first text")
    second = controller.create_draft()
    assert controller.current_draft.id == first.id

    assert controller.select_draft(second.id) is True
    controller.update_content("second text")
    assert controller.select_draft("missing") is False

    contents = {d.id: d.content for d in controller.script.drafts}
    assert contents == {first.id: "first text", second.id: "second text"}
    assert second.title == "Draft 2"


def test_listeners_receive_events_and_failures_are_contained(make_controller):
    controller, _ = make_controller()
    seen = []

    def _boom(_event):
        raise RuntimeError("listener bug")

    controller.subscribe(_boom)
    unsubscribe = controller.subscribe(lambda event: seen.append(event.kind))

    shot = controller.insert_shot()
    controller.toggle_language()
    unsubscribe()
    controller.remove_shot(shot.id)

    assert seen == ["storyboard", "language"]
    assert controller.shots == []
