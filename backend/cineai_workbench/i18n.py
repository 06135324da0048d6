"""Static string tables for the two supported UI locales."""

from __future__ import annotations

from typing import Dict

from .workflow.models import AssetType, Language, WorkflowStage

STRINGS: Dict[Language, Dict[str, str]] = {
    Language.ZH: {
        "app_title": "CineAI 工作台",
        "processing": "处理中...",
        "language_toggle": "切换语言",
        "stage.SCRIPT": "剧本创作",
        "stage.STORYBOARD": "分镜脚本",
        "stage.ASSETS": "角色资产",
        "stage.IMAGE_PROMPTS": "分镜出图",
        "stage.VIDEO_PROMPTS": "视频制作",
        "initial_draft": "初始剧本",
        "draft_title": "剧本草稿 {n}",
        "drafts": "剧本版本库",
        "new_draft": "开个新剧本",
        "sync_storyboard": "同步生成分镜",
        "chat": "给 AI 下指令 (或回答 AI 的提问)",
        "chat_placeholder": "例如：'帮我把结局改成悲剧' 或 '第一场戏增加一个角色'",
        "chat_send": "发送",
        "sync_hint": "AI 生成的剧本会自动更新至此处",
        "script_empty": "等待剧本生成...",
        "script_editor": "剧本内容",
        "add_shot": "添加分镜",
        "remove": "删除",
        "next_assets": "下一步：提取资产库",
        "ai_polish": "AI 润色",
        "storyboard_empty": "暂无分镜，请从剧本同步或手动添加",
        "add_character": "添加角色",
        "add_scene": "添加场景",
        "add_prop": "添加道具",
        "extract_assets": "从剧本提取资产",
        "next_images": "确认资产并进入出图",
        "assets_empty": "暂无资产，请从上方按钮添加或从剧本同步",
        "ai_optimize": "AI 优化",
        "translate": "翻译",
        "shot_list": "镜头列表",
        "synthesize": "智能合成/重置",
        "refine_placeholder": "根据当前提示词进行局部修饰 (例如: '改成复古港风滤镜')",
        "refine": "修饰",
        "preview": "渲染当前提示词画面",
        "next_video": "下一步：视频动态规格",
        "images_empty": "暂无分镜数据。",
        "video_empty": "暂无分镜数据。",
        "no_dialogue": "（本镜头无对白）",
        "play_dialogue": "生成配音",
        "stale_hint": "分镜参数已修改，提示词可能已过期",
        "export": "导出",
        "notice.generation_failed": "生成失败，请重试：{error}",
        "notice.nothing_generated": "模型未返回内容",
        "notice.chat_failed": "抱歉，出了一点小问题，请重试。",
        "field.action": "动作描述",
        "field.dialogue": "对白与环境音",
        "field.shot_type": "景别",
        "field.duration": "时长",
        "field.scene_name": "场景",
        "field.location": "地点",
        "field.characters": "角色",
        "field.props": "道具",
        "field.atmosphere": "氛围",
        "field.sound_effect": "音效",
        "field.composition": "构图",
        "field.lighting": "灯光",
        "field.camera_movement": "运动",
        "field.visual_prompt": "电影级绘图提示词",
        "field.video_prompt": "视频运动提示词",
        "field.transition_prompt": "自然过渡提示词",
        "field.name": "名称",
        "field.description": "描述",
        "field.prompt": "提示词",
    },
    Language.EN: {
        "app_title": "CineAI Workbench",
        "processing": "Processing...",
        "language_toggle": "Switch language",
        "stage.SCRIPT": "Script",
        "stage.STORYBOARD": "Storyboard",
        "stage.ASSETS": "Assets",
        "stage.IMAGE_PROMPTS": "Image Concept",
        "stage.VIDEO_PROMPTS": "Video Prod",
        "initial_draft": "Initial Draft",
        "draft_title": "Draft {n}",
        "drafts": "Draft Library",
        "new_draft": "New Script",
        "sync_storyboard": "Sync Storyboard",
        "chat": "AI Instructions / Answers",
        "chat_placeholder": "e.g., 'Make the ending more tragic'",
        "chat_send": "Send",
        "sync_hint": "AI generated content will sync here",
        "script_empty": "Waiting for a script...",
        "script_editor": "Script",
        "add_shot": "Add Shot",
        "remove": "Remove",
        "next_assets": "Next: Extract Assets",
        "ai_polish": "AI Polish",
        "storyboard_empty": "No shots yet. Sync from the script or add one.",
        "add_character": "Add Character",
        "add_scene": "Add Scene",
        "add_prop": "Add Prop",
        "extract_assets": "Extract from Script",
        "next_images": "Confirm Assets",
        "assets_empty": "No assets yet. Add one above or sync from the script.",
        "ai_optimize": "AI Enhance",
        "translate": "Translate",
        "shot_list": "Shot List",
        "synthesize": "Synthesize / Reset",
        "refine_placeholder": "Refine the current prompt (e.g. 'retro Hong Kong film look')",
        "refine": "Refine",
        "preview": "Render Preview",
        "next_video": "Next: Video Specs",
        "images_empty": "No storyboard data yet.",
        "video_empty": "No storyboard data yet.",
        "no_dialogue": "(No dialogue in this shot)",
        "play_dialogue": "Voice Dialogue",
        "stale_hint": "Shot settings changed; the prompt may be outdated",
        "export": "Export",
        "notice.generation_failed": "Generation failed, please retry: {error}",
        "notice.nothing_generated": "The model returned nothing",
        "notice.chat_failed": "Sorry, something went wrong. Please retry.",
        "field.action": "Action",
        "field.dialogue": "Dialogue & Sound",
        "field.shot_type": "Shot Type",
        "field.duration": "Duration",
        "field.scene_name": "Scene",
        "field.location": "Location",
        "field.characters": "Characters",
        "field.props": "Props",
        "field.atmosphere": "Atmosphere",
        "field.sound_effect": "Sound Effect",
        "field.composition": "Composition",
        "field.lighting": "Lighting",
        "field.camera_movement": "Movement",
        "field.visual_prompt": "Cinematic Image Prompt",
        "field.video_prompt": "Video Motion Prompt",
        "field.transition_prompt": "Transition Prompt",
        "field.name": "Name",
        "field.description": "Description",
        "field.prompt": "Prompt",
    },
}

SHOT_DEFAULTS: Dict[Language, Dict[str, str]] = {
    Language.ZH: {
        "shot_type": "MCU",
        "duration": "2s",
        "scene_name": "新场景",
        "location": "室内",
        "composition": "中央构图",
        "action": "新镜头动作描述...",
        "lighting": "自然光",
        "camera_movement": "静态",
        "atmosphere": "写实",
    },
    Language.EN: {
        "shot_type": "MCU",
        "duration": "2s",
        "scene_name": "New Scene",
        "location": "Interior",
        "composition": "Centered",
        "action": "Describe the new shot...",
        "lighting": "Natural light",
        "camera_movement": "Static",
        "atmosphere": "Realistic",
    },
}

ASSET_DEFAULT_NAMES: Dict[Language, Dict[AssetType, str]] = {
    Language.ZH: {
        AssetType.CHARACTER: "新角色",
        AssetType.SCENE: "新场景",
        AssetType.PROP: "新道具",
    },
    Language.EN: {
        AssetType.CHARACTER: "New Character",
        AssetType.SCENE: "New Scene",
        AssetType.PROP: "New Prop",
    },
}


def t(language: Language, key: str, **params: object) -> str:
    text = STRINGS[language].get(key, key)
    return text.format(**params) if params else text


def stage_label(language: Language, stage: WorkflowStage) -> str:
    return t(language, f"stage.{stage.value}")
