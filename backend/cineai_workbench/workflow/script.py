"""Script drafts: a library of versions with one active draft."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

from ..i18n import t
from .models import Language, ScriptDraft, new_id

logger = logging.getLogger(__name__)


class Script:
    """Draft library. Never empty; the current draft always resolves."""

    def __init__(self, language: Language = Language.ZH):
        first = ScriptDraft(id=new_id(), title=t(language, "initial_draft"))
        self._drafts: List[ScriptDraft] = [first]
        self.current_draft_id = first.id

    @property
    def drafts(self) -> List[ScriptDraft]:
        return list(self._drafts)

    @property
    def current_draft(self) -> ScriptDraft:
        for draft in self._drafts:
            if draft.id == self.current_draft_id:
                return draft
        return self._drafts[0]

    def has_draft(self, draft_id: str) -> bool:
        return any(draft.id == draft_id for draft in self._drafts)

    def select_draft(self, draft_id: str) -> bool:
        if not self.has_draft(draft_id):
            logger.debug("Ignoring selection of unknown draft %s", draft_id)
            return False
        self.current_draft_id = draft_id
        return True

    def update_content(self, text: str, draft_id: str | None = None) -> bool:
        """Replace one draft's content (the current one by default); others are untouched."""
        target_id = draft_id or self.current_draft.id
        if not self.has_draft(target_id):
            logger.debug("Ignoring content update for unknown draft %s", target_id)
            return False
        self._drafts = [replace(d, content=text) if d.id == target_id else d for d in self._drafts]
        return True

    def create_draft(self, language: Language = Language.ZH) -> ScriptDraft:
        """Append an empty draft. The current selection does not change."""
        draft = ScriptDraft(
            id=new_id(),
            title=t(language, "draft_title", n=len(self._drafts) + 1),
        )
        self._drafts.append(draft)
        return draft
