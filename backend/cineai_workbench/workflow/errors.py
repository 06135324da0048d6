"""Workflow exceptions."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for rejected workflow actions."""


class WorkflowBusyError(WorkflowError):
    """A stage advance is already in flight."""


class EntityBusyError(WorkflowError):
    """An AI action on this shot, asset or script is already in flight."""

    def __init__(self, entity_id: str):
        super().__init__(f"An AI action is already running for {entity_id}")
        self.entity_id = entity_id
