"""Inline editing of a single field at a time.

A login session holds at most one edit slot. Beginning an edit replaces the
slot, committing or cancelling clears it. A committed draft is trimmed: an
empty draft reverts, the delete sentinel removes the idea or task, anything
else is saved.
"""

from __future__ import annotations

from enum import StrEnum
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional, Tuple

from models.user import User
from services import idea_service, milestone_service, task_service
from services.record_store import RecordStoreClient

EDIT_SESSION_KEY = "editing"
DELETE_SENTINEL = "xxx"

# (kind, field) -> whether the delete sentinel applies
EDITABLE_FIELDS = {
    ("idea", "title"): True,
    ("idea", "summary"): False,
    ("task", "name"): True,
    ("task", "notes"): False,
    ("milestone", "name"): False,
}


class EditOutcome(StrEnum):
    REVERT = "revert"
    DELETE = "delete"
    SAVE = "save"


@dataclass
class EditSlot:
    kind: str
    record_id: str
    field: str
    original: str = ""

    @property
    def allows_delete(self) -> bool:
        return EDITABLE_FIELDS[(self.kind, self.field)]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "record_id": self.record_id,
            "field": self.field,
            "original": self.original,
        }


def resolve_draft(draft: Any, *, allow_delete: bool = True) -> Tuple[EditOutcome, str]:
    value = str(draft).strip() if draft is not None else ""
    if not value:
        return EditOutcome.REVERT, ""
    if allow_delete and value.lower() == DELETE_SENTINEL:
        return EditOutcome.DELETE, ""
    return EditOutcome.SAVE, value


class EditSession:
    """The edit slot kept in a session mapping."""

    def __init__(self, session: MutableMapping):
        self.session = session

    def current(self) -> Optional[EditSlot]:
        data = self.session.get(EDIT_SESSION_KEY)
        if not data:
            return None
        return EditSlot(**data)

    def begin(self, kind: str, record_id: str, field: str, original: Any = "") -> EditSlot:
        if (kind, field) not in EDITABLE_FIELDS:
            raise ValueError(f"The {kind} field '{field}' cannot be edited inline.")
        if not record_id:
            raise ValueError("A record id is required to begin editing.")
        slot = EditSlot(kind=kind, record_id=record_id, field=field, original=str(original or ""))
        self.session[EDIT_SESSION_KEY] = slot.to_dict()
        return slot

    def cancel(self) -> Optional[EditSlot]:
        slot = self.current()
        self.session.pop(EDIT_SESSION_KEY, None)
        return slot

    def commit(self, draft: Optional[str], *, record_id: Optional[str] = None) -> Tuple[EditSlot, EditOutcome, str]:
        slot = self.current()
        if slot is None:
            raise LookupError("No field is being edited.")
        if record_id and record_id != slot.record_id:
            raise ValueError("Another field is being edited.")
        self.session.pop(EDIT_SESSION_KEY, None)
        outcome, value = resolve_draft(draft, allow_delete=slot.allows_delete)
        return slot, outcome, value


def apply_edit(
    client: RecordStoreClient,
    user: User,
    slot: EditSlot,
    outcome: EditOutcome,
    value: str,
) -> Optional[Any]:
    """Persist a committed edit; returns the updated record or None when removed."""
    if slot.kind == "idea":
        idea = idea_service.get_idea(client, user, slot.record_id)
        if outcome is EditOutcome.REVERT:
            return idea
        if outcome is EditOutcome.DELETE:
            idea_service.delete_idea(client, idea)
            return None
        if slot.field == "title":
            return idea_service.rename_idea(client, idea, value)
        return idea_service.update_idea_summary(client, idea, value)

    if slot.kind == "task":
        task = task_service.get_task(client, user, slot.record_id)
        if outcome is EditOutcome.REVERT:
            return task
        if outcome is EditOutcome.DELETE:
            siblings = task_service.list_tasks_for_idea(client, user, task.idea_id)
            task_service.delete_task(client, task, siblings)
            return None
        if slot.field == "name":
            return task_service.rename_task(client, task, value)
        return task_service.update_task_notes(client, task, value)

    milestone = milestone_service.get_milestone(client, user, slot.record_id)
    if outcome is EditOutcome.REVERT:
        return milestone
    return milestone_service.rename_milestone(client, milestone, value)
