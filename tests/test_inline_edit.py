import json
import unittest

import pytest

from models.idea import IDEAS_TABLE
from models.milestone import MILESTONES_TABLE
from models.task import TASKS_TABLE
from models.user import User
from services.edit_service import (
    EDIT_SESSION_KEY,
    EditOutcome,
    EditSession,
    apply_edit,
    resolve_draft,
)
from tests.utils.store import FakeRecordStore


@pytest.mark.parametrize(
    "draft, allow_delete, expected",
    [
        ("   ", True, (EditOutcome.REVERT, "")),
        (None, True, (EditOutcome.REVERT, "")),
        (" XXX ", True, (EditOutcome.DELETE, "")),
        ("xxx", False, (EditOutcome.SAVE, "xxx")),
        ("  Renamed ", True, (EditOutcome.SAVE, "Renamed")),
    ],
)
def test_resolve_draft(draft, allow_delete, expected):
    assert resolve_draft(draft, allow_delete=allow_delete) == expected


def test_edit_outcome_serializes_as_text():
    assert json.dumps({"outcome": EditOutcome.REVERT}) == '{"outcome": "revert"}'
    assert EditOutcome.DELETE == "delete"


class EditSessionTestCase(unittest.TestCase):
    def setUp(self):
        self.session = {}
        self.edits = EditSession(self.session)

    def test_only_one_slot_per_session(self):
        self.edits.begin("task", "rec1", "name", "Old")
        self.edits.begin("idea", "idea-1", "title", "Idea")

        current = self.edits.current()
        self.assertEqual((current.kind, current.record_id, current.field), ("idea", "idea-1", "title"))
        self.assertEqual(len([key for key in self.session if key == EDIT_SESSION_KEY]), 1)

    def test_cancel_clears_slot(self):
        self.edits.begin("task", "rec1", "notes")

        cancelled = self.edits.cancel()

        self.assertEqual(cancelled.record_id, "rec1")
        self.assertIsNone(self.edits.current())

    def test_commit_without_slot_fails(self):
        with self.assertRaises(LookupError):
            self.edits.commit("value")

    def test_commit_for_other_record_keeps_slot(self):
        self.edits.begin("task", "rec1", "name")

        with self.assertRaises(ValueError):
            self.edits.commit("value", record_id="rec2")
        self.assertIsNotNone(self.edits.current())

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError):
            self.edits.begin("milestone", "rec1", "notes")


class ApplyEditTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeRecordStore()
        self.user = User(id="recUser", user_id="user-1")
        self.session = {}
        self.edits = EditSession(self.session)
        self.store.add(
            IDEAS_TABLE,
            {"IdeaID": "idea-1", "IdeaTitle": "Idea", "UserID": "user-1", "Order": 1},
            record_id="recIdea",
        )
        self.store.add(
            TASKS_TABLE,
            {"TaskName": "Task", "IdeaID": "idea-1", "UserID": "user-1", "Order": 1},
            record_id="recTask",
        )
        self.store.add(
            MILESTONES_TABLE,
            {"MilestoneName": "Beta", "UserID": "user-1"},
            record_id="recMilestone",
        )

    def commit(self, kind, record_id, field, draft):
        self.edits.begin(kind, record_id, field)
        slot, outcome, value = self.edits.commit(draft)
        return outcome, apply_edit(self.store, self.user, slot, outcome, value)

    def test_sentinel_deletes_task(self):
        outcome, record = self.commit("task", "recTask", "name", "xxx")

        self.assertIs(outcome, EditOutcome.DELETE)
        self.assertIsNone(record)
        self.assertEqual(self.store.delete_calls, [(TASKS_TABLE, "recTask")])

    def test_sentinel_deletes_idea(self):
        outcome, _record = self.commit("idea", "idea-1", "title", "XXX")

        self.assertIs(outcome, EditOutcome.DELETE)
        self.assertNotIn("recIdea", self.store.tables[IDEAS_TABLE])

    def test_empty_draft_reverts_without_writing(self):
        outcome, record = self.commit("task", "recTask", "name", "   ")

        self.assertIs(outcome, EditOutcome.REVERT)
        self.assertEqual(record.name, "Task")
        self.assertEqual(self.store.update_calls, [])

    def test_sentinel_is_saved_as_text_for_summary(self):
        outcome, record = self.commit("idea", "idea-1", "summary", "xxx")

        self.assertIs(outcome, EditOutcome.SAVE)
        self.assertEqual(record.summary, "xxx")
        self.assertEqual(self.store.fields(IDEAS_TABLE, "recIdea")["IdeaSummary"], "xxx")

    def test_milestone_rename(self):
        outcome, record = self.commit("milestone", "recMilestone", "name", " Launch ")

        self.assertIs(outcome, EditOutcome.SAVE)
        self.assertEqual(record.name, "Launch")
        self.assertEqual(self.store.fields(MILESTONES_TABLE, "recMilestone")["MilestoneName"], "Launch")
