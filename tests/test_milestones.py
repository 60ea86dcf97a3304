import unittest
from datetime import datetime, timedelta, timezone

from models.idea import IDEAS_TABLE, Idea
from models.milestone import MILESTONES_TABLE, Milestone
from models.task import TASKS_TABLE, Task
from models.user import User
from services import milestone_service
from tests.utils.store import FakeRecordStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class MilestoneServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeRecordStore()
        self.user = User(id="recUser", user_id="user-1")

    def test_list_sorts_by_target_time_with_undated_last(self):
        self.store.add(MILESTONES_TABLE, {"MilestoneName": "Someday", "UserID": "user-1"})
        self.store.add(
            MILESTONES_TABLE,
            {"MilestoneName": "Later", "MilestoneTime": "2024-09-01T00:00:00.000Z", "UserID": "user-1"},
        )
        self.store.add(
            MILESTONES_TABLE,
            {"MilestoneName": "Soon", "MilestoneTime": "2024-07-01T00:00:00.000Z", "UserID": "user-1"},
        )
        self.store.add(MILESTONES_TABLE, {"MilestoneName": "Not mine", "UserID": "user-2"})

        names = [item.name for item in milestone_service.list_milestones(self.store, self.user)]

        self.assertEqual(names, ["Soon", "Later", "Someday"])

    def test_create_and_update_details(self):
        milestone = milestone_service.create_milestone(
            self.store, self.user, " Beta ", target_time=NOW, notes="Ship it"
        )
        self.assertEqual(milestone.name, "Beta")
        self.assertEqual(self.store.fields(MILESTONES_TABLE, milestone.id)["MilestoneTime"], "2024-06-01T12:00:00.000Z")

        milestone_service.update_milestone_details(self.store, milestone, clear_target_time=True, notes="")

        self.assertIsNone(milestone.target_time)
        self.assertNotIn("MilestoneTime", self.store.fields(MILESTONES_TABLE, milestone.id))

    def test_group_tasks_by_idea_uses_placeholder_for_unknown_ideas(self):
        ideas = [Idea(id="recIdea", idea_id="idea-1", title="Launch")]
        tasks = [
            Task(id="a", task_id="a", name="One", idea_id="idea-1", order=2),
            Task(id="b", task_id="b", name="Two", idea_id="idea-9", order=1),
            Task(id="c", task_id="c", name="Three", idea_id="idea-1", order=1),
        ]

        groups = milestone_service.group_tasks_by_idea(tasks, ideas)

        self.assertEqual([group["idea_title"] for group in groups], ["Launch", milestone_service.UNTITLED_IDEA])
        self.assertEqual([task["name"] for task in groups[0]["tasks"]], ["Three", "One"])
        self.assertFalse(groups[1]["idea_found"])

    def test_tasks_are_counted_per_milestone(self):
        tasks = [
            Task(id="a", task_id="a", milestone_id="m1", completed=True),
            Task(id="b", task_id="b", milestone_id="m1"),
            Task(id="c", task_id="c"),
        ]

        self.assertEqual(
            milestone_service.count_tasks_by_milestone(tasks), {"m1": {"completed": 1, "total": 2}}
        )

    def test_milestone_tasks_are_filtered_by_link(self):
        self.store.add(TASKS_TABLE, {"TaskName": "Linked", "MilestoneID": "m1", "UserID": "user-1"})
        self.store.add(TASKS_TABLE, {"TaskName": "Other", "UserID": "user-1"})
        milestone = Milestone(id="recM", milestone_id="m1", name="Beta", user_id="user-1")

        tasks = milestone_service.list_milestone_tasks(self.store, self.user, milestone)

        self.assertEqual([task.name for task in tasks], ["Linked"])


def test_countdown_splits_remaining_time():
    milestone = Milestone(
        id="m", milestone_id="m", target_time=NOW + timedelta(days=2, hours=3, minutes=4, seconds=5)
    )

    countdown = milestone_service.countdown(milestone, now=NOW)

    assert countdown["overdue"] is False
    assert (countdown["days"], countdown["hours"], countdown["minutes"], countdown["seconds"]) == (2, 3, 4, 5)


def test_countdown_flags_overdue_and_skips_undated():
    overdue = Milestone(id="m", milestone_id="m", target_time=NOW - timedelta(minutes=1))

    assert milestone_service.countdown(overdue, now=NOW)["overdue"] is True
    assert milestone_service.countdown(overdue, now=NOW)["total_seconds"] == 0
    assert milestone_service.countdown(Milestone(id="u", milestone_id="u"), now=NOW) is None
