import unittest

from models.idea import IDEAS_TABLE
from models.task import Task
from models.user import USERS_TABLE, User
from services import idea_service, user_service
from tests.utils.store import FakeRecordStore


class IdeaServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeRecordStore()
        self.user = User(id="recUser", user_id="user-1", mobile="+15550000000")
        for index, title in enumerate(["One", "Two", "Three"], start=1):
            self.store.add(
                IDEAS_TABLE,
                {"IdeaID": f"idea-{index}", "IdeaTitle": title, "UserID": "user-1", "Order": index},
            )
        self.store.add(IDEAS_TABLE, {"IdeaID": "idea-x", "IdeaTitle": "Theirs", "UserID": "user-2"})

    def titles(self):
        return [idea.title for idea in idea_service.list_ideas(self.store, self.user)]

    def test_list_is_scoped_to_user(self):
        self.assertEqual(self.titles(), ["One", "Two", "Three"])

    def test_new_ideas_go_first(self):
        ideas = idea_service.list_ideas(self.store, self.user)

        created = idea_service.create_idea(self.store, self.user, ideas, "Zero", "Fresh")

        self.assertEqual(created.order, 1)
        self.assertEqual(created.user_mobile, "+15550000000")
        self.assertEqual(self.titles(), ["Zero", "One", "Two", "Three"])

    def test_reorder_ideas(self):
        ideas = idea_service.list_ideas(self.store, self.user)

        result = idea_service.reorder_ideas(self.store, ideas, 0, 2)

        self.assertTrue(result.ok)
        self.assertEqual(self.titles(), ["Two", "Three", "One"])

    def test_other_users_ideas_are_hidden(self):
        with self.assertRaises(LookupError):
            idea_service.get_idea(self.store, self.user, "idea-x")

    def test_summaries_only_list_open_tasks(self):
        ideas = idea_service.list_ideas(self.store, self.user)
        tasks = [
            Task(id="a", task_id="a", idea_id="idea-1", order=1, completed=True),
            Task(id="b", task_id="b", idea_id="idea-1", order=2),
        ]

        summaries = idea_service.summarize_ideas(ideas, tasks)

        self.assertEqual(summaries[0]["progress"]["percentage"], 50)
        self.assertEqual([task["id"] for task in summaries[0]["open_tasks"]], ["b"])
        self.assertEqual(summaries[1]["progress"]["total"], 0)


class UserServiceTestCase(unittest.TestCase):
    def test_find_or_create_reuses_existing_user(self):
        store = FakeRecordStore()
        store.add(USERS_TABLE, {"Mobile": "+15551234567", "Name": "Ada"}, record_id="recAda")

        user = user_service.find_or_create_user(store, "+15551234567")

        self.assertEqual(user.id, "recAda")
        self.assertEqual(store.create_calls, [])

    def test_unknown_goal_is_rejected(self):
        store = FakeRecordStore()
        store.add(USERS_TABLE, {"Mobile": "+15551234567"}, record_id="recAda")
        user = user_service.load_user(store, "recAda")

        with self.assertRaises(ValueError):
            user_service.complete_onboarding(store, user, "Ada", ["fame"])
        self.assertIsNone(user_service.load_user(store, "missing"))
