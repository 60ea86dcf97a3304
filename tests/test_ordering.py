import unittest
from datetime import datetime, timezone

import pytest

from models.task import TASKS_TABLE, Task
from services import ordering
from tests.utils.store import FakeRecordStore


def make_tasks(store, count, **extra):
    tasks = []
    for index in range(count):
        fields = {"TaskName": f"Task {index + 1}", "IdeaID": "idea-1", "Order": index + 1}
        fields.update(extra)
        tasks.append(Task.from_record(store.add(TASKS_TABLE, fields)))
    return tasks


class ReorderTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeRecordStore()

    def test_reorder_renumbers_and_batches_by_ten(self):
        tasks = make_tasks(self.store, 25)
        moved = tasks[0]

        result = ordering.reorder(self.store, TASKS_TABLE, tasks, "Order", 0, 24)

        self.assertTrue(result.changed)
        self.assertTrue(result.ok)
        self.assertEqual([len(updates) for _table, updates in self.store.update_calls], [10, 10, 5])
        self.assertEqual([item.order for item in result.items], list(range(1, 26)))
        self.assertIs(result.items[-1], moved)
        self.assertEqual(self.store.fields(TASKS_TABLE, moved.id)["Order"], 25)

    def test_same_index_is_a_no_op(self):
        tasks = make_tasks(self.store, 3)

        result = ordering.reorder(self.store, TASKS_TABLE, tasks, "Order", 1, 1)

        self.assertFalse(result.changed)
        self.assertIsNone(result.persisted)
        self.assertEqual(self.store.update_calls, [])

    def test_out_of_range_index_is_rejected(self):
        tasks = make_tasks(self.store, 3)

        with self.assertRaises(ValueError):
            ordering.reorder(self.store, TASKS_TABLE, tasks, "Order", 0, 3)
        self.assertEqual(self.store.update_calls, [])

    def test_completed_tasks_keep_their_rank(self):
        tasks = make_tasks(self.store, 4)
        done = Task.from_record(
            self.store.add(
                TASKS_TABLE,
                {
                    "TaskName": "Done",
                    "Order": 2,
                    "Completed": True,
                    "CompletedTime": "2024-03-01T10:00:00.000Z",
                },
            )
        )

        result = ordering.reorder(self.store, TASKS_TABLE, tasks + [done], "Order", 3, 0)

        written = [record_id for _table, updates in self.store.update_calls for record_id, _ in updates]
        self.assertNotIn(done.id, written)
        self.assertEqual(done.order, 2)
        self.assertIs(result.items[-1], done)
        self.assertEqual([item.order for item in result.items[:4]], [1, 2, 3, 4])

    def test_failed_batch_stops_later_batches_without_rollback(self):
        tasks = make_tasks(self.store, 25)
        self.store.fail_update_calls = {1}

        result = ordering.reorder(self.store, TASKS_TABLE, tasks, "Order", 24, 0)

        self.assertFalse(result.ok)
        persisted = result.persisted
        self.assertEqual(persisted.request_count, 2)
        self.assertEqual(len(self.store.update_calls), 2)
        self.assertEqual(persisted.committed_ids, [item.id for item in result.items[:10]])
        self.assertEqual(persisted.failed_ids, [item.id for item in result.items[10:25]])
        # Local order is not rolled back.
        self.assertEqual([item.order for item in result.items], list(range(1, 26)))
        self.assertEqual(persisted.to_dict()["requests"], 2)


class InsertAtTopTestCase(unittest.TestCase):
    def test_shift_increments_incomplete_siblings(self):
        store = FakeRecordStore()
        tasks = make_tasks(store, 3)
        done = Task.from_record(store.add(TASKS_TABLE, {"Order": 7, "Completed": True}))

        result = ordering.shift_for_insert_at_top(store, TASKS_TABLE, tasks + [done], "Order")

        self.assertTrue(result.ok)
        self.assertEqual([task.order for task in tasks], [2, 3, 4])
        self.assertEqual(done.order, 7)

    def test_failed_shift_restores_unpersisted_ranks(self):
        store = FakeRecordStore()
        tasks = make_tasks(store, 12)
        store.fail_update_calls = {1}

        result = ordering.shift_for_insert_at_top(store, TASKS_TABLE, tasks, "Order")

        self.assertFalse(result.ok)
        self.assertEqual([task.order for task in tasks[:10]], list(range(2, 12)))
        self.assertEqual([task.order for task in tasks[10:]], [11, 12])


def test_display_order_puts_completed_last_newest_first():
    def task(record_id, order, completed_time=None):
        return Task(
            id=record_id,
            task_id=record_id,
            order=order,
            completed=completed_time is not None,
            completed_time=completed_time,
        )

    older = task("a", 1, datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer = task("b", 2, datetime(2024, 2, 1, tzinfo=timezone.utc))
    first = task("c", 1)
    second = task("d", 2)
    unranked = task("e", 0)

    ordered = ordering.display_order([older, second, newer, first, unranked], "Order")

    assert [item.id for item in ordered] == ["e", "c", "d", "b", "a"]


def test_ties_keep_original_order():
    items = [Task(id=name, task_id=name, order=1) for name in ("x", "y", "z")]

    assert [item.id for item in ordering.incomplete_in_rank_order(items, "Order")] == ["x", "y", "z"]


def test_next_rank_counts_only_incomplete_siblings():
    items = [
        Task(id="a", task_id="a", order=1),
        Task(id="b", task_id="b", order=2, completed=True),
        Task(id="c", task_id="c", order=2),
    ]

    assert ordering.next_rank(items) == 3


def test_chunked_rejects_empty_batches():
    with pytest.raises(ValueError):
        list(ordering.chunked([1, 2, 3], 0))
