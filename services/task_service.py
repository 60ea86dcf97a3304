"""Operations on the task tree of an idea and on the Today list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from models.idea import Idea
from models.task import TASKS_TABLE, Task
from models.user import User
from services import ordering
from services.record_store import RecordStoreClient, RecordStoreError, update_optimistically
from utils.fields import format_timestamp, utcnow

DEFAULT_SUBTASK_NAME = "New subtask..."
INSERT_POSITIONS = ("top", "bottom")


@dataclass
class TaskNode:
    task: Task
    subtasks: List[Task] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = self.task.to_dict()
        payload["subtasks"] = [subtask.to_dict() for subtask in self.subtasks]
        return payload


def ensure_task_owner(task: Task, user: User) -> Task:
    if task.user_id != user.user_id:
        raise PermissionError("You do not have access to that task.")
    return task


def get_task(client: RecordStoreClient, user: User, record_id: str) -> Task:
    task = Task.from_record(client.get_record(TASKS_TABLE, record_id))
    return ensure_task_owner(task, user)


def list_tasks_for_idea(client: RecordStoreClient, user: User, idea_id: str) -> List[Task]:
    records = client.list_records(
        TASKS_TABLE,
        filters={"IdeaID": idea_id, "UserID": user.user_id},
        sort=[("Order", "asc"), ("SubOrder", "asc")],
    )
    return [Task.from_record(record) for record in records]


def list_tasks_for_user(client: RecordStoreClient, user: User) -> List[Task]:
    records = client.list_records(TASKS_TABLE, filters={"UserID": user.user_id})
    return [Task.from_record(record) for record in records]


def top_level_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Tasks without a parent, plus tasks whose parent is not in ``tasks``."""
    tasks = list(tasks)
    known_ids = {task.task_id for task in tasks}
    return [
        task
        for task in tasks
        if not task.parent_task or task.parent_task not in known_ids or task.parent_task == task.task_id
    ]


def subtasks_of(tasks: Iterable[Task], parent_task_id: str) -> List[Task]:
    return [
        task
        for task in tasks
        if task.parent_task == parent_task_id and task.task_id != parent_task_id
    ]


def build_task_tree(tasks: Iterable[Task]) -> List[TaskNode]:
    tasks = list(tasks)
    tree = []
    for parent in ordering.display_order(top_level_tasks(tasks), "Order"):
        children = ordering.display_order(subtasks_of(tasks, parent.task_id), "SubOrder")
        tree.append(TaskNode(task=parent, subtasks=children))
    return tree


def progress_summary(tasks: Iterable[Task]) -> dict:
    tasks = list(tasks)
    total = len(tasks)
    completed = sum(1 for task in tasks if task.completed)
    percentage = round(completed * 100 / total) if total else 0
    return {"completed": completed, "total": total, "percentage": percentage}


def create_task(
    client: RecordStoreClient,
    user: User,
    idea: Idea,
    tasks: Sequence[Task],
    name: str,
    *,
    position: str = "bottom",
) -> Task:
    """Create a top-level task at rank 1 (``top``) or after the incomplete siblings.

    Inserting at the top persists the shifted sibling ranks before the new
    record is written; when the shift fails the task is not created.
    """
    if position not in INSERT_POSITIONS:
        raise ValueError(f"Unknown insert position '{position}'")
    siblings = top_level_tasks(tasks)
    if position == "top":
        shifted = ordering.shift_for_insert_at_top(client, TASKS_TABLE, siblings, "Order")
        if not shifted.ok:
            raise shifted.error
        order = 1
    else:
        order = ordering.next_rank(siblings)

    draft = Task(
        id="",
        task_id="",
        name=name.strip(),
        idea_id=idea.idea_id,
        order=order,
        sub_order=0,
        user_id=user.user_id,
    )
    created = Task.from_record(client.create_record(TASKS_TABLE, draft.to_fields()))
    logging.info("Created task %s in idea %s at order %s", created.id, idea.idea_id, order)
    return created


def create_subtask(
    client: RecordStoreClient,
    user: User,
    parent: Task,
    tasks: Sequence[Task],
    name: Optional[str] = None,
) -> Task:
    if parent.parent_task:
        raise ValueError("Subtasks cannot have subtasks of their own.")
    siblings = subtasks_of(tasks, parent.task_id)
    draft = Task(
        id="",
        task_id="",
        name=(name or "").strip() or DEFAULT_SUBTASK_NAME,
        idea_id=parent.idea_id,
        parent_task=parent.task_id,
        order=0,
        sub_order=ordering.next_rank(siblings),
        user_id=user.user_id,
    )
    return Task.from_record(client.create_record(TASKS_TABLE, draft.to_fields()))


def rename_task(client: RecordStoreClient, task: Task, name: str) -> Task:
    return update_optimistically(
        client, TASKS_TABLE, task, {"name": name}, {"TaskName": name}
    )


def update_task_notes(client: RecordStoreClient, task: Task, notes: str) -> Task:
    return update_optimistically(
        client, TASKS_TABLE, task, {"notes": notes}, {"TaskNote": notes}
    )


def delete_task(client: RecordStoreClient, task: Task, tasks: Sequence[Task]) -> List[str]:
    """Delete ``task`` after detaching its sub-tasks.

    Returns the record ids of the children whose parent link was cleared.
    Failing to detach children is logged and does not prevent the delete.
    """
    children = subtasks_of(tasks, task.task_id)
    orphaned: List[str] = []
    if children:
        previous = {child.id: child.parent_task for child in children}
        for child in children:
            child.parent_task = ""
        for batch in ordering.chunked(children):
            try:
                client.update_records(TASKS_TABLE, [(child.id, {"ParentTask": ""}) for child in batch])
            except RecordStoreError as error:
                logging.warning("Unable to detach subtasks of task %s: %s", task.id, error)
                break
            orphaned.extend(child.id for child in batch)
        for child in children:
            if child.id not in orphaned:
                child.parent_task = previous[child.id]

    client.delete_record(TASKS_TABLE, task.id)
    logging.info("Task %s deleted, %s subtasks detached", task.id, len(orphaned))
    return orphaned


def toggle_completed(
    client: RecordStoreClient, task: Task, *, now: Optional[datetime] = None
) -> Task:
    completed = not task.completed
    completed_time = (now or utcnow()) if completed else None
    return update_optimistically(
        client,
        TASKS_TABLE,
        task,
        {"completed": completed, "completed_time": completed_time},
        {"Completed": completed, "CompletedTime": format_timestamp(completed_time)},
    )


def toggle_focus(
    client: RecordStoreClient, task: Task, today_tasks: Sequence[Task] = ()
) -> Task:
    """Flip the Today marker; a task joining the list without a rank goes last.

    Leaving the list clears OrderToday.
    """
    focus = not task.focus
    changes = {"focus": focus}
    fields = {"Focus": focus}
    if not focus:
        changes["order_today"] = None
        fields["OrderToday"] = None
    elif task.order_today is None:
        ranks = [
            other.order_today
            for other in today_tasks
            if other.id != task.id and other.order_today is not None and not other.completed
        ]
        order_today = max(ranks, default=0) + 1
        changes["order_today"] = order_today
        fields["OrderToday"] = order_today
    return update_optimistically(client, TASKS_TABLE, task, changes, fields)


def assign_milestone(
    client: RecordStoreClient, task: Task, milestone_id: Optional[str]
) -> Task:
    value = milestone_id or ""
    return update_optimistically(
        client, TASKS_TABLE, task, {"milestone_id": value}, {"MilestoneID": value}
    )


def reorder_top_level(
    client: RecordStoreClient, tasks: Sequence[Task], old_index: int, new_index: int
) -> ordering.ReorderResult:
    return ordering.reorder(
        client, TASKS_TABLE, top_level_tasks(tasks), "Order", old_index, new_index
    )


def reorder_subtasks(
    client: RecordStoreClient,
    tasks: Sequence[Task],
    parent_task_id: str,
    old_index: int,
    new_index: int,
) -> ordering.ReorderResult:
    return ordering.reorder(
        client,
        TASKS_TABLE,
        subtasks_of(tasks, parent_task_id),
        "SubOrder",
        old_index,
        new_index,
    )


def list_today_tasks(client: RecordStoreClient, user: User) -> List[Task]:
    """Tasks flagged for Today across every idea, in display order."""
    records = client.list_records(
        TASKS_TABLE,
        filters={"UserID": user.user_id},
        sort=[("OrderToday", "asc"), ("SubOrder", "asc")],
    )
    focused = [task for task in (Task.from_record(record) for record in records) if task.focus]
    return ordering.display_order(focused, "OrderToday")


def reorder_today(
    client: RecordStoreClient, today_tasks: Sequence[Task], old_index: int, new_index: int
) -> ordering.ReorderResult:
    return ordering.reorder(
        client, TASKS_TABLE, list(today_tasks), "OrderToday", old_index, new_index
    )
