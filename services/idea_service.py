"""Operations on a user's ideas."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from models.idea import IDEAS_TABLE, Idea
from models.task import Task
from models.user import User
from services import ordering
from services.record_store import RecordStoreClient, RecordStoreError, update_optimistically
from services.task_service import progress_summary


def ensure_idea_owner(idea: Idea, user: User) -> Idea:
    if idea.user_id != user.user_id:
        raise PermissionError("You do not have access to that idea.")
    return idea


def list_ideas(client: RecordStoreClient, user: User) -> List[Idea]:
    records = client.list_records(
        IDEAS_TABLE,
        filters={"UserID": user.user_id},
        sort=[("Order", "asc")],
    )
    return ordering.display_order([Idea.from_record(record) for record in records], "Order")


def get_idea(client: RecordStoreClient, user: User, idea_id: str) -> Idea:
    """Look an idea up by its IdeaID, falling back to the record id."""
    record = client.find_first(IDEAS_TABLE, {"IdeaID": idea_id, "UserID": user.user_id})
    if record is None:
        try:
            record = client.get_record(IDEAS_TABLE, idea_id)
        except RecordStoreError as error:
            if error.status_code == 404:
                raise LookupError(f"No idea found with ID {idea_id}.") from error
            raise
    return ensure_idea_owner(Idea.from_record(record), user)


def create_idea(
    client: RecordStoreClient,
    user: User,
    ideas: Sequence[Idea],
    title: str,
    summary: str = "",
) -> Idea:
    """Create an idea at Order 1 after shifting the existing ideas down by one."""
    shifted = ordering.shift_for_insert_at_top(client, IDEAS_TABLE, ideas, "Order")
    if not shifted.ok:
        raise shifted.error
    draft = Idea(
        id="",
        idea_id="",
        title=title.strip(),
        summary=summary.strip(),
        user_id=user.user_id,
        user_mobile=user.mobile,
        order=1,
    )
    created = Idea.from_record(client.create_record(IDEAS_TABLE, draft.to_fields()))
    logging.info("Created idea %s for user %s", created.id, user.user_id)
    return created


def rename_idea(client: RecordStoreClient, idea: Idea, title: str) -> Idea:
    return update_optimistically(
        client, IDEAS_TABLE, idea, {"title": title}, {"IdeaTitle": title}
    )


def update_idea_summary(client: RecordStoreClient, idea: Idea, summary: str) -> Idea:
    return update_optimistically(
        client, IDEAS_TABLE, idea, {"summary": summary}, {"IdeaSummary": summary}
    )


def delete_idea(client: RecordStoreClient, idea: Idea) -> None:
    client.delete_record(IDEAS_TABLE, idea.id)
    logging.info("Idea %s deleted", idea.id)


def reorder_ideas(
    client: RecordStoreClient, ideas: Sequence[Idea], old_index: int, new_index: int
) -> ordering.ReorderResult:
    return ordering.reorder(client, IDEAS_TABLE, list(ideas), "Order", old_index, new_index)


def summarize_ideas(ideas: Iterable[Idea], tasks: Iterable[Task]) -> List[Dict[str, object]]:
    """Serialize ideas with the progress of the tasks that belong to each."""
    by_idea: Dict[str, List[Task]] = {}
    for task in tasks:
        by_idea.setdefault(task.idea_id, []).append(task)
    summaries = []
    for idea in ideas:
        payload = idea.to_dict()
        idea_tasks = by_idea.get(idea.idea_id, [])
        payload["progress"] = progress_summary(idea_tasks)
        payload["open_tasks"] = [
            task.to_dict() for task in ordering.incomplete_in_rank_order(idea_tasks, "Order")
        ]
        summaries.append(payload)
    return summaries
