"""Operations on milestones and the tasks linked to them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from models.idea import Idea
from models.milestone import MILESTONES_TABLE, Milestone
from models.task import TASKS_TABLE, Task
from models.user import User
from services import ordering
from services.record_store import RecordStoreClient, RecordStoreError, update_optimistically
from utils.fields import format_timestamp, utcnow

UNTITLED_IDEA = "(Untitled Idea)"
_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def ensure_milestone_owner(milestone: Milestone, user: User) -> Milestone:
    if milestone.user_id != user.user_id:
        raise PermissionError("You do not have access to that milestone.")
    return milestone


def list_milestones(client: RecordStoreClient, user: User) -> List[Milestone]:
    """Milestones sorted by target time, undated ones last."""
    records = client.list_records(
        MILESTONES_TABLE,
        filters={"UserID": user.user_id},
        sort=[("MilestoneTime", "asc")],
    )
    milestones = [Milestone.from_record(record) for record in records]
    return sorted(milestones, key=lambda item: item.target_time or _FAR_FUTURE)


def get_milestone(client: RecordStoreClient, user: User, milestone_id: str) -> Milestone:
    record = client.find_first(
        MILESTONES_TABLE, {"MilestoneID": milestone_id, "UserID": user.user_id}
    )
    if record is None:
        try:
            record = client.get_record(MILESTONES_TABLE, milestone_id)
        except RecordStoreError as error:
            if error.status_code == 404:
                raise LookupError(f"No milestone found for ID: {milestone_id}") from error
            raise
    return ensure_milestone_owner(Milestone.from_record(record), user)


def create_milestone(
    client: RecordStoreClient,
    user: User,
    name: str,
    target_time: Optional[datetime] = None,
    notes: str = "",
) -> Milestone:
    draft = Milestone(
        id="",
        milestone_id="",
        name=name.strip(),
        target_time=target_time,
        notes=notes,
        user_id=user.user_id,
    )
    return Milestone.from_record(client.create_record(MILESTONES_TABLE, draft.to_fields()))


def rename_milestone(client: RecordStoreClient, milestone: Milestone, name: str) -> Milestone:
    return update_optimistically(
        client, MILESTONES_TABLE, milestone, {"name": name}, {"MilestoneName": name}
    )


def update_milestone_details(
    client: RecordStoreClient,
    milestone: Milestone,
    *,
    target_time: Optional[datetime] = None,
    notes: Optional[str] = None,
    clear_target_time: bool = False,
) -> Milestone:
    changes: Dict[str, object] = {}
    fields: Dict[str, object] = {}
    if clear_target_time:
        changes["target_time"] = None
        fields["MilestoneTime"] = None
    elif target_time is not None:
        changes["target_time"] = target_time
        fields["MilestoneTime"] = format_timestamp(target_time)
    if notes is not None:
        changes["notes"] = notes
        fields["MilestoneNotes"] = notes
    if not fields:
        return milestone
    return update_optimistically(client, MILESTONES_TABLE, milestone, changes, fields)


def countdown(milestone: Milestone, *, now: Optional[datetime] = None) -> Optional[dict]:
    """Time left until the milestone's target time, or None when it has none."""
    if milestone.target_time is None:
        return None
    now = now or utcnow()
    remaining = int((milestone.target_time - now).total_seconds())
    overdue = remaining < 0
    seconds_left = max(remaining, 0)
    days, rest = divmod(seconds_left, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return {
        "overdue": overdue,
        "total_seconds": seconds_left,
        "days": days,
        "hours": hours,
        "minutes": minutes,
        "seconds": seconds,
    }


def list_milestone_tasks(
    client: RecordStoreClient, user: User, milestone: Milestone
) -> List[Task]:
    records = client.list_records(
        TASKS_TABLE,
        filters={"MilestoneID": milestone.milestone_id, "UserID": user.user_id},
    )
    return [Task.from_record(record) for record in records]


def group_tasks_by_idea(tasks: Iterable[Task], ideas: Sequence[Idea]) -> List[dict]:
    """Group tasks under the idea they belong to, keeping first-seen idea order."""
    ideas_by_id = {idea.idea_id: idea for idea in ideas}
    groups: Dict[str, List[Task]] = {}
    for task in tasks:
        groups.setdefault(task.idea_id, []).append(task)
    grouped = []
    for idea_id, idea_tasks in groups.items():
        idea = ideas_by_id.get(idea_id)
        grouped.append(
            {
                "idea_id": idea_id or None,
                "idea_title": (idea.title if idea and idea.title else UNTITLED_IDEA),
                "idea_found": idea is not None,
                "tasks": [task.to_dict() for task in ordering.display_order(idea_tasks, "Order")],
            }
        )
    return grouped


def count_tasks_by_milestone(tasks: Iterable[Task]) -> Dict[str, dict]:
    counts: Dict[str, dict] = {}
    for task in tasks:
        if not task.milestone_id:
            continue
        entry = counts.setdefault(task.milestone_id, {"completed": 0, "total": 0})
        entry["total"] += 1
        if task.completed:
            entry["completed"] += 1
    return counts
