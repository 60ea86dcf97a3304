"""A task represents an action item that belongs to an Idea

A Task can contain Tasks (sub-tasks), one level deep
A Task references its parent through the parent's TaskID
A Task whose parent cannot be found is shown as a top-level Task
A Task keeps three independent ranks: among top-level siblings (Order),
among sub-task siblings (SubOrder) and on the Today list (OrderToday)
A completed Task keeps its ranks untouched and is listed by completion time
A Task can be flagged for Today and linked to one Milestone

"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import bleach
from markdown import markdown as render_markdown
from markupsafe import Markup

from utils.fields import (
    coerce_optional_rank,
    coerce_rank,
    format_timestamp,
    is_truthy,
    parse_timestamp,
    text_value,
)

TASKS_TABLE = "Tasks"

RANK_ATTRIBUTES = {
    "Order": "order",
    "SubOrder": "sub_order",
    "OrderToday": "order_today",
}


def render_task_notes_html(notes: Optional[str]) -> Markup:
    """Render task notes Markdown into sanitized HTML."""
    if not notes:
        return Markup("")
    html = render_markdown(
        notes,
        extensions=["extra", "sane_lists"],
        output_format="html5",
        tab_length=2,
    )
    allowed_tags = list(bleach.sanitizer.ALLOWED_TAGS) + [
        "p",
        "pre",
        "code",
        "ul",
        "ol",
        "li",
        "strong",
        "em",
        "blockquote",
        "br",
        "h1",
        "h2",
        "h3",
        "hr",
    ]
    allowed_attributes = {
        **bleach.sanitizer.ALLOWED_ATTRIBUTES,
        "a": ["href", "title", "target", "rel"],
    }
    sanitized_html = bleach.clean(html, tags=allowed_tags, attributes=allowed_attributes)
    return Markup(sanitized_html)


@dataclass
class Task:
    id: str
    task_id: str
    name: str = ""
    notes: str = ""
    completed: bool = False
    completed_time: Optional[datetime] = None
    idea_id: str = ""
    parent_task: str = ""
    order: int = 0
    sub_order: int = 0
    order_today: Optional[int] = None
    focus: bool = False
    milestone_id: str = ""
    user_id: str = ""
    created_time: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Task":
        fields = record.get("fields") or {}
        record_id = record.get("id") or ""
        return cls(
            id=record_id,
            task_id=text_value(fields.get("TaskID")) or record_id,
            name=text_value(fields.get("TaskName")),
            notes=text_value(fields.get("TaskNote")),
            completed=is_truthy(fields.get("Completed")),
            completed_time=parse_timestamp(fields.get("CompletedTime")),
            idea_id=text_value(fields.get("IdeaID")),
            parent_task=text_value(fields.get("ParentTask")),
            order=coerce_rank(fields.get("Order")),
            sub_order=coerce_rank(fields.get("SubOrder")),
            order_today=coerce_optional_rank(fields.get("OrderToday")),
            focus=is_truthy(fields.get("Focus")),
            milestone_id=text_value(fields.get("MilestoneID")),
            user_id=text_value(fields.get("UserID")),
            created_time=record.get("createdTime"),
        )

    @property
    def is_subtask(self) -> bool:
        return bool(self.parent_task)

    def get_rank(self, rank_field: str) -> int:
        return coerce_rank(getattr(self, RANK_ATTRIBUTES[rank_field]))

    def set_rank(self, rank_field: str, value: int) -> None:
        setattr(self, RANK_ATTRIBUTES[rank_field], value)

    def to_fields(self) -> Dict[str, Any]:
        """Fields written when the task is created."""
        fields: Dict[str, Any] = {
            "TaskName": self.name,
            "IdeaID": self.idea_id,
            "ParentTask": self.parent_task,
            "Order": self.order,
            "SubOrder": self.sub_order,
            "Completed": self.completed,
            "CompletedTime": format_timestamp(self.completed_time),
            "Focus": self.focus,
            "UserID": self.user_id,
        }
        if self.notes:
            fields["TaskNote"] = self.notes
        if self.order_today is not None:
            fields["OrderToday"] = self.order_today
        if self.milestone_id:
            fields["MilestoneID"] = self.milestone_id
        return fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "name": self.name,
            "notes": self.notes,
            "notes_html": str(render_task_notes_html(self.notes)),
            "completed": self.completed,
            "completed_time": format_timestamp(self.completed_time),
            "idea_id": self.idea_id,
            "parent_task": self.parent_task or None,
            "order": self.order,
            "sub_order": self.sub_order,
            "order_today": self.order_today,
            "focus": self.focus,
            "milestone_id": self.milestone_id or None,
        }

    def __repr__(self):
        return f"<Task {self.name}>"
