"""An Idea is the top-level element a User works on

An Idea represents a project or a goal
An Idea groups Tasks through its IdeaID
A User can create multiple Ideas
A User is the owner of the Ideas they create
Ideas are ordered by their Order rank, new Ideas are placed first
Deleting an Idea leaves its Tasks in the record store

"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from utils.fields import coerce_rank, text_value

IDEAS_TABLE = "Ideas"


@dataclass
class Idea:
    id: str
    idea_id: str
    title: str = ""
    summary: str = ""
    user_id: str = ""
    user_mobile: str = ""
    order: int = 0

    # Ideas are never completed; the ordering helpers expect these attributes.
    completed = False
    completed_time = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Idea":
        fields = record.get("fields") or {}
        record_id = record.get("id") or ""
        return cls(
            id=record_id,
            idea_id=text_value(fields.get("IdeaID")) or record_id,
            title=text_value(fields.get("IdeaTitle")),
            summary=text_value(fields.get("IdeaSummary")),
            user_id=text_value(fields.get("UserID")),
            user_mobile=text_value(fields.get("UserMobile")),
            order=coerce_rank(fields.get("Order")),
        )

    def get_rank(self, rank_field: str) -> int:
        if rank_field != "Order":
            raise KeyError(rank_field)
        return self.order

    def set_rank(self, rank_field: str, value: int) -> None:
        if rank_field != "Order":
            raise KeyError(rank_field)
        self.order = value

    def to_fields(self) -> Dict[str, Any]:
        return {
            "IdeaTitle": self.title,
            "IdeaSummary": self.summary,
            "UserID": self.user_id,
            "UserMobile": self.user_mobile,
            "Order": self.order,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "idea_id": self.idea_id,
            "title": self.title,
            "summary": self.summary,
            "order": self.order,
        }

    def __repr__(self):
        return f"<Idea {self.title}>"
