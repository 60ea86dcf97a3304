"""A Milestone is a named goal that Tasks can be linked to

A Milestone can have a target time, Tasks are expected to be done by then
A Milestone can keep free-text notes
A Task links to at most one Milestone through the MilestoneID field
A User can create multiple Milestones

"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from utils.fields import format_timestamp, parse_timestamp, text_value

MILESTONES_TABLE = "Milestones"


@dataclass
class Milestone:
    id: str
    milestone_id: str
    name: str = ""
    target_time: Optional[datetime] = None
    notes: str = ""
    user_id: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Milestone":
        fields = record.get("fields") or {}
        record_id = record.get("id") or ""
        return cls(
            id=record_id,
            milestone_id=text_value(fields.get("MilestoneID")) or record_id,
            name=text_value(fields.get("MilestoneName")),
            target_time=parse_timestamp(fields.get("MilestoneTime")),
            notes=text_value(fields.get("MilestoneNotes")),
            user_id=text_value(fields.get("UserID")),
        )

    def to_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "MilestoneName": self.name,
            "UserID": self.user_id,
        }
        if self.target_time is not None:
            fields["MilestoneTime"] = format_timestamp(self.target_time)
        if self.notes.strip():
            fields["MilestoneNotes"] = self.notes
        return fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "milestone_id": self.milestone_id,
            "name": self.name,
            "target_time": format_timestamp(self.target_time),
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<Milestone {self.name}>"
