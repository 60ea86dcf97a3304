""" Represents a user in the system.

Users log in with their mobile phone number (one-time passcode)
The phone number is the key that correlates a login with a Users record
A User can set a name and onboarding goals after the first login
A User owns the Ideas, Tasks and Milestones they create

"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from utils.fields import text_value

USERS_TABLE = "Users"

GOAL_CHOICES = [
    ("accountability", "Daily accountability to realize my big idea"),
    ("mentors", "Get help from mentors"),
    ("community", "Connect with other big thinkers"),
    ("reference", "Just store my idea for reference"),
]


def parse_goals(raw: Any) -> List[str]:
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(goal) for goal in raw]
    try:
        goals = json.loads(raw)
    except (TypeError, ValueError):
        logging.warning("Ignoring unparsable user goals value: %r", raw)
        return []
    if not isinstance(goals, list):
        return []
    return [str(goal) for goal in goals]


@dataclass
class User:
    id: str
    user_id: str
    mobile: str = ""
    name: str = ""
    goals: List[str] = field(default_factory=list)
    created_at: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        fields = record.get("fields") or {}
        record_id = record.get("id") or ""
        return cls(
            id=record_id,
            user_id=text_value(fields.get("UserID")) or record_id,
            mobile=text_value(fields.get("Mobile")),
            name=text_value(fields.get("Name")),
            goals=parse_goals(fields.get("Goals")),
            created_at=text_value(fields.get("CreatedAt")),
        )

    @property
    def needs_onboarding(self) -> bool:
        return not self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "mobile": self.mobile,
            "name": self.name,
            "goals": list(self.goals),
            "needs_onboarding": self.needs_onboarding,
        }

    def __repr__(self):
        return f"<User {self.id}>"
