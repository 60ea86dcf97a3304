"""Correlate identity-provider logins with application user records."""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from models.user import GOAL_CHOICES, USERS_TABLE, User
from services.record_store import RecordStoreClient, RecordStoreError
from utils.fields import format_timestamp, utcnow

VALID_GOALS = {goal for goal, _label in GOAL_CHOICES}


def find_user_by_phone(client: RecordStoreClient, phone_number: str) -> Optional[User]:
    record = client.find_first(USERS_TABLE, {"Mobile": phone_number})
    return User.from_record(record) if record else None


def find_or_create_user(
    client: RecordStoreClient, phone_number: str, *, display_name: str | None = None
) -> User:
    """Return the user record for ``phone_number``, creating one on first login."""
    existing = find_user_by_phone(client, phone_number)
    if existing is not None:
        logging.info("Existing user %s found for login", existing.id)
        return existing
    fields = {"Mobile": phone_number, "CreatedAt": format_timestamp(utcnow())}
    if display_name:
        fields["Name"] = display_name
    created = User.from_record(client.create_record(USERS_TABLE, fields))
    logging.info("New user %s created for login", created.id)
    return created


def load_user(client: RecordStoreClient, record_id: str) -> Optional[User]:
    try:
        return User.from_record(client.get_record(USERS_TABLE, record_id))
    except RecordStoreError as error:
        if error.status_code == 404:
            return None
        raise


def complete_onboarding(
    client: RecordStoreClient, user: User, name: str, goals: Iterable[str]
) -> User:
    selected = []
    for goal in goals:
        if goal not in VALID_GOALS:
            raise ValueError(f"Unknown goal '{goal}'")
        if goal not in selected:
            selected.append(goal)
    client.update_record(
        USERS_TABLE,
        user.id,
        {"Name": name.strip(), "Goals": json.dumps(selected)},
    )
    user.name = name.strip()
    user.goals = selected
    return user
