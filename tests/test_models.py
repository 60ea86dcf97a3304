from datetime import datetime, timezone

import pytest

from models.idea import Idea
from models.task import Task
from models.user import User, parse_goals
from utils.fields import coerce_rank, format_timestamp, is_truthy, parse_timestamp


@pytest.mark.parametrize("value", [True, "today", "TRUE", "1", "yes", 1])
def test_truthy_focus_markers(value):
    assert is_truthy(value)


@pytest.mark.parametrize("value", [False, None, "", "no", "0", 0, []])
def test_falsy_focus_markers(value):
    assert not is_truthy(value)


@pytest.mark.parametrize("value, expected", [(None, 0), ("", 0), ("7", 7), (3.0, 3), ("abc", 0), (True, 0)])
def test_missing_ranks_sort_as_zero(value, expected):
    assert coerce_rank(value) == expected


def test_timestamps_round_trip_in_utc():
    parsed = parse_timestamp("2024-03-01T10:15:30.000Z")

    assert parsed == datetime(2024, 3, 1, 10, 15, 30, tzinfo=timezone.utc)
    assert format_timestamp(parsed) == "2024-03-01T10:15:30.000Z"
    assert parse_timestamp("not a date") is None


def test_task_ids_fall_back_to_record_id():
    task = Task.from_record({"id": "rec9", "fields": {"TaskName": "Plan", "Focus": "today"}})

    assert task.task_id == "rec9"
    assert task.focus is True
    assert task.order_today is None
    assert task.is_subtask is False


def test_idea_reads_loose_fields():
    idea = Idea.from_record({"id": "recI", "fields": {"IdeaID": "idea-7", "Order": "2"}})

    assert idea.idea_id == "idea-7"
    assert idea.order == 2
    assert idea.title == ""


def test_unparsable_goals_read_as_empty():
    assert parse_goals("not json") == []
    assert parse_goals('["mentors"]') == ["mentors"]


def test_user_without_name_needs_onboarding():
    user = User.from_record({"id": "recU", "fields": {"Mobile": "+15550000000"}})

    assert user.needs_onboarding
    assert user.user_id == "recU"
