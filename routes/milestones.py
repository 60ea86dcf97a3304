"""Milestone routes."""
from __future__ import annotations

from flask import Blueprint, g

from forms import MilestoneForm
from routes import (
    check_csrf,
    json_error,
    json_form_error,
    json_success,
    load_form,
    record_store_error_response,
    request_payload,
)
from services import idea_service, milestone_service, task_service
from services.record_store import RecordStoreError
from store import store
from utils.fields import parse_timestamp, utcnow

milestones_bp = Blueprint("milestones", __name__, url_prefix="/api/milestones")


def _serialize(milestone, now, counts=None):
    payload = milestone.to_dict()
    payload["countdown"] = milestone_service.countdown(milestone, now=now)
    if counts is not None:
        payload["task_counts"] = counts.get(milestone.milestone_id, {"completed": 0, "total": 0})
    return payload


def _load_milestone(milestone_id: str):
    try:
        return milestone_service.get_milestone(store.client, g.user, milestone_id), None
    except LookupError as exc:
        return None, json_error(str(exc), status=404)
    except PermissionError as exc:
        return None, json_error(str(exc), status=403)


@milestones_bp.route("", methods=["GET"])
def list_milestones():
    client = store.client
    milestones = milestone_service.list_milestones(client, g.user)
    counts = milestone_service.count_tasks_by_milestone(
        task_service.list_tasks_for_user(client, g.user)
    )
    now = utcnow()
    return json_success(milestones=[_serialize(item, now, counts) for item in milestones])


@milestones_bp.route("", methods=["POST"])
def create_milestone():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(MilestoneForm, payload)
    if not form.validate():
        return json_form_error(form)

    try:
        milestone = milestone_service.create_milestone(
            store.client,
            g.user,
            form.name.data,
            target_time=parse_timestamp(form.target_time.data),
            notes=form.notes.data or "",
        )
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to create the milestone.")
    return json_success(201, message="Milestone created.", milestone=_serialize(milestone, utcnow()))


@milestones_bp.route("/<milestone_id>", methods=["GET"])
def milestone_detail(milestone_id):
    milestone, error = _load_milestone(milestone_id)
    if error:
        return error
    client = store.client
    tasks = milestone_service.list_milestone_tasks(client, g.user, milestone)
    ideas = idea_service.list_ideas(client, g.user)
    return json_success(
        milestone=_serialize(milestone, utcnow()),
        groups=milestone_service.group_tasks_by_idea(tasks, ideas),
        progress=task_service.progress_summary(tasks),
    )


@milestones_bp.route("/<milestone_id>", methods=["PATCH"])
def update_milestone(milestone_id):
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    milestone, error = _load_milestone(milestone_id)
    if error:
        return error

    name = payload.get("name")
    if name is not None and not str(name).strip():
        return json_error(
            "The milestone needs a name.", errors={"name": ["The milestone needs a name."]}
        )
    target_time = None
    clear_target_time = "target_time" in payload and not payload.get("target_time")
    if payload.get("target_time"):
        target_time = parse_timestamp(payload.get("target_time"))
        if target_time is None:
            message = "Please enter a valid date and time."
            return json_error(message, errors={"target_time": [message]})

    client = store.client
    try:
        if name is not None:
            milestone_service.rename_milestone(client, milestone, str(name).strip())
        milestone_service.update_milestone_details(
            client,
            milestone,
            target_time=target_time,
            notes=payload.get("notes"),
            clear_target_time=clear_target_time,
        )
    except RecordStoreError as exc:
        return record_store_error_response(
            exc, "Unable to save the milestone.", milestone=milestone.to_dict()
        )
    return json_success(message="Milestone saved.", milestone=_serialize(milestone, utcnow()))
