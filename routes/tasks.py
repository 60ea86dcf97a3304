"""Routes acting on a single task."""
from __future__ import annotations

from flask import Blueprint, g

from forms import SubtaskForm
from routes import (
    check_csrf,
    json_error,
    json_form_error,
    json_success,
    load_form,
    record_store_error_response,
    request_payload,
)
from services import milestone_service, task_service
from services.edit_service import EditOutcome, resolve_draft
from services.record_store import RecordStoreError
from store import store

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


def _load_task(record_id: str):
    try:
        return task_service.get_task(store.client, g.user, record_id), None
    except PermissionError as exc:
        return None, json_error(str(exc), status=403)


def _guarded(record_id: str):
    """Common preamble for mutating task routes: CSRF, then ownership."""
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return payload, None, csrf_error
    task, error = _load_task(record_id)
    return payload, task, error


@tasks_bp.route("/<record_id>/subtasks", methods=["POST"])
def create_subtask(record_id):
    payload, parent, error = _guarded(record_id)
    if error:
        return error
    form = load_form(SubtaskForm, payload)
    if not form.validate():
        return json_form_error(form)

    client = store.client
    siblings = task_service.list_tasks_for_idea(client, g.user, parent.idea_id)
    try:
        subtask = task_service.create_subtask(client, g.user, parent, siblings, form.name.data)
    except ValueError as exc:
        return json_error(str(exc))
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to add the subtask.")
    return json_success(201, message="Subtask added.", task=subtask.to_dict())


@tasks_bp.route("/<record_id>", methods=["PATCH"])
def update_task(record_id):
    payload, task, error = _guarded(record_id)
    if error:
        return error

    notes = payload.get("notes")
    outcome, name = resolve_draft(payload.get("name"), allow_delete=True)

    client = store.client
    try:
        if outcome is EditOutcome.DELETE:
            siblings = task_service.list_tasks_for_idea(client, g.user, task.idea_id)
            orphaned = task_service.delete_task(client, task, siblings)
            return json_success(message="Task deleted.", deleted=True, orphaned=orphaned)
        if outcome is EditOutcome.SAVE:
            task_service.rename_task(client, task, name)
        if notes is not None:
            task_service.update_task_notes(client, task, str(notes))
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to save the task.", task=task.to_dict())
    return json_success(message="Task saved.", task=task.to_dict())


@tasks_bp.route("/<record_id>", methods=["DELETE"])
def delete_task(record_id):
    _payload, task, error = _guarded(record_id)
    if error:
        return error
    client = store.client
    siblings = task_service.list_tasks_for_idea(client, g.user, task.idea_id)
    try:
        orphaned = task_service.delete_task(client, task, siblings)
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to delete the task.")
    return json_success(message="Task deleted.", orphaned=orphaned)


@tasks_bp.route("/<record_id>/complete", methods=["POST"])
def toggle_completed(record_id):
    _payload, task, error = _guarded(record_id)
    if error:
        return error
    try:
        task_service.toggle_completed(store.client, task)
    except RecordStoreError as exc:
        return record_store_error_response(
            exc, "Unable to update the task.", task=task.to_dict()
        )
    return json_success(task=task.to_dict())


@tasks_bp.route("/<record_id>/focus", methods=["POST"])
def toggle_focus(record_id):
    _payload, task, error = _guarded(record_id)
    if error:
        return error
    client = store.client
    today_tasks = []
    if not task.focus and task.order_today is None:
        today_tasks = task_service.list_today_tasks(client, g.user)
    try:
        task_service.toggle_focus(client, task, today_tasks)
    except RecordStoreError as exc:
        return record_store_error_response(
            exc, "Unable to update the task.", task=task.to_dict()
        )
    return json_success(task=task.to_dict())


@tasks_bp.route("/<record_id>/milestone", methods=["POST"])
def assign_milestone(record_id):
    payload, task, error = _guarded(record_id)
    if error:
        return error
    milestone_id = payload.get("milestone_id") or None
    client = store.client
    if milestone_id:
        try:
            milestone = milestone_service.get_milestone(client, g.user, milestone_id)
        except LookupError as exc:
            return json_error(str(exc), status=404)
        except PermissionError as exc:
            return json_error(str(exc), status=403)
        milestone_id = milestone.milestone_id
    try:
        task_service.assign_milestone(client, task, milestone_id)
    except RecordStoreError as exc:
        return record_store_error_response(
            exc, "Unable to update the task.", task=task.to_dict()
        )
    return json_success(task=task.to_dict())
