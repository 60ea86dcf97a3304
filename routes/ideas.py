"""Idea and task tree routes."""
from __future__ import annotations

from flask import Blueprint, g, session

from forms import IdeaForm, ReorderForm, TaskForm
from routes import (
    check_csrf,
    json_error,
    json_form_error,
    json_success,
    load_form,
    record_store_error_response,
    request_payload,
)
from services import idea_service, task_service
from services.edit_service import EditOutcome, resolve_draft
from services.ordering import ReorderResult
from services.record_store import RecordStoreError
from store import store

ideas_bp = Blueprint("ideas", __name__, url_prefix="/api/ideas")

DELETE_CONFIRM_KEY = "delete_confirm"


def reorder_response(result: ReorderResult, message: str):
    """Serialize a reorder, reporting the batches that did not persist."""
    values = {"items": [item.to_dict() for item in result.items]}
    if result.persisted is not None:
        values["persisted"] = result.persisted.to_dict()
    if not result.ok:
        return record_store_error_response(result.persisted.error, message, **values)
    return json_success(changed=result.changed, **values)


def _load_idea(idea_id: str):
    try:
        return idea_service.get_idea(store.client, g.user, idea_id), None
    except LookupError as exc:
        return None, json_error(str(exc), status=404)
    except PermissionError as exc:
        return None, json_error(str(exc), status=403)


@ideas_bp.route("", methods=["GET"])
def list_ideas():
    client = store.client
    ideas = idea_service.list_ideas(client, g.user)
    tasks = task_service.list_tasks_for_user(client, g.user)
    return json_success(ideas=idea_service.summarize_ideas(ideas, tasks))


@ideas_bp.route("", methods=["POST"])
def create_idea():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(IdeaForm, payload)
    if not form.validate():
        return json_form_error(form)

    client = store.client
    ideas = idea_service.list_ideas(client, g.user)
    try:
        idea = idea_service.create_idea(
            client, g.user, ideas, form.title.data, form.summary.data or ""
        )
    except RecordStoreError as error:
        return record_store_error_response(error, "Unable to create the idea.")
    return json_success(201, message="Idea created.", idea=idea.to_dict())


@ideas_bp.route("/reorder", methods=["POST"])
def reorder_ideas():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(ReorderForm, payload)
    if not form.validate():
        return json_form_error(form)

    client = store.client
    ideas = idea_service.list_ideas(client, g.user)
    try:
        result = idea_service.reorder_ideas(
            client, ideas, form.old_index.data, form.new_index.data
        )
    except ValueError as exc:
        return json_error(str(exc))
    return reorder_response(result, "Unable to save the new idea order.")


@ideas_bp.route("/<idea_id>", methods=["GET"])
def idea_detail(idea_id):
    idea, error = _load_idea(idea_id)
    if error:
        return error
    tasks = task_service.list_tasks_for_idea(store.client, g.user, idea.idea_id)
    return json_success(
        idea=idea.to_dict(),
        tasks=[node.to_dict() for node in task_service.build_task_tree(tasks)],
        progress=task_service.progress_summary(tasks),
    )


@ideas_bp.route("/<idea_id>", methods=["PATCH"])
def update_idea(idea_id):
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    idea, error = _load_idea(idea_id)
    if error:
        return error

    summary = payload.get("summary")
    outcome, title = resolve_draft(payload.get("title"), allow_delete=True)

    client = store.client
    try:
        if outcome is EditOutcome.DELETE:
            idea_service.delete_idea(client, idea)
            return json_success(message="Idea deleted.", deleted=True)
        if outcome is EditOutcome.SAVE:
            idea_service.rename_idea(client, idea, title)
        if summary is not None:
            idea_service.update_idea_summary(client, idea, str(summary))
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to save the idea.", idea=idea.to_dict())
    return json_success(message="Idea saved.", idea=idea.to_dict())


@ideas_bp.route("/<idea_id>", methods=["DELETE"])
def delete_idea(idea_id):
    """Delete an idea once the same request has been confirmed."""
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    idea, error = _load_idea(idea_id)
    if error:
        return error

    if not payload.get("confirm") or session.get(DELETE_CONFIRM_KEY) != idea.idea_id:
        session[DELETE_CONFIRM_KEY] = idea.idea_id
        return json_error(
            f"Delete '{idea.title}'? Send the request again with confirm to delete it.",
            status=409,
            confirm_required=True,
        )

    session.pop(DELETE_CONFIRM_KEY, None)
    try:
        idea_service.delete_idea(store.client, idea)
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to delete the idea.")
    return json_success(message="Idea deleted.")


@ideas_bp.route("/<idea_id>/tasks", methods=["GET"])
def list_tasks(idea_id):
    idea, error = _load_idea(idea_id)
    if error:
        return error
    tasks = task_service.list_tasks_for_idea(store.client, g.user, idea.idea_id)
    return json_success(tasks=[node.to_dict() for node in task_service.build_task_tree(tasks)])


@ideas_bp.route("/<idea_id>/tasks", methods=["POST"])
def create_task(idea_id):
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(TaskForm, payload)
    if not form.validate():
        return json_form_error(form)
    idea, error = _load_idea(idea_id)
    if error:
        return error

    client = store.client
    tasks = task_service.list_tasks_for_idea(client, g.user, idea.idea_id)
    try:
        task = task_service.create_task(
            client, g.user, idea, tasks, form.name.data, position=form.position.data or "bottom"
        )
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to add the task.")
    return json_success(201, message="Task added.", task=task.to_dict())


@ideas_bp.route("/<idea_id>/tasks/reorder", methods=["POST"])
def reorder_tasks(idea_id):
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(ReorderForm, payload)
    if not form.validate():
        return json_form_error(form)
    idea, error = _load_idea(idea_id)
    if error:
        return error

    client = store.client
    tasks = task_service.list_tasks_for_idea(client, g.user, idea.idea_id)
    try:
        if form.parent.data:
            result = task_service.reorder_subtasks(
                client, tasks, form.parent.data, form.old_index.data, form.new_index.data
            )
        else:
            result = task_service.reorder_top_level(
                client, tasks, form.old_index.data, form.new_index.data
            )
    except ValueError as exc:
        return json_error(str(exc))
    return reorder_response(result, "Unable to save the new task order.")
