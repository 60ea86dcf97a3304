"""The Today list: tasks flagged for focus across every idea."""
from __future__ import annotations

from flask import Blueprint, g

from forms import ReorderForm
from routes import check_csrf, json_error, json_form_error, json_success, load_form, request_payload
from routes.ideas import reorder_response
from services import task_service
from store import store

today_bp = Blueprint("today", __name__, url_prefix="/api/today")


@today_bp.route("", methods=["GET"])
def list_today():
    tasks = task_service.list_today_tasks(store.client, g.user)
    return json_success(
        tasks=[task.to_dict() for task in tasks],
        progress=task_service.progress_summary(tasks),
    )


@today_bp.route("/reorder", methods=["POST"])
def reorder_today():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    form = load_form(ReorderForm, payload)
    if not form.validate():
        return json_form_error(form)

    client = store.client
    tasks = task_service.list_today_tasks(client, g.user)
    try:
        result = task_service.reorder_today(
            client, tasks, form.old_index.data, form.new_index.data
        )
    except ValueError as exc:
        return json_error(str(exc))
    return reorder_response(result, "Unable to save the new Today order.")
