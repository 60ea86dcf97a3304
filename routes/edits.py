"""Inline edit routes: one field per session is edited at a time."""
from __future__ import annotations

from flask import Blueprint, g, session

from routes import check_csrf, json_error, json_success, record_store_error_response, request_payload
from services.edit_service import EditOutcome, EditSession, apply_edit
from services.record_store import RecordStoreError
from store import store

edits_bp = Blueprint("edits", __name__, url_prefix="/api/edits")


@edits_bp.route("/current", methods=["GET"])
def current_edit():
    slot = EditSession(session).current()
    return json_success(editing=slot.to_dict() if slot else None)


@edits_bp.route("/begin", methods=["POST"])
def begin_edit():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    try:
        slot = EditSession(session).begin(
            payload.get("kind") or "",
            payload.get("record_id") or "",
            payload.get("field") or "",
            payload.get("original") or "",
        )
    except ValueError as exc:
        return json_error(str(exc))
    return json_success(editing=slot.to_dict())


@edits_bp.route("/cancel", methods=["POST"])
def cancel_edit():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    slot = EditSession(session).cancel()
    return json_success(cancelled=slot.to_dict() if slot else None, editing=None)


@edits_bp.route("/commit", methods=["POST"])
def commit_edit():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error
    try:
        slot, outcome, value = EditSession(session).commit(
            payload.get("draft"), record_id=payload.get("record_id")
        )
    except LookupError as exc:
        return json_error(str(exc), status=409)
    except ValueError as exc:
        return json_error(str(exc), status=409)

    try:
        record = apply_edit(store.client, g.user, slot, outcome, value)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)
    except RecordStoreError as exc:
        return record_store_error_response(exc, "Unable to save your change.")

    return json_success(
        outcome=outcome,
        deleted=outcome is EditOutcome.DELETE,
        record=record.to_dict() if record is not None else None,
        editing=None,
    )
