"""Shared helpers for route blueprints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import current_app, g, jsonify, request
from flask_wtf.csrf import generate_csrf, validate_csrf
from werkzeug.datastructures import MultiDict
from wtforms.validators import ValidationError

from services.record_store import RecordStoreError

__all__ = [
    "NO_USER_MESSAGE",
    "check_csrf",
    "json_error",
    "json_form_error",
    "json_success",
    "load_form",
    "record_store_error_response",
    "request_payload",
    "validate_request_csrf",
]

NO_USER_MESSAGE = "No logged-in user. Please log in again."


def validate_request_csrf(token: str | None) -> tuple[bool, str | None]:
    """Validate CSRF tokens supplied with JSON payloads."""
    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return True, None
    if not token:
        return False, "The CSRF token is missing."
    try:
        validate_csrf(token)
    except ValidationError:
        return (
            False,
            "The CSRF token is invalid or has expired. Please refresh and try again.",
        )
    except Exception:
        return False, "The CSRF token is invalid."
    return True, None


def _csrf_token_value() -> Optional[str]:
    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return None
    return generate_csrf()


def request_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def json_success(status: int = 200, **values):
    response = {"success": True, "csrf_token": _csrf_token_value()}
    response.update(values)
    return jsonify(response), status


def json_error(message: str, *, status: int = 400, **values):
    """Return a JSON error response with a refreshed CSRF token."""
    response = {
        "success": False,
        "message": message,
        "csrf_token": _csrf_token_value(),
    }
    response.update(values)
    return jsonify(response), status


def json_form_error(form, message: str | None = None, status: int = 400):
    """Return a JSON response detailing form errors."""
    return json_error(
        message or "Please correct the highlighted fields.",
        status=status,
        errors=form.errors,
    )


def load_form(form_class, payload: Dict[str, Any]):
    """Build ``form_class`` from a JSON payload.

    List values become repeated form values so multi-select fields receive
    every entry. CSRF is checked separately through ``check_csrf``.
    """
    formdata = MultiDict()
    for name, value in payload.items():
        if name == "csrf_token" or value is None:
            continue
        if isinstance(value, list):
            for item in value:
                formdata.add(name, str(item))
        elif isinstance(value, bool):
            formdata.add(name, "y" if value else "")
        else:
            formdata.add(name, str(value))
    form = form_class(meta={"csrf": False})
    form.process(formdata=formdata)
    return form


def check_csrf(payload: Dict[str, Any]):
    """Return an error response when the request carries no valid CSRF token."""
    token = request.headers.get("X-CSRFToken") or payload.get("csrf_token")
    csrf_valid, csrf_message = validate_request_csrf(token)
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")
    return None


def record_store_error_response(error: RecordStoreError, message: str, **values):
    """Map a record store failure onto a JSON response.

    The store's own 404 is passed through; every other failure is a 502.
    """
    status = 404 if error.status_code == 404 else 502
    logging.warning(
        "Record store error for user %s: %s",
        getattr(getattr(g, "user", None), "id", None),
        error,
    )
    return json_error(f"{message} {error}".strip(), status=status, **values)
