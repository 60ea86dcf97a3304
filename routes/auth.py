"""Phone login, logout and onboarding routes."""
from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, session

from forms import OnboardingForm, PhoneLoginForm, VerifyCodeForm
from routes import (
    NO_USER_MESSAGE,
    check_csrf,
    json_error,
    json_form_error,
    json_success,
    load_form,
    request_payload,
)
from services.identity_service import (
    IdentityError,
    get_provider,
    normalize_phone_number,
    pending_phone_number,
)
from services.user_service import complete_onboarding, find_or_create_user
from store import store

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# Endpoints reachable without a session
PUBLIC_ENDPOINTS = ("auth.request_code", "auth.verify_code", "auth.logout")


def _identity_error(error: IdentityError):
    return json_error(str(error), status=error.status_code or 400)


@auth_bp.route("/otp", methods=["POST"])
def request_code():
    """Send a one-time passcode to the phone number in the payload."""
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error

    form = load_form(PhoneLoginForm, payload)
    if not form.validate():
        return json_form_error(form)

    try:
        phone_number = normalize_phone_number(form.phone.data)
        provider = get_provider(current_app.config)
        provider.send_code(phone_number, session)
    except IdentityError as error:
        return _identity_error(error)

    return json_success(message="Verification code sent.", phone=phone_number)


@auth_bp.route("/verify", methods=["POST"])
def verify_code():
    """Check the passcode and start a session for the matching user."""
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error

    form = load_form(VerifyCodeForm, payload)
    if not form.validate():
        return json_form_error(form)

    try:
        phone_number = normalize_phone_number(payload.get("phone") or pending_phone_number(session))
        provider = get_provider(current_app.config)
        approved = provider.check_code(phone_number, form.code.data, session)
    except IdentityError as error:
        return _identity_error(error)
    if not approved:
        return json_error("Invalid verification code.", status=400)

    user = find_or_create_user(store.client, phone_number)
    session.clear()
    session["user_id"] = user.id
    session["user"] = user.name
    logging.info("User %s logged in", user.id)
    return json_success(
        message="Logged in.",
        user=user.to_dict(),
        needs_onboarding=user.needs_onboarding,
    )


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    g.user = None
    return json_success(message="Logged out.")


@auth_bp.route("/me", methods=["GET"])
def current_user():
    if g.user is None:
        return json_error(NO_USER_MESSAGE, status=401)
    return json_success(user=g.user.to_dict())


@auth_bp.route("/onboarding", methods=["POST"])
def onboarding():
    payload = request_payload()
    csrf_error = check_csrf(payload)
    if csrf_error:
        return csrf_error

    form = load_form(OnboardingForm, payload)
    if not form.validate():
        return json_form_error(form)

    user = complete_onboarding(store.client, g.user, form.name.data, form.goals.data or [])
    session["user"] = user.name
    return json_success(message="Welcome aboard!", user=user.to_dict())
