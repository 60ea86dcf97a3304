"""Phone number one-time-passcode verification."""

from __future__ import annotations

import base64
import json
import logging
import re
import secrets
from datetime import timedelta
from http.client import RemoteDisconnected
from typing import Any, MutableMapping, Optional, Tuple
from urllib import request as urllib_request, error as urllib_error
from urllib.parse import quote, urlencode

from werkzeug.security import check_password_hash, generate_password_hash

from utils.fields import format_timestamp, parse_timestamp, utcnow

IDENTITY_VERIFY_URL = "https://verify.twilio.com/v2"
DEFAULT_COUNTRY_CODE = "1"
CONSOLE_CODE_LENGTH = 6
CONSOLE_CODE_TTL = timedelta(minutes=10)
CONSOLE_MAX_ATTEMPTS = 5
PENDING_SESSION_KEY = "pending_verification"


class IdentityError(RuntimeError):
    """Raised when a passcode cannot be sent or checked."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def normalize_phone_number(raw: Optional[str], default_country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Return ``raw`` in E.164 form (``+15551234567``).

    Ten digit numbers without a country code get ``default_country_code``.
    """
    text = (raw or "").strip()
    if not text:
        raise IdentityError("A phone number is required.", 400)
    has_plus = text.startswith("+")
    digits = re.sub(r"\D", "", text)
    if not has_plus:
        if text.startswith("00"):
            digits = digits[2:]
        elif len(digits) == 10:
            digits = f"{default_country_code}{digits}"
    if not 8 <= len(digits) <= 15 or digits.startswith("0"):
        raise IdentityError("Please enter a valid phone number.", 400)
    return f"+{digits}"


class VerifyServiceProvider:
    """Sends and checks passcodes through a hosted verification service."""

    name = "verify"

    def __init__(
        self,
        service_sid: str,
        account_sid: str,
        auth_token: str,
        *,
        base_url: str = IDENTITY_VERIFY_URL,
        timeout: float = 20,
    ):
        if not service_sid or not account_sid or not auth_token:
            raise IdentityError("The verification service is not configured.", 503)
        self.service_sid = service_sid
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict:
        credentials = f"{self.account_sid}:{self.auth_token}".encode("utf-8")
        return {
            "Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}",
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def _post(self, path: str, form: dict) -> Tuple[int, Any]:
        url = f"{self.base_url}/Services/{quote(self.service_sid)}/{path}"
        request = urllib_request.Request(
            url,
            data=urlencode(form).encode("utf-8"),
            headers=self._headers(),
            method="POST",
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                status = response.getcode()
                raw = response.read()
        except urllib_error.HTTPError as error:
            status = error.code
            raw = error.read()
        except (RemoteDisconnected, urllib_error.URLError, TimeoutError) as error:
            raise IdentityError("Unable to reach the verification service.") from error

        text = raw.decode("utf-8") if raw else ""
        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError:
            body = {}
        if status >= 400:
            logging.warning(
                "Verification service call failed",
                extra={"url": url, "status": status, "body": text[:500]},
            )
        return status, body

    def send_code(self, phone_number: str, session: MutableMapping) -> None:
        status, body = self._post("Verifications", {"To": phone_number, "Channel": "sms"})
        if status >= 400:
            raise IdentityError(
                (body or {}).get("message") or "Unable to send the verification code.",
                status,
            )
        session[PENDING_SESSION_KEY] = {"phone": phone_number}

    def check_code(self, phone_number: str, code: str, session: MutableMapping) -> bool:
        status, body = self._post("VerificationCheck", {"To": phone_number, "Code": code})
        if status == 404:
            raise IdentityError("The verification code has expired. Please request a new one.", 400)
        if status >= 400:
            raise IdentityError(
                (body or {}).get("message") or "Unable to check the verification code.",
                status,
            )
        approved = (body or {}).get("status") == "approved"
        if approved:
            session.pop(PENDING_SESSION_KEY, None)
        return approved


class ConsoleProvider:
    """Development provider: codes are written to the log instead of sent."""

    name = "console"

    def __init__(self, *, ttl: timedelta = CONSOLE_CODE_TTL, max_attempts: int = CONSOLE_MAX_ATTEMPTS):
        self.ttl = ttl
        self.max_attempts = max_attempts

    @staticmethod
    def generate_code() -> str:
        return "".join(secrets.choice("0123456789") for _ in range(CONSOLE_CODE_LENGTH))

    def send_code(self, phone_number: str, session: MutableMapping) -> str:
        code = self.generate_code()
        session[PENDING_SESSION_KEY] = {
            "phone": phone_number,
            "code_hash": generate_password_hash(code),
            "expires_at": format_timestamp(utcnow() + self.ttl),
            "attempts": 0,
        }
        logging.info("Verification code for %s: %s", phone_number, code)
        return code

    def check_code(self, phone_number: str, code: str, session: MutableMapping) -> bool:
        pending = session.get(PENDING_SESSION_KEY)
        if not pending or pending.get("phone") != phone_number:
            raise IdentityError("No verification is pending for this phone number.", 400)
        expires_at = parse_timestamp(pending.get("expires_at"))
        if expires_at is None or expires_at <= utcnow():
            session.pop(PENDING_SESSION_KEY, None)
            raise IdentityError("The verification code has expired. Please request a new one.", 400)
        attempts = int(pending.get("attempts") or 0) + 1
        if attempts > self.max_attempts:
            session.pop(PENDING_SESSION_KEY, None)
            raise IdentityError("Too many attempts. Please request a new code.", 429)
        if check_password_hash(pending.get("code_hash") or "", (code or "").strip()):
            session.pop(PENDING_SESSION_KEY, None)
            return True
        session[PENDING_SESSION_KEY] = {**pending, "attempts": attempts}
        return False


def pending_phone_number(session: MutableMapping) -> Optional[str]:
    pending = session.get(PENDING_SESSION_KEY) or {}
    return pending.get("phone")


def get_provider(config: MutableMapping):
    """Build the identity provider named by ``IDENTITY_PROVIDER``.

    Without one, the console provider is only used in debug or testing mode.
    """
    provider_name = (config.get("IDENTITY_PROVIDER") or "").lower()
    if not provider_name:
        if not (config.get("DEBUG") or config.get("TESTING")):
            raise IdentityError("No identity provider is configured.", 503)
        provider_name = "console"
    if provider_name == "console":
        return ConsoleProvider()
    if provider_name == "verify":
        return VerifyServiceProvider(
            config.get("IDENTITY_SERVICE_SID"),
            config.get("IDENTITY_ACCOUNT_SID"),
            config.get("IDENTITY_AUTH_TOKEN"),
            base_url=config.get("IDENTITY_VERIFY_URL") or IDENTITY_VERIFY_URL,
            timeout=float(config.get("RECORD_STORE_TIMEOUT") or 20),
        )
    raise IdentityError(f"Unknown identity provider '{provider_name}'", 503)
