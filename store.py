"""Flask extension exposing the configured record store client."""

from __future__ import annotations

from flask import current_app

from services.record_store import (
    DEFAULT_TIMEOUT,
    RECORD_STORE_API_URL,
    MissingConfigurationError,
    RecordStoreClient,
)


class RecordStore:
    """Holds the per-application record store client.

    Credentials are read lazily so that a missing configuration surfaces as a
    request-level error instead of preventing the app from starting.
    """

    extension_name = "record_store"

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.config.setdefault("RECORD_STORE_BASE_ID", None)
        app.config.setdefault("RECORD_STORE_API_KEY", None)
        app.config.setdefault("RECORD_STORE_API_URL", RECORD_STORE_API_URL)
        app.config.setdefault("RECORD_STORE_TIMEOUT", DEFAULT_TIMEOUT)
        app.extensions[self.extension_name] = {"client": None}

    @property
    def client(self) -> RecordStoreClient:
        state = current_app.extensions[self.extension_name]
        client = state.get("client")
        if client is None:
            config = current_app.config
            base_id = config.get("RECORD_STORE_BASE_ID")
            api_key = config.get("RECORD_STORE_API_KEY")
            if not base_id or not api_key:
                raise MissingConfigurationError("Missing record store credentials.")
            client = RecordStoreClient(
                base_id,
                api_key,
                api_url=config.get("RECORD_STORE_API_URL") or RECORD_STORE_API_URL,
                timeout=float(config.get("RECORD_STORE_TIMEOUT") or DEFAULT_TIMEOUT),
            )
            state["client"] = client
        return client

    def set_client(self, client) -> None:
        """Replace the client for the current app (used by tests and scripts)."""
        current_app.extensions[self.extension_name]["client"] = client

    def reset(self) -> None:
        current_app.extensions[self.extension_name]["client"] = None


store = RecordStore()
