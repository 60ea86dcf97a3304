"""Utilities for interacting with the record store REST API."""

from __future__ import annotations

import json
import logging
from http.client import RemoteDisconnected
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib import request as urllib_request, error as urllib_error
from urllib.parse import quote, urlencode

RECORD_STORE_API_URL = "https://api.airtable.com/v0"
MAX_RECORDS_PER_REQUEST = 10
DEFAULT_TIMEOUT = 20


class RecordStoreError(RuntimeError):
    """Raised when a record store API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingConfigurationError(RuntimeError):
    """Raised when the record store credentials are not configured."""


def _quote_formula_value(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE()" if value else "FALSE()"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def build_filter_formula(filters: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Combine equality filters into a single formula joined with AND."""
    if not filters:
        return None
    clauses = [
        f"{{{name}}}={_quote_formula_value(value)}" for name, value in filters.items()
    ]
    if len(clauses) == 1:
        return clauses[0]
    return f"AND({', '.join(clauses)})"


def _sort_params(sort: Optional[Sequence[Tuple[str, str]]]) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    for index, (field, direction) in enumerate(sort or ()):
        direction = (direction or "asc").lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction '{direction}'")
        params.append((f"sort[{index}][field]", field))
        params.append((f"sort[{index}][direction]", direction))
    return params


class RecordStoreClient:
    """Thin client over the record store tables (Ideas, Tasks, Milestones, Users)."""

    def __init__(
        self,
        base_id: str,
        api_key: str,
        *,
        api_url: str = RECORD_STORE_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not base_id or not api_key:
            raise MissingConfigurationError("Missing record store credentials.")
        self.base_id = base_id
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "BigIdea-Server",
        }

    def _table_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/{quote(self.base_id)}/{quote(table)}"
        if record_id:
            url = f"{url}/{quote(record_id)}"
        return url

    def _request(
        self,
        method: str,
        url: str,
        payload: Optional[dict] = None,
    ) -> Tuple[int, Any]:
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")

        request = urllib_request.Request(
            url,
            data=data,
            headers=self._headers(),
            method=method,
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                status = response.getcode()
                raw = response.read()
        except urllib_error.HTTPError as error:
            status = error.code
            raw = error.read()
        except RemoteDisconnected as error:
            raise RecordStoreError("The record store closed the connection unexpectedly.") from error
        except urllib_error.URLError as error:
            raise RecordStoreError("Unable to reach the record store.") from error
        except TimeoutError as error:
            raise RecordStoreError("The record store did not respond in time.") from error

        text = raw.decode("utf-8") if raw else ""
        if status >= 400:
            logging.warning(
                "Record store API call failed",
                extra={"method": method, "url": url, "status": status, "body": text[:500]},
            )
        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError:
            body = {}
        return status, body

    @staticmethod
    def _raise_for_status(status: int, message: str) -> None:
        if status in (401, 403):
            raise RecordStoreError("Unauthorized", status)
        if status == 404:
            raise RecordStoreError("Record not found", status)
        if status == 422:
            raise RecordStoreError(f"{message}: invalid request", status)
        if status == 429:
            raise RecordStoreError(f"{message}: rate limited", status)
        if status >= 400:
            raise RecordStoreError(message, status)

    def list_records(
        self,
        table: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        formula: Optional[str] = None,
        sort: Optional[Sequence[Tuple[str, str]]] = None,
        page_size: int = 100,
        max_records: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return every record of ``table`` matching the filters, following pagination."""
        params: List[Tuple[str, str]] = []
        filter_formula = formula or build_filter_formula(filters)
        if filter_formula:
            params.append(("filterByFormula", filter_formula))
        params.extend(_sort_params(sort))
        params.append(("pageSize", str(page_size)))
        if max_records is not None:
            params.append(("maxRecords", str(max_records)))

        records: List[Dict[str, Any]] = []
        offset: Optional[str] = None
        while True:
            page_params = list(params)
            if offset:
                page_params.append(("offset", offset))
            url = f"{self._table_url(table)}?{urlencode(page_params)}"
            status, payload = self._request("GET", url)
            self._raise_for_status(status, f"Unable to list {table}")
            if not isinstance(payload, dict):
                raise RecordStoreError(f"Unexpected payload while listing {table}.")
            records.extend(payload.get("records") or [])
            offset = payload.get("offset")
            if not offset:
                break
        return records

    def find_first(self, table: str, filters: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        records = self.list_records(table, filters=filters, max_records=1)
        return records[0] if records else None

    def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        status, payload = self._request("GET", self._table_url(table, record_id))
        self._raise_for_status(status, f"Unable to fetch {table} record")
        return payload

    def create_records(
        self,
        table: str,
        records: Iterable[Mapping[str, Any]],
        *,
        typecast: bool = True,
    ) -> List[Dict[str, Any]]:
        """Create records from field mappings; returns the created records."""
        body = {
            "records": [{"fields": dict(fields)} for fields in records],
            "typecast": typecast,
        }
        if len(body["records"]) > MAX_RECORDS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_RECORDS_PER_REQUEST} records can be created per request"
            )
        status, payload = self._request("POST", self._table_url(table), payload=body)
        self._raise_for_status(status, f"Unable to create {table} records")
        return payload.get("records") or []

    def create_record(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        created = self.create_records(table, [fields])
        if not created:
            raise RecordStoreError(f"The record store returned no {table} record.")
        return created[0]

    def update_records(
        self,
        table: str,
        updates: Sequence[Tuple[str, Mapping[str, Any]]],
    ) -> List[Dict[str, Any]]:
        """PATCH up to ten ``(record_id, fields)`` pairs in a single request."""
        if not updates:
            return []
        if len(updates) > MAX_RECORDS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_RECORDS_PER_REQUEST} records can be updated per request"
            )
        body = {
            "records": [
                {"id": record_id, "fields": dict(fields)} for record_id, fields in updates
            ]
        }
        status, payload = self._request("PATCH", self._table_url(table), payload=body)
        self._raise_for_status(status, f"Unable to update {table} records")
        return payload.get("records") or []

    def update_record(self, table: str, record_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        updated = self.update_records(table, [(record_id, fields)])
        return updated[0] if updated else {"id": record_id, "fields": dict(fields)}

    def delete_record(self, table: str, record_id: str) -> None:
        status, _ = self._request("DELETE", self._table_url(table, record_id))
        self._raise_for_status(status, f"Unable to delete {table} record")


def update_optimistically(
    client: RecordStoreClient,
    table: str,
    record: Any,
    changes: Mapping[str, Any],
    fields: Mapping[str, Any],
) -> Any:
    """Apply ``changes`` to ``record`` and PATCH ``fields``.

    The previous attribute values are restored when the record store rejects
    the update, then the error is re-raised.
    """
    previous = {name: getattr(record, name) for name in changes}
    for name, value in changes.items():
        setattr(record, name, value)
    try:
        client.update_record(table, record.id, fields)
    except RecordStoreError:
        for name, value in previous.items():
            setattr(record, name, value)
        raise
    return record
