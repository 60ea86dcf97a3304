"""In-memory stand-in for the record store client used by tests."""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from services.record_store import MAX_RECORDS_PER_REQUEST, RecordStoreError


def _matches(fields: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    for name, expected in (filters or {}).items():
        actual = fields.get(name)
        if isinstance(expected, bool):
            if bool(actual) != expected:
                return False
        elif str(actual if actual is not None else "") != str(expected):
            return False
    return True


def _sort_key(value: Any):
    if value is None or value == "":
        return (0, "")
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value))


class FakeRecordStore:
    """Keeps records per table and logs every write request.

    ``fail_update_calls`` holds zero-based indexes of ``update_records`` calls
    that should fail, ``fail_all_writes`` makes every write fail.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.update_calls: List[Tuple[str, List[Tuple[str, Dict[str, Any]]]]] = []
        self.create_calls: List[Tuple[str, List[Dict[str, Any]]]] = []
        self.delete_calls: List[Tuple[str, str]] = []
        self.fail_update_calls: set = set()
        self.fail_all_writes = False
        self.error_status = 500
        self._ids = itertools.count(1)

    # Test helpers
    def add(self, table: str, fields: Mapping[str, Any], record_id: Optional[str] = None) -> Dict[str, Any]:
        record_id = record_id or f"rec{next(self._ids):04d}"
        record = {
            "id": record_id,
            "fields": dict(fields),
            "createdTime": "2024-01-01T00:00:00.000Z",
        }
        self.tables.setdefault(table, {})[record_id] = record
        return record

    def fields(self, table: str, record_id: str) -> Dict[str, Any]:
        return self.tables[table][record_id]["fields"]

    def _fail(self, message: str):
        raise RecordStoreError(message, self.error_status)

    # Client interface
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
        records = [
            record
            for record in self.tables.get(table, {}).values()
            if _matches(record["fields"], filters)
        ]
        for field, direction in reversed(list(sort or ())):
            records.sort(
                key=lambda record: _sort_key(record["fields"].get(field)),
                reverse=direction == "desc",
            )
        if max_records is not None:
            records = records[:max_records]
        return [
            {"id": record["id"], "fields": dict(record["fields"]), "createdTime": record["createdTime"]}
            for record in records
        ]

    def find_first(self, table: str, filters: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        records = self.list_records(table, filters=filters, max_records=1)
        return records[0] if records else None

    def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        record = self.tables.get(table, {}).get(record_id)
        if record is None:
            raise RecordStoreError("Record not found", 404)
        return {"id": record["id"], "fields": dict(record["fields"]), "createdTime": record["createdTime"]}

    def create_records(self, table: str, records, *, typecast: bool = True) -> List[Dict[str, Any]]:
        records = [dict(fields) for fields in records]
        if len(records) > MAX_RECORDS_PER_REQUEST:
            raise ValueError("Too many records")
        self.create_calls.append((table, records))
        if self.fail_all_writes:
            self._fail(f"Unable to create {table} records")
        created = []
        for fields in records:
            clean = {name: value for name, value in fields.items() if value is not None}
            created.append(self.add(table, clean))
        return [dict(record) for record in created]

    def create_record(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self.create_records(table, [fields])[0]

    def update_records(self, table: str, updates) -> List[Dict[str, Any]]:
        updates = [(record_id, dict(fields)) for record_id, fields in updates]
        if len(updates) > MAX_RECORDS_PER_REQUEST:
            raise ValueError("Too many records")
        call_index = len(self.update_calls)
        self.update_calls.append((table, updates))
        if self.fail_all_writes or call_index in self.fail_update_calls:
            self._fail(f"Unable to update {table} records")
        updated = []
        for record_id, fields in updates:
            record = self.tables.get(table, {}).get(record_id)
            if record is None:
                raise RecordStoreError("Record not found", 404)
            for name, value in fields.items():
                if value is None:
                    record["fields"].pop(name, None)
                else:
                    record["fields"][name] = value
            updated.append({"id": record_id, "fields": dict(record["fields"])})
        return updated

    def update_record(self, table: str, record_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self.update_records(table, [(record_id, fields)])[0]

    def delete_record(self, table: str, record_id: str) -> None:
        self.delete_calls.append((table, record_id))
        if self.fail_all_writes:
            self._fail(f"Unable to delete {table} record")
        if record_id not in self.tables.get(table, {}):
            raise RecordStoreError("Record not found", 404)
        del self.tables[table][record_id]
