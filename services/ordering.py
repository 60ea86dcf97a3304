"""Ordered-list reconciliation for rank fields.

A sibling group (top-level tasks of an idea, the sub-tasks of one parent, the
Today list, the ideas of a user) is displayed as its incomplete members sorted
by rank, followed by its completed members sorted by completion time, newest
first. Only incomplete members are ever renumbered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, List, Optional, Sequence, TypeVar

from services.record_store import MAX_RECORDS_PER_REQUEST, RecordStoreError

T = TypeVar("T")

BATCH_SIZE = MAX_RECORDS_PER_REQUEST
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class BatchOutcome:
    """One PATCH request issued while persisting ranks."""

    index: int
    record_ids: List[str]
    succeeded: bool
    error: Optional[str] = None


@dataclass
class PersistResult:
    """Which batches of a rank update reached the record store."""

    rank_field: str
    batches: List[BatchOutcome] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    error: Optional[RecordStoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def request_count(self) -> int:
        return len(self.batches)

    @property
    def committed_ids(self) -> List[str]:
        return [
            record_id
            for batch in self.batches
            if batch.succeeded
            for record_id in batch.record_ids
        ]

    @property
    def failed_ids(self) -> List[str]:
        failed = [
            record_id
            for batch in self.batches
            if not batch.succeeded
            for record_id in batch.record_ids
        ]
        return failed + list(self.skipped_ids)

    def to_dict(self) -> dict:
        return {
            "rank_field": self.rank_field,
            "requests": self.request_count,
            "committed_ids": self.committed_ids,
            "failed_ids": self.failed_ids,
        }


@dataclass
class ReorderResult:
    items: List[Any]
    changed: bool
    persisted: Optional[PersistResult] = None

    @property
    def ok(self) -> bool:
        return self.persisted is None or self.persisted.ok


def chunked(items: Sequence[T], size: int = BATCH_SIZE) -> Iterator[List[T]]:
    if size < 1:
        raise ValueError("Batch size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def incomplete_in_rank_order(items: Iterable[Any], rank_field: str) -> List[Any]:
    """Incomplete members sorted by rank; ties keep their original order."""
    pending = [item for item in items if not item.completed]
    return sorted(pending, key=lambda item: item.get_rank(rank_field))


def completed_in_time_order(items: Iterable[Any]) -> List[Any]:
    done = [item for item in items if item.completed]
    return sorted(done, key=lambda item: item.completed_time or _OLDEST, reverse=True)


def display_order(items: Iterable[Any], rank_field: str) -> List[Any]:
    items = list(items)
    return incomplete_in_rank_order(items, rank_field) + completed_in_time_order(items)


def next_rank(items: Iterable[Any]) -> int:
    """Rank for a member appended after the incomplete siblings."""
    return sum(1 for item in items if not item.completed) + 1


def move(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    size = len(items)
    if not 0 <= old_index < size or not 0 <= new_index < size:
        raise ValueError(
            f"Move from {old_index} to {new_index} is outside a list of {size} items"
        )
    updated = list(items)
    moved = updated.pop(old_index)
    updated.insert(new_index, moved)
    return updated


def renumber(items: Sequence[Any], rank_field: str) -> None:
    for position, item in enumerate(items, start=1):
        item.set_rank(rank_field, position)


def persist_ranks(
    client,
    table: str,
    items: Sequence[Any],
    rank_field: str,
    *,
    batch_size: int = BATCH_SIZE,
) -> PersistResult:
    """PATCH the current ``rank_field`` of every item, ``batch_size`` records at a time.

    Batches are sent in order and the first failure stops the remaining ones.
    Batches that were already accepted stay persisted.
    """
    result = PersistResult(rank_field=rank_field)
    batches = list(chunked(list(items), batch_size))
    for index, batch in enumerate(batches):
        record_ids = [item.id for item in batch]
        updates = [(item.id, {rank_field: item.get_rank(rank_field)}) for item in batch]
        try:
            client.update_records(table, updates)
        except RecordStoreError as error:
            logging.warning(
                "Rank update stopped at batch %s of %s for %s.%s: %s",
                index + 1,
                len(batches),
                table,
                rank_field,
                error,
            )
            result.batches.append(
                BatchOutcome(index=index, record_ids=record_ids, succeeded=False, error=str(error))
            )
            result.skipped_ids = [
                item.id for later in batches[index + 1 :] for item in later
            ]
            result.error = error
            return result
        result.batches.append(BatchOutcome(index=index, record_ids=record_ids, succeeded=True))
    return result


def reorder(
    client,
    table: str,
    siblings: Sequence[Any],
    rank_field: str,
    old_index: int,
    new_index: int,
) -> ReorderResult:
    """Move one incomplete sibling and persist a contiguous 1..n ranking.

    ``old_index`` and ``new_index`` address the incomplete members as they are
    displayed. The items are renumbered before persistence starts and are not
    rolled back when a batch fails.
    """
    ordered = incomplete_in_rank_order(siblings, rank_field)
    if old_index == new_index:
        return ReorderResult(items=display_order(siblings, rank_field), changed=False)

    updated = move(ordered, old_index, new_index)
    renumber(updated, rank_field)
    persisted = persist_ranks(client, table, updated, rank_field)
    return ReorderResult(
        items=updated + completed_in_time_order(siblings),
        changed=True,
        persisted=persisted,
    )


def shift_for_insert_at_top(
    client,
    table: str,
    siblings: Sequence[Any],
    rank_field: str,
) -> PersistResult:
    """Increment every incomplete sibling's rank by one to free rank 1.

    Ranks of records whose batch was not accepted are restored so that the
    in-memory items match what the record store holds.
    """
    pending = incomplete_in_rank_order(siblings, rank_field)
    previous = {item.id: item.get_rank(rank_field) for item in pending}
    for item in pending:
        item.set_rank(rank_field, previous[item.id] + 1)
    result = persist_ranks(client, table, pending, rank_field)
    if not result.ok:
        failed = set(result.failed_ids)
        for item in pending:
            if item.id in failed:
                item.set_rank(rank_field, previous[item.id])
    return result
