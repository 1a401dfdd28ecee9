"""
Reconciliation Engine - partitions candidates into inserts and updates.

Matching uses the natural key: a candidate whose non-empty email equals an
existing record's email (case-insensitively) updates that record; every
other candidate becomes a new record. When existing records share an email
the first one in snapshot order wins.

Update merge: every importable field of the candidate overwrites the
original, blanks included (full overwrite, not a sparse patch). Audit logs
are never taken from the row; one import entry is prepended to the
original's activity and communications logs, which are kept in full.

Nothing is persisted here. The result goes back to the caller for review.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Collection, Sequence

from ..domain.ports.clock import Clock
from ..schemas.imports import (
    CandidateRecord,
    ImportResult,
    NewRecord,
    RowError,
    UpdateRecord,
)
from ..schemas.member import Member, MemberFields
from ..services.audit import AuditTrail
from .row_mapper import IMPORTABLE_FIELDS

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def new_member_id() -> str:
    return str(uuid.uuid4())


def overlay_fields(writable_fields: Collection[str] | None) -> frozenset[str]:
    if writable_fields is None:
        return IMPORTABLE_FIELDS
    return IMPORTABLE_FIELDS & frozenset(writable_fields)


def merge_candidate(original: Member, fields: MemberFields, overlay: Collection[str]) -> Member:
    """Overlay the candidate's ``overlay`` fields onto a copy of ``original``."""
    merged = original.model_dump()
    merged.update(fields.model_dump(include=set(overlay)))
    return Member.model_validate(merged)


def reconcile(
    candidates: Sequence[CandidateRecord],
    existing_records: Sequence[Member],
    *,
    clock: Clock,
    id_factory: IdFactory = new_member_id,
    writable_fields: Collection[str] | None = None,
    author_role: str | None = None,
) -> ImportResult:
    """
    Match candidates against existing records.

    Args:
        candidates: Mapped rows, in file order
        existing_records: Snapshot of the record store
        clock: Timestamp source for audit entries and creation time
        id_factory: Mints ids for new records
        writable_fields: Fields the acting role may write; None means all
        author_role: Recorded on synthesized audit entries

    Returns:
        ImportResult: new records, (merged, original) pairs and the rows
        rejected for reusing an email already claimed earlier in the batch
    """
    trail = AuditTrail(clock, author_role)
    overlay = overlay_fields(writable_fields)

    by_email: dict[str, Member] = {}
    for record in existing_records:
        key = record.email.strip().casefold()
        if key and key not in by_email:
            by_email[key] = record

    result = ImportResult()
    claimed: dict[str, int] = {}

    for candidate in candidates:
        key = candidate.fields.email.strip().casefold()

        if key and key in claimed:
            result.errors.append(
                RowError(
                    row_number=candidate.row_number,
                    message=(
                        f"Email '{candidate.fields.email}' already used by row "
                        f"{claimed[key]} of this file"
                    ),
                )
            )
            continue
        if key:
            claimed[key] = candidate.row_number

        original = by_email.get(key) if key else None
        if original is not None:
            merged = merge_candidate(original, candidate.fields, overlay)
            merged = trail.log_import_update(merged, original)
            result.updated_pairs.append(
                UpdateRecord(row_number=candidate.row_number, record=merged, original=original)
            )
            continue

        now = clock.now()
        record = Member(
            id=id_factory(),
            created_at=now,
            **candidate.fields.model_dump(),
        )
        result.new_records.append(
            NewRecord(row_number=candidate.row_number, record=trail.log_import_create(record))
        )

    logger.debug(
        "operation=reconcile candidates=%d inserts=%d updates=%d rejected=%d",
        len(candidates),
        len(result.new_records),
        len(result.updated_pairs),
        len(result.errors),
    )
    return result
