from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from ..domain.ports.clock import Clock
from ..schemas.group import Group
from ..schemas.imports import CandidateRecord, ImportResult, RowError
from ..schemas.member import Member
from .csv_line import parse_line, split_records
from .reconcile import IdFactory, new_member_id, reconcile
from .row_mapper import map_row

logger = logging.getLogger(__name__)


def build_import(
    text: str,
    existing_records: Sequence[Member],
    existing_groups: Sequence[Group],
    *,
    clock: Clock,
    id_factory: IdFactory = new_member_id,
    writable_fields: Collection[str] | None = None,
    author_role: str | None = None,
) -> ImportResult:
    """
    Parse, map and reconcile a whole import file against a snapshot.

    The first non-blank record is the header. Data rows are numbered from 1.
    A bad row is reported and skipped; it never aborts the batch.
    """
    records = split_records(text)
    if not records:
        logger.info("operation=import action=build rows=0 reason=empty_input")
        return ImportResult()

    headers = parse_line(records[0])
    candidates: list[CandidateRecord] = []
    errors: list[RowError] = []

    for row_number, record in enumerate(records[1:], start=1):
        mapping = map_row(
            headers,
            parse_line(record),
            existing_groups,
            row_number=row_number,
            clock=clock,
            writable_fields=writable_fields,
        )
        errors.extend(mapping.errors)
        if mapping.candidate is not None:
            candidates.append(mapping.candidate)

    result = reconcile(
        candidates,
        existing_records,
        clock=clock,
        id_factory=id_factory,
        writable_fields=writable_fields,
        author_role=author_role,
    )
    result.errors = sorted([*errors, *result.errors], key=lambda error: error.row_number)

    logger.info(
        "operation=import action=build rows=%d inserts=%d updates=%d errors=%d",
        len(records) - 1,
        len(result.new_records),
        len(result.updated_pairs),
        len(result.errors),
    )
    return result
