"""
Row Validator & Mapper - one parsed import row to one candidate member.

Strict checks reject the row (column count, missing name, malformed email).
Lenient checks never reject: unknown enum values fall back to defaults, an
unknown group leaves the member unassigned with an informational error, and
an unknown subgroup is dropped silently.
"""
from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..domain.ports.clock import Clock
from ..schemas.group import Group, find_group_by_name
from ..schemas.imports import CandidateRecord, RowError
from ..schemas.member import (
    LIST_FIELDS,
    AcademyLevel,
    MemberFields,
    MemberStatus,
    MemberType,
)

EnumT = TypeVar("EnumT", bound=Enum)

GROUP_NAME_COLUMN: Final = "group_name"

# Normalised header -> member field
HEADER_FIELDS: Final[dict[str, str]] = {
    "name": "name",
    "role": "role",
    "email": "email",
    "status": "status",
    "membertype": "member_type",
    "academylevel": "academy_level",
    "phone": "phone",
    "address": "address",
    "bio": "bio",
    "imageurl": "image_url",
    "datejoined": "date_joined",
    "birthdate": "birthdate",
    "gender": "gender",
    "groupname": GROUP_NAME_COLUMN,
    "subgroup": "subgroup",
    "affiliations": "affiliations",
    "education": "education",
    "achievements": "achievements",
    "sessions": "sessions",
}

IMPORTABLE_FIELDS: Final[frozenset[str]] = frozenset(
    "group_id" if target == GROUP_NAME_COLUMN else target for target in HEADER_FIELDS.values()
)

_ENUM_FIELDS: Final[dict[str, type[Enum]]] = {
    "status": MemberStatus,
    "member_type": MemberType,
    "academy_level": AcademyLevel,
}

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DATETIME_ADAPTER = TypeAdapter(datetime)
# pydantic reads bare numbers as unix timestamps
_BARE_NUMBER = re.compile(r"^[+-]?\d+(?:\.\d*)?(?:[eE][+-]?\d+)?$")
_FALLBACK_DATE_FORMATS: Final[tuple[str, ...]] = (
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d %B %Y",
    "%B %d, %Y",
    "%b %d, %Y",
)


@dataclass
class RowMapping:
    """Result of mapping one row: a candidate, or None when the row is rejected."""

    candidate: CandidateRecord | None
    errors: list[RowError] = field(default_factory=list)


def normalize_header(header: str) -> str:
    return re.sub(r"[\s_\-]", "", header).casefold()


def header_targets(headers: Sequence[str]) -> list[str | None]:
    """Member field for each header position; None for unrecognised columns."""
    return [HEADER_FIELDS.get(normalize_header(header)) for header in headers]


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value))


def clamp_enum(enum_type: type[EnumT], raw: str, default: EnumT) -> EnumT:
    wanted = raw.strip().casefold()
    for member in enum_type:
        if member.value.casefold() == wanted:
            return member
    return default


def split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_date(raw: str) -> datetime | None:
    """Parse a date-like cell to an aware UTC timestamp; None when unparseable."""
    value = raw.strip()
    if not value or _BARE_NUMBER.match(value):
        return None

    parsed: datetime | None
    try:
        parsed = _DATETIME_ADAPTER.validate_python(value)
    except PydanticValidationError:
        parsed = None
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def map_row(
    headers: Sequence[str],
    values: Sequence[str],
    existing_groups: Sequence[Group],
    *,
    row_number: int,
    clock: Clock,
    writable_fields: Collection[str] | None = None,
) -> RowMapping:
    """
    Turn a parsed row into a candidate member.

    Args:
        headers: Header row values
        values: This row's values
        existing_groups: Groups used to resolve the group-name column
        row_number: 1-based data row number, used in error messages
        clock: Source of "now" for a missing join date
        writable_fields: Fields the acting role may supply; other columns are
            ignored. None means every importable field.

    Returns:
        RowMapping: candidate plus informational errors, or no candidate and
        the fatal error that rejected the row
    """
    if len(values) != len(headers):
        return RowMapping(
            candidate=None,
            errors=[
                RowError(
                    row_number=row_number,
                    message=(
                        f"Column count mismatch: expected {len(headers)} values, "
                        f"found {len(values)}"
                    ),
                )
            ],
        )

    def writable(field_name: str) -> bool:
        return writable_fields is None or field_name in writable_fields

    cells: dict[str, str] = {}
    for target, value in zip(header_targets(headers), values):
        if target is None:
            continue
        gate = "group_id" if target == GROUP_NAME_COLUMN else target
        if writable(gate):
            cells[target] = value.strip()

    name = cells.get("name", "")
    if not name:
        return RowMapping(
            candidate=None,
            errors=[RowError(row_number=row_number, message="Name is required")],
        )

    email = cells.get("email", "")
    if email and not is_valid_email(email):
        return RowMapping(
            candidate=None,
            errors=[RowError(row_number=row_number, message=f"Invalid email address '{email}'")],
        )

    errors: list[RowError] = []
    data: dict[str, Any] = {"name": name, "email": email}

    for field_name in ("role", "phone", "address", "bio", "image_url", "gender"):
        data[field_name] = cells.get(field_name, "")

    for field_name, enum_type in _ENUM_FIELDS.items():
        default = MemberFields.model_fields[field_name].default
        data[field_name] = clamp_enum(enum_type, cells.get(field_name, ""), default)

    for field_name in LIST_FIELDS:
        data[field_name] = split_list(cells.get(field_name, ""))

    if writable("date_joined"):
        data["date_joined"] = parse_date(cells.get("date_joined", "")) or clock.now()
    data["birthdate"] = parse_date(cells.get("birthdate", ""))

    group_name = cells.get(GROUP_NAME_COLUMN, "")
    if group_name:
        group = find_group_by_name(list(existing_groups), group_name)
        if group is None:
            errors.append(
                RowError(
                    row_number=row_number,
                    message=f"Group '{group_name}' not found, member unassigned",
                    severity="info",
                )
            )
        else:
            data["group_id"] = group.id
            subgroup = cells.get("subgroup", "")
            if subgroup:
                data["subgroup"] = group.find_subgroup(subgroup)

    candidate = CandidateRecord(row_number=row_number, fields=MemberFields(**data))
    return RowMapping(candidate=candidate, errors=errors)
