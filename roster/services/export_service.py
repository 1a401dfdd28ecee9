"""
CSV and JSON export.

The CSV uses the import header set in a fixed order and the import parser's
quoting rules, so an exported file can be fed straight back into an import.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Final

from pydantic import Field

from ..auth.guards import require_capability
from ..auth.permission_catalog import Capability
from ..auth.permission_resolver import PermissionResolver, RoleLike, default_resolver
from ..domain.ports.record_store import RecordStore
from ..importing.csv_line import format_line
from ..schemas.group import Group
from ..schemas.member import CamelModel, Member
from .member_service import redact_contact

logger = logging.getLogger(__name__)

# (header, member attribute); groupName is rendered from group_id
EXPORT_COLUMNS: Final[tuple[tuple[str, str], ...]] = (
    ("name", "name"),
    ("role", "role"),
    ("email", "email"),
    ("status", "status"),
    ("memberType", "member_type"),
    ("academyLevel", "academy_level"),
    ("phone", "phone"),
    ("address", "address"),
    ("bio", "bio"),
    ("imageUrl", "image_url"),
    ("dateJoined", "date_joined"),
    ("birthdate", "birthdate"),
    ("gender", "gender"),
    ("groupName", "group_id"),
    ("subgroup", "subgroup"),
    ("affiliations", "affiliations"),
    ("education", "education"),
    ("achievements", "achievements"),
    ("sessions", "sessions"),
)


class RosterExport(CamelModel):
    members: list[Member] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(getattr(value, "value", value))


def export_csv(members: Sequence[Member], groups: Sequence[Group]) -> str:
    group_names = {group.id: group.name for group in groups}
    lines = [format_line(header for header, _ in EXPORT_COLUMNS)]
    for member in members:
        cells = []
        for _, attribute in EXPORT_COLUMNS:
            value = getattr(member, attribute)
            if attribute == "group_id":
                value = group_names.get(value, "") if value else ""
            cells.append(_cell(value))
        lines.append(format_line(cells))
    return "\n".join(lines) + "\n"


def export_json(members: Sequence[Member], groups: Sequence[Group]) -> str:
    return RosterExport(members=list(members), groups=list(groups)).model_dump_json(
        by_alias=True, indent=2
    )


class ExportService:
    def __init__(self, store: RecordStore, *, resolver: PermissionResolver = default_resolver):
        self.store = store
        self.resolver = resolver

    async def _snapshot(self, role: RoleLike, operation: str) -> tuple[list[Member], list[Group]]:
        require_capability(self.resolver, role, Capability.EXPORT_MEMBERS, operation=operation)
        members = await self.store.list_members()
        if not self.resolver.has_capability(role, Capability.VIEW_CONTACT_INFO):
            members = [redact_contact(member) for member in members]
        groups = await self.store.list_groups()
        logger.info("operation=%s role=%s members=%d", operation, role, len(members))
        return members, groups

    async def export_csv(self, role: RoleLike) -> str:
        return export_csv(*await self._snapshot(role, "export.csv"))

    async def export_json(self, role: RoleLike) -> str:
        return export_json(*await self._snapshot(role, "export.json"))
