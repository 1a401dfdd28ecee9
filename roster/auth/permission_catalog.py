"""
Permission Catalog - static role table with inheritance.

Each role declares only what differs from its parent:
- capability overrides (explicit True or False)
- an editable-field set, the ALL wildcard, or nothing (inherit)

The catalog is configuration, not state. It is built once at import time,
validated fail-fast, and never mutated afterwards.

INVARIANTS:
1. The parent graph is a forest - walking parent links always terminates
2. Every parent named by a role is itself in the catalog
3. Every editable field names a real member field
4. Capability overrides use catalog capabilities only
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Final, Literal, Union

from ..schemas.member import EDITABLE_MEMBER_FIELDS


class Role(str, Enum):
    """Acting roles. The active role is asserted by the caller, never authenticated."""

    VIEWER = "viewer"
    VOLUNTEER = "volunteer"
    COACH = "coach"
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class Capability(str, Enum):
    VIEW_MEMBERS = "canViewMembers"
    VIEW_CONTACT_INFO = "canViewContactInfo"
    CREATE_MEMBERS = "canCreateMembers"
    EDIT_MEMBERS = "canEditMembers"
    DELETE_MEMBERS = "canDeleteMembers"
    IMPORT_MEMBERS = "canImportMembers"
    EXPORT_MEMBERS = "canExportMembers"
    MANAGE_GROUPS = "canManageGroups"
    LOG_COMMUNICATIONS = "canLogCommunications"
    ADD_COACH_COMMENTS = "canAddCoachComments"


ALL_FIELDS: Final = "ALL"

EditableFields = Union[frozenset[str], Literal["ALL"]]


@dataclass(frozen=True)
class RolePermissions:
    """One catalog row. ``editable_fields=None`` means inherit from the parent."""

    parent: Role | None = None
    capabilities: Mapping[Capability, bool] = field(default_factory=dict)
    editable_fields: EditableFields | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "capabilities", MappingProxyType(dict(self.capabilities)))


COACH_FIELDS: Final[frozenset[str]] = frozenset({
    "status",
    "academy_level",
    "sessions",
    "achievements",
    "photo_links",
    "session_cancellations",
})

# Staff may write everything except relationship links between members
STAFF_FIELDS: Final[frozenset[str]] = EDITABLE_MEMBER_FIELDS - {"related_member_ids"}


ROLE_CATALOG: Final[Mapping[Role, RolePermissions]] = MappingProxyType({
    Role.VIEWER: RolePermissions(
        parent=None,
        capabilities={Capability.VIEW_MEMBERS: True},
        editable_fields=frozenset(),
    ),
    Role.VOLUNTEER: RolePermissions(
        parent=Role.VIEWER,
        capabilities={Capability.LOG_COMMUNICATIONS: True},
    ),
    Role.COACH: RolePermissions(
        parent=Role.VIEWER,
        capabilities={
            Capability.VIEW_CONTACT_INFO: True,
            Capability.EDIT_MEMBERS: True,
            Capability.LOG_COMMUNICATIONS: True,
            Capability.ADD_COACH_COMMENTS: True,
        },
        editable_fields=COACH_FIELDS,
    ),
    Role.STAFF: RolePermissions(
        parent=Role.COACH,
        capabilities={
            Capability.CREATE_MEMBERS: True,
            Capability.IMPORT_MEMBERS: True,
            Capability.EXPORT_MEMBERS: True,
            # Coach comments are written by coaching and management only
            Capability.ADD_COACH_COMMENTS: False,
        },
        editable_fields=STAFF_FIELDS,
    ),
    Role.MANAGER: RolePermissions(
        parent=Role.STAFF,
        capabilities={
            Capability.DELETE_MEMBERS: True,
            Capability.MANAGE_GROUPS: True,
            Capability.ADD_COACH_COMMENTS: True,
        },
        editable_fields=ALL_FIELDS,
    ),
    Role.ADMIN: RolePermissions(
        parent=Role.MANAGER,
    ),
})


def validate_catalog(catalog: Mapping[Role, RolePermissions]) -> None:
    """
    Validate a role catalog.

    Args:
        catalog: Mapping from role to its permission row

    Raises:
        RuntimeError: Listing every violation found
    """
    errors: list[str] = []

    for role, entry in catalog.items():
        if entry.parent is not None and entry.parent not in catalog:
            errors.append(f"Role '{role.value}' has parent '{entry.parent.value}' missing from catalog")

        for capability in entry.capabilities:
            if not isinstance(capability, Capability):
                errors.append(f"Role '{role.value}' overrides unknown capability '{capability}'")

        if entry.editable_fields is not None and entry.editable_fields != ALL_FIELDS:
            unknown = set(entry.editable_fields) - EDITABLE_MEMBER_FIELDS
            if unknown:
                errors.append(
                    f"Role '{role.value}' lists unknown editable fields: {sorted(unknown)}"
                )

        seen = {role}
        current = entry.parent
        while current is not None and current in catalog:
            if current in seen:
                errors.append(f"Role '{role.value}' has a cyclic parent chain through '{current.value}'")
                break
            seen.add(current)
            current = catalog[current].parent

    if errors:
        raise RuntimeError(
            "Permission catalog validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


# Validate on import (fail-fast)
validate_catalog(ROLE_CATALOG)
