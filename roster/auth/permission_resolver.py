"""
Permission Resolver - answers capability and field questions for a role.

Resolution rules:
- Override-nearest-wins: the first role in the chain (self, parent, ...)
  that sets a capability explicitly decides it
- Fail closed: a capability nobody in the chain sets resolves to False
- Unknown roles resolve to False for everything
- Field edits additionally require canEditMembers at the queried role

Resolution is side-effect free and idempotent; it is cheap enough to call
per field on every validation, so nothing is cached.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from .permission_catalog import (
    ALL_FIELDS,
    ROLE_CATALOG,
    Capability,
    EditableFields,
    Role,
    RolePermissions,
    validate_catalog,
)

logger = logging.getLogger(__name__)

RoleLike = Role | str


class PermissionResolver:
    """Walks the role catalog to resolve capabilities and editable fields."""

    def __init__(self, catalog: Mapping[Role, RolePermissions] = ROLE_CATALOG):
        if catalog is not ROLE_CATALOG:
            validate_catalog(catalog)
        self.catalog = catalog

    def _coerce(self, role: RoleLike) -> Role | None:
        if isinstance(role, Role):
            resolved: Role | None = role
        else:
            try:
                resolved = Role(str(role).strip().lower())
            except ValueError:
                resolved = None
        if resolved is None or resolved not in self.catalog:
            logger.warning("permission_resolve unknown_role=%s result=deny", role)
            return None
        return resolved

    def _chain(self, role: Role) -> Iterator[tuple[Role, RolePermissions]]:
        current: Role | None = role
        seen: set[Role] = set()
        while current is not None and current not in seen and current in self.catalog:
            seen.add(current)
            entry = self.catalog[current]
            yield current, entry
            current = entry.parent

    def parent_chain(self, role: RoleLike) -> list[Role]:
        """Return the role followed by its ancestors, nearest first."""
        resolved = self._coerce(role)
        if resolved is None:
            return []
        return [current for current, _ in self._chain(resolved)]

    def has_capability(self, role: RoleLike, capability: Capability | str) -> bool:
        """
        Check whether a role holds a capability.

        Args:
            role: The acting role (enum member or its string value)
            capability: The capability (enum member or its string value)

        Returns:
            bool: The nearest explicit override, or False if none exists
        """
        resolved = self._coerce(role)
        if resolved is None:
            return False
        try:
            wanted = Capability(capability)
        except ValueError:
            return False

        for _, entry in self._chain(resolved):
            if wanted in entry.capabilities:
                return entry.capabilities[wanted]
        return False

    def editable_fields(self, role: RoleLike) -> EditableFields:
        """
        Resolve the editable-field set at the nearest role that defines one.

        This ignores canEditMembers; use can_edit_field for an actual decision.
        """
        resolved = self._coerce(role)
        if resolved is None:
            return frozenset()
        for _, entry in self._chain(resolved):
            if entry.editable_fields is not None:
                return entry.editable_fields
        return frozenset()

    def can_edit_field(self, role: RoleLike, field_name: str) -> bool:
        """
        Check whether a role may write a member field.

        canEditMembers is resolved once for the queried role; the field set
        comes from the nearest role (self included) that declares one.

        Args:
            role: The acting role
            field_name: Member field name (snake_case attribute name)

        Returns:
            bool: True only if editing is allowed at all and the field is in the set
        """
        if not self.has_capability(role, Capability.EDIT_MEMBERS):
            return False
        fields = self.editable_fields(role)
        if fields == ALL_FIELDS:
            return True
        return field_name in fields

    def capabilities(self, role: RoleLike) -> dict[Capability, bool]:
        """Fully resolved capability map for a role (every capability present)."""
        return {capability: self.has_capability(role, capability) for capability in Capability}


default_resolver = PermissionResolver()


def has_capability(role: RoleLike, capability: Capability | str) -> bool:
    return default_resolver.has_capability(role, capability)


def can_edit_field(role: RoleLike, field_name: str) -> bool:
    return default_resolver.can_edit_field(role, field_name)


def role_name(role: RoleLike) -> str:
    """Plain role string for log entries and log lines."""
    return getattr(role, "value", str(role))
