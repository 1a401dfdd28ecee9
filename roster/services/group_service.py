from __future__ import annotations

import logging
import uuid
from collections.abc import Callable

from ..auth.guards import require_capability
from ..auth.permission_catalog import Capability
from ..auth.permission_resolver import (
    PermissionResolver,
    RoleLike,
    default_resolver,
    role_name,
)
from ..clock import system_clock
from ..domain.invariants import validate_group_name, validate_subgroup_name
from ..domain.ports.clock import Clock
from ..domain.ports.record_store import RecordStore
from ..errors import ConflictError, NotFoundError
from ..schemas.group import Group, find_group_by_name
from .audit import AuditTrail
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def new_group_id() -> str:
    return str(uuid.uuid4())


class GroupService:
    """Group and subgroup taxonomy.

    Names are unique case-insensitively: group names across the store,
    subgroup names within their group. Removing a group or subgroup never
    deletes members, it only clears their assignment.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Clock = system_clock,
        resolver: PermissionResolver = default_resolver,
        id_factory: Callable[[], str] = new_group_id,
    ):
        self.store = store
        self.clock = clock
        self.resolver = resolver
        self.id_factory = id_factory

    def _require_manage(self, role: RoleLike, operation: str) -> None:
        require_capability(self.resolver, role, Capability.MANAGE_GROUPS, operation=operation)

    async def _require_group(self, group_id: str) -> Group:
        group = await self.store.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    async def _check_name_free(self, name: str, *, group_id: str | None = None) -> None:
        existing = find_group_by_name(await self.store.list_groups(), name)
        if existing is not None and existing.id != group_id:
            raise ConflictError(
                f"A group named '{existing.name}' already exists",
                details={"name": name, "group_id": existing.id},
            )

    async def list_groups(self) -> list[Group]:
        return await self.store.list_groups()

    async def create_group(self, name: str, role: RoleLike) -> Group:
        self._require_manage(role, "group.create")
        cleaned = validate_group_name(name)
        await self._check_name_free(cleaned)

        group = Group(id=self.id_factory(), name=cleaned)
        async with unit_of_work(self.store):
            await self.store.add_group(group)
        logger.info("operation=group.create group_id=%s role=%s", group.id, role_name(role))
        return group

    async def rename_group(self, group_id: str, name: str, role: RoleLike) -> Group:
        self._require_manage(role, "group.rename")
        cleaned = validate_group_name(name)
        group = await self._require_group(group_id)
        await self._check_name_free(cleaned, group_id=group_id)

        renamed = group.model_copy(update={"name": cleaned})
        async with unit_of_work(self.store):
            await self.store.update_group(renamed)
        return renamed

    async def delete_group(self, group_id: str, role: RoleLike) -> list[str]:
        """
        Delete a group and unassign its members.

        Returns:
            list[str]: Ids of members that were unassigned
        """
        self._require_manage(role, "group.delete")
        group = await self._require_group(group_id)
        trail = AuditTrail(self.clock, role_name(role))

        unassigned: list[str] = []
        async with unit_of_work(self.store):
            for member in await self.store.list_members():
                if member.group_id != group_id:
                    continue
                cleared = member.model_copy(update={"group_id": None, "subgroup": None})
                await self.store.update_member(
                    trail.log(cleared, f"Removed from group {group.name} (group deleted)")
                )
                unassigned.append(member.id)
            await self.store.delete_group(group_id)

        logger.info(
            "operation=group.delete group_id=%s role=%s unassigned=%d",
            group_id,
            role_name(role),
            len(unassigned),
        )
        return unassigned

    async def add_subgroup(self, group_id: str, name: str, role: RoleLike) -> Group:
        self._require_manage(role, "subgroup.create")
        cleaned = validate_subgroup_name(name)
        group = await self._require_group(group_id)
        if group.find_subgroup(cleaned) is not None:
            raise ConflictError(
                f"Subgroup '{cleaned}' already exists in group '{group.name}'",
                details={"group_id": group_id, "subgroup": cleaned},
            )

        updated = group.model_copy(update={"subgroups": [*group.subgroups, cleaned]})
        async with unit_of_work(self.store):
            await self.store.update_group(updated)
        return updated

    async def rename_subgroup(
        self, group_id: str, old_name: str, new_name: str, role: RoleLike
    ) -> Group:
        """Rename a subgroup and rewrite the subgroup of every member assigned to it."""
        self._require_manage(role, "subgroup.rename")
        cleaned = validate_subgroup_name(new_name)
        group = await self._require_group(group_id)
        current = group.find_subgroup(old_name)
        if current is None:
            raise NotFoundError(f"Subgroup '{old_name}' not found in group '{group.name}'")
        clash = group.find_subgroup(cleaned)
        if clash is not None and clash != current:
            raise ConflictError(
                f"Subgroup '{clash}' already exists in group '{group.name}'",
                details={"group_id": group_id, "subgroup": cleaned},
            )

        updated = group.model_copy(
            update={"subgroups": [cleaned if sub == current else sub for sub in group.subgroups]}
        )
        trail = AuditTrail(self.clock, role_name(role))
        async with unit_of_work(self.store):
            await self.store.update_group(updated)
            for member in await self.store.list_members():
                if member.group_id == group_id and member.subgroup == current:
                    moved = member.model_copy(update={"subgroup": cleaned})
                    await self.store.update_member(
                        trail.log(moved, f"Subgroup renamed from {current} to {cleaned}")
                    )
        return updated

    async def delete_subgroup(self, group_id: str, name: str, role: RoleLike) -> list[str]:
        """Remove a subgroup; members keep their group but lose the subgroup."""
        self._require_manage(role, "subgroup.delete")
        group = await self._require_group(group_id)
        current = group.find_subgroup(name)
        if current is None:
            raise NotFoundError(f"Subgroup '{name}' not found in group '{group.name}'")

        updated = group.model_copy(
            update={"subgroups": [sub for sub in group.subgroups if sub != current]}
        )
        trail = AuditTrail(self.clock, role_name(role))
        cleared_ids: list[str] = []
        async with unit_of_work(self.store):
            await self.store.update_group(updated)
            for member in await self.store.list_members():
                if member.group_id == group_id and member.subgroup == current:
                    cleared = member.model_copy(update={"subgroup": None})
                    await self.store.update_member(
                        trail.log(cleared, f"Removed from subgroup {current} (subgroup deleted)")
                    )
                    cleared_ids.append(member.id)

        logger.info(
            "operation=subgroup.delete group_id=%s subgroup=%s cleared=%d",
            group_id,
            current,
            len(cleared_ids),
        )
        return cleared_ids
