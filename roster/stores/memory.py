"""
In-memory record store with simulated round-trip latency.

Stands in for browser local storage behind a mock API. Every call awaits the
configured latency. Reads hand out deep copies. Writes go to a working copy
that commit() publishes and rollback() discards.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from ..config import get_settings
from ..errors import ConflictError, NotFoundError
from ..schemas.group import Group
from ..schemas.member import Member

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    def __init__(
        self,
        members: Iterable[Member] = (),
        groups: Iterable[Group] = (),
        *,
        latency_ms: int | None = None,
    ):
        if latency_ms is None:
            latency_ms = get_settings().store_latency_ms
        self.latency = latency_ms / 1000
        self._committed_members: dict[str, Member] = {
            member.id: member.model_copy(deep=True) for member in members
        }
        self._committed_groups: dict[str, Group] = {
            group.id: group.model_copy(deep=True) for group in groups
        }
        self._members = dict(self._committed_members)
        self._groups = dict(self._committed_groups)
        self.commit_count = 0

    async def _round_trip(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get(self, member_id: str) -> Member | None:
        await self._round_trip()
        member = self._members.get(member_id)
        return member.model_copy(deep=True) if member else None

    async def find_by_email(self, email: str) -> Member | None:
        await self._round_trip()
        wanted = email.strip().casefold()
        if not wanted:
            return None
        for member in self._members.values():
            if member.email.strip().casefold() == wanted:
                return member.model_copy(deep=True)
        return None

    async def list_members(self) -> list[Member]:
        await self._round_trip()
        return [member.model_copy(deep=True) for member in self._members.values()]

    async def add_member(self, member: Member) -> Member:
        await self._round_trip()
        if member.id in self._members:
            raise ConflictError(f"Member {member.id} already exists")
        self._members[member.id] = member.model_copy(deep=True)
        return member

    async def update_member(self, member: Member) -> Member:
        await self._round_trip()
        if member.id not in self._members:
            raise NotFoundError(f"Member {member.id} not found")
        self._members[member.id] = member.model_copy(deep=True)
        return member

    async def delete_member(self, member_id: str) -> bool:
        await self._round_trip()
        return self._members.pop(member_id, None) is not None

    async def get_group(self, group_id: str) -> Group | None:
        await self._round_trip()
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def list_groups(self) -> list[Group]:
        await self._round_trip()
        return [group.model_copy(deep=True) for group in self._groups.values()]

    async def add_group(self, group: Group) -> Group:
        await self._round_trip()
        if group.id in self._groups:
            raise ConflictError(f"Group {group.id} already exists")
        self._groups[group.id] = group.model_copy(deep=True)
        return group

    async def update_group(self, group: Group) -> Group:
        await self._round_trip()
        if group.id not in self._groups:
            raise NotFoundError(f"Group {group.id} not found")
        self._groups[group.id] = group.model_copy(deep=True)
        return group

    async def delete_group(self, group_id: str) -> bool:
        await self._round_trip()
        return self._groups.pop(group_id, None) is not None

    async def apply_batch(
        self, new_records: Sequence[Member], updated_records: Sequence[Member]
    ) -> None:
        """Stage inserts and updates together; nothing is staged if any id is invalid."""
        await self._round_trip()
        for member in new_records:
            if member.id in self._members:
                raise ConflictError(f"Member {member.id} already exists")
        for member in updated_records:
            if member.id not in self._members:
                raise NotFoundError(f"Member {member.id} not found")

        for member in new_records:
            self._members[member.id] = member.model_copy(deep=True)
        for member in updated_records:
            self._members[member.id] = member.model_copy(deep=True)

    async def commit(self) -> None:
        await self._round_trip()
        self._committed_members = dict(self._members)
        self._committed_groups = dict(self._groups)
        self.commit_count += 1
        logger.debug(
            "operation=store action=commit members=%d groups=%d",
            len(self._members),
            len(self._groups),
        )

    async def rollback(self) -> None:
        await self._round_trip()
        self._members = dict(self._committed_members)
        self._groups = dict(self._committed_groups)
