from __future__ import annotations

from collections.abc import Sequence
from typing import AsyncContextManager, Callable, Protocol

from ...schemas.group import Group
from ...schemas.member import Member


class RecordStore(Protocol):
    """Member and group storage.

    Reads return detached copies. Writes are staged until commit().
    """

    async def get(self, member_id: str) -> Member | None:
        ...

    async def find_by_email(self, email: str) -> Member | None:
        """Case-insensitive match; first in store order when several share an email."""
        ...

    async def list_members(self) -> list[Member]:
        ...

    async def add_member(self, member: Member) -> Member:
        ...

    async def update_member(self, member: Member) -> Member:
        ...

    async def delete_member(self, member_id: str) -> bool:
        ...

    async def get_group(self, group_id: str) -> Group | None:
        ...

    async def list_groups(self) -> list[Group]:
        ...

    async def add_group(self, group: Group) -> Group:
        ...

    async def update_group(self, group: Group) -> Group:
        ...

    async def delete_group(self, group_id: str) -> bool:
        ...

    async def apply_batch(
        self, new_records: Sequence[Member], updated_records: Sequence[Member]
    ) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


RecordStoreFactory = Callable[[], AsyncContextManager[RecordStore]]
