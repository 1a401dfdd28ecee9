"""
SQLAlchemy-backed record store.

Rows are converted to pydantic models on every read, so callers never hold
ORM objects. Writes are flushed into the session; commit() and rollback()
end the unit of work.
"""
from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Final

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import ConflictError, NotFoundError
from ..models import GroupRow, MemberRow
from ..schemas.group import Group
from ..schemas.member import Member

_JSON_FIELDS: Final[frozenset[str]] = frozenset({
    "affiliations",
    "education",
    "achievements",
    "sessions",
    "related_member_ids",
    "activity_log",
    "communications_log",
    "coach_comments_log",
    "photo_links",
    "session_cancellations",
})
_ENUM_FIELDS: Final[frozenset[str]] = frozenset({"status", "member_type", "academy_level"})
_DATETIME_FIELDS: Final[frozenset[str]] = frozenset({
    "date_joined",
    "birthdate",
    "created_at",
    "updated_at",
})


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def email_key(email: str) -> str:
    return email.strip().casefold()


def member_to_columns(member: Member) -> dict[str, Any]:
    python_data = member.model_dump()
    json_data = member.model_dump(mode="json")
    columns: dict[str, Any] = {}
    for name in Member.model_fields:
        if name in _JSON_FIELDS or name in _ENUM_FIELDS:
            columns[name] = json_data[name]
        else:
            columns[name] = python_data[name]
    columns["email_key"] = email_key(member.email)
    return columns


def row_to_member(row: MemberRow) -> Member:
    data: dict[str, Any] = {}
    for name in Member.model_fields:
        value = getattr(row, name)
        if name in _DATETIME_FIELDS:
            value = _as_utc(value)
        data[name] = value
    return Member.model_validate(data)


def row_to_group(row: GroupRow) -> Group:
    return Group(id=row.id, name=row.name, subgroups=list(row.subgroups or []))


class SqlRecordStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _next_position(self, model: type[MemberRow] | type[GroupRow]) -> int:
        result = await self.session.execute(select(func.coalesce(func.max(model.position), 0)))
        return int(result.scalar_one()) + 1

    async def get(self, member_id: str) -> Member | None:
        row = await self.session.get(MemberRow, member_id)
        return row_to_member(row) if row else None

    async def find_by_email(self, email: str) -> Member | None:
        wanted = email_key(email)
        if not wanted:
            return None
        result = await self.session.execute(
            select(MemberRow)
            .where(MemberRow.email_key == wanted)
            .order_by(MemberRow.position)
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return row_to_member(row) if row else None

    async def list_members(self) -> list[Member]:
        result = await self.session.execute(select(MemberRow).order_by(MemberRow.position))
        return [row_to_member(row) for row in result.scalars().all()]

    async def add_member(self, member: Member) -> Member:
        if await self.session.get(MemberRow, member.id) is not None:
            raise ConflictError(f"Member {member.id} already exists")
        row = MemberRow(
            position=await self._next_position(MemberRow),
            **member_to_columns(member),
        )
        self.session.add(row)
        await self.session.flush()
        return member

    async def update_member(self, member: Member) -> Member:
        row = await self.session.get(MemberRow, member.id)
        if row is None:
            raise NotFoundError(f"Member {member.id} not found")
        for name, value in member_to_columns(member).items():
            setattr(row, name, value)
        await self.session.flush()
        return member

    async def delete_member(self, member_id: str) -> bool:
        result = await self.session.execute(delete(MemberRow).where(MemberRow.id == member_id))
        return (result.rowcount or 0) > 0

    async def get_group(self, group_id: str) -> Group | None:
        row = await self.session.get(GroupRow, group_id)
        return row_to_group(row) if row else None

    async def list_groups(self) -> list[Group]:
        result = await self.session.execute(select(GroupRow).order_by(GroupRow.position))
        return [row_to_group(row) for row in result.scalars().all()]

    async def add_group(self, group: Group) -> Group:
        if await self.session.get(GroupRow, group.id) is not None:
            raise ConflictError(f"Group {group.id} already exists")
        self.session.add(
            GroupRow(
                id=group.id,
                position=await self._next_position(GroupRow),
                name=group.name,
                subgroups=list(group.subgroups),
            )
        )
        await self.session.flush()
        return group

    async def update_group(self, group: Group) -> Group:
        row = await self.session.get(GroupRow, group.id)
        if row is None:
            raise NotFoundError(f"Group {group.id} not found")
        row.name = group.name
        row.subgroups = list(group.subgroups)
        await self.session.flush()
        return group

    async def delete_group(self, group_id: str) -> bool:
        result = await self.session.execute(delete(GroupRow).where(GroupRow.id == group_id))
        return (result.rowcount or 0) > 0

    async def apply_batch(
        self, new_records: Sequence[Member], updated_records: Sequence[Member]
    ) -> None:
        for member in new_records:
            await self.add_member(member)
        for member in updated_records:
            await self.update_member(member)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


@asynccontextmanager
async def sql_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[SqlRecordStore]:
    async with session_factory() as session:
        yield SqlRecordStore(session)
