from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from ..avatar import generate_avatar
from ..schemas.member import Member, MemberStatus

SortOrder = Literal["asc", "desc"]


def matches_term(member: Member, term: str) -> bool:
    wanted = term.strip().casefold()
    if not wanted:
        return True
    haystack = [member.name, member.role, member.bio, *member.affiliations]
    return any(wanted in value.casefold() for value in haystack)


def search_members(
    members: Iterable[Member],
    term: str = "",
    *,
    status: MemberStatus | None = None,
    group_id: str | None = None,
    sort: SortOrder | None = None,
) -> list[Member]:
    """
    Filter and optionally sort members.

    Args:
        members: Members in store order
        term: Case-insensitive substring matched against name, role, bio and affiliations
        status: Keep only members with this status
        group_id: Keep only members assigned to this group
        sort: "asc" or "desc" by name, or None to keep store order

    Returns:
        list[Member]: Matching members
    """
    found = [
        member
        for member in members
        if matches_term(member, term)
        and (status is None or member.status == status)
        and (group_id is None or member.group_id == group_id)
    ]
    if sort is not None:
        if sort not in ("asc", "desc"):
            raise ValueError(f"sort must be 'asc' or 'desc', got {sort!r}")
        found.sort(key=lambda member: member.name.casefold(), reverse=sort == "desc")
    return found


def display_image(member: Member) -> str:
    return member.image_url or generate_avatar(member.name)
