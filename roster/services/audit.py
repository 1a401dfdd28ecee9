"""
Audit trail for member records.

Every mutation of a member prepends one human-readable entry to its activity
log. Logs are newest-first and append-only: existing entries are never
dropped, edited or reordered.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Final, TypeVar

from ..domain.ports.clock import Clock
from ..schemas.member import LogEntry, Member

T = TypeVar("T")

MEMBER_CREATED: Final = "Member created"
CREATED_VIA_IMPORT: Final = "Created via import"
UPDATED_VIA_IMPORT: Final = "Record updated via bulk import"


def prepend(entries: list[T], entry: T) -> list[T]:
    """Return a new list with ``entry`` first and every prior entry after it, in order."""
    return [entry, *entries]


class AuditTrail:
    """Builds log entries stamped by one clock and attributed to one role."""

    def __init__(self, clock: Clock, author_role: str | None = None):
        self.clock = clock
        self.author_role = author_role

    def entry(self, message: str) -> LogEntry:
        return LogEntry(
            timestamp=self.clock.now(),
            message=message,
            author_role=self.author_role,
        )

    def log(self, member: Member, message: str) -> Member:
        """Return a copy of ``member`` with ``message`` prepended to its activity log."""
        return member.model_copy(
            update={
                "activity_log": prepend(member.activity_log, self.entry(message)),
                "updated_at": self.clock.now(),
            }
        )

    def log_create(self, member: Member) -> Member:
        return member.model_copy(update={"activity_log": [self.entry(MEMBER_CREATED)]})

    def log_update(self, member: Member, changed_fields: Iterable[str]) -> Member:
        changed = ", ".join(sorted(changed_fields))
        return self.log(member, f"Member details updated: {changed}")

    def log_import_create(self, member: Member) -> Member:
        """Seed both audit logs of a freshly imported member."""
        return member.model_copy(
            update={
                "activity_log": [self.entry(CREATED_VIA_IMPORT)],
                "communications_log": [self.entry(CREATED_VIA_IMPORT)],
            }
        )

    def log_import_update(self, merged: Member, original: Member) -> Member:
        """Prepend one import entry to each of the original's audit logs."""
        return merged.model_copy(
            update={
                "activity_log": prepend(original.activity_log, self.entry(UPDATED_VIA_IMPORT)),
                "communications_log": prepend(
                    original.communications_log, self.entry(UPDATED_VIA_IMPORT)
                ),
                "updated_at": self.clock.now(),
            }
        )
