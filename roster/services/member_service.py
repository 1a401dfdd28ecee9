from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Final

from ..auth.guards import require_capability, require_field_edits
from ..auth.permission_catalog import Capability
from ..auth.permission_resolver import (
    PermissionResolver,
    RoleLike,
    default_resolver,
    role_name,
)
from ..clock import system_clock
from ..domain.invariants import (
    is_valid_photo_url,
    normalize_affiliations,
    validate_member_fields,
)
from ..domain.ports.clock import Clock
from ..domain.ports.record_store import RecordStore
from ..errors import ConflictError, NotFoundError, ValidationError
from ..importing.reconcile import IdFactory, new_member_id
from ..schemas.member import Member, MemberFields, PhotoLink, SessionCancellation
from .audit import AuditTrail, prepend
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

CONTACT_FIELDS: Final[tuple[str, ...]] = ("email", "phone", "address")


def _normalize(fields: MemberFields) -> MemberFields:
    return fields.model_copy(
        update={
            "name": fields.name.strip(),
            "role": fields.role.strip(),
            "bio": fields.bio.strip(),
            "email": fields.email.strip(),
            "image_url": fields.image_url.strip(),
            "affiliations": normalize_affiliations(fields.affiliations),
        }
    )


def redact_contact(member: Member) -> Member:
    return member.model_copy(update={name: "" for name in CONTACT_FIELDS})


class MemberService:
    """Create, edit and delete members, and write their logs.

    Every mutation is gated by the permission resolver, validated, recorded in
    the member's activity log and committed as one unit of work.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Clock = system_clock,
        resolver: PermissionResolver = default_resolver,
        id_factory: IdFactory = new_member_id,
    ):
        self.store = store
        self.clock = clock
        self.resolver = resolver
        self.id_factory = id_factory

    async def _require_member(self, member_id: str) -> Member:
        member = await self.store.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found")
        return member

    async def _check_email_free(self, email: str, *, member_id: str | None = None) -> None:
        if not email:
            return
        existing = await self.store.find_by_email(email)
        if existing is not None and existing.id != member_id:
            raise ConflictError(
                f"Email '{email}' is already used by another member",
                details={"email": email, "member_id": existing.id},
            )

    async def _known_member_ids(self) -> set[str]:
        return {member.id for member in await self.store.list_members()}

    async def get_member(self, member_id: str, role: RoleLike) -> Member:
        require_capability(self.resolver, role, Capability.VIEW_MEMBERS, operation="member.view")
        member = await self._require_member(member_id)
        if not self.resolver.has_capability(role, Capability.VIEW_CONTACT_INFO):
            return redact_contact(member)
        return member

    async def list_members(self, role: RoleLike) -> list[Member]:
        require_capability(self.resolver, role, Capability.VIEW_MEMBERS, operation="member.list")
        members = await self.store.list_members()
        if not self.resolver.has_capability(role, Capability.VIEW_CONTACT_INFO):
            return [redact_contact(member) for member in members]
        return members

    async def create_member(
        self, fields: MemberFields | Mapping[str, Any], role: RoleLike
    ) -> Member:
        """
        Create a member from form input.

        Args:
            fields: Field values (model or mapping of field names)
            role: The acting role

        Returns:
            Member: The stored member with its first activity-log entry

        Raises:
            PermissionError: If the role cannot create members or set a supplied field
            ValidationError: If the input is invalid
            ConflictError: If the email already belongs to a member
        """
        require_capability(
            self.resolver, role, Capability.CREATE_MEMBERS, operation="member.create"
        )
        if not isinstance(fields, MemberFields):
            fields = MemberFields.model_validate(dict(fields))
        fields = _normalize(fields)

        defaults = MemberFields()
        supplied = [
            name
            for name in MemberFields.model_fields
            if getattr(fields, name) != getattr(defaults, name)
        ]
        require_field_edits(self.resolver, role, supplied, operation="member.create")

        validate_member_fields(
            fields,
            await self.store.list_groups(),
            known_member_ids=await self._known_member_ids(),
        )
        await self._check_email_free(fields.email)

        now = self.clock.now()
        data = fields.model_dump()
        if data["date_joined"] is None:
            data["date_joined"] = now
        member = Member(id=self.id_factory(), created_at=now, **data)
        member = AuditTrail(self.clock, role_name(role)).log_create(member)

        async with unit_of_work(self.store):
            await self.store.add_member(member)
        logger.info("operation=member.create member_id=%s role=%s", member.id, role_name(role))
        return member

    async def update_member(
        self, member_id: str, changes: Mapping[str, Any], role: RoleLike
    ) -> Member:
        """
        Apply field changes to a member.

        Only fields whose value actually changes need edit rights; unchanged
        values in ``changes`` are ignored and a no-op edit writes nothing.

        Raises:
            PermissionError: If the role cannot edit members or a changed field
            ValidationError: If a key is not a member field or a value is invalid
            NotFoundError: If the member does not exist
            ConflictError: If the new email belongs to another member
        """
        require_capability(self.resolver, role, Capability.EDIT_MEMBERS, operation="member.update")
        unknown = sorted(set(changes) - set(MemberFields.model_fields))
        if unknown:
            raise ValidationError(
                f"Unknown member fields: {', '.join(unknown)}", details={"fields": unknown}
            )

        original = await self._require_member(member_id)
        current = MemberFields.model_validate(
            original.model_dump(include=set(MemberFields.model_fields))
        )
        proposed = _normalize(
            MemberFields.model_validate({**current.model_dump(), **dict(changes)})
        )

        changed = [
            name
            for name in MemberFields.model_fields
            if getattr(proposed, name) != getattr(current, name)
        ]
        if not changed:
            return original

        require_field_edits(self.resolver, role, changed, operation="member.update")
        validate_member_fields(
            proposed,
            await self.store.list_groups(),
            known_member_ids=await self._known_member_ids() - {member_id},
        )
        if "email" in changed:
            await self._check_email_free(proposed.email, member_id=member_id)

        merged = Member.model_validate(
            {**original.model_dump(), **proposed.model_dump(include=set(changed))}
        )
        merged = AuditTrail(self.clock, role_name(role)).log_update(merged, changed)

        async with unit_of_work(self.store):
            await self.store.update_member(merged)
        logger.info(
            "operation=member.update member_id=%s role=%s fields=%s",
            member_id,
            role_name(role),
            ",".join(changed),
        )
        return merged

    async def delete_member(self, member_id: str, role: RoleLike) -> list[str]:
        """
        Delete a member and clear links that point at it.

        Related members are not deleted; the deleted id is removed from their
        ``related_member_ids`` and the change is recorded in their activity log.

        Returns:
            list[str]: Ids of members whose links were cleared
        """
        require_capability(
            self.resolver, role, Capability.DELETE_MEMBERS, operation="member.delete"
        )
        member = await self._require_member(member_id)
        trail = AuditTrail(self.clock, role_name(role))

        touched: list[str] = []
        async with unit_of_work(self.store):
            for other in await self.store.list_members():
                if other.id == member_id or member_id not in other.related_member_ids:
                    continue
                cleared = other.model_copy(
                    update={
                        "related_member_ids": [
                            ref for ref in other.related_member_ids if ref != member_id
                        ]
                    }
                )
                await self.store.update_member(
                    trail.log(cleared, f"Link to {member.name} removed (member deleted)")
                )
                touched.append(other.id)
            await self.store.delete_member(member_id)

        logger.info(
            "operation=member.delete member_id=%s role=%s cleared_links=%d",
            member_id,
            role_name(role),
            len(touched),
        )
        return touched

    async def add_communication(self, member_id: str, message: str, role: RoleLike) -> Member:
        require_capability(
            self.resolver, role, Capability.LOG_COMMUNICATIONS, operation="member.communication"
        )
        text = message.strip()
        if not text:
            raise ValidationError("Communication text is required")
        member = await self._require_member(member_id)
        trail = AuditTrail(self.clock, role_name(role))
        updated = member.model_copy(
            update={
                "communications_log": prepend(member.communications_log, trail.entry(text)),
                "updated_at": self.clock.now(),
            }
        )
        async with unit_of_work(self.store):
            await self.store.update_member(updated)
        return updated

    async def add_coach_comment(self, member_id: str, comment: str, role: RoleLike) -> Member:
        require_capability(
            self.resolver, role, Capability.ADD_COACH_COMMENTS, operation="member.coach_comment"
        )
        text = comment.strip()
        if not text:
            raise ValidationError("Comment text is required")
        member = await self._require_member(member_id)
        trail = AuditTrail(self.clock, role_name(role))
        updated = member.model_copy(
            update={
                "coach_comments_log": prepend(member.coach_comments_log, trail.entry(text)),
                "updated_at": self.clock.now(),
            }
        )
        async with unit_of_work(self.store):
            await self.store.update_member(updated)
        return updated

    async def add_photo_link(
        self, member_id: str, url: str, role: RoleLike, *, caption: str = ""
    ) -> Member:
        require_capability(self.resolver, role, Capability.EDIT_MEMBERS, operation="member.photo")
        require_field_edits(self.resolver, role, ["photo_links"], operation="member.photo")
        cleaned = url.strip()
        if not is_valid_photo_url(cleaned):
            raise ValidationError(
                "Photo link must start with http:// or https://", details={"url": cleaned}
            )
        member = await self._require_member(member_id)
        photo = PhotoLink(url=cleaned, caption=caption.strip(), added_at=self.clock.now())
        trail = AuditTrail(self.clock, role_name(role))
        updated = trail.log(
            member.model_copy(update={"photo_links": prepend(member.photo_links, photo)}),
            "Photo link added",
        )
        async with unit_of_work(self.store):
            await self.store.update_member(updated)
        return updated

    async def record_session_cancellation(
        self,
        member_id: str,
        session: str,
        role: RoleLike,
        *,
        cancelled_on: datetime | None = None,
        reason: str = "",
    ) -> Member:
        require_capability(
            self.resolver, role, Capability.EDIT_MEMBERS, operation="member.session_cancel"
        )
        require_field_edits(
            self.resolver, role, ["session_cancellations"], operation="member.session_cancel"
        )
        name = session.strip()
        if not name:
            raise ValidationError("Session name is required")
        member = await self._require_member(member_id)
        cancellation = SessionCancellation(
            session=name,
            cancelled_on=cancelled_on,
            reason=reason.strip(),
            recorded_at=self.clock.now(),
        )
        trail = AuditTrail(self.clock, role_name(role))
        updated = trail.log(
            member.model_copy(
                update={
                    "session_cancellations": prepend(member.session_cancellations, cancellation)
                }
            ),
            f"Session cancelled: {name}",
        )
        async with unit_of_work(self.store):
            await self.store.update_member(updated)
        return updated
