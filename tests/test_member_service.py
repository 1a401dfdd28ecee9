"""
Tests for member management.

Each mutation must be gated, validated and recorded newest-first in the
member's activity log.
"""
import pytest

from roster.auth.permission_catalog import Role
from roster.errors import ConflictError, NotFoundError, PermissionError, ValidationError
from roster.schemas.member import MemberStatus
from roster.services.audit import MEMBER_CREATED
from roster.services.member_service import MemberService

VALID_FORM = {
    "name": "Alice Moss",
    "role": "Winger",
    "bio": "Fast on the left",
    "email": "alice@x.com",
    "affiliations": [" Club A", "Club B", "Club A ", ""],
}


@pytest.fixture
def service(store, clock, id_factory):
    return MemberService(store, clock=clock, id_factory=id_factory)


class TestCreateMember:
    """Test member creation."""

    @pytest.mark.anyio
    async def test_create_assigns_id_and_log(self, service, store, clock):
        """A created member gets an id, timestamps and one log entry."""
        member = await service.create_member(VALID_FORM, Role.STAFF)

        assert member.id == "new-1"
        assert member.created_at == clock.now()
        assert member.date_joined == clock.now()
        assert [entry.message for entry in member.activity_log] == [MEMBER_CREATED]
        assert member.activity_log[0].author_role == "staff"
        assert member.affiliations == ["Club A", "Club B"]
        assert (await store.get("new-1")).name == "Alice Moss"
        assert store.commit_count == 1

    @pytest.mark.anyio
    async def test_create_requires_capability(self, service):
        """Coaches cannot create members."""
        with pytest.raises(PermissionError):
            await service.create_member(VALID_FORM, Role.COACH)

    @pytest.mark.anyio
    async def test_create_reports_every_invalid_field(self, service):
        """Validation lists each problem at once."""
        form = {"name": " ", "role": "", "bio": "", "email": "nope", "image_url": "ftp://x"}
        with pytest.raises(ValidationError) as excinfo:
            await service.create_member(form, Role.STAFF)
        assert set(excinfo.value.details) == {"name", "role", "bio", "email", "image_url"}

    @pytest.mark.anyio
    async def test_create_accepts_data_image_url(self, service):
        """data:image URLs are valid images."""
        member = await service.create_member(
            {**VALID_FORM, "image_url": "data:image/png;base64,AAAA"}, Role.STAFF
        )
        assert member.image_url.startswith("data:image/")

    @pytest.mark.anyio
    async def test_create_rejects_duplicate_email(self, service):
        """Emails are unique across members, ignoring case."""
        with pytest.raises(ConflictError):
            await service.create_member({**VALID_FORM, "email": "JANE@x.com"}, Role.STAFF)

    @pytest.mark.anyio
    async def test_create_rejects_unknown_subgroup(self, service):
        """A subgroup must belong to the chosen group."""
        with pytest.raises(ValidationError) as excinfo:
            await service.create_member(
                {**VALID_FORM, "group_id": "g-u12", "subgroup": "Green"}, Role.STAFF
            )
        assert "subgroup" in excinfo.value.details

    @pytest.mark.anyio
    async def test_staff_cannot_set_links(self, service):
        """Related-member links are outside the staff field set."""
        with pytest.raises(PermissionError):
            await service.create_member(
                {**VALID_FORM, "related_member_ids": ["m-bob"]}, Role.STAFF
            )


class TestUpdateMember:
    """Test member edits."""

    @pytest.mark.anyio
    async def test_update_prepends_entry(self, service, store, members):
        """An edit prepends one entry naming the changed fields."""
        updated = await service.update_member(
            "m-jane", {"status": MemberStatus.ACTIVE, "sessions": ["Tue"]}, Role.COACH
        )

        assert updated.status == MemberStatus.ACTIVE
        assert updated.activity_log[0].message == "Member details updated: sessions, status"
        assert updated.activity_log[1:] == members[0].activity_log
        assert (await store.get("m-jane")).status == MemberStatus.ACTIVE

    @pytest.mark.anyio
    async def test_coach_cannot_edit_contact_fields(self, service):
        """Fields outside the coach set are refused."""
        with pytest.raises(PermissionError) as excinfo:
            await service.update_member("m-jane", {"phone": "555-0100"}, Role.COACH)
        assert excinfo.value.details["fields"] == ["phone"]

    @pytest.mark.anyio
    async def test_unchanged_values_need_no_rights(self, service, store):
        """Resubmitting current values is a no-op, even for locked fields."""
        before = await store.get("m-jane")
        result = await service.update_member("m-jane", {"email": "jane@x.com"}, Role.COACH)
        assert result == before
        assert store.commit_count == 0

    @pytest.mark.anyio
    async def test_unknown_field_rejected(self, service):
        """Keys that are not member fields are refused."""
        with pytest.raises(ValidationError, match="shoe_size"):
            await service.update_member("m-jane", {"shoe_size": 9}, Role.MANAGER)

    @pytest.mark.anyio
    async def test_logs_are_not_editable_through_update(self, service):
        """Audit logs have no update path."""
        with pytest.raises(ValidationError):
            await service.update_member("m-jane", {"activity_log": []}, Role.ADMIN)

    @pytest.mark.anyio
    async def test_missing_member(self, service):
        """Unknown ids are NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.update_member("m-nobody", {"status": "Active"}, Role.MANAGER)

    @pytest.mark.anyio
    async def test_email_taken_by_other_member(self, service):
        """Changing to another member's email is a conflict."""
        with pytest.raises(ConflictError):
            await service.update_member("m-bob", {"email": "Jane@X.com"}, Role.STAFF)

    @pytest.mark.anyio
    async def test_viewer_cannot_update(self, service):
        """Viewers hold no edit capability."""
        with pytest.raises(PermissionError):
            await service.update_member("m-jane", {"status": "Active"}, Role.VIEWER)


class TestDeleteMember:
    """Test deletion and link clean-up."""

    @pytest.mark.anyio
    async def test_delete_clears_links(self, service, store):
        """Links to the deleted member are removed and logged."""
        touched = await service.delete_member("m-bob", Role.MANAGER)

        assert touched == ["m-cara"]
        assert await store.get("m-bob") is None
        cara = await store.get("m-cara")
        assert cara.related_member_ids == []
        assert cara.activity_log[0].message == "Link to Bob Stone removed (member deleted)"

    @pytest.mark.anyio
    async def test_staff_cannot_delete(self, service, store):
        """Deletion needs canDeleteMembers."""
        with pytest.raises(PermissionError):
            await service.delete_member("m-bob", Role.STAFF)
        assert await store.get("m-bob") is not None


class TestMemberLogs:
    """Test the dedicated log operations."""

    @pytest.mark.anyio
    async def test_volunteer_logs_communication(self, service):
        """Volunteers may log communications, newest first."""
        await service.add_communication("m-jane", "Called about fees", Role.VOLUNTEER)
        member = await service.add_communication("m-jane", "Sent kit list", Role.VOLUNTEER)
        assert [entry.message for entry in member.communications_log] == [
            "Sent kit list",
            "Called about fees",
        ]

    @pytest.mark.anyio
    async def test_blank_communication_rejected(self, service):
        """Empty messages are not logged."""
        with pytest.raises(ValidationError):
            await service.add_communication("m-jane", "   ", Role.VOLUNTEER)

    @pytest.mark.anyio
    async def test_coach_comment_gated_by_role(self, service):
        """Staff cannot add coach comments; managers can."""
        with pytest.raises(PermissionError):
            await service.add_coach_comment("m-jane", "Good footwork", Role.STAFF)
        member = await service.add_coach_comment("m-jane", "Good footwork", Role.MANAGER)
        assert member.coach_comments_log[0].message == "Good footwork"

    @pytest.mark.anyio
    async def test_add_photo_link(self, service):
        """Photo links need an http(s) URL and are logged."""
        member = await service.add_photo_link(
            "m-jane", "https://photos.example.com/1.jpg", Role.COACH, caption="Final"
        )
        assert member.photo_links[0].caption == "Final"
        assert member.activity_log[0].message == "Photo link added"

        with pytest.raises(ValidationError):
            await service.add_photo_link("m-jane", "data:image/png;base64,AA", Role.COACH)

    @pytest.mark.anyio
    async def test_volunteer_cannot_add_photo(self, service):
        """Volunteers cannot edit members."""
        with pytest.raises(PermissionError):
            await service.add_photo_link("m-jane", "https://x.com/a.jpg", Role.VOLUNTEER)

    @pytest.mark.anyio
    async def test_record_session_cancellation(self, service):
        """Cancellations are prepended and logged."""
        member = await service.record_session_cancellation(
            "m-jane", "Tuesday training", Role.COACH, reason="Injury"
        )
        assert member.session_cancellations[0].session == "Tuesday training"
        assert member.session_cancellations[0].reason == "Injury"
        assert member.activity_log[0].message == "Session cancelled: Tuesday training"


class TestMemberReads:
    """Test reads and contact redaction."""

    @pytest.mark.anyio
    async def test_viewer_sees_no_contact_details(self, service):
        """Viewers lack canViewContactInfo."""
        members = await service.list_members(Role.VIEWER)
        assert all(member.email == "" for member in members)

    @pytest.mark.anyio
    async def test_coach_sees_contact_details(self, service):
        """Coaches see emails."""
        member = await service.get_member("m-jane", Role.COACH)
        assert member.email == "jane@x.com"

    @pytest.mark.anyio
    async def test_unknown_role_cannot_read(self, service):
        """Unknown roles fail closed."""
        with pytest.raises(PermissionError):
            await service.list_members("intruder")
