"""
Tests for the reconciliation engine and whole-file import building.

Nothing here touches a store: reconciliation is a pure function of the
candidates and the snapshot it is given.
"""
from roster.importing.batch import build_import
from roster.importing.reconcile import reconcile
from roster.schemas.imports import CandidateRecord
from roster.schemas.member import MemberFields, MemberStatus
from roster.services.audit import CREATED_VIA_IMPORT, UPDATED_VIA_IMPORT
from tests.member_helpers import make_member


def candidate(row_number, **fields):
    return CandidateRecord(row_number=row_number, fields=MemberFields(**fields))


class TestReconcile:
    """Test matching, merging and inserting."""

    def test_case_insensitive_match_prepends_one_entry(self, members, clock, id_factory):
        """Jane@X.com updates jane@x.com; her log keeps every entry beneath one new one."""
        original = members[0]
        result = reconcile(
            [candidate(1, name="Jane Doe", email="Jane@X.com", role="Captain")],
            members,
            clock=clock,
            id_factory=id_factory,
        )

        assert result.new_records == []
        assert len(result.updated_pairs) == 1
        pair = result.updated_pairs[0]
        assert pair.original == original
        assert pair.record.id == original.id
        assert pair.record.role == "Captain"
        assert pair.record.activity_log[0].message == UPDATED_VIA_IMPORT
        assert pair.record.activity_log[0].timestamp == clock.now()
        assert pair.record.activity_log[1:] == original.activity_log
        assert pair.record.communications_log[0].message == UPDATED_VIA_IMPORT
        assert len(pair.record.communications_log) == len(original.communications_log) + 1

    def test_full_overwrite_blanks_fields(self, members, clock):
        """Fields the row leaves empty overwrite the original's values."""
        original = members[1]
        result = reconcile(
            [candidate(1, name="Bob Stone", email=original.email)],
            members,
            clock=clock,
        )

        merged = result.updated_pairs[0].record
        assert merged.bio == ""
        assert merged.group_id is None
        assert merged.subgroup is None
        assert merged.created_at == original.created_at

    def test_unwritable_fields_keep_original(self, members, clock):
        """Fields outside the writable set are not overlaid."""
        original = members[1]
        result = reconcile(
            [candidate(1, name="Robert Stone", email=original.email)],
            members,
            clock=clock,
            writable_fields={"name", "email"},
        )

        merged = result.updated_pairs[0].record
        assert merged.name == "Robert Stone"
        assert merged.bio == original.bio
        assert merged.group_id == "g-u12"

    def test_insert_seeds_both_logs(self, members, clock, id_factory):
        """A new record gets an id, a creation time and one entry in each log."""
        result = reconcile(
            [candidate(1, name="Alice", email="alice@x.com")],
            members,
            clock=clock,
            id_factory=id_factory,
        )

        record = result.new_records[0].record
        assert record.id == "new-1"
        assert record.created_at == clock.now()
        assert [entry.message for entry in record.activity_log] == [CREATED_VIA_IMPORT]
        assert [entry.message for entry in record.communications_log] == [CREATED_VIA_IMPORT]

    def test_blank_email_always_inserts(self, members, clock, id_factory):
        """Candidates without email never match."""
        result = reconcile(
            [candidate(1, name="No Mail"), candidate(2, name="Also No Mail")],
            members,
            clock=clock,
            id_factory=id_factory,
        )
        assert len(result.new_records) == 2
        assert result.errors == []

    def test_duplicate_email_in_batch_rejects_later_row(self, members, clock, id_factory):
        """The second row reusing an email is an error, not a second outcome."""
        result = reconcile(
            [
                candidate(1, name="Alice", email="alice@x.com"),
                candidate(2, name="Alice Again", email="ALICE@x.com"),
            ],
            members,
            clock=clock,
            id_factory=id_factory,
        )

        assert len(result.new_records) == 1
        assert [error.row_number for error in result.errors] == [2]
        assert "row 1" in result.errors[0].message

    def test_first_existing_match_wins(self, clock):
        """When existing records share an email, the first in order is updated."""
        first = make_member("m-1", "First", email="shared@x.com")
        second = make_member("m-2", "Second", email="Shared@X.com")
        result = reconcile(
            [candidate(1, name="Merged", email="shared@x.com")],
            [first, second],
            clock=clock,
        )
        assert result.updated_pairs[0].original.id == "m-1"

    def test_idempotent(self, members, clock):
        """Reconciling the same batch twice gives the same partition."""
        batch = [
            candidate(1, name="Alice", email="alice@x.com"),
            candidate(2, name="Jane Doe", email="jane@x.com"),
        ]
        first = reconcile(batch, members, clock=clock, id_factory=lambda: "fixed")
        second = reconcile(batch, members, clock=clock, id_factory=lambda: "fixed")

        assert first == second
        assert (len(first.new_records), len(first.updated_pairs)) == (1, 1)


class TestBuildImport:
    """Test parse, map and reconcile over whole text."""

    def test_three_row_scenario(self, members, groups, clock, id_factory):
        """New Alice, a short row 2, and row 3 moving Jane from Pending to Active."""
        text = (
            "name,role,email,status,bio\n"
            "Alice,Player,alice@x.com,Active,Left wing\n"
            "Broken,Player,broken@x.com\n"
            "Jane Doe,Captain,JANE@x.com,Active,Back again\n"
        )
        result = build_import(text, members, groups, clock=clock, id_factory=id_factory)

        assert len(result.new_records) == 1
        assert result.new_records[0].record.name == "Alice"
        assert result.new_records[0].row_number == 1

        assert len(result.updated_pairs) == 1
        pair = result.updated_pairs[0]
        assert pair.row_number == 3
        assert pair.original.status == MemberStatus.PENDING
        assert pair.record.status == MemberStatus.ACTIVE
        assert pair.record.role == "Captain"
        assert pair.record.bio == "Back again"
        assert pair.record.activity_log[0].message == UPDATED_VIA_IMPORT
        assert pair.record.activity_log[1:] == pair.original.activity_log

        assert len(result.errors) == 1
        assert result.errors[0].row_number == 2
        assert "Column count mismatch" in result.errors[0].message

    def test_missing_name_is_one_error(self, members, groups, clock):
        """A nameless row contributes only its error."""
        text = "name,email\n,nobody@x.com\n"
        result = build_import(text, members, groups, clock=clock)

        assert result.new_records == []
        assert result.updated_pairs == []
        assert [error.describe() for error in result.errors] == ["Row 1: Name is required"]

    def test_unknown_group_still_produces_record(self, members, groups, clock):
        """An unknown group is advisory; the row becomes a record."""
        text = "name,groupName\nAlice,Veterans\n"
        result = build_import(text, members, groups, clock=clock)

        assert len(result.new_records) == 1
        assert result.new_records[0].record.group_id is None
        assert len(result.errors) == 1
        assert result.rejected == []

    def test_blank_lines_do_not_shift_row_numbers(self, members, groups, clock):
        """Row numbers count data rows only."""
        text = "name,email\n\nAlice,alice@x.com\n\n,bad@x.com\n"
        result = build_import(text, members, groups, clock=clock)
        assert [error.row_number for error in result.errors] == [2]

    def test_empty_text(self, members, groups, clock):
        """Empty input yields an empty result."""
        result = build_import("", members, groups, clock=clock)
        assert result.new_records == []
        assert result.updated_pairs == []
        assert result.errors == []

    def test_preview_caps_messages(self, members, groups, clock):
        """The preview carries the first messages and counts the rest."""
        text = "name,email\n" + "".join(f",row{n}@x.com\n" for n in range(1, 8))
        preview = build_import(text, members, groups, clock=clock).preview(limit=5)

        assert preview.error_count == 7
        assert preview.rejected_count == 7
        assert preview.error_messages[0] == "Row 1: Name is required"
        assert len(preview.error_messages) == 5
        assert preview.more_errors == 2
