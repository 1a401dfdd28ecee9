from datetime import datetime, timezone

import pytest

from roster.importing.row_mapper import (
    clamp_enum,
    header_targets,
    map_row,
    parse_date,
    split_list,
)
from roster.schemas.member import AcademyLevel, MemberStatus, MemberType

HEADERS = ["name", "email", "status", "memberType", "groupName", "subgroup", "affiliations"]


class TestHeaderMatching:
    """Test header normalisation."""

    def test_case_spaces_and_separators_ignored(self):
        """Header spelling variants resolve to the same field."""
        assert header_targets(["Member Type", "academy_level", "Date-Joined", "GROUPNAME"]) == [
            "member_type",
            "academy_level",
            "date_joined",
            "group_name",
        ]

    def test_unknown_headers_ignored(self):
        """Unrecognised columns map to None."""
        assert header_targets(["favouriteColour"]) == [None]


class TestCellHelpers:
    """Test coercion helpers."""

    def test_clamp_enum_matches_case_insensitively(self):
        """Known values match regardless of case."""
        assert clamp_enum(MemberStatus, "pending", MemberStatus.ACTIVE) == MemberStatus.PENDING

    def test_clamp_enum_falls_back_to_default(self):
        """Unknown values become the default, never an error."""
        assert clamp_enum(AcademyLevel, "Wizard", AcademyLevel.BEGINNER) == AcademyLevel.BEGINNER

    def test_split_list_keeps_order_and_duplicates(self):
        """Entries are trimmed, blanks dropped, repeats kept."""
        assert split_list(" Club A, ,Club B,Club A ") == ["Club A", "Club B", "Club A"]

    def test_parse_date_iso(self):
        """ISO dates parse to aware UTC timestamps."""
        assert parse_date("2024-02-10") == datetime(2024, 2, 10, tzinfo=timezone.utc)

    def test_parse_date_us_format(self):
        """Month/day/year is accepted."""
        assert parse_date("02/10/2024") == datetime(2024, 2, 10, tzinfo=timezone.utc)

    def test_parse_date_garbage(self):
        """Unparseable text yields None."""
        assert parse_date("sometime soon") is None
        assert parse_date("") is None

    @pytest.mark.parametrize("raw", ["2019", "20240115", "45000", "-3", "1.5e9"])
    def test_parse_date_rejects_bare_numbers(self, raw):
        """Year-only, compact and serial numbers are not read as timestamps."""
        assert parse_date(raw) is None


class TestMapRow:
    """Test mapping one row to a candidate."""

    def test_valid_row(self, groups, clock):
        """A full row maps every field."""
        values = ["Alice", "alice@x.com", "Inactive", "Coach", "under 12", "blue", "Club A, Club B"]
        mapping = map_row(HEADERS, values, groups, row_number=1, clock=clock)

        assert mapping.errors == []
        fields = mapping.candidate.fields
        assert fields.name == "Alice"
        assert fields.status == MemberStatus.INACTIVE
        assert fields.member_type == MemberType.COACH
        assert fields.group_id == "g-u12"
        assert fields.subgroup == "Blue"
        assert fields.affiliations == ["Club A", "Club B"]
        assert fields.date_joined == clock.now()

    def test_column_count_mismatch(self, groups, clock):
        """A short row is rejected with no candidate."""
        mapping = map_row(HEADERS, ["Alice", "alice@x.com"], groups, row_number=4, clock=clock)

        assert mapping.candidate is None
        assert len(mapping.errors) == 1
        assert mapping.errors[0].row_number == 4
        assert "Column count mismatch" in mapping.errors[0].message

    def test_missing_name(self, groups, clock):
        """A blank name rejects the row."""
        values = ["  ", "a@x.com", "Active", "", "", "", ""]
        mapping = map_row(HEADERS, values, groups, row_number=2, clock=clock)

        assert mapping.candidate is None
        assert [error.message for error in mapping.errors] == ["Name is required"]

    def test_malformed_email(self, groups, clock):
        """An email without a domain rejects the row."""
        values = ["Alice", "alice@nowhere", "", "", "", "", ""]
        mapping = map_row(HEADERS, values, groups, row_number=3, clock=clock)

        assert mapping.candidate is None
        assert mapping.errors[0].is_fatal

    def test_unknown_enum_is_clamped(self, groups, clock):
        """A bad status is not an error."""
        values = ["Alice", "", "Retired", "Astronaut", "", "", ""]
        mapping = map_row(HEADERS, values, groups, row_number=1, clock=clock)

        assert mapping.errors == []
        assert mapping.candidate.fields.status == MemberStatus.ACTIVE
        assert mapping.candidate.fields.member_type == MemberType.PLAYER

    def test_unknown_group_is_informational(self, groups, clock):
        """An unknown group leaves the member unassigned with one info error."""
        values = ["Alice", "", "", "", "Veterans", "Red", ""]
        mapping = map_row(HEADERS, values, groups, row_number=5, clock=clock)

        assert mapping.candidate is not None
        assert mapping.candidate.fields.group_id is None
        assert mapping.candidate.fields.subgroup is None
        assert len(mapping.errors) == 1
        assert mapping.errors[0].severity == "info"
        assert not mapping.errors[0].is_fatal
        assert mapping.errors[0].describe() == "Row 5: Group 'Veterans' not found, member unassigned"

    def test_unknown_subgroup_dropped_silently(self, groups, clock):
        """A subgroup outside the group is dropped without an error."""
        values = ["Alice", "", "", "", "Under 12", "Green", ""]
        mapping = map_row(HEADERS, values, groups, row_number=1, clock=clock)

        assert mapping.errors == []
        assert mapping.candidate.fields.group_id == "g-u12"
        assert mapping.candidate.fields.subgroup is None

    def test_date_joined_parsed(self, groups, clock):
        """A parseable join date is kept."""
        mapping = map_row(
            ["name", "dateJoined", "birthdate"],
            ["Alice", "2020-05-01", "not a date"],
            groups,
            row_number=1,
            clock=clock,
        )
        assert mapping.candidate.fields.date_joined == datetime(2020, 5, 1, tzinfo=timezone.utc)
        assert mapping.candidate.fields.birthdate is None

    def test_numeric_date_joined_falls_back_to_now(self, groups, clock):
        """A year-only join date counts as unparseable."""
        mapping = map_row(
            ["name", "dateJoined", "birthdate"],
            ["Alice", "2019", "2010"],
            groups,
            row_number=1,
            clock=clock,
        )
        assert mapping.candidate.fields.date_joined == clock.now()
        assert mapping.candidate.fields.birthdate is None

    def test_unwritable_columns_ignored(self, groups, clock):
        """Columns outside the writable set are not read."""
        values = ["Alice", "alice@x.com", "Inactive", "Coach", "Under 12", "", ""]
        mapping = map_row(
            HEADERS,
            values,
            groups,
            row_number=1,
            clock=clock,
            writable_fields={"name", "email"},
        )

        fields = mapping.candidate.fields
        assert fields.status == MemberStatus.ACTIVE
        assert fields.member_type == MemberType.PLAYER
        assert fields.group_id is None
        assert fields.date_joined is None
