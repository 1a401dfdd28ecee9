from datetime import datetime
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    PENDING = "Pending"


class MemberType(str, Enum):
    PLAYER = "Player"
    COACH = "Coach"
    PARENT = "Parent"
    STAFF = "Staff"
    VOLUNTEER = "Volunteer"


class AcademyLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    ELITE = "Elite"


class LogEntry(CamelModel):
    timestamp: datetime
    message: str
    author_role: str | None = None


class PhotoLink(CamelModel):
    url: str
    caption: str = ""
    added_at: datetime


class SessionCancellation(CamelModel):
    session: str
    cancelled_on: datetime | None = None
    reason: str = ""
    recorded_at: datetime


class MemberFields(CamelModel):
    """Every field a person (or an import row) may supply for a member."""

    name: str = ""
    role: str = ""
    email: str = ""
    status: MemberStatus = MemberStatus.ACTIVE
    member_type: MemberType = MemberType.PLAYER
    academy_level: AcademyLevel = AcademyLevel.BEGINNER
    phone: str = ""
    address: str = ""
    bio: str = ""
    image_url: str = ""
    date_joined: datetime | None = None
    birthdate: datetime | None = None
    gender: str = ""
    group_id: str | None = None
    subgroup: str | None = None
    affiliations: list[str] = Field(default_factory=list)
    education: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    sessions: list[str] = Field(default_factory=list)
    related_member_ids: list[str] = Field(default_factory=list)


class Member(MemberFields):
    """A stored member record. Every log is newest-first and append-only."""

    id: str
    created_at: datetime
    updated_at: datetime | None = None
    activity_log: list[LogEntry] = Field(default_factory=list)
    communications_log: list[LogEntry] = Field(default_factory=list)
    coach_comments_log: list[LogEntry] = Field(default_factory=list)
    photo_links: list[PhotoLink] = Field(default_factory=list)
    session_cancellations: list[SessionCancellation] = Field(default_factory=list)


# Logs written through dedicated operations but gated like fields
LOG_FIELDS_GATED_AS_EDITS: Final[frozenset[str]] = frozenset({"photo_links", "session_cancellations"})

EDITABLE_MEMBER_FIELDS: Final[frozenset[str]] = (
    frozenset(MemberFields.model_fields) | LOG_FIELDS_GATED_AS_EDITS
)

LIST_FIELDS: Final[frozenset[str]] = frozenset({
    "affiliations",
    "education",
    "achievements",
    "sessions",
})
