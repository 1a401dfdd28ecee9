from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class MemberRow(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # store order; find_by_email returns the lowest position on ties
    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(
        String(320), nullable=False, default="", index=True
    )  # natural key for import matching, not unique-constrained
    # casefolded email; lookups match the import reconciler's rule
    email_key: Mapped[str] = mapped_column(
        String(320), nullable=False, default="", index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    member_type: Mapped[str] = mapped_column(String(20), nullable=False)
    academy_level: Mapped[str] = mapped_column(String(20), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date_joined: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    birthdate: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    gender: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    group_id: Mapped[str | None] = mapped_column(String(36), index=True)
    subgroup: Mapped[str | None] = mapped_column(String(255))
    affiliations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    education: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    achievements: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sessions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    related_member_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # newest-first logs
    activity_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    communications_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    coach_comments_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    photo_links: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    session_cancellations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
