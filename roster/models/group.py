from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class GroupRow(Base):
    __tablename__ = "member_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # case-insensitive uniqueness is enforced by the group service
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subgroups: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
