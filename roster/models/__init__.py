from .base import Base
from .group import GroupRow
from .member import MemberRow

__all__ = [
    "Base",
    "GroupRow",
    "MemberRow",
]
