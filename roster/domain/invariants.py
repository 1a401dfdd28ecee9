"""
Member and group invariants checked before any store write.

All checks raise ValidationError with a field -> message map in ``details``
so a form can show every problem at once.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Final

from ..errors import ValidationError
from ..importing.row_mapper import is_valid_email
from ..schemas.group import Group
from ..schemas.member import MemberFields

logger = logging.getLogger(__name__)

_IMAGE_URL_PATTERN: Final = re.compile(r"^(https?://|data:image/).+")
_PHOTO_URL_PATTERN: Final = re.compile(r"^https?://.+")


def is_valid_image_url(value: str) -> bool:
    return bool(_IMAGE_URL_PATTERN.match(value))


def is_valid_photo_url(value: str) -> bool:
    return bool(_PHOTO_URL_PATTERN.match(value))


def normalize_affiliations(values: Sequence[str]) -> list[str]:
    """Trim, drop blanks and drop repeats, keeping first occurrence order."""
    result: list[str] = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def validate_member_fields(
    fields: MemberFields,
    groups: Sequence[Group],
    *,
    known_member_ids: set[str] | None = None,
) -> None:
    """
    Validate a member as entered through the member form.

    Args:
        fields: Candidate field values
        groups: Existing groups, used for group and subgroup references
        known_member_ids: Ids that related_member_ids may point at

    Raises:
        ValidationError: If any field is invalid
    """
    errors: dict[str, str] = {}

    if not fields.name.strip():
        errors["name"] = "Name is required."
    if not fields.role.strip():
        errors["role"] = "Role is required."
    if not fields.bio.strip():
        errors["bio"] = "Bio is required."
    if fields.email and not is_valid_email(fields.email):
        errors["email"] = "Please enter a valid email address."
    if fields.image_url and not is_valid_image_url(fields.image_url):
        errors["image_url"] = (
            "Please enter a valid URL (starting with http://, https://, or data:image/)."
        )

    if fields.group_id is not None:
        group = next((group for group in groups if group.id == fields.group_id), None)
        if group is None:
            errors["group_id"] = "Group does not exist."
        elif fields.subgroup is not None and group.find_subgroup(fields.subgroup) is None:
            errors["subgroup"] = f"Subgroup does not exist in group '{group.name}'."
    elif fields.subgroup is not None:
        errors["subgroup"] = "A subgroup requires a group."

    if known_member_ids is not None:
        unknown = [ref for ref in fields.related_member_ids if ref not in known_member_ids]
        if unknown:
            errors["related_member_ids"] = f"Unknown related members: {', '.join(unknown)}"

    if errors:
        logger.info("validation_failed fields=%s", ",".join(sorted(errors)))
        raise ValidationError("Member validation failed", details=errors)


def validate_group_name(name: str) -> str:
    """Return the trimmed name, or raise if blank. Uniqueness is checked by the service."""
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Group name is required", details={"name": "Group name is required."})
    return cleaned


def validate_subgroup_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError(
            "Subgroup name is required", details={"subgroup": "Subgroup name is required."}
        )
    return cleaned
