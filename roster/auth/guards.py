"""
Enforcement points for mutating operations.

The resolver only answers questions. These helpers turn a negative answer
into PermissionError before any write happens, so callers never reach a
mutating path without the capability.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import PermissionError
from .permission_catalog import Capability
from .permission_resolver import PermissionResolver, RoleLike

logger = logging.getLogger(__name__)


def require_capability(
    resolver: PermissionResolver,
    role: RoleLike,
    capability: Capability,
    *,
    operation: str,
) -> None:
    """
    Raise unless ``role`` holds ``capability``.

    Raises:
        PermissionError: With the capability and operation in ``details``
    """
    if resolver.has_capability(role, capability):
        return
    logger.info(
        "permission_denied operation=%s role=%s capability=%s",
        operation,
        role,
        capability.value,
    )
    raise PermissionError(
        f"Permission denied: {capability.value} required",
        details={"capability": capability.value, "operation": operation},
    )


def require_field_edits(
    resolver: PermissionResolver,
    role: RoleLike,
    fields: Iterable[str],
    *,
    operation: str,
) -> None:
    """Raise unless ``role`` may edit every one of ``fields``."""
    denied = sorted(name for name in set(fields) if not resolver.can_edit_field(role, name))
    if not denied:
        return
    logger.info(
        "permission_denied operation=%s role=%s fields=%s",
        operation,
        role,
        ",".join(denied),
    )
    raise PermissionError(
        f"Permission denied: cannot edit {', '.join(denied)}",
        details={"fields": denied, "operation": operation},
    )
