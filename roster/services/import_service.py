"""
Bulk import: read, preview, then apply on explicit confirmation.

preview() never writes. apply() is the confirmation step; it re-reads every
record the preview was computed against and refuses to write if any of them
changed since, so a stale preview cannot overwrite newer edits.
"""
from __future__ import annotations

import logging
from pathlib import Path

from ..auth.guards import require_capability
from ..auth.permission_catalog import Capability
from ..auth.permission_resolver import (
    PermissionResolver,
    RoleLike,
    default_resolver,
    role_name,
)
from ..clock import system_clock
from ..config import get_settings
from ..domain.ports.clock import Clock
from ..domain.ports.record_store import RecordStore
from ..errors import ConflictError, ImportFileError
from ..importing.batch import build_import
from ..importing.reconcile import IdFactory, new_member_id
from ..importing.row_mapper import IMPORTABLE_FIELDS
from ..schemas.imports import ImportPreview, ImportResult
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def read_import_file(path: str | Path) -> str:
    """
    Read an import file as text.

    Raises:
        ImportFileError: If the file cannot be opened or is not UTF-8
    """
    source = Path(path)
    try:
        return source.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("operation=import action=read path=%s error=%s", source, exc)
        raise ImportFileError(
            f"Could not read import file {source.name}",
            details={"path": str(source), "reason": str(exc)},
        ) from exc


class ImportService:
    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Clock = system_clock,
        resolver: PermissionResolver = default_resolver,
        id_factory: IdFactory = new_member_id,
        preview_limit: int | None = None,
    ):
        self.store = store
        self.clock = clock
        self.resolver = resolver
        self.id_factory = id_factory
        self.preview_limit = preview_limit

    def writable_fields(self, role: RoleLike) -> frozenset[str]:
        """Importable fields the role may write."""
        return frozenset(
            name for name in IMPORTABLE_FIELDS if self.resolver.can_edit_field(role, name)
        )

    async def preview(self, text: str, role: RoleLike) -> ImportResult:
        """
        Reconcile import text against a snapshot of the store.

        Args:
            text: Delimited text with a header row
            role: The acting role

        Returns:
            ImportResult: Proposed inserts and updates plus per-row errors

        Raises:
            PermissionError: If the role cannot import members
        """
        require_capability(
            self.resolver, role, Capability.IMPORT_MEMBERS, operation="import.preview"
        )
        result = build_import(
            text,
            await self.store.list_members(),
            await self.store.list_groups(),
            clock=self.clock,
            id_factory=self.id_factory,
            writable_fields=self.writable_fields(role),
            author_role=role_name(role),
        )
        logger.info(
            "operation=import action=preview role=%s inserts=%d updates=%d errors=%d",
            role_name(role),
            len(result.new_records),
            len(result.updated_pairs),
            len(result.errors),
        )
        return result

    async def preview_file(self, path: str | Path, role: RoleLike) -> ImportResult:
        require_capability(
            self.resolver, role, Capability.IMPORT_MEMBERS, operation="import.preview"
        )
        return await self.preview(read_import_file(path), role)

    def summarize(self, result: ImportResult) -> ImportPreview:
        limit = self.preview_limit
        if limit is None:
            limit = get_settings().import_error_preview_limit
        return result.preview(limit)

    async def _check_not_stale(self, result: ImportResult) -> None:
        for pair in result.updated_pairs:
            current = await self.store.get(pair.original.id)
            if current != pair.original:
                raise ConflictError(
                    f"Row {pair.row_number}: member changed since the preview was made",
                    details={"row_number": pair.row_number, "member_id": pair.original.id},
                )
        for new in result.new_records:
            if not new.record.email:
                continue
            existing = await self.store.find_by_email(new.record.email)
            if existing is not None:
                raise ConflictError(
                    f"Row {new.row_number}: email '{new.record.email}' was added since the preview was made",
                    details={"row_number": new.row_number, "member_id": existing.id},
                )

    async def apply(self, result: ImportResult, role: RoleLike) -> ImportPreview:
        """
        Write a confirmed import.

        All inserts and updates are committed together or not at all.

        Raises:
            PermissionError: If the role cannot import members
            ConflictError: If the store changed since the preview
        """
        require_capability(
            self.resolver, role, Capability.IMPORT_MEMBERS, operation="import.apply"
        )
        await self._check_not_stale(result)

        try:
            async with unit_of_work(self.store):
                await self.store.apply_batch(
                    [new.record for new in result.new_records],
                    [pair.record for pair in result.updated_pairs],
                )
        except Exception:
            logger.exception(
                "operation=import action=apply role=%s status=rolled_back", role_name(role)
            )
            raise

        logger.info(
            "operation=import action=apply role=%s inserts=%d updates=%d",
            role_name(role),
            len(result.new_records),
            len(result.updated_pairs),
        )
        return self.summarize(result)
