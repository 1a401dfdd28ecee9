"""
Import row outcomes and the batch result handed back for confirmation.

A row produces exactly one of NewRecord, UpdateRecord or a fatal RowError.
Informational RowErrors ride along with a record and never reject a row.
"""
from typing import Literal

from pydantic import BaseModel, Field

from .member import Member, MemberFields


class RowError(BaseModel):
    row_number: int  # 1-based, data rows only
    message: str
    severity: Literal["error", "info"] = "error"

    @property
    def is_fatal(self) -> bool:
        return self.severity == "error"

    def describe(self) -> str:
        return f"Row {self.row_number}: {self.message}"


class CandidateRecord(BaseModel):
    row_number: int
    fields: MemberFields


class NewRecord(BaseModel):
    row_number: int
    record: Member


class UpdateRecord(BaseModel):
    row_number: int
    record: Member
    original: Member


class ImportPreview(BaseModel):
    insert_count: int
    update_count: int
    error_count: int
    rejected_count: int
    error_messages: list[str] = Field(default_factory=list)
    more_errors: int = 0


class ImportResult(BaseModel):
    new_records: list[NewRecord] = Field(default_factory=list)
    updated_pairs: list[UpdateRecord] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)

    @property
    def rejected(self) -> list[RowError]:
        return [error for error in self.errors if error.is_fatal]

    def preview(self, limit: int = 5) -> ImportPreview:
        ordered = sorted(self.errors, key=lambda error: error.row_number)
        shown = ordered[:limit]
        return ImportPreview(
            insert_count=len(self.new_records),
            update_count=len(self.updated_pairs),
            error_count=len(self.errors),
            rejected_count=len(self.rejected),
            error_messages=[error.describe() for error in shown],
            more_errors=len(ordered) - len(shown),
        )
