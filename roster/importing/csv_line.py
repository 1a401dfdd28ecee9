"""
Delimited-text codec for bulk member import and export.

Quoting rules (RFC 4180 style):
- Fields are comma-separated
- A double-quoted field keeps commas and newlines literally
- Inside quotes, a doubled quote is one literal quote
- Whitespace outside quotes is trimmed; quoted whitespace is kept

parse_line handles one logical record; split_records cuts a whole file into
logical records so quoted newlines never split a row.
"""
from __future__ import annotations

from collections.abc import Iterable

QUOTE = '"'
DELIMITER = ","
_BOM = "\ufeff"
_NEEDS_QUOTING = (QUOTE, DELIMITER, "\n", "\r")


def parse_line(line: str) -> list[str]:
    """
    Parse one logical record into its field values.

    Two states, unquoted and quoted. The end of the line always emits the
    pending field, so an empty line yields a single empty field. Whitespace
    outside quotes is trimmed; quoted text is kept exactly.

    Args:
        line: One record, without its terminating newline

    Returns:
        list[str]: Field values in column order
    """
    fields: list[str] = []
    current: list[str] = []
    # span of current covered by quoted text, as [start, end)
    quoted_start: int | None = None
    quoted_end = 0
    in_quotes = False
    index = 0
    length = len(line)

    while index < length:
        char = line[index]
        if in_quotes:
            if char == QUOTE:
                if index + 1 < length and line[index + 1] == QUOTE:
                    current.append(QUOTE)
                    index += 2
                    continue
                in_quotes = False
                quoted_end = len(current)
            else:
                current.append(char)
        elif char == QUOTE:
            in_quotes = True
            if quoted_start is None:
                quoted_start = len(current)
        elif char == DELIMITER:
            fields.append(_finish_field(current, quoted_start, quoted_end))
            current = []
            quoted_start = None
            quoted_end = 0
        else:
            current.append(char)
        index += 1

    if in_quotes:
        quoted_end = len(current)
    fields.append(_finish_field(current, quoted_start, quoted_end))
    return fields


def _finish_field(chars: list[str], quoted_start: int | None, quoted_end: int) -> str:
    value = "".join(chars)
    if quoted_start is None:
        return value.strip()
    return (
        value[:quoted_start].lstrip()
        + value[quoted_start:quoted_end]
        + value[quoted_end:].rstrip()
    )


def split_records(text: str) -> list[str]:
    """
    Split file text into logical records.

    Newlines inside quoted fields stay part of the record. CRLF endings are
    accepted, a leading byte-order mark is dropped, and blank records are
    skipped.
    """
    if text.startswith(_BOM):
        text = text[len(_BOM):]

    records: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in text:
        if char == QUOTE:
            # A doubled quote toggles twice, which leaves the state unchanged
            in_quotes = not in_quotes
            current.append(char)
        elif char == "\n" and not in_quotes:
            _emit(records, current)
            current = []
        else:
            current.append(char)

    _emit(records, current)
    return records


def _emit(records: list[str], chars: list[str]) -> None:
    record = "".join(chars)
    if record.endswith("\r"):
        record = record[:-1]
    if record.strip():
        records.append(record)


def format_field(value: str) -> str:
    if value != value.strip() or any(marker in value for marker in _NEEDS_QUOTING):
        return QUOTE + value.replace(QUOTE, QUOTE * 2) + QUOTE
    return value


def format_line(values: Iterable[str]) -> str:
    """Render values as one record that parse_line reads back unchanged."""
    return DELIMITER.join(format_field(value) for value in values)
