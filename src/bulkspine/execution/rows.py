"""Row sources, work items and the resume filter.

Turns the caller's row source into an ordered list of :class:`WorkItem`
before any concurrency fan-out, so row numbers are fixed up front.

Accepted row sources:

- newline-delimited text plus a primary field: each non-blank line becomes
  ``{**defaults, primary_field: line.strip()}``
- a JSON array of objects (string)
- an already-decoded list of mappings

Example::

    items = build_work_items(
        "a@x.io\\nb@x.io\\n",
        primary_field="email",
        defaults={"status": "active", "notes": ""},
    )
    items[1].row_number, items[1].identifier, items[1].payload
    # (2, 'b@x.io', {'status': 'active', 'email': 'b@x.io'})
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from bulkspine.core.errors import ErrorCategory, JobConfigError
from bulkspine.execution.models import WorkItem

# Checked in order when the primary field gives no usable identifier
IDENTIFIER_FIELDS: tuple[str, ...] = (
    "email",
    "contact_email",
    "vendor_email",
    "name",
    "customer_name",
    "item_name",
)


def strip_empty(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is ``None`` or an empty string."""
    return {k: v for k, v in payload.items() if v is not None and v != ""}


def parse_row_source(
    source: Any,
    primary_field: str | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Decode a row source into a list of row mappings.

    Raises:
        JobConfigError: If the source cannot be decoded or yields no rows.
    """
    defaults = dict(defaults or {})

    if isinstance(source, str) and primary_field:
        lines = [line.strip() for line in source.splitlines() if line.strip()]
        rows: Any = [{**defaults, primary_field: line} for line in lines]
    elif isinstance(source, str):
        try:
            rows = json.loads(source)
        except json.JSONDecodeError as e:
            raise JobConfigError(f"Invalid bulk data: {e.msg}", category=ErrorCategory.PARSE, cause=e) from e
    else:
        rows = source

    if not isinstance(rows, list) or not rows:
        raise JobConfigError("Invalid bulk data or empty list.")
    if not all(isinstance(row, Mapping) for row in rows):
        raise JobConfigError("Every row must be an object.")
    return [dict(row) for row in rows]


def derive_identifier(
    payload: Mapping[str, Any],
    row_number: int,
    primary_field: str | None = None,
) -> str:
    """Pick the human identifier of a row, falling back to ``Row N``."""
    if primary_field:
        value = payload.get(primary_field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for key in IDENTIFIER_FIELDS:
        value = payload.get(key)
        if value:
            return str(value)
    return f"Row {row_number}"


def build_work_items(
    source: Any,
    primary_field: str | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> list[WorkItem]:
    """Parse a row source and assign 1-based row numbers and identifiers.

    Each payload is ``defaults`` merged with the row (row wins), with empty
    values stripped.
    """
    rows = parse_row_source(source, primary_field, defaults)
    items = []
    for index, row in enumerate(rows):
        row_number = index + 1
        payload = strip_empty({**(defaults or {}), **row})
        items.append(
            WorkItem(
                row_number=row_number,
                identifier=derive_identifier(payload, row_number, primary_field),
                payload=payload,
            )
        )
    return items


class ResumeFilter:
    """Identifiers already processed in an earlier run.

    Built once per job start and read-only afterwards; membership is O(1).
    """

    def __init__(self, processed_ids: Iterable[str] | None = None) -> None:
        self._ids = frozenset(str(i) for i in (processed_ids or ()))

    def should_skip(self, item: WorkItem) -> bool:
        return item.identifier in self._ids

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._ids

    def __len__(self) -> int:
        return len(self._ids)
