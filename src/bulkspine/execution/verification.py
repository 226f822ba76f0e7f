"""Verification sub-task: read back a created record.

After a successful create, and only when the create response yields a
record id, a fire-and-forget task waits a grace period (the remote side may
index asynchronously), fetches the record once, and reports a
``row.verified`` amendment.  The amendment never flips the original
success: "created but verification failed" is its own outcome.

Record id extraction (:func:`find_record_id`) is best-effort and
deterministic:

1. ``id``, then ``module_record_id`` on the object itself
2. the first key ending in ``_id`` holding a string or number
3. recurse into nested objects (not lists), in key order

First match wins.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from bulkspine.core.errors import VerificationError
from bulkspine.core.logging import get_logger
from bulkspine.execution.models import JobConfig, ResultStage, RowResult, WorkItem
from bulkspine.execution.remote import RemoteCall, describe_remote_error

logger = get_logger(__name__)

DIRECT_ID_FIELDS = ("id", "module_record_id")


def _is_scalar_id(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def find_record_id(data: Any) -> Any:
    """Best-effort search for a record identifier in a response body."""
    if not isinstance(data, dict):
        return None
    for key in DIRECT_ID_FIELDS:
        if data.get(key):
            return data[key]
    for key, value in data.items():
        if key.endswith("_id") and _is_scalar_id(value) and value != "":
            return value
    for value in data.values():
        if isinstance(value, dict):
            found = find_record_id(value)
            if found:
                return found
    return None


async def verify_created(
    call: RemoteCall,
    config: JobConfig,
    item: WorkItem,
    record_id: Any,
    *,
    grace_seconds: float,
    is_active: Callable[[], bool],
    report: Callable[[RowResult], None],
) -> RowResult | None:
    """Wait, re-fetch the record, and report the amendment.

    Nothing is reported if the job left the registry during the grace
    period.  Returns the reported result, or None if dropped.
    """
    await asyncio.sleep(grace_seconds)
    if not is_active():
        return None

    body: Any = None
    try:
        body = await call("get", config.verification_path(record_id), None, config.credentials)
        if not find_record_id(body):
            raise VerificationError("Record not found (API returned empty or invalid data)")
        verified, error = True, None
    except VerificationError as e:
        verified, error = False, e.message
    except Exception as e:
        verified = False
        error, body = describe_remote_error(e)

    if not is_active():
        return None

    if not verified:
        logger.warning("verification.failed", row_number=item.row_number, record_id=record_id, error=error)

    result = RowResult(
        row_number=item.row_number,
        identifier=item.identifier,
        stage=ResultStage.VERIFIED,
        success=True,
        details="Verified" if verified else "Created but verification failed",
        full_response=body if body is not None else {"error": error},
        verify_status="success" if verified else "failed",
    )
    if error:
        result.details = f"{result.details}: {error}"
    report(result)
    return result
