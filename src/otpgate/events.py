"""Audit trail for 2FA state transitions.

The lifecycle calls async_emit() after every committed transition. Emitting
is best effort: a failed insert is logged and never fails the request whose
state change has already been committed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from otpgate.db import execute

logger = logging.getLogger(__name__)


async def async_emit(
    event_type: str,
    message: str,
    *,
    account_id: str | None = None,
    severity: str = "info",
    context: dict[str, Any] | None = None,
) -> int | None:
    """Insert a structured event into security_events.

    Returns the event ID if successful, None on failure.
    """
    try:
        rows = await execute(
            """INSERT INTO security_events
               (severity, event_type, message, account_id, context)
               VALUES (%s, %s, %s, %s, %s)
               RETURNING id""",
            (
                severity,
                event_type,
                message,
                account_id,
                json.dumps(context or {}),
            ),
        )
        event_id = rows[0]["id"] if rows else None
        logger.info("[event] %s: %s", event_type, message)
        return event_id
    except Exception:
        logger.warning("Failed to emit event: %s: %s", event_type, message, exc_info=True)
        return None


async def async_get_events(
    account_id: str | None = None,
    event_type: str | None = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """Most recent events first, optionally filtered by account and type."""
    conditions: list[str] = []
    params: list[Any] = []

    if account_id:
        conditions.append("account_id = %s")
        params.append(account_id)
    if event_type:
        conditions.append("event_type = %s")
        params.append(event_type)

    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    params.append(limit)

    return await execute(
        f"""SELECT id, timestamp, severity, event_type, account_id, message, context
            FROM security_events
            {where}
            ORDER BY id DESC
            LIMIT %s""",
        tuple(params),
    )
