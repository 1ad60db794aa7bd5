"""JSON encoders for audit events: NDJSON and Server-Sent Events framing."""

import json
from collections.abc import Iterable
from typing import Any

from auditstream.core.models import AuditEvent

SSE_KEEPALIVE = ": keep-alive\n\n"


def event_to_dict(event: AuditEvent) -> dict[str, Any]:
    """Convert an event to a JSON-serializable dict.

    The timestamp is rendered as an ISO-8601 string with UTC offset.
    """
    return {
        "timestamp": event.timestamp.isoformat(),
        "record_type": event.record_type,
        "sequence": event.sequence,
        "fields": dict(event.fields),
    }


def encode_event(event: AuditEvent) -> str:
    """Encode one event as a single-line JSON object."""
    return json.dumps(event_to_dict(event))


def encode_events(events: Iterable[AuditEvent]) -> str:
    """Encode events to newline-delimited JSON.

    Args:
        events: An iterable of AuditEvent objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no events.
    """
    lines = [encode_event(event) for event in events]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def encode_sse(event: AuditEvent) -> str:
    """Encode one event as a Server-Sent Events ``data:`` record."""
    return f"data: {encode_event(event)}\n\n"
