"""Wire encoders for audit events."""

from auditstream.core.encoding.ndjson import (
    SSE_KEEPALIVE,
    encode_event,
    encode_events,
    encode_sse,
    event_to_dict,
)

__all__ = [
    "SSE_KEEPALIVE",
    "encode_event",
    "encode_events",
    "encode_sse",
    "event_to_dict",
]
