"""Raw record parsing into canonical audit events.

Three record shapes are recognized, first match wins:

1. Structured JSON objects as emitted by ``log stream --style json``
   (and the envelope used by the Windows event log source).
2. Legacy Linux audit lines: ``type=1300 msg=audit(1674390000.123:100): ...``
3. Anything else, kept whole as a free-text message.
"""

import json
from typing import Any

from auditstream.core.models import (
    FIELD_CATEGORY,
    FIELD_LIBRARY,
    FIELD_MESSAGE,
    FIELD_PID,
    FIELD_PROCESS,
    FIELD_SUBSYSTEM,
    FIELD_THREAD_ID,
    GENERIC_RECORD_TYPE,
    MAX_RECORD_TYPE,
    MAX_SEQUENCE,
    UNKNOWN_RECORD_TYPE,
    AuditEvent,
)
from auditstream.errors import ParseError

# Structured log key -> canonical field keys it populates
_STRING_KEYS: dict[str, tuple[str, ...]] = {
    "eventMessage": (FIELD_MESSAGE,),
    "processImagePath": (FIELD_PROCESS, FIELD_LIBRARY),
    "subsystem": (FIELD_SUBSYSTEM,),
    "category": (FIELD_CATEGORY,),
}
_INTEGER_KEYS: dict[str, str] = {
    "processID": FIELD_PID,
    "threadID": FIELD_THREAD_ID,
}


def _parse_bounded_int(digits: str, maximum: int) -> int:
    """Parse an ASCII decimal string, returning 0 if empty, invalid or too large."""
    if not digits or not (digits.isascii() and digits.isdigit()):
        return 0
    # Longer than the widest in-range value: overflow without calling int()
    if len(digits.lstrip("0")) > len(str(maximum)):
        return 0
    value = int(digits)
    return value if value <= maximum else 0


def _extract_record_type(value: str) -> int:
    digits = "".join(c for c in value if c.isascii() and c.isdigit())
    if not digits:
        return UNKNOWN_RECORD_TYPE
    return _parse_bounded_int(digits, MAX_RECORD_TYPE)


def _extract_serial(value: str) -> int | None:
    """Return the serial inside ``audit(EPOCH:SERIAL)``.

    Returns None when the value has no ``:`` ... ``)`` span at all, and 0
    when the span exists but is not a valid serial.
    """
    start = value.find(":")
    if start == -1:
        return None
    end = value.find(")", start + 1)
    if end == -1:
        return None
    return _parse_bounded_int(value[start + 1 : end], MAX_SEQUENCE)


def _parse_structured(text: str) -> AuditEvent:
    try:
        document: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid structured record: {e.msg}") from e
    except (ValueError, RecursionError) as e:
        # Oversized integers and excessive nesting
        raise ParseError(f"Unsupported structured record: {type(e).__name__}") from e
    if not isinstance(document, dict):
        raise ParseError("Structured record is not a JSON object")

    fields: dict[str, str] = {}
    for key, targets in _STRING_KEYS.items():
        value = document.get(key)
        if isinstance(value, str):
            for target in targets:
                fields[target] = value
    for key, target in _INTEGER_KEYS.items():
        value = document.get(key)
        # bool is an int subclass; JSON true/false is not an id
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            fields[target] = str(value)

    # The source timestamp string is not parsed; reception time is used.
    return AuditEvent.now(GENERIC_RECORD_TYPE, 0, fields)


def _is_legacy_audit_line(text: str) -> bool:
    return "type=" in text and "msg=audit" in text


def _parse_legacy(text: str) -> AuditEvent:
    record_type = UNKNOWN_RECORD_TYPE
    sequence = 0
    fields: dict[str, str] = {}

    for token in text.split():
        key, sep, value = token.partition("=")
        if not sep:
            continue
        fields[key] = value
        if key == "type":
            record_type = _extract_record_type(value)
        elif key == "msg":
            serial = _extract_serial(value)
            if serial is not None:
                sequence = serial

    return AuditEvent.now(record_type, sequence, fields)


def parse_record(raw: bytes) -> AuditEvent:
    """Parse one raw record into a canonical event.

    Args:
        raw: The record bytes as delivered by an audit source. Invalid
            UTF-8 sequences are replaced.

    Returns:
        The canonical AuditEvent.

    Raises:
        ParseError: The record looks like a JSON object but cannot be
            decoded. This is the only failure path.
    """
    text = raw.decode("utf-8", errors="replace")
    stripped = text.strip()

    if stripped.startswith("{"):
        return _parse_structured(stripped)
    if _is_legacy_audit_line(text):
        return _parse_legacy(text)
    return AuditEvent.now(GENERIC_RECORD_TYPE, 0, {FIELD_MESSAGE: text})
