"""Core domain models for audit events and filter criteria."""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

# Record type for free-text and structured (JSON) records
GENERIC_RECORD_TYPE = 1
# Record type when a legacy "type=" token carries no usable digits
UNKNOWN_RECORD_TYPE = 0

MAX_RECORD_TYPE = 0xFFFF
MAX_SEQUENCE = 0xFFFFFFFF

# Synthetic field keys injected by the parser
FIELD_MESSAGE = "message"
FIELD_PROCESS = "process"
FIELD_PID = "pid"
FIELD_THREAD_ID = "thread_id"
FIELD_SUBSYSTEM = "subsystem"
FIELD_CATEGORY = "category"
FIELD_LIBRARY = "library"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AuditEvent:
    """A single normalized audit event.

    Attributes:
        timestamp: When the event was recorded or received (UTC).
        record_type: Origin format classifier (e.g. 1300 for a syscall
            record, 1 for generic text/JSON records).
        sequence: Serial number from the source, 0 when the format has none.
        fields: Key/value pairs extracted from the raw record. Read-only.
    """

    timestamp: datetime
    record_type: int
    sequence: int
    fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def now(
        cls,
        record_type: int,
        sequence: int = 0,
        fields: Mapping[str, str] | None = None,
    ) -> "AuditEvent":
        """Create an event stamped with the current reception time."""
        return cls(
            timestamp=_utcnow(),
            record_type=record_type,
            sequence=sequence,
            fields=fields or {},
        )


@dataclass(frozen=True)
class FilterConfig:
    """Subscription criteria passed to audit sources.

    Every field is optional. ``None`` or an empty string means no
    constraint on that dimension.
    """

    process: str | None = None
    message: str | None = None
    subsystem: str | None = None
    pid: str | None = None
    thread_id: str | None = None
    category: str | None = None
    library: str | None = None

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterConfig":
        """Build a config from a decoded JSON object.

        Raises:
            ValueError: On unknown keys or non-string values.
        """
        known = cls.field_names()
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(unknown)}")
        values: dict[str, str | None] = {}
        for name in known:
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Filter field '{name}' must be a string or null")
            values[name] = value
        return cls(**values)

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)

    def active_constraints(self) -> list[tuple[str, str]]:
        """Return (name, value) pairs for non-empty fields, in declaration order."""
        return [(name, value) for name, value in asdict(self).items() if value]

    def is_empty(self) -> bool:
        return not self.active_constraints()
