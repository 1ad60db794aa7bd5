"""Live OS audit event streaming with runtime-reconfigurable sources."""

from auditstream.core.models import AuditEvent, FilterConfig

__version__ = "0.1.0"

__all__ = [
    "AuditEvent",
    "FilterConfig",
    "__version__",
]
