"""Project-specific exception classes."""


class AuditStreamError(Exception):
    """Base class for all custom exceptions in auditstream."""

    pass


class ConfigurationError(AuditStreamError):
    """Raised when process settings cannot be loaded or validated."""

    pass


class SourceError(AuditStreamError):
    """Base class for audit source failures."""

    pass


class SourceConstructionError(SourceError):
    """
    Raised when an audit source cannot be created: missing privilege,
    missing binary, failed subscription or an unusable predicate.
    """

    def __init__(
        self,
        message: str,
        source_name: str | None = None,
        orig_exc: Exception | None = None,
    ):
        self.source_name = source_name
        self.orig_exc = orig_exc

        full_msg = "Failed to create audit source"
        if source_name:
            full_msg += f" (source: {source_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class UnsupportedPlatformError(SourceConstructionError):
    """Raised when no audit source variant exists for the running platform."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"unsupported platform '{platform}'")


class SourceClosedError(SourceError):
    """Raised by receive() on a stopped source with nothing left to deliver."""

    pass


class ParseError(AuditStreamError):
    """Raised when a structured record cannot be decoded."""

    pass


class PredicateError(AuditStreamError, ValueError):
    """Raised when a filter value cannot be expressed as a native predicate."""

    pass


class ChannelClosedError(AuditStreamError):
    """Raised when publishing into a hand-off queue that has been closed."""

    pass
