"""macOS unified logging source using ``log stream`` with a predicate.

The filter configuration is translated into an NSPredicate string and
passed to ``log stream --style json``. JSON output arrives as an array
spread across lines, so array brackets and trailing commas are stripped
before each object is queued.
"""

import logging

from auditstream.adapters.sources.base import DEFAULT_POLL_INTERVAL
from auditstream.adapters.sources.process import ProcessLineSource
from auditstream.core.models import FilterConfig
from auditstream.errors import PredicateError, SourceConstructionError

logger = logging.getLogger(__name__)

DEFAULT_LOG_BINARY = "/usr/bin/log"

# Filter field -> (predicate key, operator, numeric)
_PREDICATE_CLAUSES: dict[str, tuple[str, str, bool]] = {
    "process": ("process", "==", False),
    "message": ("eventMessage", "contains", False),
    "subsystem": ("subsystem", "==", False),
    "pid": ("processID", "==", True),
    "thread_id": ("threadID", "==", True),
    "category": ("category", "==", False),
    "library": ("processImagePath", "contains", False),
}

_FRAMING_LINES = frozenset({"[", "]", "],"})


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def strip_json_framing(line: str) -> str | None:
    """Return one JSON object line without array framing, or None to skip it."""
    stripped = line.strip()
    if not stripped or stripped in _FRAMING_LINES:
        return None
    return stripped.rstrip(",") or None


def build_predicate(config: FilterConfig) -> str:
    """Build a ``log stream`` predicate from a filter config.

    One clause per non-empty field, joined with ``AND``. Returns an
    empty string when the config has no constraints.

    Raises:
        PredicateError: pid or thread_id is not a decimal number.
    """
    clauses = []
    for name, value in config.active_constraints():
        key, operator, numeric = _PREDICATE_CLAUSES[name]
        if numeric:
            number = value.strip()
            if not (number.isascii() and number.isdigit()):
                raise PredicateError(f"Filter field '{name}' must be numeric, got {value!r}")
            clauses.append(f"{key} {operator} {number}")
        else:
            clauses.append(f"{key} {operator} {_quote(value)}")
    return " AND ".join(clauses)


class LogStreamSource(ProcessLineSource):
    """Stream the macOS unified log as JSON, filtered by predicate.

    Args:
        config: Filter criteria translated into the predicate.
        binary: Path of the ``log`` tool.
        poll_interval: Queue wait tick used by receive().
    """

    name = "log-stream"

    def __init__(
        self,
        config: FilterConfig,
        binary: str = DEFAULT_LOG_BINARY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        try:
            self.predicate = build_predicate(config)
        except PredicateError as e:
            raise SourceConstructionError(str(e), source_name=self.name, orig_exc=e) from e

        command = [binary, "stream", "--style", "json"]
        if self.predicate:
            command += ["--predicate", self.predicate]
        logger.info("Starting log stream with predicate: %r", self.predicate)
        super().__init__(command, poll_interval)

    def clean_line(self, line: str) -> str | None:
        return strip_json_framing(line)
