"""Linux audit source tailing the auditd log file."""

import os

from auditstream.adapters.sources.base import DEFAULT_POLL_INTERVAL
from auditstream.adapters.sources.process import ProcessLineSource
from auditstream.errors import SourceConstructionError

DEFAULT_AUDIT_LOG = "/var/log/audit/audit.log"


class TailFileSource(ProcessLineSource):
    """Follow a log file with ``tail -f`` and queue each line.

    Requires read access to the file, which for the auditd log usually
    means running as root or as a member of the audit group.

    Args:
        path: Log file to follow.
        poll_interval: Queue wait tick used by receive().
        tail_binary: ``tail`` executable to spawn.
    """

    name = "tail"

    def __init__(
        self,
        path: str = DEFAULT_AUDIT_LOG,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        tail_binary: str = "tail",
    ) -> None:
        if not os.path.isfile(path):
            raise SourceConstructionError(f"log file '{path}' does not exist", source_name=self.name)
        if not os.access(path, os.R_OK):
            raise SourceConstructionError(f"no read permission on '{path}'", source_name=self.name)
        self.path = path
        super().__init__([tail_binary, "-f", path], poll_interval)
