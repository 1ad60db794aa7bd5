"""Base class for sources backed by a long-lived subprocess.

The subprocess is spawned in the constructor so that a missing binary
surfaces as a SourceConstructionError. A daemon reader thread captures
its stdout line by line. When the process exits on its own the reader
finishes and the source simply goes quiet; ``is_alive()`` reports it.
"""

import logging
import subprocess
import threading
from collections.abc import Sequence

from auditstream.adapters.sources.base import DEFAULT_POLL_INTERVAL, QueuedSource
from auditstream.errors import SourceConstructionError

logger = logging.getLogger(__name__)


class ProcessLineSource(QueuedSource):
    """Queue each cleaned stdout line of a subprocess as one raw record.

    Args:
        command: Program and arguments to spawn.
        poll_interval: Queue wait tick used by receive().
    """

    name = "process"

    def __init__(
        self,
        command: Sequence[str],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(poll_interval)
        self._command = list(command)
        try:
            self._process = subprocess.Popen(
                self._command,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise SourceConstructionError(
                f"cannot spawn '{self._command[0]}': {e}",
                source_name=self.name,
                orig_exc=e,
            ) from e
        logger.info("Starting audit log stream: %s (pid %d)", self._command, self._process.pid)

        self._reader = threading.Thread(
            target=self._read_lines,
            name=f"auditstream-{self.name}-reader",
            daemon=True,
        )
        self._reader.start()

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def clean_line(self, line: str) -> str | None:
        """Return the record text for one output line, or None to skip it."""
        stripped = line.strip()
        return stripped or None

    def _read_lines(self) -> None:
        stdout = self._process.stdout
        if stdout is None:
            return
        try:
            for raw_line in stdout:
                record = self.clean_line(raw_line.decode("utf-8", errors="replace"))
                if record:
                    self._enqueue(record.encode("utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Reader for '%s' stopped: %s", self.name, e)
        finally:
            stdout.close()
            returncode = self._process.wait()
            logger.info("Process for '%s' (pid %d) exited with code %s", self.name, self.pid, returncode)

    def _producer_alive(self) -> bool:
        return self._reader.is_alive()

    def is_alive(self) -> bool:
        return not self.stopped and self._process.poll() is None

    def stop(self) -> None:
        """Terminate the subprocess. Safe to call more than once."""
        if self.stopped:
            return
        super().stop()
        if self._process.poll() is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            pass
        logger.info("Terminated process for '%s' (pid %d)", self.name, self.pid)
