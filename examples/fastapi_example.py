"""Example FastAPI application streaming synthetic audit events.

Run with:
    uvicorn examples.fastapi_example:app

Endpoints:
    /api/config   - GET the active filter, POST a new one
    /api/events   - Server-Sent Events stream of audit events
    /api/health   - source and collector liveness

Try:
    curl -N http://localhost:8000/api/events
    curl -X POST -d '{"process": "sshd"}' http://localhost:8000/api/config

A ReplaySource stands in for the platform source; a background thread
feeds it one sample record per second, so the stream works on any OS
and without root.
"""

import itertools
import threading
import time

from auditstream.adapters.frameworks.fastapi import create_app
from auditstream.adapters.sources.replay import ReplaySource
from auditstream.config import Settings
from auditstream.core.bridge import Broadcaster
from auditstream.core.models import FilterConfig
from auditstream.core.supervisor import Supervisor
from auditstream.logging_config import setup_logging

SAMPLE_RECORDS = [
    b'type=1300 msg=audit(1674390000.123:{n}): arch=c000003e syscall=257 success=yes comm="cat" exe="/usr/bin/cat"',
    b"type=1101 msg=audit(1674390005.456:{n}): pid=123 uid=0 auid=1000 ses=2",
    b'{"eventMessage": "Authentication succeeded", "processImagePath": "/usr/sbin/sshd", "processID": 812}',
    b"kernel: audit: backlog limit exceeded",
]

setup_logging("INFO")

sources: list[ReplaySource] = []


def replay_factory(config: FilterConfig) -> ReplaySource:
    """Build a fresh replay source for each configuration."""
    source = ReplaySource()
    sources.append(source)
    return source


def feed_samples() -> None:
    """Push sample records into whichever source is newest."""
    for n, template in enumerate(itertools.cycle(SAMPLE_RECORDS), start=100):
        time.sleep(1.0)
        if sources:
            sources[-1].push(template.replace(b"{n}", str(n).encode()))


broadcaster = Broadcaster()
supervisor = Supervisor(broadcaster, replay_factory)
app = create_app(Settings(source="replay"), supervisor, broadcaster)

threading.Thread(target=feed_samples, name="sample-feeder", daemon=True).start()
