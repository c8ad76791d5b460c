"""
Operational Event Log

Writes one JSON line per run event (run_start, run_end, run_failure) to
LOGS_DIR/EVENT_LOG_FILENAME. This log is separate from the per-run debug log and is
meant for monitoring: every run produces exactly one run_start and one run_end.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from account_reporting.config import LOGS_DIR, EVENT_LOG_FILENAME
from account_reporting.logger import get_logger

logger = get_logger(__name__)

RUN_START = "run_start"
RUN_END = "run_end"
RUN_FAILURE = "run_failure"

_EVENT_LOGGER_NAME = "account_reporting.events"


def _event_logger() -> logging.Logger:
    """Return the dedicated event logger, attaching the JSON-lines file handler once."""
    event_logger = logging.getLogger(_EVENT_LOGGER_NAME)
    if not event_logger.handlers:
        event_logger.setLevel(logging.INFO)
        event_logger.propagate = False
        event_path = Path(LOGS_DIR) / EVENT_LOG_FILENAME
        event_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(event_path, mode='a', encoding='utf-8')
        handler.setFormatter(logging.Formatter('%(message)s'))
        event_logger.addHandler(handler)
    return event_logger


class RunTelemetry:
    """
    Emits the events of a single pipeline run under a shared run id.

    Example:
        telemetry = RunTelemetry()
        telemetry.start()
        try:
            ...
        except Exception as e:
            telemetry.failure(str(e))
        finally:
            telemetry.end()
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.started_at: Optional[datetime] = None
        self.failed = False

    def _emit(self, event: str, **fields) -> dict:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "event": event,
            "run_id": self.run_id,
        }
        record.update(fields)
        try:
            _event_logger().info(json.dumps(record, default=str))
        except OSError as e:
            # Event log unavailable: keep the event in the main log instead
            logger.error(f"Could not write {event} event to event log: {str(e)}")
        logger.debug(f"Telemetry event: {record}")
        return record

    def start(self) -> dict:
        self.started_at = datetime.now(timezone.utc)
        return self._emit(RUN_START)

    def failure(self, message: str, stage: Optional[str] = None) -> dict:
        self.failed = True
        return self._emit(RUN_FAILURE, stage=stage, message=message)

    def end(self) -> dict:
        duration = None
        if self.started_at is not None:
            duration = round((datetime.now(timezone.utc) - self.started_at).total_seconds(), 3)
        status = "failure" if self.failed else "success"
        return self._emit(RUN_END, status=status, duration_seconds=duration)
