# portaria/event_recorder.py
import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict

from portaria import config

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_lock = threading.Lock()


class EventRecorder:
    """Append-only audit trail of front-desk actions (JSON lines).

    Event types: entrance.registered, entrance.denied, visitor.banned,
    visitor.unbanned.
    """

    def __init__(self, log_dir: str = None, actor: str = "front_desk"):
        self.log_dir = log_dir or config.EVENT_LOG_DIR
        self.actor = actor
        self.log_path = os.path.join(self.log_dir, "events.jsonl")

    def record(self, event_type: str, payload: Dict[str, Any], actor: str = None):
        """
        Writes a structured, immutable event to the log.
        """
        entry = {
            "schema_version": SCHEMA_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "actor": actor or self.actor,
            "payload": payload,
        }

        try:
            with _lock:
                os.makedirs(self.log_dir, exist_ok=True)
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            # The audit trail must never block a registration
            logger.warning("Event logging failed: %s", e)

    def read_events(self, event_type: str = None) -> list[dict]:
        if not os.path.exists(self.log_path):
            return []
        events = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                event = json.loads(line)
                if event_type is None or event["event_type"] == event_type:
                    events.append(event)
        return events
