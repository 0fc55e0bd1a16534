"""Structured Logging — one JSON object per log line, correlation keys lifted from `extra`.

Invariants:
    - Every line carries ts, level, logger, msg
    - Correlation keys (session_id, agent_id, tool_name, turn_number, ...) appear
      only when the call site passed them through `extra`
    - fmt="text" gives a plain single-line format for local runs and tests

Design Decisions:
    - stdlib logging with a custom Formatter; no third-party logging library
    - setup_logging replaces its own handler on re-entry, so repeated lifespan
      starts in tests never duplicate output
"""

import json
import logging
from datetime import datetime, timezone

CORRELATION_KEYS = (
    "session_id", "agent_id", "tool_name", "turn_number", "intent", "model",
    "attempt", "error_code", "input_tokens", "output_tokens", "execution_time_ms",
)

_HANDLER_NAME = "nexus_agents"
_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key)
            for key in CORRELATION_KEYS
            if getattr(record, key, None) is not None
        })
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for handler in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        JSONFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT),
    )
    root.addHandler(handler)
    root.setLevel(level.upper() if level.upper() in logging.getLevelNamesMapping() else logging.INFO)
