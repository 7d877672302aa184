# utils/loggers.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict

__all__ = ["get_logger", "log_event", "JsonLineFormatter"]


def get_logger(name="tool_rental", *, json_lines: bool = False):
    """
    Logger with a single stream handler. `json_lines=True` formats records with
    JsonLineFormatter so payloads passed through log_event() are kept.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        if json_lines:
            ch.setFormatter(JsonLineFormatter())
        else:
            ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(ch)
    return logger


class JsonLineFormatter(logging.Formatter):
    """
    Minimal JSON-lines formatter:
      {"ts":"2025-11-15T12:00:01.123Z","level":"INFO","name":"tool_rental.ledger","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a structured ledger event.

    Args:
        logger: Obtained from get_logger().
        op: Operation name, e.g. "close_day" or "reconcile".
        phase: Phase within the operation, e.g. "closed", "blocked", "posted".
        message: Human-readable short message.
        extra: Optional additional key/values (day keys, balances, ids).
        level: Logging level (default INFO).
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v
    logger.log(level, message, extra={"extra_payload": extra_payload})
