"""
Event sink — fire-and-forget reporting for read, write and export failures.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("m365_dsc_engine.events")


class EventSink:
    """
    Logs every reported event and keeps it in memory for the run summary.
    report() never raises and never changes the caller's control flow.
    """

    def __init__(self, source: str = "M365DSC"):
        self.source = source
        self.events: list[dict] = []

    def report(
        self,
        error: Optional[BaseException],
        context: dict[str, Any],
        level: str = "error",
    ) -> None:
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": self.source,
            "level": level,
            "error_type": type(error).__name__ if error else None,
            "message": context.get("message") or (str(error) if error else ""),
            "context": context,
        }
        self.events.append(event)
        text = f"[{context.get('resource', self.source)}] {event['message']}"
        if level == "warning":
            logger.warning(text)
        elif level == "info":
            logger.info(text)
        else:
            logger.error(text)

    def errors(self) -> list[dict]:
        return [e for e in self.events if e["level"] == "error"]

    def warnings(self) -> list[dict]:
        return [e for e in self.events if e["level"] == "warning"]

    def get_audit_record(self) -> dict:
        return {
            "events": {
                "total": len(self.events),
                "errors": len(self.errors()),
                "warnings": len(self.warnings()),
                "items": self.events,
            }
        }
