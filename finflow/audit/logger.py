"""
Audit Logger

DESIGN DECISION: Every ledger side effect and sync outcome is logged.
This provides:
1. Traceability of debt and subscription changes
2. Debugging capability for sync failures
3. A short in-memory history the UI can show

The audit logger:
- Is synchronous, because ledger mutations run to completion synchronously
- Gracefully handles failures (never raises into a mutation)
"""

from collections import deque
from typing import Optional

import structlog

from finflow.models.audit import AuditEvent, AuditEventBuilder


# JSON log lines via stdlib logging, shared by every module logger
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Audit sink for the ledger and the state store.

    Logs events to the structured local log and keeps the most
    recent ones in memory.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("finflow.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event. Never raises."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not break a ledger mutation
            self._history.append(
                AuditEventBuilder.system_error("audit_log_failed", str(e))
            )

    def recent_events(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._history))
        return events[:limit] if limit is not None else events

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))

    def log_external_service_error(self, service: str, error_message: str) -> None:
        self.log(AuditEventBuilder.external_service_error(service, error_message))
