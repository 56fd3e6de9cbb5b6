"""
Sync Audit Logger

DESIGN DECISION: Every significant step of the sync cycle is logged.
This provides:
1. Visibility into optimistic updates that never reached the remote store
2. Debugging capability for realtime ordering issues
3. A record of bulk imports and backup restores

The audit logger:
- Is synchronous, so it can be called from the optimistic path and
  from realtime callbacks alike
- Never raises (a logging failure must not break a mutation)
"""

import logging
from typing import Optional

import structlog

from ledger.config import AppSettings
from ledger.models.audit import SyncEvent, SyncSeverity


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog (and the stdlib logging it sits on).

    Called once at import with defaults; call again with loaded
    AppSettings to pick up the configured level and renderer.
    """
    log_level = settings.log_level if settings else "INFO"
    render_json = settings.log_json if settings else True

    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))
    logging.getLogger().setLevel(getattr(logging, log_level))

    renderer = (
        structlog.processors.JSONRenderer()
        if render_json
        else structlog.dev.ConsoleRenderer()
    )

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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class SyncAuditLogger:
    """
    Central sync audit logging service.

    Writes SyncEvents to the local structured log, at the level
    matching the event severity.
    """

    def __init__(self, name: str = "ledger.sync"):
        self._logger = structlog.get_logger(name)

    def log(self, event: SyncEvent) -> None:
        """Log a sync event. Never raises."""
        log_dict = event.to_log_dict()
        try:
            if event.severity == SyncSeverity.ERROR:
                self._logger.error("sync_event", **log_dict)
            elif event.severity == SyncSeverity.WARNING:
                self._logger.warning("sync_event", **log_dict)
            elif event.severity == SyncSeverity.DEBUG:
                self._logger.debug("sync_event", **log_dict)
            else:
                self._logger.info("sync_event", **log_dict)
        except Exception as e:
            logging.getLogger(__name__).warning("Failed to write sync event: %s", e)
