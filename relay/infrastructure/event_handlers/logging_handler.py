"""
Logging Event Handler

Writes one log line per file lifecycle event to the logger it is given.
"""

import logging

from relay.domain.events import (
    ConsistencyWarningEvent,
    DomainEvent,
    FileCreatedEvent,
    FileDownloadedEvent,
    FileEvictedEvent,
)


class LoggingEventHandler:
    """Only ids, sizes and timestamps are logged; names and tokens never are."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event by logging it.

        Args:
            event: Domain event to log
        """
        try:
            if isinstance(event, FileCreatedEvent):
                self._handle_file_created(event)
            elif isinstance(event, FileDownloadedEvent):
                self._handle_file_downloaded(event)
            elif isinstance(event, FileEvictedEvent):
                self._handle_file_evicted(event)
            elif isinstance(event, ConsistencyWarningEvent):
                self._handle_consistency_warning(event)
            else:
                self.logger.debug(
                    f"Unhandled event: {event.__class__.__name__} "
                    f"(aggregate_id={event.aggregate_id})"
                )
        except Exception as e:
            self.logger.error(
                f"Error in logging event handler for {event.__class__.__name__}: {e}",
                exc_info=True,
            )

    def _handle_file_created(self, event: FileCreatedEvent) -> None:
        """Log file creation."""
        self.logger.info(
            f"File created: file_id={event.aggregate_id}, "
            f"mime_type={event.mime_type}, size={event.size_bytes} bytes, "
            f"expires_at={event.expires_at.isoformat()}"
        )

    def _handle_file_downloaded(self, event: FileDownloadedEvent) -> None:
        """Log a counted download."""
        self.logger.info(
            f"File downloaded: file_id={event.aggregate_id}, "
            f"download_count={event.download_count}"
        )

    def _handle_file_evicted(self, event: FileEvictedEvent) -> None:
        """Log eviction; leftover content is worth a warning."""
        message = (
            f"File evicted: file_id={event.aggregate_id}, reason={event.reason}, "
            f"content_deleted={event.content_deleted}"
        )
        if event.content_deleted:
            self.logger.info(message)
        else:
            self.logger.warning(message)

    def _handle_consistency_warning(self, event: ConsistencyWarningEvent) -> None:
        """Record the disagreement at debug level; the registry already warned."""
        self.logger.debug(
            f"Consistency event: file_id={event.aggregate_id}, detail={event.detail}"
        )
