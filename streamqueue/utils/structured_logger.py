"""
Structured logging system for queue and prefetch events.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from streamqueue.utils.formatting import format_duration, format_size


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable records.

    Usage:
        logger = StructuredLogger("streamqueue")
        logger.info("prefetch_started",
                    identity="track-42",
                    cache_path="/home/me/.cache/streamqueue/AudioCache/track-42.mp3")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable output through the standard logger
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        self.json_log_path: Path | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"streamqueue_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            # Fallback to stderr if JSON logging fails
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # Markup off: values may contain brackets
            self._logger.log(
                level, self._format_message(event, **context), extra={"markup": False}
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        """Log debug event."""
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        """Log warning event."""
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class PrefetchLogger:
    """Specialized logger for prefetch events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def started(
        self,
        identity: str,
        cache_path: Path,
        bitrate_kbps: int | None = None,
        duration_s: float | None = None,
    ):
        self.logger.info(
            "prefetch_started",
            identity=identity,
            cache_path=str(cache_path),
            bitrate_kbps=bitrate_kbps,
            duration_s=duration_s,
            length=format_duration(duration_s),
        )

    def cancelled(self, identity: str, reason: str):
        self.logger.debug("prefetch_cancelled", identity=identity, reason=reason)

    def completed(self, identity: str, size_bytes: int, duration_s: float):
        """Log a prefetch that finished downloading."""
        self.logger.info(
            "prefetch_completed",
            identity=identity,
            size_bytes=size_bytes,
            size=format_size(size_bytes),
            duration_s=round(duration_s, 2),
            took=format_duration(duration_s),
        )

    def failed(self, identity: str, error: str):
        """Log a failed prefetch. Never fatal: playback falls back to streaming."""
        self.logger.warning("prefetch_failed", identity=identity, error=error)

    def handed_off(self, identity: str, bytes_available: int, complete: bool):
        self.logger.info(
            "prefetch_handed_off",
            identity=identity,
            bytes_available=bytes_available,
            available=format_size(bytes_available),
            complete=complete,
        )

    def skipped(self, identity: str, reason: str, reason_code: str):
        self.logger.debug(
            "prefetch_skipped",
            identity=identity,
            reason=reason,
            reason_code=reason_code,
        )


class QueueLogger:
    """Specialized logger for queue cursor events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def current_item_changed(
        self, index: int | None, previous_index: int | None, description: str
    ):
        self.logger.debug(
            "current_item_changed",
            index=index,
            previous_index=previous_index,
            item=description,
        )

    def queue_cleared(self, item_count: int):
        self.logger.debug("queue_cleared", item_count=item_count)


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, PrefetchLogger, QueueLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, prefetch_logger, queue_logger)
    """
    base = StructuredLogger("streamqueue", log_dir=log_dir, enable_json=enable_json)
    return base, PrefetchLogger(base), QueueLogger(base)
