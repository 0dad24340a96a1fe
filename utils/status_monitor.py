"""
Status Monitor for blogsync

This module tracks the health of the offline-sync client and writes it to
status.json, so degraded operation (reads served from cache, failed local
writes, a growing queue) is visible without reading logs.

Usage:
    from utils.status_monitor import StatusMonitor

    # Initialize at startup
    monitor = StatusMonitor()

    # Update throughout execution
    monitor.update_sync_state(online=True, queue_length=0)
    monitor.record_read("cache")
    monitor.record_api_call(success=True)
    monitor.record_error("API timeout")
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StatusMonitor:
    """Monitor and track sync client health, statistics, and current state."""

    def __init__(self, status_file: Path = None):
        """
        Initialize the StatusMonitor.

        Args:
            status_file: Path to the JSON file where status will be written.
                        Defaults to 'status.json' in the current directory.
        """
        self.status_file = Path(status_file) if status_file else Path("status.json")
        self.lock = Lock()
        self.start_time = datetime.now()

        # Track write failures
        self._consecutive_write_failures = 0
        self._max_consecutive_failures = 10
        self._monitoring_enabled = True

        # Initialize status structure
        self.status = {
            "client": {
                "status": "STARTING",
                "version": "1.0",
                "start_time": self.start_time.isoformat(),
                "last_update": None,
                "uptime_seconds": 0,
            },
            "connectivity": {
                "online": None,
                "last_change": None,
            },
            "reads": {
                "remote": 0,
                "cache": 0,
                "last_source": None,
            },
            "performance": {
                "api_calls": {
                    "total": 0,
                    "successful": 0,
                    "failed": 0,
                },
            },
            "storage": {
                "failures": 0,
                "last_failure": None,
                "last_failure_time": None,
            },
            "queue": {
                "length": 0,
                "last_drain": None,
                "last_drain_time": None,
            },
            "errors": {
                "count": 0,
                "last_error": None,
                "last_error_time": None,
            },
            "health": {
                "healthy": True,
                "issues": [],
            },
        }

        # Write initial status
        self._write_status()
        logger.info(f"StatusMonitor initialized, writing to {self.status_file}")

    def update_sync_state(self, online: bool, queue_length: int) -> None:
        """
        Record the current connectivity flag and queue depth.

        Args:
            online: Whether the engine currently considers the API reachable
            queue_length: Number of operations waiting to be replayed
        """
        with self.lock:
            conn = self.status["connectivity"]
            if conn["online"] != online:
                conn["online"] = online
                conn["last_change"] = datetime.now().isoformat()
            self.status["queue"]["length"] = queue_length

            self._check_health()
            self._write_status()

    def record_read(self, source: str) -> None:
        """
        Record where a read was served from.

        Args:
            source: "remote" or "cache"
        """
        with self.lock:
            reads = self.status["reads"]
            reads[source] = reads.get(source, 0) + 1
            reads["last_source"] = source
            self._write_status()

    def record_api_call(self, success: bool = True) -> None:
        """
        Record an API call and its result.

        Args:
            success: Whether the API call was successful
        """
        with self.lock:
            self.status["performance"]["api_calls"]["total"] += 1
            if success:
                self.status["performance"]["api_calls"]["successful"] += 1
            else:
                self.status["performance"]["api_calls"]["failed"] += 1

            self._check_health()
            self._write_status()

    def record_storage_failure(self, result: Any) -> None:
        """
        Record a failed local cache/queue read or write.

        Args:
            result: StorageResult (or anything with `key` / `error` attributes)
        """
        key = getattr(result, "key", None)
        error = getattr(result, "error", None) or str(result)
        with self.lock:
            storage = self.status["storage"]
            storage["failures"] += 1
            storage["last_failure"] = f"{key}: {error}" if key else error
            storage["last_failure_time"] = datetime.now().isoformat()

            self._check_health()
            self._write_status()

    def record_drain(self, summary: Dict[str, Any]) -> None:
        """Record the outcome of a queue drain (succeeded / failed / remaining counts)."""
        with self.lock:
            self.status["queue"]["last_drain"] = dict(summary)
            self.status["queue"]["last_drain_time"] = datetime.now().isoformat()
            if "remaining" in summary:
                self.status["queue"]["length"] = summary["remaining"]

            self._check_health()
            self._write_status()

    def record_error(self, error_message: str) -> None:
        """
        Record an error occurrence.

        Args:
            error_message: Description of the error
        """
        with self.lock:
            self.status["errors"]["count"] += 1
            self.status["errors"]["last_error"] = error_message
            self.status["errors"]["last_error_time"] = datetime.now().isoformat()

            self._check_health()
            self._write_status()

            logger.warning(f"Error recorded: {error_message}")

    def set_status(self, status: str) -> None:
        """
        Set the client's current status.

        Args:
            status: Status string (STARTING, RUNNING, ERROR, STOPPED)
        """
        with self.lock:
            self.status["client"]["status"] = status
            self._write_status()

    def _check_health(self) -> None:
        """Check client health and update health status."""
        issues = []

        if self.status["errors"]["count"] > 10:
            issues.append(f"High error count ({self.status['errors']['count']} errors)")

        api_calls = self.status["performance"]["api_calls"]
        total_calls = api_calls["total"]
        failed_calls = api_calls["failed"]
        if total_calls > 10 and (failed_calls / total_calls) > 0.1:  # >10% failure rate
            failure_rate = (failed_calls / total_calls) * 100
            issues.append(f"High API failure rate ({failure_rate:.1f}%)")

        if self.status["storage"]["failures"] > 0:
            issues.append(f"Local storage degraded ({self.status['storage']['failures']} failures)")

        if self.status["connectivity"]["online"] is False:
            issues.append("Offline - writes are being queued")

        self.status["health"]["healthy"] = len(issues) == 0
        self.status["health"]["issues"] = issues

    def _write_status(self) -> None:
        """Write status to JSON file with error recovery."""
        # If monitoring is disabled due to too many failures, skip
        if not self._monitoring_enabled:
            return

        try:
            now = datetime.now()
            self.status["client"]["last_update"] = now.isoformat()
            self.status["client"]["uptime_seconds"] = int((now - self.start_time).total_seconds())

            # Write to file atomically
            self.status_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.status_file.with_suffix(".tmp")
            with open(temp_file, "w") as f:
                json.dump(self.status, f, indent=2)
            temp_file.replace(self.status_file)

            self._consecutive_write_failures = 0

        except OSError as e:
            self._consecutive_write_failures += 1
            logger.error(f"OS error writing status file (failure {self._consecutive_write_failures}): {e}")
            self._check_disable_monitoring()

        except (TypeError, ValueError) as e:
            self._consecutive_write_failures += 1
            logger.error(
                f"Unexpected error writing status file (failure {self._consecutive_write_failures}): {e}", exc_info=True
            )
            self._check_disable_monitoring()

    def _check_disable_monitoring(self) -> None:
        """Disable monitoring if too many consecutive failures."""
        if self._consecutive_write_failures >= self._max_consecutive_failures:
            self._monitoring_enabled = False
            logger.critical(
                f"Monitoring disabled after {self._max_consecutive_failures} consecutive write failures. "
                "Client will continue running but status.json will show stale data."
            )

    def get_status(self) -> Dict[str, Any]:
        """Get current status as dictionary."""
        with self.lock:
            return json.loads(json.dumps(self.status))

    def shutdown(self) -> None:
        """Mark client as stopped."""
        with self.lock:
            self.status["client"]["status"] = "STOPPED"
            self._write_status()
            logger.info("StatusMonitor shutdown complete")


# Convenience function for easy import
def create_status_monitor(status_file: Optional[str] = "status.json") -> StatusMonitor:
    """
    Create and return a StatusMonitor instance.

    Args:
        status_file: Path to status JSON file

    Returns:
        StatusMonitor instance
    """
    return StatusMonitor(Path(status_file))
