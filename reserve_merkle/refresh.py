"""Background worker that periodically refreshes the balance snapshot.

Every *interval* seconds the worker fetches the current balances from the
configured source and hands them to ``ProofOfReserveService.refresh_data``,
which swaps the snapshot and recomputes the root.  The first refresh
happens one interval after start; the startup snapshot is loaded by the
application itself.  A failed fetch is logged and retried on the next tick;
the previous snapshot stays in place.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from reserve_merkle.balance_source import fetch_balances
from reserve_merkle.config import settings
from reserve_merkle.reserve_service import ProofOfReserveService, get_service

logger = logging.getLogger(__name__)


class RefreshWorker:
    """Daemon thread that refreshes the snapshot on a fixed interval."""

    def __init__(
        self,
        service: ProofOfReserveService | None = None,
        interval: float | None = None,
        source_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._service = service if service is not None else get_service()
        self._interval = interval if interval is not None else settings.refresh_interval_seconds
        self._source_url = source_url if source_url is not None else settings.balances_url
        self._timeout = timeout if timeout is not None else settings.source_timeout_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_refresh_at: datetime | None = None
        self._last_refresh_size: int = 0
        self._last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_refresh_at(self) -> datetime | None:
        return self._last_refresh_at

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def start(self) -> None:
        """Start the refresh background thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="reserve-refresh")
        self._thread.start()
        logger.info(
            "Refresh worker started (interval=%.1fs, source=%s)",
            self._interval,
            self._source_url or "<none>",
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the worker to stop and wait up to *timeout* seconds."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Refresh worker stopped")

    def status(self) -> dict:
        """Return a snapshot of the worker's state."""
        return {
            "running": self.running,
            "interval_seconds": self._interval,
            "source_url": self._source_url or None,
            "last_refresh_at": self._last_refresh_at.isoformat() if self._last_refresh_at else None,
            "last_refresh_size": self._last_refresh_size,
            "last_error": self._last_error,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self._interval):
            try:
                self._tick()
            except Exception as exc:
                self._last_error = str(exc)
                logger.exception("Snapshot refresh failed")

    def _tick(self) -> None:
        if not self._source_url:
            logger.debug("No balance source configured; keeping current snapshot")
            return

        balances = fetch_balances(self._source_url, timeout=self._timeout)
        self._service.refresh_data(balances)
        self._last_refresh_at = datetime.now(timezone.utc)
        self._last_refresh_size = len(balances)
        self._last_error = None
