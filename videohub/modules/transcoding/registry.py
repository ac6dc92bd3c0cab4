"""Process-wide progress registry.

Maps job ID to the latest progress value. The runner's stream drainers write
to it and every poll request and WebSocket subscriber reads from it; a lock
guards the mapping so reads never see a half-applied update, even when the
registry is touched from threads outside the event loop.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from videohub.core.metrics import PROGRESS_REGISTRY_ENTRIES
from videohub.modules.transcoding.models import PROGRESS_UNKNOWN, is_terminal

logger = logging.getLogger(__name__)


@dataclass
class ProgressEntry:
    percent: int
    updated_at: float


class ProgressRegistry:
    """Thread-safe job ID -> percent mapping with optional expiry.

    Only the latest value per job is kept. Unknown IDs read as 0.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, ProgressEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def set(self, job_id: str, percent: int) -> None:
        with self._lock:
            self._entries[job_id] = ProgressEntry(percent=int(percent), updated_at=self._clock())
            size = len(self._entries)
        PROGRESS_REGISTRY_ENTRIES.set(size)

    def get(self, job_id: str) -> int:
        """Latest percent for a job, 0 if the job is unknown."""
        with self._lock:
            entry = self._entries.get(job_id)
            return entry.percent if entry is not None else PROGRESS_UNKNOWN

    def contains(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._entries

    def delete(self, job_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(job_id, None) is not None
            size = len(self._entries)
        PROGRESS_REGISTRY_ENTRIES.set(size)
        return removed

    def snapshot(self) -> Dict[str, int]:
        """Copy of every job's current percent."""
        with self._lock:
            return {job_id: entry.percent for job_id, entry in self._entries.items()}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        PROGRESS_REGISTRY_ENTRIES.set(0)

    def reap_expired(self, ttl_seconds: float) -> int:
        """Drop entries that reached a terminal value more than ``ttl_seconds`` ago.

        Running jobs are never reaped, however old their last update.

        Args:
            ttl_seconds: Grace period after the terminal write; <= 0 disables reaping

        Returns:
            Number of entries removed
        """
        if ttl_seconds <= 0:
            return 0

        cutoff = self._clock() - ttl_seconds
        with self._lock:
            expired = [
                job_id
                for job_id, entry in self._entries.items()
                if is_terminal(entry.percent) and entry.updated_at <= cutoff
            ]
            for job_id in expired:
                del self._entries[job_id]
            size = len(self._entries)

        PROGRESS_REGISTRY_ENTRIES.set(size)
        if expired:
            logger.info(f"Reaped {len(expired)} finished progress entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def run_reaper(registry: ProgressRegistry, ttl_seconds: float, interval_seconds: float) -> None:
    """Periodically reap finished entries until cancelled."""
    if ttl_seconds <= 0:
        logger.info("Progress entry expiry disabled")
        return
    while True:
        await asyncio.sleep(interval_seconds)
        registry.reap_expired(ttl_seconds)


_registry = ProgressRegistry()


def get_progress_registry() -> ProgressRegistry:
    """The registry shared by the whole process."""
    return _registry
