"""Progress publishing.

Pollers get a single snapshot of the registry. Push subscribers get a
snapshot every ``interval`` seconds until the job reaches a terminal value;
the terminal frame is followed by a short hold so the client can render it
before the channel closes.
"""

import asyncio
from typing import AsyncIterator, Optional

from videohub.core.config import settings
from videohub.modules.transcoding.models import is_terminal
from videohub.modules.transcoding.registry import ProgressRegistry, get_progress_registry
from videohub.modules.transcoding.schemas import ProgressSnapshot


class ProgressPublisher:
    """Reads job progress for poll requests and push subscribers."""

    def __init__(
        self,
        registry: ProgressRegistry,
        interval: float = 0.5,
        final_hold: float = 1.0,
    ):
        self.registry = registry
        self.interval = interval
        self.final_hold = final_hold

    def snapshot(self, video_id: str) -> ProgressSnapshot:
        """Current progress of a job; unknown jobs read as 0."""
        return ProgressSnapshot(video_id=video_id, progress=self.registry.get(video_id))

    async def stream(self, video_id: str) -> AsyncIterator[ProgressSnapshot]:
        """Yield snapshots until the job is terminal.

        Each subscriber runs its own loop; stopping iteration early (a closed
        socket) affects nobody else.
        """
        while True:
            current = self.snapshot(video_id)
            yield current
            if is_terminal(current.progress):
                await asyncio.sleep(self.final_hold)
                return
            await asyncio.sleep(self.interval)


_publisher: Optional[ProgressPublisher] = None


def get_progress_publisher() -> ProgressPublisher:
    """Publisher over the shared registry, timed from settings."""
    global _publisher
    if _publisher is None:
        _publisher = ProgressPublisher(
            get_progress_registry(),
            interval=settings.PROGRESS_PUSH_INTERVAL_SECONDS,
            final_hold=settings.PROGRESS_FINAL_HOLD_SECONDS,
        )
    return _publisher
