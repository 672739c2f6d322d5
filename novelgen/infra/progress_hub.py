"""
In-process progress streams for running jobs.

One stream per job id. The worker publishes; any number of subscribers
(SSE connections, CLI watchers, tests) receive every event. Each stream
caches its last event so a late subscriber immediately learns the current
state. Streams with no activity for idle_timeout seconds are evicted.

Nothing here is persisted: the job store stays the source of truth, and
a restart simply starts with no streams.

Lifecycle:
    hub = ProgressStreamHub(idle_timeout=600)
    hub.start()            # background eviction (optional)
    hub.publish(event)     # from the worker
    unsubscribe = hub.subscribe(job_id, callback)
    hub.stop()

Environment Variables:
- PROGRESS_IDLE_TIMEOUT_SECONDS: Idle time before a stream is evicted (default: 600)
"""

import logging
import os
import threading
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


logger = logging.getLogger(__name__)

PROGRESS_IDLE_TIMEOUT_SECONDS = int(os.getenv("PROGRESS_IDLE_TIMEOUT_SECONDS", "600"))

ProgressCallback = Callable[["ProgressEvent"], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProgressEvent:
    """
    One progress update for a job.

    stage values: started, generating, expanding, regenerating, saving,
    completed, requeued, failed
    """

    job_id: str
    stage: str
    progress: int
    message: str = ""
    current_chapter: Optional[int] = None
    total_chapters: Optional[int] = None
    timestamp: str = field(default_factory=lambda: _utc_now().isoformat())

    @property
    def is_final(self) -> bool:
        return self.stage in ("completed", "failed")

    def to_dict(self) -> dict:
        return asdict(self)


class _Stream:
    """Subscribers and last event for one job."""

    def __init__(self, now: datetime):
        self.subscribers: list[ProgressCallback] = []
        self.last_event: Optional[ProgressEvent] = None
        self.last_activity = now


class ProgressStream:
    """Subscribe/unsubscribe handle for one job's stream."""

    def __init__(self, hub: "ProgressStreamHub", job_id: str):
        self._hub = hub
        self.job_id = job_id

    def subscribe(self, callback: ProgressCallback, replay_last: bool = True) -> Callable[[], None]:
        return self._hub.subscribe(self.job_id, callback, replay_last=replay_last)

    def unsubscribe(self, callback: ProgressCallback) -> None:
        self._hub.unsubscribe(self.job_id, callback)

    @property
    def last_event(self) -> Optional[ProgressEvent]:
        return self._hub.last_event(self.job_id)


class ProgressStreamHub:
    """
    Per-job publish/subscribe with last-event cache and idle eviction.

    Thread-safe: the worker thread publishes while API threads subscribe.
    Callbacks run outside the lock, on the publishing thread.
    """

    def __init__(
        self,
        idle_timeout: int = PROGRESS_IDLE_TIMEOUT_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            idle_timeout: Seconds without publish/subscribe before a stream is evicted
            clock: Callable returning the current UTC datetime
        """
        self.idle_timeout = idle_timeout
        self.clock = clock or _utc_now
        self._streams: dict[str, _Stream] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # =========================================================================
    # Publish / Subscribe
    # =========================================================================

    def publish(self, event: ProgressEvent) -> None:
        """Cache event as the job's latest and deliver it to every subscriber."""
        with self._lock:
            stream = self._streams.get(event.job_id)
            if stream is None:
                stream = _Stream(self.clock())
                self._streams[event.job_id] = stream
            stream.last_event = event
            stream.last_activity = self.clock()
            subscribers = list(stream.subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"[ProgressHub] Subscriber failed for job {event.job_id}: {e}",
                    exc_info=True,
                )

    def subscribe(
        self,
        job_id: str,
        callback: ProgressCallback,
        replay_last: bool = True,
    ) -> Callable[[], None]:
        """
        Register callback for a job's events.

        Args:
            job_id: Job to follow
            callback: Called with each ProgressEvent
            replay_last: Deliver the cached last event right away

        Returns:
            A no-argument function that unsubscribes
        """
        with self._lock:
            stream = self._streams.get(job_id)
            if stream is None:
                stream = _Stream(self.clock())
                self._streams[job_id] = stream
            stream.subscribers.append(callback)
            stream.last_activity = self.clock()
            last_event = stream.last_event

        if replay_last and last_event is not None:
            callback(last_event)

        def unsubscribe() -> None:
            self.unsubscribe(job_id, callback)

        return unsubscribe

    def unsubscribe(self, job_id: str, callback: ProgressCallback) -> None:
        """Remove callback; unknown callbacks and jobs are ignored."""
        with self._lock:
            stream = self._streams.get(job_id)
            if stream is None:
                return
            if callback in stream.subscribers:
                stream.subscribers.remove(callback)

    def get_stream(self, job_id: str) -> ProgressStream:
        """Handle for subscribing to one job."""
        return ProgressStream(self, job_id)

    def last_event(self, job_id: str) -> Optional[ProgressEvent]:
        with self._lock:
            stream = self._streams.get(job_id)
            return stream.last_event if stream is not None else None

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            stream = self._streams.get(job_id)
            return len(stream.subscribers) if stream is not None else 0

    @property
    def stream_count(self) -> int:
        with self._lock:
            return len(self._streams)

    # =========================================================================
    # Eviction
    # =========================================================================

    def evict_idle(self) -> int:
        """
        Drop streams idle for longer than idle_timeout.

        Returns:
            Number of evicted streams
        """
        threshold = self.clock() - timedelta(seconds=self.idle_timeout)
        with self._lock:
            idle = [
                job_id for job_id, stream in self._streams.items()
                if stream.last_activity < threshold
            ]
            for job_id in idle:
                del self._streams[job_id]

        for job_id in idle:
            logger.debug(f"[ProgressHub] Evicted idle stream: {job_id}")
        return len(idle)

    def start(self, interval: Optional[float] = None) -> None:
        """Run evict_idle() periodically on a daemon thread."""
        if self._thread is not None or self.idle_timeout <= 0:
            return

        interval = interval or max(1.0, self.idle_timeout / 2)
        self._stop_event.clear()

        def _loop() -> None:
            while not self._stop_event.wait(interval):
                try:
                    self.evict_idle()
                except Exception as e:
                    logger.error(f"[ProgressHub] Eviction error: {e}", exc_info=True)

        self._thread = threading.Thread(target=_loop, daemon=True)
        self._thread.start()
        logger.info(f"[ProgressHub] Started with idle timeout: {self.idle_timeout}s")

    def stop(self) -> None:
        """Stop background eviction and drop every stream."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        with self._lock:
            self._streams.clear()
