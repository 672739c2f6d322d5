"""
Concurrent claim tests.

Several workers, each with its own PersistenceAdapter on the same
database file, race for the same queue. Every job must be handed to
exactly one of them.
"""

import threading
from collections import Counter

from novelgen.scheduler import JobStatus, PersistenceAdapter, QueueManager


WORKERS = 4
JOBS = 24


def _drain(db_path: str, claimed: list, lock: threading.Lock, start: threading.Event) -> None:
    manager = QueueManager(PersistenceAdapter(db_path))
    start.wait()
    while True:
        job = manager.claim_next()
        if job is None:
            # Lost races also come back as None; stop only when nothing is queued
            if manager.get_stats()["queued"] == 0:
                return
            continue
        with lock:
            claimed.append(job.job_id)


class TestConcurrentClaims:
    """At most one worker per job."""

    def test_each_job_claimed_exactly_once(self, create_job, temp_db_path, queue_manager):
        job_ids = {create_job().job_id for _ in range(JOBS)}

        claimed = []
        lock = threading.Lock()
        start = threading.Event()
        threads = [
            threading.Thread(target=_drain, args=(temp_db_path, claimed, lock, start))
            for _ in range(WORKERS)
        ]
        for thread in threads:
            thread.start()
        start.set()
        for thread in threads:
            thread.join(timeout=60)

        counts = Counter(claimed)
        assert set(counts) == job_ids
        assert all(count == 1 for count in counts.values())

        stats = queue_manager.get_stats()
        assert stats["in_progress"] == JOBS
        assert stats["queued"] == 0

    def test_claimed_jobs_are_in_progress(self, create_job, temp_db_path):
        job = create_job()

        first = QueueManager(PersistenceAdapter(temp_db_path))
        second = QueueManager(PersistenceAdapter(temp_db_path))

        assert first.claim_next().job_id == job.job_id
        assert second.claim_next() is None
        assert first.get_job(job.job_id).status == JobStatus.IN_PROGRESS
