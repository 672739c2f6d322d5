"""
Job orchestration test suite.

- Queue semantics (FIFO, claims, retries, progress, cleanup)
- Concurrent claims across workers
- Reconciliation of stale and orphaned jobs
- Worker behaviour with the real generation handlers
- End-to-end project flow
"""
