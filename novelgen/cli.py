"""
Novel generation CLI.

Commands:
    worker        Reconcile, then poll the queue until SIGINT/SIGTERM
    process-once  Run at most one queued job and exit
    reconcile     Fail stale jobs and requeue orphans
    cleanup       Delete old COMPLETED/FAILED jobs
    serve         Run the HTTP API with uvicorn
"""

import argparse
import json
import logging
import os
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from novelgen.infra.logging_config import setup_logging
from novelgen.scheduler.service import (
    DEFAULT_CLEANUP_DAYS,
    NOVELGEN_DB_PATH,
    NovelGenerationService,
)

logger = logging.getLogger("novelgen")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Novel Generation job runner")
    parser.add_argument(
        "--db-path",
        type=str,
        default=NOVELGEN_DB_PATH,
        help=f"SQLite database path (default: {NOVELGEN_DB_PATH})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    worker_parser = subparsers.add_parser("worker", help="Run the background worker")
    worker_parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between polls when the queue is empty",
    )
    worker_parser.add_argument(
        "--no-reconcile",
        action="store_true",
        default=False,
        help="Skip startup reconciliation",
    )

    subparsers.add_parser("process-once", help="Run at most one queued job")
    subparsers.add_parser("reconcile", help="Fail stale jobs and requeue orphans")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old terminal jobs")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_CLEANUP_DAYS,
        help=f"Delete jobs not updated for this many days (default: {DEFAULT_CLEANUP_DAYS})",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def run_worker(service: NovelGenerationService, run_reconcile: bool) -> int:
    """Block on the poll loop; SIGINT/SIGTERM let the current job finish first."""

    def signal_handler(signum, frame):
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"{signal_name} received - stopping after the current job")
        service.dispatcher.stop(timeout=0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        service.start(run_reconcile=run_reconcile, blocking=True)
    finally:
        service.stop()
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.log_level.upper())

    if args.command == "serve":
        import uvicorn
        from novelgen.api._service_state import init_service
        from novelgen.api.main import app

        # The lifespan keeps an already-initialized service
        init_service(args.db_path)
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    options = {}
    if args.command == "worker" and args.poll_interval is not None:
        options["poll_interval"] = args.poll_interval
    service = NovelGenerationService.create(db_path=args.db_path, **options)

    if args.command == "worker":
        return run_worker(service, run_reconcile=not args.no_reconcile)

    if args.command == "process-once":
        result = service.process_next_job()
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.error is None else 2

    if args.command == "reconcile":
        print(json.dumps(service.reconcile(), indent=2))
        return 0

    if args.command == "cleanup":
        deleted = service.cleanup_old_jobs(args.days)
        print(f"Deleted {deleted} jobs older than {args.days} days")
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
