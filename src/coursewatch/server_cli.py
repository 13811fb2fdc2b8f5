"""CLI entry points for the CourseWatch API server and standalone worker."""

import argparse
import asyncio
import os

# Same names as workers.scheduler.TRIGGER_NAMES; importing that module here would load settings before --local
TRIGGERS = ("weekly_reminders", "compliance", "deadline_warnings", "queue_hygiene")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="coursewatch-server",
        description="CourseWatch API server with the embedded notification worker",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, in-memory queues, no Redis required",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["COURSEWATCH_LOCAL_MODE"] = "1"

    import uvicorn

    uvicorn.run("coursewatch.main:app", host=args.host, port=args.port)


def worker_main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="coursewatch-worker",
        description="CourseWatch notification worker (queues + scheduled compliance scans)",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, in-memory queues, no Redis required",
    )
    parser.add_argument(
        "--run-now",
        choices=TRIGGERS,
        metavar="TRIGGER",
        help=f"Run one trigger immediately, deliver its jobs and exit ({', '.join(TRIGGERS)})",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["COURSEWATCH_LOCAL_MODE"] = "1"

    # Settings are read at import time, after the environment is final
    from coursewatch.config import settings
    from coursewatch.logging_config import configure_logging
    from coursewatch.workers.runner import NotificationWorker

    configure_logging(log_level=settings.log_level, json_output=settings.json_logs and not settings.local_mode)
    worker = NotificationWorker(settings)

    if args.run_now:
        result = asyncio.run(worker.run_once(args.run_now))
        print(
            f"{result.trigger}: week={result.week_number} queued={result.queued} "
            f"failed_units={result.failed_units} skipped={result.skipped}"
        )
    else:
        asyncio.run(worker.run_forever())


if __name__ == "__main__":
    main()
