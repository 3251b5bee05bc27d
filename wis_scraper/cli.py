"""
Command line entry point.

    python -m wis_scraper init-db
    python -m wis_scraper metadata
    python -m wis_scraper content --acadsem 2025_2
    python -m wis_scraper schedule --acadsem 2025_2
    python -m wis_scraper exam --acadsem 2025_1
    python -m wis_scraper backfill --acadsem 2025_2
    python -m wis_scraper run-all
    python -m wis_scraper serve --port 3000
"""

import argparse
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from . import jobs
from .config import configure_logging, settings
from .database import get_session_factory, init_db
from .fetcher import WisFetcher

SEMESTER_COMMANDS = {
    "content": jobs.process_content,
    "schedule": jobs.process_schedule,
    "exam": jobs.scrape_exams_for_semester,
    "backfill": jobs.process_backfill,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wis-scraper", description="NTU WIS course data scraper")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")
    sub.add_parser("metadata", help="Scrape the semesters offered by WIS")

    for name in SEMESTER_COMMANDS:
        p = sub.add_parser(name, help=f"Scrape {name} data for one semester")
        p.add_argument("--acadsem", required=True, help="Semester id, e.g. 2025_2")

    p_all = sub.add_parser("run-all", help="Scrape metadata, then every follow-up job")
    p_all.add_argument("--years", type=int, default=settings.target_years, help="Number of recent years to scrape")

    p_serve = sub.add_parser("serve", help="Run the REST API")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=3000)

    return parser


def _run(args: argparse.Namespace) -> int:
    fetcher = WisFetcher()
    db = get_session_factory()()

    try:
        if args.command == "metadata":
            planned = jobs.process_metadata(fetcher, db)
            for job in planned:
                print(f"{job.name} {job.data.get('acadsem', '')}")
            return 0

        if args.command == "run-all":
            planned = jobs.process_metadata(fetcher, db, target_years=args.years)
            summary = jobs.run_jobs(planned, fetcher, db)
            return 1 if summary["failed"] else 0

        result = SEMESTER_COMMANDS[args.command](args.acadsem, fetcher, db)
        print(result)
        return 0
    finally:
        db.close()
        fetcher.close_session()


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(settings)

    if args.command == "init-db":
        init_db()
        raise SystemExit(0)

    if args.command == "serve":
        import uvicorn

        init_db()
        uvicorn.run("wis_scraper.api:app", host=args.host, port=args.port)
        raise SystemExit(0)

    try:
        raise SystemExit(_run(args))
    except (RuntimeError, ValueError, SQLAlchemyError) as e:
        logging.error(f"{args.command} failed: {e}")
        raise SystemExit(1)
