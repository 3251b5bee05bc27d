"""
Scrape jobs: fetch, parse, validate and persist one unit of work.

A metadata run discovers the semesters on offer and returns the follow-up
jobs for the most recent years; `run_jobs` executes them in order.
"""

import logging
from typing import Any, NamedTuple, Optional

from sqlalchemy.orm import Session

from . import repository, schemas
from .config import settings
from .content_parser import parse_content
from .exam_parser import (ACADEMIC_SESSION_RE, parse_exam_details,
                          parse_exam_metadata)
from .fetcher import WisFetcher
from .models import CourseContent, CourseSchedule
from .options_parser import parse_content_options, parse_schedule_options
from .schedule_parser import parse_schedule
from .semesters import latest_years, parse_acadsem, to_standard_acadsem

SCRAPE_SCHEDULE = "scrape-schedule"
SCRAPE_CONTENT = "scrape-content"
SCRAPE_EXAM = "scrape-exam"
SCRAPE_BACKFILL = "scrape-backfill"

# the portal selects graduates with an empty p_type; stored rows use "GR"
GRADUATE = "GR"


class Job(NamedTuple):
    name: str
    data: dict[str, Any]


def _require(acadsem: str) -> None:
    if not acadsem:
        raise ValueError("acadsem is missing in job data")


# ======================================================
# Metadata
# ======================================================


def process_metadata(fetcher: WisFetcher, db: Session, target_years: int = settings.target_years) -> list[Job]:
    """Store every semester offered by either portal and plan the follow-up scrapes.

    Args:
        fetcher (WisFetcher): Fetcher for the search forms
        db (Session): Database session
        target_years (int): Number of most recent years to schedule jobs for

    Returns:
        list[Job]: Schedule/content jobs per source, exam jobs for regular
                   semesters and one backfill job per year-semester
    """
    logging.info("Starting metadata scrape")

    schedule_options = parse_schedule_options(fetcher.fetch_schedule_form())
    content_options = parse_content_options(fetcher.fetch_content_form())

    unique_entries: dict[str, dict] = {}
    candidates = []

    for source, options in (("schedule", schedule_options), ("content", content_options)):
        for option in options["acadsem"]:
            parsed = parse_acadsem(option["value"])
            value = to_standard_acadsem(parsed["year"], parsed["semester"])

            unique_entries.setdefault(
                value,
                {
                    "year": parsed["year"],
                    "semester": parsed["semester"],
                    "label": option["label"],
                    "value": value,
                },
            )
            candidates.append({**parsed, "source": source, "value": value})

    payload = schemas.validate_batch(schemas.SemesterMetadata, list(unique_entries.values()))
    repository.save_metadata(db, payload)

    years = set(latest_years((item["year"] for item in payload), target_years))
    logging.info(f"Targeting scrape for years: {', '.join(sorted(years, reverse=True))}")

    jobs: dict[tuple[str, str], Job] = {}
    backfills: dict[tuple[str, str], Job] = {}

    for candidate in candidates:
        if candidate["year"] not in years:
            continue

        acadsem = candidate["value"]
        name = SCRAPE_SCHEDULE if candidate["source"] == "schedule" else SCRAPE_CONTENT
        jobs.setdefault((name, acadsem), Job(name, {"acadsem": acadsem}))

        # special terms have no exam timetable
        if candidate["semester"] in ("1", "2"):
            jobs.setdefault((SCRAPE_EXAM, acadsem), Job(SCRAPE_EXAM, {"acadsem": acadsem, "student_type": "UE"}))

        key = (candidate["year"], candidate["semester"])
        backfills.setdefault(key, Job(SCRAPE_BACKFILL, {"acadsem": acadsem}))

    planned = list(jobs.values()) + list(backfills.values())
    logging.info(f"Metadata scrape completed: {len(payload)} semesters, {len(planned)} follow-up jobs")
    return planned


# ======================================================
# Content and schedule
# ======================================================


def _save_content_page(html: str, acadsem: str, db: Session) -> int:
    courses = parse_content(html, acadsem)
    if courses:
        repository.save_course_content(db, schemas.validate_batch(schemas.CourseContent, courses))
    return len(courses)


def _save_schedule_page(html: str, acadsem: str, db: Session) -> int:
    courses = parse_schedule(html, acadsem)
    if courses:
        repository.save_course_schedule(db, schemas.validate_batch(schemas.CourseSchedule, courses))
    return len(courses)


def process_content(acadsem: str, fetcher: WisFetcher, db: Session) -> int:
    """Scrape and store the course content of every course in a semester."""
    _require(acadsem)
    logging.info(f"Starting content scrape for {acadsem}")

    html = fetcher.fetch_course_content(acadsem, boption="Search")
    count = _save_content_page(html, acadsem, db)

    if not count:
        logging.warning(f"No courses found for {acadsem}. Check if the semester is valid.")
        return 0

    logging.info(f"Content scrape completed for {acadsem}: {count} courses")
    return count


def process_schedule(acadsem: str, fetcher: WisFetcher, db: Session) -> int:
    """Scrape and store the class schedule of every course in a semester."""
    _require(acadsem)
    logging.info(f"Starting schedule scrape for {acadsem}")

    html = fetcher.fetch_course_schedule(acadsem, boption="Search", search_type="F")
    count = _save_schedule_page(html, acadsem, db)

    if not count:
        logging.warning(f"No schedules found for {acadsem}.")
        return 0

    logging.info(f"Schedule scrape completed for {acadsem}: {count} courses")
    return count


def process_backfill(acadsem: str, fetcher: WisFetcher, db: Session) -> dict[str, list[str]]:
    """Fetch courses present in only one of the content and schedule tables.

    Each missing course is fetched on its own; a failing course is logged
    and skipped so the rest of the backfill still runs.

    Returns:
        dict[str, list[str]]: The course codes that were missing from each table
    """
    _require(acadsem)
    logging.info(f"Starting backfill check for {acadsem}")

    schedule_codes = repository.get_course_codes(db, CourseSchedule, acadsem)
    content_codes = repository.get_course_codes(db, CourseContent, acadsem)
    logging.info(f"Schedule has {len(schedule_codes)} courses, content has {len(content_codes)} courses")

    missing_in_content = sorted(schedule_codes - content_codes)
    missing_in_schedule = sorted(content_codes - schedule_codes)

    if missing_in_content:
        logging.info(f"Backfilling {len(missing_in_content)} courses missing in content")
    for code in missing_in_content:
        try:
            html = fetcher.fetch_course_content(acadsem, subject_code=code, boption="Search")
            _save_content_page(html, acadsem, db)
        except Exception as e:
            logging.error(f"Failed backfill content for {code}: {e}")

    if missing_in_schedule:
        logging.info(f"Backfilling {len(missing_in_schedule)} courses missing in schedule")
    for code in missing_in_schedule:
        try:
            html = fetcher.fetch_course_schedule(acadsem, subject_code=code, boption="Search")
            _save_schedule_page(html, acadsem, db)
        except Exception as e:
            logging.error(f"Failed backfill schedule for {code}: {e}")

    logging.info(f"Backfill completed for {acadsem}")
    return {"content": missing_in_content, "schedule": missing_in_schedule}


# ======================================================
# Exams
# ======================================================


def _student_type_label(student_type: str) -> str:
    return "Undergraduate" if student_type == "UE" else "Graduate"


def _plan_acadsem(plan: dict[str, str]) -> str:
    """Canonical semester id of an exam plan.

    A year derived from "Academic Year 2025-2026" is the later year, while
    canonical ids start from the first year of the range.
    """
    exam_year, semester = plan["exam_year"], plan["semester"]
    match = ACADEMIC_SESSION_RE.search(plan.get("academic_session") or "")
    if match and (match.group(3), match.group(1)) == (exam_year, semester):
        exam_year = match.group(2)
    return to_standard_acadsem(exam_year, semester)


def scrape_exams(
    acadsem: str,
    fetcher: WisFetcher,
    db: Session,
    student_type: str = "UE",
    available_plans: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Scrape the exam timetable of a semester across every published plan.

    Plans whose academic session belongs to another semester are skipped.
    A plan that fails to fetch or parse is logged and skipped.

    Args:
        acadsem (str): Canonical semester id, e.g. "2025_1"
        fetcher (WisFetcher): Fetcher for the exam pages
        db (Session): Database session
        student_type (str): "UE" for undergraduates, "" for graduates
        available_plans (Optional[list[str]]): Plan numbers to try; discovered when omitted

    Returns:
        dict[str, Any]: {"success": bool, "count": int} or {"success": bool, "message": str}
    """
    _require(acadsem)
    label = _student_type_label(student_type)
    logging.info(f"Starting exam scraper for {acadsem} ({label})")

    plans = list(available_plans or [])
    if not plans:
        logging.info("No plans provided, fetching from WIS")
        plans = [plan["plan_no"] for plan in parse_exam_metadata(fetcher.fetch_exam_metadata(student_type))]

    if not plans:
        logging.warning(f"No exam plans available for {acadsem} ({label})")
        return {"success": False, "message": "No exam plans available"}

    logging.info(f"Found {len(plans)} exam plans to try: {', '.join(plans)}")

    all_exams = []
    matched_plan = None

    for plan_no in plans:
        try:
            details = parse_exam_metadata(fetcher.fetch_exam_plan_details(plan_no, student_type))
            if not details:
                logging.warning(f"Could not get details for plan {plan_no}")
                continue

            plan = details[0]
            if plan.get("exam_year") and plan.get("semester"):
                plan_acadsem = _plan_acadsem(plan)
                if plan_acadsem != acadsem:
                    logging.info(f"Plan {plan_no} is for {plan_acadsem}, skipping (looking for {acadsem})")
                    continue

            html = fetcher.fetch_exam_details(
                academic_session=plan.get("academic_session", ""),
                plan_no=plan.get("plan_no") or plan_no,
                exam_year=plan.get("exam_year", ""),
                semester=plan.get("semester", ""),
                student_type=student_type,
            )
            exams = parse_exam_details(html, acadsem, student_type or GRADUATE)

            if exams:
                logging.info(f"Plan {plan_no} returned {len(exams)} exams")
                all_exams.extend(exams)
                matched_plan = plan

        except Exception as e:
            logging.warning(f"Error processing plan {plan_no}: {e}")

    if not all_exams:
        logging.warning(f"No exam data found for {acadsem} ({label})")
        return {"success": True, "message": "No exams found", "count": 0}

    validated = schemas.validate_batch(schemas.ExamRecord, all_exams)
    academic_session = matched_plan.get("academic_session") if matched_plan else None
    repository.save_exam_timetable(
        db,
        validated,
        academic_session=academic_session or f"Exams for {acadsem}",
        plan_no=",".join(plans),
    )

    logging.info(f"Exam scraping completed for {acadsem} ({label}): {len(validated)} exams")
    return {"success": True, "count": len(validated)}


def scrape_exams_for_semester(acadsem: str, fetcher: WisFetcher, db: Session) -> dict[str, dict]:
    """Run the exam scrape for undergraduates and graduates, capturing each failure."""
    logging.info(f"Scraping exams for semester: {acadsem}")
    results = {}

    for key, student_type in (("undergraduate", "UE"), ("graduate", "")):
        try:
            results[key] = scrape_exams(acadsem, fetcher, db, student_type=student_type)
        except Exception as e:
            logging.error(f"Error scraping {key} exams: {e}")
            results[key] = {"success": False, "error": str(e)}

    logging.info(f"Exam scraping completed for {acadsem}: {results}")
    return results


# ======================================================
# Dispatch
# ======================================================


def run_job(job: Job, fetcher: WisFetcher, db: Session) -> Any:
    acadsem = job.data.get("acadsem", "")

    if job.name == SCRAPE_SCHEDULE:
        return process_schedule(acadsem, fetcher, db)
    if job.name == SCRAPE_CONTENT:
        return process_content(acadsem, fetcher, db)
    if job.name == SCRAPE_BACKFILL:
        return process_backfill(acadsem, fetcher, db)
    if job.name == SCRAPE_EXAM:
        return scrape_exams(
            acadsem,
            fetcher,
            db,
            student_type=job.data.get("student_type", "UE"),
            available_plans=job.data.get("available_plans"),
        )

    raise ValueError(f"Unknown job: {job.name}")


def run_jobs(jobs: list[Job], fetcher: WisFetcher, db: Session) -> dict[str, int]:
    """Run jobs one after another; a failed job is logged and the rest continue.

    Returns:
        dict[str, int]: Counts of succeeded and failed jobs
    """
    summary = {"succeeded": 0, "failed": 0}

    for job in jobs:
        logging.info(f"Running job {job.name} ({job.data.get('acadsem', '')})")
        try:
            run_job(job, fetcher, db)
            summary["succeeded"] += 1
        except Exception as e:
            logging.error(f"Job {job.name} failed for {job.data}: {e}")
            summary["failed"] += 1

    logging.info(f"Finished {len(jobs)} jobs: {summary['succeeded']} succeeded, {summary['failed']} failed")
    return summary
