import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__, repository
from .database import get_db
from .fetcher import FetchError, WisFetcher
from .schemas import VacancyResponse
from .vacancy_parser import parse_vacancy_html

app = FastAPI(title="NTU Course Scraper API", version=__version__)

Limit = Query(100, ge=1, le=500, description="Maximum number of rows to return")
Offset = Query(0, ge=0, description="Number of rows to skip")


@lru_cache(maxsize=None)
def get_fetcher() -> WisFetcher:
    """Shared fetcher for live lookups."""
    return WisFetcher()


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


@app.exception_handler(SQLAlchemyError)
def database_error_handler(request: Request, exc: SQLAlchemyError):
    logging.error(f"Database error on {request.url.path}: {exc}")
    return error_response(500, "INTERNAL_ERROR", "Failed to query the database")


@app.exception_handler(FetchError)
def fetch_error_handler(request: Request, exc: FetchError):
    logging.error(f"Upstream error on {request.url.path}: {exc}")
    return error_response(503, "UPSTREAM_ERROR", "Unable to reach the NTU service. It may be temporarily unavailable.")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/semesters")
def list_semesters(db: Session = Depends(get_db)):
    return repository.get_metadata(db)


@app.get("/courses")
def list_courses(limit: int = Limit, offset: int = Offset, db: Session = Depends(get_db)):
    return repository.get_all_courses(db, limit=limit, offset=offset)


@app.get("/course-content")
def course_content(
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    limit: int = Limit,
    offset: int = Offset,
    db: Session = Depends(get_db),
):
    return repository.get_course_content(db, course_code=course_code, acadsem=acadsem, limit=limit, offset=offset)


@app.get("/course-schedule")
def course_schedule(
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    limit: int = Limit,
    offset: int = Offset,
    db: Session = Depends(get_db),
):
    return repository.get_course_schedule(db, course_code=course_code, acadsem=acadsem, limit=limit, offset=offset)


@app.get("/exam-timetable")
def exam_timetable(
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    student_type: Optional[str] = None,
    limit: int = Limit,
    offset: int = Offset,
    db: Session = Depends(get_db),
):
    return repository.get_exam_timetable(
        db,
        course_code=course_code,
        acadsem=acadsem,
        student_type=student_type,
        limit=limit,
        offset=offset,
    )


@app.get("/vacancy")
def vacancy(
    course_code: Optional[str] = None,
    index: Optional[str] = None,
    fetcher: WisFetcher = Depends(get_fetcher),
):
    """Live vacancy and waitlist for a course; nothing is stored."""
    if not course_code or not course_code.strip():
        return error_response(400, "INVALID_REQUEST", "course_code parameter is required")

    code = course_code.strip().upper()
    result = parse_vacancy_html(fetcher.fetch_vacancy(code), code)

    if result["error"]:
        if "only available from" in result["error"]:
            return error_response(503, "SERVICE_UNAVAILABLE", result["error"])
        return error_response(502, "UPSTREAM_ERROR", result["error"])

    indexes = result["indexes"]
    if not indexes:
        return error_response(
            404,
            "NOT_FOUND",
            f"No indexes found for course {code}. Course may not exist or not be offered this semester.",
        )

    if index:
        indexes = [item for item in indexes if item["index"] == index.strip()]
        if not indexes:
            return error_response(404, "INDEX_NOT_FOUND", f"Index {index} not found for course {code}")

    logging.info(f"Retrieved vacancy for {code} with {len(indexes)} index(es)")
    return VacancyResponse(course_code=code, indexes=indexes).model_dump()
