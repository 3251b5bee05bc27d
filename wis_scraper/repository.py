"""
Persistence for scraped records.

Each source gets the write policy that matches how it changes upstream:

- semester metadata and course content are upserted; rows missing from a
  scrape are kept, since the portal never signals a removal
- class schedules are replaced per (course_code, acadsem), so cancelled
  sessions disappear
- exam records are upserted and every column overwritten, so a legend
  published later fills in exam types for rows already stored

Every save runs in a single transaction: the whole batch commits or none of it.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .config import settings
from .models import CourseContent, CourseSchedule, ExamTimetable, SemesterMetadata

CONTENT_FIELDS = (
    "title",
    "au",
    "description",
    "prerequisites",
    "mutual_exclusions",
    "department_code",
    "not_available_to_programme",
    "not_available_to_all_programme_with",
    "not_available_as_bde_ue_to_programme",
    "is_unrestricted_elective",
    "is_broadening_deepening_elective",
    "grade_type",
)

EXAM_FIELDS = (
    "course_title",
    "exam_date",
    "exam_time",
    "exam_duration",
    "venue",
    "seat_no",
    "exam_type",
    "academic_session",
    "plan_no",
)

SCHEDULE_KEY = ("index", "course_code", "acadsem", "type", "day", "time", "venue")

ROW_COLUMNS = {
    SemesterMetadata: ("year", "semester", "label", "value", "updated_at"),
    CourseContent: ("course_code", "acadsem") + CONTENT_FIELDS + ("created_at", "updated_at"),
    CourseSchedule: SCHEDULE_KEY + ("group", "remark", "created_at", "updated_at"),
    ExamTimetable: ("course_code", "acadsem", "student_type") + EXAM_FIELDS + ("created_at", "updated_at"),
}


# ======================================================
# Helpers
# ======================================================


def _insert_for(db: Session):
    """Dialect-specific INSERT construct supporting ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported for dialect: {dialect}")
    return insert


def _upsert(db: Session, model, values: dict[str, Any], key: tuple[str, ...], fields: tuple[str, ...]) -> None:
    insert = _insert_for(db)
    stmt = insert(model).values(**values, updated_at=func.now())
    update = {field: stmt.excluded[field] for field in fields}
    update["updated_at"] = func.now()
    db.execute(stmt.on_conflict_do_update(index_elements=list(key), set_=update))


def _run_batch(db: Session, description: str, write) -> None:
    """Run `write` in one transaction, rolling the whole batch back on failure."""
    try:
        write()
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Error saving {description}: {e}")
        raise


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value if value else None


def dedupe_sections(course_code: str, acadsem: str, sections: Iterable[dict]) -> list[dict]:
    """Drop repeated sessions by composite key, first occurrence wins."""
    seen = set()
    unique = []
    for section in sections:
        key = (
            section.get("index"),
            course_code,
            acadsem,
            section.get("type"),
            section.get("day"),
            section.get("time"),
            section.get("venue"),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(section)
    return unique


def _as_dict(row, model) -> dict[str, Any]:
    return {column: getattr(row, column) for column in ROW_COLUMNS[model]}


def _clamp(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(limit, settings.page_limit_max)), max(0, offset)


def _paginate(db: Session, model, filters: dict[str, Optional[str]], order_by, limit: int, offset: int) -> dict[str, Any]:
    conditions = [getattr(model, column) == value for column, value in filters.items() if value]
    limit, offset = _clamp(limit, offset)

    total = db.scalar(select(func.count()).select_from(model).where(*conditions))
    rows = db.scalars(
        select(model).where(*conditions).order_by(*order_by).limit(limit).offset(offset)
    ).all()

    return {
        "total": total or 0,
        "count": len(rows),
        "rows": [_as_dict(row, model) for row in rows],
    }


# ======================================================
# Write operations
# ======================================================


def save_metadata(db: Session, items: list[dict]) -> None:
    """Upsert semester descriptors keyed by (year, semester)."""
    if not items:
        return

    def write():
        for item in items:
            _upsert(
                db,
                SemesterMetadata,
                {
                    "year": item["year"],
                    "semester": item["semester"],
                    "label": item.get("label"),
                    "value": item.get("value"),
                },
                key=("year", "semester"),
                fields=("label", "value"),
            )

    _run_batch(db, "metadata", write)
    logging.info(f"Saved {len(items)} metadata items")


def save_course_content(db: Session, courses: list[dict]) -> None:
    """Upsert course content keyed by (course_code, acadsem), keeping unseen rows."""
    if not courses:
        return

    def write():
        for course in courses:
            values = {"course_code": course.get("course_code"), "acadsem": course.get("acadsem")}
            values.update({field: course.get(field) for field in CONTENT_FIELDS})
            _upsert(db, CourseContent, values, key=("course_code", "acadsem"), fields=CONTENT_FIELDS)

    _run_batch(db, "course content", write)
    logging.info(f"Saved {len(courses)} course content records")


def save_course_schedule(db: Session, courses: list[dict]) -> None:
    """Replace the stored sections of every scraped (course_code, acadsem)."""
    if not courses:
        return

    section_count = 0

    def write():
        nonlocal section_count
        insert = _insert_for(db)

        for course in courses:
            code = course.get("course_code")
            acadsem = course.get("acadsem")

            db.execute(
                delete(CourseSchedule).where(
                    CourseSchedule.course_code == code,
                    CourseSchedule.acadsem == acadsem,
                )
            )

            for section in dedupe_sections(code, acadsem, course.get("sections") or []):
                stmt = insert(CourseSchedule).values(
                    index=section.get("index"),
                    course_code=code,
                    acadsem=acadsem,
                    type=section.get("type"),
                    group=section.get("group"),
                    day=section.get("day"),
                    time=section.get("time"),
                    venue=section.get("venue"),
                    remark=section.get("remark"),
                )
                db.execute(stmt.on_conflict_do_nothing(index_elements=list(SCHEDULE_KEY)))
                section_count += 1

    _run_batch(db, "course schedule", write)
    logging.info(f"Saved schedules for {len(courses)} courses ({section_count} sections)")


def save_exam_timetable(
    db: Session,
    exams: list[dict],
    academic_session: Optional[str] = None,
    plan_no: Optional[str] = None,
) -> None:
    """Upsert exam records keyed by (course_code, acadsem, student_type), overwriting every field."""
    if not exams:
        return

    def write():
        for exam in exams:
            values = {
                "course_code": exam.get("course_code"),
                "acadsem": exam.get("acadsem"),
                "student_type": exam.get("student_type") or "UE",
                "course_title": _blank_to_none(exam.get("course_title")),
                "exam_date": _blank_to_none(exam.get("exam_date")),
                "exam_time": _blank_to_none(exam.get("exam_time")),
                "exam_duration": _blank_to_none(exam.get("exam_duration")),
                "venue": _blank_to_none(exam.get("venue")),
                "seat_no": _blank_to_none(exam.get("seat_no")),
                "exam_type": _blank_to_none(exam.get("exam_type")),
                "academic_session": _blank_to_none(academic_session),
                "plan_no": _blank_to_none(plan_no),
            }
            _upsert(
                db,
                ExamTimetable,
                values,
                key=("course_code", "acadsem", "student_type"),
                fields=EXAM_FIELDS,
            )

    _run_batch(db, "exam timetable", write)
    logging.info(f"Saved {len(exams)} exam timetable records")


# ======================================================
# Read operations
# ======================================================


def get_metadata(db: Session) -> list[dict]:
    rows = db.scalars(
        select(SemesterMetadata).order_by(SemesterMetadata.year.desc(), SemesterMetadata.semester.desc())
    ).all()
    return [_as_dict(row, SemesterMetadata) for row in rows]


def get_all_courses(db: Session, limit: int = 100, offset: int = 0) -> dict[str, Any]:
    """Lightweight course list: code, semester, title, AU and the two relation fields."""
    limit, offset = _clamp(limit, offset)
    columns = (
        CourseContent.course_code,
        CourseContent.acadsem,
        CourseContent.title,
        CourseContent.au,
        CourseContent.prerequisites,
        CourseContent.mutual_exclusions,
    )

    total = db.scalar(select(func.count()).select_from(CourseContent))
    result = db.execute(
        select(*columns)
        .order_by(CourseContent.course_code, CourseContent.acadsem)
        .limit(limit)
        .offset(offset)
    )
    rows = [dict(row._mapping) for row in result]

    return {"total": total or 0, "count": len(rows), "rows": rows}


def get_course_content(
    db: Session,
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    return _paginate(
        db,
        CourseContent,
        {"course_code": course_code, "acadsem": acadsem},
        order_by=(CourseContent.course_code.asc(),),
        limit=limit,
        offset=offset,
    )


def get_course_schedule(
    db: Session,
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    return _paginate(
        db,
        CourseSchedule,
        {"course_code": course_code, "acadsem": acadsem},
        order_by=(CourseSchedule.course_code, CourseSchedule.index.asc()),
        limit=limit,
        offset=offset,
    )


def get_exam_timetable(
    db: Session,
    course_code: Optional[str] = None,
    acadsem: Optional[str] = None,
    student_type: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    return _paginate(
        db,
        ExamTimetable,
        {"course_code": course_code, "acadsem": acadsem, "student_type": student_type},
        order_by=(ExamTimetable.course_code.asc(),),
        limit=limit,
        offset=offset,
    )


def get_course_codes(db: Session, model, acadsem: str) -> set[str]:
    """Distinct course codes stored for a semester in CourseContent or CourseSchedule."""
    if model not in (CourseContent, CourseSchedule):
        raise ValueError(f"Invalid model for course codes: {model}")

    rows = db.scalars(select(model.course_code).where(model.acadsem == acadsem).distinct()).all()
    return set(rows)
