from sqlalchemy import Boolean, Column, DateTime, Float, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SemesterMetadata(Base):
    __tablename__ = "semester_metadata"

    year = Column(String, primary_key=True)
    semester = Column(String, primary_key=True)
    label = Column(String, nullable=True)
    value = Column(String, nullable=True)
    updated_at = Column(DateTime, server_default=func.now())


class CourseContent(Base):
    __tablename__ = "course_content"

    course_code = Column(String, primary_key=True)
    acadsem = Column(String, primary_key=True)
    title = Column(String, nullable=True)
    au = Column(Float, nullable=True)  # 0.0 is a real value, None means unknown
    description = Column(String, nullable=True)
    prerequisites = Column(String, nullable=True)
    mutual_exclusions = Column(String, nullable=True)
    department_code = Column(String, nullable=True)
    not_available_to_programme = Column(String, nullable=True)
    not_available_to_all_programme_with = Column(String, nullable=True)
    not_available_as_bde_ue_to_programme = Column(String, nullable=True)
    is_unrestricted_elective = Column(Boolean, nullable=True)
    is_broadening_deepening_elective = Column(Boolean, nullable=True)
    grade_type = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class CourseSchedule(Base):
    __tablename__ = "course_schedule"

    index = Column(String, primary_key=True)
    course_code = Column(String, primary_key=True)
    acadsem = Column(String, primary_key=True)
    type = Column(String, primary_key=True)
    day = Column(String, primary_key=True)
    time = Column(String, primary_key=True)
    venue = Column(String, primary_key=True)
    group = Column(String, nullable=True)
    remark = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class ExamTimetable(Base):
    __tablename__ = "exam_timetable"

    course_code = Column(String, primary_key=True)
    acadsem = Column(String, primary_key=True)
    student_type = Column(String, primary_key=True)
    course_title = Column(String, nullable=True)
    exam_date = Column(String, nullable=True)
    exam_time = Column(String, nullable=True)
    exam_duration = Column(String, nullable=True)
    venue = Column(String, nullable=True)
    seat_no = Column(String, nullable=True)
    exam_type = Column(String, nullable=True)
    academic_session = Column(String, nullable=True)
    plan_no = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())
