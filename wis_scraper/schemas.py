from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, TypeAdapter

ExamType = Literal["Open Book", "Closed Book", "Restricted Open Book"]


class SemesterMetadata(BaseModel):
    year: str
    semester: str
    label: str
    value: str
    updated_at: Optional[datetime] = None


class CourseContent(BaseModel):
    course_code: str
    acadsem: str
    title: str
    au: Optional[float]
    description: str
    prerequisites: str
    mutual_exclusions: str
    department_code: Optional[str] = None
    not_available_to_programme: Optional[str] = None
    not_available_to_all_programme_with: Optional[str] = None
    not_available_as_bde_ue_to_programme: Optional[str] = None
    is_unrestricted_elective: bool = True
    is_broadening_deepening_elective: bool = True
    grade_type: Optional[str] = None


class ScheduleSection(BaseModel):
    index: str
    type: str
    group: str
    day: str
    time: str
    venue: str
    remark: str


class CourseSchedule(BaseModel):
    course_code: str
    acadsem: str
    sections: list[ScheduleSection]


class ExamRecord(BaseModel):
    course_code: str
    acadsem: str
    student_type: str = "UE"
    course_title: Optional[str] = None
    exam_date: Optional[str] = None
    exam_time: Optional[str] = None
    exam_duration: Optional[str] = None
    venue: Optional[str] = None
    seat_no: Optional[str] = None
    exam_type: Optional[ExamType] = None


class VacancyClass(BaseModel):
    type: str
    group: str
    day: str
    time: str
    venue: str


class VacancyIndex(BaseModel):
    index: str
    vacancy: int
    waitlist: int
    classes: list[VacancyClass]


class VacancyResponse(BaseModel):
    course_code: str
    indexes: list[VacancyIndex]


def validate_batch(model: type[BaseModel], records: list[dict]) -> list[dict]:
    """Validate a whole batch; any invalid record raises ValidationError for the batch."""
    adapter = TypeAdapter(list[model])
    return [item.model_dump() for item in adapter.validate_python(records)]
