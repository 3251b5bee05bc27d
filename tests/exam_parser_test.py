from unittest.mock import patch

import pytest
from bs4 import BeautifulSoup

from wis_scraper.exam_parser import (CLOSED_BOOK, OPEN_BOOK,
                                     RESTRICTED_OPEN_BOOK, exam_type_from_text,
                                     has_exam_type_legend, infer_exam_type,
                                     parse_academic_session,
                                     parse_exam_details, parse_exam_metadata)

LEGEND = "<p>* - Restricted Open Book, # - Open Book, + - Open Book</p>"

EXAM_HEADER = (
    "<tr><th>Date</th><th>Day</th><th>Time</th><th>Course Code</th>"
    "<th>Course Title</th><th>Duration</th><th>Venue</th></tr>"
)


def exam_row(date, day, time, code, title, duration="2 hr 0 min", venue="LT1"):
    cells = (date, day, time, code, title, duration, venue)
    return "<tr>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>"


def exam_page(*rows, legend=True):
    return (
        "<html><body>"
        + (LEGEND if legend else "")
        + "<table>"
        + EXAM_HEADER
        + "".join(rows)
        + "</table></body></html>"
    )


# =====================
# Metadata stage
# =====================


class TestParseAcademicSession:
    def test_year_is_the_later_calendar_year(self):
        assert parse_academic_session("Semester 1 Academic Year 2025-2026") == ("2026", "1")

    def test_unrecognized_session(self):
        assert parse_academic_session("Special Term") is None

    def test_empty_session(self):
        assert parse_academic_session("") is None


class TestParseExamMetadata:
    def test_plan_radios(self):
        # Arrange
        html = """
        <form>
          <p><input type="radio" name="p_plan_no" value="113"> Semester 1 2025-2026</p>
          <p><input type="radio" name="p_plan_no" value="114"> Semester 2 2025-2026</p>
        </form>
        """

        # Act
        plans = parse_exam_metadata(html)

        # Assert
        assert plans == [
            {"plan_no": "113", "label": "Semester 1 2025-2026"},
            {"plan_no": "114", "label": "Semester 2 2025-2026"},
        ]

    def test_single_plan_from_hidden_inputs(self):
        # Arrange
        html = """
        <form>
          <input type="hidden" name="p_plan_no" value="113">
          <input type="hidden" name="academic_session" value="Semester 1 Academic Year 2025-2026">
          <input type="hidden" name="p_exam_yr" value="2025">
          <input type="hidden" name="p_semester" value="1">
        </form>
        """

        # Act
        plans = parse_exam_metadata(html)

        # Assert
        assert plans == [
            {
                "plan_no": "113",
                "academic_session": "Semester 1 Academic Year 2025-2026",
                "exam_year": "2025",
                "semester": "1",
            }
        ]

    def test_year_and_semester_derived_from_session(self):
        # Arrange
        html = """
        <form>
          <input type="hidden" name="p_plan_no" value="114">
          <select name="academic_session">
            <option value="x" selected>Semester 2 Academic Year 2025-2026</option>
          </select>
        </form>
        """

        # Act
        plans = parse_exam_metadata(html)

        # Assert
        assert plans[0]["exam_year"] == "2026"
        assert plans[0]["semester"] == "2"
        assert plans[0]["academic_session"] == "Semester 2 Academic Year 2025-2026"

    def test_unrecognized_page(self):
        assert parse_exam_metadata("<html><body>Nothing here</body></html>") == []


# =====================
# Exam types
# =====================


class TestInferExamType:
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("AB1234*", ("AB1234", RESTRICTED_OPEN_BOOK)),
            ("AB1234+", ("AB1234", OPEN_BOOK)),
            ("AB1234#", ("AB1234", OPEN_BOOK)),
            ("AB1234", ("AB1234", CLOSED_BOOK)),
        ],
    )
    def test_with_legend(self, code, expected):
        assert infer_exam_type(code, True) == expected

    def test_without_legend_suffix_stripped_and_type_unknown(self):
        assert infer_exam_type("AB1234*", False) == ("AB1234", None)
        assert infer_exam_type("AB1234", False) == ("AB1234", None)


class TestExamTypeFromText:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Restricted Open Book", RESTRICTED_OPEN_BOOK),
            ("open book", OPEN_BOOK),
            ("ClosedBook", CLOSED_BOOK),
            ("", CLOSED_BOOK),
        ],
    )
    def test_text_fallback(self, text, expected):
        assert exam_type_from_text(text) == expected


class TestHasExamTypeLegend:
    def test_legend_present(self):
        soup = BeautifulSoup(exam_page(), "html.parser")
        assert has_exam_type_legend(soup) is True

    def test_legend_absent(self):
        soup = BeautifulSoup(exam_page(legend=False), "html.parser")
        assert has_exam_type_legend(soup) is False


# =====================
# Detail stage
# =====================


class TestParseExamDetails:
    def test_exam_types_with_legend(self):
        # Arrange
        html = exam_page(
            exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "AB1234*", "TEST COURSE"),
            exam_row("21 NOVEMBER 2025", "FRIDAY", "2.00 PM", "AB5678#", "ANOTHER COURSE", venue="LT2"),
            exam_row("22 NOVEMBER 2025", "SATURDAY", "9.00 AM", "AB9999", "CLOSED BOOK COURSE", venue="LT3"),
        )

        # Act
        exams = {exam["course_code"]: exam for exam in parse_exam_details(html, "2025_1", "UE")}

        # Assert
        assert exams["AB1234"]["exam_type"] == RESTRICTED_OPEN_BOOK
        assert exams["AB1234"]["course_title"] == "TEST COURSE"
        assert exams["AB5678"]["exam_type"] == OPEN_BOOK
        assert exams["AB9999"]["exam_type"] == CLOSED_BOOK

    def test_record_fields(self):
        # Arrange
        html = exam_page(exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "ab1234+", "TEST COURSE"))

        # Act
        exams = parse_exam_details(html, "2025_1", "UE")

        # Assert
        assert exams == [
            {
                "course_code": "AB1234",
                "course_title": "TEST COURSE",
                "acadsem": "2025_1",
                "exam_date": "20 NOVEMBER 2025",
                "exam_time": "9.00 AM",
                "exam_duration": "2 hr 0 min",
                "venue": "LT1",
                "seat_no": None,
                "student_type": "UE",
                "exam_type": OPEN_BOOK,
            }
        ]

    def test_no_legend_leaves_exam_type_empty(self):
        # Arrange
        html = exam_page(
            exam_row("27 APRIL 2026", "MONDAY", "9.00 AM", "CD1234*", "FUTURE EXAM", venue="LT5"),
            legend=False,
        )

        # Act
        exams = parse_exam_details(html, "2025_2", "UE")

        # Assert
        assert len(exams) == 1
        assert exams[0]["course_code"] == "CD1234"
        assert exams[0]["exam_type"] is None
        assert exams[0]["acadsem"] == "2025_2"

    def test_empty_title_becomes_none(self):
        html = exam_page(exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "EF1234", ""))

        exams = parse_exam_details(html, "2025_1", "UE")

        assert exams[0]["course_title"] is None
        assert exams[0]["exam_type"] == CLOSED_BOOK

    def test_short_and_header_like_rows_are_skipped(self):
        # Arrange
        html = exam_page(
            "<tr><td>DATE</td><td>DAY</td><td>TIME</td><td>COURSE</td><td>TITLE</td></tr>",
            "<tr><td>Note</td><td>only two</td></tr>",
            exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "X", "TOO SHORT"),
            exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "GH1234", "KEPT"),
        )

        # Act
        exams = parse_exam_details(html, "2025_1", "UE")

        # Assert
        assert [exam["course_code"] for exam in exams] == ["GH1234"]

    def test_graduate_student_type_is_attached(self):
        html = exam_page(exam_row("20 NOVEMBER 2025", "THURSDAY", "9.00 AM", "GH1234", "T"))

        exams = parse_exam_details(html, "2025_1", "")

        assert exams[0]["student_type"] == ""

    def test_exam_mode_column_does_not_set_exam_type(self):
        # Arrange
        html = (
            "<html><body>" + LEGEND + "<table>"
            "<tr><th>Date</th><th>Time</th><th>Course Code</th><th>Exam Mode</th></tr>"
            "<tr><td>20 NOVEMBER 2025</td><td>9.00 AM</td><td>IJ1234</td><td>Take Home</td></tr>"
            "</table></body></html>"
        )

        # Act
        exams = parse_exam_details(html, "2025_1", "UE")

        # Assert
        assert exams[0]["course_code"] == "IJ1234"
        assert exams[0]["exam_date"] == "20 NOVEMBER 2025"
        assert exams[0]["exam_type"] == CLOSED_BOOK

    def test_tables_without_exam_headers_are_ignored(self):
        html = "<html><body><table><tr><td>Foo</td><td>Bar</td></tr></table></body></html>"
        assert parse_exam_details(html, "2025_1") == []

    @patch("wis_scraper.exam_parser.logging")
    def test_missing_legend_is_logged(self, mock_logging):
        parse_exam_details(exam_page(legend=False), "2025_1")

        mock_logging.info.assert_any_call(
            "Exam type legend not found on page, exam types will be left blank"
        )
