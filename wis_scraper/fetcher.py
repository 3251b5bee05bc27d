import logging
from typing import Optional

import requests
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout
from tidylib import tidy_document

from .config import Settings, settings
from .semesters import split_acadsem, to_content_sem, to_schedule_sem

SCHEDULE_FORM_URL = "https://wish.wis.ntu.edu.sg/webexe/owa/AUS_SCHEDULE.main"
SCHEDULE_URL = "https://wish.wis.ntu.edu.sg/webexe/owa/AUS_SCHEDULE.main_display1"
CONTENT_FORM_URL = "https://wis.ntu.edu.sg/webexe/owa/AUS_SUBJ_CONT.main"
CONTENT_URL = "https://wis.ntu.edu.sg/webexe/owa/AUS_SUBJ_CONT.main_display1"
EXAM_BASE_URL = "https://wis.ntu.edu.sg/webexe/owa/exam_timetable_und"
VACANCY_URL = "https://wish.wis.ntu.edu.sg/webexe/owa/aus_vacancy.check_vacancy2"
VACANCY_REFERER = "https://wish.wis.ntu.edu.sg/webexe/owa/aus_vacancy.check_vacancy"


class FetchError(RuntimeError):
    """Raised when a WIS page cannot be retrieved."""


class WisFetcher:
    """Fetches raw HTML pages from the WIS portal.

    All semester arguments are canonical ("2025_2"); conversion to the
    encodings each sub-portal expects happens in the payload builders.
    """

    def __init__(self, config: Settings = settings):
        """Constructs a fetcher with a persistent session.

        Args:
            config (Settings): Timeout, user agent and tidy settings
        """
        self.timeout = config.http_timeout
        self.tidy = config.tidy_html

        # initialize a persistent session object
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": config.user_agent})

        logging.info("WisFetcher initialized with persistent session")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, data: Optional[dict] = None, headers: Optional[dict] = None) -> str:
        """Send a request and return the decoded page.

        Raises:
            FetchError: On timeout, HTTP error, connection error or any other request failure
        """
        response = None
        try:
            logging.info(f"{method} {url}")
            response = self.session.request(method, url, data=data, headers=headers, timeout=self.timeout)

            # check for HTTP errors (4xx or 5xx)
            response.raise_for_status()

            # decode using detected encoding, fall back to utf-8
            response.encoding = response.apparent_encoding or "utf-8"

            return self.fix_html(response.text) if self.tidy else response.text

        except Timeout as e:
            logging.error(f"The request timed out while fetching {url}")
            raise FetchError(f"Request timed out: {url}") from e

        except HTTPError as http_err:
            status_code = response.status_code if response is not None else "N/A"
            logging.error(f"HTTP error occurred fetching {url}: {http_err} - Status Code: {status_code}")
            raise FetchError(f"HTTP error {status_code}: {url}") from http_err

        except ConnectionError as conn_err:
            logging.error(f"A connection error occurred fetching {url}: {conn_err}")
            raise FetchError(f"Connection error: {url}") from conn_err

        except RequestException as req_error:
            logging.error(f"An error occurred fetching {url}: {req_error}")
            raise FetchError(f"An error occurred: {url}: {req_error}") from req_error

    def post_form(self, url: str, data: dict, headers: Optional[dict] = None) -> str:
        """POST a form-encoded payload."""
        return self._request("POST", url, data=data, headers=headers)

    def get(self, url: str) -> str:
        return self._request("GET", url)

    def fix_html(self, html: str) -> str:
        cleaned, errors = tidy_document(html, options={"numeric-entities": 1})
        return cleaned

    def close_session(self):
        """Closes the persistent session."""
        logging.info("Closing WisFetcher session.")
        self.session.close()

    # ------------------------------------------------------------------
    # Search forms
    # ------------------------------------------------------------------

    def fetch_schedule_form(self) -> str:
        return self.get(SCHEDULE_FORM_URL)

    def fetch_content_form(self) -> str:
        return self.get(CONTENT_FORM_URL)

    # ------------------------------------------------------------------
    # Content and schedule
    # ------------------------------------------------------------------

    @staticmethod
    def content_payload(acadsem: str, course_year: str = "", subject_code: str = "", boption: str = "") -> dict:
        year, semester = split_acadsem(acadsem)
        return {
            "acadsem": to_content_sem(acadsem),
            "acad": year,
            "semester": semester,
            "boption": boption or ("Search" if subject_code else "CLoad"),
            "r_course_yr": course_year,
            "r_subj_code": subject_code,
        }

    @staticmethod
    def schedule_payload(
        acadsem: str,
        course_year: str = "",
        subject_code: str = "",
        search_type: str = "F",
        boption: str = "CLoad",
        staff_access: str = "false",
    ) -> dict:
        return {
            "acadsem": to_schedule_sem(acadsem),
            "r_course_yr": course_year,
            "r_subj_code": subject_code,
            "r_search_type": search_type,
            "boption": boption,
            "staff_access": staff_access,
        }

    def fetch_course_content(self, acadsem: str, **params) -> str:
        if not acadsem:
            raise ValueError("acadsem is required")
        return self.post_form(CONTENT_URL, self.content_payload(acadsem, **params))

    def fetch_course_schedule(self, acadsem: str, **params) -> str:
        if not acadsem:
            raise ValueError("acadsem is required")
        return self.post_form(SCHEDULE_URL, self.schedule_payload(acadsem, **params))

    # ------------------------------------------------------------------
    # Exam timetable (three-step form flow)
    # ------------------------------------------------------------------

    def fetch_exam_metadata(self, student_type: str = "UE") -> str:
        logging.info(f"Fetching exam plans for student type: {student_type or 'Graduate'}")
        return self.post_form(f"{EXAM_BASE_URL}.MainSubmit", {"p_type": student_type, "bOption": "Next"})

    def fetch_exam_plan_details(self, plan_no: str, student_type: str = "UE") -> str:
        logging.info(f"Fetching exam plan details for plan {plan_no}")
        return self.post_form(
            f"{EXAM_BASE_URL}.query_page",
            {"p_plan_no": plan_no, "p_type": student_type, "bOption": "Next"},
        )

    def fetch_exam_details(
        self,
        academic_session: str,
        plan_no: str,
        exam_year: str,
        semester: str,
        student_type: str = "UE",
        **filters,
    ) -> str:
        """Fetch the exam timetable of one plan.

        Args:
            academic_session (str): e.g. "Semester 1 Academic Year 2025-2026"
            plan_no (str): Plan number from the plan selection page
            exam_year (str): Exam year, e.g. "2026"
            semester (str): "1" or "2"
            student_type (str): "UE" for undergraduates, "" for graduates
            **filters: Optional p_exam_dt, p_start_time, p_dept, p_subj, p_venue, p_matric

        Returns:
            str: Detail page HTML
        """
        payload = {
            "p_exam_dt": "",
            "p_start_time": "",
            "p_dept": "",
            "p_subj": "",
            "p_venue": "",
            "p_matric": "",
        }
        payload.update({key: value for key, value in filters.items() if key in payload})
        payload.update(
            {
                "academic_session": academic_session,
                "p_plan_no": plan_no,
                "p_exam_yr": exam_year,
                "p_semester": semester,
                "p_type": student_type,
                "bOption": "Next",
            }
        )
        logging.info(f"Fetching exam details for {academic_session}, plan: {plan_no}")
        return self.post_form(f"{EXAM_BASE_URL}.Get_detail", payload)

    # ------------------------------------------------------------------
    # Vacancy
    # ------------------------------------------------------------------

    def fetch_vacancy(self, course_code: str) -> str:
        code = course_code.strip().upper()
        logging.info(f"Fetching vacancy for course: {code}")
        return self.post_form(
            VACANCY_URL,
            {"subj": code},
            headers={
                "Referer": VACANCY_REFERER,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )
