import unittest
from unittest.mock import MagicMock, patch

from requests.exceptions import (ConnectionError, HTTPError, RequestException,
                                 Timeout)

from wis_scraper.config import Settings
from wis_scraper.fetcher import (CONTENT_URL, EXAM_BASE_URL, SCHEDULE_URL,
                                 VACANCY_URL, FetchError, WisFetcher)


class WisFetcherTest(unittest.TestCase):
    def setUp(self):
        """Sets up the text fixture. Runs once at the beginning of each test."""
        patcher = patch("wis_scraper.fetcher.requests.Session")
        self.mock_session_cls = patcher.start()
        self.addCleanup(patcher.stop)

        self.session = MagicMock()
        self.session.headers = {}
        self.mock_session_cls.return_value = self.session

        self.config = Settings(http_timeout=5, user_agent="Test-Agent/1.0", tidy_html=False)
        self.fetcher = WisFetcher(self.config)

    def respond_with(self, html):
        response = MagicMock()
        response.status_code = 200
        response.text = html
        response.apparent_encoding = "utf-8"
        self.session.request.return_value = response
        return response

    def test_session_uses_configured_user_agent(self):
        self.assertEqual(self.session.headers["User-Agent"], "Test-Agent/1.0")

    def test_fetch_course_schedule_success(self):
        """Tests that the schedule page is POSTed with the portal's semester format."""
        # ===== Arrange =====
        expected_html = "<html>Schedule</html>"
        self.respond_with(expected_html)

        # ===== Act ======
        actual_html = self.fetcher.fetch_course_schedule("2025_2", boption="Search")

        # ===== Assert =====
        self.assertEqual(actual_html, expected_html)
        self.session.request.assert_called_once_with(
            "POST",
            SCHEDULE_URL,
            data={
                "acadsem": "2025;2",
                "r_course_yr": "",
                "r_subj_code": "",
                "r_search_type": "F",
                "boption": "Search",
                "staff_access": "false",
            },
            headers=None,
            timeout=5,
        )

    def test_fetch_course_content_payload(self):
        # ===== Arrange =====
        self.respond_with("<html>Content</html>")

        # ===== Act ======
        self.fetcher.fetch_course_content("2025_1", subject_code="SC2008")

        # ===== Assert =====
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", CONTENT_URL))
        self.assertEqual(
            kwargs["data"],
            {
                "acadsem": "2025_1",
                "acad": "2025",
                "semester": "1",
                "boption": "Search",
                "r_course_yr": "",
                "r_subj_code": "SC2008",
            },
        )

    def test_content_payload_defaults_to_course_load(self):
        payload = WisFetcher.content_payload("2025_1")
        self.assertEqual(payload["boption"], "CLoad")

    def test_missing_acadsem_raises_value_error(self):
        with self.assertRaises(ValueError):
            self.fetcher.fetch_course_content("")
        with self.assertRaises(ValueError):
            self.fetcher.fetch_course_schedule("")

    def test_fetch_exam_details_payload(self):
        # ===== Arrange =====
        self.respond_with("<html>Exams</html>")

        # ===== Act ======
        self.fetcher.fetch_exam_details(
            academic_session="Semester 1 Academic Year 2025-2026",
            plan_no="113",
            exam_year="2025",
            semester="1",
            student_type="UE",
            p_subj="SC2008",
            ignored="x",
        )

        # ===== Assert =====
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", f"{EXAM_BASE_URL}.Get_detail"))
        self.assertEqual(
            kwargs["data"],
            {
                "p_exam_dt": "",
                "p_start_time": "",
                "p_dept": "",
                "p_subj": "SC2008",
                "p_venue": "",
                "p_matric": "",
                "academic_session": "Semester 1 Academic Year 2025-2026",
                "p_plan_no": "113",
                "p_exam_yr": "2025",
                "p_semester": "1",
                "p_type": "UE",
                "bOption": "Next",
            },
        )

    def test_fetch_exam_metadata_payload(self):
        self.respond_with("<html></html>")

        self.fetcher.fetch_exam_metadata("")

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", f"{EXAM_BASE_URL}.MainSubmit"))
        self.assertEqual(kwargs["data"], {"p_type": "", "bOption": "Next"})

    def test_fetch_vacancy_uppercases_code_and_sends_referer(self):
        # ===== Arrange =====
        self.respond_with("<html>Vacancy</html>")

        # ===== Act ======
        self.fetcher.fetch_vacancy(" sc2103 ")

        # ===== Assert =====
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", VACANCY_URL))
        self.assertEqual(kwargs["data"], {"subj": "SC2103"})
        self.assertIn("Referer", kwargs["headers"])

    @patch("wis_scraper.fetcher.tidy_document")
    def test_tidy_applied_when_enabled(self, mock_tidy):
        # ===== Arrange =====
        mock_tidy.return_value = ("<html>clean</html>", "")
        fetcher = WisFetcher(Settings(tidy_html=True))
        self.respond_with("<html>dirty")

        # ===== Act ======
        html = fetcher.fetch_schedule_form()

        # ===== Assert =====
        self.assertEqual(html, "<html>clean</html>")
        mock_tidy.assert_called_once()

    def test_fetch_timeout(self):
        """Tests that a timeout raises FetchError."""
        self.session.request.side_effect = Timeout()

        with self.assertRaises(FetchError) as context:
            self.fetcher.fetch_content_form()

        self.assertIn("timed out", str(context.exception).lower())

    def test_fetch_http_error(self):
        """Tests that an HTTP error status raises FetchError."""
        response = MagicMock()
        response.status_code = 404
        response.raise_for_status.side_effect = HTTPError("404 Client Error")
        self.session.request.return_value = response

        with self.assertRaises(FetchError) as context:
            self.fetcher.fetch_content_form()

        self.assertIn("http error", str(context.exception).lower())

    def test_fetch_connection_error(self):
        """Tests that a connection failure raises FetchError."""
        self.session.request.side_effect = ConnectionError()

        with self.assertRaises(FetchError) as context:
            self.fetcher.fetch_schedule_form()

        self.assertIn("connection error", str(context.exception).lower())

    def test_fetch_generic_request_exception(self):
        """Tests that any other request exception raises FetchError."""
        self.session.request.side_effect = RequestException("Unexpected error")

        with self.assertRaises(FetchError) as context:
            self.fetcher.fetch_vacancy("SC2103")

        self.assertIn("error occurred", str(context.exception).lower())

    def test_fetch_error_is_runtime_error(self):
        self.assertTrue(issubclass(FetchError, RuntimeError))

    def test_close_session(self):
        self.fetcher.close_session()
        self.session.close.assert_called_once()
