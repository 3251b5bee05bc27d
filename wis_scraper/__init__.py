"""Scraper for the NTU WIS portal: course content, schedules, exam timetables and vacancies."""

__version__ = "2.0.0"
