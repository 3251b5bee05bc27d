from wis_scraper.options_parser import (parse_content_options,
                                        parse_schedule_options, radio_options,
                                        select_options)

SCHEDULE_FORM = """
<form>
  <select name="acadsem">
    <option value="">Select...</option>
    <option value="2025;2" selected>2025 Semester 2</option>
    <option value="2025;1">2025 Semester 1</option>
  </select>
  <select name="r_course_yr">
    <option value="CSC;;1;F">Computer Science Year 1</option>
  </select>
  <p><input type="radio" name="r_search_type" value="F" checked> Full Time</p>
  <p><input type="radio" name="r_search_type" value="P"> Part Time</p>
</form>
"""


class TestSelectOptions:
    def test_placeholder_options_are_skipped(self):
        # Act
        options = select_options(SCHEDULE_FORM, "acadsem")

        # Assert
        assert options == [
            {"value": "2025;2", "label": "2025 Semester 2"},
            {"value": "2025;1", "label": "2025 Semester 1"},
        ]

    def test_missing_select(self):
        assert select_options(SCHEDULE_FORM, "unknown") == []


class TestRadioOptions:
    def test_radio_labels_and_checked_state(self):
        # Act
        options = radio_options(SCHEDULE_FORM, "r_search_type")

        # Assert
        assert options == [
            {"value": "F", "label": "Full Time", "checked": True},
            {"value": "P", "label": "Part Time", "checked": False},
        ]


class TestParseFormOptions:
    def test_parse_schedule_options(self):
        result = parse_schedule_options(SCHEDULE_FORM)

        assert len(result["acadsem"]) == 2
        assert result["course_years"] == [{"value": "CSC;;1;F", "label": "Computer Science Year 1"}]
        assert [o["value"] for o in result["search_types"]] == ["F", "P"]

    def test_parse_content_options(self):
        html = """
        <select name="acadsem">
          <option value="2025_1">2025 Sem 1</option>
          <option value="">Select...</option>
        </select>
        """

        result = parse_content_options(html)

        assert result == {
            "acadsem": [{"value": "2025_1", "label": "2025 Sem 1"}],
            "course_years": [],
        }

    def test_empty_page(self):
        assert parse_content_options("") == {"acadsem": [], "course_years": []}
