"""
Tests for menu_calendar.calendar_parser module
"""

from bs4 import BeautifulSoup
from menu_calendar.calendar_parser import find_day_number, parse_month_page


APRIL_2025 = """
<table class="calendar">
  <tr><th>일</th><th>월</th><th>화</th><th>수</th><th>목</th><th>금</th><th>토</th></tr>
  <tr>
    <td></td>
    <td>
      <span class="day">3</span>
      <p>조식</p><p>토스트(1.2)</p>
      <p>중식</p><p>비빔밥</p>
      <p>석식</p><p>치킨</p><p>&lt;야식&gt;</p><p>우유</p>
      <p>에너지 800kcal</p>
    </td>
    <td><span class="day">4</span>휴일</td>
    <td>5<br>중식<br>짜장면</td>
    <td><b>8</b><img src="/img/dinner.gif" alt="석식">돈까스</td>
  </tr>
  <tr>
    <td><span class="day">31</span>조식<br>쌀밥</td>
  </tr>
</table>
"""


def cell(markup):
    return BeautifulSoup(markup, 'html.parser').find('td')


class TestFindDayNumber:
    def test_designated_element(self):
        assert find_day_number(cell('<td><span class="day">12</span> 중식</td>')) == 12

    def test_leading_text(self):
        assert find_day_number(cell('<td>7<br>조식</td>')) == 7

    def test_no_number(self):
        assert find_day_number(cell('<td>중식 비빔밥</td>')) is None

    def test_out_of_range(self):
        assert find_day_number(cell('<td>45 조식</td>')) is None
        assert find_day_number(cell('<td>0 조식</td>')) is None

    def test_long_number_is_not_a_day(self):
        assert find_day_number(cell('<td>2025 조식</td>')) is None

    def test_span_holding_only_a_number(self):
        assert find_day_number(cell('<td>중식<br>국수<b>9일</b></td>')) == 9

    def test_dotted_span_ignored(self):
        assert find_day_number(cell('<td>중식<span>5.6.13</span></td>')) is None


class TestParseMonthPage:
    """Tests for the month calendar table"""

    def test_cells_mapped_to_dates(self):
        meals = parse_month_page(APRIL_2025, 2025, 4)

        assert set(meals) == {'20250403', '20250405', '20250408'}

    def test_full_cell(self):
        day = parse_month_page(APRIL_2025, 2025, 4)['20250403']

        assert day.breakfast == '토스트'
        assert day.lunch == '비빔밥'
        assert day.dinner == '치킨'
        assert day.late_snack == '우유'

    def test_partial_cell(self):
        day = parse_month_page(APRIL_2025, 2025, 4)['20250405']

        assert day.lunch == '짜장면'
        assert day.breakfast is None
        assert day.dinner is None

    def test_icon_label(self):
        day = parse_month_page(APRIL_2025, 2025, 4)['20250408']

        assert day.dinner == '돈까스'

    def test_invalid_day_skipped(self):
        """Test that 31 in a 30-day month produces no record"""
        meals = parse_month_page(APRIL_2025, 2025, 4)

        assert not any(ymd.endswith('31') for ymd in meals)
        assert '20250501' not in meals

    def test_valid_31st_in_long_month(self):
        meals = parse_month_page(APRIL_2025, 2025, 5)

        assert meals["20250531"].breakfast == "쌀밥"

    def test_nested_layout_table(self):
        """Test that a layout cell wrapping the calendar is not read as a day"""
        wrapped = f"<table><tr><td>1 조식 안내{APRIL_2025}</td></tr></table>"

        assert set(parse_month_page(wrapped, 2025, 4)) == {'20250403', '20250405', '20250408'}

    def test_no_calendar(self):
        assert parse_month_page("<html><body><p>준비중</p></body></html>", 2025, 4) == {}

    def test_allergen_span_is_not_the_day(self):
        """Test that a dotted allergen span does not override the cell's leading day"""
        page = (
            "<table><tr>"
            "<td>12<br>중식<br>비빔밥<span class=\"allergy\">5.6.13</span></td>"
            "</tr></table>"
        )

        meals = parse_month_page(page, 2025, 4)

        assert set(meals) == {'20250412'}
        assert meals['20250412'].lunch == '비빔밥'
