"""
Month calendar parser
Maps each calendar cell to its day and extracts that cell's meals
"""

import re
from typing import Dict, Optional

from bs4 import BeautifulSoup, Tag

from menu_calendar.dates import make_ymd
from menu_calendar.extractor import extract_from_text, has_meal_label
from menu_calendar.models import MealDay
from menu_calendar.normalizer import normalize_text


# Sub-elements marked as holding the day number, in preference order
DAY_NUMBER_SELECTORS = ['.day', '.date', '.num']

# Unmarked emphasis elements, tried only after the cell's leading text
FALLBACK_DAY_SELECTORS = ['strong', 'b', 'span']

# A sub-element must hold nothing but the number (allergen spans like "5.6.13" don't count)
DAY_ONLY_RE = re.compile(r'^\s*(\d{1,2})\s*(?:일)?\s*$')
DAY_TOKEN_RE = re.compile(r'^\s*(\d{1,2})(?!\d|\.\d)')


def _day_from_text(text: str, pattern=DAY_TOKEN_RE) -> Optional[int]:
    match = pattern.match(text or '')
    if not match:
        return None
    day = int(match.group(1))
    if 1 <= day <= 31:
        return day
    return None


def _day_from_selectors(cell: Tag, selectors) -> Optional[int]:
    for selector in selectors:
        for element in cell.select(selector):
            day = _day_from_text(element.get_text(' ', strip=True), DAY_ONLY_RE)
            if day is not None:
                return day
    return None


def find_day_number(cell: Tag) -> Optional[int]:
    """
    Day-of-month for a calendar cell

    Looks at elements marked as the day first, then at the cell's leading
    text, then at plain strong/b/span elements holding only a number.

    Returns:
        Day number 1-31, or None if the cell has no day
    """
    day = _day_from_selectors(cell, DAY_NUMBER_SELECTORS)
    if day is not None:
        return day

    day = _day_from_text(cell.get_text(' ', strip=True))
    if day is not None:
        return day

    return _day_from_selectors(cell, FALLBACK_DAY_SELECTORS)


def parse_cell(cell: Tag, year: int, month: int) -> Optional[MealDay]:
    """MealDay for one calendar cell, or None for padding/non-menu cells"""
    day = find_day_number(cell)
    if day is None:
        return None

    ymd = make_ymd(year, month, day)
    if ymd is None:
        # e.g. "31" in a 30-day month
        return None

    joined = normalize_text(cell.decode_contents())
    if not has_meal_label(joined):
        return None

    return extract_from_text(ymd, joined)


def parse_month_page(html: str, year: int, month: int) -> Dict[str, MealDay]:
    """
    Build a date -> MealDay table from a month calendar page

    Args:
        html: Decoded month page HTML
        year: Calendar year
        month: Calendar month (1-12)

    Returns:
        Dictionary keyed by YYYYMMDD for every cell with a meal label
    """
    soup = BeautifulSoup(html, 'html.parser')
    meals: Dict[str, MealDay] = {}

    for cell in soup.find_all(['td', 'th']):
        # Layout cells wrapping a whole inner table are not calendar days
        if cell.find(['td', 'th']) is not None:
            continue
        try:
            meal_day = parse_cell(cell, year, month)
        except Exception as e:
            print(f"    Warning: skipping unparseable calendar cell: {e}")
            continue
        if meal_day is None:
            continue
        if meal_day.ymd in meals and not meal_day.is_empty and meals[meal_day.ymd].is_empty:
            meals[meal_day.ymd] = meal_day
        elif meal_day.ymd not in meals:
            meals[meal_day.ymd] = meal_day

    return meals
