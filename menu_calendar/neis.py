"""
NEIS open API meal client
Government meal feed; the school site scrape is preferred for dinner
because NEIS uploads the evening menu late
"""

import re
from typing import Dict, List, Optional

import requests

from common.config import get_neis_key
from menu_calendar.errors import FetchError
from menu_calendar.models import MEAL_LABELS, MealDay


NO_MEAL_TEXT = "급식 정보 없음"


def fetch_neis_rows(from_ymd: str, to_ymd: str, settings: Dict,
                    session: Optional[requests.Session] = None) -> List[Dict]:
    """
    Fetch meal rows for a date range

    Args:
        from_ymd: First date (YYYYMMDD)
        to_ymd: Last date (YYYYMMDD)
        settings: Settings with neis_key and school codes
        session: Optional requests session

    Returns:
        List of row dictionaries (MLSV_YMD, MMEAL_SC_NM, DDISH_NM, ...)

    Raises:
        ValueError: If NEIS_KEY is not configured
        FetchError: On network failure
    """
    params = {
        'KEY': get_neis_key(settings),
        'Type': 'json',
        'pIndex': 1,
        'pSize': 100,
        'ATPT_OFCDC_SC_CODE': settings['neis_office_code'],
        'SD_SCHUL_CODE': settings['neis_school_code'],
        'MLSV_FROM_YMD': from_ymd,
        'MLSV_TO_YMD': to_ymd,
    }
    url = f"{settings['neis_base']}/mealServiceDietInfo"
    client = session if session is not None else requests

    try:
        response = client.get(url, params=params, timeout=10)
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        raise FetchError(f"NEIS request failed: {e}", url)
    except ValueError as e:
        raise FetchError(f"NEIS returned invalid JSON: {e}", url)

    block = data.get('mealServiceDietInfo') if isinstance(data, dict) else None
    if not isinstance(block, list) or len(block) < 2:
        # No rows: NEIS answers with a RESULT object instead
        return []
    return block[1].get('row') or []


def clean_dish_text(raw: Optional[str]) -> str:
    """
    Clean a DDISH_NM value: line breaks, region tags and allergen numbers

    Args:
        raw: Dish string with <br/> separators

    Returns:
        One dish per line
    """
    if not raw:
        return NO_MEAL_TEXT

    text = re.sub(r'<br\s*/?>', '\n', raw, flags=re.IGNORECASE)

    # (용인) style region tags, (1.2.5.6.) allergen groups, empty parens
    text = re.sub(r'\([^)]*용인[^)]*\)', '', text)
    text = re.sub(r'\(\s*\d+(?:\.\d+)*\.?\s*\)', '', text)
    text = re.sub(r'\(\s*\)', '', text)

    text = re.sub(r'\d+(?:\.\d+)?', '', text)
    text = text.replace('.', '')

    lines = [re.sub(r'\s+', ' ', line).strip() for line in text.split('\n')]
    return '\n'.join(line for line in lines if line)


def _meal_kind(meal_name: str) -> Optional[str]:
    for kind, label in MEAL_LABELS.items():
        if label in (meal_name or ''):
            return kind
    return None


def rows_to_meal_days(rows: List[Dict]) -> Dict[str, MealDay]:
    """Group NEIS rows into MealDay records keyed by date"""
    grouped: Dict[str, Dict[str, str]] = {}
    for row in rows:
        ymd = row.get('MLSV_YMD')
        kind = _meal_kind(row.get('MMEAL_SC_NM', ''))
        if not ymd or kind is None:
            continue
        grouped.setdefault(ymd, {})[kind] = clean_dish_text(row.get('DDISH_NM'))

    return {ymd: MealDay(ymd=ymd, **meals) for ymd, meals in grouped.items()}


def merge_meal_days(neis: Dict[str, MealDay], scraped: Dict[str, MealDay]) -> Dict[str, MealDay]:
    """
    Combine NEIS and scraped days

    Dinner and late snack come from the scrape when it has them; breakfast
    and lunch come from NEIS, filled from the scrape when NEIS has none.
    """
    merged = {}
    for ymd in sorted(set(neis) | set(scraped)):
        official = neis.get(ymd) or MealDay(ymd=ymd)
        site = scraped.get(ymd) or MealDay(ymd=ymd)

        if site.dinner:
            dinner, late_snack = site.dinner, site.late_snack
        else:
            dinner, late_snack = official.dinner, official.late_snack

        merged[ymd] = MealDay(
            ymd=ymd,
            breakfast=official.breakfast or site.breakfast,
            lunch=official.lunch or site.lunch,
            dinner=dinner,
            late_snack=late_snack,
        )
    return merged
