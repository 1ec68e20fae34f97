"""
Meal block extraction and cleanup
Slices normalized page text into breakfast/lunch/dinner blocks and splits
the late-snack section out of dinner
"""

import re
from typing import List, Optional, Tuple

from menu_calendar.models import LATE_SNACK_TAG, MEAL_LABELS, MealDay
from menu_calendar.normalizer import normalize_text


NUTRITION_TERMS = ['에너지', '탄수화물', '단백질', '지방', '칼슘', 'kcal']

# Caption text around the photo links
PHOTO_NOISE_PHRASES = ['식단 사진', '사진보기', '사진 보기', '이미지 없음', '사진없음', '사진 없음']

DROP_PHRASES = NUTRITION_TERMS + PHOTO_NOISE_PHRASES

# Allergen codes like (1.2.5.6.) and leftover dotted number runs
ALLERGEN_PARENS_RE = re.compile(r'\(\s*\d+(?:\s*[.,]\s*\d+)*\.?\s*\)')
DOTTED_CODES_RE = re.compile(r'\d+(?:\.\d+)+\.?')
EMPTY_PARENS_RE = re.compile(r'\(\s*\)')
WORD_RE = re.compile(r'\w')


def _strip_allergen_codes(line: str) -> str:
    line = ALLERGEN_PARENS_RE.sub('', line)
    line = DOTTED_CODES_RE.sub('', line)
    line = EMPTY_PARENS_RE.sub('', line)
    return re.sub(r'\s+', ' ', line).strip()


def clean_block(text: Optional[str]) -> str:
    """
    Clean an extracted block: drop nutrition/caption lines, badges and duplicates

    Args:
        text: Raw block text (newline separated)

    Returns:
        Cleaned text, possibly empty
    """
    if not text:
        return ""

    seen = set()
    lines: List[str] = []
    for line in text.replace('\r', '').split('\n'):
        line = re.sub(r'\s+', ' ', line).strip()
        if not line:
            continue
        if any(phrase in line for phrase in DROP_PHRASES):
            continue
        line = _strip_allergen_codes(line)
        # One-character badges (조/중/석) and punctuation-only leftovers
        if len(line) < 2 or not WORD_RE.search(line):
            continue
        if line in seen:
            continue
        seen.add(line)
        lines.append(line)

    return '\n'.join(lines).strip()


def stop_markers_for(label: str) -> List[str]:
    """Labels and nutrition terms that end the block for label"""
    markers = NUTRITION_TERMS + list(MEAL_LABELS.values())
    return [marker for marker in markers if marker != label]


def extract_meal_section(joined_text: str, label: str) -> Optional[str]:
    """
    Find the block that follows the last occurrence of label

    Args:
        joined_text: Normalized lines joined with newlines
        label: Meal label such as '석식'

    Returns:
        Cleaned block text, or None if nothing is left
    """
    if not joined_text:
        return None

    idx = joined_text.rfind(label)
    if idx < 0:
        return None

    after = joined_text[idx + len(label):]

    end = len(after)
    for marker in stop_markers_for(label):
        pos = after.find(marker)
        if 0 <= pos < end:
            end = pos

    cleaned = clean_block(after[:end])
    return cleaned or None


def split_late_snack(dinner: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a dinner block at the first <야식> tag

    Returns:
        (dinner, late_snack); either may be None
    """
    if not dinner or LATE_SNACK_TAG not in dinner:
        return dinner, None

    parts = dinner.split(LATE_SNACK_TAG)
    dinner_part = parts[0].strip()
    late_part = '\n'.join(parts[1:]).strip()

    return (clean_block(dinner_part) or None), (clean_block(late_part) or None)


def extract_from_text(ymd: str, joined_text: str) -> MealDay:
    """Build a MealDay from already-normalized text"""
    dinner, late_snack = split_late_snack(
        extract_meal_section(joined_text, MEAL_LABELS['dinner'])
    )
    return MealDay(
        ymd=ymd,
        breakfast=extract_meal_section(joined_text, MEAL_LABELS['breakfast']),
        lunch=extract_meal_section(joined_text, MEAL_LABELS['lunch']),
        dinner=dinner,
        late_snack=late_snack,
    )


def extract_meal_day(ymd: str, markup: str) -> MealDay:
    """
    Run the full normalize -> extract -> split pass over a page or cell

    Args:
        ymd: Date key for the record
        markup: HTML of a day page or calendar cell

    Returns:
        MealDay (all meals None when nothing was recoverable)
    """
    return extract_from_text(ymd, normalize_text(markup))


def has_meal_label(joined_text: str) -> bool:
    return any(label in joined_text for label in MEAL_LABELS.values())
