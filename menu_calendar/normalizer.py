"""
HTML to line-oriented text for the menu extractor

The substitution order matters: the late-snack tag must be swapped for a
placeholder before generic tag stripping, otherwise a literal <야식> in the
markup is removed as if it were an unknown element.
"""

import re
from typing import List, Optional

from menu_calendar.models import LATE_SNACK_TAG


LATE_SNACK_PLACEHOLDER = "\x00late-snack\x00"

# Label words that may show up in icon alt/title text
LABEL_VOCABULARY = {
    '조식': '조식',
    '아침': '조식',
    'breakfast': '조식',
    '중식': '중식',
    '점심': '중식',
    'lunch': '중식',
    '석식': '석식',
    '저녁': '석식',
    'dinner': '석식',
    '야식': LATE_SNACK_PLACEHOLDER,
    'late snack': LATE_SNACK_PLACEHOLDER,
}

SCRIPT_STYLE_RE = re.compile(r'<(script|style)\b[\s\S]*?</\1\s*>', re.IGNORECASE)
IMG_RE = re.compile(r'<img\b[^>]*>', re.IGNORECASE)
IMG_LABEL_ATTR_RE = re.compile(
    r'''\b(?:alt|title)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))''',
    re.IGNORECASE,
)
ESCAPED_LATE_SNACK_RE = re.compile(r'&lt;\s*야식\s*&gt;', re.IGNORECASE)
LITERAL_LATE_SNACK_RE = re.compile(r'<\s*야식\s*>')
BREAK_RE = re.compile(r'<br\s*/?\s*>', re.IGNORECASE)
BLOCK_CLOSE_RE = re.compile(r'</(?:p|div|li|tr|td|th|h[1-6])\s*>', re.IGNORECASE)
TAG_RE = re.compile(r'<[^>]+>')
WHITESPACE_RE = re.compile(r'\s+')

# Icon text is the label alone, optionally bracketed or followed by "메뉴";
# captions such as "석식 사진" are not labels
ICON_LABEL_RE = re.compile(
    r'^[\W_]*(' + '|'.join(re.escape(word) for word in LABEL_VOCABULARY) + r')'
    r'\s*(?:메뉴|식단|menu)?[\W_]*$'
)


def _label_from_img(img_tag: str) -> Optional[str]:
    """Meal label carried in an <img> alt/title attribute, if any"""
    for match in IMG_LABEL_ATTR_RE.finditer(img_tag):
        value = next(group for group in match.groups() if group is not None)
        label_match = ICON_LABEL_RE.match(value.strip().lower())
        if label_match:
            return LABEL_VOCABULARY[label_match.group(1)]
    return None


def _replace_label_images(markup: str) -> str:
    def replace(match):
        label = _label_from_img(match.group(0))
        if label is None:
            return match.group(0)
        return f"\n{label}\n"

    return IMG_RE.sub(replace, markup)


def normalize_lines(markup: str) -> List[str]:
    """
    Convert raw markup into clean, non-empty lines

    Args:
        markup: Full page HTML or the inner HTML of one calendar cell

    Returns:
        Ordered list of whitespace-collapsed lines
    """
    if not markup:
        return []

    text = SCRIPT_STYLE_RE.sub('', markup)
    text = _replace_label_images(text)

    text = re.sub(r'&nbsp;', ' ', text, flags=re.IGNORECASE)
    text = re.sub(r'&amp;', '&', text, flags=re.IGNORECASE)

    text = ESCAPED_LATE_SNACK_RE.sub(f"\n{LATE_SNACK_PLACEHOLDER}\n", text)
    text = LITERAL_LATE_SNACK_RE.sub(f"\n{LATE_SNACK_PLACEHOLDER}\n", text)

    text = BREAK_RE.sub('\n', text)
    text = BLOCK_CLOSE_RE.sub('\n', text)
    text = TAG_RE.sub('', text)

    text = re.sub(r'&lt;', '<', text, flags=re.IGNORECASE)
    text = re.sub(r'&gt;', '>', text, flags=re.IGNORECASE)
    text = text.replace('\r', '')
    text = text.replace(LATE_SNACK_PLACEHOLDER, LATE_SNACK_TAG)

    lines = []
    for line in text.split('\n'):
        line = WHITESPACE_RE.sub(' ', line).strip()
        if line:
            lines.append(line)
    return lines


def normalize_text(markup: str) -> str:
    """normalize_lines joined with newlines"""
    return '\n'.join(normalize_lines(markup))
