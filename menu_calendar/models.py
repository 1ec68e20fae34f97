"""
Data records produced by the menu pipeline
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


MEAL_LABELS = {
    'breakfast': '조식',
    'lunch': '중식',
    'dinner': '석식',
}
LATE_SNACK_LABEL = '야식'
LATE_SNACK_TAG = '<야식>'


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class MealDay:
    """Menu text for one day; absent meals are None, never empty strings"""
    ymd: str
    breakfast: Optional[str] = None
    lunch: Optional[str] = None
    dinner: Optional[str] = None
    late_snack: Optional[str] = None

    def __post_init__(self):
        # frozen dataclass, so normalize through object.__setattr__
        for name in ('breakfast', 'lunch', 'dinner', 'late_snack'):
            object.__setattr__(self, name, _blank_to_none(getattr(self, name)))

    @property
    def is_empty(self) -> bool:
        return not (self.breakfast or self.lunch or self.dinner or self.late_snack)

    def get(self, meal: str) -> Optional[str]:
        """Text for 'breakfast', 'lunch', 'dinner' or 'late_snack'"""
        if meal not in MEAL_LABELS and meal != 'late_snack':
            raise KeyError(meal)
        return getattr(self, meal)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'ymd': self.ymd,
            'breakfast': self.breakfast,
            'lunch': self.lunch,
            'dinner': self.dinner,
            'late_snack': self.late_snack,
        }


@dataclass(frozen=True)
class RawPage:
    """Decoded HTML for one day or month page"""
    key: str
    url: str
    text: str = field(repr=False)
    fetched_at: float
    via: str = 'direct'


@dataclass
class RangeResult:
    """Days found for a date range plus the per-day failures of the fallback path"""
    days: Dict[str, MealDay] = field(default_factory=dict)
    failures: Dict[str, Exception] = field(default_factory=dict)


@dataclass(frozen=True)
class PhotoLink:
    """Resolved tray photo for a meal; url None means known absent"""
    ymd: str
    meal: str
    url: Optional[str] = None
