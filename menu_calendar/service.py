"""
Menu service
Entry point a chat webhook (or the CLI) calls with a date and gets meals back
"""

import functools
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Optional, Tuple

from common.batcher import map_with_concurrency
from common.cache import SessionCookies, TTLCache, build_caches
from common.config import load_settings
from menu_calendar.calendar_parser import parse_month_page
from menu_calendar.dates import days_in_range, months_in_range, parse_ymd, pretty_ymd
from menu_calendar.errors import FetchError, PhotoTimeoutError
from menu_calendar.extractor import extract_meal_day
from menu_calendar.fetcher import PageFetcher
from menu_calendar.models import LATE_SNACK_TAG, MEAL_LABELS, MealDay, PhotoLink, RangeResult, RawPage
from menu_calendar.neis import fetch_neis_rows, merge_meal_days, rows_to_meal_days
from menu_calendar.photos import ImageProxy, find_photo_url


NO_DATA_TEXT = "해당 날짜의 급식 정보가 아직 등록되지 않았거나 제공되지 않는 날입니다."
DAY_SEPARATOR = "\n\n──────────\n\n"


class MenuService:
    """
    Cached access to scraped menus, photos and the NEIS feed

    Args:
        settings: Settings from common.config.load_settings()
        fetcher: PageFetcher (or anything with fetch_day/fetch_month/fetch_url)
        caches: Cache set from common.cache.build_caches()
        neis_fetch: Optional callable(from_ymd, to_ymd) -> NEIS rows
        image_proxy: Optional ImageProxy for photo bytes
    """

    def __init__(self, settings: Dict, fetcher, caches: Dict[str, TTLCache],
                 neis_fetch: Optional[Callable[[str, str], List[Dict]]] = None,
                 image_proxy: Optional[ImageProxy] = None):
        self.settings = settings
        self.fetcher = fetcher
        self.caches = caches
        self.neis_fetch = neis_fetch
        self.image_proxy = image_proxy
        self._photo_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='photo')

    def close(self):
        # Abandoned photo lookups finish in the background
        self._photo_executor.shutdown(wait=False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def get_day_page(self, ymd: str) -> RawPage:
        return self.caches['day_pages'].get_or_fetch(ymd, lambda: self.fetcher.fetch_day(ymd))

    def get_month_page(self, year: int, month: int) -> RawPage:
        key = f"{year:04d}{month:02d}"
        return self.caches['month_pages'].get_or_fetch(key, lambda: self.fetcher.fetch_month(year, month))

    # ------------------------------------------------------------------
    # Menus
    # ------------------------------------------------------------------

    def get_day(self, ymd: str) -> MealDay:
        """
        Meals for one day from the day page

        Raises:
            MalformedDateError: If ymd is not a valid date
            FetchError (and subclasses): If the page cannot be fetched
        """
        parse_ymd(ymd)
        return self.caches['menus'].get_or_fetch(
            ymd, lambda: extract_meal_day(ymd, self.get_day_page(ymd).text)
        )

    def get_month(self, year: int, month: int) -> Dict[str, MealDay]:
        """Date -> MealDay table parsed from the month calendar page"""
        key = f"{year:04d}{month:02d}"
        return self.caches['menus'].get_or_fetch(
            key, lambda: parse_month_page(self.get_month_page(year, month).text, year, month)
        )

    def get_range(self, from_ymd: str, to_ymd: str) -> RangeResult:
        """
        Meals for every day in a range

        Month calendar pages are tried first. Days of a month whose page
        failed are fetched one by one with bounded concurrency, and so is the
        whole range if the month pages yield nothing inside it.

        Raises:
            MalformedDateError: If the range is malformed
        """
        days = days_in_range(from_ymd, to_ymd)
        result = RangeResult()
        fallback_days = []

        for year, month in months_in_range(from_ymd, to_ymd):
            prefix = f"{year:04d}{month:02d}"
            try:
                month_days = self.get_month(year, month)
            except FetchError as e:
                print(f"    Warning: month page {year}-{month:02d} failed: {e}")
                fallback_days.extend(ymd for ymd in days if ymd.startswith(prefix))
                continue
            for ymd in days:
                meal_day = month_days.get(ymd)
                if meal_day is not None and not meal_day.is_empty:
                    result.days[ymd] = meal_day

        if not result.days:
            print(f"  Month view had no meals for {from_ymd}-{to_ymd}, fetching {len(days)} day(s)")
            fallback_days = days
        elif not fallback_days:
            return result

        outcomes = map_with_concurrency(fallback_days, self.settings['week_concurrency'], self.get_day)
        for ymd, outcome in zip(fallback_days, outcomes):
            if isinstance(outcome, Exception):
                print(f"    Warning: {ymd} failed: {outcome}")
                result.failures[ymd] = outcome
            elif not outcome.is_empty:
                result.days[ymd] = outcome
        return result

    def get_report(self, from_ymd: str, to_ymd: str) -> RangeResult:
        """
        NEIS rows merged with the scrape (scrape wins for dinner)

        NEIS is optional: without a key or on failure the scrape is used alone.
        """
        scraped = self.get_range(from_ymd, to_ymd)

        official: Dict[str, MealDay] = {}
        if self.neis_fetch is not None:
            try:
                official = rows_to_meal_days(self.neis_fetch(from_ymd, to_ymd))
            except (FetchError, ValueError) as e:
                print(f"    Warning: NEIS lookup failed: {e}")

        return RangeResult(days=merge_meal_days(official, scraped.days), failures=scraped.failures)

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def _resolve_photo(self, ymd: str, meal: str) -> Optional[str]:
        page = self.get_day_page(ymd)
        return find_photo_url(
            page.text, meal, self.settings['host'],
            fetch_popup=lambda url: self.fetcher.fetch_url(url).text,
        )

    def get_photo(self, ymd: str, meal: str, timeout: Optional[float] = None) -> PhotoLink:
        """
        Tray photo for a meal, raced against a timeout

        Raises:
            PhotoTimeoutError: If the lookup takes longer than the timeout
        """
        parse_ymd(ymd)
        if meal not in MEAL_LABELS:
            raise ValueError(f"Unknown meal: {meal!r}")
        if timeout is None:
            timeout = self.settings['photo_timeout']

        key = f"{ymd}|{meal}"
        future = self._photo_executor.submit(
            self.caches['photos'].get_or_fetch, key, lambda: self._resolve_photo(ymd, meal)
        )
        try:
            url = future.result(timeout=timeout)
        except FutureTimeoutError:
            raise PhotoTimeoutError(f"Photo lookup for {key} took longer than {timeout:.1f}s")
        return PhotoLink(ymd=ymd, meal=meal, url=url)

    def get_photo_image(self, link: PhotoLink) -> Tuple[bytes, str]:
        """Image bytes and media type for a resolved photo"""
        if self.image_proxy is None:
            raise ValueError("No image proxy configured")
        if not link.url:
            raise ValueError(f"No photo for {link.ymd} {link.meal}")
        return self.image_proxy.fetch(link.url)


# ----------------------------------------------------------------------
# Text rendering
# ----------------------------------------------------------------------

def _dinner_text(day: MealDay) -> str:
    text = day.dinner or ''
    if day.late_snack:
        text += f"\n\n{LATE_SNACK_TAG}\n{day.late_snack}"
    return text.strip()


def format_meal_day(day: MealDay, meal: str = 'all') -> str:
    """
    Render one day as chat text

    Args:
        day: MealDay to render
        meal: 'all' or a single meal kind
    """
    header = f"📅 {pretty_ymd(day.ymd)}"

    if meal != 'all':
        text = _dinner_text(day) if meal == 'dinner' else day.get(meal)
        if not text:
            return f"🍽 {MEAL_LABELS[meal]} 정보가 아직 등록되지 않았거나 제공되지 않습니다."
        return f"🍽 {MEAL_LABELS[meal]}\n{header}\n{text}"

    blocks = []
    for kind, label in MEAL_LABELS.items():
        text = _dinner_text(day) if kind == 'dinner' else day.get(kind)
        if text:
            blocks.append(f"• {label}\n{text}")
    if not blocks:
        return f"{header}\n{NO_DATA_TEXT}"
    return header + "\n" + "\n\n".join(blocks)


def format_range(days: Dict[str, MealDay], meal: str = 'all') -> str:
    if not days:
        return NO_DATA_TEXT
    return DAY_SEPARATOR.join(format_meal_day(days[ymd], meal) for ymd in sorted(days))


def build_service(settings: Optional[Dict] = None, use_browser: Optional[bool] = None) -> MenuService:
    """
    Wire up the service with its caches, cookie slot, fetcher and optional renderer

    Args:
        settings: Settings dict (loaded from the environment if omitted)
        use_browser: Override settings['use_browser']
    """
    if settings is None:
        settings = load_settings()
    if use_browser is None:
        use_browser = settings['use_browser']

    renderer = None
    if use_browser:
        from menu_calendar.renderer import SeleniumRenderer
        renderer = SeleniumRenderer(settings['chromedriver_path'], settings['render_wait'])

    caches = build_caches(settings)
    fetcher = PageFetcher(settings, SessionCookies(), renderer=renderer)

    neis_fetch = None
    if settings.get('neis_key'):
        neis_fetch = functools.partial(fetch_neis_rows, settings=settings)

    return MenuService(
        settings, fetcher, caches,
        neis_fetch=neis_fetch,
        image_proxy=ImageProxy(settings, caches['images']),
    )
