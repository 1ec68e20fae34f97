"""
Meal tray photo lookup
Finds the real photo for a meal on the day page (directly or through the
photo popup) and proxies image bytes from the school host
"""

import re
from io import BytesIO
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from PIL import Image, UnidentifiedImageError

from common.cache import TTLCache
from menu_calendar.errors import BlockedError, FetchError, RendererUnavailableError
from menu_calendar.fetcher import BROWSER_HEADERS
from menu_calendar.models import MEAL_LABELS


# Site UI images, navigation arrows and "no photo" placeholders
PLACEHOLDER_IMAGE_PATTERNS = [
    re.compile(r'/commons/images/', re.IGNORECASE),
    re.compile(r'font-plus|icon|btn|button|global', re.IGNORECASE),
    re.compile(r'/image/access/foodList/', re.IGNORECASE),
    re.compile(r'prevMonth|nextMonth|today|cal|arrow', re.IGNORECASE),
    re.compile(r'noimg|no_foodimg|blank|none|default', re.IGNORECASE),
]

POPUP_HREF_RE = re.compile(r'lunch\.image_pop')
POPUP_IMAGE_RE = re.compile(r'/hosts/|/files/', re.IGNORECASE)
ROW_CLASSES = {'meal', 'mealBox', 'meal_box', 'lunch', 'lunchBox', 'lunch_box'}


def absolutize_url(src: Optional[str], host: str) -> Optional[str]:
    """Turn a src/href from the school site into an absolute https URL"""
    if not src:
        return None
    src = src.strip()
    if src.startswith('http://') or src.startswith('https://'):
        return src
    if src.startswith('//'):
        return f"https:{src}"
    return urljoin(f"https://{host}/", src)


def is_placeholder_image(url: Optional[str]) -> bool:
    if not url:
        return True
    return any(pattern.search(url) for pattern in PLACEHOLDER_IMAGE_PATTERNS)


def image_param_from_popup(href: str, host: str) -> Optional[str]:
    """The popup link usually carries the photo path in its img= parameter"""
    popup_url = absolutize_url(href, host)
    if not popup_url:
        return None
    values = parse_qs(urlparse(popup_url).query).get('img')
    if not values:
        return None
    return absolutize_url(values[0], host)


def find_popup_image(html: str, host: str) -> Optional[str]:
    """The real photo on the popup page"""
    soup = BeautifulSoup(html, 'html.parser')
    for img in soup.find_all('img'):
        src = img.get('src') or ''
        if POPUP_IMAGE_RE.search(src):
            return absolutize_url(src, host)
    return None


def _row_scope(element):
    for parent in [element] + list(element.parents):
        if parent.name in ('tr', 'li'):
            return parent
        if set(parent.get('class') or []) & ROW_CLASSES:
            return parent
    return None


def _meal_scope(element, meal: str):
    """
    Narrowest container around a label element that belongs to this meal

    Returns:
        The element to search for photos, or None if the scope mixes meals
    """
    cell = element if element.name in ('td', 'th') else element.find_parent(['td', 'th'])
    if cell is not None:
        return cell

    scope = _row_scope(element)
    if scope is None:
        scope = element.find_parent(['table', 'tr', 'div', 'section', 'article']) or element.parent
    if scope is None:
        return None

    # A wider scope must not also hold an earlier meal's label
    text = scope.get_text()
    if meal == 'lunch' and MEAL_LABELS['breakfast'] in text:
        return None
    if meal == 'dinner' and (MEAL_LABELS['breakfast'] in text or MEAL_LABELS['lunch'] in text):
        return None
    return scope


def _first_photo_in(scope, host: str) -> Optional[str]:
    for img in scope.find_all('img'):
        url = absolutize_url(img.get('src') or img.get('data-src'), host)
        if url and not is_placeholder_image(url):
            return url
    return None


def find_photo_url(html: str, meal: str, host: str,
                   fetch_popup: Optional[Callable[[str], str]] = None) -> Optional[str]:
    """
    Locate the tray photo for a meal on a day page

    Args:
        html: Day page HTML
        meal: 'breakfast', 'lunch' or 'dinner'
        host: School host used to absolutize links
        fetch_popup: Callable returning popup page HTML for a URL

    Returns:
        Absolute image URL, or None when the meal has no photo
    """
    label = MEAL_LABELS[meal]
    soup = BeautifulSoup(html, 'html.parser')

    for text_node in soup.find_all(string=lambda s: s and label in s):
        element = text_node.parent
        if element is None or element.name in ('script', 'style'):
            continue

        scope = _meal_scope(element, meal)
        if scope is None:
            continue

        # A photo already on the page saves a popup request
        url = _first_photo_in(scope, host)
        if url:
            return url

        popup_link = scope.find('a', href=POPUP_HREF_RE)
        if popup_link is None:
            continue

        direct = image_param_from_popup(popup_link['href'], host)
        if direct and not is_placeholder_image(direct):
            return direct

        popup_url = absolutize_url(popup_link['href'], host)
        if popup_url and fetch_popup is not None:
            try:
                real = find_popup_image(fetch_popup(popup_url), host)
            except (BlockedError, RendererUnavailableError):
                raise
            except FetchError as e:
                print(f"    Warning: photo popup failed: {e}")
                continue
            if real and not is_placeholder_image(real):
                return real

    # Lunch/dinner pages often show only the breakfast photo, so only
    # breakfast may fall back to a page-wide scan
    if meal != 'breakfast':
        return None

    for img in soup.find_all('img'):
        url = absolutize_url(img.get('src') or img.get('data-src'), host)
        if not url or is_placeholder_image(url):
            continue
        container = img.find_parent(['div', 'td', 'tr', 'section', 'article'])
        if container is not None and label in container.get_text():
            return url

    return None


def detect_media_type(content: bytes, content_type: Optional[str]) -> str:
    """
    Media type for proxied image bytes

    Trusts an image/* Content-Type, otherwise asks Pillow what the bytes are.
    """
    content_type = (content_type or '').split(';')[0].strip().lower()
    if content_type.startswith('image/'):
        return content_type
    try:
        with Image.open(BytesIO(content)) as image:
            return Image.MIME.get(image.format, 'image/jpeg')
    except (UnidentifiedImageError, OSError):
        return 'image/jpeg'


class ImageProxy:
    """Fetch photo bytes from the school host with a byte cache"""

    def __init__(self, settings: Dict, cache: TTLCache, session: Optional[requests.Session] = None):
        self.settings = settings
        self.cache = cache
        self.session = session if session is not None else requests.Session()

    def fetch(self, url: str) -> Tuple[bytes, str]:
        """
        Return (bytes, media_type) for an image on the school host

        Raises:
            ValueError: If url is not an http(s) URL on the school host
            FetchError: If the download fails
        """
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(f"Bad image url: {url!r}")
        if parsed.hostname != self.settings['host']:
            raise ValueError(f"Image host not allowed: {parsed.hostname}")

        return self.cache.get_or_fetch(url, lambda: self._download(url))

    def _download(self, url: str) -> Tuple[bytes, str]:
        print(f"  [img] fetch {urlparse(url).path}")
        headers = {
            'User-Agent': BROWSER_HEADERS['User-Agent'],
            'Referer': f"https://{self.settings['host']}/",
        }
        try:
            response = self.session.get(url, headers=headers, timeout=self.settings['image_timeout'])
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Image download failed: {e}", url)

        return response.content, detect_media_type(response.content, response.headers.get('content-type'))
