"""
School site page fetcher
Retrieves day/month menu pages while working around the firewall that
redirects automated clients to a block page
"""

import time
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

import requests

from common.cache import SessionCookies
from menu_calendar.dates import make_ymd, parse_ymd, ymd_to_dot
from menu_calendar.errors import BlockedError, FetchError, MalformedDateError
from menu_calendar.models import RawPage


BROWSER_HEADERS = {
    'User-Agent': (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    'Accept': "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    'Accept-Language': "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
    'Cache-Control': "no-cache",
    'Pragma': "no-cache",
    'Upgrade-Insecure-Requests': "1",
}

LEGACY_ENCODINGS = ('euc-kr', 'cp949')


def decode_page(content: bytes) -> str:
    """
    Decode page bytes, trying the site's legacy Korean encodings first

    Args:
        content: Raw response body

    Returns:
        Decoded text (UTF-8 with replacement characters as a last resort)
    """
    for encoding in LEGACY_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode('utf-8', errors='replace')


class PageFetcher:
    """
    Fetch menu pages over http/https with block detection and browser escalation

    Args:
        settings: Settings from common.config.load_settings()
        cookies: Shared SessionCookies slot
        renderer: Optional object with render(url, cookies, timeout) -> (html, cookies)
        session: requests.Session (created if not given)
        clock: Wall clock used to stamp fetched pages
    """

    def __init__(self, settings: Dict, cookies: Optional[SessionCookies] = None,
                 renderer=None, session: Optional[requests.Session] = None, clock=time.time):
        self.settings = settings
        self.cookies = cookies if cookies is not None else SessionCookies()
        self.renderer = renderer
        self.session = session if session is not None else requests.Session()
        self.clock = clock

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def page_query(self, ymd: str) -> str:
        return f"?act=lunch.main2&code={self.settings['lunch_code']}&month={ymd_to_dot(ymd)}"

    def candidate_urls(self, path_and_query: str) -> List[str]:
        """Same target on every configured scheme"""
        if not path_and_query.startswith('/'):
            path_and_query = '/' + path_and_query
        return [f"{scheme}://{self.settings['host']}{path_and_query}" for scheme in self.settings['schemes']]

    def alternate_urls(self, url: str) -> List[str]:
        """url plus its other-scheme variants when it points at the school host"""
        parsed = urlparse(url)
        if parsed.hostname != self.settings['host']:
            return [url]
        urls = [url]
        for scheme in self.settings['schemes']:
            variant = urlunparse(parsed._replace(scheme=scheme))
            if variant not in urls:
                urls.append(variant)
        return urls

    # ------------------------------------------------------------------
    # Block detection
    # ------------------------------------------------------------------

    def is_block_location(self, location: Optional[str]) -> bool:
        """True if a redirect target points at a configured block domain"""
        if not location:
            return False
        host = (urlparse(location).hostname or '').lower()
        for domain in self.settings['block_domains']:
            domain = domain.lower()
            if host == domain or host.endswith('.' + domain):
                return True
        return False

    def is_block_body(self, text: str) -> bool:
        """True if a page body carries a configured block page signature"""
        return any(signature in text for signature in self.settings['block_signatures'])

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_day(self, ymd: str) -> RawPage:
        """
        Fetch the menu page for one day

        Raises:
            MalformedDateError: If ymd is not a valid date
            BlockedError, RendererUnavailableError, FetchError: On fetch failure
        """
        parse_ymd(ymd)
        return self._fetch(ymd, self.candidate_urls(self.page_query(ymd)))

    def fetch_month(self, year: int, month: int) -> RawPage:
        """Fetch the month calendar page (keyed YYYYMM)"""
        first = make_ymd(year, month, 1)
        if first is None:
            raise MalformedDateError(f"Invalid month: {year}-{month}")
        return self._fetch(first[:6], self.candidate_urls(self.page_query(first)))

    def fetch_url(self, url: str) -> RawPage:
        """Fetch an arbitrary page on the school host (e.g. the photo popup)"""
        return self._fetch(url, self.alternate_urls(url))

    def _fetch(self, key: str, candidates: List[str]) -> RawPage:
        if not candidates:
            raise FetchError(f"No URL schemes configured for {key}")
        errors: List[FetchError] = []

        for url in candidates:
            print(f"  Fetching: {url}")
            try:
                text = self._fetch_direct(url)
                return RawPage(key=key, url=url, text=text, fetched_at=self.clock(), via='direct')
            except BlockedError as e:
                print(f"    Warning: blocked ({e})")
                errors.append(e)
            except FetchError as e:
                print(f"    Warning: {e}")
                errors.append(e)

        if self.renderer is None:
            blocked = [e for e in errors if isinstance(e, BlockedError)]
            raise blocked[0] if blocked else errors[-1]

        url = candidates[0]
        print(f"  Rendering in browser: {url}")
        html, driver_cookies = self.renderer.render(
            url, self.cookies.as_dict(), self.settings['render_timeout']
        )
        if self.is_block_body(html):
            raise BlockedError("Block page returned to browser", url)
        self.cookies.update_from_driver(driver_cookies or [])
        return RawPage(key=key, url=url, text=html, fetched_at=self.clock(), via='browser')

    def _get(self, url: str) -> requests.Response:
        headers = dict(BROWSER_HEADERS)
        headers['Referer'] = f"https://{self.settings['host']}/"
        try:
            return self.session.get(
                url,
                headers=headers,
                cookies=self.cookies.as_dict(),
                timeout=self.settings['direct_timeout'],
                allow_redirects=False,
            )
        except requests.Timeout:
            raise FetchError(f"Timed out after {self.settings['direct_timeout']:.0f}s", url)
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}", url)

    def _redirect_target(self, response: requests.Response, url: str) -> Optional[str]:
        if response.status_code in (301, 302, 303, 307, 308) and response.headers.get('Location'):
            return urljoin(url, response.headers['Location'])
        return None

    def _fetch_direct(self, url: str) -> str:
        """
        One direct attempt: request, inspect redirect, follow at most once

        Raises:
            BlockedError: If the redirect or body points at the block page
            FetchError: On network errors, bad status or a redirect loop
        """
        response = self._get(url)
        location = self._redirect_target(response, url)

        if location:
            if self.is_block_location(location):
                raise BlockedError(f"Redirected to block page {location}", url, location)
            print(f"    Following redirect to {location}")
            url = location
            response = self._get(url)
            location = self._redirect_target(response, url)
            if location:
                if self.is_block_location(location):
                    raise BlockedError(f"Redirected to block page {location}", url, location)
                raise FetchError(f"Too many redirects (next: {location})", url)

        if not 200 <= response.status_code < 300:
            raise FetchError(f"HTTP {response.status_code}", url)

        text = decode_page(response.content)
        if self.is_block_body(text):
            raise BlockedError("Block page signature in response body", url)

        self.cookies.update_from_response(response)
        return text
