"""
Headless Chrome rendering for pages the firewall won't serve to plain HTTP clients
"""

from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from menu_calendar.errors import FetchError, RendererUnavailableError
from menu_calendar.models import MEAL_LABELS


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _page_has_meal_label(driver) -> bool:
    source = driver.page_source or ''
    return any(label in source for label in MEAL_LABELS.values())


class SeleniumRenderer:
    """
    Render a URL in headless Chrome and return the resulting HTML

    Satisfies the renderer contract used by PageFetcher:
    render(url, cookies, timeout) -> (html, cookies)
    """

    def __init__(self, chromedriver_path: Optional[str] = None, label_wait: float = 4.0):
        self.chromedriver_path = chromedriver_path
        self.label_wait = label_wait

    def _build_options(self) -> Options:
        chrome_options = Options()
        chrome_options.add_argument('--headless=new')
        chrome_options.add_argument('--no-sandbox')
        chrome_options.add_argument('--disable-dev-shm-usage')
        chrome_options.add_argument(f'--user-agent={BROWSER_USER_AGENT}')
        chrome_options.add_argument('--lang=ko-KR')
        return chrome_options

    def _start_driver(self):
        # Use system chromedriver if specified (for containers)
        try:
            if self.chromedriver_path:
                service = Service(self.chromedriver_path)
            else:
                service = Service(ChromeDriverManager().install())
            return webdriver.Chrome(service=service, options=self._build_options())
        except (WebDriverException, OSError, ValueError) as e:
            raise RendererUnavailableError(f"Could not start headless Chrome: {e}")

    def render(self, url: str, cookies: Dict[str, str], timeout: float) -> Tuple[str, list]:
        """
        Navigate to url and return (page_source, driver cookies)

        Raises:
            RendererUnavailableError: If Chrome/chromedriver cannot be started
            FetchError: If the page does not load in time
        """
        driver = self._start_driver()
        try:
            driver.set_page_load_timeout(timeout)

            if cookies:
                # Cookies can only be set for the current domain
                parsed = urlparse(url)
                driver.get(f"{parsed.scheme}://{parsed.netloc}/")
                for name, value in cookies.items():
                    try:
                        driver.add_cookie({'name': name, 'value': value})
                    except WebDriverException as e:
                        print(f"    Warning: could not set cookie {name}: {e}")

            driver.get(url)

            WebDriverWait(driver, timeout).until(
                EC.presence_of_element_located((By.TAG_NAME, "body"))
            )

            # Give the page a moment to render the menu
            try:
                WebDriverWait(driver, self.label_wait).until(_page_has_meal_label)
            except TimeoutException:
                print(f"    Warning: no meal label rendered within {self.label_wait:.0f}s for {url}")

            return driver.page_source, driver.get_cookies()

        except TimeoutException:
            raise FetchError(f"Browser rendering timed out after {timeout:.0f}s", url)
        except WebDriverException as e:
            raise FetchError(f"Browser rendering failed: {e}", url)
        finally:
            driver.quit()
