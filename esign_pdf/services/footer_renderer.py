import asyncio
import base64
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from selenium import webdriver
from selenium.common.exceptions import TimeoutException
from selenium.webdriver.common.print_page_options import PrintOptions
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.firefox.options import Options as FirefoxOptions
from selenium.webdriver.firefox.service import Service as FirefoxService
from selenium.webdriver.support.wait import WebDriverWait
from ..config import settings

logger = logging.getLogger(__name__)

# A4 in centimetres, 15mm margins
A4_WIDTH_CM = 21.0
A4_HEIGHT_CM = 29.7
MARGIN_CM = 1.5

_PAGE_SETTLED_JS = (
    "return document.readyState === 'complete' && "
    "Array.from(document.images).every(function (i) { return i.complete; }) && "
    "(!document.fonts || document.fonts.status === 'loaded');"
)


class HtmlToPdfRenderer(Protocol):
    async def render(self, html: str) -> Optional[bytes]: ...


class SeleniumHtmlRenderer:
    """
    Renders HTML to an A4 PDF with a headless Firefox or Chrome.

    Without a configured driver path Selenium Manager downloads a matching
    driver on first use. Returns None on any failure so callers can decide
    whether a missing page is fatal.
    """

    def __init__(
        self,
        browser: Optional[str] = None,
        binary_path: Optional[str] = None,
        driver_path: Optional[str] = None,
        settle_timeout: Optional[float] = None,
    ):
        self.browser = (browser or settings.browser).lower()
        self.binary_path = binary_path if binary_path is not None else settings.browser_binary_path
        self.driver_path = driver_path if driver_path is not None else settings.browser_driver_path
        self.settle_timeout = settle_timeout if settle_timeout is not None else settings.footer_settle_timeout

    def _init_browser(self):
        if self.browser == "chrome":
            options = ChromeOptions()
            for arg in ("--headless=new", "--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"):
                options.add_argument(arg)
            if self.binary_path:
                options.binary_location = self.binary_path
            service = ChromeService(executable_path=self.driver_path) if self.driver_path else ChromeService()
            return webdriver.Chrome(service=service, options=options)
        if self.browser == "firefox":
            options = FirefoxOptions()
            options.add_argument("-headless")
            if self.binary_path:
                options.binary_location = self.binary_path
            service = FirefoxService(executable_path=self.driver_path) if self.driver_path else FirefoxService()
            return webdriver.Firefox(service=service, options=options)
        raise ValueError(f"Unsupported footer browser: {self.browser}")

    def render_sync(self, html: str) -> Optional[bytes]:
        fd, tmp = tempfile.mkstemp(prefix="esign_footer_", suffix=".html")
        browser = None
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(html)
            browser = self._init_browser()
            browser.get(Path(tmp).as_uri())
            try:
                WebDriverWait(browser, self.settle_timeout).until(lambda b: b.execute_script(_PAGE_SETTLED_JS))
            except TimeoutException:
                logger.warning("Footer page did not settle within %.1fs, printing anyway", self.settle_timeout)

            opts = PrintOptions()
            opts.page_width = A4_WIDTH_CM
            opts.page_height = A4_HEIGHT_CM
            opts.margin_top = opts.margin_bottom = MARGIN_CM
            opts.margin_left = opts.margin_right = MARGIN_CM
            opts.background = True
            return base64.b64decode(browser.print_page(opts))
        except Exception as e:
            logger.error("Error generating footer PDF from HTML: %s", e, exc_info=True)
            return None
        finally:
            if browser is not None:
                try:
                    browser.quit()
                except Exception as e:
                    logger.warning("Failed to shut down footer browser: %s", e)
            Path(tmp).unlink(missing_ok=True)

    async def render(self, html: str) -> Optional[bytes]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.render_sync, html)


async def render_footer(html: str, renderer: Optional[HtmlToPdfRenderer] = None) -> Optional[bytes]:
    """
    HTML -> PDF bytes, or None when the page cannot be produced.
    Never raises: a missing footer is the caller's decision.
    """
    renderer = renderer or SeleniumHtmlRenderer()
    try:
        pdf = await renderer.render(html)
    except Exception as e:
        logger.error("Footer renderer failed: %s", e, exc_info=True)
        return None
    if not pdf:
        logger.warning("Footer renderer returned no data")
        return None
    return pdf
