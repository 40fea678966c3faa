from contextlib import contextmanager
from typing import Iterator, Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from app.platform.exceptions import BrowserLaunchError
from app.platform.logger import get_logger

logger = get_logger(__name__)

CHROME_ARGUMENTS = (
    "--headless",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-features=TranslateUI",
)


def build_driver(chromedriver_path: Optional[str] = None) -> webdriver.Chrome:
    chrome_options = Options()
    for argument in CHROME_ARGUMENTS:
        chrome_options.add_argument(argument)

    if chromedriver_path:
        driver_service = Service(executable_path=chromedriver_path)
        return webdriver.Chrome(service=driver_service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)


@contextmanager
def browser_session(chromedriver_path: Optional[str] = None, driver_factory=build_driver) -> Iterator[webdriver.Chrome]:
    """
    One headless browser per analysis run.

    The driver is quit exactly once on every exit path. A failure while
    quitting is logged and does not mask the error that ended the block.
    """
    try:
        driver = driver_factory(chromedriver_path)
    except WebDriverException as e:
        raise BrowserLaunchError(f"Failed to launch browser: {e.msg or e}") from e

    logger.info("Browser session started")
    try:
        yield driver
    finally:
        try:
            driver.quit()
            logger.info("Browser session closed")
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")
