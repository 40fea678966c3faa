import time
from typing import Optional

from selenium.common.exceptions import NoSuchElementException, TimeoutException, WebDriverException
from selenium.webdriver.common.by import By

from app.features.analysis.schemas.factor import PageSnapshot
from app.platform.exceptions import ExtractionError, NavigationError, NavigationTimeoutError
from app.platform.logger import get_logger

logger = get_logger(__name__)

NO_DESCRIPTION = "No description found"


class PageExtractorService:

    @staticmethod
    def load_page(driver, url: str, timeout: int = 30) -> float:
        """
        Navigate the driver to ``url`` with a bounded page-load timeout.

        Returns the load time in seconds. Does not retry.

        Raises:
            NavigationTimeoutError: page did not finish loading within ``timeout``
            NavigationError: any other driver failure while navigating
        """
        driver.set_page_load_timeout(timeout)
        start_time = time.time()
        try:
            driver.get(url)
        except TimeoutException as e:
            raise NavigationTimeoutError(f"Timed out after {timeout}s loading {url}") from e
        except WebDriverException as e:
            raise NavigationError(f"Failed to load {url}: {e.msg or e}") from e

        load_time = time.time() - start_time
        logger.info(f"Loaded {url} in {load_time:.2f}s")
        return load_time

    @staticmethod
    def extract_title(driver) -> str:
        try:
            return (driver.title or "").strip()
        except WebDriverException as e:
            raise ExtractionError(f"Failed to read page title: {e.msg or e}") from e

    @staticmethod
    def extract_description(driver) -> Optional[str]:
        """Best-effort meta description. Missing or unreadable gives None."""
        try:
            element = driver.find_element(By.CSS_SELECTOR, 'meta[name="description"]')
            value = element.get_attribute("content")
        except NoSuchElementException:
            return None
        except WebDriverException as e:
            logger.warning(f"Could not read meta description: {e.msg or e}")
            return None
        value = value.strip() if value else None
        return value or None

    @staticmethod
    def extract_text_content(driver) -> str:
        try:
            return driver.find_element(By.TAG_NAME, "body").text or ""
        except WebDriverException as e:
            logger.warning(f"Could not read page text: {e.msg or e}")
            return ""

    @staticmethod
    def extract_page(driver, url: str) -> PageSnapshot:
        try:
            final_url = driver.current_url
        except WebDriverException:
            final_url = url

        return PageSnapshot(
            url=url,
            final_url=final_url or url,
            title=PageExtractorService.extract_title(driver),
            description=PageExtractorService.extract_description(driver),
            content=PageExtractorService.extract_text_content(driver),
        )
