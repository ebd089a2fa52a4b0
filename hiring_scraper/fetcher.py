import logging
from typing import List

import requests

from . import config
from .exceptions import FetchError

logger = logging.getLogger(__name__)

SESSION_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}


def thread_page_urls(item_id: str, pages: int = 1) -> List[str]:
    """URLs of the first `pages` pages of a discussion thread."""
    base = config.THREAD_URL_TEMPLATE.format(item_id=item_id)
    return [base] + [f"{base}&p={page}" for page in range(2, pages + 1)]


class ThreadFetcher:
    """Downloads thread pages with a single GET each."""

    def __init__(self, timeout: int = None, session: requests.Session = None):
        self.timeout = timeout or config.FETCH_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update(SESSION_HEADERS)

    def fetch(self, url: str) -> str:
        """
        Fetch one page.

        Args:
            url: Page URL

        Returns:
            Raw HTML

        Raises:
            FetchError: On transport errors or a non-2xx status
        """
        logger.info(f"Fetching data from URL: {url}")
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        logger.info(f"Finished fetching {len(resp.text)} characters from {url}")
        return resp.text
