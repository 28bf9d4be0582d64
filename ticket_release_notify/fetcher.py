"""
Page fetching for the Ticket Release Notifier.
"""
import logging
from typing import Optional

import httpx

from .errors import ConfigError, FetchError
from .models import FetchConfig

logger = logging.getLogger(__name__)


class PageSnapshotFetcher:
    """Base class for ticket page fetchers."""

    def __init__(self, config: FetchConfig):
        self.config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch(self, url: str, credential: Optional[str]) -> str:
        """Return the raw content of the ticket page.

        Raises:
            FetchError: On transport failure, rejected credentials or a non-2xx response.
        """
        if not credential:
            raise FetchError("No session credential configured")
        return await self._fetch_impl(url, credential)

    async def _fetch_impl(self, url: str, credential: str) -> str:
        """Implementation of the fetching logic."""
        raise NotImplementedError("Subclasses must implement this method")


class HttpPageFetcher(PageSnapshotFetcher):
    """Fetches the ticket page with a plain HTTP GET."""

    def __init__(self, config: FetchConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self.transport = transport

    async def _fetch_impl(self, url: str, credential: str) -> str:
        logger.info(f"🌐 Fetching {url}")
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml",
        }
        cookies = {self.config.session_cookie_name: credential}
        try:
            async with httpx.AsyncClient(
                timeout=float(self.config.timeout),
                follow_redirects=True,
                cookies=cookies,
                transport=self.transport,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise FetchError(
                f"Session credential rejected by {url} (HTTP {response.status_code})"
            )
        if not response.is_success:
            raise FetchError(f"Unexpected HTTP {response.status_code} from {url}")

        logger.debug(f"Fetched {len(response.text)} characters from {url}")
        return response.text


def create_fetcher(config: FetchConfig) -> PageSnapshotFetcher:
    """Create the fetcher selected by ``config.backend``."""
    backend = config.backend.lower()
    if backend == "http":
        return HttpPageFetcher(config)
    if backend == "browser":
        # Imported lazily so playwright is only loaded when it is used.
        from .browser import BrowserPageFetcher
        return BrowserPageFetcher(config)
    raise ConfigError(f"Unknown fetcher backend: {config.backend!r}")
