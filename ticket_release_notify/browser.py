"""
Headless browser fetching for ticket pages that render their countdown with JavaScript.
"""
import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
)

from .errors import FetchError
from .fetcher import PageSnapshotFetcher
from .models import FetchConfig

logger = logging.getLogger(__name__)

class BrowserPageFetcher(PageSnapshotFetcher):
    """Fetches the ticket page through a Chromium instance managed by Playwright."""

    def __init__(self, config: FetchConfig, settle_seconds: float = 2.0):
        """Initialize with fetch configuration."""
        super().__init__(config)
        self.settle_seconds = settle_seconds
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.cleanup()

    async def setup(self) -> None:
        """Set up the browser and context."""
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.config.headless,
                args=[
                    '--disable-blink-features=AutomationControlled',
                    '--no-sandbox',
                    '--disable-dev-shm-usage',
                ]
            )

            self.context = await self.browser.new_context(
                user_agent=self.config.user_agent,
                viewport={'width': self.config.viewport[0], 'height': self.config.viewport[1]},
                timezone_id=self.config.timezone,
                java_script_enabled=True,
            )

            self.page = await self.context.new_page()
        except PlaywrightError as e:
            await self.cleanup()
            raise FetchError(f"Could not start browser: {e}") from e

        self.page.set_default_timeout(self.config.timeout * 1000)  # Convert to ms

    async def cleanup(self) -> None:
        """Clean up browser resources."""
        if self.page and not self.page.is_closed():
            await self.page.close()
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.page = self.context = self.browser = self.playwright = None

    async def _fetch_impl(self, url: str, credential: str) -> str:
        """Load the page with the session cookie set and return the rendered HTML."""
        if not self.page or not self.context:
            raise RuntimeError("Browser not initialized. Call setup() first.")

        logger.info(f"🌐 Navigating to {url}")
        try:
            await self.context.add_cookies([{
                'name': self.config.session_cookie_name,
                'value': credential,
                'url': url,
            }])
            response = await self.page.goto(url, wait_until='domcontentloaded')
            if response is not None and response.status >= 400:
                raise FetchError(f"Unexpected HTTP {response.status} from {url}")

            # Give client-side scripts time to render the countdown
            if self.settle_seconds > 0:
                logger.debug(f"⏳ Waiting {self.settle_seconds} seconds for page scripts...")
                await asyncio.sleep(self.settle_seconds)

            return await self.page.content()
        except PlaywrightError as e:
            raise FetchError(f"Browser navigation to {url} failed: {e}") from e
