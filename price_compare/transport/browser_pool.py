# price_compare/transport/browser_pool.py

"""Shared headless Chromium (Playwright) and the heavy transport.

One browser process is launched lazily and shared by every heavy fetch.
Each fetch gets its own incognito-style ``BrowserContext`` so cookies and
storage never leak between requests.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from price_compare.config.settings import Settings
from price_compare.models.errors import FetchError
from price_compare.transport.light_transport import random_user_agent

logger = logging.getLogger("price_compare.transport")

# Injected into every context before any page script runs
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
    configurable: true
});

Object.defineProperty(navigator, 'plugins', {
    get: () => {
        const plugins = [
            {name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer'},
            {name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai'},
            {name: 'Native Client', filename: 'internal-nacl-plugin'}
        ];
        plugins.length = 3;
        return plugins;
    },
    configurable: true
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en', 'hi'],
    configurable: true
});

window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};

if (navigator.permissions) {
    const origQuery = navigator.permissions.query.bind(navigator.permissions);
    navigator.permissions.query = (params) => {
        if (params.name === 'notifications') {
            return Promise.resolve({state: Notification.permission});
        }
        return origQuery(params);
    };
}
"""


class BrowserPool:
    """Owns one lazily launched browser and hands out isolated sessions.

    Concurrent callers that find no live browser wait on the same launch
    instead of starting their own.  A browser that has disconnected is
    replaced on the next request.
    """

    def __init__(self, headless: bool | None = None) -> None:
        self.headless = (
            Settings.BROWSER_HEADLESS if headless is None else headless
        )
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()
        self.active_sessions = 0
        self.launch_count = 0

    async def _launch(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        logger.info(
            "Launching headless browser (headless=%s)", self.headless
        )
        browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=Settings.BROWSER_ARGS,
        )
        self.launch_count += 1
        return browser

    async def get_browser(self) -> Browser:
        """Return the live browser, launching it at most once at a time."""
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._browser is not None:
                    logger.warning("Browser disconnected, relaunching")
                self._browser = await self._launch()
            return self._browser

    @asynccontextmanager
    async def session(
        self, user_agent: str | None = None,
    ) -> AsyncIterator[BrowserContext]:
        """Yield a fresh stealth-configured context, closed on exit."""
        browser = await self.get_browser()
        context = await browser.new_context(
            user_agent=user_agent or random_user_agent(),
            viewport=Settings.BROWSER_VIEWPORT,  # type: ignore[arg-type]
            locale="en-IN",
            extra_http_headers=Settings.BROWSER_EXTRA_HEADERS,
        )
        self.active_sessions += 1
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            yield context
        finally:
            self.active_sessions -= 1
            try:
                await context.close()
            except Exception as exc:
                logger.debug("Context close failed: %s", exc)

    async def close(self) -> None:
        """Shut down the browser and the Playwright driver."""
        async with self._lock:
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                logger.debug("Browser close failed: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:
                logger.debug("Playwright stop failed: %s", exc)
        logger.info("Browser pool closed")


class HeavyTransport:
    """Render a page in the shared browser and return the final HTML."""

    def __init__(
        self,
        pool: BrowserPool,
        timeout: int | None = None,
    ) -> None:
        self.pool = pool
        self.timeout = timeout or Settings.REQUEST_TIMEOUT

    async def fetch(
        self,
        url: str,
        wait_selector: str | None = None,
        wait_ms: int = Settings.BROWSER_WAIT_MS,
        settle_ms: int = Settings.BROWSER_SETTLE_MS,
    ) -> str:
        """Navigate once; a missing *wait_selector* is not an error."""
        try:
            async with self.pool.session() as context:
                page: Any = await context.new_page()
                await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.timeout * 1000,
                )
                if wait_selector:
                    try:
                        await page.wait_for_selector(
                            wait_selector, timeout=wait_ms
                        )
                    except PlaywrightTimeoutError:
                        logger.debug(
                            "Selector '%s' not found on %s within %dms",
                            wait_selector,
                            url,
                            wait_ms,
                        )
                if settle_ms:
                    await page.wait_for_timeout(settle_ms)
                content: str = await page.content()
                return content
        except FetchError:
            raise
        except Exception as exc:
            raise FetchError(f"browser error: {exc}") from exc
