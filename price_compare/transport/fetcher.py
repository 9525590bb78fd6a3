# price_compare/transport/fetcher.py

"""Light-then-heavy fetch chain with exponential backoff."""

import logging
from asyncio import sleep

from price_compare.config.settings import Settings
from price_compare.models.errors import FetchError
from price_compare.transport.browser_pool import BrowserPool, HeavyTransport
from price_compare.transport.light_transport import LightTransport

logger = logging.getLogger("price_compare.transport")


class SmartFetcher:
    """Fetch a URL over plain HTTP first, falling back to the browser.

    The light transport gets one attempt plus ``max_retries`` retries,
    waiting ``BACKOFF_BASE * 2^(attempt-1)`` seconds before retry
    ``attempt``.  The heavy transport is then tried exactly once.
    """

    def __init__(
        self,
        light: LightTransport | None = None,
        heavy: HeavyTransport | None = None,
        pool: BrowserPool | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.light = light or LightTransport()
        if heavy is None:
            self.pool = pool or BrowserPool()
            heavy = HeavyTransport(self.pool)
        else:
            self.pool = pool or heavy.pool
        self.heavy = heavy
        self.max_retries = (
            Settings.MAX_RETRIES if max_retries is None else max_retries
        )

    async def fetch_light(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Run the light transport with retries; raise the last error."""
        last_error: FetchError | None = None
        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = Settings.BACKOFF_BASE * 2 ** (attempt - 1)
                logger.debug(
                    "Retry %d/%d for %s in %.1fs",
                    attempt,
                    self.max_retries,
                    url,
                    delay,
                )
                await sleep(delay)
            try:
                return await self.light.fetch(url, headers=headers)
            except FetchError as exc:
                last_error = exc
                logger.warning(
                    "Light fetch attempt %d failed for %s: %s",
                    attempt + 1,
                    url,
                    exc,
                )
        assert last_error is not None
        raise last_error

    async def fetch(
        self,
        url: str,
        *,
        wait_selector: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Return page content, or raise ``FetchError`` naming both causes."""
        try:
            return await self.fetch_light(url, headers=headers)
        except FetchError as exc:
            light_error = str(exc)

        logger.info("Light transport exhausted, using browser for %s", url)
        try:
            content = await self.heavy.fetch(url, wait_selector=wait_selector)
        except FetchError as exc:
            heavy_error = str(exc)
            logger.error(
                "All fetch methods failed for %s: light(%s), heavy(%s)",
                url,
                light_error,
                heavy_error,
            )
            raise FetchError(
                f"All fetch methods failed for {url}: "
                f"light({light_error}), heavy({heavy_error})",
                light_error=light_error,
                heavy_error=heavy_error,
            ) from exc
        return content

    async def close(self) -> None:
        await self.pool.close()
