# price_compare/transport/light_transport.py

"""Plain HTTP transport with browser-impersonating TLS (curl_cffi)."""

import logging
import random

from curl_cffi.requests import AsyncSession

from price_compare.config.settings import Settings
from price_compare.models.errors import FetchError

logger = logging.getLogger("price_compare.transport")


def random_user_agent() -> str:
    """Pick a user agent from the configured rotation pool."""
    return random.choice(Settings.USER_AGENTS)


def looks_like_challenge(text: str) -> str | None:
    """Return the matched anti-bot marker, or ``None`` for a real page.

    JSON bodies are always accepted.  CAPTCHA keywords are only trusted on
    small pages, since product listings often mention "captcha" in scripts.
    """
    if text.lstrip().startswith(("{", "[")):
        return None
    lower = text.lower()

    for marker in Settings.CHALLENGE_MARKERS:
        if marker in lower:
            return marker

    has_body_content = "<body" in lower and len(text) > 5000
    if not has_body_content:
        for keyword in Settings.CAPTCHA_KEYWORDS:
            if keyword in lower:
                return keyword
    return None


class LightTransport:
    """Single-attempt GET over curl_cffi with a fresh session per call."""

    def __init__(
        self,
        timeout: int | None = None,
        impersonate: str | None = None,
    ) -> None:
        self.timeout = timeout or Settings.REQUEST_TIMEOUT
        self.impersonate = impersonate or Settings.IMPERSONATE_BROWSER

    def build_headers(
        self, extra: dict[str, str] | None = None,
    ) -> dict[str, str]:
        headers: dict[str, str] = {
            **Settings.DEFAULT_HEADERS,
            "User-Agent": random_user_agent(),
        }
        if extra:
            headers.update(extra)
        return headers

    async def fetch(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> str:
        """GET *url* once and return the body text.

        Raises ``FetchError`` on network errors, timeouts, non-200
        statuses and challenge pages.
        """
        try:
            async with AsyncSession(impersonate=self.impersonate) as session:
                resp = await session.get(
                    url,
                    headers=self.build_headers(headers),
                    timeout=self.timeout,
                    allow_redirects=True,
                )
        except Exception as exc:
            raise FetchError(f"request error: {exc}") from exc

        if resp.status_code != 200:
            raise FetchError(f"HTTP {resp.status_code}")

        text = resp.text
        marker = looks_like_challenge(text)
        if marker:
            logger.warning(
                "Anti-bot page detected for %s (marker: '%s')",
                url,
                marker,
            )
            raise FetchError(f"anti-bot challenge ({marker})")
        return text
