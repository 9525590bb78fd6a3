# price_compare/config/settings.py

"""Central configuration for the price_compare engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Settings:
    """Central configuration for the price_compare engine."""

    # --- Transport ---
    REQUEST_TIMEOUT: int = _env_int("SCRAPER_TIMEOUT", 30)  # Seconds per attempt
    MAX_RETRIES: int = _env_int("MAX_RETRIES", 3)           # Light transport retries
    BACKOFF_BASE: float = 1.0                               # 1s * 2^(attempt-1)
    BLOCK_RETRY_DELAY: tuple[float, float] = (2.0, 5.0)     # Fresh-session pause

    # --- Headless browser ---
    BROWSER_HEADLESS: bool = (
        os.getenv("BROWSER_HEADLESS", "true").lower()
        in ("1", "true", "yes", "on")
    )
    BROWSER_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-blink-features=AutomationControlled",
        "--window-size=1920,1080",
    ]
    BROWSER_VIEWPORT: dict[str, int] = {"width": 1920, "height": 1080}
    BROWSER_WAIT_MS: int = 5000       # Max wait for the target selector
    BROWSER_SETTLE_MS: int = 2000     # Extra JS render time after load

    # --- Anti-bot detection ---
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]
    CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    # --- Pricing / bounding ---
    CURRENCY: str = "INR"
    MIN_VALID_PRICE: float = 100.0    # Anything cheaper is scraped noise
    MAX_RESULTS_PER_SOURCE: int = 5
    DEFAULT_LIMIT: int = 10
    CANDIDATE_MULTIPLIER: int = 3
    MIN_CANDIDATES: int = 15
    MAX_TITLE_LENGTH: int = 500
    MAX_SPECS: int = 6

    # --- Cache ---
    QUERY_CACHE_TTL: float = float(_env_int("QUERY_CACHE_TTL", 1800))

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome124"
    USER_AGENTS: list[str] = [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) "
            "Gecko/20100101 Firefox/125.0"
        ),
        (
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.4 Safari/605.1.15"
        ),
    ]
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9,hi;q=0.8",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    BROWSER_EXTRA_HEADERS: dict[str, str] = {
        "Accept-Language": "en-US,en;q=0.9,hi;q=0.8",
        "sec-ch-ua": (
            '"Chromium";v="124", '
            '"Google Chrome";v="124", '
            '"Not-A.Brand";v="99"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_RETENTION: int = _env_int("LOG_RETENTION", 20)     # Run logs kept

    # --- Sources ---
    ALLOWED_SOURCES: frozenset[str] = frozenset(
        {"amazon", "flipkart", "myntra", "croma", "reliance"}
    )
    SOURCE_PRIORITY: dict[str, int] = {
        "amazon": 1,
        "flipkart": 2,
        "myntra": 3,
    }
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "extractor": (
                "price_compare.extractors.amazon_extractor.AmazonExtractor"
            ),
        },
        {
            "id": "flipkart",
            "label": "Flipkart",
            "extractor": (
                "price_compare.extractors.flipkart_extractor.FlipkartExtractor"
            ),
        },
        {
            "id": "myntra",
            "label": "Myntra",
            "extractor": (
                "price_compare.extractors.myntra_extractor.MyntraExtractor"
            ),
        },
    ]
