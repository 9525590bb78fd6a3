# tests/conftest.py

"""Shared pytest fixtures for all transport and extractor tests."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Make backoff and bot-block pauses instant.

    Only the names imported into the transport and extractor modules are
    patched, so ``asyncio.sleep`` itself stays real for timing tests.
    """
    with patch(
        "price_compare.transport.fetcher.sleep", new=AsyncMock()
    ), patch(
        "price_compare.extractors.base.sleep", new=AsyncMock()
    ):
        yield
