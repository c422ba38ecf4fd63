"""Fixtures for tests that drive a real Chromium page."""

import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError

from src.browser_service.adapters.playwright_adapter import PlaywrightAdapter
from src.browser_service.models import LaunchOptions


@pytest_asyncio.fixture
async def adapter():
    """Headless Chromium adapter. Skips when no browser is installed."""
    adapter = PlaywrightAdapter()
    try:
        await adapter.initialize(LaunchOptions(headless=True))
    except PlaywrightError as e:
        await adapter.close()
        pytest.skip(f"Chromium is not available: {e}")

    yield adapter
    await adapter.close()


@pytest.fixture
def page(adapter):
    """The adapter's live page."""
    return adapter.page
