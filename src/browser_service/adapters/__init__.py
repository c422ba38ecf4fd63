"""Page adapters. PlaywrightAdapter is the only live backend."""

from src.browser_service.adapters.base import BrowserAdapter
from src.browser_service.adapters.playwright_adapter import PlaywrightAdapter

__all__ = ["BrowserAdapter", "PlaywrightAdapter"]
