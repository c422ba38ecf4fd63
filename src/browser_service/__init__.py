"""Browser service - the page an autofill session reads from and writes to.

Backed by Playwright, headed for interactive use or headless.
"""

from src.browser_service.models import (
    DOMResponse,
    EvaluateRequest,
    EvaluateResponse,
    FormField,
    LaunchOptions,
    NavigateRequest,
    NavigateResponse,
    PageActionResult,
)

__all__ = [
    "DOMResponse",
    "EvaluateRequest",
    "EvaluateResponse",
    "FormField",
    "LaunchOptions",
    "NavigateRequest",
    "NavigateResponse",
    "PageActionResult",
]
