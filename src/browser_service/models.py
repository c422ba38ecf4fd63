"""Pydantic models for talking to the page being filled."""

from typing import Any

from pydantic import BaseModel, Field

from src.config import Settings


class LaunchOptions(BaseModel):
    """How to start the browser that hosts the application form."""

    headless: bool = True
    slow_mo: int = Field(default=0, ge=0, le=1000)  # ms between actions
    viewport_width: int = Field(default=1280, ge=800, le=3840)
    viewport_height: int = Field(default=900, ge=600, le=2160)
    user_agent: str | None = None
    timeout: int = Field(default=30000, ge=5000, le=120000)  # ms

    @classmethod
    def from_settings(cls, config: Settings, headless: bool | None = None) -> "LaunchOptions":
        """Launch options from settings. An explicit headless flag wins."""
        return cls(
            headless=config.playwright_headless if headless is None else headless,
            slow_mo=config.playwright_slow_mo,
            timeout=config.browser_timeout,
        )


class NavigateRequest(BaseModel):
    """Open an application page."""

    url: str
    wait_until: str = "domcontentloaded"  # domcontentloaded, load, networkidle
    timeout: int | None = None


class EvaluateRequest(BaseModel):
    """Run a script in the page. args are passed as the script's single argument."""

    script: str
    args: list[Any] | None = None


class PageActionResult(BaseModel):
    """Outcome of a page action. Failures are reported, not raised."""

    success: bool
    duration_ms: int = 0
    error: str | None = None


class NavigateResponse(PageActionResult):
    url: str
    page_title: str | None = None


class EvaluateResponse(PageActionResult):
    result: Any = None


class FormField(BaseModel):
    """Form field detected in the live DOM."""

    selector: str
    label: str = ""
    type: str = "text"  # text, email, tel, select, textarea, file, checkbox, radio, contenteditable
    required: bool = False
    options: list[str] | None = None  # select options and radio groups
    option_values: list[str] | None = None  # submitted values, parallel to options
    placeholder: str | None = None
    field_id: str | None = None
    field_name: str | None = None
    current_value: str | None = None
    note: str | None = None  # e.g. "Manual upload required"


class DOMResponse(BaseModel):
    """Fields found on the current page."""

    success: bool
    page_url: str
    page_title: str
    form_fields: list[FormField] = Field(default_factory=list)
    error: str | None = None
