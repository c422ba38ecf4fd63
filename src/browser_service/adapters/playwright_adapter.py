"""Playwright browser adapter for headless or headed automation."""

import logging
import time
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from src.browser_service.adapters.base import BrowserAdapter
from src.browser_service.models import (
    DOMResponse,
    EvaluateRequest,
    EvaluateResponse,
    FormField,
    LaunchOptions,
    NavigateRequest,
    NavigateResponse,
)

logger = logging.getLogger(__name__)


# Extracts visible, enabled form fields with a unique selector and a
# best-effort human label. Radio buttons are collapsed into one field per
# group name.
EXTRACT_FIELDS_SCRIPT = """
(args) => {
    const rootSelector = args.rootSelector;
    const formFieldsOnly = args.formFieldsOnly;

    const root = rootSelector ? document.querySelector(rootSelector) : document;
    if (!root) return { fields: [] };

    function uniqueSelector(el) {
        if (el.id) return `#${CSS.escape(el.id)}`;

        if (el.name) {
            const byName = `${el.tagName.toLowerCase()}[name="${CSS.escape(el.name)}"]`;
            if (document.querySelectorAll(byName).length === 1) return byName;
        }

        const parts = [];
        let current = el;
        while (current && current !== document.body) {
            let part = current.tagName.toLowerCase();
            if (current.id) {
                parts.unshift(`#${CSS.escape(current.id)}`);
                break;
            }
            const parent = current.parentElement;
            if (parent) {
                const siblings = Array.from(parent.children).filter(
                    (c) => c.tagName === current.tagName
                );
                if (siblings.length > 1) {
                    part += `:nth-of-type(${siblings.indexOf(current) + 1})`;
                }
            }
            parts.unshift(part);
            current = parent;
        }
        return parts.join(' > ');
    }

    function labelFor(el) {
        if (el.id) {
            const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
            if (label) return label.textContent.trim();
        }

        const wrapping = el.closest('label');
        if (wrapping) {
            const clone = wrapping.cloneNode(true);
            clone.querySelectorAll('input, select, textarea').forEach((i) => i.remove());
            const text = clone.textContent.trim();
            if (text) return text;
        }

        if (el.getAttribute('aria-label')) return el.getAttribute('aria-label').trim();

        if (el.getAttribute('aria-labelledby')) {
            const labelEl = document.getElementById(el.getAttribute('aria-labelledby'));
            if (labelEl) return labelEl.textContent.trim();
        }

        const prev = el.previousElementSibling;
        if (prev && ['LABEL', 'SPAN', 'DIV'].includes(prev.tagName)) {
            const text = prev.textContent.trim();
            if (text && text.length < 100) return text;
        }

        const parent = el.parentElement;
        if (parent) {
            const labelEl = parent.querySelector(
                "label, .label, [class*='label'], [class*='Label']"
            );
            if (labelEl && labelEl !== el) {
                const text = labelEl.textContent.trim();
                if (text && text.length < 100) return text;
            }
        }

        if (el.placeholder) return el.placeholder;

        if (el.name) {
            return el.name.replace(/([A-Z])/g, ' $1').replace(/[_-]/g, ' ').trim();
        }
        return '';
    }

    function isVisible(el) {
        if (el.offsetParent === null && el.style.position !== 'fixed') return false;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        if (style.opacity === '0') return false;
        return true;
    }

    // [{value, text}] for selects and radio groups, null otherwise
    function choicesFor(el, type) {
        if (type === 'select') {
            return Array.from(el.options)
                .filter((o) => o.value !== '')
                .map((o) => ({ value: o.value, text: o.textContent.trim() }));
        }
        if (type === 'radio' && el.name) {
            return Array.from(
                document.querySelectorAll(`input[name="${CSS.escape(el.name)}"]`)
            ).map((r) => ({ value: r.value, text: labelFor(r) || r.value }));
        }
        return null;
    }

    const selectors = [
        "input:not([type='hidden']):not([type='submit']):not([type='button'])"
            + ":not([type='reset']):not([type='image'])",
        'textarea',
        'select',
        "[contenteditable='true']",
    ];
    if (!formFieldsOnly) selectors.push("button[type='submit']", "input[type='submit']");

    const fields = [];
    const seenRadioGroups = new Set();

    for (const el of root.querySelectorAll(selectors.join(', '))) {
        if (el.disabled) continue;
        if (!isVisible(el)) continue;

        let type;
        if (el.tagName === 'SELECT') type = 'select';
        else if (el.tagName === 'TEXTAREA') type = 'textarea';
        else if (el.tagName === 'BUTTON') type = 'submit';
        else if (el.getAttribute('contenteditable')) type = 'contenteditable';
        else type = el.type || 'text';

        if (type === 'radio' && el.name) {
            if (seenRadioGroups.has(el.name)) continue;
            seenRadioGroups.add(el.name);
        }

        if (type === 'file') {
            fields.push({
                selector: uniqueSelector(el),
                label: labelFor(el),
                type: 'file',
                required: el.required || false,
                field_id: el.id || null,
                field_name: el.name || null,
                note: 'Manual upload required',
            });
            continue;
        }

        const choices = choicesFor(el, type);
        let currentValue;
        if (type === 'contenteditable') currentValue = el.textContent?.trim() || '';
        else if (type === 'checkbox') currentValue = String(el.checked);
        else currentValue = el.value || '';

        fields.push({
            selector: uniqueSelector(el),
            label: type === 'submit' ? el.textContent.trim() || el.value || '' : labelFor(el),
            type: type,
            required: el.required || el.getAttribute('aria-required') === 'true',
            options: choices && choices.map((c) => c.text),
            option_values: choices && choices.map((c) => c.value),
            placeholder: el.placeholder || null,
            field_id: el.id || null,
            field_name: el.name || null,
            current_value: currentValue,
        });
    }

    return { fields: fields };
}
"""


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class PlaywrightAdapter(BrowserAdapter):
    """Chromium page driven by Playwright.

    The interactive CLI runs it headed so the user can check each fill
    in the browser before accepting.
    """

    def __init__(self) -> None:
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._default_timeout: int = 30000

    @property
    def adapter_name(self) -> str:
        return "playwright"

    @property
    def page(self) -> Page:
        """Get the current page, raising if not initialized."""
        if self._page is None:
            raise RuntimeError("Browser not initialized. Call initialize() first.")
        return self._page

    async def initialize(self, options: LaunchOptions) -> None:
        """Launch Chromium and open one page."""
        logger.info(f"Launching Chromium (headless={options.headless}, slow_mo={options.slow_mo}ms)")

        self._playwright = await async_playwright().start()
        self._default_timeout = options.timeout

        self._browser = await self._playwright.chromium.launch(
            headless=options.headless,
            slow_mo=options.slow_mo,
        )
        self._context = await self._browser.new_context(
            viewport={"width": options.viewport_width, "height": options.viewport_height},
            user_agent=options.user_agent,
        )
        self._context.set_default_timeout(options.timeout)
        self._page = await self._context.new_page()

    async def close(self) -> None:
        """Close page, context, browser and driver, in that order."""
        if self._page:
            await self._page.close()
            self._page = None

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Browser closed")

    async def navigate(self, request: NavigateRequest) -> NavigateResponse:
        """Open a URL. HTTP errors are reported as an unsuccessful response."""
        start = time.monotonic()
        try:
            response = await self.page.goto(
                request.url,
                wait_until=request.wait_until,  # type: ignore
                timeout=request.timeout or self._default_timeout,
            )
        except Exception as e:
            logger.error(f"Navigation to {request.url} failed: {e}")
            return NavigateResponse(
                success=False,
                duration_ms=_elapsed_ms(start),
                url=request.url,
                error=str(e),
            )

        error = None
        if response is None:
            error = "Navigation returned no response"
        elif not response.ok:
            error = f"HTTP {response.status}: {response.status_text}"

        return NavigateResponse(
            success=error is None,
            duration_ms=_elapsed_ms(start),
            url=self.page.url,
            page_title=await self.page.title(),
            error=error,
        )

    async def evaluate(self, request: EvaluateRequest) -> EvaluateResponse:
        start = time.monotonic()
        try:
            if request.args is not None:
                result = await self.page.evaluate(request.script, request.args)
            else:
                result = await self.page.evaluate(request.script)
        except Exception as e:
            logger.error(f"Evaluate failed: {e}")
            return EvaluateResponse(success=False, duration_ms=_elapsed_ms(start), error=str(e))

        return EvaluateResponse(success=True, duration_ms=_elapsed_ms(start), result=result)

    async def get_dom(
        self, selector: str | None = None, form_fields_only: bool = False
    ) -> DOMResponse:
        """Extract form fields from the live DOM."""
        try:
            result = await self.page.evaluate(
                EXTRACT_FIELDS_SCRIPT,
                {"rootSelector": selector, "formFieldsOnly": form_fields_only},
            )
            form_fields = [FormField(**f) for f in result.get("fields", [])]
            logger.info(f"Extracted {len(form_fields)} form fields from {self.page.url}")

            return DOMResponse(
                success=True,
                page_url=self.page.url,
                page_title=await self.page.title(),
                form_fields=form_fields,
            )
        except Exception as e:
            logger.error(f"Field extraction failed: {e}")
            return DOMResponse(
                success=False,
                page_url=self.page.url if self._page else "",
                page_title="",
                error=str(e),
            )

    async def get_current_url(self) -> str:
        return self.page.url

    async def get_page_title(self) -> str:
        return await self.page.title()

    async def get_page_content(self) -> str:
        return await self.page.content()
