"""
Autofill executor.

Writes suggested values into the live page one field at a time. Values
go through the element's native value setter and the framework-visible
events are dispatched afterwards, so React/Vue controlled inputs pick up
the change. Selects, checkboxes and radios are matched by option value
or visible text and report an error when nothing matches. A failing
field never stops the pass.
"""

import logging
from collections.abc import Sequence

from src.automation.models import (
    FieldFillResult,
    FillAssignment,
    FillReport,
    FillStatus,
)
from src.browser_service.adapters.base import BrowserAdapter
from src.browser_service.models import EvaluateRequest

logger = logging.getLogger(__name__)


FILL_FIELD_SCRIPT = """
([selector, value]) => {
    let el;
    try {
        el = document.querySelector(selector);
    } catch (e) {
        return 'error';
    }
    if (!el) return 'not_found';

    const wanted = String(value).trim().toLowerCase();

    function labelText(input) {
        if (input.labels && input.labels.length) return input.labels[0].textContent.trim();
        const wrapping = input.closest('label');
        if (wrapping) return wrapping.textContent.trim();
        return (input.getAttribute('aria-label') || '').trim();
    }

    function matches(input) {
        return input.value === value
            || input.value.toLowerCase() === wanted
            || labelText(input).toLowerCase() === wanted;
    }

    try {
        if (el.tagName === 'SELECT') {
            const options = Array.from(el.options);
            const option = options.find((o) => o.value === value)
                || options.find((o) => o.textContent.trim().toLowerCase() === wanted)
                || options.find((o) => o.value.toLowerCase() === wanted);
            if (!option) return 'error';
            el.value = option.value;
            el.dispatchEvent(new Event('change', { bubbles: true }));
            return el.value === option.value ? 'filled' : 'error';
        }

        if (el.tagName === 'INPUT' && el.type === 'checkbox') {
            let checked;
            if (['yes', 'true', '1', 'on', 'checked', 'y'].includes(wanted)) checked = true;
            else if (['no', 'false', '0', 'off', 'unchecked', 'n'].includes(wanted)) checked = false;
            else if (matches(el)) checked = true;
            else return 'error';
            if (el.checked !== checked) el.click();
            return el.checked === checked ? 'filled' : 'error';
        }

        if (el.tagName === 'INPUT' && el.type === 'radio') {
            const group = el.name
                ? Array.from(document.querySelectorAll(`input[type="radio"][name="${CSS.escape(el.name)}"]`))
                : [el];
            const target = group.find(matches);
            if (!target) return 'error';
            if (!target.checked) target.click();
            return target.checked ? 'filled' : 'error';
        }

        if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA') {
            const proto = el.tagName === 'INPUT'
                ? window.HTMLInputElement.prototype
                : window.HTMLTextAreaElement.prototype;
            const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
            setter.call(el, value);
            el.dispatchEvent(new Event('input', { bubbles: true }));
            el.dispatchEvent(new Event('change', { bubbles: true }));
            el.dispatchEvent(new Event('blur', { bubbles: true }));
            return 'filled';
        }

        if (el.isContentEditable) {
            el.textContent = value;
            el.dispatchEvent(new Event('input', { bubbles: true }));
            return 'filled';
        }

        return 'error';
    } catch (e) {
        return 'error';
    }
}
"""


class AutofillExecutor:
    """Applies fill assignments to a page through a browser adapter."""

    def __init__(self, adapter: BrowserAdapter):
        self.adapter = adapter

    async def fill_field(self, assignment: FillAssignment) -> FieldFillResult:
        """Write one value and report what happened."""
        try:
            response = await self.adapter.evaluate(
                EvaluateRequest(
                    script=FILL_FIELD_SCRIPT,
                    args=[assignment.selector, assignment.value],
                )
            )
        except Exception as e:
            logger.warning(f"Fill raised for {assignment.selector}: {e}")
            status = FillStatus.ERROR
        else:
            if not response.success:
                logger.warning(f"Fill failed for {assignment.selector}: {response.error}")
                status = FillStatus.ERROR
            else:
                try:
                    status = FillStatus(response.result)
                except ValueError:
                    status = FillStatus.ERROR

        return FieldFillResult(
            selector=assignment.selector,
            label=assignment.label,
            status=status,
        )

    async def execute(self, assignments: Sequence[FillAssignment]) -> FillReport:
        """
        Fill every assignment in order.

        Args:
            assignments: Selector/value pairs to write

        Returns:
            FillReport with one result per assignment
        """
        results: list[FieldFillResult] = []
        for assignment in assignments:
            results.append(await self.fill_field(assignment))

        report = FillReport(
            filled_count=sum(1 for r in results if r.status == FillStatus.FILLED),
            total_fields=len(results),
            field_results=results,
        )
        logger.info(f"Filled {report.filled_count}/{report.total_fields} fields")
        return report


async def execute_fill(
    adapter: BrowserAdapter, assignments: Sequence[FillAssignment]
) -> FillReport:
    """Fill assignments on the adapter's page."""
    return await AutofillExecutor(adapter).execute(assignments)
