"""Tests for the fill and extraction scripts inside a real page."""

import pytest
import pytest_asyncio

from src.automation.executor import FILL_FIELD_SCRIPT, AutofillExecutor
from src.automation.models import FillAssignment, FillStatus

pytestmark = pytest.mark.integration

RECORD_EVENTS = """
<script>
window.events = [];
for (const el of document.querySelectorAll('input, select, textarea, [contenteditable]')) {
    for (const type of ['input', 'change', 'blur']) {
        el.addEventListener(type, () => window.events.push(`${el.id}:${type}`));
    }
}
</script>
"""

APPLICATION_FORM = """
<form id="application">
    <label for="first_name">First Name</label>
    <input id="first_name" name="first_name" required>
    <label for="cover">Cover letter</label>
    <textarea id="cover"></textarea>
    <label for="country">Country</label>
    <select id="country">
        <option value="">Choose one</option>
        <option value="GB">United Kingdom</option>
        <option value="FR">France</option>
    </select>
    <p>Do you need sponsorship?</p>
    <label><input type="radio" id="sponsor_y" name="sponsor" value="y">Yes</label>
    <label><input type="radio" id="sponsor_n" name="sponsor" value="n">No</label>
    <label><input type="checkbox" id="terms" name="terms"> I accept the terms</label>
    <div id="bio" contenteditable="true"></div>
    <label for="resume">Resume</label>
    <input type="file" id="resume">
    <input type="hidden" id="token" value="abc">
</form>
"""


async def fill(page, selector: str, value: str) -> str:
    return await page.evaluate(FILL_FIELD_SCRIPT, [selector, value])


async def events(page) -> list[str]:
    return await page.evaluate("() => window.events")


@pytest_asyncio.fixture
async def form_page(page):
    await page.set_content(APPLICATION_FORM + RECORD_EVENTS)
    return page


class TestTextInputs:
    """Tests for input and textarea fills."""

    @pytest.mark.asyncio
    async def test_native_setter_bypasses_instance_override(self, page):
        """Test the prototype setter is used even when the element overrides value."""
        await page.set_content(
            """
            <input id="name">
            <script>
            const el = document.getElementById('name');
            const native = Object.getOwnPropertyDescriptor(HTMLInputElement.prototype, 'value');
            window.instanceWrites = [];
            Object.defineProperty(el, 'value', {
                configurable: true,
                get() { return native.get.call(this); },
                set(v) { window.instanceWrites.push(v); native.set.call(this, v); },
            });
            </script>
            """
        )

        assert await fill(page, "#name", "Ada") == "filled"

        assert await page.evaluate("() => window.instanceWrites") == []
        assert await page.input_value("#name") == "Ada"

    @pytest.mark.asyncio
    async def test_input_events_in_order(self, form_page):
        assert await fill(form_page, "#first_name", "Ada") == "filled"

        assert await events(form_page) == ["first_name:input", "first_name:change", "first_name:blur"]
        assert await form_page.input_value("#first_name") == "Ada"

    @pytest.mark.asyncio
    async def test_textarea(self, form_page):
        assert await fill(form_page, "#cover", "Dear hiring team") == "filled"

        assert await form_page.input_value("#cover") == "Dear hiring team"
        assert await events(form_page) == ["cover:input", "cover:change", "cover:blur"]


class TestSelect:
    """Tests for select fills."""

    @pytest.mark.asyncio
    async def test_matches_option_text(self, form_page):
        """Test the visible option text selects the option's value."""
        assert await fill(form_page, "#country", "United Kingdom") == "filled"

        assert await form_page.input_value("#country") == "GB"
        assert await events(form_page) == ["country:change"]

    @pytest.mark.asyncio
    async def test_matches_option_value(self, form_page):
        assert await fill(form_page, "#country", "FR") == "filled"

        assert await form_page.input_value("#country") == "FR"

    @pytest.mark.asyncio
    async def test_text_match_ignores_case(self, form_page):
        assert await fill(form_page, "#country", "united kingdom") == "filled"

        assert await form_page.input_value("#country") == "GB"

    @pytest.mark.asyncio
    async def test_unknown_option_is_an_error(self, form_page):
        """Test a value with no matching option is never reported filled."""
        assert await fill(form_page, "#country", "Narnia") == "error"

        assert await form_page.input_value("#country") == ""
        assert await events(form_page) == []


class TestChoiceInputs:
    """Tests for checkbox and radio fills."""

    @pytest.mark.asyncio
    async def test_checkbox_checked_and_unchecked(self, form_page):
        assert await fill(form_page, "#terms", "Yes") == "filled"
        assert await form_page.is_checked("#terms")
        assert "terms:change" in await events(form_page)

        assert await fill(form_page, "#terms", "false") == "filled"
        assert not await form_page.is_checked("#terms")

    @pytest.mark.asyncio
    async def test_checkbox_unrecognized_value(self, form_page):
        assert await fill(form_page, "#terms", "maybe later") == "error"

        assert not await form_page.is_checked("#terms")

    @pytest.mark.asyncio
    async def test_radio_picks_option_by_label(self, form_page):
        """Test the group's first radio selector can check a sibling."""
        assert await fill(form_page, "#sponsor_y", "No") == "filled"

        assert await form_page.is_checked("#sponsor_n")
        assert not await form_page.is_checked("#sponsor_y")
        assert "sponsor_n:change" in await events(form_page)

    @pytest.mark.asyncio
    async def test_radio_picks_option_by_value(self, form_page):
        assert await fill(form_page, "#sponsor_y", "y") == "filled"

        assert await form_page.is_checked("#sponsor_y")

    @pytest.mark.asyncio
    async def test_radio_without_match(self, form_page):
        assert await fill(form_page, "#sponsor_y", "Prefer not to say") == "error"

        assert not await form_page.is_checked("#sponsor_y")
        assert not await form_page.is_checked("#sponsor_n")


class TestOtherTargets:
    """Tests for contenteditable, missing and invalid targets."""

    @pytest.mark.asyncio
    async def test_contenteditable(self, form_page):
        assert await fill(form_page, "#bio", "Analyst and programmer") == "filled"

        assert await form_page.text_content("#bio") == "Analyst and programmer"
        assert await events(form_page) == ["bio:input"]

    @pytest.mark.asyncio
    async def test_missing_element(self, form_page):
        assert await fill(form_page, "#middle_name", "Byron") == "not_found"

    @pytest.mark.asyncio
    async def test_invalid_selector(self, form_page):
        """Test a selector the browser cannot parse is an error, not a miss."""
        assert await fill(form_page, "###", "Ada") == "error"

    @pytest.mark.asyncio
    async def test_unsupported_element(self, form_page):
        assert await fill(form_page, "#application", "Ada") == "error"


class TestExtractFields:
    """Tests for DOM field extraction."""

    @pytest.mark.asyncio
    async def test_form_fields(self, adapter, form_page):
        dom = await adapter.get_dom(form_fields_only=True)

        assert dom.success
        fields = {f.selector: f for f in dom.form_fields}
        assert "#token" not in fields

        assert fields["#first_name"].label == "First Name"
        assert fields["#first_name"].required is True

        country = fields["#country"]
        assert country.type == "select"
        assert country.options == ["United Kingdom", "France"]
        assert country.option_values == ["GB", "FR"]

        radios = [f for f in dom.form_fields if f.type == "radio"]
        assert len(radios) == 1
        assert radios[0].selector == "#sponsor_y"
        assert radios[0].options == ["Yes", "No"]
        assert radios[0].option_values == ["y", "n"]

        assert fields["#terms"].current_value == "false"
        assert fields["#resume"].note == "Manual upload required"
        assert fields["#bio"].type == "contenteditable"

    @pytest.mark.asyncio
    async def test_extracted_options_fill_back(self, adapter, form_page):
        """Test option text from extraction is accepted by the fill script."""
        dom = await adapter.get_dom(form_fields_only=True)
        country = next(f for f in dom.form_fields if f.selector == "#country")

        assert await fill(form_page, country.selector, country.options[0]) == "filled"
        assert await form_page.input_value("#country") == country.option_values[0]


class TestExecutorOnPage:
    """Tests for the executor against a live page."""

    @pytest.mark.asyncio
    async def test_mixed_results(self, adapter, form_page):
        report = await AutofillExecutor(adapter).execute(
            [
                FillAssignment(selector="#first_name", value="Ada", label="First Name"),
                FillAssignment(selector="#country", value="United Kingdom", label="Country"),
                FillAssignment(selector="#sponsor_y", value="No", label="Sponsorship"),
                FillAssignment(selector="#middle_name", value="Byron", label="Middle Name"),
                FillAssignment(selector="#country", value="Narnia", label="Country"),
            ]
        )

        assert [r.status for r in report.field_results] == [
            FillStatus.FILLED,
            FillStatus.FILLED,
            FillStatus.FILLED,
            FillStatus.NOT_FOUND,
            FillStatus.ERROR,
        ]
        assert report.filled_count == 3
        assert await form_page.input_value("#first_name") == "Ada"
