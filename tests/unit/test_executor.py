"""Tests for the autofill executor."""

import pytest

from src.automation.executor import FILL_FIELD_SCRIPT, AutofillExecutor, execute_fill
from src.automation.models import FillAssignment, FillStatus
from src.browser_service.models import EvaluateResponse


def assignments(*selectors: str) -> list[FillAssignment]:
    return [FillAssignment(selector=s, value=f"value {s}", label=s.lstrip("#")) for s in selectors]


class TestAutofillExecutor:
    """Tests for AutofillExecutor."""

    @pytest.mark.asyncio
    async def test_all_fields_filled(self, make_adapter):
        """Test a clean pass."""
        adapter = make_adapter(selectors={"#a", "#b"})

        report = await execute_fill(adapter, assignments("#a", "#b"))

        assert report.filled_count == 2
        assert report.total_fields == 2
        assert all(r.status == FillStatus.FILLED for r in report.field_results)
        assert adapter.filled == {"#a": "value #a", "#b": "value #b"}

    @pytest.mark.asyncio
    async def test_missing_field_does_not_abort(self, make_adapter):
        """Test a missing third selector leaves the others filled."""
        adapter = make_adapter(selectors={"#f1", "#f2", "#f4", "#f5"})

        report = await execute_fill(adapter, assignments("#f1", "#f2", "#f3", "#f4", "#f5"))

        statuses = [r.status for r in report.field_results]
        assert statuses == [
            FillStatus.FILLED,
            FillStatus.FILLED,
            FillStatus.NOT_FOUND,
            FillStatus.FILLED,
            FillStatus.FILLED,
        ]
        assert report.filled_count == 4
        assert report.total_fields == 5
        assert adapter.evaluated == ["#f1", "#f2", "#f3", "#f4", "#f5"]

    @pytest.mark.asyncio
    async def test_evaluate_failure_is_error(self, make_adapter):
        """Test a failed script evaluation maps to error."""
        adapter = make_adapter(selectors={"#a", "#b"}, failing={"#a"})

        report = await AutofillExecutor(adapter).execute(assignments("#a", "#b"))

        assert report.field_results[0].status == FillStatus.ERROR
        assert report.field_results[1].status == FillStatus.FILLED

    @pytest.mark.asyncio
    async def test_adapter_exception_is_error(self, make_adapter):
        """Test an exception from the adapter does not escape."""
        adapter = make_adapter(selectors={"#a", "#b"}, raising={"#b"})

        report = await AutofillExecutor(adapter).execute(assignments("#a", "#b"))

        assert [r.status for r in report.field_results] == [FillStatus.FILLED, FillStatus.ERROR]
        assert report.filled_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_script_result_is_error(self, make_adapter):
        """Test unknown results from the page are treated as errors."""
        adapter = make_adapter(selectors={"#a"})

        async def weird_evaluate(request):
            return EvaluateResponse(success=True, duration_ms=0, result=None)

        adapter.evaluate = weird_evaluate

        report = await AutofillExecutor(adapter).execute(assignments("#a"))
        assert report.field_results[0].status == FillStatus.ERROR

    @pytest.mark.asyncio
    async def test_empty_assignments(self, make_adapter):
        """Test nothing to fill."""
        report = await execute_fill(make_adapter(), [])

        assert report.filled_count == 0
        assert report.total_fields == 0
        assert report.field_results == []

    @pytest.mark.asyncio
    async def test_labels_carried_into_results(self, make_adapter):
        """Test results keep the field label for the summary."""
        adapter = make_adapter(selectors={"#email"})

        report = await execute_fill(
            adapter, [FillAssignment(selector="#email", value="a@b.c", label="Email")]
        )

        assert report.field_results[0].label == "Email"


class TestFillScript:
    """Tests for the page-side fill script."""

    def test_script_dispatches_framework_events(self):
        """Test input, change and blur are dispatched after the native setter."""
        assert "getOwnPropertyDescriptor" in FILL_FIELD_SCRIPT
        input_pos = FILL_FIELD_SCRIPT.index("new Event('input'")
        change_pos = FILL_FIELD_SCRIPT.index("new Event('change'", input_pos)
        blur_pos = FILL_FIELD_SCRIPT.index("new Event('blur'", change_pos)
        assert input_pos < change_pos < blur_pos

    def test_script_reports_statuses(self):
        """Test the script only returns known statuses."""
        for status in FillStatus:
            assert f"'{status.value}'" in FILL_FIELD_SCRIPT

    def test_choice_writes_are_verified(self):
        """Test select, checkbox and radio writes are read back before reporting."""
        assert "el.value === option.value ? 'filled' : 'error'" in FILL_FIELD_SCRIPT
        assert "el.checked === checked ? 'filled' : 'error'" in FILL_FIELD_SCRIPT
        assert "target.checked ? 'filled' : 'error'" in FILL_FIELD_SCRIPT
