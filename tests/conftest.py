"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment
os.environ["APP_ENV"] = "development"
os.environ["LANGFUSE_TRACING_ENABLED"] = "false"
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from src.automation.models import (  # noqa: E402
    AnalysisResult,
    CandidateProfile,
    FieldAnswer,
    JobContext,
)
from src.automation.storage import InMemoryStore  # noqa: E402
from src.automation.template_cache import TemplateCache  # noqa: E402
from src.browser_service.adapters.base import BrowserAdapter  # noqa: E402
from src.browser_service.models import (  # noqa: E402
    DOMResponse,
    EvaluateRequest,
    EvaluateResponse,
    FormField,
    LaunchOptions,
    NavigateRequest,
    NavigateResponse,
)

GREENHOUSE_URL = "https://boards.greenhouse.io/acme/jobs/4242"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeAdapter(BrowserAdapter):
    """In-memory page: a set of selectors that exist plus canned HTML/DOM."""

    def __init__(
        self,
        url: str = GREENHOUSE_URL,
        selectors: set[str] | None = None,
        html: str = "<form></form>",
        dom_fields: list[FormField] | None = None,
        failing: set[str] | None = None,
        raising: set[str] | None = None,
    ):
        self.url = url
        self.selectors = selectors or set()
        self.html = html
        self.dom_fields = dom_fields or []
        self.failing = failing or set()
        self.raising = raising or set()
        self.filled: dict[str, str] = {}
        self.evaluated: list[str] = []

    @property
    def adapter_name(self) -> str:
        return "fake"

    async def initialize(self, options: LaunchOptions) -> None:
        pass

    async def close(self) -> None:
        pass

    async def navigate(self, request: NavigateRequest) -> NavigateResponse:
        self.url = request.url
        return NavigateResponse(success=True, duration_ms=0, url=request.url)

    async def evaluate(self, request: EvaluateRequest) -> EvaluateResponse:
        selector, value = request.args
        self.evaluated.append(selector)
        if selector in self.raising:
            raise RuntimeError("Target page closed")
        if selector in self.failing:
            return EvaluateResponse(success=False, duration_ms=0, error="Execution context destroyed")
        if selector not in self.selectors:
            return EvaluateResponse(success=True, duration_ms=0, result="not_found")
        self.filled[selector] = value
        return EvaluateResponse(success=True, duration_ms=0, result="filled")

    async def get_dom(
        self, selector: str | None = None, form_fields_only: bool = False
    ) -> DOMResponse:
        return DOMResponse(
            success=True,
            page_url=self.url,
            page_title="Apply",
            form_fields=self.dom_fields,
        )

    async def get_current_url(self) -> str:
        return self.url

    async def get_page_title(self) -> str:
        return "Apply"

    async def get_page_content(self) -> str:
        return self.html


@pytest.fixture
def clock():
    """Controllable clock for cache TTL tests."""
    return FakeClock()


@pytest.fixture
def store():
    """Empty in-memory key-value store."""
    return InMemoryStore()


@pytest.fixture
def cache(store, clock):
    """Template cache over an in-memory store with a fake clock."""
    return TemplateCache(store, ttl=timedelta(days=30), max_fail_count=3, clock=clock)


@pytest.fixture
def profile():
    """Sample candidate profile."""
    return CandidateProfile(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="7700 900123",
        city="London",
        linkedin_url="https://linkedin.com/in/ada",
        skills=["Python", "Mathematics"],
        resume_text="Analyst and programmer. Wrote the first published algorithm.",
    )


@pytest.fixture
def job_context():
    """Sample job context."""
    return JobContext(job_description="Senior Python Engineer working on compilers.")


@pytest.fixture
def sample_answers():
    """Answers for a small Greenhouse-like form."""
    return [
        FieldAnswer(selector="#first_name", label="First Name", suggested_value="Ada", confidence="high"),
        FieldAnswer(selector="#last_name", label="Last Name", suggested_value="Lovelace", confidence="high"),
        FieldAnswer(selector="#email", label="Email", suggested_value="ada@example.com", type="email"),
        FieldAnswer(
            selector="#resume",
            label="Resume",
            suggested_value=None,
            type="file",
            note="Manual upload required",
        ),
    ]


@pytest.fixture
def mock_analyzer(sample_answers):
    """Analyzer whose calls return the sample answers."""
    analyzer = MagicMock()
    analyzer.analyze_html = AsyncMock(return_value=AnalysisResult(fields=sample_answers))
    analyzer.generate_answers = AsyncMock(return_value=sample_answers)
    return analyzer


@pytest.fixture
def mock_anthropic_response():
    """Create a mock Anthropic API response."""

    def _create_response(text: str, input_tokens: int = 100, output_tokens: int = 200):
        mock_response = MagicMock()
        mock_response.content = [MagicMock(type="text", text=text)]
        mock_response.usage = MagicMock(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return mock_response

    return _create_response


@pytest.fixture
def make_adapter():
    """Factory for fake page adapters."""
    return FakeAdapter
