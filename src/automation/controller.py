"""
Verification and retry controller for form autofill.

Drives one form-fill interaction through an explicit state machine:

    IDLE -> EXTRACTING -> FILLING -> VERIFYING -> ACCEPTED
                 ^                       |
                 +------ RETRYING <------+
                                         |
                                         +-> EXHAUSTED (after the last retry)

Fields come from the template cache when the page's platform has a live
template, otherwise from a fresh analysis. Accepting a fresh analysis
saves its shape as the platform template; accepting a cached one resets
the template's failure count. Every retry counts as a template failure.
"""

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

from langfuse import observe
from pydantic import BaseModel, Field

from src.automation.executor import AutofillExecutor
from src.automation.models import (
    AnalysisResult,
    CandidateProfile,
    FieldAnswer,
    FieldFillResult,
    FieldShape,
    FillAssignment,
    FillStatus,
    JobContext,
    PreviousAttempt,
)
from src.automation.template_cache import TemplateCache
from src.browser_service.adapters.base import BrowserAdapter
from src.browser_service.models import FormField
from src.config import settings
from src.integrations.langfuse.tracing import tag_autofill_trace

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class AutofillError(Exception):
    """Base error for the autofill pipeline."""


class NoFormDetectedError(AutofillError):
    """The page has no fields that can be filled."""


class AnalysisError(AutofillError):
    """Field extraction or value generation failed."""


class InvalidTransitionError(AutofillError):
    """The requested action is not allowed in the current state."""


# ============================================================================
# State machine
# ============================================================================


class AutofillState(str, Enum):
    """Lifecycle of one autofill session."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    FILLING = "filling"
    VERIFYING = "verifying"
    ACCEPTED = "accepted"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


class AutofillEvent(str, Enum):
    """Inputs that move a session between states."""

    START = "start"
    ANALYZED = "analyzed"
    FAILED = "failed"
    FILLED = "filled"
    LIMIT_REACHED = "limit_reached"
    ACCEPT = "accept"
    RETRY = "retry"
    REANALYZE = "reanalyze"


TRANSITIONS: dict[tuple[AutofillState, AutofillEvent], AutofillState] = {
    (AutofillState.IDLE, AutofillEvent.START): AutofillState.EXTRACTING,
    (AutofillState.EXTRACTING, AutofillEvent.ANALYZED): AutofillState.FILLING,
    (AutofillState.EXTRACTING, AutofillEvent.FAILED): AutofillState.IDLE,
    (AutofillState.FILLING, AutofillEvent.FILLED): AutofillState.VERIFYING,
    (AutofillState.FILLING, AutofillEvent.FAILED): AutofillState.IDLE,
    (AutofillState.VERIFYING, AutofillEvent.LIMIT_REACHED): AutofillState.EXHAUSTED,
    (AutofillState.VERIFYING, AutofillEvent.ACCEPT): AutofillState.ACCEPTED,
    (AutofillState.VERIFYING, AutofillEvent.RETRY): AutofillState.RETRYING,
    (AutofillState.RETRYING, AutofillEvent.REANALYZE): AutofillState.EXTRACTING,
    (AutofillState.EXHAUSTED, AutofillEvent.ACCEPT): AutofillState.ACCEPTED,
}


class ExtractionStrategy(str, Enum):
    """How fields are found on a cache miss."""

    HTML_ANALYSIS = "html"  # AI reads the cleaned page HTML
    DOM_QUERY = "dom"  # DOM extraction, AI only suggests values


class FormAnalyzer(Protocol):
    """Produces field schemas and value suggestions for a page."""

    async def analyze_html(
        self,
        html: str,
        profile: CandidateProfile,
        job_context: JobContext,
        previous_attempt: PreviousAttempt | None = None,
    ) -> AnalysisResult: ...

    async def generate_answers(
        self,
        fields: Sequence[FormField | FieldShape],
        profile: CandidateProfile,
        job_context: JobContext,
        previous_attempt: PreviousAttempt | None = None,
    ) -> list[FieldAnswer]: ...


# ============================================================================
# Session and summary models
# ============================================================================


class AutofillSession(BaseModel):
    """In-memory state of one form-fill interaction. Never persisted."""

    page_url: str
    cache_key: str | None = None
    state: AutofillState = AutofillState.IDLE
    attempt_number: int = 0  # retries made so far
    max_attempts: int = 3
    used_cache: bool = False  # the first pass came from the cache
    answers: list[FieldAnswer] = Field(default_factory=list)
    cacheable_shape: list[FieldShape] = Field(default_factory=list)
    last_field_results: list[FieldFillResult] = Field(default_factory=list)

    @property
    def can_retry(self) -> bool:
        return self.state == AutofillState.VERIFYING and self.attempt_number < self.max_attempts


class VerificationSummary(BaseModel):
    """What the user sees after a fill pass."""

    attempt_number: int
    max_attempts: int
    used_cache: bool
    filled_count: int
    total_fields: int
    field_results: list[FieldFillResult] = Field(default_factory=list)
    skipped_fields: list[FieldAnswer] = Field(default_factory=list)
    can_retry: bool = False

    @property
    def needs_attention(self) -> list[FieldFillResult]:
        return [r for r in self.field_results if r.status != FillStatus.FILLED]

    @property
    def all_filled(self) -> bool:
        return not self.needs_attention

    @property
    def message(self) -> str:
        if self.all_filled:
            return "All fields filled successfully"
        return f"{len(self.needs_attention)} field(s) may need attention"


# ============================================================================
# Controller
# ============================================================================


class AutofillController:
    """
    Runs extract -> fill -> verify for one page, with bounded retries.

    Usage:
        controller = AutofillController(adapter, analyzer, cache, profile)
        summary = await controller.start()
        if summary.all_filled:
            await controller.accept()
        else:
            summary = await controller.retry("Phone field needs country code")
    """

    def __init__(
        self,
        adapter: BrowserAdapter,
        analyzer: FormAnalyzer,
        cache: TemplateCache,
        profile: CandidateProfile,
        job_context: JobContext | None = None,
        strategy: ExtractionStrategy = ExtractionStrategy.HTML_ANALYSIS,
        max_attempts: int | None = None,
        executor: AutofillExecutor | None = None,
    ):
        self.adapter = adapter
        self.analyzer = analyzer
        self.cache = cache
        self.profile = profile
        self.job_context = job_context or JobContext()
        self.strategy = strategy
        self.max_attempts = settings.max_autofill_attempts if max_attempts is None else max_attempts
        self.executor = executor or AutofillExecutor(adapter)
        self._session: AutofillSession | None = None

    @property
    def session(self) -> AutofillSession | None:
        return self._session

    @property
    def state(self) -> AutofillState:
        return self._session.state if self._session else AutofillState.IDLE

    def _require_session(self) -> AutofillSession:
        if self._session is None:
            raise InvalidTransitionError("No autofill session. Call start() first.")
        return self._session

    def _check(self, event: AutofillEvent) -> AutofillState:
        session = self._require_session()
        target = TRANSITIONS.get((session.state, event))
        if target is None:
            raise InvalidTransitionError(
                f"Cannot {event.value} while {session.state.value}"
            )
        return target

    def _transition(self, event: AutofillEvent) -> None:
        session = self._require_session()
        target = self._check(event)
        logger.debug(f"Autofill {session.state.value} --{event.value}--> {target.value}")
        session.state = target

    # ------------------------------------------------------------------
    # Public actions
    # ------------------------------------------------------------------

    async def start(self) -> VerificationSummary:
        """Begin a new session on the adapter's current page.

        Raises:
            NoFormDetectedError: Nothing to fill on the page
            AnalysisError: Extraction or value generation failed
        """
        if self.state in (AutofillState.EXTRACTING, AutofillState.FILLING):
            raise InvalidTransitionError("An autofill pass is already running")

        page_url = await self.adapter.get_current_url()
        cache_key = self.cache.derive_key(page_url)
        self._session = AutofillSession(
            page_url=page_url,
            cache_key=cache_key,
            max_attempts=self.max_attempts,
        )
        logger.info(f"Starting autofill on {page_url} (cache key: {cache_key})")

        self._transition(AutofillEvent.START)
        return await self._run_attempt()

    async def accept(self) -> AutofillSession:
        """Confirm the fill and update the template cache."""
        self._check(AutofillEvent.ACCEPT)
        session = self._require_session()
        self._transition(AutofillEvent.ACCEPT)

        if session.cache_key:
            if session.used_cache:
                await self.cache.reset_fail(session.cache_key)
            elif session.cacheable_shape:
                await self.cache.put(session.cache_key, session.cacheable_shape)

        logger.info(
            f"Autofill accepted on {session.page_url} after {session.attempt_number} retries"
        )
        return session

    async def retry(self, feedback: str = "") -> VerificationSummary:
        """Re-analyze the page with the last results and user feedback.

        Raises:
            InvalidTransitionError: Not verifying, or the retry limit is reached
        """
        self._check(AutofillEvent.RETRY)
        session = self._require_session()
        self._transition(AutofillEvent.RETRY)

        session.attempt_number += 1
        if session.cache_key:
            await self.cache.increment_fail(session.cache_key)

        previous = PreviousAttempt(
            attempt_number=session.attempt_number,
            field_results=session.last_field_results,
            user_feedback=feedback,
        )
        logger.info(f"Retry {session.attempt_number}/{session.max_attempts} on {session.page_url}")

        self._transition(AutofillEvent.REANALYZE)
        return await self._run_attempt(previous)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _abort(self) -> None:
        """Return a pass that raised mid-way to IDLE."""
        session = self._require_session()
        if (session.state, AutofillEvent.FAILED) in TRANSITIONS:
            self._transition(AutofillEvent.FAILED)

    @observe(name="autofill-attempt", capture_input=False, capture_output=False)
    async def _run_attempt(
        self, previous_attempt: PreviousAttempt | None = None
    ) -> VerificationSummary:
        session = self._require_session()

        try:
            answers, shape, used_cache = await self._extract(previous_attempt)
        except AutofillError:
            self._abort()
            raise
        except Exception as e:
            self._abort()
            logger.error(f"Form analysis failed on {session.page_url}: {e}")
            raise AnalysisError(str(e)) from e

        try:
            return await self._fill_and_verify(answers, shape, used_cache, previous_attempt)
        except Exception as e:
            self._abort()
            logger.error(f"Autofill pass failed on {session.page_url}: {e}")
            raise

    async def _fill_and_verify(
        self,
        answers: list[FieldAnswer],
        shape: list[FieldShape],
        used_cache: bool,
        previous_attempt: PreviousAttempt | None,
    ) -> VerificationSummary:
        session = self._require_session()

        fillable = [a for a in answers if a.has_value]
        skipped = [a for a in answers if not a.has_value]
        if not fillable:
            raise NoFormDetectedError("No fields to auto-fill")

        session.answers = answers
        session.cacheable_shape = shape
        # Accept decides between reset and save from how the session began
        if previous_attempt is None:
            session.used_cache = used_cache
        tag_autofill_trace(session.page_url, session.cache_key, session.attempt_number, used_cache)
        self._transition(AutofillEvent.ANALYZED)

        assignments = [
            FillAssignment(selector=a.selector, value=(a.suggested_value or "").strip(), label=a.label)
            for a in fillable
        ]
        report = await self.executor.execute(assignments)
        session.last_field_results = report.field_results
        self._transition(AutofillEvent.FILLED)

        if session.attempt_number >= session.max_attempts:
            self._transition(AutofillEvent.LIMIT_REACHED)

        summary = VerificationSummary(
            attempt_number=session.attempt_number,
            max_attempts=session.max_attempts,
            used_cache=used_cache,
            filled_count=report.filled_count,
            total_fields=report.total_fields,
            field_results=report.field_results,
            skipped_fields=skipped,
            can_retry=session.can_retry,
        )
        logger.info(summary.message)
        return summary

    async def _extract(
        self, previous_attempt: PreviousAttempt | None
    ) -> tuple[list[FieldAnswer], list[FieldShape], bool]:
        """Return answers, the shape to cache and whether the cache was used."""
        session = self._require_session()

        if previous_attempt is None and session.cache_key:
            template = await self.cache.get(session.cache_key)
            if template and template.fields:
                logger.info(f"Using cached template {session.cache_key}")
                answers = await self.analyzer.generate_answers(
                    template.fields, self.profile, self.job_context
                )
                return answers, template.fields, True

        if self.strategy == ExtractionStrategy.DOM_QUERY:
            dom = await self.adapter.get_dom(form_fields_only=True)
            if not dom.success:
                raise AnalysisError(dom.error or "DOM extraction failed")
            if not dom.form_fields:
                raise NoFormDetectedError("No form fields found on this page")

            answers = await self.analyzer.generate_answers(
                dom.form_fields, self.profile, self.job_context, previous_attempt
            )
            shape = [FieldShape.model_validate(f.model_dump()) for f in dom.form_fields]
            return answers, shape, False

        html = await self.adapter.get_page_content()
        result = await self.analyzer.analyze_html(
            html, self.profile, self.job_context, previous_attempt
        )
        if not result.fields:
            raise NoFormDetectedError("No form fields found on this page")
        return result.fields, result.cacheable_shape, False
