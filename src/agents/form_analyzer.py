"""Form analysis agents for ATS application forms.

Two agents back the autofill pipeline:
- FormAnalyzerAgent: reads cleaned page HTML, finds the fillable fields
  and suggests a value for each (used on a cache miss or a retry)
- AnswerGeneratorAgent: suggests values for an already known field list
  (used on a cache hit or after DOM extraction)

ClaudeFormAnalyzer wraps both behind the analyzer interface the
AutofillController expects.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from src.agents.base import BaseAgent
from src.automation.models import (
    AnalysisResult,
    CandidateProfile,
    FieldAnswer,
    FieldShape,
    FillStatus,
    JobContext,
    PreviousAttempt,
)
from src.browser_service.models import FormField
from src.config import settings
from src.scraper.form_html_cleaner import clean_form_html

logger = logging.getLogger(__name__)

MAX_OPTIONS_IN_PROMPT = 20
MAX_JOB_DESCRIPTION_CHARS = 3000


# ============================================================================
# Input/Output Models
# ============================================================================


class FormAnalysisInput(BaseModel):
    """Input for Form Analyzer Agent."""

    html: str
    profile: CandidateProfile
    job_context: JobContext = Field(default_factory=JobContext)
    previous_attempt: PreviousAttempt | None = None


class FormAnalysisOutput(BaseModel):
    """Output from Form Analyzer Agent."""

    fields: list[FieldAnswer] = Field(default_factory=list)


class AnswerGenerationInput(BaseModel):
    """Input for Answer Generator Agent."""

    fields: list[FormField]
    profile: CandidateProfile
    job_context: JobContext = Field(default_factory=JobContext)
    previous_attempt: PreviousAttempt | None = None


class AnswerGenerationOutput(BaseModel):
    """Output from Answer Generator Agent."""

    fields: list[FieldAnswer] = Field(default_factory=list)


# ============================================================================
# Prompt helpers
# ============================================================================


def format_profile(profile: CandidateProfile) -> str:
    """Render candidate data for a prompt."""
    lines = [
        f"Full name: {profile.full_name}",
        f"First name: {profile.first_name}",
        f"Last name: {profile.last_name}",
        f"Email: {profile.email}",
    ]
    if profile.phone:
        lines.append(f"Phone: {profile.phone_country_code} {profile.phone}")

    location = ", ".join(
        p
        for p in [
            profile.address_line_1,
            profile.address_line_2,
            profile.city,
            profile.county_state,
            profile.postal_code,
            profile.country,
        ]
        if p
    )
    if location:
        lines.append(f"Location: {location}")

    for label, value in [
        ("LinkedIn", profile.linkedin_url),
        ("GitHub", profile.github_url),
        ("Portfolio", profile.portfolio_url),
        ("Current title", profile.current_title),
        ("Summary", profile.summary),
    ]:
        if value:
            lines.append(f"{label}: {value}")

    lines.append(f"Skills: {', '.join(profile.skills) if profile.skills else 'Not specified'}")

    if profile.resume_text:
        lines.append(f"\nResume:\n{profile.resume_text}")

    return "\n".join(lines)


def format_job_context(job_context: JobContext) -> str:
    """Render the vacancy for a prompt."""
    description = job_context.job_description[:MAX_JOB_DESCRIPTION_CHARS] or "Not provided"
    cover_letter = job_context.cover_letter or "Not generated yet"
    return f"Job description:\n{description}\n\nCover letter:\n{cover_letter}"


def format_previous_attempt(previous_attempt: PreviousAttempt | None) -> str:
    """Render the retry context, or an empty string on a first attempt."""
    if previous_attempt is None:
        return ""

    problems = [
        f"- {r.label or r.selector} ({r.selector}): {r.status.value}"
        for r in previous_attempt.field_results
        if r.status != FillStatus.FILLED
    ]
    problem_text = "\n".join(problems) if problems else "- none reported by the page"
    feedback = previous_attempt.user_feedback.strip() or "No additional feedback."

    return f"""
## Previous attempt #{previous_attempt.attempt_number}
The previous fill did not satisfy the user.

Fields that failed:
{problem_text}

User feedback:
{feedback}

Fix the selectors of failed fields and take the feedback into account.
"""


def simplify_fields(fields: Sequence[FormField]) -> list[dict[str, Any]]:
    """Reduce fields to what the model needs, to save tokens."""
    return [
        {
            "selector": f.selector,
            "label": f.label or f.field_name or f.placeholder or "",
            "type": f.type,
            "required": f.required,
            "options": f.options[:MAX_OPTIONS_IN_PROMPT] if f.options else None,
            "placeholder": f.placeholder,
        }
        for f in fields
    ]


# ============================================================================
# Form Analyzer Agent
# ============================================================================


class FormAnalyzerAgent(BaseAgent[FormAnalysisOutput]):
    """Agent that finds form fields in page HTML and suggests values.

    Selectors it returns are cached as the page's template, so it is
    asked for stable selectors (id, name, data-testid) over positional
    ones.
    """

    @property
    def name(self) -> str:
        return "form-analyzer"

    @property
    def system_prompt(self) -> str:
        return """You are an expert at filling out job application forms on ATS platforms
(Greenhouse, Lever, Workday, Ashby, SmartRecruiters, iCIMS and custom career sites).

Given the cleaned HTML of an application page and a candidate profile you:
1. Identify every field the candidate is expected to fill
2. Produce a CSS selector that matches exactly one element for each field
3. Suggest the value to enter, based only on the candidate profile and job
4. Rate your confidence as "low", "medium" or "high"

Selector rules:
- Prefer #id, then [name="..."], then [data-testid="..."]
- Avoid positional selectors unless nothing else identifies the field
- Never invent attributes that are not in the HTML

Value rules:
- For select and radio fields, the value must be one of the listed options
- For file inputs, leave suggested_value null and add the note "Manual upload required"
- If the profile does not contain the answer, leave suggested_value null and explain in note
- Never fabricate qualifications, dates or legal statements"""

    async def _execute(self, input_data: FormAnalysisInput, **kwargs: Any) -> FormAnalysisOutput:
        """Analyze page HTML."""
        prompt = f"""Analyze this job application form and suggest values for each field.

## Candidate
{format_profile(input_data.profile)}

## Job
{format_job_context(input_data.job_context)}
{format_previous_attempt(input_data.previous_attempt)}
## Page HTML
{input_data.html}

For each field return: selector, label, type (text, email, tel, url, textarea,
select, radio, checkbox, file, contenteditable), options (for select/radio),
suggested_value, confidence and an optional note."""

        result = await self._call_claude_json(prompt, FormAnalysisOutput)
        logger.info(f"Form analyzer found {len(result.fields)} fields")
        return result


# ============================================================================
# Answer Generator Agent
# ============================================================================


class AnswerGeneratorAgent(BaseAgent[AnswerGenerationOutput]):
    """Agent that suggests values for a known list of fields."""

    @property
    def name(self) -> str:
        return "answer-generator"

    @property
    def system_prompt(self) -> str:
        return """You help candidates fill job application forms.
You receive a list of form fields (selector, label, type, options) and a
candidate profile, and suggest the value for each field.

Guidelines:
- Keep the selector of every field exactly as given
- For select and radio fields, pick one of the listed options verbatim
- For free-text questions, answer concisely in a professional tone
- If the profile does not contain the answer, return null and explain in note
- Never make up qualifications or experience"""

    async def _execute(
        self, input_data: AnswerGenerationInput, **kwargs: Any
    ) -> AnswerGenerationOutput:
        """Generate values for known fields."""
        fields_json = json.dumps(simplify_fields(input_data.fields), indent=2)

        prompt = f"""Suggest values for these application form fields.

## Candidate
{format_profile(input_data.profile)}

## Job
{format_job_context(input_data.job_context)}
{format_previous_attempt(input_data.previous_attempt)}
## Form fields
{fields_json}

Return one entry per field with selector, label, suggested_value, confidence
("low", "medium" or "high") and an optional note."""

        result = await self._call_claude_json(prompt, AnswerGenerationOutput)

        # Carry structural attributes over from the known fields
        known = {f.selector: f for f in input_data.fields}
        for answer in result.fields:
            field = known.get(answer.selector)
            if field is None:
                logger.warning(f"Answer for unknown selector {answer.selector}")
                continue
            answer.type = field.type
            answer.options = field.options
            if not answer.label:
                answer.label = field.label

        return result


# ============================================================================
# Analyzer facade
# ============================================================================


class ClaudeFormAnalyzer:
    """Form analyzer backed by Claude agents."""

    def __init__(
        self,
        claude_api_key: str | None = None,
        model: str | None = None,
        html_max_length: int | None = None,
    ):
        self.form_analyzer = FormAnalyzerAgent(claude_api_key=claude_api_key, model=model)
        self.answer_generator = AnswerGeneratorAgent(claude_api_key=claude_api_key, model=model)
        self.html_max_length = html_max_length or settings.analysis_html_max_length

    async def analyze_html(
        self,
        html: str,
        profile: CandidateProfile,
        job_context: JobContext,
        previous_attempt: PreviousAttempt | None = None,
    ) -> AnalysisResult:
        """Find fields and values in raw page HTML."""
        cleaned = clean_form_html(html, max_length=self.html_max_length)
        logger.info(f"Analyzing {len(cleaned)} chars of cleaned HTML (raw {len(html)})")

        output = await self.form_analyzer.run(
            FormAnalysisInput(
                html=cleaned,
                profile=profile,
                job_context=job_context,
                previous_attempt=previous_attempt,
            )
        )
        return AnalysisResult(fields=output.fields)

    async def generate_answers(
        self,
        fields: Sequence[FormField | FieldShape],
        profile: CandidateProfile,
        job_context: JobContext,
        previous_attempt: PreviousAttempt | None = None,
    ) -> list[FieldAnswer]:
        """Suggest values for known fields."""
        form_fields = [
            f if isinstance(f, FormField) else FormField.model_validate(f.model_dump())
            for f in fields
        ]
        output = await self.answer_generator.run(
            AnswerGenerationInput(
                fields=form_fields,
                profile=profile,
                job_context=job_context,
                previous_attempt=previous_attempt,
            )
        )
        return output.fields
