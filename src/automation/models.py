"""Shared models for the autofill pipeline.

These models are shared between:
- TemplateCache (automation/template_cache.py)
- AutofillExecutor (automation/executor.py)
- AutofillController (automation/controller.py)
- Form analyzer agents (agents/form_analyzer.py)

Kept in one module to avoid circular imports.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# ============================================================================
# Field schema
# ============================================================================


class FieldShape(BaseModel):
    """Structural description of a form field, safe to persist.

    Runtime-only attributes (suggested values, confidence, notes) are
    dropped on validation.
    """

    model_config = ConfigDict(extra="ignore")

    selector: str
    label: str = ""
    type: str = "text"
    options: list[str] | None = None

    @field_validator("label", mode="before")
    @classmethod
    def _label_not_null(cls, v: Any) -> Any:
        return "" if v is None else v


class Confidence(str, Enum):
    """How sure the analyzer is about a suggested value."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FieldAnswer(BaseModel):
    """A field plus the value the analyzer suggests for it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    selector: str
    label: str = ""
    suggested_value: str | None = Field(
        default=None,
        validation_alias=AliasChoices("suggested_value", "suggestedValue"),
    )
    confidence: Confidence = Confidence.MEDIUM
    note: str | None = None
    type: str = "text"
    options: list[str] | None = None

    @field_validator("label", mode="before")
    @classmethod
    def _label_not_null(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("suggested_value", mode="before")
    @classmethod
    def _stringify_value(cls, v: Any) -> str | None:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, bool):
            return "Yes" if v else "No"
        if isinstance(v, list):
            return ", ".join(str(item) for item in v)
        return str(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> Any:
        if isinstance(v, Confidence):
            return v
        if isinstance(v, str) and v.lower() in {c.value for c in Confidence}:
            return v.lower()
        return Confidence.MEDIUM

    @property
    def has_value(self) -> bool:
        """True when there is something worth writing into the page."""
        return self.suggested_value is not None and self.suggested_value.strip() != ""

    def to_shape(self) -> FieldShape:
        """Strip runtime-only attributes."""
        return FieldShape(
            selector=self.selector,
            label=self.label,
            type=self.type,
            options=self.options,
        )


# ============================================================================
# Fill results
# ============================================================================


class FillStatus(str, Enum):
    """Outcome of writing one field."""

    FILLED = "filled"
    NOT_FOUND = "not_found"
    ERROR = "error"


class FieldFillResult(BaseModel):
    """Per-field outcome reported by the executor."""

    selector: str
    label: str = ""
    status: FillStatus


class FillAssignment(BaseModel):
    """One value to write into the page."""

    selector: str
    value: str
    label: str = ""


class FillReport(BaseModel):
    """Aggregate result of one fill pass."""

    filled_count: int = 0
    total_fields: int = 0
    field_results: list[FieldFillResult] = Field(default_factory=list)

    @property
    def failed_results(self) -> list[FieldFillResult]:
        return [r for r in self.field_results if r.status != FillStatus.FILLED]


class PreviousAttempt(BaseModel):
    """Context handed back to the analyzer when the user asks for a retry."""

    attempt_number: int = Field(ge=1)
    field_results: list[FieldFillResult] = Field(default_factory=list)
    user_feedback: str = ""


class AnalysisResult(BaseModel):
    """Output of a full HTML analysis: answers plus the shape to cache."""

    fields: list[FieldAnswer] = Field(default_factory=list)
    cacheable_shape: list[FieldShape] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_shape(self) -> "AnalysisResult":
        if not self.cacheable_shape and self.fields:
            self.cacheable_shape = [f.to_shape() for f in self.fields]
        return self


# ============================================================================
# Cache entries
# ============================================================================


class CachedTemplate(BaseModel):
    """Persisted form layout for one ATS platform page type.

    Serialized with camelCase keys (createdAt, failCount).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: str
    fields: list[FieldShape] = Field(default_factory=list)
    created_at: datetime
    fail_count: int = Field(default=0, ge=0)


# ============================================================================
# Candidate data
# ============================================================================


class CandidateProfile(BaseModel):
    """Candidate data used to generate field values."""

    first_name: str
    last_name: str
    email: str
    phone: str = ""
    phone_country_code: str = "+44"
    address_line_1: str | None = None
    address_line_2: str | None = None
    city: str | None = None
    county_state: str | None = None
    country: str = "United Kingdom"
    postal_code: str | None = None
    linkedin_url: str | None = None
    github_url: str | None = None
    portfolio_url: str | None = None
    current_title: str | None = None
    summary: str | None = None
    skills: list[str] = Field(default_factory=list)
    resume_text: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class JobContext(BaseModel):
    """The vacancy being applied to."""

    job_description: str = ""
    cover_letter: str | None = None
