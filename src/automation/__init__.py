"""Form autofill automation.

This module provides:
- TemplateCache: persistent per-platform form layouts
- AutofillExecutor: writes values into the live page
- AutofillController: extract, fill, verify and retry state machine
"""

from src.automation.controller import (
    AnalysisError,
    AutofillController,
    AutofillError,
    AutofillSession,
    AutofillState,
    ExtractionStrategy,
    InvalidTransitionError,
    NoFormDetectedError,
    VerificationSummary,
)
from src.automation.executor import AutofillExecutor, execute_fill
from src.automation.template_cache import TemplateCache, derive_cache_key

__all__ = [
    # Cache
    "TemplateCache",
    "derive_cache_key",
    # Executor
    "AutofillExecutor",
    "execute_fill",
    # Controller
    "AutofillController",
    "AutofillSession",
    "AutofillState",
    "ExtractionStrategy",
    "VerificationSummary",
    # Errors
    "AutofillError",
    "AnalysisError",
    "InvalidTransitionError",
    "NoFormDetectedError",
]
