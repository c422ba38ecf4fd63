"""AI agents for form analysis."""

from src.agents.base import BaseAgent
from src.agents.form_analyzer import (
    AnswerGenerationInput,
    AnswerGenerationOutput,
    AnswerGeneratorAgent,
    ClaudeFormAnalyzer,
    FormAnalysisInput,
    FormAnalysisOutput,
    FormAnalyzerAgent,
)

__all__ = [
    # Base
    "BaseAgent",
    # Form analysis
    "FormAnalyzerAgent",
    "FormAnalysisInput",
    "FormAnalysisOutput",
    "AnswerGeneratorAgent",
    "AnswerGenerationInput",
    "AnswerGenerationOutput",
    "ClaudeFormAnalyzer",
]
