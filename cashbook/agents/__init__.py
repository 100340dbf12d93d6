"""AI Agents package."""

from cashbook.agents.statement_agent import (
    StatementRecognitionAgent,
    build_recognition_prompt,
    format_category_options,
)

__all__ = [
    "StatementRecognitionAgent",
    "build_recognition_prompt",
    "format_category_options",
]
