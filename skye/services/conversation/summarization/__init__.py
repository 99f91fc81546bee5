"""Summarization service package."""

from .prompt_builder import SummaryPrompt, build_summarization_prompt
from .scheduler import SummarizationScheduler
from .state import SummaryStore
from .summarizer import ChatSummarizer

__all__ = [
    "ChatSummarizer",
    "SummarizationScheduler",
    "SummaryPrompt",
    "SummaryStore",
    "build_summarization_prompt",
]
