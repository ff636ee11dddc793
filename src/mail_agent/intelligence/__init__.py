"""Mail analysis: local scoring engine and LLM-backed classification."""

from .classifier import LLMClassifier
from .engine import TextAnalysisEngine
from .keywords import extract_keywords
from .llm import ChatCompletionClient, LLMClient, LLMError, QuotaExceededError
from .priority import calculate_priority
from .service import MailAnalysisService
from .topics import classify_topics_basic, hour_distribution

__all__ = [
    "ChatCompletionClient",
    "LLMClassifier",
    "LLMClient",
    "LLMError",
    "MailAnalysisService",
    "QuotaExceededError",
    "TextAnalysisEngine",
    "calculate_priority",
    "classify_topics_basic",
    "extract_keywords",
    "hour_distribution",
]
