"""Natural-language slot extraction and affirmation capabilities."""

from .base import AffirmationClassifier, SlotExtractor
from .llm import LLMClient, LLMError
from .extractor import LLMAffirmationClassifier, LLMSlotExtractor, parse_partial_slots

__all__ = [
    "AffirmationClassifier",
    "LLMAffirmationClassifier",
    "LLMClient",
    "LLMError",
    "LLMSlotExtractor",
    "SlotExtractor",
    "parse_partial_slots",
]
