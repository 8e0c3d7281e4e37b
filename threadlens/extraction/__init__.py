"""
Participant and message extraction.

This package provides:
- Mode selection between pattern-based and model-based parsing
- Regex grammars for email, chat and "Name: message" transcripts
- Model-based extraction over the language model backend
"""

from threadlens.extraction.base import ExtractionResult, link_messages_to_participants
from threadlens.extraction.mode_selector import ModeDecision, ModeSelector
from threadlens.extraction.model_engine import ModelExtractionEngine
from threadlens.extraction.regex_engine import RegexExtractionEngine

__all__ = [
    "ExtractionResult",
    "link_messages_to_participants",
    "ModeDecision",
    "ModeSelector",
    "ModelExtractionEngine",
    "RegexExtractionEngine",
]
