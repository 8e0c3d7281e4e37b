"""
Semantic analysis components for parsed conversations.

This package provides:
- Pattern catalog of trigger words per category
- Per-message linguistic features
- Pattern-based and model-based conversation analysis
- Capsule summaries and key points
"""

from threadlens.semantic.analyzer import ConversationAnalysisEngine
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.model_analysis import ModelAnalyzer
from threadlens.semantic.pattern_analysis import PatternAnalyzer
from threadlens.semantic.patterns import PatternCatalog, PatternCategory, contains_word
from threadlens.semantic.summarizer import CapsuleSummarizer

__all__ = [
    "CapsuleSummarizer",
    "ConversationAnalysisEngine",
    "LinguisticAnalyzer",
    "ModelAnalyzer",
    "PatternAnalyzer",
    "PatternCatalog",
    "PatternCategory",
    "contains_word",
]
