"""
ThreadLens conversation analysis

Turns raw email threads, chat logs and transcripts into structured
capsules, analyzes them for unanswered questions, tension and
misalignment, and classifies the findings against a configurable
taxonomy.
"""

__version__ = "0.1.0"
__author__ = "ThreadLens Team"

from threadlens.parser import ConversationParser
from threadlens.pipeline import ConversationPipeline, InsightSink, PipelineResult
from threadlens.insight_transformer import InsightTransformer

__all__ = [
    "ConversationParser",
    "ConversationPipeline",
    "InsightSink",
    "InsightTransformer",
    "PipelineResult",
]
