"""
Pattern catalog for word/phrase based analysis.

Loads named categories of trigger words from a JSON resource and
matches them against text on word boundaries. The loaded catalog is
cached for a fixed interval; a reload builds a complete new snapshot
and swaps it in under a lock, so readers always see either the old or
the new catalog.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from threadlens.utils.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS_FILE = Path(__file__).resolve().parent.parent / "data" / "analysis_patterns.json"
DEFAULT_CACHE_TTL = 300.0


class PatternCategory(str, Enum):
    """Well-known catalog categories."""

    QUESTION = "QuestionIndicators"
    FRUSTRATION = "FrustrationIndicators"
    URGENCY = "UrgencyIndicators"
    REPETITION = "RepetitionIndicators"
    ESCALATION = "EscalationIndicators"
    DISMISSIVE = "DismissiveIndicators"
    NEGATIVE_TONE = "NegativeToneIndicators"
    ACTION_REQUEST = "ActionRequestIndicators"
    COMMITMENT = "CommitmentIndicators"
    DECISION = "DecisionIndicators"
    DISAGREEMENT = "DisagreementIndicators"
    CONFUSION = "ConfusionIndicators"
    POSITIVE = "PositiveIndicators"
    ASSUMPTION = "AssumptionIndicators"


# Embedded catalog used when the resource is missing or malformed
DEFAULT_PATTERNS: dict[str, list[str]] = {
    PatternCategory.QUESTION.value: [
        "what", "when", "where", "who", "why", "how", "can", "could", "would",
        "should", "is", "are", "do", "does", "did", "will", "have", "has",
    ],
    PatternCategory.FRUSTRATION.value: [
        "frustrated", "annoyed", "disappointed", "upset", "angry", "concerned",
        "worried", "confused", "ridiculous", "unacceptable",
    ],
    PatternCategory.URGENCY.value: [
        "asap", "urgent", "urgently", "immediately", "critical", "emergency",
        "now", "right away", "as soon as possible",
    ],
    PatternCategory.REPETITION.value: [
        "again", "already asked", "still waiting", "follow up", "following up",
        "reminder", "third time", "second time", "once more",
    ],
    PatternCategory.ESCALATION.value: [
        "escalate", "manager", "supervisor", "legal", "lawyer", "attorney",
        "complaint", "unacceptable", "last time",
    ],
    PatternCategory.DISMISSIVE.value: [
        "whatever", "fine", "sure", "okay then", "if you say so",
        "not my problem", "don't care",
    ],
    PatternCategory.NEGATIVE_TONE.value: [
        "never", "always", "worst", "terrible", "horrible", "awful", "hate",
        "stupid", "incompetent",
    ],
    PatternCategory.ACTION_REQUEST.value: [
        "can you", "could you", "please", "would you", "will you",
        "need you to", "should", "must", "have to",
    ],
    PatternCategory.COMMITMENT.value: [
        "I will", "I'll", "we will", "we'll", "I can", "I am going to",
        "I'm going to", "let me",
    ],
    PatternCategory.DECISION.value: [
        "decided", "agreed", "confirmed", "approved", "let's go with",
        "we'll use", "final decision", "settled on",
    ],
    PatternCategory.DISAGREEMENT.value: [
        "disagree", "don't think", "not sure about that", "I thought", "but I",
        "actually", "incorrect", "wrong", "that's not",
    ],
    PatternCategory.CONFUSION.value: [
        "confused", "don't understand", "unclear", "what do you mean",
        "not following", "lost me", "clarify",
    ],
    PatternCategory.POSITIVE.value: [
        "great", "excellent", "perfect", "thank", "thanks", "appreciate",
        "happy", "glad", "awesome", "wonderful", "good job",
    ],
    PatternCategory.ASSUMPTION.value: [
        "I thought", "I assumed", "I was under the impression",
        "my understanding was", "I believed", "I expected",
    ],
}

_catalog_adapter = TypeAdapter(dict[str, list[str]])


def contains_word(text: str, phrase: str) -> bool:
    """
    Check whether a phrase occurs in text on word boundaries.

    Every occurrence is considered; one is accepted when the characters
    immediately before and after it are not alphanumeric. Matching is
    case-insensitive.

    Args:
        text: Text to search
        phrase: Word or phrase to find

    Returns:
        True if the phrase occurs as a whole word or phrase.
    """
    if not text or not phrase:
        return False

    haystack = text.lower()
    needle = phrase.lower()
    start = haystack.find(needle)
    while start >= 0:
        end = start + len(needle)
        before_ok = start == 0 or not haystack[start - 1].isalnum()
        after_ok = end >= len(haystack) or not haystack[end].isalnum()
        if before_ok and after_ok:
            return True
        start = haystack.find(needle, start + 1)
    return False


def _normalize_catalog(raw: dict[str, list[str]]) -> dict[str, tuple[str, ...]]:
    """Lowercase keys and words, dropping blanks and duplicates, keeping order."""
    catalog: dict[str, tuple[str, ...]] = {}
    for category, words in raw.items():
        seen: dict[str, None] = {}
        for word in words:
            cleaned = word.strip().lower()
            if cleaned:
                seen.setdefault(cleaned, None)
        catalog[category.strip().lower()] = tuple(seen)
    return catalog


@dataclass(frozen=True)
class CatalogSnapshot:
    """An immutable, fully loaded catalog."""

    patterns: dict[str, tuple[str, ...]]
    category_names: tuple[str, ...]
    loaded_at: float
    from_defaults: bool


class PatternCatalog:
    """
    Cached catalog of trigger words per category.

    The catalog is passed by reference to the components that need it.
    Reads are lock-free: they take the current snapshot reference.
    """

    def __init__(
        self,
        patterns_file: Optional[Path | str] = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the catalog.

        Args:
            patterns_file: JSON resource mapping category -> word list.
                           Defaults to the packaged resource.
            cache_ttl: Seconds before the catalog is reloaded
            clock: Monotonic clock, injectable for tests
        """
        self.patterns_file = Path(patterns_file) if patterns_file else DEFAULT_PATTERNS_FILE
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[CatalogSnapshot] = None

    @classmethod
    def from_settings(cls) -> "PatternCatalog":
        """Create a catalog from application settings."""
        settings = get_settings()
        return cls(
            patterns_file=settings.patterns.file,
            cache_ttl=settings.patterns.cache_ttl_seconds,
        )

    @property
    def is_stale(self) -> bool:
        """True if nothing is loaded yet or the cache has expired."""
        snapshot = self._snapshot
        return snapshot is None or self._clock() - snapshot.loaded_at >= self.cache_ttl

    @property
    def using_defaults(self) -> bool:
        """True if the embedded default catalog is in use."""
        return self._current().from_defaults

    def _current(self) -> CatalogSnapshot:
        snapshot = self._snapshot
        if snapshot is not None and self._clock() - snapshot.loaded_at < self.cache_ttl:
            return snapshot

        with self._lock:
            # Another thread may have reloaded while we waited
            snapshot = self._snapshot
            if snapshot is None or self._clock() - snapshot.loaded_at >= self.cache_ttl:
                snapshot = self._load()
                self._snapshot = snapshot
            return snapshot

    def reload(self) -> None:
        """Force a reload from the resource."""
        with self._lock:
            self._snapshot = self._load()

    def _load(self) -> CatalogSnapshot:
        """Build a complete snapshot from the resource or the defaults."""
        raw: Optional[dict[str, list[str]]] = None

        if not self.patterns_file.exists():
            logger.warning(
                f"Pattern resource not found at {self.patterns_file}, using defaults"
            )
        else:
            try:
                raw = _catalog_adapter.validate_json(self.patterns_file.read_bytes())
            except (OSError, PydanticValidationError) as e:
                logger.warning(
                    f"Failed to load pattern resource {self.patterns_file}: {e}; "
                    "using defaults"
                )
            else:
                if not raw:
                    logger.warning(
                        f"Pattern resource {self.patterns_file} is empty, using defaults"
                    )
                    raw = None

        from_defaults = raw is None
        source = DEFAULT_PATTERNS if from_defaults else raw
        patterns = _normalize_catalog(source)
        logger.debug(
            f"Loaded {len(patterns)} pattern categories"
            f"{' (defaults)' if from_defaults else ''}"
        )
        return CatalogSnapshot(
            patterns=patterns,
            category_names=tuple(source.keys()),
            loaded_at=self._clock(),
            from_defaults=from_defaults,
        )

    def categories(self) -> list[str]:
        """Category names as written in the resource."""
        return list(self._current().category_names)

    def get_patterns(self, category: str | PatternCategory) -> frozenset[str]:
        """
        Get all trigger words for a category.

        Args:
            category: Category name (case-insensitive)

        Returns:
            Lowercased words; empty for unknown categories.
        """
        return frozenset(self._words(category))

    def _words(self, category: str | PatternCategory) -> tuple[str, ...]:
        name = category.value if isinstance(category, PatternCategory) else category
        return self._current().patterns.get(name.lower(), ())

    def contains_pattern(self, text: str, category: str | PatternCategory) -> bool:
        """Check whether any word of the category occurs in text."""
        if not text:
            return False
        return any(contains_word(text, word) for word in self._words(category))

    def find_matching_patterns(
        self,
        text: str,
        category: str | PatternCategory,
        limit: Optional[int] = None,
    ) -> list[str]:
        """
        List the category words that occur in text.

        Args:
            text: Text to search
            category: Category name
            limit: Maximum number of matches to return

        Returns:
            Matching words in catalog order.
        """
        if not text:
            return []

        matches = []
        for word in self._words(category):
            if contains_word(text, word):
                matches.append(word)
                if limit is not None and len(matches) >= limit:
                    break
        return matches

    def starts_with_question_word(self, text: str) -> bool:
        """Check whether text begins with a question indicator word."""
        lowered = text.strip().lower()
        if not lowered:
            return False
        for word in self._words(PatternCategory.QUESTION):
            if lowered == word or lowered.startswith((word + " ", word + ",", word + "?")):
                return True
        return False
