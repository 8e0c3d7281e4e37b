"""
Pytest configuration and shared fixtures for the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from threadlens.model_client import ModelBackend
from threadlens.models.conversation import Message, Participant, ThreadCapsule
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.patterns import PatternCatalog
from threadlens.utils.config import get_settings

FIXED_NOW = datetime(2026, 1, 6, 12, 0, 0, tzinfo=timezone.utc)

PARTICIPANT_NAMES = {"p1": "Alice", "p2": "Bob", "p3": "Carol"}


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used by every injected clock."""
    return FIXED_NOW


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns the reference time."""
    return lambda: FIXED_NOW


# =============================================================================
# Pattern Fixtures
# =============================================================================


@pytest.fixture
def catalog() -> PatternCatalog:
    """Pattern catalog backed by the packaged resource."""
    return PatternCatalog()


@pytest.fixture
def linguistic_analyzer(catalog: PatternCatalog) -> LinguisticAnalyzer:
    """Pattern-only linguistic analyzer."""
    return LinguisticAnalyzer(catalog)


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def capsule_factory() -> Callable[..., ThreadCapsule]:
    """Builder for capsules from (participant ID, text) turns."""
    return build_capsule


@pytest.fixture
def simple_conversation_text() -> str:
    """A short 'Name: message' transcript."""
    return (
        "Alice: Hi Bob, can you send the invoice for order 1234?\n"
        "Bob: Sure, I will send it this afternoon.\n"
        "Alice: Thanks, that works for me."
    )


@pytest.fixture
def email_thread_text() -> str:
    """A two-message email thread with a signature and a quoted reply."""
    return (
        "From: Alice Smith <alice@acme.com>\n"
        "To: Bob Jones <bob@vendor.com>\n"
        "Subject: Invoice\n"
        "Date: Mon, 05 Jan 2026 09:00:00 +0000\n"
        "\n"
        "Hi Bob, when will the invoice arrive?\n"
        "\n"
        "--\n"
        "Alice Smith\n"
        "Acme Corp\n"
        "From: Bob Jones <bob@vendor.com>\n"
        "To: Alice Smith <alice@acme.com>\n"
        "Date: Mon, 05 Jan 2026 11:00:00 +0000\n"
        "\n"
        "It will arrive tomorrow.\n"
        "On Mon, Jan 5, 2026 at 9:00 AM Alice Smith wrote:\n"
        "> Hi Bob, when will the invoice arrive?\n"
    )


@pytest.fixture
def chat_log_text() -> str:
    """A timestamped chat log."""
    return (
        "alice [10:30 AM]: Morning! Is the deploy still on for today?\n"
        "bob [10:32 AM]: Yes, we agreed on 3pm.\n"
        "alice [10:35 AM]: Great, thanks."
    )


# =============================================================================
# Model Backend Fixtures
# =============================================================================


@pytest.fixture
def mock_backend() -> MagicMock:
    """Model backend whose calls return empty responses."""
    backend = MagicMock(spec=ModelBackend)
    backend.provider = "mock"
    backend.complete = AsyncMock(return_value="")
    backend.complete_structured = AsyncMock(return_value="{}")
    return backend


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> Iterator[dict[str, str]]:
    """Set up mock environment variables and reset the settings cache."""
    env_vars = {
        "MODEL_PROVIDER": "anthropic",
        "MODEL_API_KEY": "test_model_key",
        "MODEL_API_URL": "https://llm.test/v1",
        "DEFAULT_MODE": "Auto",
        "ADVANCED_THRESHOLD": "0.6",
        "DEFAULT_INDUSTRY": "default",
        "LOG_LEVEL": "DEBUG",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    yield env_vars
    get_settings.cache_clear()


@pytest.fixture
def no_model_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Environment without model backend credentials."""
    monkeypatch.delenv("MODEL_API_KEY", raising=False)
    monkeypatch.delenv("MODEL_PROVIDER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Helper Functions
# =============================================================================


def build_capsule(
    turns: list[tuple[str, str]],
    start: Optional[datetime] = None,
    minutes_apart: int = 5,
    names: Optional[dict[str, str]] = None,
    emails: Optional[dict[str, str]] = None,
    source_type: str = "simple",
) -> ThreadCapsule:
    """
    Build a capsule with linked participants and timed messages.

    Args:
        turns: (participant ID, message text) pairs in order
        start: Time of the first message (one day before the reference time)
        minutes_apart: Gap between consecutive messages
        names: Display name overrides per participant ID
        emails: Email addresses per participant ID
        source_type: Declared source type

    Returns:
        ThreadCapsule with messages msg1, msg2, ...
    """
    start = start or FIXED_NOW - timedelta(days=1)
    names = {**PARTICIPANT_NAMES, **(names or {})}
    emails = emails or {}

    participants: list[Participant] = []
    for participant_id, _ in turns:
        if not any(p.id == participant_id for p in participants):
            participants.append(
                Participant(
                    id=participant_id,
                    name=names.get(participant_id, participant_id),
                    email=emails.get(participant_id),
                )
            )

    messages = [
        Message(
            id=f"msg{i + 1}",
            participant_id=participant_id,
            timestamp=start + timedelta(minutes=minutes_apart * i),
            content=content,
        )
        for i, (participant_id, content) in enumerate(turns)
    ]
    return ThreadCapsule(source_type=source_type, participants=participants, messages=messages)
