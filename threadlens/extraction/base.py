"""
Shared extraction types.

Both extraction engines produce an ExtractionResult: participants with
sequential IDs and messages whose participant_id holds the raw sender
token until link_messages_to_participants resolves it.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from threadlens.models.conversation import Message, Participant

logger = logging.getLogger(__name__)


class ExtractionResult(BaseModel):
    """Participants and messages extracted from raw text."""

    participants: list[Participant] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    grammar: str = Field(default="", description="Grammar or engine that produced it")

    @property
    def is_empty(self) -> bool:
        """True if no messages were extracted."""
        return not self.messages


class ParticipantRegistry:
    """Deduplicates participants by name/email and assigns p1, p2, ... IDs."""

    def __init__(self) -> None:
        self._participants: list[Participant] = []
        self._index: dict[str, Participant] = {}

    def add(self, name: Optional[str], email: Optional[str] = None) -> Participant:
        """
        Register a participant, returning the existing one if known.

        Args:
            name: Display name (falls back to the email)
            email: Email address

        Returns:
            The registered participant.
        """
        name = (name or "").strip()
        email = (email or "").strip() or None
        keys = [k.lower() for k in (email, name) if k]
        for key in keys:
            existing = self._index.get(key)
            if existing is not None:
                if email and existing.email is None:
                    existing.email = email
                    self._index[email.lower()] = existing
                return existing

        participant = Participant(
            id=f"p{len(self._participants) + 1}",
            name=name or email or f"Participant {len(self._participants) + 1}",
            email=email,
        )
        self._participants.append(participant)
        for key in keys:
            self._index[key] = participant
        return participant

    @property
    def participants(self) -> list[Participant]:
        """Registered participants in first-appearance order."""
        return list(self._participants)


def link_messages_to_participants(
    participants: list[Participant], messages: list[Message]
) -> list[Participant]:
    """
    Resolve each message's raw sender token to a participant ID.

    Tokens are matched against participant IDs, names and emails,
    case-insensitively. Unresolvable tokens get a new participant so
    every message ends up linked.

    Args:
        participants: Known participants (extended in place)
        messages: Messages to link (updated in place)

    Returns:
        The participant list.
    """
    for message in messages:
        token = message.participant_id
        match = next((p for p in participants if p.matches(token)), None)
        if match is None:
            match = Participant(
                id=f"p{len(participants) + 1}",
                name=token.strip() or f"Participant {len(participants) + 1}",
            )
            participants.append(match)
            logger.debug(f"Created participant {match.id} for unknown sender {token!r}")
        message.participant_id = match.id
    return participants
