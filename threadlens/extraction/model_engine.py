"""
Model-based participant and message extraction.

Asks the language model backend for participants and messages as JSON
and maps the response onto the same shapes the regex engine produces.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from threadlens.extraction.base import ExtractionResult, ParticipantRegistry
from threadlens.model_client import ModelBackend
from threadlens.models.conversation import Message
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.prompts import build_extraction_prompt
from threadlens.utils.json_utils import (
    get_list,
    get_optional_str,
    get_str,
    parse_json_object,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelExtractionEngine:
    """
    Extracts participants and messages with a language model.

    Backend errors propagate to the caller; unparseable responses yield
    an empty result.
    """

    def __init__(
        self,
        backend: ModelBackend,
        linguistic_analyzer: Optional[LinguisticAnalyzer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the engine.

        Args:
            backend: Model backend to call
            linguistic_analyzer: Used for per-message features on request
            clock: Source of the base time for messages without timestamps
        """
        self.backend = backend
        self.linguistic_analyzer = linguistic_analyzer
        self._clock = clock

    async def extract(
        self,
        text: str,
        source_type: str = "simple",
        include_features: bool = False,
    ) -> ExtractionResult:
        """
        Extract participants and messages.

        Args:
            text: Raw conversation text
            source_type: Declared source type
            include_features: Also run model-based linguistic analysis
                              on each message

        Returns:
            ExtractionResult, empty if the response could not be parsed.

        Raises:
            ModelBackendError: If the backend call fails
        """
        response = await self.backend.complete_structured(
            build_extraction_prompt(text, source_type)
        )
        result = self.parse_response(response)

        if include_features and self.linguistic_analyzer is not None and result.messages:
            await self.linguistic_analyzer.enrich_messages_with_model(result.messages)

        return result

    def parse_response(self, response: str) -> ExtractionResult:
        """
        Map an extraction response onto participants and messages.

        Args:
            response: Raw model output

        Returns:
            ExtractionResult; empty on any parse failure.
        """
        try:
            data = parse_json_object(response)
        except ValueError as e:
            logger.warning(f"Could not parse model extraction response: {e}")
            return ExtractionResult(grammar="model")

        registry = ParticipantRegistry()
        aliases: dict[str, str] = {}
        for item in get_list(data, "participants"):
            name = get_str(item, "name")
            email = get_optional_str(item, "email")
            if email is not None and email.lower() in ("null", "none", "n/a"):
                email = None
            if not name and not email:
                continue
            participant = registry.add(name, email)
            identifier = get_str(item, "identifier")
            if identifier:
                aliases[identifier.lower()] = participant.name

        base_time = self._clock()
        messages: list[Message] = []
        for item in get_list(data, "messages"):
            content = get_str(item, "content")
            if not content:
                continue
            sender = get_str(item, "participantIdentifier", "participant", "sender")
            index = len(messages) + 1
            messages.append(
                Message(
                    id=f"msg{index}",
                    participant_id=aliases.get(sender.lower(), sender),
                    timestamp=parse_timestamp(
                        item.get("timestamp"), default=base_time + timedelta(minutes=index)
                    ),
                    content=content,
                )
            )

        logger.debug(
            f"Model extracted {len(registry.participants)} participants, "
            f"{len(messages)} messages"
        )
        return ExtractionResult(
            participants=registry.participants, messages=messages, grammar="model"
        )
