"""
Capsule summarizer.

Fills a parsed capsule with timeline metadata, a short summary and a
handful of key points. Summaries come from the model backend when one
is used for the capsule, with a deterministic basic summary otherwise.
"""

import asyncio
import json
import logging
from collections import Counter
from statistics import mean, median
from typing import Optional

from threadlens.model_client import ModelBackend
from threadlens.models.conversation import SentimentLabel, ThreadCapsule, UrgencyLevel
from threadlens.semantic.prompts import build_key_points_prompt, build_summary_prompt
from threadlens.utils.exceptions import ThreadLensError
from threadlens.utils.json_utils import parse_json_response

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 5
SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0


class CapsuleSummarizer:
    """
    Generates metadata, summary and key points for a capsule.

    Example:
        summarizer = CapsuleSummarizer(backend)
        await summarizer.summarize(capsule, use_model=True)
    """

    def __init__(
        self,
        backend: Optional[ModelBackend] = None,
        model_timeout: float = 60.0,
    ) -> None:
        """
        Initialize the summarizer.

        Args:
            backend: Optional model backend for model summaries
            model_timeout: Deadline for a single model call in seconds
        """
        self.backend = backend
        self.model_timeout = model_timeout

    async def summarize(self, capsule: ThreadCapsule, use_model: bool = False) -> None:
        """
        Populate metadata, summary and key points in place.

        Args:
            capsule: Parsed capsule
            use_model: Ask the backend for the summary and key points
        """
        self.calculate_metadata(capsule)

        if use_model and self.backend is not None and capsule.messages:
            capsule.summary = await self.model_summary(capsule)
            capsule.key_points = await self.model_key_points(capsule)
        else:
            capsule.summary = self.basic_summary(capsule)
            capsule.key_points = self.basic_key_points(capsule)

    def calculate_metadata(self, capsule: ThreadCapsule) -> None:
        """
        Record the conversation timeline in the capsule metadata.

        Adds start/end dates, duration, counts, response times,
        per-participant activity and the thread initiator.
        """
        messages = capsule.messages_by_time()
        if not messages:
            return

        first, last = messages[0], messages[-1]
        metadata = capsule.metadata
        metadata["start_date"] = first.timestamp.isoformat()
        metadata["end_date"] = last.timestamp.isoformat()
        metadata["duration_days"] = (
            f"{(last.timestamp - first.timestamp).total_seconds() / SECONDS_PER_DAY:.2f}"
        )
        metadata["message_count"] = str(len(messages))
        metadata["participant_count"] = str(len(capsule.participants))

        response_hours = [
            (current.timestamp - previous.timestamp).total_seconds() / SECONDS_PER_HOUR
            for previous, current in zip(messages, messages[1:])
            if current.participant_id != previous.participant_id
        ]
        if response_hours:
            metadata["average_response_time_hours"] = f"{mean(response_hours):.2f}"
            metadata["median_response_time_hours"] = f"{median(response_hours):.2f}"

        activity = Counter(m.participant_id for m in messages)
        metadata["participant_activity"] = json.dumps(
            {capsule.participant_name(pid): count for pid, count in activity.items()}
        )
        metadata["initiator"] = first.participant_id

    @staticmethod
    def _question_count(capsule: ThreadCapsule) -> int:
        return sum(
            len(m.linguistic_features.questions)
            for m in capsule.messages
            if m.linguistic_features is not None
        )

    def basic_summary(self, capsule: ThreadCapsule) -> str:
        """One- to three-sentence summary built from counts."""
        summary = (
            f"Conversation between {len(capsule.participants)} participant(s) "
            f"with {len(capsule.messages)} message(s)."
        )

        questions = self._question_count(capsule)
        if questions:
            summary += f" Contains {questions} question(s)."

        urgent = sum(
            1
            for m in capsule.messages
            if m.linguistic_features is not None
            and m.linguistic_features.urgency == UrgencyLevel.HIGH
        )
        if urgent:
            summary += f" {urgent} message(s) marked as urgent."

        return summary

    def basic_key_points(self, capsule: ThreadCapsule) -> list[str]:
        """
        Key points derived from the timeline and message features.

        Returns:
            Up to five short statements.
        """
        messages = capsule.messages_by_time()
        points: list[str] = []
        if not messages:
            return points

        if len(messages) > 1:
            elapsed = (messages[-1].timestamp - messages[0].timestamp).total_seconds()
            if elapsed > SECONDS_PER_DAY:
                points.append(f"Conversation spanned {elapsed / SECONDS_PER_DAY:.1f} days")
            elif elapsed > SECONDS_PER_HOUR:
                points.append(f"Conversation lasted {elapsed / SECONDS_PER_HOUR:.1f} hours")

        participant_id, count = Counter(m.participant_id for m in messages).most_common(1)[0]
        participant = capsule.get_participant(participant_id)
        if participant is not None:
            points.append(f"Most active: {participant.name} ({count} messages)")

        questions = self._question_count(capsule)
        if questions:
            points.append(f"{questions} question(s) asked")

        sentiments = Counter(
            m.linguistic_features.sentiment
            for m in messages
            if m.linguistic_features is not None
        )
        if sentiments:
            label, _ = sentiments.most_common(1)[0]
            if label != SentimentLabel.NEUTRAL:
                points.append(f"Overall tone: {label.value.lower()}")

        for message in messages:
            if message.linguistic_features and message.linguistic_features.questions:
                first_question = message.linguistic_features.questions[0]
                points.append(
                    f"Opening question from {capsule.participant_name(message.participant_id)}: "
                    f"{first_question}"
                )
                break

        return points[:MAX_KEY_POINTS]

    async def _ask(self, prompt: str, structured: bool) -> Optional[str]:
        try:
            call = (
                self.backend.complete_structured(prompt)
                if structured
                else self.backend.complete(prompt)
            )
            return await asyncio.wait_for(call, timeout=self.model_timeout)
        except (ThreadLensError, asyncio.TimeoutError) as e:
            logger.warning(f"Model summary call failed, using basic summary: {e}")
            return None

    async def model_summary(self, capsule: ThreadCapsule) -> str:
        """Narrative summary from the model, or the basic summary on failure."""
        response = await self._ask(build_summary_prompt(capsule), structured=False)
        text = (response or "").strip()
        return text or self.basic_summary(capsule)

    async def model_key_points(self, capsule: ThreadCapsule) -> list[str]:
        """Key points from the model, or the basic key points on failure."""
        response = await self._ask(build_key_points_prompt(capsule), structured=True)
        if response is None:
            return self.basic_key_points(capsule)

        try:
            data = parse_json_response(response)
        except ValueError as e:
            logger.warning(f"Could not parse key points response: {e}")
            return self.basic_key_points(capsule)

        if not isinstance(data, list):
            return self.basic_key_points(capsule)
        points = [str(p).strip() for p in data if str(p).strip()]
        return points[:MAX_KEY_POINTS] or self.basic_key_points(capsule)
