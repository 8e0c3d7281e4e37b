"""
Regex-based participant and message extraction.

Dispatches on source type to an email, chat or generic line grammar.
Never raises on malformed input: a grammar that yields no messages
falls back to the generic grammar, and then to an empty result.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from threadlens.extraction.base import ExtractionResult, ParticipantRegistry
from threadlens.extraction.grammars import (
    CHAT_LINE_PATTERN,
    CHAT_SOURCES,
    EMAIL_ADDRESS_PATTERN,
    EMAIL_DISPLAY_NAME_PATTERN,
    EMAIL_HEADER_PATTERN,
    EMAIL_SEPARATOR_PATTERN,
    EMAIL_SOURCES,
    QUOTE_ATTRIBUTION_PATTERN,
    SIMPLE_LINE_PATTERN,
)
from threadlens.models.conversation import Message, Participant
from threadlens.utils.json_utils import parse_timestamp

logger = logging.getLogger(__name__)

SIGNATURE_SEPARATOR = "--"
CHAT_TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_address_list(value: str) -> list[tuple[Optional[str], Optional[str]]]:
    """
    Split an address header into (name, email) pairs.

    Args:
        value: Header value, e.g. 'Jane Doe <jane@x.com>, bob@y.com'

    Returns:
        List of (display name, email) tuples; either may be None.
    """
    pairs: list[tuple[Optional[str], Optional[str]]] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue

        match = EMAIL_DISPLAY_NAME_PATTERN.match(part)
        if match:
            name = match.group(1).strip() or None
            pairs.append((name, match.group(2).strip()))
            continue

        address = EMAIL_ADDRESS_PATTERN.search(part)
        if address:
            pairs.append((None, address.group(0)))
        else:
            pairs.append((part, None))
    return pairs


def clean_email_body(lines: list[str]) -> str:
    """
    Remove quoted text and signatures from an email body.

    Quoted lines (starting with '>') and 'On ... wrote:' attribution
    lines are dropped; content is cut at a standalone '--' line.
    """
    cleaned: list[str] = []
    for line in lines:
        stripped = line.strip()
        if stripped == SIGNATURE_SEPARATOR and cleaned:
            break
        if stripped.startswith(">") or QUOTE_ATTRIBUTION_PATTERN.match(stripped):
            continue
        cleaned.append(line.rstrip())
    return "\n".join(cleaned).strip()


def parse_email_date(value: str) -> Optional[datetime]:
    """Parse an email Date header (RFC 2822, then ISO 8601)."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return parse_timestamp(value)
    if parsed is None:
        return parse_timestamp(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_chat_time(value: str) -> Optional[time]:
    """Parse a chat clock time such as '10:30 AM' or '14:05'."""
    normalized = " ".join(value.upper().split())
    for fmt in CHAT_TIME_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).time()
        except ValueError:
            continue
    return None


def fill_missing_dates(dates: list[Optional[datetime]], base_time: datetime) -> list[datetime]:
    """
    Give undated messages a time that keeps their place in the thread.

    An undated message is placed one minute after the message before it.
    Undated messages at the start of a thread are placed one minute apart
    before the first dated message. Only a thread with no dates at all
    falls back to the base time plus one minute per message.
    """
    first_dated = next((i for i, value in enumerate(dates) if value is not None), None)
    resolved: list[datetime] = []
    for i, value in enumerate(dates):
        if value is not None:
            resolved.append(value)
        elif resolved:
            resolved.append(resolved[-1] + timedelta(minutes=1))
        elif first_dated is not None:
            resolved.append(dates[first_dated] - timedelta(minutes=first_dated - i))
        else:
            resolved.append(base_time + timedelta(minutes=i + 1))
    return resolved


class RegexExtractionEngine:
    """
    Extracts participants and messages with source-specific grammars.

    Message IDs are msg1, msg2, ... in extraction order. Timestamps
    never run backwards through a transcript: chat clock times roll over
    to the next day at midnight, undated emails are placed next to their
    dated neighbours, and text with no times at all gets the base time
    plus one minute per message.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """
        Initialize the engine.

        Args:
            clock: Source of the base time for synthetic timestamps
        """
        self._clock = clock

    def extract(self, text: str, source_type: str = "simple") -> ExtractionResult:
        """
        Extract participants and messages.

        Args:
            text: Raw conversation text
            source_type: Declared source type (email, slack, teams, sms, ...)

        Returns:
            ExtractionResult, empty if nothing could be recognized.
        """
        if not text or not text.strip():
            return ExtractionResult(grammar="none")

        source = (source_type or "").strip().lower()
        base_time = self._clock()

        if source in EMAIL_SOURCES:
            result = self._extract_email(text, base_time)
        elif source in CHAT_SOURCES:
            result = self._extract_chat(text, base_time)
        else:
            result = self._extract_simple(text, base_time)

        if result.is_empty and result.grammar != "simple":
            logger.info(
                f"{result.grammar} grammar found no messages for source "
                f"'{source_type}', falling back to the line grammar"
            )
            result = self._extract_simple(text, base_time)

        if result.is_empty:
            logger.warning(f"No messages recognized in {len(text)} characters of text")

        return result

    def extract_participants(self, text: str, source_type: str = "simple") -> list[Participant]:
        """Extract only the participants."""
        return self.extract(text, source_type).participants

    def extract_messages(self, text: str, source_type: str = "simple") -> list[Message]:
        """Extract only the messages."""
        return self.extract(text, source_type).messages

    def _extract_email(self, text: str, base_time: datetime) -> ExtractionResult:
        """Email grammar: blocks start at 'From:' lines."""
        registry = ParticipantRegistry()
        messages: list[Message] = []
        dates: list[Optional[datetime]] = []

        starts = [m.start() for m in EMAIL_SEPARATOR_PATTERN.finditer(text)]
        blocks = [text[s:e] for s, e in zip(starts, starts[1:] + [len(text)])]

        for block in blocks:
            lines = block.splitlines()
            headers: dict[str, str] = {}
            body_start = 0
            for i, line in enumerate(lines):
                header = EMAIL_HEADER_PATTERN.match(line.strip())
                if header and header.group(1).lower() not in headers:
                    headers[header.group(1).lower()] = header.group(2).strip()
                    body_start = i + 1
                elif not line.strip() and i == body_start:
                    # Blank separator line directly after the headers
                    body_start = i + 1
                    break
                else:
                    break

            senders = parse_address_list(headers.get("from", ""))
            if not senders:
                continue
            sender_name, sender_email = senders[0]
            sender = registry.add(sender_name, sender_email)
            for key in ("to", "cc"):
                for name, email in parse_address_list(headers.get(key, "")):
                    registry.add(name, email)

            content = clean_email_body(lines[body_start:])
            if not content:
                continue

            index = len(messages) + 1
            metadata = {}
            if "subject" in headers:
                metadata["subject"] = headers["subject"]

            messages.append(
                Message(
                    id=f"msg{index}",
                    participant_id=sender.email or sender.name,
                    timestamp=base_time,
                    content=content,
                    metadata=metadata,
                )
            )
            dates.append(parse_email_date(headers["date"]) if "date" in headers else None)

        for message, timestamp in zip(messages, fill_missing_dates(dates, base_time)):
            message.timestamp = timestamp

        return ExtractionResult(
            participants=registry.participants, messages=messages, grammar="email"
        )

    def _extract_chat(self, text: str, base_time: datetime) -> ExtractionResult:
        """Chat grammar: 'name [HH:MM]: text' lines."""
        registry = ParticipantRegistry()
        messages: list[Message] = []
        day = base_time.date()
        previous: Optional[datetime] = None

        for line in text.splitlines():
            match = CHAT_LINE_PATTERN.match(line.strip())
            if not match:
                if messages and line.strip():
                    messages[-1].content += "\n" + line.strip()
                continue

            name, clock_time, content = match.groups()
            sender = registry.add(name)
            index = len(messages) + 1
            parsed_time = parse_chat_time(clock_time)
            if parsed_time is not None:
                timestamp = datetime.combine(day, parsed_time, tzinfo=base_time.tzinfo)
                if previous is not None and timestamp < previous:
                    # Clock went backwards: the chat crossed midnight
                    day += timedelta(days=1)
                    timestamp += timedelta(days=1)
            elif previous is not None:
                timestamp = previous + timedelta(minutes=1)
            else:
                timestamp = base_time + timedelta(minutes=index)
            previous = timestamp

            messages.append(
                Message(
                    id=f"msg{index}",
                    participant_id=sender.name,
                    timestamp=timestamp,
                    content=content.strip(),
                    metadata={"raw_time": clock_time},
                )
            )

        return ExtractionResult(
            participants=registry.participants, messages=messages, grammar="chat"
        )

    def _extract_simple(self, text: str, base_time: datetime) -> ExtractionResult:
        """Generic grammar: 'Name: text' lines."""
        registry = ParticipantRegistry()
        messages: list[Message] = []

        for line in text.splitlines():
            match = SIMPLE_LINE_PATTERN.match(line.strip())
            if not match:
                if messages and line.strip():
                    messages[-1].content += "\n" + line.strip()
                continue

            name, content = match.groups()
            sender = registry.add(name)
            index = len(messages) + 1
            messages.append(
                Message(
                    id=f"msg{index}",
                    participant_id=sender.name,
                    timestamp=base_time + timedelta(minutes=index),
                    content=content.strip(),
                )
            )

        return ExtractionResult(
            participants=registry.participants, messages=messages, grammar="simple"
        )
