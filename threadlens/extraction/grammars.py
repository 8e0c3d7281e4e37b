"""
Line grammars for recognizing conversation formats.

Shared by the mode selector (format detection) and the regex
extraction engine (splitting text into messages).
"""

import re

EMAIL_HEADER_PATTERN = re.compile(
    r"^(From|To|Cc|Subject|Date):\s*(.+)$", re.MULTILINE | re.IGNORECASE
)
EMAIL_ADDRESS_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
EMAIL_SEPARATOR_PATTERN = re.compile(r"^From:.*$", re.MULTILINE | re.IGNORECASE)
# "Jane Doe <jane@example.com>" or '"Doe, Jane" <jane@example.com>'
EMAIL_DISPLAY_NAME_PATTERN = re.compile(r'^\s*"?([^"<]*?)"?\s*<([^>]+)>\s*$')
QUOTE_ATTRIBUTION_PATTERN = re.compile(r"^On .+ wrote:\s*$", re.IGNORECASE)

# "alice [10:30 AM]: text"
CHAT_LINE_PATTERN = re.compile(
    r"^(\w+)\s+\[(\d{1,2}:\d{2}\s*(?:[AaPp][Mm])?)\]:\s*(.+)$", re.MULTILINE
)

# "Alice: text" or "Alice Smith: text" (names of up to four words)
SIMPLE_LINE_PATTERN = re.compile(
    r"^([A-Za-z][\w.'-]*(?: [A-Za-z][\w.'-]*){0,3}):\s*(.+)$", re.MULTILINE
)

EMAIL_SOURCES = frozenset({"email"})
CHAT_SOURCES = frozenset({"slack", "teams", "discord", "chat"})


def has_email_headers(text: str) -> bool:
    """Check whether text contains a recognizable email header line."""
    return EMAIL_HEADER_PATTERN.search(text) is not None


def has_chat_lines(text: str) -> bool:
    """Check whether text contains timestamped chat lines."""
    return CHAT_LINE_PATTERN.search(text) is not None
