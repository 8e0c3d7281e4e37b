"""
Helpers for reading JSON produced by language models.

Model responses are free text: they may wrap JSON in markdown code
fences, add chatter around it, or use loosely typed values. These
helpers clean the text up and read fields tolerantly.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Optional

CODE_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")


def clean_json_response(response: str) -> str:
    """
    Strip markdown fences and surrounding text from a JSON response.

    Args:
        response: Raw model output

    Returns:
        Text trimmed to the outermost JSON object or array.
    """
    if not response:
        return "{}"

    cleaned = CODE_FENCE_PATTERN.sub("", response.strip()).strip()

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        return cleaned

    start = min(starts)
    closing = "}" if cleaned[start] == "{" else "]"
    end = cleaned.rfind(closing)
    if end > start:
        return cleaned[start:end + 1]
    return cleaned[start:]


def parse_json_response(response: str) -> Any:
    """
    Parse a model response as JSON.

    Args:
        response: Raw model output, possibly fenced

    Returns:
        Decoded JSON value.

    Raises:
        ValueError: If the cleaned text is not valid JSON
    """
    return json.loads(clean_json_response(response))


def parse_json_object(response: str) -> dict[str, Any]:
    """
    Parse a model response that must be a JSON object.

    Raises:
        ValueError: If the response is not valid JSON or not an object
    """
    data = parse_json_response(response)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _lookup(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def get_str(data: dict[str, Any], *keys: str, default: str = "") -> str:
    """Read the first present key as a string."""
    value = _lookup(data, keys)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip()
    return str(value)


def get_optional_str(data: dict[str, Any], *keys: str) -> Optional[str]:
    """Read the first present key as a string, None when absent or blank."""
    value = get_str(data, *keys)
    return value or None


def get_int(data: dict[str, Any], *keys: str, default: int = 0) -> int:
    """Read the first present key as an integer."""
    value = _lookup(data, keys)
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value)) if value is not None else default
    except (TypeError, ValueError):
        return default


def get_float(data: dict[str, Any], *keys: str, default: float = 0.0) -> float:
    """Read the first present key as a float."""
    value = _lookup(data, keys)
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def get_bool(data: dict[str, Any], *keys: str, default: bool = False) -> bool:
    """Read the first present key as a boolean."""
    value = _lookup(data, keys)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return default


def get_str_list(data: dict[str, Any], *keys: str) -> list[str]:
    """Read the first present key as a list of non-empty strings."""
    value = _lookup(data, keys)
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def get_list(data: dict[str, Any], *keys: str) -> list[dict[str, Any]]:
    """Read the first present key as a list of JSON objects."""
    value = _lookup(data, keys)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a timestamp from a model response.

    Accepts ISO 8601 strings (with a trailing 'Z'), epoch seconds,
    and datetime objects. Naive values are treated as UTC.

    Args:
        value: Raw value
        default: Returned when the value cannot be parsed

    Returns:
        Timezone-aware datetime, or the default.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return default
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return default
    else:
        return default

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
