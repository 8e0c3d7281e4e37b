"""
Exception hierarchy for ThreadLens.

Input problems (blank text, unknown keys, Advanced without a backend)
are raised to the caller. Model backend failures are raised by the
client and absorbed by the orchestrating layers, which degrade to the
pattern strategy instead.
"""

from typing import Any, Optional

MAX_DETAIL_LENGTH = 500
MAX_VALUE_LENGTH = 100


def _collect(details: Optional[dict[str, Any]], **fields: Any) -> dict[str, Any]:
    """Merge the non-None fields into a copy of the details."""
    merged = dict(details or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    return merged


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit]


class ThreadLensError(Exception):
    """
    Root of every error raised by this package.

    Carries a message, a flat details mapping that ends up in log
    records, and optionally the lower-level exception that caused it.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        text = self.message
        if self.details:
            text += " (" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + ")"
        if self.cause is not None:
            text += f" [caused by: {self.cause}]"
        return text

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for structured logs and API error bodies."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "cause": None if self.cause is None else str(self.cause),
        }


class ModelBackendError(ThreadLensError):
    """
    The language model backend could not produce a completion.

    Covers provider error statuses, unreadable response bodies and
    network failures that survived the client's retries.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        provider: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """
        Args:
            message: Error message
            status_code: HTTP status returned by the provider
            response_body: Raw response body (truncated in details)
            provider: anthropic or openai
        """
        details = _collect(
            kwargs.pop("details", None),
            status_code=status_code,
            response_body=None if response_body is None else _truncate(response_body, MAX_DETAIL_LENGTH),
            provider=provider,
        )
        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
        self.provider = provider

    @property
    def is_auth_error(self) -> bool:
        """The API key was rejected."""
        return self.status_code in (401, 403)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_server_error(self) -> bool:
        """The provider failed on its side (5xx)."""
        return self.status_code is not None and self.status_code >= 500


class ProcessingError(ThreadLensError):
    """A pipeline stage (extract, analyze, transform, persist) could not finish."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        capsule_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = _collect(kwargs.pop("details", None), stage=stage, capsule_id=capsule_id)
        super().__init__(message, details=details, **kwargs)
        self.stage = stage
        self.capsule_id = capsule_id


class ValidationError(ThreadLensError):
    """
    A request was rejected before any processing.

    Examples are empty or oversized conversation text, unknown taxonomy
    keys and attempts to remove a protected role.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraints: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Args:
            message: Error message
            field: Name of the offending field
            value: Offending value (conversation text is truncated in details)
            constraints: Constraints the value violated
        """
        details = _collect(
            kwargs.pop("details", None),
            field=field,
            value=None if value is None else _truncate(value, MAX_VALUE_LENGTH),
            constraints=constraints,
        )
        super().__init__(message, details=details, **kwargs)
        self.field = field
        self.value = value
        self.constraints = constraints or []


class ConfigurationError(ThreadLensError):
    """Settings are missing or unusable, e.g. no MODEL_API_KEY for Advanced mode."""

    def __init__(
        self,
        message: str,
        *,
        missing_keys: Optional[list[str]] = None,
        invalid_keys: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> None:
        details = _collect(
            kwargs.pop("details", None),
            missing_keys=missing_keys or None,
            invalid_keys=invalid_keys or None,
        )
        super().__init__(message, details=details, **kwargs)
        self.missing_keys = missing_keys or []
        self.invalid_keys = invalid_keys or {}


class RetryableError(ThreadLensError):
    """
    A transient backend failure.

    The model client has already retried transport errors by the time
    one of these reaches a caller; retry_after is the provider's hint
    for scheduling another attempt later.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[int] = None,
        max_retries: int = 3,
        **kwargs: Any,
    ) -> None:
        details = _collect(
            kwargs.pop("details", None), retry_after=retry_after, max_retries=max_retries
        )
        super().__init__(message, details=details, **kwargs)
        self.retry_after = retry_after
        self.max_retries = max_retries


class RateLimitError(RetryableError):
    """The provider answered HTTP 429."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        service: str = "unknown",
        **kwargs: Any,
    ) -> None:
        details = _collect(kwargs.pop("details", None), service=service)
        super().__init__(message, details=details, **kwargs)
        self.service = service


class ModelTimeoutError(RetryableError):
    """A model call exceeded its deadline on every attempt."""

    def __init__(
        self,
        message: str = "Model call timed out",
        *,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        details = _collect(kwargs.pop("details", None), timeout=timeout)
        super().__init__(message, details=details, **kwargs)
        self.timeout = timeout
