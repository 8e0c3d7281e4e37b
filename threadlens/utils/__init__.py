"""
Utility modules for ThreadLens.

This package contains:
- config: Configuration management with pydantic-settings
- logger: Structured logging setup
- exceptions: Custom exception classes
- json_utils: Tolerant parsing of model JSON responses
"""

from threadlens.utils.config import get_settings, reload_settings, Settings
from threadlens.utils.logger import get_logger, setup_logging
from threadlens.utils.exceptions import (
    ThreadLensError,
    ModelBackendError,
    ProcessingError,
    ValidationError,
    ConfigurationError,
    RetryableError,
    RateLimitError,
    ModelTimeoutError,
)

__all__ = [
    "get_settings",
    "reload_settings",
    "Settings",
    "get_logger",
    "setup_logging",
    "ThreadLensError",
    "ModelBackendError",
    "ProcessingError",
    "ValidationError",
    "ConfigurationError",
    "RetryableError",
    "RateLimitError",
    "ModelTimeoutError",
]
