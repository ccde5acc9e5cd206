# Config/exceptions.py
"""
Custom exceptions for configuration validation.
These provide clear, actionable error messages when config is invalid.
"""

from typing import Optional, Any


class ConfigError(Exception):
    """Base exception for all configuration errors."""
    pass


class ConfigValidationError(ConfigError):
    """Raised when a config value fails validation."""

    def __init__(self, key: str, value: Any, reason: str, suggestion: Optional[str] = None):
        self.key = key
        self.value = value
        self.reason = reason
        self.suggestion = suggestion

        msg = f"Invalid config: {key}={value!r}\n  Reason: {reason}"
        if suggestion:
            msg += f"\n  Suggestion: {suggestion}"
        super().__init__(msg)


class ConfigTypeError(ConfigValidationError):
    """Raised when an environment value cannot be parsed as the expected type."""

    def __init__(self, key: str, value: Any, expected_type: type):
        reason = f"Expected {expected_type.__name__}, got {value!r}"
        suggestion = f"Set {key} to a valid {expected_type.__name__}"
        super().__init__(key, value, reason, suggestion)

