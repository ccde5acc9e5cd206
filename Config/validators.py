# Config/validators.py
"""
Configuration validation for the brokerage ledger.

Validates the values loaded by Config.config_manager with:
- Type correctness (int, Decimal, str)
- Range constraints (min/max values)
- Choices (known exchanges, log levels)

Usage:
    from Config.validators import validate_ledger_config

    result = validate_ledger_config(config)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Optional, List, Tuple

from . import constants_core as core
from .exceptions import ConfigError


# ============================================================================
# Validation Rule System
# ============================================================================

class ValidationRule:
    """Base class for validation rules."""

    def __init__(self, key: str, description: str):
        self.key = key
        self.description = description

    def validate(self, value: Any) -> Optional[str]:
        """
        Validate a value.

        Returns:
            None if valid
            Error message string if invalid
        """
        raise NotImplementedError


class TypeRule(ValidationRule):
    """Validates value is correct type."""

    def __init__(self, key: str, expected_type: type, description: str = ""):
        super().__init__(key, description or f"Must be {expected_type.__name__}")
        self.expected_type = expected_type

    def validate(self, value: Any) -> Optional[str]:
        if self.expected_type in (int, Decimal):
            if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
                return f"Expected numeric type, got {type(value).__name__}"
            if self.expected_type == int and not isinstance(value, int):
                return f"Expected integer, got {type(value).__name__}"
        elif not isinstance(value, self.expected_type):
            return f"Expected {self.expected_type.__name__}, got {type(value).__name__}"
        return None


class RangeRule(ValidationRule):
    """Validates numeric value is within range."""

    def __init__(
            self,
            key: str,
            min_val: Optional[float] = None,
            max_val: Optional[float] = None,
            min_inclusive: bool = True,
            description: str = "",
    ):
        self.min_val = min_val
        self.max_val = max_val
        self.min_inclusive = min_inclusive

        if not description:
            parts = []
            if min_val is not None:
                parts.append(f"{'>=' if min_inclusive else '>'} {min_val}")
            if max_val is not None:
                parts.append(f"<= {max_val}")
            description = " and ".join(parts) if parts else "no range constraint"

        super().__init__(key, description)

    def validate(self, value: Any) -> Optional[str]:
        try:
            num = Decimal(str(value))
        except (TypeError, ValueError, ArithmeticError):
            return f"Cannot convert to number: {value!r}"

        if self.min_val is not None:
            if self.min_inclusive and num < Decimal(str(self.min_val)):
                return f"Must be >= {self.min_val}, got {num}"
            if not self.min_inclusive and num <= Decimal(str(self.min_val)):
                return f"Must be > {self.min_val}, got {num}"

        if self.max_val is not None and num > Decimal(str(self.max_val)):
            return f"Must be <= {self.max_val}, got {num}"

        return None


class ChoiceRule(ValidationRule):
    """Validates value is one of allowed choices."""

    def __init__(self, key: str, choices: List[Any], description: str = ""):
        self.choices = choices
        desc = description or f"Must be one of: {', '.join(str(c) for c in choices)}"
        super().__init__(key, desc)

    def validate(self, value: Any) -> Optional[str]:
        if value not in self.choices:
            return f"Must be one of {self.choices}, got {value!r}"
        return None


# ============================================================================
# Ledger Validation Rules
# ============================================================================

LEDGER_RULES = [
    TypeRule("BROKERAGE_RATE", Decimal, "Brokerage percent per full period"),
    RangeRule("BROKERAGE_RATE", min_val=0, max_val=100, min_inclusive=False),

    TypeRule("ACCRUAL_BATCH_SIZE", int, "Clients computed concurrently"),
    RangeRule("ACCRUAL_BATCH_SIZE", min_val=1, max_val=200),

    TypeRule("DETAIL_INSERT_CHUNK", int, "Rows per batched insert"),
    RangeRule("DETAIL_INSERT_CHUNK", min_val=1, max_val=10000),

    TypeRule("DEFAULT_EXCHANGE", str, "Exchange used when a trade names none"),
    ChoiceRule("DEFAULT_EXCHANGE", list(core.DEFAULT_EXCHANGES)),

    TypeRule("LOG_LEVEL", str),
    ChoiceRule("LOG_LEVEL", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),

    TypeRule("DB_POOL_SIZE", int),
    RangeRule("DB_POOL_SIZE", min_val=1, max_val=core.DB_POOL_MAX_SIZE),
]


# ============================================================================
# Validation Engine
# ============================================================================

class ValidationResult:
    """Result of validation check."""

    def __init__(self):
        self.errors: List[Tuple[str, str]] = []  # (key, error_message)
        self.warnings: List[Tuple[str, str]] = []

    def add_error(self, key: str, message: str):
        self.errors.append((key, message))

    def add_warning(self, key: str, message: str):
        self.warnings.append((key, message))

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def __bool__(self) -> bool:
        return self.is_valid

    def format_report(self, include_warnings: bool = True) -> str:
        """Format validation result as human-readable report."""
        lines = []

        if self.errors:
            lines.append("VALIDATION ERRORS:")
            for key, msg in self.errors:
                lines.append(f"  ❌ {key}: {msg}")

        if include_warnings and self.warnings:
            if lines:
                lines.append("")
            lines.append("VALIDATION WARNINGS:")
            for key, msg in self.warnings:
                lines.append(f"  ⚠️  {key}: {msg}")

        if not self.errors and not self.warnings:
            lines.append("✅ All validation checks passed!")

        return "\n".join(lines)


def validate_config_dict(config: dict, rules: List[ValidationRule]) -> ValidationResult:
    """
    Validate a config dictionary against a set of rules.

    A failing type rule suppresses the remaining rules for that key.
    """
    result = ValidationResult()
    failed_keys = set()

    for rule in rules:
        if rule.key in failed_keys:
            continue
        if rule.key not in config:
            result.add_warning(rule.key, "Not found in config (using default)")
            continue

        error = rule.validate(config[rule.key])
        if error:
            result.add_error(rule.key, error)
            failed_keys.add(rule.key)

    return result


def validate_ledger_config(config, raise_on_error: bool = False) -> ValidationResult:
    """
    Validate a LedgerConfig instance.

    Raises:
        ConfigError: If validation fails and raise_on_error=True
    """
    result = validate_config_dict(config.as_dict(), LEDGER_RULES)
    if not result.is_valid and raise_on_error:
        raise ConfigError(f"Config validation failed:\n{result.format_report(include_warnings=False)}")
    return result
