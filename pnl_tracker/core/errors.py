"""Exceptions raised by the pure computation core."""

from enum import Enum
from typing import TypeVar


E = TypeVar("E", bound=Enum)


class LedgerError(Exception):
    """Base exception for core ledger computations."""
    pass


class InvalidRangeError(LedgerError):
    """A date range is before today, reversed, or beyond the allowed horizon."""
    pass


class ConfigurationError(LedgerError):
    """Unrecognized filing status, frequency, mode, or malformed category data."""
    pass


def coerce_choice(enum_cls: type[E], value, label: str) -> E:
    """
    Convert a raw value to a member of `enum_cls`.

    Raises ConfigurationError instead of falling back to a default.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"Unrecognized {label}: {value!r} (expected one of: {allowed})"
        ) from None
