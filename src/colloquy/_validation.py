"""Internal validation helpers shared by the value objects.

Centralizes validation so config, options, and model descriptors raise
consistent, field-qualified error messages.
"""

from __future__ import annotations

from colloquy.errors import ConfigurationError


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ConfigurationError,
    field_name: str | None = None,
    hint: str | None = None,
) -> None:
    """Raise *exc* with optional field context when *condition* is false."""
    if condition:
        return
    text = f"{field_name}: {message}" if field_name else message
    if issubclass(exc, ConfigurationError):
        raise exc(text, hint=hint)
    raise exc(text)


def _is_number(value: object) -> bool:
    """Return True for int/float values, excluding bools."""
    return isinstance(value, int | float) and not isinstance(value, bool)
