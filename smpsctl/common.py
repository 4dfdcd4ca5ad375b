"""Small numeric helpers shared by the control code."""

from __future__ import annotations

from typing import TypeVar

_T = TypeVar("_T", int, float)

_UINT16_MAX = 0xFFFF


def ramp_to_target(current: float, target: float, step: float) -> tuple[float, bool]:
    """Move ``current`` one ``step`` towards ``target`` without overshoot.

    Returns the new value and whether it now equals the target.
    """
    if not step > 0:
        raise ValueError(f"ramp step must be positive, got {step}")
    if current < target:
        current += step
        if current >= target:
            current = target
    elif current > target:
        current -= step
        if current <= target:
            current = target
    reached = not (current < target) and not (current > target)
    return current, reached


def float_to_uint16(value: float, min_value: float, max_value: float) -> int:
    """Clamp ``value`` to [min_value, max_value] and round it to a 16-bit integer."""
    if value < min_value:
        value = min_value
    if value > max_value:
        value = max_value
    result = int(value + 0.5)
    if not 0 <= result <= _UINT16_MAX:
        raise ValueError(f"{value} does not fit in an unsigned 16-bit value")
    return result


def clamp(value: _T, max_value: _T, min_value: _T) -> _T:
    """Limit ``value`` to ``max_value`` first, then to ``min_value``."""
    if value > max_value:
        value = max_value
    if value < min_value:
        value = min_value
    return value