from __future__ import annotations

import math

from fundingscope.core.errors import InvalidInputError


def require_finite(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(v):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return v


def require_positive(name: str, value: float) -> float:
    v = require_finite(name, value)
    if v <= 0:
        raise InvalidInputError(f"{name} must be > 0, got {value!r}")
    return v


def require_non_negative(name: str, value: float) -> float:
    v = require_finite(name, value)
    if v < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value!r}")
    return v


def require_leverage(value: float) -> float:
    # formulas divide by leverage; 0 and negatives never reach them
    return require_positive("leverage", value)


def require_periods(value: int) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"periods must be a whole number, got {value!r}")
    v = require_finite("periods", value)
    if int(v) != v:
        raise InvalidInputError(f"periods must be a whole number, got {value!r}")
    if v < 0:
        raise InvalidInputError(f"periods must be >= 0, got {value!r}")
    return int(v)
