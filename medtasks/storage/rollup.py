# medtasks/storage/rollup.py

from __future__ import annotations

import math
from collections.abc import Iterable
from numbers import Real
from typing import Any

from medtasks.errors import ValidationFailure


def round_half_up(value: float) -> int:
    """Round .5 upwards like the browser UI did, not to the nearest even number."""
    return int(math.floor(value + 0.5))


def overall_percentage(percentages: Iterable[int]) -> int:
    values = list(percentages)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def validate_percentage(value: Any) -> int:
    """Accept an integer in [0, 100]; anything else is a ValidationFailure."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationFailure(f"Completion percentage must be a number, got {value!r}")
    if isinstance(value, float) and (math.isnan(value) or not value.is_integer()):
        raise ValidationFailure(f"Completion percentage must be a whole number, got {value!r}")

    value = int(value)
    if value < 0 or value > 100:
        raise ValidationFailure(f"Completion percentage must be between 0 and 100, got {value}")
    return value
