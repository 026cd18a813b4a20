from __future__ import annotations

import math

from gradetrackr.core.scales import GradingScale

# Canonical traditional grade -> points. 6+ and 6 both map to 0, so the reverse
# direction can only ever yield 6.0 for 0 points.
TRADITIONAL_TO_POINTS: dict[float, int] = {
    0.7: 15,  # 1+
    1.0: 14,  # 1
    1.3: 13,  # 1-
    1.7: 12,  # 2+
    2.0: 11,  # 2
    2.3: 10,  # 2-
    2.7: 9,   # 3+
    3.0: 8,   # 3
    3.3: 7,   # 3-
    3.7: 6,   # 4+
    4.0: 5,   # 4
    4.3: 4,   # 4-
    4.7: 3,   # 5+
    5.0: 2,   # 5
    5.3: 1,   # 5-
    5.7: 0,   # 6+
    6.0: 0,   # 6
}

POINTS_TO_TRADITIONAL: dict[int, float] = {
    points: value for value, points in TRADITIONAL_TO_POINTS.items() if value != 5.7
}

CONVERSION_EXAMPLES = {
    (GradingScale.TRADITIONAL, GradingScale.POINTS): "1+ -> 15 P, 2 -> 11 P, 3 -> 8 P, 4 -> 5 P, 6 -> 0 P",
    (GradingScale.POINTS, GradingScale.TRADITIONAL): "15 P -> 1+, 11 P -> 2, 8 P -> 3, 5 P -> 4, 0 P -> 6",
}


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _clamp(value: float, scale: GradingScale) -> float:
    return max(scale.min_value, min(scale.max_value, value))


def _goodness(value: float, scale: GradingScale) -> float:
    """Position of ``value`` in its scale, 0.0 = worst and 1.0 = best."""
    span = scale.max_value - scale.min_value
    fraction = (_clamp(value, scale) - scale.min_value) / span
    return 1.0 - fraction if scale.is_lower_better else fraction


def _from_goodness(goodness: float, scale: GradingScale) -> float:
    fraction = 1.0 - goodness if scale.is_lower_better else goodness
    raw = scale.min_value + fraction * (scale.max_value - scale.min_value)
    digits = 0 if scale is GradingScale.POINTS else 1
    return _clamp(_round_half_up(raw, digits), scale)


def _canonical_points(value: float) -> int | None:
    if not float(value).is_integer():
        return None
    points = int(value)
    return points if points in POINTS_TO_TRADITIONAL else None


def interpolate(value: float, from_scale: GradingScale, to_scale: GradingScale) -> float:
    return _from_goodness(_goodness(value, from_scale), to_scale)


def convert(value: float, from_scale: GradingScale, to_scale: GradingScale) -> float:
    if from_scale == to_scale:
        return value

    if from_scale is GradingScale.TRADITIONAL:
        points = TRADITIONAL_TO_POINTS.get(value)
        if points is not None:
            return float(points)
    else:
        points = _canonical_points(value)
        if points is not None:
            return POINTS_TO_TRADITIONAL[points]

    return interpolate(value, from_scale, to_scale)


def conversion_preview(record_count: int, from_scale: GradingScale, to_scale: GradingScale) -> str:
    message = (
        f"All {record_count} grades will be converted from "
        f"{from_scale.display_name} to {to_scale.display_name}."
    )
    examples = CONVERSION_EXAMPLES.get((from_scale, to_scale))
    if examples:
        message += f"\n\nExamples:\n{examples}"
    return message
