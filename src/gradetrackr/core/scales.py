from __future__ import annotations

import math
from enum import Enum
from typing import Optional


class GradingScale(str, Enum):
    TRADITIONAL = "traditional"
    POINTS = "points"

    @property
    def min_value(self) -> float:
        return 0.7 if self is GradingScale.TRADITIONAL else 0.0

    @property
    def max_value(self) -> float:
        return 6.0 if self is GradingScale.TRADITIONAL else 15.0

    @property
    def is_lower_better(self) -> bool:
        return self is GradingScale.TRADITIONAL

    @property
    def display_name(self) -> str:
        if self is GradingScale.TRADITIONAL:
            return "Noten (1-6)"
        return "Punkte (0-15)"

    def canonical_values(self) -> list[tuple[float, str]]:
        if self is GradingScale.TRADITIONAL:
            return list(TRADITIONAL_GRADES)
        return [(float(points), f"{points} P") for points in range(0, 16)]


DEFAULT_SCALE = GradingScale.TRADITIONAL

TRADITIONAL_GRADES: list[tuple[float, str]] = [
    (0.7, "1+"), (1.0, "1"), (1.3, "1-"),
    (1.7, "2+"), (2.0, "2"), (2.3, "2-"),
    (2.7, "3+"), (3.0, "3"), (3.3, "3-"),
    (3.7, "4+"), (4.0, "4"), (4.3, "4-"),
    (4.7, "5+"), (5.0, "5"), (5.3, "5-"),
    (5.7, "6+"), (6.0, "6"),
]

_TRADITIONAL_LABELS = dict(TRADITIONAL_GRADES)


class PerformanceLevel(Enum):
    EXCELLENT = "Sehr gut"
    GOOD = "Gut"
    SATISFACTORY = "Befriedigend"
    SUFFICIENT = "Ausreichend"
    POOR = "Mangelhaft"
    INSUFFICIENT = "Ungenügend"
    NONE = "Keine Noten"

    @property
    def title(self) -> str:
        return self.value


# (lower bound inclusive, level); the last band is closed at the top.
_TRADITIONAL_BANDS: list[tuple[float, PerformanceLevel]] = [
    (0.7, PerformanceLevel.EXCELLENT),
    (1.7, PerformanceLevel.GOOD),
    (2.7, PerformanceLevel.SATISFACTORY),
    (3.7, PerformanceLevel.SUFFICIENT),
    (4.7, PerformanceLevel.POOR),
    (5.7, PerformanceLevel.INSUFFICIENT),
]

_POINTS_BANDS: list[tuple[float, PerformanceLevel]] = [
    (12.0, PerformanceLevel.EXCELLENT),
    (9.0, PerformanceLevel.GOOD),
    (6.0, PerformanceLevel.SATISFACTORY),
    (3.0, PerformanceLevel.SUFFICIENT),
]


def is_valid(value: Optional[float], scale: GradingScale) -> bool:
    if value is None:
        return False
    return scale.min_value <= value <= scale.max_value


def parse_scale(value: str) -> GradingScale:
    try:
        return GradingScale(value.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported grading scale: {value}") from exc


def display_text(value: float, scale: GradingScale, *, round_points: bool = True) -> str:
    if scale is GradingScale.TRADITIONAL:
        label = _TRADITIONAL_LABELS.get(value)
        return label if label is not None else f"{value:.1f}"
    if round_points:
        return f"{math.floor(value + 0.5)} P"
    return f"{value:.1f} P"


def validation_description(scale: GradingScale) -> str:
    if scale is GradingScale.TRADITIONAL:
        return "Grades between 1+ (0.7) and 6 (6.0)"
    return "Points between 0 and 15"


def final_grade_options(scale: GradingScale) -> list[tuple[float, str]]:
    """Values offered when entering a final grade.

    The traditional scale only offers whole grades 1-6 here, without the +/- steps.
    """
    if scale is GradingScale.TRADITIONAL:
        return [(value, label) for value, label in TRADITIONAL_GRADES if label.isdigit()]
    return list(reversed(scale.canonical_values()))


def performance_level(average: Optional[float], scale: GradingScale) -> PerformanceLevel:
    if average is None or not is_valid(average, scale):
        return PerformanceLevel.NONE

    if scale is GradingScale.TRADITIONAL:
        level = PerformanceLevel.NONE
        for lower, band in _TRADITIONAL_BANDS:
            if average >= lower:
                level = band
        return level

    for lower, band in _POINTS_BANDS:
        if average >= lower:
            return band
    if average > 0:
        return PerformanceLevel.POOR
    return PerformanceLevel.INSUFFICIENT


_MESSAGES = [
    "Hervorragend! Du bist ein echtes Talent!",
    "Solide Arbeit! Mit etwas mehr Einsatz schaffst du noch mehr!",
    "Du packst das! Jede Anstrengung zahlt sich aus!",
    "Jeder Anfang ist schwer! Du schaffst die Wende!",
]
_NO_AVERAGE_MESSAGE = "Hey, lass uns gemeinsam durchstarten!"
_FALLBACK_MESSAGE = "Los geht's! Deine Erfolgsgeschichte beginnt jetzt!"

# Upper bounds (exclusive) of the message tiers, best tier first.
_TRADITIONAL_MESSAGE_BOUNDS = [2.5, 3.5, 4.5]
_POINTS_MESSAGE_BOUNDS = [12.0, 8.0, 4.0]


def performance_message(average: Optional[float], scale: GradingScale) -> str:
    """Encouraging one-liner for an average, coarser than ``performance_level``."""
    if average is None:
        return _NO_AVERAGE_MESSAGE
    if not is_valid(average, scale):
        return _FALLBACK_MESSAGE

    if scale is GradingScale.TRADITIONAL:
        for tier, upper in enumerate(_TRADITIONAL_MESSAGE_BOUNDS):
            if average < upper:
                return _MESSAGES[tier]
        return _MESSAGES[-1]

    for tier, lower in enumerate(_POINTS_MESSAGE_BOUNDS):
        if average >= lower:
            return _MESSAGES[tier]
    return _MESSAGES[-1]
