from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class Semester(str, Enum):
    FIRST = "first"
    SECOND = "second"

    @property
    def display_name(self) -> str:
        return "1. Halbjahr" if self is Semester.FIRST else "2. Halbjahr"

    @property
    def short_name(self) -> str:
        return "1. HJ" if self is Semester.FIRST else "2. HJ"


@dataclass(frozen=True, order=True)
class SchoolYear:
    start_year: int

    @property
    def end_year(self) -> int:
        return self.start_year + 1

    @property
    def display_name(self) -> str:
        return f"{self.start_year}/{self.end_year}"

    @classmethod
    def current(cls, today: Optional[date] = None) -> "SchoolYear":
        today = today or date.today()
        # School years start in August.
        if today.month >= 8:
            return cls(today.year)
        return cls(today.year - 1)


@dataclass(frozen=True)
class PeriodKey:
    school_year_start_year: int
    semester: Semester


@dataclass(frozen=True)
class AssessmentType:
    id: str
    subject_id: str
    name: str
    weight: int
    icon: str = ""


@dataclass(frozen=True)
class ScoreRecord:
    id: str
    subject_id: str
    assessment_type_id: str
    value: float
    period: PeriodKey
    recorded_on: Optional[date] = None


@dataclass(frozen=True)
class FinalOverride:
    id: str
    subject_id: str
    value: float
    period: PeriodKey


@dataclass
class Subject:
    id: str
    name: str
    color_hex: str = ""
    icon: str = ""
    assessment_types: list[AssessmentType] = field(default_factory=list)
    scores: list[ScoreRecord] = field(default_factory=list)


# Templates seeded into new subjects: (name, weight, icon)
DEFAULT_ASSESSMENT_TYPES: list[tuple[str, int, str]] = [
    ("Schriftlich", 40, "pencil"),
    ("Mündlich", 60, "bubble.fill"),
]
