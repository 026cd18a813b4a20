from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol

from gradetrackr.core.scales import GradingScale
from gradetrackr.domain.entities import AssessmentType, FinalOverride, PeriodKey, ScoreRecord, Semester, Subject


class StoreError(Exception):
    pass


class PartialWriteError(StoreError):
    def __init__(self, message: str, written: int) -> None:
        super().__init__(message)
        self.written = written


class GradeStore(Protocol):
    def fetch_subjects(self) -> list[Subject]: ...

    def fetch_scores(
        self,
        subject_id: Optional[str],
        school_year_start_year: int,
        semester: Optional[Semester] = None,
    ) -> list[ScoreRecord]: ...

    def fetch_override(
        self,
        subject_id: str,
        school_year_start_year: int,
        semester: Semester,
    ) -> Optional[FinalOverride]: ...

    def fetch_overrides(
        self,
        school_year_start_year: int,
        semester: Optional[Semester] = None,
    ) -> list[FinalOverride]: ...

    def fetch_assessment_types(self, subject_id: str) -> list[AssessmentType]: ...

    def create_score(
        self,
        subject_id: str,
        assessment_type_id: str,
        value: float,
        period: PeriodKey,
        recorded_on: Optional[date] = None,
    ) -> ScoreRecord: ...

    def save_scores(
        self,
        records: Iterable[ScoreRecord],
        overrides: Iterable[FinalOverride] = (),
    ) -> None: ...

    def upsert_override(self, override: FinalOverride) -> FinalOverride: ...

    def delete_override(self, subject_id: str, period: PeriodKey) -> None: ...

    def get_active_scale(self, school_year_start_year: int) -> GradingScale: ...

    def set_active_scale(self, school_year_start_year: int, scale: GradingScale) -> None: ...
