from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from gradetrackr.config.settings import settings
from gradetrackr.core.averages import period_average, school_year_average
from gradetrackr.core.conversion import conversion_preview
from gradetrackr.core.migration import ConversionResult, convert_school_year
from gradetrackr.core.scales import (
    GradingScale,
    PerformanceLevel,
    display_text,
    is_valid,
    performance_level,
    performance_message,
    validation_description,
)
from gradetrackr.core.statistics import (
    SubjectStatistic,
    batch_statistics,
    overall_average,
    sort_by_average,
    total_score_count,
)
from gradetrackr.domain.entities import FinalOverride, PeriodKey, ScoreRecord, Semester, Subject
from gradetrackr.services.storage import Storage
from gradetrackr.services.store import GradeStore, StoreError

logger = logging.getLogger(__name__)


class InvalidGradeError(ValueError):
    def __init__(self, value: Optional[float], scale: GradingScale) -> None:
        super().__init__(f"Invalid grade {value}: {validation_description(scale)}")
        self.value = value
        self.scale = scale


@dataclass(frozen=True)
class PeriodSummary:
    scale: GradingScale
    statistics: Dict[str, SubjectStatistic]
    overall_average: Optional[float]
    sorted_subjects: List[Subject]
    score_count: int
    performance: PerformanceLevel
    message: str


class GradebookService:
    def __init__(self, store: GradeStore, round_point_averages: bool = True) -> None:
        self.store = store
        self.round_point_averages = round_point_averages

    @classmethod
    def from_settings(cls) -> "GradebookService":
        return cls(Storage.from_settings(), settings.round_point_averages)

    def _validated(self, value: Optional[float], school_year_start_year: int) -> float:
        scale = self.store.get_active_scale(school_year_start_year)
        if not is_valid(value, scale):
            raise InvalidGradeError(value, scale)
        return float(value)

    def add_score(
        self,
        subject_id: str,
        assessment_type_id: str,
        value: Optional[float],
        period: PeriodKey,
        recorded_on: Optional[date] = None,
    ) -> ScoreRecord:
        checked = self._validated(value, period.school_year_start_year)
        return self.store.create_score(subject_id, assessment_type_id, checked, period, recorded_on)

    def set_final_grade(self, subject_id: str, value: Optional[float], period: PeriodKey) -> FinalOverride:
        checked = self._validated(value, period.school_year_start_year)
        return self.store.upsert_override(FinalOverride("", subject_id, checked, period))

    def clear_final_grade(self, subject_id: str, period: PeriodKey) -> None:
        self.store.delete_override(subject_id, period)

    def format_grade(self, value: Optional[float], school_year_start_year: int) -> str:
        if value is None:
            return "-"
        scale = self.store.get_active_scale(school_year_start_year)
        return display_text(value, scale, round_points=self.round_point_averages)

    def subject_average(self, subject_id: str, school_year_start_year: int, semester: Semester) -> Optional[float]:
        return period_average(self.store, subject_id, school_year_start_year, semester)

    def year_average(self, subject_id: str, school_year_start_year: int) -> Optional[float]:
        return school_year_average(self.store, subject_id, school_year_start_year)

    def period_summary(self, school_year_start_year: int, semester: Semester) -> PeriodSummary:
        scale = self.store.get_active_scale(school_year_start_year)
        subjects = self.store.fetch_subjects()
        statistics = batch_statistics(self.store, subjects, school_year_start_year, semester)
        overall = overall_average(statistics.values())
        return PeriodSummary(
            scale=scale,
            statistics=statistics,
            overall_average=overall,
            sorted_subjects=sort_by_average(subjects, statistics, scale),
            score_count=total_score_count(statistics.values()),
            performance=performance_level(overall, scale),
            message=performance_message(overall, scale),
        )

    def conversion_preview(self, school_year_start_year: int, to_scale: GradingScale) -> str:
        from_scale = self.store.get_active_scale(school_year_start_year)
        count = len(self.store.fetch_scores(None, school_year_start_year)) + len(
            self.store.fetch_overrides(school_year_start_year)
        )
        return conversion_preview(count, from_scale, to_scale)

    def switch_grading_scale(self, school_year_start_year: int, to_scale: GradingScale) -> ConversionResult:
        try:
            from_scale = self.store.get_active_scale(school_year_start_year)
        except StoreError as exc:
            return ConversionResult(False, 0, f"Could not read grading scale: {exc}")
        if from_scale == to_scale:
            return ConversionResult(True, 0, None)

        result = convert_school_year(self.store, school_year_start_year, from_scale, to_scale)
        if not result.success:
            return result

        try:
            self.store.set_active_scale(school_year_start_year, to_scale)
        except StoreError as exc:
            logger.error(
                "Grades of %s were converted to %s but the scale was not saved: %s",
                school_year_start_year,
                to_scale.value,
                exc,
            )
            return ConversionResult(
                False,
                result.converted_count,
                f"Grades were converted but the grading scale could not be saved: {exc}",
            )

        logger.info(
            "School year %s now uses %s (%d records converted)",
            school_year_start_year,
            to_scale.value,
            result.converted_count,
        )
        return result
