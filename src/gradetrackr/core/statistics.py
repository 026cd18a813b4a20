from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from gradetrackr.core.averages import average_of_scores, scores_in_period, weights_by_type
from gradetrackr.core.scales import GradingScale
from gradetrackr.domain.entities import FinalOverride, PeriodKey, Semester, Subject
from gradetrackr.services.store import GradeStore, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubjectStatistic:
    average: Optional[float]
    score_count: int
    has_override: bool


def _override_index(
    store: GradeStore,
    school_year_start_year: int,
    semester: Semester,
) -> dict[str, FinalOverride]:
    try:
        overrides = store.fetch_overrides(school_year_start_year, semester)
    except StoreError as exc:
        logger.warning(
            "Could not read final grades for %s/%s, continuing without them: %s",
            school_year_start_year,
            semester.value,
            exc,
        )
        return {}
    return {override.subject_id: override for override in overrides}


def batch_statistics(
    store: GradeStore,
    subjects: Iterable[Subject],
    school_year_start_year: int,
    semester: Semester,
) -> dict[str, SubjectStatistic]:
    """Statistics for every subject of one period.

    Final grades are read once up front; every subject is evaluated against that
    single snapshot. Scores and assessment types come from the subjects' loaded
    collections, so no further reads happen per subject.
    """
    period = PeriodKey(school_year_start_year, semester)
    overrides = _override_index(store, school_year_start_year, semester)

    results: dict[str, SubjectStatistic] = {}
    for subject in subjects:
        period_scores = scores_in_period(subject.scores, period)
        override = overrides.get(subject.id)
        if override is not None:
            average = override.value
        else:
            average = average_of_scores(period_scores, weights_by_type(subject.assessment_types))
        results[subject.id] = SubjectStatistic(
            average=average,
            score_count=len(period_scores),
            has_override=override is not None,
        )
    return results


def overall_average(statistics: Iterable[SubjectStatistic]) -> Optional[float]:
    averages = [stat.average for stat in statistics if stat.average is not None]
    if not averages:
        return None
    return sum(averages) / len(averages)


def total_score_count(statistics: Iterable[SubjectStatistic]) -> int:
    return sum(stat.score_count for stat in statistics)


def sort_by_average(
    subjects: Iterable[Subject],
    statistics: Mapping[str, SubjectStatistic],
    scale: GradingScale,
) -> list[Subject]:
    valued = []
    unvalued = []
    for subject in subjects:
        stat = statistics.get(subject.id)
        if stat is None or stat.average is None:
            unvalued.append(subject)
        else:
            valued.append((stat.average, subject))

    if scale.is_lower_better:
        valued.sort(key=lambda row: (row[0], row[1].name))
    else:
        valued.sort(key=lambda row: (-row[0], row[1].name))
    unvalued.sort(key=lambda subject: subject.name)

    return [subject for _, subject in valued] + unvalued
