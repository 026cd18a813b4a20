from __future__ import annotations

from typing import Iterable, Mapping, Optional, Tuple

from gradetrackr.domain.entities import AssessmentType, PeriodKey, ScoreRecord, Semester
from gradetrackr.services.store import GradeStore


def weighted_average(scores: Iterable[Tuple[float, float]]) -> Optional[float]:
    """
    scores: iterable of (value, weight)
    average = Σ(value * weight) / Σ(weight), None when empty or Σ(weight) == 0
    """
    weighted_sum = 0.0
    total_weight = 0.0
    count = 0

    for value, weight in scores:
        weighted_sum += value * weight
        total_weight += weight
        count += 1

    if count == 0 or total_weight == 0:
        return None

    return weighted_sum / total_weight


def weights_by_type(assessment_types: Iterable[AssessmentType]) -> dict[str, int]:
    return {assessment_type.id: assessment_type.weight for assessment_type in assessment_types}


def scores_in_period(scores: Iterable[ScoreRecord], period: PeriodKey) -> list[ScoreRecord]:
    return [score for score in scores if score.period == period]


def average_of_scores(scores: Iterable[ScoreRecord], weights: Mapping[str, int]) -> Optional[float]:
    # Unknown assessment types count with weight 0.
    return weighted_average((score.value, weights.get(score.assessment_type_id, 0)) for score in scores)


def period_average(
    store: GradeStore,
    subject_id: str,
    school_year_start_year: int,
    semester: Semester,
) -> Optional[float]:
    override = store.fetch_override(subject_id, school_year_start_year, semester)
    if override is not None:
        return override.value

    scores = store.fetch_scores(subject_id, school_year_start_year, semester)
    if not scores:
        return None

    weights = weights_by_type(store.fetch_assessment_types(subject_id))
    return average_of_scores(scores, weights)


def school_year_average(store: GradeStore, subject_id: str, school_year_start_year: int) -> Optional[float]:
    averages = [
        period_average(store, subject_id, school_year_start_year, semester)
        for semester in Semester
    ]
    present = [average for average in averages if average is not None]
    if not present:
        return None
    return sum(present) / len(present)


def weight_total(assessment_types: Iterable[AssessmentType]) -> int:
    return sum(assessment_type.weight for assessment_type in assessment_types)


def weights_balanced(assessment_types: Iterable[AssessmentType]) -> bool:
    return weight_total(assessment_types) == 100
