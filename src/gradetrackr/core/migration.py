from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from gradetrackr.core.conversion import convert
from gradetrackr.core.scales import GradingScale
from gradetrackr.services.store import GradeStore, PartialWriteError, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    success: bool
    converted_count: int
    error_message: Optional[str] = None


def convert_school_year(
    store: GradeStore,
    school_year_start_year: int,
    from_scale: GradingScale,
    to_scale: GradingScale,
) -> ConversionResult:
    """Rewrite every score and final grade of a school year into ``to_scale``.

    Both semesters are converted. The converted records are handed to the store in
    one ``save_scores`` call; when that call fails the stored values are the
    pre-conversion ones and the result reports ``success=False``.
    """
    try:
        scores = store.fetch_scores(None, school_year_start_year)
        overrides = store.fetch_overrides(school_year_start_year)
    except StoreError as exc:
        logger.error("Reading grades of %s failed: %s", school_year_start_year, exc)
        return ConversionResult(False, 0, f"Could not read grades: {exc}")

    if not scores and not overrides:
        return ConversionResult(True, 0, None)

    converted_scores = [
        replace(score, value=convert(score.value, from_scale, to_scale)) for score in scores
    ]
    converted_overrides = [
        replace(override, value=convert(override.value, from_scale, to_scale)) for override in overrides
    ]

    logger.info(
        "Converting %d grades and %d final grades of %s from %s to %s",
        len(converted_scores),
        len(converted_overrides),
        school_year_start_year,
        from_scale.value,
        to_scale.value,
    )

    try:
        store.save_scores(converted_scores, converted_overrides)
    except PartialWriteError as exc:
        logger.error("Conversion of %s left %d records converted: %s", school_year_start_year, exc.written, exc)
        return ConversionResult(
            False,
            0,
            f"Conversion failed and {exc.written} records could not be restored: {exc}",
        )
    except StoreError as exc:
        logger.error("Conversion of %s failed, nothing was changed: %s", school_year_start_year, exc)
        return ConversionResult(False, 0, f"Conversion failed: {exc}")

    return ConversionResult(True, len(converted_scores) + len(converted_overrides), None)
