import sqlite3
import unittest

from gradetrackr.core.migration import ConversionResult, convert_school_year
from gradetrackr.core.scales import GradingScale
from gradetrackr.domain.entities import FinalOverride, PeriodKey, Semester
from gradetrackr.services.storage import Storage

T = GradingScale.TRADITIONAL
P = GradingScale.POINTS


class FailingStorage(Storage):
    """Fails on the second score written inside the save transaction."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = 0

    def _write_score(self, cur, record):
        self.writes += 1
        if self.writes == 2:
            raise sqlite3.OperationalError("database is locked")
        super()._write_score(cur, record)


class MigrationTests(unittest.TestCase):
    def _seed(self, store):
        subject = store.create_subject("Mathe")
        written, oral = subject.assessment_types
        first = PeriodKey(2024, Semester.FIRST)
        second = PeriodKey(2024, Semester.SECOND)
        store.create_score(subject.id, written.id, 1.0, first)
        store.create_score(subject.id, oral.id, 5.7, first)
        store.create_score(subject.id, oral.id, 2.0, second)
        store.create_score(subject.id, oral.id, 3.0, PeriodKey(2023, Semester.SECOND))
        store.upsert_override(FinalOverride("", subject.id, 2.0, second))
        return subject

    def test_empty_year_converts_nothing(self):
        store = Storage(":memory:")
        self.assertEqual(convert_school_year(store, 2024, T, P), ConversionResult(True, 0, None))
        store.close()

    def test_converts_scores_and_overrides_of_both_semesters(self):
        store = Storage(":memory:")
        self._seed(store)

        result = convert_school_year(store, 2024, T, P)

        self.assertTrue(result.success)
        self.assertEqual(result.converted_count, 4)
        self.assertIsNone(result.error_message)
        values = sorted(score.value for score in store.fetch_scores(None, 2024))
        self.assertEqual(values, [0.0, 11.0, 14.0])
        self.assertEqual([o.value for o in store.fetch_overrides(2024)], [11.0])
        # other school years are untouched
        self.assertEqual([s.value for s in store.fetch_scores(None, 2023)], [3.0])
        store.close()

    def test_failed_commit_leaves_values_unchanged(self):
        store = FailingStorage(":memory:")
        self._seed(store)
        before = sorted(score.value for score in store.fetch_scores(None, 2024))

        result = convert_school_year(store, 2024, T, P)

        self.assertFalse(result.success)
        self.assertEqual(result.converted_count, 0)
        self.assertIn("database is locked", result.error_message)
        after = sorted(score.value for score in store.fetch_scores(None, 2024))
        self.assertEqual(after, before)
        self.assertEqual([o.value for o in store.fetch_overrides(2024)], [2.0])
        store.close()

    def test_back_conversion_loses_six_plus(self):
        store = Storage(":memory:")
        self._seed(store)
        convert_school_year(store, 2024, T, P)
        convert_school_year(store, 2024, P, T)
        values = sorted(score.value for score in store.fetch_scores(None, 2024))
        self.assertEqual(values, [1.0, 2.0, 6.0])
        store.close()


if __name__ == "__main__":
    unittest.main()
