import sqlite3
import unittest

from gradetrackr.core.scales import GradingScale, PerformanceLevel
from gradetrackr.domain.entities import PeriodKey, Semester
from gradetrackr.services.gradebook_service import GradebookService, InvalidGradeError
from gradetrackr.services.storage import Storage
from gradetrackr.services.store import StoreError


class LockedStorage(Storage):
    def _write_score(self, cur, record):
        raise sqlite3.OperationalError("database is locked")


class OfflineStorage(Storage):
    def _write_score(self, cur, record):
        raise sqlite3.OperationalError("connection lost")

    def set_active_scale(self, school_year_start_year, scale):
        raise StoreError("connection lost")


class ScaleLockedStorage(Storage):
    def set_active_scale(self, school_year_start_year, scale):
        raise StoreError("year settings are read-only")


class GradebookServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = Storage(":memory:")
        self.service = GradebookService(self.store)
        self.period = PeriodKey(2024, Semester.FIRST)
        self.math = self.store.create_subject("Mathe")
        self.german = self.store.create_subject("Deutsch")
        self.store.create_subject("Sport")

    def tearDown(self):
        self.store.close()

    def _written(self, subject):
        return subject.assessment_types[0].id

    def test_add_score_validates_against_active_scale(self):
        self.service.add_score(self.math.id, self._written(self.math), 1.3, self.period)
        with self.assertRaises(InvalidGradeError):
            self.service.add_score(self.math.id, self._written(self.math), 12.0, self.period)
        with self.assertRaises(InvalidGradeError):
            self.service.add_score(self.math.id, self._written(self.math), None, self.period)

        self.store.set_active_scale(2025, GradingScale.POINTS)
        self.service.add_score(self.math.id, self._written(self.math), 12.0, PeriodKey(2025, Semester.FIRST))

    def test_final_grade_is_upserted_and_cleared(self):
        self.service.add_score(self.math.id, self._written(self.math), 3.0, self.period)
        self.service.set_final_grade(self.math.id, 2.0, self.period)
        self.service.set_final_grade(self.math.id, 1.0, self.period)
        self.assertEqual(self.service.subject_average(self.math.id, 2024, Semester.FIRST), 1.0)
        self.assertEqual(len(self.store.fetch_overrides(2024)), 1)

        self.service.clear_final_grade(self.math.id, self.period)
        self.assertEqual(self.service.subject_average(self.math.id, 2024, Semester.FIRST), 3.0)

    def test_final_grade_out_of_range(self):
        with self.assertRaises(InvalidGradeError):
            self.service.set_final_grade(self.math.id, 0.3, self.period)

    def test_year_average(self):
        self.service.add_score(self.math.id, self._written(self.math), 2.0, self.period)
        self.service.add_score(self.math.id, self._written(self.math), 3.0, PeriodKey(2024, Semester.SECOND))
        self.assertAlmostEqual(self.service.year_average(self.math.id, 2024), 2.5)

    def test_period_summary(self):
        self.service.add_score(self.math.id, self._written(self.math), 1.0, self.period)
        self.service.add_score(self.german.id, self._written(self.german), 3.0, self.period)

        summary = self.service.period_summary(2024, Semester.FIRST)

        self.assertIs(summary.scale, GradingScale.TRADITIONAL)
        self.assertAlmostEqual(summary.overall_average, 2.0)
        self.assertEqual([s.name for s in summary.sorted_subjects], ["Mathe", "Deutsch", "Sport"])
        self.assertEqual(summary.score_count, 2)
        self.assertEqual(summary.performance, PerformanceLevel.GOOD)
        self.assertTrue(summary.message.startswith("Hervorragend"))

    def test_switch_grading_scale(self):
        self.service.add_score(self.math.id, self._written(self.math), 1.0, self.period)
        self.service.set_final_grade(self.german.id, 4.0, self.period)

        result = self.service.switch_grading_scale(2024, GradingScale.POINTS)

        self.assertTrue(result.success)
        self.assertEqual(result.converted_count, 2)
        self.assertIs(self.store.get_active_scale(2024), GradingScale.POINTS)
        self.assertEqual(self.service.subject_average(self.math.id, 2024, Semester.FIRST), 14.0)
        self.assertEqual(self.service.subject_average(self.german.id, 2024, Semester.FIRST), 5.0)

    def test_switch_to_same_scale_is_noop(self):
        self.service.add_score(self.math.id, self._written(self.math), 1.0, self.period)
        result = self.service.switch_grading_scale(2024, GradingScale.TRADITIONAL)
        self.assertTrue(result.success)
        self.assertEqual(result.converted_count, 0)
        self.assertEqual(self.store.fetch_scores(None, 2024)[0].value, 1.0)

    def test_failed_switch_keeps_scale_and_values(self):
        store = LockedStorage(":memory:")
        service = GradebookService(store)
        subject = store.create_subject("Mathe")
        service.add_score(subject.id, subject.assessment_types[0].id, 2.0, self.period)

        result = service.switch_grading_scale(2024, GradingScale.POINTS)

        self.assertFalse(result.success)
        self.assertTrue(result.error_message)
        self.assertIs(store.get_active_scale(2024), GradingScale.TRADITIONAL)
        self.assertEqual(store.fetch_scores(None, 2024)[0].value, 2.0)
        store.close()

    def test_switch_during_outage_reports_failure(self):
        store = OfflineStorage(":memory:")
        service = GradebookService(store)
        subject = store.create_subject("Mathe")
        service.add_score(subject.id, subject.assessment_types[0].id, 2.0, self.period)

        result = service.switch_grading_scale(2024, GradingScale.POINTS)

        self.assertFalse(result.success)
        self.assertIn("connection lost", result.error_message)
        self.assertIs(store.get_active_scale(2024), GradingScale.TRADITIONAL)
        self.assertEqual(store.fetch_scores(None, 2024)[0].value, 2.0)
        store.close()

    def test_scale_is_stored_only_after_conversion(self):
        store = ScaleLockedStorage(":memory:")
        service = GradebookService(store)
        subject = store.create_subject("Mathe")
        service.add_score(subject.id, subject.assessment_types[0].id, 1.0, self.period)

        result = service.switch_grading_scale(2024, GradingScale.POINTS)

        self.assertFalse(result.success)
        self.assertEqual(result.converted_count, 1)
        self.assertIn("grading scale could not be saved", result.error_message)
        self.assertEqual(store.fetch_scores(None, 2024)[0].value, 14.0)
        store.close()

    def test_format_grade(self):
        self.assertEqual(self.service.format_grade(1.3, 2024), "1-")
        self.assertEqual(self.service.format_grade(None, 2024), "-")
        self.store.set_active_scale(2025, GradingScale.POINTS)
        self.assertEqual(self.service.format_grade(11.6, 2025), "12 P")
        unrounded = GradebookService(self.store, round_point_averages=False)
        self.assertEqual(unrounded.format_grade(11.6, 2025), "11.6 P")

    def test_conversion_preview(self):
        self.service.add_score(self.math.id, self._written(self.math), 1.0, self.period)
        self.service.set_final_grade(self.math.id, 1.0, self.period)
        message = self.service.conversion_preview(2024, GradingScale.POINTS)
        self.assertIn("All 2 grades", message)


if __name__ == "__main__":
    unittest.main()
