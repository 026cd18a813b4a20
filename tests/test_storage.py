import unittest
from datetime import date

from gradetrackr.core.scales import GradingScale
from gradetrackr.domain.entities import FinalOverride, PeriodKey, Semester
from gradetrackr.services.storage import Storage
from gradetrackr.services.store import StoreError


class StorageTests(unittest.TestCase):
    def setUp(self):
        self.store = Storage(":memory:")
        self.period = PeriodKey(2024, Semester.FIRST)

    def tearDown(self):
        self.store.close()

    def test_create_subject_seeds_default_types(self):
        subject = self.store.create_subject("Englisch", color_hex="#ff0000", icon="book")
        types = self.store.fetch_assessment_types(subject.id)
        self.assertEqual(sorted((t.name, t.weight) for t in types), [("Mündlich", 60), ("Schriftlich", 40)])

    def test_create_subject_without_default_types(self):
        subject = self.store.create_subject("Kunst", with_default_types=False)
        self.assertEqual(self.store.fetch_assessment_types(subject.id), [])

    def test_fetch_subjects_loads_collections(self):
        subject = self.store.create_subject("Mathe")
        self.store.create_score(subject.id, subject.assessment_types[0].id, 2.3, self.period, date(2024, 9, 12))
        loaded = self.store.fetch_subjects()
        self.assertEqual(len(loaded), 1)
        self.assertEqual(len(loaded[0].assessment_types), 2)
        self.assertEqual(loaded[0].scores[0].value, 2.3)
        self.assertEqual(loaded[0].scores[0].recorded_on, date(2024, 9, 12))

    def test_score_requires_type_of_same_subject(self):
        math = self.store.create_subject("Mathe")
        german = self.store.create_subject("Deutsch")
        with self.assertRaises(StoreError):
            self.store.create_score(math.id, german.assessment_types[0].id, 2.0, self.period)

    def test_fetch_scores_filters(self):
        subject = self.store.create_subject("Mathe")
        type_id = subject.assessment_types[0].id
        self.store.create_score(subject.id, type_id, 1.0, self.period)
        self.store.create_score(subject.id, type_id, 2.0, PeriodKey(2024, Semester.SECOND))
        self.store.create_score(subject.id, type_id, 3.0, PeriodKey(2023, Semester.FIRST))
        self.assertEqual(len(self.store.fetch_scores(None, 2024)), 2)
        self.assertEqual([s.value for s in self.store.fetch_scores(subject.id, 2024, Semester.SECOND)], [2.0])

    def test_override_upsert_updates_existing(self):
        subject = self.store.create_subject("Mathe")
        first = self.store.upsert_override(FinalOverride("", subject.id, 2.0, self.period))
        second = self.store.upsert_override(FinalOverride("", subject.id, 1.0, self.period))
        self.assertEqual(first.id, second.id)
        self.assertEqual(len(self.store.fetch_overrides(2024)), 1)
        self.assertEqual(self.store.fetch_override(subject.id, 2024, Semester.FIRST).value, 1.0)

    def test_delete_override(self):
        subject = self.store.create_subject("Mathe")
        self.store.upsert_override(FinalOverride("", subject.id, 2.0, self.period))
        self.store.delete_override(subject.id, self.period)
        self.assertIsNone(self.store.fetch_override(subject.id, 2024, Semester.FIRST))

    def test_deleting_subject_cascades(self):
        subject = self.store.create_subject("Mathe")
        self.store.create_score(subject.id, subject.assessment_types[0].id, 2.0, self.period)
        self.store.upsert_override(FinalOverride("", subject.id, 2.0, self.period))
        self.store.delete_subject(subject.id)
        self.assertEqual(self.store.fetch_scores(None, 2024), [])
        self.assertEqual(self.store.fetch_overrides(2024), [])
        self.assertEqual(self.store.fetch_assessment_types(subject.id), [])

    def test_deleting_assessment_type_cascades_to_scores(self):
        subject = self.store.create_subject("Mathe")
        written, oral = subject.assessment_types
        self.store.create_score(subject.id, written.id, 2.0, self.period)
        self.store.create_score(subject.id, oral.id, 3.0, self.period)
        self.store.delete_assessment_type(written.id)
        self.assertEqual([s.value for s in self.store.fetch_scores(subject.id, 2024)], [3.0])

    def test_delete_score(self):
        subject = self.store.create_subject("Mathe")
        score = self.store.create_score(subject.id, subject.assessment_types[0].id, 2.0, self.period)
        self.store.delete_score(score.id)
        self.assertEqual(self.store.fetch_scores(subject.id, 2024), [])

    def test_list_subjects_with_scores(self):
        math = self.store.create_subject("Mathe")
        self.store.create_subject("Kunst")
        self.store.create_score(math.id, math.assessment_types[0].id, 2.0, self.period)
        names = [s.name for s in self.store.list_subjects_with_scores(2024, Semester.FIRST)]
        self.assertEqual(names, ["Mathe"])
        self.assertEqual(self.store.list_subjects_with_scores(2024, Semester.SECOND), [])

    def test_active_scale_defaults_and_persists(self):
        self.assertIs(self.store.get_active_scale(2024), GradingScale.TRADITIONAL)
        self.store.set_active_scale(2024, GradingScale.POINTS)
        self.store.set_active_scale(2024, GradingScale.POINTS)
        self.assertIs(self.store.get_active_scale(2024), GradingScale.POINTS)
        self.assertIs(self.store.get_active_scale(2025), GradingScale.TRADITIONAL)

    def test_configured_default_scale(self):
        store = Storage(":memory:", default_scale=GradingScale.POINTS)
        self.assertIs(store.get_active_scale(2024), GradingScale.POINTS)
        store.close()


if __name__ == "__main__":
    unittest.main()
