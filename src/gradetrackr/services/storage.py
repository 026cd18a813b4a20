from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from gradetrackr.config.settings import settings
from gradetrackr.core.scales import DEFAULT_SCALE, GradingScale, parse_scale
from gradetrackr.domain.entities import (
    DEFAULT_ASSESSMENT_TYPES,
    AssessmentType,
    FinalOverride,
    PeriodKey,
    ScoreRecord,
    Semester,
    Subject,
)
from gradetrackr.services.store import StoreError


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Storage:
    """SQLite implementation of the grade store."""

    def __init__(self, db_path: str = "gradetrackr.db", default_scale: GradingScale = DEFAULT_SCALE) -> None:
        self.db_path = db_path
        self.default_scale = default_scale
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    @classmethod
    def from_settings(cls) -> "Storage":
        return cls(settings.db_path, parse_scale(settings.default_scale))

    def close(self) -> None:
        self.conn.close()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS subjects (
              id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              color_hex TEXT NOT NULL DEFAULT '',
              icon TEXT NOT NULL DEFAULT '',
              created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS assessment_types (
              id TEXT PRIMARY KEY,
              subject_id TEXT NOT NULL,
              name TEXT NOT NULL,
              weight INTEGER NOT NULL,
              icon TEXT NOT NULL DEFAULT '',
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS scores (
              id TEXT PRIMARY KEY,
              subject_id TEXT NOT NULL,
              assessment_type_id TEXT NOT NULL,
              value REAL NOT NULL,
              school_year INTEGER NOT NULL,
              semester TEXT NOT NULL,
              recorded_on TEXT,
              created_at TEXT NOT NULL,
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
              FOREIGN KEY(assessment_type_id) REFERENCES assessment_types(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS final_grades (
              id TEXT PRIMARY KEY,
              subject_id TEXT NOT NULL,
              value REAL NOT NULL,
              school_year INTEGER NOT NULL,
              semester TEXT NOT NULL,
              UNIQUE(subject_id, school_year, semester),
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS year_settings (
              school_year INTEGER PRIMARY KEY,
              grading_scale TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_scores_period ON scores(school_year, semester);
            """
        )
        self.conn.commit()

    def _query(self, sql: str, params: Sequence = ()) -> list[sqlite3.Row]:
        try:
            cur = self.conn.execute(sql, params)
            return list(cur.fetchall())
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def _execute(self, sql: str, params: Sequence = ()) -> None:
        try:
            with self.conn:
                self.conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _to_subject(row: sqlite3.Row) -> Subject:
        return Subject(id=row["id"], name=row["name"], color_hex=row["color_hex"], icon=row["icon"])

    @staticmethod
    def _to_assessment_type(row: sqlite3.Row) -> AssessmentType:
        return AssessmentType(
            id=row["id"],
            subject_id=row["subject_id"],
            name=row["name"],
            weight=int(row["weight"]),
            icon=row["icon"],
        )

    @staticmethod
    def _to_score(row: sqlite3.Row) -> ScoreRecord:
        recorded_on = row["recorded_on"]
        return ScoreRecord(
            id=row["id"],
            subject_id=row["subject_id"],
            assessment_type_id=row["assessment_type_id"],
            value=float(row["value"]),
            period=PeriodKey(int(row["school_year"]), Semester(row["semester"])),
            recorded_on=date.fromisoformat(recorded_on) if recorded_on else None,
        )

    @staticmethod
    def _to_override(row: sqlite3.Row) -> FinalOverride:
        return FinalOverride(
            id=row["id"],
            subject_id=row["subject_id"],
            value=float(row["value"]),
            period=PeriodKey(int(row["school_year"]), Semester(row["semester"])),
        )

    # Subjects

    def create_subject(self, name: str, color_hex: str = "", icon: str = "", with_default_types: bool = True) -> Subject:
        subject = Subject(id=_new_id(), name=name, color_hex=color_hex, icon=icon)
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO subjects(id, name, color_hex, icon, created_at) VALUES(?,?,?,?,?)",
                    (subject.id, name, color_hex, icon, _now()),
                )
                if with_default_types:
                    for type_name, weight, type_icon in DEFAULT_ASSESSMENT_TYPES:
                        assessment_type = AssessmentType(_new_id(), subject.id, type_name, weight, type_icon)
                        self.conn.execute(
                            "INSERT INTO assessment_types(id, subject_id, name, weight, icon) VALUES(?,?,?,?,?)",
                            (assessment_type.id, subject.id, type_name, weight, type_icon),
                        )
                        subject.assessment_types.append(assessment_type)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return subject

    def delete_subject(self, subject_id: str) -> None:
        self._execute("DELETE FROM subjects WHERE id=?", (subject_id,))

    def fetch_subjects(self) -> list[Subject]:
        subjects = [self._to_subject(row) for row in self._query("SELECT * FROM subjects ORDER BY name")]
        by_id = {subject.id: subject for subject in subjects}

        for row in self._query("SELECT * FROM assessment_types ORDER BY name"):
            subject = by_id.get(row["subject_id"])
            if subject is not None:
                subject.assessment_types.append(self._to_assessment_type(row))

        for row in self._query("SELECT * FROM scores ORDER BY recorded_on, created_at"):
            subject = by_id.get(row["subject_id"])
            if subject is not None:
                subject.scores.append(self._to_score(row))

        return subjects

    def list_subjects_with_scores(self, school_year_start_year: int, semester: Semester) -> list[Subject]:
        period = PeriodKey(school_year_start_year, semester)
        return [
            subject
            for subject in self.fetch_subjects()
            if any(score.period == period for score in subject.scores)
        ]

    # Assessment types

    def create_assessment_type(self, subject_id: str, name: str, weight: int, icon: str = "") -> AssessmentType:
        assessment_type = AssessmentType(_new_id(), subject_id, name, int(weight), icon)
        self._execute(
            "INSERT INTO assessment_types(id, subject_id, name, weight, icon) VALUES(?,?,?,?,?)",
            (assessment_type.id, subject_id, name, assessment_type.weight, icon),
        )
        return assessment_type

    def update_assessment_type(self, type_id: str, name: str, weight: int, icon: str = "") -> None:
        self._execute(
            "UPDATE assessment_types SET name=?, weight=?, icon=? WHERE id=?",
            (name, int(weight), icon, type_id),
        )

    def delete_assessment_type(self, type_id: str) -> None:
        self._execute("DELETE FROM assessment_types WHERE id=?", (type_id,))

    def fetch_assessment_types(self, subject_id: str) -> list[AssessmentType]:
        rows = self._query("SELECT * FROM assessment_types WHERE subject_id=? ORDER BY name", (subject_id,))
        return [self._to_assessment_type(row) for row in rows]

    # Scores

    def create_score(
        self,
        subject_id: str,
        assessment_type_id: str,
        value: float,
        period: PeriodKey,
        recorded_on: Optional[date] = None,
    ) -> ScoreRecord:
        owner = self._query("SELECT subject_id FROM assessment_types WHERE id=?", (assessment_type_id,))
        if not owner or owner[0]["subject_id"] != subject_id:
            raise StoreError("Assessment type does not belong to this subject.")

        record = ScoreRecord(_new_id(), subject_id, assessment_type_id, float(value), period, recorded_on)
        self._execute(
            """INSERT INTO scores(id, subject_id, assessment_type_id, value, school_year, semester, recorded_on, created_at)
               VALUES(?,?,?,?,?,?,?,?)""",
            (
                record.id,
                subject_id,
                assessment_type_id,
                record.value,
                period.school_year_start_year,
                period.semester.value,
                recorded_on.isoformat() if recorded_on else None,
                _now(),
            ),
        )
        return record

    def delete_score(self, score_id: str) -> None:
        self._execute("DELETE FROM scores WHERE id=?", (score_id,))

    def fetch_scores(
        self,
        subject_id: Optional[str],
        school_year_start_year: int,
        semester: Optional[Semester] = None,
    ) -> list[ScoreRecord]:
        sql = "SELECT * FROM scores WHERE school_year=?"
        params: list = [school_year_start_year]
        if subject_id is not None:
            sql += " AND subject_id=?"
            params.append(subject_id)
        if semester is not None:
            sql += " AND semester=?"
            params.append(semester.value)
        sql += " ORDER BY recorded_on, created_at"
        return [self._to_score(row) for row in self._query(sql, params)]

    def _write_score(self, cur: sqlite3.Cursor, record: ScoreRecord) -> None:
        cur.execute("UPDATE scores SET value=? WHERE id=?", (record.value, record.id))

    def _write_override(self, cur: sqlite3.Cursor, override: FinalOverride) -> None:
        cur.execute("UPDATE final_grades SET value=? WHERE id=?", (override.value, override.id))

    def save_scores(self, records: Iterable[ScoreRecord], overrides: Iterable[FinalOverride] = ()) -> None:
        try:
            with self.conn:
                cur = self.conn.cursor()
                for record in records:
                    self._write_score(cur, record)
                for override in overrides:
                    self._write_override(cur, override)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    # Final grades

    def fetch_override(self, subject_id: str, school_year_start_year: int, semester: Semester) -> Optional[FinalOverride]:
        rows = self._query(
            "SELECT * FROM final_grades WHERE subject_id=? AND school_year=? AND semester=?",
            (subject_id, school_year_start_year, semester.value),
        )
        if not rows:
            return None
        return self._to_override(rows[0])

    def fetch_overrides(self, school_year_start_year: int, semester: Optional[Semester] = None) -> list[FinalOverride]:
        if semester is None:
            rows = self._query("SELECT * FROM final_grades WHERE school_year=?", (school_year_start_year,))
        else:
            rows = self._query(
                "SELECT * FROM final_grades WHERE school_year=? AND semester=?",
                (school_year_start_year, semester.value),
            )
        return [self._to_override(row) for row in rows]

    def upsert_override(self, override: FinalOverride) -> FinalOverride:
        period = override.period
        self._execute(
            """INSERT INTO final_grades(id, subject_id, value, school_year, semester)
               VALUES(?,?,?,?,?)
               ON CONFLICT(subject_id, school_year, semester) DO UPDATE SET
                   value=excluded.value""",
            (
                override.id or _new_id(),
                override.subject_id,
                float(override.value),
                period.school_year_start_year,
                period.semester.value,
            ),
        )
        stored = self.fetch_override(override.subject_id, period.school_year_start_year, period.semester)
        if stored is None:
            raise StoreError("Final grade was not stored.")
        return stored

    def delete_override(self, subject_id: str, period: PeriodKey) -> None:
        self._execute(
            "DELETE FROM final_grades WHERE subject_id=? AND school_year=? AND semester=?",
            (subject_id, period.school_year_start_year, period.semester.value),
        )

    # Grading scale per school year

    def get_active_scale(self, school_year_start_year: int) -> GradingScale:
        rows = self._query("SELECT grading_scale FROM year_settings WHERE school_year=?", (school_year_start_year,))
        if not rows:
            return self.default_scale
        return parse_scale(rows[0]["grading_scale"])

    def set_active_scale(self, school_year_start_year: int, scale: GradingScale) -> None:
        self._execute(
            """INSERT INTO year_settings(school_year, grading_scale) VALUES(?,?)
               ON CONFLICT(school_year) DO UPDATE SET grading_scale=excluded.grading_scale""",
            (school_year_start_year, scale.value),
        )
