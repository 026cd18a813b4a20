from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases

from gradetrackr.config.settings import settings
from gradetrackr.core.scales import DEFAULT_SCALE, GradingScale, parse_scale
from gradetrackr.domain.entities import AssessmentType, FinalOverride, PeriodKey, ScoreRecord, Semester, Subject
from gradetrackr.services.store import PartialWriteError, StoreError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class AppwriteStore:
    """Grade store backed by Appwrite database collections.

    Appwrite has no multi-document transaction. ``save_scores`` therefore writes
    one document at a time and restores the already written documents when a
    write fails.
    """

    def __init__(
        self,
        databases: Databases,
        database_id: str,
        subjects_collection_id: str = "subjects",
        assessment_types_collection_id: str = "assessment_types",
        scores_collection_id: str = "scores",
        final_grades_collection_id: str = "final_grades",
        year_settings_collection_id: str = "year_settings",
        default_scale: GradingScale = DEFAULT_SCALE,
    ) -> None:
        if not database_id:
            raise StoreError("Missing APPWRITE_DATABASE_ID in environment")

        self.db = databases
        self.database_id = database_id
        self.subjects_collection_id = subjects_collection_id
        self.assessment_types_collection_id = assessment_types_collection_id
        self.scores_collection_id = scores_collection_id
        self.final_grades_collection_id = final_grades_collection_id
        self.year_settings_collection_id = year_settings_collection_id
        self.default_scale = default_scale

    @classmethod
    def from_settings(cls) -> "AppwriteStore":
        if not settings.appwrite_endpoint:
            raise StoreError("Missing APPWRITE_ENDPOINT in environment")
        if not settings.appwrite_project_id:
            raise StoreError("Missing APPWRITE_PROJECT_ID in environment")
        if not settings.appwrite_api_key:
            raise StoreError("Missing APPWRITE_API_KEY in environment")

        client = Client()
        client.set_endpoint(settings.appwrite_endpoint.rstrip("/"))
        client.set_project(settings.appwrite_project_id)
        client.set_key(settings.appwrite_api_key)

        return cls(
            Databases(client),
            settings.appwrite_database_id,
            subjects_collection_id=settings.appwrite_subjects_collection_id,
            assessment_types_collection_id=settings.appwrite_assessment_types_collection_id,
            scores_collection_id=settings.appwrite_scores_collection_id,
            final_grades_collection_id=settings.appwrite_final_grades_collection_id,
            year_settings_collection_id=settings.appwrite_year_settings_collection_id,
            default_scale=parse_scale(settings.default_scale),
        )

    def _list_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        documents: List[Dict] = []
        last_id: Optional[str] = None
        while True:
            page_queries = [*queries, Query.limit(PAGE_SIZE)]
            if last_id is not None:
                page_queries.append(Query.cursor_after(last_id))
            try:
                result = self.db.list_documents(self.database_id, collection_id, queries=page_queries)
            except AppwriteException as exc:
                raise StoreError(str(exc)) from exc

            page = list(result.get("documents", []))
            documents.extend(page)
            if len(page) < PAGE_SIZE:
                return documents
            last_id = page[-1]["$id"]

    def _get_document(self, collection_id: str, document_id: str) -> Dict:
        try:
            return self.db.get_document(self.database_id, collection_id, document_id)
        except AppwriteException as exc:
            raise StoreError(str(exc)) from exc

    def _create_document(self, collection_id: str, data: Dict, document_id: Optional[str] = None) -> Dict:
        try:
            return self.db.create_document(self.database_id, collection_id, document_id or ID.unique(), data)
        except AppwriteException as exc:
            raise StoreError(str(exc)) from exc

    def _update_document(self, collection_id: str, document_id: str, data: Dict) -> Dict:
        try:
            return self.db.update_document(self.database_id, collection_id, document_id, data)
        except AppwriteException as exc:
            raise StoreError(str(exc)) from exc

    def _delete_document(self, collection_id: str, document_id: str) -> None:
        try:
            self.db.delete_document(self.database_id, collection_id, document_id)
        except AppwriteException as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _period(doc: Dict) -> PeriodKey:
        return PeriodKey(int(doc["school_year"]), Semester(doc["semester"]))

    @classmethod
    def _to_score(cls, doc: Dict) -> ScoreRecord:
        recorded_on = doc.get("recorded_on")
        return ScoreRecord(
            id=doc["$id"],
            subject_id=doc["subject_id"],
            assessment_type_id=doc["assessment_type_id"],
            value=float(doc["value"]),
            period=cls._period(doc),
            recorded_on=date.fromisoformat(recorded_on[:10]) if recorded_on else None,
        )

    @classmethod
    def _to_override(cls, doc: Dict) -> FinalOverride:
        return FinalOverride(
            id=doc["$id"],
            subject_id=doc["subject_id"],
            value=float(doc["value"]),
            period=cls._period(doc),
        )

    @staticmethod
    def _to_assessment_type(doc: Dict) -> AssessmentType:
        return AssessmentType(
            id=doc["$id"],
            subject_id=doc["subject_id"],
            name=doc.get("name", ""),
            weight=int(doc.get("weight", 0)),
            icon=doc.get("icon", ""),
        )

    def fetch_subjects(self) -> List[Subject]:
        subjects = [
            Subject(
                id=doc["$id"],
                name=doc.get("name", doc["$id"]),
                color_hex=doc.get("color_hex", ""),
                icon=doc.get("icon", ""),
            )
            for doc in self._list_documents(self.subjects_collection_id, [Query.order_asc("name")])
        ]
        by_id = {subject.id: subject for subject in subjects}

        for doc in self._list_documents(self.assessment_types_collection_id, []):
            subject = by_id.get(doc.get("subject_id"))
            if subject is not None:
                subject.assessment_types.append(self._to_assessment_type(doc))

        for doc in self._list_documents(self.scores_collection_id, []):
            subject = by_id.get(doc.get("subject_id"))
            if subject is not None:
                subject.scores.append(self._to_score(doc))

        return subjects

    def fetch_scores(
        self,
        subject_id: Optional[str],
        school_year_start_year: int,
        semester: Optional[Semester] = None,
    ) -> List[ScoreRecord]:
        queries = [Query.equal("school_year", [school_year_start_year])]
        if subject_id is not None:
            queries.append(Query.equal("subject_id", [subject_id]))
        if semester is not None:
            queries.append(Query.equal("semester", [semester.value]))
        return [self._to_score(doc) for doc in self._list_documents(self.scores_collection_id, queries)]

    def fetch_override(
        self,
        subject_id: str,
        school_year_start_year: int,
        semester: Semester,
    ) -> Optional[FinalOverride]:
        docs = self._list_documents(
            self.final_grades_collection_id,
            [
                Query.equal("subject_id", [subject_id]),
                Query.equal("school_year", [school_year_start_year]),
                Query.equal("semester", [semester.value]),
            ],
        )
        if not docs:
            return None
        return self._to_override(docs[0])

    def fetch_overrides(self, school_year_start_year: int, semester: Optional[Semester] = None) -> List[FinalOverride]:
        queries = [Query.equal("school_year", [school_year_start_year])]
        if semester is not None:
            queries.append(Query.equal("semester", [semester.value]))
        return [self._to_override(doc) for doc in self._list_documents(self.final_grades_collection_id, queries)]

    def fetch_assessment_types(self, subject_id: str) -> List[AssessmentType]:
        docs = self._list_documents(
            self.assessment_types_collection_id,
            [Query.equal("subject_id", [subject_id])],
        )
        return [self._to_assessment_type(doc) for doc in docs]

    def create_score(
        self,
        subject_id: str,
        assessment_type_id: str,
        value: float,
        period: PeriodKey,
        recorded_on: Optional[date] = None,
    ) -> ScoreRecord:
        assessment_type = self._get_document(self.assessment_types_collection_id, assessment_type_id)
        if assessment_type.get("subject_id") != subject_id:
            raise StoreError("Assessment type does not belong to this subject.")

        doc = self._create_document(
            self.scores_collection_id,
            {
                "subject_id": subject_id,
                "assessment_type_id": assessment_type_id,
                "value": float(value),
                "school_year": period.school_year_start_year,
                "semester": period.semester.value,
                "recorded_on": recorded_on.isoformat() if recorded_on else None,
            },
        )
        return self._to_score(doc)

    def save_scores(self, records: Iterable[ScoreRecord], overrides: Iterable[FinalOverride] = ()) -> None:
        pending: List[Tuple[str, str, float]] = [
            (self.scores_collection_id, record.id, record.value) for record in records
        ]
        pending.extend((self.final_grades_collection_id, override.id, override.value) for override in overrides)

        written: List[Tuple[str, str, float]] = []
        try:
            for collection_id, document_id, value in pending:
                original = float(self._get_document(collection_id, document_id)["value"])
                self._update_document(collection_id, document_id, {"value": value})
                written.append((collection_id, document_id, original))
        except StoreError as exc:
            self._restore(written, exc)
            raise StoreError(f"Saving grades failed, {len(written)} written records were restored: {exc}") from exc

    def _restore(self, written: List[Tuple[str, str, float]], cause: StoreError) -> None:
        logger.warning("Restoring %d grade documents after failed write: %s", len(written), cause)
        remaining = list(written)
        while remaining:
            collection_id, document_id, original = remaining[-1]
            try:
                self._update_document(collection_id, document_id, {"value": original})
            except StoreError as exc:
                raise PartialWriteError(
                    f"Restoring grades failed: {exc}",
                    written=len(remaining),
                ) from cause
            remaining.pop()

    def upsert_override(self, override: FinalOverride) -> FinalOverride:
        period = override.period
        existing = self.fetch_override(override.subject_id, period.school_year_start_year, period.semester)
        if existing is not None:
            self._update_document(self.final_grades_collection_id, existing.id, {"value": float(override.value)})
            return FinalOverride(existing.id, override.subject_id, float(override.value), period)

        doc = self._create_document(
            self.final_grades_collection_id,
            {
                "subject_id": override.subject_id,
                "value": float(override.value),
                "school_year": period.school_year_start_year,
                "semester": period.semester.value,
            },
            document_id=override.id or None,
        )
        return self._to_override(doc)

    def delete_override(self, subject_id: str, period: PeriodKey) -> None:
        existing = self.fetch_override(subject_id, period.school_year_start_year, period.semester)
        if existing is None:
            return
        self._delete_document(self.final_grades_collection_id, existing.id)

    def get_active_scale(self, school_year_start_year: int) -> GradingScale:
        try:
            doc = self.db.get_document(self.database_id, self.year_settings_collection_id, str(school_year_start_year))
        except AppwriteException as exc:
            if getattr(exc, "code", None) == 404:
                return self.default_scale
            raise StoreError(str(exc)) from exc
        return parse_scale(doc.get("grading_scale", self.default_scale.value))

    def set_active_scale(self, school_year_start_year: int, scale: GradingScale) -> None:
        document_id = str(school_year_start_year)
        data = {"school_year": school_year_start_year, "grading_scale": scale.value}
        try:
            self.db.update_document(self.database_id, self.year_settings_collection_id, document_id, data)
        except AppwriteException as exc:
            if getattr(exc, "code", None) != 404:
                raise StoreError(str(exc)) from exc
            self._create_document(self.year_settings_collection_id, data, document_id=document_id)
