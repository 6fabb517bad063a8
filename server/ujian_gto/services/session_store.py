"""
Exam and submission cache backed by the relational store.

Each SessionStore holds an immutable snapshot of the exam and submission
collections. Every mutation writes through to the database and then
refetches the whole affected collection; nothing is patched locally, so the
snapshot never diverges from what is stored.
"""
import logging
from typing import Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ujian_gto import models
from ujian_gto.errors import BackendError, NotFoundError, ValidationFailed, safe_log
from ujian_gto.schemas import (
    Entity,
    Exam,
    ExamCreate,
    ExamUpdate,
    NewSubmission,
    Submission,
    SubmissionStats,
    SubmissionUpdate,
)

logger = logging.getLogger(__name__)


class StoreSnapshot(Entity):
    exams: Tuple[Exam, ...] = ()
    submissions: Tuple[Submission, ...] = ()
    is_loading: bool = False


# =============================================================================
# Row <-> entity mapping (storage uses underscore_case, entities camelCase)
# =============================================================================

def exam_from_row(row: models.Exam) -> Exam:
    return Exam(
        id=row.id,
        title=row.title,
        description=row.description or "",
        duration=row.duration,
        status=row.status,
        due_date=row.due_date,
        image_url=row.image_url,
    )


def submission_from_row(row: models.Submission) -> Submission:
    return Submission(
        id=row.id,
        student_name=row.student_name,
        nis=row.nis,
        exam_id=row.exam_id,
        exam_title=row.exam_title,
        submit_time=row.submit_time,
        status=row.status,
        score=row.score,
        onshape_link=row.onshape_link,
        is_late=bool(row.is_late),
        criteria=row.criteria,
        feedback=row.feedback,
    )


def to_columns(fields: BaseModel) -> dict:
    """Only the fields actually provided become column values."""
    return fields.model_dump(mode="json", exclude_unset=True)


class SessionStore:
    def __init__(self, db: Session):
        self.db = db
        self.snapshot = StoreSnapshot()

    # ---- helpers ----

    def _set(self, **changes) -> StoreSnapshot:
        self.snapshot = self.snapshot.model_copy(update=changes)
        return self.snapshot

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            safe_log(f"Error {action}", e)
            raise BackendError()

    def _load(self, model, order_by, mapper, action: str) -> tuple:
        self._set(is_loading=True)
        try:
            rows = self.db.query(model).order_by(order_by).all()
        except SQLAlchemyError as e:
            self._set(is_loading=False)
            safe_log(f"Error {action}", e)
            raise BackendError()
        return tuple(mapper(row) for row in rows)

    # ---- exams ----

    def fetch_exams(self) -> Tuple[Exam, ...]:
        exams = self._load(models.Exam, models.Exam.created_at.desc(), exam_from_row, "fetching exams")
        self._set(exams=exams, is_loading=False)
        return exams

    def get_exam(self, exam_id: str) -> Exam:
        exams = self.snapshot.exams or self.fetch_exams()
        for exam in exams:
            if exam.id == exam_id:
                return exam
        raise NotFoundError("Soal tidak ditemukan.")

    def add_exam(self, exam: ExamCreate) -> Exam:
        row = models.Exam(**exam.model_dump(mode="json"))
        self.db.add(row)
        self._commit("adding exam")
        new_id = row.id
        logger.info("📝 Exam created: %s (%s)", exam.title, new_id)
        self.fetch_exams()
        return self.get_exam(new_id)

    def update_exam(self, exam_id: str, fields: ExamUpdate) -> Exam:
        row = self.db.get(models.Exam, exam_id)
        if row is None:
            raise NotFoundError("Soal tidak ditemukan.")
        for column, value in to_columns(fields).items():
            setattr(row, column, value)
        try:
            self._commit("updating exam")
        except IntegrityError:
            raise ValidationFailed("Data soal tidak lengkap. Judul, durasi dan status wajib diisi.")
        self.fetch_exams()
        return self.get_exam(exam_id)

    def delete_exam(self, exam_id: str) -> None:
        row = self.db.get(models.Exam, exam_id)
        if row is None:
            raise NotFoundError("Soal tidak ditemukan.")
        self.db.delete(row)
        self._commit("deleting exam")
        logger.info("🗑️ Exam deleted: %s", exam_id)
        self.fetch_exams()

    # ---- submissions ----

    def fetch_submissions(self) -> Tuple[Submission, ...]:
        submissions = self._load(
            models.Submission, models.Submission.submit_time.desc(), submission_from_row, "fetching submissions"
        )
        self._set(submissions=submissions, is_loading=False)
        return submissions

    def get_submission(self, submission_id: str) -> Submission:
        submissions = self.snapshot.submissions or self.fetch_submissions()
        for submission in submissions:
            if submission.id == submission_id:
                return submission
        raise NotFoundError("Data pengumpulan tidak ditemukan.")

    def find_submission(self, exam_id: str, nis: str) -> Optional[Submission]:
        submissions = self.snapshot.submissions or self.fetch_submissions()
        return next((s for s in submissions if s.exam_id == exam_id and s.nis == nis), None)

    def add_submission(self, submission: NewSubmission) -> Submission:
        row = models.Submission(**submission.model_dump(mode="json"))
        self.db.add(row)
        try:
            self._commit("adding submission")
        except IntegrityError:
            raise ValidationFailed("Anda sudah mengumpulkan ujian ini.")
        new_id = row.id
        logger.info("📨 Submission %s from %s for exam %s (late=%s)",
                    new_id, submission.nis, submission.exam_id, submission.is_late)
        self.fetch_submissions()
        return self.get_submission(new_id)

    def update_submission(self, submission_id: str, fields: SubmissionUpdate) -> Submission:
        row = self.db.get(models.Submission, submission_id)
        if row is None:
            raise NotFoundError("Data pengumpulan tidak ditemukan.")
        for column, value in to_columns(fields).items():
            setattr(row, column, value)
        self._commit("updating submission")
        self.fetch_submissions()
        return self.get_submission(submission_id)

    def delete_submission(self, submission_id: str) -> None:
        row = self.db.get(models.Submission, submission_id)
        if row is None:
            raise NotFoundError("Data pengumpulan tidak ditemukan.")
        self.db.delete(row)
        self._commit("deleting submission")
        self.fetch_submissions()

    def submission_stats(self) -> SubmissionStats:
        submissions = self.snapshot.submissions or self.fetch_submissions()
        pending = sum(1 for s in submissions if s.status == "pending")
        graded = sum(1 for s in submissions if s.status == "graded")
        return SubmissionStats(pending=pending, graded=graded, total=len(submissions))


def filter_submissions(submissions, status: str = "all", query: str = ""):
    """Teacher dashboard filter: status tab plus free-text search."""
    q = (query or "").strip().lower()
    result = []
    for sub in submissions:
        if status != "all" and sub.status != status:
            continue
        if q and q not in sub.student_name.lower() and q not in sub.exam_title.lower() and q not in sub.nis:
            continue
        result.append(sub)
    return result


def filter_exams(exams, query: str = ""):
    q = (query or "").strip().lower()
    if not q:
        return list(exams)
    return [e for e in exams if q in e.title.lower()]
