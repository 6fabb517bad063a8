"""
Student roster: listing, deletion and bulk import from an Excel worksheet.
"""
import io
import logging
from typing import List, Optional, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ujian_gto.errors import BackendError, NotFoundError, ValidationFailed
from ujian_gto.models import Student
from ujian_gto.schemas import ImportResult

logger = logging.getLogger(__name__)

# field -> accepted headers, in order of preference (case-insensitive)
HEADER_ALIASES = {
    "name": ["name", "nama"],
    "nisn": ["nisn", "nis"],
    "class": ["class", "kelas"],
}

TEMPLATE_ROWS = [
    ["Nama", "NISN", "Kelas"],
    ["Budi Santoso", "12345678", "X TKR 1"],
    ["Andi Wijaya", "12345679", "X TKR 1"],
]


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # NISN typed as a number in Excel
        return str(int(value))
    return str(value).strip()


def _column_map(header_row) -> dict:
    """field -> list of column indexes, best header first"""
    headers = [_cell_text(h).lower() for h in header_row]
    mapping = {}
    for field, aliases in HEADER_ALIASES.items():
        mapping[field] = [headers.index(alias) for alias in aliases if alias in headers]
    return mapping


def parse_students(data: bytes) -> Tuple[List[dict], int]:
    """
    Read the first worksheet; returns (complete rows, number of rows skipped).

    Rows missing a name, NISN or class are skipped.
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        logger.warning("Unreadable import file: %s", e)
        raise ValidationFailed("Gagal memproses file Excel.")

    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return [], 0
        columns = _column_map(header)

        students = []
        skipped = 0
        for row in rows:
            if row is None or all(v is None for v in row):
                continue
            record = {}
            for field, indexes in columns.items():
                record[field] = next(
                    (_cell_text(row[i]) for i in indexes if i < len(row) and _cell_text(row[i])), ""
                )
            if record["name"] and record["nisn"] and record["class"]:
                students.append(record)
            else:
                skipped += 1
        return students, skipped
    finally:
        wb.close()


def import_students(db: Session, data: bytes) -> ImportResult:
    """Insert every complete row in one transaction; any duplicate NISN rejects the batch."""
    records, skipped = parse_students(data)
    if not records:
        raise ValidationFailed("Format file tidak sesuai. Pastikan ada kolom Nama, NISN, dan Kelas.")

    db.add_all([Student(name=r["name"], nisn=r["nisn"], class_=r["class"]) for r in records])
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("Beberapa NISN sudah terdaftar di database.")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Student import failed: %s", e)
        raise BackendError()

    logger.info("📥 Imported %d students (%d rows skipped)", len(records), skipped)
    return ImportResult(
        imported=len(records),
        skipped=skipped,
        message=f"Berhasil mengimpor {len(records)} siswa.",
    )


def build_template_xlsx() -> bytes:
    """Import template with the expected headers and two sample rows."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Template Siswa"
    for row in TEMPLATE_ROWS:
        ws.append(row)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def list_students(db: Session, query: Optional[str] = None) -> List[Student]:
    try:
        students = db.query(Student).order_by(Student.name.asc()).all()
    except SQLAlchemyError as e:
        logger.exception("Error fetching students: %s", e)
        raise BackendError()
    q = (query or "").strip().lower()
    if not q:
        return students
    return [
        s for s in students
        if q in s.name.lower() or q in s.nisn or q in s.class_.lower()
    ]


def get_student(db: Session, nisn: str) -> Student:
    try:
        student = db.query(Student).filter(Student.nisn == nisn).first()
    except SQLAlchemyError as e:
        logger.exception("Error fetching student %s: %s", nisn, e)
        raise BackendError()
    if student is None:
        raise NotFoundError("NISN tidak terdaftar. Hubungi guru Anda.")
    return student


def delete_student(db: Session, student_id: str) -> None:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Data siswa tidak ditemukan.")
    try:
        db.delete(student)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error deleting student %s: %s", student_id, e)
        raise BackendError("Gagal menghapus siswa.")
    logger.info("🗑️ Student deleted: %s", student.nisn)
