"""
Login for students (NISN) and teachers (username/password).

Passwords are compared in plaintext. A student's password is their NISN; a
shared fallback password is only accepted when STUDENT_FALLBACK_PASSWORD is
configured.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ujian_gto.config import settings
from ujian_gto.errors import AuthenticationError, BackendError
from ujian_gto.models import Student, Teacher, UserRole
from ujian_gto.schemas import UserInfo
from ujian_gto.services.local_state import USER_INFO_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def _student_password_ok(nisn: str, password: str) -> bool:
    if password == nisn:
        return True
    fallback = settings.student_fallback_password
    return bool(fallback) and password == fallback


def login_student(db: Session, nisn: str, password: str) -> UserInfo:
    nisn = (nisn or "").strip()
    try:
        student = db.query(Student).filter(Student.nisn == nisn).first()
    except SQLAlchemyError as e:
        logger.exception("Student lookup failed: %s", e)
        raise BackendError()
    if student is None:
        raise AuthenticationError("NISN tidak terdaftar. Hubungi guru Anda.")
    if not _student_password_ok(nisn, password):
        raise AuthenticationError("Password salah. Gunakan NISN atau password standar.")
    return UserInfo(name=student.name, role=UserRole.STUDENT, nisn=student.nisn, class_=student.class_)


def login_teacher(db: Session, username: str, password: str) -> UserInfo:
    try:
        teacher = (
            db.query(Teacher)
            .filter(Teacher.username == username, Teacher.password == password)
            .first()
        )
    except SQLAlchemyError as e:
        logger.exception("Teacher lookup failed: %s", e)
        raise BackendError()
    if teacher is None:
        raise AuthenticationError("Username atau Password guru salah.")
    return UserInfo(name=teacher.name, role=UserRole.TEACHER)


def login(db: Session, store: KeyValueStore, role: UserRole, username: str, password: str) -> UserInfo:
    """Authenticate and remember the session identity as `user_info`."""
    if role == UserRole.STUDENT:
        info = login_student(db, username, password)
        owner = info.nisn
    else:
        info = login_teacher(db, username, password)
        owner = username
    store.set_json(owner, USER_INFO_KEY, info.model_dump(mode="json", by_alias=True, exclude_none=True))
    logger.info("🔑 %s login: %s", role.value, info.name)
    return info
