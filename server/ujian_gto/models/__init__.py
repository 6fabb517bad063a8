"""
Models package initialization
Import all models here to ensure they are registered with SQLAlchemy
"""

from ujian_gto.models.user import Student, Teacher, UserRole
from ujian_gto.models.content import Exam, ExamStatus
from ujian_gto.models.session import Submission, SubmissionStatus, ClientState

__all__ = [
    "Student",
    "Teacher",
    "UserRole",
    "Exam",
    "ExamStatus",
    "Submission",
    "SubmissionStatus",
    "ClientState",
]
