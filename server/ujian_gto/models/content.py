from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from ujian_gto.database import Base
from ujian_gto.models.user import new_id
import enum


class ExamStatus(str, enum.Enum):
    ACTIVE = "Aktif"
    FINISHED = "Selesai"


class Exam(Base):
    """Exam packets created by teachers"""
    __tablename__ = "exams"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(String, nullable=False)  # free text, e.g. "120 Menit"
    status = Column(String, nullable=False, default=ExamStatus.ACTIVE.value)
    due_date = Column(String, nullable=True)
    image_url = Column(String, nullable=True)  # blueprint public URL
    created_at = Column(DateTime(timezone=True), server_default=func.now())
