from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from ujian_gto.database import Base
from ujian_gto.models.user import new_id
import enum


class SubmissionStatus(str, enum.Enum):
    PENDING = "pending"
    GRADED = "graded"


class Submission(Base):
    """A student's Onshape link for one exam"""
    __tablename__ = "submissions"
    __table_args__ = (UniqueConstraint("nis", "exam_id", name="uq_submission_student_exam"),)

    id = Column(String(36), primary_key=True, default=new_id)
    student_name = Column(String, nullable=False)
    nis = Column(String, index=True, nullable=False)
    exam_id = Column(String(36), index=True, nullable=False)
    exam_title = Column(String, nullable=False)
    submit_time = Column(String, nullable=False)
    status = Column(String, nullable=False, default=SubmissionStatus.PENDING.value)
    score = Column(Integer, nullable=True)
    onshape_link = Column(Text, nullable=False)
    is_late = Column(Boolean, default=False)
    criteria = Column(JSON, nullable=True)  # {"dimension": .., "efficiency": .., "aesthetics": ..}
    feedback = Column(Text, nullable=True)


class ClientState(Base):
    """Per-owner key/value pairs the browser app used to keep locally"""
    __tablename__ = "client_state"

    owner = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
