from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from ujian_gto.database import Base
import enum
import uuid


class UserRole(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"


def new_id() -> str:
    return str(uuid.uuid4())


class Student(Base):
    """Students imported by teachers; NISN is the login identifier"""
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    nisn = Column(String, unique=True, index=True, nullable=False)
    class_ = Column("class", String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Student {self.name} ({self.nisn})>"


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)  # plaintext
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Teacher {self.name} ({self.username})>"
