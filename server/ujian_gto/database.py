"""
SQLAlchemy engine, session factory and declarative base.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ujian_gto.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory SQLite lives on a single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """Create all tables and the optional seed teacher"""
    # Register models with the metadata
    import ujian_gto.models  # noqa: F401
    from ujian_gto.models import Teacher

    Base.metadata.create_all(bind=engine)

    if settings.seed_teacher_username and settings.seed_teacher_password:
        db = SessionLocal()
        try:
            exists = db.query(Teacher).filter(Teacher.username == settings.seed_teacher_username).first()
            if not exists:
                db.add(Teacher(
                    username=settings.seed_teacher_username,
                    password=settings.seed_teacher_password,
                    name=settings.seed_teacher_name,
                ))
                db.commit()
                logger.info("👤 Seeded teacher account '%s'", settings.seed_teacher_username)
        finally:
            db.close()


def get_db():
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
