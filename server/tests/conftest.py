import os
import tempfile

# Settings are read at import time, so configure the environment first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="ujian_gto_uploads_")
os.environ["TIMER_TICK_SECONDS"] = "0"
os.environ["LIVE_KEEPALIVE_SECONDS"] = "0.05"
os.environ.pop("STUDENT_FALLBACK_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

from ujian_gto.database import Base, SessionLocal, engine
from ujian_gto.dependencies import get_clock, get_live_manager
from ujian_gto.main import app
from ujian_gto.models import Student, Teacher
from ujian_gto.services.sse_manager import SSEConnectionManager

T0 = 1_750_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRequest:
    """Stands in for starlette's Request inside SSE generators."""

    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


@pytest.fixture(autouse=True)
def fresh_db():
    import ujian_gto.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def live_manager():
    return SSEConnectionManager()


@pytest.fixture
def client(clock, live_manager):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_live_manager] = lambda: live_manager
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def student(db_session):
    s = Student(name="Budi Santoso", nisn="12345678", class_="X TKR 1")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def teacher(db_session):
    t = Teacher(username="guru", password="rahasia", name="Bpk. Ahmad Riyadi, S.T.")
    db_session.add(t)
    db_session.commit()
    return t
