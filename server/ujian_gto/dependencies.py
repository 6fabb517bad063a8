"""FastAPI dependencies shared by the routers."""
from fastapi import Depends
from sqlalchemy.orm import Session

from ujian_gto.database import get_db
from ujian_gto.datetime_utils import now_ts
from ujian_gto.services.blueprints import BlueprintStorage
from ujian_gto.services.local_state import DatabaseKeyValueStore, KeyValueStore
from ujian_gto.services.session_store import SessionStore
from ujian_gto.services.sse_manager import SSEConnectionManager, sse_manager


def get_store(db: Session = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


def get_kv_store(db: Session = Depends(get_db)) -> KeyValueStore:
    return DatabaseKeyValueStore(db)


def get_clock():
    """Wall clock used for attempt timing (overridden in tests)."""
    return now_ts


def get_live_manager() -> SSEConnectionManager:
    return sse_manager


def get_blueprint_storage() -> BlueprintStorage:
    return BlueprintStorage()
