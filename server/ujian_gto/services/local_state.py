"""
Key/value persistence for the small pieces of state the exam client keeps
between page loads: the session identity (`user_info`) and the attempt start
timestamp (`exam_start_<examId>`).

Values are scoped by an owner (the student's NISN, or the teacher username).
"""
import json
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ujian_gto.errors import BackendError
from ujian_gto.models import ClientState

logger = logging.getLogger(__name__)

USER_INFO_KEY = "user_info"


def exam_start_key(exam_id: str) -> str:
    return f"exam_start_{exam_id}"


class KeyValueStore:
    """get / set / remove contract; removing an absent key is a no-op."""

    def get(self, owner: str, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, owner: str, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, owner: str, key: str) -> None:
        raise NotImplementedError

    def get_json(self, owner: str, key: str):
        raw = self.get(owner, key)
        return json.loads(raw) if raw is not None else None

    def set_json(self, owner: str, key: str, value) -> None:
        self.set(owner, key, json.dumps(value))


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[Tuple[str, str], str] = {}

    def get(self, owner: str, key: str) -> Optional[str]:
        return self._data.get((owner, key))

    def set(self, owner: str, key: str, value: str) -> None:
        self._data[(owner, key)] = value

    def remove(self, owner: str, key: str) -> None:
        self._data.pop((owner, key), None)


class DatabaseKeyValueStore(KeyValueStore):
    """Stores pairs in the `client_state` table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, owner: str, key: str) -> Optional[str]:
        try:
            row = self.db.get(ClientState, (owner, key))
        except SQLAlchemyError as e:
            logger.exception("Failed to read %s for %s: %s", key, owner, e)
            raise BackendError()
        return row.value if row else None

    def set(self, owner: str, key: str, value: str) -> None:
        try:
            row = self.db.get(ClientState, (owner, key))
            if row:
                row.value = value
            else:
                self.db.add(ClientState(owner=owner, key=key, value=value))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to write %s for %s: %s", key, owner, e)
            raise BackendError()

    def remove(self, owner: str, key: str) -> None:
        try:
            row = self.db.get(ClientState, (owner, key))
            if row is None:
                return
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to clear %s for %s: %s", key, owner, e)
            raise BackendError()
