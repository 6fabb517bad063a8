"""
Student and teacher roles over one live room per exam (`exam-<examId>`).

Students publish presence and receive warnings; teachers watch presence and
send warnings. The live channel is never on the critical path: when joining
fails the roles log a warning and carry on without live events.
"""
import asyncio
import logging
from typing import List, Optional

from ujian_gto.datetime_utils import now_wib_iso
from ujian_gto.errors import LiveChannelError, ValidationFailed
from ujian_gto.schemas import ActiveStudent, WarningResult
from ujian_gto.services.sse_manager import SSEConnectionManager, Subscription, sse_manager

logger = logging.getLogger(__name__)

WARNING_EVENT = "warning"
SUBMITTED_EVENT = "submitted"


def room_name(exam_id: str) -> str:
    return f"exam-{exam_id}"


def is_warning_for(payload: dict, nisn: str) -> bool:
    """A warning without target goes to everyone, otherwise only to its NISN."""
    target = payload.get("targetNisn")
    return target is None or str(target) == str(nisn)


async def announce_submission(exam_id: str, nisn: str, manager: SSEConnectionManager = sse_manager) -> bool:
    """Tell the student's open streams that the attempt is over."""
    try:
        await manager.broadcast(room_name(exam_id), SUBMITTED_EVENT, {"nisn": nisn})
    except LiveChannelError as e:
        logger.warning("⚠️ Submission of %s not announced in %s: %s", nisn, room_name(exam_id), e)
        return False
    return True


class StudentChannel:
    """Presence + warning inbox for one student during an attempt."""

    def __init__(self, exam_id: str, name: str, nisn: str, class_name: str,
                 manager: SSEConnectionManager = sse_manager):
        self.exam_id = exam_id
        self.room = room_name(exam_id)
        self.name = name
        self.nisn = nisn
        self.class_name = class_name
        self.manager = manager
        self.subscription: Optional[Subscription] = None
        self.finished = False

    @property
    def connected(self) -> bool:
        return self.subscription is not None

    def join(self) -> bool:
        try:
            self.subscription = self.manager.subscribe(self.room)
        except LiveChannelError as e:
            logger.warning("⚠️ Live channel unavailable for %s in %s: %s", self.nisn, self.room, e)
            return False
        self.manager.track(self.subscription, self.nisn, {
            "name": self.name,
            "nisn": self.nisn,
            "class": self.class_name,
            "onlineAt": now_wib_iso(),
        })
        logger.info("🟢 %s (%s) joined %s", self.name, self.nisn, self.room)
        return True

    def accept(self, message: dict) -> Optional[dict]:
        """
        Return the warning payload to display, or None for anything else.
        A submission notice for this student marks the channel finished.
        """
        if message.get("type") != "broadcast":
            return None
        payload = message.get("payload") or {}
        if message.get("event") == SUBMITTED_EVENT:
            if str(payload.get("nisn")) == str(self.nisn):
                self.finished = True
            return None
        if message.get("event") != WARNING_EVENT:
            return None
        if not is_warning_for(payload, self.nisn):
            return None
        return payload

    async def next_warning(self, timeout: float) -> Optional[dict]:
        """Wait up to `timeout` seconds for a warning addressed to this student."""
        if not self.connected:
            await asyncio.sleep(timeout)
            return None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                message = await asyncio.wait_for(self.subscription.queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                return None
            warning = self.accept(message)
            if warning is not None or self.finished:
                return warning

    def leave(self) -> None:
        if self.subscription is None:
            return
        self.manager.unsubscribe(self.subscription)
        self.subscription = None
        logger.info("⚪ %s left %s", self.nisn, self.room)


class ExamMonitor:
    """Teacher view of a room: who is online, and a way to warn them."""

    def __init__(self, exam_id: str, manager: SSEConnectionManager = sse_manager):
        self.exam_id = exam_id
        self.room = room_name(exam_id)
        self.manager = manager
        self.subscription: Optional[Subscription] = None
        self.active_students: List[ActiveStudent] = []

    @property
    def connected(self) -> bool:
        return self.subscription is not None

    def join(self) -> bool:
        """Subscribe without publishing presence."""
        try:
            self.subscription = self.manager.subscribe(self.room)
        except LiveChannelError as e:
            logger.warning("⚠️ Monitor for %s degraded: %s", self.room, e)
            return False
        logger.info("👀 Monitor connected to %s", self.room)
        return True

    def apply_sync(self, state: dict) -> List[ActiveStudent]:
        students = []
        for key, metas in state.items():
            meta = metas[0] if metas else None
            if not meta or not meta.get("nisn"):
                continue
            students.append(ActiveStudent(
                nisn=str(meta["nisn"]),
                name=meta.get("name", ""),
                class_=meta.get("class") or "",
                online_at=meta.get("onlineAt") or now_wib_iso(),
            ))
        students.sort(key=lambda s: s.name.lower())
        self.active_students = students
        return students

    def refresh(self) -> List[ActiveStudent]:
        """Rebuild the list from the hub's current snapshot."""
        return self.apply_sync(self.manager.presence_state(self.room))

    def handle(self, message: dict) -> Optional[dict]:
        """
        Turn a room message into a monitor event.

        Only `sync` snapshots change the active list; `join` and `leave`
        are passed through as information.
        """
        if message.get("type") != "presence":
            return None
        event = message.get("event")
        if event == "sync":
            students = self.apply_sync(message.get("state") or {})
            return {
                "type": "sync",
                "activeStudents": [s.model_dump(by_alias=True) for s in students],
            }
        if event in ("join", "leave"):
            logger.debug("%s presence %s: %s", self.room, event, message.get("key"))
            return {"type": event, "key": message.get("key")}
        return None

    async def next_event(self, timeout: float) -> Optional[dict]:
        if not self.connected:
            await asyncio.sleep(timeout)
            return None
        try:
            message = await asyncio.wait_for(self.subscription.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return self.handle(message)

    def search(self, query: str) -> List[ActiveStudent]:
        q = (query or "").strip().lower()
        if not q:
            return list(self.active_students)
        return [s for s in self.active_students if q in s.name.lower() or q in s.nisn]

    async def send_warning(self, message: str, target_nisn: Optional[str] = None) -> WarningResult:
        """Broadcast a warning; `target_nisn=None` reaches every active student."""
        text = (message or "").strip()
        if not text:
            raise ValidationFailed("Pesan peringatan tidak boleh kosong.")
        payload = {"message": text, "targetNisn": target_nisn}
        try:
            reached = await self.manager.broadcast(self.room, WARNING_EVENT, payload)
        except LiveChannelError as e:
            logger.warning("⚠️ Warning not sent to %s: %s", self.room, e)
            return WarningResult(sent=False, target_nisn=target_nisn)
        logger.info("📣 Warning sent in %s to %s (%d subscribers)", self.room, target_nisn or "all", reached)
        return WarningResult(sent=True, target_nisn=target_nisn)

    def leave(self) -> None:
        if self.subscription is None:
            return
        self.manager.unsubscribe(self.subscription)
        self.subscription = None
