from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import asyncio
import json

from ujian_gto.config import settings
from ujian_gto.database import get_db
from ujian_gto.dependencies import get_live_manager, get_store
from ujian_gto.errors import ValidationFailed
from ujian_gto.schemas import ActiveStudent, WarningRequest, WarningResult
from ujian_gto.services.live_channel import ExamMonitor, StudentChannel
from ujian_gto.services.session_store import SessionStore
from ujian_gto.services.sse_manager import SSEConnectionManager
from ujian_gto.services.students import get_student

router = APIRouter(tags=["Live"])


def _event(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


async def student_events(channel: StudentChannel, request: Request, keepalive: float):
    """
    Warnings addressed to one student, with keep-alive pings in between.
    Ends once the student's submission is announced.
    """
    channel.join()
    try:
        yield _event({"type": "status", "connected": channel.connected})
        while True:
            if await request.is_disconnected():
                break
            warning = await channel.next_warning(keepalive)
            if channel.finished:
                yield _event({"type": "submitted"})
                break
            if warning is not None:
                yield _event({"type": "warning", "data": warning})
            else:
                yield ": ping\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        channel.leave()


async def monitor_events(monitor: ExamMonitor, request: Request, keepalive: float):
    """Presence snapshots for the teacher's monitor page."""
    monitor.join()
    try:
        yield _event({"type": "status", "connected": monitor.connected})
        while True:
            if await request.is_disconnected():
                break
            event = await monitor.next_event(keepalive)
            if event is not None:
                yield _event(event)
            else:
                yield ": ping\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        monitor.leave()


@router.get("/{exam_id}/student")
async def student_stream(
    exam_id: str,
    nisn: str,
    request: Request,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_store),
    manager: SSEConnectionManager = Depends(get_live_manager),
):
    """
    SSE endpoint for a student during an attempt: publishes presence while
    connected and delivers warnings meant for this student.
    """
    exam = store.get_exam(exam_id)
    student = get_student(db, nisn)
    if store.find_submission(exam.id, student.nisn) is not None:
        raise ValidationFailed("Anda sudah mengumpulkan ujian ini.")
    channel = StudentChannel(exam.id, student.name, student.nisn, student.class_, manager=manager)
    return StreamingResponse(
        student_events(channel, request, settings.live_keepalive_seconds),
        media_type="text/event-stream",
    )


@router.get("/{exam_id}/monitor")
async def monitor_stream(
    exam_id: str,
    request: Request,
    store: SessionStore = Depends(get_store),
    manager: SSEConnectionManager = Depends(get_live_manager),
):
    """SSE endpoint for teachers: active-student snapshots for one exam."""
    exam = store.get_exam(exam_id)
    monitor = ExamMonitor(exam.id, manager=manager)
    return StreamingResponse(
        monitor_events(monitor, request, settings.live_keepalive_seconds),
        media_type="text/event-stream",
    )


@router.get("/{exam_id}/active", response_model=List[ActiveStudent])
async def active_students(
    exam_id: str,
    q: Optional[str] = None,
    manager: SSEConnectionManager = Depends(get_live_manager),
):
    """Students currently connected to the exam room, sorted by name."""
    monitor = ExamMonitor(exam_id, manager=manager)
    monitor.refresh()
    return monitor.search(q)


@router.post("/{exam_id}/warning", response_model=WarningResult)
async def send_warning(
    exam_id: str,
    request: WarningRequest,
    manager: SSEConnectionManager = Depends(get_live_manager),
):
    """Warn one student (targetNisn) or everyone in the room (targetNisn null)."""
    monitor = ExamMonitor(exam_id, manager=manager)
    return await monitor.send_warning(request.message, request.target_nisn)
