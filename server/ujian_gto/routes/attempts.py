from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
import asyncio
import json
import logging

from ujian_gto.config import settings
from ujian_gto.database import get_db
from ujian_gto.datetime_utils import now_wib_iso
from ujian_gto.dependencies import get_clock, get_kv_store, get_live_manager, get_store
from ujian_gto.errors import ValidationFailed
from ujian_gto.schemas import AttemptRequest, AttemptState, NewSubmission, Submission, SubmitAttemptRequest
from ujian_gto.services.live_channel import announce_submission
from ujian_gto.services.local_state import KeyValueStore
from ujian_gto.services.session_store import SessionStore
from ujian_gto.services.sse_manager import SSEConnectionManager
from ujian_gto.services.students import get_student
from ujian_gto.services.timer import AttemptController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Attempt"])

ONSHAPE_HOST = "onshape.com"


def load_attempt(exam_id: str, nisn: str, store: SessionStore, kv: KeyValueStore, clock) -> AttemptController:
    """Controller for (exam, student), already entered and aware of an existing submission."""
    exam = store.get_exam(exam_id)
    controller = AttemptController(exam.id, exam.duration, nisn, kv, clock=clock)
    controller.enter()
    if store.find_submission(exam.id, nisn) is not None:
        controller.submitted = True
    return controller


async def timer_events(controller: AttemptController, request: Request, tick_seconds: float):
    """
    One event per tick with the attempt state; ends at zero, on submission
    or when the client goes away.
    """
    while True:
        if await request.is_disconnected():
            break
        state = controller.state()
        yield f"data: {json.dumps(state.model_dump(mode='json', by_alias=True))}\n\n"
        if not controller.is_running():
            break
        await asyncio.sleep(tick_seconds)
        controller.tick()
        # Submitted from another tab/request: the start key is gone
        if controller.store.get(controller.owner, controller.key) is None:
            controller.submitted = True


@router.post("/{exam_id}/enter", response_model=AttemptState)
async def enter_attempt(
    exam_id: str,
    request: AttemptRequest,
    store: SessionStore = Depends(get_store),
    kv: KeyValueStore = Depends(get_kv_store),
    clock=Depends(get_clock),
):
    """
    Student opens the exam page. Before the rules are accepted the full
    duration is shown; after a reload the remaining time is recovered.
    """
    return load_attempt(exam_id, request.nisn, store, kv, clock).state()


@router.post("/{exam_id}/accept", response_model=AttemptState)
async def accept_rules(
    exam_id: str,
    request: AttemptRequest,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_store),
    kv: KeyValueStore = Depends(get_kv_store),
    clock=Depends(get_clock),
):
    """Student agrees to the exam rules; the countdown starts now."""
    get_student(db, request.nisn)
    controller = load_attempt(exam_id, request.nisn, store, kv, clock)
    if controller.submitted:
        raise ValidationFailed("Anda sudah mengumpulkan ujian ini.")
    return controller.accept_rules()


@router.get("/{exam_id}/state", response_model=AttemptState)
async def attempt_state(
    exam_id: str,
    nisn: str,
    store: SessionStore = Depends(get_store),
    kv: KeyValueStore = Depends(get_kv_store),
    clock=Depends(get_clock),
):
    return load_attempt(exam_id, nisn, store, kv, clock).state()


@router.get("/{exam_id}/timer")
async def attempt_timer(
    exam_id: str,
    nisn: str,
    request: Request,
    store: SessionStore = Depends(get_store),
    kv: KeyValueStore = Depends(get_kv_store),
    clock=Depends(get_clock),
):
    """SSE countdown for a running attempt."""
    controller = load_attempt(exam_id, nisn, store, kv, clock)
    return StreamingResponse(
        timer_events(controller, request, settings.timer_tick_seconds),
        media_type="text/event-stream",
    )


@router.post("/{exam_id}/submit", response_model=Submission, status_code=201)
async def submit_attempt(
    exam_id: str,
    request: SubmitAttemptRequest,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_store),
    kv: KeyValueStore = Depends(get_kv_store),
    clock=Depends(get_clock),
    manager: SSEConnectionManager = Depends(get_live_manager),
):
    """
    Student submits the Onshape link. Allowed after time is up, in which
    case the submission is flagged late.
    """
    link = request.onshape_link.strip()
    if ONSHAPE_HOST not in link:
        raise ValidationFailed("Masukkan link dokumen Onshape yang valid.")

    student = get_student(db, request.nisn)
    controller = load_attempt(exam_id, student.nisn, store, kv, clock)
    if controller.submitted:
        raise ValidationFailed("Anda sudah mengumpulkan ujian ini.")
    if not controller.started:
        raise ValidationFailed("Ujian belum dimulai. Setujui tata tertib terlebih dahulu.")

    exam = store.get_exam(exam_id)
    submission = store.add_submission(NewSubmission(
        student_name=student.name,
        nis=student.nisn,
        exam_id=exam.id,
        exam_title=exam.title,
        submit_time=now_wib_iso(),
        onshape_link=link,
        is_late=controller.is_late(),
    ))
    controller.finish()
    await announce_submission(exam.id, student.nisn, manager)
    return submission
