from fastapi import APIRouter, Depends, File, UploadFile
from typing import List, Optional

from ujian_gto.dependencies import get_blueprint_storage, get_store
from ujian_gto.errors import safe_raise_http
from ujian_gto.schemas import BlueprintUploadResponse, Exam, ExamCreate, ExamUpdate
from ujian_gto.services.blueprints import BlueprintStorage
from ujian_gto.services.session_store import SessionStore, filter_exams

router = APIRouter(tags=["Exam"])


@router.get("", response_model=List[Exam])
async def list_exams(q: Optional[str] = None, store: SessionStore = Depends(get_store)):
    """All exam packets, newest first. `q` searches titles."""
    return filter_exams(store.fetch_exams(), q)


@router.post("", response_model=Exam, status_code=201)
async def create_exam(request: ExamCreate, store: SessionStore = Depends(get_store)):
    """Teacher creates an exam packet (blueprint uploaded beforehand)."""
    return store.add_exam(request)


@router.post("/blueprints", response_model=BlueprintUploadResponse, status_code=201)
async def upload_blueprint(
    file: UploadFile = File(...),
    storage: BlueprintStorage = Depends(get_blueprint_storage),
):
    """Store a blueprint image and return its public URL."""
    data = await file.read()
    name = storage.generate_name(file.filename or "blueprint.png")
    try:
        path = storage.upload(name, data, upsert=True)
    except OSError as e:
        safe_raise_http("Gagal upload gambar. Pastikan storage sudah diatur.", e, status_code=503)
    return BlueprintUploadResponse(url=storage.public_url(path), path=path)


@router.get("/{exam_id}", response_model=Exam)
async def get_exam(exam_id: str, store: SessionStore = Depends(get_store)):
    return store.get_exam(exam_id)


@router.put("/{exam_id}", response_model=Exam)
async def update_exam(exam_id: str, request: ExamUpdate, store: SessionStore = Depends(get_store)):
    """Partial update; omitted fields keep their stored values."""
    return store.update_exam(exam_id, request)


@router.delete("/{exam_id}")
async def delete_exam(exam_id: str, store: SessionStore = Depends(get_store)):
    store.delete_exam(exam_id)
    return {"success": True}
