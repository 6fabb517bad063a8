from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional

from ujian_gto.database import get_db
from ujian_gto.schemas import ImportResult, StudentOut
from ujian_gto.services import students

router = APIRouter(tags=["Student"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("", response_model=List[StudentOut])
async def list_students(q: Optional[str] = None, db: Session = Depends(get_db)):
    """Roster sorted by name; `q` matches name, NISN or class."""
    return [
        StudentOut(id=s.id, name=s.name, nisn=s.nisn, class_=s.class_, created_at=s.created_at)
        for s in students.list_students(db, q)
    ]


@router.delete("/{student_id}")
async def delete_student(student_id: str, db: Session = Depends(get_db)):
    students.delete_student(db, student_id)
    return {"success": True}


@router.post("/import", response_model=ImportResult)
async def import_students(file: UploadFile = File(...), db: Session = Depends(get_db)):
    """Bulk import from .xlsx (columns Nama/Name, NISN/NIS, Kelas/Class)."""
    data = await file.read()
    return students.import_students(db, data)


@router.get("/import/template")
async def download_template():
    return Response(
        content=students.build_template_xlsx(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="Template_Import_Siswa.xlsx"'},
    )
