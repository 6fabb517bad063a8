from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ujian_gto.database import get_db
from ujian_gto.dependencies import get_kv_store
from ujian_gto.schemas import LoginRequest, UserInfo
from ujian_gto.services import auth
from ujian_gto.services.local_state import KeyValueStore

router = APIRouter(tags=["Auth"])


@router.post("/login", response_model=UserInfo)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    kv: KeyValueStore = Depends(get_kv_store),
):
    """
    Student logs in with NISN, teacher with username/password.
    Returns the `user_info` identity the client keeps for the session.
    """
    return auth.login(db, kv, request.role, request.username, request.password)
