from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ujian_gto.dependencies import get_store
from ujian_gto.schemas import GradeRequest, Submission, SubmissionStats
from ujian_gto.services.grading import grade_submission
from ujian_gto.services.session_store import SessionStore, filter_submissions

router = APIRouter(tags=["Submission"])


@router.get("", response_model=List[Submission])
async def list_submissions(
    status: str = Query("all", pattern="^(all|pending|graded)$"),
    q: Optional[str] = None,
    store: SessionStore = Depends(get_store),
):
    """Teacher dashboard: submissions newest first, filtered by status tab and search."""
    return filter_submissions(store.fetch_submissions(), status, q)


@router.get("/stats", response_model=SubmissionStats)
async def submission_stats(store: SessionStore = Depends(get_store)):
    return store.submission_stats()


@router.get("/{submission_id}", response_model=Submission)
async def get_submission(submission_id: str, store: SessionStore = Depends(get_store)):
    return store.get_submission(submission_id)


@router.post("/{submission_id}/grade", response_model=Submission)
async def grade(submission_id: str, request: GradeRequest, store: SessionStore = Depends(get_store)):
    """Score a submission against the rubric; re-grading overwrites."""
    return grade_submission(
        store,
        submission_id,
        request.dimension,
        request.efficiency,
        request.aesthetics,
        request.feedback,
    )


@router.delete("/{submission_id}")
async def delete_submission(submission_id: str, store: SessionStore = Depends(get_store)):
    store.delete_submission(submission_id)
    return {"success": True}
