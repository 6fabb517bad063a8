"""
Fixed three-criterion rubric for CAD submissions.
"""
import logging
from typing import Optional

from ujian_gto.errors import ValidationFailed
from ujian_gto.models.session import SubmissionStatus
from ujian_gto.schemas import Criteria, Submission, SubmissionUpdate

logger = logging.getLogger(__name__)

# criterion -> (label, max points)
RUBRIC = {
    "dimension": ("Akurasi Dimensi", 40),
    "efficiency": ("Efisiensi Pemodelan", 40),
    "aesthetics": ("Kerapian & Estetika", 20),
}
MAX_SCORE = 100


def validate_criteria(dimension: int, efficiency: int, aesthetics: int) -> Criteria:
    values = {"dimension": dimension, "efficiency": efficiency, "aesthetics": aesthetics}
    for name, value in values.items():
        label, max_points = RUBRIC[name]
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationFailed(f"Nilai {label} harus berupa bilangan bulat.")
        if value < 0 or value > max_points:
            raise ValidationFailed(f"Nilai {label} harus antara 0 dan {max_points}.")
    return Criteria(**values)


def total_score(criteria: Criteria) -> int:
    """Sum of the criteria clamped to 0..100."""
    return min(MAX_SCORE, max(0, criteria.dimension + criteria.efficiency + criteria.aesthetics))


def grade_submission(store, submission_id: str, dimension: int, efficiency: int, aesthetics: int,
                     feedback: Optional[str] = None) -> Submission:
    """
    Persist a grade through the session store. Grading an already graded
    submission simply overwrites it.
    """
    criteria = validate_criteria(dimension, efficiency, aesthetics)
    score = total_score(criteria)
    submission = store.get_submission(submission_id)
    if submission.status == SubmissionStatus.GRADED:
        logger.info("✏️ Re-grading submission %s (was %s)", submission_id, submission.score)

    changes = SubmissionUpdate(status=SubmissionStatus.GRADED, score=score, criteria=criteria)
    if feedback is not None:
        changes.feedback = feedback
    store.update_submission(submission_id, changes)
    logger.info("✅ Graded %s for %s: %d", submission_id, submission.student_name, score)
    return store.get_submission(submission_id)
