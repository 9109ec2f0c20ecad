"""
Cross-class comparison and subject statistics.

Both build on the per-exam primitives in :mod:`services.statistics`.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from .authorization import CallerScope, ResourceKind, enforce_exam_statistics_access, scope_for
from .exams import find_exam_by_id, find_exams_by_subject, find_sibling_exams
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .scores_read import find_scores_for_exams
from .statistics import Thresholds, get_exam_statistics, submitted_values, summarize

logger = get_logger(__name__)

UNKNOWN_TEACHER = "Unknown teacher"


class ComparisonBasis(str, Enum):
    """What makes two exams siblings besides sharing a subject."""
    DATE = "date"
    SEMESTER = "semester"


async def get_class_comparison(
    db: AsyncSession,
    exam_id: int,
    caller: CallerScope,
    basis: ComparisonBasis = ComparisonBasis.DATE,
    thresholds: Optional[Thresholds] = None,
) -> Dict[str, Any]:
    """
    Compare the statistics of every class that sat the same subject on the
    same date (or in the same semester) as a reference exam.

    Sibling exams the caller may not see are skipped, not reported as errors.

    Raises:
        NotFoundError: If the reference exam does not exist
        ExamAccessDenied: If the caller neither owns the reference exam nor has full scope
        ValidationError: If comparing by semester and the exam has none
    """
    thresholds = (thresholds or Thresholds.from_settings()).validated()
    basis = ComparisonBasis(basis)
    logger.info(f"Class comparison: exam={exam_id} user={caller.user_id} basis={basis.value}")

    exam = await find_exam_by_id(db, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id)
    enforce_exam_statistics_access(caller, exam)

    if basis is ComparisonBasis.SEMESTER:
        if exam.semester_id is None:
            raise ValidationError(f"Exam {exam_id} has no semester", field="semester_id")
        siblings = await find_sibling_exams(db, exam.subject, semester_id=exam.semester_id)
    else:
        siblings = await find_sibling_exams(db, exam.subject, exam_date=exam.exam_date)

    logger.info(f"Found {len(siblings)} sibling exams for exam {exam_id}")

    rows: List[Dict[str, Any]] = []
    for sibling in siblings:
        try:
            stats = await get_exam_statistics(db, sibling.id, caller, thresholds)
        except (AuthorizationError, NotFoundError) as exc:
            logger.warning(f"Skipping exam {sibling.id} in comparison: {exc}")
            continue
        rows.append({
            "class_name": sibling.class_name,
            "teacher_name": sibling.teacher.name if sibling.teacher else UNKNOWN_TEACHER,
            **stats,
        })

    rows.sort(key=lambda row: row["average_score"], reverse=True)
    logger.info(f"Compared {len(rows)} classes for exam {exam_id}")

    return {
        "exam_info": {
            "exam_id": exam.id,
            "name": exam.name,
            "subject": exam.subject,
            "exam_date": exam.exam_date.isoformat(),
            "basis": basis.value,
        },
        "class_comparison": rows,
    }


async def get_subject_statistics(
    db: AsyncSession,
    subject: str,
    caller: CallerScope,
    semester_id: Optional[int] = None,
    class_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Statistics over every visible exam of one subject.

    Raises:
        NotFoundError: If no visible exam matches
    """
    logger.info(
        f"Subject statistics: subject={subject} semester={semester_id} class={class_name}"
    )

    exams = await find_exams_by_subject(
        db, subject, scope_for(caller, ResourceKind.EXAM), semester_id, class_name
    )
    if not exams:
        raise NotFoundError("Exams of subject", subject)

    scores = await find_scores_for_exams(db, [exam.id for exam in exams])
    values = submitted_values(scores)

    exam_stats = []
    for exam in exams:
        exam_scores = [s for s in scores if s.exam_id == exam.id]
        exam_values = submitted_values(exam_scores)
        exam_stats.append({
            "exam_id": exam.id,
            "exam_name": exam.name,
            "exam_date": exam.exam_date.isoformat(),
            "class_name": exam.class_name,
            "total_students": len(exam_scores),
            "valid_students": len(exam_values),
            **summarize(exam_values),
        })

    return {
        "subject": subject,
        "semester_id": semester_id,
        "class_name": class_name,
        "total_exams": len(exams),
        "total_students": len(scores),
        "valid_students": len(values),
        **summarize(values),
        "exam_stats": exam_stats,
    }
