"""
Rank calculation for exam scores.

Ranks are dense with tie grouping: equal values share a rank and the next
distinct value skips past the tie group, so [95, 95, 90, 80] ranks as
[1, 1, 3, 4]. Absent scores and scores without a value stay unranked.
"""
from typing import List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from .exams import find_exam_by_id
from .exceptions import NotFoundError
from .scores_read import find_scores_by_exam
from .statistics import is_submitted

logger = get_logger(__name__)


def assign_ranks(scores: Sequence) -> List:
    """
    Set ``rank`` on every score of one exam.

    Args:
        scores: Score-like objects with ``score``, ``is_absent`` and ``rank``

    Returns:
        The ranked scores, best first. Every other score has ``rank`` cleared.
    """
    rankable = []
    for score in scores:
        if is_submitted(score):
            rankable.append(score)
        else:
            score.rank = None

    # sorted() is stable, so tied scores keep their input order
    ordered = sorted(rankable, key=lambda s: s.score, reverse=True)

    # A new value takes its position, so a tie group of n uses up n ranks
    current_rank = 0
    previous_value = None
    for position, score in enumerate(ordered, start=1):
        if score.score != previous_value:
            current_rank = position
            previous_value = score.score
        score.rank = current_rank

    return ordered


async def calculate_ranks(db: AsyncSession, exam_id: int) -> int:
    """
    Recompute and store the ranks of every score in an exam.

    All ranks are written in one transaction. Concurrent recalculations of
    the same exam are not serialized; the last commit wins.

    Returns:
        Number of scores that received a rank

    Raises:
        NotFoundError: If the exam does not exist
    """
    exam = await find_exam_by_id(db, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id)

    scores = await find_scores_by_exam(db, exam_id)
    ranked = assign_ranks(scores)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Ranked {len(ranked)} of {len(scores)} scores for exam {exam_id}")
    return len(ranked)
