"""
Tests for dense ranking with ties.
"""
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import Score
from services import NotFoundError, assign_ranks, calculate_ranks


def make_scores(values):
    """None is an absent student."""
    return [
        SimpleNamespace(id=i, score=v, is_absent=v is None, rank="stale")
        for i, v in enumerate(values)
    ]


class TestAssignRanks:

    @pytest.mark.parametrize(
        "values, expected",
        [
            ([95, 95, 90, 80], [1, 1, 3, 4]),
            ([100, 90, 90, 70], [1, 2, 2, 4]),
            ([50, 50, 50], [1, 1, 1]),
            ([60, 70, 80], [3, 2, 1]),
            ([88.5, 88.5, 88.0, 88.5], [1, 1, 4, 1]),
        ],
    )
    def test_tie_groups(self, values, expected):
        scores = make_scores(values)
        assign_ranks(scores)
        assert [s.rank for s in scores] == expected

    def test_absent_scores_are_unranked(self):
        scores = make_scores([None, 80, None, 90])
        ranked = assign_ranks(scores)
        assert [s.rank for s in scores] == [None, 2, None, 1]
        assert [s.score for s in ranked] == [90, 80]

    def test_null_value_is_unranked(self):
        scores = make_scores([70, 75])
        scores.append(SimpleNamespace(id=9, score=None, is_absent=False, rank=3))
        assign_ranks(scores)
        assert scores[-1].rank is None
        assert [s.rank for s in scores[:2]] == [2, 1]

    def test_all_absent(self):
        scores = make_scores([None, None])
        assert assign_ranks(scores) == []
        assert all(s.rank is None for s in scores)

    def test_empty(self):
        assert assign_ranks([]) == []

    def test_ranks_are_monotonic(self):
        scores = make_scores([61, 99, 75, 75, 99, 12, 75, 40])
        ranked = assign_ranks(scores)
        for higher, lower in zip(ranked, ranked[1:]):
            assert higher.score >= lower.score
            assert higher.rank <= lower.rank
            if higher.score == lower.score:
                assert higher.rank == lower.rank
        # Rank = 1 + number of strictly better scores
        for s in ranked:
            assert s.rank == 1 + sum(1 for o in ranked if o.score > s.score)

    def test_ties_keep_input_order(self):
        scores = make_scores([80, 90, 80])
        ranked = assign_ranks(scores)
        assert [s.id for s in ranked] == [1, 0, 2]

    def test_idempotent(self):
        scores = make_scores([95, 95, 90, None, 80])
        assign_ranks(scores)
        first = [s.rank for s in scores]
        assign_ranks(scores)
        assert [s.rank for s in scores] == first


@pytest.mark.anyio
class TestCalculateRanks:

    async def test_ranks_are_persisted(self, db, school, add_scores):
        a1, a2, a3, a4 = school.students_a
        await add_scores(school.exam_a, [(a1, 95), (a2, 95), (a3, 90), (a4, None)])

        ranked = await calculate_ranks(db, school.exam_a.id)
        assert ranked == 3

        result = await db.execute(
            select(Score.student_id, Score.rank).where(Score.exam_id == school.exam_a.id)
        )
        ranks = dict(result.all())
        assert ranks == {a1.id: 1, a2.id: 1, a3.id: 3, a4.id: None}

    async def test_exam_without_scores(self, db, school):
        assert await calculate_ranks(db, school.exam_b.id) == 0

    async def test_recalculation_after_change(self, db, school, add_scores):
        b1, b2, b3 = school.students_b
        scores = await add_scores(school.exam_b, [(b1, 70), (b2, 80), (b3, 90)])
        await calculate_ranks(db, school.exam_b.id)

        scores[0].score = 100
        await db.commit()
        await calculate_ranks(db, school.exam_b.id)

        result = await db.execute(
            select(Score.student_id, Score.rank).where(Score.exam_id == school.exam_b.id)
        )
        assert dict(result.all()) == {b1.id: 1, b2.id: 3, b3.id: 2}

    async def test_missing_exam(self, db, school):
        with pytest.raises(NotFoundError):
            await calculate_ranks(db, 9999)

    async def test_failed_commit_keeps_stored_ranks(
        self, db, session_factory, school, add_scores, monkeypatch
    ):
        b1, b2, b3 = school.students_b
        await add_scores(school.exam_b, [(b1, 70), (b2, 80)])
        await calculate_ranks(db, school.exam_b.id)
        await add_scores(school.exam_b, [(b3, 90)])

        async def failing_commit(self):
            raise RuntimeError("connection lost")

        with monkeypatch.context() as m:
            m.setattr(AsyncSession, "commit", failing_commit)
            with pytest.raises(RuntimeError):
                await calculate_ranks(db, school.exam_b.id)

        async with session_factory() as fresh:
            result = await fresh.execute(
                select(Score.student_id, Score.rank).where(Score.exam_id == school.exam_b.id)
            )
            assert dict(result.all()) == {b1.id: 2, b2.id: 1, b3.id: None}
