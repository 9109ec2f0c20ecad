"""
Tests for score entry, import and deletion.
"""
import math

import pytest
from sqlalchemy import func, select

from database import Score
from services import (
    DuplicateScoreError,
    NotFoundError,
    ScoreEntry,
    ValidationError,
    create_score,
    delete_exam,
    delete_score,
    delete_student,
    find_score,
    get_exam_scores,
    get_student_scores,
    import_scores,
    list_scores,
    save_scores,
    update_score,
)


async def count_scores(db, exam_id=None):
    stmt = select(func.count(Score.id))
    if exam_id is not None:
        stmt = stmt.where(Score.exam_id == exam_id)
    result = await db.execute(stmt)
    return result.scalar_one()


@pytest.mark.anyio
class TestCreateScore:

    async def test_create(self, db, school):
        student = school.students_a[0]
        score = await create_score(db, school.teacher_a, student.id, school.exam_a.id, 88.5)

        assert score.id is not None
        assert score.score == 88.5
        assert score.user_id == school.teacher_a.user_id
        assert score.rank is None
        assert score.to_dict()["student_name"] == student.name

    async def test_duplicate_rejected(self, db, school):
        student = school.students_a[0]
        await create_score(db, school.teacher_a, student.id, school.exam_a.id, 70)

        with pytest.raises(DuplicateScoreError) as exc_info:
            await create_score(db, school.teacher_a, student.id, school.exam_a.id, 75)
        assert exc_info.value.kind == "invalid_input"
        assert await count_scores(db, school.exam_a.id) == 1

    async def test_absent_stores_no_value(self, db, school):
        score = await create_score(
            db, school.teacher_a, school.students_a[1].id, school.exam_a.id, 50, is_absent=True
        )
        assert score.is_absent
        assert score.score is None

    @pytest.mark.parametrize("value", [-1, 100.5, math.nan, "90", True])
    async def test_invalid_value(self, db, school, value):
        with pytest.raises(ValidationError):
            await create_score(db, school.teacher_a, school.students_a[0].id, school.exam_a.id, value)

    async def test_exam_outside_scope(self, db, school):
        with pytest.raises(NotFoundError):
            await create_score(db, school.teacher_b, school.students_a[0].id, school.exam_a.id, 80)

    async def test_unknown_student(self, db, school):
        with pytest.raises(NotFoundError):
            await create_score(db, school.teacher_a, 9999, school.exam_a.id, 80)

    async def test_student_outside_scope(self, db, school):
        with pytest.raises(NotFoundError):
            await create_score(db, school.teacher_a, school.students_b[0].id, school.exam_a.id, 80)
        assert await count_scores(db) == 0

        score = await create_score(db, school.admin, school.students_b[0].id, school.exam_a.id, 80)
        assert score.student_id == school.students_b[0].id


@pytest.mark.anyio
class TestUpdateAndDelete:

    async def test_update_value_and_absence(self, db, school):
        score = await create_score(db, school.teacher_a, school.students_a[0].id, school.exam_a.id, 60)

        updated = await update_score(db, school.teacher_a, score.id, score=72)
        assert updated.score == 72

        absent = await update_score(db, school.teacher_a, score.id, is_absent=True)
        assert absent.is_absent
        assert absent.score is None

    async def test_update_outside_scope(self, db, school):
        score = await create_score(db, school.teacher_a, school.students_a[0].id, school.exam_a.id, 60)
        with pytest.raises(NotFoundError):
            await update_score(db, school.teacher_b, score.id, score=99)

    async def test_delete(self, db, school):
        score = await create_score(db, school.teacher_a, school.students_a[0].id, school.exam_a.id, 60)
        await delete_score(db, school.teacher_a, score.id)

        with pytest.raises(NotFoundError):
            await find_score(db, school.admin, score.id)

    async def test_scores_removed_with_student(self, db, school, add_scores):
        student = school.students_a[0]
        await add_scores(school.exam_a, [(student, 80), (school.students_a[1], 70)])

        await delete_student(db, school.teacher_a, student.id)
        assert await count_scores(db, school.exam_a.id) == 1

    async def test_scores_removed_with_exam(self, db, school, add_scores):
        await add_scores(school.exam_b, [(school.students_b[0], 80)])

        await delete_exam(db, school.teacher_b, school.exam_b.id)
        assert await count_scores(db, school.exam_b.id) == 0


@pytest.mark.anyio
class TestImportScores:

    async def test_empty_import(self, db, school):
        assert await import_scores(db, school.teacher_a, []) == []
        assert await save_scores(db, []) == []

    async def test_import_is_idempotent(self, db, school):
        entries = [
            ScoreEntry(student_id=s.id, exam_id=school.exam_a.id, score=v)
            for s, v in zip(school.students_a, [91, 82, 73])
        ]

        first = await import_scores(db, school.teacher_a, entries)
        second = await import_scores(db, school.teacher_a, entries)

        assert len(first) == len(second) == 3
        assert {s.id for s in first} == {s.id for s in second}
        assert await count_scores(db, school.exam_a.id) == 3

    async def test_import_updates_existing(self, db, school, add_scores):
        student = school.students_a[0]
        await add_scores(school.exam_a, [(student, 50)])

        (saved,) = await import_scores(
            db, school.teacher_a, [ScoreEntry(student.id, school.exam_a.id, score=65)]
        )
        assert saved.score == 65
        assert await count_scores(db, school.exam_a.id) == 1

    async def test_repeated_pair_in_one_batch(self, db, school):
        student = school.students_a[0]
        saved = await import_scores(db, school.teacher_a, [
            ScoreEntry(student.id, school.exam_a.id, score=40),
            ScoreEntry(student.id, school.exam_a.id, score=45),
        ])
        assert len(saved) == 1
        assert saved[0].score == 45

    async def test_invalid_row_rejects_whole_batch(self, db, school):
        entries = [
            ScoreEntry(school.students_a[0].id, school.exam_a.id, score=80),
            ScoreEntry(school.students_a[1].id, school.exam_a.id, score=180),
        ]
        with pytest.raises(ValidationError):
            await import_scores(db, school.teacher_a, entries)
        assert await count_scores(db) == 0

    async def test_import_outside_scope(self, db, school):
        entries = [ScoreEntry(school.students_b[0].id, school.exam_b.id, score=80)]
        with pytest.raises(NotFoundError):
            await import_scores(db, school.teacher_a, entries)

    async def test_import_student_outside_scope(self, db, school):
        entries = [
            ScoreEntry(school.students_a[0].id, school.exam_a.id, score=80),
            ScoreEntry(school.students_b[0].id, school.exam_a.id, score=70),
        ]
        with pytest.raises(NotFoundError):
            await import_scores(db, school.teacher_a, entries)
        assert await count_scores(db) == 0


@pytest.mark.anyio
class TestScoreListings:

    async def test_exam_scores_best_first(self, db, school, add_scores):
        a1, a2, a3, _ = school.students_a
        await add_scores(school.exam_a, [(a1, None), (a2, 60), (a3, 90)])

        result = await get_exam_scores(db, school.teacher_a, school.exam_a.id)
        assert result["total_scores"] == 3
        assert [s["score"] for s in result["scores"]] == [90, 60, None]

    async def test_student_scores_scoped(self, db, school, add_scores):
        student = school.students_a[0]
        await add_scores(school.exam_a, [(student, 77)])

        result = await get_student_scores(db, school.admin, student.id)
        assert result["total_scores"] == 1
        assert result["student"]["id"] == student.id

        with pytest.raises(NotFoundError):
            await get_student_scores(db, school.teacher_b, student.id)

    async def test_list_scores_scoped(self, db, school, add_scores):
        await add_scores(school.exam_a, [(school.students_a[0], 80), (school.students_a[1], 70)])
        await add_scores(school.exam_b, [(school.students_b[0], 60)])

        everything = await list_scores(db, school.leader)
        assert len(everything) == 3

        own = await list_scores(db, school.teacher_a)
        assert {s["exam_id"] for s in own} == {school.exam_a.id}
        assert [s["id"] for s in own] == sorted((s["id"] for s in own), reverse=True)

        filtered = await list_scores(db, school.admin, student_id=school.students_b[0].id)
        assert [s["score"] for s in filtered] == [60]
        assert await list_scores(db, school.teacher_b, exam_id=school.exam_a.id) == []
