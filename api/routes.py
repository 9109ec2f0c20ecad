"""
API routes for the School Grades system.

Every route that reads or changes grade data takes a ``requester_id``.
The requester's role and classes are loaded from the database for each
request; nothing about the caller's scope is read from the client.
"""
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db, UserRole
from services import (
    AuthorizationService,
    CallerScope,
    ComparisonBasis,
    ScoreEntry,
    StudentEntry,
    Thresholds,
    NotFoundError,
    AuthorizationError,
    InvalidUserError,
    ValidationError,
    enforce_roles,
    calculate_ranks,
    get_exam_statistics,
    get_class_comparison,
    get_semester_statistics,
    get_student_statistics,
    get_subject_statistics,
    get_class_detail,
    list_classes,
    create_class,
    update_class,
    toggle_class_active,
    delete_class,
    get_exam,
    list_exams,
    create_exam,
    update_exam,
    delete_exam,
    get_student,
    list_students,
    create_student,
    import_students,
    update_student,
    delete_student,
    get_user,
    list_users,
    create_user,
    find_score,
    list_scores,
    get_exam_scores,
    get_student_scores,
    create_score,
    update_score,
    delete_score,
    import_scores,
    get_semester,
    list_semesters,
    get_current_semester,
    create_semester,
    update_semester,
    set_current_semester,
    delete_semester,
)
from .schemas import (
    CreateUserRequest,
    CreateStudentRequest,
    UpdateStudentRequest,
    ImportStudentsRequest,
    CreateClassRequest,
    UpdateClassRequest,
    CreateExamRequest,
    UpdateExamRequest,
    CreateScoreRequest,
    UpdateScoreRequest,
    ImportScoresRequest,
    CreateSemesterRequest,
    UpdateSemesterRequest,
    UserResponse,
    ExamStatisticsResponse,
    ClassComparisonResponse,
    SemesterStatisticsResponse,
    RankResponse,
    SuccessResponse,
)


# Router for statistics endpoints
statistics_router = APIRouter(prefix="/statistics", tags=["Statistics"])

# Router for score entry and lookup
scores_router = APIRouter(prefix="/scores", tags=["Scores"])

# Router for class management
classes_router = APIRouter(prefix="/classes", tags=["Classes"])

# Router for semester management
semesters_router = APIRouter(prefix="/semesters", tags=["Semesters"])

# Router for exams, students and users
records_router = APIRouter(tags=["Records"])


DOMAIN_ERRORS = (NotFoundError, AuthorizationError, ValidationError, InvalidUserError)

ERROR_STATUS = {
    NotFoundError.kind: 404,
    AuthorizationError.kind: 403,
    ValidationError.kind: 400,
    InvalidUserError.kind: 401,
}


def to_http_error(exc) -> HTTPException:
    """Translate a domain exception into the matching HTTP error."""
    return HTTPException(status_code=ERROR_STATUS.get(exc.kind, 500), detail=exc.message)


async def get_caller(
    requester_id: int = Query(..., description="ID of the requesting user"),
    db: AsyncSession = Depends(get_db),
) -> CallerScope:
    """Load the requesting user's scope from the database."""
    try:
        return await AuthorizationService(db).get_caller(requester_id)
    except InvalidUserError as e:
        raise HTTPException(status_code=401, detail=e.message)


def build_thresholds(
    excellent: Optional[float] = Query(None, description="Excellent threshold (default 85)"),
    passing: Optional[float] = Query(None, description="Pass threshold (default 60)"),
    poor: Optional[float] = Query(None, description="Poor threshold (default 40)"),
) -> Thresholds:
    overrides = {"excellent": excellent, "passing": passing, "poor": poor}
    return replace(
        Thresholds.from_settings(),
        **{name: value for name, value in overrides.items() if value is not None},
    )


# ============== Statistics Endpoints ==============

@statistics_router.get("/exams/{exam_id}", response_model=ExamStatisticsResponse)
async def exam_statistics(
    exam_id: int,
    caller: CallerScope = Depends(get_caller),
    thresholds: Thresholds = Depends(build_thresholds),
    db: AsyncSession = Depends(get_db),
):
    """
    Statistics of one exam.

    Only the teacher who owns the exam, admins and grade leaders may see it.
    """
    try:
        return await get_exam_statistics(db, exam_id, caller, thresholds)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@statistics_router.get("/exams/{exam_id}/comparison", response_model=ClassComparisonResponse)
async def class_comparison(
    exam_id: int,
    basis: ComparisonBasis = Query(ComparisonBasis.DATE),
    caller: CallerScope = Depends(get_caller),
    thresholds: Thresholds = Depends(build_thresholds),
    db: AsyncSession = Depends(get_db),
):
    """
    Compare every class that sat the same subject on the same date
    (or in the same semester) as this exam. Admins and grade leaders only.
    """
    try:
        enforce_roles(caller, [UserRole.ADMIN, UserRole.GRADE_LEADER], "compare_classes")
        return await get_class_comparison(db, exam_id, caller, basis, thresholds)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@statistics_router.get("/semesters/{semester_id}", response_model=SemesterStatisticsResponse)
async def semester_statistics(
    semester_id: int,
    class_name: Optional[str] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Per-student score trends across the visible exams of a semester."""
    try:
        return await get_semester_statistics(db, semester_id, caller, class_name)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@statistics_router.get("/students/{student_id}")
async def student_statistics(
    student_id: int,
    semester_id: Optional[int] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_student_statistics(db, student_id, caller, semester_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@statistics_router.get("/subjects/{subject}")
async def subject_statistics(
    subject: str,
    semester_id: Optional[int] = None,
    class_name: Optional[str] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_subject_statistics(db, subject, caller, semester_id, class_name)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== Score Endpoints ==============

@scores_router.get("/")
async def list_scores_endpoint(
    exam_id: Optional[int] = None,
    student_id: Optional[int] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Scores the requester may see, most recently entered first."""
    return await list_scores(db, caller, exam_id=exam_id, student_id=student_id)


@scores_router.get("/exam/{exam_id}")
async def exam_scores(
    exam_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Scores of one exam, best first."""
    try:
        return await get_exam_scores(db, caller, exam_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.get("/student/{student_id}")
async def student_scores(
    student_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_student_scores(db, caller, student_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.get("/{score_id}")
async def score_detail(
    score_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        score = await find_score(db, caller, score_id)
        return score.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.post("/", response_model=SuccessResponse, status_code=201)
async def create_score_endpoint(
    request: CreateScoreRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Enter one score.

    A second score for the same student and exam is rejected; use the
    update endpoint instead.
    """
    try:
        score = await create_score(
            db,
            caller,
            student_id=request.student_id,
            exam_id=request.exam_id,
            score=request.score,
            is_absent=request.is_absent,
        )
        await calculate_ranks(db, score.exam_id)
        await db.refresh(score)
        return SuccessResponse(success=True, message="Score created", data=score.to_dict())
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.post("/import", response_model=SuccessResponse)
async def import_scores_endpoint(
    request: ImportScoresRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Insert or update many scores, then re-rank every exam they touch.
    Importing the same rows twice leaves one score per student and exam.
    """
    entries = [
        ScoreEntry(
            student_id=item.student_id,
            exam_id=item.exam_id,
            score=item.score,
            is_absent=item.is_absent,
        )
        for item in request.scores
    ]
    try:
        saved = await import_scores(db, caller, entries)
        for exam_id in sorted({s.exam_id for s in saved}):
            await calculate_ranks(db, exam_id)
        return SuccessResponse(
            success=True,
            message=f"Imported {len(saved)} scores",
            data={"imported": len(saved)},
        )
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.put("/{score_id}", response_model=SuccessResponse)
async def update_score_endpoint(
    score_id: int,
    request: UpdateScoreRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        score = await update_score(
            db, caller, score_id, score=request.score, is_absent=request.is_absent
        )
        await calculate_ranks(db, score.exam_id)
        await db.refresh(score)
        return SuccessResponse(success=True, message="Score updated", data=score.to_dict())
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.delete("/{score_id}", response_model=SuccessResponse)
async def delete_score_endpoint(
    score_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        score = await find_score(db, caller, score_id)
        exam_id = score.exam_id
        await delete_score(db, caller, score_id)
        await calculate_ranks(db, exam_id)
        return SuccessResponse(success=True, message="Score deleted")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@scores_router.post("/exam/{exam_id}/ranks", response_model=RankResponse)
async def calculate_ranks_endpoint(
    exam_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Recompute the ranks of every score in an exam."""
    try:
        exam = await get_exam(db, caller, exam_id)
        ranked = await calculate_ranks(db, exam.id)
        return RankResponse(exam_id=exam.id, ranked_count=ranked)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== Semester Endpoints ==============

@semesters_router.get("/")
async def list_semesters_endpoint(
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """All semesters, most recent first."""
    return await list_semesters(db)


@semesters_router.get("/current")
async def current_semester(
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        semester = await get_current_semester(db)
        return semester.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@semesters_router.get("/{semester_id}")
async def semester_detail(
    semester_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        semester = await get_semester(db, semester_id)
        return semester.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@semesters_router.post("/", status_code=201)
async def create_semester_endpoint(
    request: CreateSemesterRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        semester = await create_semester(
            db,
            name=request.name,
            school_year=request.school_year,
            start_date=request.start_date,
            end_date=request.end_date,
            is_current=request.is_current,
        )
        return semester.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@semesters_router.put("/{semester_id}")
async def update_semester_endpoint(
    semester_id: int,
    request: UpdateSemesterRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        semester = await update_semester(db, semester_id, **request.model_dump(exclude_unset=True))
        return semester.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@semesters_router.post("/{semester_id}/current")
async def set_current_semester_endpoint(
    semester_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Make a semester current. Every other semester stops being current."""
    try:
        semester = await set_current_semester(db, semester_id)
        return semester.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@semesters_router.delete("/{semester_id}", response_model=SuccessResponse)
async def delete_semester_endpoint(
    semester_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_semester(db, semester_id)
        return SuccessResponse(success=True, message="Semester deleted")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== Class Endpoints ==============

@classes_router.get("/")
async def list_classes_endpoint(
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Classes the requester may see, newest first."""
    return await list_classes(db, caller)


@classes_router.get("/active")
async def list_active_classes(
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await list_classes(db, caller, active_only=True)


@classes_router.get("/{class_id}")
async def class_detail(
    class_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_class_detail(db, caller, class_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@classes_router.post("/", status_code=201)
async def create_class_endpoint(
    request: CreateClassRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create a class (admins and grade leaders only)."""
    try:
        school_class = await create_class(db, caller, **request.model_dump())
        return school_class.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@classes_router.patch("/{class_id}")
async def update_class_endpoint(
    class_id: int,
    request: UpdateClassRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Change a class (admins and grade leaders only). Renaming relabels the
    class's students and exams.
    """
    try:
        school_class = await update_class(
            db, caller, class_id, **request.model_dump(exclude_unset=True)
        )
        return school_class.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@classes_router.patch("/{class_id}/toggle-active")
async def toggle_class_endpoint(
    class_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        school_class = await toggle_class_active(db, caller, class_id)
        return school_class.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@classes_router.delete("/{class_id}", response_model=SuccessResponse)
async def delete_class_endpoint(
    class_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete a class. Its students are kept."""
    try:
        await delete_class(db, caller, class_id)
        return SuccessResponse(success=True, message="Class deleted")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== Exam Endpoints ==============

@records_router.get("/exams", tags=["Exams"])
async def list_exams_endpoint(
    class_name: Optional[str] = None,
    semester_id: Optional[int] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Exams the requester may see. Teachers see their own and their classes' exams."""
    return await list_exams(db, caller, class_name=class_name, semester_id=semester_id)


@records_router.get("/exams/{exam_id}", tags=["Exams"])
async def exam_detail(
    exam_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        exam = await get_exam(db, caller, exam_id)
        return exam.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.post("/exams", status_code=201, tags=["Exams"])
async def create_exam_endpoint(
    request: CreateExamRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create an exam owned by the requester."""
    try:
        exam = await create_exam(db, caller, **request.model_dump())
        return exam.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.put("/exams/{exam_id}", tags=["Exams"])
async def update_exam_endpoint(
    exam_id: int,
    request: UpdateExamRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Change an exam. Omitted fields keep their value."""
    try:
        exam = await update_exam(db, caller, exam_id, **request.model_dump(exclude_unset=True))
        return exam.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.delete("/exams/{exam_id}", response_model=SuccessResponse, tags=["Exams"])
async def delete_exam_endpoint(
    exam_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete an exam together with its scores."""
    try:
        await delete_exam(db, caller, exam_id)
        return SuccessResponse(success=True, message="Exam deleted")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== Student Endpoints ==============

@records_router.get("/students", tags=["Students"])
async def list_students_endpoint(
    class_name: Optional[str] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await list_students(db, caller, class_name=class_name)


@records_router.get("/students/{student_id}", tags=["Students"])
async def student_detail(
    student_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        student = await get_student(db, caller, student_id)
        return student.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.post("/students", status_code=201, tags=["Students"])
async def create_student_endpoint(
    request: CreateStudentRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        student = await create_student(
            db,
            caller,
            name=request.name,
            student_number=request.student_number,
            class_name=request.class_name,
        )
        return student.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.post("/students/import", tags=["Students"])
async def import_students_endpoint(
    request: ImportStudentsRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Create many students at once. A repeated or already used student
    number rejects the whole batch.
    """
    entries = [
        StudentEntry(name=item.name, student_number=item.student_number, class_name=item.class_name)
        for item in request.students
    ]
    try:
        students = await import_students(db, caller, entries)
        return SuccessResponse(
            success=True,
            message=f"Imported {len(students)} students",
            data=[s.to_dict() for s in students],
        )
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.put("/students/{student_id}", tags=["Students"])
async def update_student_endpoint(
    student_id: int,
    request: UpdateStudentRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        student = await update_student(
            db,
            caller,
            student_id,
            name=request.name,
            student_number=request.student_number,
            class_name=request.class_name,
        )
        return student.to_dict()
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.delete("/students/{student_id}", response_model=SuccessResponse, tags=["Students"])
async def delete_student_endpoint(
    student_id: int,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_student(db, caller, student_id)
        return SuccessResponse(success=True, message="Student deleted")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


# ============== User Endpoints ==============

@records_router.post("/users", response_model=UserResponse, status_code=201, tags=["Users"])
async def create_user_endpoint(
    request: CreateUserRequest,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create a new user (admin only)."""
    try:
        enforce_roles(caller, [UserRole.ADMIN], "create_user")
        user = await create_user(
            db,
            username=request.username,
            name=request.name,
            role=request.role,
            class_names=request.class_names,
            subject=request.subject,
        )
        return UserResponse(**user)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@records_router.get("/users", response_model=list[UserResponse], tags=["Users"])
async def list_users_endpoint(
    role: Optional[str] = None,
    caller: CallerScope = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List users. Optional query param `role` filters by role."""
    users = await list_users(db, role=role)
    return [UserResponse(**u) for u in users]


@records_router.get("/users/{user_id}", response_model=UserResponse, tags=["Users"])
async def get_user_info(user_id: int, db: AsyncSession = Depends(get_db)):
    """Get user information."""
    try:
        user = await get_user(db, user_id)
        return UserResponse(**user)
    except InvalidUserError:
        raise HTTPException(status_code=404, detail="User not found")
