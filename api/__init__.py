"""API module for the School Grades system."""
from .routes import (
    statistics_router,
    scores_router,
    semesters_router,
    classes_router,
    records_router,
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

__all__ = [
    "statistics_router",
    "scores_router",
    "semesters_router",
    "classes_router",
    "records_router",
    "CreateUserRequest",
    "CreateStudentRequest",
    "UpdateStudentRequest",
    "ImportStudentsRequest",
    "CreateClassRequest",
    "UpdateClassRequest",
    "CreateExamRequest",
    "UpdateExamRequest",
    "CreateScoreRequest",
    "UpdateScoreRequest",
    "ImportScoresRequest",
    "CreateSemesterRequest",
    "UpdateSemesterRequest",
    "UserResponse",
    "ExamStatisticsResponse",
    "ClassComparisonResponse",
    "SemesterStatisticsResponse",
    "RankResponse",
    "SuccessResponse",
]
