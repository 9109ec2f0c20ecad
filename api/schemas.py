"""
Pydantic schemas for API requests and responses.
"""
from datetime import date
from typing import Optional, List, Any
from pydantic import BaseModel, Field


# Request schemas
class CreateUserRequest(BaseModel):
    """Request to create a user."""
    username: str = Field(..., min_length=1, description="Login name")
    name: str = Field(..., min_length=1, description="Full name")
    role: str = Field(..., description="'admin', 'teacher' or 'grade_leader'")
    subject: Optional[str] = Field(None, description="Subject the user teaches")
    class_names: Optional[List[str]] = Field(None, description="Class labels the user owns")


class CreateStudentRequest(BaseModel):
    """Request to create a student."""
    name: str = Field(..., min_length=1)
    student_number: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1, description="Class label, e.g. '一（1）班'")


class UpdateStudentRequest(BaseModel):
    """Request to change a student."""
    name: Optional[str] = Field(None, min_length=1)
    student_number: Optional[str] = Field(None, min_length=1)
    class_name: Optional[str] = Field(None, min_length=1)


class ImportStudentsRequest(BaseModel):
    """Batch of students to create."""
    students: List[CreateStudentRequest] = Field(default_factory=list)


class CreateClassRequest(BaseModel):
    """Request to create a class."""
    name: str = Field(..., min_length=1, description="Class label, e.g. '1-2' or '一（2）班'")
    grade: Optional[str] = Field(None, description="Grade label; inferred from the name when omitted")
    description: Optional[str] = None
    is_active: bool = True


class UpdateClassRequest(BaseModel):
    """Request to change a class."""
    name: Optional[str] = Field(None, min_length=1)
    grade: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CreateExamRequest(BaseModel):
    """Request to create an exam owned by the requester."""
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    exam_date: date
    total_score: float = Field(100, gt=0, description="Maximum attainable score")
    exam_type: str = Field("other", description="'midterm', 'final', 'quiz' or 'other'")
    status: str = Field("not_started")
    semester_id: Optional[int] = None


class UpdateExamRequest(BaseModel):
    """Request to change an exam. Omitted fields keep their value."""
    name: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = Field(None, min_length=1)
    class_name: Optional[str] = Field(None, min_length=1)
    exam_date: Optional[date] = None
    total_score: Optional[float] = Field(None, gt=0)
    exam_type: Optional[str] = None
    status: Optional[str] = None
    semester_id: Optional[int] = None


class CreateScoreRequest(BaseModel):
    """Request to enter one score."""
    student_id: int
    exam_id: int
    score: Optional[float] = Field(None, description="Score value; ignored when absent")
    is_absent: bool = False


class UpdateScoreRequest(BaseModel):
    """Request to change a score."""
    score: Optional[float] = None
    is_absent: Optional[bool] = None


class ImportScoresRequest(BaseModel):
    """Batch of scores to insert or update."""
    scores: List[CreateScoreRequest] = Field(default_factory=list)


class CreateSemesterRequest(BaseModel):
    """Request to create a semester."""
    name: str = Field(..., min_length=1)
    school_year: str = Field(..., min_length=1, description="e.g. '2024-2025'")
    start_date: date
    end_date: date
    is_current: bool = False


class UpdateSemesterRequest(BaseModel):
    """Request to change a semester."""
    name: Optional[str] = None
    school_year: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None


# Response schemas
class UserResponse(BaseModel):
    """User information response."""
    id: int
    username: str
    name: str
    role: str
    subject: Optional[str] = None
    class_names: List[str] = Field(default_factory=list)
    is_active: bool = True


class ScoreBucket(BaseModel):
    range: str
    count: int
    percentage: float


class ExamStatisticsResponse(BaseModel):
    """Statistics of one exam."""
    exam_id: int
    exam_name: str
    total_students: int
    submitted_count: int
    absent_count: int
    average_score: float
    max_score: float
    min_score: float
    excellent_count: int
    excellent_rate: float
    pass_count: int
    pass_rate: float
    poor_count: int
    poor_rate: float
    score_distribution: List[ScoreBucket]
    out_of_range_count: int


class ClassComparisonResponse(BaseModel):
    """Statistics of every class that sat a comparable exam."""
    exam_info: dict
    class_comparison: List[dict]


class SemesterStatisticsResponse(BaseModel):
    """Per-student trends across the exams of a semester."""
    semester_id: int
    semester_name: str
    total_exams: int
    average_score: float
    student_progress: List[dict]
    exams: List[dict]


class RankResponse(BaseModel):
    exam_id: int
    ranked_count: int


class SuccessResponse(BaseModel):
    """Generic success response."""
    success: bool
    message: str
    data: Optional[Any] = None
