"""
Service layer for the School Grades system.

Every read and write goes through the role scope resolved in
:mod:`services.authorization`, so callers only ever see or change the
records they are entitled to.
"""
from .exceptions import (
    NotFoundError,
    AuthorizationError,
    ExamAccessDenied,
    RoleRequiredError,
    InvalidUserError,
    ValidationError,
    DuplicateScoreError,
)

from .authorization import (
    AuthorizationService,
    CallerScope,
    ResourceKind,
    ScopeFilter,
    resolve_scope,
    scope_for,
    ensure_visible,
    enforce_exam_statistics_access,
    enforce_roles,
)

from .class_names import normalize_class_name

from .classes import (
    get_class,
    get_class_detail,
    list_classes,
    get_or_create_class,
    create_class,
    update_class,
    toggle_class_active,
    delete_class,
)

from .identity import (
    get_user,
    list_users,
    create_user,
)

from .exams import (
    find_exam_by_id,
    get_exam,
    list_exams,
    create_exam,
    update_exam,
    delete_exam,
    find_exams_by_semester,
    find_exams_by_subject,
    find_sibling_exams,
)

from .students import (
    StudentEntry,
    find_student_by_id,
    get_student,
    list_students,
    create_student,
    import_students,
    update_student,
    delete_student,
)

from .scores_read import (
    find_scores_by_exam,
    find_scores_by_student,
    find_score_by_exam_and_student,
    find_score,
    list_scores,
    get_exam_scores,
    get_student_scores,
)

from .scores_write import (
    ScoreEntry,
    save_scores,
    create_score,
    update_score,
    delete_score,
    import_scores,
)

from .ranking import (
    assign_ranks,
    calculate_ranks,
)

from .statistics import (
    Thresholds,
    compute_exam_statistics,
    get_exam_statistics,
)

from .trends import (
    Trend,
    split_half_trend,
    thirds_trend,
    get_semester_statistics,
    get_student_statistics,
)

from .comparison import (
    ComparisonBasis,
    get_class_comparison,
    get_subject_statistics,
)

from .semesters import (
    get_semester,
    list_semesters,
    get_current_semester,
    create_semester,
    update_semester,
    set_current_semester,
    delete_semester,
)

__all__ = [
    # Exceptions
    "NotFoundError",
    "AuthorizationError",
    "ExamAccessDenied",
    "RoleRequiredError",
    "InvalidUserError",
    "ValidationError",
    "DuplicateScoreError",
    # Authorization
    "AuthorizationService",
    "CallerScope",
    "ResourceKind",
    "ScopeFilter",
    "resolve_scope",
    "scope_for",
    "ensure_visible",
    "enforce_exam_statistics_access",
    "enforce_roles",
    # Class names
    "normalize_class_name",
    # Classes
    "get_class",
    "get_class_detail",
    "list_classes",
    "get_or_create_class",
    "create_class",
    "update_class",
    "toggle_class_active",
    "delete_class",
    # Identity
    "get_user",
    "list_users",
    "create_user",
    # Exams
    "find_exam_by_id",
    "get_exam",
    "list_exams",
    "create_exam",
    "update_exam",
    "delete_exam",
    "find_exams_by_semester",
    "find_exams_by_subject",
    "find_sibling_exams",
    # Students
    "StudentEntry",
    "find_student_by_id",
    "get_student",
    "list_students",
    "create_student",
    "import_students",
    "update_student",
    "delete_student",
    # Scores
    "find_scores_by_exam",
    "find_scores_by_student",
    "find_score_by_exam_and_student",
    "find_score",
    "list_scores",
    "get_exam_scores",
    "get_student_scores",
    "ScoreEntry",
    "save_scores",
    "create_score",
    "update_score",
    "delete_score",
    "import_scores",
    # Ranking
    "assign_ranks",
    "calculate_ranks",
    # Statistics
    "Thresholds",
    "compute_exam_statistics",
    "get_exam_statistics",
    "Trend",
    "split_half_trend",
    "thirds_trend",
    "get_semester_statistics",
    "get_student_statistics",
    "ComparisonBasis",
    "get_class_comparison",
    "get_subject_statistics",
    # Semesters
    "get_semester",
    "list_semesters",
    "get_current_semester",
    "create_semester",
    "update_semester",
    "set_current_semester",
    "delete_semester",
]
