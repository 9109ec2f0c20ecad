"""
Custom exceptions for the School Grades system.

Every exception carries a stable ``kind`` the API layer maps to a status
code, and a human-readable ``message``.
"""


class NotFoundError(Exception):
    """
    Raised when a record does not exist, or exists outside the caller's scope.

    Both cases produce the same message so callers cannot probe for
    records they are not allowed to see.
    """

    kind = "not_found"

    def __init__(self, resource: str, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            self.message = f"{resource} not found"
        else:
            self.message = f"{resource} with id {resource_id} not found"
        super().__init__(self.message)


class AuthorizationError(Exception):
    """Raised when a user attempts an unauthorized action."""

    kind = "forbidden"

    def __init__(self, message: str, user_id: int = None, action: str = None):
        self.message = message
        self.user_id = user_id
        self.action = action
        super().__init__(self.message)


class ExamAccessDenied(AuthorizationError):
    """Raised when a teacher asks for statistics of an exam they do not own."""

    def __init__(self, requester_id: int, exam_id: int):
        self.exam_id = exam_id
        message = f"Access denied: user {requester_id} cannot view statistics of exam {exam_id}"
        super().__init__(message, user_id=requester_id, action="view_exam_statistics")


class RoleRequiredError(AuthorizationError):
    """Raised when the caller's role is not among the roles an action needs."""

    def __init__(self, user_id: int, action: str, roles):
        self.roles = tuple(roles)
        allowed = ", ".join(self.roles)
        message = f"Access denied: only {allowed} can perform '{action}'"
        super().__init__(message, user_id=user_id, action=action)


class InvalidUserError(Exception):
    """Raised when the requesting user is not found."""

    kind = "invalid_user"

    def __init__(self, user_id: int):
        self.user_id = user_id
        self.message = f"User with id {user_id} not found"
        super().__init__(self.message)


class ValidationError(Exception):
    """Raised when input validation fails."""

    kind = "invalid_input"

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class DuplicateScoreError(ValidationError):
    """Raised when creating a second score for the same (student, exam) pair."""

    def __init__(self, student_id: int, exam_id: int):
        self.student_id = student_id
        self.exam_id = exam_id
        super().__init__(
            f"Score for student {student_id} in exam {exam_id} already exists; "
            "use update instead",
            field="student_id",
        )
