"""Shared domain exception classes for the cohort service.

These are raised by service-layer code and caught by controllers
to map to appropriate HTTP responses. Bulk issuance never lets them
escape: each one is folded into a per-item outcome instead.
"""


# ---------------------------------------------------------------------------
# Lookup failures
# ---------------------------------------------------------------------------


class BatchNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Batch not found: {identifier}")


class CourseNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Course not found: {identifier}")


class EnrollmentNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Enrollment not found: {identifier}")


class CertificateNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Certificate not found: {identifier}")


class TemplateNotFoundError(Exception):
    """Raised when no usable certificate template exists for the request."""

    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Certificate template not found: {identifier}")


class StudentNotInBatchError(Exception):
    def __init__(self, batch_id: str = "", student_id: str = ""):
        self.batch_id = batch_id
        self.student_id = student_id
        super().__init__(f"Student {student_id} is not on the roster of batch {batch_id}")


# ---------------------------------------------------------------------------
# Input / state errors
# ---------------------------------------------------------------------------


class ValidationError(Exception):
    """Bad input shape, e.g. an end date before the start date."""


class PreconditionError(Exception):
    """Operation not allowed in the current state, e.g. starting a batch with no course."""


class InvalidStatusTransitionError(PreconditionError):
    """Raised when a batch status transition is not in the transition table."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


class SequenceViolationError(Exception):
    """Raised when a week is completed or un-completed out of order."""

    def __init__(self, message: str, *, expected_week: int | None = None):
        self.expected_week = expected_week
        super().__init__(message)


class InvalidStateError(Exception):
    """Raised when an enrollment transition starts from the wrong status."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Enrollment cannot move from {current} to {target}")


class AlreadyEnrolledError(Exception):
    """Raised when a student already holds an open enrollment for the course."""


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class AlreadyCertifiedError(Exception):
    """A certificate already exists for this (student, course) pair.

    Not a failure from the caller's point of view: bulk flows report it as
    a normal outcome.
    """

    def __init__(self, student_id: str = "", course_id: str = ""):
        self.student_id = student_id
        self.course_id = course_id
        super().__init__(f"Student {student_id} already holds a certificate for course {course_id}")


class IssuerError(Exception):
    """The rendering collaborator failed or timed out. Safe to retry."""
