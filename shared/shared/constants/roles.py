from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    TEACHER = "teacher"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


# Roles allowed to run batches, approve enrollments and issue certificates.
STAFF_ROLES = frozenset({Role.TEACHER, Role.ADMIN, Role.SUPER_ADMIN})
