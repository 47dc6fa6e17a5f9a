# Import all models so Alembic can discover them via Base.metadata
from .batch import Batch, BatchStudent
from .certificate import Certificate
from .certificate_template import CertificateAssignment, CertificateTemplate
from .course import Course
from .enrollment import Enrollment
from .week_progress import WeekProgress

__all__ = [
    "Batch",
    "BatchStudent",
    "Certificate",
    "CertificateAssignment",
    "CertificateTemplate",
    "Course",
    "Enrollment",
    "WeekProgress",
]
