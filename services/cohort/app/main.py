import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.batches.router import router as batches_router
from app.certificates.router import router as certificates_router
from app.config import Settings
from app.database import dispose_db, init_db
from app.dependencies import get_settings
from app.enrollments.router import router as enrollments_router
from app.progress.router import router as progress_router
from app.rate_limit import limiter
from shared.middleware.error_handler import register_error_handlers
from shared.middleware.request_id import RequestIdLogFilter, request_id_middleware

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdLogFilter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db(settings.cohort_database_url)
    yield
    await dispose_db()


SWAGGER_DESCRIPTION = """\
## Cohort Service

Runs cohorts ("batches") of students through a course week by week and
issues course certificates once they finish.

### Domain Tags

| Tag | Description |
|-----|-------------|
| **Batches** | Batch CRUD, lifecycle (start / dates / restart / archive), roster |
| **Progress** | Sequential weekly progress; completing the last week completes the batch |
| **Enrollments** | Enrollment requests, approval / rejection, completion |
| **Certificates** | Eligibility, single / bulk / batch / course issuance, public verification |

### Authentication

All endpoints (except health check and certificate verification)
require a valid JWT Bearer token in the `Authorization` header.
Token structure: `{"sub": "<user_uuid>", "email": "...", "roles": [...]}`.
Management endpoints require the `teacher`, `admin` or `super_admin` role.

### Status Transitions

```
Batch:      NOT_STARTED → ACTIVE → IN_PROGRESS → COMPLETED
            any → ARCHIVED (terminal), ACTIVE | IN_PROGRESS | COMPLETED → NOT_STARTED (restart)
Enrollment: PENDING → APPROVED | REJECTED, APPROVED → COMPLETED
```

### Errors

Every error body is `{"error": {"code": "...", "message": "..."}, "request_id": "..."}`.
Bulk issuance never fails as a whole: it returns one outcome per enrollment.
"""


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(
        title="Gurukul Cohort Service",
        version="0.1.0",
        description=SWAGGER_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )
    app.middleware("http")(request_id_middleware)
    register_error_handlers(app)

    app.include_router(batches_router, prefix="/api/v1")
    app.include_router(progress_router, prefix="/api/v1")
    app.include_router(enrollments_router, prefix="/api/v1")
    app.include_router(certificates_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        return {"status": "ok", "service": "cohort"}

    return app


app = create_app()
