import asyncio
from collections.abc import AsyncGenerator, Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import app.models  # noqa: F401 - register with Base
from app.batches import service as batch_service
from app.certificates.issuer import CertificateRenderData
from app.config import Settings
from app.exceptions import IssuerError
from app.models.batch import Batch
from app.models.certificate import Certificate
from app.models.certificate_template import CertificateAssignment, CertificateTemplate
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.enums import EnrollmentStatus
from app.progress import service as progress_service
from shared.database.postgres import Base, get_async_engine, session_factory_for


class FakeRenderer:
    """In-process renderer. Tweak ``fail_for`` / ``delay`` / ``on_render`` per test."""

    def __init__(self) -> None:
        self.calls: list[tuple[UUID, CertificateRenderData]] = []
        self.fail_for: set[str] = set()
        self.delay: float = 0.0
        self.on_render: Callable[[CertificateRenderData], None] | None = None

    async def render(self, template_id: UUID, data: CertificateRenderData) -> str:
        self.calls.append((template_id, data))
        if self.on_render is not None:
            self.on_render(data)
        if self.delay:
            await asyncio.sleep(self.delay)
        if data.student_id in self.fail_for:
            raise IssuerError("renderer unavailable")
        return f"https://render.test/{template_id}/{data.certificate_number}.pdf"


class Seeder:
    """Commits reference rows through its own session so every test session sees them."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def _add(self, obj):
        async with self._factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def course(
        self,
        *,
        duration_weeks: int = 3,
        certificate_enabled: bool = True,
        gurukul_id: UUID | None = None,
        title: str = "Sanskrit Foundations",
    ) -> Course:
        return await self._add(Course(
            title=title,
            duration_weeks=duration_weeks,
            certificate_enabled=certificate_enabled,
            gurukul_id=gurukul_id,
        ))

    async def template(self, name: str = "Classic", *, is_active: bool = True) -> CertificateTemplate:
        return await self._add(CertificateTemplate(name=name, is_active=is_active))

    async def assign_template(
        self,
        template: CertificateTemplate,
        *,
        course: Course | None = None,
        gurukul_id: UUID | None = None,
    ) -> CertificateAssignment:
        return await self._add(CertificateAssignment(
            template_id=template.template_id,
            course_id=course.course_id if course else None,
            gurukul_id=gurukul_id,
        ))

    async def enrollment(
        self,
        course: Course,
        *,
        student_id: UUID | None = None,
        status: EnrollmentStatus = EnrollmentStatus.COMPLETED,
    ) -> Enrollment:
        return await self._add(Enrollment(
            student_id=student_id or uuid4(),
            course_id=course.course_id,
            status=status,
        ))

    async def certificate(self, enrollment: Enrollment) -> Certificate:
        """A certificate that already exists before the test runs."""
        code = uuid4().hex[:16].upper()
        return await self._add(Certificate(
            enrollment_id=enrollment.enrollment_id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            certificate_number=f"GKL-OLD-{code[:10]}",
            verification_code=code,
            certificate_url="https://render.test/old.pdf",
            certificate_data={},
        ))

    async def batch(self, course: Course | None = None, *, teacher_id: UUID | None = None) -> Batch:
        async with self._factory() as session:
            batch = await batch_service.create_batch(
                session,
                name="Morning cohort",
                created_by=uuid4(),
                teacher_id=teacher_id,
                course_id=course.course_id if course else None,
            )
            await session.commit()
        return batch

    async def started_batch(self, course: Course, **kwargs) -> Batch:
        batch = await self.batch(course, **kwargs)
        async with self._factory() as session:
            batch = await batch_service.start_batch(session, batch.batch_id)
            await session.commit()
        return batch

    async def completed_batch(self, course: Course, students: list[UUID] = (), **kwargs) -> Batch:
        batch = await self.started_batch(course, **kwargs)
        async with self._factory() as session:
            for student_id in students:
                await batch_service.assign_student(session, batch.batch_id, student_id)
            for week in range(1, course.duration_weeks + 1):
                await progress_service.set_week_status(session, batch.batch_id, week, True)
            await session.commit()
            batch = await batch_service.get_batch(session, batch.batch_id)
        return batch


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cohort.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    return Settings(
        cohort_database_url=database_url,
        certificate_signing_secret="test-signing-secret",
        certificate_base_url="https://certs.test",
        certificate_renderer_url="",
        issuer_timeout_secs=5.0,
        issuance_max_concurrency=4,
    )


@pytest_asyncio.fixture
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    engine = get_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return session_factory_for(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()
