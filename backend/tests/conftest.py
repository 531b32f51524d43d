"""
Research Cell Portal - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Dict

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['LOG_FILE'] = ''
os.environ['RATE_LIMIT_ENABLED'] = 'false'

from researchcell.main import app
from researchcell.core.database import Base, get_db
from researchcell.core.security import create_access_token
from researchcell.models.user import User, UserRole
from researchcell.modules.auth.role_resolver import Identity
from researchcell.services.submission_service import SubmissionService

fake = Faker()


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database file per test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================
# Users
# ============================================

async def create_user(db: AsyncSession, role: UserRole) -> User:
    user = User(email=fake.unique.email(), name=fake.name(), role=role, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def identity_for(user: User) -> Identity:
    return Identity(user_id=user.id, email=user.email, role=user.role)


def auth_headers_for(user: User) -> Dict[str, str]:
    """Bearer header carrying the same claims the sign-in service issues"""
    token = create_access_token({
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value,
    })
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def student_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.STUDENT)


@pytest.fixture
async def other_student_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.STUDENT)


@pytest.fixture
async def faculty_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.FACULTY)


@pytest.fixture
async def other_faculty_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.FACULTY)


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.ADMIN)


@pytest.fixture
def student(student_user: User) -> Identity:
    return identity_for(student_user)


@pytest.fixture
def other_student(other_student_user: User) -> Identity:
    return identity_for(other_student_user)


@pytest.fixture
def faculty(faculty_user: User) -> Identity:
    return identity_for(faculty_user)


@pytest.fixture
def other_faculty(other_faculty_user: User) -> Identity:
    return identity_for(other_faculty_user)


@pytest.fixture
def admin(admin_user: User) -> Identity:
    return identity_for(admin_user)


@pytest.fixture
def student_headers(student_user: User) -> Dict[str, str]:
    return auth_headers_for(student_user)


@pytest.fixture
def other_student_headers(other_student_user: User) -> Dict[str, str]:
    return auth_headers_for(other_student_user)


@pytest.fixture
def faculty_headers(faculty_user: User) -> Dict[str, str]:
    return auth_headers_for(faculty_user)


@pytest.fixture
def other_faculty_headers(other_faculty_user: User) -> Dict[str, str]:
    return auth_headers_for(other_faculty_user)


@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers_for(admin_user)


# ============================================
# Submissions
# ============================================

@pytest.fixture
async def paper(db_session: AsyncSession, student: Identity, faculty_user: User):
    """Uploaded, unassigned research paper"""
    return await SubmissionService(db_session).create_paper(
        student,
        title=fake.sentence(nb_words=6),
        abstract=fake.paragraph(),
        file_path=f"papers/{fake.uuid4()}.pdf",
        keywords=["ml", "vision"],
        faculty_advisor_ids=[faculty_user.id],
    )


@pytest.fixture
async def project(db_session: AsyncSession, student: Identity, faculty_user: User):
    """Uploaded, unassigned ongoing project"""
    return await SubmissionService(db_session).create_project(
        student,
        title=fake.sentence(nb_words=5),
        description=fake.paragraph(),
        project_link="https://github.com/example/project",
        faculty_advisor_ids=[faculty_user.id],
    )
