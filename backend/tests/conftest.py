"""
Test fixtures for FINTCS.

API tests run the FastAPI app in-process over ``httpx.ASGITransport`` with a
fresh in-memory SQLite database per test.  Two societies (S1, S2) are seeded
with one member, loan and voucher each so tenant isolation can be checked
from both sides.
"""
import os
import tempfile

# Must be set before ``fintcs.config`` is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUDIT_STORAGE_PATH"] = tempfile.mkdtemp(prefix="fintcs-audit-")
os.environ["AUDIT_RETENTION_ENABLED"] = "false"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import fintcs.models  # noqa: E402,F401
from fintcs.authz import Mediator, Principal, Role  # noqa: E402
from fintcs.database import Base, get_db  # noqa: E402
from fintcs.main import app  # noqa: E402
from fintcs.middleware.auth import create_access_token, get_mediator  # noqa: E402

BASE_URL = "http://testserver"


# ---------------------------------------------------------------------------
# Principals (pure tests)
# ---------------------------------------------------------------------------

def make_principal(role: Role, tenant_id: str | None = None, user_id: str = "u-1") -> Principal:
    return Principal(user_id=user_id, role=role, tenant_id=tenant_id)


@pytest.fixture
def super_admin():
    return make_principal(Role.SUPER_ADMIN, user_id="root")


@pytest.fixture
def s1_admin():
    return make_principal(Role.SOCIETY_ADMIN, "S1", user_id="admin-s1")


@pytest.fixture
def s1_user():
    return make_principal(Role.REGULAR_USER, "S1", user_id="user-s1")


@pytest.fixture
def s1_member():
    return make_principal(Role.MEMBER, "S1", user_id="member-s1")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite shared across connections for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def seed(session_factory):
    """Two societies, each with a SocietyAdmin, a member, a loan and a voucher."""
    from fintcs.middleware.auth import hash_password
    from fintcs.models import Loan, Member, Society, User, Voucher

    ids = {}
    async with session_factory() as db:
        for code in ("S1", "S2"):
            society = Society(id=f"soc-{code}", code=code, name=f"Society {code}", city="Pune")
            member = Member(
                id=f"mem-{code}", society_id=society.id, member_no=f"{code}-001", name=f"Member {code}"
            )
            loan = Loan(
                id=f"loan-{code}",
                society_id=society.id,
                member_id=member.id,
                loan_no=f"{code}-L1",
                loan_type="general",
                amount=Decimal("10000.00"),
                loan_date=datetime.date(2024, 4, 1),
            )
            voucher = Voucher(
                id=f"vch-{code}",
                society_id=society.id,
                voucher_no=f"{code}-V1",
                voucher_type="receipt",
                voucher_date=datetime.date(2024, 4, 2),
                amount=Decimal("500.00"),
            )
            db.add(society)
            await db.flush()
            db.add_all([member, voucher])
            await db.flush()
            db.add(loan)
            ids[code] = {
                "society": society.id,
                "member": member.id,
                "loan": loan.id,
                "voucher": voucher.id,
            }

        db.add(User(
            id="user-root",
            username="admin",
            password_hash=hash_password("admin123"),
            name="Super Administrator",
            role=Role.SUPER_ADMIN.value,
        ))
        db.add(User(
            id="user-admin-s1",
            username="s1admin",
            password_hash=hash_password("secret-s1"),
            name="S1 Admin",
            role=Role.SOCIETY_ADMIN.value,
            society_id="soc-S1",
        ))
        db.add(User(
            id="user-admin-s2",
            username="s2admin",
            password_hash=hash_password("secret-s2"),
            name="S2 Admin",
            role=Role.SOCIETY_ADMIN.value,
            society_id="soc-S2",
        ))
        db.add(User(
            id="user-clerk-s2",
            username="s2clerk",
            password_hash=hash_password("secret-clerk"),
            name="S2 Clerk",
            role=Role.REGULAR_USER.value,
            society_id="soc-S2",
        ))
        await db.commit()
    return ids


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
def authz_events():
    """Events the mediator emitted during the test."""
    return []


@pytest_asyncio.fixture
async def client(session_factory, authz_events):
    async def _get_db():
        async with session_factory() as session:
            yield session

    mediator = Mediator(sink=authz_events.append)
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mediator] = lambda: mediator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL, timeout=30.0) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(role: Role, society_id: str | None = None, user_id: str = "caller") -> dict:
    """Auth header dict for a freshly minted token."""
    token = create_access_token(user_id, role, society_id, username=user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def super_headers():
    return auth_headers(Role.SUPER_ADMIN, user_id="user-root")


@pytest.fixture
def s1_admin_headers():
    return auth_headers(Role.SOCIETY_ADMIN, "soc-S1", user_id="user-admin-s1")


@pytest.fixture
def s2_admin_headers():
    return auth_headers(Role.SOCIETY_ADMIN, "soc-S2", user_id="user-admin-s2")


@pytest.fixture
def s1_user_headers():
    return auth_headers(Role.REGULAR_USER, "soc-S1", user_id="user-clerk-s1")
