"""
Pytest fixtures for the InvenTrack API tests.

Provides an in-memory MongoDB (mongomock-motor), an HTTP client bound to the
app, and bearer tokens for each role.
"""

import os

# Settings are read at import time
os.environ.setdefault("APP_NAME", "InvenTrack Test")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "inventrack_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MAIL_SUPPRESS_SEND", "true")

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from inventrack.core.database import init_db
from inventrack.core.security import create_access_token
from inventrack.main import app
from inventrack.models.branch import Branch
from inventrack.schemas.user import CurrentUser, UserRole
from inventrack.services import inventory as inventory_store

BRANCH_A = "BR-001"
BRANCH_B = "BR-002"


@pytest.fixture
async def db():
    """Fresh database for each test."""
    await init_db(AsyncMongoMockClient())
    yield


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _token(sub: str, name: str, role: str, branch_id):
    return create_access_token({"sub": sub, "name": name, "role": role, "branchId": branch_id})


def _headers(token: str):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def superadmin_headers():
    return _headers(_token("u-root", "Root", "superadmin", None))


@pytest.fixture
def manager_headers():
    """Manager of branch A."""
    return _headers(_token("u-manager", "Meera", "manager", BRANCH_A))


@pytest.fixture
def staff_headers():
    """Cashier at branch A."""
    return _headers(_token("u-staff", "Sam", "staff", BRANCH_A))


@pytest.fixture
def staff_user():
    return CurrentUser(id="u-staff", name="Sam", role=UserRole.STAFF, branch_id=BRANCH_A)


@pytest.fixture
def superadmin_user():
    return CurrentUser(id="u-root", name="Root", role=UserRole.SUPERADMIN, branch_id=None)


@pytest.fixture
async def branches(db):
    await Branch(branch_id=BRANCH_A, name="Central", location="MG Road").insert()
    await Branch(branch_id=BRANCH_B, name="Airport", location="Terminal 1").insert()


async def add_product(branch_id: str, pid: str, price: float, quantity: int, name: str = None):
    return await inventory_store.add_item(branch_id, {
        "pid": pid,
        "name": name or f"Product {pid}",
        "brand": "Acme",
        "category": "grocery",
        "price": price,
        "quantity": quantity,
    })


@pytest.fixture
async def stocked(branches):
    """Branch A stocks P1 (50 x 5), P2 (20 x 10) and P3 (100 x 1)."""
    await add_product(BRANCH_A, "P1", 50.0, 5)
    await add_product(BRANCH_A, "P2", 20.0, 10)
    await add_product(BRANCH_A, "P3", 100.0, 1)
