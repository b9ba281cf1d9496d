import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENV"] = "dev"
os.environ.pop("EMAIL_API_KEY", None)

import secrets  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import remise.db.models  # noqa: F401, E402
from remise.auth.models import User  # noqa: E402
from remise.auth.security import create_session_token, hash_password  # noqa: E402
from remise.auth.session import Identity  # noqa: E402
from remise.db.base import Base  # noqa: E402
from remise.db.session import SessionLocal, engine  # noqa: E402
from remise.items.models import Item  # noqa: E402
from remise.storage.local_provider import LocalStorageProvider, get_storage  # noqa: E402
from remise.system.rate_limit import api_limiter, auth_limiter  # noqa: E402
from remise.tenants.service import create_tenant  # noqa: E402

PASSWORD = "correct-horse-battery"


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_limiters():
    auth_limiter.reset()
    api_limiter.reset()
    yield
    auth_limiter.reset()
    api_limiter.reset()


@pytest.fixture()
def make_tenant(db):
    def _make(name: str | None = None):
        tenant = create_tenant(db, name=name or f"Tenant {secrets.token_hex(3)}")
        db.commit()
        return tenant

    return _make


@pytest.fixture()
def make_user(db):
    def _make(
        tenant=None,
        *,
        role: str = "property_owner",
        access_level: str = "owner",
        username: str | None = None,
        password: str | None = None,
        email_verified: bool = True,
        is_active: bool = True,
    ):
        username = username or f"user_{secrets.token_hex(4)}"
        user = User(
            id=f"u_{secrets.token_hex(8)}",
            username=username,
            email=f"{username}@example.com",
            name=username.title(),
            # bcrypt is slow; only hash when a test logs in
            password_hash=hash_password(password) if password else "not-a-hash",
            role=role,
            access_level=access_level,
            tenant_id=tenant.id if tenant is not None else None,
            is_active=is_active,
            email_verified=email_verified,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_item(db):
    def _make(owner, *, name: str = "Chainsaw", estimated_value: float = 250.0):
        item = Item(
            tenant_id=owner.tenant_id,
            owner_id=owner.id,
            name=name,
            estimated_value=estimated_value,
        )
        db.add(item)
        db.commit()
        return item

    return _make


def identity_of(user) -> Identity:
    return Identity.from_user(user)


def auth_headers(user) -> dict[str, str]:
    token = create_session_token(user_id=user.id, role=user.role, tenant_id=user.tenant_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "media"))


@pytest.fixture()
def client(db, storage):
    from remise.main import app

    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
