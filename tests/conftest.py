import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs512"
os.environ["EVOLUTION_API_URL"] = ""
os.environ["EVOLUTION_API_KEY"] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from imobcrm import models  # noqa: E402,F401
from imobcrm.core.database import Base, SessionLocal, engine  # noqa: E402
from imobcrm.core.rate_limit import limiter  # noqa: E402
from imobcrm.core.security import create_access_token, get_password_hash  # noqa: E402
from imobcrm.main import app  # noqa: E402
from imobcrm.models.cliente import Cliente, ClienteStatus  # noqa: E402
from imobcrm.models.user import User, UserRole  # noqa: E402

PASSWORD = "Senha1234"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.consultant, full_name=None, is_active=True, **kwargs):
        counter["n"] += 1
        role_value = role.value if isinstance(role, UserRole) else role
        user = User(
            full_name=full_name or f"{role_value.title()} {counter['n']}",
            email=kwargs.pop("email", f"{role_value}{counter['n']}@imobcrm.com.br"),
            hashed_password=PASSWORD_HASH,
            role=role_value,
            is_active=is_active,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def manager(make_user):
    return make_user(UserRole.manager, full_name="Gestora")


@pytest.fixture
def consultant(make_user):
    return make_user(UserRole.consultant, full_name="Consultor A")


@pytest.fixture
def make_cliente(db):
    counter = {"n": 0}

    def _make(created_at=None, status=ClienteStatus.sem_atendimento, **kwargs):
        counter["n"] += 1
        cliente = Cliente(
            full_name=kwargs.pop("full_name", f"Cliente {counter['n']}"),
            phone=kwargs.pop("phone", f"1190000{counter['n']:04d}"),
            status=status.value,
            created_at=created_at or datetime.utcnow(),
            **kwargs,
        )
        db.add(cliente)
        db.commit()
        db.refresh(cliente)
        return cliente

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.role, user.session_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers
