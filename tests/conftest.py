from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.auth import UserPayload, create_token, create_user
from app.config import settings
from app.db import get_db, init_db, make_engine
from app.main import app
from app.models import Customer, Product, Role, Supplier

PASSWORD = "s3cret-pass"


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'trade.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture(autouse=True)
def documents_dir(tmp_path, monkeypatch):
    d = tmp_path / "documents"
    monkeypatch.setattr(settings, "documents_dir", str(d))
    return d


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(role: Role, email: str | None = None, name: str | None = None) -> UserPayload:
        u = create_user(
            db,
            email=email or f"{role.value.lower()}@nafru.eg",
            name=name or role.value.title(),
            password=PASSWORD,
            role=role,
        )
        return UserPayload.from_user(u)

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture
def team(make_user):
    return make_user(Role.TEAM)


@pytest.fixture
def buyer(make_user):
    return make_user(Role.BUYER, email="buyer@importer.ru")


@pytest.fixture
def supplier_user(make_user):
    return make_user(Role.SUPPLIER, email="grower@farm.eg")


@pytest.fixture
def customer(db):
    c = Customer(name="Acme", email="a@x.com", company="Acme Foods", country="Russia", language="ru")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def buyer_customer(db, buyer):
    c = Customer(name="Importer", email=buyer.email, company="Importer LLC", country="Russia", language="ru")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def product(db):
    s = Supplier(name="Delta Farms", country="Egypt")
    p = Product(name="Oranges", supplier=s)
    db.add(p)
    db.commit()
    return p


def auth_header(user: UserPayload) -> dict:
    return {"Authorization": f"Bearer {create_token(user)}"}
