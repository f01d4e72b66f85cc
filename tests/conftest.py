"""Shared fixtures: in-memory database, API client and account factories."""

import bcrypt
import pyotp
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import backend.models  # noqa: F401
from backend.database import get_session
from backend.main import app
from backend.models.user import User

PASSWORD = "correct horse battery staple"


def fast_hash(password: str) -> str:
    """bcrypt with the minimum cost factor so tests stay quick."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(username="admin", password=PASSWORD, secret=None, backup_codes=None):
        user = User(
            username=username,
            hashed_password=fast_hash(password),
            two_factor_enabled=secret is not None,
            two_factor_secret=secret,
            backup_codes=backup_codes,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def secret():
    return pyotp.random_base32()
