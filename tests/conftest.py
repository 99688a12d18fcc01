"""
Shared pytest fixtures.

Uses a throwaway SQLite file so no external store is required. Tables are
emptied after every test; ids keep increasing because usage_events uses
AUTOINCREMENT.
"""
from dataclasses import dataclass
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import locked.models  # noqa: F401
from locked.db.base import Base, get_db
from locked.main import create_app
from locked.services.lock_state import LockStateMachine
from locked.services.runtime import LockedRuntime
from locked.services.token_registry import TokenRegistry

SQLITE_URL = "sqlite:///./test_locked.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TOKEN = "04:A2:19:7B:C3:5E:80"


def local_ms(*args) -> int:
    """Epoch ms for a local wall-clock datetime(*args)."""
    return int(datetime(*args).timestamp() * 1000)


@dataclass
class FakeEvent:
    """Minimal stand-in for UsageEvent in pure-function tests."""
    timestamp: int
    package_name: str = "com.example.social"
    session_duration: int = 0


class RecordingPresenter:
    def __init__(self):
        self.blocked: list[tuple[str, str]] = []
        self.unblocks = 0

    def block(self, package_name: str, app_name: str) -> None:
        self.blocked.append((package_name, app_name))

    def unblock(self) -> None:
        self.unblocks += 1


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def tokens(tmp_path):
    return TokenRegistry(tmp_path / "token.json")


@pytest.fixture()
def paired_tokens(tokens):
    tokens.pair(TOKEN)
    return tokens


@pytest.fixture()
def lock_machine(paired_tokens):
    return LockStateMachine(TestingSessionLocal, paired_tokens)


@pytest.fixture()
def presenter():
    return RecordingPresenter()


@pytest.fixture()
def runtime(tmp_path, presenter):
    return LockedRuntime(
        TestingSessionLocal,
        token_path=str(tmp_path / "runtime_token.json"),
        presenter=presenter,
    )


@pytest.fixture()
def client(runtime):
    app = create_app(runtime=runtime)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
