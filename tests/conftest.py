from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from typing import Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dailytracker import ai, models
from dailytracker.app import app, get_db
from dailytracker.auth import AuthenticatedUser, get_current_user
from dailytracker.badges import seed_badge_catalog

USER_ID = "user-1"


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    seed = factory()
    seed_badge_catalog(seed)
    seed.commit()
    seed.close()
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeGenerator:
    """Stands in for the Gemini calls and records every prompt it receives."""

    def __init__(self) -> None:
        self.replies: List[object] = []
        self.prompts: List[str] = []
        self.json_reply: Dict[str, object] = {}

    def queue(self, *replies: object) -> None:
        self.replies.extend(replies)

    async def generate_text(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "Generated text."
        if isinstance(reply, Exception):
            raise reply
        return str(reply)

    async def generate_json(self, prompt: str, **kwargs) -> Dict[str, object]:
        self.prompts.append(prompt)
        return self.json_reply


@pytest.fixture()
def generator(monkeypatch: pytest.MonkeyPatch) -> FakeGenerator:
    fake = FakeGenerator()
    monkeypatch.setattr(ai, "generate_text", fake.generate_text)
    monkeypatch.setattr(ai, "generate_json", fake.generate_json)
    return fake


@pytest.fixture()
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    def _get_db() -> Iterator[Session]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=USER_ID, email="user@example.com"
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
