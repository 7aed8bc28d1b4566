import os

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"

import uuid
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.analysis.schemas import (
    GoalLLMResponse,
    InsightsBlock,
    JournalLLMResponse,
    PeriodLLMResponse,
    RecommendationsBlock,
)
from momentum_journal.auth.service import create_token
from momentum_journal.core.database import Base, get_db
from momentum_journal.core.dependency import get_ai_service, get_ai_service_factory


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mock_ai():
    ai = MagicMock(spec=AIService)
    ai.generate_period_insights.return_value = PeriodLLMResponse(
        summary="A steady week with consistent journaling.",
        key_achievements=[{"title": "Wrote daily", "description": "Five entries", "date": "2024-01-01"}],
        areas_for_improvement=[{"area": "Sleep", "suggestion": "Go to bed earlier", "priority": "medium"}],
        goal_progress_updates=[],
        insights=InsightsBlock(sentiment="positive", patterns=["morning writing"], key_themes=["focus"]),
        recommendations=RecommendationsBlock(suggestions=["Keep going"]),
        tokens_used=321,
    )
    ai.analyze_goal_progress.return_value = GoalLLMResponse(
        insights=InsightsBlock(sentiment="neutral", patterns=["weekend gaps"]),
        recommendations=RecommendationsBlock(action_items=["Schedule two sessions"]),
        progress_summary={"overall_progress": 40, "momentum_score": 55},
        tokens_used=200,
    )
    ai.analyze_journal_entry.return_value = JournalLLMResponse(
        insights=InsightsBlock(sentiment="positive", key_themes=["running"]),
        recommendations=RecommendationsBlock(focus_areas=["recovery"]),
        tokens_used=150,
    )
    return ai


@pytest.fixture
def client(session_factory, mock_ai):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: mock_ai
    app.dependency_overrides[get_ai_service_factory] = lambda: (lambda: mock_ai)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_token(user_id)}"}


@pytest.fixture
def other_headers():
    return {"Authorization": f"Bearer {create_token(uuid.uuid4())}"}


@pytest.fixture
def make_goal(client, auth_headers):
    def _make(title="Goal", type="short-term", headers=None, **fields):
        payload = {"title": title, "type": type, **fields}
        resp = client.post("/goals", json=payload, headers=headers or auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make


@pytest.fixture
def make_journal(client, auth_headers):
    def _make(content="Today I made progress.", headers=None, **fields):
        payload = {"content": content, **fields}
        resp = client.post("/journals", json=payload, headers=headers or auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make
