"""Shared pytest fixtures for pubg-tournament-leaderboard tests."""
import os
import sys
import json
from pathlib import Path
from typing import Generator, List, Union

# Settings are read at import time, so the test environment must be in place
# before anything under app/ is imported.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["AI_GATEWAY_API_KEY"] = "test-gateway-key"
os.environ["AI_RETRY_BASE_DELAY"] = "0"
os.environ["BATCH_ITEM_DELAY"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

ADMIN_TOKEN = "test-admin-token"
ALPHA_CODE = "alpha-player-code"
BRAVO_CODE = "bravo-player-code"
GATEWAY_URL = "https://gateway.test/v1/chat/completions"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def tool_call_response(placement, kills, status_code: int = 200) -> httpx.Response:
    """A chat-completions body carrying an extract_match_data tool call."""
    return httpx.Response(
        status_code,
        json={
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "tool_calls": [
                            {
                                "id": "call_1",
                                "type": "function",
                                "function": {
                                    "name": "extract_match_data",
                                    "arguments": json.dumps({"placement": placement, "kills": kills}),
                                },
                            }
                        ],
                    }
                }
            ]
        },
    )


class FakeGateway:
    """
    Scripted AI gateway for httpx.MockTransport.

    Queue httpx.Response objects (or exceptions to raise) in the order the
    client should see them; every request received is kept in `requests`.
    """

    def __init__(self):
        self.responses: List[Union[httpx.Response, Exception]] = []
        self.requests: List[httpx.Request] = []

    def queue(self, *responses: Union[httpx.Response, Exception]) -> "FakeGateway":
        self.responses.extend(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("AI gateway called more times than scripted")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test, shared across TestClient threads."""
    from app.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def extraction_client(fake_gateway: FakeGateway):
    """Extraction client wired to the fake gateway, with no backoff sleeps."""
    from app.services.screenshot_extraction_service import ScreenshotExtractionClient

    return ScreenshotExtractionClient(
        api_key="test-gateway-key",
        url=GATEWAY_URL,
        model="google/gemini-2.5-flash",
        timeout=5.0,
        max_attempts=3,
        retry_base_delay=0,
        transport=httpx.MockTransport(fake_gateway.handler),
    )


@pytest.fixture
def tournament(db_session: Session):
    from app.models import Tournament

    tournament = Tournament(name="Weekend Scrims", description="Six-match series", total_matches=6)
    db_session.add(tournament)
    db_session.commit()
    return tournament


@pytest.fixture
def team_alpha(db_session: Session, tournament):
    from app.models import Team

    team = Team(name="Alpha Squad", tournament_id=tournament.id)
    db_session.add(team)
    db_session.commit()
    return team


@pytest.fixture
def team_bravo(db_session: Session, tournament):
    from app.models import Team

    team = Team(name="Bravo Squad", tournament_id=tournament.id)
    db_session.add(team)
    db_session.commit()
    return team


@pytest.fixture
def access_codes(db_session: Session, team_alpha, team_bravo):
    """Player codes for both teams."""
    from app.models import AccessCode, Role

    codes = [
        AccessCode(code=ALPHA_CODE, role=Role.PLAYER, team_id=team_alpha.id),
        AccessCode(code=BRAVO_CODE, role=Role.PLAYER, team_id=team_bravo.id),
    ]
    db_session.add_all(codes)
    db_session.commit()
    return codes


def add_record(db_session: Session, team, placement=None, kills=None, match_number=None, screenshot_url=None):
    """Insert a record directly, bypassing the service (no recompute)."""
    from app.models import AnalysisStatus, MatchRecord
    from app.services.scoring import record_points

    record = MatchRecord(
        team_id=team.id,
        match_number=match_number,
        placement=placement,
        kills=kills,
        points=record_points(placement, kills),
        screenshot_url=screenshot_url,
        analysis_status=AnalysisStatus.PENDING if placement is None else AnalysisStatus.ANALYZED,
    )
    db_session.add(record)
    db_session.commit()
    return record


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session, extraction_client):
    """
    FastAPI TestClient using the test database and the fake AI gateway.

    Note: We don't use context manager (with TestClient) because it conflicts
    with Prometheus middleware that's added during app module initialization.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/v1/tournaments")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from app.main import app
    from app.core.database import get_db
    from app.services.screenshot_extraction_service import get_extraction_client

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_extraction_client] = lambda: extraction_client

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def make_record(db_session: Session):
    """Factory: make_record(team, placement=1, kills=3) inserts without recomputing."""
    def _make(team, **kwargs):
        return add_record(db_session, team, **kwargs)
    return _make


@pytest.fixture
def gateway_reply():
    """Factory for a successful tool-call response: gateway_reply(placement, kills)."""
    return tool_call_response


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers(ADMIN_TOKEN)


@pytest.fixture
def alpha_headers(access_codes) -> dict:
    return auth_headers(ALPHA_CODE)


@pytest.fixture
def bravo_headers(access_codes) -> dict:
    return auth_headers(BRAVO_CODE)
