"""
Shared fixtures: an in-memory database per test, a GameManager and sweeper
bound to it, and an API client wired to both.
"""
import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from impostor_game.database import enable_sqlite_foreign_keys, init_db
from impostor_game.game_manager import GameManager, get_game_manager
from impostor_game.main import app
from impostor_game.role_assignment import RoleAssignmentEngine
from impostor_game.routes.maintenance import get_sweeper
from impostor_game.sweeper import MaintenanceSweeper


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def manager(session_factory):
    return GameManager(session_factory, engine=RoleAssignmentEngine(rng=random.Random(1234)))


@pytest.fixture
def sweeper(session_factory):
    return MaintenanceSweeper(session_factory)


@pytest.fixture
def client(manager, sweeper):
    """Create test client."""
    app.dependency_overrides[get_game_manager] = lambda: manager
    app.dependency_overrides[get_sweeper] = lambda: sweeper
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def create_room(client, name, device_id=None):
    response = client.post("/api/room/create", json={"name": name, "device_id": device_id})
    assert response.status_code == 200, response.text
    return response.json()


def join_room(client, code, name, device_id=None):
    response = client.post("/api/room/join", json={"room_code": code, "name": name, "device_id": device_id})
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def room_of_three(client):
    """
    Alice hosts, Bob and Cara join. Returns the room code and, per name,
    the player's id and token.
    """
    alice = create_room(client, "Alice", device_id="dev-alice")
    code = alice["room_code"]
    bob = join_room(client, code, "Bob", device_id="dev-bob")
    cara = join_room(client, code, "Cara", device_id="dev-cara")
    players = {
        name: {"id": data["player"]["id"], "token": data["token"]}
        for name, data in (("Alice", alice), ("Bob", bob), ("Cara", cara))
    }
    return {"code": code, "players": players}
