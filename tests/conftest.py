"""Shared pytest fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cardstack.core.config import clear_settings_cache
from cardstack.main import app
from cardstack.services import repository
from cardstack.services.database import (
    create_db_engine,
    get_session_factory,
    init_database,
    session_scope,
)

ALICE_HEADERS = {"X-Auth-User-Id": "user_alice", "X-Auth-User-Email": "alice@example.com"}
BOB_HEADERS = {"X-Auth-User-Id": "user_bob", "X-Auth-User-Email": "bob@example.com"}


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Run every test against default identity headers."""
    monkeypatch.delenv("AUTH_USER_HEADER", raising=False)
    monkeypatch.delenv("AUTH_EMAIL_HEADER", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_db_engine("sqlite://")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A session committed when the test finishes."""
    with session_scope(session_factory) as session:
        yield session


@pytest.fixture
def alice(session_factory):
    with session_scope(session_factory) as session:
        return repository.get_or_create_user(session, "user_alice", "alice@example.com")


@pytest.fixture
def bob(session_factory):
    with session_scope(session_factory) as session:
        return repository.get_or_create_user(session, "user_bob", "bob@example.com")


@pytest.fixture
def client(session_factory):
    """API test client backed by the in-memory database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice_deck(session_factory, alice):
    """A deck owned by alice with two cards."""
    with session_scope(session_factory) as session:
        deck = repository.create_deck(session, alice.id, "Spanish", "Basic vocabulary")
        repository.create_card_if_owned(session, deck.id, alice.id, "hola", "hello")
        repository.create_card_if_owned(session, deck.id, alice.id, "adiós", "goodbye")
    return deck
