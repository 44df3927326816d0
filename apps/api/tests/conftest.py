"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (schema from metadata)
- User / buddy factories
- HTTPX AsyncClient per user with session cookie and CSRF header
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["REDIS_URL"] = ""
os.environ["AI_MATCHING_ENABLED"] = "false"

import uuid
from contextlib import asynccontextmanager
from typing import Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from buddymatch.core.deps import COOKIE_NAME, get_db, get_suggestion_cache
from buddymatch.core.security import create_session_token
from buddymatch.db.base import Base
from buddymatch.db.enums import MatchStatus, MatchType, Role
from buddymatch.db.models import BuddyProfile, Match, User, UserProfile
from buddymatch.main import app
from buddymatch.services.ai_suggestion_cache import MemorySuggestionCache


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session on a private in-memory database; app code may commit freely."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(scope="function")
def suggestion_cache() -> MemorySuggestionCache:
    return MemorySuggestionCache(ttl_seconds=300)


@pytest.fixture(autouse=True)
def _app_overrides(db: Session, suggestion_cache: MemorySuggestionCache):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_suggestion_cache] = lambda: suggestion_cache
    yield
    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db: Session):
    def _make_user(
        role: Role,
        first_name: str | None = None,
        last_name: str = "Tester",
        is_active: bool = True,
        **profile_fields,
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@test.com",
            first_name=first_name or role.value.title(),
            last_name=last_name,
            role=role.value,
            is_active=is_active,
            token_version=1,
        )
        db.add(user)
        if profile_fields:
            profile_fields.setdefault("interests", [])
            profile_fields.setdefault("languages", [])
            db.add(UserProfile(user_id=user.id, **profile_fields))
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_buddy(db: Session, make_user):
    def _make_buddy(
        first_name: str = "Buddy",
        max_buddies: int = 3,
        is_available: bool = True,
        location: str = "Berlin",
        unit: str = "Platform",
        tech_stack: list[str] | None = None,
        interests: list[str] | None = None,
        is_active: bool = True,
        **buddy_fields,
    ) -> User:
        user = make_user(Role.BUDDY, first_name=first_name, is_active=is_active)
        db.add(
            BuddyProfile(
                user_id=user.id,
                location=location,
                unit=unit,
                tech_stack=tech_stack if tech_stack is not None else ["Python"],
                interests=interests if interests is not None else ["Hiking"],
                max_buddies=max_buddies,
                is_available=is_available,
                **buddy_fields,
            )
        )
        db.commit()
        return user

    return _make_buddy


@pytest.fixture
def make_match(db: Session):
    """Insert a match row directly, bypassing lifecycle checks (fixture data only)."""
    def _make_match(
        sender: User,
        receiver: User,
        status: MatchStatus = MatchStatus.PENDING,
        type: MatchType = MatchType.NEWCOMER_MATCH,
        newcomer: User | None = None,
    ) -> Match:
        match = Match(
            sender_id=sender.id,
            receiver_id=receiver.id,
            newcomer_id=newcomer.id if newcomer else None,
            type=type.value,
            status=status.value,
        )
        db.add(match)
        db.commit()
        return match

    return _make_match


@pytest.fixture
def hr_user(make_user) -> User:
    return make_user(Role.HR, first_name="Hanna")


@pytest.fixture
def newcomer(make_user) -> User:
    return make_user(
        Role.NEWCOMER,
        first_name="Nora",
        department="Engineering",
        position="Backend Developer",
        location="Berlin",
        bio="Likes distributed systems",
        interests=["Hiking", "Chess"],
        languages=["English", "German"],
        timezone="Europe/Berlin",
    )


# =============================================================================
# Client Fixtures
# =============================================================================

def auth_token(user: User) -> str:
    return create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )


@pytest.fixture
def client_for():
    """
    Factory for an authenticated AsyncClient acting as the given user.

    Usage:
        async with client_for(hr_user) as client: ...
    """
    @asynccontextmanager
    async def _client(user: User | None = None, csrf: bool = True):
        headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
        cookies = {COOKIE_NAME: auth_token(user)} if user else {}
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers=headers,
        ) as c:
            yield c

    return _client
