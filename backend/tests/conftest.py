import os

# mysecrets.main calls require_jwt_secret() and load_master_key() at import time.
TEST_JWT_SECRET = "test_jwt_secret_that_is_long_enough_for_hs256"
TEST_MASTER_KEY_HEX = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"

os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("ENCRYPTION_MASTER_KEY", TEST_MASTER_KEY_HEX)
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mysecrets.auth.identity import FederatedIdentity
from mysecrets.core import config as app_config
from mysecrets.core.base import Base
from mysecrets.core.config import TokenSettings
from mysecrets.core.crypto import EncryptionEngine
from mysecrets.core.database import get_db
from mysecrets.core.security import TokenIssuer, hash_password

# Import models so they register with SQLAlchemy metadata.
from mysecrets.models.audit_event import AuditEvent  # noqa: F401
from mysecrets.models.refresh_token import RefreshToken  # noqa: F401
from mysecrets.models.secret import Secret  # noqa: F401
from mysecrets.models.user import User

from mysecrets.dependencies.auth import get_current_user
from mysecrets.dependencies.services import (
    get_audit_sink,
    get_encryption_engine,
    get_google_verifier,
    get_token_issuer,
)
from mysecrets.services.audit import AuditSink
from mysecrets.services.auth import AuthOrchestrator
from mysecrets.services.refresh_tokens import RefreshTokenStore

USER_PASSWORD = "Test_password_123"


class FakeGoogleVerifier:
    """Stands in for Google: maps raw id tokens to identities."""

    def __init__(self) -> None:
        self.identities: dict[str, FederatedIdentity] = {}

    def add(self, id_token: str, *, subject: str, email: str, first_name: str = "G", last_name: str = "User") -> None:
        self.identities[id_token] = FederatedIdentity(
            subject=subject, email=email, first_name=first_name, last_name=last_name
        )

    def __call__(self, id_token: str):
        return self.identities.get(id_token)


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(db_engine, session_factory):
    # The in-memory DB persists across tests with StaticPool; reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak the process-global settings object; restore after each test.
    """
    keys = [
        "PASSWORD_MIN_LENGTH",
        "GOOGLE_CLIENT_ID",
        "GOOGLE_JWKS_CACHE_SECONDS",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def token_settings():
    return TokenSettings(secret=TEST_JWT_SECRET)


@pytest.fixture()
def issuer(token_settings):
    return TokenIssuer(token_settings)


@pytest.fixture()
def encryption_engine():
    return EncryptionEngine(bytes.fromhex(TEST_MASTER_KEY_HEX))


@pytest.fixture()
def token_store(issuer):
    return RefreshTokenStore(issuer)


@pytest.fixture()
def audit_sink(session_factory):
    return AuditSink(session_factory)


@pytest.fixture()
def fake_google():
    return FakeGoogleVerifier()


@pytest.fixture()
def orchestrator(token_store, audit_sink, fake_google):
    return AuthOrchestrator(token_store=token_store, audit=audit_sink, google_verifier=fake_google)


@pytest.fixture()
def app(db_session, issuer, encryption_engine, audit_sink, fake_google):
    import mysecrets.main as main

    fastapi_app = main.app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_token_issuer] = lambda: issuer
    fastapi_app.dependency_overrides[get_encryption_engine] = lambda: encryption_engine
    fastapi_app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    fastapi_app.dependency_overrides[get_google_verifier] = lambda: fake_google
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def users(db_session):
    """
    Two distinct active users for ownership / isolation tests.
    """
    user_a = User(
        email="test@example.com",
        first_name="Test",
        last_name="User",
        password_hash=hash_password(USER_PASSWORD),
        is_active=True,
    )
    user_b = User(
        email="other@example.com",
        first_name="Other",
        last_name="User",
        password_hash=hash_password(USER_PASSWORD),
        is_active=True,
    )
    db_session.add_all([user_a, user_b])
    db_session.commit()
    db_session.refresh(user_a)
    db_session.refresh(user_b)
    return user_a, user_b


@pytest.fixture()
def anon_client(app):
    """
    Client with no auth override; goes through the real bearer-token dependency.
    """
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def client(app, users):
    """
    Default client authenticated as user_a.
    """
    user_a, _ = users
    app.dependency_overrides[get_current_user] = lambda: user_a
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture()
def client_for(app):
    """
    Context manager to create a client authenticated as an arbitrary user.

    Usage:
        with client_for(user) as c:
            ...
    """

    @contextmanager
    def _client_for(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.pop(get_current_user, None)

    return _client_for
