import os
import sys
import tempfile
import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# project root on sys.path so ``tests.test_utils`` and the package import
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from tests.test_utils import TEST_CURRENCY, TEST_SALT_KEY, generate_unique_id

# settings are read once at import; keep the app's own engine off the working tree
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'app.db')}")
os.environ["SEAMLESS_SALT_KEY"] = TEST_SALT_KEY
os.environ["SEAMLESS_VERIFY_SIGNATURE"] = "true"
os.environ.setdefault("SEAMLESS_ROLLBACK_NOT_FOUND_STATUS", "404")

from seamless_wallet.database import Base, create_db_engine, get_session_factory
from seamless_wallet.models import Account, GameSession
from seamless_wallet.services.dispatcher import WalletEngine
from seamless_wallet.utils.signature import SignatureValidator


# --- Database ---

@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'wallet.db'}", lock_timeout_ms=15000)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Single session for repository-level tests; rolled back afterwards."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# --- Seed data ---

@pytest.fixture(scope="function")
def make_player(session_factory):
    """
    Creates an account with an active game session and returns
    ``(account_id, remote_id, session_token)``.
    """
    def _make_player(balance="100.00", remote_id=None, username=None):
        remote_id = remote_id or generate_unique_id("remote")
        session_token = uuid.uuid4().hex
        db = session_factory()
        try:
            account = Account(
                username=username or generate_unique_id("player"),
                currency=TEST_CURRENCY,
                wallet_balance=Decimal(balance),
            )
            db.add(account)
            db.flush()
            db.add(GameSession(
                account_id=account.id,
                remote_id=remote_id,
                session_token=session_token,
                provider="test_provider",
                is_active=True,
            ))
            db.commit()
            return account.id, remote_id, session_token
        finally:
            db.close()

    return _make_player


@pytest.fixture(scope="function")
def read_account(session_factory):
    """Reads an account in its own short transaction."""
    def _read_account(account_id):
        db = session_factory()
        try:
            account = db.get(Account, account_id)
            db.expunge(account)
            return account
        finally:
            db.close()

    return _read_account


# --- Engine and HTTP client ---

@pytest.fixture(scope="function")
def signature_validator():
    return SignatureValidator(TEST_SALT_KEY)


@pytest.fixture(scope="function")
def wallet_engine(session_factory, signature_validator):
    return WalletEngine(session_factory, signature_validator, lock_timeout_ms=15000)


@pytest.fixture(scope="function")
def client(session_factory):
    """TestClient whose callbacks run against the per-test database."""
    from seamless_wallet.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session_factory, None)
