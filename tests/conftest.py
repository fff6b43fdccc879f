# ruff: noqa: E402
import os
from typing import Any

import psycopg2
import pytest

# Set testing environment flags before importing the app or settings
os.environ["APP_ENV"] = "test"
os.environ["REDIS_URL"] = ""
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./tests/test.db")

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.orm import sessionmaker

from socialapp import models
from socialapp.core.config import settings
from socialapp.core.database import Base, get_db
from socialapp.main import app
from socialapp.modules.notifications.realtime import manager
from socialapp.oauth2 import create_access_token
from tests.testclient import TestClient


class AttrDict(dict):
    """Dict with attribute-style access for fixtures."""

    def __getattr__(self, item: str) -> Any:
        try:
            return self[item]
        except KeyError as exc:
            raise AttributeError(item) from exc


# Force Redis off during tests to avoid real network calls.
settings.__class__.redis_client = None
manager.redis_client = None

test_db_url = settings.get_database_url(use_test=True)

# Safety: never run tests against a non-test Postgres database.
parsed_url = make_url(test_db_url)
if parsed_url.drivername.startswith("postgresql") and parsed_url.database:
    if not parsed_url.database.endswith("_test"):
        raise RuntimeError(
            f"Refusing to run tests against non-test database '{parsed_url.database}'. "
            "Set TEST_DATABASE_URL to a dedicated *_test database."
        )


def _ensure_database_exists(url: URL) -> None:
    """Create the test database if it doesn't already exist (Postgres only)."""
    if not url.drivername.startswith("postgresql"):
        return
    try:
        conn = psycopg2.connect(
            dbname="postgres",
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port,
            connect_timeout=5,
        )
        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM pg_database WHERE datname = %s;", (url.database,))
            if not cur.fetchone():
                cur.execute(f'CREATE DATABASE "{url.database}";')
        conn.close()
    except psycopg2.Error:
        # Let engine creation surface a clear error instead.
        return


def _init_test_engine():
    url = make_url(test_db_url)
    _ensure_database_exists(url)
    engine_kwargs = {"echo": False}
    if url.drivername.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(test_db_url, **engine_kwargs)


engine = _init_test_engine()
Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _wipe_tables() -> None:
    with engine.begin() as connection:
        if engine.dialect.name == "sqlite":
            for table in reversed(Base.metadata.sorted_tables):
                connection.execute(table.delete())
        else:
            table_names = ", ".join(f'"{tbl.name}"' for tbl in Base.metadata.sorted_tables)
            if table_names:
                connection.execute(text(f"TRUNCATE {table_names} RESTART IDENTITY CASCADE"))


@pytest.fixture(autouse=True, scope="function")
def _clean_state():
    """Keep the DB and the hub isolated across tests."""
    _wipe_tables()
    manager.active_connections.clear()
    manager.connection_counts.clear()
    manager.groups.clear()
    manager.last_disconnect_reason.clear()
    yield


@pytest.fixture(scope="function")
def session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(session):
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        try:
            yield test_client
        finally:
            app.dependency_overrides.clear()


def _register(client, username: str, email: str, **extra) -> AttrDict:
    user_data = {"username": username, "email": email, "password": "password123", **extra}
    res = client.post("/auth/register", json=user_data)
    assert res.status_code == 201, res.text
    new_user = res.json()
    new_user["password"] = user_data["password"]
    return AttrDict(new_user)


@pytest.fixture(scope="function")
def test_user(client):
    return _register(client, "alice", "alice@example.com", first_name="Alice", last_name="Smith")


@pytest.fixture(scope="function")
def test_user2(client):
    return _register(client, "bob", "bob@example.com", first_name="Bob")


@pytest.fixture(scope="function")
def test_user3(client):
    return _register(client, "carol", "carol@example.com")


@pytest.fixture(scope="function")
def admin_user(client, session):
    user = _register(client, "admin", "admin@example.com")
    session.query(models.User).filter(models.User.id == user["id"]).update(
        {"role": models.UserRole.ADMIN}
    )
    session.commit()
    user["role"] = "admin"
    return user


@pytest.fixture(scope="function")
def token(test_user):
    return create_access_token({"user_id": test_user["id"]})


@pytest.fixture(scope="function")
def authorized_client(client, token):
    client.headers.update({"Authorization": f"Bearer {token}"})
    return client


@pytest.fixture(scope="function")
def token_for():
    def _make(user) -> str:
        return create_access_token({"user_id": user["id"]})

    return _make


@pytest.fixture(scope="function")
def client_for(client, token_for):
    """Build extra clients sharing the overridden DB, one per acting user."""

    def _make(user) -> TestClient:
        extra = TestClient(app)
        extra.headers.update({"Authorization": f"Bearer {token_for(user)}"})
        return extra

    return _make


@pytest.fixture(scope="function")
def test_post(session, test_user):
    post = models.Post(content="Fixture post content", user_id=test_user["id"])
    session.add(post)
    session.commit()
    session.refresh(post)
    return AttrDict({"id": post.id, "content": post.content, "user_id": post.user_id})


@pytest.fixture(scope="function")
def test_comment(session, test_post, test_user):
    comment = models.Comment(
        content="Fixture comment content",
        user_id=test_user["id"],
        post_id=test_post["id"],
    )
    session.add(comment)
    session.commit()
    session.refresh(comment)
    return AttrDict({"id": comment.id, "content": comment.content, "post_id": comment.post_id})


@pytest.fixture(scope="function")
def friends(session, test_user, test_user2):
    """Make test_user and test_user2 follow each other."""
    session.add_all(
        [
            models.UserFollower(follower_id=test_user["id"], following_id=test_user2["id"]),
            models.UserFollower(follower_id=test_user2["id"], following_id=test_user["id"]),
        ]
    )
    session.commit()
    return test_user, test_user2
