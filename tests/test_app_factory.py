from sqlalchemy.exc import OperationalError

from socialapp.core.config import settings
from socialapp.core.database import get_db
from socialapp.main import app


def test_root(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"message": f"Welcome to {settings.app_name}"}


def test_livez(client):
    res = client.get("/livez")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_readyz(client):
    res = client.get("/readyz")
    assert res.status_code == 200
    assert res.json() == {"status": "ready", "details": {"database": "connected"}}


class _BrokenSession:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def close(self):
        pass


def test_readyz_reports_database_down(client):
    def broken_db():
        yield _BrokenSession()

    app.dependency_overrides[get_db] = broken_db
    res = client.get("/readyz")
    assert res.status_code == 503
    assert res.json()["detail"] == {"database": "disconnected"}


def test_unknown_route_is_404(client):
    assert client.get("/definitely-not-here").status_code == 404


def test_lifespan_exposes_connection_manager(client):
    assert app.state.connection_manager is not None
    assert app.state.environment == "test"


def test_request_id_header(client):
    res = client.get("/livez")
    assert res.headers.get("X-Request-ID")
