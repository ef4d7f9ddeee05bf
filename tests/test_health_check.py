from sqlalchemy.exc import OperationalError

from src.database import get_db
from src.main import app


def test_health_reports_database_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok"}


class _BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


async def _broken_db():
    yield _BrokenSession()


def test_health_reports_degraded_when_database_is_down(client):
    app.dependency_overrides[get_db] = _broken_db
    try:
        r = client.get("/health")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert r.status_code == 503
    assert r.json() == {"status": "degraded", "database": "unavailable"}
