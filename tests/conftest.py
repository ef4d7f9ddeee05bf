import asyncio
import os
import tempfile

# Settings and the engine are built at import time, so the test database and
# secrets must be in the environment before anything under src is imported.
_DB_DIR = tempfile.mkdtemp(prefix="creative-approval-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["CELERY_ENABLED"] = "false"
for _name in ("ALERT_WEBHOOK_URL", "EVERFLOW_API_KEY", "GRAMMAR_AI_URL", "MALWARE_SCAN_URL"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import src.models  # noqa: E402,F401
from src.database import SessionLocal, engine  # noqa: E402
from src.main import app  # noqa: E402
from src.models.base import Base  # noqa: E402


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def _fresh_database():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_maker():
    return SessionLocal


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test-cron-secret"}
