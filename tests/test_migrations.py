from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

import src.models  # noqa: F401
from src.models.base import Base

ROOT = Path(__file__).resolve().parents[1]


def _script() -> ScriptDirectory:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    return ScriptDirectory.from_config(cfg)


def test_migrations_form_a_single_linear_history():
    script = _script()
    assert script.get_heads() == ["004_ops_tables"]

    revisions = [rev.revision for rev in script.walk_revisions("base", "heads")]
    assert list(reversed(revisions)) == [
        "001_users_and_directory",
        "002_creative_requests",
        "003_background_jobs",
        "004_ops_tables",
    ]


def test_every_model_table_is_created_by_a_migration():
    sources = "\n".join(p.read_text() for p in (ROOT / "alembic" / "versions").glob("*.py"))
    missing = [name for name in Base.metadata.tables if f'"{name}"' not in sources]
    assert missing == []
