import importlib
import os
import uuid
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url


def _scratch_postgres(base_url: str):
    """Create a throwaway database next to ``base_url``; return its url and a dropper."""
    url = make_url(base_url)
    admin_url = url.set(database="postgres")
    name = f"stockflow_test_{uuid.uuid4().hex[:12]}"

    admin = create_engine(admin_url, isolation_level="AUTOCOMMIT", future=True)
    with admin.connect() as conn:
        conn.execute(text(f'CREATE DATABASE "{name}"'))

    def drop() -> None:
        with admin.connect() as conn:
            conn.execute(
                text("SELECT pg_terminate_backend(pid) FROM pg_stat_activity WHERE datname = :name"),
                {"name": name},
            )
            conn.execute(text(f'DROP DATABASE IF EXISTS "{name}"'))
        admin.dispose()

    return url.set(database=name).render_as_string(hide_password=False), drop


def _upgrade_to_head(database_url: str) -> None:
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_config, "head")


@pytest.fixture()
def database_url(tmp_path: Path):
    configured = os.getenv("DATABASE_URL", "")
    if configured.startswith("postgres"):
        url, drop = _scratch_postgres(configured)
        os.environ["DATABASE_URL"] = url
        yield url
        os.environ["DATABASE_URL"] = configured
        drop()
        return
    url = f"sqlite+pysqlite:///{tmp_path / 'stockflow.db'}"
    os.environ["DATABASE_URL"] = url
    yield url
    os.environ["DATABASE_URL"] = configured


@pytest.fixture()
def client(database_url: str):
    os.environ["SECRET_KEY"] = "test-secret"
    _upgrade_to_head(database_url)

    import app.main as main
    import app.stockflow.core.config as config
    import app.stockflow.db.session as session
    from app.stockflow.core.metrics import metrics

    # settings and the engine are read at import time
    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)
    metrics.reset()

    with TestClient(main.create_app()) as test_client:
        yield test_client

    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.stockflow.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
