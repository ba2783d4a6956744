import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from tests.sheet_helpers import build_backend

ROOT = Path(__file__).resolve().parents[1]


def _setup_app(database_url: str, tmp_path: Path):
    os.environ["DATABASE_URL"] = database_url
    os.environ["WORKBOOK_PATH"] = str(tmp_path / "tbms.xlsx")
    os.environ["PHOTO_STORAGE_PATH"] = str(tmp_path / "photos")
    os.environ["LOCK_TIMEOUT_SEC"] = "0.5"

    import app.tbms.core.config as config
    import app.tbms.db.session as session
    import app.tbms.core.context as context
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(context)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", database_url)
    config.attributes["configure_logger"] = False
    command.upgrade(config, "head")


@pytest.fixture()
def client(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'test.db'}"

    _run_migrations(database_url)
    app, session = _setup_app(database_url, tmp_path)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()


@pytest.fixture()
def backend(tmp_path: Path):
    return build_backend(tmp_path)


@pytest.fixture()
def rows(backend):
    return backend.rows
