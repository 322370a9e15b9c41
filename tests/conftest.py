import mongomock
import pytest
from fastapi.testclient import TestClient

import config
from database import create_document, get_db
from main import app


@pytest.fixture
def db():
    """In-memory MongoDB database."""
    return mongomock.MongoClient()["musify_test"]


@pytest.fixture
def storage_dirs(tmp_path, monkeypatch):
    public = tmp_path / "public"
    music = tmp_path / "musics"
    public.mkdir()
    music.mkdir()
    monkeypatch.setattr(config, "PUBLIC_DIR", public)
    monkeypatch.setattr(config, "MUSIC_DIR", music)
    return public, music


@pytest.fixture
def client(db, storage_dirs):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make(db):
    """Insert a raw document (no relationship maintenance) and return its id."""

    def _make(collection, **fields):
        return str(create_document(db, collection, fields)["_id"])

    return _make
