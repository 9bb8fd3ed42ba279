import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app, get_upload_dir, get_user_collection


@pytest.fixture
def collection():
    coll = mongomock.MongoClient()["user_db"][database.USER_COLLECTION]
    database.ensure_user_indexes(coll)
    return coll


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def client(collection, upload_dir):
    app.dependency_overrides[get_user_collection] = lambda: collection
    app.dependency_overrides[get_upload_dir] = lambda: str(upload_dir)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(client):
    """Helper: POST /user with sane defaults, any form field can be overridden."""
    def _create(avatar=("me.png", b"png-bytes", "image/png"), **fields):
        data = {"name": "Ana", "age": "30", "email": "ana@example.com", "note": "hello"}
        data.update(fields)
        data = {k: v for k, v in data.items() if v is not None}
        files = {"avatar": avatar} if avatar is not None else None
        return client.post("/user", data=data, files=files)
    return _create
