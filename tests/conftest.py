import mongomock
import pytest
from fastapi.testclient import TestClient

from assets import AssetManager, get_asset_manager
from auth import CredentialStore, issue_token
from database import get_db
from main import app


@pytest.fixture
def db():
    """In-memory MongoDB stand-in"""
    return mongomock.MongoClient()["portfolio_test"]


@pytest.fixture
def assets(tmp_path):
    return AssetManager(str(tmp_path / "uploads"))


@pytest.fixture
def client(db, assets):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_asset_manager] = lambda: assets
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return CredentialStore(db).create("Admin", "admin@portfolio.com", "admin123")


@pytest.fixture
def auth_headers(admin):
    return {"Authorization": f"Bearer {issue_token(admin)}"}
