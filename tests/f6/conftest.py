"""Fixtures for F6 tests - Web API and CLI."""

import pytest
import yaml
from fastapi.testclient import TestClient

from accreda.backend.storage import AvatarStorage
from accreda.config.app_config import CONFIG_FILE, StorageConfig, clear_config_cache
from accreda.web import services as services_module
from accreda.web.api import create_app
from accreda.web.services import ServiceRegistry

PASSWORD = "Secret123"


@pytest.fixture
def app_config(db, tmp_path):
    """Config file pointing the app at the test database."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "db_path": str(db.relative_to(tmp_path)),
                    "csaw_template": "data/templates/csaw_v1.pdf",
                },
                "storage": {"avatars_dir": str(tmp_path / "avatars")},
                "security": {"bcrypt_rounds": 4},
            }
        )
    )
    clear_config_cache()
    return CONFIG_FILE


@pytest.fixture
def registry(app_config, functions, tmp_path, monkeypatch):
    """Service registry whose hosted functions are recorded, not called."""
    registry = ServiceRegistry(
        functions=functions.client(),
        storage=AvatarStorage(
            StorageConfig(avatars_dir=str(tmp_path / "avatars"), public_base_url="http://cdn.test")
        ),
    )
    monkeypatch.setattr(services_module, "_service_registry", registry)
    return registry


@pytest.fixture
def client(registry):
    """Test client running the app lifespan."""
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Factory signing up through the API and returning auth headers plus body."""

    def _signup(
        email: str = "alex@eit.test",
        role: str = "eit",
        full_name: str = "Alex Doe",
    ) -> tuple[dict[str, str], dict]:
        response = client.post(
            "/api/auth/signup",
            json={
                "email": email,
                "password": PASSWORD,
                "confirm_password": PASSWORD,
                "full_name": full_name,
                "role": role,
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return {"Authorization": f"Bearer {data['token']}"}, data

    return _signup
