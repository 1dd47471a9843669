from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from src.api import deps
from src.api.auth_utils import create_access_token
from src.api.main import app


@pytest.fixture
def client(repo, storage, rules, clock, guard) -> Iterator[TestClient]:
    """App wired to in-memory repo and tmp storage; lifespan is not run."""
    app.dependency_overrides[deps.get_asset_repo] = lambda: repo
    app.dependency_overrides[deps.get_storage_backend] = lambda: storage
    app.dependency_overrides[deps.get_rules] = lambda: rules
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_backend_guard] = lambda: guard
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(subject: str, role: str | None = None) -> dict[str, str]:
        claims = {"sub": subject}
        if role:
            claims["role"] = role
        return {"Authorization": f"Bearer {create_access_token(claims)}"}

    return _headers
