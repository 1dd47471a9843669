from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from src.adapters.clock import FrozenClock
from src.adapters.local_storage import LocalFileStorage
from src.adapters.memory_repo import InMemoryAssetRepo
from src.components.access_links import SignedUrlConfig, SignedUrlIssuer
from src.components.assets import AssetStore
from src.core.backend import BackendGuard
from src.core.entities import Asset, AssetType, Visibility
from src.domain.policy import AccessPolicyEngine
from src.rules.loader import load_rules
from src.rules.models import Rules

OWNER = "user-owner"
OTHER = "user-other"


@pytest.fixture
def rules() -> Rules:
    """Load REAL rules from project root (tests run from project root)."""
    rules_path = Path("rules.yaml").resolve()
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")
    return load_rules(rules_path)


@pytest.fixture
def clock() -> FrozenClock:
    # Near real time: signed-URL tokens are expiry-checked against the wall clock
    return FrozenClock(datetime.now(UTC).replace(microsecond=0))


@pytest.fixture
def repo() -> InMemoryAssetRepo:
    return InMemoryAssetRepo()


@pytest.fixture
def storage(tmp_path: Path, clock: FrozenClock) -> LocalFileStorage:
    return LocalFileStorage(
        tmp_path / "blobs",
        base_url="http://testserver",
        secret_key="test-secret",
        clock=clock,
    )


@pytest.fixture
def guard() -> BackendGuard:
    return BackendGuard()


@pytest.fixture
def policy(rules: Rules) -> AccessPolicyEngine:
    return AccessPolicyEngine(rules.access)


@pytest.fixture
def store(
    repo: InMemoryAssetRepo, clock: FrozenClock, storage: LocalFileStorage, guard: BackendGuard
) -> AssetStore:
    return AssetStore(repo, clock, storage=storage, guard=guard)


@pytest.fixture
def issuer(
    repo: InMemoryAssetRepo,
    storage: LocalFileStorage,
    policy: AccessPolicyEngine,
    clock: FrozenClock,
    rules: Rules,
    guard: BackendGuard,
) -> SignedUrlIssuer:
    return SignedUrlIssuer(
        repo, storage, policy, clock, SignedUrlConfig.from_rules(rules), guard=guard
    )


@pytest.fixture
def make_asset(store: AssetStore, storage: LocalFileStorage, rules: Rules):
    """Store a blob and record its row; returns the Asset."""
    counter = {"n": 0}

    def _make(
        *,
        owner_id: str = OWNER,
        type: AssetType = AssetType.DESIGN_FILE,
        visibility: Visibility = Visibility.PRIVATE,
        related_id: str | None = None,
        filename: str = "proof.png",
        data: bytes = b"\x89PNG fake image bytes",
        metadata: dict[str, Any] | None = None,
    ) -> Asset:
        counter["n"] += 1
        bucket = rules.buckets.public if visibility is Visibility.PUBLIC else rules.buckets.private
        key = f"orders/order-1/{counter['n']}-{filename}"
        storage.put(bucket, key, data, "image/png")
        meta = {"filename": filename, "size": len(data), "content_type": "image/png"}
        meta.update(metadata or {})
        return store.insert(
            owner_id=owner_id,
            type=type,
            location=f"{bucket}/{key}",
            metadata=meta,
            visibility=visibility,
            related_id=related_id,
        )

    return _make
