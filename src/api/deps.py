import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from src.adapters.clock import SystemClock
from src.adapters.local_storage import LocalFileStorage
from src.adapters.s3_storage import S3Storage
from src.adapters.sqlite.repos import SQLiteAssetRepo
from src.api.auth_utils import decode_access_token
from src.components.access_links import SignedUrlConfig, SignedUrlIssuer
from src.components.assets import AssetStore
from src.components.assets.ports import AssetRepoPort
from src.core.backend import BackendGuard
from src.core.ports.storage import StoragePort
from src.core.ports.time import TimePort
from src.domain.policy import AccessPolicyEngine
from src.rules.loader import load_rules
from src.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        data_dir = os.environ.get("ASSET_DATA_DIR", "./data")
        self.data_dir = Path(data_dir)
        self.db_path = f"{data_dir}/assets.db"
        self.storage_dir = Path(f"{data_dir}/blobs")
        self.migrations_dir = self.base_dir / "migrations"
        self.rules_path = Path(os.environ.get("ASSET_RULES_PATH", str(self.base_dir / "rules.yaml")))
        self.storage_backend = os.environ.get("ASSET_STORAGE_BACKEND", "local")
        self.public_base_url = os.environ.get("ASSET_PUBLIC_BASE_URL", "http://localhost:8000")
        self.url_signing_key = os.environ.get("ASSET_URL_SIGNING_KEY", "dev-url-signing-unsafe")
        self.s3_endpoint_url = os.environ.get("ASSET_S3_ENDPOINT_URL") or None
        self.s3_region = os.environ.get("ASSET_S3_REGION", "us-east-1")
        self.s3_access_key = os.environ.get("ASSET_S3_ACCESS_KEY") or None
        self.s3_secret_key = os.environ.get("ASSET_S3_SECRET_KEY") or None


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Adapters ---
_clock_instance: SystemClock | None = None


def get_clock() -> TimePort:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


@lru_cache
def get_storage_backend() -> StoragePort:
    """Storage backend singleton, selected by ASSET_STORAGE_BACKEND."""
    settings = get_settings()
    if settings.storage_backend == "s3":
        return S3Storage(
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            public_base_url=os.environ.get("ASSET_PUBLIC_BASE_URL"),
            timeout_seconds=get_rules(settings).signed_urls.backend_timeout_seconds,
        )
    if settings.storage_backend != "local":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    return LocalFileStorage(
        settings.storage_dir,
        base_url=settings.public_base_url,
        secret_key=settings.url_signing_key,
        clock=get_clock(),
    )


@lru_cache
def get_backend_guard() -> BackendGuard:
    rules = get_rules(get_settings())
    return BackendGuard(rules.signed_urls.backend_timeout_seconds)


# --- Repos ---
def get_asset_repo(settings: Settings = Depends(get_settings)) -> AssetRepoPort:
    timeout = get_rules(settings).signed_urls.backend_timeout_seconds
    return SQLiteAssetRepo(settings.db_path, timeout_seconds=timeout)


# --- Services ---
def get_policy(rules: Rules = Depends(get_rules)) -> AccessPolicyEngine:
    return AccessPolicyEngine(rules.access)


def get_asset_store(
    repo: AssetRepoPort = Depends(get_asset_repo),
    clock: TimePort = Depends(get_clock),
    storage: StoragePort = Depends(get_storage_backend),
    guard: BackendGuard = Depends(get_backend_guard),
) -> AssetStore:
    return AssetStore(repo, clock, storage=storage, guard=guard)


def get_url_issuer(
    repo: AssetRepoPort = Depends(get_asset_repo),
    storage: StoragePort = Depends(get_storage_backend),
    policy: AccessPolicyEngine = Depends(get_policy),
    clock: TimePort = Depends(get_clock),
    rules: Rules = Depends(get_rules),
    guard: BackendGuard = Depends(get_backend_guard),
) -> SignedUrlIssuer:
    return SignedUrlIssuer(
        repo, storage, policy, clock, SignedUrlConfig.from_rules(rules), guard=guard
    )


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


@dataclass(frozen=True)
class Requester:
    """Identity taken from the access token: subject id and role."""

    id: str
    role: str | None = None


async def get_current_requester(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Requester:
    # Cookie wins over the Authorization header
    cookie_token = request.cookies.get("access_token")
    if cookie_token:
        token = cookie_token.split(" ", 1)[1] if cookie_token.startswith("Bearer ") else cookie_token

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    role = payload.get("role")
    return Requester(id=subject, role=role if isinstance(role, str) else None)
