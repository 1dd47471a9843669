from pydantic import BaseModel, Field, model_validator

from src.core.entities import AssetType


class BucketRules(BaseModel):
    public: str
    private: str

    @model_validator(mode="after")
    def _distinct(self) -> "BucketRules":
        if self.public == self.private:
            raise ValueError("public and private bucket names must differ")
        return self


class PathRules(BaseModel):
    entity_types: list[str]
    max_filename_length: int = 255


class UploadsRules(BaseModel):
    max_file_bytes: int = Field(gt=0)
    max_files: int = Field(gt=0)
    allowed_mime_prefixes: list[str] = Field(default_factory=list)
    allowed_mime_types: list[str] = Field(default_factory=list)


class AccessRules(BaseModel):
    admin_role: str = "admin"
    # role -> asset types readable when the asset is private
    capabilities: dict[str, list[AssetType]] = Field(default_factory=dict)

    def types_for(self, role: str | None) -> frozenset[AssetType]:
        if not role:
            return frozenset()
        return frozenset(self.capabilities.get(role, []))


class SignedUrlRules(BaseModel):
    min_ttl_seconds: int = Field(default=60, gt=0)
    max_ttl_seconds: int = Field(default=86400, gt=0)
    default_ttl_seconds: int = Field(default=3600, gt=0)
    max_bulk_ids: int = Field(default=50, gt=0)
    max_workers: int = Field(default=8, gt=0)
    backend_timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _ordered(self) -> "SignedUrlRules":
        if self.min_ttl_seconds > self.max_ttl_seconds:
            raise ValueError("min_ttl_seconds must not exceed max_ttl_seconds")
        return self


class Rules(BaseModel):
    buckets: BucketRules
    paths: PathRules
    uploads: UploadsRules
    access: AccessRules
    signed_urls: SignedUrlRules = Field(default_factory=SignedUrlRules)
