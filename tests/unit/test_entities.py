from uuid import UUID

import pytest
from pydantic import ValidationError

from src.core.entities import Asset, AssetMetadata, AssetType, Visibility


def test_unknown_metadata_keys_fold_into_extra():
    meta = AssetMetadata(filename="a.png", po_number="PO-1", rush=True)
    assert meta.filename == "a.png"
    assert meta.extra == {"po_number": "PO-1", "rush": True}


def test_explicit_extra_combined_with_unknown_keys():
    meta = AssetMetadata.model_validate({"extra": {"a": 1}, "b": 2})
    assert meta.extra == {"a": 1, "b": 2}


def test_merged_is_shallow_and_keeps_unset_fields():
    base = AssetMetadata(filename="a.png", size=10, caption="old", extra={"x": 1})

    merged = base.merged({"caption": "new", "y": 2})

    assert merged.filename == "a.png"
    assert merged.size == 10
    assert merged.caption == "new"
    assert merged.extra == {"x": 1, "y": 2}
    # original untouched
    assert base.caption == "old"


def test_merge_can_clear_a_field_explicitly():
    base = AssetMetadata(caption="old")
    assert base.merged({"caption": None}).caption is None


def test_asset_location_parts():
    asset = Asset(owner_id="u1", type=AssetType.LOGO, location="uploads/organizations/o1/1-a.png")
    assert asset.bucket == "uploads"
    assert asset.key == "organizations/o1/1-a.png"
    assert isinstance(asset.id, UUID)
    assert asset.visibility is Visibility.PRIVATE
    assert asset.is_deleted is False


def test_asset_requires_owner():
    with pytest.raises(ValidationError):
        Asset(owner_id="", type=AssetType.LOGO, location="uploads/x.png")


def test_asset_type_closed_set():
    assert {t.value for t in AssetType} == {
        "customer_photo",
        "catalog_image",
        "production_image",
        "design_file",
        "order_attachment",
        "profile_image",
        "logo",
        "thumbnail",
        "variant",
    }
    with pytest.raises(ValueError):
        AssetType("spreadsheet")
