"""
Access link API tests: single, bulk, per-entity and download URLs.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from src.core.entities import AssetType, Visibility

OWNER = "user-owner"
OTHER = "user-other"


class TestGenerate:
    def test_signed_for_private(self, client: TestClient, auth, make_asset) -> None:
        asset = make_asset()

        response = client.post(
            "/api/assets/access/generate",
            json={"asset_id": str(asset.id), "expires_in": 5},
            headers=auth(OWNER),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["url"].startswith("http://testserver/files/signed/")
        assert body["expires_in"] == 60
        assert body["expires_at"] is not None

    def test_permanent_for_public(self, client: TestClient, auth, make_asset) -> None:
        asset = make_asset(visibility=Visibility.PUBLIC)

        body = client.post(
            "/api/assets/access/generate",
            json={"asset_id": str(asset.id)},
            headers=auth(OTHER),
        ).json()

        assert body["url"].startswith("http://testserver/files/public/uploads/")
        assert body["expires_at"] is None

    def test_denied(self, client: TestClient, auth, make_asset) -> None:
        asset = make_asset(type=AssetType.ORDER_ATTACHMENT)
        response = client.post(
            "/api/assets/access/generate",
            json={"asset_id": str(asset.id)},
            headers=auth(OTHER, "designer"),
        )
        assert response.status_code == 403

    def test_unknown(self, client: TestClient, auth) -> None:
        response = client.post(
            "/api/assets/access/generate", json={"asset_id": str(uuid4())}, headers=auth(OWNER)
        )
        assert response.status_code == 404

    def test_malformed_id(self, client: TestClient, auth) -> None:
        response = client.post(
            "/api/assets/access/generate", json={"asset_id": "nope"}, headers=auth(OWNER)
        )
        assert response.status_code == 422
        assert response.json()["field"] == "asset_id"

    def test_unauthenticated(self, client: TestClient, make_asset) -> None:
        asset = make_asset(visibility=Visibility.PUBLIC)
        response = client.post("/api/assets/access/generate", json={"asset_id": str(asset.id)})
        assert response.status_code == 401


class TestBulk:
    def test_partial_failure_is_200(self, client: TestClient, auth, make_asset) -> None:
        ok = make_asset()
        missing = uuid4()

        response = client.post(
            "/api/assets/access/bulk-generate",
            json={"asset_ids": [str(ok.id), str(missing)]},
            headers=auth(OWNER),
        )

        assert response.status_code == 200
        body = response.json()
        assert [r["asset_id"] for r in body["results"]] == [str(ok.id), str(missing)]
        assert body["results"][0]["success"] is True
        assert body["results"][1]["error_code"] == "not_found"
        assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}

    def test_over_cap_is_422(self, client: TestClient, auth) -> None:
        ids = [str(uuid4()) for _ in range(51)]
        response = client.post(
            "/api/assets/access/bulk-generate", json={"asset_ids": ids}, headers=auth(OWNER)
        )
        assert response.status_code == 422


class TestEntityAndDownload:
    def test_entity_generate(self, client: TestClient, auth, make_asset) -> None:
        make_asset(related_id="order-5")
        make_asset(related_id="order-5", type=AssetType.LOGO)

        response = client.post(
            "/api/assets/access/entity-generate",
            json={"related_id": "order-5", "type": "logo"},
            headers=auth(OWNER),
        )

        assert response.status_code == 200
        assert response.json()["summary"]["total"] == 1

    def test_entity_generate_hides_unreadable(self, client: TestClient, auth, make_asset) -> None:
        hidden = make_asset(owner_id=OTHER, related_id="order-99")

        response = client.post(
            "/api/assets/access/entity-generate",
            json={"related_id": "order-99"},
            headers=auth("user-stranger"),
        )

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert str(hidden.id) not in response.text

    def test_download_link(self, client: TestClient, auth, make_asset) -> None:
        asset = make_asset()

        response = client.post(
            "/api/assets/access/download",
            json={"asset_id": str(asset.id), "filename": "Invoice 12.png"},
            headers=auth(OWNER),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["download_filename"] == "Invoice 12.png"
        assert body["expires_in"] == 3600

    def test_download_unsafe_filename(self, client: TestClient, auth, make_asset) -> None:
        asset = make_asset()
        response = client.post(
            "/api/assets/access/download",
            json={"asset_id": str(asset.id), "filename": "../../x"},
            headers=auth(OWNER),
        )
        assert response.status_code == 422
