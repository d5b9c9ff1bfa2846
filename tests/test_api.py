"""API endpoint tests using FastAPI TestClient."""

import json

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
from pipeline.io_types import RasterImage


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class TestHealthEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": True}

    def test_config_hides_secrets(self, client, monkeypatch):
        monkeypatch.setenv("ALIYUN_BAILIAN_API_KEY", "sk-secret")
        data = client.get("/api/config").json()["data"]
        assert data["has_api_key"] is True
        assert "sk-secret" not in json.dumps(data)

    def test_connection_without_key(self, client, monkeypatch):
        monkeypatch.delenv("ALIYUN_BAILIAN_API_KEY", raising=False)
        body = client.get("/api/test-connection").json()
        assert body["success"] is False


class TestTryOnEndpoints:

    def test_local_tryon_returns_png(self, client, person_png, garment_png):
        response = client.post(
            "/api/tryon/local",
            files={"personImage": ("p.png", person_png, "image/png"), "clothingImage": ("g.png", garment_png, "image/png")},
            data={"category": "top"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        img = RasterImage.decode(response.content)
        assert (img.width, img.height) == (400, 600)

    def test_local_tryon_rejects_bad_image(self, client, garment_png):
        response = client.post(
            "/api/tryon/local",
            files={"personImage": ("p.png", b"garbage", "image/png"), "clothingImage": ("g.png", garment_png, "image/png")},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_tryon_completes_locally(self, client, person_png, garment_png):
        response = client.post(
            "/api/tryon",
            files={"personImage": ("p.png", person_png, "image/png"), "clothingImage": ("g.png", garment_png, "image/png")},
            data={"category": "dress"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["provider"] == "local"
        assert body["result_url"].startswith("/api/tryon/results/")

        result = client.get(body["result_url"])
        assert result.status_code == 200
        assert result.headers["content-type"] == "image/png"

    def test_tryon_falls_back_when_remote_unconfigured(self, client, monkeypatch, person_png, garment_png):
        monkeypatch.setenv("TRYON_PROVIDER", "bailian")
        monkeypatch.delenv("ALIYUN_BAILIAN_API_KEY", raising=False)
        response = client.post(
            "/api/tryon",
            files={"personImage": ("p.png", person_png, "image/png"), "clothingImage": ("g.png", garment_png, "image/png")},
        )
        body = response.json()
        assert body["provider"] == "local"
        assert body["fallback"] is True

    def test_separate_mode(self, client, person_png, garment_png, tall_garment_png):
        response = client.post(
            "/api/tryon",
            files={
                "personImage": ("p.png", person_png, "image/png"),
                "topClothingImage": ("t.png", garment_png, "image/png"),
                "bottomClothingImage": ("b.png", tall_garment_png, "image/png"),
            },
            data={"mode": "separate"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_top_and_bottom_without_mode(self, client, person_png, garment_png, tall_garment_png):
        response = client.post(
            "/api/tryon",
            files={
                "personImage": ("p.png", person_png, "image/png"),
                "topClothingImage": ("t.png", garment_png, "image/png"),
                "bottomClothingImage": ("b.png", tall_garment_png, "image/png"),
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["provider"] == "local"

    def test_single_mode_ignores_top_and_bottom(self, client, person_png, garment_png):
        response = client.post(
            "/api/tryon",
            files={
                "personImage": ("p.png", person_png, "image/png"),
                "topClothingImage": ("t.png", garment_png, "image/png"),
            },
            data={"mode": "single"},
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing clothing image"}

    def test_missing_person_is_422_with_error_body(self, client, garment_png):
        response = client.post("/api/tryon", files={"clothingImage": ("g.png", garment_png, "image/png")})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "personImage" in body["error"]

    def test_tryon_requires_garment(self, client, person_png):
        response = client.post("/api/tryon", files={"personImage": ("p.png", person_png, "image/png")})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing clothing image"}

    def test_unknown_result(self, client):
        assert client.get("/api/tryon/results/nope.png").status_code == 404

    def test_poll_without_key(self, client, monkeypatch):
        monkeypatch.delenv("ALIYUN_BAILIAN_API_KEY", raising=False)
        response = client.get("/api/tryon/some-task")
        assert response.status_code == 502
        assert response.json()["success"] is False


class TestClothingEndpoints:

    def _create(self, client, **fields):
        data = {"name": "Linen shirt", "category": "top", "color": "white", "seasons": json.dumps(["summer"])}
        data.update(fields)
        response = client.post("/api/clothing", data=data, files={"image": ("s.jpg", b"\xff\xd8jpeg", "image/jpeg")})
        assert response.status_code == 201
        return response.json()["data"]

    def test_crud(self, client):
        item = self._create(client)
        assert item["id"].startswith("clothing_")
        assert item["seasons"] == ["summer"]
        assert item["has_image"] is True

        got = client.get(f"/api/clothing/{item['id']}").json()["data"]
        assert got["name"] == "Linen shirt"

        image = client.get(f"/api/clothing/{item['id']}/image")
        assert image.content == b"\xff\xd8jpeg"

        updated = client.put(f"/api/clothing/{item['id']}", data={"color": "blue"}).json()["data"]
        assert updated["color"] == "blue"
        assert updated["name"] == "Linen shirt"

        worn = client.post(f"/api/clothing/{item['id']}/wear").json()["data"]
        assert worn["wear_count"] == 1

        assert client.delete(f"/api/clothing/{item['id']}").status_code == 200
        assert client.get(f"/api/clothing/{item['id']}").status_code == 404

    def test_filters(self, client):
        jeans = self._create(client, name="Jeans", category="bottom", color="blue", seasons=json.dumps(["winter"]))
        ids = [i["id"] for i in client.get("/api/clothing/category/bottom").json()["data"]]
        assert jeans["id"] in ids
        ids = [i["id"] for i in client.get("/api/clothing/season/winter").json()["data"]]
        assert jeans["id"] in ids
        ids = [i["id"] for i in client.get("/api/clothing/season/summer").json()["data"]]
        assert jeans["id"] not in ids

    def test_create_requires_fields(self, client):
        response = client.post("/api/clothing", data={"name": "No category"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_create_rejects_malformed_list(self, client):
        response = client.post("/api/clothing", data={"name": "x", "category": "top", "color": "red", "tags": "not json"})
        assert response.status_code == 400

    def test_missing_item(self, client):
        assert client.get("/api/clothing/clothing_0_missing").status_code == 404
        assert client.post("/api/clothing/clothing_0_missing/wear").status_code == 404
        assert client.delete("/api/clothing/clothing_0_missing").status_code == 404


class TestRecommendationEndpoints:

    def test_outfit_for_item(self, client):
        top = client.post("/api/clothing", data={"name": "Tee", "category": "top", "color": "white", "seasons": '["summer"]'}).json()["data"]
        client.post("/api/clothing", data={"name": "Chinos", "category": "bottom", "color": "blue", "seasons": '["summer"]'})
        recs = client.get(f"/api/recommendations/outfit/{top['id']}").json()["data"]
        assert recs
        assert any(i["name"] == "Chinos" for i in recs[0]["items"])

    def test_season_and_underutilized(self, client):
        assert client.get("/api/recommendations/season", params={"season": "summer"}).status_code == 200
        assert client.get("/api/recommendations/underutilized").status_code == 200

    def test_unknown_occasion(self, client):
        assert client.get("/api/recommendations/occasion/moon").status_code == 400
