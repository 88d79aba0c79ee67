"""Smoke tests for API routes."""

import pytest
from fastapi.testclient import TestClient

from kana_tutor.main import create_app


@pytest.fixture
def client(core):
    app = create_app(core)
    with TestClient(app) as c:
        yield c


class TestHealthCheck:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestPractice:
    def test_record_practice(self, client):
        response = client.post(
            "/api/practice",
            json={"category": "hiragana", "key": "あ", "correct": True},
        )
        assert response.status_code == 200
        assert response.json()["accuracy"] == 100.0

        response = client.get("/api/progress/hiragana")
        assert response.status_code == 200
        assert [i["key"] for i in response.json()] == ["あ"]

    def test_unknown_category(self, client):
        response = client.post(
            "/api/practice",
            json={"category": "romaji", "key": "a", "correct": True},
        )
        assert response.status_code == 400
        assert client.get("/api/progress/romaji").status_code == 400

    def test_invalid_difficulty(self, client):
        response = client.post(
            "/api/practice",
            json={"category": "hiragana", "key": "あ", "correct": True, "difficulty": 9},
        )
        assert response.status_code == 422


class TestSessions:
    def test_end_without_start(self, client):
        assert client.post("/api/sessions/end").status_code == 409
        response = client.post("/api/sessions/answer", json={"key": "a", "correct": True})
        assert response.status_code == 409

    def test_session_flow(self, client):
        assert client.post("/api/sessions/start", json={"category": "katakana"}).status_code == 200
        client.post("/api/sessions/answer", json={"key": "ア", "correct": True})
        response = client.post("/api/sessions/end")
        assert response.status_code == 200
        assert response.json()["total_questions"] == 1

        daily = client.get("/api/progress/daily").json()
        assert len(daily) == 1
        assert daily[0]["xp_gained"] == 10


class TestAnalysis:
    def test_analysis_without_data(self, client):
        response = client.post("/api/analysis")
        assert response.status_code == 200
        assert response.json()["no_data"] is True
        assert client.get("/api/recommendations").json() == []

    def test_analysis_with_data(self, client):
        client.post("/api/behavior", json={"audio_interactions": 4})
        client.post("/api/performance", json={"accuracy": 90, "speed": 70})
        client.post("/api/practice", json={"category": "hiragana", "key": "あ", "correct": False})
        result = client.post("/api/analysis").json()
        assert result["no_data"] is False
        assert result["profile"]["style"] == "auditory"
        assert len(client.get("/api/recommendations").json()) == len(result["recommendations"])
        assert client.get("/api/profile").json()["style"] == "auditory"

        types = [e["type"] for e in client.get("/api/events").json()]
        assert "recommendations_updated" in types
        assert client.get("/api/events").json() == []

    def test_unknown_behavior_counter(self, client):
        assert client.post("/api/behavior", json={"telepathy": 1}).status_code == 400


class TestStorage:
    def test_storage_info(self, client):
        client.post("/api/practice", json={"category": "kanji", "key": "日", "correct": True})
        data = client.get("/api/storage").json()
        assert data["size"] > 0
        assert data["can_store"] is True
        assert data["formatted"]

    def test_export_import(self, client):
        client.post("/api/practice", json={"category": "kanji", "key": "日", "correct": True})
        document = client.get("/api/export").text
        response = client.post("/api/import", content=document)
        assert response.status_code == 200
        assert [i["key"] for i in client.get("/api/progress/kanji").json()] == ["日"]

    def test_import_invalid(self, client):
        client.post("/api/practice", json={"category": "kanji", "key": "日", "correct": True})
        response = client.post("/api/import", content="not json")
        assert response.status_code == 400
        assert len(client.get("/api/progress/kanji").json()) == 1

    def test_import_rejects_invalid_utf8(self, client):
        client.post("/api/practice", json={"category": "kanji", "key": "日", "correct": True})
        document = client.get("/api/export").text.replace("日", "月").encode("utf-8")
        corrupted = document.replace("月".encode("utf-8"), b"\xff\xfe")
        response = client.post("/api/import", content=corrupted)
        assert response.status_code == 400
        assert [i["key"] for i in client.get("/api/progress/kanji").json()] == ["日"]
