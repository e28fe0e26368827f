from __future__ import annotations

import io
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from main import create_app
from services.openai.mistake_analyzer import MistakeAnalyzer
from utils.app_config import AppConfig
from utils.image_payloads import to_data_url

from tests.factories import SMALL_DATA_URL, make_record


class CannedResponses:
    def __init__(self, payload: dict) -> None:
        self.payload = payload

    async def create(self, **kwargs: Any) -> Any:
        return SimpleNamespace(
            output_text=json.dumps(self.payload, ensure_ascii=False),
            output=[],
            usage=SimpleNamespace(input_tokens=1000, output_tokens=500, total_tokens=1500),
        )


def canned_analyzer(payload: dict) -> MistakeAnalyzer:
    return MistakeAnalyzer(SimpleNamespace(responses=CannedResponses(payload)), model="gpt-4.1-mini")


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    app = create_app(AppConfig(database_dir=str(tmp_path), openai_api_key=None))
    with TestClient(app) as test_client:
        yield test_client


def create(client: TestClient, **overrides: Any) -> dict:
    body = {"imageDataUrl": SMALL_DATA_URL, "userCorrectAnswer": "5/6", "compress": False}
    body.update(overrides)
    response = client.post("/api/mistakes", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    body = client.get("/health").json()

    assert body["ok"] is True
    assert body["db_initialized"] is True
    assert body["cloud_enabled"] is False
    assert body["openai_available"] is False


def test_create_and_list(client: TestClient) -> None:
    created = create(client, userNotes="p.12 question 3", subject="理科")

    listing = client.get("/api/mistakes").json()

    assert listing["total"] == 1
    [item] = listing["items"]
    assert item["id"] == created["id"]
    assert item["questionText"] == "p.12 question 3"
    assert item["subject"] == "理科"
    assert item["mastery"] == "未習得"


def test_create_compresses_image(client: TestClient) -> None:
    buf = io.BytesIO()
    Image.new("RGB", (2000, 1000), (200, 10, 10)).save(buf, format="PNG")

    created = create(client, imageDataUrl=to_data_url(buf.getvalue(), "image/png"), compress=True)

    assert created["imageUrl"].startswith("data:image/jpeg;base64,")


def test_create_requires_correct_answer(client: TestClient) -> None:
    response = client.post("/api/mistakes", json={"imageDataUrl": SMALL_DATA_URL, "userCorrectAnswer": " "})

    assert response.status_code == 400


def test_list_filters(client: TestClient) -> None:
    create(client, userNotes="fractions", subject="算数")
    create(client, userNotes="plants", subject="理科")

    body = client.get("/api/mistakes", params={"q": "PLANT"}).json()

    assert [i["questionText"] for i in body["items"]] == ["plants"]
    assert body["total"] == 2
    assert len(client.get("/api/mistakes", params={"subject": "算数"}).json()["items"]) == 1


def test_update_mastery_and_stats(client: TestClient) -> None:
    created = create(client)

    response = client.patch(f"/api/mistakes/{created['id']}/mastery", json={"mastery": "完了"})

    assert response.status_code == 200
    assert response.json()["mastery"] == "完了"
    assert response.json()["createdAt"] == created["createdAt"]
    stats = client.get("/api/mistakes/stats").json()
    assert stats["total"] == 1
    assert stats["masteryRate"] == 100.0


def test_replace_mistake(client: TestClient) -> None:
    created = create(client)

    response = client.put(f"/api/mistakes/{created['id']}", json={**created, "reflection": "check units"})

    assert response.status_code == 200
    [item] = client.get("/api/mistakes").json()["items"]
    assert item["reflection"] == "check units"


def test_replace_requires_created_at(client: TestClient) -> None:
    response = client.put("/api/mistakes/x", json={"questionText": "q"})

    assert response.status_code == 400


def test_unknown_record_is_404(client: TestClient) -> None:
    assert client.patch("/api/mistakes/missing/mastery", json={"mastery": "完了"}).status_code == 404
    assert client.delete("/api/mistakes/missing").status_code == 404


def test_delete(client: TestClient) -> None:
    created = create(client)

    body = client.delete(f"/api/mistakes/{created['id']}").json()

    assert body["deleted"] is True
    assert body["imageCleanupError"] is None
    assert client.get("/api/mistakes").json()["items"] == []


def test_export_import_and_clear(client: TestClient) -> None:
    create(client, userNotes="first")
    exported = client.get("/api/mistakes/export")

    assert exported.status_code == 200
    assert "smart-error-notebook-backup-" in exported.headers["content-disposition"]
    backup = exported.json()
    assert len(backup) == 1

    assert client.delete("/api/mistakes").json() == {"status": "success", "deleted": 1}

    extra = make_record("imported").to_dict()
    invalid = {"id": "", "createdAt": 1, "questionText": ""}
    response = client.post("/api/mistakes/import", content=json.dumps(backup + [extra, invalid]))

    assert response.json() == {"status": "success", "processed": 2, "skipped": 1}
    assert client.get("/api/mistakes").json()["total"] == 2


def test_import_rejects_non_array(client: TestClient) -> None:
    response = client.post("/api/mistakes/import", content=b'{"id": "a"}')

    assert response.status_code == 400


def test_signed_in_user_without_cloud_gets_503(client: TestClient) -> None:
    response = client.get("/api/mistakes", headers={"X-User-Id": "uid", "Authorization": "Bearer tok"})

    assert response.status_code == 503


def test_analyze_without_api_key_is_503(client: TestClient) -> None:
    created = create(client)

    assert client.post(f"/api/mistakes/{created['id']}/analyze", json={}).status_code == 503


def test_analyze_persists_enrichment(client: TestClient) -> None:
    client.app.state.analyzer = canned_analyzer(
        {
            "questionText": "1/2 + 1/3 = ?",
            "solution": "5/6",
            "analysis": "通分",
            "tags": ["分数"],
            "suggestedSubject": "算数",
            "svgDiagram": "",
        }
    )
    created = create(client)

    response = client.post(f"/api/mistakes/{created['id']}/analyze", json={"language": "ja"})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["item"]["aiSolution"] == "5/6"
    assert body["cost"]["totalCost"] == pytest.approx(0.0012)
    [item] = client.get("/api/mistakes").json()["items"]
    assert item["questionText"] == "1/2 + 1/3 = ?"
    assert item["tags"] == ["分数"]
    assert item["aiTokenUsage"]["totalTokens"] == 1500


def test_analyze_rejects_unknown_language(client: TestClient) -> None:
    client.app.state.analyzer = canned_analyzer({})
    created = create(client)

    response = client.post(f"/api/mistakes/{created['id']}/analyze", json={"language": "fr"})

    assert response.status_code == 400


def test_similar_question(client: TestClient) -> None:
    client.app.state.analyzer = canned_analyzer({"question": "1/3 + 1/4 = ?", "answer": "7/12", "svgDiagram": ""})
    created = create(client, userNotes="1/2 + 1/3 = ?")

    body = client.post(f"/api/mistakes/{created['id']}/similar", json={}).json()

    assert body["question"] == "1/3 + 1/4 = ?"
    assert body["answer"] == "7/12"
