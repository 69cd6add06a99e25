import pytest

import app as app_module
import data_access
from highlight_keywords import MARK_OPEN


class RecordingTask:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def delay(self, *args):
        self.calls.append(args)
        if self.error:
            raise self.error


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(app_module.limiter, "enabled", False)
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def test_start_scan_enqueues_task(client, monkeypatch):
    task = RecordingTask()
    monkeypatch.setattr(app_module, "run_seo_scan", task)

    response = client.post("/api/seo-scan", json={"url": "example.com", "keywords": "running shoes, trail gear"})

    assert response.status_code == 202
    body = response.get_json()
    assert body["status"] == "ENQUEUED"
    assert task.calls == [(body["scan_id"], "https://example.com", ["running shoes", "trail gear"])]
    assert data_access.get_scan(body["scan_id"]).domain == "example.com"


def test_start_scan_requires_url(client):
    response = client.post("/api/seo-scan", json={"keywords": ["shoes"]})
    assert response.status_code == 400
    assert response.get_json()["status"] == "error"


def test_broker_failure_falls_back_to_thread(client, monkeypatch):
    started = []
    monkeypatch.setattr(app_module, "run_seo_scan", RecordingTask(error=ConnectionError("no broker")))
    monkeypatch.setattr(app_module, "start_background_scan", lambda *args: started.append(args))

    response = client.post("/api/seo-scan", json={"url": "https://example.com", "keywords": ["shoes"]})

    assert response.status_code == 202
    assert started == [(response.get_json()["scan_id"], "https://example.com", ["shoes"])]


def test_get_scan(client):
    scan = data_access.create_scan("https://example.com")

    response = client.get(f"/api/seo-scan/{scan.id}")

    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] == scan.id
    assert body["status"] == "ENQUEUED"
    assert body["progress"] == 0


def test_get_unknown_scan(client):
    response = client.get("/api/seo-scan/missing")
    assert response.status_code == 404
    assert response.get_json()["status"] == "not_found"


def test_highlight(client):
    paragraph = "Our running shoes are built for long road miles and daily training sessions. " * 4
    content = "\n\n".join([paragraph] * 3)

    response = client.post("/api/highlight", json={"content": content, "keywords": ["running shoes"],
                                                   "word_count": 400})

    body = response.get_json()
    assert response.status_code == 200
    assert body["content"].count(MARK_OPEN) == 2
    assert [highlight["paragraph_index"] for highlight in body["highlights"]] == [0, 1]
    assert body["highlights"][0] == {"keyword_index": 0, "char_offset": 4, "paragraph_index": 0}


def test_highlight_validation(client):
    assert client.post("/api/highlight", json={"content": 42}).status_code == 400
    response = client.post("/api/highlight", json={"content": "text", "word_count": "many"})
    assert response.status_code == 400


def test_health(client, monkeypatch):
    monkeypatch.setenv("SERPAPI_KEY", "serp-key")

    body = client.get("/health").get_json()

    assert body["status"] == "healthy"
    assert body["providers"]["serpapi"] is True
    assert body["providers"]["keyword_planner"] is False


def test_status_polling_is_not_rate_limited(monkeypatch):
    monkeypatch.setattr(app_module.limiter, "enabled", True)
    app_module.limiter.reset()
    scan = data_access.create_scan("https://example.com")

    with app_module.app.test_client() as client:
        statuses = [client.get(f"/api/seo-scan/{scan.id}").status_code for _ in range(60)]

    assert statuses == [200] * 60
