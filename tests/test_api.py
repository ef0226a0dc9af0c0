# tests/test_api.py
import json

import pytest
from fastapi.testclient import TestClient

from sitesnap.controller import CaptureController
from sitesnap.errors import AlreadySubscribed
from sitesnap.jobs import JobRegistry
from sitesnap.main import create_app

from fakes import FakeBrowser, ScriptedController, fake_launcher


def read_events(response):
    return [json.loads(line[len("data: "):]) for line in response.iter_lines() if line.startswith("data: ")]


@pytest.fixture
def client(settings):
    registry = JobRegistry(ScriptedController(fail_urls={"https://down.example"}), settings)
    with TestClient(create_app(registry, settings)) as client:
        yield client


@pytest.mark.parametrize("body", [{}, {"url": ""}, {"url": "not a url"}, {"url": "example.com"}])
def test_invalid_submissions_are_rejected(client, body):
    r = client.post("/api/screenshot", json=body)
    assert r.status_code == 400
    assert r.json()["detail"]
    assert client.get("/api/jobs").json() == {"jobs": []}


def test_progress_stream(client):
    r = client.post("/api/screenshot", json={"url": "https://example.com"})
    assert r.status_code == 200
    job_id = r.json()["job_id"]
    assert r.json()["message"]

    with client.stream("GET", f"/api/progress/{job_id}") as stream:
        assert stream.status_code == 200
        assert stream.headers["content-type"].startswith("text/event-stream")
        assert stream.headers["cache-control"] == "no-cache"
        events = read_events(stream)

    assert [(e["status"], e["progress"]) for e in events] == [
        ("starting", 10), ("capturing-desktop", 30), ("capturing-mobile", 60), ("completed", 100),
    ]
    assert all("result" not in e for e in events)
    # retired once the terminal event went out
    assert client.get(f"/api/jobs/{job_id}").status_code == 404
    assert client.get(f"/api/progress/{job_id}").status_code == 404


def test_failed_job_stream_ends_with_error(client):
    job_id = client.post("/api/screenshot", json={"url": "https://down.example"}).json()["job_id"]
    with client.stream("GET", f"/api/progress/{job_id}") as stream:
        events = read_events(stream)

    assert events[-1]["status"] == "error"
    assert events[-1]["progress"] == 0
    assert sum(e["status"] in ("completed", "error") for e in events) == 1


def test_unknown_job(client):
    assert client.get("/api/progress/does-not-exist").status_code == 404
    assert client.get("/api/jobs/does-not-exist").status_code == 404


def test_second_subscriber_conflicts(client, monkeypatch):
    job_id = client.post("/api/screenshot", json={"url": "https://example.com"}).json()["job_id"]
    registry = client.app.state.registry

    def already(job_id):
        raise AlreadySubscribed("A subscriber is already attached to this job")

    monkeypatch.setattr(registry, "subscribe", already)
    assert client.get(f"/api/progress/{job_id}").status_code == 409


def test_live_jobs_are_listed(client):
    job_id = client.post("/api/screenshot", json={"url": "https://example.com"}).json()["job_id"]

    listed = client.get("/api/jobs").json()["jobs"]
    assert [j["job_id"] for j in listed] == [job_id]
    snapshot = client.get(f"/api/jobs/{job_id}").json()
    assert snapshot["url"] == "https://example.com"
    assert snapshot["status"] == "pending"
    assert snapshot["subscribed"] is False


def test_end_to_end_with_served_artifacts(settings):
    browser = FakeBrowser()
    registry = JobRegistry(CaptureController(settings, launcher=fake_launcher(browser)), settings)
    with TestClient(create_app(registry, settings)) as client:
        job_id = client.post("/api/screenshot", json={"url": "https://example.com"}).json()["job_id"]
        with client.stream("GET", f"/api/progress/{job_id}") as stream:
            events = read_events(stream)

        assert [e["progress"] for e in events] == [10, 30, 60, 100]
        result = events[-1]["result"]
        assert result["url"] == "https://example.com"
        assert result["desktop"]["resolution"] == "3840 x 2160"
        assert result["mobile"]["resolution"] == "1290 x 2796"
        for viewport in ("desktop", "mobile"):
            info = result[viewport]
            assert info["format"] == "png"
            assert info["size"] <= 5_242_880
            served = client.get(info["url"])
            assert served.status_code == 200
            assert len(served.content) == info["size"]
    assert browser.closed
