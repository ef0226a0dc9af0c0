# tests/test_controller.py
from contextlib import asynccontextmanager

import pytest
from playwright.async_api import Error as PlaywrightError

from sitesnap.controller import CaptureController, timestamp_name
from sitesnap.errors import ResourceExhaustion
from sitesnap.jobs import Job
from sitesnap.models import EventStatus, ImageFormat, JobStatus

from fakes import FakeBrowser, FakePage, fake_launcher, mobile_fails


class RecordingJob(Job):
    """Remembers every event together with whether the browser was closed at the time."""

    def __init__(self, url, browser=None):
        super().__init__("0123456789abcdef", url)
        self.browser = browser
        self.events = []

    def emit(self, event):
        super().emit(event)
        self.events.append((event, self.browser.closed if self.browser else None))


@pytest.mark.asyncio
async def test_successful_job_emits_full_sequence(settings):
    browser = FakeBrowser()
    job = RecordingJob("https://example.com", browser)
    await CaptureController(settings, launcher=fake_launcher(browser)).run(job)

    events = [e for e, _ in job.events]
    assert [(e.status, e.progress) for e in events] == [
        (EventStatus.STARTING, 10),
        (EventStatus.CAPTURING_DESKTOP, 30),
        (EventStatus.CAPTURING_MOBILE, 60),
        (EventStatus.COMPLETED, 100),
    ]
    # browser released before the terminal event
    assert job.events[-1][1] is True
    assert job.status == JobStatus.COMPLETED

    result = events[-1].result
    assert result.url == "https://example.com"
    assert result.desktop.resolution == "3840 x 2160"
    assert result.mobile.resolution == "1290 x 2796"
    for info in (result.desktop, result.mobile):
        assert info.size <= 5_242_880
        assert info.url == f"/screenshots/{info.filename}"
        assert (settings.artifacts_dir / info.filename).exists()

    base = timestamp_name(job)
    assert result.desktop.filename == f"{base}_desktop.png"
    assert result.mobile.filename == f"{base}_mobile.png"
    assert base.endswith("_01234567")


@pytest.mark.asyncio
async def test_captures_run_desktop_then_mobile_in_one_browser(settings):
    browser = FakeBrowser()
    await CaptureController(settings, launcher=fake_launcher(browser)).run(RecordingJob("https://example.com"))

    assert [c.options["is_mobile"] for c in browser.contexts] == [False, True]
    assert all(c.closed for c in browser.contexts)


@pytest.mark.asyncio
async def test_oversized_pages_are_reencoded(settings):
    big = lambda options: FakePage(png_size=6 * 1024 * 1024, jpeg_size=lambda q: 6 * 1024 * 1024 if q > 70 else 4 * 1024 * 1024)
    browser = FakeBrowser(big)
    job = RecordingJob("https://example.com", browser)
    await CaptureController(settings, launcher=fake_launcher(browser)).run(job)

    result = job.result
    assert result.desktop.format == ImageFormat.JPEG
    assert result.desktop.quality == 70
    assert result.desktop.filename.endswith("_desktop.jpg")
    assert sorted(p.suffix for p in settings.artifacts_dir.iterdir()) == [".jpg", ".jpg"]


@pytest.mark.asyncio
async def test_mobile_failure_fails_job_and_removes_desktop_artifact(settings):
    browser = FakeBrowser(mobile_fails(PlaywrightError("net::ERR_CERT_AUTHORITY_INVALID")))
    job = RecordingJob("https://example.com", browser)
    await CaptureController(settings, launcher=fake_launcher(browser)).run(job)

    statuses = [e.status for e, _ in job.events]
    assert statuses == [EventStatus.STARTING, EventStatus.CAPTURING_DESKTOP,
                        EventStatus.CAPTURING_MOBILE, EventStatus.ERROR]
    error, browser_closed = job.events[-1]
    assert browser_closed is True
    assert error.progress == 0
    assert error.message.startswith("Capture failed:")
    assert "ERR_CERT_AUTHORITY_INVALID" in error.message
    assert job.status == JobStatus.FAILED
    assert job.error == error.message
    assert list(settings.artifacts_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_browser_start_failure(settings):
    @asynccontextmanager
    async def launcher(settings):
        raise ResourceExhaustion("Could not launch the browser: out of memory")
        yield

    job = RecordingJob("https://example.com")
    await CaptureController(settings, launcher=launcher).run(job)

    assert [e.status for e, _ in job.events] == [EventStatus.STARTING, EventStatus.ERROR]
    assert "out of memory" in job.events[-1][0].message


@pytest.mark.asyncio
async def test_unexpected_errors_still_end_the_job(settings):
    async def capture(*args):
        raise KeyError("boom")

    browser = FakeBrowser()
    job = RecordingJob("https://example.com", browser)
    await CaptureController(settings, launcher=fake_launcher(browser), capture=capture).run(job)

    assert job.events[-1][0].status == EventStatus.ERROR
    assert "Unexpected error" in job.events[-1][0].message
    assert job.events[-1][1] is True


@pytest.mark.asyncio
async def test_invalid_url_fails_before_starting(settings):
    job = RecordingJob("ftp:/broken")
    await CaptureController(settings, launcher=fake_launcher(FakeBrowser())).run(job)

    assert [e.status for e, _ in job.events] == [EventStatus.ERROR]


@pytest.mark.asyncio
async def test_job_log_records_steps(settings):
    browser = FakeBrowser()
    job = RecordingJob("https://example.com", browser)
    await CaptureController(settings, launcher=fake_launcher(browser)).run(job)

    log_file = settings.logs_dir / f"{job.job_id}.log.jsonl"
    text = log_file.read_text(encoding="utf-8")
    assert '"step": "job_start"' in text
    assert '"step": "job_completed"' in text
