# sitesnap/main.py
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles

from .config import Settings, settings as default_settings
from .controller import CaptureController
from .errors import AlreadySubscribed, JobNotFound, ValidationError
from .jobs import JobRegistry, Subscription
from .models import JobHandle, JobList, JobSnapshot, ScreenshotRequest

log = logging.getLogger("sitesnap")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "X-Accel-Buffering": "no",
}


async def event_stream(subscription: Subscription, heartbeat: float):
    """Relay a job's progress events as server-sent events until the terminal one."""
    async with subscription:
        while True:
            event = await subscription.next_event(timeout=heartbeat)
            if event is None:
                yield ": keep-alive\n\n"
                continue
            yield event.to_sse()
            if event.terminal:
                break


def create_app(registry: Optional[JobRegistry] = None, settings: Settings = default_settings) -> FastAPI:
    settings.artifacts_dir.mkdir(parents=True, exist_ok=True)
    if registry is None:
        registry = JobRegistry(CaptureController(settings), settings)

    app = FastAPI(title="SiteSnap")
    app.state.registry = registry

    # Serve captured screenshots
    app.mount(settings.artifacts_url, StaticFiles(directory=settings.artifacts_dir), name="screenshots")

    @app.post("/api/screenshot", response_model=JobHandle)
    async def create_job(req: ScreenshotRequest):
        try:
            job_id = registry.submit(req.url)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JobHandle(job_id=job_id, message="Capture started")

    @app.get("/api/progress/{job_id}")
    async def progress(job_id: str):
        try:
            subscription = registry.subscribe(job_id)
        except JobNotFound:
            raise HTTPException(status_code=404, detail="job not found")
        except AlreadySubscribed as e:
            raise HTTPException(status_code=409, detail=str(e))
        return StreamingResponse(
            event_stream(subscription, settings.heartbeat_s),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/api/jobs", response_model=JobList)
    async def list_jobs():
        """List live jobs."""
        return JobList(jobs=registry.jobs())

    @app.get("/api/jobs/{job_id}", response_model=JobSnapshot)
    async def get_job(job_id: str):
        try:
            return registry.get(job_id)
        except JobNotFound:
            raise HTTPException(status_code=404, detail="job not found")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop captures still in flight."""
        await registry.shutdown()

    return app


app = create_app()


def run():
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    log.info("SiteSnap server is running at http://localhost:%s", default_settings.port)
    log.info("Screenshots will be saved to %s", default_settings.artifacts_dir.resolve())
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)


if __name__ == "__main__":
    run()
