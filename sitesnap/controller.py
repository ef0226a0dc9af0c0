# sitesnap/controller.py
import traceback
from pathlib import Path
from typing import Callable, List, Optional

from .automation import capture_viewport, launch_browser
from .config import Settings, settings as default_settings
from .encoder import SizeConstrainedEncoder
from .errors import CaptureError, validate_url
from .logger import JobLogger
from .models import Artifact, ArtifactInfo, CaptureResult, EventStatus, ProgressEvent
from .profiles import DESKTOP, MOBILE
from .utils import remove_quietly

PROGRESS_STARTING = 10
PROGRESS_DESKTOP = 30
PROGRESS_MOBILE = 60
PROGRESS_DONE = 100


def timestamp_name(job) -> str:
    """Artifact base name: creation time in ms plus a job id prefix."""
    return f"{int(job.created_at.timestamp() * 1000)}_{job.job_id[:8]}"


class CaptureController:
    """Runs the desktop and then the mobile capture of one job."""

    def __init__(
        self,
        settings: Settings = default_settings,
        encoder: Optional[SizeConstrainedEncoder] = None,
        launcher=launch_browser,
        capture=capture_viewport,
        naming: Callable = timestamp_name,
    ):
        self.settings = settings
        self.encoder = encoder or SizeConstrainedEncoder.from_settings(settings)
        self._launcher = launcher
        self._capture = capture
        self._naming = naming

    def _base_path(self, job, viewport: str) -> Path:
        return Path(self.settings.artifacts_dir) / f"{self._naming(job)}_{viewport}"

    def _result(self, url: str, desktop: Artifact, mobile: Artifact) -> CaptureResult:
        prefix = self.settings.artifacts_url
        return CaptureResult(
            url=url,
            desktop=ArtifactInfo.from_artifact(desktop, prefix),
            mobile=ArtifactInfo.from_artifact(mobile, prefix),
        )

    async def run(self, job):
        logger = JobLogger(job.job_id, self.settings.logs_dir)
        logger.log("job_start", True, f"Capturing {job.url}")
        artifacts: List[Artifact] = []

        try:
            url = validate_url(job.url)
            job.emit(ProgressEvent(status=EventStatus.STARTING, progress=PROGRESS_STARTING,
                                   message="Launching browser..."))

            async with self._launcher(self.settings) as browser:
                logger.log("browser_launch", True, "Browser started")

                job.emit(ProgressEvent(status=EventStatus.CAPTURING_DESKTOP, progress=PROGRESS_DESKTOP,
                                       message="Capturing desktop view..."))
                artifacts.append(await self._capture(
                    browser, url, DESKTOP, self._base_path(job, DESKTOP.name),
                    self.encoder, logger, self.settings,
                ))

                job.emit(ProgressEvent(status=EventStatus.CAPTURING_MOBILE, progress=PROGRESS_MOBILE,
                                       message="Capturing mobile view..."))
                artifacts.append(await self._capture(
                    browser, url, MOBILE, self._base_path(job, MOBILE.name),
                    self.encoder, logger, self.settings,
                ))

            desktop, mobile = artifacts
            result = self._result(url, desktop, mobile)
        except Exception as e:
            if isinstance(e, CaptureError):
                logger.log("capture_failed", False, str(e), extra={"error": type(e).__name__})
                reason = str(e)
            else:
                logger.log("fatal_error", False, f"{e}", extra={"traceback": traceback.format_exc()})
                reason = f"Unexpected error: {e}"
            # a failed job leaves nothing behind
            for artifact in artifacts:
                remove_quietly(artifact.path)
            job.emit(ProgressEvent(status=EventStatus.ERROR, progress=0,
                                   message=f"Capture failed: {reason}"))
            return

        logger.log("job_completed", True, "Both viewports captured",
                   extra={"desktop": desktop.filename, "mobile": mobile.filename})
        job.emit(ProgressEvent(status=EventStatus.COMPLETED, progress=PROGRESS_DONE,
                               message="Done!", result=result))
