# sitesnap/automation.py
"""
Playwright automation for one viewport capture.
- Launches one headless Chromium per job, shared by the desktop and mobile captures.
- Every capture gets its own browser context with the profile's device metadata.
- Navigation counts as settled once no more than N requests stay in flight
  for the idle window; the whole thing is bounded by the navigation timeout.
"""

import asyncio
import traceback
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import Settings, settings as default_settings
from .encoder import Renderer, SizeConstrainedEncoder
from .errors import NavigationFailed, NavigationTimeout, ResourceExhaustion
from .logger import JobLogger
from .models import Artifact, ImageFormat
from .profiles import ViewportProfile

BROWSER_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


@asynccontextmanager
async def launch_browser(settings: Settings = default_settings):
    """Start Chromium and close it again no matter how the block exits."""
    try:
        playwright = await async_playwright().start()
    except Exception as e:
        raise ResourceExhaustion(f"Could not start Playwright: {e}") from e
    try:
        try:
            browser = await playwright.chromium.launch(headless=settings.headless, args=BROWSER_ARGS)
        except PlaywrightError as e:
            raise ResourceExhaustion(f"Could not launch the browser: {e}") from e
        try:
            yield browser
        finally:
            await browser.close()
    finally:
        await playwright.stop()


class NetworkQuietTracker:
    """Counts in-flight requests of a page from its request events."""

    EVENTS = ("request", "requestfinished", "requestfailed")

    def __init__(self, page, max_inflight: int = 2):
        self.page = page
        self.max_inflight = max_inflight
        self._inflight = set()
        self._changed = asyncio.Event()
        self._handlers = {
            "request": self._started,
            "requestfinished": self._finished,
            "requestfailed": self._finished,
        }
        for event, handler in self._handlers.items():
            page.on(event, handler)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def _started(self, request):
        self._inflight.add(request)
        self._changed.set()

    def _finished(self, request):
        self._inflight.discard(request)
        self._changed.set()

    async def wait_quiet(self, window: float):
        """Return once at most max_inflight requests were pending for `window` seconds."""
        loop = asyncio.get_running_loop()
        while True:
            while self.inflight > self.max_inflight:
                self._changed.clear()
                await self._changed.wait()

            quiet_until = loop.time() + window
            while self.inflight <= self.max_inflight:
                remaining = quiet_until - loop.time()
                if remaining <= 0:
                    return
                self._changed.clear()
                try:
                    await asyncio.wait_for(self._changed.wait(), remaining)
                except asyncio.TimeoutError:
                    return

    def detach(self):
        for event, handler in self._handlers.items():
            self.page.remove_listener(event, handler)


async def navigate(page, url: str, settings: Settings = default_settings):
    """Load `url` and wait for the network to go quiet, all within the navigation timeout."""
    timeout_s = settings.navigation_timeout_ms / 1000
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    tracker = NetworkQuietTracker(page, settings.network_idle_connections)
    try:
        try:
            await page.goto(url, wait_until="load", timeout=settings.navigation_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"{url} did not load within {timeout_s:g}s") from e
        except PlaywrightError as e:
            raise NavigationFailed(f"Could not open {url}: {e.message}") from e

        try:
            await asyncio.wait_for(
                tracker.wait_quiet(settings.network_idle_ms / 1000),
                max(deadline - loop.time(), 0),
            )
        except asyncio.TimeoutError as e:
            raise NavigationTimeout(
                f"{url} did not settle within {timeout_s:g}s ({tracker.inflight} requests still pending)"
            ) from e
    finally:
        tracker.detach()


def page_renderer(page, settings: Settings = default_settings) -> Renderer:
    async def render(image_format: ImageFormat, quality: Optional[int] = None) -> bytes:
        options = {"full_page": True, "type": image_format.value, "timeout": settings.navigation_timeout_ms}
        if quality is not None:
            options["quality"] = quality
        return await page.screenshot(**options)

    return render


async def capture_viewport(
    browser,
    url: str,
    profile: ViewportProfile,
    base_path: Path,
    encoder: SizeConstrainedEncoder,
    logger: Optional[JobLogger] = None,
    settings: Settings = default_settings,
) -> Artifact:
    """Capture `url` with one device profile and return the size-bounded artifact."""
    context = await browser.new_context(**profile.context_options())
    try:
        page = await context.new_page()
        if logger:
            logger.log("goto", True, f"[{profile.name}] navigating to {url}")
        try:
            await navigate(page, url, settings)
        except (NavigationTimeout, NavigationFailed) as e:
            if logger:
                logger.log("goto", False, f"[{profile.name}] {e}", extra={"traceback": traceback.format_exc()})
            raise

        encoded = await encoder.encode(page_renderer(page, settings), base_path, logger)
        artifact = Artifact(
            **encoded.model_dump(),
            viewport=profile.name,
            width=profile.pixel_width,
            height=profile.pixel_height,
        )
        if logger:
            logger.log(
                "artifact_saved", True, f"[{profile.name}] saved {artifact.filename}",
                extra={"size": artifact.size, "format": artifact.format.value, "quality": artifact.quality},
            )
        return artifact
    finally:
        await context.close()
