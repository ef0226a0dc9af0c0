# sitesnap/encoder.py
"""
Size-constrained screenshot encoding.

A capture is first rendered losslessly (PNG). Full-page captures at 2x/3x
device scale regularly blow past the byte budget, in which case the page is
re-rendered as JPEG walking down a short quality ladder (90 -> 50, step 10)
until the file fits. Quality never goes below the floor; if the floor is
still too large the smallest file is returned flagged as `over_budget`.
"""

from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from .config import Settings, settings as default_settings
from .errors import CaptureError, EncodingFailed
from .logger import JobLogger
from .models import EncodedImage, ImageFormat
from .utils import format_size, remove_quietly, write_artifact

# render(format, quality) -> image bytes. quality is None for PNG.
Renderer = Callable[[ImageFormat, Optional[int]], Awaitable[bytes]]


def artifact_path(base_path: Path, image_format: ImageFormat) -> Path:
    return base_path.with_name(f"{base_path.name}.{image_format.extension}")


class SizeConstrainedEncoder:
    def __init__(
        self,
        max_size: int = default_settings.max_artifact_size,
        start_quality: int = default_settings.lossy_start_quality,
        min_quality: int = default_settings.lossy_min_quality,
        step: int = default_settings.lossy_quality_step,
    ):
        if step <= 0 or min_quality > start_quality:
            raise ValueError("quality ladder must descend from start_quality to min_quality")
        self.max_size = max_size
        self.start_quality = start_quality
        self.min_quality = min_quality
        self.step = step

    @classmethod
    def from_settings(cls, settings: Settings) -> "SizeConstrainedEncoder":
        return cls(
            max_size=settings.max_artifact_size,
            start_quality=settings.lossy_start_quality,
            min_quality=settings.lossy_min_quality,
            step=settings.lossy_quality_step,
        )

    def quality_ladder(self) -> List[int]:
        return list(range(self.start_quality, self.min_quality - 1, -self.step))

    async def _render(self, render: Renderer, image_format: ImageFormat, quality: Optional[int], path: Path) -> int:
        try:
            data = await render(image_format, quality)
            return write_artifact(data, path)
        except CaptureError:
            raise
        except Exception as e:
            raise EncodingFailed(f"Could not write {image_format.value} screenshot: {e}") from e

    async def encode(self, render: Renderer, base_path: Path, logger: Optional[JobLogger] = None) -> EncodedImage:
        png_path = artifact_path(base_path, ImageFormat.PNG)
        jpg_path = artifact_path(base_path, ImageFormat.JPEG)

        try:
            png_size = await self._render(render, ImageFormat.PNG, None, png_path)
            if logger:
                logger.log("encode_png", True, f"{png_path.name} is {format_size(png_size)}", extra={"size": png_size})
            if png_size <= self.max_size:
                return EncodedImage(path=png_path, format=ImageFormat.PNG, size=png_size)

            jpg_size = 0
            quality = self.start_quality
            for quality in self.quality_ladder():
                jpg_size = await self._render(render, ImageFormat.JPEG, quality, jpg_path)
                if logger:
                    logger.log(
                        "encode_jpeg", True, f"quality={quality} size={format_size(jpg_size)}",
                        extra={"quality": quality, "size": jpg_size},
                    )
                if jpg_size <= self.max_size:
                    break

            # The PNG is only dropped once the JPEG that replaces it is on disk.
            if not jpg_path.exists() or jpg_path.stat().st_size != jpg_size:
                raise EncodingFailed(f"{jpg_path.name} was not written correctly")
            remove_quietly(png_path)
        except CaptureError:
            remove_quietly(png_path)
            remove_quietly(jpg_path)
            raise

        over_budget = jpg_size > self.max_size
        if over_budget and logger:
            logger.log(
                "encode_over_budget", False,
                f"{jpg_path.name} is {format_size(jpg_size)} at minimum quality {quality}; "
                f"budget is {format_size(self.max_size)}",
                extra={"quality": quality, "size": jpg_size, "max_size": self.max_size},
            )
        return EncodedImage(
            path=jpg_path,
            format=ImageFormat.JPEG,
            size=jpg_size,
            quality=quality,
            over_budget=over_budget,
        )
