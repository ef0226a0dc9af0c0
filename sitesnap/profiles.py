# sitesnap/profiles.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


class ViewportProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    width: int
    height: int
    device_scale_factor: int = 1
    is_mobile: bool = False
    user_agent: Optional[str] = None

    @property
    def pixel_width(self) -> int:
        return self.width * self.device_scale_factor

    @property
    def pixel_height(self) -> int:
        return self.height * self.device_scale_factor

    @property
    def resolution(self) -> str:
        return f"{self.pixel_width} x {self.pixel_height}"

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for Browser.new_context()."""
        options = {
            "viewport": {"width": self.width, "height": self.height},
            "device_scale_factor": self.device_scale_factor,
            "is_mobile": self.is_mobile,
            "has_touch": self.is_mobile,
        }
        if self.user_agent:
            options["user_agent"] = self.user_agent
        return options


DESKTOP = ViewportProfile(name="desktop", width=1920, height=1080, device_scale_factor=2)
MOBILE = ViewportProfile(
    name="mobile",
    width=430,
    height=932,
    device_scale_factor=3,
    is_mobile=True,
    user_agent=MOBILE_USER_AGENT,
)
