# sitesnap/errors.py
from urllib.parse import urlparse


class CaptureError(Exception):
    """Base class for everything that can go wrong while capturing a page."""


class ValidationError(CaptureError):
    """The submitted URL is missing or not an absolute http(s) URL."""


class NavigationTimeout(CaptureError):
    """The page did not settle within the navigation timeout."""


class NavigationFailed(CaptureError):
    """DNS, connection or certificate error while loading the page."""


class EncodingFailed(CaptureError):
    """Rendering or writing an image failed."""


class ResourceExhaustion(CaptureError):
    """The browser engine could not be started."""


class RegistryError(Exception):
    pass


class JobNotFound(RegistryError):
    pass


class AlreadySubscribed(RegistryError):
    pass


def validate_url(url) -> str:
    """Return the stripped URL or raise ValidationError."""
    if not url or not isinstance(url, str) or not url.strip():
        raise ValidationError("Please specify a URL")
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"Please enter a valid URL: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Please enter a valid URL (e.g. https://example.com)")
    return url
