"""
FILE DESCRIPTION: Input validation for capture requests.
Everything here runs before the governor or the engine are touched.
KEY FUNCTIONS/CLASSES: parse_capture_request, validate_request, parse_history_params
"""

from typing import Any, Mapping, Optional, Tuple
from urllib.parse import urlparse

from capture.config import CaptureConfig
from capture.errors import InvalidRequest
from capture.models import FORMAT_ALIASES, CaptureRequest, ImageFormat, Viewport

ALLOWED_SCHEMES = ("http", "https")


def _check_url(url: Any) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidRequest("Valid URL is required")
    url = url.strip()
    try:
        parsed = urlparse(url)
        # Accessing .port raises ValueError on garbage like "http://host:abc"
        parsed.port
    except ValueError:
        raise InvalidRequest("Valid URL is required")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidRequest("URL scheme must be http or https")
    if not parsed.hostname:
        raise InvalidRequest("URL must include a host")
    return url


def _parse_dimension(name: str, value: Any, default: int, maximum: int) -> int:
    if value is None:
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise InvalidRequest(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidRequest(f"{name} must be an integer")
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip(), 10)
        except ValueError:
            raise InvalidRequest(f"{name} must be an integer")
    elif not isinstance(value, int):
        raise InvalidRequest(f"{name} must be an integer")
    if value < 1 or value > maximum:
        raise InvalidRequest(f"{name} must be between 1 and {maximum}")
    return value


def _parse_format(value: Any, default: str) -> ImageFormat:
    raw = default if value is None else value
    if not isinstance(raw, str) or raw.strip().lower() not in FORMAT_ALIASES:
        raise InvalidRequest("format must be one of: png, jpeg")
    return FORMAT_ALIASES[raw.strip().lower()]


def _parse_flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise InvalidRequest("fullPage must be a boolean")


def validate_request(request: CaptureRequest, config: CaptureConfig) -> CaptureRequest:
    """
    Re-checks an already-built request against the configured bounds.
    Unlike the body parser nothing is coerced or defaulted: fields must already have their final types.
    """
    _check_url(request.url)
    if not isinstance(request.image_format, ImageFormat):
        raise InvalidRequest("format must be one of: png, jpeg")
    for name, value in (("width", request.viewport.width), ("height", request.viewport.height)):
        # bool is an int subclass; reject it explicitly
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidRequest(f"{name} must be an integer")
        if value < 1 or value > config.max_dimension:
            raise InvalidRequest(f"{name} must be between 1 and {config.max_dimension}")
    if not isinstance(request.full_page, bool):
        raise InvalidRequest("fullPage must be a boolean")
    return request


def parse_capture_request(payload: Optional[Mapping[str, Any]], config: CaptureConfig) -> CaptureRequest:
    """
    FLOW: Checks the body is a JSON object -> Validates URL scheme/host ->
    Applies defaults for width/height/format/fullPage -> Returns an immutable CaptureRequest.
    Raises InvalidRequest on the first problem found.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequest("Request body must be a JSON object")

    url = _check_url(payload.get("url"))
    width = _parse_dimension("width", payload.get("width"), config.default_width, config.max_dimension)
    height = _parse_dimension("height", payload.get("height"), config.default_height, config.max_dimension)
    image_format = _parse_format(payload.get("format"), config.default_format)
    full_page = _parse_flag(payload.get("fullPage"), config.default_full_page)

    return CaptureRequest(
        url=url,
        viewport=Viewport(width=width, height=height),
        image_format=image_format,
        full_page=full_page,
    )


def _parse_non_negative(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw, 10)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{name} must be an integer")
    if value < 0:
        raise InvalidRequest(f"{name} must not be negative")
    return value


def parse_history_params(args: Mapping[str, str], config: CaptureConfig) -> Tuple[int, int]:
    """Returns (limit, offset) from query-string arguments."""
    limit = _parse_non_negative("limit", args.get("limit"), config.history_default_limit)
    offset = _parse_non_negative("offset", args.get("offset"), 0)
    if limit < 1 or limit > config.history_max_limit:
        raise InvalidRequest(f"limit must be between 1 and {config.history_max_limit}")
    return limit, offset
