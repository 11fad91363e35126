"""Multi-tenant web capture service: URL in, rendered screenshot out."""

from capture.config import CaptureConfig
from capture.errors import (
    AuthError,
    CapacityExceeded,
    CaptureError,
    CaptureFailed,
    EngineUnavailable,
    InvalidRequest,
    InvalidTarget,
    LedgerWriteFailed,
    NavigationTimeout,
)
from capture.models import CaptureRecord, CaptureRequest, CaptureResult, Identity, ImageFormat, Viewport

__version__ = "1.0.0"
