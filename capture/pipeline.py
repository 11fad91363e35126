"""
FILE DESCRIPTION: Per-request capture orchestration.
KEY FUNCTIONS/CLASSES: CapturePipeline, Deadline
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from capture.config import CaptureConfig
from capture.errors import (
    CaptureError,
    CaptureFailed,
    EngineUnavailable,
    NavigationTimeout,
)
from capture.governor import ConcurrencyGovernor
from capture.ledger.engine import CaptureLedger
from capture.logger import get_logger
from capture.models import CaptureRecord, CaptureRequest, CaptureResult, Identity
from capture.rendering.engine import RenderEngineAdapter, WaitPolicy
from capture.validation import validate_request

logger = get_logger("pipeline")

# Step name -> error for an exception the adapter did not classify itself.
# Target problems are only reported as InvalidTarget by the adapter.
STEP_ERRORS = {
    "launch": EngineUnavailable,
    "render": CaptureFailed,
    "capture": CaptureFailed,
}
STEP_TIMEOUT_ERRORS = {
    "launch": EngineUnavailable,
    "render": NavigationTimeout,
    "capture": CaptureFailed,
}


class Deadline:
    """Overall time budget for one capture, shared by all of its steps."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return self._expires_at - self._clock()

    def budget(self, step: str, step_timeout: float) -> float:
        """min(step timeout, time left); raises the step's timeout error when nothing is left."""
        remaining = self.remaining()
        if remaining <= 0:
            raise STEP_TIMEOUT_ERRORS[step](f"Capture deadline exceeded before {step}")
        return min(step_timeout, remaining)


class CapturePipeline:
    """
    FLOW: Validates the request (no resources touched yet) -> Waits for admission from the
    governor -> Creates a fresh engine adapter and holds it in a with-scope for its whole
    life -> launch / render / capture, each bounded by min(step timeout, remaining deadline) ->
    Leaves the scope (engine released) -> Appends the record to the ledger -> Returns bytes.

    Invariants:
    - Exactly one adapter is created, launched and released per admitted capture.
    - The ledger is written once on success and never on failure.
    - Any adapter failure surfaces as a CaptureError after the adapter is released.
    """

    def __init__(self, engine_factory: Callable[[], RenderEngineAdapter],
                 governor: ConcurrencyGovernor, ledger: CaptureLedger,
                 config: Optional[CaptureConfig] = None):
        self._engine_factory = engine_factory
        self._governor = governor
        self._ledger = ledger
        self._config = config or CaptureConfig()
        self._wait_policy = WaitPolicy(
            max_inflight=self._config.idle_max_inflight,
            quiet_window=self._config.idle_quiet_window,
        )

    def capture(self, request: CaptureRequest, identity: Identity) -> CaptureResult:
        validate_request(request, self._config)
        tag = uuid.uuid4().hex[:8]
        logger.info(
            f"[PIPELINE] {tag} {identity.identity_id} requesting {request.url} "
            f"({request.viewport.width}x{request.viewport.height}, {request.image_format.value}, "
            f"fullPage={request.full_page})"
        )

        with self._governor.admit():
            image = self._run_engine(tag, request)

        record = CaptureRecord(
            record_id=str(uuid.uuid4()),
            owner_id=identity.identity_id,
            url=request.url,
            width=request.viewport.width,
            height=request.viewport.height,
            image_format=request.image_format,
            full_page=request.full_page,
            size_bytes=len(image),
            created_at=datetime.now(timezone.utc),
        )
        self._ledger.append(record)
        logger.info(f"[PIPELINE] {tag} done: {record.record_id} ({record.size_bytes} bytes)")
        return CaptureResult(image=image, record=record)

    def _run_engine(self, tag: str, request: CaptureRequest) -> bytes:
        config = self._config
        deadline = Deadline(config.capture_timeout)
        quality = config.jpeg_quality if request.image_format.lossy else None
        step = "launch"
        start = time.monotonic()
        try:
            # INVARIANT: launch happens inside the scope so a half-started engine is released too.
            with self._engine_factory() as engine:
                engine.launch(deadline.budget("launch", config.launch_timeout))

                step = "render"
                engine.render(
                    request.url,
                    request.viewport,
                    self._wait_policy,
                    deadline.budget("render", config.navigation_timeout),
                )

                step = "capture"
                image = engine.capture(
                    request.image_format,
                    request.full_page,
                    quality,
                    deadline.budget("capture", config.screenshot_timeout),
                )
        except CaptureError as e:
            logger.warning(f"[PIPELINE] {tag} failed during {step}: {e.kind}")
            raise
        except Exception as e:
            logger.exception(f"[PIPELINE] {tag} unexpected engine error during {step}: {e}")
            raise STEP_ERRORS[step]()

        if not image:
            logger.warning(f"[PIPELINE] {tag} engine returned an empty image")
            raise CaptureFailed()

        logger.info(f"[PIPELINE] {tag} rendered in {int((time.monotonic() - start) * 1000)}ms")
        return bytes(image)
