from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from capture.models import ImageFormat, Viewport


@dataclass(frozen=True)
class WaitPolicy:
    """
    Render-readiness heuristic: the page counts as settled once no more than
    ``max_inflight`` network requests have been pending for ``quiet_window``
    seconds.
    """
    max_inflight: int = 2
    quiet_window: float = 0.5


class RenderEngineAdapter(ABC):
    """
    Abstraction over one external browser engine process.
    Contractual Requirements for Implementers:
    - MUST start a fresh engine process on launch(); never reuse one across captures.
    - MUST enforce the timeout passed to every operation.
    - MUST raise only the classified errors from capture.errors
      (EngineUnavailable, NavigationTimeout, InvalidTarget, CaptureFailed).
    - release() MUST be idempotent and safe after any partial failure.

    Instances are context managers: leaving the ``with`` block releases the
    engine, whether or not launch() succeeded.
    """

    @abstractmethod
    def launch(self, timeout: float) -> None:
        """Start the engine process and open a page. Raises EngineUnavailable."""
        pass

    @abstractmethod
    def render(self, url: str, viewport: Viewport, wait_policy: WaitPolicy, timeout: float) -> None:
        """
        Apply the viewport, navigate to url and block until wait_policy is met.
        Raises NavigationTimeout or InvalidTarget.
        """
        pass

    @abstractmethod
    def capture(self, image_format: ImageFormat, full_page: bool,
                quality: Optional[int] = None, timeout: float = 15.0) -> bytes:
        """Return image bytes. quality only applies to lossy formats. Raises CaptureFailed."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Terminate the engine process and free its resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
