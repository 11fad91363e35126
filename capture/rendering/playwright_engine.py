"""
FILE DESCRIPTION: Playwright-backed Render Engine Adapter.
One adapter == one Chromium process + one page, owned by a single capture.
KEY FUNCTIONS/CLASSES: PlaywrightEngineAdapter
"""

import time
from typing import Optional, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from capture.config import CHROMIUM_LAUNCH_ARGS, DEFAULT_USER_AGENT
from capture.errors import CaptureFailed, EngineUnavailable, InvalidTarget, NavigationTimeout
from capture.logger import get_logger
from capture.models import ImageFormat, Viewport
from capture.rendering.engine import RenderEngineAdapter, WaitPolicy

logger = get_logger("engine")

# How often the quiescence loop re-checks the in-flight counter (ms)
IDLE_POLL_MS = 50


def _ms(seconds: float) -> float:
    # Playwright treats 0 as "no timeout"; never hand it a zero budget
    return max(1.0, seconds * 1000.0)


class PlaywrightEngineAdapter(RenderEngineAdapter):
    """
    FLOW: launch() starts a Playwright driver and a headless Chromium, opens one page and
    hooks request events -> render() navigates and polls the in-flight request count until the
    page is quiet -> capture() screenshots the page -> release() tears everything down.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, headless: bool = True,
                 launch_args: Sequence[str] = CHROMIUM_LAUNCH_ARGS):
        self._user_agent = user_agent
        self._headless = headless
        self._launch_args = list(launch_args)
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._inflight = 0

    # --- request accounting for the network-idle heuristic ---

    def _on_request(self, request):
        self._inflight += 1

    def _on_request_done(self, request):
        self._inflight = max(0, self._inflight - 1)

    def launch(self, timeout: float) -> None:
        """
        Only chromium.launch takes a timeout, and it gets whatever the driver start left over.
        Driver start, new_context and new_page cannot be interrupted, so the total is
        re-checked once the page exists; an overrun still fails with EngineUnavailable and
        release() tears down what was started.
        """
        deadline = time.monotonic() + timeout
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self._headless,
                args=self._launch_args,
                timeout=_ms(deadline - time.monotonic()),
            )
            self._context = self._browser.new_context(user_agent=self._user_agent)
            self._page = self._context.new_page()
        except PlaywrightTimeoutError:
            logger.error(f"[ENGINE] Chromium did not start within {timeout:.1f}s")
            raise EngineUnavailable()
        except PlaywrightError as e:
            logger.error(f"[ENGINE] Chromium launch failed: {e}")
            raise EngineUnavailable()

        if time.monotonic() > deadline:
            logger.error(f"[ENGINE] Chromium did not start within {timeout:.1f}s")
            raise EngineUnavailable()

        self._page.on("request", self._on_request)
        self._page.on("requestfinished", self._on_request_done)
        self._page.on("requestfailed", self._on_request_done)
        logger.info("[ENGINE] Chromium launched.")

    def _require_page(self):
        if self._page is None:
            raise EngineUnavailable("Rendering engine is not running")
        return self._page

    def render(self, url: str, viewport: Viewport, wait_policy: WaitPolicy, timeout: float) -> None:
        page = self._require_page()
        deadline = time.monotonic() + timeout
        self._inflight = 0

        try:
            page.set_viewport_size(viewport.as_dict())
            page.goto(url, wait_until="domcontentloaded", timeout=_ms(timeout))
        except PlaywrightTimeoutError:
            raise NavigationTimeout()
        except PlaywrightError as e:
            # DNS failures, refused connections, unsupported schemes, aborted loads
            logger.warning(f"[ENGINE] Navigation to {url} failed: {e}")
            raise InvalidTarget()

        self._wait_for_quiescence(page, wait_policy, deadline)

    def _wait_for_quiescence(self, page, wait_policy: WaitPolicy, deadline: float) -> None:
        quiet_since = None
        while True:
            now = time.monotonic()
            if self._inflight <= wait_policy.max_inflight:
                if quiet_since is None:
                    quiet_since = now
                if now - quiet_since >= wait_policy.quiet_window:
                    return
            else:
                quiet_since = None

            remaining = deadline - now
            if remaining <= 0:
                logger.warning(f"[ENGINE] Page never settled ({self._inflight} requests still in flight)")
                raise NavigationTimeout()
            try:
                page.wait_for_timeout(min(IDLE_POLL_MS, remaining * 1000.0))
            except PlaywrightError as e:
                # Page crashed or was closed while we were waiting
                logger.warning(f"[ENGINE] Page lost during render wait: {e}")
                raise InvalidTarget()

    def capture(self, image_format: ImageFormat, full_page: bool,
                quality: Optional[int] = None, timeout: float = 15.0) -> bytes:
        page = self._require_page()
        options = {
            "type": image_format.value,
            "full_page": full_page,
            "timeout": _ms(timeout),
        }
        if image_format.lossy and quality is not None:
            options["quality"] = quality
        try:
            return page.screenshot(**options)
        except PlaywrightError as e:
            # TimeoutError is a subclass of Error; both are extraction failures here
            logger.error(f"[ENGINE] Screenshot failed: {e}")
            raise CaptureFailed()

    def release(self) -> None:
        """
        Closes page, context, browser and driver in that order. Every step is attempted
        even if an earlier one fails, and references are cleared so repeat calls are no-ops.
        """
        steps = (
            ("page", self._page, lambda p: p.close()),
            ("context", self._context, lambda c: c.close()),
            ("browser", self._browser, lambda b: b.close()),
            ("driver", self._playwright, lambda d: d.stop()),
        )
        self._page = self._context = self._browser = self._playwright = None
        released_any = False
        for name, resource, close in steps:
            if resource is None:
                continue
            released_any = True
            try:
                close(resource)
            except Exception as e:
                logger.warning(f"[ENGINE] Error closing {name}: {e}")
        if released_any:
            logger.info("[ENGINE] Chromium released.")
