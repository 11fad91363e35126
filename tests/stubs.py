"""Test doubles shared by the pipeline and API tests."""

import threading

from capture.rendering.engine import RenderEngineAdapter

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56


class EngineStats:
    """Counts adapter lifecycle events across every StubEngine a factory creates."""

    def __init__(self):
        self._lock = threading.Lock()
        self.created = 0
        self.launches = 0
        self.releases = 0
        self.active = 0
        self.peak = 0
        self.calls = []

    def factory(self, **kwargs):
        def make():
            with self._lock:
                self.created += 1
            return StubEngine(self, **kwargs)
        return make

    def _launched(self):
        with self._lock:
            self.launches += 1
            self.active += 1
            self.peak = max(self.peak, self.active)

    def _released(self, was_launched):
        with self._lock:
            self.releases += 1
            if was_launched:
                self.active -= 1


class StubEngine(RenderEngineAdapter):
    """
    Scriptable adapter. ``fail_at`` names the step that raises ``error``;
    ``hold`` is an Event render() blocks on until it is set.
    """

    def __init__(self, stats, image=PNG_BYTES, fail_at=None, error=None, hold=None):
        self._stats = stats
        self._image = image
        self._fail_at = fail_at
        self._error = error
        self._hold = hold
        self._launched = False
        self._released = False

    def _maybe_fail(self, step):
        if self._fail_at == step:
            raise self._error

    def launch(self, timeout):
        self._stats.calls.append(("launch", timeout))
        self._stats._launched()
        self._launched = True
        self._maybe_fail("launch")

    def render(self, url, viewport, wait_policy, timeout):
        self._stats.calls.append(("render", url, viewport, wait_policy, timeout))
        if self._hold is not None:
            self._hold.wait(5)
        self._maybe_fail("render")

    def capture(self, image_format, full_page, quality=None, timeout=15.0):
        self._stats.calls.append(("capture", image_format, full_page, quality, timeout))
        self._maybe_fail("capture")
        return self._image

    def release(self):
        if self._released:
            return
        self._released = True
        self._stats._released(self._launched)
