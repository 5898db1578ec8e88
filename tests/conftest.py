"""Shared test fixtures."""

import heapq
import itertools
from concurrent.futures import Future

import numpy as np
import pytest

from asciimotion.core.config import EngineConfig, set_config
from asciimotion.render.raster import GeneratorFrame


class FakeHandle:
    """Timer handle compatible with ``asyncio.TimerHandle.cancel``."""

    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self):
        return self._cancelled


class FakeLoop:
    """Manual-clock stand-in for an asyncio loop.

    Timers fire only inside ``advance``. Executor jobs run inline unless
    ``defer_executor`` is set, in which case ``run_jobs`` completes them.
    """

    def __init__(self, defer_executor=False):
        self.now = 0.0
        self.defer_executor = defer_executor
        self._timers = []
        self._seq = itertools.count()
        self._soon = []
        self.jobs = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(self.now + delay, callback, args)
        heapq.heappush(self._timers, (handle.when, next(self._seq), handle))
        return handle

    def call_soon_threadsafe(self, callback, *args):
        self._soon.append((callback, args))

    def run_in_executor(self, executor, fn, *args):
        future = Future()
        if self.defer_executor:
            self.jobs.append((future, fn, args))
        else:
            self._run_job(future, fn, args)
        return future

    @staticmethod
    def _run_job(future, fn, args):
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)

    def run_jobs(self):
        jobs, self.jobs = self.jobs, []
        for future, fn, args in jobs:
            self._run_job(future, fn, args)
        self._drain()

    def _drain(self):
        while self._soon:
            callback, args = self._soon.pop(0)
            callback(*args)

    def advance(self, seconds):
        target = self.now + seconds
        self._drain()
        while self._timers and self._timers[0][0] <= target:
            when, _, handle = heapq.heappop(self._timers)
            if handle.cancelled():
                continue
            self.now = when
            handle.callback(*handle.args)
            self._drain()
        self.now = target
        self._drain()


@pytest.fixture(autouse=True)
def engine_config():
    """Fresh default configuration for every test."""
    config = EngineConfig()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def make_frame():
    """Build a GeneratorFrame from an (H, W, 3) RGB array."""
    def _make(rgb, duration_ms=33, alpha=255):
        rgb = np.asarray(rgb, dtype=np.uint8)
        h, w = rgb.shape[:2]
        pixels = np.empty((h, w, 4), dtype=np.uint8)
        pixels[..., :3] = rgb
        pixels[..., 3] = alpha
        return GeneratorFrame.from_pixels(pixels, duration_ms)
    return _make


@pytest.fixture
def solid_frame(make_frame):
    def _solid(color, width=8, height=4):
        return make_frame(np.broadcast_to(np.array(color, dtype=np.uint8), (height, width, 3)))
    return _solid


@pytest.fixture
def deferred_loop():
    """Fake loop whose executor jobs wait for ``run_jobs``."""
    return FakeLoop(defer_executor=True)
