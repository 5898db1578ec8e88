"""Preview/playback scheduler driven by an event loop.

Settings changes are debounced on the trailing edge, generation runs in an
executor, and playback advances by wall-clock time using each frame's own
duration. Only the most recent run is authoritative; results of superseded
runs are dropped when they arrive.

State machine::

    idle -> pending -> generating -> ready <-> playing
                ^                      |
                +------ update() ------+
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from .config import EngineConfig, get_config
from .errors import GenerationResult

logger = logging.getLogger(__name__)

State = str  # "idle" | "pending" | "generating" | "ready" | "playing"

IDLE = "idle"
PENDING = "pending"
GENERATING = "generating"
READY = "ready"
PLAYING = "playing"


def _default_generate(request, config: EngineConfig) -> GenerationResult:
    from ..generators.engine import generate_preview
    return generate_preview(request, config)


class PreviewScheduler:
    """Debounced regeneration plus timed playback for one preview.

    Public methods must be called on the event loop thread. Generation
    results are marshalled back with ``call_soon_threadsafe``.

    Usage::

        scheduler = PreviewScheduler(loop)
        scheduler.on_frame(lambda index, frame: draw(frame))
        scheduler.update(PreviewRequest(settings, conversion))
        ...
        scheduler.scrub(10)   # pauses playback
        scheduler.play()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        generate: Optional[Callable[[Any, EngineConfig], GenerationResult]] = None,
        executor=None,
        config: Optional[EngineConfig] = None,
    ):
        self._loop = loop
        self._generate = generate or _default_generate
        self._executor = executor
        self._config = config or get_config()

        self._state: State = IDLE
        self._request = None
        self._run_id = 0
        self._run_lock = threading.Lock()
        self._debounce_handle = None
        self._play_handle = None

        self._frames: list = []
        self._frame_index = 0
        self._frame_elapsed_ms = 0.0
        self._last_tick = 0.0
        self._last_result: Optional[GenerationResult] = None
        self._error: Optional[GenerationResult] = None

        self._frame_callbacks: list[Callable[[int, Any], None]] = []
        self._state_callbacks: list[Callable[[State], None]] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    @property
    def frames(self) -> list:
        return self._frames

    @property
    def frame_index(self) -> int:
        return self._frame_index

    @property
    def current_frame(self):
        if not self._frames:
            return None
        return self._frames[self._frame_index]

    @property
    def error(self) -> Optional[GenerationResult]:
        """The most recent failed result, cleared by the next success."""
        return self._error

    @property
    def last_result(self) -> Optional[GenerationResult]:
        return self._last_result

    @property
    def run_id(self) -> int:
        with self._run_lock:
            return self._run_id

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_frame(self, callback: Callable[[int, Any], None]) -> None:
        """Register a listener notified when the displayed frame changes."""
        self._frame_callbacks.append(callback)

    def on_state_change(self, callback: Callable[[State], None]) -> None:
        """Register a listener notified on state transitions."""
        self._state_callbacks.append(callback)

    def _set_state(self, state: State) -> None:
        if state == self._state:
            return
        old = self._state
        self._state = state
        logger.debug("Preview state: %s → %s", old, state)
        for cb in self._state_callbacks:
            try:
                cb(state)
            except Exception:
                logger.exception("State change callback failed")

    def _notify_frame(self) -> None:
        frame = self.current_frame
        for cb in self._frame_callbacks:
            try:
                cb(self._frame_index, frame)
            except Exception:
                logger.exception("Frame callback failed")

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    def update(self, request) -> None:
        """Record new settings and (re)start the trailing-edge debounce."""
        with self._run_lock:
            self._run_id += 1
            run_id = self._run_id
        self._request = request
        self._cancel_play_timer()
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        delay = self._config.preview.debounce_ms / 1000.0
        self._debounce_handle = self._loop.call_later(delay, self._start_generation, run_id)
        self._set_state(PENDING)

    def _start_generation(self, run_id: int) -> None:
        self._debounce_handle = None
        if run_id != self.run_id:
            return
        self._set_state(GENERATING)
        logger.info("Preview run %d started", run_id)
        future = self._loop.run_in_executor(self._executor, self._run_blocking, run_id, self._request)
        future.add_done_callback(self._log_hand_off_failure)

    @staticmethod
    def _log_hand_off_failure(future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Preview run could not report back: %s", exc, exc_info=exc)

    def _run_blocking(self, run_id: int, request) -> None:
        """Execute generation in the thread pool, then hand back to the loop."""
        try:
            result = self._generate(request, self._config)
        except Exception as e:
            logger.exception("Preview run %d crashed", run_id)
            result = GenerationResult.failed(e)
        self._loop.call_soon_threadsafe(self._finish, run_id, result)

    def _finish(self, run_id: int, result: GenerationResult) -> None:
        with self._run_lock:
            if run_id != self._run_id:
                logger.info("Dropping superseded preview run %d", run_id)
                return

        self._last_result = result
        if not result.success:
            logger.warning("Preview run %d failed (%s): %s",
                           run_id, result.error_kind, result.error_message)
            self._error = result
            self._set_state(READY if self._frames else IDLE)
            return

        self._error = None
        self._frames = list(result.converted or result.frames)
        self._frame_index = 0
        self._frame_elapsed_ms = 0.0
        self._set_state(READY)
        self._notify_frame()
        if self._config.preview.autoplay and self._frames:
            self.play()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self) -> None:
        if not self._frames or self._state in (PENDING, GENERATING):
            return
        self._cancel_play_timer()
        self._last_tick = self._loop.time()
        self._set_state(PLAYING)
        self._schedule_tick()

    def pause(self) -> None:
        self._cancel_play_timer()
        if self._state == PLAYING:
            self._set_state(READY)

    def toggle(self) -> None:
        if self._state == PLAYING:
            self.pause()
        else:
            self.play()

    def scrub(self, index: int) -> None:
        """Jump to a frame; pauses playback."""
        if not self._frames:
            return
        self.pause()
        self._frame_index = index % len(self._frames)
        self._frame_elapsed_ms = 0.0
        self._notify_frame()

    def stop(self) -> None:
        """Cancel timers and drop any in-flight run."""
        with self._run_lock:
            self._run_id += 1
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        self._cancel_play_timer()
        self._set_state(READY if self._frames else IDLE)

    def _frame_duration_ms(self, index: int) -> float:
        frame = self._frames[index]
        return max(1.0, float(getattr(frame, "duration_ms", 100)))

    def _schedule_tick(self) -> None:
        remaining = self._frame_duration_ms(self._frame_index) - self._frame_elapsed_ms
        self._play_handle = self._loop.call_later(max(remaining, 1.0) / 1000.0, self._tick)

    def _tick(self) -> None:
        """Advance by real elapsed time, then sleep until the next frame is due."""
        self._play_handle = None
        if self._state != PLAYING or not self._frames:
            return
        now = self._loop.time()
        self._frame_elapsed_ms += (now - self._last_tick) * 1000.0
        self._last_tick = now

        advanced = False
        while self._frame_elapsed_ms >= self._frame_duration_ms(self._frame_index):
            self._frame_elapsed_ms -= self._frame_duration_ms(self._frame_index)
            self._frame_index = (self._frame_index + 1) % len(self._frames)
            advanced = True
        if advanced:
            self._notify_frame()
        self._schedule_tick()

    def _cancel_play_timer(self) -> None:
        if self._play_handle is not None:
            self._play_handle.cancel()
            self._play_handle = None
