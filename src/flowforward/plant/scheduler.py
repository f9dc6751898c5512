# flowforward/plant/scheduler.py
from __future__ import annotations

import inspect
import threading
import weakref
from typing import Callable, Optional

from ..utils import log


class UpdateScheduler:
    """
    Repeating timer: Stopped -> start() -> Running -> stop() -> Stopped.

    One daemon thread per start(); a restart signals and joins the old loop
    before arming a new one, so ticks never overlap. If the old tick outlives
    the join timeout, start() refuses to arm until it has finished.

    A bound-method tick is held weakly: once its owner is garbage-collected
    the loop exits on its own.
    """

    JOIN_TIMEOUT_S = 5.0

    def __init__(self, tick: Callable[[], None], interval_s: float = 1.0):
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        if inspect.ismethod(tick):
            self._tick_ref: Callable[[], Optional[Callable[[], None]]] = weakref.WeakMethod(tick)
        else:
            self._tick_ref = lambda: tick
        self.interval_s = float(interval_s)

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._draining: Optional[threading.Thread] = None  # stopped, tick still in flight

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None

    def start(self) -> bool:
        if not self.stop():
            log("[SCHED] previous tick still running, not re-armed")
            return False

        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop,
            args=(stop_event,),
            name="flowforward-scheduler",
            daemon=True,
        )
        with self._lock:
            self._thread, self._stop_event = thread, stop_event
        thread.start()
        log(f"[SCHED] started (interval {self.interval_s:.3f}s)")
        return True

    def stop(self) -> bool:
        """Signal and join the loop. False if a tick is still running after the join timeout."""
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = self._stop_event = None
            if thread is None:
                thread, self._draining = self._draining, None

        if thread is None:
            return True

        if stop_event is not None:
            stop_event.set()

        # stop() may be called from inside a tick
        if thread is threading.current_thread():
            log("[SCHED] stopped")
            return True

        thread.join(timeout=self.JOIN_TIMEOUT_S)
        if thread.is_alive():
            with self._lock:
                self._draining = thread
            log(f"[SCHED] tick still running after {self.JOIN_TIMEOUT_S}s")
            return False

        if stop_event is not None:
            log("[SCHED] stopped")
        return True

    # ======================================================
    # LOOP
    # ======================================================
    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_s):
            tick = self._tick_ref()
            if tick is None:
                log("[SCHED] owner collected, loop exits")
                break
            try:
                tick()
            except Exception as e:
                log(f"[SCHED] tick failed: {e!r}")
            # no strong reference to the owner between ticks
            tick = None

        with self._lock:
            if self._thread is threading.current_thread():
                self._thread = self._stop_event = None
