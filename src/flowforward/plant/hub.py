# flowforward/plant/hub.py
from __future__ import annotations

import threading
from typing import Callable, List, Sequence

from ..utils import log
from .state import Plant


Snapshot = Sequence[Plant]
Observer = Callable[[Snapshot], None]


class NotificationHub:
    """
    Registry of observers. Every notify() hands the same snapshot to each
    observer in registration order; a failing observer is logged and skipped.
    """

    def __init__(self):
        self._observers: List[Observer] = []
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def notify(self, snapshot: Snapshot) -> int:
        with self._lock:
            observers = list(self._observers)

        delivered = 0
        for observer in observers:
            # removed by an earlier observer during this dispatch
            with self._lock:
                if observer not in self._observers:
                    continue
            try:
                observer(snapshot)
                delivered += 1
            except Exception as e:
                log(f"[HUB] observer {getattr(observer, '__qualname__', observer)!s} failed: {e!r}")
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)
