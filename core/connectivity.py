# core/connectivity.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EVENT_ONLINE = "online"
EVENT_OFFLINE = "offline"
_EVENTS = (EVENT_ONLINE, EVENT_OFFLINE)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by `subscribe`; pass it back to `unsubscribe`."""

    event: str
    token: int


class ConnectivityMonitor:
    """
    Online/offline flag plus transition events.

    The host sets the flag with `set_online()` (or lets `start_probe()` poll a
    reachability check). Listeners fire only on an actual transition, never
    when the flag is re-asserted with the same value.
    """

    def __init__(self, online: bool = True, probe: Optional[Callable[[], bool]] = None):
        self._online = bool(online)
        self._probe = probe
        self._listeners: Dict[str, Dict[int, Callable[[], None]]] = {event: {} for event in _EVENTS}
        self._next_token = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, event: str, callback: Callable[[], None]) -> Subscription:
        if event not in _EVENTS:
            raise ValueError(f"Unknown connectivity event: {event!r}")
        with self._lock:
            self._next_token += 1
            token = self._next_token
            self._listeners[event][token] = callback
        return Subscription(event=event, token=token)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._listeners.get(subscription.event, {}).pop(subscription.token, None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, {}))

    def set_online(self, online: bool) -> bool:
        """Update the flag; returns True if this was a transition."""
        online = bool(online)
        with self._lock:
            if online == self._online:
                return False
            self._online = online
            event = EVENT_ONLINE if online else EVENT_OFFLINE
            callbacks: List[Callable[[], None]] = list(self._listeners[event].values())

        logger.info("Connectivity changed: now %s", event.upper())
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Connectivity listener for %s failed.", event)
        return True

    # ---------- optional background probe ----------

    def check(self) -> bool:
        """Run the probe once and apply its answer. Without a probe, keeps the current flag."""
        if self._probe is None:
            return self._online
        try:
            reachable = bool(self._probe())
        except Exception as e:
            logger.warning("Connectivity probe raised %s; assuming offline.", type(e).__name__)
            reachable = False
        self.set_online(reachable)
        return reachable

    def start_probe(self, interval: float) -> None:
        if self._probe is None or interval <= 0 or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._probe_loop, args=(float(interval),), daemon=True)
        self._thread.start()
        logger.info("Connectivity probe started (every %.1fs).", interval)

    def stop_probe(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info("Connectivity probe stopped.")

    def _probe_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.check()
