"""Scroll-linked section navigation.

Layout geometry is read through a ``ViewportPort`` and timers through a
``Scheduler`` so the algorithm runs the same against a real view, a test
double, or the ``ManualScheduler`` that steps time explicitly.
"""

import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol, Tuple

from form_engine.models import ScrollThresholds, UnknownSectionError
from form_engine.store import FormStateStore

logger = logging.getLogger(__name__)


class SectionBounds(NamedTuple):
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


class ViewportPort(Protocol):
    def section_bounds(self, key: str) -> Optional[SectionBounds]:
        ...

    def scroll_top(self) -> float:
        ...

    def viewport_height(self) -> float:
        ...

    def scroll_to(self, offset: float, smooth: bool = True) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class ManualScheduler:
    """Single-threaded task queue whose clock only moves when ``advance`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int]] = []
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._callbacks[handle] = callback
        heapq.heappush(self._queue, (self.now + max(0.0, delay_ms), handle))
        return handle

    def cancel(self, handle: Any) -> None:
        self._callbacks.pop(handle, None)

    def pending(self) -> int:
        return len(self._callbacks)

    def advance(self, ms: float) -> int:
        """Move the clock forward, running every task that falls due; returns how many ran."""
        target = self.now + ms
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, handle = heapq.heappop(self._queue)
            callback = self._callbacks.pop(handle, None)
            if callback is None:
                continue
            self.now = due
            callback()
            ran += 1
        self.now = target
        return ran


class AsyncioScheduler:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)

    def cancel(self, handle: Any) -> None:
        if handle is not None:
            handle.cancel()


class ScrollSyncNavigator:
    IDLE = "idle"
    SCROLLING = "scrolling"

    def __init__(
        self,
        store: FormStateStore,
        viewport: ViewportPort,
        scheduler: Scheduler,
        thresholds: Optional[ScrollThresholds] = None,
    ):
        self.store = store
        self.viewport = viewport
        self.scheduler = scheduler
        self.thresholds = thresholds or store.schema.scroll
        self.phase = self.IDLE
        self._pending: Any = None

    def on_scroll(self) -> None:
        """Collapse a burst of scroll events into one recompute after the debounce delay."""
        if self._pending is not None:
            self.scheduler.cancel(self._pending)
        self.phase = self.SCROLLING
        self._pending = self.scheduler.schedule(self.thresholds.debounce_ms, self._fire)

    def _fire(self) -> None:
        self._pending = None
        self.phase = self.IDLE
        self.recompute()

    def locate(self) -> Optional[str]:
        scroll_top = float(self.viewport.scroll_top())
        height = float(self.viewport.viewport_height())
        trigger = scroll_top + height * self.thresholds.trigger_ratio
        min_visible = height * self.thresholds.min_visible_ratio

        best_key: Optional[str] = None
        best_visible = 0.0
        for section in self.store.schema.ordered_sections():
            bounds = self.viewport.section_bounds(section.key)
            if bounds is None:
                continue
            if bounds.top <= trigger < bounds.bottom:
                return section.key
            visible = max(0.0, min(bounds.bottom, scroll_top + height) - max(bounds.top, scroll_top))
            if visible > min_visible and visible > best_visible:
                best_key = section.key
                best_visible = visible
        return best_key

    def recompute(self) -> str:
        target = self.locate()
        if target is not None and target != self.store.active_section:
            logger.debug("Active section %s -> %s", self.store.active_section, target)
            self.store.set_active_section(target)
        return self.store.active_section

    def scroll_to_section(self, key: str) -> None:
        if not self.store.schema.has_section(key):
            raise UnknownSectionError(key)
        self.cancel()
        self.store.set_active_section(key)
        bounds = self.viewport.section_bounds(key)
        if bounds is None:
            return
        offset = bounds.top - float(self.viewport.viewport_height()) * self.thresholds.trigger_ratio
        self.viewport.scroll_to(max(0.0, offset), smooth=True)

    def cancel(self) -> None:
        if self._pending is not None:
            self.scheduler.cancel(self._pending)
            self._pending = None
        self.phase = self.IDLE
