import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesce bursts of calls into one.

    Every trigger() cancels the pending call and schedules a new one ``delay``
    seconds later on the running event loop, so the callback fires once per
    pause in input. flush() runs a pending call immediately.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Run the pending call now. Returns False when nothing was pending."""
        if self._handle is None:
            return False
        self.cancel()
        self.callback()
        return True

    def _fire(self) -> None:
        self._handle = None
        try:
            self.callback()
        except Exception as e:
            logger.exception(f"Debounced callback failed: {e}")
