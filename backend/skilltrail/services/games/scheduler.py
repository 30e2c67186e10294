import logging
from typing import Any, Callable


class TimerHandle:
    """One-shot deferred callback. Cancelling after it fired is harmless."""

    def __init__(self, name: str, delay: float):
        self.name = name
        self.delay = delay
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class SocketIOScheduler:
    """Runs deferred callbacks as Socket.IO background tasks.

    - Works with whatever async mode the SocketIO server runs (threading,
      eventlet, gevent), since it only uses start_background_task and sleep
    - A cancelled handle is checked after the sleep; the callback is skipped
    - Callback errors are logged and never escape the background task
    """

    def __init__(self, socketio, logger: logging.Logger = None):
        self.socketio = socketio
        self.logger = logger or logging.getLogger(__name__)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, name: str = 'timer') -> TimerHandle:
        handle = TimerHandle(name, delay)
        self.logger.info(f"[timer-set] name={name} delay={delay}s")
        self.socketio.start_background_task(self._worker, handle, callback, args)
        return handle

    def _worker(self, handle: TimerHandle, callback: Callable[..., Any], args: tuple) -> None:
        self.socketio.sleep(handle.delay)
        if handle.cancelled:
            self.logger.info(f"[timer-skip] name={handle.name} cancelled")
            return
        handle.fired = True
        self.logger.info(f"[timer-fire] name={handle.name}")
        try:
            callback(*args)
        except Exception:
            self.logger.exception(f"[timer-error] name={handle.name}")
