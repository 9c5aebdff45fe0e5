from __future__ import annotations

import logging
from typing import Any, Callable

from flask_socketio import SocketIO


logger = logging.getLogger(__name__)


class TimerHandle:
    """A one-shot delayed call that can be cancelled any number of times."""

    def __init__(self, delay: float, callback: Callable[..., Any], args: tuple = ()) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback(*self.args)


class BackgroundScheduler:
    """Runs each timer as a Socket.IO background task.

    Works with whichever async mode the server picked (eventlet greenlets or
    plain threads), since both sleep and task spawning go through ``socketio``.
    """

    def __init__(self, socketio: SocketIO) -> None:
        self.socketio = socketio

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(max(0.0, float(delay)), callback, args)
        self.socketio.start_background_task(self._runner, handle)
        return handle

    def _runner(self, handle: TimerHandle) -> None:
        self.socketio.sleep(handle.delay)
        if handle.cancelled:
            return
        try:
            handle.run()
        except Exception:
            logger.exception("timer callback %r failed", handle.callback)
