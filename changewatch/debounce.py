import asyncio
import logging

logger = logging.getLogger(__name__)


def running_loop():
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Debouncer:
    """Trailing-edge debounce on an asyncio loop.

    Every ``call()`` re-arms a ``delay``-second timer; the callback runs once,
    after the last call of a burst. Coroutine callbacks are run as tasks.
    With ``max_wait`` set, a burst that keeps going still fires at most
    ``max_wait`` seconds after its first call.
    The loop is the one running when the debouncer is first used, unless
    one is passed in.
    """

    def __init__(self, callback, delay, loop=None, max_wait=None):
        self.callback = callback
        self.delay = delay
        self.max_wait = max_wait
        self._burst_started = None
        self._loop = loop
        self._handle = None
        self._tasks = set()

    @property
    def loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def pending(self):
        return self._handle is not None

    def call(self):
        now = self.loop.time()
        if self._handle is not None:
            self._handle.cancel()
        else:
            self._burst_started = now

        delay = self.delay
        if self.max_wait is not None:
            delay = max(0, min(delay, self._burst_started + self.max_wait - now))
        self._handle = self.loop.call_later(delay, self._fire)

    def call_threadsafe(self):
        """``call()`` from any thread; hops onto the debouncer's loop when needed."""
        if self._loop is None or running_loop() is self._loop:
            self.call()
            return
        try:
            self._loop.call_soon_threadsafe(self.call)
        except RuntimeError:
            # loop already closed
            logger.debug("Dropping debounced call, event loop is closed")

    def _fire(self):
        self._handle = None
        try:
            result = self.callback()
        except Exception:
            logger.exception("Debounced callback %r failed", self.callback)
            return

        if asyncio.iscoroutine(result):
            task = self.loop.create_task(result)
            self._tasks.add(task)
            task.add_done_callback(self._forget)

    def _forget(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Debounced callback %r failed", self.callback, exc_info=task.exception())

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
