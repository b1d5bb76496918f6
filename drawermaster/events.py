import asyncio, logging

from .models import Event

log = logging.getLogger("DrawerMaster")


class EventBridge:
    """
    Hands events from worker threads to an ``asyncio.Queue``.
    When the queue is full the oldest event is dropped.
    """

    def __init__(self, maxsize: int = 256):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def publish(self, event: str, data: dict) -> None:
        """Thread-safe. Events published before ``bind`` are discarded."""
        if self._loop is None or self._loop.is_closed():
            log.debug("No event loop bound, dropping event %s", event)
            return
        payload = Event(event=event, data=data).model_dump(mode="json")
        self._loop.call_soon_threadsafe(self._put, payload)

    def _put(self, payload: dict) -> None:
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(payload)

    async def get(self) -> dict:
        return await self.queue.get()
