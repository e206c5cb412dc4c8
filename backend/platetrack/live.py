import asyncio
import json
from typing import Any, Dict, Protocol

from loguru import logger


class Broadcaster(Protocol):
    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class LiveBroadcaster:
    """
    Fan-out of live events to Server-Sent Events subscribers.

    `publish` may be called from any thread (sync routes run in the
    threadpool); each subscriber queue is fed on its own event loop. A
    subscriber that falls `max_queue` events behind loses new events.
    """

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._subscribers: Dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self._subscribers[queue] = asyncio.get_running_loop()
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.pop(queue, None)

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        for queue, loop in list(self._subscribers.items()):
            try:
                loop.call_soon_threadsafe(self._offer, queue, message)
            except RuntimeError:
                # loop already closed; the stream is gone
                self.unsubscribe(queue)

    @staticmethod
    def _offer(queue: asyncio.Queue, message: Dict[str, Any]) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Live subscriber is behind; dropping {} event", message["event"])


def broadcast_safely(broadcaster: Broadcaster, event: str, payload: Dict[str, Any]) -> bool:
    try:
        broadcaster.publish(event, payload)
        return True
    except Exception:
        logger.exception("Live broadcast of {} failed", event)
        return False


def format_sse(message: Dict[str, Any]) -> str:
    return f"event: {message['event']}\ndata: {json.dumps(message['data'], default=str)}\n\n"
