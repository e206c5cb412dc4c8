import asyncio
import json

from platetrack.live import LiveBroadcaster, broadcast_safely, format_sse


class TestLiveBroadcaster:

    def test_publish_reaches_subscriber(self):
        async def scenario():
            broadcaster = LiveBroadcaster()
            queue = broadcaster.subscribe()
            broadcaster.publish("plate_read", {"plate_number": "ABC123"})
            message = await asyncio.wait_for(queue.get(), timeout=1)
            broadcaster.unsubscribe(queue)
            return message, broadcaster.subscriber_count

        message, remaining = asyncio.run(scenario())
        assert message == {"event": "plate_read", "data": {"plate_number": "ABC123"}}
        assert remaining == 0

    def test_slow_subscriber_drops_events(self):
        async def scenario():
            broadcaster = LiveBroadcaster(max_queue=2)
            queue = broadcaster.subscribe()
            for i in range(5):
                broadcaster.publish("plate_read", {"n": i})
            await asyncio.sleep(0.05)
            return queue.qsize()

        assert asyncio.run(scenario()) == 2

    def test_broadcast_failure_is_swallowed(self):
        class Broken:
            def publish(self, event, payload):
                raise ConnectionError("gone")

        assert broadcast_safely(Broken(), "plate_read", {}) is False

    def test_format_sse(self):
        text = format_sse({"event": "plate_read", "data": {"id": 1}})
        assert text.startswith("event: plate_read\n")
        assert json.loads(text.split("data: ", 1)[1]) == {"id": 1}
        assert text.endswith("\n\n")
