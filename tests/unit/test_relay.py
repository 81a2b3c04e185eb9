"""Unit tests for cross-instance live push over Redis pub/sub."""

import asyncio
import json
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from claimflow.core.config import Settings
from claimflow.websocket.manager import ConnectionManager, MessageType, WebSocketMessage
from claimflow.websocket.relay import RedisLivePushRelay
from tests.fixtures.websockets import create_mock_websocket


def _envelope(recipient_id: str, text: str) -> str:
    message = WebSocketMessage(type=MessageType.NOTIFICATION, data={"message": text})
    return json.dumps(
        {"recipient_id": recipient_id, "message": message.model_dump(mode="json")}
    )


class ScriptedPubSub:
    """Subscription that fails with ``error`` or yields ``items`` then idles."""

    def __init__(
        self,
        items: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.items = items or []
        self.error = error
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        pass

    async def listen(self):
        if self.error is not None:
            raise self.error
        for item in self.items:
            yield item
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class ScriptedRedis:
    def __init__(self, *subscriptions: ScriptedPubSub) -> None:
        self._subscriptions = list(subscriptions)

    def pubsub(self) -> ScriptedPubSub:
        return self._subscriptions.pop(0)


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisLivePushRelay:
    async def test_dispatch_hands_message_to_local_manager(
        self, fake_redis: Any, settings: Settings
    ) -> None:
        manager = ConnectionManager()
        websocket = create_mock_websocket()
        await manager.connect(websocket, "user-1")
        relay = RedisLivePushRelay(fake_redis, manager, settings)

        assert relay.dispatch(_envelope("user-1", "approved")) == 1
        await manager.drain()

        assert websocket.messages_sent[-1]["data"] == {"message": "approved"}

    async def test_dispatch_for_user_connected_elsewhere(
        self, fake_redis: Any, settings: Settings
    ) -> None:
        relay = RedisLivePushRelay(fake_redis, ConnectionManager(), settings)
        assert relay.dispatch(_envelope("user-9", "approved")) == 0

    async def test_malformed_envelope_is_dropped(
        self, fake_redis: Any, settings: Settings
    ) -> None:
        relay = RedisLivePushRelay(fake_redis, ConnectionManager(), settings)
        assert relay.dispatch("not json") == 0
        assert relay.dispatch(json.dumps({"message": {}})) == 0

    async def test_publish_reaches_channel_subscribers(
        self, fake_redis: Any, settings: Settings
    ) -> None:
        pubsub = fake_redis.pubsub()
        await pubsub.subscribe(settings.live_push_channel)
        await pubsub.get_message(timeout=1.0)  # subscribe confirmation
        relay = RedisLivePushRelay(fake_redis, None, settings)

        relay.publish(
            "user-1", WebSocketMessage(type=MessageType.NOTIFICATION, data={"id": 1})
        )
        await relay.drain()
        item = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)

        assert item is not None
        envelope = json.loads(item["data"])
        assert envelope["recipient_id"] == "user-1"
        assert envelope["message"]["data"] == {"id": 1}
        await pubsub.unsubscribe(settings.live_push_channel)
        await pubsub.aclose()

    async def test_worker_relay_without_manager_ignores_dispatch(
        self, fake_redis: Any, settings: Settings
    ) -> None:
        relay = RedisLivePushRelay(fake_redis, None, settings)
        relay.start()
        assert relay.dispatch(_envelope("user-1", "approved")) == 0
        await relay.stop()

    async def test_listener_resubscribes_after_connection_loss(
        self, settings: Settings
    ) -> None:
        settings = settings.model_copy(update={"live_push_reconnect_seconds": 0.0})
        manager = ConnectionManager()
        websocket = create_mock_websocket()
        await manager.connect(websocket, "user-1")
        dropped = ScriptedPubSub(error=RedisConnectionError("connection reset by peer"))
        healthy = ScriptedPubSub(
            items=[
                {"type": "subscribe", "data": 1},
                {"type": "message", "data": _envelope("user-1", "settled")},
            ]
        )
        relay = RedisLivePushRelay(ScriptedRedis(dropped, healthy), manager, settings)

        relay.start()
        for _ in range(100):
            if any(m["type"] == "notification" for m in websocket.messages_sent):
                break
            await asyncio.sleep(0.01)
        await relay.stop()
        await manager.drain()

        assert dropped.closed and healthy.closed
        assert websocket.messages_sent[-1]["data"] == {"message": "settled"}
