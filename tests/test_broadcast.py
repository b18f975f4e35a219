"""Unit tests for the payment broadcast channel and callback intake ordering."""

import asyncio
from datetime import datetime

from fastapi import BackgroundTasks

from merchantrelay.common.broadcast import BroadcastChannel
from merchantrelay.services.relay.client import GatewayClient
from merchantrelay.services.relay.service import RelayService


class RecordingSubscriber:
    def __init__(self) -> None:
        self.received = []

    async def send_json(self, data) -> None:
        self.received.append(data)


class BrokenSubscriber:
    async def send_json(self, data) -> None:
        raise RuntimeError("connection closed")


class StalledSubscriber:
    """A client that stopped reading: its send never completes."""

    async def send_json(self, data) -> None:
        await asyncio.Event().wait()


class SubscribingDuringPublish:
    """Adds a new subscriber while a broadcast is being delivered."""

    def __init__(self, channel: BroadcastChannel, newcomer) -> None:
        self.channel = channel
        self.newcomer = newcomer

    async def send_json(self, data) -> None:
        self.channel.subscribe(self.newcomer)


def test_publish_reaches_every_subscriber_unchanged():
    """Every subscriber receives the payload object unchanged."""

    channel = BroadcastChannel()
    first, second = RecordingSubscriber(), RecordingSubscriber()
    channel.subscribe(first)
    channel.subscribe(second)
    payload = {"transactionId": "T1", "status": "SUCCESS"}

    delivered = asyncio.run(channel.publish(payload))

    assert delivered == 2
    assert first.received == [payload]
    assert second.received == [payload]


def test_failing_subscriber_does_not_block_others():
    """A subscriber whose send raises is skipped and stays subscribed."""

    channel = BroadcastChannel()
    healthy = RecordingSubscriber()
    channel.subscribe(BrokenSubscriber())
    channel.subscribe(healthy)

    delivered = asyncio.run(channel.publish({"a": 1}))

    assert delivered == 1
    assert healthy.received == [{"a": 1}]
    assert channel.subscriber_count == 2


def test_publish_uses_snapshot_of_subscribers():
    """Subscribers added mid-broadcast wait for the next publish."""

    channel = BroadcastChannel()
    newcomer = RecordingSubscriber()
    channel.subscribe(SubscribingDuringPublish(channel, newcomer))

    asyncio.run(channel.publish({"a": 1}))

    assert newcomer.received == []
    assert channel.subscriber_count == 2


def test_unsubscribed_receiver_gets_nothing():
    """Unsubscribing (even twice) stops delivery."""

    channel = BroadcastChannel()
    subscriber = RecordingSubscriber()
    channel.subscribe(subscriber)
    channel.unsubscribe(subscriber)
    channel.unsubscribe(subscriber)

    assert asyncio.run(channel.publish({"a": 1})) == 0
    assert subscriber.received == []


def test_callback_response_is_complete_before_publish(relay_settings):
    """The empty 200 is built before the broadcast runs."""

    channel = BroadcastChannel()
    subscriber = RecordingSubscriber()
    channel.subscribe(subscriber)
    service = RelayService(relay_settings, GatewayClient(relay_settings), channel, clock=datetime.now)
    tasks = BackgroundTasks()

    response = service.accept_callback(b'{"transactionId":"T1","status":"SUCCESS"}', tasks)

    assert response.status_code == 200
    assert response.body == b""
    assert subscriber.received == []

    asyncio.run(tasks())

    assert subscriber.received == [{"transactionId": "T1", "status": "SUCCESS"}]


def test_unparseable_callback_schedules_nothing(relay_settings):
    """A non-JSON callback is acknowledged without scheduling a broadcast."""

    channel = BroadcastChannel()
    service = RelayService(relay_settings, GatewayClient(relay_settings), channel)
    tasks = BackgroundTasks()

    response = service.accept_callback(b"<xml/>", tasks)

    assert response.status_code == 200
    assert tasks.tasks == []


def test_stalled_subscribers_do_not_hold_up_delivery():
    """Sends run concurrently and time out, so stalled clients delay no one."""

    channel = BroadcastChannel(send_timeout_seconds=0.05)
    for _ in range(20):
        channel.subscribe(StalledSubscriber())
    healthy = RecordingSubscriber()
    channel.subscribe(healthy)

    delivered = asyncio.run(asyncio.wait_for(channel.publish({"a": 1}), 1.0))

    assert delivered == 1
    assert healthy.received == [{"a": 1}]
    assert channel.subscriber_count == 21
