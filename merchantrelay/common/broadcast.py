"""In-process publish/subscribe topic for real-time client connections.

The subscriber set belongs to the transport layer (WebSocket connect and
disconnect). Publishing only reads a snapshot of it, so connections may come
and go while a broadcast is in flight.
"""

import asyncio
from typing import Any, Protocol

from merchantrelay.common.logging import logger
from merchantrelay.common.metrics import broadcast_deliveries_total, broadcast_subscribers


PAYMENT_SUCCEED_TOPIC = "payment-succeed"


class Subscriber(Protocol):
    """Anything that can receive a JSON message, e.g. a Starlette `WebSocket`."""

    async def send_json(self, data: Any) -> None: ...


class BroadcastChannel:
    """Best-effort fan-out of JSON payloads to every current subscriber.

    Delivery is at-most-once: there is no acknowledgment, no replay buffer and
    no ordering guarantee across subscribers. A failing subscriber is logged
    and skipped, as is one whose send does not finish in time; removing it
    is left to its own disconnect handling.
    """

    def __init__(self, topic: str = PAYMENT_SUCCEED_TOPIC, send_timeout_seconds: float = 5.0) -> None:
        self.topic = topic
        self.send_timeout_seconds = send_timeout_seconds
        self._subscribers: set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)
        broadcast_subscribers.labels(topic=self.topic).set(len(self._subscribers))
        logger.info("subscriber_added topic=%s subscribers=%s", self.topic, len(self._subscribers))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.discard(subscriber)
        broadcast_subscribers.labels(topic=self.topic).set(len(self._subscribers))
        logger.info("subscriber_removed topic=%s subscribers=%s", self.topic, len(self._subscribers))

    async def _deliver(self, subscriber: Subscriber, payload: Any) -> bool:
        try:
            await asyncio.wait_for(subscriber.send_json(payload), self.send_timeout_seconds)
        except Exception as exc:
            broadcast_deliveries_total.labels(topic=self.topic, outcome="failed").inc()
            logger.warning("broadcast_delivery_failed topic=%s error=%r", self.topic, exc)
            return False
        broadcast_deliveries_total.labels(topic=self.topic, outcome="delivered").inc()
        return True

    async def publish(self, payload: Any) -> int:
        """Send `payload` unchanged to every subscriber; return successful deliveries.

        Sends run concurrently and each is bounded by `send_timeout_seconds`,
        so a client that stopped reading cannot hold up the others.
        """

        recipients = list(self._subscribers)
        results = await asyncio.gather(*(self._deliver(subscriber, payload) for subscriber in recipients))
        delivered = sum(results)
        logger.info(
            "broadcast_published topic=%s recipients=%s delivered=%s",
            self.topic,
            len(recipients),
            delivered,
        )
        return delivered
