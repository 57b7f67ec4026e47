"""Tests for ListenerRegistry."""

from __future__ import annotations

import asyncio
import logging

import pytest

from edsdk_session.listeners import ListenerRegistry
from edsdk_session.types import DownloadedImage

IMAGE = DownloadedImage(path="/tmp/IMG_0001.JPG", filename="IMG_0001.JPG", size=10, timestamp=0)


@pytest.fixture
def registry() -> ListenerRegistry:
    return ListenerRegistry()


class TestSubscribe:
    def test_publish_in_subscription_order(self, registry) -> None:
        order = []
        registry.subscribe(lambda image: order.append("first"))
        registry.subscribe(lambda image: order.append("second"))

        assert registry.publish(IMAGE) == 2
        assert order == ["first", "second"]

    def test_unsubscribe_removes_exactly_that_listener(self, registry) -> None:
        calls = []
        listener = calls.append
        unsubscribe_first = registry.subscribe(listener)
        registry.subscribe(listener)

        unsubscribe_first()
        registry.publish(IMAGE)

        assert calls == [IMAGE]

    def test_unsubscribe_is_idempotent(self, registry) -> None:
        unsubscribe = registry.subscribe(lambda image: None)
        unsubscribe()
        unsubscribe()
        assert len(registry) == 0

    def test_publish_without_listeners_returns_zero(self, registry) -> None:
        assert registry.publish(IMAGE) == 0

    def test_failing_listener_does_not_block_others(self, registry, caplog) -> None:
        received = []

        def broken(image):
            raise ValueError("boom")

        registry.subscribe(broken)
        registry.subscribe(received.append)

        with caplog.at_level(logging.ERROR, logger="edsdk_session.listeners"):
            assert registry.publish(IMAGE) == 2

        assert received == [IMAGE]
        assert "boom" in caplog.text

    def test_unsubscribe_during_publish(self, registry) -> None:
        received = []
        unsubscribers = []

        def once(image):
            received.append(image)
            unsubscribers[0]()

        unsubscribers.append(registry.subscribe(once))
        registry.publish(IMAGE)
        registry.publish(IMAGE)

        assert received == [IMAGE]


class TestSubscribeQueue:
    def test_images_arrive_on_queue(self, registry) -> None:
        async def scenario():
            queue, unsubscribe = registry.subscribe_queue()
            registry.publish(IMAGE)
            image = await asyncio.wait_for(queue.get(), timeout=1)
            unsubscribe()
            return image

        assert asyncio.run(scenario()) == IMAGE
        assert len(registry) == 0

    def test_closed_loop_is_skipped(self, registry) -> None:
        loop = asyncio.new_event_loop()
        _queue, _unsubscribe = registry.subscribe_queue(loop)
        loop.close()
        assert registry.publish(IMAGE) == 1
