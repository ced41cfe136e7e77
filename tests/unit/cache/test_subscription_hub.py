"""Tests for cache event fan-out."""

import logging

from multicache.cache.events import CacheEvent, CacheEventType, SubscriptionHub


def make_event(key="user:1", event_type=CacheEventType.CREATED):
    return CacheEvent(key=key, type=event_type, value="v")


class TestCacheEvent:
    def test_type_helpers(self):
        event = make_event(event_type=CacheEventType.EXPIRED)

        assert event.is_expired
        assert not event.is_created
        assert "expired" in str(event)


class TestSubscriptionHub:
    """Test subscribe/notify behaviour."""

    def test_key_subscriber_only_sees_its_key(self, recorder):
        hub = SubscriptionHub()
        hub.subscribe("user:1", recorder)

        hub.notify(make_event("user:1"))
        hub.notify(make_event("user:2"))

        assert [e.key for e in recorder.events] == ["user:1"]

    def test_global_subscriber_sees_every_key(self, recorder):
        hub = SubscriptionHub()
        hub.subscribe_all(recorder)

        hub.notify(make_event("user:1"))
        hub.notify(make_event("user:2"))

        assert len(recorder.events) == 2
        assert hub.has_subscribers("anything")

    def test_unsubscribe(self, recorder):
        hub = SubscriptionHub()
        hub.subscribe("user:1", recorder)
        hub.unsubscribe("user:1", recorder)
        hub.unsubscribe("never-subscribed", recorder)

        hub.notify(make_event("user:1"))

        assert recorder.events == []
        assert not hub.has_subscribers("user:1")
        assert hub.key_subscriber_count == 0

    def test_unsubscribe_all(self, recorder):
        hub = SubscriptionHub()
        hub.subscribe_all(recorder)
        hub.unsubscribe_all(recorder)

        hub.notify(make_event())

        assert recorder.events == []
        assert not hub.has_any_subscribers()

    def test_failing_subscriber_does_not_block_others(self, recorder, caplog):
        hub = SubscriptionHub()

        def explode(event):
            raise RuntimeError("subscriber bug")

        hub.subscribe("user:1", explode)
        hub.subscribe("user:1", recorder)
        hub.subscribe_all(explode)

        with caplog.at_level(logging.ERROR):
            hub.notify(make_event("user:1"))

        assert len(recorder.events) == 1
        assert "Cache subscriber error for key user:1" in caplog.text
        assert "Cache global subscriber error" in caplog.text

    def test_callback_may_unsubscribe_during_notify(self, recorder):
        hub = SubscriptionHub()

        def once(event):
            hub.unsubscribe("user:1", once)

        hub.subscribe("user:1", once)
        hub.subscribe("user:1", recorder)

        hub.notify(make_event("user:1"))
        hub.notify(make_event("user:1"))

        assert len(recorder.events) == 2
        assert hub.key_subscriber_count == 1

    def test_clear(self, recorder):
        hub = SubscriptionHub()
        hub.subscribe("user:1", recorder)
        hub.subscribe_all(recorder)

        hub.clear()

        assert hub.key_subscriber_count == 0
        assert hub.global_subscriber_count == 0
