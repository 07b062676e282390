"""Tests for the live activity feed and its terminal rendering."""

import io
import logging
from datetime import datetime, timedelta, timezone

import pytest
from rich.console import Console
from rich.live import Live

from backend.src.core.logging import setup_console_logging, setup_logging
from backend.src.services.activity_feed import (
    FEED_ERROR_MESSAGE,
    ActivityFeed,
    FeedState,
    order_feed,
    relative_age,
    render_feed,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def record(action="CREATE_PRODUCT", product_id=1, name="Widget", minutes_ago=0, email=None):
    data = {
        "action": action,
        "productId": product_id,
        "productName": name,
        "timestamp": (NOW - timedelta(minutes=minutes_ago)).isoformat(),
    }
    if email:
        data["userEmail"] = email
    return data


class FakeSubscription:
    def __init__(self):
        self.cancelled = 0

    def cancel(self):
        self.cancelled += 1


class FakeStream:
    """Captures the callbacks handed to ``subscribe``."""

    def __init__(self):
        self.subscribe_calls = 0
        self.subscription = FakeSubscription()
        self.on_snapshot = None
        self.on_error = None

    def subscribe(self, on_snapshot, on_error):
        self.subscribe_calls += 1
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        return self.subscription


def rendered(feed):
    console = Console(record=True, width=120)
    console.print(render_feed(feed, now=NOW))
    return console.export_text()


class TestOrderFeed:
    """Snapshot to ordered entries."""

    def test_newest_first_with_store_keys_as_ids(self):
        snapshot = {
            "-Na": record(product_id=1, minutes_ago=10),
            "-Nb": record(product_id=2, minutes_ago=0),
            "-Nc": record(product_id=3, minutes_ago=5),
        }

        entries = order_feed(snapshot, limit=50)

        assert [e.id for e in entries] == ["-Nb", "-Nc", "-Na"]
        assert [e.event.product_id for e in entries] == [2, 3, 1]

    def test_equal_timestamps_fall_back_to_key(self):
        snapshot = {"-Na": record(product_id=1), "-Nb": record(product_id=2)}

        assert [e.id for e in order_feed(snapshot, limit=50)] == ["-Nb", "-Na"]

    def test_capped_at_limit(self):
        snapshot = {f"-N{i:03d}": record(product_id=i, minutes_ago=i) for i in range(1, 61)}

        entries = order_feed(snapshot, limit=50)

        assert len(entries) == 50
        assert entries[0].event.product_id == 1
        assert entries[-1].event.product_id == 50

    def test_unreadable_records_are_skipped(self):
        snapshot = {
            "-Na": record(),
            "-Nb": {"action": "RENAME_PRODUCT", "productId": 1, "timestamp": NOW.isoformat()},
            "-Nc": {"action": "CREATE_PRODUCT", "productId": 1, "timestamp": "yesterday"},
            "-Nd": "junk",
        }

        assert [e.id for e in order_feed(snapshot, limit=50)] == ["-Na"]

    @pytest.mark.parametrize("snapshot", [None, {}])
    def test_empty_stream(self, snapshot):
        assert order_feed(snapshot, limit=50) == []


class TestActivityFeed:
    """Feed state machine and subscription ownership."""

    def test_starts_connecting_and_subscribes_once(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)

        assert feed.state is FeedState.CONNECTING
        feed.start()
        feed.start()

        assert stream.subscribe_calls == 1

    def test_snapshot_makes_feed_live(self):
        stream = FakeStream()
        changes = []
        feed = ActivityFeed(stream, limit=50, on_change=changes.append)
        feed.start()

        stream.on_snapshot({"-Na": record()})

        assert feed.state is FeedState.LIVE
        assert [e.id for e in feed.entries] == ["-Na"]
        assert changes == [feed]

    def test_empty_snapshot_is_live_not_loading(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()

        stream.on_snapshot({})

        assert feed.state is FeedState.LIVE
        assert feed.entries == []

    def test_snapshot_replaces_previous_view(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()

        stream.on_snapshot({"-Na": record(product_id=1)})
        stream.on_snapshot({"-Nb": record(product_id=2)})

        assert [e.id for e in feed.entries] == ["-Nb"]

    def test_error_is_terminal(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()

        stream.on_error(RuntimeError("permission denied"))
        stream.on_snapshot({"-Na": record()})

        assert feed.state is FeedState.ERROR
        assert feed.error == FEED_ERROR_MESSAGE
        assert feed.entries == []

    def test_close_cancels_once_and_ignores_later_updates(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()

        feed.close()
        feed.close()
        stream.on_snapshot({"-Na": record()})

        assert stream.subscription.cancelled == 1
        assert feed.closed
        assert feed.state is FeedState.CONNECTING

    def test_close_before_start_never_subscribes(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)

        feed.close()
        feed.start()

        assert stream.subscribe_calls == 0


class TestRenderFeed:
    """Terminal rendering."""

    def test_connecting(self):
        output = rendered(ActivityFeed(FakeStream(), limit=50))

        assert "Connecting" in output

    def test_empty_live_feed(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()
        stream.on_snapshot({})

        output = rendered(feed)

        assert "Live" in output
        assert "No activity yet" in output

    def test_entries(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()
        stream.on_snapshot(
            {
                "-Na": record(
                    action="DELETE_PRODUCT", name="Widget", minutes_ago=5, email="ana@stockroom.io"
                )
            }
        )

        output = rendered(feed)

        assert "DELETE PRODUCT" in output
        assert 'deleted product "Widget"' in output
        assert "ana@stockroom.io" in output
        assert "5 minutes ago" in output

    def test_error(self):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)
        feed.start()
        stream.on_error(RuntimeError("boom"))

        output = rendered(feed)

        assert "Disconnected" in output
        assert FEED_ERROR_MESSAGE in output


class TestRelativeAge:
    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(seconds=10), "less than a minute ago"),
            (timedelta(minutes=1), "1 minute ago"),
            (timedelta(minutes=5), "5 minutes ago"),
            (timedelta(hours=2), "about 2 hours ago"),
            (timedelta(days=3), "3 days ago"),
            (timedelta(minutes=-5), "less than a minute ago"),
        ],
    )
    def test_buckets(self, delta, expected):
        assert relative_age(NOW - delta, NOW) == expected


@pytest.fixture
def feed_console():
    """Console with log records routed through it, as ``watch`` does."""
    console = Console(file=io.StringIO(), width=200)
    setup_console_logging(console)
    yield console
    setup_logging()


class TestFeedLogging:
    def test_log_records_render_through_the_live_console(self, feed_console, capsys):
        stream = FakeStream()
        feed = ActivityFeed(stream, limit=50)

        with Live(render_feed(feed, now=NOW), console=feed_console, auto_refresh=False) as live:
            feed.start()
            stream.on_snapshot(
                {
                    "-Na": record(),
                    "-Nb": {"action": "CREATE_PRODUCT", "productId": 2, "timestamp": "yesterday"},
                }
            )
            live.update(render_feed(feed, now=NOW), refresh=True)

        output = feed_console.file.getvalue()
        assert "Skipping unreadable feed record" in output
        assert "event_key=-Nb" in output
        assert 'created product "Widget"' in output
        assert "Skipping unreadable feed record" not in capsys.readouterr().out
        assert [handler.console for handler in logging.getLogger().handlers] == [feed_console]
