"""
Live product activity feed.

``ActivityFeed`` keeps an ordered, capped view of the product event stream
and a connection state. It has no UI of its own; ``render_feed`` turns it
into a Rich renderable for the terminal client.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from pydantic import ValidationError
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from backend.src.core.config import settings
from backend.src.core.logging import get_logger
from backend.src.core.realtime import ProductLogStream, StreamSubscription
from backend.src.models.product_event import ProductAction, ProductEvent

logger = get_logger(__name__)

FEED_ERROR_MESSAGE = "Failed to load activity logs"


class FeedState(str, Enum):
    """Connection state of the feed."""

    CONNECTING = "connecting"
    LIVE = "live"
    ERROR = "error"


@dataclass(frozen=True)
class FeedEntry:
    """One event in the feed, keyed by its store key."""

    id: str
    event: ProductEvent
    occurred_at: datetime


def _parse_entry(key: str, record: Any) -> Optional[FeedEntry]:
    if not isinstance(record, Mapping):
        return None
    try:
        event = ProductEvent.model_validate(dict(record))
        return FeedEntry(id=key, event=event, occurred_at=event.occurred_at)
    except (ValidationError, ValueError) as e:
        logger.warning(
            "Skipping unreadable feed record",
            extra={"event_key": key, "error": str(e)},
        )
        return None


def order_feed(snapshot: Optional[Mapping[str, Any]], limit: Optional[int] = None) -> List[FeedEntry]:
    """
    Turn a keyed stream snapshot into feed entries.

    Entries are newest first, ties broken by store key (later keys first),
    and at most ``limit`` long.

    Args:
        snapshot: Store key to event record, or None for an empty stream
        limit: Maximum number of entries, defaults to ``ACTIVITY_FEED_LIMIT``

    Returns:
        Ordered entries
    """
    limit = settings.ACTIVITY_FEED_LIMIT if limit is None else limit
    if not snapshot or limit <= 0:
        return []

    entries = [
        entry
        for entry in (_parse_entry(str(key), record) for key, record in snapshot.items())
        if entry is not None
    ]
    entries.sort(key=lambda entry: (entry.occurred_at, entry.id), reverse=True)
    return entries[:limit]


class ActivityFeed:
    """
    Subscribed view of the product event stream.

    Snapshots and errors arrive on the store's listener thread, so every state
    change happens under a lock. ``on_change`` is called after each change,
    outside the lock.
    """

    def __init__(
        self,
        stream: ProductLogStream,
        limit: Optional[int] = None,
        on_change: Optional[Callable[["ActivityFeed"], None]] = None,
    ):
        self.stream = stream
        self.limit = settings.ACTIVITY_FEED_LIMIT if limit is None else limit
        self.on_change = on_change

        self._lock = threading.Lock()
        self._state = FeedState.CONNECTING
        self._entries: List[FeedEntry] = []
        self._error: Optional[str] = None
        self._subscription: Optional[StreamSubscription] = None
        self._started = False
        self._closed = False

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def entries(self) -> List[FeedEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Subscribe to the stream. Later calls do nothing."""
        with self._lock:
            if self._started or self._closed:
                return
            self._started = True

        subscription = self.stream.subscribe(self._on_snapshot, self._on_error)

        with self._lock:
            if not self._closed:
                self._subscription = subscription
                return
        # closed while subscribing
        subscription.cancel()

    def close(self) -> None:
        """Cancel the subscription. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscription, self._subscription = self._subscription, None

        if subscription is not None:
            subscription.cancel()
        logger.info("Activity feed closed")

    def _on_snapshot(self, snapshot: Mapping[str, Any]) -> None:
        entries = order_feed(snapshot, self.limit)
        with self._lock:
            if self._closed or self._state is FeedState.ERROR:
                return
            self._entries = entries
            self._state = FeedState.LIVE
        self._notify()

    def _on_error(self, error: Exception) -> None:
        with self._lock:
            if self._closed or self._state is FeedState.ERROR:
                return
            self._state = FeedState.ERROR
            self._error = FEED_ERROR_MESSAGE
        logger.error("Activity feed failed", extra={"error": str(error)})
        self._notify()

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception as e:
            logger.error("Activity feed change handler failed", extra={"error": str(e)}, exc_info=True)


# Rendering

_ACTION_TEXT = {
    ProductAction.CREATE_PRODUCT: "created product",
    ProductAction.UPDATE_PRODUCT: "updated product",
    ProductAction.DELETE_PRODUCT: "deleted product",
}

_ACTION_STYLE = {
    ProductAction.CREATE_PRODUCT: "green",
    ProductAction.UPDATE_PRODUCT: "blue",
    ProductAction.DELETE_PRODUCT: "red",
}

_STATE_BADGE = {
    FeedState.CONNECTING: ("Connecting", "yellow"),
    FeedState.LIVE: ("Live", "green"),
    FeedState.ERROR: ("Disconnected", "red"),
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def relative_age(then: datetime, now: datetime) -> str:
    """Coarse age such as ``5 minutes ago``."""
    seconds = max(0, int((now - then).total_seconds()))
    if seconds < 60:
        return "less than a minute ago"
    if seconds < 3600:
        return f"{_plural(seconds // 60, 'minute')} ago"
    if seconds < 86400:
        return f"about {_plural(seconds // 3600, 'hour')} ago"
    return f"{_plural(seconds // 86400, 'day')} ago"


def describe_entry(entry: FeedEntry) -> str:
    """One-line description, e.g. ``created product "Widget"``."""
    text = _ACTION_TEXT.get(entry.event.action, "performed action on product")
    if entry.event.product_name:
        text = f'{text} "{entry.event.product_name}"'
    return text


def render_feed(feed: ActivityFeed, now: Optional[datetime] = None) -> RenderableType:
    """
    Render the feed as a Rich panel.

    Args:
        feed: Feed to render
        now: Reference time for relative ages, defaults to the current time
    """
    now = now or datetime.now(timezone.utc)
    label, style = _STATE_BADGE[feed.state]
    badge = Text.assemble(("● ", style), (label, f"bold {style}"))

    if feed.state is FeedState.CONNECTING:
        body: RenderableType = Text("Connecting to the activity stream...", style="dim")
    elif feed.state is FeedState.ERROR:
        body = Text(feed.error or FEED_ERROR_MESSAGE, style="red")
    else:
        entries = feed.entries
        if not entries:
            body = Text("No activity yet", style="dim")
        else:
            table = Table(show_header=True, header_style="bold", expand=True)
            table.add_column("Action", no_wrap=True)
            table.add_column("Activity")
            table.add_column("By", style="cyan")
            table.add_column("When", style="dim", no_wrap=True)
            for entry in entries:
                action = entry.event.action
                table.add_row(
                    Text(action.value.replace("_", " "), style=_ACTION_STYLE.get(action, "white")),
                    describe_entry(entry),
                    entry.event.user_email or "",
                    relative_age(entry.occurred_at, now),
                )
            body = table

    return Panel(
        Group(badge, Text("Real-time product activity", style="dim"), body),
        title="[bold]Activity Log[/bold]",
        border_style=style,
    )
