"""
Product activity stream on the Firebase Realtime Database.

Writers append audit events under one path; readers hold a standing
subscription that receives the whole current collection on every change.
"""

import asyncio
import copy
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import db

from backend.src.core.config import settings
from backend.src.core.firebase import get_firebase_app
from backend.src.core.logging import get_logger
from backend.src.models.product_event import ProductEvent

logger = get_logger(__name__)

Snapshot = Dict[str, Any]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


def _split_path(path: str) -> List[str]:
    return [segment for segment in (path or "").split("/") if segment]


def _put_into(node: Dict[str, Any], segments: List[str], value: Any) -> None:
    head, rest = segments[0], segments[1:]
    if not rest:
        if value is None:
            node.pop(head, None)
        else:
            node[head] = value
        return

    child = node.get(head)
    if not isinstance(child, dict):
        if value is None:
            return
        child = {}
        node[head] = child
    _put_into(child, rest, value)
    # the database drops nodes left without children
    if not child:
        node.pop(head, None)


class SnapshotReconciler:
    """
    Folds listener events into a full copy of the collection.

    The listener first sends a ``put`` at ``/`` with everything under the
    path, then ``put``/``patch`` events relative to it. ``None`` deletes.
    """

    def __init__(self) -> None:
        self._snapshot: Snapshot = {}

    def apply(self, event_type: str, path: str, data: Any) -> Snapshot:
        """
        Apply one event and return the resulting snapshot.

        Raises:
            ValueError: If the event cannot be applied
        """
        segments = _split_path(path)

        if event_type == "put":
            self._put(segments, data)
        elif event_type == "patch":
            if not isinstance(data, dict):
                raise ValueError("patch event without a mapping payload")
            for key, value in data.items():
                self._put(segments + _split_path(key), value)
        else:
            raise ValueError(f"Unsupported event type: {event_type}")

        return copy.deepcopy(self._snapshot)

    def _put(self, segments: List[str], value: Any) -> None:
        if not segments:
            if value is None:
                self._snapshot = {}
            elif isinstance(value, dict):
                self._snapshot = copy.deepcopy(value)
            else:
                raise ValueError("collection root must hold a mapping")
            return
        _put_into(self._snapshot, segments, copy.deepcopy(value))


class StreamSubscription:
    """
    Handle owning one standing listener.

    ``cancel`` releases the listener the first time it is called and does
    nothing afterwards. No callback runs once it has been called.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._registration: Optional[db.ListenerRegistration] = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return not self._cancelled

    def _attach(self, registration: db.ListenerRegistration) -> None:
        with self._lock:
            if not self._cancelled:
                self._registration = registration
                return
        registration.close()

    def cancel(self) -> None:
        """Release the listener."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            registration, self._registration = self._registration, None

        if registration is not None:
            registration.close()
        logger.info("Stream subscription cancelled", extra={"path": self.path})


class ProductLogStream:
    """Append-only product event collection."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or settings.PRODUCT_LOG_PATH

    def _reference(self, path: Optional[str] = None) -> db.Reference:
        return db.reference(path or self.path, app=get_firebase_app())

    async def publish(self, event: ProductEvent) -> bool:
        """
        Append an event to the stream.

        Returns:
            True if the store accepted the record. Failures are logged and
            reported as False, never raised.
        """
        record = event.to_record()
        try:
            ref = await asyncio.to_thread(lambda: self._reference().push(record))
        except Exception as e:
            logger.error(
                "Failed to publish product event",
                extra={
                    "action": record.get("action"),
                    "product_id": record.get("productId"),
                    "error": str(e),
                },
                exc_info=True,
            )
            return False

        logger.info(
            "Product event published",
            extra={
                "action": record["action"],
                "product_id": record["productId"],
                "event_key": getattr(ref, "key", None),
            },
        )
        return True

    def subscribe(
        self,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> StreamSubscription:
        """
        Listen to the stream.

        ``on_snapshot`` receives the complete keyed collection after every
        change, starting with the initial load. ``on_error`` is called when
        the listener cannot start or an event cannot be applied.

        Returns:
            Subscription handle; call ``cancel`` exactly once at teardown
        """
        subscription = StreamSubscription(self.path)
        reconciler = SnapshotReconciler()

        def _listener(event: db.Event) -> None:
            if not subscription.active:
                return
            try:
                snapshot = reconciler.apply(event.event_type, event.path, event.data)
            except Exception as e:
                logger.error(
                    "Could not apply stream event",
                    extra={"path": self.path, "event_type": event.event_type, "error": str(e)},
                )
                on_error(e)
                return
            if subscription.active:
                on_snapshot(snapshot)

        try:
            registration = self._reference().listen(_listener)
        except Exception as e:
            logger.error(
                "Failed to open stream listener",
                extra={"path": self.path, "error": str(e)},
                exc_info=True,
            )
            on_error(e)
            subscription.cancel()
            return subscription

        subscription._attach(registration)
        logger.info("Stream subscription opened", extra={"path": self.path})
        return subscription

    async def check_connection(self) -> bool:
        """
        Write and remove a probe record to confirm the store is reachable.

        Returns:
            True if the round trip succeeded
        """
        probe = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": "connected",
            "region": settings.FIREBASE_DATABASE_REGION,
            "projectId": settings.FIREBASE_PROJECT_ID,
        }

        def _round_trip() -> None:
            ref = self._reference("connection_test")
            ref.set(probe)
            ref.delete()

        try:
            await asyncio.to_thread(_round_trip)
        except Exception as e:
            hint = None
            if "different region" in str(e):
                hint = "Check FIREBASE_DATABASE_REGION"
            elif "Permission denied" in str(e):
                hint = "Check database rules and service account permissions"
            logger.error(
                "Realtime Database connection check failed",
                extra={
                    "region": settings.FIREBASE_DATABASE_REGION,
                    "error": str(e),
                    "hint": hint,
                },
            )
            return False

        logger.info(
            "Realtime Database connected",
            extra={"region": settings.FIREBASE_DATABASE_REGION},
        )
        return True


# Global stream instance
product_log_stream = ProductLogStream()
