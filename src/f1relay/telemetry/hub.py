"""Broadcast hub: fans each decoded record out to every live subscriber.

The hub is the only owner of the subscriber set.  WebSocket handlers call
:meth:`BroadcastHub.register` / :meth:`BroadcastHub.unregister`; the ingest
loop calls :meth:`BroadcastHub.broadcast`.  Both paths go through an
``asyncio.Lock`` and delivery always iterates a snapshot, so a join or leave
during a broadcast never sees a half-updated set.

Delivery is best-effort.  Each send is bounded by ``send_timeout``; a send
that raises or times out moves the subscriber to ``EVICTED`` for good and its
channel is closed in the background.  Sends run concurrently so one stalled
peer costs the others at most ``send_timeout``.  A subscriber evicted for a
failed send is never accepted again.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from f1relay.errors import HubClosedError

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)

# Upper bound on how long closing an evicted channel may take.
_CLOSE_TIMEOUT = 1.0


class Subscriber(Protocol):
    """An outbound channel the hub can push messages to.

    ``send`` raises on a closed or broken channel.  Implementations must be
    hashable and weakly referenceable; a plain class (identity hashing, no
    ``__slots__``) is both.
    """

    async def send(self, message: Any) -> None: ...

    async def close(self) -> None: ...


class SubscriberState(enum.Enum):
    ACTIVE = "active"
    EVICTED = "evicted"


@dataclass(eq=False)
class Subscription:
    """Hub-side bookkeeping for one subscriber.

    ``ACTIVE`` -> ``EVICTED`` is the only transition; there is no way back.
    """

    subscriber: Subscriber
    state: SubscriberState = SubscriberState.ACTIVE
    delivered: int = 0
    reason: str | None = None

    @property
    def active(self) -> bool:
        return self.state is SubscriberState.ACTIVE

    def evict(self, reason: str) -> None:
        if self.state is SubscriberState.EVICTED:
            return
        self.state = SubscriberState.EVICTED
        self.reason = reason


class BroadcastHub:
    """Single-writer distribution point for decoded telemetry records.

    Parameters:
        send_timeout: Seconds allowed for each per-subscriber send.
        encode: Optional serializer applied once per broadcast; subscribers
            receive its result.  Defaults to passing the record through.
    """

    def __init__(
        self,
        *,
        send_timeout: float = 1.0,
        encode: Callable[[Any], Any] | None = None,
    ) -> None:
        if send_timeout <= 0:
            raise ValueError(f"send_timeout must be > 0, got {send_timeout}")
        self._send_timeout = send_timeout
        self._encode = encode
        self._subscriptions: dict[Hashable, Subscription] = {}
        self._lock = asyncio.Lock()
        self._broadcast_lock = asyncio.Lock()
        self._closed = False
        self._broadcast_count = 0
        self._evicted_count = 0
        # Subscribers dropped after a failed send, with the eviction reason.
        self._failed: weakref.WeakKeyDictionary[Any, str] = weakref.WeakKeyDictionary()
        self._close_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def register(self, subscriber: Subscriber) -> Subscription:
        """Add *subscriber* to the live set.

        Registering the same subscriber twice returns the existing
        subscription.  A subscriber previously evicted for a failed send is
        not added; it gets back an ``EVICTED`` subscription instead.

        Raises:
            HubClosedError: If :meth:`close` has been called.
        """
        async with self._lock:
            if self._closed:
                raise HubClosedError("Broadcast hub is closed")
            reason = self._failed.get(subscriber)
            if reason is not None:
                logger.info("Refusing subscriber evicted earlier (%s)", reason)
                return Subscription(subscriber, state=SubscriberState.EVICTED, reason=reason)
            existing = self._subscriptions.get(subscriber)
            if existing is not None:
                return existing
            subscription = Subscription(subscriber)
            self._subscriptions[subscriber] = subscription
            count = len(self._subscriptions)
        logger.info("Subscriber registered (total: %d)", count)
        return subscription

    async def unregister(self, subscriber: Subscriber) -> bool:
        """Remove *subscriber* after an orderly disconnect.

        Returns ``True`` if it was still registered.
        """
        async with self._lock:
            subscription = self._subscriptions.pop(subscriber, None)
            count = len(self._subscriptions)
        if subscription is None:
            return False
        subscription.evict("disconnected")
        logger.info("Subscriber disconnected (remaining: %d)", count)
        return True

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscriptions

    @property
    def subscriber_count(self) -> int:
        """Number of live subscribers."""
        return len(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def broadcast_count(self) -> int:
        """Number of records broadcast since the hub was created."""
        return self._broadcast_count

    @property
    def evicted_count(self) -> int:
        """Number of subscribers evicted after a failed send."""
        return self._evicted_count

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def broadcast(self, record: Any) -> int:
        """Deliver *record* to every live subscriber.

        Returns the number of subscribers that received it.  Failed
        subscribers are evicted; nothing is raised to the caller.
        """
        async with self._broadcast_lock:
            async with self._lock:
                if self._closed:
                    return 0
                snapshot = list(self._subscriptions.values())
            self._broadcast_count += 1
            if not snapshot:
                return 0

            message = self._encode(record) if self._encode is not None else record
            results = await asyncio.gather(*(self._deliver(sub, message) for sub in snapshot))

            failed = [sub for sub, ok in zip(snapshot, results, strict=True) if not ok]
            if failed:
                await self._evict(failed)
            return len(snapshot) - len(failed)

    async def _deliver(self, subscription: Subscription, message: Any) -> bool:
        try:
            await asyncio.wait_for(subscription.subscriber.send(message), timeout=self._send_timeout)
        except TimeoutError:
            subscription.evict("send timed out")
            logger.info("Subscriber send timed out after %.2fs, evicting", self._send_timeout)
            return False
        except Exception as exc:
            subscription.evict(f"send failed: {exc!r}")
            logger.info("Subscriber send failed, evicting: %s", exc)
            logger.debug("Send failure detail", exc_info=True)
            return False
        subscription.delivered += 1
        return True

    async def _evict(self, failed: list[Subscription]) -> None:
        async with self._lock:
            for sub in failed:
                # Only drop the entry if it is still this subscription.
                if self._subscriptions.get(sub.subscriber) is sub:
                    del self._subscriptions[sub.subscriber]
                    self._evicted_count += 1
                self._failed[sub.subscriber] = sub.reason or "evicted"
            remaining = len(self._subscriptions)
        logger.debug("Evicted %d subscriber(s) (remaining: %d)", len(failed), remaining)
        # Closing a dead peer can wait on its closing handshake; the ingest
        # path must not.
        for sub in failed:
            task = asyncio.create_task(self._close_quietly(sub.subscriber))
            self._close_tasks.add(task)
            task.add_done_callback(self._close_tasks.discard)

    @staticmethod
    async def _close_quietly(subscriber: Subscriber) -> None:
        with contextlib.suppress(Exception):
            await asyncio.wait_for(subscriber.close(), timeout=_CLOSE_TIMEOUT)

    @property
    def pending_closes(self) -> int:
        """Number of evicted subscribers whose channel is still closing."""
        return len(self._close_tasks)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Drain any in-flight broadcast, then close every subscriber.

        Also waits for channels of earlier evictions that are still closing.
        """
        async with self._broadcast_lock:
            async with self._lock:
                if self._closed:
                    return
                self._closed = True
                subscriptions = list(self._subscriptions.values())
                self._subscriptions.clear()
            for sub in subscriptions:
                sub.evict("hub closed")
            await asyncio.gather(
                *(self._close_quietly(sub.subscriber) for sub in subscriptions),
                *list(self._close_tasks),
            )
        logger.info("Broadcast hub closed (%d subscriber(s) released)", len(subscriptions))
