"""
Change notification channels.

Two distinct transports keep every view of a collection current:

- EventBus: in-process publish/subscribe. Listeners run synchronously,
  in subscription order, as part of the mutation that emitted the event.
- StorageBroadcast: cross-tab storage-change broadcast. Every write to a
  storage area is delivered to the other areas sharing the broadcast.
  Delivery is best-effort and asynchronous relative to the writer; the
  writing area never receives its own events.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from grimoire.models.collection import CollectionKey, decode_items
from grimoire.models.spell import SpellData
from grimoire.services.validation import sanitize_collection

logger = logging.getLogger(__name__)


class CollectionEvent(str, Enum):
    """In-process topics, one per collection-changed condition."""

    SPELLBOOK_UPDATED = "spellbook_updated"
    SESSION_DECK_UPDATED = "session_deck_updated"
    DAILY_SPELLS_UPDATED = "daily_spells_updated"
    SPELL_ADDED_TO_SPELLBOOK = "spell_added_to_spellbook"
    SPELL_REMOVED_FROM_SPELLBOOK = "spell_removed_from_spellbook"
    SPELL_ADDED_TO_SESSION = "spell_added_to_session"
    SPELL_BURNED_FROM_SESSION = "spell_burned_from_session"
    SESSION_CLEARED = "session_cleared"


# The "<collection> updated" topic each collection fires after any change
UPDATED_EVENTS: dict[CollectionKey, CollectionEvent] = {
    CollectionKey.SPELLBOOK: CollectionEvent.SPELLBOOK_UPDATED,
    CollectionKey.SESSION_DECK: CollectionEvent.SESSION_DECK_UPDATED,
    CollectionKey.DAILY_SELECTION: CollectionEvent.DAILY_SPELLS_UPDATED,
}


@dataclass(frozen=True)
class CollectionChange:
    """Payload of every in-process event: the collection after the mutation."""

    key: CollectionKey
    items: list[SpellData]
    spell: SpellData | None = None


Listener = Callable[[CollectionChange], Any]


class EventBus:
    """In-process publish/subscribe channel for collection changes."""

    def __init__(self) -> None:
        self._listeners: dict[CollectionEvent, list[Listener]] = {}

    def on(self, event: CollectionEvent, listener: Listener) -> Callable[[], None]:
        """
        Subscribe to an event.

        Returns:
            A function that removes this subscription.
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(self, event: CollectionEvent, change: CollectionChange) -> None:
        """Deliver a change to every listener; a failing listener is logged and skipped."""
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(change)
            except Exception:
                logger.exception("event_listener_failed", extra={"event": event.value})

    def off(self, event: CollectionEvent) -> None:
        """Remove all listeners for an event."""
        self._listeners.pop(event, None)

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    def listener_count(self, event: CollectionEvent) -> int:
        return len(self._listeners.get(event, []))


@dataclass(frozen=True)
class StorageEvent:
    """
    A write to durable storage, as seen by other tabs.

    new_value is None when the key was removed.
    """

    key: str
    old_value: str | None
    new_value: str | None
    origin: str

    @property
    def collection(self) -> CollectionKey | None:
        """The named collection written, or None for any other key."""
        try:
            return CollectionKey(self.key)
        except ValueError:
            return None

    @property
    def items(self) -> list[SpellData] | None:
        """
        The collection's valid items after the write, decoded from new_value.

        A removed collection has no items ([]). None if the key is not a
        named collection or the stored value has no recognizable item list.
        """
        if self.collection is None:
            return None
        if self.new_value is None:
            return []
        try:
            items = decode_items(json.loads(self.new_value))
        except ValueError:
            return None
        return None if items is None else sanitize_collection(items)


class StorageSubscription:
    """One tab's queue of storage events written by other tabs."""

    def __init__(self, broadcast: "StorageBroadcast", tab_id: str) -> None:
        self.tab_id = tab_id
        self._broadcast = broadcast
        self._queue: asyncio.Queue[StorageEvent] = asyncio.Queue()

    def _deliver(self, event: StorageEvent) -> None:
        self._queue.put_nowait(event)

    async def get(self) -> StorageEvent:
        """Wait for the next storage event."""
        return await self._queue.get()

    def get_nowait(self) -> StorageEvent | None:
        """Next pending storage event, or None."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Stop receiving events."""
        self._broadcast.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[StorageEvent]:
        return self

    async def __anext__(self) -> StorageEvent:
        return await self.get()


class StorageBroadcast:
    """
    Cross-tab storage-change broadcast.

    Every storage area publishes its writes here. Subscribers receive the
    writes of every other tab; events are queued, so readers consume them
    on their own schedule.
    """

    def __init__(self) -> None:
        self._subscriptions: list[StorageSubscription] = []

    def subscribe(self, tab_id: str) -> StorageSubscription:
        """Receive storage events written by tabs other than tab_id."""
        subscription = StorageSubscription(self, tab_id)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: StorageSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: StorageEvent) -> int:
        """
        Queue an event for every subscriber outside the writing tab.

        Returns:
            Number of subscriptions the event was queued for.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.tab_id == event.origin:
                continue
            subscription._deliver(event)
            delivered += 1
        return delivered
