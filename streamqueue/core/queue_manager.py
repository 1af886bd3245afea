"""
An ordered collection of queue items with a live cursor.

The cursor is an index into the live sequence. Every structural mutation keeps
it pointing at the same queue entry by re-deriving the index from the entry it
referenced before the mutation, and the delegate is notified only when the
resolved current entry actually changes.
"""

import logging
from collections.abc import Iterable
from typing import Protocol

from streamqueue.exceptions import InvalidIndexError
from streamqueue.models.item import QueueItem

log = logging.getLogger(__name__)


class QueueManagerDelegate(Protocol):
    """Receives cursor events, synchronously, from the operation causing them."""

    def on_current_item_changed(self) -> None: ...

    def on_skipped_to_same_current_item(self) -> None: ...

    def on_received_first_item(self) -> None: ...


class _Slot:
    """A queue position. Distinct per insertion, even for a repeated item."""

    __slots__ = ("item",)

    def __init__(self, item: QueueItem):
        self.item = item


class QueueManager:
    """Holds the queue's items and the index of the current one (-1 when none)."""

    def __init__(self, delegate: QueueManagerDelegate | None = None):
        self.delegate = delegate
        self._slots: list[_Slot] = []
        self._current_index = -1

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def items(self) -> list[QueueItem]:
        return [slot.item for slot in self._slots]

    @property
    def current(self) -> QueueItem | None:
        slot = self._current_slot()
        return slot.item if slot else None

    @property
    def previous_items(self) -> list[QueueItem]:
        """Items before the cursor."""
        if self._current_index < 0:
            return []
        return [slot.item for slot in self._slots[: self._current_index]]

    @property
    def next_items(self) -> list[QueueItem]:
        """Items after the cursor. Before the first jump that is every item."""
        return [slot.item for slot in self._slots[self._current_index + 1 :]]

    def _current_slot(self) -> _Slot | None:
        if 0 <= self._current_index < len(self._slots):
            return self._slots[self._current_index]
        return None

    def _reanchor(self, anchor: _Slot | None) -> None:
        """Points the cursor back at `anchor` after the sequence was reshaped."""
        if anchor is None:
            return
        for index, slot in enumerate(self._slots):
            if slot is anchor:
                self._current_index = index
                return

    def _check_index(self, index: int, name: str = "index", upper_bound: int | None = None):
        if upper_bound is None:
            upper_bound = len(self._slots)
        if not isinstance(index, int) or not 0 <= index < upper_bound:
            raise InvalidIndexError(index, name, upper_bound)

    def _notify_if_changed(self, before: _Slot | None) -> None:
        if self._current_slot() is not before:
            self._fire_current_item_changed()

    def _fire_current_item_changed(self) -> None:
        log.debug(f"Current index is now {self._current_index} of {len(self._slots)}")
        if self.delegate:
            self.delegate.on_current_item_changed()

    @staticmethod
    def _to_slots(items: QueueItem | Iterable[QueueItem]) -> list[_Slot]:
        if isinstance(items, QueueItem):
            items = [items]
        return [_Slot(item) for item in items]

    def replace_current(self, item: QueueItem) -> None:
        """Clears the queue and makes `item` its only, current, entry."""
        before = self._current_slot()
        self._slots = [_Slot(item)]
        self._current_index = 0
        self._notify_if_changed(before)

    def add(self, items: QueueItem | Iterable[QueueItem]) -> None:
        """
        Appends one or more items to the end of the queue.

        Adding to an empty queue fires `on_received_first_item` afterwards so the
        owner can jump to the first entry.
        """
        new_slots = self._to_slots(items)
        if not new_slots:
            return
        was_empty = not self._slots
        self._slots.extend(new_slots)
        if was_empty and self.delegate:
            self.delegate.on_received_first_item()

    def add_at(self, items: QueueItem | Iterable[QueueItem], index: int) -> None:
        """
        Inserts items before position `index` (which may equal the queue length).

        Raises:
            InvalidIndexError: If `index` is outside [0, len(queue)].
        """
        self._check_index(index, upper_bound=len(self._slots) + 1)
        new_slots = self._to_slots(items)
        if not new_slots:
            return
        was_empty = not self._slots
        anchor = self._current_slot()
        self._slots[index:index] = new_slots
        self._reanchor(anchor)
        if was_empty and self.delegate:
            self.delegate.on_received_first_item()

    def remove_item(self, index: int) -> QueueItem:
        """
        Removes and returns the item at `index`.

        Removing the current item leaves the cursor on the same position, now
        holding the following item, or on the new last item if it was last.

        Raises:
            InvalidIndexError: If `index` is out of bounds.
        """
        self._check_index(index)
        before = self._current_slot()
        removed = self._slots.pop(index)
        if index < self._current_index:
            self._current_index -= 1
        elif index == self._current_index:
            self._current_index = min(self._current_index, len(self._slots) - 1)
        self._notify_if_changed(before)
        return removed.item

    def move_item(self, from_index: int, to_index: int) -> None:
        """
        Moves an item to a new position. The cursor follows its item.

        No notification is fired: the current item itself does not change.

        Raises:
            InvalidIndexError: If either index is out of bounds.
        """
        self._check_index(from_index, "from_index")
        self._check_index(to_index, "to_index")
        anchor = self._current_slot()
        slot = self._slots.pop(from_index)
        self._slots.insert(to_index, slot)
        self._reanchor(anchor)

    def _skip(self, direction: int, wrap: bool) -> bool:
        count = len(self._slots)
        if count == 0:
            return False

        if self._current_index < 0:
            index = 0 if direction > 0 else (count - 1 if wrap else -1)
        elif count == 1:
            if wrap and self.delegate:
                self.delegate.on_skipped_to_same_current_item()
            return False
        else:
            index = self._current_index + direction
            if wrap:
                index %= count

        if not 0 <= index < count:
            return False
        self._current_index = index
        self._fire_current_item_changed()
        return True

    def next(self, wrap: bool = False) -> bool:
        """
        Advances the cursor by one.

        Returns:
            True if the cursor moved. At the end of the queue this is a no-op
            unless `wrap` is set, in which case the cursor returns to 0.
        """
        return self._skip(1, wrap)

    def previous(self, wrap: bool = False) -> bool:
        """Steps the cursor back by one. See `next`."""
        return self._skip(-1, wrap)

    def jump(self, index: int) -> None:
        """
        Sets the cursor to `index`. Always notifies, even for the current index.

        Raises:
            InvalidIndexError: If `index` is out of bounds.
        """
        self._check_index(index)
        self._current_index = index
        self._fire_current_item_changed()

    def remove_upcoming_items(self) -> None:
        """Drops every item after the cursor."""
        del self._slots[self._current_index + 1 :]

    def remove_previous_items(self) -> None:
        """Drops every item before the cursor, which becomes 0."""
        if self._current_index <= 0:
            return
        del self._slots[: self._current_index]
        self._current_index = 0

    def clear_queue(self) -> None:
        """Empties the queue and reports that there is no current item."""
        self._slots.clear()
        self._current_index = -1
        self._fire_current_item_changed()
