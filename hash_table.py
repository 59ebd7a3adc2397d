import logging
import operator
from enum import IntEnum
from typing import Iterator, List, Optional, Tuple, TypeVar

import numpy as np

from probe import (
    find_matches,
    folded_keys,
    next_match,
    primary_slot,
    primary_slots,
    probe_window,
    trailing_zeros,
)


logger = logging.getLogger(__name__)

INITIAL_CAPACITY = 256
MAX_LOAD_FACTOR = 0.5


class Control(IntEnum):
    EMPTY = 0
    OCCUPIED = 1
    DELETED = 2


class ContractViolation(ValueError):
    """Raised when a caller breaks the table or set contract: bad key, bad item, use after free."""


class OutOfMemory(MemoryError):
    """Raised when slot storage cannot be allocated on construction or growth."""


V = TypeVar('V')

Storage = Tuple[np.ndarray, List[Optional[int]], List[Optional[V]]]


def round_capacity(capacity: int) -> int:
    """
    :param capacity: The requested number of slots.
    :return: The smallest power of two that is >= capacity.
    """
    try:
        capacity = operator.index(capacity)
    except TypeError as e:
        raise ContractViolation(f"capacity must be an integer, got {type(capacity).__name__}") from e

    if capacity < 1:
        raise ContractViolation(f"capacity must be at least 1, got {capacity}")

    return 1 << (capacity - 1).bit_length()


def _as_key_(key) -> int:
    try:
        return operator.index(key)
    except TypeError as e:
        raise ContractViolation(f"key must be an integer, got {type(key).__name__}") from e


def _slot_storage_(capacity: int) -> Storage:
    try:
        return np.zeros(capacity, dtype=np.uint8), [None] * capacity, [None] * capacity
    except MemoryError as e:
        raise OutOfMemory(f"cannot allocate {capacity} slots") from e


class HashTable:
    """
    Open addressing map from integer keys to object references.

    Slots are probed linearly from the primary slot, at most MAX_CHAIN_LENGTH of them.
    The table doubles its capacity when half of the slots are in use, or when a
    probe window has no free slot left. Removed slots become tombstones, which
    insertions may reuse and a rehash discards.

    Values are stored by reference and never copied; None cannot be stored since it
    marks an absent value.
    """
    _control: Optional[np.ndarray]
    _keys: Optional[List[Optional[int]]]
    _values: Optional[List[Optional[V]]]
    _resident_keys: int
    _limit: int

    def __init__(self, capacity=INITIAL_CAPACITY):
        self._install_(_slot_storage_(round_capacity(capacity)))
        self._resident_keys = 0

    def _install_(self, storage: Storage):
        self._control, self._keys, self._values = storage
        self._limit = int(len(self._keys) * MAX_LOAD_FACTOR)

    def _check_alive_(self):
        if self._control is None:
            raise ContractViolation("table used after free()")

    def _find_(self, key: int) -> Tuple[bool, Optional[V], Optional[int]]:
        """
        Find the given key.

        :param key: The key to search for.
        :return: A tuple containing three elements
            - a boolean indicating if the key was found,
            - the value stored for the key (if found)
            - the slot of the key if found, otherwise the first free slot of the
              probe window, or None when the window has no free slot
        """
        capacity = len(self._keys)
        window = probe_window(primary_slot(key, capacity), capacity)
        states = self._control[window]

        matches = find_matches(Control.OCCUPIED, states)

        while matches != 0:
            position, matches = next_match(matches)
            index = int(window[position])

            if self._keys[index] == key:
                return True, self._values[index], index

        free = find_matches(Control.EMPTY, states) | find_matches(Control.DELETED, states)

        if free == 0:
            return False, None, None

        return False, None, int(window[trailing_zeros(free)])

    def _rehash_(self, capacity: int):
        occupied = np.flatnonzero(self._control == int(Control.OCCUPIED))
        keys = [self._keys[i] for i in occupied]
        values = [self._values[i] for i in occupied]
        key_bits = folded_keys(keys)

        while True:
            logger.debug("rehashing %d entries from %d into %d slots", len(keys), len(self._keys), capacity)

            storage = _slot_storage_(capacity)

            if self._place_all_(storage, keys, values, primary_slots(key_bits, capacity)):
                break

            logger.debug("probe window overflow while rehashing into %d slots", capacity)
            capacity *= 2

        self._install_(storage)
        self._resident_keys = len(keys)

    @staticmethod
    def _place_all_(storage: Storage, keys, values, starts) -> bool:
        control, slot_keys, slot_values = storage
        capacity = len(slot_keys)

        for key, value, start in zip(keys, values, starts):
            window = probe_window(int(start), capacity)
            free = find_matches(Control.EMPTY, control[window])

            if free == 0:
                return False

            index = int(window[trailing_zeros(free)])
            control[index] = Control.OCCUPIED
            slot_keys[index] = key
            slot_values[index] = value

        return True

    def put(self, key: int, value: V) -> Optional[V]:
        """
        :param key: The integer key.
        :param value: The object to store, kept by reference.
        :return: The previous value stored for key, otherwise None.

        An existing key is overwritten in place. A new key goes into the first empty or
        tombstone slot of its probe window. When the table is at its load limit, or the
        window is full, the table grows and the insertion is retried.
        """
        self._check_alive_()
        key = _as_key_(key)

        if value is None:
            raise ContractViolation("None cannot be stored in the table")

        while True:
            found, old_value, index = self._find_(key)

            if found:
                self._values[index] = value
                return old_value

            if index is not None and self._resident_keys < self._limit:
                break

            self._rehash_(len(self._keys) * 2)

        self._control[index] = Control.OCCUPIED
        self._keys[index] = key
        self._values[index] = value
        self._resident_keys += 1

        return None

    def get(self, key: int) -> Optional[V]:
        self._check_alive_()
        _, value, _ = self._find_(_as_key_(key))

        return value

    def remove(self, key: int) -> Optional[V]:
        """
        :param key: The key to be removed.
        :return: The value that was stored for key, or None if the key is not present.
        """
        self._check_alive_()
        found, value, index = self._find_(_as_key_(key))

        if not found:
            return None

        self._control[index] = Control.DELETED
        self._keys[index] = None
        self._values[index] = None
        self._resident_keys -= 1

        return value

    def clear(self):
        self._check_alive_()
        capacity = len(self._keys)

        self._control.fill(int(Control.EMPTY))
        self._keys = [None] * capacity
        self._values = [None] * capacity
        self._resident_keys = 0

    def length(self) -> int:
        self._check_alive_()

        return self._resident_keys

    def get_by_index(self, index: int) -> Optional[V]:
        """
        :param index: A raw slot index, 0 <= index < capacity.
        :return: The value held by that slot, or None if the slot is not occupied.
        """
        self._check_alive_()

        try:
            index = operator.index(index)
        except TypeError as e:
            raise ContractViolation(f"slot index must be an integer, got {type(index).__name__}") from e

        if not 0 <= index < len(self._values):
            raise IndexError(f"slot {index} out of range for capacity {len(self._values)}")

        return self._values[index]

    def free(self):
        """Drop the slot storage. Stored values are left alone."""
        self._control = None
        self._keys = None
        self._values = None
        self._resident_keys = 0

    @property
    def capacity(self) -> int:
        self._check_alive_()

        return len(self._keys)

    def __len__(self):
        return self.length()

    def __contains__(self, key):
        self._check_alive_()
        found, _, _ = self._find_(_as_key_(key))

        return found

    def __getitem__(self, key: int) -> V:
        value = self.get(key)

        if value is None:
            raise KeyError(key)

        return value

    def __setitem__(self, key: int, value: V):
        self.put(key, value)

    def __delitem__(self, key: int):
        if self.remove(key) is None:
            raise KeyError(key)

    def __iter__(self) -> Iterator[Tuple[int, V]]:
        self._check_alive_()

        for index in np.flatnonzero(self._control == int(Control.OCCUPIED)):
            yield self._keys[index], self._values[index]

    def __str__(self):
        if self._control is None:
            return "HashTable(freed)"

        return f"{list(self.__iter__())}, cap={self._keys.__len__()}"

    def __repr__(self):
        return self.__str__()
