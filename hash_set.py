import logging
import operator
from typing import Callable, Iterator, Optional, TypeVar

from hash_table import INITIAL_CAPACITY, ContractViolation, HashTable


logger = logging.getLogger(__name__)

T = TypeVar('T')


def table_capacity(expected_items: int) -> int:
    """
    :param expected_items: The number of items the set is expected to hold.
    :return: The slot count that keeps that many items under the load limit.
    """
    try:
        expected_items = operator.index(expected_items)
    except TypeError as e:
        raise ContractViolation(f"capacity must be an integer, got {type(expected_items).__name__}") from e

    if expected_items < 0:
        raise ContractViolation(f"capacity must not be negative, got {expected_items}")

    return max(INITIAL_CAPACITY, 2 * expected_items)


class HashSet:
    """
    A set of items identified by the integer a caller supplied ``hash`` returns for them.

    Two items are the same member when ``hash`` gives the same value for both. ``equals`` is
    kept with the set's configuration but add, get, contains and remove never call it: any
    two items that are equal must hash alike, and an unequal item whose hash collides with a
    stored one will find or replace it.

    Items are kept by reference and never copied, so they stay alive as long as they are
    members. Iteration and ``apply`` follow the physical slot order, which changes when the
    set grows.
    """

    def __init__(self, hash: Callable[[T], int], equals: Callable[[T, T], bool], capacity=0):
        if not callable(hash):
            raise ContractViolation("hash must be callable")

        if not callable(equals):
            raise ContractViolation("equals must be callable")

        self._hash = hash
        self._equals = equals
        self._table = HashTable(capacity=table_capacity(capacity))

    @property
    def hash(self) -> Callable[[T], int]:
        return self._hash

    @property
    def equals(self) -> Callable[[T, T], bool]:
        """The equivalence predicate given at construction, not used for membership."""
        return self._equals

    def _live_table_(self) -> HashTable:
        if self._table is None:
            raise ContractViolation("set used after free()")

        return self._table

    def _key_(self, item: T) -> int:
        if item is None:
            raise ContractViolation("None is not a valid set item")

        key = self._hash(item)

        try:
            return operator.index(key)
        except TypeError as e:
            raise ContractViolation(f"hash must return an integer, got {type(key).__name__}") from e

    def add(self, item: T) -> Optional[T]:
        """
        :param item: The item to add.
        :return: The item previously stored under the same hash, which it replaces, or None.
        """
        table = self._live_table_()
        key = self._key_(item)
        replaced = table.put(key, item)

        if replaced is not None and replaced is not item:
            logger.debug("item with hash %d replaced a different stored object", key)

        return replaced

    def remove(self, item: T) -> Optional[T]:
        """
        :param item: The item to remove.
        :return: The stored item with the same hash, or None if there was none.
        """
        table = self._live_table_()

        return table.remove(self._key_(item))

    def get(self, item: T) -> Optional[T]:
        table = self._live_table_()

        return table.get(self._key_(item))

    def contains(self, item: T) -> bool:
        return self.get(item) is not None

    def count(self) -> int:
        return self._live_table_().length()

    def apply(self, visitor: Callable[[T], None]):
        """Call visitor once with every item of the set."""
        table = self._live_table_()

        for index in range(table.capacity):
            item = table.get_by_index(index)

            if item is not None:
                visitor(item)

    def clear(self):
        self._live_table_().clear()

    def free(self):
        """Release the table. Items are left alone; any further use of the set raises."""
        self._live_table_().free()
        self._table = None

    @property
    def capacity(self) -> int:
        return self._live_table_().capacity

    def intersects(self, other: 'HashSet') -> bool:
        """True if any item of other has an item with the same hash in this set."""
        return any(self.contains(item) for item in other)

    def union(self, other: 'HashSet') -> 'HashSet':
        hash_set = HashSet(self._hash, self._equals, capacity=len(self) + len(other))

        for item in other:
            hash_set.add(item)

        for item in self:
            hash_set.add(item)

        return hash_set

    def difference(self, other: 'HashSet') -> 'HashSet':
        hash_set = HashSet(self._hash, self._equals, capacity=len(self))

        for item in self:
            if not other.contains(item):
                hash_set.add(item)

        return hash_set

    def intersection(self, other: 'HashSet') -> 'HashSet':
        hash_set = HashSet(self._hash, self._equals)

        for item in self:
            if other.contains(item):
                hash_set.add(item)

        return hash_set

    def __contains__(self, item):
        return self.contains(item)

    def __len__(self):
        return self.count()

    def __iter__(self) -> Iterator[T]:
        for _, item in self._live_table_():
            yield item

    def __add__(self, other):
        return self.union(other)

    def __sub__(self, other):
        return self.difference(other)

    def __and__(self, other):
        return self.intersection(other)

    def __str__(self):
        if self._table is None:
            return "HashSet(freed)"

        items = [item.__str__() for item in self]

        return ", ".join(items)

    def __repr__(self):
        return f"HashSet({self.__str__()})"
