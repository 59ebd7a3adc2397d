"""
Slot hashing and probe window matching for the bounded linear-probe table.

The slot hash is Robert Jenkins' 32 bit integer mix followed by Knuth's
multiplicative method. ``primary_slot`` computes it for one key,
``primary_slots`` for a whole numpy array of keys at once (used on rehash).

Window matching works on the table's control bytes: ``find_matches`` returns a
bitmask with bit ``i`` set when position ``i`` of the window holds the wanted
state, ``next_match`` pops the lowest set bit.
"""
from typing import Iterable, Tuple

import numpy as np


MAX_CHAIN_LENGTH = 8
KNUTH_MULTIPLIER = 2654435761
MASK_32 = 0xFFFF_FFFF

_OFFSETS = np.arange(MAX_CHAIN_LENGTH, dtype=np.intp)


def fold32(key: int) -> int:
    """
    :param key: Any integer. Negative keys are taken in two's complement, one bit
        wider than their magnitude, rounded up to whole 32 bit chunks.
    :return: The xor of all 32 bit chunks of key.
    """
    if key < 0:
        width = (key.bit_length() // 32 + 1) * 32
        key &= (1 << width) - 1

    folded = 0

    while key:
        folded ^= key & MASK_32
        key >>= 32

    return folded


def mix32(key: int) -> int:
    """
    :param key: Any integer, folded to 32 bits first.
    :return: The mixed 32 bit value.
    """
    key = fold32(key)

    key = (key + (key << 12)) & MASK_32
    key ^= key >> 22
    key = (key + (key << 4)) & MASK_32
    key ^= key >> 9
    key = (key + (key << 10)) & MASK_32
    key ^= key >> 2
    key = (key + (key << 7)) & MASK_32
    key ^= key >> 12

    return key


def primary_slot(key: int, capacity: int) -> int:
    mixed = mix32(key)

    return (((mixed >> 3) * KNUTH_MULTIPLIER) & MASK_32) % capacity


def folded_keys(keys: Iterable[int]) -> np.ndarray:
    keys = list(keys)

    return np.fromiter((fold32(k) for k in keys), dtype=np.uint32, count=len(keys))


def primary_slots(keys: np.ndarray, capacity: int) -> np.ndarray:
    """
    Vectorized ``primary_slot``.

    :param keys: A uint32 array, see ``folded_keys``.
    :param capacity: The table capacity.
    :return: An intp array with the primary slot of every key.
    """
    keys = keys.astype(np.uint32, copy=True)

    keys += keys << np.uint32(12)
    keys ^= keys >> np.uint32(22)
    keys += keys << np.uint32(4)
    keys ^= keys >> np.uint32(9)
    keys += keys << np.uint32(10)
    keys ^= keys >> np.uint32(2)
    keys += keys << np.uint32(7)
    keys ^= keys >> np.uint32(12)

    product = (keys >> np.uint32(3)).astype(np.uint64) * np.uint64(KNUTH_MULTIPLIER)
    product &= np.uint64(MASK_32)

    return (product % np.uint64(capacity)).astype(np.intp)


def probe_window(start: int, capacity: int) -> np.ndarray:
    """
    :return: The slot indices visited from ``start``, wrapping at capacity.
        Tables smaller than the chain length get a shorter window so no slot
        is visited twice.
    """
    length = min(MAX_CHAIN_LENGTH, capacity)

    return (start + _OFFSETS[:length]) % capacity


def find_matches(state: int, states: np.ndarray) -> int:
    if len(states) == 0:
        return 0

    return int(np.packbits(states == int(state), bitorder='little')[0])


def trailing_zeros(bitmask: int) -> int:
    bitmask = int(bitmask)

    if bitmask == 0:
        return MAX_CHAIN_LENGTH

    return (bitmask & -bitmask).bit_length() - 1


def next_match(bitmask: int) -> Tuple[int, int]:
    """
    :param bitmask: A mask returned by ``find_matches``.
    :return: A tuple containing
        - the window position of the lowest match (MAX_CHAIN_LENGTH if none)
        - the mask with that match cleared
    """
    bitmask = int(bitmask)
    position = trailing_zeros(bitmask)

    return position, bitmask & (bitmask - 1)
