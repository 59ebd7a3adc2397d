import random
import unittest

import numpy as np

import probe
from probe import (
    MAX_CHAIN_LENGTH,
    find_matches,
    fold32,
    folded_keys,
    mix32,
    next_match,
    primary_slot,
    primary_slots,
    probe_window,
    trailing_zeros,
)


class ProbeMatchTests(unittest.TestCase):
    def test_trailing_zeros(self):
        for expected in range(MAX_CHAIN_LENGTH):
            actual = trailing_zeros(1 << expected)

            self.assertEqual(actual, expected)

        self.assertEqual(trailing_zeros(0b1010_0000), 5)
        self.assertEqual(trailing_zeros(0), MAX_CHAIN_LENGTH)

    def test_next_match(self):
        expected_matches = [0, 2, 3, 5, 7]

        bitmask = 0

        for match in expected_matches:
            bitmask += 1 << match

        for match in expected_matches:
            actual, next_mask = next_match(bitmask)

            self.assertEqual(actual, match)
            self.assertEqual(next_mask, bitmask - (1 << match))

            bitmask = next_mask

        actual, next_mask = next_match(bitmask)

        self.assertEqual(actual, MAX_CHAIN_LENGTH)
        self.assertEqual(next_mask, 0)

    def test_find_matches(self):
        states = np.array([0, 1, 2, 1, 0, 0, 1, 2], dtype=np.uint8)

        self.assertEqual(find_matches(1, states), 0b0100_1010)
        self.assertEqual(find_matches(0, states), 0b0011_0001)
        self.assertEqual(find_matches(2, states), 0b1000_0100)
        self.assertEqual(find_matches(3, states), 0)

    def test_find_matches_short_window(self):
        states = np.array([1, 0, 1], dtype=np.uint8)

        self.assertEqual(find_matches(1, states), 0b101)
        self.assertEqual(find_matches(1, states[:0]), 0)

    def test_probe_window_wraps(self):
        window = probe_window(250, 256)

        self.assertEqual(window.tolist(), [250, 251, 252, 253, 254, 255, 0, 1])

    def test_probe_window_small_capacity(self):
        self.assertEqual(probe_window(2, 4).tolist(), [2, 3, 0, 1])
        self.assertEqual(probe_window(0, 1).tolist(), [0])


class SlotHashTests(unittest.TestCase):
    def test_mix_is_32_bit(self):
        for key in [0, 1, 255, 2 ** 31, 2 ** 32 - 1, random.randint(0, 2 ** 32)]:
            mixed = mix32(key)

            self.assertGreaterEqual(mixed, 0)
            self.assertLess(mixed, 2 ** 32)

        self.assertEqual(mix32(0), 0)

    def test_fold_small_keys_unchanged(self):
        for key in [0, 1, 7, 2 ** 32 - 1]:
            self.assertEqual(fold32(key), key)

        self.assertEqual(fold32(-1), 2 ** 32 - 1)

    def test_fold_uses_high_bits(self):
        self.assertEqual(fold32(7 + 2 ** 32), 6)
        self.assertEqual(fold32(0xABCD << 64), 0xABCD)

        wide = {fold32(5 + i * 2 ** 32) for i in range(16)}
        negative = {fold32(-1 - i * 2 ** 32) for i in range(16)}

        self.assertEqual(len(wide), 16)
        self.assertEqual(len(negative), 16)

    def test_mix_folds_before_mixing(self):
        self.assertEqual(mix32(7 + 2 ** 32), mix32(6))
        self.assertNotEqual(mix32(7 + 2 ** 32), mix32(7))

    def test_primary_slot_in_range(self):
        for capacity in [1, 2, 8, 256, 4096]:
            for key in range(500):
                slot = primary_slot(key, capacity)

                self.assertGreaterEqual(slot, 0)
                self.assertLess(slot, capacity)

    def test_primary_slot_reduction(self):
        key = 12345
        expected = (((mix32(key) >> 3) * probe.KNUTH_MULTIPLIER) % 2 ** 32) % 256

        self.assertEqual(primary_slot(key, 256), expected)

    def test_vectorized_matches_scalar(self):
        keys = [random.randint(-2 ** 63, 2 ** 64) for _ in range(1000)] + list(range(300))

        for capacity in [1, 16, 256, 512, 2 ** 20]:
            slots = primary_slots(folded_keys(keys), capacity)

            self.assertEqual(slots.tolist(), [primary_slot(k, capacity) for k in keys])

    def test_sequential_keys_spread(self):
        slots = {primary_slot(key, 256) for key in range(1, 201)}

        self.assertGreater(len(slots), 64)


if __name__ == '__main__':
    unittest.main()
