import itertools
import random
import unittest
from typing import List, Set
from unittest import mock

import numpy as np

import hash_table
from hash_table import (
    INITIAL_CAPACITY,
    ContractViolation,
    HashTable,
    OutOfMemory,
    round_capacity,
)
from probe import MAX_CHAIN_LENGTH, primary_slot, primary_slots


MAX_TEST_SLOTS = 2 ** 16

real_slot_storage = hash_table._slot_storage_


def capped_storage(capacity: int):
    if capacity > MAX_TEST_SLOTS:
        raise OutOfMemory(f"more than {MAX_TEST_SLOTS} slots requested: {capacity}")

    return real_slot_storage(capacity)


def colliding_keys(amount: int, capacity: int = INITIAL_CAPACITY, start: int = 1) -> List[int]:
    """Keys that all share the primary slot of ``start``."""
    target = primary_slot(start, capacity)
    keys = (k for k in itertools.count(start) if primary_slot(k, capacity) == target)

    return list(itertools.islice(keys, amount))


def generate_random_data(amount: int) -> Set[int]:
    return set([random.randint(1, 10000000) for _ in range(amount)])


class HashTableTests(unittest.TestCase):
    def test_initialization(self):
        table = HashTable()

        self.assertEqual(table.capacity, INITIAL_CAPACITY)
        self.assertEqual(len(table), 0)

    def test_capacity_rounds_to_power_of_two(self):
        self.assertEqual(HashTable(capacity=3).capacity, 4)
        self.assertEqual(HashTable(capacity=1).capacity, 1)
        self.assertEqual(HashTable(capacity=1000).capacity, 1024)
        self.assertEqual(round_capacity(512), 512)

    def test_invalid_capacity(self):
        with self.assertRaises(ContractViolation):
            HashTable(capacity=0)

        with self.assertRaises(ContractViolation):
            HashTable(capacity="big")

    def test_put_no_collision(self):
        table = HashTable()

        self.assertIsNone(table.put(1, 'a'))

        self.assertEqual(table.length(), 1)
        self.assertIn(1, table)
        self.assertEqual(table.get(1), 'a')

    def test_put_new_value(self):
        table = HashTable()

        table[1] = 'a'
        previous = table.put(1, 'b')

        self.assertEqual(previous, 'a')
        self.assertEqual(table.length(), 1)
        self.assertEqual(table[1], 'b')

    def test_values_kept_by_reference(self):
        table = HashTable()
        value = ['mutable']

        table.put(7, value)
        value.append('changed')

        self.assertIs(table.get(7), value)

    def test_get_missing(self):
        table = HashTable()
        table.put(1, 'a')

        self.assertIsNone(table.get(2))
        self.assertNotIn(2, table)

        with self.assertRaises(KeyError):
            table[2]

    def test_remove_missing(self):
        table = HashTable()
        table.put(1, 'a')

        self.assertIsNone(table.remove(2))
        self.assertEqual(table.length(), 1)

        with self.assertRaises(KeyError):
            del table[2]

    def test_keys_compared_as_integers(self):
        table = HashTable()

        table.put(1, 'low')
        table.put(1 + 2 ** 32, 'high')
        table.put(-1, 'negative')
        table.put(2 ** 70, 'huge')

        self.assertEqual(table.length(), 4)
        self.assertEqual(table.get(1), 'low')
        self.assertEqual(table.get(1 + 2 ** 32), 'high')
        self.assertEqual(table.get(-1), 'negative')
        self.assertEqual(table.get(2 ** 70), 'huge')

    def test_keys_sharing_low_bits_do_not_crowd(self):
        wide_keys = [5 + i * 2 ** 32 for i in range(MAX_CHAIN_LENGTH + 1)]
        negative_keys = [-1 - i * 2 ** 32 for i in range(MAX_CHAIN_LENGTH + 1)]

        for keys in [wide_keys, negative_keys]:
            with mock.patch('hash_table._slot_storage_', side_effect=capped_storage):
                table = HashTable()

                for key in keys:
                    table.put(key, str(key))

            self.assertLessEqual(table.capacity, 4 * INITIAL_CAPACITY)
            self.assertEqual(table.length(), len(keys))

            for key in keys:
                self.assertEqual(table.get(key), str(key))

    def test_invalid_key_and_value(self):
        table = HashTable()

        with self.assertRaises(ContractViolation):
            table.put('a', 1)

        with self.assertRaises(ContractViolation):
            table.get(1.5)

        with self.assertRaises(ContractViolation):
            table.put(1, None)

        self.assertEqual(table.length(), 0)

    def test_put_collision(self):
        table = HashTable()
        keys = colliding_keys(MAX_CHAIN_LENGTH)

        for i, key in enumerate(keys):
            table[key] = i

            self.assertEqual(table.length(), i + 1)

        self.assertEqual(table.capacity, INITIAL_CAPACITY)

        for i, key in enumerate(keys):
            self.assertEqual(table[key], i)

    def test_full_probe_window_grows(self):
        table = HashTable()
        keys = colliding_keys(MAX_CHAIN_LENGTH + 1)

        for i, key in enumerate(keys):
            table[key] = i

        self.assertGreaterEqual(table.capacity, 2 * INITIAL_CAPACITY)
        self.assertEqual(table.length(), len(keys))

        for i, key in enumerate(keys):
            self.assertEqual(table[key], i)

    def test_rehash_overflow_doubles_again(self):
        table = HashTable()
        keys = list(range(1, 2 * MAX_CHAIN_LENGTH + 1))

        for key in keys:
            table.put(key, str(key))

        crowded = table.capacity * 2

        def crowded_slots(key_bits, capacity):
            if capacity == crowded:
                return np.zeros(len(key_bits), dtype=np.intp)

            return primary_slots(key_bits, capacity)

        with mock.patch('hash_table.primary_slots', side_effect=crowded_slots):
            with self.assertLogs('hash_table', level='DEBUG') as logs:
                table._rehash_(crowded)

        self.assertTrue(any(f"overflow while rehashing into {crowded} slots" in line for line in logs.output))
        self.assertGreaterEqual(table.capacity, 2 * crowded)
        self.assertEqual(table.length(), len(keys))

        for key in keys:
            self.assertEqual(table.get(key), str(key))

    def test_removal_keeps_chain_reachable(self):
        table = HashTable()
        first, second, third = colliding_keys(3)
        slot = primary_slot(first, table.capacity)

        table.put(first, 'first')
        table.put(second, 'second')
        table.put(third, 'third')

        self.assertEqual(table.remove(second), 'second')
        self.assertEqual(table.get(third), 'third')
        self.assertEqual(table.get(first), 'first')

        self.assertEqual(table.remove(first), 'first')
        self.assertEqual(table.get(third), 'third')
        self.assertEqual(table.length(), 1)

        fourth = colliding_keys(4)[3]
        table.put(fourth, 'fourth')

        self.assertEqual(table.get_by_index(slot), 'fourth')
        self.assertEqual(table.get(third), 'third')
        self.assertEqual(table.length(), 2)

    def test_growth_at_half_load(self):
        table = HashTable()
        limit = INITIAL_CAPACITY // 2

        for key in range(1, limit + 2):
            table.put(key, key)

            self.assertLessEqual(table.length(), table.capacity // 2)

        self.assertGreaterEqual(table.capacity, 2 * INITIAL_CAPACITY)

    def test_overwrite_at_limit_does_not_grow(self):
        table = HashTable(capacity=4)

        table.put(1, 'a')
        table.put(2, 'b')
        table.put(2, 'c')

        self.assertEqual(table.capacity, 4)
        self.assertEqual(table.length(), 2)

    def test_growth_preserves_values(self):
        table = HashTable()
        values = {key: object() for key in range(1, 201)}

        for key, value in values.items():
            table.put(key, value)

        self.assertEqual(table.length(), 200)
        self.assertGreaterEqual(table.capacity, 512)

        for key, value in values.items():
            self.assertIs(table.get(key), value)

        self.assertIsNone(table.get(201))

    def test_growth_is_logged(self):
        table = HashTable(capacity=2)
        table.put(1, 'a')

        with self.assertLogs('hash_table', level='DEBUG') as logs:
            table.put(2, 'b')

        self.assertTrue(any("into 4 slots" in line for line in logs.output))

    def test_put_rehash(self):
        for _ in range(20):
            table = HashTable(capacity=16)

            previous_keys = []

            for i, data in enumerate(generate_random_data(250)):
                table[data] = data

                self.assertEqual(table.__len__(), i + 1)

                previous_keys.append(data)

            for key in previous_keys:
                self.assertIn(key, table)

            self.assertEqual(table.__len__(), len(previous_keys))

    def test_delete_all(self):
        for _ in range(20):
            table = HashTable(capacity=32)
            previous_keys = [(key, str(key)) for key in generate_random_data(32)]

            for key, value in previous_keys:
                table[key] = value

            self.validate_remove(table, previous_keys)

    def test_delete_some(self):
        for _ in range(20):
            table = HashTable(capacity=32)
            previous_keys = [(key, str(key)) for key in generate_random_data(32)]

            for key, value in previous_keys:
                table[key] = value

            self.validate_remove(table, previous_keys, retain=10)

    def test_delete_collision(self):
        table = HashTable()
        previous_keys = [(key, str(key)) for key in colliding_keys(MAX_CHAIN_LENGTH)]

        for key, value in previous_keys:
            table[key] = value

        self.validate_remove(table, previous_keys)

    def test_clear(self):
        table = HashTable()

        for key in range(300):
            table.put(key, key + 1)

        capacity = table.capacity
        table.clear()

        self.assertEqual(table.length(), 0)
        self.assertEqual(table.capacity, capacity)
        self.assertEqual(list(table), [])

        for key in range(300):
            self.assertIsNone(table.get(key))

        table.put(5, 'again')
        self.assertEqual(table.get(5), 'again')
        self.assertEqual(table.length(), 1)

    def test_get_by_index(self):
        table = HashTable()
        values = {key: f"v{key}" for key in range(50)}

        for key, value in values.items():
            table.put(key, value)

        found = [table.get_by_index(i) for i in range(table.capacity)]
        found = [value for value in found if value is not None]

        self.assertEqual(sorted(found), sorted(values.values()))

        with self.assertRaises(IndexError):
            table.get_by_index(table.capacity)

        with self.assertRaises(IndexError):
            table.get_by_index(-1)

        with self.assertRaises(ContractViolation):
            table.get_by_index("0")

        with self.assertRaises(ContractViolation):
            table.get_by_index(1.0)

    def test_iteration(self):
        table = HashTable()

        for key in range(20):
            table.put(key, key * 10)

        self.assertEqual(sorted(table), [(key, key * 10) for key in range(20)])

    def test_use_after_free(self):
        table = HashTable()
        value = object()
        table.put(1, value)

        table.free()

        with self.assertRaises(ContractViolation):
            table.put(2, value)

        with self.assertRaises(ContractViolation):
            table.get(1)

        with self.assertRaises(ContractViolation):
            len(table)

        self.assertEqual(str(table), "HashTable(freed)")

    def test_out_of_memory_on_construction(self):
        with mock.patch('hash_table.np.zeros', side_effect=MemoryError):
            with self.assertRaises(OutOfMemory):
                HashTable()

    def test_out_of_memory_on_growth(self):
        table = HashTable(capacity=2)
        table.put(1, 'a')

        with mock.patch('hash_table.np.zeros', side_effect=MemoryError):
            with self.assertRaises(OutOfMemory):
                table.put(2, 'b')

        self.assertEqual(table.capacity, 2)
        self.assertEqual(table.length(), 1)
        self.assertEqual(table.get(1), 'a')
        self.assertIsNone(table.get(2))

    def validate_remove(self, table, previous_keys, retain=0):
        initial_size = table.__len__()
        removed = 1

        while len(previous_keys) > retain:
            key, value = previous_keys.pop()

            actual_value = table.remove(key)

            self.assertEqual(actual_value, value)
            self.assertNotIn(key, table)
            self.assertEqual(table.__len__(), initial_size - removed)

            for previous_key, _ in previous_keys:
                self.assertIn(previous_key, table)

            removed += 1

        for key, value in previous_keys:
            self.assertIn(key, table)

            actual_value = table[key]
            self.assertEqual(actual_value, value)

        self.assertEqual(table.__len__(), retain)


if __name__ == '__main__':
    unittest.main()
