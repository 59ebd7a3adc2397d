import random
import unittest
from typing import List
from unittest import mock

from hash_set import HashSet
from hash_table import INITIAL_CAPACITY, ContractViolation


class Item:
    def __init__(self, value, hash=None):
        self.value = value
        self.hash = value if hash is None else hash

    def __eq__(self, other):
        return self.value == other.value

    def __repr__(self):
        return f"({self.hash}:{self.value})"


def item_hash(item: Item) -> int:
    return item.hash


def item_equals(a: Item, b: Item) -> bool:
    return a.value == b.value


def new_set(capacity=0) -> HashSet:
    return HashSet(item_hash, item_equals, capacity=capacity)


def generate_random_data(size: int) -> List[Item]:
    values = set([random.randint(1, 1000000) for _ in range(size)])

    return [Item(value) for value in values]


class TestHashSet(unittest.TestCase):
    def test_initialization(self):
        hs = new_set()

        self.assertEqual(hs.capacity, INITIAL_CAPACITY)
        self.assertEqual(hs.count(), 0)
        self.assertIs(hs.hash, item_hash)
        self.assertIs(hs.equals, item_equals)

    def test_capacity_hint(self):
        self.assertEqual(new_set(capacity=100).capacity, INITIAL_CAPACITY)
        self.assertEqual(new_set(capacity=1000).capacity, 2048)

    def test_add(self):
        for _ in range(50):
            hs = new_set()
            data = generate_random_data(50)

            for _ in range(2):
                self.validate_add_all(data, hs)

            self.assertEqual(len(hs), len(data))

    def validate_add_all(self, data, hs):
        for item in data:
            hs.add(item)

            self.assertIn(item, hs)
            self.assertIs(hs.get(item), item)

    def test_add_counts_new_items(self):
        hs = new_set()

        for i in range(1, 11):
            self.assertIsNone(hs.add(Item(i)))
            self.assertEqual(hs.count(), i)

    def test_same_hash_last_write_wins(self):
        hs = new_set()
        a = Item('a', hash=42)
        b = Item('b', hash=42)

        self.assertIsNone(hs.add(a))
        self.assertIs(hs.add(b), a)

        self.assertEqual(hs.count(), 1)
        self.assertIs(hs.get(a), b)
        self.assertIs(hs.get(b), b)

    def test_equal_distinct_references(self):
        hs = new_set()
        a = Item('same', hash=7)
        b = Item('same', hash=7)

        hs.add(a)
        hs.add(b)

        self.assertEqual(hs.count(), 1)
        self.assertIs(hs.get(a), b)

    def test_equals_is_never_called(self):
        equals = mock.Mock(side_effect=AssertionError("equals called"))
        hs = HashSet(item_hash, equals)
        items = [Item(i) for i in range(300)]

        for item in items:
            hs.add(item)

        hs.add(Item('other', hash=3))

        for item in items[:100]:
            self.assertIn(item, hs)
            hs.remove(item)

        equals.assert_not_called()

    def test_remove_all(self):
        for _ in range(50):
            hs = new_set()

            data = generate_random_data(50)

            for item in data:
                hs.add(item)

            for i, item in enumerate(data):
                self.assertIs(hs.remove(item), item)
                self.assertNotIn(item, hs)
                self.assertEqual(len(hs), len(data) - 1 - i)

    def test_remove_some(self):
        for _ in range(50):
            hs = new_set()
            retain = 10
            data = generate_random_data(50)

            for item in data:
                hs.add(item)

            while len(data) > retain:
                item = data.pop()
                hs.remove(item)
                self.assertNotIn(item, hs)

            for item in data:
                self.assertIn(item, hs)

            self.assertEqual(len(hs), retain)

    def test_remove_returns_stored_equivalent(self):
        hs = new_set()
        stored = Item('stored', hash=9)
        probe = Item('probe', hash=9)

        hs.add(stored)

        self.assertIs(hs.remove(probe), stored)
        self.assertEqual(hs.count(), 0)

    def test_remove_absent(self):
        hs = new_set()
        hs.add(Item(1))

        self.assertIsNone(hs.remove(Item(2)))
        self.assertEqual(hs.count(), 1)

    def test_growth_scenario(self):
        hs = new_set()
        items = [Item(f"item-{i}", hash=i) for i in range(1, 201)]

        for item in items:
            hs.add(item)

        self.assertEqual(hs.count(), 200)
        self.assertGreaterEqual(hs.capacity, 512)

        for item in items:
            self.assertIs(hs.get(Item('lookup', hash=item.hash)), item)

        self.assertFalse(hs.contains(Item('missing', hash=201)))

    def test_apply(self):
        hs = new_set()
        data = generate_random_data(300)

        for item in data:
            hs.add(item)

        visited = []
        hs.apply(visited.append)

        self.assertEqual(len(visited), hs.count())
        self.assertEqual(len(set(map(id, visited))), len(visited))
        self.assertEqual(sorted(item.value for item in visited), sorted(item.value for item in data))

    def test_apply_after_remove(self):
        hs = new_set()
        items = [Item(i) for i in range(20)]

        for item in items:
            hs.add(item)

        for item in items[::2]:
            hs.remove(item)

        visited = []
        hs.apply(visited.append)

        self.assertEqual(sorted(item.value for item in visited), list(range(1, 20, 2)))

    def test_iteration(self):
        hs = new_set()
        items = [Item(i) for i in range(10)]

        for item in items:
            hs.add(item)

        self.assertEqual(sorted(item.value for item in hs), list(range(10)))

    def test_clear(self):
        hs = new_set()
        items = [Item(i) for i in range(400)]

        for item in items:
            hs.add(item)

        hs.clear()

        self.assertEqual(hs.count(), 0)

        for item in items:
            self.assertNotIn(item, hs)

        visited = []
        hs.apply(visited.append)
        self.assertEqual(visited, [])

    def test_free(self):
        hs = new_set()
        item = Item(1)
        hs.add(item)

        hs.free()

        with self.assertRaises(ContractViolation):
            hs.add(item)

        with self.assertRaises(ContractViolation):
            hs.count()

        with self.assertRaises(ContractViolation):
            hs.free()

        self.assertEqual(item.value, 1)

    def test_contract_violations(self):
        hs = new_set()

        with self.assertRaises(ContractViolation):
            hs.add(None)

        with self.assertRaises(ContractViolation):
            hs.contains(None)

        with self.assertRaises(ContractViolation):
            HashSet(item_hash, item_equals).add(Item(1, hash="not an int"))

        with self.assertRaises(ContractViolation):
            HashSet(None, item_equals)

        with self.assertRaises(ContractViolation):
            HashSet(item_hash, "equals")

        with self.assertRaises(ContractViolation):
            new_set(capacity=-1)

    def test_builtin_hash(self):
        hs = HashSet(hash, lambda a, b: a == b)

        for word in ["alpha", "beta", "gamma"]:
            hs.add(word)

        self.assertIn("beta", hs)
        self.assertNotIn("delta", hs)
        self.assertEqual(len(hs), 3)

    def test_hashes_sharing_low_bits(self):
        hs = new_set()
        items = [Item(f"item-{i}", hash=-1 - i * 2 ** 32) for i in range(9)]
        items += [Item(f"wide-{i}", hash=5 + i * 2 ** 32) for i in range(9)]

        for item in items:
            self.assertIsNone(hs.add(item))

        self.assertEqual(hs.count(), len(items))
        self.assertLessEqual(hs.capacity, 4 * INITIAL_CAPACITY)

        for item in items:
            self.assertIs(hs.get(item), item)

    def test_intersects(self):
        hs1 = new_set()
        hs2 = new_set()

        for i in range(10):
            hs1.add(Item(i))

        for i in range(10, 20):
            hs2.add(Item(i))

        self.assertFalse(hs1.intersects(hs2))

        hs2.add(Item(5))

        self.assertTrue(hs1.intersects(hs2))

    def test_intersection(self):
        hs1 = new_set()
        hs2 = new_set()

        amount = 100
        amount_second = int(amount / 2)

        for i in range(amount):
            hs1.add(Item(i))

        for i in range(amount_second):
            hs2.add(Item(i))

        hs3 = hs1 & hs2

        for i in range(amount_second):
            self.assertIn(Item(i), hs3)

        self.assertEqual(len(hs3), amount_second)

    def test_union(self):
        hs1 = new_set()
        hs2 = new_set()

        amount = 100
        expected_amount = amount * 2

        for i in range(1, amount + 1):
            hs1.add(Item(i))

        for i in range(amount * 2, amount, -1):
            hs2.add(Item(i))

        hs3 = hs1 + hs2

        for i in range(1, expected_amount + 1):
            self.assertIn(Item(i), hs3)

        self.assertEqual(len(hs3), expected_amount)
        self.assertEqual(len(hs1), amount)

    def test_union_keeps_own_items(self):
        hs1 = new_set()
        hs2 = new_set()
        mine = Item('mine', hash=1)

        hs1.add(mine)
        hs2.add(Item('theirs', hash=1))

        self.assertIs(hs1.union(hs2).get(mine), mine)

    def test_difference(self):
        hs1 = new_set()
        hs2 = new_set()

        for i in range(20):
            hs1.add(Item(i))

        for i in range(10):
            hs2.add(Item(i))

        hs3 = hs1 - hs2

        self.assertEqual(sorted(item.value for item in hs3), list(range(10, 20)))
        self.assertEqual(len(hs1), 20)


if __name__ == '__main__':
    unittest.main()
