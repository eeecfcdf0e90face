import shutil
import unittest
from pathlib import Path

from fuzzytester import FuzzyTester
from bloomstore import FilterRegistry, PathReplica, NewFilter, InvalidParameters, FilterTooLarge, \
    ElementNotFound, Unauthenticated, FilterExists, FilterNotFound, PermissionDenied
from bloomstore.registry import address, encode_entry, decode_entry


class TestFilterRegistry(unittest.TestCase, FuzzyTester):
    dir = Path('./data_test')
    remote = Path('./remote_test')
    alice = b'alice'
    bob = b'bob'

    def setUp(self):
        self.dir.mkdir()

    def tearDown(self):
        shutil.rmtree(self.dir.name, ignore_errors=True)
        shutil.rmtree(self.remote.name, ignore_errors=True)

    def test_basic(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            addr = registry.init(self.alice, NewFilter('s', 1000, 4))
            self.assertEqual(addr, address(self.alice, 's'))

            self.assertTrue(registry.add(self.alice, 's', b'a'))
            self.assertFalse(registry.add(self.alice, 's', b'a'))

            registry.check(self.alice, self.alice, 's', b'a')
            with self.assertRaises(ElementNotFound):
                registry.check(self.alice, self.alice, 's', b'definitely not there')

            f = registry.get(self.alice, self.alice, 's')
            self.assertEqual((f.name, f.m, f.k, f.n), ('s', 1000, 4, 1))
            self.assertEqual(registry.owner_of(self.alice, addr), self.alice)

    def test_addresses(self):
        self.assertEqual(len(address(self.alice, 's')), 32)
        self.assertEqual(address(self.alice, 's'), address(self.alice, 's'))
        self.assertNotEqual(address(self.alice, 's'), address(self.bob, 's'))
        self.assertNotEqual(address(b'ab', 'c'), address(b'a', 'bc'))

    def test_same_name_different_owners(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            a = registry.init(self.alice, NewFilter('s', 100, 2))
            b = registry.init(self.bob, NewFilter('s', 200, 3))
            self.assertNotEqual(a, b)

            registry.add(self.alice, 's', b'x')
            self.assertEqual(registry.get(self.alice, self.alice, 's').n, 1)
            self.assertEqual(registry.get(self.bob, self.bob, 's').n, 0)

    def test_duplicate_init(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            registry.init(self.alice, NewFilter('s', 100, 2))
            registry.add(self.alice, 's', b'x')
            with self.assertRaises(FilterExists):
                registry.init(self.alice, NewFilter('s', 500, 5))
            # untouched
            self.assertEqual(registry.get(self.alice, self.alice, 's').m, 100)
            self.assertEqual(registry.get(self.alice, self.alice, 's').n, 1)

    def test_invalid_init_stores_nothing(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            with self.assertRaises(InvalidParameters):
                registry.init(self.alice, NewFilter('s', 0, 2))
            with self.assertRaises(FilterTooLarge):
                registry.init(self.alice, NewFilter('s', 10001, 2))
            with self.assertRaises(InvalidParameters):
                registry.init(self.alice, NewFilter(None, 10, 2))
            with self.assertRaises(InvalidParameters):
                registry.init(self.alice, NewFilter('\ud800', 10, 2))
            with self.assertRaises(InvalidParameters):
                registry.add(self.alice, '\ud800', b'a')
            self.assertEqual(len(registry.store), 0)

    def test_authentication(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            with self.assertRaises(Unauthenticated):
                registry.init(b'', NewFilter('s', 100, 2))
            with self.assertRaises(Unauthenticated):
                registry.init('alice', NewFilter('s', 100, 2))
            with self.assertRaises(Unauthenticated):
                registry.init(b'x' * 256, NewFilter('s', 100, 2))

            registry.init(self.alice, NewFilter('s', 100, 2))
            with self.assertRaises(Unauthenticated):
                registry.check(b'', self.alice, 's', b'a')
            with self.assertRaises(Unauthenticated):
                registry.get(b'', self.alice, 's')
            with self.assertRaises(Unauthenticated):
                registry.owner_of(None, address(self.alice, 's'))
            with self.assertRaises(Unauthenticated):
                registry.list(b'', self.alice)

    def test_ownership(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            addr = registry.init(self.alice, NewFilter('s', 100, 2))
            with self.assertRaises(PermissionDenied):
                registry.add_at(self.bob, addr, b'a')
            self.assertEqual(registry.get(self.alice, self.alice, 's').n, 0)

            # bob adding by name only ever reaches bob's own filters
            with self.assertRaises(FilterNotFound):
                registry.add(self.bob, 's', b'a')

            # anyone authenticated may read
            registry.add(self.alice, 's', b'a')
            registry.check(self.bob, self.alice, 's', b'a')
            registry.check_at(self.bob, addr, b'a')

    def test_not_found(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            with self.assertRaises(FilterNotFound):
                registry.add(self.alice, 'nope', b'a')
            with self.assertRaises(FilterNotFound):
                registry.check(self.alice, self.alice, 'nope', b'a')
            with self.assertRaises(FilterNotFound):
                registry.get(self.alice, self.alice, 'nope')

    def test_list(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            for name in ['c', 'a', 'b']:
                registry.init(self.alice, NewFilter(name, 10, 1))
            registry.init(self.bob, NewFilter('z', 10, 1))
            self.assertEqual([f.name for f in registry.list(self.alice, self.alice)], ['a', 'b', 'c'])
            self.assertEqual([f.name for f in registry.list(self.bob, self.bob)], ['z'])
            self.assertEqual(registry.list(self.alice, b'carol'), [])

    def test_persistence(self):
        registry = FilterRegistry(data_dir=self.dir)
        registry.init(self.alice, NewFilter('s', 1000, 4))
        for i in range(50):
            registry.add(self.alice, 's', str(i).encode())
        n = registry.get(self.alice, self.alice, 's').n
        registry.close()

        registry = FilterRegistry(data_dir=self.dir)
        self.assertEqual(registry.get(self.alice, self.alice, 's').n, n)
        for i in range(50):
            registry.check(self.alice, self.alice, 's', str(i).encode())
        registry.close()

    def test_entry_encoding(self):
        with FilterRegistry(data_dir=self.dir) as registry:
            registry.init(self.alice, NewFilter('s', 10, 1))
            f = registry.get(self.alice, self.alice, 's')
        owner, g = decode_entry(encode_entry(self.alice, f))
        self.assertEqual(owner, self.alice)
        self.assertEqual(g.serialize(), f.serialize())

    def test_fuzzy_recovery(self):
        self.fuzzy_test_registry({'data_dir': self.dir.name}, owners=[self.alice, self.bob], n_filters=3,
                                 n_iter=2_000, seed=1, test_recovery=True)

    def test_fuzzy_replica(self):
        replica = PathReplica(self.dir.name, self.remote.name)
        self.fuzzy_test_registry({'data_dir': self.dir.name, 'replica': replica}, owners=[self.alice],
                                 n_filters=2, n_iter=500, seed=2, test_recovery=True, test_replica=True)
        replica.destroy()


if __name__ == "__main__":
    unittest.main()
