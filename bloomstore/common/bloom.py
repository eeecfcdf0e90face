'''
Fixed-size Bloom filter and its binary record encoding.
https://en.wikipedia.org/wiki/Bloom_filter#Probability_of_false_positives

Encoding (little-endian), fields in this order:
    name    u32 length + utf-8 bytes
    bits    u32 number of bits + packed bytes
    m       u32
    k       u8
    n       u32
    fpr     f64
'''

import logging
import struct
from math import exp
from collections import namedtuple
from typing import Callable, Optional

from mmh3 import hash64
from bitarray import bitarray

from bloomstore.common.errors import InvalidParameters, FilterTooLarge, ElementNotFound, CorruptRecord

MAX_FILTER_SIZE = 10000
MAX_NAME_LEN = 32
MAX_NUM_HASHES = 255  # k is stored in a single byte

logger = logging.getLogger(__name__)

NewFilter = namedtuple('NewFilter', ['name', 'size', 'num_hashes'])


def murmur64(data: bytes, slot: int) -> int:
    # the slot goes in as the seed, so one hash family gives all k indices
    return hash64(data, seed=slot, signed=False)[0]


def validate(new_filter: NewFilter):
    name, size, num_hashes = new_filter
    for value in (size, num_hashes):
        if type(value) is not int or value < 0:
            raise InvalidParameters()
    if size == 0 or num_hashes == 0:
        raise InvalidParameters()
    if size > MAX_FILTER_SIZE:
        raise FilterTooLarge()
    if num_hashes > MAX_NUM_HASHES:
        raise InvalidParameters()
    if type(name) is not str:
        raise InvalidParameters()
    try:
        encoded = name.encode()
    except UnicodeEncodeError as e:
        raise InvalidParameters() from e
    if len(encoded) > MAX_NAME_LEN:
        raise InvalidParameters()


def false_positive_rate(m: int, k: int, n: int) -> float:
    # (1 - e^(-k*n/m))^k
    return (1.0 - exp(-k * n / m)) ** k


class BloomFilter:

    def __init__(self,
                 new_filter: Optional[NewFilter] = None,
                 hash_func: Callable[[bytes, int], int] = murmur64,
                 from_bytes: Optional[bytes] = None):
        self.hash_func = hash_func

        if from_bytes is not None:
            self._load(from_bytes)
            return

        if new_filter is None:
            raise InvalidParameters()
        validate(new_filter)

        self.name = new_filter.name
        self.m = new_filter.size
        self.k = new_filter.num_hashes
        self.n = 0
        self.false_positive_rate = 0.0

        self.bits = bitarray(self.m, endian='little')
        self.bits.setall(False)

        logger.debug('initialized filter %r with m=%d k=%d', self.name, self.m, self.k)

    def indices(self, data: bytes) -> list[int]:
        return [self.hash_func(data, i) % self.m for i in range(self.k)]

    def _all_set(self, indices):
        return all(self.bits[i] for i in indices)

    def add(self, data: bytes) -> bool:
        '''
        Insert `data`. Returns False without touching anything if every bit for `data` is already set, which also
        happens for a distinct element colliding on all k positions: it counts as present and `n` stays put.
        '''
        indices = self.indices(data)
        if self._all_set(indices):
            return False

        for i in indices:
            self.bits[i] = True

        self.n += 1
        self.false_positive_rate = false_positive_rate(self.m, self.k, self.n)
        logger.debug('filter %r: n=%d fpr=%.6g', self.name, self.n, self.false_positive_rate)
        return True

    def check(self, data: bytes):
        if not self._all_set(self.indices(data)):
            raise ElementNotFound()

    def __contains__(self, data: bytes):
        return self._all_set(self.indices(data))

    def serialize(self) -> bytes:
        name = self.name.encode()
        return b''.join([
            struct.pack('<I', len(name)), name,
            struct.pack('<I', len(self.bits)), self.bits.tobytes(),
            struct.pack('<IBId', self.m, self.k, self.n, self.false_positive_rate),
        ])

    def _load(self, data: bytes):
        offset = 0

        def take(fmt):
            nonlocal offset
            try:
                values = struct.unpack_from(fmt, data, offset)
            except struct.error as e:
                raise CorruptRecord(f'truncated record at byte {offset}') from e
            offset += struct.calcsize(fmt)
            return values

        def take_bytes(length):
            nonlocal offset
            if offset + length > len(data):
                raise CorruptRecord(f'truncated record at byte {offset}')
            chunk = data[offset:offset + length]
            offset += length
            return chunk

        name_len, = take('<I')
        if name_len > MAX_NAME_LEN:
            raise CorruptRecord('name too long')
        try:
            self.name = take_bytes(name_len).decode()
        except UnicodeDecodeError as e:
            raise CorruptRecord('name is not valid utf-8') from e

        num_bits, = take('<I')
        if num_bits > MAX_FILTER_SIZE:
            raise CorruptRecord('bit array too long')
        self.bits = bitarray(endian='little')
        self.bits.frombytes(take_bytes((num_bits + 7) // 8))
        del self.bits[num_bits:]

        self.m, self.k, self.n, self.false_positive_rate = take('<IBId')

        if offset != len(data):
            raise CorruptRecord('trailing bytes after record')
        if self.m == 0 or self.m != num_bits:
            raise CorruptRecord(f'bit array length {num_bits} does not match m={self.m}')
        if self.k == 0:
            raise CorruptRecord('k must be positive')

    def __repr__(self):
        return f'BloomFilter(name={self.name!r}, m={self.m}, k={self.k}, n={self.n}, ' \
               f'false_positive_rate={self.false_positive_rate})'
