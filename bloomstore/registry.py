"""
Hosts filters in a record store. Every stored record carries its owner next to the encoded filter, and lives at an
address derived from a fixed namespace tag, the owner and the filter name.
"""

import logging
import struct
from hashlib import sha256
from typing import Callable, Optional

from bloomstore.common.bloom import BloomFilter, NewFilter, murmur64, validate
from bloomstore.common.errors import InvalidParameters, Unauthenticated, FilterExists, FilterNotFound, PermissionDenied, \
    CorruptRecord
from bloomstore.engines.recordstore import RecordStore

NAMESPACE = b'bloom-filter'
MAX_OWNER_LEN = 255

logger = logging.getLogger(__name__)


def _len_prefixed(b: bytes):
    return struct.pack('<I', len(b)) + b


def address(owner: bytes, name: str) -> bytes:
    try:
        encoded = name.encode()
    except (AttributeError, UnicodeEncodeError) as e:
        raise InvalidParameters() from e
    # length prefixes keep (b'ab', 'c') and (b'a', 'bc') apart
    return sha256(_len_prefixed(NAMESPACE) + _len_prefixed(owner) + _len_prefixed(encoded)).digest()


def encode_entry(owner: bytes, bloom_filter: BloomFilter) -> bytes:
    return _len_prefixed(owner) + bloom_filter.serialize()


def decode_entry(data: bytes, hash_func=murmur64):
    if len(data) < 4:
        raise CorruptRecord('missing owner')
    owner_len, = struct.unpack_from('<I', data)
    if owner_len > MAX_OWNER_LEN or 4 + owner_len > len(data):
        raise CorruptRecord('bad owner length')
    owner = data[4:4 + owner_len]
    return owner, BloomFilter(hash_func=hash_func, from_bytes=data[4 + owner_len:])


class FilterRegistry:

    def __init__(self,
                 store: Optional[RecordStore] = None,
                 data_dir='./data',
                 hash_func: Callable[[bytes, int], int] = murmur64,
                 replica=None):
        self.store = store if store is not None else RecordStore(data_dir, replica=replica)
        self.hash_func = hash_func

    @staticmethod
    def authenticate(caller):
        if type(caller) is not bytes or not 0 < len(caller) <= MAX_OWNER_LEN:
            raise Unauthenticated('caller identity must be 1 to 255 bytes')
        return caller

    def _load(self, addr: bytes):
        data = self.store.get(addr)
        if not data:
            raise FilterNotFound(f'no filter at {addr.hex()}')
        return decode_entry(data, self.hash_func)

    def init(self, caller: bytes, new_filter: NewFilter) -> bytes:
        owner = self.authenticate(caller)
        validate(new_filter)
        addr = address(owner, new_filter.name)
        if addr in self.store:
            raise FilterExists(f'filter {new_filter.name!r} already exists')

        bloom_filter = BloomFilter(new_filter, hash_func=self.hash_func)
        self.store.set(addr, encode_entry(owner, bloom_filter))
        logger.info('created filter %r at %s', bloom_filter.name, addr.hex())
        return addr

    def add(self, caller: bytes, name: str, element: bytes) -> bool:
        owner = self.authenticate(caller)
        return self.add_at(owner, address(owner, name), element)

    def add_at(self, caller: bytes, addr: bytes, element: bytes) -> bool:
        caller = self.authenticate(caller)
        owner, bloom_filter = self._load(addr)
        if owner != caller:
            raise PermissionDenied(f'filter {bloom_filter.name!r} is not owned by the caller')

        changed = bloom_filter.add(bytes(element))
        if changed:
            self.store.set(addr, encode_entry(owner, bloom_filter))
        return changed

    def check(self, caller: bytes, owner: bytes, name: str, element: bytes):
        self.authenticate(caller)
        self.check_at(caller, address(owner, name), element)

    def check_at(self, caller: bytes, addr: bytes, element: bytes):
        # any authenticated caller may read
        self.authenticate(caller)
        _, bloom_filter = self._load(addr)
        bloom_filter.check(bytes(element))

    def get(self, caller: bytes, owner: bytes, name: str) -> BloomFilter:
        self.authenticate(caller)
        _, bloom_filter = self._load(address(owner, name))
        return bloom_filter

    def owner_of(self, caller: bytes, addr: bytes) -> bytes:
        self.authenticate(caller)
        owner, _ = self._load(addr)
        return owner

    def list(self, caller: bytes, owner: bytes) -> list[BloomFilter]:
        self.authenticate(caller)
        filters = []
        for _, data in self.store.items():
            record_owner, bloom_filter = decode_entry(data, self.hash_func)
            if record_owner == owner:
                filters.append(bloom_filter)
        return sorted(filters, key=lambda f: f.name)

    def snapshot(self):
        self.store.snapshot()

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
