"""
Base class for the record stores: data directory, store type stamp and the on-disk framing of kv pairs.
"""

import json
import struct
from pathlib import Path


EMPTY = b''


def length_format(max_len):
    # smallest unsigned little-endian int that fits max_len
    for fmt in ('<B', '<H', '<I'):
        if max_len < 2 ** (8 * struct.calcsize(fmt)):
            return fmt
    raise ValueError(f'length limit {max_len} is too large')


class KVStore:
    type = 'kvstore'

    def __init__(self, data_dir='./data', max_key_len=255, max_value_len=2 ** 16 - 1, replica=None):
        assert max_key_len > 0 and max_value_len > 0

        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(exist_ok=True)

        self.max_key_len = max_key_len
        self.max_value_len = max_value_len
        self.key_len_fmt = length_format(max_key_len)
        self.val_len_fmt = length_format(max_value_len)

        self.replica = replica

        self.metadata_path = self.data_dir / 'metadata'
        self.metadata = json.loads(self.metadata_path.read_text()) if self.metadata_path.is_file() else {}
        assert self.metadata.setdefault('type', self.type) == self.type, 'incorrect directory structure'

    def save_metadata(self):
        self.metadata_path.write_text(json.dumps(self.metadata))

    def _read_kv_pair(self, fd):
        # a torn pair at the tail of a file reads as the end of it
        key_len_size = struct.calcsize(self.key_len_fmt)
        val_len_size = struct.calcsize(self.val_len_fmt)

        raw = fd.read(key_len_size)
        if len(raw) < key_len_size:
            return EMPTY, EMPTY
        key = fd.read(struct.unpack(self.key_len_fmt, raw)[0])
        raw = fd.read(val_len_size)
        if len(raw) < val_len_size:
            return EMPTY, EMPTY
        val_len = struct.unpack(self.val_len_fmt, raw)[0]
        value = fd.read(val_len)
        if len(value) < val_len:
            return EMPTY, EMPTY
        return key, value

    def _write_kv_pair(self, fd, key, value, flush=False):
        fd.write(struct.pack(self.key_len_fmt, len(key)) + key + struct.pack(self.val_len_fmt, len(value)) + value)
        if flush:
            fd.flush()

    def _check_key(self, key):
        assert type(key) is bytes
        assert 0 < len(key) <= self.max_key_len

    def _check_kv(self, key, value):
        self._check_key(key)
        assert type(value) is bytes and len(value) <= self.max_value_len

    def __getitem__(self, key):
        return self.get(key)

    def __setitem__(self, key, value):
        return self.set(key, value)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # abstract methods
    def get(self, key: bytes):
        raise NotImplementedError('')

    def set(self, key: bytes, value: bytes):
        raise NotImplementedError('')

    def close(self):
        raise NotImplementedError('')
