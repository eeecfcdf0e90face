"""
Persisted record store: sorted in-memory index, write-ahead log and versioned snapshots.
"""

import logging
from sys import getsizeof
from typing import Optional

from sortedcontainers import SortedDict

from bloomstore.engines.kvstore import KVStore, EMPTY
from bloomstore.replication import Replica, to_file_name, parse_file_name

logger = logging.getLogger(__name__)


class RecordStore(KVStore):
    name = 'RecordStore'
    type = 'recordstore'

    def __init__(self,
                 data_dir='./data',
                 max_key_len=255,
                 max_value_len=2 ** 16 - 1,
                 replica: Optional[Replica] = None):
        super().__init__(data_dir=data_dir, max_key_len=max_key_len, max_value_len=max_value_len, replica=replica)

        self.index = SortedDict()
        # version of the newest snapshot on disk, None before the first flush
        self.version: Optional[int] = None
        self.dirty = False

        self.wal_path = self.data_dir / 'wal'

        if self.replica and not self._has_local_data():
            self.wal_file = self.wal_path.open('ab')
            self.restore()
        else:
            self.rebuild_indices()
            self.wal_file = self.wal_path.open('ab')

    def _local_versions(self):
        versions = (parse_file_name(f.name) for f in self.data_dir.glob('records.*.run') if f.is_file())
        return sorted(v for v in versions if v is not None)

    def _has_local_data(self):
        return bool(self._local_versions()) or (self.wal_path.is_file() and self.wal_path.stat().st_size > 0)

    def rebuild_indices(self):
        self.index.clear()
        self.dirty = False

        versions = self._local_versions()
        self.version = versions[-1] if versions else None
        if self.version is not None:
            with (self.data_dir / to_file_name(self.version)).open('rb') as run_file:
                key, value = self._read_kv_pair(run_file)
                while key:
                    self.index[key] = value
                    key, value = self._read_kv_pair(run_file)

        if self.wal_path.is_file():
            replayed = 0
            with self.wal_path.open('r+b') as wal_file:
                good_offset = 0
                key, value = self._read_kv_pair(wal_file)
                while key:
                    self.index[key] = value
                    replayed += 1
                    good_offset = wal_file.tell()
                    key, value = self._read_kv_pair(wal_file)
                # drop a torn tail so new appends start on a pair boundary
                if good_offset < self.wal_path.stat().st_size:
                    logger.warning('truncating torn write-ahead log tail at byte %d', good_offset)
                    wal_file.truncate(good_offset)
            if replayed:
                self.dirty = True
                logger.debug('replayed %d records from the write-ahead log', replayed)

    def close(self):
        if self.replica:
            self.snapshot()
        else:
            self.flush()
        self.save_metadata()
        self.wal_file.close()

    def get(self, key: bytes):
        self._check_key(key)
        return self.index.get(key, EMPTY)

    def set(self, key: bytes, value: bytes):
        self._check_kv(key, value)
        self.index[key] = value
        self._write_kv_pair(self.wal_file, key, value, flush=True)
        self.dirty = True

    def __contains__(self, key):
        return key in self.index

    def __len__(self):
        return len(self.index)

    def keys(self):
        return self.index.keys()

    def items(self):
        return self.index.items()

    def flush(self):
        if not self.dirty:
            return

        new_version = 0 if self.version is None else self.version + 1
        if self.replica:
            # after restoring an older snapshot, never reuse a version the replica already holds
            latest = self.replica.latest_version()
            if latest is not None:
                new_version = max(new_version, latest + 1)
        with (self.data_dir / to_file_name(new_version)).open('wb') as run_file:
            for key, value in self.index.items():
                self._write_kv_pair(run_file, key, value)

        if self.version is not None:
            (self.data_dir / to_file_name(self.version)).unlink(missing_ok=True)

        self.version = new_version
        self.metadata['version'] = new_version
        self.save_metadata()

        # reset WAL
        self.wal_file.close()
        self.wal_file = self.wal_path.open('wb')
        self.dirty = False
        logger.debug('flushed %d records to snapshot version %d', len(self.index), new_version)

    def snapshot(self):
        self.flush()
        if self.replica and self.version is not None:
            self.replica.put(to_file_name(self.version))

    def restore(self, version=None):
        if not self.replica:
            return False
        restored = self.replica.restore(version=version)
        if restored is None:
            return False

        # anything written after the restored snapshot is dropped
        self.wal_file.close()
        self.wal_file = self.wal_path.open('wb')
        self.rebuild_indices()
        self.metadata['version'] = self.version
        self.save_metadata()
        return True

    def __sizeof__(self):
        return getsizeof(self.index) + sum((getsizeof(k) + getsizeof(v) for k, v in self.index.items()))
