from bloomstore.common import BloomFilter, NewFilter, MAX_FILTER_SIZE
from bloomstore.common.errors import (BloomFilterError, InvalidParameters, FilterTooLarge, ElementNotFound,
                                      CorruptRecord, RegistryError, Unauthenticated, FilterExists, FilterNotFound,
                                      PermissionDenied)
from bloomstore.engines import KVStore, RecordStore
from bloomstore.registry import FilterRegistry
from bloomstore.replication import Replica, PathReplica, MinioReplica
