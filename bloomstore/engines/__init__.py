from bloomstore.engines.kvstore import KVStore
from bloomstore.engines.recordstore import RecordStore
