"""Store adapters, one per backend."""

from .base import BaseStoreAdapter, StoreAdapter, dedupe_batch
from .kv import OrderedKVStoreAdapter
from .leveldb import LevelDBStoreAdapter
from .mongodb import MongoStoreAdapter
from .postgres import PostgresStoreAdapter
from .rocksdb import RocksDBStoreAdapter
from .surrealdb import SurrealStoreAdapter

__all__ = [
    "BaseStoreAdapter",
    "LevelDBStoreAdapter",
    "MongoStoreAdapter",
    "OrderedKVStoreAdapter",
    "PostgresStoreAdapter",
    "RocksDBStoreAdapter",
    "StoreAdapter",
    "SurrealStoreAdapter",
    "dedupe_batch",
]
