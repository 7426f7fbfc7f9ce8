"""
Multi-backend replication of upstream interval history.

Modules:
- domain: Interval model, read queries and page statistics
- storage: store adapters (Postgres, MongoDB, LevelDB, RocksDB, SurrealDB) and the read service
- replication: parallel fan-out of batches to every store
- ingestion: upstream fetcher, retry policy, cursor and polling loop
- infrastructure: backend registry, cursor persistence, logging and metrics
"""

__version__ = "0.1.0"
