"""Backend registry: one optional connection handle per store.

Built once at startup by ``connect_backends``. A backend that is not
configured, or that fails to initialize, keeps a ``None`` handle and its
adapter reports itself unavailable. Startup never fails because of a store.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from history_replicator.config.state import BackendsConfig
from history_replicator.infrastructure.observability import get_infrastructure_logger
from history_replicator.storage.adapters import (
    BaseStoreAdapter,
    LevelDBStoreAdapter,
    MongoStoreAdapter,
    PostgresStoreAdapter,
    RocksDBStoreAdapter,
    SurrealStoreAdapter,
)


@dataclass
class BackendRegistry:
    """Connection handles for every store. ``None`` means unavailable."""

    postgres_pool: Any | None = None
    mongo_collection: Any | None = None
    leveldb: Any | None = None
    rocksdb: Any | None = None
    surreal: Any | None = None
    table: str = "unit_intervals"

    def available(self) -> list[str]:
        handles = {
            "postgres": self.postgres_pool,
            "mongodb": self.mongo_collection,
            "leveldb": self.leveldb,
            "rocksdb": self.rocksdb,
            "surrealdb": self.surreal,
        }
        return [name for name, handle in handles.items() if handle is not None]


async def connect_postgres(config: BackendsConfig) -> Any | None:
    if not config.postgres_url:
        return None
    import asyncpg

    pool = await asyncpg.create_pool(
        config.postgres_url,
        min_size=1,
        max_size=config.postgres_pool_size,
        timeout=config.postgres_acquire_timeout,
    )
    await pool.execute(
        f"CREATE TABLE IF NOT EXISTS {config.table} ("
        "id BIGSERIAL PRIMARY KEY, "
        "start_time TIMESTAMPTZ NOT NULL, "
        "end_time TIMESTAMPTZ NOT NULL, "
        "count BIGINT NOT NULL, "
        "units BIGINT NOT NULL)"
    )
    return pool


async def connect_mongodb(config: BackendsConfig) -> Any | None:
    if not config.mongodb_url:
        return None
    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(
        config.mongodb_url, tz_aware=True, serverSelectionTimeoutMS=5000
    )
    try:
        await client.admin.command("ping")
    except Exception:
        client.close()
        raise
    return client[config.mongodb_database][config.table]


def open_leveldb(config: BackendsConfig) -> Any | None:
    if not config.leveldb_path:
        return None
    import plyvel

    return plyvel.DB(config.leveldb_path, create_if_missing=True)


def open_rocksdb(config: BackendsConfig) -> Any | None:
    if not config.rocksdb_path:
        return None
    from rocksdict import Options, Rdict

    # raw mode: bytes keys/values, no pickling
    return Rdict(config.rocksdb_path, options=Options(raw_mode=True))


async def connect_surreal(config: BackendsConfig) -> Any | None:
    if not config.surreal_url:
        return None
    from history_replicator.storage.clients import SurrealHttpClient

    client = SurrealHttpClient(
        config.surreal_url,
        namespace=config.surreal_namespace,
        database=config.surreal_database,
        username=config.surreal_user,
        password=config.surreal_password,
    )
    try:
        await client.ping()
    except Exception:
        await client.close()
        raise
    return client


async def connect_backends(config: BackendsConfig) -> BackendRegistry:
    """Initialize every configured backend independently.

    Connection failures are logged and leave that handle as ``None``.
    """
    logger = get_infrastructure_logger("backend-registry")
    registry = BackendRegistry(table=config.table)

    async def _attempt(name: str, attr: str, connect) -> None:
        try:
            handle = await connect()
        except Exception as e:
            logger.error("backend_connect_failed", store=name, error=str(e))
            return
        if handle is None:
            logger.info("backend_not_configured", store=name)
            return
        setattr(registry, attr, handle)
        logger.info("backend_connected", store=name)

    await asyncio.gather(
        _attempt("postgres", "postgres_pool", lambda: connect_postgres(config)),
        _attempt("mongodb", "mongo_collection", lambda: connect_mongodb(config)),
        _attempt("leveldb", "leveldb", lambda: asyncio.to_thread(open_leveldb, config)),
        _attempt("rocksdb", "rocksdb", lambda: asyncio.to_thread(open_rocksdb, config)),
        _attempt("surrealdb", "surreal", lambda: connect_surreal(config)),
    )

    logger.info(f"🔌 Backends ready: {registry.available() or 'none'}")
    return registry


def build_adapters(registry: BackendRegistry) -> dict[str, BaseStoreAdapter]:
    """One adapter per store, keyed by store id, in a stable order."""
    adapters: list[BaseStoreAdapter] = [
        PostgresStoreAdapter(registry.postgres_pool, table=registry.table),
        MongoStoreAdapter(registry.mongo_collection),
        LevelDBStoreAdapter(registry.leveldb),
        RocksDBStoreAdapter(registry.rocksdb),
        SurrealStoreAdapter(registry.surreal, table=registry.table),
    ]
    return {adapter.store_id: adapter for adapter in adapters}


async def close_adapters(adapters: dict[str, BaseStoreAdapter]) -> None:
    """Close every adapter; one failing close does not stop the others."""
    logger = get_infrastructure_logger("backend-registry")
    for store_id, adapter in adapters.items():
        try:
            await adapter.close()
        except Exception as e:
            logger.warning("adapter_close_failed", store=store_id, error=str(e))
