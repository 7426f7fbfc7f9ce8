"""Wire configuration into connected backends, adapters and the ingestion loop."""

import asyncio
from dataclasses import dataclass

from history_replicator.config.state import ConfigState
from history_replicator.infrastructure.checkpoint import CursorStore
from history_replicator.infrastructure.registry import (
    BackendRegistry,
    build_adapters,
    close_adapters,
    connect_backends,
)
from history_replicator.ingestion.connectors import AiohttpClient
from history_replicator.ingestion.cursor import IngestionCursor
from history_replicator.ingestion.fetcher import UpstreamFetcher
from history_replicator.ingestion.loop import IngestionLoop
from history_replicator.ingestion.retry import RetryPolicy
from history_replicator.replication.coordinator import ReplicationCoordinator
from history_replicator.replication.models import AggregationPolicy
from history_replicator.storage.adapters import BaseStoreAdapter
from history_replicator.storage.query import ReadService


@dataclass
class Runtime:
    """Everything a process needs, built once at startup."""

    settings: ConfigState
    registry: BackendRegistry
    adapters: dict[str, BaseStoreAdapter]
    http_client: AiohttpClient
    loop: IngestionLoop
    read_service: ReadService

    async def close(self) -> None:
        await self.http_client.close()
        await close_adapters(self.adapters)


def build_cursor_store(settings: ConfigState) -> CursorStore | None:
    ingestion = settings.ingestion
    if ingestion.cursor_dir:
        return CursorStore(local_root=ingestion.cursor_dir)
    if ingestion.cursor_bucket:
        return CursorStore(bucket=ingestion.cursor_bucket, endpoint=ingestion.cursor_endpoint)
    return None


async def build_runtime(settings: ConfigState) -> Runtime:
    """
    Connect everything described by ``settings``.

    The cursor is loaded before any backend is opened.

    Raises:
        CursorPersistenceError: The configured cursor store could not be read
    """
    cursor = await asyncio.to_thread(
        IngestionCursor.load,
        build_cursor_store(settings),
        key=settings.ingestion.cursor_key,
        initial=settings.ingestion.initial_cursor,
    )

    registry = await connect_backends(settings.backends)
    adapters = build_adapters(registry)

    http_client = AiohttpClient(timeout=settings.upstream.timeout)
    fetcher = UpstreamFetcher(
        settings.upstream,
        http_client,
        retry_policy=RetryPolicy.from_settings(settings.retry),
    )
    loop = IngestionLoop(
        fetcher,
        ReplicationCoordinator(adapters, policy=AggregationPolicy(settings.replication.policy)),
        cursor,
        batch_size=settings.ingestion.batch_size,
        poll_interval=settings.ingestion.poll_interval,
    )
    read_service = ReadService(
        adapters,
        default_page_size=settings.api.default_page_size,
        max_page_size=settings.api.max_page_size,
        strict_sort=settings.api.strict_sort,
    )
    return Runtime(
        settings=settings,
        registry=registry,
        adapters=adapters,
        http_client=http_client,
        loop=loop,
        read_service=read_service,
    )
