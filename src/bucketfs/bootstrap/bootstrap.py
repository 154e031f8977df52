"""Wire the filesystem, the reconciliation job and their adapters together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from bucketfs import config as app_config
from bucketfs.adapters.cache_store import SqlAlchemyCacheStore
from bucketfs.adapters.clock import SystemClock
from bucketfs.adapters.db.engine import make_engine
from bucketfs.adapters.object_store import Boto3ObjectStore
from bucketfs.adapters.stat_cache import SqlAlchemyStatCache
from bucketfs.service_layer.filesystem import StreamWrapper
from bucketfs.service_layer.reconciliation import CacheRefresher

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from bucketfs.config import MountConfig
    from bucketfs.interfaces.cache_store import CacheStore
    from bucketfs.interfaces.clock import Clock
    from bucketfs.interfaces.object_store import ObjectStoreClient
    from bucketfs.interfaces.stat_cache import StatCache


@dataclass(frozen=True)
class AppContainer:
    """The assembled application for one mount."""

    config: MountConfig
    client: ObjectStoreClient
    cache_store: CacheStore
    filesystem: StreamWrapper
    refresher: CacheRefresher
    stat_cache: StatCache | None = None
    engine: Engine | None = None


def build_object_store(config: MountConfig) -> ObjectStoreClient:
    """Build the boto3-backed object store client for ``config``."""
    return Boto3ObjectStore.from_config(config)


def build_container(
    config: MountConfig,
    client: ObjectStoreClient,
    cache_store: CacheStore,
    clock: Clock,
    **extras,
) -> AppContainer:
    """Assemble the services on top of already-built adapters."""
    filesystem = StreamWrapper(config, client, cache_store, clock)
    refresher = CacheRefresher(
        client,
        cache_store,
        filesystem.resolver,
        clock,
        page_size=config.list_page_size,
        ttl=config.cache_ttl,
    )
    return AppContainer(
        config=config,
        client=client,
        cache_store=cache_store,
        filesystem=filesystem,
        refresher=refresher,
        **extras,
    )


def bootstrap(
    config: MountConfig | None = None,
    *,
    client: ObjectStoreClient | None = None,
    clock: Clock | None = None,
) -> AppContainer:
    """Build the application from the environment (or an explicit config).

    Raises:
        ConfigurationError: if the configuration is invalid.
    """
    config = (config or app_config.load_config()).validate()
    clock = clock or SystemClock()
    engine = make_engine(config.db_url)
    return build_container(
        config,
        client or build_object_store(config),
        SqlAlchemyCacheStore(engine),
        clock,
        stat_cache=SqlAlchemyStatCache(engine, clock),
        engine=engine,
    )
