"""Vector store registry.

The registry is the only place store instances are created or evicted.
Instances are memoized by ``(type, instance_key)`` so a backend can be
swapped under a new key while holders of the old instance keep using it.
"""

from pathlib import Path

from iconsearch.exceptions import ConfigurationError, ErrorCode
from iconsearch.execution import ExecutionContext
from iconsearch.logging_config import get_logger
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.cloud import (
    DEFAULT_BATCH_SIZE,
    CloudVectorStore,
    RelayedCloudVectorStore,
)
from iconsearch.vectorstore.config import (
    CloudStoreConfig,
    EmbeddedStoreConfig,
    LocalServerStoreConfig,
    MemoryStoreConfig,
    VectorStoreConfig,
)
from iconsearch.vectorstore.embedded import KV_NAMESPACE, EmbeddedVectorStore
from iconsearch.vectorstore.memory import InMemoryVectorStore
from iconsearch.vectorstore.qdrant import LocalServerVectorStore
from iconsearch.vectorstore.relay import VectorStoreRelayClient

logger = get_logger(__name__)

DEFAULT_INSTANCE_KEY = "default"
DEFAULT_STORE_NAME = "icon_vectors"


def instance_id(config: VectorStoreConfig, instance_key: str) -> str:
    return f"{config.type}-{instance_key}"


class VectorStoreRegistry:
    """Creates and memoizes vector store instances.

    Example:
        >>> registry = VectorStoreRegistry(ExecutionContext())
        >>> store = registry.create_vector_store(MemoryStoreConfig())
        >>> store is registry.create_vector_store(MemoryStoreConfig())
        True
    """

    def __init__(
        self,
        execution: ExecutionContext | None = None,
        cloud_batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._execution = execution or ExecutionContext()
        self._cloud_batch_size = cloud_batch_size
        self._instances: dict[str, VectorStore] = {}

    @property
    def execution(self) -> ExecutionContext:
        return self._execution

    def create_vector_store(
        self,
        config: VectorStoreConfig,
        instance_key: str = DEFAULT_INSTANCE_KEY,
    ) -> VectorStore:
        """Return the store for ``(config.type, instance_key)``, creating it once.

        Args:
            config: Backend configuration.
            instance_key: Distinguishes instances of the same backend type.

        Returns:
            The memoized store instance.

        Raises:
            ConfigurationError: If the backend cannot run in this execution
                context or the config lacks required fields.
        """
        key = instance_id(config, instance_key)
        store = self._instances.get(key)
        if store is None:
            store = self._build(config)
            self._instances[key] = store
            logger.info(
                f"Created vector store instance: {key}",
                extra={"backend": store.backend},
            )
        return store

    def _build(self, config: VectorStoreConfig) -> VectorStore:
        if isinstance(config, EmbeddedStoreConfig):
            kv = SQLiteKeyValueStore(Path(config.path), KV_NAMESPACE)
            return EmbeddedVectorStore(
                config.store_name or DEFAULT_STORE_NAME,
                kv,
                min_similarity=config.min_similarity,
            )
        if isinstance(config, MemoryStoreConfig):
            return InMemoryVectorStore(min_similarity=config.min_similarity)
        if isinstance(config, LocalServerStoreConfig):
            return LocalServerVectorStore(config, execution=self._execution)
        if isinstance(config, CloudStoreConfig):
            if self._execution.is_client:
                relay = VectorStoreRelayClient(
                    self._execution.api_base_url,
                    timeout=self._execution.request_timeout,
                )
                return RelayedCloudVectorStore(relay, collection_name=config.collection_name)
            if config.api_key is None:
                raise ConfigurationError(
                    "Cloud vector store requires an API key",
                    details={"type": config.type, "field": "api_key"},
                )
            return CloudVectorStore(config, batch_size=self._cloud_batch_size)

        raise ConfigurationError(
            f"Unsupported vector store type: {getattr(config, 'type', config)}",
            code=ErrorCode.UNSUPPORTED_BACKEND,
        )

    def get_vector_store(
        self,
        config: VectorStoreConfig,
        instance_key: str = DEFAULT_INSTANCE_KEY,
    ) -> VectorStore | None:
        """Return an existing instance without creating one."""
        return self._instances.get(instance_id(config, instance_key))

    def remove_vector_store(
        self,
        config: VectorStoreConfig,
        instance_key: str = DEFAULT_INSTANCE_KEY,
    ) -> VectorStore | None:
        """Evict an instance; the caller owns closing it."""
        store = self._instances.pop(instance_id(config, instance_key), None)
        if store is not None:
            logger.info(f"Removed vector store instance: {instance_id(config, instance_key)}")
        return store

    def get_all_instances(self) -> dict[str, VectorStore]:
        return dict(self._instances)

    async def clear_all_instances(self) -> None:
        """Close and evict every instance."""
        instances = list(self._instances.values())
        self._instances.clear()
        for store in instances:
            await store.close()
        logger.info(f"Cleared {len(instances)} vector store instances")
