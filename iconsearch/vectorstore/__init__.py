"""Vector store module for similarity search."""

from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.cloud import CloudVectorStore, RelayedCloudVectorStore
from iconsearch.vectorstore.config import (
    CloudStoreConfig,
    EmbeddedStoreConfig,
    LocalServerStoreConfig,
    MemoryStoreConfig,
    VectorStoreConfig,
    VectorStoreType,
    parse_store_config,
)
from iconsearch.vectorstore.embedded import EmbeddedVectorStore
from iconsearch.vectorstore.factory import VectorStoreRegistry
from iconsearch.vectorstore.memory import InMemoryVectorStore
from iconsearch.vectorstore.models import VectorSearchHit, VectorStoreItem
from iconsearch.vectorstore.qdrant import LocalServerVectorStore
from iconsearch.vectorstore.relay import VectorStoreRelayClient

__all__ = [
    "CloudStoreConfig",
    "CloudVectorStore",
    "EmbeddedStoreConfig",
    "EmbeddedVectorStore",
    "InMemoryVectorStore",
    "LocalServerStoreConfig",
    "LocalServerVectorStore",
    "MemoryStoreConfig",
    "RelayedCloudVectorStore",
    "VectorSearchHit",
    "VectorStore",
    "VectorStoreConfig",
    "VectorStoreItem",
    "VectorStoreRegistry",
    "VectorStoreRelayClient",
    "VectorStoreType",
    "parse_store_config",
]
