"""
Object store factory.

Builds a store from the ``store:`` section of the configuration.
"""

from typing import Any

from bucketspool.exceptions import ConfigurationError
from bucketspool.stores.base import ObjectStore
from bucketspool.stores.filesystem import FilesystemObjectStore
from bucketspool.stores.memory import InMemoryObjectStore
from bucketspool.stores.s3 import S3ObjectStore
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.stores.manager")

STORE_TYPES: dict[str, type[ObjectStore]] = {
    "s3": S3ObjectStore,
    "filesystem": FilesystemObjectStore,
    "memory": InMemoryObjectStore,
}


def create_store(store_config: dict[str, Any], name: str | None = None) -> ObjectStore:
    """
    Create an object store from its configuration.

    Args:
        store_config: Mapping with ``type`` and an optional nested ``config``
        name: Store name used in logs (defaults to the type)

    Raises:
        ConfigurationError: If the store type is missing or unknown
    """
    store_type = store_config.get("type")
    if not store_type:
        raise ConfigurationError("Store configuration requires a 'type' (s3, filesystem, memory)")
    store_cls = STORE_TYPES.get(store_type)
    if store_cls is None:
        raise ConfigurationError(
            f"Unknown store type '{store_type}'. Available: {sorted(STORE_TYPES)}"
        )
    logger.debug(f"Creating {store_type} store")
    return store_cls(name or store_type, store_config)
