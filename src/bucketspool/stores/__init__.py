"""
Object store implementations.

Available stores:
- s3: AWS S3 / S3-compatible services via boto3
- filesystem: directories on local disk, one per bucket
- memory: in-process store for tests
"""

from bucketspool.stores.base import ObjectStore
from bucketspool.stores.filesystem import FilesystemObjectStore
from bucketspool.stores.manager import STORE_TYPES, create_store
from bucketspool.stores.memory import InMemoryObjectStore
from bucketspool.stores.s3 import S3ObjectStore

__all__ = [
    "ObjectStore",
    "FilesystemObjectStore",
    "InMemoryObjectStore",
    "S3ObjectStore",
    "STORE_TYPES",
    "create_store",
]
