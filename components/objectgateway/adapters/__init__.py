from .inmemory import InMemoryObjectStore
from .s3 import S3ObjectStore

__all__ = ["InMemoryObjectStore", "S3ObjectStore"]
