"""Object store clients: in-memory and boto3/S3."""

from .memory import MemoryObjectStore
from .s3 import Boto3ObjectStore

__all__ = ["Boto3ObjectStore", "MemoryObjectStore"]
