"""Document content storage."""

from .s3_client import ObjectStorageClient, ObjectStorageConfig, StoredObject

__all__ = ["ObjectStorageClient", "ObjectStorageConfig", "StoredObject"]
