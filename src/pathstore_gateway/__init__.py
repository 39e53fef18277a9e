"""S3 bucket and object API on top of a path-addressed object store."""

from pathstore_gateway.gateway import PathStoreGateway
from pathstore_gateway.gateway import PathStoreObjects
from pathstore_gateway.paths import Path


__all__ = ["Path", "PathStoreGateway", "PathStoreObjects"]
