"""Metadata records of the backing store and of the host, and the mapping
between them."""

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

import enum


CONTENT_TYPE_KEY = "content-type"


class MetaFlags(enum.IntFlag):
    """Which metadata fields a backing-store listing should fill in."""

    NONE = 0
    MODIFIED = 1
    EXPIRATION = 2
    SIZE = 4
    CHECKSUM = 8
    USER_DEFINED = 16
    ALL = MODIFIED | EXPIRATION | SIZE | CHECKSUM | USER_DEFINED


# -- Backing store records --


@dataclass
class SerializableMeta:
    """Metadata supplied by the caller when storing an object."""

    content_type: str = ""
    user_defined: dict = field(default_factory=dict)


@dataclass
class ObjectMeta:
    """Metadata the backing store reports for a stored object."""

    modified: datetime = None
    expiration: datetime = None
    size: int = 0
    checksum: str = ""
    content_type: str = ""
    user_defined: dict = field(default_factory=dict)


@dataclass
class BucketMeta:
    created: datetime = None


@dataclass
class ListItem:
    """One entry of an object-store listing: a leaf object or a prefix."""

    path: object
    meta: ObjectMeta = None
    is_prefix: bool = False


@dataclass
class BucketListItem:
    bucket: str
    meta: BucketMeta


# -- Host records --


@dataclass
class BucketInfo:
    name: str
    created: datetime = None


@dataclass
class ObjectInfo:
    bucket: str
    name: str
    mod_time: datetime = None
    size: int = 0
    etag: str = ""
    content_type: str = ""
    user_defined: dict = field(default_factory=dict)
    is_dir: bool = False


@dataclass
class ListObjectsInfo:
    is_truncated: bool = False
    next_marker: str = ""
    objects: list = field(default_factory=list)
    prefixes: list = field(default_factory=list)


@dataclass
class ListObjectsV2Info:
    is_truncated: bool = False
    continuation_token: str = ""
    next_continuation_token: str = ""
    objects: list = field(default_factory=list)
    prefixes: list = field(default_factory=list)


# -- Translation --


def object_info_from_meta(bucket, name, meta):
    """Build the host view of an object from backing-store metadata."""
    return ObjectInfo(
        bucket=bucket,
        name=name,
        mod_time=meta.modified,
        size=meta.size,
        etag=meta.checksum,
        content_type=meta.content_type or "",
        user_defined=dict(meta.user_defined or {}),
    )


def serializable_meta_from_metadata(metadata):
    """Split the reserved content-type key out of host metadata.

    The caller's mapping is left untouched.
    """
    user_defined = dict(metadata or {})
    content_type = user_defined.pop(CONTENT_TYPE_KEY, "")
    return SerializableMeta(content_type=content_type or "", user_defined=user_defined)


def serializable_meta_from_object_info(info):
    return SerializableMeta(
        content_type=info.content_type or "",
        user_defined=dict(info.user_defined or {}),
    )


def bucket_info_from_meta(name, meta):
    return BucketInfo(name=name, created=meta.created)
