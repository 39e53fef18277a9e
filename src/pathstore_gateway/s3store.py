"""Backing stores persisted in a single S3 bucket.

Layout below the client prefix::

    buckets/{name}                 empty marker object per bucket
    objects/{name}/{path}          object payloads

Content type, user-defined metadata and expiration travel in one
base64-encoded JSON user-metadata header so that keys keep their case.
"""

from datetime import datetime
from pathstore_gateway.errors import KeyNotFound
from pathstore_gateway.interfaces import IBucketStore
from pathstore_gateway.interfaces import IObjectStore
from pathstore_gateway.interfaces import IRangeReader
from pathstore_gateway.listing import select_entries
from pathstore_gateway.meta import BucketListItem
from pathstore_gateway.meta import BucketMeta
from pathstore_gateway.meta import MetaFlags
from pathstore_gateway.meta import ObjectMeta
from pathstore_gateway.paths import Path
from zope.interface import implementer

import base64
import io
import json
import logging


logger = logging.getLogger(__name__)

BUCKETS_PREFIX = "buckets/"
OBJECTS_PREFIX = "objects/"
META_HEADER = "pathstore-meta"


def _encode_meta(content_type, user_defined, expiration):
    doc = {"content_type": content_type, "user_defined": user_defined}
    if expiration is not None:
        doc["expiration"] = expiration.isoformat()
    return base64.b64encode(json.dumps(doc).encode("utf-8")).decode("ascii")


def _meta_from_head(head):
    doc = {}
    raw = head.get("Metadata", {}).get(META_HEADER)
    if raw:
        doc = json.loads(base64.b64decode(raw).decode("utf-8"))
    expiration = doc.get("expiration")
    return ObjectMeta(
        modified=head.get("LastModified"),
        expiration=datetime.fromisoformat(expiration) if expiration else None,
        size=head.get("ContentLength", 0),
        checksum=head.get("ETag", "").strip('"'),
        content_type=doc.get("content_type", ""),
        user_defined=doc.get("user_defined", {}),
    )


def _check_bucket_name(name):
    if not name or "/" in name:
        raise ValueError(f"invalid bucket name: {name!r}")


@implementer(IRangeReader)
class S3RangeReader:
    def __init__(self, client, s3_key, size):
        self._client = client
        self._s3_key = s3_key
        self._size = size

    def size(self):
        return self._size

    def range(self, offset, length):
        if offset < 0 or length < 0 or offset + length > self._size:
            raise ValueError(
                f"range offset={offset} length={length} outside 0..{self._size}"
            )
        return self._client.get_range(self._s3_key, offset, length)


@implementer(IBucketStore)
class S3BucketStore:
    """Bucket directory kept as marker objects.

    ``list_limit`` is the page size used when a caller passes no limit.
    """

    def __init__(self, s3_client, list_limit=1000):
        self._s3_client = s3_client
        self.list_limit = list_limit

    def __repr__(self):
        return f"<S3BucketStore on {self._s3_client!r}>"

    def _marker_key(self, name):
        _check_bucket_name(name)
        return f"{BUCKETS_PREFIX}{name}"

    def get(self, name):
        head = self._s3_client.head_object(self._marker_key(name))
        if head is None:
            raise KeyNotFound(name)
        return BucketMeta(created=head.get("LastModified"))

    def put(self, name):
        key = self._marker_key(name)
        self._s3_client.upload_fileobj(io.BytesIO(b""), key)
        return self.get(name)

    def delete(self, name):
        key = self._marker_key(name)
        if self._s3_client.head_object(key) is None:
            raise KeyNotFound(name)
        self._s3_client.delete_object(key)

    def list(self, start_after, prefix, limit):
        if limit <= 0:
            limit = self.list_limit
        start_key = f"{BUCKETS_PREFIX}{start_after}" if start_after else ""
        items = []
        more = False
        for key, obj in self._s3_client.list_objects(
            f"{BUCKETS_PREFIX}{prefix}", start_after=start_key
        ):
            if len(items) == limit:
                more = True
                break
            name = key[len(BUCKETS_PREFIX) :]
            items.append(
                BucketListItem(bucket=name, meta=BucketMeta(created=obj["LastModified"]))
            )
        return items, more

    def get_object_store(self, bucket):
        _check_bucket_name(bucket)
        return S3ObjectStore(self, bucket)


@implementer(IObjectStore)
class S3ObjectStore:
    """Objects of one bucket, stored under ``objects/{bucket}/``.

    Listing reads every key under the prefix, because S3 orders keys
    byte-wise while paths order segment-wise.
    """

    def __init__(self, bucket_store, bucket):
        self._bucket_store = bucket_store
        self._s3_client = bucket_store._s3_client
        self.bucket = bucket
        self._root = f"{OBJECTS_PREFIX}{bucket}/"

    def __repr__(self):
        return f"<S3ObjectStore {self.bucket}>"

    def _key(self, path):
        path = Path(path)
        if not path:
            raise ValueError("object path must not be empty")
        return f"{self._root}{path}"

    def _check_bucket(self):
        self._bucket_store.get(self.bucket)

    def _head(self, path):
        key = self._key(path)
        head = self._s3_client.head_object(key)
        if head is None:
            self._check_bucket()
            raise KeyNotFound(f"{self.bucket}/{Path(path)}")
        meta = _meta_from_head(head)
        if meta.expiration is not None and meta.expiration <= datetime.now(
            meta.expiration.tzinfo
        ):
            raise KeyNotFound(f"{self.bucket}/{Path(path)}")
        return key, meta

    def list(self, prefix, start_after, pivot, recursive, limit, meta_flags):
        if pivot is not None:
            raise ValueError("pivot is not supported")
        self._check_bucket()
        prefix = Path(prefix)
        list_prefix = f"{self._root}{prefix}" if prefix else self._root
        entries = [
            (Path(key[len(self._root) :]), None)
            for key, _obj in self._s3_client.list_objects(list_prefix)
        ]
        if limit <= 0:
            limit = self._bucket_store.list_limit
        ordered, _more = select_entries(entries, prefix, start_after, recursive, 0)
        if meta_flags == MetaFlags.NONE:
            return ordered[:limit], len(ordered) > limit
        described = []
        remaining = iter(ordered)
        for item in remaining:
            if not item.is_prefix:
                full = item.path.prepend(prefix) if recursive else item.path
                head = self._s3_client.head_object(self._key(full))
                if head is None:
                    # deleted since the listing was read
                    continue
                item.meta = _meta_from_head(head)
            described.append(item)
            if len(described) == limit:
                break
        more = next(remaining, None) is not None
        return described, more

    def get(self, path):
        key, meta = self._head(path)
        return S3RangeReader(self._s3_client, key, meta.size), meta

    def put(self, path, data, meta, expiration):
        self._check_bucket()
        key = self._key(path)
        self._s3_client.upload_fileobj(
            data,
            key,
            content_type=meta.content_type,
            metadata={
                META_HEADER: _encode_meta(
                    meta.content_type, meta.user_defined, expiration
                )
            },
        )
        logger.debug("Uploaded %s", key)
        _key, stored = self._head(path)
        return stored

    def delete(self, path):
        key, _meta = self._head(path)
        self._s3_client.delete_object(key)

    def meta(self, path):
        _key, meta = self._head(path)
        return meta
