"""In-memory backing store, used for tests and local experiments."""

from datetime import datetime
from datetime import timezone
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

import dataclasses
import hashlib
import io
import threading


READ_CHUNK_SIZE = 64 * 1024


def _now():
    return datetime.now(timezone.utc)


@implementer(IRangeReader)
class BytesRangeReader:
    def __init__(self, data):
        self._data = data

    def size(self):
        return len(self._data)

    def range(self, offset, length):
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise ValueError(
                f"range offset={offset} length={length} outside 0..{len(self._data)}"
            )
        return io.BytesIO(self._data[offset : offset + length])


@implementer(IBucketStore)
class MemoryBucketStore:
    """Bucket directory held in a dict.

    ``page_size`` is the number of buckets returned by ``list`` when no
    limit is given.
    """

    def __init__(self, page_size=1000):
        self.page_size = page_size
        self._buckets = {}  # {name: (BucketMeta, {Path: (bytes, ObjectMeta)})}
        self._lock = threading.Lock()

    def get(self, name):
        with self._lock:
            try:
                meta, _objects = self._buckets[name]
            except KeyError:
                raise KeyNotFound(name) from None
        return meta

    def put(self, name):
        with self._lock:
            entry = self._buckets.setdefault(name, (BucketMeta(created=_now()), {}))
        return entry[0]

    def delete(self, name):
        with self._lock:
            try:
                del self._buckets[name]
            except KeyError:
                raise KeyNotFound(name) from None

    def list(self, start_after, prefix, limit):
        if limit <= 0:
            limit = self.page_size
        with self._lock:
            names = sorted(
                name
                for name in self._buckets
                if name > start_after and name.startswith(prefix)
            )
            items = [
                BucketListItem(bucket=name, meta=self._buckets[name][0])
                for name in names[:limit]
            ]
        return items, len(names) > limit

    def get_object_store(self, bucket):
        return MemoryObjectStore(self, bucket)

    def _objects(self, bucket):
        """Return the object dict of ``bucket``. Caller holds the lock."""
        try:
            return self._buckets[bucket][1]
        except KeyError:
            raise KeyNotFound(bucket) from None


@implementer(IObjectStore)
class MemoryObjectStore:
    def __init__(self, bucket_store, bucket):
        self._bucket_store = bucket_store
        self.bucket = bucket

    def __repr__(self):
        return f"<MemoryObjectStore {self.bucket}>"

    @property
    def _lock(self):
        return self._bucket_store._lock

    def _lookup(self, path):
        objects = self._bucket_store._objects(self.bucket)
        try:
            data, meta = objects[Path(path)]
        except KeyError:
            raise KeyNotFound(f"{self.bucket}/{path}") from None
        if meta.expiration is not None and meta.expiration <= _now():
            raise KeyNotFound(f"{self.bucket}/{path}")
        return data, meta

    def list(self, prefix, start_after, pivot, recursive, limit, meta_flags):
        if pivot is not None:
            raise ValueError("pivot is not supported")
        with self._lock:
            snapshot = [
                (path, meta)
                for path, (_data, meta) in self._bucket_store._objects(
                    self.bucket
                ).items()
            ]
        items, more = select_entries(snapshot, prefix, start_after, recursive, limit)
        for item in items:
            if item.is_prefix:
                continue
            if meta_flags == MetaFlags.NONE:
                item.meta = None
            else:
                item.meta = dataclasses.replace(
                    item.meta, user_defined=dict(item.meta.user_defined)
                )
        return items, more

    def get(self, path):
        with self._lock:
            data, meta = self._lookup(path)
        return BytesRangeReader(data), dataclasses.replace(
            meta, user_defined=dict(meta.user_defined)
        )

    def put(self, path, data, meta, expiration):
        buf = io.BytesIO()
        while True:
            chunk = data.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            buf.write(chunk)
        payload = buf.getvalue()
        stored = ObjectMeta(
            modified=_now(),
            expiration=expiration,
            size=len(payload),
            checksum=hashlib.md5(payload).hexdigest(),
            content_type=meta.content_type,
            user_defined=dict(meta.user_defined),
        )
        with self._lock:
            self._bucket_store._objects(self.bucket)[Path(path)] = (payload, stored)
        return dataclasses.replace(stored, user_defined=dict(stored.user_defined))

    def delete(self, path):
        with self._lock:
            self._lookup(path)
            del self._bucket_store._objects(self.bucket)[Path(path)]

    def meta(self, path):
        with self._lock:
            _data, meta = self._lookup(path)
        return dataclasses.replace(meta, user_defined=dict(meta.user_defined))
