from zope.interface import Interface


class IRangeReader(Interface):
    """Stream source that knows its total size."""

    def size():
        """Return the total size of the object in bytes."""

    def range(offset, length):
        """Return a file-like object yielding ``length`` bytes from ``offset``.

        The caller must close it.
        """


class IObjectStore(Interface):
    """Path-addressed object storage of a single bucket."""

    def list(prefix, start_after, pivot, recursive, limit, meta_flags):
        """Return ``(items, more)`` for paths under ``prefix``.

        ``start_after`` is a full path and an exclusive lower bound; a
        trailing separator marks it as a prefix item, which sorts right
        after the object of the same name. In recursive mode item paths are
        relative to ``prefix``; otherwise they are full paths and deeper
        entries are collapsed into prefix items. A truncated page holds at
        least one item. ``limit <= 0`` means the store's default page.
        """

    def get(path):
        """Return ``(range_reader, meta)``; raise ``KeyNotFound`` if absent."""

    def put(path, data, meta, expiration):
        """Store the bytes read from ``data``; ``expiration=None`` never expires."""

    def delete(path):
        """Delete an object; raise ``KeyNotFound`` if absent."""

    def meta(path):
        """Return ``ObjectMeta``; raise ``KeyNotFound`` if absent."""


class IBucketStore(Interface):
    """Directory of buckets in the backing store."""

    def get(name):
        """Return ``BucketMeta``; raise ``KeyNotFound`` if absent."""

    def put(name):
        """Create a bucket and return its ``BucketMeta``."""

    def delete(name):
        """Delete a bucket; raise ``KeyNotFound`` if absent."""

    def list(start_after, prefix, limit):
        """Return ``(bucket_list_items, more)`` in name order."""

    def get_object_store(bucket):
        """Return the ``IObjectStore`` of ``bucket``."""


class IObjectLayer(Interface):
    """Fixed set of S3 operations offered to the gateway host."""

    def make_bucket(bucket, location=None):
        """Create a bucket."""

    def get_bucket_info(bucket):
        """Return ``BucketInfo``."""

    def delete_bucket(bucket):
        """Delete an empty bucket."""

    def list_buckets():
        """Return all buckets as ``BucketInfo`` list."""

    def list_objects(bucket, prefix, marker, delimiter, max_keys):
        """Marker based listing."""

    def list_objects_v2(
        bucket, prefix, continuation_token, delimiter, max_keys, fetch_owner, start_after
    ):
        """Continuation token based listing."""

    def get_object(bucket, object, start_offset, length, writer, etag):
        """Write a byte range of an object to ``writer``."""

    def get_object_info(bucket, object):
        """Return ``ObjectInfo``."""

    def put_object(bucket, object, data, metadata):
        """Store an object and return its ``ObjectInfo``."""

    def copy_object(src_bucket, src_object, dest_bucket, dest_object, src_info):
        """Copy an object through this process."""

    def delete_object(bucket, object):
        """Delete an object."""

    def shutdown():
        """Release resources held by the layer."""

    def storage_info():
        """Return storage usage information."""


class IGateway(Interface):
    """Gateway plugin entry point."""

    def name():
        """Return the gateway name."""

    def new_gateway_layer(credentials=None):
        """Return an ``IObjectLayer``."""

    def production():
        """Return whether the gateway is production ready."""
