from pathstore_gateway import listing
from pathstore_gateway.errors import BucketAlreadyExists
from pathstore_gateway.errors import BucketNotEmpty
from pathstore_gateway.errors import close_logged
from pathstore_gateway.errors import GatewayError
from pathstore_gateway.errors import KeyNotFound
from pathstore_gateway.errors import RequestCancelled
from pathstore_gateway.errors import translate_bucket_errors
from pathstore_gateway.errors import translate_object_errors
from pathstore_gateway.interfaces import IGateway
from pathstore_gateway.interfaces import IObjectLayer
from pathstore_gateway.meta import bucket_info_from_meta
from pathstore_gateway.meta import MetaFlags
from pathstore_gateway.meta import object_info_from_meta
from pathstore_gateway.meta import serializable_meta_from_metadata
from pathstore_gateway.meta import serializable_meta_from_object_info
from pathstore_gateway.paths import Path
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 32 * 1024
DEFAULT_MAX_BUCKET_PAGES = 10000


@implementer(IGateway)
class PathStoreGateway:
    """Gateway plugin exposing a path-addressed bucket store over S3."""

    def __init__(
        self,
        bucket_store,
        max_bucket_pages=DEFAULT_MAX_BUCKET_PAGES,
        chunk_size=DEFAULT_CHUNK_SIZE,
    ):
        self.bucket_store = bucket_store
        self.max_bucket_pages = max_bucket_pages
        self.chunk_size = chunk_size

    def name(self):
        return "pathstore"

    def new_gateway_layer(self, credentials=None):
        return PathStoreObjects(self)

    def production(self):
        return False


@implementer(IObjectLayer)
class PathStoreObjects:
    """S3 object layer translating host calls onto the backing stores.

    Calls are independent of each other; the only shared state lives in the
    backing store.
    """

    def __init__(self, gateway):
        self._gateway = gateway

    @property
    def _bs(self):
        return self._gateway.bucket_store

    def __repr__(self):
        return f"<PathStoreObjects for {self._bs!r}>"

    # -- Buckets --

    def make_bucket(self, bucket, location=None):
        # Get followed by Put is not atomic: two concurrent creators of the
        # same name may both pass the probe. Only the backing store could
        # close that race.
        try:
            self._bs.get(bucket)
        except KeyNotFound:
            pass
        else:
            raise BucketAlreadyExists(bucket)
        self._bs.put(bucket)
        logger.debug("Created bucket %s", bucket)

    def get_bucket_info(self, bucket):
        with translate_bucket_errors(bucket):
            meta = self._bs.get(bucket)
        return bucket_info_from_meta(bucket, meta)

    def delete_bucket(self, bucket):
        with translate_bucket_errors(bucket):
            self._bs.get(bucket)
            object_store = self._bs.get_object_store(bucket)
            items, _more = object_store.list(
                Path(), None, None, True, 1, MetaFlags.NONE
            )
        if items:
            raise BucketNotEmpty(bucket)
        with translate_bucket_errors(bucket):
            self._bs.delete(bucket)
        logger.debug("Deleted bucket %s", bucket)

    def list_buckets(self):
        """Return every bucket, following the store's pages to the end."""
        max_pages = self._gateway.max_bucket_pages
        start_after = ""
        items = []
        for _page in range(max_pages):
            page_items, more = self._bs.list(start_after, "", 0)
            items.extend(page_items)
            if not more:
                break
            if not page_items or page_items[-1].bucket <= start_after:
                raise GatewayError(
                    f"bucket listing made no progress after {start_after!r}"
                )
            start_after = page_items[-1].bucket
        else:
            raise GatewayError(f"bucket listing exceeded {max_pages} pages")
        return [bucket_info_from_meta(item.bucket, item.meta) for item in items]

    # -- Listing --

    def list_objects(self, bucket, prefix="", marker="", delimiter="", max_keys=0):
        return listing.list_objects(
            self._bs, bucket, prefix, marker, delimiter, max_keys
        )

    def list_objects_v2(
        self,
        bucket,
        prefix="",
        continuation_token="",
        delimiter="",
        max_keys=0,
        fetch_owner=False,
        start_after="",
    ):
        return listing.list_objects_v2(
            self._bs,
            bucket,
            prefix,
            continuation_token,
            delimiter,
            max_keys,
            start_after,
        )

    # -- Objects --

    def _get_range_reader(self, bucket, object):
        with translate_object_errors(bucket, object):
            object_store = self._bs.get_object_store(bucket)
            rr, _meta = object_store.get(Path(object))
        return rr

    def _copy_stream(self, reader, writer, cancel_requested):
        chunk_size = self._gateway.chunk_size
        written = 0
        while True:
            if cancel_requested is not None and cancel_requested():
                raise RequestCancelled("request cancelled by caller")
            chunk = reader.read(chunk_size)
            if not chunk:
                return written
            writer.write(chunk)
            written += len(chunk)

    def get_object(
        self,
        bucket,
        object,
        start_offset,
        length,
        writer,
        etag="",
        cancel_requested=None,
    ):
        rr = self._get_range_reader(bucket, object)
        if length == -1:
            length = rr.size() - start_offset
        r = rr.range(start_offset, length)
        try:
            return self._copy_stream(r, writer, cancel_requested)
        finally:
            close_logged(r)

    def get_object_info(self, bucket, object):
        with translate_object_errors(bucket, object):
            object_store = self._bs.get_object_store(bucket)
            meta = object_store.meta(Path(object))
        return object_info_from_meta(bucket, object, meta)

    def _put_object(self, bucket, object, data, serializable_meta):
        with translate_bucket_errors(bucket):
            object_store = self._bs.get_object_store(bucket)
            # expiration None: the object never expires
            meta = object_store.put(Path(object), data, serializable_meta, None)
        logger.debug("Stored %s/%s (%d bytes)", bucket, object, meta.size)
        return object_info_from_meta(bucket, object, meta)

    def put_object(self, bucket, object, data, metadata=None, cancel_requested=None):
        serializable_meta = serializable_meta_from_metadata(metadata)
        return self._put_object(
            bucket, object, _CancellableReader(data, cancel_requested), serializable_meta
        )

    def copy_object(
        self,
        src_bucket,
        src_object,
        dest_bucket,
        dest_object,
        src_info,
        cancel_requested=None,
    ):
        """Copy by reading the whole source through this process."""
        rr = self._get_range_reader(src_bucket, src_object)
        r = rr.range(0, rr.size())
        try:
            return self._put_object(
                dest_bucket,
                dest_object,
                _CancellableReader(r, cancel_requested),
                serializable_meta_from_object_info(src_info),
            )
        finally:
            close_logged(r)

    def delete_object(self, bucket, object):
        with translate_object_errors(bucket, object):
            object_store = self._bs.get_object_store(bucket)
            object_store.delete(Path(object))
        logger.debug("Deleted %s/%s", bucket, object)

    # -- Lifecycle --

    def shutdown(self):
        return None

    def storage_info(self):
        return {}


class _CancellableReader:
    """File-like wrapper that stops reading once the caller cancels."""

    def __init__(self, stream, cancel_requested):
        self._stream = stream
        self._cancel_requested = cancel_requested

    def read(self, size=-1):
        if self._cancel_requested is not None and self._cancel_requested():
            raise RequestCancelled("request cancelled by caller")
        return self._stream.read(size)
