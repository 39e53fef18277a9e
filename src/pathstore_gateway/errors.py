import contextlib
import logging


logger = logging.getLogger(__name__)


class KeyNotFound(Exception):
    """Raised by backing stores when a bucket or object key does not exist."""

    def __init__(self, key=""):
        self.key = key
        super().__init__(f"key not found: {key}" if key else "key not found")


class GatewayError(Exception):
    """Base error for pathstore_gateway."""


class BucketNotFound(GatewayError):
    def __init__(self, bucket):
        self.bucket = bucket
        super().__init__(f"bucket not found: {bucket}")


class BucketAlreadyExists(GatewayError):
    def __init__(self, bucket):
        self.bucket = bucket
        super().__init__(f"bucket already exists: {bucket}")


class BucketNotEmpty(GatewayError):
    def __init__(self, bucket):
        self.bucket = bucket
        super().__init__(f"bucket not empty: {bucket}")


class ObjectNotFound(GatewayError):
    def __init__(self, bucket, object):
        self.bucket = bucket
        self.object = object
        super().__init__(f"object not found: {bucket}/{object}")


class UnsupportedDelimiter(GatewayError):
    """Raised for listing delimiters other than "" and "/"."""

    def __init__(self, delimiter):
        self.delimiter = delimiter
        super().__init__(f"delimiter {delimiter} not supported")


class RequestCancelled(GatewayError):
    """Raised when the caller asks a streaming operation to stop."""


@contextlib.contextmanager
def translate_bucket_errors(bucket):
    """Turn a backing ``KeyNotFound`` into ``BucketNotFound``."""
    try:
        yield
    except KeyNotFound as e:
        raise BucketNotFound(bucket) from e


@contextlib.contextmanager
def translate_object_errors(bucket, object):
    """Turn a backing ``KeyNotFound`` into ``ObjectNotFound``."""
    try:
        yield
    except KeyNotFound as e:
        raise ObjectNotFound(bucket, object) from e


def close_logged(stream):
    """Close a stream; failures are logged and never raised."""
    try:
        stream.close()
    except Exception:
        logger.warning("Failed to close %r", stream, exc_info=True)
