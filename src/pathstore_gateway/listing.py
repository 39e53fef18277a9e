"""Paginated S3 listings on top of a path-addressed object store.

Two flavours are offered. V1 resumes from a plain marker, the full key of
the last item of the previous page, with a trailing separator when that
item is a prefix. V2 resumes from a continuation token, which is the same
key followed by a NUL byte so that it sorts after the key it was made from;
decoding strips that byte again and the decoded key is used as an exclusive
lower bound.
"""

from pathstore_gateway.errors import GatewayError
from pathstore_gateway.errors import translate_bucket_errors
from pathstore_gateway.errors import UnsupportedDelimiter
from pathstore_gateway.meta import ListItem
from pathstore_gateway.meta import ListObjectsInfo
from pathstore_gateway.meta import ListObjectsV2Info
from pathstore_gateway.meta import MetaFlags
from pathstore_gateway.meta import object_info_from_meta
from pathstore_gateway.paths import Path
from pathstore_gateway.paths import SEPARATOR

import logging


logger = logging.getLogger(__name__)

TOKEN_SENTINEL = "\x00"
SUPPORTED_DELIMITERS = ("", SEPARATOR)


def check_delimiter(delimiter):
    if delimiter not in SUPPORTED_DELIMITERS:
        raise UnsupportedDelimiter(delimiter)


def encode_continuation_token(path):
    return f"{path}{TOKEN_SENTINEL}"


def decode_continuation_token(token):
    """Return the key a continuation token resumes after."""
    return token[: -len(TOKEN_SENTINEL)] if token.endswith(TOKEN_SENTINEL) else token


def cursor_key(start_after):
    """Return the ``(path, is_prefix)`` sort key a cursor resumes after.

    A trailing separator marks a prefix entry, so ``"dir"`` resumes before
    the prefix ``dir/`` while ``"dir/"`` resumes after it.
    """
    if not start_after:
        return Path(), False
    if isinstance(start_after, Path):
        return start_after, False
    return Path(start_after), start_after.endswith(SEPARATOR)


def entry_cursor(path, is_prefix):
    """Return the cursor string that resumes right after an entry."""
    return f"{path}{SEPARATOR}" if is_prefix else str(path)


def select_entries(entries, prefix, start_after, recursive, limit):
    """Cut one backing-store page out of ``(path, meta)`` pairs.

    Used by the bundled backing stores. Paths not under ``prefix`` are
    ignored. Without ``recursive`` everything deeper than one level below
    the prefix is collapsed into a single prefix item. Entries are ordered
    by ``(path, is_prefix)`` and the cursor is applied after collapsing, so
    a prefix used as cursor is not repeated and an object cursor does not
    hide the prefix of the same name.
    Returns ``(items, more)``; ``limit <= 0`` returns everything.
    """
    prefix = Path(prefix)
    after = cursor_key(start_after)
    selected = {}
    for path, meta in entries:
        if not path.has_prefix(prefix):
            continue
        rel = path.strip_prefix(prefix)
        if recursive or len(rel) <= 1:
            full, is_prefix = path, False
        else:
            full, is_prefix = prefix.append(rel.segments[0]), True
        if (full, is_prefix) <= after:
            continue
        if is_prefix:
            selected[(full, True)] = ListItem(path=full, is_prefix=True)
        else:
            selected[(full, False)] = ListItem(
                path=rel if recursive else full, meta=meta
            )

    ordered = [selected[key] for key in sorted(selected)]
    if limit <= 0:
        return ordered, False
    return ordered[:limit], len(ordered) > limit


class _Page:
    def __init__(self):
        self.objects = []
        self.prefixes = []
        self.more = False
        self.last_cursor = ""


def _list_page(bucket_store, bucket, prefix, start_after, delimiter, max_keys):
    check_delimiter(delimiter)
    recursive = delimiter == ""
    prefix_path = Path(prefix)

    with translate_bucket_errors(bucket):
        object_store = bucket_store.get_object_store(bucket)
        items, more = object_store.list(
            prefix_path,
            start_after or None,
            None,
            recursive,
            max_keys,
            MetaFlags.ALL,
        )
    logger.debug(
        "Listed %d items of bucket=%s prefix=%r start_after=%r more=%s",
        len(items),
        bucket,
        prefix,
        start_after,
        more,
    )

    page = _Page()
    page.more = more
    for item in items:
        path = item.path
        if recursive:
            # the store reports paths relative to the prefix in this mode
            path = path.prepend(prefix_path)
        page.last_cursor = entry_cursor(path, item.is_prefix)
        if item.is_prefix:
            page.prefixes.append(page.last_cursor)
            continue
        page.objects.append(object_info_from_meta(bucket, str(path), item.meta))
    if more and not items:
        # nothing to resume from; the store must hand out at least one item
        raise GatewayError(f"truncated listing of {bucket} returned no items")
    return page


def list_objects(bucket_store, bucket, prefix="", marker="", delimiter="", max_keys=0):
    """Return one V1 page of ``bucket``."""
    page = _list_page(bucket_store, bucket, prefix, marker, delimiter, max_keys)
    result = ListObjectsInfo(
        is_truncated=page.more,
        objects=page.objects,
        prefixes=page.prefixes,
    )
    if page.more:
        result.next_marker = page.last_cursor
    return result


def list_objects_v2(
    bucket_store,
    bucket,
    prefix="",
    continuation_token="",
    delimiter="",
    max_keys=0,
    start_after="",
):
    """Return one V2 page of ``bucket``.

    A continuation token takes precedence over ``start_after``.
    """
    if continuation_token:
        cursor = decode_continuation_token(continuation_token)
    else:
        cursor = start_after
    page = _list_page(bucket_store, bucket, prefix, cursor, delimiter, max_keys)
    result = ListObjectsV2Info(
        is_truncated=page.more,
        continuation_token=continuation_token,
        objects=page.objects,
        prefixes=page.prefixes,
    )
    if page.more:
        result.next_continuation_token = encode_continuation_token(page.last_cursor)
    return result
