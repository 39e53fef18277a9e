"""Backing stores on S3 and the gateway running on top of them, via moto."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from moto import mock_aws
from pathstore_gateway.errors import BucketAlreadyExists
from pathstore_gateway.errors import BucketNotEmpty
from pathstore_gateway.errors import BucketNotFound
from pathstore_gateway.errors import KeyNotFound
from pathstore_gateway.errors import ObjectNotFound
from pathstore_gateway.gateway import PathStoreGateway
from pathstore_gateway.interfaces import IBucketStore
from pathstore_gateway.interfaces import IObjectStore
from pathstore_gateway.meta import MetaFlags
from pathstore_gateway.meta import SerializableMeta
from pathstore_gateway.paths import Path
from pathstore_gateway.s3client import S3Client
from pathstore_gateway.s3store import S3BucketStore
from zope.interface.verify import verifyObject

import boto3
import io
import pytest
import string


@pytest.fixture
def s3_env():
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="test-bucket")
        yield


@pytest.fixture
def bucket_store(s3_env):
    client = S3Client(bucket_name="test-bucket", prefix="gw", region_name="us-east-1")
    return S3BucketStore(client, list_limit=3)


@pytest.fixture
def layer(bucket_store):
    return PathStoreGateway(bucket_store).new_gateway_layer()


def _put(layer, bucket, name, data=b"data", metadata=None):
    return layer.put_object(bucket, name, io.BytesIO(data), metadata or {})


class TestBucketStore:
    def test_interfaces(self, bucket_store):
        bucket_store.put("b")
        assert verifyObject(IBucketStore, bucket_store)
        assert verifyObject(IObjectStore, bucket_store.get_object_store("b"))

    def test_put_and_get(self, bucket_store):
        meta = bucket_store.put("b")
        assert meta.created is not None
        assert bucket_store.get("b").created == meta.created

    def test_get_missing(self, bucket_store):
        with pytest.raises(KeyNotFound):
            bucket_store.get("missing")

    def test_delete_missing(self, bucket_store):
        with pytest.raises(KeyNotFound):
            bucket_store.delete("missing")

    def test_invalid_name(self, bucket_store):
        with pytest.raises(ValueError):
            bucket_store.put("a/b")

    def test_list_pages(self, bucket_store):
        for name in "edcba":
            bucket_store.put(name)
        items, more = bucket_store.list("", "", 0)
        assert [i.bucket for i in items] == ["a", "b", "c"]
        assert more is True
        items, more = bucket_store.list("c", "", 0)
        assert [i.bucket for i in items] == ["d", "e"]
        assert more is False

    def test_marker_layout(self, bucket_store):
        bucket_store.put("b")
        s3 = boto3.client("s3", region_name="us-east-1")
        resp = s3.list_objects_v2(Bucket="test-bucket", Prefix="gw/")
        assert [o["Key"] for o in resp["Contents"]] == ["gw/buckets/b"]


class TestObjectStore:
    @pytest.fixture
    def object_store(self, bucket_store):
        bucket_store.put("b")
        os_ = bucket_store.get_object_store("b")
        for key in ["p/a", "p/q/1", "p-x", "z"]:
            os_.put(
                Path(key),
                io.BytesIO(key.encode()),
                SerializableMeta(content_type="text/plain", user_defined={"Key": key}),
                None,
            )
        return os_

    def test_meta_round_trip(self, object_store):
        meta = object_store.meta(Path("p/a"))
        assert meta.size == 3
        assert meta.content_type == "text/plain"
        assert meta.user_defined == {"Key": "p/a"}
        assert meta.checksum
        assert meta.modified is not None

    def test_list_segment_order(self, object_store):
        items, more = object_store.list(Path(), None, None, False, 0, MetaFlags.ALL)
        assert [(str(i.path), i.is_prefix) for i in items] == [
            ("p", True),
            ("p-x", False),
            ("z", False),
        ]
        assert more is False
        assert items[1].meta.user_defined == {"Key": "p-x"}

    def test_list_recursive_relative(self, object_store):
        items, _more = object_store.list(Path("p"), None, None, True, 0, MetaFlags.NONE)
        assert [str(i.path) for i in items] == ["a", "q/1"]
        assert all(i.meta is None for i in items)

    def test_list_default_limit(self, object_store):
        items, more = object_store.list(Path(), None, None, True, 0, MetaFlags.NONE)
        assert len(items) == 3
        assert more is True

    def test_get_range(self, object_store):
        rr, meta = object_store.get(Path("p/q/1"))
        assert rr.size() == meta.size == 5
        body = rr.range(2, 3)
        try:
            assert body.read() == b"q/1"
        finally:
            body.close()

    def test_missing_object(self, object_store):
        with pytest.raises(KeyNotFound):
            object_store.get(Path("nope"))
        with pytest.raises(KeyNotFound):
            object_store.delete(Path("nope"))

    def test_missing_bucket(self, bucket_store):
        os_ = bucket_store.get_object_store("missing")
        with pytest.raises(KeyNotFound):
            os_.list(Path(), None, None, True, 0, MetaFlags.ALL)
        with pytest.raises(KeyNotFound):
            os_.put(Path("a"), io.BytesIO(b"x"), SerializableMeta(), None)

    def test_expired_object(self, object_store):
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        object_store.put(Path("old"), io.BytesIO(b"x"), SerializableMeta(), past)
        with pytest.raises(KeyNotFound):
            object_store.meta(Path("old"))


class TestGatewayOnS3:
    def test_bucket_lifecycle(self, layer):
        layer.make_bucket("photos")
        with pytest.raises(BucketAlreadyExists):
            layer.make_bucket("photos")
        _put(layer, "photos", "a.jpg")
        with pytest.raises(BucketNotEmpty):
            layer.delete_bucket("photos")
        layer.delete_object("photos", "a.jpg")
        layer.delete_bucket("photos")
        with pytest.raises(BucketNotFound):
            layer.get_bucket_info("photos")

    def test_list_buckets_across_pages(self, layer):
        for name in ["b1", "b2", "b3", "b4", "b5"]:
            layer.make_bucket(name)
        assert [b.name for b in layer.list_buckets()] == ["b1", "b2", "b3", "b4", "b5"]

    def test_put_get_round_trip(self, layer):
        layer.make_bucket("b")
        _put(layer, "b", "blob", bytes(range(100)), {"content-type": "a/b", "X": "y"})
        info = layer.get_object_info("b", "blob")
        assert info.size == 100
        assert info.content_type == "a/b"
        assert info.user_defined == {"X": "y"}
        out = io.BytesIO()
        layer.get_object("b", "blob", 40, -1, out)
        assert out.getvalue() == bytes(range(40, 100))

    def test_copy(self, layer):
        layer.make_bucket("b")
        layer.make_bucket("c")
        src = _put(layer, "b", "src", b"payload", {"content-type": "text/plain"})
        layer.copy_object("b", "src", "c", "dst/copy", src)
        out = io.BytesIO()
        layer.get_object("c", "dst/copy", 0, -1, out)
        assert out.getvalue() == b"payload"
        assert layer.get_object_info("c", "dst/copy").content_type == "text/plain"

    def test_missing_object(self, layer):
        layer.make_bucket("b")
        with pytest.raises(ObjectNotFound):
            layer.get_object_info("b", "nope")
        with pytest.raises(ObjectNotFound):
            layer.delete_object("b", "nope")

    def test_full_pagination(self, layer):
        layer.make_bucket("b")
        for name in reversed(string.ascii_lowercase):
            _put(layer, "b", name)
        seen = []
        token = ""
        while True:
            result = layer.list_objects_v2("b", "", token, "", 1, False, "")
            seen.extend(o.name for o in result.objects)
            if not result.is_truncated:
                break
            token = result.next_continuation_token
        assert seen == list(string.ascii_lowercase)

    def test_single_level_listing(self, layer):
        layer.make_bucket("b")
        for name in ["docs/a", "docs/sub/b", "docs-old", "readme"]:
            _put(layer, "b", name)
        result = layer.list_objects("b", "docs/", "", "/", 0)
        assert result.prefixes == ["docs/sub/"]
        assert [o.name for o in result.objects] == ["docs/a"]
        result = layer.list_objects("b", "", "", "/", 0)
        assert result.prefixes == ["docs/"]
        assert [o.name for o in result.objects] == ["docs-old", "readme"]

    def test_object_and_prefix_of_same_name(self, layer):
        layer.make_bucket("b")
        for name in ["dir", "dir/x", "z"]:
            _put(layer, "b", name)
        pages = []
        marker = ""
        while True:
            result = layer.list_objects("b", "", marker, "/", 1)
            pages.append((result.prefixes, [o.name for o in result.objects]))
            if not result.is_truncated:
                break
            marker = result.next_marker
        assert pages == [([], ["dir"]), (["dir/"], []), ([], ["z"])]

    def test_vanished_leaf_does_not_empty_page(self, layer, monkeypatch):
        layer.make_bucket("b")
        for name in ["a", "b", "c"]:
            _put(layer, "b", name)
        head_object = S3Client.head_object

        def head_without_a(self, key):
            if key == "objects/b/a":
                return None
            return head_object(self, key)

        monkeypatch.setattr(S3Client, "head_object", head_without_a)
        result = layer.list_objects("b", "", "", "", 1)
        assert [o.name for o in result.objects] == ["b"]
        assert result.is_truncated is True
        assert result.next_marker == "b"
        result = layer.list_objects("b", "", result.next_marker, "", 1)
        assert [o.name for o in result.objects] == ["c"]
        assert result.is_truncated is False
