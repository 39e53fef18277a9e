import io
import os
import ZConfig


SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.xml")

_schema = None


def get_schema():
    global _schema
    if _schema is None:
        with open(SCHEMA_PATH) as f:
            _schema = ZConfig.loadSchemaFile(f)
    return _schema


class BaseStoreFactory:
    """ZConfig datatype for backing-store sections."""

    def __init__(self, config):
        self.config = config
        self.name = config.getSectionName()

    def open(self):
        raise NotImplementedError


class MemoryStoreFactory(BaseStoreFactory):
    def open(self):
        from pathstore_gateway.memory import MemoryBucketStore

        return MemoryBucketStore(page_size=self.config.page_size)


class S3StoreFactory(BaseStoreFactory):
    def open(self):
        from pathstore_gateway.s3client import S3Client
        from pathstore_gateway.s3store import S3BucketStore

        config = self.config
        s3_client = S3Client(
            bucket_name=config.bucket_name,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            use_ssl=config.s3_use_ssl,
            addressing_style=config.s3_addressing_style,
            sse_customer_key=config.s3_sse_customer_key,
        )
        return S3BucketStore(s3_client, list_limit=config.list_limit)


def open_gateway(config):
    from pathstore_gateway.gateway import PathStoreGateway

    return PathStoreGateway(
        config.store.open(),
        max_bucket_pages=config.max_bucket_pages,
        chunk_size=config.chunk_size,
    )


def gateway_from_string(text):
    config, _handler = ZConfig.loadConfigFile(get_schema(), io.StringIO(text))
    return open_gateway(config)


def gateway_from_file(path):
    with open(path) as f:
        config, _handler = ZConfig.loadConfigFile(get_schema(), f)
    return open_gateway(config)
