"""S3-compatible blob storage backends (AWS S3, localstack, MinIO)."""

import io
import logging
from typing import BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

from .base import Attributes, CloudStorage, ListOptions, SignedURLOption
from .exceptions import (
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
    StorageInvalidRangeError,
    StorageNotFoundError,
    StoragePermissionError,
)
from .iterator import ListIterator, iterator_from
from .translate import (
    attributes_from_s3_head,
    directory_entry,
    list_object_from_s3,
    normalize_signed_url_options,
    s3_range_header,
)
from .writers import S3ObjectWriter

log = logging.getLogger(__name__)

_ERROR_CODE_MAP = {
    "NoSuchKey": StorageNotFoundError,
    "NoSuchBucket": StorageNotFoundError,
    "NotFound": StorageNotFoundError,
    "404": StorageNotFoundError,
    "InvalidRange": StorageInvalidRangeError,
    "416": StorageInvalidRangeError,
    "AccessDenied": StoragePermissionError,
    "403": StoragePermissionError,
    "InvalidAccessKeyId": StoragePermissionError,
    "SignatureDoesNotMatch": StoragePermissionError,
    "ExpiredToken": StorageAuthenticationError,
    "EndpointConnectionError": StorageConnectionError,
}

_SIGNED_URL_CLIENT_METHODS = {
    "GET": "get_object",
    "PUT": "put_object",
    "DELETE": "delete_object",
}

_BUCKET_EXISTS_CODES = ("BucketAlreadyExists", "BucketAlreadyOwnedByYou")

LIFECYCLE_RULE_ID = "Delete request user data"


class AWSCloudStorage(CloudStorage):
    """Production S3 backend. ``create_bucket`` is a no-op."""

    def __init__(
        self,
        bucket_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        enable_accelerate_endpoint: bool = False,
    ):
        self._bucket = bucket_name
        self._region = region or None
        self._endpoint_url = endpoint_url or None
        self._closed = False

        # Transfer acceleration only works with virtual-hosted addressing.
        s3_config: dict = {"addressing_style": "virtual" if enable_accelerate_endpoint else "path"}
        if enable_accelerate_endpoint:
            s3_config["use_accelerate_endpoint"] = True

        kwargs: dict = {
            "config": Config(
                region_name=self._region,
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
                s3=s3_config,
            ),
        }
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url

        self._client = boto3.client("s3", **kwargs)
        log.info("%s created for bucket %s", type(self).__name__, bucket_name)

    @property
    def bucket_name(self) -> str:
        return self._bucket

    def list(self, prefix: str) -> ListIterator:
        return self.list_with_options(ListOptions(prefix=prefix))

    def list_with_options(self, options: ListOptions) -> ListIterator:
        return iterator_from(self._iter_objects(options), lambda e: self._translate_error(e))

    def _iter_objects(self, options: ListOptions):
        params: dict = {"Bucket": self._bucket, "Prefix": options.prefix}
        if options.delimiter:
            params["Delimiter"] = options.delimiter
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            entries = [directory_entry(p["Prefix"]) for p in page.get("CommonPrefixes", [])]
            entries.extend(list_object_from_s3(obj) for obj in page.get("Contents", []))
            entries.sort(key=lambda o: o.key)
            yield from entries

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def get_reader(self, key: str) -> BinaryIO:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        return response["Body"]

    def get_range_reader(self, key: str, offset: int, length: int) -> BinaryIO:
        byte_range = s3_range_header(offset, length, key)
        if length == 0:
            # S3 cannot express an empty range; still fail on a missing key or a bad offset.
            if offset > self.attributes(key).size:
                raise StorageInvalidRangeError(f"Range offset {offset} is past the end of {key}", key=key)
            return io.BytesIO(b"")
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key, Range=byte_range)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        return response["Body"]

    def get_writer(self, key: str, content_type: str | None = None) -> BinaryIO:
        return S3ObjectWriter(
            self._client,
            self._bucket,
            key,
            content_type=content_type,
            on_error=self._translate_error,
        )

    def write(self, key: str, body: bytes, content_type: str | None = None) -> None:
        params: dict = {"Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        try:
            self._client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def delete(self, key: str) -> None:
        # DeleteObject succeeds for missing keys, so check first.
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def attributes(self, key: str) -> Attributes:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        return attributes_from_s3_head(response)

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            translated = self._translate_error(e, key)
            if isinstance(translated, StorageNotFoundError):
                return False
            raise translated from e
        return True

    def copy(self, dst_key: str, src_key: str) -> None:
        try:
            self._client.copy_object(
                Bucket=self._bucket,
                Key=dst_key,
                CopySource={"Bucket": self._bucket, "Key": src_key},
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, src_key) from e

    def get_signed_url(self, key: str, opts: SignedURLOption | None = None) -> str:
        opts = normalize_signed_url_options(opts)
        params: dict = {"Bucket": self._bucket, "Key": key}
        if opts.content_type:
            params["ContentType"] = opts.content_type
        elif opts.enforce_absent_content_type:
            # Signing an empty Content-Type makes S3 reject uploads that send one.
            params["ContentType"] = ""
        try:
            return self._client.generate_presigned_url(
                ClientMethod=_SIGNED_URL_CLIENT_METHODS[opts.method],
                Params=params,
                ExpiresIn=int(opts.expiry.total_seconds()),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def create_bucket(self, bucket_prefix: str, expiration_time_days: int) -> None:
        log.debug("create_bucket is not supported for production bucket %s, skipping", self._bucket)

    def close(self) -> None:
        if self._closed:
            log.debug("%s for bucket %s already closed", type(self).__name__, self._bucket)
            return
        self._closed = True
        self._client.close()

    def _translate_error(self, error: Exception, key: str | None = None) -> StorageError:
        if isinstance(error, StorageError):
            return error
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            exc_cls = _ERROR_CODE_MAP.get(code)
            if exc_cls is None:
                status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
                exc_cls = _ERROR_CODE_MAP.get(str(status), StorageError)
            return exc_cls(str(error), key=key, cause=error)
        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return StorageAuthenticationError(str(error), key=key, cause=error)
        if isinstance(error, (EndpointConnectionError, BotoConnectionError, ConnectionError)):
            return StorageConnectionError(str(error), key=key, cause=error)
        return StorageError(str(error), key=key, cause=error)


class AWSTestCloudStorage(AWSCloudStorage):
    """S3 backend for emulated endpoints (localstack). Creates buckets on demand."""

    def __init__(
        self,
        bucket_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
    ):
        super().__init__(
            bucket_name,
            region=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )

    def create_bucket(self, bucket_prefix: str, expiration_time_days: int) -> None:
        log.info(
            "CreateBucket. Name: %s, Prefix: %s, Exp Time: %s",
            self._bucket,
            bucket_prefix,
            expiration_time_days,
        )

        params: dict = {"Bucket": self._bucket}
        if self._region and self._region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            self._client.create_bucket(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code", "") not in _BUCKET_EXISTS_CODES:
                log.error("Unable to create bucket %s: %s", self._bucket, e)
                raise self._translate_error(e) from e
            log.debug("Bucket %s already exists", self._bucket)
        except BotoCoreError as e:
            log.error("Unable to create bucket %s: %s", self._bucket, e)
            raise self._translate_error(e) from e

        rule = {
            "ID": LIFECYCLE_RULE_ID,
            "Filter": {"Prefix": bucket_prefix.rstrip("/")},
            "Expiration": {"Days": expiration_time_days},
            "NoncurrentVersionExpiration": {"NoncurrentDays": expiration_time_days},
            "Status": "Enabled",
        }
        try:
            self._client.put_bucket_lifecycle_configuration(
                Bucket=self._bucket,
                LifecycleConfiguration={"Rules": [rule]},
            )
            self._client.list_objects_v2(Bucket=self._bucket, MaxKeys=1)
        except (ClientError, BotoCoreError) as e:
            log.error("Unable to access bucket %s: %s", self._bucket, e)
            raise self._translate_error(e) from e

        log.info("Bucket %s created", self._bucket)
