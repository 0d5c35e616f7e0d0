"""Factory for creating blob storage backends based on configuration."""

import logging
import os

from .base import CloudStorage
from .config import CloudStorageOption, env_flag
from .exceptions import (
    StorageAuthenticationError,
    StorageConfigurationError,
    StorageError,
    UnsupportedProviderError,
)

log = logging.getLogger(__name__)

PROVIDER_AWS = "aws"
PROVIDER_GCP = "gcp"


def new_cloud_storage(
    is_testing: bool,
    bucket_provider: str,
    bucket_name: str,
    *options: CloudStorageOption,
) -> CloudStorage:
    """Create a CloudStorage backend for the given provider and bucket.

    Exactly one backend is constructed. Credentials are taken from the merged
    ``options`` and handed to the SDK client directly; the process
    environment is never modified.

    Args:
        is_testing: Use the sandbox backend (localstack / GCS emulator) and
            allow ``create_bucket`` to create buckets.
        bucket_provider: ``"aws"``, ``"gcp"`` or ``""`` (defaults to aws).
        bucket_name: Bucket to open. Required.
        *options: Partial configurations, merged left to right
            (see :meth:`CloudStorageOption.merge`).

    Returns:
        Configured CloudStorage instance.

    Raises:
        UnsupportedProviderError: If ``bucket_provider`` is not recognised.
        StorageConfigurationError: If the configuration is incomplete or malformed.
        StorageAuthenticationError: If credentials cannot be resolved, including
            ambient GCP credentials requested outside Google compute.
    """
    provider = (bucket_provider or PROVIDER_AWS).strip().lower()
    if provider not in (PROVIDER_AWS, PROVIDER_GCP):
        raise UnsupportedProviderError(bucket_provider)
    if not bucket_name:
        raise StorageConfigurationError("Bucket name required")

    option = CloudStorageOption.combine(*options)

    if provider == PROVIDER_AWS:
        return _create_aws_storage(is_testing, bucket_name, option)
    return _create_gcp_storage(is_testing, bucket_name, option)


def new_cloud_storage_from_env(
    is_testing: bool | None = None,
    bucket_provider: str | None = None,
    bucket_name: str | None = None,
) -> CloudStorage:
    """Create a CloudStorage backend configured from environment variables.

    Reads BLOB_IS_TESTING, BLOB_PROVIDER and BLOB_BUCKET_NAME when the
    matching argument is None, and the provider settings listed in
    :data:`common_blob.config.ENV_VARS`.
    """
    if is_testing is None:
        is_testing = env_flag("BLOB_IS_TESTING")
    if bucket_provider is None:
        bucket_provider = os.getenv("BLOB_PROVIDER", PROVIDER_AWS)
    if bucket_name is None:
        bucket_name = os.getenv("BLOB_BUCKET_NAME", "")
    return new_cloud_storage(is_testing, bucket_provider, bucket_name, CloudStorageOption.from_env())


def _wrap(path: str, error: Exception) -> StorageError:
    exc_cls = type(error) if isinstance(error, StorageError) else StorageError
    if exc_cls is UnsupportedProviderError:
        exc_cls = StorageConfigurationError
    return exc_cls(f"[{path}] {error}", key=getattr(error, "key", None), cause=error)


def _create_aws_storage(is_testing: bool, bucket_name: str, option: CloudStorageOption) -> CloudStorage:
    from .aws_client import AWSCloudStorage, AWSTestCloudStorage

    credentials = {
        "region": option.aws_s3_region,
        "endpoint_url": option.aws_s3_endpoint,
        "aws_access_key_id": option.aws_s3_access_key_id,
        "aws_secret_access_key": option.aws_s3_secret_access_key,
    }
    path = "aws-test" if is_testing else "aws"
    try:
        if is_testing:
            return AWSTestCloudStorage(bucket_name, **credentials)
        return AWSCloudStorage(
            bucket_name,
            enable_accelerate_endpoint=option.aws_enable_accelerate_endpoint,
            **credentials,
        )
    except Exception as e:
        raise _wrap(path, e) from e


def _create_gcp_storage(is_testing: bool, bucket_name: str, option: CloudStorageOption) -> CloudStorage:
    from . import gcp_identity

    if is_testing:
        from .gcs_emulator_client import GCPTestCloudStorage

        try:
            return GCPTestCloudStorage(
                bucket_name,
                emulator_host=option.gcp_storage_emulator_host,
                credentials_json=option.gcp_credentials_json,
            )
        except Exception as e:
            raise _wrap("gcp-test", e) from e

    from .gcs_client import ExplicitGCPCloudStorage, ImplicitGCPCloudStorage

    if option.gcp_credentials_json:
        try:
            return ExplicitGCPCloudStorage(bucket_name, option.gcp_credentials_json)
        except Exception as e:
            raise _wrap("gcp-explicit", e) from e

    if gcp_identity.is_on_gcp():
        try:
            return ImplicitGCPCloudStorage(bucket_name)
        except Exception as e:
            raise _wrap("gcp-implicit", e) from e

    raise StorageAuthenticationError(
        "[gcp-implicit] Unable to create GCP client without credentials: "
        "ambient credentials requested outside compute environment"
    )
