"""Google Cloud Storage blob backends."""

import io
import json
import logging
from typing import BinaryIO

import google.auth
from google.api_core.exceptions import (
    Forbidden,
    NotFound,
    RequestRangeNotSatisfiable,
    ServiceUnavailable,
    Unauthorized,
)
from google.auth.credentials import Signing
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.cloud import storage as gcs
from requests.exceptions import ConnectionError as RequestsConnectionError

from . import gcp_identity
from .base import Attributes, CloudStorage, ListOptions, SignedURLOption
from .exceptions import (
    StorageAuthenticationError,
    StorageConfigurationError,
    StorageConnectionError,
    StorageError,
    StorageInvalidRangeError,
    StorageNotFoundError,
    StoragePermissionError,
)
from .iterator import ListIterator, iterator_from
from .translate import (
    attributes_from_gcs_blob,
    directory_entry,
    list_object_from_gcs_blob,
    normalize_signed_url_options,
    range_bounds,
)
from .writers import TranslatingWriter

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class GCSCloudStorage(CloudStorage):
    """Operations shared by every GCS backend.

    Subclasses decide how the client is authenticated and how signed URLs
    are signed.
    """

    def __init__(self, bucket_name: str, client: gcs.Client):
        self._bucket_name = bucket_name
        self._client = client
        self._bucket = client.bucket(bucket_name)
        self._closed = False

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def list(self, prefix: str) -> ListIterator:
        return self.list_with_options(ListOptions(prefix=prefix))

    def list_with_options(self, options: ListOptions) -> ListIterator:
        return iterator_from(self._iter_blobs(options), lambda e: self._translate_error(e))

    def _iter_blobs(self, options: ListOptions):
        blobs = self._client.list_blobs(
            self._bucket,
            prefix=options.prefix or None,
            delimiter=options.delimiter or None,
        )
        for page in blobs.pages:
            entries = [list_object_from_gcs_blob(blob) for blob in page]
            entries.extend(directory_entry(prefix) for prefix in getattr(page, "prefixes", ()))
            entries.sort(key=lambda o: o.key)
            yield from entries

    def get(self, key: str) -> bytes:
        try:
            return self._bucket.blob(key).download_as_bytes()
        except Exception as e:
            raise self._translate_error(e, key) from e

    def get_reader(self, key: str) -> BinaryIO:
        try:
            blob = self._bucket.get_blob(key)
        except Exception as e:
            raise self._translate_error(e, key) from e
        if blob is None:
            raise StorageNotFoundError(f"No such object: {self._bucket_name}/{key}", key=key)
        return blob.open("rb")

    def get_range_reader(self, key: str, offset: int, length: int) -> BinaryIO:
        start, end = range_bounds(offset, length, key)
        if length == 0:
            if offset > self.attributes(key).size:
                raise StorageInvalidRangeError(f"Range offset {offset} is past the end of {key}", key=key)
            return io.BytesIO(b"")
        try:
            content = self._bucket.blob(key).download_as_bytes(start=start, end=end)
        except Exception as e:
            raise self._translate_error(e, key) from e
        return io.BytesIO(content)

    def get_writer(self, key: str, content_type: str | None = None) -> BinaryIO:
        try:
            raw = self._bucket.blob(key).open(
                "wb", ignore_flush=True, content_type=content_type or DEFAULT_CONTENT_TYPE
            )
        except Exception as e:
            raise self._translate_error(e, key) from e
        return TranslatingWriter(raw, key, on_error=self._translate_error)

    def write(self, key: str, body: bytes, content_type: str | None = None) -> None:
        try:
            self._bucket.blob(key).upload_from_string(body, content_type=content_type or DEFAULT_CONTENT_TYPE)
        except Exception as e:
            raise self._translate_error(e, key) from e

    def delete(self, key: str) -> None:
        try:
            self._bucket.blob(key).delete()
        except Exception as e:
            raise self._translate_error(e, key) from e

    def attributes(self, key: str) -> Attributes:
        try:
            blob = self._bucket.get_blob(key)
        except Exception as e:
            raise self._translate_error(e, key) from e
        if blob is None:
            raise StorageNotFoundError(f"No such object: {self._bucket_name}/{key}", key=key)
        return attributes_from_gcs_blob(blob)

    def exists(self, key: str) -> bool:
        try:
            return self._bucket.blob(key).exists()
        except Exception as e:
            raise self._translate_error(e, key) from e

    def copy(self, dst_key: str, src_key: str) -> None:
        try:
            self._bucket.copy_blob(self._bucket.blob(src_key), self._bucket, new_name=dst_key)
        except Exception as e:
            raise self._translate_error(e, src_key) from e

    def get_signed_url(self, key: str, opts: SignedURLOption | None = None) -> str:
        opts = normalize_signed_url_options(opts)
        credentials = self._signing_credentials()
        kwargs: dict = {}
        if opts.enforce_absent_content_type:
            # An empty signed Content-Type header rejects uploads that send one.
            kwargs["headers"] = {"Content-Type": ""}
        try:
            return self._bucket.blob(key).generate_signed_url(
                version="v4",
                expiration=opts.expiry,
                method=opts.method,
                content_type=opts.content_type or None,
                credentials=credentials,
                **kwargs,
            )
        except Exception as e:
            raise self._translate_error(e, key) from e

    def _signing_credentials(self):
        raise StorageConfigurationError(f"Signed URLs are not supported by {type(self).__name__}")

    def create_bucket(self, bucket_prefix: str, expiration_time_days: int) -> None:
        log.debug("create_bucket is not supported for production bucket %s, skipping", self._bucket_name)

    def close(self) -> None:
        if self._closed:
            log.debug("%s for bucket %s already closed", type(self).__name__, self._bucket_name)
            return
        self._closed = True
        self._client.close()

    def _translate_error(self, error: Exception, key: str | None = None) -> StorageError:
        if isinstance(error, StorageError):
            return error
        if isinstance(error, NotFound):
            return StorageNotFoundError(str(error), key=key, cause=error)
        if isinstance(error, RequestRangeNotSatisfiable):
            return StorageInvalidRangeError(str(error), key=key, cause=error)
        if isinstance(error, Forbidden):
            return StoragePermissionError(str(error), key=key, cause=error)
        if isinstance(error, (Unauthorized, GoogleAuthError)):
            return StorageAuthenticationError(str(error), key=key, cause=error)
        if isinstance(error, ValueError) and "credentials" in str(error).lower():
            return StoragePermissionError(str(error), key=key, cause=error)
        if isinstance(error, (ServiceUnavailable, RequestsConnectionError, ConnectionError)):
            return StorageConnectionError(str(error), key=key, cause=error)
        return StorageError(str(error), key=key, cause=error)


def parse_credentials_json(credentials_json: str) -> dict:
    """Decode a credentials JSON bundle, raising StorageConfigurationError if malformed."""
    try:
        info = json.loads(credentials_json)
    except ValueError as e:
        raise StorageConfigurationError(f"Unable to unmarshal GCP credentials: {e}", cause=e) from e
    if not isinstance(info, dict):
        raise StorageConfigurationError("GCP credentials JSON must be an object")
    return info


class ExplicitGCPCloudStorage(GCSCloudStorage):
    """GCS backend authenticated with an explicit credentials JSON bundle.

    Signed URLs are signed locally with the bundle's private key.
    """

    def __init__(self, bucket_name: str, credentials_json: str):
        info = parse_credentials_json(credentials_json)
        try:
            credentials, project = google.auth.load_credentials_from_dict(
                info, scopes=[gcp_identity.STORAGE_FULL_CONTROL_SCOPE]
            )
        except (DefaultCredentialsError, ValueError) as e:
            raise StorageConfigurationError(f"Unable to initialize GCP credentials from JSON: {e}", cause=e) from e

        self._credentials = credentials
        self._private_key = info.get("private_key", "")
        self._google_access_id = info.get("client_email", "")

        client = gcs.Client(project=project or info.get("project_id"), credentials=credentials)
        super().__init__(bucket_name, client)
        log.info("ExplicitGCPCloudStorage created for bucket %s", bucket_name)

    @property
    def google_access_id(self) -> str:
        return self._google_access_id

    def _signing_credentials(self):
        if not self._private_key or not isinstance(self._credentials, Signing):
            raise StorageConfigurationError(
                "GCP credentials JSON has no private_key; signed URLs cannot be generated"
            )
        return self._credentials


class ImplicitGCPCloudStorage(GCSCloudStorage):
    """GCS backend using the ambient credentials of a Google compute workload.

    No private key is available, so signed URLs are signed remotely by the
    IAM Credentials API as the workload's service account.
    """

    def __init__(self, bucket_name: str, credentials=None, project: str | None = None):
        if credentials is None:
            credentials, project = gcp_identity.default_credentials()

        self._service_account_email = gcp_identity.resolve_service_account_email(credentials)
        self._signer_credentials = gcp_identity.remote_signing_credentials(
            credentials, self._service_account_email
        )

        client = gcs.Client(project=project, credentials=credentials)
        super().__init__(bucket_name, client)
        log.info(
            "ImplicitGCPCloudStorage created for bucket %s as %s",
            bucket_name,
            self._service_account_email,
        )

    @property
    def service_account_email(self) -> str:
        return self._service_account_email

    def _signing_credentials(self):
        return self._signer_credentials
