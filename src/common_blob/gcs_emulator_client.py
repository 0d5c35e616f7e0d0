"""GCS backend for a local storage emulator (fake-gcs-server)."""

import logging

from google.api_core.exceptions import Conflict
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage as gcs

from .base import SignedURLOption
from .exceptions import StorageConfigurationError
from .gcs_client import GCSCloudStorage, parse_credentials_json
from .translate import normalize_signed_url_options

log = logging.getLogger(__name__)

DEFAULT_EMULATOR_PROJECT = "test"
CREATE_BUCKET_TIMEOUT_SECONDS = 10


class GCPTestCloudStorage(GCSCloudStorage):
    """GCS backend pointed at an emulator host.

    The emulator does not check signatures, so signed URLs are plain
    ``http://{host}/{bucket}/{key}`` links.
    """

    def __init__(self, bucket_name: str, emulator_host: str, credentials_json: str = ""):
        if not emulator_host:
            raise StorageConfigurationError(
                "Can't create GCP bucket for tests: an emulator host (STORAGE_EMULATOR_HOST) is required"
            )
        self._host = emulator_host.removeprefix("http://").removeprefix("https://").rstrip("/")

        project = DEFAULT_EMULATOR_PROJECT
        if credentials_json:
            project = parse_credentials_json(credentials_json).get("project_id") or project

        client = gcs.Client(
            project=project,
            credentials=AnonymousCredentials(),
            client_options={"api_endpoint": f"http://{self._host}"},
        )
        super().__init__(bucket_name, client)
        log.info("GCPTestCloudStorage created for bucket %s on %s", bucket_name, self._host)

    @property
    def host(self) -> str:
        return self._host

    def get_signed_url(self, key: str, opts: SignedURLOption | None = None) -> str:
        normalize_signed_url_options(opts)
        return f"http://{self._host}/{self._bucket_name}/{key}"

    def create_bucket(self, bucket_prefix: str, expiration_time_days: int) -> None:
        log.info(
            "CreateBucket. Name: %s, Prefix: %s, Exp Time: %s",
            self._bucket_name,
            bucket_prefix,
            expiration_time_days,
        )

        bucket = self._client.bucket(self._bucket_name)
        matches_prefix = [bucket_prefix] if bucket_prefix else None
        bucket.add_lifecycle_delete_rule(age=expiration_time_days, matches_prefix=matches_prefix)
        try:
            self._client.create_bucket(bucket, timeout=CREATE_BUCKET_TIMEOUT_SECONDS)
        except Conflict:
            log.debug("Bucket %s already exists, updating lifecycle rules", self._bucket_name)
            try:
                bucket.patch(timeout=CREATE_BUCKET_TIMEOUT_SECONDS)
            except Exception as e:
                log.error("Unable to update bucket %s: %s", self._bucket_name, e)
                raise self._translate_error(e) from e
        except Exception as e:
            log.error("Failed to create bucket %s: %s", self._bucket_name, e)
            raise self._translate_error(e) from e
