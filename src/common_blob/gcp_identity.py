"""Google credential helpers: compute-environment probe and signing identities.

Workloads running on Google compute with ambient (workload identity)
credentials hold no private key, so signed URLs have to be signed remotely by
the IAM Credentials ``signBlob`` API as the workload's service account. This
module resolves that service account and builds credentials whose signer
performs the remote call.
"""

import logging

import google.auth
from google.auth import iam
from google.auth.compute_engine import _metadata
from google.auth.credentials import Scoped
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .exceptions import StorageAuthenticationError

log = logging.getLogger(__name__)

STORAGE_FULL_CONTROL_SCOPE = "https://www.googleapis.com/auth/devstorage.full_control"
# signBlob on the IAM Credentials API needs a token with this scope.
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def is_on_gcp(request: Request | None = None) -> bool:
    """Return whether the metadata server of Google compute is reachable."""
    try:
        return bool(_metadata.ping(request or Request()))
    except TransportError:
        return False


def default_credentials(scopes: list[str] | None = None):
    """Return ``(credentials, project_id)`` from the ambient environment."""
    try:
        return google.auth.default(scopes=scopes or [STORAGE_FULL_CONTROL_SCOPE])
    except DefaultCredentialsError as e:
        raise StorageAuthenticationError(
            f"Unable to initialize GCP credentials from the environment: {e}", cause=e
        ) from e


def resolve_service_account_email(credentials, request: Request | None = None) -> str:
    """Resolve the email of the service account behind ambient credentials.

    Two hops: refreshing the credentials yields the account identifier they
    act as (``default`` or an email), then the metadata server's
    service-account directory maps that identifier to its email.
    """
    request = request or Request()
    try:
        if not credentials.valid:
            credentials.refresh(request)
        account_id = getattr(credentials, "service_account_email", None) or "default"
        info = _metadata.get_service_account_info(request, service_account=account_id)
    except (RefreshError, TransportError) as e:
        raise StorageAuthenticationError(f"Unable to resolve the GCP service account: {e}", cause=e) from e

    email = info.get("email") if isinstance(info, dict) else None
    if not email:
        raise StorageAuthenticationError(f"Metadata server returned no email for service account {account_id!r}")
    log.debug("Resolved GCP service account %s", email)
    return email


def remote_signing_credentials(
    source_credentials,
    service_account_email: str,
    request: Request | None = None,
) -> service_account.Credentials:
    """Credentials that sign bytes through the IAM ``signBlob`` API.

    ``source_credentials`` authorise the signBlob call, rescoped to
    cloud-platform when they are scopable; the signature is made by
    ``service_account_email``.
    """
    if isinstance(source_credentials, Scoped):
        source_credentials = source_credentials.with_scopes([CLOUD_PLATFORM_SCOPE])
    signer = iam.Signer(request or Request(), source_credentials, service_account_email)
    return service_account.Credentials(signer, service_account_email, TOKEN_URI)
