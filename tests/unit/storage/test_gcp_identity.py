"""Tests for compute-environment detection and ambient signing identities."""

from unittest.mock import MagicMock, patch

import pytest
from google.auth.credentials import Scoped
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError

from common_blob import gcp_identity
from common_blob.exceptions import StorageAuthenticationError

EMAIL = "workload@my-project.iam.gserviceaccount.com"


@pytest.fixture()
def mock_metadata():
    with patch("common_blob.gcp_identity._metadata") as mock:
        yield mock


@pytest.fixture()
def request_():
    return MagicMock()


class TestIsOnGcp:
    def test_true_when_metadata_server_answers(self, mock_metadata, request_):
        mock_metadata.ping.return_value = True

        assert gcp_identity.is_on_gcp(request_) is True
        mock_metadata.ping.assert_called_once_with(request_)

    def test_false_when_metadata_server_missing(self, mock_metadata, request_):
        mock_metadata.ping.return_value = False

        assert gcp_identity.is_on_gcp(request_) is False

    def test_transport_error_means_off_platform(self, mock_metadata, request_):
        mock_metadata.ping.side_effect = TransportError("no route")

        assert gcp_identity.is_on_gcp(request_) is False


class TestDefaultCredentials:
    def test_returns_credentials_and_project(self):
        creds = MagicMock()
        with patch("google.auth.default", return_value=(creds, "proj")) as default:
            assert gcp_identity.default_credentials() == (creds, "proj")

        assert default.call_args.kwargs["scopes"] == [gcp_identity.STORAGE_FULL_CONTROL_SCOPE]

    def test_missing_credentials_is_authentication_error(self):
        with patch("google.auth.default", side_effect=DefaultCredentialsError("none")):
            with pytest.raises(StorageAuthenticationError):
                gcp_identity.default_credentials()


class TestResolveServiceAccountEmail:
    def test_two_hop_resolution(self, mock_metadata, request_):
        credentials = MagicMock(valid=False, service_account_email="default")
        mock_metadata.get_service_account_info.return_value = {"email": EMAIL, "scopes": []}

        assert gcp_identity.resolve_service_account_email(credentials, request_) == EMAIL

        credentials.refresh.assert_called_once_with(request_)
        mock_metadata.get_service_account_info.assert_called_once_with(request_, service_account="default")

    def test_valid_credentials_are_not_refreshed(self, mock_metadata, request_):
        credentials = MagicMock(valid=True, service_account_email=EMAIL)
        mock_metadata.get_service_account_info.return_value = {"email": EMAIL}

        gcp_identity.resolve_service_account_email(credentials, request_)

        credentials.refresh.assert_not_called()
        mock_metadata.get_service_account_info.assert_called_once_with(request_, service_account=EMAIL)

    def test_refresh_failure(self, mock_metadata, request_):
        credentials = MagicMock(valid=False)
        credentials.refresh.side_effect = RefreshError("denied")

        with pytest.raises(StorageAuthenticationError, match="denied"):
            gcp_identity.resolve_service_account_email(credentials, request_)

    def test_metadata_failure(self, mock_metadata, request_):
        mock_metadata.get_service_account_info.side_effect = TransportError("timeout")

        with pytest.raises(StorageAuthenticationError):
            gcp_identity.resolve_service_account_email(MagicMock(valid=True), request_)

    def test_missing_email(self, mock_metadata, request_):
        mock_metadata.get_service_account_info.return_value = {"aliases": ["default"]}

        with pytest.raises(StorageAuthenticationError, match="no email"):
            gcp_identity.resolve_service_account_email(MagicMock(valid=True), request_)


class TestRemoteSigningCredentials:
    def test_signer_calls_iam_as_service_account(self, request_):
        source = MagicMock()
        with patch("common_blob.gcp_identity.iam.Signer") as signer_cls:
            credentials = gcp_identity.remote_signing_credentials(source, EMAIL, request_)

        signer_cls.assert_called_once_with(request_, source, EMAIL)
        assert credentials.signer is signer_cls.return_value
        assert credentials.service_account_email == EMAIL
        assert credentials.signer_email == EMAIL

    def test_scopable_source_is_rescoped_for_iam(self, request_):
        source = MagicMock(spec=Scoped)
        with patch("common_blob.gcp_identity.iam.Signer") as signer_cls:
            gcp_identity.remote_signing_credentials(source, EMAIL, request_)

        source.with_scopes.assert_called_once_with(["https://www.googleapis.com/auth/cloud-platform"])
        signer_cls.assert_called_once_with(request_, source.with_scopes.return_value, EMAIL)
