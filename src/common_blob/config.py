"""Configuration bundle consumed by the storage factory."""

import os

from pydantic import BaseModel, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}

# Field name -> environment variable read by CloudStorageOption.from_env().
ENV_VARS = {
    "aws_s3_endpoint": "AWS_S3_ENDPOINT",
    "aws_s3_region": "AWS_REGION",
    "aws_s3_access_key_id": "AWS_ACCESS_KEY_ID",
    "aws_s3_secret_access_key": "AWS_SECRET_ACCESS_KEY",
    "aws_enable_accelerate_endpoint": "AWS_S3_ACCELERATE_ENDPOINT",
    "gcp_credentials_json": "GCP_CREDENTIAL_JSON",
    "gcp_storage_emulator_host": "STORAGE_EMULATOR_HOST",
}


class CloudStorageOption(BaseModel):
    """
    Provider settings for :func:`common_blob.factory.new_cloud_storage`.

    Every field is optional. An empty string (or ``False``) means "use the
    ambient default" of the underlying SDK.
    """

    aws_s3_endpoint: str = Field(default="", description="Endpoint override, e.g. a localstack URL")
    aws_s3_region: str = Field(default="", description="AWS region of the bucket")
    aws_s3_access_key_id: str = Field(default="", description="Explicit AWS access key id")
    aws_s3_secret_access_key: str = Field(default="", description="Explicit AWS secret access key")
    aws_enable_accelerate_endpoint: bool = Field(
        default=False, description="Use the S3 transfer acceleration endpoint"
    )
    gcp_credentials_json: str = Field(default="", description="Service account credentials JSON")
    gcp_storage_emulator_host: str = Field(
        default="", description="host:port of the GCS emulator, test mode only"
    )

    def merge(self, *partials: "CloudStorageOption") -> "CloudStorageOption":
        """Return a copy with ``partials`` applied left to right.

        A string field is only replaced when the later partial has a non-empty
        value. ``aws_enable_accelerate_endpoint`` is replaced by every partial,
        whatever its value.
        """
        values = self.model_dump()
        for partial in partials:
            for name, value in partial.model_dump().items():
                if name == "aws_enable_accelerate_endpoint":
                    values[name] = value
                elif value:
                    values[name] = value
        return CloudStorageOption(**values)

    @classmethod
    def combine(cls, *partials: "CloudStorageOption") -> "CloudStorageOption":
        return cls().merge(*partials)

    @classmethod
    def from_env(cls) -> "CloudStorageOption":
        values: dict = {}
        for name, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            if name == "aws_enable_accelerate_endpoint":
                values[name] = raw.strip().lower() in _TRUE_VALUES
            else:
                values[name] = raw
        return cls(**values)


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES
