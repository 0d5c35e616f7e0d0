"""Translation between provider SDK shapes and the common value types.

Everything here is a free function over plain dicts / SDK objects so the
backends share one implementation of each conversion.
"""

import base64
import binascii
import re
from datetime import timedelta

from .base import DEFAULT_SIGNED_URL_EXPIRY, Attributes, ListObject, SignedURLOption
from .exceptions import StorageConfigurationError, StorageInvalidRangeError

SIGNED_URL_METHODS = ("GET", "PUT", "DELETE")

_MD5_HEX = re.compile(r"^[0-9a-fA-F]{32}$")


def normalize_metadata(metadata: dict[str, str] | None) -> dict[str, str]:
    """Lowercase metadata keys. On a case-insensitive collision the later entry wins."""
    result: dict[str, str] = {}
    for key, value in (metadata or {}).items():
        result[key.lower()] = value
    return result


def md5_from_etag(etag: str | None) -> bytes | None:
    """S3 ETags are the hex MD5 of the content, except for multipart uploads."""
    if not etag:
        return None
    etag = etag.strip('"')
    if not _MD5_HEX.match(etag):
        return None
    return bytes.fromhex(etag)


def md5_from_base64(md5_hash: str | None) -> bytes | None:
    if not md5_hash:
        return None
    try:
        return base64.b64decode(md5_hash)
    except (binascii.Error, ValueError):
        return None


def directory_entry(prefix: str) -> ListObject:
    return ListObject(key=prefix, is_dir=True)


def list_object_from_s3(obj: dict) -> ListObject:
    """Convert one ``Contents`` entry of a ListObjectsV2 page."""
    return ListObject(
        key=obj["Key"],
        mod_time=obj.get("LastModified"),
        size=int(obj.get("Size", 0)),
        md5=md5_from_etag(obj.get("ETag")),
    )


def list_object_from_gcs_blob(blob) -> ListObject:
    return ListObject(
        key=blob.name,
        mod_time=blob.updated,
        size=blob.size or 0,
        md5=md5_from_base64(blob.md5_hash),
    )


def attributes_from_s3_head(response: dict) -> Attributes:
    """Convert a HeadObject response."""
    return Attributes(
        cache_control=response.get("CacheControl", ""),
        content_disposition=response.get("ContentDisposition", ""),
        content_encoding=response.get("ContentEncoding", ""),
        content_language=response.get("ContentLanguage", ""),
        content_type=response.get("ContentType", ""),
        metadata=normalize_metadata(response.get("Metadata")),
        mod_time=response.get("LastModified"),
        size=int(response.get("ContentLength", 0)),
        md5=md5_from_etag(response.get("ETag")),
    )


def attributes_from_gcs_blob(blob) -> Attributes:
    return Attributes(
        cache_control=blob.cache_control or "",
        content_disposition=blob.content_disposition or "",
        content_encoding=blob.content_encoding or "",
        content_language=blob.content_language or "",
        content_type=blob.content_type or "",
        metadata=normalize_metadata(blob.metadata),
        mod_time=blob.updated,
        size=blob.size or 0,
        md5=md5_from_base64(blob.md5_hash),
    )


def normalize_signed_url_options(opts: SignedURLOption | None) -> SignedURLOption:
    """Apply defaults and reject option combinations no provider can sign.

    Returns a new SignedURLOption; the caller's instance is left untouched.
    """
    if opts is None:
        return SignedURLOption()

    expiry = opts.expiry
    if expiry is None:
        expiry = DEFAULT_SIGNED_URL_EXPIRY
    if not isinstance(expiry, timedelta):
        expiry = timedelta(seconds=expiry)
    if expiry < timedelta(0):
        raise StorageConfigurationError(f"Signed URL expiry must be >= 0, got {expiry}")
    if expiry == timedelta(0):
        expiry = DEFAULT_SIGNED_URL_EXPIRY

    method = (opts.method or "GET").upper()
    if method not in SIGNED_URL_METHODS:
        raise StorageConfigurationError(
            f"Unsupported signed URL method: {method!r}. Supported: {', '.join(SIGNED_URL_METHODS)}"
        )
    if opts.content_type and method != "PUT":
        raise StorageConfigurationError(f"content_type must be empty when signing a {method} URL")
    if opts.enforce_absent_content_type and method != "PUT":
        raise StorageConfigurationError(
            f"enforce_absent_content_type must be False when signing a {method} URL"
        )
    if opts.content_type and opts.enforce_absent_content_type:
        raise StorageConfigurationError("content_type and enforce_absent_content_type are mutually exclusive")

    return SignedURLOption(
        method=method,
        expiry=expiry,
        content_type=opts.content_type or "",
        enforce_absent_content_type=opts.enforce_absent_content_type,
    )


def range_bounds(offset: int, length: int, key: str | None = None) -> tuple[int, int | None]:
    """Return the inclusive ``(start, end)`` byte positions for a range read.

    ``end`` is None when ``length`` is negative (read to the end).
    """
    if offset < 0:
        raise StorageInvalidRangeError(f"Range offset must be >= 0, got {offset}", key=key)
    if length < 0:
        return offset, None
    return offset, offset + length - 1


def s3_range_header(offset: int, length: int, key: str | None = None) -> str:
    start, end = range_bounds(offset, length, key)
    if end is None:
        return f"bytes={start}-"
    return f"bytes={start}-{end}"
