"""Abstract base class and shared value types for blob storage backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from .iterator import ListIterator

DEFAULT_SIGNED_URL_EXPIRY = timedelta(hours=1)


@dataclass(frozen=True)
class ListObject:
    """A single entry produced by listing a bucket.

    Directory markers (``is_dir=True``) only carry the key; every other field
    is left at its zero value.
    """

    key: str
    mod_time: datetime | None = None
    size: int = 0
    md5: bytes | None = None
    is_dir: bool = False


@dataclass(frozen=True)
class Attributes:
    """Snapshot of a blob's attributes as of the call that fetched it."""

    cache_control: str = ""
    content_disposition: str = ""
    content_encoding: str = ""
    content_language: str = ""
    content_type: str = ""
    # Keys are always lowercase.
    metadata: dict[str, str] = field(default_factory=dict)
    mod_time: datetime | None = None
    size: int = 0
    md5: bytes | None = None


@dataclass
class SignedURLOption:
    """Options for :meth:`CloudStorage.get_signed_url`.

    ``method`` and ``content_type`` must match the request that eventually
    uses the URL; the provider rejects mismatches, not this library.
    """

    method: str = "GET"
    expiry: timedelta = DEFAULT_SIGNED_URL_EXPIRY
    content_type: str = ""
    enforce_absent_content_type: bool = False


@dataclass
class ListOptions:
    prefix: str = ""
    delimiter: str = ""


class CloudStorage(ABC):
    """Provider-agnostic interface for blob storage operations."""

    @abstractmethod
    def list(self, prefix: str) -> "ListIterator":
        """Lazily list every blob whose key starts with *prefix*."""

    @abstractmethod
    def list_with_options(self, options: ListOptions) -> "ListIterator":
        """Lazily list blobs, grouping keys into directories on ``options.delimiter``."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Download content by key. Raises StorageNotFoundError if missing."""

    @abstractmethod
    def get_reader(self, key: str) -> BinaryIO:
        """Open a streaming reader. The caller must close it."""

    @abstractmethod
    def get_range_reader(self, key: str, offset: int, length: int) -> BinaryIO:
        """Open a reader over ``length`` bytes starting at ``offset``.

        A negative ``length`` reads to the end of the object.
        """

    @abstractmethod
    def get_writer(self, key: str, content_type: str | None = None) -> BinaryIO:
        """Open an incremental writer. The object is only guaranteed visible after close()."""

    @abstractmethod
    def write(self, key: str, body: bytes, content_type: str | None = None) -> None:
        """Upload the whole object, replacing any existing one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a single object. Raises StorageNotFoundError if missing."""

    @abstractmethod
    def attributes(self, key: str) -> Attributes:
        """Fetch attributes. Raises StorageNotFoundError if missing."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return whether the key exists."""

    @abstractmethod
    def copy(self, dst_key: str, src_key: str) -> None:
        """Copy ``src_key`` to ``dst_key`` server side."""

    @abstractmethod
    def get_signed_url(self, key: str, opts: SignedURLOption | None = None) -> str:
        """Return a time-limited pre-authenticated URL for the key."""

    @abstractmethod
    def create_bucket(self, bucket_prefix: str, expiration_time_days: int) -> None:
        """Ensure the bucket exists with an expiry rule for ``bucket_prefix``.

        Production backends treat this as a no-op.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the client and bucket handle. Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
