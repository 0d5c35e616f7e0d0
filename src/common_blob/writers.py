"""Incremental writers for blob storage backends."""

import io
import logging
import tempfile
from collections.abc import Callable

log = logging.getLogger(__name__)

# Data beyond this many bytes is spooled to a temporary file instead of memory.
SPOOL_MAX_SIZE = 8 * 1024 * 1024


class S3ObjectWriter(io.RawIOBase):
    """Collects written bytes and uploads them as one object on close().

    The upload goes through ``upload_fileobj`` so large objects are sent as a
    multipart upload. Nothing is visible in the bucket before close(). When
    used as a context manager and the block raises, the buffered data is
    discarded instead of uploaded. A writer that is garbage collected without
    being closed is discarded too.
    """

    def __init__(
        self,
        client,
        bucket: str,
        key: str,
        content_type: str | None = None,
        on_error: Callable[[Exception, str | None], Exception] | None = None,
    ):
        super().__init__()
        self._client = client
        self._bucket = bucket
        self._key = key
        self._content_type = content_type
        self._on_error = on_error
        self._spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        self._size = 0

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("write to closed writer")
        written = self._spool.write(b)
        self._size += written
        return written

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._upload()
        finally:
            self._spool.close()
            super().close()

    def abort(self) -> None:
        """Discard the buffered data without uploading."""
        if self.closed:
            return
        log.debug("Discarding %d buffered bytes for %s/%s", self._size, self._bucket, self._key)
        self._spool.close()
        super().close()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.abort()
        else:
            self.close()

    def __del__(self):
        # IOBase.__del__ would close(), uploading a partial object.
        if hasattr(self, "_spool"):
            self.abort()

    def _upload(self) -> None:
        self._spool.seek(0)
        extra_args = {"ContentType": self._content_type} if self._content_type else None
        try:
            self._client.upload_fileobj(self._spool, self._bucket, self._key, ExtraArgs=extra_args)
        except Exception as e:
            if self._on_error is None:
                raise
            raise self._on_error(e, self._key) from e
        log.debug("Uploaded %d bytes to %s/%s", self._size, self._bucket, self._key)


class TranslatingWriter(io.RawIOBase):
    """Forwards to an SDK writer, translating its write and close failures."""

    def __init__(self, raw, key: str, on_error: Callable[[Exception, str | None], Exception]):
        super().__init__()
        self._raw = raw
        self._key = key
        self._on_error = on_error

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("write to closed writer")
        try:
            return self._raw.write(b)
        except Exception as e:
            raise self._on_error(e, self._key) from e

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._raw.close()
        except Exception as e:
            raise self._on_error(e, self._key) from e
        finally:
            super().close()
