"""Lazy pull iterator over list results."""

from collections.abc import Callable, Iterator

from .base import ListObject


class ListIterator:
    """Iterates over the results of :meth:`CloudStorage.list`.

    Each call to ``next()`` invokes the wrapped fetch function exactly once;
    nothing is prefetched or buffered here. The fetch function returns
    ``None`` at the end of the sequence, which is surfaced as
    ``StopIteration``.

    The iterator is single-pass and not restartable: call ``list()`` again to
    enumerate the bucket a second time. It is not safe to call ``next()`` from
    several threads on the same instance.
    """

    def __init__(self, fetch: Callable[[], ListObject | None]):
        self._fetch = fetch
        self._done = False

    def __iter__(self) -> "ListIterator":
        return self

    def __next__(self) -> ListObject:
        if self._done:
            raise StopIteration
        obj = self._fetch()
        if obj is None:
            self._done = True
            raise StopIteration
        return obj


def iterator_from(source: Iterator[ListObject], on_error: Callable[[Exception], Exception]) -> ListIterator:
    """Wrap a native (lazy) iterator so that SDK errors are translated per fetch."""

    def fetch() -> ListObject | None:
        try:
            return next(source, None)
        except Exception as e:
            translated = on_error(e)
            if translated is e:
                raise
            raise translated from e

    return ListIterator(fetch)
