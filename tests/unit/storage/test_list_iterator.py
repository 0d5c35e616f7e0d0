"""Tests for the lazy ListIterator adapter."""

from unittest.mock import MagicMock

import pytest

from common_blob.base import ListObject
from common_blob.exceptions import StorageError, StorageNotFoundError
from common_blob.iterator import ListIterator, iterator_from


class TestListIterator:
    def test_each_next_calls_fetch_once(self):
        fetch = MagicMock(side_effect=[ListObject(key="a"), ListObject(key="b"), None])
        it = ListIterator(fetch)

        fetch.assert_not_called()
        assert next(it).key == "a"
        assert fetch.call_count == 1
        assert next(it).key == "b"
        assert fetch.call_count == 2

    def test_end_of_sequence_is_stop_iteration(self):
        it = ListIterator(lambda: None)
        with pytest.raises(StopIteration):
            next(it)

    def test_not_restartable(self):
        fetch = MagicMock(side_effect=[ListObject(key="a"), None])
        it = ListIterator(fetch)

        assert [o.key for o in it] == ["a"]
        assert list(it) == []
        assert fetch.call_count == 2

    def test_errors_propagate(self):
        it = ListIterator(MagicMock(side_effect=StorageError("boom")))
        with pytest.raises(StorageError, match="boom"):
            next(it)


class TestIteratorFrom:
    def test_source_not_consumed_until_next(self):
        consumed = []

        def source():
            consumed.append(True)
            yield ListObject(key="a")

        it = iterator_from(source(), lambda e: StorageError(str(e)))
        assert consumed == []
        assert next(it).key == "a"
        assert consumed == [True]

    def test_translates_source_errors(self):
        def source():
            raise KeyError("missing")
            yield  # pragma: no cover

        it = iterator_from(source(), lambda e: StorageNotFoundError(str(e), cause=e))
        with pytest.raises(StorageNotFoundError) as exc_info:
            next(it)
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_storage_errors_pass_through(self):
        original = StorageNotFoundError("gone")

        def source():
            raise original
            yield  # pragma: no cover

        it = iterator_from(source(), lambda e: e)
        with pytest.raises(StorageNotFoundError) as exc_info:
            next(it)
        assert exc_info.value is original
