"""Observable containers for the root object table.

Dicts and lists assigned into a :class:`RootTable` are wrapped into
:class:`ObservableDict` and :class:`ObservableList`. Every mutation made
through these wrappers produces one batch of :class:`ChangeRecord` objects,
delivered synchronously to the table's listeners in program order.

List mutations follow the splice model: replacing ``n`` items with ``m``
items reports ``update`` for the overlapping positions, then ``insert`` for
surplus new items or ``delete`` for surplus removed ones. In-place ``sort``
and ``reverse`` report a single ``shuffle``/``reverse`` record for the list.
"""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping, MutableSequence
from typing import Any

from .records import MISSING, ChangeRecord, ChangeType, Path, PathSegment

logger = logging.getLogger(__name__)

ChangeListener = Callable[[list[ChangeRecord]], None]


def unwrap(value: Any) -> Any:
    """Return a plain dict/list copy of a possibly observable value."""
    if isinstance(value, ObservableDict):
        return {k: unwrap(v) for k, v in value._data.items()}
    if isinstance(value, ObservableList):
        return [unwrap(v) for v in value._data]
    return value


class _Container:
    """Shared parent/key bookkeeping for observable containers."""

    def __init__(self, parent: "_Container | None" = None, key: PathSegment | None = None):
        self._parent = parent
        self._key = key

    def _path(self) -> Path | None:
        """Current path from the table root, or None when detached."""
        if self._parent is None:
            return None
        parent_path = self._parent._path()
        if parent_path is None:
            return None
        return parent_path + (self._key,)

    def _root(self) -> "RootTable | None":
        node = self
        while node._parent is not None:
            node = node._parent
        return node if isinstance(node, RootTable) else None

    def _attach(self, value: Any, key: PathSegment) -> Any:
        # Containers are copied on assignment so a value is owned by one parent.
        if isinstance(value, (ObservableDict, ObservableList)):
            value = unwrap(value)
        if isinstance(value, Mapping):
            return ObservableDict(value, parent=self, key=key)
        if isinstance(value, list):
            return ObservableList(value, parent=self, key=key)
        return value

    @staticmethod
    def _detach(value: Any) -> None:
        if isinstance(value, _Container):
            value._parent = None

    def _notify(self, records: list[ChangeRecord]) -> None:
        if not records:
            return
        root = self._root()
        if root is not None:
            root._dispatch(records)


class ObservableDict(_Container, MutableMapping):
    """A dict whose mutations are reported to the owning table."""

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        parent: _Container | None = None,
        key: PathSegment | None = None,
    ):
        super().__init__(parent, key)
        self._data: dict[str, Any] = {}
        for k, v in (data or {}).items():
            self._data[k] = self._attach(v, k)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({unwrap(self)!r})"

    def _set(self, key: str, value: Any) -> ChangeRecord | None:
        old = self._data.get(key, MISSING)
        self._detach(old)
        stored = self._attach(value, key)
        self._data[key] = stored

        path = self._path()
        if path is None:
            return None
        if old is MISSING:
            return ChangeRecord(ChangeType.INSERT, path + (key,), new_value=unwrap(stored))
        return ChangeRecord(
            ChangeType.UPDATE, path + (key,), old_value=unwrap(old), new_value=unwrap(stored)
        )

    def _delete(self, key: str) -> ChangeRecord | None:
        old = self._data.pop(key)
        self._detach(old)

        path = self._path()
        if path is None:
            return None
        return ChangeRecord(ChangeType.DELETE, path + (key,), old_value=unwrap(old))

    def __setitem__(self, key: str, value: Any) -> None:
        # Re-storing the same container (e.g. after ``d[k] += [...]``) is a no-op.
        if isinstance(value, _Container) and self._data.get(key) is value:
            return
        record = self._set(key, value)
        self._notify([record] if record else [])

    def __delitem__(self, key: str) -> None:
        record = self._delete(key)
        self._notify([record] if record else [])

    def update(self, other: Any = (), /, **kwargs: Any) -> None:
        """Set several keys as one logical mutation."""
        items = other.items() if isinstance(other, Mapping) else other
        records = []
        for key, value in list(items) + list(kwargs.items()):
            record = self._set(key, value)
            if record:
                records.append(record)
        self._notify(records)

    def clear(self) -> None:
        """Remove every key as one logical mutation."""
        records = []
        for key in list(self._data):
            record = self._delete(key)
            if record:
                records.append(record)
        self._notify(records)


class ObservableList(_Container, MutableSequence):
    """A list whose mutations are reported to the owning table."""

    def __init__(
        self,
        data: Iterable[Any] | None = None,
        parent: _Container | None = None,
        key: PathSegment | None = None,
    ):
        super().__init__(parent, key)
        self._data: list[Any] = []
        for index, value in enumerate(data or []):
            self._data.append(self._attach(value, index))

    def __getitem__(self, index):
        return self._data[index]

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (list, ObservableList)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({unwrap(self)!r})"

    def _normalize(self, index: int) -> int:
        if index < 0:
            index += len(self._data)
        if not 0 <= index < len(self._data):
            raise IndexError("list index out of range")
        return index

    def _reindex(self, start: int = 0) -> None:
        for index in range(start, len(self._data)):
            item = self._data[index]
            if isinstance(item, _Container):
                item._key = index

    def splice(self, start: int, delete_count: int | None = None, *items: Any) -> list[Any]:
        """Remove ``delete_count`` items at ``start`` and insert ``items`` there.

        Returns:
            Plain copies of the removed items.
        """
        length = len(self._data)
        if start < 0:
            start = max(length + start, 0)
        start = min(start, length)
        if delete_count is None:
            delete_count = length - start
        delete_count = max(0, min(delete_count, length - start))

        removed = self._data[start:start + delete_count]
        added = [self._attach(value, start + offset) for offset, value in enumerate(items)]
        self._data[start:start + delete_count] = added
        for item in removed:
            self._detach(item)
        self._reindex(start)

        path = self._path()
        if path is not None:
            records = []
            offset = 0
            while offset < len(added):
                if offset < delete_count:
                    records.append(ChangeRecord(
                        ChangeType.UPDATE,
                        path + (start + offset,),
                        old_value=unwrap(removed[offset]),
                        new_value=unwrap(added[offset]),
                    ))
                else:
                    records.append(ChangeRecord(
                        ChangeType.INSERT,
                        path + (start + offset,),
                        new_value=unwrap(added[offset]),
                    ))
                offset += 1
            while offset < delete_count:
                records.append(ChangeRecord(
                    ChangeType.DELETE,
                    path + (start + offset,),
                    old_value=unwrap(removed[offset]),
                ))
                offset += 1
            self._notify(records)

        return [unwrap(item) for item in removed]

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self._data))
            if step != 1:
                raise ValueError("extended slice assignment is not supported")
            self.splice(start, max(stop - start, 0), *value)
            return

        index = self._normalize(index)
        old = self._data[index]
        if isinstance(value, _Container) and old is value:
            return
        self._detach(old)
        stored = self._attach(value, index)
        self._data[index] = stored

        path = self._path()
        if path is not None:
            self._notify([ChangeRecord(
                ChangeType.UPDATE,
                path + (index,),
                old_value=unwrap(old),
                new_value=unwrap(stored),
            )])

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self._data))
            if step != 1:
                raise ValueError("extended slice deletion is not supported")
            self.splice(start, max(stop - start, 0))
            return
        self.splice(self._normalize(index), 1)

    def insert(self, index: int, value: Any) -> None:
        length = len(self._data)
        if index < 0:
            index = max(length + index, 0)
        self.splice(min(index, length), 0, value)

    def append(self, value: Any) -> None:
        self.splice(len(self._data), 0, value)

    def extend(self, values: Iterable[Any]) -> None:
        self.splice(len(self._data), 0, *list(values))

    def __iadd__(self, values: Iterable[Any]) -> "ObservableList":
        self.extend(values)
        return self

    def pop(self, index: int = -1) -> Any:
        if not self._data:
            raise IndexError("pop from empty list")
        return self.splice(self._normalize(index), 1)[0]

    def clear(self) -> None:
        self.splice(0, len(self._data))

    def _reorder(self, change_type: ChangeType, reorder: Callable[[list[Any]], None]) -> None:
        old = unwrap(self)
        reorder(self._data)
        self._reindex()

        path = self._path()
        if path is not None:
            self._notify([ChangeRecord(change_type, path, old_value=old, new_value=unwrap(self))])

    def sort(self, *, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> None:
        """Sort in place, reported as one ``shuffle`` record."""
        self._reorder(ChangeType.SHUFFLE, lambda data: data.sort(key=key, reverse=reverse))

    def reverse(self) -> None:
        """Reverse in place, reported as one ``reverse`` record."""
        self._reorder(ChangeType.REVERSE, lambda data: data.reverse())


class RootTable(ObservableDict):
    """The table of root objects, keyed by string.

    Listeners registered with :meth:`observe` receive each batch of change
    records synchronously, in the order the mutations happened.
    """

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._listeners: list[ChangeListener] = []
        super().__init__(data)

    def _path(self) -> Path:
        return ()

    def _root(self) -> "RootTable":
        return self

    def observe(self, listener: ChangeListener) -> None:
        """Register a listener for change batches."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unobserve(self, listener: ChangeListener) -> None:
        """Remove a previously registered listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, records: list[ChangeRecord]) -> None:
        logger.debug(f"Dispatching {len(records)} change record(s)")
        for listener in list(self._listeners):
            listener(records)

    def get_path(self, path: Iterable[PathSegment]) -> Any:
        """Read the current value at a path.

        Raises:
            KeyError: If a dict segment does not exist.
            IndexError: If a list index is out of range.
        """
        cursor: Any = self
        for segment in path:
            cursor = cursor[segment]
        return cursor
