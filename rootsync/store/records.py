"""Change records emitted by the observable store."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class _Missing:
    """Marker for a record or message field that is not present."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

PathSegment = str | int
Path = tuple[PathSegment, ...]


class ChangeType(str, Enum):
    """Kind of elementary mutation."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SHUFFLE = "shuffle"  # in-place sort of a list
    REVERSE = "reverse"


@dataclass(frozen=True)
class ChangeRecord:
    """One elementary mutation of the root object table.

    ``path[0]`` is the root key; the rest locates the change inside the
    root object. Old and new values are plain (unwrapped) copies.
    """

    type: ChangeType
    path: Path
    old_value: Any = MISSING
    new_value: Any = MISSING

    @property
    def root_key(self) -> PathSegment:
        return self.path[0]

    @property
    def is_root_delete(self) -> bool:
        """True when the entire root value for a key was removed."""
        return self.type is ChangeType.DELETE and len(self.path) == 1
