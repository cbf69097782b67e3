"""Protocol messages sent to subscribed clients."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..store.records import MISSING, Path


class Op(str, Enum):
    """Message operation."""

    INIT = "init"
    UPDATE = "update"
    INSERT = "insert"
    DELETE = "delete"
    FINALIZE = "finalize"
    CLOSED = "closed"


@dataclass(frozen=True)
class Message:
    """One unit of state sent to one client.

    ``value`` holds an already-encoded wire value, or ``MISSING`` when the
    message carries none. ``path`` is None for messages that address the
    root key as a whole (init, finalize, closed).
    """

    op: Op
    key: str
    path: Path | None = None
    value: Any = MISSING

    @property
    def has_value(self) -> bool:
        return self.value is not MISSING

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-compatible wire form."""
        data: dict[str, Any] = {"op": self.op.value, "key": self.key}
        if self.path is not None:
            data["path"] = list(self.path)
        if self.value is not MISSING:
            data["value"] = self.value
        return data

    @classmethod
    def init(cls, key: str, value: Any) -> "Message":
        return cls(Op.INIT, key, value=value)

    @classmethod
    def finalize(cls, key: str) -> "Message":
        return cls(Op.FINALIZE, key)

    @classmethod
    def closed(cls, key: str) -> "Message":
        return cls(Op.CLOSED, key)
