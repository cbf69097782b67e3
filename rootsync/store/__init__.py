"""Observable root object table.

Wraps nested dicts and lists so that every mutation is reported as an
ordered batch of change records.
"""

from .observable import ObservableDict, ObservableList, RootTable, unwrap
from .records import MISSING, ChangeRecord, ChangeType

__all__ = [
    "MISSING",
    "ChangeRecord",
    "ChangeType",
    "ObservableDict",
    "ObservableList",
    "RootTable",
    "unwrap",
]
