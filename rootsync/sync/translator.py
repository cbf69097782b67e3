"""Translate change records into protocol messages.

Each change type maps to one pure builder function. Insert, update and
delete become positional deltas. Whole-list reorders (shuffle, reverse)
re-read the current value of the list from the live table and are sent as a
single ``update`` carrying the full reordered list.
"""

from collections.abc import Callable
from typing import Any

from .. import codec
from ..codec import UNDEFINED
from ..store.records import MISSING, ChangeRecord, ChangeType
from .messages import Message, Op

MessageBuilder = Callable[[ChangeRecord, Any, Any], Message]


def _positional(op: Op) -> MessageBuilder:
    def build(record: ChangeRecord, table: Any, value_codec: Any) -> Message:
        value = MISSING
        new_value = record.new_value
        if op is not Op.DELETE and new_value is not MISSING and new_value is not UNDEFINED:
            value = value_codec.encode(record.new_value)
        return Message(op, record.path[0], tuple(record.path[1:]), value)

    return build


def _resnapshot(record: ChangeRecord, table: Any, value_codec: Any) -> Message:
    current = table.get_path(record.path)
    return Message(Op.UPDATE, record.path[0], tuple(record.path[1:]), value_codec.encode(current))


BUILDERS: dict[ChangeType, MessageBuilder] = {
    ChangeType.INSERT: _positional(Op.INSERT),
    ChangeType.UPDATE: _positional(Op.UPDATE),
    ChangeType.DELETE: _positional(Op.DELETE),
    ChangeType.SHUFFLE: _resnapshot,
    ChangeType.REVERSE: _resnapshot,
}


def translate(record: ChangeRecord, table: Any, value_codec: Any = codec) -> Message:
    """Build the protocol message for one change record.

    Args:
        record: The change record. Root deletions are handled by the engine.
        table: The live root object table, read for reorder snapshots.
        value_codec: Object with an ``encode`` function or method.

    Raises:
        ValueError: If the record is malformed.
    """
    if not record.path:
        raise ValueError(f"Change record has an empty path: {record!r}")
    builder = BUILDERS.get(record.type)
    if builder is None:
        raise ValueError(f"Unknown change type: {record.type!r}")
    return builder(record, table, value_codec)
