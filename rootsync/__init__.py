"""rootsync: stream changes to root objects to subscribed clients."""

__version__ = "0.1.0"

from .codec import UNDEFINED, Codec, decode, encode
from .store import ChangeRecord, ChangeType, RootTable
from .sync import Message, NoSuchKeyError, Op, SyncEngine

__all__ = [
    "UNDEFINED",
    "ChangeRecord",
    "ChangeType",
    "Codec",
    "Message",
    "NoSuchKeyError",
    "Op",
    "RootTable",
    "SyncEngine",
    "__version__",
    "decode",
    "encode",
]
