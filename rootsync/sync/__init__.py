"""Change translation and subscription routing.

Turns change records from the root object table into protocol messages and
fans them out to the clients linked to each root key.
"""

from .control import apply_control
from .engine import NoSuchKeyError, SyncEngine
from .messages import Message, Op
from .registry import SubscriberRegistry
from .translator import translate

__all__ = [
    "Message",
    "NoSuchKeyError",
    "Op",
    "SubscriberRegistry",
    "SyncEngine",
    "apply_control",
    "translate",
]
