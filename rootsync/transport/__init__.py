"""Transports that deliver protocol messages to clients."""

from .base import Transport
from .memory import MemoryTransport

__all__ = ["MemoryTransport", "Transport"]
