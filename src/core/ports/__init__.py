# Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.storage import (
    IntegrityError,
    InvalidSignatureError,
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoragePort,
    StoredObject,
)
from src.core.ports.time import TimePort

__all__ = [
    # Storage
    "IntegrityError",
    "InvalidSignatureError",
    "KeyExistsError",
    "KeyNotFoundError",
    "StorageError",
    "StoragePort",
    "StoredObject",
    # Time
    "TimePort",
]
