from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = [
    'Target',
]


class Target(ABC):
    """Byte-addressed register transport for a single bus device."""

    @abstractmethod
    def read_bytes(self, addr: int, length: int) -> bytes: ...

    @abstractmethod
    def write_bytes(self, addr: int, data: bytes | bytearray): ...

    @abstractmethod
    def close(self): ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()
