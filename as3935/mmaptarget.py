from __future__ import annotations

import mmap
import os
import weakref
from typing import BinaryIO

from .registers import REGISTER_IMAGE_SIZE, reset_values
from .target import Target

__all__ = [ 'MMapTarget', 'create_register_image', 'image_factory', ]

class MMapTarget(Target):
    """Register bank backed by a memory-mapped image file.

    Stands in for a chip when no bus is available. The image holds one byte
    per register address starting at `offset`.
    """

    def __init__(self, file: str | BinaryIO,
                 offset: int = 0, length: int = REGISTER_IMAGE_SIZE) -> None:

        if length <= 0:
            raise ValueError(f'Length must be positive, got {length}')
        if offset < 0:
            raise ValueError(f'Offset must not be negative, got {offset}')

        self.offset = offset
        self.length = length

        if isinstance(file, str):
            fd = os.open(file, os.O_RDWR)
        else:
            # mmap will (apparently?) close its fd, so duplicate it first
            fd = os.dup(file.fileno())

        try:
            if os.fstat(fd).st_size < offset + length:
                raise OSError(f'register image too small, need {offset + length} bytes')

            pagemask = mmap.ALLOCATIONGRANULARITY - 1

            mmap_offset = offset & ~pagemask
            mmap_len = length + (offset - mmap_offset)

            self.mmap_offset = mmap_offset
            self._base = offset - mmap_offset

            self._map = mmap.mmap(fd, mmap_len, mmap.MAP_SHARED,
                                  mmap.PROT_READ | mmap.PROT_WRITE, offset=mmap_offset)
        finally:
            os.close(fd)

        weakref.finalize(self, MMapTarget.cleanup, self._map)

    @staticmethod
    def cleanup(m):
        # It is ok to call close() multiple times
        m.close()

    def close(self):
        self._map.close()

    def _check_access(self, addr: int, length: int):
        if length <= 0:
            raise ValueError(f'Length must be positive, got {length}')

        if addr < 0 or addr + length > self.length:
            raise OSError(f'Access outside register image: {addr:#x}+{length} > {self.length:#x}')

    def read_bytes(self, addr: int, length: int) -> bytes:
        self._check_access(addr, length)

        start = self._base + addr
        return self._map[start:start + length]

    def write_bytes(self, addr: int, data: bytes | bytearray):
        self._check_access(addr, len(data))

        start = self._base + addr
        self._map[start:start + len(data)] = bytes(data)


def image_factory(path: str, address: int) -> MMapTarget:
    """Target factory for RegisterBus. Images carry a single chip, so the
    bus address does not select anything."""
    return MMapTarget(path)


def create_register_image(path: str, registers: bytes | None = None):
    """Write a register image file, seeded with `registers` or the chip's
    reset values."""
    if registers is None:
        registers = reset_values()

    if len(registers) > REGISTER_IMAGE_SIZE:
        raise ValueError(f'Too many register values: {len(registers)}')

    data = bytearray(REGISTER_IMAGE_SIZE)
    data[:len(registers)] = registers

    with open(path, 'wb') as f:
        f.write(data)
