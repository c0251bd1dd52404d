from __future__ import annotations

import ctypes
import fcntl
import os
import weakref

from .target import Target

__all__ = [ 'I2CTarget', ]

I2C_FUNCS = 0x0705
I2C_RDWR = 0x0707
I2C_FUNC_I2C = 0x00000001
I2C_M_RD = 0x0001

class i2c_msg(ctypes.Structure):
    _fields_ = [
        ('addr', ctypes.c_uint16),
        ('flags', ctypes.c_uint16),
        ('len', ctypes.c_uint16),
        ('buf', ctypes.POINTER(ctypes.c_uint8)),
    ]

class i2c_rdwr_ioctl_data(ctypes.Structure):
    _fields_ = [
        ('msgs', ctypes.POINTER(i2c_msg)),
        ('nmsgs', ctypes.c_uint32),
    ]

class I2CTarget(Target):
    """Linux i2c-dev transport with 8-bit register addresses."""

    def __init__(self, device_path: str, i2c_dev_addr: int) -> None:
        self.device_path = device_path
        self.i2c_dev_addr = i2c_dev_addr

        self.fd = os.open(device_path, os.O_RDWR)

        self._finalizer = weakref.finalize(self, os.close, self.fd)

        i2c_funcs = ctypes.c_uint64()
        try:
            fcntl.ioctl(self.fd, I2C_FUNCS, i2c_funcs, True)
        except OSError:
            self._finalizer()
            raise

        if (i2c_funcs.value & I2C_FUNC_I2C) == 0:
            self._finalizer()
            raise OSError(f'{device_path}: no i2c functionality')

    def close(self):
        # finalize runs os.close() at most once
        self._finalizer()

    def _check_addr(self, addr: int, length: int):
        if length <= 0:
            raise ValueError(f'Length must be positive, got {length}')

        if addr < 0 or addr + length > 0x100:
            raise ValueError(f'register {addr:#x} end {addr + length:#x} outside 8-bit address space')

    def read_bytes(self, addr: int, length: int) -> bytes:
        if not self._finalizer.alive:
            raise OSError(f'{self.device_path}: target closed')

        self._check_addr(addr, length)

        addr_buf = (ctypes.c_ubyte * 1)(addr)
        data_buf = (ctypes.c_uint8 * length)()

        msgs = (i2c_msg * 2)()

        msgs[0].addr = self.i2c_dev_addr
        msgs[0].flags = 0
        msgs[0].len = 1
        msgs[0].buf = addr_buf

        msgs[1].addr = self.i2c_dev_addr
        msgs[1].flags = I2C_M_RD
        msgs[1].len = length
        msgs[1].buf = data_buf

        data = i2c_rdwr_ioctl_data()
        data.msgs = msgs
        data.nmsgs = 2

        r = fcntl.ioctl(self.fd, I2C_RDWR, data, True)
        if r != 2:
            raise OSError(f'{self.device_path}: short i2c transfer ({r} of 2 messages)')

        return bytes(data_buf)

    def write_bytes(self, addr: int, data: bytes | bytearray):
        if not self._finalizer.alive:
            raise OSError(f'{self.device_path}: target closed')

        self._check_addr(addr, len(data))

        # ctypes requires a writeable buffer...
        buf = bytearray()
        buf.append(addr)
        buf += data

        data_buf = (ctypes.c_ubyte * len(buf)).from_buffer(buf)

        msgs = (i2c_msg * 1)()

        msgs[0].addr = self.i2c_dev_addr
        msgs[0].flags = 0
        msgs[0].len = len(buf)
        msgs[0].buf = data_buf

        ioctl_data = i2c_rdwr_ioctl_data()
        ioctl_data.msgs = msgs
        ioctl_data.nmsgs = 1

        fcntl.ioctl(self.fd, I2C_RDWR, ioctl_data, True)
