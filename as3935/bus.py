"""Register access for one AS3935 on one bus address.

RegisterBus owns the transport handle and implements the raw register
primitives the driver is built from. It does no locking of its own; the
driver serializes access.

When the `as3935.bus.trace` logger is enabled for DEBUG, each write to the
register bank is followed (and a plain write also preceded) by a read of all
nine registers for the log. This adds bus traffic and stretches timed
sequences such as the power-up calibration, but does not change what is
written.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .errors import ConfigurationError, StateError, TransportError
from .helpers import apply_mask, format_bank
from .i2ctarget import I2CTarget
from .registers import NUM_REGISTERS
from .target import Target

__all__ = [ 'RegisterBus', 'TargetFactory', ]

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger(__name__ + '.trace')

TargetFactory = Callable[[str, int], Target]

# Exceptions a transport may raise for a failed transaction
_TRANSPORT_ERRORS = (OSError, ValueError)


class RegisterBus:
    def __init__(self, device_path: str, address: int,
                 target_factory: TargetFactory = I2CTarget,
                 burst_read: bool = False) -> None:
        if not device_path:
            raise ConfigurationError('the device path can not be empty')

        if address < 0:
            raise ConfigurationError(f'invalid bus address {address}')

        self.device_path = device_path
        self.address = address
        self.burst_read = burst_read

        self._target_factory = target_factory
        self._target: Target | None = None
        self._read_buffer = bytearray(NUM_REGISTERS)

    def __repr__(self):
        return f'RegisterBus({self.device_path!r}, {self.address:#04x})'

    @property
    def is_open(self) -> bool:
        return self._target is not None

    def open(self):
        if self._target is not None:
            raise StateError('the module is already connected')

        try:
            self._target = self._target_factory(self.device_path, self.address)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f'failed to open {self.device_path} address {self.address:#04x}: {e}') from e

        logger.debug('opened %s address %#04x', self.device_path, self.address)

    def close(self):
        target = self._require_target()

        # The handle is dropped even if the transport fails to close
        self._target = None

        try:
            target.close()
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f'underlying connection closing failure: {e}') from e

        logger.debug('closed %s address %#04x', self.device_path, self.address)

    def _require_target(self) -> Target:
        if self._target is None:
            raise StateError('the module is not connected')
        return self._target

    def _read(self, offset: int) -> int:
        target = self._require_target()

        if self.burst_read:
            # Read the whole bank from address 0 and pick out the register
            if not 0 <= offset < NUM_REGISTERS:
                raise TransportError(f'register {offset:#04x} is out of the module register range')

            try:
                data = target.read_bytes(0x00, NUM_REGISTERS)
            except _TRANSPORT_ERRORS as e:
                raise TransportError(f'failed to read register {offset:#04x}: {e}') from e

            if len(data) != NUM_REGISTERS:
                raise TransportError(f'short read at register {offset:#04x}: '
                                     f'got {len(data)} of {NUM_REGISTERS} bytes')

            self._read_buffer[:] = data
            return self._read_buffer[offset]

        try:
            data = target.read_bytes(offset, 1)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f'failed to read register {offset:#04x}: {e}') from e

        if len(data) != 1:
            raise TransportError(f'short read at register {offset:#04x}: got {len(data)} of 1 bytes')

        if 0 <= offset < NUM_REGISTERS:
            self._read_buffer[offset] = data[0]

        return data[0]

    def _write(self, offset: int, value: int):
        target = self._require_target()

        try:
            target.write_bytes(offset, bytes((value & 0xff,)))
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f'failed to write register {offset:#04x}: {e}') from e

    def _snapshot(self) -> bytes | None:
        """Read the register bank for the trace log. Failures are logged, not raised."""
        try:
            return bytes(self._read(offset) for offset in range(NUM_REGISTERS))
        except TransportError as e:
            trace_logger.debug('bank snapshot failed: %s', e)
            return None

    def _trace_bank(self, bank: bytes | None, offset: int):
        if bank is not None and 0 <= offset < NUM_REGISTERS:
            trace_logger.debug('%s', format_bank(bank, offset))

    def read_register(self, offset: int) -> int:
        value = self._read(offset)

        if trace_logger.isEnabledFor(logging.DEBUG):
            trace_logger.debug('[ Read ] Offset: %#04x Value: %#04x', offset, value)

        return value

    def write_register(self, offset: int, value: int):
        tracing = trace_logger.isEnabledFor(logging.DEBUG) and 0 <= offset < NUM_REGISTERS
        before = self._snapshot() if tracing else None

        self._write(offset, value)

        if trace_logger.isEnabledFor(logging.DEBUG):
            trace_logger.debug('[ Write ] Offset: %#04x Value: %#04x', offset, value)
            if tracing:
                self._trace_bank(before, offset)
                self._trace_bank(self._snapshot(), offset)

    def write_register_masked(self, offset: int, value: int, mask: int):
        """Replace the bits selected by mask in the register with those of value.

        This is a read followed by a write. It is not atomic with respect to
        anything else on the bus touching the same device.
        """
        current = self._read(offset)
        new = apply_mask(current, value, mask)

        self._write(offset, new)

        if trace_logger.isEnabledFor(logging.DEBUG):
            trace_logger.debug('[ Write Masked ] Offset: %#04x Value: %#04x Mask: %#04x (%#04x -> %#04x)',
                               offset, value, mask, current, new)
            if 0 <= offset < NUM_REGISTERS:
                self._trace_bank(self._snapshot(), offset)
