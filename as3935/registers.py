"""AS3935 register map.

Nine 8-bit registers at 0x00-0x08 plus two write-only direct command
registers. Field positions are given as inclusive (high, low) bit ranges.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from .helpers import genmask

__all__ = [
    'Field', 'Register', 'REGISTERS', 'NUM_REGISTERS', 'REGISTER_IMAGE_SIZE',
    'REG_PRESET_DEFAULT', 'REG_CALIB_RCO', 'DIRECT_COMMAND',
    'get_register', 'reset_values',
]

REG_AFE_GAIN = 0x00
REG_THRESHOLD = 0x01
REG_LIGHTNING = 0x02
REG_INTERRUPT = 0x03
REG_ENERGY_L = 0x04
REG_ENERGY_M = 0x05
REG_ENERGY_MM = 0x06
REG_DISTANCE = 0x07
REG_IRQ_TUNING = 0x08

REG_PRESET_DEFAULT = 0x3C
REG_CALIB_RCO = 0x3D
DIRECT_COMMAND = 0x96

NUM_REGISTERS = 9
# Large enough to back the direct command registers as well
REGISTER_IMAGE_SIZE = REG_CALIB_RCO + 1


class Field:
    def __init__(self, name: str, high: int, low: int, description: str | None = None) -> None:
        if not name:
            raise ValueError('Field name must be a non-empty string')
        if low < 0 or high > 7 or high < low:
            raise ValueError(f"Field '{name}': invalid bit range [{high}:{low}]")

        self.name = name
        self.high = high
        self.low = low
        self.description = description

    @property
    def mask(self) -> int:
        return genmask(self.high, self.low)

    @property
    def width(self) -> int:
        return self.high - self.low + 1

    def __repr__(self):
        return f'Field({self.name!r}, {self.high}, {self.low})'


class Register:
    def __init__(self, name: str, offset: int, fields: Sequence[Field],
                 description: str | None = None, reset_value: int = 0) -> None:
        used = 0
        for f in fields:
            if used & f.mask:
                raise ValueError(f"Register '{name}': field '{f.name}' overlaps another field")
            used |= f.mask

        self.name = name
        self.offset = offset
        self.fields = list(fields)
        self.description = description
        self.reset_value = reset_value

    def __getitem__(self, name: str) -> Field:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(f'Field "{name}" not found in {self.name}')

    def __contains__(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __repr__(self):
        return f'Register({self.name!r}, {self.offset:#04x})'


REGISTERS: list[Register] = [
    Register('AFE_GAIN', REG_AFE_GAIN, [
        Field('AFE_GB', 5, 1, 'Analog front-end gain boost (indoor/outdoor)'),
        Field('PWD', 0, 0, 'Power down'),
    ], 'AFE gain and power down', reset_value=0x24),
    Register('THRESHOLD', REG_THRESHOLD, [
        Field('NF_LEV', 6, 4, 'Noise floor level'),
        Field('WDTH', 3, 0, 'Watchdog threshold'),
    ], 'Noise floor level and watchdog threshold', reset_value=0x22),
    Register('LIGHTNING', REG_LIGHTNING, [
        Field('CL_STAT', 6, 6, 'Clear statistics'),
        Field('MIN_NUM_LIGH', 5, 4, 'Minimum number of lightning'),
        Field('SREJ', 3, 0, 'Spike rejection'),
    ], 'Lightning register', reset_value=0xC2),
    Register('INTERRUPT', REG_INTERRUPT, [
        Field('LCO_FDIV', 7, 6, 'Frequency division ratio for antenna tuning'),
        Field('MASK_DIST', 5, 5, 'Mask disturber'),
        Field('INT', 3, 0, 'Interrupt source'),
    ], 'Interrupt mask and source'),
    Register('ENERGY_L', REG_ENERGY_L, [
        Field('S_LIG_L', 7, 0, 'Energy of single lightning, LSB'),
    ]),
    Register('ENERGY_M', REG_ENERGY_M, [
        Field('S_LIG_M', 7, 0, 'Energy of single lightning, MSB'),
    ]),
    Register('ENERGY_MM', REG_ENERGY_MM, [
        Field('S_LIG_MM', 4, 0, 'Energy of single lightning, MMSB'),
    ]),
    Register('DISTANCE', REG_DISTANCE, [
        Field('DISTANCE', 5, 0, 'Distance estimation'),
    ], reset_value=0x3F),
    Register('IRQ_TUNING', REG_IRQ_TUNING, [
        Field('DISP_LCO', 7, 7, 'Display LCO on IRQ pin'),
        Field('DISP_SRCO', 6, 6, 'Display SRCO on IRQ pin'),
        Field('DISP_TRCO', 5, 5, 'Display TRCO on IRQ pin'),
        Field('TUN_CAP', 3, 0, 'Internal tuning capacitors, 8 pF steps'),
    ], 'IRQ display and antenna tuning'),
]


def get_register(offset: int) -> Register:
    if not 0 <= offset < NUM_REGISTERS:
        raise KeyError(f'No register at offset {offset:#04x}')
    return REGISTERS[offset]


def reset_values() -> bytes:
    return bytes(r.reset_value for r in REGISTERS)
