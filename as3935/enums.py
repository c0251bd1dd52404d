from __future__ import annotations

from enum import Enum

from .errors import ValidationError

__all__ = [
    'AnalogFrontEnd', 'IRQOutputSource', 'InterruptType', 'LCODivision',
    'MinNumLightning', 'NoiseFloorLevel', 'TuningCapacitance',
]


class IRQOutputSource(Enum):
    NONE = 0x00
    TRCO = 0x20
    SRCO = 0x40
    LCO = 0x80


class InterruptType(Enum):
    NO_RESULTS = 0x00
    NOISE_LEVEL_TOO_HIGH = 0x01
    DISTURBER_DETECTED = 0x04
    LIGHTNING = 0x08


class TuningCapacitance(Enum):
    # TUN_CAP nibble codes, 8 pF per step
    DIV_16 = 0x00
    DIV_32 = 0x05
    DIV_64 = 0x0A
    DIV_128 = 0x0F

    @property
    def picofarads(self) -> int:
        return self.value * 8


class AnalogFrontEnd(Enum):
    INDOOR = 0x24
    OUTDOOR = 0x1C


class NoiseFloorLevel(Enum):
    """Noise floor threshold codes, as stored in register 0x01.

    The microvolt meaning depends on the active analog front-end; the code
    itself does not.
    """
    LEVEL_0 = 0x00
    LEVEL_1 = 0x10
    LEVEL_2 = 0x20
    LEVEL_3 = 0x30
    LEVEL_4 = 0x40
    LEVEL_5 = 0x50
    LEVEL_6 = 0x60
    LEVEL_7 = 0x70

    @property
    def level(self) -> int:
        return self.value >> 4

    @classmethod
    def from_level(cls, level: int) -> NoiseFloorLevel:
        if not 0 <= level <= 7:
            raise ValidationError(f'noise floor level must be in range 0-7, got {level}')
        return cls(level << 4)


class MinNumLightning(Enum):
    ONE = 0x00
    FIVE = 0x10
    NINE = 0x20
    SIXTEEN = 0x30

    @property
    def strikes(self) -> int:
        return {0x00: 1, 0x10: 5, 0x20: 9, 0x30: 16}[self.value]


class LCODivision(Enum):
    DIV_16 = 0x00
    DIV_32 = 0x40
    DIV_64 = 0x80
    DIV_128 = 0xC0

    @property
    def ratio(self) -> int:
        return 16 << (self.value >> 6)
