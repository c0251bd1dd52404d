"""AS3935 lightning sensor driver.

All public methods of AS3935 take an instance-wide lock for their whole
duration, so one instance can be shared between threads. Nothing protects
against another process or instance talking to the same chip.
"""

from __future__ import annotations

import contextlib
import logging
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from .bus import RegisterBus, TargetFactory
from .enums import (
    AnalogFrontEnd,
    InterruptType,
    IRQOutputSource,
    LCODivision,
    MinNumLightning,
    NoiseFloorLevel,
    TuningCapacitance,
)
from .errors import ConfigurationError, DecodeError, StateError, TransportError, ValidationError
from .i2ctarget import I2CTarget
from .registers import (
    DIRECT_COMMAND,
    NUM_REGISTERS,
    REG_AFE_GAIN,
    REG_DISTANCE,
    REG_ENERGY_L,
    REG_ENERGY_M,
    REG_ENERGY_MM,
    REG_INTERRUPT,
    REG_IRQ_TUNING,
    REG_LIGHTNING,
    REG_PRESET_DEFAULT,
    REG_THRESHOLD,
    get_register,
)

__all__ = [
    'AS3935', 'Settings', 'DISTANCE_OUT_OF_RANGE',
    'decode_distance', 'decode_interrupt', 'decode_strike_energy',
]

logger = logging.getLogger(__name__)

E = TypeVar('E', bound=Enum)

# The chip needs at least 2 ms after an event before dependent registers are valid
MIN_SETTLING_DELAY = 0.002
DEFAULT_SETTLING_DELAY = 0.005

DISTANCE_OUT_OF_RANGE = sys.maxsize
STORM_OVERHEAD_KM = 0
ENERGY_DIVISOR = 16777

WATCHDOG_THRESHOLD_MAX = 10
SPIKE_REJECTION_MAX = 11

MASK_PWD = get_register(REG_AFE_GAIN)['PWD'].mask
MASK_AFE_GB = get_register(REG_AFE_GAIN)['AFE_GB'].mask
MASK_NF_LEV = get_register(REG_THRESHOLD)['NF_LEV'].mask
MASK_WDTH = get_register(REG_THRESHOLD)['WDTH'].mask
MASK_CL_STAT = get_register(REG_LIGHTNING)['CL_STAT'].mask
MASK_MIN_NUM_LIGH = get_register(REG_LIGHTNING)['MIN_NUM_LIGH'].mask
MASK_SREJ = get_register(REG_LIGHTNING)['SREJ'].mask
MASK_LCO_FDIV = get_register(REG_INTERRUPT)['LCO_FDIV'].mask
MASK_DIST = get_register(REG_INTERRUPT)['MASK_DIST'].mask
MASK_INT = get_register(REG_INTERRUPT)['INT'].mask
MASK_ENERGY_MM = get_register(REG_ENERGY_MM)['S_LIG_MM'].mask
MASK_DISTANCE = get_register(REG_DISTANCE)['DISTANCE'].mask
MASK_IRQ_SOURCE = 0xE0
MASK_TUN_CAP = get_register(REG_IRQ_TUNING)['TUN_CAP'].mask


def decode_interrupt(value: int) -> InterruptType:
    try:
        return InterruptType(value & MASK_INT)
    except ValueError:
        raise DecodeError(f'invalid or corrupted interrupt data {value & MASK_INT:#x} in register',
                          REG_INTERRUPT, value) from None


def decode_distance(value: int) -> int:
    """Distance in km. 0 means the storm is overhead, DISTANCE_OUT_OF_RANGE
    that it is out of range."""
    raw = value & MASK_DISTANCE
    if raw == 0x01:
        return STORM_OVERHEAD_KM
    if raw == 0x3F:
        return DISTANCE_OUT_OF_RANGE
    return raw


def decode_strike_energy(lsb: int, mid: int, msb: int) -> float:
    # Unverified scaling. The integer division happens before the float
    # rescale and the result depends on it.
    value = (msb & MASK_ENERGY_MM) << 16
    value |= (mid & 0xff) << 8
    value |= lsb & 0xff
    value //= ENERGY_DIVISOR

    return value / 1000.0


def _decode_enum(enum_cls: type[E], value: int, mask: int, offset: int, what: str) -> E:
    try:
        return enum_cls(value & mask)
    except ValueError:
        raise DecodeError(f'invalid {what} code {value & mask:#04x} in register {offset:#04x}',
                          offset, value) from None


def _validate_enum(enum_cls: type[E], value, what: str) -> E:
    if isinstance(value, enum_cls):
        return value

    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return enum_cls(value)
        except ValueError:
            pass

    raise ValidationError(f'invalid {what} specified: {value!r}')


def _validate_range(value, high: int, what: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f'{what} must be an integer, got {type(value).__name__}')

    if not 0 <= value <= high:
        raise ValidationError(f'{what} must be in range 0-{high}, got {value}')

    return value


@dataclass
class Settings:
    """Decoded configuration fields from one register dump."""
    powered_down: bool
    analog_front_end: AnalogFrontEnd
    noise_floor_level: NoiseFloorLevel
    watchdog_threshold: int
    spike_rejection: int
    min_num_lightning: MinNumLightning
    disturber_masked: bool
    lco_division: LCODivision
    irq_output_source: IRQOutputSource
    tuning_capacitance: TuningCapacitance

    @classmethod
    def from_registers(cls, regs: bytes) -> Settings:
        if len(regs) != NUM_REGISTERS:
            raise ValueError(f'Expected {NUM_REGISTERS} register values, got {len(regs)}')

        wdth = regs[REG_THRESHOLD] & MASK_WDTH
        if wdth > WATCHDOG_THRESHOLD_MAX:
            raise DecodeError(f'watchdog threshold {wdth} out of range', REG_THRESHOLD, regs[REG_THRESHOLD])

        srej = regs[REG_LIGHTNING] & MASK_SREJ
        if srej > SPIKE_REJECTION_MAX:
            raise DecodeError(f'spike rejection {srej} out of range', REG_LIGHTNING, regs[REG_LIGHTNING])

        return cls(
            powered_down=bool(regs[REG_AFE_GAIN] & MASK_PWD),
            analog_front_end=_decode_enum(AnalogFrontEnd, regs[REG_AFE_GAIN], MASK_AFE_GB,
                                          REG_AFE_GAIN, 'analog front-end'),
            noise_floor_level=_decode_enum(NoiseFloorLevel, regs[REG_THRESHOLD], MASK_NF_LEV,
                                           REG_THRESHOLD, 'noise floor level'),
            watchdog_threshold=wdth,
            spike_rejection=srej,
            min_num_lightning=_decode_enum(MinNumLightning, regs[REG_LIGHTNING], MASK_MIN_NUM_LIGH,
                                           REG_LIGHTNING, 'minimum number of lightning'),
            disturber_masked=bool(regs[REG_INTERRUPT] & MASK_DIST),
            lco_division=_decode_enum(LCODivision, regs[REG_INTERRUPT], MASK_LCO_FDIV,
                                      REG_INTERRUPT, 'LCO division'),
            irq_output_source=_decode_enum(IRQOutputSource, regs[REG_IRQ_TUNING], MASK_IRQ_SOURCE,
                                           REG_IRQ_TUNING, 'IRQ output source'),
            tuning_capacitance=_decode_enum(TuningCapacitance, regs[REG_IRQ_TUNING], MASK_TUN_CAP,
                                            REG_IRQ_TUNING, 'tuning capacitance'),
        )


class AS3935:
    """AS3935 on one I2C device node and address.

    `target_factory` is called as `target_factory(device_path, address)` on
    open() and must return a Target. `burst_read` reads registers by
    fetching the whole bank from address 0, for buses that can't start a
    read at an arbitrary register.
    """

    def __init__(self, device_path: str, address: int, *,
                 target_factory: TargetFactory = I2CTarget,
                 burst_read: bool = False,
                 settling_delay: float = DEFAULT_SETTLING_DELAY) -> None:
        if settling_delay < MIN_SETTLING_DELAY:
            raise ConfigurationError(f'settling delay must be at least {MIN_SETTLING_DELAY}s, got {settling_delay}')

        self._bus = RegisterBus(device_path, address, target_factory, burst_read)
        self.settling_delay = settling_delay
        self._lock = threading.Lock()

    def __repr__(self):
        return f'AS3935({self._bus.device_path!r}, {self._bus.address:#04x})'

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()

    @property
    def device_path(self) -> str:
        return self._bus.device_path

    @property
    def address(self) -> int:
        return self._bus.address

    @property
    def is_open(self) -> bool:
        return self._bus.is_open

    @contextlib.contextmanager
    def _operation(self, name: str):
        with self._lock:
            if not self._bus.is_open:
                raise StateError(f'{name}: the module is not connected')

            try:
                yield self._bus
            except TransportError as e:
                raise TransportError(f'{name}: {e}') from e

    # --- Lifecycle ---

    def open(self):
        with self._lock:
            self._bus.open()
        logger.info('connected to AS3935 at %s address %#04x', self.device_path, self.address)

    def close(self):
        with self._lock:
            self._bus.close()
        logger.info('disconnected from AS3935 at %s address %#04x', self.device_path, self.address)

    # --- Commands ---

    def initialize_defaults(self):
        """Reset all registers to their factory defaults."""
        with self._operation('initialize defaults') as bus:
            bus.write_register(REG_PRESET_DEFAULT, DIRECT_COMMAND)

    def power_switch(self, on: bool):
        """Power the chip down, or power it up and run the RCO calibration.

        Calibration briefly routes SRCO to the IRQ pin for the settling
        delay, as the power-up procedure requires.
        """
        with self._operation('power switch') as bus:
            if not on:
                bus.write_register_masked(REG_AFE_GAIN, MASK_PWD, MASK_PWD)
                logger.info('powered down')
                return

            bus.write_register_masked(REG_AFE_GAIN, 0x00, MASK_PWD)
            bus.write_register(REG_PRESET_DEFAULT, DIRECT_COMMAND)

            srco = IRQOutputSource.SRCO.value
            bus.write_register_masked(REG_IRQ_TUNING, srco, srco)
            time.sleep(self.settling_delay)
            bus.write_register_masked(REG_IRQ_TUNING, 0x00, srco)

            logger.info('powered up and calibrated')

    def dump_registers(self) -> bytes:
        """Return the values of registers 0x00-0x08.

        Nothing is returned if any single read fails.
        """
        with self._operation('dump registers') as bus:
            return bytes(bus.read_register(offset) for offset in range(NUM_REGISTERS))

    def read_settings(self) -> Settings:
        return Settings.from_registers(self.dump_registers())

    # --- Disturber ---

    def enable_disturber(self):
        with self._operation('enable disturber') as bus:
            bus.write_register_masked(REG_INTERRUPT, MASK_DIST, MASK_DIST)

    def disable_disturber(self):
        with self._operation('disable disturber') as bus:
            bus.write_register_masked(REG_INTERRUPT, 0x00, MASK_DIST)

    # --- IRQ pin and antenna tuning ---

    def set_irq_output_source(self, source: IRQOutputSource | int):
        source = _validate_enum(IRQOutputSource, source, 'IRQ output source')

        with self._operation('set IRQ output source') as bus:
            bus.write_register_masked(REG_IRQ_TUNING, source.value, MASK_IRQ_SOURCE)

    def get_irq_output_source(self) -> IRQOutputSource:
        with self._operation('get IRQ output source') as bus:
            value = bus.read_register(REG_IRQ_TUNING)

        return _decode_enum(IRQOutputSource, value, MASK_IRQ_SOURCE, REG_IRQ_TUNING, 'IRQ output source')

    def set_tuning_capacitance(self, capacitance: TuningCapacitance | int):
        capacitance = _validate_enum(TuningCapacitance, capacitance, 'tuning capacitance')

        with self._operation('set tuning capacitance') as bus:
            bus.write_register_masked(REG_IRQ_TUNING, capacitance.value, MASK_TUN_CAP)

    def get_tuning_capacitance(self) -> TuningCapacitance:
        with self._operation('get tuning capacitance') as bus:
            value = bus.read_register(REG_IRQ_TUNING)

        return _decode_enum(TuningCapacitance, value, MASK_TUN_CAP, REG_IRQ_TUNING, 'tuning capacitance')

    def set_lco_division(self, division: LCODivision | int):
        division = _validate_enum(LCODivision, division, 'LCO division')

        with self._operation('set LCO division') as bus:
            bus.write_register_masked(REG_INTERRUPT, division.value, MASK_LCO_FDIV)

    def get_lco_division(self) -> LCODivision:
        with self._operation('get LCO division') as bus:
            value = bus.read_register(REG_INTERRUPT)

        return _decode_enum(LCODivision, value, MASK_LCO_FDIV, REG_INTERRUPT, 'LCO division')

    # --- Analog front-end and thresholds ---

    def set_analog_front_end(self, model: AnalogFrontEnd | int):
        model = _validate_enum(AnalogFrontEnd, model, 'analog frontend model')

        with self._operation('set analog front-end') as bus:
            bus.write_register_masked(REG_AFE_GAIN, model.value, MASK_AFE_GB)

    def get_analog_front_end(self) -> AnalogFrontEnd:
        with self._operation('get analog front-end') as bus:
            value = bus.read_register(REG_AFE_GAIN)

        return _decode_enum(AnalogFrontEnd, value, MASK_AFE_GB, REG_AFE_GAIN, 'analog front-end')

    def set_noise_floor_level(self, level: NoiseFloorLevel | int):
        """Set the noise floor threshold code (0x00, 0x10, ... 0x70)."""
        level = _validate_enum(NoiseFloorLevel, level, 'noise floor level')

        with self._operation('set noise floor level') as bus:
            bus.write_register_masked(REG_THRESHOLD, level.value, MASK_NF_LEV)

    def get_noise_floor_level(self) -> NoiseFloorLevel:
        with self._operation('get noise floor level') as bus:
            value = bus.read_register(REG_THRESHOLD)

        return _decode_enum(NoiseFloorLevel, value, MASK_NF_LEV, REG_THRESHOLD, 'noise floor level')

    def set_watchdog_threshold(self, threshold: int):
        threshold = _validate_range(threshold, WATCHDOG_THRESHOLD_MAX, 'watchdog threshold')

        with self._operation('set watchdog threshold') as bus:
            bus.write_register_masked(REG_THRESHOLD, threshold, MASK_WDTH)

    def get_watchdog_threshold(self) -> int:
        with self._operation('get watchdog threshold') as bus:
            value = bus.read_register(REG_THRESHOLD)

        threshold = value & MASK_WDTH
        if threshold > WATCHDOG_THRESHOLD_MAX:
            raise DecodeError(f'watchdog threshold {threshold} out of range', REG_THRESHOLD, value)
        return threshold

    def set_spike_rejection(self, rejection: int):
        rejection = _validate_range(rejection, SPIKE_REJECTION_MAX, 'spike rejection')

        with self._operation('set spike rejection') as bus:
            bus.write_register_masked(REG_LIGHTNING, rejection, MASK_SREJ)

    def get_spike_rejection(self) -> int:
        with self._operation('get spike rejection') as bus:
            value = bus.read_register(REG_LIGHTNING)

        rejection = value & MASK_SREJ
        if rejection > SPIKE_REJECTION_MAX:
            raise DecodeError(f'spike rejection {rejection} out of range', REG_LIGHTNING, value)
        return rejection

    def set_min_num_lightning(self, count: MinNumLightning | int):
        count = _validate_enum(MinNumLightning, count, 'minimum number of lightning')

        with self._operation('set minimum number of lightning') as bus:
            bus.write_register_masked(REG_LIGHTNING, count.value, MASK_MIN_NUM_LIGH)

    def get_min_num_lightning(self) -> MinNumLightning:
        with self._operation('get minimum number of lightning') as bus:
            value = bus.read_register(REG_LIGHTNING)

        return _decode_enum(MinNumLightning, value, MASK_MIN_NUM_LIGH, REG_LIGHTNING,
                            'minimum number of lightning')

    def clear_statistics(self):
        """Clear the lightning distance statistics by toggling CL_STAT high-low-high."""
        with self._operation('clear statistics') as bus:
            bus.write_register_masked(REG_LIGHTNING, MASK_CL_STAT, MASK_CL_STAT)
            bus.write_register_masked(REG_LIGHTNING, 0x00, MASK_CL_STAT)
            bus.write_register_masked(REG_LIGHTNING, MASK_CL_STAT, MASK_CL_STAT)

    # --- Events ---

    def get_interrupt_source(self) -> InterruptType:
        """Return what raised the IRQ line.

        Blocks for the settling delay first, the chip needs it to populate
        the interrupt register after the event.
        """
        with self._operation('get interrupt source') as bus:
            time.sleep(self.settling_delay)
            value = bus.read_register(REG_INTERRUPT)

        source = decode_interrupt(value)
        logger.debug('interrupt source: %s', source.name)
        return source

    def get_lightning_distance_km(self) -> int:
        with self._operation('get lightning distance') as bus:
            value = bus.read_register(REG_DISTANCE)

        return decode_distance(value)

    def get_strike_energy(self) -> float:
        with self._operation('get strike energy') as bus:
            lsb = bus.read_register(REG_ENERGY_L)
            mid = bus.read_register(REG_ENERGY_M)
            msb = bus.read_register(REG_ENERGY_MM)

        return decode_strike_energy(lsb, mid, msb)
