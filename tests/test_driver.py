#!/usr/bin/env python3

import sys
import threading
import unittest
from unittest import mock

from fakes import FakeFactory, SlowTarget

from as3935 import (
    AS3935,
    AnalogFrontEnd,
    ConfigurationError,
    DecodeError,
    InterruptType,
    IRQOutputSource,
    LCODivision,
    MinNumLightning,
    NoiseFloorLevel,
    Settings,
    StateError,
    TransportError,
    TuningCapacitance,
    ValidationError,
)
from as3935.driver import DISTANCE_OUT_OF_RANGE, decode_distance, decode_interrupt, decode_strike_energy
from as3935.registers import reset_values


def create_sensor(registers=None, **kwargs):
    factory = FakeFactory(reset_values() if registers is None else registers)
    sensor = AS3935('/dev/i2c-1', 0x03, target_factory=factory, **kwargs)
    return sensor, factory


class LifecycleTests(unittest.TestCase):
    def test_configuration(self):
        with self.assertRaises(ConfigurationError):
            AS3935('', 0x03, target_factory=FakeFactory())
        with self.assertRaises(ConfigurationError):
            AS3935('/dev/i2c-1', -3, target_factory=FakeFactory())
        with self.assertRaises(ConfigurationError):
            AS3935('/dev/i2c-1', 0x03, target_factory=FakeFactory(), settling_delay=0.001)

        sensor = AS3935('/dev/i2c-1', 0x03, target_factory=FakeFactory(), settling_delay=0.002)
        self.assertEqual(sensor.settling_delay, 0.002)

    def test_properties(self):
        sensor, _ = create_sensor()
        self.assertEqual(sensor.device_path, '/dev/i2c-1')
        self.assertEqual(sensor.address, 0x03)
        self.assertEqual(repr(sensor), "AS3935('/dev/i2c-1', 0x03)")

    def test_open_close(self):
        sensor, factory = create_sensor()

        sensor.open()
        self.assertTrue(sensor.is_open)
        with self.assertRaises(StateError):
            sensor.open()

        sensor.close()
        self.assertFalse(sensor.is_open)
        self.assertTrue(factory.target.closed)
        with self.assertRaises(StateError):
            sensor.close()

    def test_context_manager(self):
        sensor, factory = create_sensor()

        with sensor as s:
            self.assertIs(s, sensor)
            self.assertEqual(s.get_watchdog_threshold(), 2)

        self.assertFalse(sensor.is_open)
        self.assertTrue(factory.target.closed)

    def test_operations_when_closed(self):
        sensor, _ = create_sensor()

        calls = [
            sensor.initialize_defaults,
            lambda: sensor.power_switch(True),
            sensor.dump_registers,
            sensor.read_settings,
            sensor.enable_disturber,
            sensor.disable_disturber,
            lambda: sensor.set_irq_output_source(IRQOutputSource.LCO),
            lambda: sensor.set_tuning_capacitance(TuningCapacitance.DIV_32),
            lambda: sensor.set_analog_front_end(AnalogFrontEnd.OUTDOOR),
            lambda: sensor.set_noise_floor_level(NoiseFloorLevel.LEVEL_3),
            lambda: sensor.set_watchdog_threshold(3),
            lambda: sensor.set_spike_rejection(3),
            sensor.get_interrupt_source,
            sensor.get_lightning_distance_km,
            sensor.get_strike_energy,
        ]

        for call in calls:
            with self.assertRaises(StateError):
                call()

    def test_open_failure(self):
        factory = FakeFactory(fail_open=True)
        sensor = AS3935('/dev/i2c-7', 0x03, target_factory=factory)

        with self.assertRaises(TransportError):
            sensor.open()

        self.assertFalse(sensor.is_open)

    def test_close_failure(self):
        sensor, factory = create_sensor()
        sensor.open()
        factory.target.fail_close = True

        with self.assertRaises(TransportError):
            sensor.close()

        self.assertFalse(sensor.is_open)
        sensor.open()
        self.assertTrue(sensor.is_open)


class SensorTestCase(unittest.TestCase):
    registers = None

    def setUp(self):
        self.sensor, self.factory = create_sensor(self.registers)
        self.sensor.open()
        self.target = self.factory.target

    def tearDown(self):
        if self.sensor.is_open:
            self.sensor.close()

    @property
    def bank(self):
        return self.factory.bank


class SetterTests(SensorTestCase):
    def check_setter(self, setter, getter, offset, mask, members):
        for initial in (0x00, 0xff):
            for member in members:
                self.bank[offset] = initial
                setter(member)

                value = self.bank[offset]
                self.assertEqual(value & mask, member.value & mask, f'{member} over {initial:#x}')
                self.assertEqual(value & ~mask & 0xff, initial & ~mask & 0xff, f'{member} over {initial:#x}')
                self.assertEqual(getter(), member)

    def test_irq_output_source(self):
        for member in IRQOutputSource:
            self.bank[0x08] = 0x00
            self.sensor.set_irq_output_source(member)
            self.assertEqual(self.bank[0x08], member.value)
            self.assertEqual(self.sensor.get_irq_output_source(), member)

            self.bank[0x08] = 0x1f
            self.sensor.set_irq_output_source(member)
            self.assertEqual(self.bank[0x08], member.value | 0x1f)

    def test_tuning_capacitance(self):
        self.check_setter(self.sensor.set_tuning_capacitance, self.sensor.get_tuning_capacitance,
                          0x08, 0x0f, list(TuningCapacitance))

    def test_tuning_capacitance_codes(self):
        codes = [c.value for c in TuningCapacitance]
        self.assertEqual(len(set(codes)), len(codes))
        self.assertEqual(TuningCapacitance.DIV_128.picofarads, 120)

    def test_analog_front_end(self):
        self.check_setter(self.sensor.set_analog_front_end, self.sensor.get_analog_front_end,
                          0x00, 0x3e, list(AnalogFrontEnd))

    def test_noise_floor_level(self):
        self.check_setter(self.sensor.set_noise_floor_level, self.sensor.get_noise_floor_level,
                          0x01, 0x70, list(NoiseFloorLevel))

    def test_noise_floor_level_int_code(self):
        self.sensor.set_noise_floor_level(0x50)
        self.assertEqual(self.sensor.get_noise_floor_level(), NoiseFloorLevel.LEVEL_5)
        self.assertEqual(self.sensor.get_noise_floor_level().level, 5)

    def test_min_num_lightning(self):
        self.check_setter(self.sensor.set_min_num_lightning, self.sensor.get_min_num_lightning,
                          0x02, 0x30, list(MinNumLightning))

    def test_lco_division(self):
        self.check_setter(self.sensor.set_lco_division, self.sensor.get_lco_division,
                          0x03, 0xc0, list(LCODivision))

    def test_watchdog_threshold(self):
        for initial in (0x00, 0xf0):
            for threshold in range(11):
                self.bank[0x01] = initial
                self.sensor.set_watchdog_threshold(threshold)
                self.assertEqual(self.bank[0x01], initial | threshold)
                self.assertEqual(self.sensor.get_watchdog_threshold(), threshold)

    def test_spike_rejection(self):
        for initial in (0x00, 0xf0):
            for rejection in range(12):
                self.bank[0x02] = initial
                self.sensor.set_spike_rejection(rejection)
                self.assertEqual(self.bank[0x02], initial | rejection)
                self.assertEqual(self.sensor.get_spike_rejection(), rejection)

    def test_disturber(self):
        self.bank[0x03] = 0xc8
        self.sensor.enable_disturber()
        self.assertEqual(self.bank[0x03], 0xe8)

        self.sensor.disable_disturber()
        self.assertEqual(self.bank[0x03], 0xc8)


class ValidationTests(SensorTestCase):
    def assert_rejected(self, call, *args):
        with self.assertRaises(ValidationError):
            call(*args)
        self.assertEqual(self.target.transactions, [])

    def test_watchdog_threshold(self):
        self.assert_rejected(self.sensor.set_watchdog_threshold, 11)
        self.assert_rejected(self.sensor.set_watchdog_threshold, -1)
        self.assert_rejected(self.sensor.set_watchdog_threshold, '3')
        self.assert_rejected(self.sensor.set_watchdog_threshold, True)

    def test_spike_rejection(self):
        self.assert_rejected(self.sensor.set_spike_rejection, 12)
        self.assert_rejected(self.sensor.set_spike_rejection, -1)
        self.assert_rejected(self.sensor.set_spike_rejection, 2.0)

    def test_enums(self):
        self.assert_rejected(self.sensor.set_noise_floor_level, 0x05)
        self.assert_rejected(self.sensor.set_noise_floor_level, 0x80)
        self.assert_rejected(self.sensor.set_analog_front_end, 0x00)
        self.assert_rejected(self.sensor.set_analog_front_end, IRQOutputSource.LCO)
        self.assert_rejected(self.sensor.set_irq_output_source, 0x10)
        self.assert_rejected(self.sensor.set_tuning_capacitance, 0x01)
        self.assert_rejected(self.sensor.set_min_num_lightning, 0x40)
        self.assert_rejected(self.sensor.set_lco_division, 0x20)

    def test_noise_floor_from_level(self):
        self.assertEqual(NoiseFloorLevel.from_level(7), NoiseFloorLevel.LEVEL_7)
        with self.assertRaises(ValidationError):
            NoiseFloorLevel.from_level(8)


class DecodeTests(unittest.TestCase):
    def test_distance(self):
        self.assertEqual(decode_distance(0x01), 0)
        self.assertEqual(decode_distance(0x3f), DISTANCE_OUT_OF_RANGE)
        self.assertEqual(DISTANCE_OUT_OF_RANGE, sys.maxsize)
        self.assertEqual(decode_distance(0x28), 40)
        self.assertEqual(decode_distance(0x05), 5)
        # Only the low six bits hold the distance
        self.assertEqual(decode_distance(0xc5), 5)

    def test_strike_energy(self):
        # 0x013412 // 16777 == 4, so the integer division leaves 0.004
        self.assertEqual(decode_strike_energy(0x12, 0x34, 0x01), 0.004)
        self.assertEqual(decode_strike_energy(0x00, 0x00, 0x00), 0.0)
        # Bits above the five energy bits of the MSB register are ignored
        self.assertEqual(decode_strike_energy(0x12, 0x34, 0xe1), 0.004)
        self.assertEqual(decode_strike_energy(0xff, 0xff, 0x1f), 0x1fffff // 16777 / 1000.0)

    def test_interrupt(self):
        self.assertEqual(decode_interrupt(0x00), InterruptType.NO_RESULTS)
        self.assertEqual(decode_interrupt(0x01), InterruptType.NOISE_LEVEL_TOO_HIGH)
        self.assertEqual(decode_interrupt(0x04), InterruptType.DISTURBER_DETECTED)
        self.assertEqual(decode_interrupt(0x08), InterruptType.LIGHTNING)
        # Upper nibble is configuration, not interrupt data
        self.assertEqual(decode_interrupt(0xe8), InterruptType.LIGHTNING)

        for nibble in (0x02, 0x03, 0x05, 0x0f):
            with self.assertRaises(DecodeError) as cm:
                decode_interrupt(nibble)
            self.assertEqual(cm.exception.offset, 0x03)
            self.assertEqual(cm.exception.value, nibble)


class EventTests(SensorTestCase):
    def test_interrupt_source_waits(self):
        self.bank[0x03] = 0x28

        with mock.patch('as3935.driver.time.sleep') as sleep:
            self.assertEqual(self.sensor.get_interrupt_source(), InterruptType.LIGHTNING)

        sleep.assert_called_once_with(0.005)
        self.assertEqual(self.target.reads, [0x03])

    def test_interrupt_source_invalid(self):
        self.bank[0x03] = 0x06

        with mock.patch('as3935.driver.time.sleep'):
            with self.assertRaises(DecodeError):
                self.sensor.get_interrupt_source()

    def test_interrupt_source_custom_delay(self):
        sensor, _ = create_sensor(settling_delay=0.01)
        sensor.open()

        with mock.patch('as3935.driver.time.sleep') as sleep:
            sensor.get_interrupt_source()

        sleep.assert_called_once_with(0.01)
        sensor.close()

    def test_lightning_distance(self):
        self.bank[0x07] = 0x0e
        self.assertEqual(self.sensor.get_lightning_distance_km(), 14)

        self.bank[0x07] = 0x3f
        self.assertEqual(self.sensor.get_lightning_distance_km(), DISTANCE_OUT_OF_RANGE)

        self.bank[0x07] = 0x01
        self.assertEqual(self.sensor.get_lightning_distance_km(), 0)

    def test_strike_energy(self):
        self.bank[0x04:0x07] = bytes([0x12, 0x34, 0x01])

        self.assertEqual(self.sensor.get_strike_energy(), 0.004)
        self.assertEqual(self.target.reads, [0x04, 0x05, 0x06])

    def test_short_read(self):
        self.target.truncate_reads = 0

        with self.assertRaises(TransportError) as cm:
            self.sensor.get_lightning_distance_km()
        self.assertTrue(str(cm.exception).startswith('get lightning distance: short read'))


class BurstShortReadTests(SensorTestCase):
    def setUp(self):
        self.sensor, self.factory = create_sensor(burst_read=True)
        self.sensor.open()
        self.target = self.factory.target

    def test_short_read(self):
        self.target.truncate_reads = 3

        with self.assertRaises(TransportError):
            self.sensor.get_lightning_distance_km()

        self.target.truncate_reads = None
        self.assertEqual(self.sensor.get_lightning_distance_km(), DISTANCE_OUT_OF_RANGE)


class CommandTests(SensorTestCase):
    def test_initialize_defaults(self):
        self.sensor.initialize_defaults()
        self.assertEqual(self.target.writes, [(0x3c, 0x96)])

    def test_power_on(self):
        self.bank[0x00] = 0x25
        self.bank[0x08] = 0x85

        with mock.patch('as3935.driver.time.sleep') as sleep:
            self.sensor.power_switch(True)

        self.assertEqual(self.target.writes, [
            (0x00, 0x24),
            (0x3c, 0x96),
            (0x08, 0xc5),
            (0x08, 0x85),
        ])
        sleep.assert_called_once_with(0.005)

    def test_power_off(self):
        with mock.patch('as3935.driver.time.sleep') as sleep:
            self.sensor.power_switch(False)

        self.assertEqual(self.target.writes, [(0x00, 0x25)])
        self.assertEqual(self.bank[0x00], 0x25)
        sleep.assert_not_called()

    def test_clear_statistics(self):
        self.bank[0x02] = 0x82

        self.sensor.clear_statistics()

        self.assertEqual(self.target.writes, [(0x02, 0xc2), (0x02, 0x82), (0x02, 0xc2)])

    def test_dump_registers(self):
        regs = self.sensor.dump_registers()

        self.assertIsInstance(regs, bytes)
        self.assertEqual(regs, reset_values())
        self.assertEqual(self.target.reads, list(range(9)))

    def test_dump_registers_aborts(self):
        self.target.fail_read_at = 5

        with self.assertRaises(TransportError) as cm:
            self.sensor.dump_registers()

        self.assertIn('dump registers', str(cm.exception))
        self.assertEqual(self.target.reads, [0x00, 0x01, 0x02, 0x03])

    def test_transport_error_names_operation(self):
        self.target.fail_writes = True

        with self.assertRaises(TransportError) as cm:
            self.sensor.set_watchdog_threshold(4)

        self.assertTrue(str(cm.exception).startswith('set watchdog threshold: '))
        self.assertIsInstance(cm.exception.__cause__, TransportError)

        # The sensor stays usable after a failed operation
        self.target.fail_writes = False
        self.sensor.set_watchdog_threshold(4)
        self.assertEqual(self.sensor.get_watchdog_threshold(), 4)


class BurstReadDriverTests(SensorTestCase):
    def setUp(self):
        self.sensor, self.factory = create_sensor(burst_read=True)
        self.sensor.open()
        self.target = self.factory.target

    def test_dump_registers(self):
        self.assertEqual(self.sensor.dump_registers(), reset_values())
        self.assertEqual(self.target.reads, [0x00] * 9)

    def test_set_watchdog_threshold(self):
        self.sensor.set_watchdog_threshold(7)
        self.assertEqual(self.bank[0x01], 0x27)


class SettingsTests(SensorTestCase):
    def test_reset_values(self):
        settings = self.sensor.read_settings()

        self.assertEqual(settings, Settings(
            powered_down=False,
            analog_front_end=AnalogFrontEnd.INDOOR,
            noise_floor_level=NoiseFloorLevel.LEVEL_2,
            watchdog_threshold=2,
            spike_rejection=2,
            min_num_lightning=MinNumLightning.ONE,
            disturber_masked=False,
            lco_division=LCODivision.DIV_16,
            irq_output_source=IRQOutputSource.NONE,
            tuning_capacitance=TuningCapacitance.DIV_16,
        ))

    def test_configured(self):
        self.sensor.set_analog_front_end(AnalogFrontEnd.OUTDOOR)
        self.sensor.set_min_num_lightning(MinNumLightning.NINE)
        self.sensor.enable_disturber()
        self.sensor.set_tuning_capacitance(TuningCapacitance.DIV_64)

        settings = self.sensor.read_settings()

        self.assertEqual(settings.analog_front_end, AnalogFrontEnd.OUTDOOR)
        self.assertEqual(settings.min_num_lightning.strikes, 9)
        self.assertTrue(settings.disturber_masked)
        self.assertEqual(settings.tuning_capacitance, TuningCapacitance.DIV_64)

    def test_from_registers_length(self):
        with self.assertRaises(ValueError):
            Settings.from_registers(bytes(8))


class CorruptRegisterTests(SensorTestCase):
    registers = bytes([0x00, 0x2c, 0xcf, 0x00, 0, 0, 0, 0x3f, 0x03])

    def test_watchdog_threshold_out_of_range(self):
        with self.assertRaises(DecodeError) as cm:
            self.sensor.get_watchdog_threshold()
        self.assertEqual(cm.exception.offset, 0x01)
        self.assertEqual(cm.exception.value, 0x2c)

    def test_spike_rejection_out_of_range(self):
        with self.assertRaises(DecodeError) as cm:
            self.sensor.get_spike_rejection()
        self.assertEqual(cm.exception.offset, 0x02)

    def test_unknown_enum_codes(self):
        with self.assertRaises(DecodeError):
            self.sensor.get_analog_front_end()
        with self.assertRaises(DecodeError):
            self.sensor.get_tuning_capacitance()

    def test_read_settings(self):
        with self.assertRaises(DecodeError):
            self.sensor.read_settings()

        # The raw dump is still available
        self.assertEqual(self.sensor.dump_registers(), self.registers)


class ConcurrencyTests(unittest.TestCase):
    def test_operations_are_serialized(self):
        targets = []

        def factory(device_path, address):
            target = SlowTarget(bytearray(reset_values()) + bytearray(0x3e - 9))
            targets.append(target)
            return target

        sensor = AS3935('/dev/i2c-1', 0x03, target_factory=factory)
        sensor.open()

        errors = []

        def worker(n):
            try:
                for _ in range(5):
                    sensor.set_watchdog_threshold(n)
                    sensor.set_spike_rejection(n)
                    sensor.dump_registers()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(targets[0].max_active, 1)

        # Each masked write is a read followed by its write, never interleaved
        tr = targets[0].transactions
        for i, (op, addr, _) in enumerate(tr):
            if op == 'W':
                self.assertEqual(tr[i - 1][:2], ('R', addr))

        sensor.close()


if __name__ == '__main__':
    unittest.main()
