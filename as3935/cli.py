"""Command-line interface for the AS3935 driver."""

from __future__ import annotations

import argparse
import logging
import sys

import tabulate

from .driver import AS3935, DISTANCE_OUT_OF_RANGE, Settings
from .enums import AnalogFrontEnd, InterruptType, IRQOutputSource, NoiseFloorLevel, TuningCapacitance
from .errors import AS3935Error
from .mmaptarget import create_register_image, image_factory
from .registers import REGISTERS

tabulate.PRESERVE_WHITESPACE = True

DEFAULT_DEVICE = '/dev/i2c-1'
DEFAULT_ADDRESS = 0x03

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='as3935',
        description='Configure and read an AS3935 lightning sensor',
    )
    parser.add_argument('-d', '--device', default=DEFAULT_DEVICE,
                        help=f'I2C device node (default: {DEFAULT_DEVICE})')
    parser.add_argument('-a', '--address', type=lambda s: int(s, 0), default=DEFAULT_ADDRESS,
                        help=f'I2C device address (default: {DEFAULT_ADDRESS:#04x})')
    parser.add_argument('--image', metavar='PATH',
                        help='Use a register image file instead of an I2C device')
    parser.add_argument('--burst-read', action='store_true',
                        help='Read registers by fetching the whole bank from address 0')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase log verbosity (-vvv traces register transactions)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('dump', help='Dump registers 0x00-0x08')
    subparsers.add_parser('status', help='Show decoded settings')
    subparsers.add_parser('defaults', help='Reset registers to factory defaults')
    subparsers.add_parser('event', help='Show the interrupt source and lightning data')

    p = subparsers.add_parser('power', help='Power the sensor up (with calibration) or down')
    p.add_argument('state', choices=['on', 'off'])

    p = subparsers.add_parser('disturber', help='Enable or disable disturber masking')
    p.add_argument('state', choices=['on', 'off'])

    p = subparsers.add_parser('afe', help='Select the analog front-end profile')
    p.add_argument('model', choices=['indoor', 'outdoor'])

    p = subparsers.add_parser('noise-floor', help='Get or set the noise floor level (0-7)')
    p.add_argument('level', type=int, nargs='?')

    p = subparsers.add_parser('watchdog', help='Get or set the watchdog threshold (0-10)')
    p.add_argument('threshold', type=int, nargs='?')

    p = subparsers.add_parser('spike-rejection', help='Get or set the spike rejection (0-11)')
    p.add_argument('rejection', type=int, nargs='?')

    p = subparsers.add_parser('irq-source', help='Select the signal shown on the IRQ pin')
    p.add_argument('source', choices=[s.name.lower() for s in IRQOutputSource])

    p = subparsers.add_parser('tuning-cap', help='Select the antenna tuning capacitance')
    p.add_argument('capacitance', choices=[c.name.lower() for c in TuningCapacitance])

    p = subparsers.add_parser('init-image', help='Create a register image with reset values')
    p.add_argument('path')

    return parser.parse_args(argv)


def setup_logging(verbose: int):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    if verbose < 3:
        # The transaction trace is very chatty, only show it at -vvv
        logging.getLogger('as3935.bus.trace').setLevel(logging.INFO)


def create_sensor(args: argparse.Namespace) -> AS3935:
    if args.image:
        return AS3935(args.image, 0, target_factory=image_factory, burst_read=args.burst_read)
    return AS3935(args.device, args.address, burst_read=args.burst_read)


def format_registers(regs: bytes) -> str:
    table = []
    for reg, value in zip(REGISTERS, regs):
        table.append((f'0x{reg.offset:02x}', reg.name, f'0x{value:02x}',
                      f'{value >> 4:04b}_{value & 0x0f:04b}'))

    return tabulate.tabulate(table, ['Offset', 'Register', 'Hex', 'Binary'],
                             colalign=('right', 'left', 'right', 'right'), disable_numparse=True)


def format_settings(settings: Settings) -> str:
    table = [
        ('Power', 'down' if settings.powered_down else 'up'),
        ('Analog front-end', settings.analog_front_end.name.lower()),
        ('Noise floor level', settings.noise_floor_level.level),
        ('Watchdog threshold', settings.watchdog_threshold),
        ('Spike rejection', settings.spike_rejection),
        ('Min. number of lightning', settings.min_num_lightning.strikes),
        ('Disturber masked', 'yes' if settings.disturber_masked else 'no'),
        ('LCO division', settings.lco_division.ratio),
        ('IRQ output source', settings.irq_output_source.name),
        ('Tuning capacitance', f'{settings.tuning_capacitance.picofarads} pF'),
    ]
    return tabulate.tabulate(table, ['Setting', 'Value'], colalign=('left', 'right'))


def format_distance(km: int) -> str:
    if km == DISTANCE_OUT_OF_RANGE:
        return 'out of range'
    if km == 0:
        return 'storm overhead'
    return f'{km} km'


def run_command(sensor: AS3935, args: argparse.Namespace):
    cmd = args.command

    if cmd == 'dump':
        print(format_registers(sensor.dump_registers()))
    elif cmd == 'status':
        print(format_settings(sensor.read_settings()))
    elif cmd == 'defaults':
        sensor.initialize_defaults()
    elif cmd == 'power':
        sensor.power_switch(args.state == 'on')
    elif cmd == 'disturber':
        if args.state == 'on':
            sensor.enable_disturber()
        else:
            sensor.disable_disturber()
    elif cmd == 'afe':
        sensor.set_analog_front_end(AnalogFrontEnd[args.model.upper()])
    elif cmd == 'noise-floor':
        if args.level is None:
            print(sensor.get_noise_floor_level().level)
        else:
            sensor.set_noise_floor_level(NoiseFloorLevel.from_level(args.level))
    elif cmd == 'watchdog':
        if args.threshold is None:
            print(sensor.get_watchdog_threshold())
        else:
            sensor.set_watchdog_threshold(args.threshold)
    elif cmd == 'spike-rejection':
        if args.rejection is None:
            print(sensor.get_spike_rejection())
        else:
            sensor.set_spike_rejection(args.rejection)
    elif cmd == 'irq-source':
        sensor.set_irq_output_source(IRQOutputSource[args.source.upper()])
    elif cmd == 'tuning-cap':
        sensor.set_tuning_capacitance(TuningCapacitance[args.capacitance.upper()])
    elif cmd == 'event':
        source = sensor.get_interrupt_source()
        print(f'Interrupt: {source.name}')
        if source == InterruptType.LIGHTNING:
            print(f'Distance:  {format_distance(sensor.get_lightning_distance_km())}')
            print(f'Energy:    {sensor.get_strike_energy()}')
    else:
        raise NotImplementedError(cmd)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.command == 'init-image':
        try:
            create_register_image(args.path)
        except OSError as e:
            print(f'as3935: {e}', file=sys.stderr)
            return 1
        return 0

    try:
        with create_sensor(args) as sensor:
            run_command(sensor, args)
    except AS3935Error as e:
        print(f'as3935: {e}', file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
