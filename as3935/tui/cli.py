"""Command-line interface for as3935-tui."""

from __future__ import annotations

import argparse
import sys


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='as3935-tui',
        description='Live register monitor for the AS3935 lightning sensor',
    )
    parser.add_argument('--burst-read', action='store_true',
                        help='Read registers by fetching the whole bank from address 0')

    subparsers = parser.add_subparsers(dest='mode', required=True)

    i2c_parser = subparsers.add_parser('i2c', help='I2C target')
    i2c_parser.add_argument(
        'device_addr', metavar='device:addr',
        help='I2C device node and address (e.g. /dev/i2c-1:0x03)'
    )

    image_parser = subparsers.add_parser('image', help='Register image file')
    image_parser.add_argument('file', help='Register image created with "as3935 init-image"')

    return parser.parse_args(argv)


def parse_i2c_device_addr(device_addr: str) -> tuple[str, int]:
    device, sep, addr_str = device_addr.rpartition(':')
    if not sep or not device:
        print(f'Error: invalid I2C device:addr format: {device_addr!r}', file=sys.stderr)
        sys.exit(1)
    try:
        addr = int(addr_str, 0)
    except ValueError:
        print(f'Error: invalid I2C address: {device_addr!r}', file=sys.stderr)
        sys.exit(1)
    return device, addr


def main(argv: list[str] | None = None):
    args = parse_args(argv)

    from .app import AS3935TuiApp

    if args.mode == 'image':
        app = AS3935TuiApp(
            target_mode='image',
            image=args.file,
            burst_read=args.burst_read,
        )
    elif args.mode == 'i2c':
        device, addr = parse_i2c_device_addr(args.device_addr)
        app = AS3935TuiApp(
            target_mode='i2c',
            device=device,
            address=addr,
            burst_read=args.burst_read,
        )
    else:
        print(f'Error: unknown mode {args.mode!r}', file=sys.stderr)
        sys.exit(1)

    app.run()
