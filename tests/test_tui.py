"""Tests for as3935-tui."""

from __future__ import annotations

import contextlib
import io
import os
import shutil
import tempfile
import unittest

import pytest

from as3935.mmaptarget import create_register_image
from as3935.registers import reset_values


@contextlib.contextmanager
def _register_image(registers: bytes | None = None):
    tmpdir = tempfile.mkdtemp()
    path = os.path.join(tmpdir, 'as3935.img')
    create_register_image(path, registers)
    try:
        yield path
    finally:
        shutil.rmtree(tmpdir)


class CliTests(unittest.TestCase):
    def test_parse_args_image(self):
        from as3935.tui.cli import parse_args

        args = parse_args(['image', 'regs.img'])
        self.assertEqual(args.mode, 'image')
        self.assertEqual(args.file, 'regs.img')
        self.assertFalse(args.burst_read)

    def test_parse_args_i2c(self):
        from as3935.tui.cli import parse_args

        args = parse_args(['--burst-read', 'i2c', '/dev/i2c-1:0x03'])
        self.assertEqual(args.mode, 'i2c')
        self.assertEqual(args.device_addr, '/dev/i2c-1:0x03')
        self.assertTrue(args.burst_read)

    def test_parse_i2c_device_addr(self):
        from as3935.tui.cli import parse_i2c_device_addr

        self.assertEqual(parse_i2c_device_addr('/dev/i2c-1:0x03'), ('/dev/i2c-1', 3))
        self.assertEqual(parse_i2c_device_addr('/dev/i2c-1:2'), ('/dev/i2c-1', 2))

    def test_parse_i2c_device_addr_invalid(self):
        from as3935.tui.cli import parse_i2c_device_addr

        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_i2c_device_addr('/dev/i2c-1')
            with self.assertRaises(SystemExit):
                parse_i2c_device_addr('/dev/i2c-1:zz')


class AppStateTests(unittest.TestCase):
    def test_format_value_hex(self):
        from as3935.tui.types import ValueFormat, format_value

        self.assertEqual(format_value(0x24, ValueFormat.HEX, 8), '0x24')
        self.assertEqual(format_value(0x2, ValueFormat.HEX, 3), '0x2')

    def test_format_value_dec(self):
        from as3935.tui.types import ValueFormat, format_value

        self.assertEqual(format_value(0x24, ValueFormat.DEC, 8), '36')

    def test_format_value_bin(self):
        from as3935.tui.types import ValueFormat, format_value

        self.assertEqual(format_value(0x2, ValueFormat.BIN, 3), '0b010')

    def test_update(self):
        from as3935.tui.state import AppState

        state = AppState('image')
        self.assertFalse(state.has_values)
        self.assertEqual(state.poll_interval, 0.1)

        state.error = 'stale'
        self.assertEqual(state.update(reset_values()), set(range(9)))
        self.assertIsNone(state.error)
        self.assertTrue(state.has_values)

        regs = bytearray(reset_values())
        regs[0x03] = 0x08
        self.assertEqual(state.update(bytes(regs)), {0x03})
        self.assertEqual(state.update(bytes(regs)), set())

    def test_parse_interval(self):
        from as3935.tui.dialogs.poll_interval import parse_interval

        self.assertEqual(parse_interval(' 0.5 '), 0.5)
        self.assertEqual(parse_interval('0'), 0)
        for text in ('', '-1', '0.01', 'abc'):
            with self.assertRaises(ValueError):
                parse_interval(text)


class RenderBitsTests(unittest.TestCase):
    def test_render_bits(self):
        from as3935.registers import get_register
        from as3935.tui.detail import render_bits

        lines = render_bits(get_register(0x01), 0x22)
        self.assertEqual(len(lines), 3)
        self.assertIn('NF_LEV', lines[2])
        self.assertIn('WDTH', lines[2])

    def test_render_bits_no_value(self):
        from as3935.registers import get_register
        from as3935.tui.detail import render_bits

        lines = render_bits(get_register(0x00), None)
        self.assertIn('-', lines[1])


@pytest.mark.asyncio
async def test_app_starts_with_image():
    from as3935.tui.app import AS3935TuiApp

    with _register_image() as path:
        app = AS3935TuiApp(target_mode='image', image=path)
        async with app.run_test() as _pilot:
            tree = app.query_one('#reg-tree')
            assert tree is not None
            assert app.sensor.is_open
            assert app.state.error is None
            assert app.state.reg_values == list(reset_values())
            assert app.state.settings is not None
            assert app.state.settings.watchdog_threshold == 2

        assert not app.sensor.is_open


@pytest.mark.asyncio
async def test_app_reports_decode_errors():
    from as3935.tui.app import AS3935TuiApp

    with _register_image(bytes([0x00, 0x2c])) as path:
        app = AS3935TuiApp(target_mode='image', image=path)
        async with app.run_test() as _pilot:
            assert app.state.settings is None
            assert app.state.settings_error is not None
            assert app.state.reg_values[0x01] == 0x2c


@pytest.mark.asyncio
async def test_app_missing_image():
    from as3935.tui.app import AS3935TuiApp

    app = AS3935TuiApp(target_mode='image', image='/nonexistent/as3935.img')
    async with app.run_test() as pilot:
        assert not app.sensor.is_open
        assert app.state.error is not None
        assert not app.state.has_values

        await pilot.press('r')
        assert not app.state.has_values


@pytest.mark.asyncio
async def test_read_picks_up_changes():
    from as3935.tui.app import AS3935TuiApp

    with _register_image() as path:
        app = AS3935TuiApp(target_mode='image', image=path)
        async with app.run_test() as pilot:
            with open(path, 'r+b') as f:
                f.seek(0x07)
                f.write(b'\x0e')

            await pilot.press('r')
            assert app.state.reg_values[0x07] == 0x0e


@pytest.mark.asyncio
async def test_format_cycling():
    from as3935.tui.app import AS3935TuiApp
    from as3935.tui.types import ValueFormat

    with _register_image() as path:
        app = AS3935TuiApp(target_mode='image', image=path)
        async with app.run_test() as pilot:
            assert app.state.value_format == ValueFormat.HEX
            await pilot.press('f')
            assert app.state.value_format == ValueFormat.DEC
            await pilot.press('f')
            assert app.state.value_format == ValueFormat.BIN
            await pilot.press('f')
            assert app.state.value_format == ValueFormat.HEX


@pytest.mark.asyncio
async def test_poll_toggle():
    from as3935.tui.app import AS3935TuiApp

    with _register_image() as path:
        app = AS3935TuiApp(target_mode='image', image=path)
        async with app.run_test() as pilot:
            assert not app.state.polling
            await pilot.press('p')
            assert app.state.polling
            assert app._poll_timer is not None
            await pilot.press('p')
            assert not app.state.polling
            assert app._poll_timer is None


@pytest.mark.asyncio
async def test_unknown_target_mode():
    from as3935.tui.app import AS3935TuiApp

    with pytest.raises(ValueError):
        AS3935TuiApp(target_mode='spi')


if __name__ == '__main__':
    unittest.main()
