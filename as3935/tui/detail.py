"""Right-pane detail/display widgets for as3935-tui."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Static

from as3935.driver import DISTANCE_OUT_OF_RANGE, decode_distance, decode_strike_energy
from as3935.helpers import get_field_value
from as3935.registers import REG_DISTANCE, REG_ENERGY_L, REG_ENERGY_M, REG_ENERGY_MM, Field, Register

from .state import AppState
from .types import FIELD_COLORS, ValueFormat, format_value


def _field_map(reg: Register) -> dict[int, tuple[Field, int]]:
    field_map: dict[int, tuple[Field, int]] = {}
    for i, field in enumerate(reg.fields):
        color_idx = i % len(FIELD_COLORS)
        for bit in range(field.low, field.high + 1):
            field_map[bit] = (field, color_idx)
    return field_map


def render_bits(reg: Register, value: int | None, highlight: Field | None = None) -> list[str]:
    """Bit diagram for an 8-bit register, MSB first, with field labels."""
    field_map = _field_map(reg)
    lines = []

    hdr = ''
    for bit in range(7, -1, -1):
        hdr += f'{bit:>4}'
    lines.append(f'[dim]{hdr}[/dim]')

    vals = ''
    for bit in range(7, -1, -1):
        bv = (value >> bit) & 1 if value is not None else '-'
        if bit in field_map:
            fld, cidx = field_map[bit]
            if highlight is not None and fld is not highlight:
                vals += f'[dim]{bv:>4}[/dim]'
            else:
                color = FIELD_COLORS[cidx]
                vals += f'[{color}]{bv:>4}[/{color}]'
        else:
            vals += f'[dim]{bv:>4}[/dim]'
    lines.append(vals)

    labels = ''
    bit = 7
    while bit >= 0:
        if bit not in field_map:
            labels += '    '
            bit -= 1
            continue

        fld, cidx = field_map[bit]
        span_low = fld.low
        char_width = (bit - span_low + 1) * 4
        name = fld.name
        if len(name) > char_width:
            name = name[: char_width - 1] + '~'
        if highlight is not None and fld is not highlight:
            labels += f'[dim]{name:^{char_width}}[/dim]'
        else:
            color = FIELD_COLORS[cidx]
            labels += f'[{color}]{name:^{char_width}}[/{color}]'
        bit = span_low - 1
    lines.append(labels)

    return lines


class RegisterDetailWidget(Static):
    """Bit diagram and field table for a register."""

    def __init__(self) -> None:
        super().__init__('', id='register-detail')

    def set_register(self, reg: Register, value: int | None, error: str | None,
                     fmt: ValueFormat) -> None:
        lines = [f'[bold]{reg.name}[/bold] @ 0x{reg.offset:02X}']
        if reg.description:
            lines.append(f'[dim]{reg.description}[/dim]')

        if error:
            lines.append(f'[red]Read error: {escape(error)}[/red]')
        elif value is None:
            lines.append('[dim]No value read yet[/dim]')

        lines.append('')
        lines.extend(render_bits(reg, value))
        lines.append('')

        name_w = max(len('Name'), *(len(f.name) for f in reg.fields))
        hdr = f'{"Name":<{name_w}}  {"Bits":>5}  Value'
        lines.append(f'[bold]{hdr}[/bold]')
        lines.append('─' * len(hdr))

        for i, field in enumerate(reg.fields):
            bits_str = f'{field.high}:{field.low}'
            if value is not None:
                fv = get_field_value(value, field.high, field.low)
                val_str = format_value(fv, fmt, field.width)
            else:
                val_str = '-'
            color = FIELD_COLORS[i % len(FIELD_COLORS)]
            lines.append(f'[{color}]{field.name:<{name_w}}[/{color}]  {bits_str:>5}  {val_str}')

        self.update('\n'.join(lines))


class FieldDetailWidget(Static):
    """Detail view for a selected field: highlighted bit diagram + multi-format value."""

    def __init__(self) -> None:
        super().__init__('', id='field-detail')

    def set_field(self, reg: Register, field: Field, value: int | None, error: str | None) -> None:
        lines = [f'[bold]{field.name}[/bold] [{field.high}:{field.low}]  in {reg.name} @ 0x{reg.offset:02X}']

        if error:
            lines.append(f'[red]Read error: {escape(error)}[/red]')
        elif value is None:
            lines.append('[dim]No value read yet[/dim]')

        lines.append('')
        lines.extend(render_bits(reg, value, highlight=field))
        lines.append('')

        lines.append('─' * 40)
        if value is not None:
            fv = get_field_value(value, field.high, field.low)
            lines.append(f'Hex: {format_value(fv, ValueFormat.HEX, field.width)}')
            lines.append(f'Dec: {format_value(fv, ValueFormat.DEC, field.width)}')
            lines.append(f'Bin: {format_value(fv, ValueFormat.BIN, field.width)}')
        else:
            lines.append('[dim]No value read yet[/dim]')

        if field.description:
            lines.append('')
            lines.append(f'[dim]{field.description}[/dim]')

        self.update('\n'.join(lines))


class RootDetailWidget(Static):
    """Detail view for root node: target info and decoded settings."""

    def __init__(self) -> None:
        super().__init__('', id='root-detail')

    def set_root(self, state: AppState) -> None:
        lines: list[str] = []

        lines.append('[bold]Target[/bold]')
        lines.append(f'  {state.target_str}')
        if state.polling:
            lines.append(f'  Polling every {state.poll_interval}s')
        else:
            lines.append('  Polling off')
        if state.error:
            lines.append(f'  [red]{escape(state.error)}[/red]')

        lines.append('')
        lines.append('[bold]Settings[/bold]')

        s = state.settings
        if s is not None:
            lines.append(f'  Power:              {"down" if s.powered_down else "up"}')
            lines.append(f'  Analog front-end:   {s.analog_front_end.name.lower()}')
            lines.append(f'  Noise floor level:  {s.noise_floor_level.level}')
            lines.append(f'  Watchdog threshold: {s.watchdog_threshold}')
            lines.append(f'  Spike rejection:    {s.spike_rejection}')
            lines.append(f'  Min. lightning:     {s.min_num_lightning.strikes}')
            lines.append(f'  Disturber masked:   {"yes" if s.disturber_masked else "no"}')
            lines.append(f'  LCO division:       {s.lco_division.ratio}')
            lines.append(f'  IRQ output source:  {s.irq_output_source.name}')
            lines.append(f'  Tuning capacitance: {s.tuning_capacitance.picofarads} pF')
        elif state.settings_error:
            lines.append(f'  [red]{escape(state.settings_error)}[/red]')
        else:
            lines.append('  [dim]Press \\[r] to read the registers[/dim]')

        regs = state.reg_values
        if all(regs[o] is not None for o in (REG_ENERGY_L, REG_ENERGY_M, REG_ENERGY_MM, REG_DISTANCE)):
            lines.append('')
            lines.append('[bold]Last Lightning[/bold]')
            km = decode_distance(regs[REG_DISTANCE])
            if km == DISTANCE_OUT_OF_RANGE:
                lines.append('  Distance: out of range')
            else:
                lines.append(f'  Distance: {km} km')
            energy = decode_strike_energy(regs[REG_ENERGY_L], regs[REG_ENERGY_M], regs[REG_ENERGY_MM])
            lines.append(f'  Energy:   {energy}')

        self.update('\n'.join(lines))


class DetailPanel(VerticalScroll):
    """Right pane: switches between register, field and root detail views."""

    def compose(self) -> ComposeResult:
        yield RegisterDetailWidget()
        yield FieldDetailWidget()
        yield RootDetailWidget()

    def on_mount(self) -> None:
        self._show_only(RootDetailWidget)

    def _show_only(self, widget_type: type) -> None:
        for vt in (RegisterDetailWidget, FieldDetailWidget, RootDetailWidget):
            self.query_one(vt).display = vt == widget_type

    def set_register(self, reg: Register, value: int | None, error: str | None,
                     fmt: ValueFormat) -> None:
        self._show_only(RegisterDetailWidget)
        self.query_one(RegisterDetailWidget).set_register(reg, value, error, fmt)

    def set_field(self, reg: Register, field: Field, value: int | None, error: str | None) -> None:
        self._show_only(FieldDetailWidget)
        self.query_one(FieldDetailWidget).set_field(reg, field, value, error)

    def set_root(self, state: AppState) -> None:
        self._show_only(RootDetailWidget)
        self.query_one(RootDetailWidget).set_root(state)
