"""as3935-tui: Live register monitor for the AS3935."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.timer import Timer
from textual.widgets import Footer, Header

from as3935.driver import AS3935, Settings
from as3935.errors import AS3935Error, DecodeError
from as3935.mmaptarget import image_factory
from as3935.registers import Field, Register

from .detail import DetailPanel
from .dialogs import PollIntervalDialog
from .state import AppState
from .tree import RegisterTree
from .types import ValueFormat

logger = logging.getLogger(__name__)


class AS3935TuiApp(App):
    """Live register monitor for the AS3935."""

    CSS = """
    #main-container {
        height: 1fr;
    }
    #reg-tree {
        width: 1fr;
        min-width: 30;
        max-width: 50%;
        border-right: solid $accent;
    }
    #detail-panel {
        width: 2fr;
    }
    #register-detail {
        padding: 1;
    }
    #field-detail {
        padding: 1;
    }
    #root-detail {
        padding: 1;
    }
    """

    BINDINGS = [
        Binding('r', 'read', 'Read', show=True),
        Binding('p', 'poll', 'Poll', show=True),
        Binding('P', 'poll_interval', 'Poll Interval', show=True),
        Binding('f', 'format', 'Format', show=True),
        Binding('q', 'quit', 'Quit', show=True),
    ]

    TITLE = 'as3935-tui'

    def __init__(
        self,
        target_mode: str,
        device: str | None = None,
        address: int | None = None,
        image: str | None = None,
        burst_read: bool = False,
    ) -> None:
        super().__init__()
        self.target_mode = target_mode

        self.state = AppState(target_mode)

        if target_mode == 'image':
            assert image is not None
            self.state.target_str = f'image:{image}'
            self.sensor = AS3935(image, 0, target_factory=image_factory, burst_read=burst_read)
        elif target_mode == 'i2c':
            assert device is not None
            assert address is not None
            self.state.target_str = f'i2c:{device}:0x{address:02X}'
            self.sensor = AS3935(device, address, burst_read=burst_read)
        else:
            raise ValueError(f'unknown target mode {target_mode!r}')

        self._selected_reg: Register | None = None
        self._selected_field: Field | None = None
        self._poll_timer: Timer | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id='main-container'):
            yield RegisterTree()
            yield DetailPanel(id='detail-panel')
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = self.state.target_str

        try:
            self.sensor.open()
        except AS3935Error as e:
            self.state.error = str(e)
            self.notify(f'Failed to open sensor: {e}', severity='error')
        else:
            self._read_registers()

        self.query_one(RegisterTree).rebuild(self.state)
        self._refresh_detail()

    def on_unmount(self) -> None:
        self._stop_poll_timer()
        if self.sensor.is_open:
            try:
                self.sensor.close()
            except AS3935Error as e:
                logger.warning('closing sensor failed: %s', e)

    def _read_registers(self) -> set[int]:
        """Dump the register bank into the state. Returns the changed offsets."""
        try:
            regs = self.sensor.dump_registers()
        except AS3935Error as e:
            self.state.error = str(e)
            return set()

        changed = self.state.update(regs)

        try:
            self.state.settings = Settings.from_registers(regs)
            self.state.settings_error = None
        except DecodeError as e:
            self.state.settings = None
            self.state.settings_error = str(e)

        return changed

    def _refresh_detail(self) -> None:
        panel = self.query_one(DetailPanel)
        if self._selected_field and self._selected_reg:
            reg = self._selected_reg
            panel.set_field(reg, self._selected_field, self.state.reg_values[reg.offset], self.state.error)
        elif self._selected_reg:
            reg = self._selected_reg
            panel.set_register(reg, self.state.reg_values[reg.offset], self.state.error,
                               self.state.value_format)
        else:
            panel.set_root(self.state)

    # --- Event handlers ---

    def on_register_tree_register_selected(self, event: RegisterTree.RegisterSelected) -> None:
        self._selected_reg = event.reg
        self._selected_field = None
        self._refresh_detail()

    def on_register_tree_field_selected(self, event: RegisterTree.FieldSelected) -> None:
        self._selected_reg = event.reg
        self._selected_field = event.field
        self._refresh_detail()

    def on_register_tree_nothing_selected(self, event: RegisterTree.NothingSelected) -> None:
        self._selected_reg = None
        self._selected_field = None
        self._refresh_detail()

    # --- Actions ---

    def action_read(self) -> None:
        if not self.sensor.is_open:
            self.notify('Sensor is not connected', severity='error')
            return

        changed = self._read_registers()
        if self.state.error:
            self.notify(f'Read failed: {self.state.error}', severity='error')
        self.query_one(RegisterTree).update_values(self.state, changed)
        self._refresh_detail()

    def action_poll(self) -> None:
        self.state.polling = not self.state.polling
        if self.state.polling:
            self.notify('Polling registers')
        else:
            self.notify('Stopped polling')
        self._ensure_poll_timer()
        self.query_one(RegisterTree).update_root_label(self.state)
        self._refresh_detail()

    def action_poll_interval(self) -> None:
        self.push_screen(
            PollIntervalDialog(self.state.poll_interval),
            callback=self._on_poll_interval_result,
        )

    def _on_poll_interval_result(self, result: float | None) -> None:
        if result is None:
            return
        self.state.poll_interval = result
        self._restart_poll_timer()
        if result > 0:
            self.notify(f'Poll interval: {result}s')
        else:
            self.notify('Polling disabled')

    def action_format(self) -> None:
        if self.state.value_format == ValueFormat.HEX:
            self.state.value_format = ValueFormat.DEC
        elif self.state.value_format == ValueFormat.DEC:
            self.state.value_format = ValueFormat.BIN
        else:
            self.state.value_format = ValueFormat.HEX
        self.notify(f'Format: {self.state.value_format.value}')
        self.query_one(RegisterTree).update_values(self.state)
        self._refresh_detail()

    # --- Polling ---

    def _ensure_poll_timer(self) -> None:
        """Start the poll timer if needed, or stop it if polling is off."""
        if self.state.poll_interval > 0 and self.state.polling and self.sensor.is_open:
            if self._poll_timer is None:
                self._poll_timer = self.set_interval(self.state.poll_interval, self._poll)
        else:
            self._stop_poll_timer()

    def _restart_poll_timer(self) -> None:
        self._stop_poll_timer()
        self._ensure_poll_timer()

    def _stop_poll_timer(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.stop()
            self._poll_timer = None

    def _poll(self) -> None:
        changed = self._read_registers()
        if changed:
            tree = self.query_one(RegisterTree)
            tree.update_values(self.state, changed)
            tree.highlight_changed(changed)
            self._refresh_detail()
