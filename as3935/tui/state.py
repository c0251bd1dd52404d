"""Runtime state for as3935-tui."""

from __future__ import annotations

from as3935.driver import Settings
from as3935.registers import NUM_REGISTERS

from .types import ValueFormat

# Default poll intervals per target type (seconds). 0 means disabled.
DEFAULT_POLL_INTERVALS = {
    'image': 0.1,
    'i2c': 1.0,
}


class AppState:
    """Application-level state."""

    def __init__(self, target_mode: str) -> None:
        self.target_str: str = ''
        self.error: str | None = None
        self.reg_values: list[int | None] = [None] * NUM_REGISTERS
        self.settings: Settings | None = None
        self.settings_error: str | None = None
        self.value_format: ValueFormat = ValueFormat.HEX
        self.polling: bool = False
        self.poll_interval: float = DEFAULT_POLL_INTERVALS.get(target_mode, 1.0)

    def update(self, regs: bytes) -> set[int]:
        """Store a register dump, returning the offsets whose value changed."""
        changed = {offset for offset, value in enumerate(regs) if self.reg_values[offset] != value}
        self.reg_values = list(regs)
        self.error = None
        return changed

    @property
    def has_values(self) -> bool:
        return any(v is not None for v in self.reg_values)
