"""Modal dialogs for as3935-tui."""

from .poll_interval import PollIntervalDialog

__all__ = [
    'PollIntervalDialog',
]
