from __future__ import annotations

def genmask(high: int, low: int):
    return ((1 << (high + 1)) - 1) & ~((1 << low) - 1)

def get_field_value(r_val: int, high: int, low: int):
    mask = genmask(high, low)
    return (r_val & mask) >> low

def apply_mask(r_val: int, value: int, mask: int):
    # value is already shifted into the field position
    return ((r_val & ~mask) | (value & mask)) & 0xff

def format_bank(bank: bytes | bytearray, highlight: int | None = None) -> str:
    parts = []
    for offset, value in enumerate(bank):
        if offset == highlight:
            parts.append(f'[{value:08b}]')
        else:
            parts.append(f' {value:08b} ')
    return ' '.join(parts)
