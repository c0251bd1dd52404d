"""Left-pane register tree widget for as3935-tui."""

from __future__ import annotations

from textual.message import Message
from textual.widgets import Tree
from textual.widgets._tree import TreeNode

from as3935.helpers import get_field_value
from as3935.registers import REGISTERS, Field, Register

from .state import AppState
from .types import FieldNodeData, RegisterNodeData, format_value


class RegisterTree(Tree):
    """Left pane: register/field tree."""

    class RegisterSelected(Message):
        def __init__(self, reg: Register) -> None:
            super().__init__()
            self.reg = reg

    class FieldSelected(Message):
        def __init__(self, reg: Register, field: Field) -> None:
            super().__init__()
            self.reg = reg
            self.field = field

    class NothingSelected(Message):
        pass

    def __init__(self) -> None:
        super().__init__('AS3935', id='reg-tree')
        self._reg_nodes: dict[int, TreeNode] = {}
        self._field_nodes: dict[tuple[int, str], TreeNode] = {}

    def _make_reg_label(self, reg: Register, state: AppState) -> str:
        label = f'{reg.name} @ 0x{reg.offset:02X}'
        val = state.reg_values[reg.offset]
        if state.error:
            label += ' [red]ERR[/red]'
        elif val is not None:
            label += f' = {format_value(val, state.value_format, 8)}'
        return label

    def _make_field_label(self, reg: Register, field: Field, state: AppState) -> str:
        label = f'{field.name} [{field.high}:{field.low}]'
        val = state.reg_values[reg.offset]
        if val is not None:
            fv = get_field_value(val, field.high, field.low)
            label += f' = {format_value(fv, state.value_format, field.width)}'
        return label

    def _make_root_label(self, state: AppState) -> str:
        root_label = state.target_str or 'AS3935'
        if state.polling:
            root_label += ' [yellow]●[/yellow]'
        return root_label

    def rebuild(self, state: AppState) -> None:
        self.clear()
        self._reg_nodes.clear()
        self._field_nodes.clear()

        self.root.set_label(self._make_root_label(state))

        for reg in REGISTERS:
            reg_node = self.root.add(self._make_reg_label(reg, state), data=RegisterNodeData(reg))
            self._reg_nodes[reg.offset] = reg_node
            for field in reg.fields:
                fnode = reg_node.add_leaf(self._make_field_label(reg, field, state),
                                          data=FieldNodeData(reg, field))
                self._field_nodes[(reg.offset, field.name)] = fnode
            # Fields collapsed by default

        self.root.expand()

    def update_values(self, state: AppState, changed: set[int] | None = None) -> None:
        """Update labels in-place for value changes."""
        for reg in REGISTERS:
            if changed is not None and reg.offset not in changed:
                continue
            node = self._reg_nodes.get(reg.offset)
            if node is None:
                continue
            node.set_label(self._make_reg_label(reg, state))
            for field in reg.fields:
                fnode = self._field_nodes.get((reg.offset, field.name))
                if fnode is not None:
                    fnode.set_label(self._make_field_label(reg, field, state))

    def update_root_label(self, state: AppState) -> None:
        self.root.set_label(self._make_root_label(state))

    def highlight_changed(self, changed: set[int]) -> None:
        """Briefly highlight changed register nodes with yellow background."""
        for offset in changed:
            node = self._reg_nodes.get(offset)
            if node is None:
                continue

            original = node.label
            node.set_label(f'[on dark_goldenrod]{original}[/on dark_goldenrod]')

            def _revert(n=node, lbl=original):
                n.set_label(lbl)

            self.set_timer(1.5, _revert)

    def on_tree_node_highlighted(self, event: Tree.NodeHighlighted) -> None:
        data = event.node.data
        if isinstance(data, RegisterNodeData):
            self.post_message(self.RegisterSelected(data.reg))
        elif isinstance(data, FieldNodeData):
            self.post_message(self.FieldSelected(data.reg, data.field))
        else:
            self.post_message(self.NothingSelected())
