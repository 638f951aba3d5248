from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING, Iterator

from irdeps.ir.basicblock import IRBasicBlock, IRLabel, IRVariable

if TYPE_CHECKING:
    from irdeps.ir.context import IRContext


class IRFunction:
    """
    A named list of basic blocks. Blocks are looked up by label and iterate
    in the order they were added; the first one is where execution starts.
    """

    name: IRLabel
    ctx: IRContext
    last_variable: int
    _blocks: dict[str, IRBasicBlock]

    def __init__(self, name: IRLabel, ctx: IRContext = None):
        self.name = name
        self.ctx = ctx  # type: ignore
        self.last_variable = 0
        self._blocks = {}

    @property
    def entry(self) -> IRBasicBlock:
        return next(iter(self._blocks.values()))

    def append_basic_block(self, bb: IRBasicBlock) -> None:
        assert isinstance(bb, IRBasicBlock), bb
        key = bb.label.name
        assert key not in self._blocks, f"block {bb.label} already exists in {self.name}"
        self._blocks[key] = bb

    def create_basic_block(self, label: str) -> IRBasicBlock:
        bb = IRBasicBlock(IRLabel(label), self)
        self.append_basic_block(bb)
        return bb

    def has_basic_block(self, label: str) -> bool:
        return label in self._blocks

    def get_basic_block(self, label: str) -> IRBasicBlock:
        return self._blocks[label]

    def get_basic_blocks(self) -> Iterator[IRBasicBlock]:
        return iter(self._blocks.values())

    @property
    def num_basic_blocks(self) -> int:
        return len(self._blocks)

    def get_next_variable(self) -> IRVariable:
        # numbered variables parsed from source bump `last_variable`,
        # so fresh names never collide with them
        self.last_variable += 1
        return IRVariable(str(self.last_variable))

    def __repr__(self) -> str:
        body = "\n".join(textwrap.indent(str(bb), "  ") for bb in self.get_basic_blocks())
        return f"function {self.name} {{\n{body.rstrip()}\n}}"
