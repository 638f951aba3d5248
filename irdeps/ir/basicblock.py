from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Iterator, Optional, Union

import irdeps.ir.effects as effects

if TYPE_CHECKING:
    from irdeps.ir.function import IRFunction

# control moves to one of the labels among the operands
BRANCH_INSTRUCTIONS = frozenset(["jmp", "djmp", "jnz", "switch"])

# control leaves the function and reaches EXIT
RETURN_INSTRUCTIONS = frozenset(["ret", "return", "stop", "sink"])

# control never leaves the block
UNREACHABLE_INSTRUCTIONS = frozenset(["revert", "invalid", "unreachable"])

BB_TERMINATORS = BRANCH_INSTRUCTIONS | RETURN_INSTRUCTIONS | UNREACHABLE_INSTRUCTIONS

# opcodes that `append_instruction` does not allocate a fresh variable for
NO_OUTPUT_INSTRUCTIONS = BB_TERMINATORS | frozenset(
    [
        "mstore",
        "sstore",
        "istore",
        "tstore",
        "mcopy",
        "calldatacopy",
        "codecopy",
        "extcodecopy",
        "returndatacopy",
        "dloadbytes",
        "assert",
        "assert_unreachable",
        "selfdestruct",
        "log",
        "nop",
    ]
)

# opcodes whose operands are written in source order. everything else is
# written with the rightmost (top of stack) operand first.
UNREVERSED_INSTRUCTIONS = frozenset(["jmp", "jnz", "djmp", "switch", "phi"])


class IROperand:
    """
    Base class for instruction operands. Operands compare by type and value,
    so two separately constructed `IRVariable("%x")` are interchangeable.
    """

    value: Any
    _hash: Optional[int] = None

    def __init__(self, value: Any) -> None:
        self.value = value
        self._hash = None

    @property
    def name(self) -> str:
        return self.value

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(self.value)
        return self._hash

    def __eq__(self, other) -> bool:
        return isinstance(other, type(self)) and self.value == other.value

    def __repr__(self) -> str:
        return str(self.value)


class IRLiteral(IROperand):
    """An integer constant."""

    value: int

    def __init__(self, value: int) -> None:
        assert isinstance(value, int), f"literal must be an int, got {value!r}"
        super().__init__(value)

    def __repr__(self) -> str:
        # small constants read better in decimal
        if -1024 < self.value < 1024:
            return str(self.value)
        return f"0x{self.value:x}"


class IRVariable(IROperand):
    """A named value. The name is normalized to carry a leading `%`."""

    def __init__(self, name: str) -> None:
        assert isinstance(name, str), f"variable name must be a str, got {name!r}"
        super().__init__(name if name.startswith("%") else "%" + name)


class IRLabel(IROperand):
    """
    Names a basic block (or a function). Instructions refer to it as
    `@label`; labels that are not plain identifiers print JSON-quoted.
    """

    value: str

    _PLAIN = re.compile("[0-9a-zA-Z_]*")

    def __init__(self, value: str) -> None:
        assert isinstance(value, str) and value != "", f"bad label: {value!r}"
        super().__init__(value)

    def __repr__(self) -> str:
        if IRLabel._PLAIN.fullmatch(self.value) is not None:
            return self.value
        return json.dumps(self.value)


class IRInstruction:
    """
    A single operation: an opcode, its operands and an optional output.

    Operands are stored with the top of stack last, so `%2 = sub %0, 1`
    is stored as opcode "sub" with operands [1, %0]. The opcodes listed in
    `UNREVERSED_INSTRUCTIONS` keep their written order.
    """

    opcode: str
    operands: list[IROperand]
    output: Optional[IRVariable]
    parent: IRBasicBlock
    annotation: Optional[str]

    def __init__(
        self,
        opcode: str,
        operands: list[IROperand] | Iterator[IROperand],
        output: Optional[IRVariable] = None,
    ):
        assert isinstance(opcode, str), f"opcode must be a str, got {opcode!r}"
        self.opcode = opcode
        self.operands = list(operands)
        self.output = output
        self.annotation = None

    @property
    def is_bb_terminator(self) -> bool:
        return self.opcode in BB_TERMINATORS

    @property
    def is_branch(self) -> bool:
        return self.opcode in BRANCH_INSTRUCTIONS

    @property
    def is_return(self) -> bool:
        return self.opcode in RETURN_INSTRUCTIONS

    @property
    def is_unreachable(self) -> bool:
        return self.opcode in UNREACHABLE_INSTRUCTIONS

    @property
    def is_phi(self) -> bool:
        return self.opcode == "phi"

    @property
    def is_memory_access(self) -> bool:
        return (self.get_read_effects() | self.get_write_effects()) != effects.EMPTY

    def get_read_effects(self) -> effects.Effects:
        return effects.get_read_effects(self.opcode)

    def get_write_effects(self) -> effects.Effects:
        return effects.get_write_effects(self.opcode)

    def get_label_operands(self) -> Iterator[IRLabel]:
        return (op for op in self.operands if isinstance(op, IRLabel))

    def get_input_variables(self) -> Iterator[IRVariable]:
        return (op for op in self.operands if isinstance(op, IRVariable))

    def get_outputs(self) -> list[IROperand]:
        if self.output is None:
            return []
        return [self.output]

    @property
    def phi_operands(self) -> Iterator[tuple[IRLabel, IROperand]]:
        """
        Yield the (predecessor label, incoming value) pairs of a phi.
        """
        assert self.is_phi, f"not a phi: `{self}`"
        pairs = zip(self.operands[::2], self.operands[1::2])
        for label, value in pairs:
            assert isinstance(label, IRLabel), f"expected a label in `{self}`, got {label}"
            yield label, value

    def _format_operands(self) -> str:
        ops = self.operands
        if self.opcode not in UNREVERSED_INSTRUCTIONS:
            ops = ops[::-1]
        return ", ".join(f"@{op}" if isinstance(op, IRLabel) else str(op) for op in ops)

    def __repr__(self) -> str:
        prefix = "" if self.output is None else f"{self.output} = "
        if self.opcode != "store":
            prefix += f"{self.opcode} "
        s = prefix + self._format_operands()

        if self.annotation:
            s = f"{s: <30} ; {self.annotation}"
        return s


def _to_operand(value: Union[IROperand, int]) -> IROperand:
    if isinstance(value, IROperand):
        return value
    assert isinstance(value, int), f"cannot use {value!r} as an operand"
    return IRLiteral(value)


class IRBasicBlock:
    """
    A straight-line run of instructions owned by an `IRFunction`.

    Control enters a block only at its first instruction and leaves it only
    through its last one. A well-formed block ends with exactly one
    terminator (see `BB_TERMINATORS`), which names the successor blocks by
    label:

        bb = fn.create_basic_block("loop")
        i = bb.append_instruction("add", 1, IRVariable("i"))
        bb.append_instruction("jnz", i, IRLabel("loop"), IRLabel("done"))
    """

    label: IRLabel
    parent: IRFunction
    instructions: list[IRInstruction]

    def __init__(self, label: IRLabel, parent: IRFunction) -> None:
        assert isinstance(label, IRLabel), f"block label must be an IRLabel, got {label!r}"
        self.label = label
        self.parent = parent
        self.instructions = []

    @property
    def last_instruction(self) -> IRInstruction:
        return self.instructions[-1]

    def append_instruction(
        self,
        opcode: str,
        *args: Union[IROperand, int],
        ret: Optional[IRVariable] = None,
        annotation: Optional[str] = None,
    ) -> Optional[IRVariable]:
        """
        Add an instruction at the end of the block. Plain ints become
        literals. Unless `ret` is given, opcodes that produce a value get a
        fresh variable from the function, which is returned.
        """
        assert not self.is_terminated, f"block {self.label} is already terminated"

        if ret is None and opcode not in NO_OUTPUT_INSTRUCTIONS:
            ret = self.parent.get_next_variable()

        inst = IRInstruction(opcode, [_to_operand(arg) for arg in args], ret)
        inst.parent = self
        inst.annotation = annotation
        self.instructions.append(inst)
        return ret

    @property
    def is_empty(self) -> bool:
        return not self.instructions

    @property
    def is_terminated(self) -> bool:
        return not self.is_empty and self.last_instruction.is_bb_terminator

    def __repr__(self) -> str:
        lines = [f"{self.label!r}:"]
        lines.extend(f"    {str(inst).strip()}" for inst in self.instructions)
        return "\n".join(lines) + "\n"
