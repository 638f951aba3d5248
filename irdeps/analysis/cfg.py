from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Union

from irdeps.analysis.analysis import IRAnalysis
from irdeps.exceptions import MalformedFunction
from irdeps.ir.basicblock import IRBasicBlock, IRLabel, IRLiteral, IROperand
from irdeps.utils import OrderedSet


class CFGNode(Enum):
    """
    Synthetic nodes of the control flow graph. They live in their own
    namespace, so they never collide with a basic block.
    """

    ENTRY = "ENTRY"
    EXIT = "EXIT"

    def __repr__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


ENTRY = CFGNode.ENTRY
EXIT = CFGNode.EXIT

CFGVertex = Union[IRBasicBlock, CFGNode]


@dataclass(frozen=True)
class EdgeLabel:
    """
    Label of a conditional control flow edge.

    `condition` is the operand the terminator branches on. `value` is the
    outcome which selects the edge: True/False for `jnz`, the case value for
    `switch`, the table index for `djmp`, or None for a `switch` default.
    """

    condition: IROperand
    value: Optional[int | bool]

    @property
    def is_default(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        if self.value is None:
            return f"{self.condition} default"
        if isinstance(self.value, bool):
            return f"{self.condition} {str(self.value).lower()}"
        return f"{self.condition} == {self.value}"


def _malformed_terminator(bb: IRBasicBlock, reason: str) -> MalformedFunction:
    term = bb.last_instruction
    return MalformedFunction(
        f"malformed terminator `{term}` in basic block {bb.label}: {reason}",
        function_name=bb.parent.name,
        label=bb.label,
    )


def _successor_labels(bb: IRBasicBlock) -> Iterator[tuple[IRLabel, Optional[EdgeLabel]]]:
    """
    Enumerate the successor labels of a block's terminator together with
    the label of each edge.
    """
    term = bb.last_instruction
    opcode = term.opcode
    operands = term.operands

    if opcode == "jmp":
        if len(operands) != 1 or not isinstance(operands[0], IRLabel):
            raise _malformed_terminator(bb, "expected a single label")
        yield operands[0], None
    elif opcode == "jnz":
        if len(operands) != 3 or not all(isinstance(op, IRLabel) for op in operands[1:]):
            raise _malformed_terminator(bb, "expected a condition and two labels")
        cond, then_label, else_label = operands
        yield then_label, EdgeLabel(cond, True)  # type: ignore[misc]
        yield else_label, EdgeLabel(cond, False)  # type: ignore[misc]
    elif opcode == "djmp":
        if len(operands) < 2 or not all(isinstance(op, IRLabel) for op in operands[1:]):
            raise _malformed_terminator(bb, "expected a selector and at least one label")
        selector, *targets = operands
        for i, target in enumerate(targets):
            yield target, EdgeLabel(selector, i)  # type: ignore[misc]
    elif opcode == "switch":
        # switch %sel, @default, v0, @L0, v1, @L1, ...
        if len(operands) < 2 or len(operands) % 2 != 0 or not isinstance(operands[1], IRLabel):
            raise _malformed_terminator(bb, "expected a selector, a default label and cases")
        selector, default, *cases = operands
        yield default, EdgeLabel(selector, None)  # type: ignore[misc]
        for value, target in zip(cases[0::2], cases[1::2]):
            if not isinstance(value, IRLiteral) or not isinstance(target, IRLabel):
                raise _malformed_terminator(bb, f"bad case `{value}, {target}`")
            yield target, EdgeLabel(selector, value.value)
    else:
        # returns and unreachable-like terminators leave the function
        assert term.is_return or term.is_unreachable, term


def dfs_post_order(
    root: CFGVertex, successors: Callable[[CFGVertex], Iterable[CFGVertex]]
) -> list[CFGVertex]:
    """
    Depth first post-order of the nodes reachable from `root`.
    Iterative, so that long chains of blocks do not exhaust the stack.
    """
    visited: OrderedSet[CFGVertex] = OrderedSet([root])
    post_order: list[CFGVertex] = []
    stack = [(root, iter(successors(root)))]

    while len(stack) > 0:
        node, children = stack[-1]
        for child in children:
            if child not in visited:
                visited.add(child)
                stack.append((child, iter(successors(child))))
                break
        else:
            stack.pop()
            post_order.append(node)

    return post_order


class CFGAnalysis(IRAnalysis):
    """
    Compute the control flow graph of a function.

    The node set is every basic block of the function plus the synthetic
    `ENTRY` and `EXIT` nodes. `ENTRY` has a single edge to the first block,
    and every block which returns (or ends in an unreachable-like
    instruction) has an edge to `EXIT`. Blocks which cannot be reached from
    the entry stay in the graph.
    """

    _basic_blocks: list[IRBasicBlock]
    _cfg_in: dict[CFGVertex, OrderedSet[CFGVertex]]
    _cfg_out: dict[CFGVertex, OrderedSet[CFGVertex]]
    _edge_labels: dict[tuple[CFGVertex, CFGVertex], list[EdgeLabel]]
    _dfs: list[CFGVertex]
    _reachable: OrderedSet[CFGVertex]

    def analyze(self) -> None:
        fn = self.function

        self._basic_blocks = list(fn.get_basic_blocks())
        if len(self._basic_blocks) == 0:
            raise MalformedFunction("function has no basic blocks", function_name=fn.name)

        for bb in self._basic_blocks:
            if bb.is_empty:
                raise MalformedFunction(
                    f"basic block {bb.label} is empty", function_name=fn.name, label=bb.label
                )
            if not bb.is_terminated:
                raise MalformedFunction(
                    f"basic block {bb.label} is not terminated",
                    function_name=fn.name,
                    label=bb.label,
                    hint=f"last instruction is `{bb.last_instruction}`",
                )
            for inst in bb.instructions[:-1]:
                if inst.is_bb_terminator:
                    raise MalformedFunction(
                        f"basic block {bb.label} has terminator `{inst}` before its end",
                        function_name=fn.name,
                        label=bb.label,
                        hint="a basic block must end in exactly one terminator",
                    )

        nodes: list[CFGVertex] = [ENTRY, *self._basic_blocks, EXIT]
        self._cfg_in = {node: OrderedSet() for node in nodes}
        self._cfg_out = {node: OrderedSet() for node in nodes}
        self._edge_labels = {}

        self._add_edge(ENTRY, fn.entry)

        for bb in self._basic_blocks:
            term = bb.last_instruction
            if term.is_return or term.is_unreachable:
                self._add_edge(bb, EXIT)
                continue

            for label, edge_label in _successor_labels(bb):
                if not fn.has_basic_block(label.name):
                    raise MalformedFunction(
                        f"basic block {bb.label} jumps to nonexistent block {label}",
                        function_name=fn.name,
                        label=label,
                    )
                self._add_edge(bb, fn.get_basic_block(label.name), edge_label)

        self._dfs = dfs_post_order(ENTRY, self.cfg_out)
        self._reachable = OrderedSet(self._dfs)

    def _add_edge(
        self, src: CFGVertex, dst: CFGVertex, edge_label: Optional[EdgeLabel] = None
    ) -> None:
        self._cfg_out[src].add(dst)
        self._cfg_in[dst].add(src)
        labels = self._edge_labels.setdefault((src, dst), [])
        if edge_label is not None:
            labels.append(edge_label)

    def cfg_in(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self._cfg_in[node]

    def cfg_out(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self._cfg_out[node]

    def has_edge(self, src: CFGVertex, dst: CFGVertex) -> bool:
        return (src, dst) in self._edge_labels

    def edge_labels(self, src: CFGVertex, dst: CFGVertex) -> list[EdgeLabel]:
        """
        All labels on the edge `src -> dst`. A terminator may reach the same
        block through several outcomes (e.g. two switch cases), in which case
        there is one label per outcome. Unconditional edges have no labels.
        """
        return list(self._edge_labels[(src, dst)])

    def edge_label(self, src: CFGVertex, dst: CFGVertex) -> Optional[EdgeLabel]:
        labels = self._edge_labels[(src, dst)]
        return labels[0] if len(labels) > 0 else None

    def edges(self) -> Iterator[tuple[CFGVertex, CFGVertex]]:
        return iter(self._edge_labels.keys())

    @property
    def num_edges(self) -> int:
        return len(self._edge_labels)

    @property
    def nodes(self) -> list[CFGVertex]:
        return list(self._cfg_out.keys())

    @property
    def basic_blocks(self) -> list[IRBasicBlock]:
        return list(self._basic_blocks)

    @property
    def entry_block(self) -> IRBasicBlock:
        return self._basic_blocks[0]

    @property
    def exit_blocks(self) -> list[IRBasicBlock]:
        """
        Blocks with an edge to `EXIT`, in layout order.
        """
        return [bb for bb in self._cfg_in[EXIT] if isinstance(bb, IRBasicBlock)]

    def is_reachable(self, node: CFGVertex) -> bool:
        """
        Check whether `node` is reachable from `ENTRY`.
        """
        return node in self._reachable

    @property
    def unreachable_blocks(self) -> list[IRBasicBlock]:
        return [bb for bb in self._basic_blocks if bb not in self._reachable]

    @property
    def dfs_pre_walk(self) -> Iterator[CFGVertex]:
        visited: OrderedSet[CFGVertex] = OrderedSet()
        stack: list[CFGVertex] = [ENTRY]

        while len(stack) > 0:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            yield node
            stack.extend(reversed(self._cfg_out[node]))

    @property
    def dfs_post_walk(self) -> Iterator[CFGVertex]:
        return iter(self._dfs)

    @property
    def reverse_post_order(self) -> list[CFGVertex]:
        return list(reversed(self._dfs))

    @property
    def cyclomatic_complexity(self) -> int:
        """
        McCabe's cyclomatic complexity, E - N + 2, over the graph including
        the synthetic entry and exit nodes.
        """
        return self.num_edges - len(self._cfg_out) + 2

    def as_graph(self) -> str:
        """
        Generate a graphviz representation of the control flow graph.
        """
        lines = ["digraph cfg {"]
        for src, dst in self.edges():
            labels = self._edge_labels[(src, dst)]
            attrs = ""
            if len(labels) > 0:
                text = ", ".join(str(label) for label in labels)
                attrs = f' [label="{text}"]'
            lines.append(f'    "{node_name(src)}" -> "{node_name(dst)}"{attrs}')
        lines.append("}")
        return "\n".join(lines)


def node_name(node: CFGVertex) -> str:
    if isinstance(node, CFGNode):
        return node.value
    return str(node.label.value)
