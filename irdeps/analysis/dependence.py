from collections import deque
from enum import Flag, auto
from typing import Iterator, Optional

from irdeps.analysis import memory
from irdeps.analysis.analysis import IRAnalysis
from irdeps.analysis.cdg import ControlDependenceAnalysis
from irdeps.analysis.cfg import CFGAnalysis
from irdeps.analysis.dfg import DFGAnalysis
from irdeps.ir.basicblock import IRBasicBlock, IRInstruction
from irdeps.utils import OrderedSet
from irdeps.warnings import UnreachableCode, irdeps_warn


class DependenceKind(Flag):
    # the consumer uses a value produced by the producer
    DATA = auto()
    # the consumer's block is control dependent on the producer, which is
    # the terminator of the controlling block
    CONTROL = auto()
    # the consumer may observe or clobber state accessed by the producer
    MEMORY = auto()


NO_DEPENDENCE = DependenceKind(0)
ANY_DEPENDENCE = DependenceKind.DATA | DependenceKind.CONTROL | DependenceKind.MEMORY


class DependenceGraphAnalysis(IRAnalysis):
    """
    Dependence graph over the instructions of a function.

    An edge `consumer -> producer` means the consumer depends on the
    producer; each edge records the kinds of dependence (data, control,
    memory) that connect the pair. The graph may contain cycles (loop
    carried dependences), so every transitive query is guarded by a visited
    set and never materialized eagerly.

    Memory dependence follows the conservative policy of
    `irdeps.analysis.memory`: a memory accessing instruction depends on
    every conflicting access which can run before it, i.e. earlier in its
    own block or anywhere in a block with a CFG path into its block. Blocks
    on a cycle also depend on their own accesses from the previous
    iteration.
    """

    cfg: CFGAnalysis
    dfg: DFGAnalysis
    cdg: ControlDependenceAnalysis
    _instructions: OrderedSet[IRInstruction]
    _dependencies: dict[IRInstruction, dict[IRInstruction, DependenceKind]]
    _dependents: dict[IRInstruction, dict[IRInstruction, DependenceKind]]

    def analyze(self):
        self.cfg = self.analyses_cache.request_analysis(CFGAnalysis)
        self.dfg = self.analyses_cache.request_analysis(DFGAnalysis)
        self.cdg = self.analyses_cache.request_analysis(ControlDependenceAnalysis)

        basic_blocks = self.cfg.basic_blocks
        if not self.settings.include_unreachable:
            unreachable = self.cfg.unreachable_blocks
            if len(unreachable) > 0:
                labels = ", ".join(str(bb.label) for bb in unreachable)
                irdeps_warn(
                    UnreachableCode(
                        f"function {self.function.name}: leaving unreachable "
                        f"blocks out of the dependence graph: {labels}"
                    )
                )
            basic_blocks = [bb for bb in basic_blocks if self.cfg.is_reachable(bb)]

        self._instructions = OrderedSet()
        for bb in basic_blocks:
            self._instructions.update(bb.instructions)

        self._dependencies = {inst: {} for inst in self._instructions}
        self._dependents = {inst: {} for inst in self._instructions}

        for bb in basic_blocks:
            self._add_data_dependences(bb)
            self._add_control_dependences(bb)

        if self.settings.memory_dependence:
            self._add_memory_dependences(basic_blocks)

    def _add_edge(self, consumer: IRInstruction, producer: IRInstruction, kind: DependenceKind):
        if producer not in self._dependencies:
            # producer was left out (unreachable code)
            return
        deps = self._dependencies[consumer]
        deps[producer] = deps.get(producer, NO_DEPENDENCE) | kind
        users = self._dependents[producer]
        users[consumer] = users.get(consumer, NO_DEPENDENCE) | kind

    def _add_data_dependences(self, bb: IRBasicBlock):
        for inst in bb.instructions:
            for producer in self.dfg.get_producers_of(inst):
                self._add_edge(inst, producer, DependenceKind.DATA)

    def _add_control_dependences(self, bb: IRBasicBlock):
        for controller in self.cdg.control_dependencies(bb):
            branch = controller.last_instruction
            for inst in bb.instructions:
                self._add_edge(inst, branch, DependenceKind.CONTROL)

    def _add_memory_dependences(self, basic_blocks: list[IRBasicBlock]):
        mem_insts = {
            bb: [inst for inst in bb.instructions if inst.is_memory_access] for bb in basic_blocks
        }

        for bb in basic_blocks:
            reaching = self._reaching_blocks(bb)
            # accesses on some path into `bb`, in layout order
            incoming: list[IRInstruction] = []
            for pred_bb in basic_blocks:
                if pred_bb is not bb and pred_bb in reaching:
                    incoming.extend(mem_insts[pred_bb])

            local = mem_insts[bb]
            for idx, inst in enumerate(local):
                # on a cycle, the whole block (`inst` included) ran in the
                # previous iteration
                same_block = local if bb in reaching else local[:idx]
                for prev in incoming + same_block:
                    if memory.may_depend(prev, inst):
                        self._add_edge(inst, prev, DependenceKind.MEMORY)

    def _reaching_blocks(self, bb: IRBasicBlock) -> OrderedSet[IRBasicBlock]:
        """
        Blocks with a path of at least one edge to `bb`. `bb` itself is
        included only if it lies on a cycle.
        """
        ret: OrderedSet[IRBasicBlock] = OrderedSet()
        worklist = list(self.cfg.cfg_in(bb))
        while len(worklist) > 0:
            node = worklist.pop()
            if not isinstance(node, IRBasicBlock) or node in ret:
                continue
            ret.add(node)
            worklist.extend(self.cfg.cfg_in(node))
        return ret

    @property
    def instructions(self) -> OrderedSet[IRInstruction]:
        return self._instructions

    def __contains__(self, inst: IRInstruction) -> bool:
        return inst in self._instructions

    def dependencies_of(
        self, inst: IRInstruction, kind: DependenceKind = ANY_DEPENDENCE
    ) -> OrderedSet[IRInstruction]:
        """
        Instructions `inst` immediately depends on, restricted to edges of
        the given kind(s).
        """
        return OrderedSet(dep for dep, k in self._dependencies[inst].items() if k & kind)

    def dependents_of(
        self, inst: IRInstruction, kind: DependenceKind = ANY_DEPENDENCE
    ) -> OrderedSet[IRInstruction]:
        """
        Instructions which immediately depend on `inst`, restricted to edges
        of the given kind(s).
        """
        return OrderedSet(user for user, k in self._dependents[inst].items() if k & kind)

    def dependence_kinds(self, consumer: IRInstruction, producer: IRInstruction) -> DependenceKind:
        return self._dependencies[consumer].get(producer, NO_DEPENDENCE)

    def _walk(
        self,
        start: IRInstruction,
        graph: dict[IRInstruction, dict[IRInstruction, DependenceKind]],
        kind: DependenceKind,
        max_depth: Optional[int],
    ) -> Iterator[IRInstruction]:
        # breadth first, so that `max_depth` bounds the path length
        visited: OrderedSet[IRInstruction] = OrderedSet()
        worklist = deque([(start, 0)])
        while len(worklist) > 0:
            inst, depth = worklist.popleft()
            if max_depth is not None and depth >= max_depth:
                continue
            for nxt, k in graph[inst].items():
                if not (k & kind) or nxt in visited:
                    continue
                visited.add(nxt)
                yield nxt
                worklist.append((nxt, depth + 1))

    def _max_depth(self, max_depth: Optional[int]) -> Optional[int]:
        if max_depth is None:
            return self.settings.max_search_depth
        return max_depth

    def transitive_dependencies(
        self,
        inst: IRInstruction,
        kind: DependenceKind = ANY_DEPENDENCE,
        max_depth: Optional[int] = None,
    ) -> Iterator[IRInstruction]:
        """
        Lazily enumerate everything `inst` depends on, nearest first.
        `inst` itself is only produced if it lies on a cycle.
        """
        return self._walk(inst, self._dependencies, kind, self._max_depth(max_depth))

    def transitive_dependents(
        self,
        inst: IRInstruction,
        kind: DependenceKind = ANY_DEPENDENCE,
        max_depth: Optional[int] = None,
    ) -> Iterator[IRInstruction]:
        """
        Lazily enumerate everything which depends on `inst`, nearest first.
        """
        return self._walk(inst, self._dependents, kind, self._max_depth(max_depth))

    def is_transitively_dependent(
        self,
        inst: IRInstruction,
        on: IRInstruction,
        kind: DependenceKind = ANY_DEPENDENCE,
        max_depth: Optional[int] = None,
    ) -> bool:
        """
        Check if there is a path of one or more dependence edges from `inst`
        to `on`. Terminates on cyclic graphs; if a depth bound is configured,
        longer paths are not followed.
        """
        return any(dep is on for dep in self.transitive_dependencies(inst, kind, max_depth))

    def backward_slice(
        self, inst: IRInstruction, kind: DependenceKind = ANY_DEPENDENCE
    ) -> OrderedSet[IRInstruction]:
        """
        `inst` together with every instruction it transitively depends on.
        """
        ret = OrderedSet([inst])
        ret.update(self.transitive_dependencies(inst, kind))
        return ret

    def forward_slice(
        self, inst: IRInstruction, kind: DependenceKind = ANY_DEPENDENCE
    ) -> OrderedSet[IRInstruction]:
        """
        `inst` together with every instruction that transitively depends on it.
        """
        ret = OrderedSet([inst])
        ret.update(self.transitive_dependents(inst, kind))
        return ret

    def edges(self) -> Iterator[tuple[IRInstruction, IRInstruction, DependenceKind]]:
        """
        Iterate over (consumer, producer, kind) triples.
        """
        for consumer, deps in self._dependencies.items():
            for producer, kind in deps.items():
                yield consumer, producer, kind

    @property
    def num_edges(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    def as_graph(self) -> str:
        """
        Generate a graphviz representation of the dependence graph, edges
        point from the consumer to the producer.
        """
        names: dict[IRInstruction, str] = {}
        lines = ["digraph dependence_graph {"]
        for inst in self._instructions:
            bb = inst.parent
            name = f"{bb.label.value}:{bb.instructions.index(inst)}"
            names[inst] = name
            text = str(inst).strip().replace('"', '\\"')
            lines.append(f'    "{name}" [label="{text}"]')

        styles = {
            DependenceKind.DATA: "solid",
            DependenceKind.CONTROL: "dashed",
            DependenceKind.MEMORY: "dotted",
        }
        for consumer, producer, kind in self.edges():
            for k, style in styles.items():
                if k & kind:
                    lines.append(f'    "{names[consumer]}" -> "{names[producer]}" [style={style}]')
        lines.append("}")
        return "\n".join(lines)
