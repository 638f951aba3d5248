from collections import deque
from typing import Iterator

from irdeps.analysis.analysis import IRAnalysis
from irdeps.analysis.cfg import EXIT, CFGAnalysis, dfs_post_order, node_name
from irdeps.analysis.dominators import PostDominatorTreeAnalysis
from irdeps.ir.basicblock import IRBasicBlock
from irdeps.utils import OrderedSet


class ControlDependenceAnalysis(IRAnalysis):
    """
    Control dependence graph over the basic blocks of a function.

    Block A is control dependent on block B iff B has a successor C such
    that A post-dominates C, and A does not strictly post-dominate B. In
    other words, the branch taken at the end of B decides whether A runs.

    For every CFG edge B -> C we walk the post-dominator tree from C up to
    (but excluding) the immediate post-dominator of B, and every node on
    the way is control dependent on B (Ferrante, Ottenstein and Warren).
    Since all returns are joined at `EXIT`, the walk also terminates for
    functions with several return points.

    A successor C which cannot reach `EXIT` (it enters an infinite loop) has
    no place in the post-dominator tree. Every block reachable from C is
    then taken to be control dependent on B.
    """

    cfg: CFGAnalysis
    postdom: PostDominatorTreeAnalysis
    _dependencies: dict[IRBasicBlock, OrderedSet[IRBasicBlock]]
    _dependents: dict[IRBasicBlock, OrderedSet[IRBasicBlock]]

    def analyze(self):
        self.cfg = self.analyses_cache.request_analysis(CFGAnalysis)
        self.postdom = self.analyses_cache.request_analysis(PostDominatorTreeAnalysis)

        basic_blocks = self.cfg.basic_blocks
        self._dependencies = {bb: OrderedSet() for bb in basic_blocks}
        self._dependents = {bb: OrderedSet() for bb in basic_blocks}
        regions: dict[IRBasicBlock, list[IRBasicBlock]] = {}

        for bb in basic_blocks:
            # a single outgoing edge never decides anything
            if len(self.cfg.cfg_out(bb)) < 2:
                continue

            ipdom = self.postdom.immediate_post_dominator(bb)
            for succ in self.cfg.cfg_out(bb):
                assert isinstance(succ, IRBasicBlock)  # help mypy
                if not self.postdom.is_defined(succ):
                    if succ not in regions:
                        regions[succ] = self._non_exiting_region(succ)
                    for dep in regions[succ]:
                        self._add_dependence(dep, bb)
                    continue

                runner = succ
                while runner != ipdom and runner != EXIT:
                    assert isinstance(runner, IRBasicBlock)  # help mypy
                    self._add_dependence(runner, bb)
                    runner = self.postdom.immediate_post_dominator(runner)

    def _non_exiting_region(self, bb: IRBasicBlock) -> list[IRBasicBlock]:
        # nothing reachable from `bb` reaches EXIT, so there is no
        # post-dominator to stop at
        post_order = dfs_post_order(bb, self.cfg.cfg_out)
        return [node for node in reversed(post_order) if isinstance(node, IRBasicBlock)]

    def _add_dependence(self, bb: IRBasicBlock, on: IRBasicBlock) -> None:
        self._dependencies[bb].add(on)
        self._dependents[on].add(bb)

    def control_dependencies(self, bb: IRBasicBlock) -> OrderedSet[IRBasicBlock]:
        """
        Blocks whose branch decides whether `bb` executes.
        """
        return self._dependencies[bb]

    def control_dependents(self, bb: IRBasicBlock) -> OrderedSet[IRBasicBlock]:
        """
        Blocks whose execution is decided by the branch at the end of `bb`.
        """
        return self._dependents[bb]

    def is_control_dependent(self, bb: IRBasicBlock, on: IRBasicBlock) -> bool:
        return on in self._dependencies[bb]

    def is_transitively_control_dependent(self, bb: IRBasicBlock, on: IRBasicBlock) -> bool:
        visited: OrderedSet[IRBasicBlock] = OrderedSet()
        worklist = deque(self._dependencies[bb])
        while len(worklist) > 0:
            dep = worklist.popleft()
            if dep == on:
                return True
            if dep in visited:
                continue
            visited.add(dep)
            worklist.extend(self._dependencies[dep])
        return False

    def edges(self) -> Iterator[tuple[IRBasicBlock, IRBasicBlock]]:
        """
        Iterate over (dependent, controlling block) pairs.
        """
        for bb, deps in self._dependencies.items():
            for dep in deps:
                yield bb, dep

    @property
    def num_edges(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    def as_graph(self) -> str:
        """
        Generate a graphviz representation of the control dependence graph,
        edges point from the branching block to the dependent block.
        """
        lines = ["digraph control_dependence_graph {"]
        for bb, dep in self.edges():
            lines.append(f'    "{node_name(dep)}" -> "{node_name(bb)}"')
        lines.append("}")
        return "\n".join(lines)
