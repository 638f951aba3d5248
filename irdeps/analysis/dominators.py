from typing import Iterator, Optional

from irdeps.analysis.analysis import IRAnalysis
from irdeps.analysis.cfg import ENTRY, EXIT, CFGAnalysis, CFGVertex, dfs_post_order, node_name
from irdeps.exceptions import AnalysisPanic
from irdeps.utils import OrderedSet


class _DominanceAnalysis(IRAnalysis):
    """
    Dominator tree of the control flow graph, rooted at `root` and following
    edges in the direction given by `_successors` / `_predecessors`.

    Immediate dominators are computed with the iterative algorithm of
    Cooper, Harvey and Kennedy ("A Simple, Fast Dominance Algorithm"): a
    fixpoint over the reverse post-order, intersecting the dominators of the
    already processed predecessors of each node.

    Nodes which cannot be reached from the root have no immediate dominator,
    and every dominance query involving them is answered negatively.
    """

    root: CFGVertex
    cfg: CFGAnalysis
    immediate_dominators: dict[CFGVertex, CFGVertex]
    dominated: dict[CFGVertex, OrderedSet[CFGVertex]]
    dominator_frontiers: dict[CFGVertex, OrderedSet[CFGVertex]]

    def _get_root(self) -> CFGVertex:
        raise NotImplementedError

    def _successors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        raise NotImplementedError

    def _predecessors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        raise NotImplementedError

    def analyze(self):
        self.cfg = self.analyses_cache.request_analysis(CFGAnalysis)
        self.root = self._get_root()
        if self.root not in self.cfg.nodes:
            raise AnalysisPanic(f"dominator tree root {self.root} is not in the CFG")

        self.post_walk = dfs_post_order(self.root, self._successors)
        self.post_order = {node: idx for idx, node in enumerate(self.post_walk)}

        self._compute_idoms()
        self._compute_dominated()
        self._compute_df()

    def _compute_idoms(self):
        """
        Compute immediate dominators
        """
        self.immediate_dominators = {self.root: self.root}
        rpo = [node for node in reversed(self.post_walk) if node != self.root]

        changed = True
        count = len(self.post_walk) ** 2 + 1
        while changed:
            count -= 1
            if count < 0:
                raise AnalysisPanic("Dominators computation failed to converge")
            changed = False
            for node in rpo:
                new_idom = None
                for pred in self._predecessors(node):
                    # skip predecessors which were not processed yet, or
                    # which cannot be reached from the root at all
                    if pred not in self.immediate_dominators:
                        continue
                    if new_idom is None:
                        new_idom = pred
                    else:
                        new_idom = self._intersect(pred, new_idom)

                assert new_idom is not None, node  # the dfs parent is always processed
                if self.immediate_dominators.get(node) != new_idom:
                    self.immediate_dominators[node] = new_idom
                    changed = True

        # store in reverse post-order for deterministic iteration
        self.immediate_dominators = {
            node: self.immediate_dominators[node] for node in reversed(self.post_walk)
        }

    def _intersect(self, node1: CFGVertex, node2: CFGVertex) -> CFGVertex:
        """
        Find the nearest common dominator of two nodes, walking up the
        (partial) dominator tree by post-order number.
        """
        order = self.post_order
        while node1 != node2:
            while order[node1] < order[node2]:
                node1 = self.immediate_dominators[node1]
            while order[node2] < order[node1]:
                node2 = self.immediate_dominators[node2]
        return node1

    def _compute_dominated(self):
        self.dominated = {node: OrderedSet() for node in self.immediate_dominators}
        for node, idom in self.immediate_dominators.items():
            if node != self.root:
                self.dominated[idom].add(node)

        # number the dominator tree so that dominance queries are interval
        # containment checks
        self._tree_pre: dict[CFGVertex, int] = {}
        self._tree_post: dict[CFGVertex, int] = {}
        counter = 0
        stack: list[tuple[CFGVertex, Iterator[CFGVertex]]] = [
            (self.root, iter(self.dominated[self.root]))
        ]
        self._tree_pre[self.root] = counter
        while len(stack) > 0:
            node, children = stack[-1]
            child = next(children, None)
            counter += 1
            if child is None:
                stack.pop()
                self._tree_post[node] = counter
            else:
                self._tree_pre[child] = counter
                stack.append((child, iter(self.dominated[child])))

    def _compute_df(self):
        """
        Compute dominance frontier
        """
        self.dominator_frontiers = {node: OrderedSet() for node in self.immediate_dominators}

        for node in self.immediate_dominators:
            idom = self.immediate_dominators[node]
            for pred in self._predecessors(node):
                if pred not in self.immediate_dominators:
                    continue
                runner = pred
                while runner != idom:
                    self.dominator_frontiers[runner].add(node)
                    if runner == self.root:
                        break
                    runner = self.immediate_dominators[runner]

    def is_defined(self, node: CFGVertex) -> bool:
        """
        Check if dominance is defined for `node`, i.e. it is reachable from
        the root.
        """
        return node in self.immediate_dominators

    @property
    def nodes(self) -> list[CFGVertex]:
        """
        The nodes of the tree (all nodes reachable from the root), in
        reverse post-order.
        """
        return list(self.immediate_dominators.keys())

    def immediate_dominator(self, node: CFGVertex) -> Optional[CFGVertex]:
        """
        Return the immediate dominator of a node. The root is its own
        immediate dominator; unreachable nodes have none.
        """
        return self.immediate_dominators.get(node)

    def dominates(self, dom: CFGVertex, sub: CFGVertex) -> bool:
        """
        Check if `dom` dominates `sub`. Every node dominates itself.
        """
        if dom not in self._tree_pre or sub not in self._tree_pre:
            return False
        return (
            self._tree_pre[dom] <= self._tree_pre[sub]
            and self._tree_post[sub] <= self._tree_post[dom]
        )

    def strictly_dominates(self, dom: CFGVertex, sub: CFGVertex) -> bool:
        return dom != sub and self.dominates(dom, sub)

    def dominators_of(self, node: CFGVertex) -> list[CFGVertex]:
        """
        All dominators of `node`, from `node` itself up to the root.
        Empty if `node` is unreachable.
        """
        if node not in self.immediate_dominators:
            return []
        ret = [node]
        while node != self.root:
            node = self.immediate_dominators[node]
            ret.append(node)
        return ret

    def children(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        """
        Nodes immediately dominated by `node`.
        """
        return self.dominated.get(node, OrderedSet())

    def get_all_dominated_blocks(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        """
        All nodes strictly dominated by `node` (its descendants in the tree).
        """
        result: OrderedSet[CFGVertex] = OrderedSet()
        worklist = list(reversed(self.children(node)))
        while len(worklist) > 0:
            dominated_node = worklist.pop()
            result.add(dominated_node)
            worklist.extend(reversed(self.children(dominated_node)))
        return result

    def dominated_by(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.get_all_dominated_blocks(node)

    def nearest_common_dominator(self, node1: CFGVertex, node2: CFGVertex) -> Optional[CFGVertex]:
        if node1 not in self.immediate_dominators or node2 not in self.immediate_dominators:
            return None
        return self._intersect(node1, node2)

    def dominance_frontier_of(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.dominator_frontiers.get(node, OrderedSet())

    def dominance_frontier(self, nodes: list[CFGVertex]) -> OrderedSet[CFGVertex]:
        """
        Compute dominance frontier of a set of nodes.
        """
        df: OrderedSet[CFGVertex] = OrderedSet()
        for node in nodes:
            df.update(self.dominance_frontier_of(node))
        return df

    @property
    def dom_post_order(self) -> Iterator[CFGVertex]:
        """
        Post-order traversal of the dominator tree.
        """
        stack: list[tuple[CFGVertex, Iterator[CFGVertex]]] = [
            (self.root, iter(self.dominated[self.root]))
        ]
        while len(stack) > 0:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                yield node
            else:
                stack.append((child, iter(self.dominated[child])))

    def as_graph(self) -> str:
        """
        Generate a graphviz representation of the tree, edges point from
        the immediate dominator to the dominated node.
        """
        lines = [f"digraph {self._graph_name} {{"]
        for node, idom in self.immediate_dominators.items():
            if node == self.root:
                continue
            lines.append(f'    "{node_name(idom)}" -> "{node_name(node)}"')
        lines.append("}")
        return "\n".join(lines)

    _graph_name = "dominator_tree"


class DominatorTreeAnalysis(_DominanceAnalysis):
    """
    Dominator tree rooted at the synthetic `ENTRY` node.
    """

    def _get_root(self) -> CFGVertex:
        return ENTRY

    def _successors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.cfg.cfg_out(node)

    def _predecessors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.cfg.cfg_in(node)


class PostDominatorTreeAnalysis(_DominanceAnalysis):
    """
    Post-dominator tree, i.e. the dominator tree of the reversed control
    flow graph, rooted at the synthetic `EXIT` node. Nodes from which
    `EXIT` cannot be reached (e.g. infinite loops) are not part of the tree.
    """

    _graph_name = "post_dominator_tree"

    def _get_root(self) -> CFGVertex:
        return EXIT

    def _successors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.cfg.cfg_in(node)

    def _predecessors(self, node: CFGVertex) -> OrderedSet[CFGVertex]:
        return self.cfg.cfg_out(node)

    def immediate_post_dominator(self, node: CFGVertex) -> Optional[CFGVertex]:
        return self.immediate_dominator(node)

    def post_dominates(self, pdom: CFGVertex, sub: CFGVertex) -> bool:
        return self.dominates(pdom, sub)

    def strictly_post_dominates(self, pdom: CFGVertex, sub: CFGVertex) -> bool:
        return self.strictly_dominates(pdom, sub)

    def post_dominators_of(self, node: CFGVertex) -> list[CFGVertex]:
        return self.dominators_of(node)
