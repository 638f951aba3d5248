from irdeps.analysis.analysis import IRAnalysesCache, IRAnalysis
from irdeps.ir.basicblock import IRInstruction, IROperand, IRVariable
from irdeps.ir.function import IRFunction
from irdeps.utils import OrderedSet


class DFGAnalysis(IRAnalysis):
    """
    Def-use information for the variables of a function.

    Variables are resolved by identity (their name), not by position, so
    uses are linked to definitions in other basic blocks as well. The IR
    is not required to be in SSA form: if a variable is assigned more than
    once, every assignment is a possible producer of each of its uses.
    """

    _uses: dict[IRVariable, OrderedSet[IRInstruction]]
    _defs: dict[IRVariable, OrderedSet[IRInstruction]]

    def __init__(self, analyses_cache: IRAnalysesCache, function: IRFunction):
        super().__init__(analyses_cache, function)
        self._uses = {}
        self._defs = {}

    def get_uses(self, op: IRVariable) -> OrderedSet[IRInstruction]:
        return self._uses.get(op, OrderedSet())

    def get_producing_instructions(self, op: IROperand) -> OrderedSet[IRInstruction]:
        """
        All instructions which assign `op`. Empty for literals, labels and
        variables which are never assigned.
        """
        if isinstance(op, IRVariable):
            return self._defs.get(op, OrderedSet())
        return OrderedSet()

    def get_producers_of(self, inst: IRInstruction) -> OrderedSet[IRInstruction]:
        return OrderedSet(
            producer
            for var in inst.get_input_variables()
            for producer in self.get_producing_instructions(var)
        )

    def is_ssa(self) -> bool:
        return all(len(defs) == 1 for defs in self._defs.values())

    def undefined_variables(self) -> OrderedSet[IRVariable]:
        """Variables which are read but never assigned."""
        return OrderedSet(var for var in self._uses if var not in self._defs)

    @property
    def outputs(self) -> dict[IRVariable, OrderedSet[IRInstruction]]:
        return self._defs

    def analyze(self):
        for bb in self.function.get_basic_blocks():
            for inst in bb.instructions:
                for var in inst.get_input_variables():
                    self._uses.setdefault(var, OrderedSet()).add(inst)
                for out in inst.get_outputs():
                    assert isinstance(out, IRVariable), inst
                    self._defs.setdefault(out, OrderedSet()).add(inst)

    def as_graph(self) -> str:
        """
        Graphviz rendering: one edge from each variable to the variables
        computed from it.
        """
        lines = ["digraph dfg_graph {"]
        for var, users in self._uses.items():
            for user in users:
                for out in user.get_outputs():
                    lines.append(f'    " {var.name} " -> " {out.name} "')
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.as_graph()
