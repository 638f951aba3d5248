from .analysis import IRAnalysesCache, IRAnalysis
from .cfg import ENTRY, EXIT, CFGAnalysis, CFGNode, EdgeLabel
from .dominators import DominatorTreeAnalysis, PostDominatorTreeAnalysis
from .cdg import ControlDependenceAnalysis
from .dfg import DFGAnalysis
from .dependence import DependenceGraphAnalysis, DependenceKind
from .module import Analysis
