import threading
from typing import Iterable, Optional, Type, TypeVar

from irdeps.analysis.analysis import IRAnalysesCache, IRAnalysis
from irdeps.analysis.cdg import ControlDependenceAnalysis
from irdeps.analysis.cfg import CFGAnalysis, CFGVertex
from irdeps.analysis.dependence import DependenceGraphAnalysis
from irdeps.analysis.dominators import DominatorTreeAnalysis, PostDominatorTreeAnalysis
from irdeps.exceptions import AmbiguousFunction, FunctionNotFound
from irdeps.ir.context import IRContext
from irdeps.ir.function import IRFunction
from irdeps.settings import Settings, get_global_settings
from irdeps.utils import OrderedSet

T = TypeVar("T", bound=IRAnalysis)


class Analysis:
    """
    Entry point for analyzing the functions of one or more IR contexts.

    Every function gets its own `IRAnalysesCache`, created on first use.
    Each cache serializes construction with its own lock, so different
    functions can be analyzed from different threads at the same time;
    the lock held here only guards the creation of cache slots.
    """

    contexts: list[IRContext]
    settings: Settings

    def __init__(self, ctx: IRContext, settings: Optional[Settings] = None):
        self.contexts = [ctx]
        self.settings = settings if settings is not None else get_global_settings()
        self._caches: dict[IRFunction, IRAnalysesCache] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_contexts(
        cls, contexts: Iterable[IRContext], settings: Optional[Settings] = None
    ) -> "Analysis":
        contexts = list(contexts)
        assert len(contexts) > 0, "no contexts to analyze"
        ret = cls(contexts[0], settings)
        ret.contexts.extend(contexts[1:])
        return ret

    def get_functions(self) -> list[IRFunction]:
        return [fn for ctx in self.contexts for fn in ctx.get_functions()]

    def get_function_by_name(self, name: str) -> IRFunction:
        """
        Look up a function in the analyzed contexts. Raises
        `FunctionNotFound` if no context defines it and `AmbiguousFunction`
        if more than one does.
        """
        candidates = [ctx.get_function(name) for ctx in self.contexts if ctx.has_function(name)]
        if len(candidates) == 0:
            raise FunctionNotFound(f"Function {name} not found")
        if len(candidates) > 1:
            raise AmbiguousFunction(
                f"Function {name} is defined in {len(candidates)} contexts",
                hint="analyze the contexts separately",
            )
        return candidates[0]

    def _resolve(self, fn: IRFunction | str) -> IRFunction:
        if isinstance(fn, str):
            return self.get_function_by_name(fn)
        return fn

    def get_analyses_cache(self, fn: IRFunction | str) -> IRAnalysesCache:
        fn = self._resolve(fn)
        cache = self._caches.get(fn)
        if cache is not None:
            return cache
        with self._lock:
            if fn not in self._caches:
                self._caches[fn] = IRAnalysesCache(fn, self.settings)
            return self._caches[fn]

    def _request(self, fn: IRFunction | str, analysis_cls: Type[T]) -> T:
        return self.get_analyses_cache(fn).request_analysis(analysis_cls)

    def get_cfg(self, fn: IRFunction | str) -> CFGAnalysis:
        return self._request(fn, CFGAnalysis)

    def get_dominator_tree(self, fn: IRFunction | str) -> DominatorTreeAnalysis:
        return self._request(fn, DominatorTreeAnalysis)

    def get_post_dominator_tree(self, fn: IRFunction | str) -> PostDominatorTreeAnalysis:
        return self._request(fn, PostDominatorTreeAnalysis)

    def get_dominance_frontier(
        self, fn: IRFunction | str
    ) -> dict[CFGVertex, OrderedSet[CFGVertex]]:
        """
        Dominance frontier of every node of the dominator tree.
        """
        dom = self.get_dominator_tree(fn)
        return {node: dom.dominance_frontier_of(node) for node in dom.nodes}

    def get_control_dependence_graph(self, fn: IRFunction | str) -> ControlDependenceAnalysis:
        return self._request(fn, ControlDependenceAnalysis)

    def get_dependence_graph(self, fn: IRFunction | str) -> DependenceGraphAnalysis:
        return self._request(fn, DependenceGraphAnalysis)
