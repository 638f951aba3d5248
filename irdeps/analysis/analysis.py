from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional, Type, TypeVar

from irdeps.settings import Settings, get_global_settings
from irdeps.utils import timeit

if TYPE_CHECKING:
    from irdeps.ir.function import IRFunction

logger = logging.getLogger(__name__)


class IRAnalysis:
    """
    One analysis result for one function. Subclasses fill in `analyze()`,
    pulling their prerequisites from `analyses_cache`. Once built, a result
    is never modified.
    """

    function: IRFunction
    analyses_cache: IRAnalysesCache

    def __init__(self, analyses_cache: IRAnalysesCache, function: IRFunction):
        self.analyses_cache = analyses_cache
        self.function = function

    @property
    def settings(self) -> Settings:
        return self.analyses_cache.settings

    def analyze(self, *args, **kwargs):
        raise NotImplementedError


T = TypeVar("T", bound=IRAnalysis)


class IRAnalysesCache:
    """
    Builds and memoizes the analyses of a single function.

    Analyses are built on first request and reused afterwards. An analysis
    which raises while being built is not cached. Construction is serialized
    by a re-entrant lock (analyses request their prerequisites recursively
    from within `analyze()`); finished analyses are never mutated and can be
    read from any thread.

    There is no invalidation. A changed function needs a fresh cache, and
    results handed out by the old one stay usable.
    """

    function: IRFunction
    analyses_cache: dict[Type[IRAnalysis], IRAnalysis]

    def __init__(self, function: IRFunction, settings: Optional[Settings] = None):
        self.function = function
        self.settings = get_global_settings() if settings is None else settings
        self.analyses_cache = {}
        self._lock = threading.RLock()

    def _cached(self, analysis_cls: Type[T]) -> Optional[T]:
        ret = self.analyses_cache.get(analysis_cls)
        if ret is not None:
            assert isinstance(ret, analysis_cls)
        return ret  # type: ignore

    def request_analysis(self, analysis_cls: Type[T], *args, **kwargs) -> T:
        """
        Return the analysis for this function, building it if needed.
        Extra arguments are passed to `analyze()` on a fresh build only.
        """
        assert issubclass(analysis_cls, IRAnalysis), f"not an analysis: {analysis_cls}"
        ret = self._cached(analysis_cls)
        if ret is not None:
            return ret

        with self._lock:
            # another thread may have finished it while we waited
            ret = self._cached(analysis_cls)
            if ret is not None:
                return ret

            name = analysis_cls.__name__
            logger.debug("computing %s for %s", name, self.function.name)
            analysis = analysis_cls(self, self.function)
            with timeit(f"{name} for {self.function.name}", logger):
                analysis.analyze(*args, **kwargs)
            self.analyses_cache[analysis_cls] = analysis
            return analysis

    def has_analysis(self, analysis_cls: Type[IRAnalysis]) -> bool:
        return analysis_cls in self.analyses_cache

