import contextlib
import dataclasses
import os
from dataclasses import dataclass
from typing import Generator, Optional


def _env_flag(name: str) -> bool:
    # flags are on unless explicitly set to something other than "1"
    return os.environ.get(name, "1") == "1"


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    return None if value is None else int(value)


# read once, at import time
IRDEPS_MAX_SEARCH_DEPTH = _env_int("IRDEPS_MAX_SEARCH_DEPTH")
IRDEPS_MEMORY_DEPENDENCE = _env_flag("IRDEPS_MEMORY_DEPENDENCE")
IRDEPS_INCLUDE_UNREACHABLE = _env_flag("IRDEPS_INCLUDE_UNREACHABLE")


@dataclass
class Settings:
    # bound on the number of edges followed by transitive dependence
    # queries. None means the search is only bounded by the graph size.
    max_search_depth: Optional[int] = None
    # add conservative memory/effect ordering edges to the dependence graph
    memory_dependence: bool = True
    # keep blocks which are unreachable from the function entry in the
    # dependence graph
    include_unreachable: bool = True

    def __post_init__(self):
        if self.max_search_depth is not None and self.max_search_depth < 0:
            raise ValueError(f"invalid max_search_depth: {self.max_search_depth}")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            max_search_depth=IRDEPS_MAX_SEARCH_DEPTH,
            memory_dependence=IRDEPS_MEMORY_DEPENDENCE,
            include_unreachable=IRDEPS_INCLUDE_UNREACHABLE,
        )

    def as_dict(self):
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(**data)


_settings = None


def get_global_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_global_settings(new_settings: Optional[Settings]) -> None:
    assert isinstance(new_settings, Settings) or new_settings is None

    global _settings
    _settings = new_settings


@contextlib.contextmanager
def anchor_settings(new_settings: Settings) -> Generator:
    """Install `new_settings` globally for the duration of the block."""
    previous = get_global_settings()
    set_global_settings(new_settings)
    try:
        yield
    finally:
        set_global_settings(previous)
