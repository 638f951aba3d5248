from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from irdeps.analysis import Analysis
from irdeps.exceptions import (
    AmbiguousFunction,
    FunctionNotFound,
    IRDepsException,
    IRParseError,
    MalformedFunction,
)
from irdeps.ir.parser import parse_ir
from irdeps.settings import Settings

__version__: str
try:
    __version__ = _version(__name__)
except PackageNotFoundError:
    from irdeps.version import version

    __version__ = version
