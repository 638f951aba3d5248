import contextlib
import warnings
from typing import Optional

WARNINGS_CONTROL_OPTIONS = ("error", "none")


class IRDepsWarning(Warning):
    pass


# emit a warning, attributed to the caller of the function which warns
def irdeps_warn(warning: IRDepsWarning | str):
    if isinstance(warning, str):
        warning = IRDepsWarning(warning)
    warnings.warn(warning, stacklevel=3)


@contextlib.contextmanager
def warnings_filter(warnings_control: Optional[str]):
    # catch_warnings() restores the previous filters on exit
    with warnings.catch_warnings():
        set_warnings_filter(warnings_control)
        yield


def set_warnings_filter(warnings_control: Optional[str]):
    """
    Configure how analysis warnings are reported.

    "error" turns them into exceptions, "none" silences them and None
    restores the default of printing each distinct warning once.
    """
    if warnings_control == "error":
        action = "error"
    elif warnings_control == "none":
        action = "ignore"
    else:
        assert warnings_control is None, warnings_control
        action = "default"

    warnings.simplefilter(action, category=IRDepsWarning)  # type: ignore[arg-type]


class UnreachableCode(IRDepsWarning):
    """
    Basic blocks which cannot be reached from the function entry were left
    out of an analysis.
    """
