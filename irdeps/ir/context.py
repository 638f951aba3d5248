from typing import Iterator, Optional

from irdeps.exceptions import FunctionNotFound
from irdeps.ir.basicblock import IRLabel
from irdeps.ir.function import IRFunction


class IRContext:
    """
    A module: an ordered collection of functions.
    """

    name: Optional[str]
    functions: dict[IRLabel, IRFunction]
    entry_function: Optional[IRFunction]

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name
        self.functions = {}
        self.entry_function = None

    def add_function(self, fn: IRFunction) -> None:
        fn.ctx = self
        self.functions[fn.name] = fn
        if self.entry_function is None:
            self.entry_function = fn

    def create_function(self, name: str) -> IRFunction:
        label = IRLabel(name)
        assert label not in self.functions, f"duplicate function {label}"
        fn = IRFunction(label, self)
        self.add_function(fn)
        return fn

    def has_function(self, name: IRLabel | str) -> bool:
        if isinstance(name, str):
            name = IRLabel(name)
        return name in self.functions

    def get_function(self, name: IRLabel | str) -> IRFunction:
        if isinstance(name, str):
            name = IRLabel(name)
        if name in self.functions:
            return self.functions[name]
        raise FunctionNotFound(f"Function {name} not found in context")

    def get_functions(self) -> Iterator[IRFunction]:
        return iter(self.functions.values())

    def __repr__(self) -> str:
        return "\n\n".join(repr(fn) for fn in self.get_functions())
