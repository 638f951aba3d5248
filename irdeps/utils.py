import contextlib
import logging
import time
from typing import Generic, TypeVar

_T = TypeVar("_T")


class OrderedSet(Generic[_T], dict[_T, None]):
    """
    Set that iterates in insertion order, built on dict keys.

    Only the operations the analyses need are provided. Equality is dict
    equality, so it ignores order.
    """

    def __init__(self, iterable=None):
        super().__init__()
        if iterable is not None:
            self.update(iterable)

    def __repr__(self):
        return "{" + ", ".join(map(repr, self)) + "}"

    def get(self, *args, **kwargs):
        raise RuntimeError("OrderedSet does not support get(), use `in`")

    def add(self, item: _T) -> None:
        self[item] = None

    def update(self, items):
        for item in items:
            self[item] = None


@contextlib.contextmanager
def timeit(msg: str, logger: logging.Logger):
    start = time.perf_counter()
    yield
    logger.debug("%s: took %.4f seconds", msg, time.perf_counter() - start)
