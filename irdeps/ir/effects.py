"""
Abstract state touched by each opcode.

Every opcode which reads or writes state outside of its operands is listed
in `reads` and/or `writes`. The dependence graph uses these tables as its
notion of "memory access": no attempt is made to model which addresses an
instruction touches, except for the word-sized accesses in `WORD_ACCESSES`.
"""
from enum import Flag, auto
from typing import Optional


class Effects(Flag):
    STORAGE = auto()
    TRANSIENT = auto()
    MEMORY = auto()
    MSIZE = auto()
    IMMUTABLES = auto()
    RETURNDATA = auto()
    LOG = auto()
    BALANCE = auto()
    EXTCODE = auto()


EMPTY = Effects(0)
ALL = ~EMPTY
STORAGE = Effects.STORAGE
TRANSIENT = Effects.TRANSIENT
MEMORY = Effects.MEMORY
MSIZE = Effects.MSIZE
IMMUTABLES = Effects.IMMUTABLES
RETURNDATA = Effects.RETURNDATA
LOG = Effects.LOG
BALANCE = Effects.BALANCE
EXTCODE = Effects.EXTCODE
NON_MSIZE_EFFECTS = ~MSIZE

# state which grows when touched, observable through `msize`
_EXPANDABLE = MEMORY | IMMUTABLES

_CALLS = ("call", "delegatecall", "staticcall", "create", "create2", "invoke")

reads: dict[str, Effects] = {
    # word loads
    "sload": STORAGE,
    "tload": TRANSIENT,
    "mload": MEMORY,
    "iload": IMMUTABLES,
    # bulk reads of memory
    "mcopy": MEMORY,
    "sha3": MEMORY,
    "sha3_64": MEMORY,
    "log": MEMORY,
    "return": MEMORY,
    "revert": MEMORY,
    # environment
    "msize": MSIZE,
    "returndatasize": RETURNDATA,
    "returndatacopy": RETURNDATA,
    "balance": BALANCE,
    "selfbalance": BALANCE,
    "selfdestruct": BALANCE,
    "extcodesize": EXTCODE,
    "extcodehash": EXTCODE,
    "extcodecopy": EXTCODE,
}
# a call can observe anything
reads.update(dict.fromkeys(_CALLS, ALL))

writes: dict[str, Effects] = {
    "sstore": STORAGE,
    "tstore": TRANSIENT,
    "mstore": MEMORY,
    "istore": IMMUTABLES,
    "log": LOG,
    # copies into memory
    "mcopy": MEMORY,
    "calldatacopy": MEMORY,
    "codecopy": MEMORY,
    "extcodecopy": MEMORY,
    "returndatacopy": MEMORY,
    "dload": MEMORY,
    "dloadbytes": MEMORY,
    # calls
    "call": ALL ^ IMMUTABLES,
    "delegatecall": ALL ^ IMMUTABLES,
    "staticcall": MEMORY | RETURNDATA,
    "create": ALL ^ (MEMORY | IMMUTABLES),
    "create2": ALL ^ (MEMORY | IMMUTABLES),
    "invoke": ALL,
}

for _opcode in [*reads, *writes]:
    if (reads.get(_opcode, EMPTY) | writes.get(_opcode, EMPTY)) & _EXPANDABLE:
        writes[_opcode] = writes.get(_opcode, EMPTY) | MSIZE
del _opcode

# opcodes which access exactly one word of state at a single address.
# maps opcode -> (address space, index of the address operand). operand
# indices follow the in-memory (reversed) operand order, so for
# `mstore %ptr, %val` the pointer is the *last* operand.
WORD_ACCESSES = {
    "mload": (MEMORY, 0),
    "mstore": (MEMORY, 1),
    "sload": (STORAGE, 0),
    "sstore": (STORAGE, 1),
    "tload": (TRANSIENT, 0),
    "tstore": (TRANSIENT, 1),
    "iload": (IMMUTABLES, 0),
    "istore": (IMMUTABLES, 1),
}

# size in address units of a single word access, per address space.
# memory is byte addressed; the others are addressed by slot.
WORD_SIZES = {MEMORY: 32, IMMUTABLES: 32, STORAGE: 1, TRANSIENT: 1}


def get_read_effects(opcode: str) -> Effects:
    return reads.get(opcode, EMPTY)


def get_write_effects(opcode: str) -> Effects:
    return writes.get(opcode, EMPTY)


def get_word_access(opcode: str) -> Optional[tuple[Effects, int]]:
    return WORD_ACCESSES.get(opcode)


def conflicting_effects(
    earlier_reads: Effects, earlier_writes: Effects, later_reads: Effects, later_writes: Effects
) -> Effects:
    """
    Return the state classes through which a later access may observe or
    clobber an earlier one. Two reads never conflict, and two writes which
    only collide on MSIZE do not need ordering (msize grows monotonically).
    """
    raw = earlier_writes & later_reads
    war = earlier_reads & later_writes
    waw = earlier_writes & later_writes & NON_MSIZE_EFFECTS
    return raw | war | waw
