"""
Conservative memory dependence.

There is no alias analysis: two instructions which touch the same class of
state (see `irdeps.ir.effects`) are assumed to access the same location,
unless both are single word accesses to literal addresses which cannot
overlap. The dependence graph applies this to every pair of accesses
where one can run before the other along some CFG path, so the result is
sound but imprecise: a missing edge means the two accesses provably do
not need to be ordered.
"""
from typing import Optional

import irdeps.ir.effects as effects
from irdeps.ir.basicblock import IRInstruction, IRLiteral


def _literal_address(inst: IRInstruction) -> Optional[tuple[effects.Effects, int]]:
    access = effects.get_word_access(inst.opcode)
    if access is None:
        return None
    space, index = access
    if index >= len(inst.operands):
        return None
    addr = inst.operands[index]
    if not isinstance(addr, IRLiteral):
        return None
    return space, addr.value


def provably_disjoint(inst1: IRInstruction, inst2: IRInstruction) -> bool:
    """
    Check if two instructions are word sized accesses to the same address
    space at literal addresses which do not overlap.
    """
    loc1 = _literal_address(inst1)
    loc2 = _literal_address(inst2)
    if loc1 is None or loc2 is None:
        return False

    space1, addr1 = loc1
    space2, addr2 = loc2
    if space1 != space2:
        # different spaces never overlap, the effects check covers this
        return False
    return abs(addr1 - addr2) >= effects.WORD_SIZES[space1]


def conflicting_effects(earlier: IRInstruction, later: IRInstruction) -> effects.Effects:
    return effects.conflicting_effects(
        earlier.get_read_effects(),
        earlier.get_write_effects(),
        later.get_read_effects(),
        later.get_write_effects(),
    )


def may_depend(earlier: IRInstruction, later: IRInstruction) -> bool:
    """
    Check if `later` must be ordered after `earlier` because of the state
    they access.
    """
    conflicts = conflicting_effects(earlier, later)
    if not conflicts:
        return False

    access = effects.get_word_access(earlier.opcode)
    if access is not None and (conflicts & ~access[0]) == effects.EMPTY:
        # the only conflict is in the address space of a word access, which
        # might be ruled out by the addresses themselves
        return not provably_disjoint(earlier, later)

    return True
