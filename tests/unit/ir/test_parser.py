import pytest

from irdeps.exceptions import IRParseError
from irdeps.ir.basicblock import IRLabel, IRLiteral, IRVariable
from irdeps.ir.parser import parse_ir
from tests.ir_utils import parse_from_basic_block, parse_function


def test_single_function():
    source = """
    function main {
    entry:
        %1 = calldataload 0
        %2 = add %1, 1
        sstore 0, %2
        stop
    }
    """
    ctx = parse_ir(source)

    assert list(ctx.functions.keys()) == [IRLabel("main")]
    fn = ctx.get_function("main")
    assert ctx.entry_function is fn
    assert fn.num_basic_blocks == 1

    bb = fn.entry
    assert bb.label == IRLabel("entry")
    assert [inst.opcode for inst in bb.instructions] == ["calldataload", "add", "sstore", "stop"]
    assert bb.is_terminated


def test_operands_are_stored_reversed():
    fn = parse_function(
        """
    entry:
        %2 = add %1, 1
        sstore 0, %2
        stop
    """
    )
    add, sstore, _ = fn.entry.instructions

    # the rightmost operand is the top of the stack
    assert add.operands == [IRLiteral(1), IRVariable("%1")]
    assert add.output == IRVariable("%2")
    assert sstore.operands == [IRVariable("%2"), IRLiteral(0)]
    assert sstore.output is None


def test_branch_operands_keep_their_order():
    fn = parse_function(
        """
    entry:
        %c = calldataload 0
        jnz %c, @then, @else
    then:
        stop
    else:
        %s = calldataload 32
        switch %s, @then, 1, @else, 2, @then
    """
    )
    jnz = fn.get_basic_block("entry").last_instruction
    assert jnz.operands == [IRVariable("c"), IRLabel("then"), IRLabel("else")]

    switch = fn.get_basic_block("else").last_instruction
    assert switch.operands == [
        IRVariable("s"),
        IRLabel("then"),
        IRLiteral(1),
        IRLabel("else"),
        IRLiteral(2),
        IRLabel("then"),
    ]


def test_phi():
    fn = parse_function(
        """
    entry:
        jmp @join
    join:
        %x = phi @entry, %a, @join, %b
        stop
    """
    )
    phi = fn.get_basic_block("join").instructions[0]
    assert phi.is_phi
    assert list(phi.phi_operands) == [
        (IRLabel("entry"), IRVariable("a")),
        (IRLabel("join"), IRVariable("b")),
    ]


def test_literals_and_assignments():
    fn = parse_function(
        """
    entry:
        %a = 0x20
        %b = -1
        %c = %a
        stop
    """
    )
    a, b, c, _ = fn.entry.instructions
    assert a.opcode == "store" and a.operands == [IRLiteral(32)]
    assert b.operands == [IRLiteral(-1)]
    assert c.opcode == "store" and c.operands == [IRVariable("a")]


def test_comments_are_ignored():
    fn = parse_function(
        """
    ; leading comment
    entry:  # label comment
        %a = calldataload 0  // trailing comment
        stop
    """
    )
    assert len(fn.entry.instructions) == 2


def test_escaped_labels():
    fn = parse_function(
        """
    "entry block":
        jmp @"exit block"
    "exit block":
        stop
    """
    )
    assert fn.has_basic_block("exit block")
    assert fn.entry.last_instruction.operands == [IRLabel("exit block")]


def test_next_variable_after_parse():
    fn = parse_function(
        """
    entry:
        %7 = calldataload 0
        stop
    """
    )
    assert fn.get_next_variable() == IRVariable("%8")


def test_multiple_functions():
    source = """
    function f {
    entry:
        stop
    }

    function g {
    entry:
        stop
    }
    """
    ctx = parse_ir(source)
    assert [fn.name.value for fn in ctx.get_functions()] == ["f", "g"]
    assert ctx.entry_function is ctx.get_function("f")


def test_empty_function_body():
    ctx = parse_ir("function f {\n}")
    fn = ctx.get_function("f")
    assert fn.num_basic_blocks == 0


def test_roundtrip():
    source = """
    entry:
        %1 = calldataload 0
        %2 = mload 64
        jnz %1, @then, @else
    then:
        mstore 64, %2
        jmp @else
    else:
        %3 = phi @entry, %1, @then, %2
        return 0, %3
    """
    ctx = parse_from_basic_block(source)
    ctx2 = parse_ir(str(ctx))
    assert str(ctx) == str(ctx2)


def test_syntax_error():
    with pytest.raises(IRParseError) as e:
        parse_from_basic_block(
            """
    entry:
        %1 = = 1
        stop
    """
        )
    assert e.value.line is not None
    assert e.value.column is not None
    assert str(e.value).startswith(f"line {e.value.line}:")


def test_duplicate_block():
    with pytest.raises(IRParseError, match="duplicate basic block"):
        parse_from_basic_block(
            """
    entry:
        jmp @entry
    entry:
        stop
    """
        )


def test_duplicate_function():
    with pytest.raises(IRParseError, match="duplicate function"):
        parse_ir("function f {\nentry:\n    stop\n}\nfunction f {\nentry:\n    stop\n}")


def test_instruction_before_label():
    with pytest.raises(IRParseError) as e:
        parse_ir("function f {\n    stop\n}")
    assert e.value.hint is not None
    assert "before any label" in str(e.value)


def test_instruction_classification():
    fn = parse_function(
        """
    entry:
        %c = calldataload 0
        jnz %c, @then, @else
    then:
        sstore 0, %c
        return 0, 32
    else:
        revert 0, 0
    """
    )
    load, jnz = fn.entry.instructions
    sstore, ret = fn.get_basic_block("then").instructions
    (revert,) = fn.get_basic_block("else").instructions

    assert jnz.is_branch and jnz.is_bb_terminator
    assert not load.is_branch and not load.is_bb_terminator
    assert ret.is_return and not ret.is_branch
    assert revert.is_unreachable and revert.is_bb_terminator
    assert sstore.is_memory_access and not sstore.is_bb_terminator
    assert list(jnz.get_label_operands()) == [IRLabel("then"), IRLabel("else")]
    assert list(sstore.get_input_variables()) == [IRVariable("c")]
