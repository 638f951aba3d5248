import pytest

from irdeps.analysis import ControlDependenceAnalysis, IRAnalysesCache
from irdeps.utils import OrderedSet
from tests.ir_utils import get_blocks, make_cache


def test_single_block():
    fn, ac = make_cache("entry:\n    stop")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert len(cdg.control_dependencies(fn.entry)) == 0
    assert len(cdg.control_dependents(fn.entry)) == 0
    assert cdg.num_edges == 0


def test_straight_line_chain():
    source = "\n".join(f"b{i}:\n    jmp @b{i + 1}" for i in range(5)) + "\nb5:\n    stop"
    _, ac = make_cache(source)
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.num_edges == 0
    assert list(cdg.edges()) == []


def test_diamond():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @then, @else
    then:
        jmp @join
    else:
        jmp @join
    join:
        stop
    """
    fn, ac = make_cache(source)
    entry, then, else_, join = get_blocks(fn, "entry", "then", "else", "join")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.control_dependencies(then) == OrderedSet({entry})
    assert cdg.control_dependencies(else_) == OrderedSet({entry})
    assert len(cdg.control_dependencies(join)) == 0
    assert len(cdg.control_dependencies(entry)) == 0
    assert list(cdg.control_dependents(entry)) == [then, else_]

    assert cdg.is_control_dependent(then, entry)
    assert not cdg.is_control_dependent(join, entry)
    assert cdg.num_edges == 2


def test_if_without_else():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @then, @join
    then:
        jmp @join
    join:
        stop
    """
    fn, ac = make_cache(source)
    entry, then, join = get_blocks(fn, "entry", "then", "join")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.control_dependencies(then) == OrderedSet({entry})
    assert len(cdg.control_dependencies(join)) == 0


def test_nested_branches():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @outer, @join
    outer:
        %y = calldataload 32
        jnz %y, @inner, @outer_join
    inner:
        jmp @outer_join
    outer_join:
        jmp @join
    join:
        stop
    """
    fn, ac = make_cache(source)
    entry, outer, inner, outer_join, join = get_blocks(
        fn, "entry", "outer", "inner", "outer_join", "join"
    )
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.control_dependencies(outer) == OrderedSet({entry})
    assert cdg.control_dependencies(outer_join) == OrderedSet({entry})
    assert cdg.control_dependencies(inner) == OrderedSet({outer})
    assert len(cdg.control_dependencies(join)) == 0

    assert not cdg.is_control_dependent(inner, entry)
    assert cdg.is_transitively_control_dependent(inner, entry)
    assert not cdg.is_transitively_control_dependent(join, entry)


def test_loop_header_depends_on_itself():
    source = """
    entry:
        jmp @loop
    loop:
        %c = calldataload 0
        jnz %c, @loop, @exit
    exit:
        stop
    """
    fn, ac = make_cache(source)
    entry, loop, exit_ = get_blocks(fn, "entry", "loop", "exit")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.control_dependencies(loop) == OrderedSet({loop})
    assert cdg.is_control_dependent(loop, loop)
    assert len(cdg.control_dependencies(exit_)) == 0
    assert len(cdg.control_dependencies(entry)) == 0
    # terminates despite the cycle
    assert cdg.is_transitively_control_dependent(loop, loop)
    assert not cdg.is_transitively_control_dependent(loop, entry)


def test_branch_into_infinite_loop():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @l1, @done
    l1:
        jmp @l2
    l2:
        jmp @l1
    done:
        stop
    """
    fn, ac = make_cache(source)
    entry, l1, l2, done = get_blocks(fn, "entry", "l1", "l2", "done")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    # the whole loop runs only if the branch enters it
    assert cdg.control_dependencies(l1) == OrderedSet({entry})
    assert cdg.control_dependencies(l2) == OrderedSet({entry})
    assert len(cdg.control_dependencies(done)) == 0
    assert list(cdg.control_dependents(entry)) == [l1, l2]


def test_branch_inside_infinite_loop():
    source = """
    entry:
        jmp @loop
    loop:
        %c = calldataload 0
        jnz %c, @a, @b
    a:
        jmp @loop
    b:
        jmp @loop
    """
    fn, ac = make_cache(source)
    entry, loop, a, b = get_blocks(fn, "entry", "loop", "a", "b")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    for bb in (loop, a, b):
        assert cdg.control_dependencies(bb) == OrderedSet({loop}), bb.label
    assert len(cdg.control_dependencies(entry)) == 0


def test_while_loop():
    source = """
    entry:
        jmp @header
    header:
        %c = calldataload 0
        jnz %c, @body, @exit
    body:
        %d = calldataload 32
        jnz %d, @skip, @header
    skip:
        jmp @header
    exit:
        stop
    """
    fn, ac = make_cache(source)
    header, body, skip, exit_ = get_blocks(fn, "header", "body", "skip", "exit")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert cdg.control_dependencies(body) == OrderedSet({header})
    assert cdg.control_dependencies(header) == OrderedSet({header})
    assert cdg.control_dependencies(skip) == OrderedSet({body})
    assert len(cdg.control_dependencies(exit_)) == 0


def test_switch():
    source = """
    entry:
        %s = calldataload 0
        switch %s, @default, 1, @one, 2, @two
    default:
        jmp @join
    one:
        jmp @join
    two:
        stop
    join:
        stop
    """
    fn, ac = make_cache(source)
    entry, default, one, two, join = get_blocks(fn, "entry", "default", "one", "two", "join")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    for bb in (default, one, two, join):
        assert cdg.control_dependencies(bb) == OrderedSet({entry}), bb.label


def test_edges_and_graph():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @then, @join
    then:
        jmp @join
    join:
        stop
    """
    fn, ac = make_cache(source)
    entry, then = get_blocks(fn, "entry", "then")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    assert list(cdg.edges()) == [(then, entry)]
    dot = cdg.as_graph()
    assert dot.startswith("digraph control_dependence_graph {")
    assert '"entry" -> "then"' in dot


def test_unknown_block():
    fn, ac = make_cache("entry:\n    stop")
    other, _ = make_cache("other:\n    stop")
    cdg = ac.request_analysis(ControlDependenceAnalysis)

    with pytest.raises(KeyError):
        cdg.control_dependencies(other.entry)


def test_rebuild_is_identical():
    source = """
    entry:
        %x = calldataload 0
        jnz %x, @a, @b
    a:
        %y = calldataload 32
        jnz %y, @b, @c
    b:
        jmp @c
    c:
        stop
    """
    fn, ac = make_cache(source)
    cdg1 = ac.request_analysis(ControlDependenceAnalysis)
    cdg2 = IRAnalysesCache(fn).request_analysis(ControlDependenceAnalysis)

    assert cdg1 is not cdg2
    assert list(cdg1.edges()) == list(cdg2.edges())
