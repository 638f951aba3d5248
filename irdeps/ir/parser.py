"""
Parser for the textual IR.

A module is a sequence of `function NAME { ... }` blocks. Inside a function,
a `label:` line opens a basic block which runs until the next label. Each
statement is either `opcode op, op, ...` or `%var = opcode op, ...`; a bare
`%var = op` is a copy and becomes the "store" opcode.
"""
import json
from typing import Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from irdeps.exceptions import IRParseError
from irdeps.ir.basicblock import (
    UNREVERSED_INSTRUCTIONS,
    IRBasicBlock,
    IRInstruction,
    IRLabel,
    IRLiteral,
    IROperand,
    IRVariable,
)
from irdeps.ir.context import IRContext
from irdeps.ir.function import IRFunction

IR_GRAMMAR = """
    %import common.DIGIT
    %import common.HEXDIGIT
    %import common.LETTER
    %import common.WS
    %import common.SIGNED_INT
    %import common.ESCAPED_STRING
    %import common.NEWLINE

    COMMENT: ";" /[^\\n]*/ | "//" /[^\\n]*/ | "#" /[^\\n]*/

    start: function*
    function: "function" name "{" body "}"

    // labels and statements form one flat list so the grammar stays LALR(1)
    body: (block_label | statement)*
    block_label: (IDENT | ESCAPED_STRING) ":" NEWLINE+
    statement: (assignment | instruction) NEWLINE+

    assignment: VAR_IDENT "=" (instruction | operand)
    instruction: IDENT operands?
    operands: operand ("," operand)*
    operand: VAR_IDENT | CONST | label_ref

    name: IDENT | ESCAPED_STRING
    label_ref: "@" (IDENT | ESCAPED_STRING)

    VAR_IDENT: "%" (DIGIT|LETTER|"_"|":")+
    IDENT: (DIGIT|LETTER|"_")+
    CONST.2: "0x" HEXDIGIT+ | SIGNED_INT

    %ignore WS
    %ignore COMMENT
    """

IR_PARSER = Lark(IR_GRAMMAR, parser="lalr")


def _unquote(token) -> str:
    # quoted names are JSON strings, the way IRLabel prints them
    s = str(token)
    return json.loads(s) if s.startswith('"') else s


class _BlockLabel(str):
    pass


def _bump_last_variable(fn: IRFunction) -> None:
    for bb in fn.get_basic_blocks():
        for inst in bb.instructions:
            if inst.output is None:
                continue
            suffix = inst.output.value[1:]
            if suffix.isdigit():
                fn.last_variable = max(fn.last_variable, int(suffix))


class IRTransformer(Transformer):
    def start(self, functions) -> IRContext:
        ctx = IRContext()
        for name, body in functions:
            if ctx.has_function(name):
                raise IRParseError(f"duplicate function {name}")
            self._build_function(ctx.create_function(name), body)
        return ctx

    def _build_function(self, fn: IRFunction, body: list) -> None:
        bb: Optional[IRBasicBlock] = None
        for item in body:
            if isinstance(item, _BlockLabel):
                if fn.has_basic_block(item):
                    raise IRParseError(f"duplicate basic block {item} in function {fn.name}")
                bb = fn.create_basic_block(str(item))
                continue

            if bb is None:
                raise IRParseError(
                    f"instruction `{item}` found before any label in function {fn.name}",
                    hint="start the function body with a label, e.g. `entry:`",
                )
            item.parent = bb
            bb.instructions.append(item)

        _bump_last_variable(fn)

    def function(self, children) -> tuple[str, list]:
        name, body = children
        return name, body

    def body(self, children) -> list:
        return children

    def block_label(self, children) -> _BlockLabel:
        return _BlockLabel(_unquote(children[0]))

    def statement(self, children) -> IRInstruction:
        return children[0]

    def assignment(self, children) -> IRInstruction:
        output, value = children
        if isinstance(value, IROperand):
            value = IRInstruction("store", [value])
        value.output = output
        return value

    def instruction(self, children) -> IRInstruction:
        opcode, *rest = children
        operands = rest[0] if rest else []
        # written top of stack first, stored top of stack last
        if opcode not in UNREVERSED_INSTRUCTIONS:
            operands = operands[::-1]
        return IRInstruction(opcode, operands)

    def operands(self, children) -> list[IROperand]:
        return children

    def operand(self, children) -> IROperand:
        return children[0]

    def name(self, children) -> str:
        return _unquote(children[0])

    def label_ref(self, children) -> IRLabel:
        return IRLabel(_unquote(children[0]))

    def VAR_IDENT(self, token) -> IRVariable:
        return IRVariable(token[1:])

    def CONST(self, token) -> IRLiteral:
        return IRLiteral(int(token, 0) if token.startswith("0x") else int(token))

    def IDENT(self, token) -> str:
        return token.value


def parse_ir(source: str) -> IRContext:
    """
    Parse a module of IR functions. Syntax errors and structural problems
    (duplicate names, instructions outside any block) raise `IRParseError`.
    """
    try:
        tree = IR_PARSER.parse(source)
    except UnexpectedInput as e:
        context = e.get_context(source).strip()
        raise IRParseError(f"unexpected input: {context!r}", line=e.line, column=e.column) from e

    try:
        return IRTransformer().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, IRParseError):
            raise e.orig_exc from None
        raise
