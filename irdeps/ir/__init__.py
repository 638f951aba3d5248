from irdeps.ir.basicblock import (
    IRBasicBlock,
    IRInstruction,
    IRLabel,
    IRLiteral,
    IROperand,
    IRVariable,
)
from irdeps.ir.context import IRContext
from irdeps.ir.function import IRFunction
from irdeps.ir.parser import parse_ir
