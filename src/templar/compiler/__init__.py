"""Templar compiler: AST → CompiledTemplate."""

from templar.compiler.core import Compiler, compile_ast, compile_template
from templar.compiler.instructions import (
    OPCODES,
    EmitExpr,
    EmitLiteral,
    EndBlock,
    EnterCapture,
    EnterIf,
    EnterLoop,
    ExecStmt,
    Instruction,
    Jump,
)

__all__ = [
    "OPCODES",
    "Compiler",
    "EmitExpr",
    "EmitLiteral",
    "EndBlock",
    "EnterCapture",
    "EnterIf",
    "EnterLoop",
    "ExecStmt",
    "Instruction",
    "Jump",
    "compile_ast",
    "compile_template",
]
