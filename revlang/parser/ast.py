from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..core.types import Type


@dataclass(frozen=True)
class Located:
    line: int
    column: int


@dataclass
class TypeExpr:
    """Type annotation as written: `int`, `Point?`, `fn(int) -> str`."""

    loc: Located
    name: str
    args: List["TypeExpr"] = field(default_factory=list)
    ret: Optional["TypeExpr"] = None
    nilable: bool = False


@dataclass
class Param:
    loc: Located
    name: str
    type_expr: TypeExpr


class Expr:
    loc: Located
    # Filled in by the analyzer.
    ty: Optional[Type] = None
    # Set when the analyzer widens an Int value into a Float slot.
    widen: bool = False


class Stmt:
    loc: Located


@dataclass
class Literal(Expr):
    loc: Located
    value: object


@dataclass
class Name(Expr):
    loc: Located
    ident: str


@dataclass
class SelfExpr(Expr):
    loc: Located


@dataclass
class Binary(Expr):
    loc: Located
    op: str
    left: Expr
    right: Expr


@dataclass
class Logical(Expr):
    loc: Located
    op: str  # "and" | "or"
    left: Expr
    right: Expr


@dataclass
class Unary(Expr):
    loc: Located
    op: str  # "-" | "!"
    operand: Expr


@dataclass
class IsExpr(Expr):
    loc: Located
    value: Expr
    type_expr: TypeExpr
    # Resolved test type, filled in by the analyzer.
    target: Optional[Type] = None


@dataclass
class Unwrap(Expr):
    """Postfix `value!`: the value with nil excluded, or a runtime fault."""

    loc: Located
    value: Expr


@dataclass
class Assign(Expr):
    loc: Located
    target: Union["Name", "FieldAccess"]
    value: Expr


@dataclass
class Call(Expr):
    loc: Located
    func: Expr
    args: List[Expr]


@dataclass
class FieldAccess(Expr):
    loc: Located
    value: Expr
    attr: str


@dataclass
class MethodCall(Expr):
    loc: Located
    receiver: Expr
    method: str
    args: List[Expr]


@dataclass
class Block(Stmt):
    loc: Located
    statements: List[Stmt]


@dataclass
class Closure(Expr):
    """Anonymous function expression `fn(x: int) -> int { ... }`."""

    loc: Located
    params: List[Param]
    return_type: Optional[TypeExpr]
    body: Block
    # Free variables resolved to enclosing (non-global) bindings.
    captures: List[str] = field(default_factory=list)


@dataclass
class VarDecl(Stmt):
    loc: Located
    name: str
    type_expr: Optional[TypeExpr]
    value: Optional[Expr]
    # Binding type after analysis.
    resolved: Optional[Type] = None


@dataclass
class ExprStmt(Stmt):
    loc: Located
    value: Expr


@dataclass
class IfStmt(Stmt):
    loc: Located
    condition: Expr
    then_block: Block
    # `else if` chains nest another IfStmt here.
    else_branch: Union[Block, "IfStmt", None] = None


@dataclass
class WhileStmt(Stmt):
    loc: Located
    condition: Expr
    body: Block


@dataclass
class ForStmt(Stmt):
    """`for name in start..end { body }`; end is exclusive."""

    loc: Located
    var: str
    start: Expr
    end: Expr
    body: Block


@dataclass
class ReturnStmt(Stmt):
    loc: Located
    value: Optional[Expr]


@dataclass
class FunctionDecl(Stmt):
    loc: Located
    name: str
    params: List[Param]
    return_type: Optional[TypeExpr]
    body: Block
    captures: List[str] = field(default_factory=list)
    # Function type after analysis.
    signature: Optional[Type] = None


@dataclass
class StructField:
    loc: Located
    name: str
    type_expr: Optional[TypeExpr]


@dataclass
class TraitRef:
    loc: Located
    name: str


@dataclass
class StructDecl(Stmt):
    loc: Located
    name: str
    traits: List[TraitRef]
    fields: List[StructField]
    methods: List[FunctionDecl]


@dataclass
class MethodSig:
    loc: Located
    name: str
    params: List[Param]
    return_type: Optional[TypeExpr]


@dataclass
class TraitDecl(Stmt):
    loc: Located
    name: str
    methods: List[MethodSig]


@dataclass
class Program:
    statements: List[Stmt]


Declaration = Union[FunctionDecl, StructDecl, TraitDecl]
