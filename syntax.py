"""
Scalite abstract syntax
Immutable tree representation of types, expressions, bindings and definitions
"""

from typing import Any, Optional, Tuple, Union
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for diagnostics"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


# ============================================================================
# TYPES
# ============================================================================

@dataclass(frozen=True)
class SimpleType:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class FunctionType:
    param_types: Tuple['Type', ...]
    result_type: 'Type'

    def __str__(self) -> str:
        if len(self.param_types) == 1 and isinstance(self.param_types[0], SimpleType):
            return f"{self.param_types[0]} => {self.result_type}"
        params = ", ".join(str(t) for t in self.param_types)
        return f"({params}) => {self.result_type}"


Type = Union[SimpleType, FunctionType]


# ============================================================================
# EXPRESSIONS
# ============================================================================
# Spans are positional metadata only: they never take part in equality.

@dataclass(frozen=True)
class Ident:
    name: str
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Literal:
    value: Any
    type_name: str
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Apply:
    fn: 'Expr'
    args: Tuple['Expr', ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Selection:
    receiver: 'Expr'
    member: str
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class If:
    cond: 'Expr'
    then_branch: 'Expr'
    else_branch: 'Expr'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Block:
    defs: Tuple['Def', ...]
    result: 'Expr'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Binding:
    name: str
    declared_type: Optional[Type] = None
    is_field: bool = False
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class FunctionLiteral:
    bindings: Tuple[Binding, ...]
    body: 'Expr'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class OperatorApply:
    left: 'Expr'
    op: str
    right: 'Expr'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class New:
    class_name: str
    args: Tuple['Expr', ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Require:
    """Construction guard: require(condition[, message])"""
    condition: 'Expr'
    message: Optional['Expr'] = None
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


Expr = Union[Ident, Literal, Apply, Selection, If, Block, FunctionLiteral,
             OperatorApply, New, Require]


# ============================================================================
# DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class ValDef:
    name: str
    expr: Expr
    declared_type: Optional[Type] = None
    is_private: bool = False
    is_override: bool = False
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class FunDef:
    name: str
    param_lists: Tuple[Tuple[Binding, ...], ...]
    result_type: Optional[Type]
    body: Expr
    is_private: bool = False
    is_override: bool = False
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ClassDef:
    name: str
    ctor_params: Tuple[Binding, ...]
    members: Tuple[Union[ValDef, FunDef], ...]
    require_guards: Tuple[Require, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)

    def find_member(self, name: str) -> Optional[Union[ValDef, FunDef]]:
        """Member table lookup by name"""
        for member in self.members:
            if member.name == name:
                return member
        return None

    def find_field(self, name: str) -> Optional[Binding]:
        """Constructor parameter declared with `val`"""
        for param in self.ctor_params:
            if param.name == name and param.is_field:
                return param
        return None


Def = Union[ValDef, FunDef, ClassDef]

Statement = Union[Def, Expr]

Program = Tuple[Statement, ...]


def curry_body(param_lists: Tuple[Tuple[Binding, ...], ...], body: Expr) -> Expr:
    """Desugar trailing parameter lists into nested function literals

    def f(a)(b)(c) = e  ==>  f's first list is (a); its body is (b) => (c) => e
    """
    for params in reversed(param_lists):
        body = FunctionLiteral(params, body, getattr(body, 'span', None))
    return body
