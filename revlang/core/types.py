"""
Type representation shared by the analyzer and the runtime host bindings.

Types are immutable values compared structurally, which gives the equality
rules the checker relies on:
- struct and trait types are nominal (same kind and name),
- function types match positionally on parameters and return type,
- a nilable type wraps exactly one non-nilable inner type.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterable, Optional, Tuple


class TypeKind(Enum):
	"""Kinds of types understood by the analyzer."""

	INT = auto()
	FLOAT = auto()
	BOOL = auto()
	STRING = auto()
	NIL = auto()
	FUNCTION = auto()
	STRUCT = auto()
	TRAIT = auto()
	NILABLE = auto()
	UNKNOWN = auto()
	# Host-only parameter type (e.g. `print` accepts anything displayable).
	ANY = auto()
	# Result of an expression that already produced a diagnostic; compatible
	# with everything so a single mistake is reported once.
	ERROR = auto()


@dataclass(frozen=True)
class Type:
	kind: TypeKind
	name: str = ""
	args: Tuple["Type", ...] = ()
	ret: Optional["Type"] = None

	def __str__(self) -> str:
		if self.kind is TypeKind.FUNCTION:
			params = ", ".join(str(a) for a in self.args)
			return f"fn({params}) -> {self.ret}"
		if self.kind is TypeKind.NILABLE:
			inner = self.args[0]
			if inner.kind is TypeKind.FUNCTION:
				return f"({inner})?"
			return f"{inner}?"
		return self.name

	@property
	def is_numeric(self) -> bool:
		return self.kind in (TypeKind.INT, TypeKind.FLOAT)

	@property
	def is_error(self) -> bool:
		return self.kind is TypeKind.ERROR

	@property
	def is_nilable(self) -> bool:
		return self.kind in (TypeKind.NILABLE, TypeKind.NIL)

	@property
	def params(self) -> Tuple["Type", ...]:
		return self.args

	@property
	def inner(self) -> "Type":
		"""The non-nil part of a nilable type (the type itself otherwise)."""
		if self.kind is TypeKind.NILABLE:
			return self.args[0]
		return self


INT = Type(TypeKind.INT, "Int")
FLOAT = Type(TypeKind.FLOAT, "Float")
BOOL = Type(TypeKind.BOOL, "Bool")
STR = Type(TypeKind.STRING, "String")
NIL = Type(TypeKind.NIL, "Nil")
UNKNOWN = Type(TypeKind.UNKNOWN, "Unknown")
ANY = Type(TypeKind.ANY, "Any")
ERROR = Type(TypeKind.ERROR, "<error>")

# Source spellings of the builtin types.
PRIMITIVES: Dict[str, Type] = {
	"int": INT,
	"float": FLOAT,
	"bool": BOOL,
	"str": STR,
	"nil": NIL,
}

_ALIAS_HINTS = {
	"Int": "int",
	"Float": "float",
	"Bool": "bool",
	"String": "str",
	"string": "str",
	"Str": "str",
	"Nil": "nil",
	"null": "nil",
	"integer": "int",
	"double": "float",
}


def alias_hint(name: str) -> Optional[str]:
	"""Suggest the builtin spelling for a common misspelling of a type name."""
	return _ALIAS_HINTS.get(name)


def function_of(params: Iterable[Type], ret: Type) -> Type:
	return Type(TypeKind.FUNCTION, "fn", tuple(params), ret)


def struct_of(name: str) -> Type:
	return Type(TypeKind.STRUCT, name)


def trait_of(name: str) -> Type:
	return Type(TypeKind.TRAIT, name)


def nilable_of(inner: Type) -> Type:
	"""Wrap `inner` as nilable; `nil?` is `nil` and `T??` is `T?`."""
	if inner.kind in (TypeKind.NIL, TypeKind.NILABLE, TypeKind.ERROR):
		return inner
	return Type(TypeKind.NILABLE, "?", (inner,))


def join_numeric(left: Type, right: Type) -> Type:
	"""Result of arithmetic on two numeric types (Int widened to Float)."""
	if left.kind is TypeKind.FLOAT or right.kind is TypeKind.FLOAT:
		return FLOAT
	return INT


__all__ = [
	"ANY",
	"BOOL",
	"ERROR",
	"FLOAT",
	"INT",
	"NIL",
	"PRIMITIVES",
	"STR",
	"Type",
	"TypeKind",
	"UNKNOWN",
	"alias_hint",
	"function_of",
	"join_numeric",
	"nilable_of",
	"struct_of",
	"trait_of",
]
