# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Analysis-time scopes.

Scopes form a parent-linked chain; each maps identifiers to Symbols
(type + mutability) and type names to struct/trait types. A FunctionContext
tracks the enclosing function so free variables can be recorded as captures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.types import Type
from ..parser import ast

# Symbol kinds.
VAR = "var"
PARAM = "param"
FUNCTION = "function"
STRUCT = "struct"
SELF = "self"
LOOP = "loop"
HOST = "host"

# Scope kinds.
PRELUDE = "prelude"
GLOBAL = "global"
BLOCK = "block"
FUNCTION_SCOPE = "function"
LOOP_SCOPE = "loop"


@dataclass(eq=False)
class Symbol:
	name: str
	type: Type
	mutable: bool
	kind: str
	scope: "Scope"
	loc: Optional[ast.Located] = None
	# Declaring node (VarDecl, FunctionDecl, StructDecl), when there is one.
	decl: Optional[object] = None
	# True while the declaration's own initializer is being analyzed.
	initializing: bool = False


@dataclass(eq=False)
class FunctionContext:
	name: str
	# UNKNOWN until the first `return` when no annotation was written.
	return_type: Type
	annotated: bool
	parent: Optional["FunctionContext"] = None
	# Struct name when analyzing a method body.
	struct_name: Optional[str] = None
	# True inside a struct's `init` constructor.
	constructor: bool = False
	captures: List[str] = field(default_factory=list)

	def capture(self, name: str) -> None:
		if name not in self.captures:
			self.captures.append(name)


class Scope:
	def __init__(self, parent: Optional["Scope"], kind: str, function: Optional[FunctionContext] = None) -> None:
		self.parent = parent
		self.kind = kind
		self.function = function
		self.symbols: Dict[str, Symbol] = {}
		self.types: Dict[str, Type] = {}

	def lookup(self, name: str) -> Optional[Symbol]:
		scope: Optional[Scope] = self
		while scope is not None:
			sym = scope.symbols.get(name)
			if sym is not None:
				return sym
			scope = scope.parent
		return None

	def lookup_type(self, name: str) -> Optional[Type]:
		scope: Optional[Scope] = self
		while scope is not None:
			ty = scope.types.get(name)
			if ty is not None:
				return ty
			scope = scope.parent
		return None

	def declare(self, symbol: Symbol) -> Optional[Symbol]:
		"""Bind `symbol`; returns the clashing symbol if the name is taken here."""
		existing = self.symbols.get(symbol.name)
		if existing is not None:
			return existing
		self.symbols[symbol.name] = symbol
		return None

	@property
	def is_toplevel(self) -> bool:
		return self.kind in (PRELUDE, GLOBAL)


__all__ = ["FunctionContext", "Scope", "Symbol"]
