# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Flow-sensitive facts carried through statement analysis.

A FlowState records, for the current program point:
- narrowed types: Symbol -> Type facts established by conditions
  (`x != nil`, `x == nil`, `x is T`) and by early returns,
- unassigned symbols: declared without an initializer and not yet
  definitely assigned on every path reaching this point.

States are copied at branches and joined where control merges: a narrowing
survives a join only when every incoming path agrees on it, and a symbol
stays unassigned when any incoming path left it unassigned.
"""

from __future__ import annotations

import dataclasses
from typing import Dict, Iterable, Iterator, List, Set

from ..core.types import Type
from ..parser import ast
from .scope import Symbol

Facts = Dict[Symbol, Type]


class FlowState:
	def __init__(self, facts: Facts | None = None, unassigned: Set[Symbol] | None = None) -> None:
		self.facts: Facts = dict(facts or {})
		self.unassigned: Set[Symbol] = set(unassigned or ())

	def copy(self) -> "FlowState":
		return FlowState(self.facts, self.unassigned)

	def type_of(self, sym: Symbol) -> Type:
		return self.facts.get(sym, sym.type)

	def apply(self, facts: Facts) -> None:
		self.facts.update(facts)

	def assigned(self, sym: Symbol) -> None:
		self.facts.pop(sym, None)
		self.unassigned.discard(sym)

	def forget(self, names: Iterable[str]) -> None:
		"""Drop narrowings of every symbol called one of `names`."""
		names = set(names)
		for sym in [s for s in self.facts if s.name in names]:
			del self.facts[sym]


def join(states: List[FlowState]) -> FlowState:
	"""Merge states reaching the same point."""
	if not states:
		return FlowState()
	first = states[0]
	facts = {
		sym: ty
		for sym, ty in first.facts.items()
		if all(other.facts.get(sym) == ty for other in states[1:])
	}
	unassigned: Set[Symbol] = set()
	for state in states:
		unassigned |= state.unassigned
	return FlowState(facts, unassigned)


def intersect(left: Facts, right: Facts) -> Facts:
	return {sym: ty for sym, ty in left.items() if right.get(sym) == ty}


def merge(left: Facts, right: Facts) -> Facts:
	out = dict(left)
	out.update(right)
	return out


_NODE_TYPES = (ast.Expr, ast.Stmt, ast.StructField, ast.MethodSig)


def iter_children(node: object) -> Iterator[object]:
	"""Yield the direct AST children of `node` (expressions and statements)."""
	if not dataclasses.is_dataclass(node):
		return
	for f in dataclasses.fields(node):
		value = getattr(node, f.name)
		if isinstance(value, _NODE_TYPES):
			yield value
		elif isinstance(value, list):
			for item in value:
				if isinstance(item, _NODE_TYPES):
					yield item


def walk(node: object) -> Iterator[object]:
	stack = [node]
	while stack:
		current = stack.pop()
		yield current
		children = list(iter_children(current))
		stack.extend(reversed(children))


def _is_function(node: object) -> bool:
	return isinstance(node, (ast.FunctionDecl, ast.Closure))


def assigned_names(node: object) -> Set[str]:
	"""Names assigned anywhere under `node`, including inside nested functions."""
	return {
		n.target.ident
		for n in walk(node)
		if isinstance(n, ast.Assign) and isinstance(n.target, ast.Name)
	}


def closure_assigned_names(program: ast.Program) -> Set[str]:
	"""
	Names assigned from inside a function body to a binding the function does
	not declare itself.

	Such a variable can change whenever the function is called, so it is never
	narrowed.
	"""
	out: Set[str] = set()
	for node in walk(program):
		if not _is_function(node):
			continue
		local: Set[str] = {p.name for p in node.params}
		for inner in walk(node.body):
			if isinstance(inner, ast.VarDecl):
				local.add(inner.name)
			elif isinstance(inner, ast.FunctionDecl):
				local.add(inner.name)
		for name in assigned_names(node.body):
			if name not in local:
				out.add(name)
	return out


def assigns_field(stmts: Iterable[ast.Stmt], name: str) -> bool:
	"""
	True when every path through `stmts` assigns `self.<name>`.

	Only used on constructor bodies, which cannot return early. Loop bodies
	may not run, so assignments inside loops do not count.
	"""
	for stmt in stmts:
		if isinstance(stmt, ast.ExprStmt) and _assigns_field_expr(stmt.value, name):
			return True
		if isinstance(stmt, ast.Block) and assigns_field(stmt.statements, name):
			return True
		if isinstance(stmt, ast.IfStmt) and _if_assigns_field(stmt, name):
			return True
	return False


def _if_assigns_field(stmt: ast.IfStmt, name: str) -> bool:
	if stmt.else_branch is None or not assigns_field(stmt.then_block.statements, name):
		return False
	if isinstance(stmt.else_branch, ast.IfStmt):
		return _if_assigns_field(stmt.else_branch, name)
	return assigns_field(stmt.else_branch.statements, name)


def _assigns_field_expr(expr: ast.Expr, name: str) -> bool:
	while isinstance(expr, ast.Assign):
		target = expr.target
		if isinstance(target, ast.FieldAccess) and isinstance(target.value, ast.SelfExpr) and target.attr == name:
			return True
		expr = expr.value
	return False


def block_terminates(stmts: Iterable[ast.Stmt]) -> bool:
	"""True when control can never fall off the end of `stmts`."""
	return any(stmt_terminates(s) for s in stmts)


def stmt_terminates(stmt: ast.Stmt) -> bool:
	if isinstance(stmt, ast.ReturnStmt):
		return True
	if isinstance(stmt, ast.Block):
		return block_terminates(stmt.statements)
	if isinstance(stmt, ast.IfStmt):
		if stmt.else_branch is None:
			return False
		return block_terminates(stmt.then_block.statements) and stmt_terminates(stmt.else_branch)
	if isinstance(stmt, ast.WhileStmt):
		# No `break`: a loop on a literal `true` never falls through.
		cond = stmt.condition
		return isinstance(cond, ast.Literal) and cond.value is True
	return False


__all__ = [
	"FlowState",
	"assigned_names",
	"assigns_field",
	"block_terminates",
	"closure_assigned_names",
	"intersect",
	"iter_children",
	"join",
	"merge",
	"stmt_terminates",
	"walk",
]
