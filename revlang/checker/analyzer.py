# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Static analysis: scopes, type inference, flow narrowing, trait conformance.

The analyzer walks a parsed Program once, annotating every expression with
its type (`Expr.ty`), marking Int->Float coercions (`Expr.widen`), recording
closure captures and resolving declaration signatures. All problems found in
the pass are collected as diagnostics; an expression that already produced
one is typed ERROR so follow-on checks stay quiet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

from ..config import PipelineConfig
from ..core.diagnostics import PHASE_CHECKER, Diagnostic, DiagnosticSink
from ..core.types import (
	BOOL,
	ERROR,
	FLOAT,
	INT,
	NIL,
	PRIMITIVES,
	STR,
	UNKNOWN,
	Type,
	TypeKind,
	alias_hint,
	function_of,
	join_numeric,
	nilable_of,
	struct_of,
	trait_of,
)
from ..parser import ast
from ..runtime import DEFAULT_HOST, HostFunction, host_signatures
from . import scope as sc
from .flow import (
	Facts,
	FlowState,
	assigned_names,
	assigns_field,
	closure_assigned_names,
	intersect,
	join,
	merge,
	stmt_terminates,
)
from .scope import FunctionContext, Scope, Symbol
from .traits import StructInfo, TraitInfo, check_conformance

logger = logging.getLogger(__name__)

ARITHMETIC_OPS = frozenset({"+", "-", "*", "/", "%"})
ORDERING_OPS = frozenset({"<", "<=", ">", ">="})
EQUALITY_OPS = frozenset({"==", "!="})

_DECLARATIONS = (ast.FunctionDecl, ast.StructDecl, ast.TraitDecl)

# Name of the optional user-defined constructor method.
INIT = "init"

_SYMBOL_DESCRIPTIONS = {
	sc.FUNCTION: "function",
	sc.STRUCT: "struct",
	sc.SELF: "receiver",
	sc.LOOP: "loop variable",
	sc.HOST: "host function",
}


@dataclass
class AnalysisResult:
	program: ast.Program
	diagnostics: List[Diagnostic] = field(default_factory=list)
	warnings: List[Diagnostic] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not any(d.is_error for d in self.diagnostics)


@dataclass
class _Pending:
	"""A hoisted function or method whose body has not been analyzed yet."""

	decl: ast.FunctionDecl
	scope: Scope
	symbol: Optional[Symbol] = None
	struct: Optional[StructInfo] = None


@dataclass
class AnalyzerState:
	"""
	Snapshot of the persistent (global) analysis state.

	Symbols and struct registries are shared with the live analyzer and get
	updated in place (a `var` typed by its first assignment, an unannotated
	field typed by its first construction), so their current types are copied
	out as well.
	"""

	symbols: Dict[str, Symbol]
	types: Dict[str, Type]
	structs: Dict[str, StructInfo]
	traits: Dict[str, TraitInfo]
	flow: FlowState
	symbol_types: Dict[Symbol, Type]
	members: Dict[str, Tuple[Dict[str, Type], Dict[str, Type], List[str]]]
	struct_decls: Dict[int, StructInfo]


class Analyzer:
	"""
	Type/flow analyzer.

	One instance may analyze several programs in sequence (REPL style): the
	global scope, struct and trait registries persist between calls.
	"""

	def __init__(self, config: PipelineConfig | None = None, host: Mapping[str, HostFunction] | None = None) -> None:
		self.config = config or PipelineConfig()
		self.host = DEFAULT_HOST if host is None else host
		self.sink = DiagnosticSink(PHASE_CHECKER, file=self.config.filename)
		self.structs: Dict[str, StructInfo] = {}
		self.traits: Dict[str, TraitInfo] = {}
		self.prelude = Scope(None, sc.PRELUDE)
		for name, sig in host_signatures(self.host).items():
			self.prelude.declare(Symbol(name, sig, False, sc.HOST, self.prelude))
		self.globals = Scope(self.prelude, sc.GLOBAL)
		self.scope = self.globals
		self.function: Optional[FunctionContext] = None
		self.flow = FlowState()
		self._struct_decls: Dict[int, StructInfo] = {}
		self._pending: Dict[int, _Pending] = {}
		self._active: Dict[int, FunctionContext] = {}
		# Structs whose method bodies wait until a construction fixes their
		# unannotated fields.
		self._deferred: Dict[int, StructInfo] = {}
		self._unstable: Set[str] = set()
		self._toplevel: Optional[ast.Stmt] = None

	# -- entry points -----------------------------------------------------

	def analyze(self, program: ast.Program) -> AnalysisResult:
		self.sink = DiagnosticSink(PHASE_CHECKER, file=self.config.filename)
		self.scope = self.globals
		self.function = None
		self._toplevel = None
		try:
			self._unstable = closure_assigned_names(program)
			self._statements(program.statements)
		except RecursionError:
			loc = self._toplevel.loc if self._toplevel is not None else None
			self._error("E_NESTING_TOO_DEEP", "program is nested too deeply to analyze", loc)
		finally:
			self.scope = self.globals
			self.function = None
			self._pending.clear()
			self._deferred.clear()
			self._active.clear()
		errors = self.sink.errors
		warnings = self.sink.warnings if self.config.warnings else []
		logger.debug("analysis finished: %d errors, %d warnings", len(errors), len(warnings))
		return AnalysisResult(program=program, diagnostics=errors, warnings=warnings)

	def snapshot(self) -> AnalyzerState:
		return AnalyzerState(
			symbols=dict(self.globals.symbols),
			types=dict(self.globals.types),
			structs=dict(self.structs),
			traits=dict(self.traits),
			flow=self.flow.copy(),
			symbol_types={sym: sym.type for sym in self.globals.symbols.values()},
			members={
				name: (dict(info.fields), dict(info.methods), list(info.traits))
				for name, info in self.structs.items()
			},
			struct_decls=dict(self._struct_decls),
		)

	def restore(self, state: AnalyzerState) -> None:
		self.globals.symbols = dict(state.symbols)
		self.globals.types = dict(state.types)
		self.structs = dict(state.structs)
		self.traits = dict(state.traits)
		self.flow = state.flow.copy()
		for sym, ty in state.symbol_types.items():
			sym.type = ty
			if isinstance(sym.decl, ast.VarDecl):
				sym.decl.resolved = ty
		for name, (fields, methods, traits) in state.members.items():
			info = self.structs[name]
			info.fields, info.methods, info.traits = dict(fields), dict(methods), list(traits)
		self._struct_decls = dict(state.struct_decls)

	# -- diagnostics helpers ------------------------------------------------

	def _error(self, code: str, message: str, loc: object, notes: List[str] | None = None) -> Type:
		self.sink.error(code, message, loc, notes or ())
		return ERROR

	def _warn(self, code: str, message: str, loc: object) -> None:
		self.sink.warning(code, message, loc)

	def _declare(self, sym: Symbol) -> None:
		clash = self.scope.declare(sym)
		if clash is not None:
			notes = []
			if clash.loc is not None:
				notes.append(f"previous declaration at line {clash.loc.line}")
			self._error(
				"E_DUPLICATE_DECLARATION",
				f"'{sym.name}' is already declared in this scope",
				sym.loc,
				notes,
			)

	# -- types ---------------------------------------------------------------

	def _resolve_type(self, texpr: ast.TypeExpr) -> Type:
		if texpr.name == "fn":
			params = [self._resolve_type(a) for a in texpr.args]
			ret = self._resolve_type(texpr.ret) if texpr.ret is not None else NIL
			ty = function_of(params, ret)
		else:
			found = PRIMITIVES.get(texpr.name) or self.scope.lookup_type(texpr.name)
			if found is None:
				hint = alias_hint(texpr.name)
				notes = [f"did you mean '{hint}'?"] if hint else []
				return self._error("E_UNKNOWN_TYPE", f"unknown type '{texpr.name}'", texpr.loc, notes)
			ty = found
		return nilable_of(ty) if texpr.nilable else ty

	def _coerce(self, src: Type, dst: Type) -> Optional[bool]:
		"""None when `src` cannot flow into `dst`; otherwise whether Int->Float widening applies."""
		if src.is_error or dst.is_error or dst.kind is TypeKind.ANY:
			return False
		if src == dst:
			return False
		if src.kind is TypeKind.INT and dst.kind is TypeKind.FLOAT:
			return True
		if dst.kind is TypeKind.NILABLE:
			if src.kind is TypeKind.NIL:
				return False
			return self._coerce(src.inner, dst.inner)
		if dst.kind is TypeKind.TRAIT and src.kind is TypeKind.STRUCT:
			info = self.structs.get(src.name)
			if info is not None and info.conforms_to(dst.name):
				return False
		return None

	def _flow_into(self, expr: ast.Expr, src: Type, dst: Type, code: str, message: str) -> None:
		widen = self._coerce(src, dst)
		if widen is None:
			self._error(code, message, expr.loc)
		elif widen:
			expr.widen = True

	# -- hoisting ---------------------------------------------------------

	def _hoist(self, stmts: List[ast.Stmt]) -> None:
		"""Bind the block's fn/struct/trait names, then resolve their signatures."""
		for stmt in stmts:
			if isinstance(stmt, ast.TraitDecl):
				self._declare_trait(stmt)
			elif isinstance(stmt, ast.StructDecl):
				self._declare_struct(stmt)
			elif isinstance(stmt, ast.FunctionDecl):
				sym = Symbol(stmt.name, function_of((), UNKNOWN), False, sc.FUNCTION, self.scope, stmt.loc, stmt)
				self._declare(sym)
				self._pending[id(stmt)] = _Pending(stmt, self.scope, symbol=sym)
		for stmt in stmts:
			if isinstance(stmt, ast.TraitDecl):
				self._resolve_trait(stmt)
			elif isinstance(stmt, ast.StructDecl):
				self._resolve_struct(stmt)
			elif isinstance(stmt, ast.FunctionDecl):
				pending = self._pending[id(stmt)]
				pending.symbol.type = self._resolve_signature(stmt.params, stmt.return_type, None)
				stmt.signature = pending.symbol.type

	def _type_name_taken(self, name: str, loc: ast.Located) -> bool:
		if name in PRIMITIVES or name in self.structs or name in self.traits:
			self._error("E_DUPLICATE_DECLARATION", f"type '{name}' is already declared", loc)
			return True
		return False

	def _declare_trait(self, decl: ast.TraitDecl) -> None:
		if self._type_name_taken(decl.name, decl.loc):
			return
		ty = trait_of(decl.name)
		self.traits[decl.name] = TraitInfo(decl.name, decl, ty)
		self.scope.types[decl.name] = ty

	def _declare_struct(self, decl: ast.StructDecl) -> None:
		if self._type_name_taken(decl.name, decl.loc):
			return
		ty = struct_of(decl.name)
		info = StructInfo(decl.name, decl, ty)
		self.structs[decl.name] = info
		self._struct_decls[id(decl)] = info
		self.scope.types[decl.name] = ty
		self._declare(Symbol(decl.name, ty, False, sc.STRUCT, self.scope, decl.loc, decl))

	def _resolve_signature(self, params: List[ast.Param], ret: Optional[ast.TypeExpr], default_ret: Optional[Type]) -> Type:
		param_types = [self._resolve_type(p.type_expr) for p in params]
		if ret is not None:
			ret_type = self._resolve_type(ret)
		else:
			ret_type = UNKNOWN if default_ret is None else default_ret
		return function_of(param_types, ret_type)

	def _resolve_trait(self, decl: ast.TraitDecl) -> None:
		info = self.traits.get(decl.name)
		if info is None or info.decl is not decl:
			return
		for sig in decl.methods:
			if sig.name in info.methods:
				self._error(
					"E_DUPLICATE_DECLARATION",
					f"trait '{decl.name}' declares method '{sig.name}' more than once",
					sig.loc,
				)
				continue
			# Trait methods have no body to infer from: no annotation means nil.
			info.methods[sig.name] = self._resolve_signature(sig.params, sig.return_type, NIL)

	def _resolve_struct(self, decl: ast.StructDecl) -> None:
		info = self._struct_decls.get(id(decl))
		if info is None:
			return
		for fld in decl.fields:
			if fld.name in info.fields:
				self._error(
					"E_DUPLICATE_DECLARATION",
					f"struct '{decl.name}' declares field '{fld.name}' more than once",
					fld.loc,
				)
				continue
			info.fields[fld.name] = self._resolve_type(fld.type_expr) if fld.type_expr is not None else UNKNOWN
		for ref in decl.traits:
			ty = self.scope.lookup_type(ref.name)
			if ty is None:
				hint = alias_hint(ref.name)
				self._error("E_UNKNOWN_TYPE", f"unknown trait '{ref.name}'", ref.loc, [f"did you mean '{hint}'?"] if hint else None)
			elif ty.kind is not TypeKind.TRAIT:
				self._error("E_TYPE_MISMATCH", f"'{ref.name}' is not a trait", ref.loc)
			elif ref.name in info.traits:
				self._error("E_DUPLICATE_DECLARATION", f"trait '{ref.name}' is listed more than once", ref.loc)
			else:
				info.traits.append(ref.name)
		for method in decl.methods:
			if method.name in info.methods or method.name in info.fields:
				self._error(
					"E_DUPLICATE_DECLARATION",
					f"struct '{decl.name}' already has a member named '{method.name}'",
					method.loc,
				)
				continue
			if method.name == INIT:
				if method.return_type is not None:
					self._error(
						"E_RETURN_FROM_INIT",
						f"constructor '{decl.name}.init' cannot declare a return type",
						method.return_type.loc,
					)
				info.methods[method.name] = self._resolve_signature(method.params, None, NIL)
			else:
				info.methods[method.name] = self._resolve_signature(method.params, method.return_type, None)
			method.signature = info.methods[method.name]
			self._pending[id(method)] = _Pending(method, self.scope, struct=info)

	# -- function bodies ------------------------------------------------------

	def _check_function(
		self,
		decl: ast.FunctionDecl | ast.Closure,
		name: str,
		signature: Type,
		defining: Scope,
		struct: Optional[StructInfo] = None,
	) -> Type:
		"""Analyze a function/method/closure body; returns its final function type."""
		ret = signature.ret
		annotated = ret is not None and ret.kind is not TypeKind.UNKNOWN
		ctx = FunctionContext(
			name=name,
			return_type=ret if annotated else UNKNOWN,
			annotated=annotated,
			parent=defining.function,
			struct_name=struct.name if struct is not None else None,
			constructor=struct is not None and isinstance(decl, ast.FunctionDecl) and decl.name == INIT,
		)
		fn_scope = Scope(defining, sc.FUNCTION_SCOPE, ctx)
		saved = (self.scope, self.function, self.flow)
		self.scope, self.function, self.flow = fn_scope, ctx, FlowState()
		self._active[id(decl)] = ctx
		try:
			if struct is not None:
				self._declare(Symbol("self", struct.type, False, sc.SELF, fn_scope, decl.loc))
			for param, ty in zip(decl.params, signature.params):
				self._declare(Symbol(param.name, ty, True, sc.PARAM, fn_scope, param.loc))
			terminated = self._statements(decl.body.statements)
		finally:
			del self._active[id(decl)]
			self.scope, self.function, self.flow = saved
		if ctx.return_type.kind is TypeKind.UNKNOWN:
			ctx.return_type = NIL
		final = ctx.return_type
		if not terminated and not final.is_nilable and not final.is_error:
			self._error(
				"E_MISSING_RETURN",
				f"'{name}' can reach the end of its body without returning a value of type '{final}'",
				decl.loc,
			)
		decl.captures = list(ctx.captures)
		return function_of(signature.params, final)

	def _finish_function(self, decl: ast.FunctionDecl) -> None:
		pending = self._pending.pop(id(decl), None)
		if pending is None:
			return
		if pending.struct is not None:
			info = pending.struct
			label = f"{info.name}.{decl.name}"
			final = self._check_function(decl, label, info.methods[decl.name], pending.scope, info)
			info.methods[decl.name] = final
			if decl.name == INIT:
				self._check_init_fields(info, decl)
		else:
			final = self._check_function(decl, decl.name, pending.symbol.type, pending.scope)
			pending.symbol.type = final
		decl.signature = final

	def _settle_return(self, sig: Type, decl: Optional[object]) -> Type:
		"""Make an inferred return type available, analyzing the body early if needed."""
		if sig.kind is not TypeKind.FUNCTION or sig.ret.kind is not TypeKind.UNKNOWN or decl is None:
			return sig
		key = id(decl)
		if key in self._pending:
			self._finish_function(decl)
			return decl.signature
		ctx = self._active.get(key)
		if ctx is not None:
			return function_of(sig.params, ctx.return_type)
		return sig

	# -- statements -----------------------------------------------------------

	def _statements(self, stmts: List[ast.Stmt]) -> bool:
		"""Analyze a statement list in the current scope; True when it never falls through."""
		self._hoist(stmts)
		terminated = False
		warned = False
		for stmt in stmts:
			if self.scope is self.globals:
				self._toplevel = stmt
			if terminated and not warned and not isinstance(stmt, _DECLARATIONS):
				self._warn("W_UNREACHABLE", "unreachable statement", stmt.loc)
				warned = True
			if self._check_stmt(stmt):
				terminated = True
		for stmt in stmts:
			info = self._deferred.get(id(stmt))
			if info is not None:
				self._finish_struct(info)
		return terminated

	def _check_block(self, block: ast.Block, scope: Optional[Scope] = None) -> bool:
		outer = self.scope
		self.scope = scope if scope is not None else Scope(outer, sc.BLOCK, outer.function)
		entry = dict(self.flow.facts)
		try:
			terminated = self._statements(block.statements)
		finally:
			self.scope = outer
		# Narrowings made inside the block end with it.
		self.flow.facts = {sym: ty for sym, ty in entry.items() if self.flow.facts.get(sym) == ty}
		return terminated

	def _check_stmt(self, stmt: ast.Stmt) -> bool:
		if isinstance(stmt, ast.VarDecl):
			self._check_var_decl(stmt)
			return False
		if isinstance(stmt, ast.ExprStmt):
			self._check_expr(stmt.value)
			return False
		if isinstance(stmt, ast.Block):
			return self._check_block(stmt)
		if isinstance(stmt, ast.IfStmt):
			return self._check_if(stmt)
		if isinstance(stmt, ast.WhileStmt):
			return self._check_while(stmt)
		if isinstance(stmt, ast.ForStmt):
			self._check_for(stmt)
			return False
		if isinstance(stmt, ast.ReturnStmt):
			self._check_return(stmt)
			return True
		if isinstance(stmt, ast.FunctionDecl):
			self._finish_function(stmt)
			return False
		if isinstance(stmt, ast.StructDecl):
			self._check_struct(stmt)
			return False
		if isinstance(stmt, ast.TraitDecl):
			return False
		raise TypeError(f"unhandled statement node {type(stmt).__name__}")

	def _check_var_decl(self, stmt: ast.VarDecl) -> None:
		declared = self._resolve_type(stmt.type_expr) if stmt.type_expr is not None else None
		sym = Symbol(stmt.name, declared or UNKNOWN, True, sc.VAR, self.scope, stmt.loc, stmt)
		self._declare(sym)
		if stmt.value is not None:
			sym.initializing = True
			try:
				value = self._check_expr(stmt.value)
			finally:
				sym.initializing = False
			if declared is not None:
				self._flow_into(
					stmt.value,
					value,
					declared,
					"E_TYPE_MISMATCH",
					f"type mismatch: expected '{declared}', got '{value}'",
				)
			else:
				sym.type = value
		elif declared is None or not declared.is_nilable:
			self.flow.unassigned.add(sym)
		stmt.resolved = sym.type

	def _check_if(self, stmt: ast.IfStmt) -> bool:
		when_true, when_false = self._check_condition(stmt.condition)
		self._require_bool(stmt.condition, "condition")
		entry = self.flow
		self.flow = entry.copy()
		self.flow.apply(when_true)
		then_term = self._check_block(stmt.then_block)
		then_flow = self.flow
		self.flow = entry.copy()
		self.flow.apply(when_false)
		else_term = False
		if isinstance(stmt.else_branch, ast.IfStmt):
			else_term = self._check_if(stmt.else_branch)
		elif isinstance(stmt.else_branch, ast.Block):
			else_term = self._check_block(stmt.else_branch)
		else_flow = self.flow
		live = [f for f, term in ((then_flow, then_term), (else_flow, else_term)) if not term]
		self.flow = join(live) if live else then_flow
		return not live

	def _check_while(self, stmt: ast.WhileStmt) -> bool:
		# Facts about anything the body assigns cannot be trusted on later iterations.
		self.flow.forget(assigned_names(stmt.body))
		entry = self.flow
		when_true, when_false = self._check_condition(stmt.condition)
		self._require_bool(stmt.condition, "condition")
		self.flow = entry.copy()
		self.flow.apply(when_true)
		body_term = self._check_block(stmt.body, Scope(self.scope, sc.LOOP_SCOPE, self.scope.function))
		exits = [entry] if body_term else [entry, self.flow]
		self.flow = join(exits)
		self.flow.apply(when_false)
		return stmt_terminates(stmt)

	def _check_for(self, stmt: ast.ForStmt) -> None:
		for bound in (stmt.start, stmt.end):
			ty = self._check_expr(bound)
			if not ty.is_error and ty.kind is not TypeKind.INT:
				self._error("E_TYPE_MISMATCH", f"range bound must be 'Int', got '{ty}'", bound.loc)
		self.flow.forget(assigned_names(stmt.body))
		entry = self.flow
		loop_scope = Scope(self.scope, sc.LOOP_SCOPE, self.scope.function)
		loop_scope.declare(Symbol(stmt.var, INT, False, sc.LOOP, loop_scope, stmt.loc))
		self.flow = entry.copy()
		body_term = self._check_block(stmt.body, loop_scope)
		self.flow = join([entry] if body_term else [entry, self.flow])

	def _check_return(self, stmt: ast.ReturnStmt) -> None:
		value = self._check_expr(stmt.value) if stmt.value is not None else NIL
		ctx = self.function
		if ctx is None:
			self._error("E_RETURN_OUTSIDE_FUNCTION", "'return' outside of a function", stmt.loc)
			return
		if ctx.constructor:
			self._error("E_RETURN_FROM_INIT", f"cannot return from constructor '{ctx.name}'", stmt.loc)
			return
		if ctx.return_type.kind is TypeKind.UNKNOWN:
			ctx.return_type = value
			return
		widen = self._coerce(value, ctx.return_type)
		if widen is None:
			self._error(
				"E_RETURN_TYPE_MISMATCH",
				f"'{ctx.name}' must return '{ctx.return_type}', got '{value}'",
				stmt.value.loc if stmt.value is not None else stmt.loc,
			)
		elif widen and stmt.value is not None:
			stmt.value.widen = True

	def _check_struct(self, stmt: ast.StructDecl) -> None:
		info = self._struct_decls.get(id(stmt))
		if info is None:
			return
		if _init_decl(stmt) is None and any(ty.kind is TypeKind.UNKNOWN for ty in info.fields.values()):
			self._deferred[id(stmt)] = info
			return
		self._finish_struct(info)

	def _finish_struct(self, info: StructInfo) -> None:
		"""Analyze the method bodies (constructor first), then check trait conformance."""
		self._deferred.pop(id(info.decl), None)
		init = _init_decl(info.decl)
		if init is not None:
			self._finish_function(init)
		for method in info.decl.methods:
			self._finish_function(method)
		for ref in info.decl.traits:
			trait = self.traits.get(ref.name)
			if trait is not None and ref.name in info.traits:
				check_conformance(info, trait, ref, self.structs, self.sink)

	def _check_init_fields(self, info: StructInfo, init: ast.FunctionDecl) -> None:
		for fld in info.decl.fields:
			ty = info.fields.get(fld.name)
			if ty is None or ty.is_nilable or ty.is_error:
				continue
			if assigns_field(init.body.statements, fld.name):
				continue
			self._error(
				"E_UNINITIALIZED",
				f"field '{info.name}.{fld.name}' is not assigned on every path through '{info.name}.init'",
				fld.loc,
			)

	# -- conditions and narrowing ---------------------------------------------

	def _require_bool(self, expr: ast.Expr, what: str) -> None:
		ty = expr.ty
		if ty is not None and not ty.is_error and ty.kind is not TypeKind.BOOL:
			self._error("E_TYPE_MISMATCH", f"{what} must be 'Bool', got '{ty}'", expr.loc)

	def _narrowable(self, expr: ast.Expr) -> Optional[Symbol]:
		if not isinstance(expr, ast.Name):
			return None
		sym = self.scope.lookup(expr.ident)
		if sym is None or sym.kind not in (sc.VAR, sc.PARAM) or sym.name in self._unstable:
			return None
		return sym

	def _check_condition(self, expr: ast.Expr) -> Tuple[Facts, Facts]:
		"""Analyze `expr`; return the facts that hold when it is true and when it is false."""
		if isinstance(expr, ast.Logical):
			left_true, left_false = self._check_condition(expr.left)
			self._require_bool(expr.left, f"operand of '{expr.op}'")
			saved = dict(self.flow.facts)
			self.flow.apply(left_true if expr.op == "and" else left_false)
			right_true, right_false = self._check_condition(expr.right)
			self._require_bool(expr.right, f"operand of '{expr.op}'")
			self.flow.facts = saved
			self.flow.forget(assigned_names(expr.right))
			expr.ty = BOOL
			if expr.op == "and":
				return merge(left_true, right_true), intersect(left_false, right_false)
			return intersect(left_true, right_true), merge(left_false, right_false)
		if isinstance(expr, ast.Unary) and expr.op == "!":
			when_true, when_false = self._check_condition(expr.operand)
			self._require_bool(expr.operand, "operand of '!'")
			expr.ty = BOOL
			return when_false, when_true
		self._check_expr(expr)
		if isinstance(expr, ast.Binary) and expr.op in EQUALITY_OPS:
			return self._nil_test_facts(expr)
		if isinstance(expr, ast.IsExpr):
			return self._is_facts(expr)
		return {}, {}

	def _nil_test_facts(self, expr: ast.Binary) -> Tuple[Facts, Facts]:
		if _is_nil_literal(expr.right):
			sym = self._narrowable(expr.left)
		elif _is_nil_literal(expr.left):
			sym = self._narrowable(expr.right)
		else:
			return {}, {}
		if sym is None:
			return {}, {}
		current = self.flow.type_of(sym)
		if current.kind is not TypeKind.NILABLE:
			return {}, {}
		not_nil = {sym: current.inner}
		is_nil = {sym: NIL}
		if expr.op == "!=":
			return not_nil, is_nil
		return is_nil, not_nil

	def _is_facts(self, expr: ast.IsExpr) -> Tuple[Facts, Facts]:
		sym = self._narrowable(expr.value)
		target = expr.target
		if sym is None or target is None or target.is_error:
			return {}, {}
		current = self.flow.type_of(sym)
		when_true: Facts = {} if target == current else {sym: target}
		when_false: Facts = {}
		if current.kind is TypeKind.NILABLE:
			if target == current.inner:
				when_false = {sym: NIL}
			elif target.kind is TypeKind.NIL:
				when_false = {sym: current.inner}
		return when_true, when_false

	# -- expressions ----------------------------------------------------------

	def _check_expr(self, expr: ast.Expr) -> Type:
		ty = self._infer(expr)
		expr.ty = ty
		return ty

	def _infer(self, expr: ast.Expr) -> Type:
		if isinstance(expr, ast.Literal):
			return _literal_type(expr.value)
		if isinstance(expr, ast.Name):
			return self._check_name(expr)
		if isinstance(expr, ast.SelfExpr):
			sym = self.scope.lookup("self")
			if sym is None or sym.kind != sc.SELF:
				return self._error("E_SELF_OUTSIDE_METHOD", "'self' can only be used inside a method", expr.loc)
			self._note_capture(sym)
			return sym.type
		if isinstance(expr, ast.Binary):
			return self._check_binary(expr)
		if isinstance(expr, ast.Logical):
			self._check_condition(expr)
			return BOOL
		if isinstance(expr, ast.Unary):
			return self._check_unary(expr)
		if isinstance(expr, ast.IsExpr):
			return self._check_is(expr)
		if isinstance(expr, ast.Unwrap):
			return self._check_unwrap(expr)
		if isinstance(expr, ast.Assign):
			return self._check_assign(expr)
		if isinstance(expr, ast.Call):
			return self._check_call(expr)
		if isinstance(expr, ast.FieldAccess):
			obj = self._check_expr(expr.value)
			return self._member_type(obj, expr.attr, expr.loc)
		if isinstance(expr, ast.MethodCall):
			receiver = self._check_expr(expr.receiver)
			method = self._member_type(receiver, expr.method, expr.loc)
			return self._check_arguments(expr, expr.args, method, f"{receiver}.{expr.method}")
		if isinstance(expr, ast.Closure):
			signature = self._resolve_signature(expr.params, expr.return_type, None)
			return self._check_function(expr, "<closure>", signature, self.scope)
		raise TypeError(f"unhandled expression node {type(expr).__name__}")

	def _note_capture(self, sym: Symbol) -> None:
		"""Record `sym` as captured by every function between here and its owner."""
		if sym.scope.is_toplevel:
			return
		owner = sym.scope.function
		ctx = self.function
		while ctx is not None and ctx is not owner:
			ctx.capture(sym.name)
			ctx = ctx.parent

	def _check_name(self, expr: ast.Name) -> Type:
		sym = self.scope.lookup(expr.ident)
		if sym is None:
			notes = []
			if self.scope.lookup_type(expr.ident) is not None:
				notes.append(f"'{expr.ident}' is a type, not a value")
			return self._error("E_UNDEFINED_SYMBOL", f"undefined symbol '{expr.ident}'", expr.loc, notes)
		if sym.initializing:
			return self._error("E_OWN_INITIALIZER", f"cannot read '{sym.name}' in its own initializer", expr.loc)
		self._note_capture(sym)
		if sym.kind == sc.STRUCT:
			return self._constructor_type(self._struct_decls[id(sym.decl)])
		if sym.kind == sc.FUNCTION:
			return self._settle_return(sym.type, sym.decl)
		if sym in self.flow.unassigned:
			return self._error("E_UNINITIALIZED", f"'{sym.name}' is used before it is assigned", expr.loc)
		ty = self.flow.type_of(sym)
		if ty.kind is TypeKind.UNKNOWN:
			return self._error(
				"E_UNINFERRED",
				f"the type of '{sym.name}' is not known here; assign it first or add a type annotation",
				expr.loc,
			)
		return ty

	@staticmethod
	def _constructor_type(info: StructInfo) -> Type:
		if INIT in info.methods:
			return function_of(info.methods[INIT].params, info.type)
		return function_of(info.fields.values(), info.type)

	def _check_binary(self, expr: ast.Binary) -> Type:
		left = self._check_expr(expr.left)
		right = self._check_expr(expr.right)
		if left.is_error or right.is_error:
			return ERROR
		op = expr.op
		if op in ARITHMETIC_OPS:
			if left.is_numeric and right.is_numeric:
				result = join_numeric(left, right)
				if result is FLOAT:
					expr.left.widen = left.kind is TypeKind.INT
					expr.right.widen = right.kind is TypeKind.INT
				return result
			if op == "+" and left == STR and right == STR:
				return STR
			return self._invalid_operator(expr, left, right)
		if op in ORDERING_OPS:
			if left.is_numeric and right.is_numeric:
				self._check_mixed_compare(expr, left, right)
				return BOOL
			if left == STR and right == STR:
				return BOOL
			return self._invalid_operator(expr, left, right)
		if op in EQUALITY_OPS:
			if self._coerce(left, right) is None and self._coerce(right, left) is None:
				return self._invalid_operator(expr, left, right)
			if left.is_numeric and right.is_numeric:
				self._check_mixed_compare(expr, left, right)
			return BOOL
		raise TypeError(f"unhandled binary operator {op!r}")

	def _check_mixed_compare(self, expr: ast.Binary, left: Type, right: Type) -> None:
		if left.kind is not right.kind:
			self._warn("W_INT_FLOAT_COMPARE", f"comparing '{left}' with '{right}'", expr.loc)

	def _invalid_operator(self, expr: ast.Binary, left: Type, right: Type) -> Type:
		return self._error(
			"E_INVALID_OPERATOR",
			f"operator '{expr.op}' is not defined for '{left}' and '{right}'",
			expr.loc,
		)

	def _check_unary(self, expr: ast.Unary) -> Type:
		if expr.op == "!":
			self._check_condition(expr)
			operand = expr.operand.ty
			if operand is None or operand.is_error or operand.kind is not TypeKind.BOOL:
				return ERROR
			return BOOL
		operand = self._check_expr(expr.operand)
		if operand.is_error:
			return ERROR
		if not operand.is_numeric:
			return self._error("E_INVALID_OPERATOR", f"operator '-' is not defined for '{operand}'", expr.loc)
		return operand

	def _check_is(self, expr: ast.IsExpr) -> Type:
		value = self._check_expr(expr.value)
		target = self._resolve_type(expr.type_expr)
		expr.target = target
		if value.is_error or target.is_error or value.kind is TypeKind.ANY:
			return BOOL
		if self._coerce(target, value) is not False:
			self._error("E_TYPE_MISMATCH", f"a value of type '{value}' is never a '{target}'", expr.loc)
		return BOOL

	def _check_unwrap(self, expr: ast.Unwrap) -> Type:
		value = self._check_expr(expr.value)
		if value.is_error:
			return ERROR
		if value.kind is TypeKind.NILABLE:
			return value.inner
		if value.kind is TypeKind.NIL:
			return self._error("E_TYPE_MISMATCH", "cannot unwrap 'nil'", expr.loc)
		return self._error("E_TYPE_MISMATCH", f"cannot unwrap non-nilable type '{value}'", expr.loc)

	def _check_assign(self, expr: ast.Assign) -> Type:
		value = self._check_expr(expr.value)
		target = expr.target
		if isinstance(target, ast.FieldAccess):
			target.ty = self._assign_field(target, value, expr.value)
			return target.ty
		sym = self.scope.lookup(target.ident)
		if sym is None:
			target.ty = self._error("E_UNDEFINED_SYMBOL", f"undefined symbol '{target.ident}'", target.loc)
			return ERROR
		self._note_capture(sym)
		if not sym.mutable:
			what = _SYMBOL_DESCRIPTIONS.get(sym.kind, "binding")
			target.ty = self._error("E_ASSIGN_IMMUTABLE", f"cannot assign to {what} '{sym.name}'", target.loc)
			return ERROR
		if sym.type.kind is TypeKind.UNKNOWN:
			sym.type = value
			if isinstance(sym.decl, ast.VarDecl):
				sym.decl.resolved = value
		else:
			self._flow_into(
				expr.value,
				value,
				sym.type,
				"E_NOT_ASSIGNABLE",
				f"cannot assign '{value}' to '{sym.name}' of type '{sym.type}'",
			)
		self.flow.assigned(sym)
		target.ty = sym.type
		return sym.type

	def _assign_field(self, target: ast.FieldAccess, value: Type, value_expr: ast.Expr) -> Type:
		obj = self._check_expr(target.value)
		if obj.is_error:
			return ERROR
		if obj.is_nilable:
			return self._nilable_access(obj, target.attr, target.loc)
		info = self.structs.get(obj.name) if obj.kind is TypeKind.STRUCT else None
		if info is None:
			return self._error("E_UNKNOWN_FIELD", f"type '{obj}' has no fields", target.loc)
		if target.attr in info.methods:
			return self._error("E_ASSIGN_IMMUTABLE", f"cannot assign to method '{info.name}.{target.attr}'", target.loc)
		field_type = info.fields.get(target.attr)
		if field_type is None:
			return self._error("E_UNKNOWN_FIELD", f"struct '{info.name}' has no field '{target.attr}'", target.loc)
		if field_type.kind is TypeKind.UNKNOWN:
			info.fields[target.attr] = value
			return value
		self._flow_into(
			value_expr,
			value,
			field_type,
			"E_NOT_ASSIGNABLE",
			f"cannot assign '{value}' to field '{info.name}.{target.attr}' of type '{field_type}'",
		)
		return field_type

	def _nilable_access(self, obj: Type, attr: str, loc: ast.Located) -> Type:
		return self._error(
			"E_NILABLE_ACCESS",
			f"cannot access '{attr}' on a value of type '{obj}' that may be nil",
			loc,
			["compare it against nil first, or unwrap it with '!'"],
		)

	def _member_type(self, obj: Type, attr: str, loc: ast.Located) -> Type:
		if obj.is_error:
			return ERROR
		if obj.is_nilable:
			return self._nilable_access(obj, attr, loc)
		if obj.kind is TypeKind.STRUCT and obj.name in self.structs:
			info = self.structs[obj.name]
			if attr in info.fields:
				ty = info.fields[attr]
				if ty.kind is TypeKind.UNKNOWN:
					return self._error(
						"E_UNINFERRED",
						f"the type of field '{info.name}.{attr}' is not known here; annotate the field",
						loc,
					)
				return ty
			if attr == INIT and attr in info.methods:
				return self._error(
					"E_DIRECT_CONSTRUCTOR_CALL",
					f"constructor '{info.name}.init' cannot be called directly; use '{info.name}(...)'",
					loc,
				)
			if attr in info.methods:
				decl = next((m for m in info.decl.methods if m.name == attr), None)
				sig = self._settle_return(info.methods[attr], decl)
				return sig
			return self._error("E_UNKNOWN_FIELD", f"struct '{info.name}' has no field or method '{attr}'", loc)
		if obj.kind is TypeKind.TRAIT and obj.name in self.traits:
			trait = self.traits[obj.name]
			if attr in trait.methods:
				return trait.methods[attr]
			return self._error("E_UNKNOWN_FIELD", f"trait '{trait.name}' has no method '{attr}'", loc)
		return self._error("E_UNKNOWN_FIELD", f"type '{obj}' has no fields", loc)

	def _check_call(self, expr: ast.Call) -> Type:
		callee = expr.func
		if isinstance(callee, ast.Name):
			sym = self.scope.lookup(callee.ident)
			if sym is not None and sym.kind == sc.STRUCT and not sym.initializing:
				return self._check_construct(expr, callee, sym)
		fn_type = self._check_expr(callee)
		name = callee.ident if isinstance(callee, ast.Name) else str(fn_type)
		return self._check_arguments(expr, expr.args, fn_type, name)

	def _check_arguments(self, expr: ast.Expr, args: List[ast.Expr], fn_type: Type, name: str) -> Type:
		arg_types = [self._check_expr(arg) for arg in args]
		if fn_type.is_error:
			return ERROR
		if fn_type.is_nilable:
			return self._error(
				"E_NILABLE_ACCESS",
				f"cannot call '{name}': a value of type '{fn_type}' may be nil",
				expr.loc,
			)
		if fn_type.kind is not TypeKind.FUNCTION:
			return self._error("E_NOT_CALLABLE", f"a value of type '{fn_type}' is not callable", expr.loc)
		if len(args) != len(fn_type.params):
			self._error(
				"E_CALL_ARITY",
				f"'{name}' expects {len(fn_type.params)} argument(s), got {len(args)}",
				expr.loc,
			)
		else:
			for index, (arg, arg_type, param) in enumerate(zip(args, arg_types, fn_type.params), start=1):
				self._flow_into(
					arg,
					arg_type,
					param,
					"E_CALL_ARG_TYPE",
					f"argument {index} of '{name}': expected '{param}', got '{arg_type}'",
				)
		if fn_type.ret.kind is TypeKind.UNKNOWN:
			return self._error(
				"E_UNINFERRED",
				f"the return type of '{name}' is not known here; add a '-> type' annotation",
				expr.loc,
			)
		return fn_type.ret

	def _check_construct(self, expr: ast.Call, callee: ast.Name, sym: Symbol) -> Type:
		self._note_capture(sym)
		info = self._struct_decls[id(sym.decl)]
		callee.ty = self._constructor_type(info)
		init = _init_decl(info.decl)
		if init is not None:
			# The constructor body fixes unannotated field types.
			self._finish_function(init)
			self._check_arguments(expr, expr.args, callee.ty, info.name)
			return info.type
		arg_types = [self._check_expr(arg) for arg in expr.args]
		if len(expr.args) != len(info.fields):
			self._error(
				"E_CALL_ARITY",
				f"struct '{info.name}' has {len(info.fields)} field(s), got {len(expr.args)} argument(s)",
				expr.loc,
			)
		else:
			for (name, field_type), arg, arg_type in zip(list(info.fields.items()), expr.args, arg_types):
				if field_type.kind is TypeKind.UNKNOWN:
					info.fields[name] = arg_type
					continue
				self._flow_into(
					arg,
					arg_type,
					field_type,
					"E_CALL_ARG_TYPE",
					f"field '{name}' of '{info.name}': expected '{field_type}', got '{arg_type}'",
				)
		if id(info.decl) in self._deferred and not any(ty.kind is TypeKind.UNKNOWN for ty in info.fields.values()):
			self._finish_struct(info)
		callee.ty = self._constructor_type(info)
		return info.type


def _init_decl(decl: ast.StructDecl) -> Optional[ast.FunctionDecl]:
	return next((m for m in decl.methods if m.name == INIT), None)


def _is_nil_literal(expr: ast.Expr) -> bool:
	return isinstance(expr, ast.Literal) and expr.value is None


def _literal_type(value: object) -> Type:
	if value is None:
		return NIL
	if isinstance(value, bool):
		return BOOL
	if isinstance(value, int):
		return INT
	if isinstance(value, float):
		return FLOAT
	return STR


__all__ = ["AnalysisResult", "Analyzer", "AnalyzerState"]
