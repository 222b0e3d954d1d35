from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, TextIO

from .config import PipelineConfig
from .core.diagnostics import PHASE_RUNTIME, Diagnostic, DiagnosticSink
from .core.types import Type, TypeKind
from .parser import ast
from .runtime import DEFAULT_HOST, HostFunction, RuntimeContext
from .runtime.values import BoundMethod, Closure, StructConstructor, StructInstance, display

logger = logging.getLogger(__name__)


class RuntimeFault(Exception):
    """A runtime failure; aborts the run and becomes one runtime diagnostic."""

    def __init__(self, code: str, message: str, loc: Optional[ast.Located] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.loc = loc


class ReturnSignal(Exception):
    def __init__(self, value: object) -> None:
        self.value = value


class _Unset:
    """Marker for a declared variable that has not been assigned yet."""

    def __repr__(self) -> str:
        return "<unset>"


UNSET = _Unset()


class Environment:
    def __init__(self, parent: Environment | None = None) -> None:
        self.parent = parent
        self.values: Dict[str, object] = {}

    def define(self, name: str, value: object) -> None:
        self.values[name] = value

    def set(self, name: str, value: object) -> None:
        env: Environment | None = self
        while env is not None:
            if name in env.values:
                env.values[name] = value
                return
            env = env.parent
        raise RuntimeFault("R_UNDEFINED", f"assignment to undefined variable '{name}'")

    def get(self, name: str) -> object:
        env: Environment | None = self
        while env is not None:
            if name in env.values:
                value = env.values[name]
                if value is UNSET:
                    raise RuntimeFault("R_UNDEFINED", f"'{name}' is used before it is assigned")
                return value
            env = env.parent
        raise RuntimeFault("R_UNDEFINED", f"'{name}' is not defined at this point")


@dataclass
class Checkpoint:
    """Saved interpreter state; see `Interpreter.checkpoint`."""

    envs: Dict[Environment, Dict[str, object]] = field(default_factory=dict)
    instances: Dict[StructInstance, Dict[str, object]] = field(default_factory=dict)


@dataclass
class RunResult:
    value: object = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(d.is_error for d in self.diagnostics)


class Interpreter:
    """
    Tree-walking evaluator over an analyzed Program.

    Globals live in `self.globals` and persist across `execute` calls, which
    is what a REPL session relies on.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        host: Mapping[str, HostFunction] | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.host = DEFAULT_HOST if host is None else host
        self.stdout = stdout or sys.stdout
        self.runtime_ctx = RuntimeContext(self.stdout)
        self.prelude = Environment()
        for name, fn in self.host.items():
            self.prelude.define(name, fn)
        self.globals = Environment(self.prelude)
        self.depth = 0

    def run(self, program: ast.Program) -> RunResult:
        """Execute `program`; any failure is returned as a single runtime diagnostic."""
        sink = DiagnosticSink(PHASE_RUNTIME, file=self.config.filename)
        try:
            value = self.execute(program)
        except RuntimeFault as fault:
            sink.error(fault.code, fault.message, fault.loc)
            value = None
        except RecursionError:
            sink.error("R_STACK_OVERFLOW", "maximum recursion depth exceeded")
            value = None
        except Exception as exc:
            logger.exception("evaluator failed")
            sink.error("R_INTERNAL", f"internal evaluator error: {exc}")
            value = None
        self.depth = 0
        logger.debug("run finished: %s", "failed" if sink.has_errors() else "ok")
        return RunResult(value=value, diagnostics=sink.items)

    def execute(self, program: ast.Program) -> object:
        """Run top-level statements; returns the value of a trailing expression statement."""
        self.depth = 0
        last: object = None
        self._hoist(program.statements, self.globals)
        for stmt in program.statements:
            if isinstance(stmt, ast.ExprStmt):
                last = self._eval(stmt.value, self.globals)
            else:
                self._exec_stmt(stmt, self.globals)
                last = None
        return last

    def call(self, name: str, *args: object) -> object:
        func = self.globals.get(name)
        return self._invoke(func, list(args), None)

    def checkpoint(self) -> Checkpoint:
        """
        Copy the bindings of every environment and the fields of every struct
        instance reachable from the globals, through values, closures and
        bound methods.
        """
        saved = Checkpoint()
        pending: List[object] = [self.globals]
        while pending:
            item = pending.pop()
            if isinstance(item, Environment):
                if item is self.prelude or item in saved.envs:
                    continue
                saved.envs[item] = dict(item.values)
                pending.extend(item.values.values())
                if item.parent is not None:
                    pending.append(item.parent)
            elif isinstance(item, StructInstance):
                if item in saved.instances:
                    continue
                saved.instances[item] = dict(item.fields)
                pending.extend(item.fields.values())
            elif isinstance(item, Closure):
                pending.append(item.env)
            elif isinstance(item, BoundMethod):
                pending.append(item.receiver)
                pending.append(item.method.env)
            elif isinstance(item, StructConstructor):
                pending.extend(m.env for m in item.methods.values())
        return saved

    def rollback(self, saved: Checkpoint) -> None:
        for env, values in saved.envs.items():
            env.values = dict(values)
        for instance, fields in saved.instances.items():
            instance.fields = dict(fields)

    # -- statements ---------------------------------------------------------

    def _hoist(self, statements: List[ast.Stmt], env: Environment) -> None:
        for stmt in statements:
            if isinstance(stmt, ast.FunctionDecl):
                env.define(stmt.name, Closure(stmt, env, stmt.name))
            elif isinstance(stmt, ast.StructDecl):
                methods = {m.name: Closure(m, env, m.name) for m in stmt.methods}
                env.define(stmt.name, StructConstructor(stmt, methods))

    def _execute_block(self, statements: List[ast.Stmt], env: Environment) -> None:
        self._hoist(statements, env)
        for stmt in statements:
            self._exec_stmt(stmt, env)

    def _exec_stmt(self, stmt: ast.Stmt, env: Environment) -> None:
        if isinstance(stmt, ast.VarDecl):
            if stmt.value is not None:
                value = self._eval(stmt.value, env)
            elif stmt.resolved is not None and stmt.resolved.is_nilable:
                value = None
            else:
                value = UNSET
            env.define(stmt.name, value)
            return
        if isinstance(stmt, ast.ExprStmt):
            self._eval(stmt.value, env)
            return
        if isinstance(stmt, ast.Block):
            self._execute_block(stmt.statements, Environment(env))
            return
        if isinstance(stmt, ast.IfStmt):
            if self._eval(stmt.condition, env):
                self._execute_block(stmt.then_block.statements, Environment(env))
            elif isinstance(stmt.else_branch, ast.IfStmt):
                self._exec_stmt(stmt.else_branch, env)
            elif stmt.else_branch is not None:
                self._execute_block(stmt.else_branch.statements, Environment(env))
            return
        if isinstance(stmt, ast.WhileStmt):
            while self._eval(stmt.condition, env):
                self._execute_block(stmt.body.statements, Environment(env))
            return
        if isinstance(stmt, ast.ForStmt):
            start = self._eval(stmt.start, env)
            end = self._eval(stmt.end, env)
            for i in range(start, end):
                loop_env = Environment(env)
                loop_env.define(stmt.var, i)
                self._execute_block(stmt.body.statements, loop_env)
            return
        if isinstance(stmt, ast.ReturnStmt):
            value = self._eval(stmt.value, env) if stmt.value is not None else None
            raise ReturnSignal(value)
        if isinstance(stmt, (ast.FunctionDecl, ast.StructDecl, ast.TraitDecl)):
            return
        raise RuntimeFault("R_INTERNAL", f"unsupported statement {type(stmt).__name__}", stmt.loc)

    # -- expressions --------------------------------------------------------

    def _eval(self, expr: ast.Expr, env: Environment) -> object:
        value = self._eval_expr(expr, env)
        if expr.widen and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return value

    def _eval_expr(self, expr: ast.Expr, env: Environment) -> object:
        if isinstance(expr, ast.Literal):
            return expr.value
        if isinstance(expr, ast.Name):
            try:
                return env.get(expr.ident)
            except RuntimeFault as fault:
                fault.loc = expr.loc
                raise
        if isinstance(expr, ast.SelfExpr):
            return env.get("self")
        if isinstance(expr, ast.Binary):
            return self._eval_binary(expr, env)
        if isinstance(expr, ast.Logical):
            left = self._eval(expr.left, env)
            if expr.op == "and":
                return self._eval(expr.right, env) if left else False
            return True if left else self._eval(expr.right, env)
        if isinstance(expr, ast.Unary):
            value = self._eval(expr.operand, env)
            if expr.op == "-":
                return -value
            return not value
        if isinstance(expr, ast.IsExpr):
            return matches_type(self._eval(expr.value, env), expr.target)
        if isinstance(expr, ast.Unwrap):
            value = self._eval(expr.value, env)
            if value is None:
                raise RuntimeFault("R_NIL_DEREFERENCE", "unwrapped a nil value", expr.loc)
            return value
        if isinstance(expr, ast.Assign):
            value = self._eval(expr.value, env)
            self._assign(expr.target, value, env)
            return value
        if isinstance(expr, ast.Call):
            func = self._eval(expr.func, env)
            args = [self._eval(arg, env) for arg in expr.args]
            return self._invoke(func, args, expr.loc)
        if isinstance(expr, ast.FieldAccess):
            base = self._receiver(expr.value, expr.attr, expr.loc, env)
            return self._resolve_attr(base, expr.attr, expr.loc)
        if isinstance(expr, ast.MethodCall):
            base = self._receiver(expr.receiver, expr.method, expr.loc, env)
            args = [self._eval(arg, env) for arg in expr.args]
            method = base.methods.get(expr.method)
            if method is not None:
                return self._call_closure(method, args, expr.loc, receiver=base)
            return self._invoke(self._resolve_attr(base, expr.method, expr.loc), args, expr.loc)
        if isinstance(expr, ast.Closure):
            return Closure(expr, env)
        raise RuntimeFault("R_INTERNAL", f"unsupported expression {type(expr).__name__}", expr.loc)

    def _receiver(self, expr: ast.Expr, attr: str, loc: ast.Located, env: Environment) -> StructInstance:
        base = self._eval(expr, env)
        if base is None:
            raise RuntimeFault("R_NIL_DEREFERENCE", f"cannot access '{attr}' on nil", loc)
        if not isinstance(base, StructInstance):
            raise RuntimeFault("R_INTERNAL", f"value {display(base)} has no member '{attr}'", loc)
        return base

    def _eval_binary(self, expr: ast.Binary, env: Environment) -> object:
        op = expr.op
        left = self._eval(expr.left, env)
        right = self._eval(expr.right, env)
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise RuntimeFault("R_DIVISION_BY_ZERO", "division by zero", expr.loc)
            if isinstance(left, int) and isinstance(right, int):
                return _int_div(left, right)
            return left / right
        if op == "%":
            if right == 0:
                raise RuntimeFault("R_DIVISION_BY_ZERO", "modulo by zero", expr.loc)
            if isinstance(left, int) and isinstance(right, int):
                return left - right * _int_div(left, right)
            return math.fmod(left, right)
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right
        raise RuntimeFault("R_INTERNAL", f"unsupported operator '{op}'", expr.loc)

    def _resolve_attr(self, base: StructInstance, attr: str, loc: ast.Located) -> object:
        if attr in base.fields:
            return base.fields[attr]
        method = base.methods.get(attr)
        if method is not None:
            return BoundMethod(base, method)
        raise RuntimeFault("R_UNDEFINED", f"struct '{base.type_name}' has no member '{attr}'", loc)

    def _assign(self, target: ast.Expr, value: object, env: Environment) -> None:
        if isinstance(target, ast.Name):
            try:
                env.set(target.ident, value)
            except RuntimeFault as fault:
                fault.loc = target.loc
                raise
            return
        if isinstance(target, ast.FieldAccess):
            base = self._receiver(target.value, target.attr, target.loc, env)
            base.fields[target.attr] = value
            return
        raise RuntimeFault("R_INTERNAL", "unsupported assignment target", target.loc)

    # -- calls --------------------------------------------------------------

    def _invoke(self, func: object, args: Sequence[object], loc: Optional[ast.Located]) -> object:
        if isinstance(func, Closure):
            return self._call_closure(func, args, loc)
        if isinstance(func, BoundMethod):
            return self._call_closure(func.method, args, loc, receiver=func.receiver)
        if isinstance(func, StructConstructor):
            if len(args) != func.arity:
                raise RuntimeFault(
                    "R_ARITY",
                    f"struct '{func.decl.name}' expects {func.arity} argument(s), got {len(args)}",
                    loc,
                )
            if func.init is None:
                fields = {f.name: value for f, value in zip(func.decl.fields, args)}
                return StructInstance(func.decl, fields, func.methods)
            instance = StructInstance(func.decl, {f.name: None for f in func.decl.fields}, func.methods)
            self._call_closure(func.init, args, loc, receiver=instance)
            return instance
        if isinstance(func, HostFunction):
            if len(args) != func.arity:
                raise RuntimeFault(
                    "R_ARITY",
                    f"'{func.name}' expects {func.arity} argument(s), got {len(args)}",
                    loc,
                )
            try:
                return func.impl(self.runtime_ctx, args)
            except RuntimeFault:
                raise
            except Exception as exc:
                raise RuntimeFault("R_HOST_ERROR", f"host function '{func.name}' failed: {exc}", loc) from exc
        if func is None:
            raise RuntimeFault("R_NIL_DEREFERENCE", "called a nil value", loc)
        raise RuntimeFault("R_INTERNAL", f"value {display(func)} is not callable", loc)

    def _call_closure(
        self,
        closure: Closure,
        args: Sequence[object],
        loc: Optional[ast.Located],
        receiver: StructInstance | None = None,
    ) -> object:
        if len(args) != closure.arity:
            raise RuntimeFault(
                "R_ARITY",
                f"'{closure.name}' expects {closure.arity} argument(s), got {len(args)}",
                loc,
            )
        if self.depth >= self.config.max_call_depth:
            raise RuntimeFault(
                "R_STACK_OVERFLOW",
                f"call depth exceeded {self.config.max_call_depth} in '{closure.name}'",
                loc,
            )
        env = Environment(parent=closure.env)
        if receiver is not None:
            env.define("self", receiver)
        for param, value in zip(closure.decl.params, args):
            env.define(param.name, value)
        self.depth += 1
        try:
            self._execute_block(closure.decl.body.statements, env)
        except ReturnSignal as signal:
            return signal.value
        finally:
            self.depth -= 1
        return None


def _int_div(left: int, right: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(left) // abs(right)
    return quotient if (left >= 0) == (right >= 0) else -quotient


def matches_type(value: object, ty: Optional[Type]) -> bool:
    """Runtime check behind `value is T`."""
    if ty is None:
        return False
    kind = ty.kind
    if kind is TypeKind.NILABLE:
        return value is None or matches_type(value, ty.inner)
    if kind is TypeKind.NIL:
        return value is None
    if kind is TypeKind.BOOL:
        return isinstance(value, bool)
    if kind is TypeKind.INT:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is TypeKind.FLOAT:
        return isinstance(value, float)
    if kind is TypeKind.STRING:
        return isinstance(value, str)
    if kind is TypeKind.STRUCT:
        return isinstance(value, StructInstance) and value.type_name == ty.name
    if kind is TypeKind.TRAIT:
        return isinstance(value, StructInstance) and any(ref.name == ty.name for ref in value.decl.traits)
    if kind is TypeKind.FUNCTION:
        return isinstance(value, (Closure, BoundMethod, StructConstructor, HostFunction))
    return kind is TypeKind.ANY


__all__ = [
    "Checkpoint",
    "Environment",
    "Interpreter",
    "ReturnSignal",
    "RunResult",
    "RuntimeFault",
    "UNSET",
    "matches_type",
]
