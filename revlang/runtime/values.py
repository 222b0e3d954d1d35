"""Runtime value representations produced by the evaluator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Union

from ..parser import ast

if TYPE_CHECKING:  # pragma: no cover
	from ..interp import Environment
	from . import HostFunction


@dataclass(eq=False)
class Closure:
	"""A function body plus the environment it was defined in."""

	decl: Union[ast.FunctionDecl, ast.Closure]
	env: "Environment"
	name: str = "<anonymous>"

	@property
	def arity(self) -> int:
		return len(self.decl.params)


@dataclass(eq=False)
class StructInstance:
	# Non-owning: the declaration outlives every instance of it.
	decl: ast.StructDecl
	fields: Dict[str, object]
	# Shared with the constructor that built the instance.
	methods: Dict[str, "Closure"] = field(default_factory=dict)

	@property
	def type_name(self) -> str:
		return self.decl.name


@dataclass(eq=False)
class StructConstructor:
	decl: ast.StructDecl
	# Methods resolved once per declaration, shared by all instances.
	methods: Dict[str, Closure]

	@property
	def init(self) -> Optional[Closure]:
		"""The user-defined `init` constructor, if the struct declares one."""
		return self.methods.get("init")

	@property
	def arity(self) -> int:
		if self.init is not None:
			return self.init.arity
		return len(self.decl.fields)


@dataclass(eq=False)
class BoundMethod:
	receiver: StructInstance
	method: Closure

	@property
	def arity(self) -> int:
		return self.method.arity


def display(value: object) -> str:
	"""Render a runtime value the way `print` shows it."""
	if value is None:
		return "nil"
	if value is True:
		return "true"
	if value is False:
		return "false"
	if isinstance(value, str):
		return value
	if isinstance(value, (int, float)):
		return str(value)
	if isinstance(value, StructInstance):
		inner = ", ".join(f"{name}: {_display_nested(v)}" for name, v in value.fields.items())
		return f"{value.type_name} {{ {inner} }}" if inner else f"{value.type_name} {{}}"
	if isinstance(value, Closure):
		return f"<fn {value.name}>"
	if isinstance(value, BoundMethod):
		return f"<method {value.receiver.type_name}.{value.method.name}>"
	if isinstance(value, StructConstructor):
		return f"<struct {value.decl.name}>"
	name = getattr(value, "name", None)
	if name is not None:
		return f"<host fn {name}>"
	return repr(value)


def _display_nested(value: object) -> str:
	if isinstance(value, str):
		return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
	return display(value)


RuntimeValue = Union[None, bool, int, float, str, Closure, StructInstance, StructConstructor, BoundMethod, "HostFunction"]

__all__ = [
	"BoundMethod",
	"Closure",
	"RuntimeValue",
	"StructConstructor",
	"StructInstance",
	"display",
]
