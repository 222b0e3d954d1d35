"""
Host bindings: the calling-convention contract for standard-library style
operations the evaluator delegates to its embedder.

A HostFunction carries a checked signature (the analyzer type-checks calls
against it exactly like a user function) and an implementation invoked as
`impl(ctx, args)`. The core never touches the console or files itself; all
output goes through `RuntimeContext.stdout`, supplied by the host.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Sequence, TextIO

from ..core.types import ANY, FLOAT, NIL, Type, function_of
from .values import BoundMethod, Closure, StructConstructor, StructInstance, display

HostImpl = Callable[["RuntimeContext", Sequence[object]], object]


@dataclass(frozen=True)
class HostFunction:
	name: str
	signature: Type
	impl: HostImpl

	@property
	def arity(self) -> int:
		return len(self.signature.params)


class RuntimeContext:
	def __init__(self, stdout: TextIO) -> None:
		self.stdout = stdout


def _host_print(ctx: RuntimeContext, args: Sequence[object]) -> object:
	ctx.stdout.write(display(args[0]) + "\n")
	ctx.stdout.flush()
	return None


def _host_clock(ctx: RuntimeContext, args: Sequence[object]) -> object:
	return time.time()


PRINT = HostFunction("print", function_of((ANY,), NIL), _host_print)
CLOCK = HostFunction("clock", function_of((), FLOAT), _host_clock)

DEFAULT_HOST: Mapping[str, HostFunction] = {
	"print": PRINT,
	"clock": CLOCK,
}


def host_signatures(host: Mapping[str, HostFunction]) -> Dict[str, Type]:
	return {name: fn.signature for name, fn in host.items()}


def host_function(name: str, params: Sequence[Type], ret: Type) -> Callable[[HostImpl], HostFunction]:
	"""Decorator turning `impl(ctx, args)` into a HostFunction binding."""

	def wrap(impl: HostImpl) -> HostFunction:
		return HostFunction(name, function_of(params, ret), impl)

	return wrap


__all__ = [
	"BoundMethod",
	"CLOCK",
	"Closure",
	"DEFAULT_HOST",
	"HostFunction",
	"PRINT",
	"RuntimeContext",
	"StructConstructor",
	"StructInstance",
	"display",
	"host_function",
	"host_signatures",
]
