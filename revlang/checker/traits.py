# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Struct and trait registries plus trait conformance checking.

A struct conforms to a trait only when it names the trait in its header and
implements every trait method with identical parameter types and an
assignable return type. Conformance is nominal: a struct that merely has the
right methods does not satisfy a trait it did not declare.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.diagnostics import DiagnosticSink
from ..core.types import Type, TypeKind
from ..parser import ast


@dataclass
class StructInfo:
	name: str
	decl: ast.StructDecl
	type: Type
	# Field name -> type, in declaration order. UNKNOWN for an unannotated
	# field until its first construction or assignment fixes it.
	fields: Dict[str, Type] = field(default_factory=dict)
	methods: Dict[str, Type] = field(default_factory=dict)
	traits: List[str] = field(default_factory=list)

	def conforms_to(self, trait_name: str) -> bool:
		return trait_name in self.traits


@dataclass
class TraitInfo:
	name: str
	decl: ast.TraitDecl
	type: Type
	methods: Dict[str, Type] = field(default_factory=dict)


def returns_compatible(found: Type, expected: Type, structs: Dict[str, StructInfo]) -> bool:
	"""Whether an implementation returning `found` satisfies `expected`."""
	if found == expected or found.is_error or expected.is_error:
		return True
	if expected.kind is TypeKind.NILABLE:
		if found.kind is TypeKind.NIL:
			return True
		return returns_compatible(found.inner, expected.inner, structs)
	if expected.kind is TypeKind.TRAIT and found.kind is TypeKind.STRUCT:
		info = structs.get(found.name)
		return info is not None and info.conforms_to(expected.name)
	return False


def check_conformance(
	struct: StructInfo,
	trait: TraitInfo,
	ref: ast.TraitRef,
	structs: Dict[str, StructInfo],
	sink: DiagnosticSink,
) -> None:
	for name, required in trait.methods.items():
		found: Optional[Type] = struct.methods.get(name)
		if found is None:
			sink.error(
				"E_MISSING_TRAIT_METHOD",
				f"struct '{struct.name}' does not implement method '{name}' required by trait '{trait.name}'",
				ref.loc,
				notes=[f"expected: fn {name}{_render_params(required)}"],
			)
			continue
		params_ok = found.params == required.params
		ret_ok = found.ret is None or required.ret is None or returns_compatible(found.ret, required.ret, structs)
		if not (params_ok and ret_ok):
			loc = _method_loc(struct.decl, name) or ref.loc
			sink.error(
				"E_TRAIT_METHOD_SIGNATURE",
				f"method '{struct.name}.{name}' does not match its declaration in trait '{trait.name}'",
				loc,
				notes=[f"expected: {required}", f"found: {found}"],
			)


def _render_params(sig: Type) -> str:
	params = ", ".join(str(p) for p in sig.params)
	return f"({params}) -> {sig.ret}"


def _method_loc(decl: ast.StructDecl, name: str) -> Optional[ast.Located]:
	for method in decl.methods:
		if method.name == name:
			return method.loc
	return None


__all__ = ["StructInfo", "TraitInfo", "check_conformance", "returns_compatible"]
