# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from revlang import analyze
from revlang.core.types import INT, function_of

SHAPES = """
trait Shape {
	fn area() -> float
	fn name() -> str
}
struct Rect: Shape {
	w: float
	h: float
	fn area() -> float { return self.w * self.h }
	fn name() -> str { return "rect" }
}
"""


def test_missing_trait_method():
	res = analyze("trait Printable { fn show() }\nstruct Point: Printable { x: int, y: int }")
	assert [d.code for d in res.diagnostics] == ["E_MISSING_TRAIT_METHOD"]
	assert "'show'" in res.diagnostics[0].message
	assert "'Printable'" in res.diagnostics[0].message


def test_trait_satisfied_by_unannotated_method(codes):
	src = "trait Printable { fn show() }\nstruct Point: Printable {\n\tx: int\n\tfn show() { print(self.x) }\n}"
	assert codes(src) == []


def test_trait_method_signature_mismatch(codes):
	src = "trait T { fn value() -> float }\nstruct S: T {\n\tfn value() -> int { return 1 }\n}"
	assert codes(src) == ["E_TRAIT_METHOD_SIGNATURE"]


def test_struct_conforming_to_trait_flows_into_trait_slot(codes):
	src = SHAPES + "fn describe(s: Shape) -> float { return s.area() }\nprint(describe(Rect(3.0, 4.0)))"
	assert codes(src) == []


def test_conformance_is_nominal(codes):
	src = SHAPES + (
		"struct Square {\n\tside: float\n\tfn area() -> float { return self.side * self.side }\n"
		'\tfn name() -> str { return "square" }\n}\n'
		"fn describe(s: Shape) -> float { return s.area() }\n"
		"print(describe(Square(2.0)))"
	)
	assert codes(src) == ["E_CALL_ARG_TYPE"]


def test_unknown_trait(codes):
	assert codes("struct S: Missing { x: int }") == ["E_UNKNOWN_TYPE"]


def test_constructor_checks_fields(codes):
	assert codes("struct P { x: int, y: int }\nvar p = P(1)") == ["E_CALL_ARITY"]
	assert codes('struct P { x: int, y: int }\nvar p = P(1, "s")') == ["E_CALL_ARG_TYPE"]


def test_unannotated_field_is_fixed_by_construction(codes):
	assert codes("struct Box { v }\nvar b = Box(3)\nprint(b.v + 1)") == []


def test_field_access(codes):
	assert codes("struct P { x: int }\nvar p = P(1)\nprint(p.y)") == ["E_UNKNOWN_FIELD"]
	assert codes("struct P { x: int }\nvar p = P(1)\np.x = 2") == []
	assert codes('struct P { x: int }\nvar p = P(1)\np.x = "s"') == ["E_NOT_ASSIGNABLE"]


def test_nilable_access_requires_check(codes):
	base = "struct P { x: int }\n"
	assert codes(base + "fn f(p: P?) -> int { return p.x }") == ["E_NILABLE_ACCESS"]
	assert codes(base + "fn f(p: P?) -> int { return p!.x }") == []
	assert codes(base + "fn f(p: P?) -> int {\n\tif p == nil { return 0 }\n\treturn p.x\n}") == []


def test_duplicate_declarations(codes):
	assert codes("var a = 1\nvar a = 2") == ["E_DUPLICATE_DECLARATION"]
	assert codes("fn f() {}\nfn f() {}") == ["E_DUPLICATE_DECLARATION"]
	assert codes("struct P { x: int, x: int }") == ["E_DUPLICATE_DECLARATION"]


def test_shadowing_in_inner_block(codes):
	assert codes('var a = 1\n{\n\tvar a = "s"\n\tprint(a)\n}\nprint(a + 1)') == []


def test_struct_and_trait_names_are_unique(codes):
	assert codes("struct A { x: int }\n{\n\tstruct A { y: int }\n}") == ["E_DUPLICATE_DECLARATION"]


def test_immutable_bindings(codes):
	res = analyze("fn f() {}\nf = 1")
	assert [d.code for d in res.diagnostics] == ["E_ASSIGN_IMMUTABLE"]
	assert res.diagnostics[0].message == "cannot assign to function 'f'"
	assert codes("for i in 0..3 { i = 5 }") == ["E_ASSIGN_IMMUTABLE"]


def test_return_and_self_placement(codes):
	assert codes("return 1") == ["E_RETURN_OUTSIDE_FUNCTION"]
	assert codes("print(self)") == ["E_SELF_OUTSIDE_METHOD"]


def test_range_bounds_must_be_int(codes):
	assert codes("for i in 0..2.5 { print(i) }") == ["E_TYPE_MISMATCH"]


def test_functions_are_hoisted():
	src = """
print(is_even(10))
fn is_even(n: int) -> bool {
	if n == 0 { return true }
	return is_odd(n - 1)
}
fn is_odd(n: int) -> bool {
	if n == 0 { return false }
	return is_even(n - 1)
}
"""
	assert analyze(src).diagnostics == []


def test_mutual_recursion_without_annotations():
	src = """
fn even(n: int) {
	if n == 0 { return true }
	return odd(n - 1)
}
fn odd(n: int) {
	if n == 0 { return false }
	return even(n - 1)
}
var r = even(4)
"""
	res = analyze(src)
	assert res.diagnostics == []
	assert str(res.program.statements[2].resolved) == "Bool"


def test_recursion_before_any_return_is_uninferred(codes):
	assert codes("fn f(n: int) {\n\treturn f(n - 1)\n}") == ["E_UNINFERRED"]


def test_closure_captures_enclosing_local():
	src = """
fn make() -> fn() -> int {
	var n = 0
	return fn() -> int {
		n = n + 1
		return n
	}
}
"""
	res = analyze(src)
	assert res.diagnostics == []
	make = res.program.statements[0]
	closure = make.body.statements[1].value
	assert closure.captures == ["n"]
	assert make.captures == []
	assert make.signature == function_of([], function_of([], INT))


def test_globals_are_not_captures():
	res = analyze("var g = 1\nfn h() -> int { return g }")
	assert res.program.statements[1].captures == []


def test_nested_closure_capture_propagates_outward():
	src = """
fn outer() -> fn() -> fn() -> int {
	var n = 1
	return fn() -> fn() -> int {
		return fn() -> int { return n }
	}
}
"""
	res = analyze(src)
	assert res.diagnostics == []
	middle = res.program.statements[0].body.statements[1].value
	inner = middle.body.statements[0].value
	assert middle.captures == ["n"]
	assert inner.captures == ["n"]
