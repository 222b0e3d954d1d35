# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Struct construction: positional fields, `init` constructors, method timing."""
from __future__ import annotations

from revlang import analyze

ACCOUNT = """
struct Account {
	owner: str
	balance
	fn init(owner: str) {
		self.owner = owner
		self.balance = 0
	}
	fn deposit(n: int) { self.balance = self.balance + n }
}
"""


def test_methods_see_fields_fixed_by_construction(codes):
	src = "struct P { x; y; fn sum() -> int { return self.x + self.y } }\nvar p = P(1, 2)\nprint(p.sum())"
	assert codes(src) == []


def test_construction_before_the_declaration_fixes_fields(codes):
	src = "var p = P(1)\nstruct P {\n\tx\n\tfn twice() -> int { return self.x * 2 }\n}\nprint(p.twice())"
	assert codes(src) == []


def test_method_on_never_constructed_struct_reports_unknown_field():
	res = analyze("struct P {\n\tx\n\tfn get() -> int { return self.x }\n}")
	assert [d.code for d in res.diagnostics] == ["E_UNINFERRED"]
	assert "'P.x'" in res.diagnostics[0].message


def test_deferred_methods_are_checked_against_traits(codes):
	src = (
		"trait Valued { fn value() -> int }\n"
		'struct Box: Valued {\n\tv\n\tfn value() -> str { return "s" }\n}\n'
		"var b = Box(1)"
	)
	assert codes(src) == ["E_TRAIT_METHOD_SIGNATURE"]


def test_init_defines_the_constructor_signature(codes):
	assert codes(ACCOUNT + 'var a = Account("ann")\na.deposit(5)\nprint(a.balance + 1)') == []
	assert codes(ACCOUNT + 'var a = Account("ann", 0)') == ["E_CALL_ARITY"]
	assert codes(ACCOUNT + "var a = Account(1)") == ["E_CALL_ARG_TYPE"]


def test_init_fixes_unannotated_field_types(codes):
	assert codes(ACCOUNT + 'var a = Account("ann")\nvar s: str = a.balance') == ["E_TYPE_MISMATCH"]


def test_return_from_init(codes):
	assert codes("struct Foo {\n\tfn init() { return 1 }\n}") == ["E_RETURN_FROM_INIT"]
	assert codes("struct Foo {\n\tfn init() { return }\n}") == ["E_RETURN_FROM_INIT"]
	assert codes("struct Foo {\n\tfn init() -> int { }\n}") == ["E_RETURN_FROM_INIT"]


def test_closure_inside_init_may_return(codes):
	src = "struct Foo {\n\tx: int\n\tfn init() {\n\t\tvar f = fn() -> int { return 1 }\n\t\tself.x = f()\n\t}\n}"
	assert codes(src) == []


def test_init_must_assign_every_non_nilable_field(codes):
	base = "struct P {\n\tx: int\n\tlabel: str?\n\tfn init(x: int, flag: bool) {\n%s\n\t}\n}"
	assert codes(base % "\t\tself.x = x") == []
	assert codes(base % "\t\tif flag { self.x = x } else { self.x = 0 }") == []
	assert codes(base % "\t\tif flag { self.x = x }") == ["E_UNINITIALIZED"]
	assert codes(base % "\t\twhile flag { self.x = x }") == ["E_UNINITIALIZED"]


def test_init_cannot_be_called_directly():
	src = "struct Foo {\n\tx: int\n\tfn init() { self.x = 0 }\n\tfn reset() { self.init() }\n}\nvar f = Foo()\nf.init()"
	res = analyze(src)
	assert [d.code for d in res.diagnostics] == ["E_DIRECT_CONSTRUCTOR_CALL", "E_DIRECT_CONSTRUCTOR_CALL"]
	assert [d.span.line for d in res.diagnostics] == [4, 7]


def test_struct_without_init_has_no_init_member(codes):
	assert codes("struct P { x: int }\nvar p = P(1)\np.init()") == ["E_UNKNOWN_FIELD"]
