# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from revlang import PipelineConfig, analyze, format_diagnostic
from revlang.core.diagnostics import PHASE_CHECKER
from revlang.core.types import BOOL, FLOAT, INT, STR, function_of, nilable_of


def _ok(source: str):
	res = analyze(source)
	assert res.diagnostics == [], [format_diagnostic(d) for d in res.diagnostics]
	return res


def test_mixed_arithmetic_widens_to_float():
	res = _ok("var a = 1; var b = 2.5; var c = a + b;")
	a, b, c = res.program.statements
	assert a.resolved == INT
	assert b.resolved == FLOAT
	assert c.resolved == FLOAT
	assert c.value.left.widen
	assert not c.value.right.widen


def test_annotated_initializer_mismatch():
	res = analyze('var a: int = "x";')
	assert [d.code for d in res.diagnostics] == ["E_TYPE_MISMATCH"]
	diag = res.diagnostics[0]
	assert diag.phase == PHASE_CHECKER
	assert diag.message == "type mismatch: expected 'Int', got 'String'"
	assert format_diagnostic(diag) == "<input>:1:14: error[E_TYPE_MISMATCH]: type mismatch: expected 'Int', got 'String'"


def test_int_widens_into_float_slot():
	res = _ok("var f: float = 3")
	stmt = res.program.statements[0]
	assert stmt.resolved == FLOAT
	assert stmt.value.widen


def test_float_does_not_narrow_into_int(codes):
	assert codes("var i: int = 2.5") == ["E_TYPE_MISMATCH"]


def test_inferred_types_of_expressions():
	res = _ok('var s = "a" + "b"\nvar t = 1 < 2\nvar n: int? = nil\nvar u = -3')
	assert [s.resolved for s in res.program.statements] == [STR, BOOL, nilable_of(INT), INT]


def test_unknown_type_suggests_builtin_spelling():
	res = analyze("var a: Int = 1")
	assert [d.code for d in res.diagnostics] == ["E_UNKNOWN_TYPE"]
	assert format_diagnostic(res.diagnostics[0]) == (
		"<input>:1:8: error[E_UNKNOWN_TYPE]: unknown type 'Int'\n  note: did you mean 'int'?"
	)


def test_invalid_operator(codes):
	assert codes('var a = 1 + "s"') == ["E_INVALID_OPERATOR"]
	assert codes("var a = true < false") == ["E_INVALID_OPERATOR"]
	assert codes('var a = -"s"') == ["E_INVALID_OPERATOR"]


def test_errors_do_not_cascade(codes):
	# `y` is undefined once; everything built on it stays quiet.
	assert codes("var x = y + 1\nvar z = x * 2\nprint(z)") == ["E_UNDEFINED_SYMBOL"]


def test_undefined_symbol_message():
	res = analyze("print(y)")
	assert res.diagnostics[0].message == "undefined symbol 'y'"


def test_not_assignable(codes):
	res = analyze('var a = 1\na = "s"')
	assert [d.code for d in res.diagnostics] == ["E_NOT_ASSIGNABLE"]
	assert res.diagnostics[0].message == "cannot assign 'String' to 'a' of type 'Int'"


def test_function_signatures_are_checked(codes):
	fn = "fn f(a: int) -> int { return a }\n"
	assert codes(fn + "f(1, 2)") == ["E_CALL_ARITY"]
	res = analyze(fn + 'f("s")')
	assert [d.code for d in res.diagnostics] == ["E_CALL_ARG_TYPE"]
	assert res.diagnostics[0].message == "argument 1 of 'f': expected 'Int', got 'String'"


def test_return_type_mismatch():
	res = analyze('fn f() -> int { return "s" }')
	assert [d.code for d in res.diagnostics] == ["E_RETURN_TYPE_MISMATCH"]
	assert res.diagnostics[0].message == "'f' must return 'Int', got 'String'"


def test_missing_return(codes):
	assert codes("fn f(a: bool) -> int {\n\tif a { return 1 }\n}") == ["E_MISSING_RETURN"]
	assert codes("fn f(a: bool) -> int {\n\tif a { return 1 } else { return 2 }\n}") == []
	assert codes("fn f() -> int {\n\twhile true {}\n}") == []


def test_inferred_return_type():
	res = _ok("fn half(x: int) { return x / 2.0 }\nvar h = half(3)")
	fn, var = res.program.statements
	assert fn.signature == function_of([INT], FLOAT)
	assert var.resolved == FLOAT


def test_function_without_return_yields_nil():
	res = _ok("fn hello() {\n\tprint(\"hi\")\n}\nvar r = hello()")
	assert str(res.program.statements[1].resolved) == "Nil"


def test_not_callable(codes):
	assert codes("var a = 1\na()") == ["E_NOT_CALLABLE"]


def test_is_checks(codes):
	assert codes("var v: int? = 1\nprint(v is int)\nprint(v is nil)") == []
	assert codes('var s = "a"\nprint(s is int)') == ["E_TYPE_MISMATCH"]


def test_unwrap_requires_nilable(codes):
	assert codes("var a = 1\nprint(a!)") == ["E_TYPE_MISMATCH"]
	assert codes("var a: int? = 1\nvar b: int = a!") == []


def test_int_float_comparison_warns():
	res = analyze("var a = 1 < 2.0")
	assert res.ok
	assert [w.code for w in res.warnings] == ["W_INT_FLOAT_COMPARE"]
	assert res.warnings[0].severity == "warning"


def test_warnings_can_be_disabled_or_promoted():
	assert analyze("var a = 1 == 2.0", config=PipelineConfig(warnings=False)).warnings == []
	res = analyze("var a = 1 == 2.0", config=PipelineConfig(warnings_as_errors=True))
	assert not res.ok
	assert [(d.code, d.severity) for d in res.diagnostics] == [("W_INT_FLOAT_COMPARE", "error")]


def test_unreachable_statement_warns():
	res = analyze("fn f() -> int {\n\treturn 1\n\tprint(2)\n}")
	assert res.ok
	assert [w.code for w in res.warnings] == ["W_UNREACHABLE"]
	assert res.warnings[0].span.line == 3


def test_analysis_is_idempotent():
	src = 'var a = 1\nvar b: int = "s"\nfn f(x: int?) -> int { return x + 1 }\nvar c = a + 2.0'

	def summary(res):
		diags = [(d.code, d.message, d.span) for d in res.diagnostics]
		types = [getattr(s, "resolved", None) for s in res.program.statements]
		return diags, types

	first = summary(analyze(src))
	second = summary(analyze(src))
	assert first == second
	assert [code for code, _, _ in first[0]] == ["E_TYPE_MISMATCH", "E_INVALID_OPERATOR"]
