# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from revlang.core.diagnostics import PHASE_LEXER, PHASE_PARSER
from revlang.parser import ast, parse_program


def _codes(res) -> list[str]:
	return [d.code for d in res.diagnostics]


def test_missing_name_recovers_at_next_statement():
	res = parse_program("var = 1\nvar b = 2")
	assert _codes(res) == ["E_SYNTAX"]
	assert not res.ok
	names = [s.name for s in res.program.statements if isinstance(s, ast.VarDecl)]
	assert names == ["b"]
	assert res.diagnostics[0].phase == PHASE_PARSER
	assert (res.diagnostics[0].span.line, res.diagnostics[0].span.column) == (1, 5)


def test_independent_syntax_errors_are_all_reported():
	res = parse_program("var = 1\nvar b = 2\nvar = 3\nprint(b)")
	assert _codes(res) == ["E_SYNTAX", "E_SYNTAX"]
	assert [d.span.line for d in res.diagnostics] == [1, 3]
	assert len(res.program.statements) == 2


def test_invalid_assignment_target():
	res = parse_program("1 = 2")
	assert _codes(res) == ["E_INVALID_ASSIGN_TARGET"]


def test_unmatched_closing_brace():
	res = parse_program("var a = 1\n}\nvar b = 2")
	assert _codes(res) == ["E_SYNTAX"]
	assert "unmatched" in res.diagnostics[0].message
	assert len(res.program.statements) == 2


def test_unclosed_block_reports_at_end_of_input():
	res = parse_program("fn f() {\n\tvar a = 1\n")
	assert _codes(res) == ["E_SYNTAX"]
	assert "line 1" in res.diagnostics[0].message


def test_missing_terminator_between_statements():
	res = parse_program("var a = 1 var b = 2")
	assert _codes(res) == ["E_SYNTAX"]
	assert "end of statement" in res.diagnostics[0].message


def test_error_inside_block_keeps_rest_of_block():
	res = parse_program("fn f() {\n\tvar = 1\n\tvar ok = 2\n}\nvar after = 3")
	assert _codes(res) == ["E_SYNTAX"]
	fn, after = res.program.statements
	assert [s.name for s in fn.body.statements] == ["ok"]
	assert after.name == "after"


def test_trait_method_with_body_is_rejected():
	res = parse_program("trait T {\n\tfn m() -> int { return 1 }\n}\nvar x = 1")
	assert _codes(res) == ["E_SYNTAX"]
	assert "signatures only" in res.diagnostics[0].message
	assert isinstance(res.program.statements[-1], ast.VarDecl)


def test_lexical_and_syntax_diagnostics_are_merged_by_position():
	res = parse_program("var = 1\nvar b = 2 $")
	assert [(d.phase, d.span.line) for d in res.diagnostics] == [(PHASE_PARSER, 1), (PHASE_LEXER, 2)]


def test_filename_is_carried_into_spans():
	res = parse_program("var = 1", "main.rv")
	assert str(res.diagnostics[0].span) == "main.rv:1:5"
