# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import inspect

from revlang.core.diagnostics import PHASE_LEXER, DiagnosticSink
from revlang.parser.lexer import iter_tokens, tokenize


def _kinds(source: str) -> list[str]:
	return [t.kind for t in tokenize(source).tokens]


def test_keywords_identifiers_and_literals():
	res = tokenize("var x = 1.5\n")
	assert [t.kind for t in res.tokens] == ["VAR", "IDENT", "EQUAL", "FLOAT", "TERMINATOR", "EOF"]
	assert res.tokens[3].value == 1.5
	assert res.diagnostics == []


def test_keyword_prefix_is_identifier():
	toks = tokenize("variable iffy").tokens
	assert [t.kind for t in toks] == ["IDENT", "IDENT", "EOF"]


def test_newline_inside_parentheses_is_not_a_terminator():
	assert _kinds("print(1,\n2)\n") == ["IDENT", "LPAR", "INT", "COMMA", "INT", "RPAR", "TERMINATOR", "EOF"]


def test_newline_after_operator_continues_statement():
	assert _kinds("var a = 1 +\n2") == ["VAR", "IDENT", "EQUAL", "INT", "PLUS", "INT", "EOF"]


def test_semicolon_is_terminator():
	assert _kinds("a; b") == ["IDENT", "TERMINATOR", "IDENT", "EOF"]


def test_comments_are_skipped():
	assert _kinds("// hi\nvar /* c */ a = 1") == ["VAR", "IDENT", "EQUAL", "INT", "EOF"]


def test_range_is_not_a_float():
	assert _kinds("0..10") == ["INT", "DOTDOT", "INT", "EOF"]


def test_multi_char_operators():
	kinds = _kinds("a == b != c <= d >= e -> f")
	assert [k for k in kinds if k not in ("IDENT", "EOF")] == ["EQEQ", "NOTEQ", "LTE", "GTE", "ARROW"]


def test_string_escapes_are_decoded():
	tok = tokenize('"a\\tb\\n\\"q\\""').tokens[0]
	assert tok.kind == "STRING"
	assert tok.value == 'a\tb\n"q"'


def test_invalid_characters_reported_once_per_run_and_scan_continues():
	res = tokenize("var a = 1 @# 2\nvar b = 3")
	assert [d.code for d in res.diagnostics] == ["E_LEX_INVALID_CHAR"]
	diag = res.diagnostics[0]
	assert diag.phase == PHASE_LEXER
	assert (diag.span.line, diag.span.column) == (1, 11)
	kinds = [t.kind for t in res.tokens]
	assert kinds.count("VAR") == 2
	assert res.tokens[-1].kind == "EOF"


def test_multiple_lexical_errors_collected():
	res = tokenize("var a = $\nvar b = `\n")
	assert [d.code for d in res.diagnostics] == ["E_LEX_INVALID_CHAR", "E_LEX_INVALID_CHAR"]
	assert [d.span.line for d in res.diagnostics] == [1, 2]


def test_unterminated_string():
	res = tokenize('var s = "abc')
	assert [d.code for d in res.diagnostics] == ["E_LEX_UNTERMINATED_STRING"]
	strings = [t for t in res.tokens if t.kind == "STRING"]
	assert strings[0].value == "abc"


def test_invalid_escape():
	res = tokenize('"a\\qb"')
	assert [d.code for d in res.diagnostics] == ["E_LEX_INVALID_ESCAPE"]
	assert res.tokens[0].value == "aqb"


def test_invalid_number_yields_best_effort_literal():
	res = tokenize("12abc")
	assert [d.code for d in res.diagnostics] == ["E_LEX_INVALID_NUMBER"]
	assert res.tokens[0].kind == "INT"
	assert res.tokens[0].value == 12


def test_unterminated_block_comment():
	res = tokenize("var a = 1 /* never closed")
	assert [d.code for d in res.diagnostics] == ["E_LEX_UNTERMINATED_COMMENT"]


def test_token_categories():
	toks = tokenize('var x = "s" + (1)').tokens
	assert [t.category for t in toks] == [
		"keyword",
		"identifier",
		"operator",
		"literal",
		"operator",
		"punctuation",
		"literal",
		"punctuation",
		"end-of-input",
	]


def test_positions_are_one_based():
	toks = tokenize("a\n  b").tokens
	assert (toks[0].line, toks[0].column) == (1, 1)
	b = [t for t in toks if t.lexeme == "b"][0]
	assert (b.line, b.column) == (2, 3)


def test_iter_tokens_is_lazy():
	sink = DiagnosticSink(PHASE_LEXER)
	stream = iter_tokens("var a = 1", sink)
	assert inspect.isgenerator(stream)
	assert next(stream).kind == "VAR"
