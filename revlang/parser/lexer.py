# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lexer: source text -> lazy token stream plus lexical diagnostics.

Terminal definitions live in grammar.lark and are scanned by lark's basic
lexer, a single forward cursor with no backtracking. A postlex pass turns `;`
and significant newlines into TERMINATOR tokens. Malformed input never stops
the scan: each problem becomes a diagnostic, the scanner skips to the next
whitespace and keeps going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from lark import Lark
from lark import Token as LarkToken

from ..core.diagnostics import PHASE_LEXER, Diagnostic, DiagnosticSink
from ..core.span import Span

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

KEYWORDS = frozenset(
	{
		"VAR",
		"FN",
		"STRUCT",
		"TRAIT",
		"IF",
		"ELSE",
		"WHILE",
		"FOR",
		"IN",
		"RETURN",
		"TRUE",
		"FALSE",
		"NIL",
		"AND",
		"OR",
		"SELF",
		"IS",
	}
)
LITERALS = frozenset({"INT", "FLOAT", "STRING", "TRUE", "FALSE", "NIL"})
OPERATORS = frozenset(
	{
		"EQEQ",
		"NOTEQ",
		"LTE",
		"GTE",
		"ARROW",
		"DOTDOT",
		"EQUAL",
		"LT",
		"GT",
		"PLUS",
		"MINUS",
		"STAR",
		"SLASH",
		"PERCENT",
		"BANG",
		"QMARK",
		"DOT",
		"AND",
		"OR",
		"IS",
	}
)

ESCAPES = {
	"n": "\n",
	"t": "\t",
	"r": "\r",
	"\\": "\\",
	'"': '"',
	"0": "\0",
}


class TerminatorInserter:
	"""
	Postlex pass: emit TERMINATOR for `;` and for a newline that follows a
	token able to end a statement. Newlines inside parentheses are dropped.
	"""

	always_accept = ("NEWLINE", "SEMI")

	TERMINABLE = {
		"IDENT",
		"INT",
		"FLOAT",
		"BAD_NUMBER",
		"STRING",
		"UNTERMINATED_STRING",
		"TRUE",
		"FALSE",
		"NIL",
		"SELF",
		"RETURN",
		"RPAR",
		"RBRACE",
		"BANG",
		"QMARK",
	}

	# Error tokens do not change whether a newline terminates the statement.
	TRANSPARENT = {"INVALID", "UNTERMINATED_COMMENT"}

	def __init__(self) -> None:
		self._reset()

	def _reset(self) -> None:
		self.paren_depth = 0
		self.can_terminate = False

	def process(self, stream):
		self._reset()
		for token in stream:
			ttype = token.type
			if ttype == "NEWLINE":
				if self._should_emit_terminator():
					yield LarkToken.new_borrow_pos("TERMINATOR", token.value, token)
					self.can_terminate = False
				continue
			if ttype == "SEMI":
				yield LarkToken.new_borrow_pos("TERMINATOR", token.value, token)
				self.can_terminate = False
				continue
			yield token
			if ttype in self.TRANSPARENT:
				continue
			self._update_depth(ttype)
			self.can_terminate = ttype in self.TERMINABLE

	def _update_depth(self, ttype: str) -> None:
		if ttype == "LPAR":
			self.paren_depth += 1
		elif ttype == "RPAR" and self.paren_depth:
			self.paren_depth -= 1

	def _should_emit_terminator(self) -> bool:
		return self.paren_depth == 0 and self.can_terminate


_LEXER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	postlex=TerminatorInserter(),
)


@dataclass(frozen=True)
class Token:
	"""One lexeme with its decoded literal value and position."""

	kind: str
	lexeme: str
	value: object
	line: int
	column: int

	@property
	def span(self) -> Span:
		return Span(line=self.line, column=self.column)

	@property
	def category(self) -> str:
		if self.kind == "EOF":
			return "end-of-input"
		if self.kind in LITERALS:
			return "literal"
		if self.kind in KEYWORDS:
			return "keyword"
		if self.kind == "IDENT":
			return "identifier"
		if self.kind in OPERATORS:
			return "operator"
		return "punctuation"

	def __str__(self) -> str:
		if self.kind == "EOF":
			return "end of input"
		if self.kind == "TERMINATOR":
			return "end of statement"
		return f"'{self.lexeme}'"


@dataclass
class TokenizeResult:
	tokens: List[Token]
	diagnostics: List[Diagnostic] = field(default_factory=list)


def iter_tokens(source: str, sink: DiagnosticSink) -> Iterator[Token]:
	"""
	Lazily scan `source`, reporting lexical errors into `sink`.

	Error tokens are replaced with a best-effort literal (or dropped) so the
	parser can keep checking the rest of the input. The stream always ends
	with a single EOF token.
	"""
	skip_after: Optional[int] = None
	for tok in _LEXER.lex(source):
		if skip_after is not None and tok.type != "TERMINATOR" and tok.start_pos == skip_after:
			# Still inside the malformed run; resume after the next whitespace.
			skip_after = tok.end_pos
			continue
		skip_after = None
		kind = tok.type
		if kind == "INVALID":
			sink.error("E_LEX_INVALID_CHAR", f"invalid character '{tok.value}'", tok)
			skip_after = tok.end_pos
			continue
		if kind == "UNTERMINATED_COMMENT":
			sink.error("E_LEX_UNTERMINATED_COMMENT", "unterminated block comment", tok)
			continue
		if kind == "BAD_NUMBER":
			sink.error("E_LEX_INVALID_NUMBER", f"invalid numeric literal '{tok.value}'", tok)
			yield _bad_number(tok)
			continue
		if kind == "UNTERMINATED_STRING":
			sink.error("E_LEX_UNTERMINATED_STRING", "unterminated string literal", tok)
			yield Token("STRING", str(tok), _decode_string(tok, str(tok)[1:], sink), tok.line, tok.column)
			continue
		yield Token(kind, str(tok), _literal_value(tok, sink), tok.line, tok.column)
	line, column = _end_position(source)
	yield Token("EOF", "", None, line, column)


def tokenize(source: str, filename: str | None = None) -> TokenizeResult:
	"""Scan the whole source eagerly."""
	sink = DiagnosticSink(PHASE_LEXER, file=filename)
	tokens = list(iter_tokens(source, sink))
	logger.debug("lexed %d tokens, %d diagnostics", len(tokens), len(sink.items))
	return TokenizeResult(tokens=tokens, diagnostics=sink.items)


def _literal_value(tok: LarkToken, sink: DiagnosticSink) -> object:
	kind = tok.type
	if kind == "INT":
		return int(tok)
	if kind == "FLOAT":
		return float(tok)
	if kind == "STRING":
		return _decode_string(tok, str(tok)[1:-1], sink)
	if kind == "TRUE":
		return True
	if kind == "FALSE":
		return False
	return None


def _bad_number(tok: LarkToken) -> Token:
	text = str(tok)
	end = 0
	while end < len(text) and (text[end].isdigit() or text[end] == "."):
		end += 1
	prefix = text[:end].rstrip(".")
	if "." in prefix:
		return Token("FLOAT", text, float(prefix), tok.line, tok.column)
	return Token("INT", text, int(prefix), tok.line, tok.column)


def _decode_string(tok: LarkToken, body: str, sink: DiagnosticSink) -> str:
	out: List[str] = []
	idx = 0
	while idx < len(body):
		ch = body[idx]
		if ch != "\\":
			out.append(ch)
			idx += 1
			continue
		if idx + 1 >= len(body):
			out.append(ch)
			break
		esc = body[idx + 1]
		if esc in ESCAPES:
			out.append(ESCAPES[esc])
		else:
			# +1 skips the opening quote.
			sink.error(
				"E_LEX_INVALID_ESCAPE",
				f"invalid escape sequence '\\{esc}'",
				Span(line=tok.line, column=tok.column + idx + 1),
			)
			out.append(esc)
		idx += 2
	return "".join(out)


def _end_position(source: str) -> tuple[int, int]:
	line = source.count("\n") + 1
	last_break = source.rfind("\n")
	return line, len(source) - last_break


__all__ = ["Token", "TokenizeResult", "iter_tokens", "tokenize"]
