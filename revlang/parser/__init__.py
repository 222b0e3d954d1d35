"""
Front end: lexing and parsing into the revlang AST.

The lexer feeds the parser lazily; lexical and syntax diagnostics are
collected into separate phase sinks and returned together, ordered by
position.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from ..config import DEFAULT_MAX_NESTING_DEPTH
from ..core.diagnostics import PHASE_LEXER, PHASE_PARSER, Diagnostic, DiagnosticSink
from . import ast
from .lexer import Token, TokenizeResult, iter_tokens, tokenize
from .parser import NestingError, ParseError, Parser

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
	program: ast.Program
	diagnostics: List[Diagnostic] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not any(d.is_error for d in self.diagnostics)


def _position_key(diag: Diagnostic) -> tuple[int, int]:
	return (diag.span.line or 0, diag.span.column or 0)


def parse_program(
	source: str,
	filename: str | None = None,
	max_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> ParseResult:
	"""
	Lex and parse `source` into a Program plus lexical/syntax diagnostics.

	Input nested deeper than `max_depth` reports one E_SYNTAX diagnostic and
	ends the parse.
	"""
	lex_sink = DiagnosticSink(PHASE_LEXER, file=filename)
	parse_sink = DiagnosticSink(PHASE_PARSER, file=filename)
	parser = Parser(iter_tokens(source, lex_sink), parse_sink, max_depth)
	program = parser.parse_program()
	diagnostics = sorted(lex_sink.items + parse_sink.items, key=_position_key)
	logger.debug(
		"parsed %d top-level statements (%d lexical, %d syntax diagnostics)",
		len(program.statements),
		len(lex_sink.items),
		len(parse_sink.items),
	)
	return ParseResult(program=program, diagnostics=diagnostics)


__all__ = [
	"NestingError",
	"ParseError",
	"ParseResult",
	"Parser",
	"Token",
	"TokenizeResult",
	"ast",
	"iter_tokens",
	"parse_program",
	"tokenize",
]
