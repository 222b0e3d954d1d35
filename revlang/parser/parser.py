# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Recursive-descent parser over the lexer's token stream.

Expression precedence, lowest first: assignment, `or`, `and`, equality,
comparison (including `is`), additive, multiplicative, unary, postfix
(call / field access / force-unwrap), primary.

A syntax error is reported once, then the parser discards tokens up to the
next statement boundary (terminator, closing brace or statement keyword) and
carries on, so independent errors later in the file are still reported.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional, Union

from ..config import DEFAULT_MAX_NESTING_DEPTH
from ..core.diagnostics import DiagnosticSink
from .ast import (
	Assign,
	Binary,
	Block,
	Call,
	Closure,
	Expr,
	ExprStmt,
	FieldAccess,
	ForStmt,
	FunctionDecl,
	IfStmt,
	IsExpr,
	Literal,
	Located,
	Logical,
	MethodCall,
	MethodSig,
	Name,
	Param,
	Program,
	ReturnStmt,
	SelfExpr,
	Stmt,
	StructDecl,
	StructField,
	TraitDecl,
	TraitRef,
	TypeExpr,
	Unary,
	Unwrap,
	VarDecl,
	WhileStmt,
)
from .lexer import Token

STATEMENT_KEYWORDS = frozenset({"VAR", "FN", "STRUCT", "TRAIT", "IF", "WHILE", "FOR", "RETURN"})
LITERAL_KINDS = frozenset({"INT", "FLOAT", "STRING", "TRUE", "FALSE", "NIL"})
COMPARISON_OPS = {"LT": "<", "LTE": "<=", "GT": ">", "GTE": ">="}
EQUALITY_OPS = {"EQEQ": "==", "NOTEQ": "!="}
ADDITIVE_OPS = {"PLUS": "+", "MINUS": "-"}
MULTIPLICATIVE_OPS = {"STAR": "*", "SLASH": "/", "PERCENT": "%"}

_TOKEN_NAMES = {
	"IDENT": "identifier",
	"LPAR": "'('",
	"RPAR": "')'",
	"LBRACE": "'{'",
	"RBRACE": "'}'",
	"COLON": "':'",
	"COMMA": "','",
	"ARROW": "'->'",
	"DOTDOT": "'..'",
	"EQUAL": "'='",
	"IN": "'in'",
	"TERMINATOR": "end of statement",
	"EOF": "end of input",
}


class ParseError(Exception):
	def __init__(self, message: str, token: Token) -> None:
		super().__init__(message)
		self.message = message
		self.token = token


class NestingError(Exception):
	"""Input nests deeper than the parser allows; ends the parse."""

	def __init__(self, message: str, token: Token) -> None:
		super().__init__(message)
		self.message = message
		self.token = token


def _loc(token: Token) -> Located:
	return Located(line=token.line, column=token.column)


class Parser:
	def __init__(self, tokens: Iterator[Token], sink: DiagnosticSink, max_depth: int = DEFAULT_MAX_NESTING_DEPTH) -> None:
		self._tokens = tokens
		self._buffer: List[Token] = []
		self._consumed = 0
		self._depth = 0
		self.max_depth = max_depth
		self.sink = sink

	# -- token cursor ---------------------------------------------------------

	def _peek(self, offset: int = 0) -> Token:
		while len(self._buffer) <= offset:
			tok = next(self._tokens, None)
			if tok is None:
				# The lexer always ends with EOF; keep returning it.
				tok = self._buffer[-1] if self._buffer and self._buffer[-1].kind == "EOF" else Token("EOF", "", None, 0, 0)
			self._buffer.append(tok)
		return self._buffer[offset]

	def _check(self, kind: str) -> bool:
		return self._peek().kind == kind

	def _advance(self) -> Token:
		tok = self._peek()
		if tok.kind != "EOF":
			self._buffer.pop(0)
			self._consumed += 1
		return tok

	def _match(self, *kinds: str) -> Optional[Token]:
		if self._peek().kind in kinds:
			return self._advance()
		return None

	def _expect(self, kind: str, context: str) -> Token:
		tok = self._peek()
		if tok.kind == kind:
			return self._advance()
		expected = _TOKEN_NAMES.get(kind, kind.lower())
		raise ParseError(f"expected {expected} {context}, found {tok}", tok)

	def _skip_terminators(self) -> None:
		while self._check("TERMINATOR"):
			self._advance()

	def _expect_terminator(self) -> None:
		if self._match("TERMINATOR"):
			return
		if self._peek().kind in ("RBRACE", "EOF"):
			return
		tok = self._peek()
		raise ParseError(f"expected end of statement, found {tok}", tok)

	# -- error recovery -------------------------------------------------------

	def _report(self, err: Union[ParseError, NestingError]) -> None:
		self.sink.error("E_SYNTAX", err.message, err.token)

	def _synchronize(self) -> None:
		"""Discard tokens up to the next statement boundary."""
		while True:
			tok = self._peek()
			if tok.kind in ("EOF", "RBRACE"):
				return
			if tok.kind == "TERMINATOR":
				self._advance()
				return
			if tok.kind in STATEMENT_KEYWORDS:
				return
			self._advance()

	def _recover(self, err: ParseError, start: int) -> None:
		self._report(err)
		self._synchronize()
		if self._consumed == start and not self._check("EOF") and not self._check("RBRACE"):
			self._advance()

	@contextmanager
	def _nested(self, what: str) -> Iterator[None]:
		tok = self._peek()
		self._depth += 1
		try:
			if self._depth > self.max_depth:
				raise NestingError(f"{what} nested too deeply (limit {self.max_depth})", tok)
			yield
		finally:
			self._depth -= 1

	# -- statements -----------------------------------------------------------

	def parse_program(self) -> Program:
		statements: List[Stmt] = []
		self._skip_terminators()
		while not self._check("EOF"):
			start = self._consumed
			if self._check("RBRACE"):
				tok = self._advance()
				self._report(ParseError("unmatched '}'", tok))
				self._skip_terminators()
				continue
			try:
				statements.append(self._statement())
			except ParseError as err:
				self._recover(err, start)
			except NestingError as err:
				self._report(err)
				break
			except RecursionError:
				self._report(NestingError("program nested too deeply", self._peek()))
				break
			self._skip_terminators()
		return Program(statements=statements)

	def _statement(self) -> Stmt:
		tok = self._peek()
		kind = tok.kind
		if kind == "VAR":
			stmt: Stmt = self._var_decl()
			self._expect_terminator()
			return stmt
		if kind == "FN" and self._peek(1).kind == "IDENT":
			return self._function_decl()
		if kind == "STRUCT":
			return self._struct_decl()
		if kind == "TRAIT":
			return self._trait_decl()
		if kind == "IF":
			return self._if_stmt()
		if kind == "WHILE":
			self._advance()
			condition = self._expression()
			body = self._block("after 'while' condition")
			return WhileStmt(loc=_loc(tok), condition=condition, body=body)
		if kind == "FOR":
			return self._for_stmt()
		if kind == "RETURN":
			self._advance()
			value = None
			if self._peek().kind not in ("TERMINATOR", "RBRACE", "EOF"):
				value = self._expression()
			self._expect_terminator()
			return ReturnStmt(loc=_loc(tok), value=value)
		if kind == "LBRACE":
			return self._block("")
		expr = self._expression()
		self._expect_terminator()
		return ExprStmt(loc=expr.loc, value=expr)

	def _var_decl(self) -> VarDecl:
		kw = self._advance()
		name = self._expect("IDENT", "after 'var'")
		type_expr = None
		if self._match("COLON"):
			type_expr = self._type_expr()
		value = None
		if self._match("EQUAL"):
			value = self._expression()
		return VarDecl(loc=_loc(kw), name=name.lexeme, type_expr=type_expr, value=value)

	def _block(self, context: str) -> Block:
		with self._nested("block"):
			return self._block_body(context)

	def _block_body(self, context: str) -> Block:
		open_tok = self._expect("LBRACE", context or "to open a block")
		statements: List[Stmt] = []
		self._skip_terminators()
		while not self._check("RBRACE") and not self._check("EOF"):
			start = self._consumed
			try:
				statements.append(self._statement())
			except ParseError as err:
				self._recover(err, start)
			self._skip_terminators()
		self._expect("RBRACE", f"to close the block opened at line {open_tok.line}")
		return Block(loc=_loc(open_tok), statements=statements)

	def _if_stmt(self) -> IfStmt:
		kw = self._advance()
		condition = self._expression()
		then_block = self._block("after 'if' condition")
		else_branch = None
		# `}` + newline produced a terminator; look past it for `else`.
		offset = 0
		while self._peek(offset).kind == "TERMINATOR":
			offset += 1
		if self._peek(offset).kind == "ELSE":
			self._skip_terminators()
			self._advance()
			if self._check("IF"):
				else_branch = self._if_stmt()
			else:
				else_branch = self._block("after 'else'")
		return IfStmt(loc=_loc(kw), condition=condition, then_block=then_block, else_branch=else_branch)

	def _for_stmt(self) -> ForStmt:
		kw = self._advance()
		name = self._expect("IDENT", "after 'for'")
		self._expect("IN", "after the loop variable")
		start = self._expression()
		self._expect("DOTDOT", "between loop bounds")
		end = self._expression()
		body = self._block("after loop bounds")
		return ForStmt(loc=_loc(kw), var=name.lexeme, start=start, end=end, body=body)

	def _params(self) -> List[Param]:
		self._expect("LPAR", "to open the parameter list")
		params: List[Param] = []
		if not self._check("RPAR"):
			while True:
				name = self._expect("IDENT", "as parameter name")
				self._expect("COLON", f"after parameter '{name.lexeme}'")
				params.append(Param(loc=_loc(name), name=name.lexeme, type_expr=self._type_expr()))
				if not self._match("COMMA"):
					break
		self._expect("RPAR", "to close the parameter list")
		return params

	def _return_annotation(self) -> Optional[TypeExpr]:
		if self._match("ARROW"):
			return self._type_expr()
		return None

	def _function_decl(self) -> FunctionDecl:
		kw = self._advance()
		name = self._expect("IDENT", "after 'fn'")
		params = self._params()
		return_type = self._return_annotation()
		body = self._block(f"for the body of '{name.lexeme}'")
		return FunctionDecl(loc=_loc(name), name=name.lexeme, params=params, return_type=return_type, body=body)

	def _struct_decl(self) -> StructDecl:
		self._advance()
		name = self._expect("IDENT", "after 'struct'")
		traits: List[TraitRef] = []
		if self._match("COLON"):
			while True:
				trait = self._expect("IDENT", "as trait name")
				traits.append(TraitRef(loc=_loc(trait), name=trait.lexeme))
				if not self._match("COMMA"):
					break
		self._expect("LBRACE", f"to open the body of struct '{name.lexeme}'")
		fields: List[StructField] = []
		methods: List[FunctionDecl] = []
		while True:
			while self._match("TERMINATOR", "COMMA"):
				pass
			if self._check("RBRACE") or self._check("EOF"):
				break
			start = self._consumed
			try:
				if self._check("FN"):
					methods.append(self._function_decl())
				else:
					field_name = self._expect("IDENT", "as field name")
					type_expr = self._type_expr() if self._match("COLON") else None
					fields.append(StructField(loc=_loc(field_name), name=field_name.lexeme, type_expr=type_expr))
					if self._peek().kind not in ("TERMINATOR", "COMMA", "RBRACE"):
						tok = self._peek()
						raise ParseError(f"expected ',' or end of line after field, found {tok}", tok)
			except ParseError as err:
				self._report(err)
				self._synchronize_member(start)
		self._expect("RBRACE", f"to close struct '{name.lexeme}'")
		return StructDecl(loc=_loc(name), name=name.lexeme, traits=traits, fields=fields, methods=methods)

	def _trait_decl(self) -> TraitDecl:
		self._advance()
		name = self._expect("IDENT", "after 'trait'")
		self._expect("LBRACE", f"to open the body of trait '{name.lexeme}'")
		methods: List[MethodSig] = []
		while True:
			while self._match("TERMINATOR", "COMMA"):
				pass
			if self._check("RBRACE") or self._check("EOF"):
				break
			start = self._consumed
			try:
				self._expect("FN", "to start a trait method signature")
				method = self._expect("IDENT", "after 'fn'")
				params = self._params()
				return_type = self._return_annotation()
				if self._check("LBRACE"):
					tok = self._peek()
					raise ParseError("trait methods are signatures only and cannot have a body", tok)
				methods.append(MethodSig(loc=_loc(method), name=method.lexeme, params=params, return_type=return_type))
			except ParseError as err:
				self._report(err)
				self._synchronize_member(start)
		self._expect("RBRACE", f"to close trait '{name.lexeme}'")
		return TraitDecl(loc=_loc(name), name=name.lexeme, methods=methods)

	def _synchronize_member(self, start: int) -> None:
		depth = 0
		while True:
			tok = self._peek()
			if tok.kind == "EOF":
				return
			if depth == 0 and tok.kind in ("TERMINATOR", "COMMA", "RBRACE", "FN") and self._consumed > start:
				return
			if tok.kind == "LBRACE":
				depth += 1
			elif tok.kind == "RBRACE":
				if depth == 0:
					return
				depth -= 1
			self._advance()

	# -- types ----------------------------------------------------------------

	def _type_expr(self) -> TypeExpr:
		with self._nested("type"):
			return self._type_body()

	def _type_body(self) -> TypeExpr:
		tok = self._peek()
		if tok.kind == "IDENT" or tok.kind == "NIL":
			self._advance()
			texpr = TypeExpr(loc=_loc(tok), name=tok.lexeme)
		elif tok.kind == "FN":
			self._advance()
			self._expect("LPAR", "in function type")
			args: List[TypeExpr] = []
			if not self._check("RPAR"):
				while True:
					args.append(self._type_expr())
					if not self._match("COMMA"):
						break
			self._expect("RPAR", "in function type")
			ret = self._return_annotation()
			texpr = TypeExpr(loc=_loc(tok), name="fn", args=args, ret=ret)
		elif tok.kind == "LPAR":
			self._advance()
			texpr = self._type_expr()
			self._expect("RPAR", "to close the parenthesized type")
		else:
			raise ParseError(f"expected a type, found {tok}", tok)
		while self._match("QMARK"):
			texpr = TypeExpr(loc=texpr.loc, name=texpr.name, args=texpr.args, ret=texpr.ret, nilable=True)
		return texpr

	# -- expressions ----------------------------------------------------------

	def _expression(self) -> Expr:
		with self._nested("expression"):
			return self._assignment()

	def _assignment(self) -> Expr:
		target = self._logic_or()
		eq = self._match("EQUAL")
		if eq is None:
			return target
		value = self._assignment()
		if isinstance(target, (Name, FieldAccess)):
			return Assign(loc=target.loc, target=target, value=value)
		self.sink.error("E_INVALID_ASSIGN_TARGET", "invalid assignment target", eq)
		return value

	def _logic_or(self) -> Expr:
		expr = self._logic_and()
		while True:
			op = self._match("OR")
			if op is None:
				return expr
			expr = Logical(loc=_loc(op), op="or", left=expr, right=self._logic_and())

	def _logic_and(self) -> Expr:
		expr = self._equality()
		while True:
			op = self._match("AND")
			if op is None:
				return expr
			expr = Logical(loc=_loc(op), op="and", left=expr, right=self._equality())

	def _equality(self) -> Expr:
		expr = self._comparison()
		while self._peek().kind in EQUALITY_OPS:
			op = self._advance()
			expr = Binary(loc=_loc(op), op=EQUALITY_OPS[op.kind], left=expr, right=self._comparison())
		return expr

	def _comparison(self) -> Expr:
		expr = self._additive()
		while True:
			kind = self._peek().kind
			if kind in COMPARISON_OPS:
				op = self._advance()
				expr = Binary(loc=_loc(op), op=COMPARISON_OPS[kind], left=expr, right=self._additive())
			elif kind == "IS":
				op = self._advance()
				expr = IsExpr(loc=_loc(op), value=expr, type_expr=self._type_expr())
			else:
				return expr

	def _additive(self) -> Expr:
		expr = self._multiplicative()
		while self._peek().kind in ADDITIVE_OPS:
			op = self._advance()
			expr = Binary(loc=_loc(op), op=ADDITIVE_OPS[op.kind], left=expr, right=self._multiplicative())
		return expr

	def _multiplicative(self) -> Expr:
		expr = self._unary()
		while self._peek().kind in MULTIPLICATIVE_OPS:
			op = self._advance()
			expr = Binary(loc=_loc(op), op=MULTIPLICATIVE_OPS[op.kind], left=expr, right=self._unary())
		return expr

	def _unary(self) -> Expr:
		op = self._match("BANG", "MINUS")
		if op is not None:
			with self._nested("expression"):
				operand = self._unary()
			return Unary(loc=_loc(op), op="!" if op.kind == "BANG" else "-", operand=operand)
		return self._postfix()

	def _postfix(self) -> Expr:
		expr = self._primary()
		while True:
			tok = self._peek()
			if tok.kind == "LPAR":
				self._advance()
				expr = Call(loc=expr.loc, func=expr, args=self._arguments())
			elif tok.kind == "DOT":
				self._advance()
				name = self._expect("IDENT", "after '.'")
				if self._match("LPAR"):
					expr = MethodCall(loc=_loc(name), receiver=expr, method=name.lexeme, args=self._arguments())
				else:
					expr = FieldAccess(loc=_loc(name), value=expr, attr=name.lexeme)
			elif tok.kind == "BANG":
				self._advance()
				expr = Unwrap(loc=_loc(tok), value=expr)
			else:
				return expr

	def _arguments(self) -> List[Expr]:
		args: List[Expr] = []
		if not self._check("RPAR"):
			while True:
				args.append(self._expression())
				if not self._match("COMMA"):
					break
		self._expect("RPAR", "to close the argument list")
		return args

	def _primary(self) -> Expr:
		tok = self._peek()
		kind = tok.kind
		if kind in LITERAL_KINDS:
			self._advance()
			return Literal(loc=_loc(tok), value=tok.value)
		if kind == "IDENT":
			self._advance()
			return Name(loc=_loc(tok), ident=tok.lexeme)
		if kind == "SELF":
			self._advance()
			return SelfExpr(loc=_loc(tok))
		if kind == "LPAR":
			self._advance()
			expr = self._expression()
			self._expect("RPAR", "to close the parenthesized expression")
			return expr
		if kind == "FN":
			self._advance()
			params = self._params()
			return_type = self._return_annotation()
			body = self._block("for the closure body")
			return Closure(loc=_loc(tok), params=params, return_type=return_type, body=body)
		raise ParseError(f"expected expression, found {tok}", tok)


__all__ = ["NestingError", "ParseError", "Parser"]
