# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from revlang.parser import ast, parse_program


def _parse(source: str) -> ast.Program:
	res = parse_program(source)
	assert res.diagnostics == []
	return res.program


def _expr(source: str) -> ast.Expr:
	stmt = _parse(source).statements[0]
	assert isinstance(stmt, ast.ExprStmt)
	return stmt.value


def test_var_decl_with_annotation_and_initializer():
	stmt = _parse("var x: int = 1").statements[0]
	assert isinstance(stmt, ast.VarDecl)
	assert stmt.name == "x"
	assert stmt.type_expr.name == "int"
	assert isinstance(stmt.value, ast.Literal) and stmt.value.value == 1
	assert (stmt.loc.line, stmt.loc.column) == (1, 1)


def test_var_decl_without_initializer():
	stmt = _parse("var x: int?").statements[0]
	assert stmt.value is None
	assert stmt.type_expr.nilable


def test_multiplication_binds_tighter_than_addition():
	expr = _expr("1 + 2 * 3")
	assert isinstance(expr, ast.Binary) and expr.op == "+"
	assert isinstance(expr.right, ast.Binary) and expr.right.op == "*"


def test_binary_operators_are_left_associative():
	expr = _expr("10 - 4 - 3")
	assert expr.op == "-"
	assert isinstance(expr.left, ast.Binary)
	assert expr.right.value == 3


def test_assignment_is_right_associative():
	expr = _expr("a = b = 1")
	assert isinstance(expr, ast.Assign)
	assert expr.target.ident == "a"
	assert isinstance(expr.value, ast.Assign)


def test_logical_precedence():
	expr = _expr("a or b and c")
	assert isinstance(expr, ast.Logical) and expr.op == "or"
	assert isinstance(expr.right, ast.Logical) and expr.right.op == "and"


def test_is_and_unwrap():
	expr = _expr("x is int")
	assert isinstance(expr, ast.IsExpr)
	assert expr.type_expr.name == "int"
	unwrap = _expr("p!.x")
	assert isinstance(unwrap, ast.FieldAccess)
	assert isinstance(unwrap.value, ast.Unwrap)


def test_not_equal_is_not_an_unwrap():
	expr = _expr("x != nil")
	assert isinstance(expr, ast.Binary) and expr.op == "!="
	assert expr.right.value is None


def test_call_method_and_field_chain():
	expr = _expr("make().area(2).x")
	assert isinstance(expr, ast.FieldAccess) and expr.attr == "x"
	call = expr.value
	assert isinstance(call, ast.MethodCall) and call.method == "area"
	assert [a.value for a in call.args] == [2]
	assert isinstance(call.receiver, ast.Call)


def test_if_else_if_else_chain_across_lines():
	src = "if a {\n\tprint(1)\n}\nelse if b {\n\tprint(2)\n} else {\n\tprint(3)\n}\n"
	stmt = _parse(src).statements[0]
	assert isinstance(stmt, ast.IfStmt)
	nested = stmt.else_branch
	assert isinstance(nested, ast.IfStmt)
	assert isinstance(nested.else_branch, ast.Block)
	assert len(_parse(src).statements) == 1


def test_while_and_for():
	prog = _parse("while i < 3 { i = i + 1 }\nfor k in 0..n { print(k) }")
	loop, rng = prog.statements
	assert isinstance(loop, ast.WhileStmt)
	assert isinstance(rng, ast.ForStmt)
	assert rng.var == "k"
	assert rng.start.value == 0
	assert rng.end.ident == "n"


def test_function_decl():
	stmt = _parse("fn add(a: int, b: int) -> int {\n\treturn a + b\n}").statements[0]
	assert isinstance(stmt, ast.FunctionDecl)
	assert [p.name for p in stmt.params] == ["a", "b"]
	assert stmt.return_type.name == "int"
	assert isinstance(stmt.body.statements[0], ast.ReturnStmt)
	# Location of a function declaration is its name.
	assert (stmt.loc.line, stmt.loc.column) == (1, 4)


def test_closure_with_function_type():
	stmt = _parse("var f: fn(int) -> int = fn(x: int) -> int { return x * 2 }").statements[0]
	assert stmt.type_expr.name == "fn"
	assert [a.name for a in stmt.type_expr.args] == ["int"]
	assert stmt.type_expr.ret.name == "int"
	assert isinstance(stmt.value, ast.Closure)
	assert stmt.value.params[0].name == "x"


def test_bare_return():
	fn = _parse("fn f() {\n\treturn\n}").statements[0]
	ret = fn.body.statements[0]
	assert isinstance(ret, ast.ReturnStmt)
	assert ret.value is None


def test_struct_with_traits_fields_and_methods():
	src = (
		"struct Circle: Shape, Named {\n"
		"\tr: float\n"
		"\tfn area() -> float { return 3.0 * self.r * self.r }\n"
		"\tfn name() -> string { return \"circle\" }\n"
		"}\n"
	)
	stmt = _parse(src).statements[0]
	assert isinstance(stmt, ast.StructDecl)
	assert [t.name for t in stmt.traits] == ["Shape", "Named"]
	assert [f.name for f in stmt.fields] == ["r"]
	assert [m.name for m in stmt.methods] == ["area", "name"]


def test_struct_fields_separated_by_commas():
	stmt = _parse("struct P { x: int, y: int }").statements[0]
	assert [(f.name, f.type_expr.name) for f in stmt.fields] == [("x", "int"), ("y", "int")]


def test_trait_decl():
	stmt = _parse("trait Shape {\n\tfn area() -> float\n\tfn describe()\n}").statements[0]
	assert isinstance(stmt, ast.TraitDecl)
	assert [m.name for m in stmt.methods] == ["area", "describe"]
	assert stmt.methods[1].return_type is None


def test_semicolons_separate_statements():
	prog = _parse("var a = 1; var b = 2; print(a + b)")
	assert [type(s).__name__ for s in prog.statements] == ["VarDecl", "VarDecl", "ExprStmt"]
