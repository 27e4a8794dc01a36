"""
Basic parsing tests for Scalite
Tests fundamental parsing capabilities
"""

import pytest
from parsing import create_parser, tokenize, parse
from syntax import (
  SimpleType, FunctionType, Ident, Literal, Apply, Selection,
  Binding, FunctionLiteral, OperatorApply, New, ValDef, FunDef
)
from error_handling import ParseError


class TestBasicParsing:
  """Test basic parsing functionality"""

  @pytest.fixture
  def parser(self):
    """Provide a fresh parser instance for each test"""
    return create_parser()

  def test_simple_program_parsing(self, parser):
    """Test parsing of a simple program"""
    program = parser.parse_string("val myValue = 42")
    assert program == (ValDef("myValue", Literal(42, "Int")),)

  def test_parse_from_tokens(self):
    program = parse(tokenize("x"))
    assert program == (Ident("x"),)

  def test_function_definition_parsing(self, parser):
    """Test parsing of function definitions"""
    program = parser.parse_string("def square(x: Int): Int = x * x")
    assert len(program) == 1

    definition = program[0]
    assert isinstance(definition, FunDef)
    assert definition.name == "square"
    assert definition.param_lists == ((Binding("x", SimpleType("Int")),),)
    assert definition.result_type == SimpleType("Int")
    assert definition.body == OperatorApply(Ident("x"), "*", Ident("x"))

  def test_curried_definition(self, parser):
    definition = parser.parse_string("def add(a: Int)(b: Int): Int = a + b")[0]
    assert [len(params) for params in definition.param_lists] == [1, 1]

  def test_parameterless_definition(self, parser):
    definition = parser.parse_string("def answer = 42")[0]
    assert definition.param_lists == ()
    assert definition.result_type is None

  def test_expression_parsing(self, parser):
    """Test parsing of expressions"""
    assert parser.parse_expression("myVar") == Ident("myVar")
    assert parser.parse_expression("f(x)") == Apply(Ident("f"), (Ident("x"),))
    assert parser.parse_expression("f(1)(2)") == Apply(
      Apply(Ident("f"), (Literal(1, "Int"),)), (Literal(2, "Int"),)
    )

  def test_literals(self, parser):
    assert parser.parse_expression("1.5") == Literal(1.5, "Double")
    assert parser.parse_expression('"hi"') == Literal("hi", "String")
    assert parser.parse_expression("true") == Literal(True, "Boolean")

  def test_selection(self, parser):
    assert parser.parse_expression("r.numer") == Selection(Ident("r"), "numer")
    assert parser.parse_expression("r.+(s)") == Apply(Selection(Ident("r"), "+"), (Ident("s"),))

  def test_new(self, parser):
    assert parser.parse_expression("new Rational(1, 2)") == New(
      "Rational", (Literal(1, "Int"), Literal(2, "Int"))
    )

  def test_this(self, parser):
    assert parser.parse_expression("this.x") == Selection(Ident("this"), "x")


class TestTypeExpressions:
  """Test type expression parsing"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_function_type_parsing(self, parser):
    """Test parsing of function types in parameter lists"""
    definition = parser.parse_string("def sum(f: Int => Int)(a: Int, b: Int): Int = 0")[0]
    f_param = definition.param_lists[0][0]
    assert f_param.declared_type == FunctionType((SimpleType("Int"),), SimpleType("Int"))

  def test_function_type_is_right_associative(self, parser):
    definition = parser.parse_string("def curry(f: Int => Int => Int): Int = 0")[0]
    inner = FunctionType((SimpleType("Int"),), SimpleType("Int"))
    assert definition.param_lists[0][0].declared_type == FunctionType((SimpleType("Int"),), inner)

  def test_multi_argument_function_type(self, parser):
    definition = parser.parse_string("def g(op: (Int, Int) => Boolean): Int = 0")[0]
    declared = definition.param_lists[0][0].declared_type
    assert declared == FunctionType((SimpleType("Int"), SimpleType("Int")), SimpleType("Boolean"))
    assert str(declared) == "(Int, Int) => Boolean"

  def test_function_result_type(self, parser):
    definition = parser.parse_string("def adder(n: Int): Int => Int = x => x + n")[0]
    assert definition.result_type == FunctionType((SimpleType("Int"),), SimpleType("Int"))
    assert isinstance(definition.body, FunctionLiteral)


class TestFunctionLiterals:
  """Test anonymous function parsing"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_single_binding(self, parser):
    assert parser.parse_expression("x => x * 2") == FunctionLiteral(
      (Binding("x"),), OperatorApply(Ident("x"), "*", Literal(2, "Int"))
    )

  def test_typed_single_binding(self, parser):
    literal = parser.parse_expression("x: Int => x")
    assert literal.bindings == (Binding("x", SimpleType("Int")),)

  def test_parenthesized_bindings(self, parser):
    literal = parser.parse_expression("(x: Int, y: Int) => x + y")
    assert [binding.name for binding in literal.bindings] == ["x", "y"]

  def test_parenthesized_binding_with_function_type(self, parser):
    literal = parser.parse_expression("(f: Int => Int, x: Int) => f(x)")
    assert literal.bindings == (
      Binding("f", FunctionType((SimpleType("Int"),), SimpleType("Int"))),
      Binding("x", SimpleType("Int"))
    )
    assert literal.body == Apply(Ident("f"), (Ident("x"),))

  def test_no_bindings(self, parser):
    assert parser.parse_expression("() => 1") == FunctionLiteral((), Literal(1, "Int"))

  def test_parenthesized_expression_is_not_a_literal(self, parser):
    assert parser.parse_expression("(a + b) * c") == OperatorApply(
      OperatorApply(Ident("a"), "+", Ident("b")), "*", Ident("c")
    )

  def test_literal_as_argument(self, parser):
    expr = parser.parse_expression("sum(x => x * x * x)(1, 10)")
    assert isinstance(expr, Apply)
    assert isinstance(expr.fn, Apply)
    assert isinstance(expr.fn.args[0], FunctionLiteral)


class TestErrorHandling:
  """Test error handling and reporting"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_invalid_syntax_error(self, parser):
    """Test that invalid syntax produces helpful errors"""
    with pytest.raises(ParseError) as exc_info:
      parser.parse_string("val = 3")
    error = exc_info.value
    assert error.expected == "value name"
    assert error.found == "'='"
    assert (error.span.start_line, error.span.start_col) == (1, 5)

  def test_incomplete_definition_error(self, parser):
    """Test error on incomplete function definition"""
    with pytest.raises(ParseError) as exc_info:
      parser.parse_string("def f(x: Int): Int =")
    assert exc_info.value.found == "end of input"

  def test_unclosed_arguments(self, parser):
    with pytest.raises(ParseError):
      parser.parse_string("f(1, 2")

  def test_if_requires_else(self, parser):
    with pytest.raises(ParseError) as exc_info:
      parser.parse_expression("if (x) 1")
    assert exc_info.value.expected == "'else'"
