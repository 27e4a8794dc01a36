"""
Operator precedence, statement layout and definition-scoping tests for the Scalite parser
"""

import pytest
from parsing import create_parser, operator_precedence, is_right_associative
from syntax import (
  Ident, Literal, Selection, Block, OperatorApply, ValDef, FunDef, ClassDef, Require, SimpleType
)
from error_handling import ParseError


def op(left, name, right):
  return OperatorApply(left, name, right)


a, b, c = Ident("a"), Ident("b"), Ident("c")


class TestPrecedence:
  """Test the first-character precedence table"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_multiplication_binds_tighter(self, parser):
    assert parser.parse_expression("a + b * c") == op(a, "+", op(b, "*", c))

  def test_left_associative(self, parser):
    assert parser.parse_expression("a - b - c") == op(op(a, "-", b), "-", c)

  def test_colon_operators_are_right_associative(self, parser):
    assert parser.parse_expression("a :: b :: c") == op(a, "::", op(b, "::", c))

  def test_comparison_below_arithmetic(self, parser):
    assert parser.parse_expression("a + b < c") == op(op(a, "+", b), "<", c)

  def test_logical_operators(self, parser):
    assert parser.parse_expression("a < b && c") == op(op(a, "<", b), "&&", c)
    assert parser.parse_expression("a || b && c") == op(a, "||", op(b, "&&", c))

  def test_alphanumeric_operator_is_lowest(self, parser):
    assert parser.parse_expression("a max b + c") == op(a, "max", op(b, "+", c))

  def test_prefix_operator(self, parser):
    assert parser.parse_expression("-a * b") == op(Selection(a, "unary_-"), "*", b)
    assert parser.parse_expression("!a") == Selection(a, "unary_!")

  def test_precedence_table(self):
    ordered = ["max", "|", "^", "&", "<", "==", ":", "+", "*", "#"]
    levels = [operator_precedence(name) for name in ordered]
    assert levels == sorted(levels)
    assert len(set(levels)) == len(levels)
    assert operator_precedence("!=") == operator_precedence("==")
    assert is_right_associative("+:")
    assert not is_right_associative("+")


class TestStatementLayout:
  """Test statement separation by semicolons and line breaks"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_semicolons(self, parser):
    assert len(parser.parse_string("val x = 1; val y = 2; x")) == 3

  def test_newlines_separate_statements(self, parser):
    program = parser.parse_string("val x = 1\nval y = 2\nx")
    assert [type(statement) for statement in program] == [ValDef, ValDef, Ident]

  def test_trailing_operator_continues_expression(self, parser):
    program = parser.parse_string("val x = a +\n  b")
    assert program == (ValDef("x", op(a, "+", b)),)

  def test_leading_operator_starts_new_statement(self, parser):
    program = parser.parse_string("val x = a\n-x")
    assert program == (ValDef("x", a), Selection(Ident("x"), "unary_-"))

  def test_selection_continues_on_next_line(self, parser):
    program = parser.parse_string("val n = r\n  .numer")
    assert program == (ValDef("n", Selection(Ident("r"), "numer")),)

  def test_newlines_ignored_inside_parentheses(self, parser):
    assert parser.parse_expression("(a\n + b)") == op(a, "+", b)

  def test_two_expressions_on_one_line(self, parser):
    with pytest.raises(ParseError) as exc_info:
      parser.parse_string("val x = 1 val y = 2")
    assert exc_info.value.expected == "';' or newline"

  def test_block(self, parser):
    block = parser.parse_expression("{ val y = 1\n  y + 1 }")
    assert block == Block((ValDef("y", Literal(1, "Int")),), op(Ident("y"), "+", Literal(1, "Int")))

  def test_block_must_end_with_expression(self, parser):
    with pytest.raises(ParseError) as exc_info:
      parser.parse_expression("{ val y = 1 }")
    assert exc_info.value.expected == "expression"


class TestDefinitions:
  """Test definition placement and scoping rules"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_class_definition(self, parser):
    source = """
class Rational(x: Int, val y: Int) {
  require(y != 0, "zero")
  private def gcd(a: Int, b: Int): Int = a
  def < (that: Rational): Boolean = true
  override def toString = "r"
}
"""
    class_def = parser.parse_string(source)[0]
    assert isinstance(class_def, ClassDef)
    assert [param.name for param in class_def.ctor_params] == ["x", "y"]
    assert [param.is_field for param in class_def.ctor_params] == [False, True]
    assert class_def.find_field("y") is not None
    assert class_def.find_field("x") is None
    assert [member.name for member in class_def.members] == ["gcd", "<", "toString"]
    assert class_def.find_member("gcd").is_private
    assert class_def.find_member("toString").is_override
    assert isinstance(class_def.require_guards[0], Require)
    assert class_def.require_guards[0].message == Literal("zero", "String")

  def test_class_without_body(self, parser):
    class_def = parser.parse_string("class Point(x: Int, y: Int)")[0]
    assert class_def.members == ()
    assert class_def.ctor_params[0].declared_type == SimpleType("Int")

  def test_operator_method_name(self, parser):
    definition = parser.parse_string("def +(other: Int): Int = other")[0]
    assert isinstance(definition, FunDef)
    assert definition.name == "+"

  def test_class_only_at_top_level(self, parser):
    with pytest.raises(ParseError):
      parser.parse_string("val v = { class C(x: Int); 1 }")

  def test_modifiers_only_in_classes(self, parser):
    with pytest.raises(ParseError):
      parser.parse_string("private val x = 1")

  def test_duplicate_top_level_names(self, parser):
    with pytest.raises(ParseError) as exc_info:
      parser.parse_string("val x = 1\ndef x = 2")
    assert "already defined" in exc_info.value.message

  def test_duplicate_block_names(self, parser):
    with pytest.raises(ParseError):
      parser.parse_expression("{ val y = 1; val y = 2; y }")

  def test_duplicate_class_members(self, parser):
    with pytest.raises(ParseError):
      parser.parse_string("class C(val x: Int) { def x = 1 }")

  def test_duplicate_parameters(self, parser):
    with pytest.raises(ParseError):
      parser.parse_string("def f(x: Int, x: Int): Int = x")
