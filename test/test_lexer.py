"""
Tokenizer tests for Scalite
"""

import pytest
from parsing import tokenize, ScaliteTokenizer
from error_handling import LexError


def kinds(tokens):
  return [tok.type for tok in tokens]


def values(tokens):
  return [tok.value for tok in tokens if tok.type != "EOF"]


class TestTokenKinds:
  """Test classification of lexemes"""

  def test_simple_definition(self):
    tokens = tokenize("val x = 42")
    assert kinds(tokens) == ["KEYWORD", "IDENTIFIER", "OPERATOR", "INTEGER", "EOF"]
    assert values(tokens) == ["val", "x", "=", 42]

  def test_operator_identifiers_are_greedy(self):
    tokens = tokenize("a :: b <= c")
    assert values(tokens) == ["a", "::", "b", "<=", "c"]
    assert kinds(tokens)[1] == "OPERATOR"

  def test_operator_without_spaces(self):
    assert values(tokenize("x+y*2")) == ["x", "+", "y", "*", 2]

  def test_mixed_identifier(self):
    """An underscore lets an alphanumeric name end in operator characters"""
    tokens = tokenize("def unary_- : T")
    assert values(tokens) == ["def", "unary_-", ":", "T"]
    assert tokens[1].type == "IDENTIFIER"

  def test_real_literals(self):
    tokens = tokenize("3.14 2e3 1.5e-3")
    assert kinds(tokens)[:3] == ["REAL", "REAL", "REAL"]
    assert values(tokens) == [3.14, 2000.0, 0.0015]

  def test_integer_followed_by_selection(self):
    assert values(tokenize("1.abs")) == [1, ".", "abs"]

  def test_booleans_and_keywords(self):
    tokens = tokenize("if (true) this else false")
    assert kinds(tokens) == [
      "KEYWORD", "DELIMITER", "BOOLEAN", "DELIMITER", "KEYWORD", "KEYWORD", "BOOLEAN", "EOF"
    ]
    assert tokens[2].value is True
    assert tokens[6].value is False

  def test_string_literal(self):
    tokens = tokenize('"hello world"')
    assert tokens[0].type == "STRING"
    assert tokens[0].value == "hello world"
    assert tokens[0].lexeme == '"hello world"'

  def test_string_escapes(self):
    assert tokenize('"a\\"b"')[0].value == 'a"b'
    assert tokenize('"line\\n"')[0].value == "line\n"

  def test_delimiters(self):
    assert values(tokenize("f(a, b); {x}")) == ["f", "(", "a", ",", "b", ")", ";", "{", "x", "}"]


class TestLayout:
  """Test comments, line breaks and positions"""

  def test_line_comment_skipped(self):
    tokens = tokenize("x // the rest is ignored\ny")
    assert values(tokens) == ["x", "y"]
    assert tokens[1].newline_before

  def test_block_comment_skipped(self):
    tokens = tokenize("x /* one\ntwo */ y")
    assert values(tokens) == ["x", "y"]
    assert tokens[1].newline_before

  def test_newline_flag(self):
    tokens = tokenize("a b\nc")
    assert [tok.newline_before for tok in tokens[:3]] == [False, False, True]

  def test_spans(self):
    tokens = ScaliteTokenizer("demo.scalite").tokenize("val x = 1\n  y")
    y = tokens[4]
    assert y.value == "y"
    assert y.span.filename == "demo.scalite"
    assert (y.span.start_line, y.span.start_col) == (2, 3)
    assert tokens[-1].type == "EOF"


class TestLexErrors:
  """Test lexer failure modes"""

  def test_unterminated_block_comment(self):
    with pytest.raises(LexError) as exc_info:
      tokenize("val x = 1 /* never closed")
    assert exc_info.value.message == "unterminated comment"
    assert exc_info.value.span.start_col == 11

  def test_unterminated_string(self):
    with pytest.raises(LexError) as exc_info:
      tokenize('val s = "abc')
    assert "unterminated string literal" in exc_info.value.message
    assert exc_info.value.span.start_col == 9

  def test_string_does_not_span_lines(self):
    with pytest.raises(LexError):
      tokenize('"abc\ndef"')

  def test_unrecognized_character(self):
    with pytest.raises(LexError) as exc_info:
      tokenize("x $ y")
    assert exc_info.value.message == "unrecognized character '$'"
    assert exc_info.value.kind == "LexError"
