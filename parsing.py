"""
Scalite Language Parser
Tokenizer built on pyparsing token elements, and a precedence-climbing parser over the token stream
"""

from typing import List, Any, Optional, Tuple, Set
from dataclasses import dataclass

from pyparsing import Regex, MatchFirst, lineno, col

from syntax import (
    SourceSpan, SimpleType, FunctionType, Type,
    Ident, Literal, Apply, Selection, If, Block, Binding, FunctionLiteral,
    OperatorApply, New, Require,
    ValDef, FunDef, ClassDef, Program, Expr
)
from error_handling import LexError, ParseError


@dataclass(frozen=True)
class Token:
    """Scalite token with source information"""
    type: str
    value: Any
    span: SourceSpan
    newline_before: bool = False

    @property
    def lexeme(self) -> str:
        return self.span.text

    def __str__(self) -> str:
        return f"{self.type}({self.value})"


# Symbols that may form operator identifiers
OPERATOR_CHARS = "!#%&*+-/:<=>?@\\^|~"

KEYWORDS = {
    'def', 'val', 'class', 'new', 'if', 'else', 'true', 'false',
    'this', 'private', 'override'
}

# Operator-character sequences the grammar claims for itself
RESERVED_OPERATORS = {'=', '=>', ':'}

PREFIX_OPERATORS = {'+', '-', '!', '~'}

LITERAL_TYPES = {
    "INTEGER": "Int",
    "REAL": "Double",
    "STRING": "String",
    "BOOLEAN": "Boolean",
}


def operator_precedence(op: str) -> int:
    """Precedence of an infix operator, decided by its first character"""
    first = op[0]
    if first.isalpha() or first == '_':
        return 1
    if first == '|':
        return 2
    if first == '^':
        return 3
    if first == '&':
        return 4
    if first in '<>':
        return 5
    if first in '=!':
        return 6
    if first == ':':
        return 7
    if first in '+-':
        return 8
    if first in '*/%':
        return 9
    return 10


def is_right_associative(op: str) -> bool:
    return op.endswith(':')


class ScaliteTokenizer:
    """Scalite tokenizer with priority-ordered token patterns"""

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Scalite"""
        op_class = "[" + "".join("\\" + c for c in OPERATOR_CHARS) + "]"

        # Comments are matched as tokens so the scanner can step over them
        block_comment = Regex(r'/\*[\s\S]*?\*/').set_parse_action(lambda t: ("COMMENT", t[0]))
        unterminated_comment = Regex(r'/\*[\s\S]*').set_parse_action(lambda t: ("OPEN_COMMENT", t[0]))
        line_comment = Regex(r'//[^\n]*').set_parse_action(lambda t: ("COMMENT", t[0]))

        string_literal = Regex(r'"(?:[^"\\\n]|\\.)*"').set_parse_action(lambda t: ("STRING", t[0]))
        real_literal = Regex(r'\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+').set_parse_action(
            lambda t: ("REAL", t[0])
        )
        integer_literal = Regex(r'\d+').set_parse_action(lambda t: ("INTEGER", t[0]))

        # An alphanumeric identifier may end in `_` followed by operator characters (unary_-, x_=)
        identifier = Regex(r'[A-Za-z_][A-Za-z0-9_]*(?:(?<=_)' + op_class + r'+)?').set_parse_action(
            lambda t: ("IDENTIFIER", t[0])
        )
        operator = Regex(op_class + '+').set_parse_action(lambda t: ("OPERATOR", t[0]))
        delimiter = Regex(r'[(){}\[\],;.]').set_parse_action(lambda t: ("DELIMITER", t[0]))

        # Priority order: comments, strings, numbers, identifiers, operators, delimiters
        self.token_pattern = MatchFirst([
            block_comment,
            unterminated_comment,
            line_comment,
            string_literal,
            real_literal,
            integer_literal,
            identifier,
            operator,
            delimiter,
        ])

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Scalite source code"""
        tokens = []
        prev_end = 0
        newline_pending = False

        for results, start, end in self.token_pattern.scan_string(text):
            gap = text[prev_end:start]
            self._check_gap(text, gap, prev_end)
            if '\n' in gap:
                newline_pending = True

            kind, lexeme = results[0]
            prev_end = end

            if kind == "OPEN_COMMENT":
                raise LexError("unterminated comment", self._make_span(text, start, start + 2))

            if kind == "COMMENT":
                if '\n' in lexeme:
                    newline_pending = True
                continue

            span = self._make_span(text, start, end)
            tokens.append(self._make_token(kind, lexeme, span, newline_pending))
            newline_pending = False

        self._check_gap(text, text[prev_end:], prev_end)
        end_span = self._make_span(text, len(text), len(text))
        tokens.append(Token("EOF", None, end_span, True))
        return tokens

    def _check_gap(self, text: str, gap: str, offset: int) -> None:
        """Anything the scanner skipped must be whitespace"""
        stripped = gap.lstrip()
        if not stripped:
            return

        loc = offset + (len(gap) - len(stripped))
        char = stripped[0]
        span = self._make_span(text, loc, loc + 1)
        if char == '"':
            raise LexError("unterminated string literal", span)
        raise LexError(f"unrecognized character '{char}'", span)

    def _make_span(self, text: str, start: int, end: int) -> SourceSpan:
        return SourceSpan(
            self.filename,
            lineno(start, text), col(start, text),
            lineno(end, text), col(end, text),
            text[start:end]
        )

    def _make_token(self, kind: str, lexeme: str, span: SourceSpan, newline_before: bool) -> Token:
        if kind == "STRING":
            return Token(kind, self._process_string_escapes(lexeme[1:-1]), span, newline_before)
        if kind == "INTEGER":
            return Token(kind, int(lexeme), span, newline_before)
        if kind == "REAL":
            return Token(kind, float(lexeme), span, newline_before)
        if kind == "IDENTIFIER" and lexeme in KEYWORDS:
            if lexeme in ('true', 'false'):
                return Token("BOOLEAN", lexeme == 'true', span, newline_before)
            return Token("KEYWORD", lexeme, span, newline_before)
        return Token(kind, lexeme, span, newline_before)

    def _process_string_escapes(self, s: str) -> str:
        """Process escape sequences in strings"""
        escape_map = {
            'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"',
            '0': '\0', 'b': '\b', 'f': '\f'
        }

        result = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s) and s[i + 1] in escape_map:
                result.append(escape_map[s[i + 1]])
                i += 2
            else:
                result.append(s[i])
                i += 1

        return ''.join(result)


class ProgramParser:
    """Recursive-descent parser with operator-precedence climbing for infix expressions

    Line breaks separate statements at top level and inside braces; inside
    parentheses they are insignificant.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = list(tokens)
        if not self.tokens or self.tokens[-1].type != "EOF":
            last = self.tokens[-1].span if self.tokens else SourceSpan("<input>", 1, 1, 1, 1)
            self.tokens.append(Token("EOF", None, last, True))
        self.pos = 0
        self.newline_modes = [True]

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.type != "EOF":
            self.pos += 1
        return tok

    def _check(self, type_: str, value: Any = None, offset: int = 0) -> bool:
        tok = self._peek(offset)
        return tok.type == type_ and (value is None or tok.value == value)

    def _accept(self, type_: str, value: Any = None) -> Optional[Token]:
        if self._check(type_, value):
            return self._advance()
        return None

    def _expect(self, type_: str, value: Any = None, expected: Optional[str] = None) -> Token:
        if self._check(type_, value):
            return self._advance()
        raise self._error(expected or (f"'{value}'" if value is not None else type_.lower()))

    def _error(self, expected: str, token: Optional[Token] = None) -> ParseError:
        tok = token or self._peek()
        found = "end of input" if tok.type == "EOF" else f"'{tok.lexeme}'"
        return ParseError(f"expected {expected} but found {found}", tok.span, expected, found)

    def _starts_new_line(self, tok: Token) -> bool:
        return tok.newline_before and self.newline_modes[-1]

    def _open(self, delim: str) -> Token:
        tok = self._expect("DELIMITER", delim)
        self.newline_modes.append(delim == '{')
        return tok

    def _close(self, delim: str) -> Token:
        tok = self._expect("DELIMITER", delim)
        self.newline_modes.pop()
        return tok

    def _end_statement(self, closing: Optional[str]) -> None:
        """Statements end with ';', a line break, or the enclosing closer"""
        if self._accept("DELIMITER", ';'):
            while self._accept("DELIMITER", ';'):
                pass
            return
        tok = self._peek()
        if tok.type == "EOF" or (closing and self._check("DELIMITER", closing)):
            return
        if tok.newline_before:
            return
        raise self._error("';' or newline")

    def _declare(self, names: Set[str], name: str, tok: Token) -> None:
        if name in names:
            raise ParseError(f"{name} is already defined in this scope", tok.span,
                             "a fresh name", f"'{name}'")
        names.add(name)

    def _at_definition(self) -> bool:
        tok = self._peek()
        return tok.type == "KEYWORD" and tok.value in ('val', 'def', 'class', 'private', 'override')

    # ------------------------------------------------------------------
    # Program and definitions
    # ------------------------------------------------------------------

    def parse_program(self) -> Program:
        statements = []
        names: Set[str] = set()

        while self._accept("DELIMITER", ';'):
            pass

        while not self._check("EOF"):
            if self._at_definition():
                tok = self._peek()
                definition = self._parse_definition("top")
                if not isinstance(definition, ClassDef):
                    self._declare(names, definition.name, tok)
                statements.append(definition)
            else:
                statements.append(self.parse_expr())
            self._end_statement(None)

        return tuple(statements)

    def parse_single_expression(self) -> Expr:
        expr = self.parse_expr()
        while self._accept("DELIMITER", ';'):
            pass
        self._expect("EOF", expected="end of input")
        return expr

    def _parse_definition(self, scope: str):
        is_private = False
        is_override = False
        while self._check("KEYWORD", 'private') or self._check("KEYWORD", 'override'):
            modifier = self._advance()
            if scope != "class":
                raise ParseError(f"'{modifier.value}' modifier is only allowed on class members",
                                 modifier.span, "definition", f"'{modifier.value}'")
            if modifier.value == 'private':
                is_private = True
            else:
                is_override = True

        tok = self._peek()
        if self._check("KEYWORD", 'val'):
            return self._parse_val(is_private, is_override)
        if self._check("KEYWORD", 'def'):
            return self._parse_def(is_private, is_override)
        if self._check("KEYWORD", 'class'):
            if scope != "top" or is_private or is_override:
                raise ParseError("class definitions are only allowed at top level",
                                 tok.span, "'val' or 'def'", "'class'")
            return self._parse_class()
        raise self._error("'val', 'def' or 'class'")

    def _parse_val(self, is_private: bool, is_override: bool) -> ValDef:
        start = self._expect("KEYWORD", 'val')
        name = self._expect("IDENTIFIER", expected="value name")
        declared_type = None
        if self._accept("OPERATOR", ':'):
            declared_type = self.parse_type()
        self._expect("OPERATOR", '=')
        expr = self.parse_expr()
        return ValDef(name.value, expr, declared_type, is_private, is_override, start.span)

    def _parse_def(self, is_private: bool, is_override: bool) -> FunDef:
        start = self._expect("KEYWORD", 'def')
        name = self._peek()
        if name.type == "IDENTIFIER" or (name.type == "OPERATOR" and name.value not in RESERVED_OPERATORS):
            self._advance()
        else:
            raise self._error("method name")

        param_lists = []
        while self._check("DELIMITER", '('):
            param_lists.append(self._parse_param_list(allow_fields=False))

        result_type = None
        if self._accept("OPERATOR", ':'):
            result_type = self.parse_type()
        self._expect("OPERATOR", '=')
        body = self.parse_expr()
        return FunDef(name.value, tuple(param_lists), result_type, body,
                      is_private, is_override, start.span)

    def _parse_param_list(self, allow_fields: bool) -> Tuple[Binding, ...]:
        self._open('(')
        params = []
        names: Set[str] = set()
        if not self._check("DELIMITER", ')'):
            while True:
                tok = self._peek()
                is_field = False
                if allow_fields and self._accept("KEYWORD", 'val'):
                    is_field = True
                name = self._expect("IDENTIFIER", expected="parameter name")
                self._declare(names, name.value, name)
                declared_type = None
                if self._accept("OPERATOR", ':'):
                    declared_type = self.parse_type()
                params.append(Binding(name.value, declared_type, is_field, tok.span))
                if not self._accept("DELIMITER", ','):
                    break
        self._close(')')
        return tuple(params)

    def _parse_class(self) -> ClassDef:
        start = self._expect("KEYWORD", 'class')
        name = self._expect("IDENTIFIER", expected="class name")

        ctor_params: Tuple[Binding, ...] = ()
        if self._check("DELIMITER", '('):
            ctor_params = self._parse_param_list(allow_fields=True)

        members = []
        guards = []
        names = {param.name for param in ctor_params if param.is_field}
        if self._check("DELIMITER", '{') and not self._starts_new_line(self._peek()):
            self._open('{')
            while self._accept("DELIMITER", ';'):
                pass
            while not self._check("DELIMITER", '}'):
                if self._check("IDENTIFIER", 'require') and self._check("DELIMITER", '(', offset=1):
                    guards.append(self._parse_require())
                elif self._at_definition():
                    tok = self._peek()
                    member = self._parse_definition("class")
                    self._declare(names, member.name, tok)
                    members.append(member)
                else:
                    raise self._error("class member or require")
                self._end_statement('}')
            self._close('}')

        return ClassDef(name.value, ctor_params, tuple(members), tuple(guards), start.span)

    def _parse_require(self) -> Require:
        start = self._advance()
        self._open('(')
        condition = self.parse_expr()
        message = None
        if self._accept("DELIMITER", ','):
            message = self.parse_expr()
        self._close(')')
        return Require(condition, message, start.span)

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def parse_type(self) -> Type:
        """Type = SimpleType | SimpleType '=>' Type | '(' [Types] ')' '=>' Type"""
        if self._check("DELIMITER", '('):
            self._open('(')
            types = []
            if not self._check("DELIMITER", ')'):
                types.append(self.parse_type())
                while self._accept("DELIMITER", ','):
                    types.append(self.parse_type())
            self._close(')')
            if self._accept("OPERATOR", '=>'):
                return FunctionType(tuple(types), self.parse_type())
            if len(types) == 1:
                return types[0]
            raise self._error("'=>'")

        simple = self.parse_simple_type()
        if self._accept("OPERATOR", '=>'):
            return FunctionType((simple,), self.parse_type())
        return simple

    def parse_simple_type(self) -> SimpleType:
        name = self._expect("IDENTIFIER", expected="type name")
        return SimpleType(name.value)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def parse_expr(self) -> Expr:
        """Expr = InfixExpr | FunctionExpr | 'if' '(' Expr ')' Expr 'else' Expr"""
        if self._check("KEYWORD", 'if'):
            return self._parse_if()
        if self._at_function_literal():
            return self._parse_function_literal()
        return self.parse_infix(1)

    def _parse_if(self) -> If:
        start = self._expect("KEYWORD", 'if')
        self._open('(')
        cond = self.parse_expr()
        self._close(')')
        then_branch = self.parse_expr()
        self._expect("KEYWORD", 'else')
        else_branch = self.parse_expr()
        return If(cond, then_branch, else_branch, start.span)

    def _at_function_literal(self) -> bool:
        tok = self._peek()
        if tok.type == "IDENTIFIER":
            if self._check("OPERATOR", '=>', offset=1):
                return True
            return (self._check("OPERATOR", ':', offset=1)
                    and self._check("IDENTIFIER", offset=2)
                    and self._check("OPERATOR", '=>', offset=3))
        if tok.type == "DELIMITER" and tok.value == '(':
            close = self._matching_paren(self.pos)
            if close is None:
                return False
            after = self.tokens[close + 1] if close + 1 < len(self.tokens) else None
            return after is not None and after.type == "OPERATOR" and after.value == '=>'
        return False

    def _matching_paren(self, index: int) -> Optional[int]:
        depth = 0
        for i in range(index, len(self.tokens)):
            tok = self.tokens[i]
            if tok.type == "DELIMITER" and tok.value == '(':
                depth += 1
            elif tok.type == "DELIMITER" and tok.value == ')':
                depth -= 1
                if depth == 0:
                    return i
        return None

    def _parse_function_literal(self) -> FunctionLiteral:
        """FunctionExpr = Bindings '=>' Expr"""
        start = self._peek()
        bindings = []
        if self._check("DELIMITER", '('):
            self._open('(')
            if not self._check("DELIMITER", ')'):
                bindings.append(self._parse_binding(full_type=True))
                while self._accept("DELIMITER", ','):
                    bindings.append(self._parse_binding(full_type=True))
            self._close(')')
        else:
            bindings.append(self._parse_binding())
        self._expect("OPERATOR", '=>')
        body = self.parse_expr()
        return FunctionLiteral(tuple(bindings), body, start.span)

    def _parse_binding(self, full_type: bool = False) -> Binding:
        """Inside parentheses the annotation may be a function type; a bare `x: T =>` takes a simple type"""
        name = self._expect("IDENTIFIER", expected="parameter name")
        declared_type = None
        if self._accept("OPERATOR", ':'):
            declared_type = self.parse_type() if full_type else self.parse_simple_type()
        return Binding(name.value, declared_type, False, name.span)

    def _infix_operator(self, tok: Token) -> Optional[str]:
        if self._starts_new_line(tok):
            return None
        if tok.type == "OPERATOR" and tok.value not in RESERVED_OPERATORS:
            return tok.value
        if tok.type == "IDENTIFIER":
            return tok.value
        return None

    def parse_infix(self, min_precedence: int) -> Expr:
        """InfixExpr = PrefixExpr | InfixExpr Operator InfixExpr"""
        left = self.parse_prefix()
        while True:
            tok = self._peek()
            op = self._infix_operator(tok)
            if op is None:
                break
            precedence = operator_precedence(op)
            if precedence < min_precedence:
                break
            self._advance()
            next_min = precedence if is_right_associative(op) else precedence + 1
            right = self.parse_infix(next_min)
            left = OperatorApply(left, op, right, tok.span)
        return left

    def parse_prefix(self) -> Expr:
        """PrefixExpr = ['+'|'-'|'!'|'~'] SimpleExpr"""
        tok = self._peek()
        if tok.type == "OPERATOR" and tok.value in PREFIX_OPERATORS:
            self._advance()
            operand = self.parse_simple()
            return Selection(operand, "unary_" + tok.value, tok.span)
        return self.parse_simple()

    def parse_simple(self) -> Expr:
        """SimpleExpr = ident | literal | new | SimpleExpr '.' ident | SimpleExpr Args | '(' Expr ')' | Block"""
        tok = self._peek()
        if tok.type == "IDENTIFIER":
            self._advance()
            expr = Ident(tok.value, tok.span)
        elif tok.type == "KEYWORD" and tok.value == 'this':
            self._advance()
            expr = Ident('this', tok.span)
        elif tok.type in LITERAL_TYPES:
            self._advance()
            expr = Literal(tok.value, LITERAL_TYPES[tok.type], tok.span)
        elif tok.type == "KEYWORD" and tok.value == 'new':
            self._advance()
            name = self._expect("IDENTIFIER", expected="class name")
            args: Tuple[Expr, ...] = ()
            if self._check("DELIMITER", '(') and not self._starts_new_line(self._peek()):
                args = self._parse_args()
            expr = New(name.value, args, tok.span)
        elif tok.type == "DELIMITER" and tok.value == '(':
            self._open('(')
            expr = self.parse_expr()
            self._close(')')
        elif tok.type == "DELIMITER" and tok.value == '{':
            expr = self._parse_block()
        else:
            raise self._error("expression")

        while True:
            tok = self._peek()
            if tok.type == "DELIMITER" and tok.value == '.':
                self._advance()
                member = self._peek()
                if member.type == "IDENTIFIER" or (
                        member.type == "OPERATOR" and member.value not in RESERVED_OPERATORS):
                    self._advance()
                else:
                    raise self._error("member name")
                expr = Selection(expr, member.value, member.span)
            elif tok.type == "DELIMITER" and tok.value == '(' and not self._starts_new_line(tok):
                expr = Apply(expr, self._parse_args(), tok.span)
            else:
                return expr

    def _parse_args(self) -> Tuple[Expr, ...]:
        self._open('(')
        args = []
        if not self._check("DELIMITER", ')'):
            args.append(self.parse_expr())
            while self._accept("DELIMITER", ','):
                args.append(self.parse_expr())
        self._close(')')
        return tuple(args)

    def _parse_block(self) -> Block:
        """Block = '{' {Def ';'} Expr '}'"""
        start = self._open('{')
        defs = []
        names: Set[str] = set()
        result = None

        while self._accept("DELIMITER", ';'):
            pass
        while not self._check("DELIMITER", '}'):
            if self._at_definition():
                tok = self._peek()
                definition = self._parse_definition("block")
                self._declare(names, definition.name, tok)
                defs.append(definition)
                self._end_statement('}')
                continue
            result = self.parse_expr()
            while self._accept("DELIMITER", ';'):
                pass
            break

        if result is None:
            raise self._error("expression")
        self._close('}')
        return Block(tuple(defs), result, start.span)


class ScaliteParser:
    """Main Scalite parser combining tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        """Tokenize Scalite source code"""
        tokens = ScaliteTokenizer(filename).tokenize(text)
        if self.debug:
            print(f"Tokenized {len(tokens)} tokens")
        return tokens

    def parse_string(self, text: str, filename: str = "<input>") -> Program:
        """Parse Scalite source code from string"""
        program = ProgramParser(self.tokenize(text, filename)).parse_program()
        if self.debug:
            print(f"Parsed {len(program)} top-level statements")
        return program

    def parse_expression(self, text: str, filename: str = "<input>") -> Expr:
        """Parse a single Scalite expression"""
        return ProgramParser(self.tokenize(text, filename)).parse_single_expression()


def tokenize(source: str, filename: str = "<input>") -> List[Token]:
    """Source text to token stream"""
    return ScaliteTokenizer(filename).tokenize(source)


def parse(tokens: List[Token]) -> Program:
    """Token stream to program; either the whole program parses or ParseError is raised"""
    return ProgramParser(tokens).parse_program()


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> ScaliteParser:
    """Create a Scalite parser"""
    return ScaliteParser(debug=debug)


def create_debug_parser() -> ScaliteParser:
    """Create a Scalite parser with debug enabled"""
    return ScaliteParser(debug=True)
