"""
Error taxonomy and diagnostics for Scalite
Every error carries a kind, a human-readable message and an optional source span
"""

from typing import Optional, Dict


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_error_report(
    kind: str,
    message: str,
    line: int = 0,
    column: int = 0,
    expected: Optional[str] = None,
    found: Optional[str] = None,
    context: Optional[str] = None
) -> Dict:
    """Create an immutable error report structure"""
    return {
        'kind': kind,
        'message': message,
        'line': line,
        'column': column,
        'expected': expected,
        'found': found,
        'context': context
    }


def format_report(report: Dict) -> str:
    """Format an error report as string"""
    if report['line']:
        text = f"{report['kind']} at line {report['line']}, column {report['column']}:\n"
    else:
        text = f"{report['kind']}:\n"
    text += f"  {report['message']}\n"

    if report['expected']:
        text += f"  Expected: {report['expected']}\n"

    if report['found']:
        text += f"  Found: {report['found']}\n"

    if report['context']:
        text += f"{report['context']}\n"

    return text


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^")

    return '\n'.join(context_parts)


def format_error_report(error: 'ScaliteError', source_text: Optional[str] = None) -> str:
    """Render an error with optional source context, for front ends"""
    span = error.span
    line = span.start_line if span else 0
    column = span.start_col if span else 0
    context = None
    if source_text is not None and span is not None:
        context = get_context_lines(source_text, line, column)

    report = make_error_report(
        kind=error.kind,
        message=error.message,
        line=line,
        column=column,
        expected=getattr(error, 'expected', None),
        found=getattr(error, 'found', None),
        context=context
    )
    return format_report(report)


# ============================================================================
# ERROR CLASSES
# ============================================================================

class ScaliteError(Exception):
    """Base class for every error the core reports"""
    kind = "Error"

    def __init__(self, message: str, span=None):
        self.message = message
        self.span = span
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.span:
            return f"{self.kind} at {self.span}: {self.message}"
        return f"{self.kind}: {self.message}"


class LexError(ScaliteError):
    """Malformed token: unterminated string or unrecognized character"""
    kind = "LexError"


class ParseError(ScaliteError):
    """Grammar violation"""
    kind = "ParseError"

    def __init__(self, message: str, span=None, expected: Optional[str] = None,
                 found: Optional[str] = None):
        self.expected = expected
        self.found = found
        super().__init__(message, span)


class SemanticError(ScaliteError):
    """Static check failure: missing annotations, duplicate classes"""
    kind = "SemanticError"


class ScaliteRuntimeError(ScaliteError):
    """Base class for errors raised while evaluating"""
    kind = "RuntimeError"


class UnboundIdentifierError(ScaliteRuntimeError):
    kind = "UnboundIdentifierError"

    def __init__(self, name: str, span=None, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"not found: value {name}", span)


class UnknownClassError(ScaliteRuntimeError):
    kind = "UnknownClassError"

    def __init__(self, name: str, span=None):
        self.name = name
        super().__init__(f"not found: class {name}", span)


class ArityMismatchError(ScaliteRuntimeError):
    kind = "ArityMismatchError"


class TypeMismatchError(ScaliteRuntimeError):
    """A value of the wrong variant where a specific one is required"""
    kind = "TypeError"


class RequireError(ScaliteRuntimeError):
    """A construction guard evaluated to false"""
    kind = "RequireError"


class ResourceExhausted(ScaliteRuntimeError):
    """Host-imposed recursion depth or step limit exceeded"""
    kind = "ResourceExhausted"


class DivisionByZeroError(ScaliteRuntimeError):
    kind = "ArithmeticError"
