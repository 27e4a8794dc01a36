"""
Utilities module for Scalite interpreter
Contains common helper functions to reduce code duplication
"""

from typing import Any, Dict, List, Optional, Callable

from error_handling import ArityMismatchError, TypeMismatchError, DivisionByZeroError


NUMERIC_TYPES = ("Int", "Double")


# ==================== TYPE CHECKING UTILITIES ====================

def is_numeric(val: Dict) -> bool:
  return val.get('type') in NUMERIC_TYPES


def describe_type(val: Dict) -> str:
  """
  Name of a runtime value's type, as it appears in error messages

  Examples:
    describe_type({"type": "Int", "value": 1}) -> "Int"
    describe_type(rational_object) -> "Rational"
  """
  val_type = val.get('type', 'Unknown')
  if val_type == 'object':
    return val['class'].name
  if val_type in ('function', 'builtin_function'):
    return "Function"
  return val_type


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict,
  span=None
) -> TypeMismatchError:
  """
  Generate type mismatch error

  Args:
    func_name: Function or operator name
    param_name: Parameter description
    expected: Expected type
    actual: Actual value dict

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(
    f"{func_name} requires {expected} for {param_name}, got {describe_type(actual)}",
    span
  )


def arity_error(func_name: str, expected: int, got: int, span=None) -> ArityMismatchError:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments

  Returns:
    ArityMismatchError with formatted message
  """
  return ArityMismatchError(
    f"{func_name} requires {expected} arguments, got {got}",
    span
  )


def operation_error(
  op: str,
  left: Dict,
  right: Dict
) -> TypeMismatchError:
  """
  Generate operation error

  Args:
    op: Operation name
    left: Left operand value
    right: Right operand value

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(
    f"Cannot {op} {describe_type(left)} and {describe_type(right)}"
  )


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: List[Dict],
  expected_types: List[str]
) -> None:
  """
  Validate function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: List of expected type names; "Numeric" accepts Int or Double

  Raises:
    ArityMismatchError or TypeMismatchError if validation fails
  """
  if len(args) != len(expected_types):
    raise arity_error(func_name, len(expected_types), len(args))

  for i, (arg, expected) in enumerate(zip(args, expected_types)):
    actual = arg.get('type', 'Unknown')
    if expected == "Numeric":
      if actual not in NUMERIC_TYPES:
        raise type_mismatch_error(func_name, f"argument {i+1}", "Int or Double", arg)
    elif actual != expected:
      raise type_mismatch_error(func_name, f"argument {i+1}", expected, arg)


# ==================== NUMERIC UTILITIES ====================

def numeric_result_type(x: Dict, y: Dict) -> str:
  """Int op Int stays Int; any Double operand widens the result"""
  if x['type'] == "Int" and y['type'] == "Int":
    return "Int"
  return "Double"


def int_divide(a: int, b: int) -> int:
  """Integer division truncating toward zero"""
  if b == 0:
    raise DivisionByZeroError("/ by zero")
  quotient = abs(a) // abs(b)
  return -quotient if (a < 0) != (b < 0) else quotient


def int_remainder(a: int, b: int) -> int:
  """Remainder whose sign follows the dividend"""
  if b == 0:
    raise DivisionByZeroError("% by zero")
  return a - b * int_divide(a, b)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for binary comparison operations

  Args:
    op: Python operator function (e.g., operator.lt)
    op_name: Name for error messages
    allowed_types: Types that support this operation; numeric types compare with each other

  Returns:
    Function that performs the comparison

  Examples:
    scalite_lt = binary_comparison_op(operator.lt, "compare")
    result = scalite_lt({"type": "Int", "value": 1}, {"type": "Double", "value": 2.0}, make_value)
  """
  if allowed_types is None:
    allowed_types = ["Int", "Double", "String"]

  def comparison(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if x['type'] not in allowed_types or y['type'] not in allowed_types:
      raise operation_error(op_name, x, y)
    if x['type'] != y['type'] and not (is_numeric(x) and is_numeric(y)):
      raise operation_error(op_name, x, y)
    return make_value(op(x['value'], y['value']), "Boolean")

  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_name: str,
  int_op: Optional[Callable[[int, int], int]] = None,
  rejects_zero: bool = False
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for binary arithmetic operations on Int and Double

  Args:
    op: Python operator function used for Double results (e.g., operator.add)
    op_name: Name for error messages
    int_op: Replacement used when both operands are Int (e.g., int_divide)
    rejects_zero: Raise DivisionByZeroError when the right operand is zero

  Returns:
    Function that performs the arithmetic operation

  Examples:
    scalite_sub = binary_arithmetic_op(operator.sub, "subtract")
    result = scalite_sub({"type": "Int", "value": 3}, {"type": "Int", "value": 2}, make_value)
  """
  def arithmetic(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if not (is_numeric(x) and is_numeric(y)):
      raise operation_error(op_name, x, y)
    if rejects_zero and y['value'] == 0:
      raise DivisionByZeroError(f"Cannot {op_name} by zero")
    if numeric_result_type(x, y) == "Int":
      impl = int_op or op
      return make_value(impl(x['value'], y['value']), "Int")
    return make_value(op(float(x['value']), float(y['value'])), "Double")

  return arithmetic
