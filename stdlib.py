"""
Scalite Standard Library
Member tables for the primitive value types (Int, Double, Boolean, String)
Pure functional style using immutable dictionaries
"""

from typing import Dict, Callable, Any, Optional
import math
import operator
from utilities import (
  binary_comparison_op,
  binary_arithmetic_op,
  validate_function_args,
  operation_error,
  int_divide,
  int_remainder,
  is_numeric,
  numeric_result_type,
)


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def make_value(value: Any, type_name: str = "Unknown") -> Dict:
  """Create an immutable runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_boolean(flag: bool) -> Dict:
  return make_value(bool(flag), "Boolean")


def make_builtin_function(name: str, func: Callable, arity: int,
                          receiver: Optional[Dict] = None, needs_context: bool = False) -> Dict:
  """Create a built-in function value, optionally bound to a receiver"""
  return {
      'type': 'builtin_function',
      'name': name,
      'func': func,
      'receiver': receiver,
      'arity': arity,
      'needs_context': needs_context
  }


# ============================================================================
# DISPLAY FUNCTIONS
# ============================================================================

def scalite_show(value: Dict) -> str:
  """Display string of a primitive or function value"""
  value_type = value['type']
  if value_type == "Int":
    return str(value['value'])
  elif value_type == "Double":
    return repr(float(value['value']))
  elif value_type == "Boolean":
    return "true" if value['value'] else "false"
  elif value_type == "String":
    return value['value']
  elif value_type in ("function", "builtin_function"):
    return f"<function {value.get('name') or 'anonymous'}>"
  else:
    return f"<{value_type}>"


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

# Use factory functions for arithmetic operations
_scalite_add_impl = binary_arithmetic_op(operator.add, "add")
_scalite_sub_impl = binary_arithmetic_op(operator.sub, "subtract")
_scalite_mul_impl = binary_arithmetic_op(operator.mul, "multiply")
_scalite_div_impl = binary_arithmetic_op(operator.truediv, "divide", int_divide, rejects_zero=True)
_scalite_mod_impl = binary_arithmetic_op(math.fmod, "take remainder of", int_remainder, rejects_zero=True)


def scalite_add(x: Dict, y: Dict, context: Dict) -> Dict:
  """Addition for numbers; concatenation when either side is a String"""
  if x['type'] == "String":
    return make_value(x['value'] + context['show'](y), "String")
  if is_numeric(x) and y['type'] == "String":
    return make_value(scalite_show(x) + y['value'], "String")
  return _scalite_add_impl(x, y, make_value)


def scalite_sub(x: Dict, y: Dict) -> Dict:
  """Subtraction"""
  return _scalite_sub_impl(x, y, make_value)


def scalite_mul(x: Dict, y: Dict) -> Dict:
  """Multiplication"""
  return _scalite_mul_impl(x, y, make_value)


def scalite_div(x: Dict, y: Dict) -> Dict:
  """Division; Int / Int truncates toward zero"""
  return _scalite_div_impl(x, y, make_value)


def scalite_mod(x: Dict, y: Dict) -> Dict:
  """Remainder; the sign follows the dividend"""
  return _scalite_mod_impl(x, y, make_value)


def _numeric_pick(func_name: str, pick: Callable, x: Dict, y: Dict) -> Dict:
  validate_function_args(func_name, [x, y], ["Numeric", "Numeric"])
  result_type = numeric_result_type(x, y)
  result = pick(x["value"], y["value"])
  return make_value(result if result_type == "Int" else float(result), result_type)


def scalite_max(x: Dict, y: Dict) -> Dict:
  return _numeric_pick("max", max, x, y)


def scalite_min(x: Dict, y: Dict) -> Dict:
  return _numeric_pick("min", min, x, y)


def scalite_abs(x: Dict) -> Dict:
  return make_value(abs(x['value']), x['type'])


def scalite_negate(x: Dict) -> Dict:
  return make_value(-x['value'], x['type'])


def scalite_identity(x: Dict) -> Dict:
  return x


def scalite_invert(x: Dict) -> Dict:
  """Bitwise complement of an Int"""
  return make_value(~x['value'], "Int")


# ============================================================================
# COMPARISON FUNCTIONS
# ============================================================================

def scalite_eq(x: Dict, y: Dict) -> Dict:
  """Equality: by value for primitives, by reference for everything else"""
  if is_numeric(x) and is_numeric(y):
    return make_boolean(x['value'] == y['value'])
  if x['type'] in ("Boolean", "String"):
    return make_boolean(x['type'] == y['type'] and x['value'] == y['value'])
  return make_boolean(x is y)


def scalite_ne(x: Dict, y: Dict) -> Dict:
  """Not equal comparison"""
  return make_boolean(not scalite_eq(x, y)['value'])


# Use factory functions for comparison operations
_scalite_lt_impl = binary_comparison_op(operator.lt, "compare")
_scalite_gt_impl = binary_comparison_op(operator.gt, "compare")
_scalite_le_impl = binary_comparison_op(operator.le, "compare")
_scalite_ge_impl = binary_comparison_op(operator.ge, "compare")


def scalite_lt(x: Dict, y: Dict) -> Dict:
  """Less than comparison"""
  return _scalite_lt_impl(x, y, make_value)


def scalite_gt(x: Dict, y: Dict) -> Dict:
  """Greater than comparison"""
  return _scalite_gt_impl(x, y, make_value)


def scalite_le(x: Dict, y: Dict) -> Dict:
  """Less than or equal comparison"""
  return _scalite_le_impl(x, y, make_value)


def scalite_ge(x: Dict, y: Dict) -> Dict:
  """Greater than or equal comparison"""
  return _scalite_ge_impl(x, y, make_value)


# ============================================================================
# BOOLEAN AND STRING FUNCTIONS
# ============================================================================

def scalite_and(x: Dict, y: Dict) -> Dict:
  """Strict conjunction; the evaluator short-circuits `&&` before reaching here"""
  if y['type'] != "Boolean":
    raise operation_error("and", x, y)
  return make_boolean(x['value'] and y['value'])


def scalite_or(x: Dict, y: Dict) -> Dict:
  """Strict disjunction; the evaluator short-circuits `||` before reaching here"""
  if y['type'] != "Boolean":
    raise operation_error("or", x, y)
  return make_boolean(x['value'] or y['value'])


def scalite_not(x: Dict) -> Dict:
  return make_boolean(not x['value'])


def scalite_length(s: Dict) -> Dict:
  """Length of a String"""
  return make_value(len(s['value']), "Int")


def scalite_to_string(x: Dict, context: Dict) -> Dict:
  return make_value(context['show'](x), "String")


# ============================================================================
# MEMBER TABLES
# ============================================================================

def make_member(func: Callable, arity: int, needs_context: bool = False) -> Dict:
  """Entry of a primitive member table"""
  return {
      'func': func,
      'arity': arity,
      'needs_context': needs_context
  }


# Members every value answers to, unless its class defines its own
UNIVERSAL_MEMBERS: Dict[str, Dict] = {
    "==": make_member(scalite_eq, 1),
    "!=": make_member(scalite_ne, 1),
    "toString": make_member(scalite_to_string, 0, needs_context=True),
}

NUMERIC_MEMBERS: Dict[str, Dict] = {
    # Arithmetic
    "+": make_member(scalite_add, 1, needs_context=True),
    "-": make_member(scalite_sub, 1),
    "*": make_member(scalite_mul, 1),
    "/": make_member(scalite_div, 1),
    "%": make_member(scalite_mod, 1),

    # Comparison
    "<": make_member(scalite_lt, 1),
    ">": make_member(scalite_gt, 1),
    "<=": make_member(scalite_le, 1),
    ">=": make_member(scalite_ge, 1),

    "max": make_member(scalite_max, 1),
    "min": make_member(scalite_min, 1),
    "abs": make_member(scalite_abs, 0),
    "unary_-": make_member(scalite_negate, 0),
    "unary_+": make_member(scalite_identity, 0),
}

PRIMITIVE_MEMBERS: Dict[str, Dict[str, Dict]] = {
    "Int": {
        **NUMERIC_MEMBERS,
        "unary_~": make_member(scalite_invert, 0),
    },
    "Double": NUMERIC_MEMBERS,
    "Boolean": {
        "&&": make_member(scalite_and, 1),
        "||": make_member(scalite_or, 1),
        "unary_!": make_member(scalite_not, 0),
    },
    "String": {
        "+": make_member(scalite_add, 1, needs_context=True),
        "<": make_member(scalite_lt, 1),
        ">": make_member(scalite_gt, 1),
        "<=": make_member(scalite_le, 1),
        ">=": make_member(scalite_ge, 1),
        "length": make_member(scalite_length, 0),
    },
}


def bind_member(receiver: Dict, name: str, member: Dict) -> Dict:
  """Bind a member table entry to its receiver"""
  return make_builtin_function(name, member['func'], member['arity'],
                               receiver=receiver, needs_context=member['needs_context'])


def lookup_primitive_member(receiver: Dict, name: str) -> Optional[Dict]:
  """Find a member of a primitive value, bound to that value"""
  members = PRIMITIVE_MEMBERS.get(receiver['type'], {})
  if name in members:
    return bind_member(receiver, name, members[name])
  return None


def lookup_universal_member(receiver: Dict, name: str) -> Optional[Dict]:
  """Find one of the members every value has, bound to the receiver"""
  if name in UNIVERSAL_MEMBERS:
    return bind_member(receiver, name, UNIVERSAL_MEMBERS[name])
  return None
