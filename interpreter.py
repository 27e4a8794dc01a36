"""
Scalite Interpreter - Pure Functional Style
Runtime values and environments are plain dictionaries built by make_* functions
Evaluation threads an environment and an execution context through eval_ast
"""

import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from syntax import (
  Ident, Literal, Apply, Selection, If, Block, FunctionLiteral,
  OperatorApply, New, ValDef, FunDef, ClassDef, Program, Expr,
  curry_body
)
from error_handling import (
  ScaliteRuntimeError,
  UnboundIdentifierError,
  TypeMismatchError,
  RequireError,
  ResourceExhausted
)
from utilities import arity_error, type_mismatch_error, describe_type
from stdlib import (
  make_value,
  scalite_show,
  lookup_primitive_member,
  lookup_universal_member
)
from semantics import ClassRegistry, create_analyzer
from parsing import create_parser


DEFAULT_MAX_DEPTH = 2000

# Python frames used by one language-level call, with headroom
PYTHON_FRAMES_PER_CALL = 20

SHORT_CIRCUIT_OPERATORS = ('&&', '||')


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None,
                     owner: Optional[Dict] = None) -> Dict:
  """Create a runtime environment frame

  owner is the object whose class lexically encloses code evaluated in this frame.
  """
  return {
      'parent': parent,
      'bindings': bindings or {},
      'owner': owner
  }


def make_function(params: List[str], body: Expr, closure_env: Dict, name: Optional[str] = None) -> Dict:
  """Create a function value with closure"""
  return {
      'type': 'function',
      'params': list(params),
      'body': body,
      'closure_env': closure_env,
      'name': name
  }


def make_accessor(name: str, body: Expr, closure_env: Dict) -> Dict:
  """Create a parameterless definition, re-evaluated whenever it is referenced"""
  return {
      'type': 'accessor',
      'name': name,
      'body': body,
      'closure_env': closure_env
  }


def make_object(class_def: ClassDef, fields: Dict) -> Dict:
  """Create an object; fields holds exactly the constructor arguments"""
  return {
      'type': 'object',
      'class': class_def,
      'fields': fields
  }


def make_member_env(obj: Dict) -> Dict:
  """Environment that member bodies and guards of obj evaluate in"""
  return make_runtime_env(parent=obj['fields'], bindings={'this': obj}, owner=obj)


def make_member_value(defn, closure_env: Dict) -> Dict:
  """Runtime value of a def (or class member val) closed over closure_env

  Trailing parameter lists are curried into nested function literals.
  """
  if isinstance(defn, ValDef):
    return make_accessor(defn.name, defn.expr, closure_env)
  if not defn.param_lists:
    return make_accessor(defn.name, defn.body, closure_env)
  first, rest = defn.param_lists[0], defn.param_lists[1:]
  return make_function([param.name for param in first], curry_body(rest, defn.body),
                       closure_env, defn.name)


def make_execution_context(
  registry: Optional[ClassRegistry] = None,
  debug: bool = False,
  max_depth: int = DEFAULT_MAX_DEPTH,
  max_steps: Optional[int] = None
) -> Dict:
  """Create the execution context: class registry, global frame, host limits and counters"""
  if registry is None:
    registry = ClassRegistry()
    registry.freeze()

  context = {
      'registry': registry,
      'global_env': make_runtime_env(),
      'debug': debug,
      'max_depth': max_depth,
      'max_steps': max_steps,
      'depth': 0,
      'steps': 0
  }
  context['show'] = lambda value: display_value(value, context)
  return context


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_bind_value(env: Dict, name: str, value: Dict) -> Dict:
  """Return a child environment with name bound to value"""
  return make_runtime_env(parent=env, bindings={name: value})


def env_define(frame: Dict, name: str, value: Dict) -> None:
  """Install a binding in a frame that is still being filled; bindings are never replaced"""
  if name in frame['bindings']:
    raise ScaliteRuntimeError(f"{name} is already defined")
  frame['bindings'][name] = value


def lexical_class(env: Optional[Dict]) -> Optional[ClassDef]:
  """Class of the innermost object that lexically encloses env"""
  while env is not None:
    if env['owner'] is not None:
      return env['owner']['class']
    env = env['parent']
  return None


# ============================================================================
# HOST LIMITS
# ============================================================================

def enter_call(context: Dict, name: Optional[str], span=None) -> None:
  if context['depth'] >= context['max_depth']:
    raise ResourceExhausted(
      f"maximum call depth {context['max_depth']} exceeded in {name or 'anonymous function'}",
      span
    )
  context['depth'] += 1


def exit_call(context: Dict) -> None:
  context['depth'] -= 1


def count_step(context: Dict, span=None) -> None:
  context['steps'] += 1
  if context['max_steps'] is not None and context['steps'] > context['max_steps']:
    raise ResourceExhausted(f"evaluation exceeded {context['max_steps']} steps", span)


def run_with_recursion_guard(thunk: Callable[[], Any], max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
  """Run thunk with stack room for max_depth calls, reporting host stack exhaustion as ResourceExhausted

  The process recursion limit is raised only while thunk runs.
  """
  previous = sys.getrecursionlimit()
  needed = max_depth * PYTHON_FRAMES_PER_CALL + 1000
  if previous < needed:
    sys.setrecursionlimit(needed)
  try:
    return thunk()
  except RecursionError as e:
    raise ResourceExhausted("maximum recursion depth exceeded") from e
  finally:
    sys.setrecursionlimit(previous)


# ============================================================================
# NAME AND MEMBER RESOLUTION
# ============================================================================

def force_value(value: Dict, context: Dict, span=None) -> Dict:
  """Evaluate parameterless definitions and members at the point of reference"""
  if value['type'] == 'accessor':
    enter_call(context, value['name'], span)
    try:
      return eval_ast(value['body'], value['closure_env'], context)
    finally:
      exit_call(context)
  if value['type'] == 'builtin_function' and value['arity'] == 0:
    return call_builtin(value, [], context)
  return value


def resolve_identifier(env: Dict, name: str, context: Dict, span=None) -> Optional[Dict]:
  """Walk the frames outward; frames with an owner also see that object's class members"""
  frame = env
  while frame is not None:
    if name in frame['bindings']:
      return force_value(frame['bindings'][name], context, span)
    owner = frame['owner']
    if owner is not None and owner['class'].find_member(name) is not None:
      return force_value(resolve_member(owner, name, frame, context, span), context, span)
    frame = frame['parent']
  return None


def resolve_member(receiver: Dict, name: str, env: Dict, context: Dict, span=None) -> Dict:
  """Find member `name` of receiver as seen from code evaluated in env

  Returns a callable, an accessor for parameterless members, or a field value.
  """
  if receiver['type'] == 'object':
    class_def = receiver['class']
    member = class_def.find_member(name)
    if member is not None:
      if member.is_private and lexical_class(env) is not class_def:
        raise UnboundIdentifierError(
          name, span, f"{name} in class {class_def.name} cannot be accessed from outside the class"
        )
      return make_member_value(member, make_member_env(receiver))

    fields = receiver['fields']['bindings']
    if name in fields and (class_def.find_field(name) is not None or lexical_class(env) is class_def):
      return fields[name]
  else:
    primitive = lookup_primitive_member(receiver, name)
    if primitive is not None:
      return primitive

  universal = lookup_universal_member(receiver, name)
  if universal is not None:
    return universal

  raise UnboundIdentifierError(name, span, f"value {name} is not a member of {describe_type(receiver)}")


# ============================================================================
# APPLICATION
# ============================================================================

def call_builtin(builtin: Dict, args: Sequence[Dict], context: Dict) -> Dict:
  call_args = list(args)
  if builtin['receiver'] is not None:
    call_args.insert(0, builtin['receiver'])
  if builtin['needs_context']:
    return builtin['func'](*call_args, context)
  return builtin['func'](*call_args)


def call_function(func: Dict, args: Sequence[Dict], context: Dict, span=None) -> Dict:
  """Bind arguments in a new child frame of the closure environment and evaluate the body"""
  enter_call(context, func['name'], span)
  try:
    frame = make_runtime_env(parent=func['closure_env'], bindings=dict(zip(func['params'], args)))
    return eval_ast(func['body'], frame, context)
  finally:
    exit_call(context)


def apply_value(callee: Dict, args: Sequence[Dict], context: Dict, span=None) -> Dict:
  """
  Apply a function value to already-evaluated arguments.

  Extra arguments are applied to the function the call returns: f(a, b) on `def f(x)(y)` is f(a)(b).
  """
  callee_type = callee['type']

  if callee_type == 'builtin_function':
    if len(args) != callee['arity']:
      raise arity_error(callee['name'], callee['arity'], len(args), span)
    return call_builtin(callee, args, context)

  if callee_type != 'function':
    raise TypeMismatchError(f"{describe_type(callee)} does not take parameters", span)

  params = callee['params']
  if len(args) == len(params):
    return call_function(callee, args, context, span)

  name = callee['name'] or 'anonymous function'
  if params and len(args) > len(params):
    partial = call_function(callee, args[:len(params)], context, span)
    if partial['type'] in ('function', 'builtin_function'):
      return apply_value(partial, args[len(params):], context, span)

  raise arity_error(name, len(params), len(args), span)


def eval_short_circuit(receiver: Dict, op: str, arg: Expr, env: Dict, context: Dict, span=None) -> Dict:
  """`&&` and `||` on a Boolean evaluate their argument only when needed"""
  if op == '&&' and not receiver['value']:
    return receiver
  if op == '||' and receiver['value']:
    return receiver
  right = eval_ast(arg, env, context)
  if right['type'] != 'Boolean':
    raise type_mismatch_error(op, "right operand", "Boolean", right, span)
  return right


def eval_method_call(receiver: Dict, member: str, arg_exprs: Sequence[Expr], env: Dict,
                     context: Dict, span=None) -> Dict:
  """Shared path for `recv.m(args)` and infix `recv m arg`"""
  if receiver['type'] == 'Boolean' and member in SHORT_CIRCUIT_OPERATORS and len(arg_exprs) == 1:
    return eval_short_circuit(receiver, member, arg_exprs[0], env, context, span)

  if member == '!=' and receiver['type'] == 'object' and len(arg_exprs) == 1:
    class_def = receiver['class']
    # Without its own `!=`, a class that defines `==` gets the negation of it
    if class_def.find_member('!=') is None and class_def.find_member('==') is not None:
      equal = eval_method_call(receiver, '==', arg_exprs, env, context, span)
      if equal['type'] != 'Boolean':
        raise type_mismatch_error("!=", "result of ==", "Boolean", equal, span)
      return make_value(not equal['value'], 'Boolean')

  callee = resolve_member(receiver, member, env, context, span)
  if callee['type'] == 'accessor':
    callee = force_value(callee, context, span)

  args = [eval_ast(arg, env, context) for arg in arg_exprs]
  return apply_value(callee, args, context, span)


def construct_object(class_name: str, arg_exprs: Sequence[Expr], env: Dict, context: Dict, span=None) -> Dict:
  """Instantiate a registered class and run its guards; no object escapes a failed guard"""
  class_def = context['registry'].lookup(class_name, span)
  args = [eval_ast(arg, env, context) for arg in arg_exprs]

  if len(args) != len(class_def.ctor_params):
    raise arity_error(f"constructor {class_name}", len(class_def.ctor_params), len(args), span)

  fields = make_runtime_env(
    parent=context['global_env'],
    bindings={param.name: arg for param, arg in zip(class_def.ctor_params, args)}
  )
  obj = make_object(class_def, fields)

  member_env = make_member_env(obj)
  for guard in class_def.require_guards:
    condition = eval_ast(guard.condition, member_env, context)
    if condition['type'] != 'Boolean':
      raise type_mismatch_error("require", "condition", "Boolean", condition, guard.span)
    if not condition['value']:
      message = "requirement failed"
      if guard.message is not None:
        detail = eval_ast(guard.message, member_env, context)
        message += ": " + display_value(detail, context)
      raise RequireError(message, guard.span)

  if context['debug']:
    print(f"Constructed {class_name}")
  return obj


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(node: Expr, env: Dict, context: Dict) -> Dict:
  """
  Evaluate an expression node to a value.
  Environments are never modified; scopes are introduced as child frames.
  """
  count_step(context, node.span)

  if context['debug']:
    print(f"Evaluating: {type(node).__name__}")

  if isinstance(node, Literal):
    return eval_literal(node, env, context)
  elif isinstance(node, Ident):
    return eval_identifier(node, env, context)
  elif isinstance(node, Apply):
    return eval_apply(node, env, context)
  elif isinstance(node, OperatorApply):
    return eval_operator_apply(node, env, context)
  elif isinstance(node, Selection):
    return eval_selection(node, env, context)
  elif isinstance(node, If):
    return eval_if(node, env, context)
  elif isinstance(node, Block):
    return eval_block(node, env, context)
  elif isinstance(node, FunctionLiteral):
    return eval_function_literal(node, env, context)
  elif isinstance(node, New):
    return eval_new(node, env, context)
  else:
    raise ScaliteRuntimeError(f"cannot evaluate {type(node).__name__}", node.span)


def eval_literal(node: Literal, env: Dict, context: Dict) -> Dict:
  """Evaluate literal"""
  return make_value(node.value, node.type_name)


def eval_identifier(node: Ident, env: Dict, context: Dict) -> Dict:
  """Evaluate identifier by looking up in environment"""
  value = resolve_identifier(env, node.name, context, node.span)
  if value is None:
    raise UnboundIdentifierError(node.name, node.span)
  return value


def eval_apply(node: Apply, env: Dict, context: Dict) -> Dict:
  """Evaluate function application: callee first, then arguments left to right"""
  fn_node = node.fn

  if isinstance(fn_node, Selection):
    receiver = eval_ast(fn_node.receiver, env, context)
    return eval_method_call(receiver, fn_node.member, node.args, env, context, node.span)

  if isinstance(fn_node, Ident):
    callee = resolve_identifier(env, fn_node.name, context, fn_node.span)
    if callee is None:
      # C(args) constructs when C names a class and nothing shadows it
      if context['registry'].contains(fn_node.name):
        return construct_object(fn_node.name, node.args, env, context, node.span)
      raise UnboundIdentifierError(fn_node.name, fn_node.span)
  else:
    callee = eval_ast(fn_node, env, context)

  args = [eval_ast(arg, env, context) for arg in node.args]
  return apply_value(callee, args, context, node.span)


def eval_operator_apply(node: OperatorApply, env: Dict, context: Dict) -> Dict:
  """`l op r` is `l.op(r)`"""
  left = eval_ast(node.left, env, context)
  return eval_method_call(left, node.op, (node.right,), env, context, node.span)


def eval_selection(node: Selection, env: Dict, context: Dict) -> Dict:
  """Evaluate member selection; parameterless members are evaluated immediately"""
  receiver = eval_ast(node.receiver, env, context)
  return force_value(resolve_member(receiver, node.member, env, context, node.span), context, node.span)


def eval_if(node: If, env: Dict, context: Dict) -> Dict:
  """Evaluate conditional; only the chosen branch runs"""
  cond = eval_ast(node.cond, env, context)
  if cond['type'] != 'Boolean':
    raise type_mismatch_error("if", "condition", "Boolean", cond, node.span)
  if cond['value']:
    return eval_ast(node.then_branch, env, context)
  return eval_ast(node.else_branch, env, context)


def eval_block(node: Block, env: Dict, context: Dict) -> Dict:
  """Evaluate block; its definitions are not visible outside it"""
  block_env = eval_defs(node.defs, env, context)
  return eval_ast(node.result, block_env, context)


def eval_function_literal(node: FunctionLiteral, env: Dict, context: Dict) -> Dict:
  """Evaluate anonymous function, capturing the current environment"""
  return make_function([binding.name for binding in node.bindings], node.body, env, "anonymous")


def eval_new(node: New, env: Dict, context: Dict) -> Dict:
  return construct_object(node.class_name, node.args, env, context, node.span)


# ============================================================================
# DEFINITIONS
# ============================================================================

def eval_def(defn, env: Dict, context: Dict) -> Dict:
  """Evaluate one local definition and return the child environment binding it"""
  if isinstance(defn, ValDef):
    value = eval_ast(defn.expr, env, context)
    return env_bind_value(env, defn.name, value)
  if isinstance(defn, FunDef):
    return eval_def_group((defn,), env, context)
  raise ScaliteRuntimeError("class definitions are only allowed at top level", defn.span)


def eval_def_group(defs: Sequence[FunDef], env: Dict, context: Dict) -> Dict:
  """Bind consecutive defs in one frame so they can call each other"""
  frame = make_runtime_env(parent=env)
  for defn in defs:
    env_define(frame, defn.name, make_member_value(defn, frame))
  return frame


def eval_defs(defs: Sequence, env: Dict, context: Dict) -> Dict:
  """Evaluate block definitions in order"""
  i = 0
  while i < len(defs):
    if isinstance(defs[i], FunDef):
      j = i
      while j < len(defs) and isinstance(defs[j], FunDef):
        j += 1
      env = eval_def_group(defs[i:j], env, context)
      i = j
    else:
      env = eval_def(defs[i], env, context)
      i += 1
  return env


# ============================================================================
# DISPLAY
# ============================================================================

def display_value(value: Dict, context: Optional[Dict] = None) -> str:
  """Render a value; objects use their own toString when their class defines one"""
  if context is None:
    context = make_execution_context()

  if value['type'] != 'object':
    return scalite_show(value)

  class_def = value['class']
  if class_def.find_member('toString') is not None:
    shown = force_value(resolve_member(value, 'toString', context['global_env'], context), context)
    if shown['type'] == 'function' and not shown['params']:
      shown = apply_value(shown, [], context)
    if shown['type'] != 'String':
      raise TypeMismatchError(f"{class_def.name}.toString must return String, got {describe_type(shown)}")
    return shown['value']

  fields = value['fields']['bindings']
  args = ", ".join(display_value(fields[param.name], context) for param in class_def.ctor_params)
  return f"{class_def.name}({args})"


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def eval_program(program: Program, context: Dict) -> List[Dict]:
  """
  Evaluate a program in the context's global frame.
  Definitions are installed in order; top-level expressions produce the results.
  """
  global_env = context['global_env']
  results = []

  for statement in program:
    if isinstance(statement, ClassDef):
      # Already registered during analysis
      continue
    elif isinstance(statement, ValDef):
      env_define(global_env, statement.name, eval_ast(statement.expr, global_env, context))
    elif isinstance(statement, FunDef):
      env_define(global_env, statement.name, make_member_value(statement, global_env))
    else:
      results.append(eval_ast(statement, global_env, context))

  return results


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class ScaliteInterpreter:
  """Source text in; values, or their display strings, out"""

  def __init__(self, debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
               max_steps: Optional[int] = None):
    self.debug = debug
    self.max_depth = max_depth
    self.max_steps = max_steps
    self.parser = create_parser(debug)
    self.analyzer = create_analyzer(debug)

  def load(self, source: str, filename: str = "<input>") -> Tuple[Program, ClassRegistry]:
    """Parse and analyze; the returned registry is frozen"""
    program = self.parser.parse_string(source, filename)
    return program, self.analyzer(program)

  def evaluate(self, source: str, filename: str = "<input>") -> List[Dict]:
    """Values of the top-level expressions, in program order"""
    values, _ = self._execute(source, filename)
    return values

  def run(self, source: str, filename: str = "<input>") -> List[str]:
    """Display strings of the top-level expressions, in program order"""
    values, context = self._execute(source, filename)
    return run_with_recursion_guard(
      lambda: [display_value(value, context) for value in values], self.max_depth
    )

  def _execute(self, source: str, filename: str) -> Tuple[List[Dict], Dict]:
    program, registry = self.load(source, filename)
    context = make_execution_context(registry, self.debug, self.max_depth, self.max_steps)
    values = run_with_recursion_guard(lambda: eval_program(program, context), self.max_depth)
    return values, context


def create_interpreter(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
                       max_steps: Optional[int] = None) -> ScaliteInterpreter:
  """Factory function returning an interpreter"""
  return ScaliteInterpreter(debug=debug, max_depth=max_depth, max_steps=max_steps)


def create_debug_interpreter() -> ScaliteInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
