"""
Scalite Semantics Analysis
Class registration and declared-annotation checks, run once per program load before evaluation
"""

from typing import Any, Dict, Iterator, List, Optional
from dataclasses import fields, is_dataclass

from syntax import (
  SimpleType, FunctionType, Type,
  Ident, Block, FunctionLiteral,
  ValDef, FunDef, ClassDef, Program, SourceSpan
)
from error_handling import SemanticError, UnknownClassError


# Type names available without a class definition
BUILTIN_TYPE_NAMES = {
  'Int', 'Long', 'Double', 'Float', 'Boolean', 'String', 'Unit',
  'Any', 'AnyVal', 'AnyRef', 'Nothing'
}


# ============================================================================
# CLASS REGISTRY
# ============================================================================

class ClassRegistry:
  """Map from class name to ClassDef

  Open while a program is being loaded; frozen before evaluation starts.
  """

  def __init__(self):
    self._classes: Dict[str, ClassDef] = {}
    self._frozen = False

  @property
  def frozen(self) -> bool:
    return self._frozen

  def register(self, class_def: ClassDef) -> None:
    if self._frozen:
      raise SemanticError(f"cannot register class {class_def.name}: registry is frozen",
                          class_def.span)
    if class_def.name in self._classes:
      raise SemanticError(f"class {class_def.name} is already defined", class_def.span)
    self._classes[class_def.name] = class_def

  def lookup(self, name: str, span: Optional[SourceSpan] = None) -> ClassDef:
    if name not in self._classes:
      raise UnknownClassError(name, span)
    return self._classes[name]

  def contains(self, name: str) -> bool:
    return name in self._classes

  def freeze(self) -> None:
    self._frozen = True

  def names(self) -> List[str]:
    return sorted(self._classes)


# ============================================================================
# TREE TRAVERSAL (Pure Functions)
# ============================================================================

def iter_child_nodes(node: Any) -> Iterator[Any]:
  """Yield the direct syntax-tree children of a node"""
  for f in fields(node):
    if f.name == 'span':
      continue
    value = getattr(node, f.name)
    if is_dataclass(value):
      yield value
    elif isinstance(value, tuple):
      for item in value:
        if is_dataclass(item):
          yield item
        elif isinstance(item, tuple):
          yield from (sub for sub in item if is_dataclass(sub))


def references_name(node: Any, name: str) -> bool:
  """True if an identifier `name` occurs free in node

  Stops at nested bindings of the same name (parameters, local defs).
  """
  if isinstance(node, Ident):
    return node.name == name
  if isinstance(node, FunctionLiteral):
    if any(binding.name == name for binding in node.bindings):
      return False
  if isinstance(node, FunDef):
    if any(param.name == name for params in node.param_lists for param in params):
      return False
  if isinstance(node, Block):
    if any(defn.name == name for defn in node.defs):
      return False
  return any(references_name(child, name) for child in iter_child_nodes(node))


# ============================================================================
# ANNOTATION CHECKS
# ============================================================================

def check_type(declared: Type, registry: ClassRegistry, span: Optional[SourceSpan]) -> None:
  """Every simple type name must be a builtin type or a registered class"""
  if isinstance(declared, SimpleType):
    if declared.name not in BUILTIN_TYPE_NAMES and not registry.contains(declared.name):
      raise SemanticError(f"not found: type {declared.name}", span)
  elif isinstance(declared, FunctionType):
    for param_type in declared.param_types:
      check_type(param_type, registry, span)
    check_type(declared.result_type, registry, span)


def check_parameters(owner: str, params: tuple, registry: ClassRegistry) -> None:
  for param in params:
    if param.declared_type is None:
      raise SemanticError(f"missing parameter type for {param.name} in {owner}", param.span)
    check_type(param.declared_type, registry, param.span)


def analyze_fun_def(defn: FunDef, registry: ClassRegistry, debug: bool = False) -> None:
  if debug:
    print(f"Analyzing def {defn.name}")

  for params in defn.param_lists:
    check_parameters(defn.name, params, registry)

  if defn.result_type is not None:
    check_type(defn.result_type, registry, defn.span)
  elif references_name(defn.body, defn.name):
    raise SemanticError(f"recursive method {defn.name} needs result type", defn.span)

  analyze_node(defn.body, registry, debug)


def analyze_val_def(defn: ValDef, registry: ClassRegistry, debug: bool = False) -> None:
  if defn.declared_type is not None:
    check_type(defn.declared_type, registry, defn.span)
  analyze_node(defn.expr, registry, debug)


def analyze_class_def(defn: ClassDef, registry: ClassRegistry, debug: bool = False) -> None:
  if debug:
    print(f"Analyzing class {defn.name}")

  check_parameters(f"class {defn.name}", defn.ctor_params, registry)
  for guard in defn.require_guards:
    analyze_node(guard, registry, debug)
  for member in defn.members:
    analyze_node(member, registry, debug)


def analyze_node(node: Any, registry: ClassRegistry, debug: bool = False) -> None:
  """Check every definition reachable from node"""
  if isinstance(node, FunDef):
    analyze_fun_def(node, registry, debug)
  elif isinstance(node, ValDef):
    analyze_val_def(node, registry, debug)
  elif isinstance(node, ClassDef):
    analyze_class_def(node, registry, debug)
  elif isinstance(node, FunctionLiteral):
    for binding in node.bindings:
      if binding.declared_type is not None:
        check_type(binding.declared_type, registry, binding.span)
    analyze_node(node.body, registry, debug)
  else:
    for child in iter_child_nodes(node):
      analyze_node(child, registry, debug)


def analyze_program(program: Program, debug: bool = False) -> ClassRegistry:
  """
  Register every top-level class, check declared annotations, then freeze the registry.
  Classes may refer to each other regardless of order.
  """
  registry = ClassRegistry()
  for statement in program:
    if isinstance(statement, ClassDef):
      registry.register(statement)

  for statement in program:
    analyze_node(statement, registry, debug)

  registry.freeze()
  if debug:
    print(f"Registered classes: {', '.join(registry.names()) or '(none)'}")
  return registry


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer function"""
  def analyzer(program: Program) -> ClassRegistry:
    return analyze_program(program, debug)

  return analyzer
