"""
Type representation for the Lumo type checker.

A type is a tagged union over primitives (boolean, number, string, any,
void, null), list-of-T, structural maps/shapes, nullable-of-T, function
types, nominal class types, the class object itself (the value a class
name evaluates to) and an error type for unresolved expressions.

Compatibility is structural for maps and nominal for classes; ``any``
and the error type are compatible with everything.

Author: xwest
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class TypeKind(Enum):
    """Tag of a SymbolType."""
    PRIMITIVE = "primitive"
    LIST = "list"
    MAP = "map"
    NULLABLE = "nullable"
    FUNCTION = "function"
    CLASS = "class"
    CLASS_OBJECT = "class_object"
    ERROR = "error"


@dataclass(eq=False)
class SymbolType:
    """
    A type in the Lumo type system.

    Which fields are meaningful depends on ``kind``:

    - PRIMITIVE: ``name``
    - LIST / NULLABLE: ``element`` (the element or base type)
    - MAP: ``fields`` (None for an open map whose members are all ``any``)
    - FUNCTION: ``params``, ``return_type``, ``min_arity``, ``variadic``
    - CLASS / CLASS_OBJECT: ``name``, ``fields`` (instance or static
      members), ``superclass``; a CLASS_OBJECT's ``element`` is the
      instance type
    """
    kind: TypeKind
    name: str = ""
    element: Optional['SymbolType'] = None
    fields: Optional[Dict[str, 'SymbolType']] = None
    params: List['SymbolType'] = field(default_factory=list)
    return_type: Optional['SymbolType'] = None
    min_arity: int = 0
    variadic: bool = False
    is_async: bool = False
    superclass: Optional['SymbolType'] = None

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_any(self) -> bool:
        """True for ``any`` and for the error type (both unconstrained)."""
        return self.kind == TypeKind.ERROR or (self.kind == TypeKind.PRIMITIVE and self.name == "any")

    @property
    def is_nullable(self) -> bool:
        return self.kind == TypeKind.NULLABLE or self.is_null

    @property
    def is_null(self) -> bool:
        return self.kind == TypeKind.PRIMITIVE and self.name == "null"

    def is_primitive(self, name: str) -> bool:
        return self.kind == TypeKind.PRIMITIVE and self.name == name

    # ------------------------------------------------------------------
    # Class helpers
    # ------------------------------------------------------------------

    def lookup_member(self, name: str) -> Optional['SymbolType']:
        """Find a member on a class (walking the superclass chain) or a shape."""
        current: Optional[SymbolType] = self
        while current is not None:
            if current.fields is not None and name in current.fields:
                return current.fields[name]
            current = current.superclass
        return None

    def has_open_ancestry(self) -> bool:
        """A class extending something unresolved (an import, a builtin) may have any member."""
        current = self.superclass
        while current is not None:
            if current.is_any:
                return True
            current = current.superclass
        return False

    def is_subclass_of(self, other: 'SymbolType') -> bool:
        current: Optional[SymbolType] = self
        while current is not None:
            if current is other or (current.kind == other.kind and current.name == other.name):
                return True
            current = current.superclass
        return False

    # ------------------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, SymbolType) or self.kind != other.kind:
            return False
        if self.kind in (TypeKind.PRIMITIVE, TypeKind.CLASS, TypeKind.CLASS_OBJECT):
            return self.name == other.name
        if self.kind in (TypeKind.LIST, TypeKind.NULLABLE):
            return self.element == other.element
        if self.kind == TypeKind.MAP:
            return self.fields == other.fields
        if self.kind == TypeKind.FUNCTION:
            return self.params == other.params and self.return_type == other.return_type
        return True

    def __hash__(self) -> int:
        return hash((self.kind, self.name))

    def __str__(self) -> str:
        if self.kind == TypeKind.PRIMITIVE:
            return self.name
        if self.kind == TypeKind.LIST:
            return f"list<{self.element}>"
        if self.kind == TypeKind.NULLABLE:
            return f"{self.element}?"
        if self.kind == TypeKind.MAP:
            if self.fields is None:
                return "map"
            inner = ", ".join(f"{name}: {field_type}" for name, field_type in self.fields.items())
            return "{ " + inner + " }" if inner else "{}"
        if self.kind == TypeKind.FUNCTION:
            params = ", ".join(str(param) for param in self.params)
            if self.variadic:
                params = f"{params}, ..." if params else "..."
            return f"fn({params}): {self.return_type or VOID}"
        if self.kind == TypeKind.CLASS_OBJECT:
            return f"class {self.name}"
        if self.kind == TypeKind.CLASS:
            return self.name
        return "<error>"


# ============================================================================
# Constructors and shared instances
# ============================================================================

def primitive(name: str) -> SymbolType:
    return SymbolType(TypeKind.PRIMITIVE, name)


ANY = primitive("any")
NUMBER = primitive("number")
STRING = primitive("string")
BOOLEAN = primitive("boolean")
VOID = primitive("void")
NULL = primitive("null")
ERROR = SymbolType(TypeKind.ERROR, "<error>")


def list_of(element: SymbolType) -> SymbolType:
    return SymbolType(TypeKind.LIST, element=element)


def nullable(base: SymbolType) -> SymbolType:
    """Wrap ``base`` in a nullable type; nullability never nests."""
    if base.is_any or base.is_nullable:
        return base
    return SymbolType(TypeKind.NULLABLE, element=base)


def map_type(fields: Optional[Dict[str, SymbolType]] = None) -> SymbolType:
    return SymbolType(TypeKind.MAP, fields=fields)


OPEN_MAP = map_type(None)


def function_type(params: List[SymbolType], return_type: SymbolType, min_arity: Optional[int] = None,
                  variadic: bool = False, is_async: bool = False) -> SymbolType:
    return SymbolType(
        TypeKind.FUNCTION,
        params=list(params),
        return_type=return_type,
        min_arity=len(params) if min_arity is None else min_arity,
        variadic=variadic,
        is_async=is_async,
    )


def class_type(name: str, superclass: Optional[SymbolType] = None) -> SymbolType:
    return SymbolType(TypeKind.CLASS, name=name, fields={}, superclass=superclass)


def class_object_type(instance: SymbolType, superclass: Optional[SymbolType] = None) -> SymbolType:
    return SymbolType(TypeKind.CLASS_OBJECT, name=instance.name, element=instance,
                      fields={}, superclass=superclass)


# Surface spellings of the primitive types
TYPE_ALIASES: Dict[str, SymbolType] = {
    "str": STRING,
    "string": STRING,
    "num": NUMBER,
    "number": NUMBER,
    "int": NUMBER,
    "float": NUMBER,
    "bool": BOOLEAN,
    "boolean": BOOLEAN,
    "any": ANY,
    "void": VOID,
    "null": NULL,
    "undefined": NULL,
    "map": OPEN_MAP,
    "object": OPEN_MAP,
}


# ============================================================================
# Relations
# ============================================================================

def strip_nullable(symbol_type: SymbolType) -> SymbolType:
    if symbol_type.kind == TypeKind.NULLABLE:
        return symbol_type.element
    return symbol_type


def is_assignable(source: SymbolType, target: SymbolType) -> bool:
    """Can a value of type ``source`` be stored in a slot of type ``target``?"""
    if source.is_any or target.is_any:
        return True

    if target.kind == TypeKind.NULLABLE:
        if source.is_null:
            return True
        return is_assignable(strip_nullable(source), target.element)
    if source.is_nullable:
        return False

    if target.kind == TypeKind.PRIMITIVE:
        return source.kind == TypeKind.PRIMITIVE and source.name == target.name

    if target.kind == TypeKind.LIST:
        return source.kind == TypeKind.LIST and is_assignable(source.element, target.element)

    if target.kind == TypeKind.MAP:
        if source.kind not in (TypeKind.MAP, TypeKind.CLASS):
            return False
        if target.fields is None:
            return True
        # Structural: every field the target requires must be present and compatible
        for name, field_type in target.fields.items():
            member = source.lookup_member(name) if source.fields is not None else ANY
            if member is None:
                if field_type.is_nullable:
                    continue
                return False
            if not is_assignable(member, field_type):
                return False
        return True

    if target.kind == TypeKind.CLASS:
        # Nominal: a subclass instance fits a superclass slot
        return source.kind == TypeKind.CLASS and (source.is_subclass_of(target) or source.has_open_ancestry())

    if target.kind == TypeKind.FUNCTION:
        if source.kind != TypeKind.FUNCTION:
            return False
        for source_param, target_param in zip(source.params, target.params):
            if not is_assignable(target_param, source_param):
                return False
        if target.return_type is None or target.return_type.is_primitive("void"):
            return True
        return is_assignable(source.return_type or VOID, target.return_type)

    if target.kind == TypeKind.CLASS_OBJECT:
        return source.kind == TypeKind.CLASS_OBJECT and source.element.is_subclass_of(target.element)

    return False


def join(left: SymbolType, right: SymbolType) -> Optional[SymbolType]:
    """
    Common type of two expressions (conditional branches, return statements).

    Returns None when the types are unrelated.
    """
    if left == right:
        return left
    if left.is_any or right.is_any:
        return ANY
    if left.is_null:
        return nullable(right)
    if right.is_null:
        return nullable(left)
    if left.kind == TypeKind.NULLABLE or right.kind == TypeKind.NULLABLE:
        inner = join(strip_nullable(left), strip_nullable(right))
        return nullable(inner) if inner is not None else None
    if is_assignable(left, right):
        return right
    if is_assignable(right, left):
        return left
    if left.kind == TypeKind.MAP and right.kind == TypeKind.MAP:
        return OPEN_MAP
    return None


def join_all(types: List[SymbolType]) -> Optional[SymbolType]:
    if not types:
        return VOID
    result = types[0]
    for symbol_type in types[1:]:
        result = join(result, symbol_type)
        if result is None:
            return None
    return result
