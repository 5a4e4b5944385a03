"""
Symbol table and scope management for Lumo type checking.

Implements hierarchical symbol tables with support for:
- Lexical (block) scoping with shadowing across scopes
- Hoisted top-level functions and classes
- Target-specific builtin globals
- Checkpoint/rollback of the module scope for the REPL

Author: xwest
"""

from contextlib import contextmanager
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..lexer.tokens import SourceLocation
from ..lexer.errors import edit_distance
from ..parser.ast_nodes import ASTNode, Mutability
from .errors import create_redefinition_error
from .types import (
    SymbolType, ANY, NUMBER, STRING, BOOLEAN, VOID, OPEN_MAP, function_type,
)


class SymbolKind(Enum):
    """Types of symbols in the symbol table."""
    VARIABLE = "variable"
    PARAMETER = "parameter"
    FUNCTION = "function"
    CLASS = "class"
    IMPORT = "import"
    BUILTIN = "builtin"


@dataclass
class Symbol:
    """Represents a symbol in the symbol table."""
    name: str
    kind: SymbolKind
    symbol_type: SymbolType
    location: SourceLocation
    mutability: Optional[Mutability] = None
    ast_node: Optional[ASTNode] = None

    # Top-level variables are entered before their statement runs so that
    # functions may refer to them; ``declared`` flips once it has.
    declared: bool = True

    @property
    def is_mutable(self) -> bool:
        if self.kind == SymbolKind.PARAMETER:
            return True
        if self.kind == SymbolKind.VARIABLE:
            return self.mutability is not None and not self.mutability.is_immutable
        return False

    def binding_description(self) -> str:
        """How to describe the binding in an immutability diagnostic."""
        if self.kind == SymbolKind.VARIABLE and self.mutability is not None:
            return self.mutability.value
        return self.kind.value

    def __str__(self) -> str:
        return f"{self.name}: {self.symbol_type}"


class ScopeKind(Enum):
    """Types of scopes."""
    GLOBAL = "global"
    MODULE = "module"
    FUNCTION = "function"
    CLASS = "class"
    BLOCK = "block"
    LOOP = "loop"


@dataclass
class Scope:
    """Represents a lexical scope."""
    kind: ScopeKind
    name: str
    symbols: Dict[str, Symbol] = field(default_factory=dict)
    parent: Optional['Scope'] = None
    children: List['Scope'] = field(default_factory=list)

    # Function scopes collect the types of their return statements
    return_type: Optional[SymbolType] = None
    return_types: List[SymbolType] = field(default_factory=list)
    # Class and method scopes know the instance type of `this`
    this_type: Optional[SymbolType] = None

    def __post_init__(self):
        """Initialize scope after creation."""
        if self.parent:
            self.parent.children.append(self)

    def define_symbol(self, symbol: Symbol) -> None:
        """Define a symbol in this scope."""
        existing = self.symbols.get(symbol.name)
        if existing is not None:
            raise create_redefinition_error(symbol.name, symbol.location, existing.location)

        self.symbols[symbol.name] = symbol

    def lookup_symbol(self, name: str) -> Optional[Symbol]:
        """Look up a symbol in this scope and parent scopes."""
        if name in self.symbols:
            return self.symbols[name]

        if self.parent:
            return self.parent.lookup_symbol(name)

        return None

    def lookup_symbol_local(self, name: str) -> Optional[Symbol]:
        """Look up a symbol only in this scope (no parent traversal)."""
        return self.symbols.get(name)

    def get_all_symbols(self) -> Dict[str, Symbol]:
        """Get all symbols visible in this scope."""
        result = {}

        if self.parent:
            result.update(self.parent.get_all_symbols())

        result.update(self.symbols)

        return result

    def get_similar_names(self, name: str, max_distance: int = 2) -> List[str]:
        """Get symbol names similar to the given name (for error suggestions)."""
        similar_names = []
        for symbol_name in self.get_all_symbols().keys():
            distance = edit_distance(name.lower(), symbol_name.lower())
            if distance <= max_distance:
                similar_names.append((symbol_name, distance))

        similar_names.sort(key=lambda x: x[1])
        return [name for name, _ in similar_names[:5]]

    def __str__(self) -> str:
        symbol_count = len(self.symbols)
        return f"Scope({self.kind.value}, {self.name}, {symbol_count} symbols)"


# ============================================================================
# Builtin globals
# ============================================================================

_LOG_TYPE = function_type([], VOID, variadic=True)

# Globals both targets provide
COMMON_GLOBALS: Dict[str, SymbolType] = {
    "log": _LOG_TYPE,
    "print": _LOG_TYPE,
    "console": OPEN_MAP,
    "Math": OPEN_MAP,
    "JSON": OPEN_MAP,
    "Reflect": OPEN_MAP,
    "Intl": OPEN_MAP,
    "globalThis": OPEN_MAP,
    "Object": ANY,
    "Array": ANY,
    "String": ANY,
    "Number": ANY,
    "Boolean": ANY,
    "Symbol": ANY,
    "BigInt": ANY,
    "Date": ANY,
    "RegExp": ANY,
    "Promise": ANY,
    "Proxy": ANY,
    "Map": ANY,
    "Set": ANY,
    "WeakMap": ANY,
    "WeakSet": ANY,
    "Error": ANY,
    "TypeError": ANY,
    "RangeError": ANY,
    "SyntaxError": ANY,
    "ReferenceError": ANY,
    "URL": ANY,
    "TextEncoder": ANY,
    "TextDecoder": ANY,
    "AbortController": ANY,
    "NaN": NUMBER,
    "Infinity": NUMBER,
    "parseInt": function_type([STRING, NUMBER], NUMBER, min_arity=1),
    "parseFloat": function_type([STRING], NUMBER),
    "isNaN": function_type([ANY], BOOLEAN),
    "isFinite": function_type([ANY], BOOLEAN),
    "encodeURIComponent": function_type([STRING], STRING),
    "decodeURIComponent": function_type([STRING], STRING),
    "setTimeout": ANY,
    "setInterval": ANY,
    "clearTimeout": ANY,
    "clearInterval": ANY,
    "queueMicrotask": ANY,
    "structuredClone": ANY,
    "eval": function_type([STRING], ANY),
    "fetch": ANY,
}

NODE_GLOBALS: Dict[str, SymbolType] = {
    "require": function_type([STRING], ANY),
    "process": OPEN_MAP,
    "module": OPEN_MAP,
    "exports": OPEN_MAP,
    "global": OPEN_MAP,
    "Buffer": ANY,
    "__dirname": STRING,
    "__filename": STRING,
}

BROWSER_GLOBALS: Dict[str, SymbolType] = {
    "window": OPEN_MAP,
    "document": OPEN_MAP,
    "navigator": OPEN_MAP,
    "location": OPEN_MAP,
    "history": OPEN_MAP,
    "localStorage": OPEN_MAP,
    "sessionStorage": OPEN_MAP,
    "alert": function_type([ANY], VOID, min_arity=0),
    "confirm": function_type([ANY], BOOLEAN, min_arity=0),
    "prompt": ANY,
    "requestAnimationFrame": ANY,
    "HTMLElement": ANY,
    "Event": ANY,
    "CustomEvent": ANY,
}


def builtin_globals(target: str) -> Dict[str, SymbolType]:
    """Builtin names visible to a program compiled for ``target``."""
    result = dict(COMMON_GLOBALS)
    result.update(NODE_GLOBALS if target == "node" else BROWSER_GLOBALS)
    return result


class SymbolTable:
    """
    Manages hierarchical symbol tables and scopes.

    The global scope holds the target's builtins; user code starts in a
    module scope beneath it, so a program may shadow a builtin name.
    """

    def __init__(self, target: str = "node"):
        """Initialize the symbol table with global and module scopes."""
        self.target = target
        self.global_scope = Scope(ScopeKind.GLOBAL, "global")
        self._initialize_builtins()
        self.module_scope = Scope(ScopeKind.MODULE, "module", parent=self.global_scope)
        self.current_scope = self.module_scope
        self.scopes: List[Scope] = [self.global_scope, self.module_scope]

    def _initialize_builtins(self):
        """Initialize built-in globals for the target."""
        dummy_location = SourceLocation("builtin", 0, 0, 0)

        for name, symbol_type in builtin_globals(self.target).items():
            self.global_scope.define_symbol(Symbol(
                name=name,
                kind=SymbolKind.BUILTIN,
                symbol_type=symbol_type,
                location=dummy_location,
            ))

    def enter_scope(self, kind: ScopeKind, name: str) -> Scope:
        """Enter a new scope."""
        new_scope = Scope(kind, name, parent=self.current_scope)
        self.current_scope = new_scope
        self.scopes.append(new_scope)
        return new_scope

    def exit_scope(self) -> Optional[Scope]:
        """Exit the current scope and return to parent."""
        if self.current_scope.parent:
            old_scope = self.current_scope
            self.current_scope = self.current_scope.parent
            return old_scope
        return None

    @contextmanager
    def switched_to(self, scope: Scope):
        """Temporarily make ``scope`` current (used to check a hoisted function body)."""
        saved = self.current_scope
        self.current_scope = scope
        try:
            yield scope
        finally:
            self.current_scope = saved

    def define_symbol(self, symbol: Symbol) -> None:
        """Define a symbol in the current scope."""
        self.current_scope.define_symbol(symbol)

    def lookup_symbol_safe(self, name: str) -> Optional[Symbol]:
        """Look up a symbol without raising errors."""
        return self.current_scope.lookup_symbol(name)

    def define_variable(self, name: str, var_type: SymbolType, location: SourceLocation,
                        mutability: Mutability, node: Optional[ASTNode] = None) -> Symbol:
        """Define a variable symbol."""
        symbol = Symbol(
            name=name,
            kind=SymbolKind.VARIABLE,
            symbol_type=var_type,
            location=location,
            mutability=mutability,
            ast_node=node,
        )
        self.define_symbol(symbol)
        return symbol

    def define_function(self, name: str, func_type: SymbolType, location: SourceLocation,
                        node: Optional[ASTNode] = None) -> Symbol:
        """Define a function symbol."""
        symbol = Symbol(
            name=name,
            kind=SymbolKind.FUNCTION,
            symbol_type=func_type,
            location=location,
            ast_node=node,
        )
        self.define_symbol(symbol)
        return symbol

    def define_class(self, name: str, class_object: SymbolType, location: SourceLocation,
                     node: Optional[ASTNode] = None) -> Symbol:
        """Define a class symbol; its type is the class object (the constructor value)."""
        symbol = Symbol(
            name=name,
            kind=SymbolKind.CLASS,
            symbol_type=class_object,
            location=location,
            ast_node=node,
        )
        self.define_symbol(symbol)
        return symbol

    def get_current_function_scope(self) -> Optional[Scope]:
        """Get the current function scope, if any."""
        current = self.current_scope
        while current:
            if current.kind == ScopeKind.FUNCTION:
                return current
            current = current.parent
        return None

    def get_current_loop_scope(self) -> Optional[Scope]:
        """Get the innermost loop scope that is not behind a function boundary."""
        current = self.current_scope
        while current:
            if current.kind == ScopeKind.LOOP:
                return current
            if current.kind in (ScopeKind.FUNCTION, ScopeKind.CLASS):
                return None
            current = current.parent
        return None

    def get_this_type(self) -> Optional[SymbolType]:
        current = self.current_scope
        while current:
            if current.this_type is not None:
                return current.this_type
            current = current.parent
        return None

    def is_in_loop(self) -> bool:
        """Check if currently inside a loop."""
        return self.get_current_loop_scope() is not None

    # ------------------------------------------------------------------
    # REPL support
    # ------------------------------------------------------------------

    def checkpoint(self) -> Dict[str, Symbol]:
        """Snapshot the module scope's bindings."""
        return dict(self.module_scope.symbols)

    def rollback(self, snapshot: Dict[str, Symbol]) -> None:
        """Restore the module scope to a snapshot, discarding newer bindings."""
        self.module_scope.symbols = dict(snapshot)
        self.current_scope = self.module_scope

    def __str__(self) -> str:
        return f"SymbolTable(current: {self.current_scope})"
