"""
Lumo Type Checker Package

Scoped symbol tables, type inference and checking, nullability and
narrowing, mutability enforcement.

Author: xwest
"""

from .type_checker import TypeChecker, AnalysisResult, check_program
from .symbol_table import SymbolTable, Symbol, SymbolKind, Scope, ScopeKind
from .types import SymbolType, TypeKind, is_assignable
from .errors import SemanticError

__all__ = [
    "TypeChecker",
    "AnalysisResult",
    "check_program",
    "SymbolTable",
    "Symbol",
    "SymbolKind",
    "Scope",
    "ScopeKind",
    "SymbolType",
    "TypeKind",
    "is_assignable",
    "SemanticError",
]
