"""
Lumo Parser Package

Pratt parser producing the Lumo AST.

Key Features:
- Operator-precedence expression parsing with a fixed precedence table
- Normalization of interchangeable surface syntax into one node shape
- Auto-const declarations (`x = 1` with `x` unbound)
- Unbounded arrow nesting, match arms, four distinct for-loop forms
- Statement-level error recovery (many syntax errors per pass)

Author: xwest
"""

from .parser import Parser, Precedence, parse_string, parse_file
from .errors import ParseError
from . import ast_nodes
from .ast_nodes import Program, Mutability, ASTNode, ASTVisitor, walk

__all__ = [
    "Parser",
    "Precedence",
    "ParseError",
    "Program",
    "Mutability",
    "ASTNode",
    "ASTVisitor",
    "ast_nodes",
    "walk",
    "parse_string",
    "parse_file",
]
