"""
Lumo Code Generation Package

Lowers the Lumo AST to JavaScript for node or browser targets.

Author: xwest
"""

from .js_generator import JavaScriptGenerator, JSPrecedence, generate_javascript
from .errors import InternalCompilerError

__all__ = [
    "JavaScriptGenerator",
    "JSPrecedence",
    "generate_javascript",
    "InternalCompilerError",
]
