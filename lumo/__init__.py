"""
Lumo Programming Language

A statically typed language that compiles to JavaScript for Node.js and
browser targets.

Key Features:
- Optional type annotations with inference, nullability and narrowing
- Several interchangeable surface syntaxes for the same constructs
- `match` expressions, null coalescing and optional chaining
- Tree shaking that keeps exported and side-effecting code
- Interactive REPL backed by a persistent Node.js context

Author: xwest
"""

__version__ = "0.1.0"
__author__ = "xwest"

from .options import CompilerOptions, Target, ConfigurationError
from .pipeline import Compiler, CompilationResult, compile_source, credits_banner
from .codegen import InternalCompilerError
from .repl import ReplSession, ReplResult, NodeRuntime, RuntimeBridgeError

__all__ = [
    "__version__",
    "CompilerOptions",
    "Target",
    "ConfigurationError",
    "Compiler",
    "CompilationResult",
    "compile_source",
    "credits_banner",
    "InternalCompilerError",
    "ReplSession",
    "ReplResult",
    "NodeRuntime",
    "RuntimeBridgeError",
]
