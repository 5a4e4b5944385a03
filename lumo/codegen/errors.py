"""
Error handling for the Lumo code generator.

Generation never produces diagnostics: by the time the generator runs, the
program has been parsed and checked. Anything the generator cannot lower is
a broken pipeline invariant and aborts the whole compilation unit.

Author: xwest
"""

from typing import Optional

from ..lexer.tokens import SourceLocation
from ..lexer.errors import Diagnostic, ErrorKind
from ..parser.ast_nodes import ASTNode


class InternalCompilerError(Exception):
    """
    Raised when a pipeline invariant is violated (e.g. an AST node with no
    lowering). Always fatal; never collected as a recoverable diagnostic.
    """

    def __init__(self, message: str, node: Optional[ASTNode] = None):
        super().__init__(message)
        self.node = node
        location = node.span.start if node is not None else SourceLocation("<internal>", 0, 0, 0)
        self.diagnostic = Diagnostic(
            message=f"internal compiler error: {message}",
            location=location,
            severity="error",
            kind=ErrorKind.INTERNAL,
            code="I001",
            span=node.span if node is not None else None,
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


def create_unsupported_node_error(node: ASTNode, context: str) -> InternalCompilerError:
    return InternalCompilerError(
        f"no {context} lowering for {node.__class__.__name__}", node)
