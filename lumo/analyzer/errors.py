"""
Error handling for the Lumo type checker.

Diagnostics fall into two kinds. Reference errors (undefined names,
duplicate declarations) are always hard errors. Type errors (mismatches,
reassigning immutable bindings, unguarded nullable access) are hard
errors in strict mode and become warnings otherwise.

Author: xwest
"""

from typing import Optional, List

from ..lexer.tokens import SourceLocation
from ..lexer.errors import Diagnostic, ErrorKind
from ..parser.ast_nodes import ASTNode


class SemanticError(Exception):
    """
    Exception raised (or collected) when type checking finds a problem.

    Contains detailed diagnostic information for error reporting.
    """

    def __init__(
        self,
        message: str,
        location: SourceLocation,
        node: Optional[ASTNode] = None,
        code: Optional[str] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        related_locations: Optional[List[SourceLocation]] = None,
        kind: ErrorKind = ErrorKind.TYPE
    ):
        super().__init__(message)
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="error",
            kind=kind,
            code=code,
            span=node.span if node is not None else None,
            help_text=help_text,
            suggestions=suggestions
        )
        self.node = node
        self.related_locations = related_locations or []

    @property
    def kind(self) -> ErrorKind:
        return self.diagnostic.kind

    def downgrade(self) -> 'SemanticError':
        """Turn this error into a warning (lenient mode)."""
        self.diagnostic.severity = "warning"
        return self

    def __str__(self) -> str:
        result = str(self.diagnostic)

        if self.related_locations:
            result += "\nRelated locations:\n"
            for loc in self.related_locations:
                result += f"  --> {loc}\n"

        return result


# Semantic error codes for categorization
SEMANTIC_ERROR_CODES = {
    # Type errors
    "S001": "Type mismatch",
    "S002": "Undefined type",
    "S003": "Invalid operand types",
    "S004": "Not callable",
    "S005": "Unknown member",

    # Symbol resolution errors
    "S010": "Undefined symbol",
    "S011": "Symbol redefinition",
    "S012": "Use before declaration",

    # Binding errors
    "S015": "Assignment to immutable binding",
    "S016": "Possibly null access",

    # Function errors
    "S050": "Arity mismatch",
    "S053": "Invalid return type",
    "S054": "Return outside function",

    # Control flow errors
    "S062": "Invalid break/continue",
    "S063": "Jump out of a match expression",
}


# Helper functions for creating specific semantic errors

def create_type_mismatch_error(
    expected: str,
    actual: str,
    location: SourceLocation,
    node: Optional[ASTNode] = None
) -> SemanticError:
    """Create a type mismatch error."""
    return SemanticError(
        message=f"Type mismatch: expected {expected}, found {actual}",
        location=location,
        node=node,
        code="S001",
        help_text=f"The expression has type '{actual}' but '{expected}' was expected.",
    )


def create_undefined_type_error(name: str, location: SourceLocation,
                                node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"Unknown type: '{name}'",
        location=location,
        node=node,
        code="S002",
        suggestions=["Use num, str, bool, any, void, a list, a shape or a class name"],
    )


def create_invalid_operands_error(operator: str, left: str, right: str, location: SourceLocation,
                                  node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"Operator '{operator}' cannot be applied to {left} and {right}",
        location=location,
        node=node,
        code="S003",
    )


def create_not_callable_error(type_name: str, location: SourceLocation,
                              node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"Value of type {type_name} is not callable",
        location=location,
        node=node,
        code="S004",
    )


def create_unknown_member_error(member: str, type_name: str, location: SourceLocation,
                                node: Optional[ASTNode] = None,
                                similar_names: Optional[List[str]] = None) -> SemanticError:
    suggestions = [f"Did you mean '{name}'?" for name in (similar_names or [])[:3]]
    return SemanticError(
        message=f"Property '{member}' does not exist on type {type_name}",
        location=location,
        node=node,
        code="S005",
        suggestions=suggestions or None,
    )


def create_undefined_symbol_error(
    symbol: str,
    location: SourceLocation,
    node: Optional[ASTNode] = None,
    similar_names: Optional[List[str]] = None
) -> SemanticError:
    """Create an undefined symbol error."""
    suggestions = []
    if similar_names:
        suggestions.extend([f"Did you mean '{name}'?" for name in similar_names[:3]])

    suggestions.extend([
        f"Declare '{symbol}' before using it",
        "Check for typos in the symbol name",
    ])

    return SemanticError(
        message=f"Undefined symbol: '{symbol}'",
        location=location,
        node=node,
        code="S010",
        help_text=f"The symbol '{symbol}' is not defined in the current scope.",
        suggestions=suggestions,
        kind=ErrorKind.REFERENCE
    )


def create_redefinition_error(name: str, location: SourceLocation,
                              previous: Optional[SourceLocation] = None) -> SemanticError:
    return SemanticError(
        message=f"Symbol '{name}' is already defined in this scope",
        location=location,
        code="S011",
        help_text="Each name can be declared once per scope; assign to the existing binding instead.",
        related_locations=[previous] if previous else None,
        kind=ErrorKind.REFERENCE
    )


def create_use_before_declaration_error(name: str, location: SourceLocation,
                                        node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"Cannot access '{name}' before its declaration",
        location=location,
        node=node,
        code="S012",
        help_text="Top-level variables are only visible after the statement that declares them.",
        kind=ErrorKind.REFERENCE
    )


def create_immutable_assignment_error(name: str, binding: str, location: SourceLocation,
                                      node: Optional[ASTNode] = None) -> SemanticError:
    """Create an error for reassigning a binding that cannot change."""
    article = "an" if binding.startswith(tuple("aeiou")) else "a"
    suggestions = []
    if binding == "auto-const":
        suggestions.append(f"Declare it with 'let {name} = ...' or 'var {name} = ...' to allow reassignment")
    return SemanticError(
        message=f"Cannot assign to '{name}' because it is {article} {binding} binding",
        location=location,
        node=node,
        code="S015",
        suggestions=suggestions or None,
    )


def create_nullable_access_error(expression: str, type_name: str, location: SourceLocation,
                                 node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"'{expression}' may be null (type {type_name})",
        location=location,
        node=node,
        code="S016",
        help_text="Nullable values can only be used inside a 'have' check.",
        suggestions=[f"Wrap the use in 'if have {expression} {{ ... }}'",
                     "Use '?.' or '??' to handle the null case"],
    )


def create_arity_mismatch_error(
    function_name: str,
    expected: str,
    actual: int,
    location: SourceLocation,
    node: Optional[ASTNode] = None
) -> SemanticError:
    """Create an arity mismatch error."""
    return SemanticError(
        message=f"Function '{function_name}' expects {expected} arguments, got {actual}",
        location=location,
        node=node,
        code="S050",
        help_text=f"The function call has {actual} arguments but {expected} were expected.",
    )


def create_divergent_return_error(function_name: str, types: List[str], location: SourceLocation,
                                  node: Optional[ASTNode] = None) -> SemanticError:
    return SemanticError(
        message=f"Function '{function_name}' returns incompatible types: {', '.join(types)}",
        location=location,
        node=node,
        code="S053",
        suggestions=["Add a return type annotation", "Make every return produce the same type"],
    )


def create_invalid_control_flow_error(keyword: str, context: str, location: SourceLocation,
                                      node: Optional[ASTNode] = None) -> SemanticError:
    code = "S054" if keyword == "return" else "S062"
    return SemanticError(
        message=f"'{keyword}' outside of a {context}",
        location=location,
        node=node,
        code=code,
    )


def create_match_arm_exit_error(keyword: str, location: SourceLocation,
                                node: Optional[ASTNode] = None) -> SemanticError:
    """A break, continue or return would have to leave a match used inside a larger expression."""
    return SemanticError(
        message=f"'{keyword}' cannot leave a match expression used inside another expression",
        location=location,
        node=node,
        code="S063",
        help_text="Only a match that is assigned, returned or used as a statement can break, continue or return.",
        suggestions=["Bind the match to a variable first, e.g. 'value = match ...'"],
        kind=ErrorKind.SYNTAX,
    )
