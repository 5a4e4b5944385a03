"""
Error handling for the Lumo lexer.

Also home of the Diagnostic record shared by every pipeline stage, so the
parser, analyzer and REPL all report problems in one shape.

Author: xwest
"""

from enum import Enum
from typing import Optional, List
from dataclasses import dataclass

from .tokens import SourceLocation, SourceSpan, OPERATORS


class ErrorKind(Enum):
    """Broad category of a diagnostic."""
    LEXICAL = "lexical"
    SYNTAX = "syntax"
    TYPE = "type"
    REFERENCE = "reference"
    INTERNAL = "internal"


@dataclass
class Diagnostic:
    """A compiler diagnostic (error or warning) with its source position."""
    message: str
    location: SourceLocation
    severity: str  # "error" or "warning"
    kind: ErrorKind = ErrorKind.SYNTAX
    code: Optional[str] = None
    span: Optional[SourceSpan] = None
    help_text: Optional[str] = None
    suggestions: Optional[List[str]] = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def short(self) -> str:
        """Single-line rendering, used by the REPL."""
        code = f"[{self.code}] " if self.code else ""
        return f"{self.location}: {self.severity}: {code}{self.message}"

    def __str__(self) -> str:
        severity_prefix = self.severity.upper()
        code = f"[{self.code}]" if self.code else ""
        result = f"{severity_prefix}{code}: {self.message}\n"
        result += f"  --> {self.location}\n"

        if self.help_text:
            result += f"  help: {self.help_text}\n"

        if self.suggestions:
            result += "  suggestions:\n"
            for suggestion in self.suggestions:
                result += f"    - {suggestion}\n"

        return result


class LexerError(Exception):
    """
    Exception raised when the lexer encounters a malformed input.

    The lexer collects these instead of stopping, so a single pass can
    report every bad character in a file.
    """

    def __init__(
        self,
        message: str,
        location: SourceLocation,
        code: Optional[str] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="error",
            kind=ErrorKind.LEXICAL,
            code=code,
            help_text=help_text,
            suggestions=suggestions
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


class ErrorRecovery:
    """Suggestion helpers used when building lexer diagnostics."""

    @staticmethod
    def suggest_operator_corrections(invalid_op: str) -> List[str]:
        """Suggest operators one edit away from an unknown symbol."""
        suggestions = []
        for operator in OPERATORS.keys():
            if len(operator) == len(invalid_op) and edit_distance(invalid_op, operator) <= 1:
                suggestions.append(operator)
        return suggestions[:3]


def edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        return edit_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


# Common error codes for categorization
ERROR_CODES = {
    "L001": "Invalid character",
    "L002": "Unterminated string literal",
    "L003": "Invalid numeric literal",
    "L004": "Unterminated template literal",
    "L005": "Unterminated block comment",
}


def create_invalid_character_error(char: str, location: SourceLocation) -> LexerError:
    """Create an error for an invalid character."""
    if char.isprintable():
        help_text = f"The character '{char}' is not valid in Lumo source code."
    else:
        help_text = f"Non-printable character (Unicode: U+{ord(char):04X}) is not allowed."

    suggestions = ErrorRecovery.suggest_operator_corrections(char)
    if char == "&":
        suggestions = ["&&", "and"]
    elif char == "|":
        suggestions = ["||", "or"]

    return LexerError(
        message=f"Invalid character: '{char}'",
        location=location,
        code="L001",
        help_text=help_text,
        suggestions=suggestions or None
    )


def create_unterminated_string_error(quote_type: str, location: SourceLocation) -> LexerError:
    """Create an error for an unterminated string literal."""
    return LexerError(
        message="Unterminated string literal",
        location=location,
        code="L002",
        help_text=f"String literals must be closed with a matching {quote_type} quote.",
        suggestions=[f"Add a closing {quote_type} quote", "Check for unescaped quotes in the string"]
    )


def create_invalid_number_error(lexeme: str, location: SourceLocation, reason: str) -> LexerError:
    """Create an error for an invalid numeric literal."""
    return LexerError(
        message=f"Invalid numeric literal: '{lexeme}'",
        location=location,
        code="L003",
        help_text=reason,
    )


def create_unterminated_template_error(location: SourceLocation) -> LexerError:
    """Create an error for a template literal missing its closing backtick."""
    return LexerError(
        message="Unterminated template literal",
        location=location,
        code="L004",
        help_text="Template literals must be closed with a backtick (`), and every ${ needs a matching }.",
    )


def create_unterminated_comment_error(location: SourceLocation) -> LexerError:
    return LexerError(
        message="Unterminated block comment",
        location=location,
        code="L005",
        help_text="Block comments opened with /* must be closed with */.",
    )
